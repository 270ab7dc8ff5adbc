"""Pydantic schemas for activity feeds."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import Field

from .common import CamelModel
from .user import UserSummary


class ActivityResponse(CamelModel):
    """One activity entry, board or card scoped."""

    id: UUID
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    entity_title: Optional[str] = None
    details: Optional[str] = None
    message: Optional[str] = None
    actor: Optional[UserSummary] = Field(None, description="Acting user, null for system actions")
    created_at: datetime
