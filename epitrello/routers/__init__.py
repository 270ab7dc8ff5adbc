"""API routers."""

from .auth import router as auth_router
from .boards import router as boards_router
from .cards import router as cards_router
from .lists import router as lists_router
from .notifications import router as notifications_router
from .users import router as users_router

__all__ = [
    "auth_router",
    "boards_router",
    "cards_router",
    "lists_router",
    "notifications_router",
    "users_router",
]
