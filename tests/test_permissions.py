"""Unit tests for the permission service.

Tests cover the role ladder:
1. Owner - derived from the board, full access including deletion
2. Admin - board settings and member add/role change
3. Member - edits lists and cards
4. Viewer - read-only access
"""

from types import SimpleNamespace
from uuid import uuid4

import pytest
from fastapi import HTTPException

from conftest import add_member
from epitrello.services.permission_service import (
    BoardRole,
    Member,
    Owner,
    PermissionService,
    can_edit,
    can_manage,
    can_view,
    has_permission,
    is_owner,
    resolve_membership,
)


def _member(user_id, role):
    return SimpleNamespace(user_id=user_id, role=role)


class TestResolveMembership:
    """Tests for resolve_membership."""

    def test_owner(self):
        owner_id = uuid4()
        assert resolve_membership(owner_id, [], owner_id) == Owner()

    def test_owner_wins_over_member_row(self):
        owner_id = uuid4()
        assert resolve_membership(owner_id, [_member(owner_id, "viewer")], owner_id) == Owner()

    def test_member_role(self):
        user_id = uuid4()
        membership = resolve_membership(uuid4(), [_member(user_id, "admin")], user_id)
        assert membership == Member(BoardRole.ADMIN)

    def test_no_access(self):
        assert resolve_membership(uuid4(), [_member(uuid4(), "member")], uuid4()) is None


class TestRoleChecks:
    """Tests for the role predicates."""

    def test_roles_are_ordered(self):
        assert BoardRole.VIEWER < BoardRole.MEMBER < BoardRole.ADMIN < BoardRole.OWNER

    def test_labels(self):
        assert BoardRole.ADMIN.label == "admin"
        assert BoardRole.from_label("viewer") is BoardRole.VIEWER

    @pytest.mark.parametrize(
        "membership, view, edit, manage, owner",
        [
            (Owner(), True, True, True, True),
            (Member(BoardRole.ADMIN), True, True, True, False),
            (Member(BoardRole.MEMBER), True, True, False, False),
            (Member(BoardRole.VIEWER), True, False, False, False),
            (None, False, False, False, False),
        ],
    )
    def test_predicates(self, membership, view, edit, manage, owner):
        assert can_view(membership) is view
        assert can_edit(membership) is edit
        assert can_manage(membership) is manage
        assert is_owner(membership) is owner

    def test_has_permission_without_membership(self):
        assert has_permission(None, BoardRole.VIEWER) is False


class TestPermissionService:
    """Tests for the loading and enforcing methods."""

    @pytest.mark.asyncio
    async def test_require_board_missing(self, db_session, test_user):
        with pytest.raises(HTTPException) as exc_info:
            await PermissionService(db_session).require_board(uuid4(), test_user.id)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_require_board_forbidden(self, db_session, test_board, test_user_2):
        with pytest.raises(HTTPException) as exc_info:
            await PermissionService(db_session).require_board(test_board.id, test_user_2.id)
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_require_board_returns_membership(self, db_session, test_board, test_user_2):
        await add_member(db_session, test_board, test_user_2, "member")

        board, membership = await PermissionService(db_session).require_board(
            test_board.id, test_user_2.id, BoardRole.MEMBER
        )

        assert board.id == test_board.id
        assert membership == Member(BoardRole.MEMBER)

    @pytest.mark.asyncio
    async def test_admin_is_not_owner(self, db_session, test_board, test_user_2):
        await add_member(db_session, test_board, test_user_2, "admin")

        with pytest.raises(HTTPException) as exc_info:
            await PermissionService(db_session).require_owner(test_board.id, test_user_2.id)
        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == "Only the board owner can do this"

    @pytest.mark.asyncio
    async def test_require_list_missing(self, db_session, test_user):
        with pytest.raises(HTTPException) as exc_info:
            await PermissionService(db_session).require_list(uuid4(), test_user.id)
        assert exc_info.value.status_code == 404
