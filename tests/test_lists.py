"""API tests for list endpoints and list reordering."""

from uuid import uuid4

import pytest

from conftest import add_member, create_cards, headers_for, make_connection, sent_messages
from epitrello.websocket import get_board_room


class TestCreateList:
    """Tests for POST /api/lists."""

    @pytest.mark.asyncio
    async def test_create_appends_to_board(self, client, auth_headers, test_board, test_lists):
        response = await client.post(
            "/api/lists", json={"title": "Review", "board": str(test_board.id)}, headers=auth_headers
        )

        assert response.status_code == 201
        data = response.json()["list"]
        assert data["title"] == "Review"
        assert data["board"] == str(test_board.id)
        assert data["position"] == 3

    @pytest.mark.asyncio
    async def test_create_on_taken_position_conflicts(self, client, auth_headers, test_board, test_lists):
        response = await client.post(
            "/api/lists",
            json={"title": "Review", "board": str(test_board.id), "position": 1},
            headers=auth_headers,
        )

        assert response.status_code == 409
        assert response.json() == {"detail": "Position conflict"}

    @pytest.mark.asyncio
    async def test_create_requires_title(self, client, auth_headers, test_board):
        response = await client.post(
            "/api/lists", json={"title": "", "board": str(test_board.id)}, headers=auth_headers
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_viewer_cannot_create(self, client, db_session, test_board, test_user_2):
        await add_member(db_session, test_board, test_user_2, "viewer")

        response = await client.post(
            "/api/lists",
            json={"title": "Review", "board": str(test_board.id)},
            headers=headers_for(test_user_2),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_outsider_cannot_list(self, client, auth_headers_2, test_board):
        response = await client.get(f"/api/lists?board={test_board.id}", headers=auth_headers_2)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unauthenticated(self, client, test_board):
        response = await client.get(f"/api/lists?board={test_board.id}")

        assert response.status_code == 401


class TestListCrud:
    """Tests for reading, updating and deleting lists."""

    @pytest.mark.asyncio
    async def test_lists_sorted_by_position(self, client, auth_headers, test_board, test_lists):
        response = await client.get(f"/api/lists?board={test_board.id}", headers=auth_headers)

        assert response.status_code == 200
        assert [lst["title"] for lst in response.json()["lists"]] == ["To do", "Doing", "Done"]

    @pytest.mark.asyncio
    async def test_get_missing_list(self, client, auth_headers):
        response = await client.get(f"/api/lists/{uuid4()}", headers=auth_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_update_title_and_archive(self, client, auth_headers, test_lists):
        response = await client.patch(
            f"/api/lists/{test_lists[0].id}",
            json={"title": "Backlog", "archived": True},
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()["list"]
        assert data["title"] == "Backlog"
        assert data["archived"] is True

    @pytest.mark.asyncio
    async def test_update_to_taken_position_conflicts(self, client, auth_headers, test_lists):
        response = await client.patch(
            f"/api/lists/{test_lists[0].id}", json={"position": 2}, headers=auth_headers
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_delete_removes_cards(self, client, db_session, auth_headers, test_lists):
        cards = await create_cards(db_session, test_lists[0], ["a", "b"])

        response = await client.delete(f"/api/lists/{test_lists[0].id}", headers=auth_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/cards/{cards[0].id}", headers=auth_headers)
        assert response.status_code == 404


class TestReorderLists:
    """Tests for POST /api/lists/reorder."""

    @pytest.mark.asyncio
    async def test_reorder(self, client, auth_headers, test_board, test_lists):
        todo, doing, done = test_lists

        response = await client.post(
            "/api/lists/reorder",
            json={"boardId": str(test_board.id), "listIds": [str(done.id), str(todo.id), str(doing.id)]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        lists = response.json()["lists"]
        assert [lst["title"] for lst in lists] == ["Done", "To do", "Doing"]
        assert [lst["position"] for lst in lists] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_reorder_ignores_foreign_ids(self, client, auth_headers, test_board, test_lists):
        todo, doing, done = test_lists

        response = await client.post(
            "/api/lists/reorder",
            json={
                "boardId": str(test_board.id),
                "listIds": [str(uuid4()), str(doing.id), str(todo.id), str(done.id)],
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert [lst["title"] for lst in response.json()["lists"]] == ["Doing", "To do", "Done"]

    @pytest.mark.asyncio
    async def test_partial_reorder_colliding_with_unlisted_list(self, client, auth_headers, test_board, test_lists):
        todo, doing, done = test_lists

        # "To do" keeps position 0
        response = await client.post(
            "/api/lists/reorder",
            json={"boardId": str(test_board.id), "listIds": [str(done.id), str(doing.id)]},
            headers=auth_headers,
        )

        assert response.status_code == 409
        assert response.json() == {"detail": "Position conflict"}

        response = await client.get(f"/api/lists?board={test_board.id}", headers=auth_headers)
        assert [lst["position"] for lst in response.json()["lists"]] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_viewer_cannot_reorder(self, client, db_session, test_board, test_lists, test_user_2):
        await add_member(db_session, test_board, test_user_2, "viewer")

        response = await client.post(
            "/api/lists/reorder",
            json={"boardId": str(test_board.id), "listIds": [str(lst.id) for lst in test_lists]},
            headers=headers_for(test_user_2),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_member_can_reorder(self, client, db_session, test_board, test_lists, test_user_2):
        await add_member(db_session, test_board, test_user_2, "member")
        todo, doing, done = test_lists

        response = await client.post(
            "/api/lists/reorder",
            json={"boardId": str(test_board.id), "listIds": [str(done.id), str(todo.id), str(doing.id)]},
            headers=headers_for(test_user_2),
        )

        assert response.status_code == 200
        assert [(lst["title"], lst["position"]) for lst in response.json()["lists"]] == [
            ("Done", 0),
            ("To do", 1),
            ("Doing", 2),
        ]

    @pytest.mark.asyncio
    async def test_reorder_broadcast_excludes_originator(
        self, client, realtime, auth_headers, test_board, test_lists, test_user, test_user_2
    ):
        room = get_board_room(test_board.id)
        originator = make_connection(test_user.id, "alice")
        watcher = make_connection(test_user_2.id, "bob")
        realtime.manager.join_room(originator, room)
        realtime.manager.join_room(watcher, room)

        response = await client.post(
            "/api/lists/reorder",
            json={"boardId": str(test_board.id), "listIds": [str(lst.id) for lst in reversed(test_lists)]},
            headers={**auth_headers, "X-Connection-Id": originator.connection_id},
        )

        assert response.status_code == 200
        originator.websocket.send_json.assert_not_called()
        (message,) = sent_messages(watcher)
        assert message["type"] == "lists:reordered"
        assert message["data"]["boardId"] == str(test_board.id)
        assert message["data"]["userId"] == str(test_user.id)
        assert [lst["title"] for lst in message["data"]["lists"]] == ["Done", "Doing", "To do"]
