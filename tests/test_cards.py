"""API tests for cards: CRUD, the move endpoint, comments and card history."""

from uuid import uuid4

import pytest
from sqlalchemy import select

from conftest import add_member, create_cards, headers_for, make_connection, sent_messages
from epitrello.models import Notification
from epitrello.websocket import get_board_room


class TestCreateCard:
    """Tests for POST /api/cards."""

    @pytest.mark.asyncio
    async def test_create_appends_to_list(self, client, db_session, auth_headers, test_lists):
        await create_cards(db_session, test_lists[0], ["a", "b"])

        response = await client.post(
            "/api/cards",
            json={"title": "  Ship it  ", "list": str(test_lists[0].id)},
            headers=auth_headers,
        )

        assert response.status_code == 201
        card = response.json()["card"]
        assert card["title"] == "Ship it"
        assert card["list"] == str(test_lists[0].id)
        assert card["position"] == 2
        assert card["labels"] == []
        assert card["assignedMembers"] == []

    @pytest.mark.asyncio
    async def test_create_on_taken_position_conflicts(self, client, db_session, auth_headers, test_lists):
        await create_cards(db_session, test_lists[0], ["a"])

        response = await client.post(
            "/api/cards",
            json={"title": "b", "list": str(test_lists[0].id), "position": 0},
            headers=auth_headers,
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_create_logs_card_history(self, client, auth_headers, test_lists):
        response = await client.post(
            "/api/cards", json={"title": "a", "list": str(test_lists[0].id)}, headers=auth_headers
        )
        card_id = response.json()["card"]["id"]

        response = await client.get(f"/api/cards/{card_id}/activity", headers=auth_headers)

        assert [entry["action"] for entry in response.json()["activity"]] == ["Card created"]

    @pytest.mark.asyncio
    async def test_missing_list(self, client, auth_headers):
        response = await client.post(
            "/api/cards", json={"title": "a", "list": str(uuid4())}, headers=auth_headers
        )

        assert response.status_code == 404


class TestUpdateCard:
    """Tests for PATCH /api/cards/{id}."""

    @pytest.mark.asyncio
    async def test_update_fields_records_history(self, client, db_session, auth_headers, test_lists):
        (card,) = await create_cards(db_session, test_lists[0], ["a"])

        response = await client.patch(
            f"/api/cards/{card.id}",
            json={
                "title": "Renamed",
                "labels": [{"color": "#22c55e", "text": "ready"}],
                "checklist": [{"text": "write tests", "completed": False}],
                "dueDate": "2026-11-01T12:00:00+02:00",
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        data = response.json()["card"]
        assert data["title"] == "Renamed"
        assert data["labels"] == [{"color": "#22c55e", "text": "ready"}]
        assert data["checklist"] == [{"text": "write tests", "completed": False}]
        assert data["dueDate"].startswith("2026-11-01T10:00:00")

        response = await client.get(f"/api/cards/{card.id}/activity", headers=auth_headers)
        actions = {entry["action"] for entry in response.json()["activity"]}
        assert actions == {"Title updated", "Labels updated", "Checklist updated", "Due date set"}

    @pytest.mark.asyncio
    async def test_assign_member_notifies_assignee(
        self, client, db_session, realtime, auth_headers, test_board, test_lists, test_user_2
    ):
        await add_member(db_session, test_board, test_user_2, "member")
        (card,) = await create_cards(db_session, test_lists[0], ["a"])
        inbox = make_connection(test_user_2.id, "bob")
        realtime.manager._connections[inbox.connection_id] = inbox
        realtime.manager._user_connections[test_user_2.id] = {inbox}

        response = await client.patch(
            f"/api/cards/{card.id}",
            json={"assignedMembers": [str(test_user_2.id)]},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["card"]["assignedMembers"] == [str(test_user_2.id)]
        (message,) = sent_messages(inbox)
        assert message["type"] == "notification:new"
        assert message["data"]["notification"]["type"] == "card_assigned"

    @pytest.mark.asyncio
    async def test_self_assignment_is_not_notified(self, client, db_session, auth_headers, test_user, test_lists):
        (card,) = await create_cards(db_session, test_lists[0], ["a"])

        response = await client.patch(
            f"/api/cards/{card.id}", json={"assignedMembers": [str(test_user.id)]}, headers=auth_headers
        )

        assert response.status_code == 200
        result = await db_session.execute(select(Notification))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_assignee_must_have_board_access(self, client, db_session, auth_headers, test_lists, test_user_2):
        (card,) = await create_cards(db_session, test_lists[0], ["a"])

        response = await client.patch(
            f"/api/cards/{card.id}", json={"assignedMembers": [str(test_user_2.id)]}, headers=auth_headers
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_to_taken_position_conflicts(self, client, db_session, auth_headers, test_lists):
        a, b = await create_cards(db_session, test_lists[0], ["a", "b"])

        response = await client.patch(f"/api/cards/{a.id}", json={"position": 1}, headers=auth_headers)

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_delete(self, client, db_session, auth_headers, test_lists):
        (card,) = await create_cards(db_session, test_lists[0], ["a"])

        response = await client.delete(f"/api/cards/{card.id}", headers=auth_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/cards/{card.id}", headers=auth_headers)
        assert response.status_code == 404


class TestMoveCard:
    """Tests for POST /api/cards/{id}/move."""

    @pytest.mark.asyncio
    async def test_move_across_lists(self, client, db_session, realtime, auth_headers, test_board, test_lists, test_user):
        source, target, _ = test_lists
        a, b, c = await create_cards(db_session, source, ["a", "b", "c"])
        (x,) = await create_cards(db_session, target, ["x"])
        watcher = make_connection(uuid4(), "watcher")
        realtime.manager.join_room(watcher, get_board_room(test_board.id))

        response = await client.post(
            f"/api/cards/{b.id}/move",
            json={
                "targetListId": str(target.id),
                "position": 0,
                "sourceListCardIds": [str(a.id), str(c.id)],
                "targetListCardIds": [str(b.id), str(x.id)],
            },
            headers=auth_headers,
        )

        assert response.status_code == 200
        card = response.json()["card"]
        assert card["list"] == str(target.id)
        assert card["position"] == 0

        response = await client.get(f"/api/cards?list={source.id}", headers=auth_headers)
        assert [(c["title"], c["position"]) for c in response.json()["cards"]] == [("a", 0), ("c", 1)]
        response = await client.get(f"/api/cards?list={target.id}", headers=auth_headers)
        assert [(c["title"], c["position"]) for c in response.json()["cards"]] == [("b", 0), ("x", 1)]

        (message,) = sent_messages(watcher)
        assert message["type"] == "card:moved"
        assert message["data"]["sourceListId"] == str(source.id)
        assert message["data"]["targetListId"] == str(target.id)
        assert message["data"]["targetCards"] == [
            {"id": str(b.id), "position": 0},
            {"id": str(x.id), "position": 1},
        ]
        assert message["data"]["userId"] == str(test_user.id)

    @pytest.mark.asyncio
    async def test_cross_list_move_logged_on_board_feed(self, client, db_session, auth_headers, test_board, test_lists):
        source, target, _ = test_lists
        (a,) = await create_cards(db_session, source, ["a"])

        await client.post(
            f"/api/cards/{a.id}/move",
            json={"targetListId": str(target.id), "position": 0, "targetListCardIds": [str(a.id)]},
            headers=auth_headers,
        )

        response = await client.get(f"/api/boards/{test_board.id}/activity", headers=auth_headers)
        (entry,) = response.json()["activity"]
        assert entry["action"] == "moved card"
        assert entry["details"] == 'from "To do" to "Doing"'

        response = await client.get(f"/api/cards/{a.id}/activity", headers=auth_headers)
        assert response.json()["activity"][0]["action"] == 'Moved from "To do" to "Doing"'

    @pytest.mark.asyncio
    async def test_same_list_move_not_on_board_feed(self, client, db_session, auth_headers, test_board, test_lists):
        a, b, c = await create_cards(db_session, test_lists[0], ["a", "b", "c"])

        response = await client.post(
            f"/api/cards/{c.id}/move",
            json={
                "targetListId": str(test_lists[0].id),
                "position": 0,
                "sourceListCardIds": [str(a.id), str(b.id)],
                "targetListCardIds": [str(c.id), str(a.id), str(b.id)],
            },
            headers=auth_headers,
        )
        assert response.status_code == 200

        response = await client.get(f"/api/cards?list={test_lists[0].id}", headers=auth_headers)
        assert [card["title"] for card in response.json()["cards"]] == ["c", "a", "b"]

        response = await client.get(f"/api/boards/{test_board.id}/activity", headers=auth_headers)
        assert response.json()["activity"] == []

        response = await client.get(f"/api/cards/{c.id}/activity", headers=auth_headers)
        assert response.json()["activity"][0]["action"] == "Card reordered"

    @pytest.mark.asyncio
    async def test_viewer_cannot_move(self, client, db_session, test_board, test_lists, test_user_2):
        await add_member(db_session, test_board, test_user_2, "viewer")
        (a,) = await create_cards(db_session, test_lists[0], ["a"])

        response = await client.post(
            f"/api/cards/{a.id}/move",
            json={"targetListId": str(test_lists[1].id), "position": 0},
            headers=headers_for(test_user_2),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_member_can_move(self, client, db_session, test_board, test_lists, test_user_2):
        await add_member(db_session, test_board, test_user_2, "member")
        source, target, _ = test_lists
        x, c, y = await create_cards(db_session, source, ["x", "c", "y"])
        z, w = await create_cards(db_session, target, ["z", "w"])
        member_headers = headers_for(test_user_2)

        response = await client.post(
            f"/api/cards/{c.id}/move",
            json={
                "targetListId": str(target.id),
                "position": 1,
                "sourceListCardIds": [str(x.id), str(y.id)],
                "targetListCardIds": [str(z.id), str(c.id), str(w.id)],
            },
            headers=member_headers,
        )

        assert response.status_code == 200
        response = await client.get(f"/api/cards?list={source.id}", headers=member_headers)
        assert [(card["title"], card["position"]) for card in response.json()["cards"]] == [("x", 0), ("y", 1)]
        response = await client.get(f"/api/cards?list={target.id}", headers=member_headers)
        assert [(card["title"], card["position"]) for card in response.json()["cards"]] == [
            ("z", 0),
            ("c", 1),
            ("w", 2),
        ]

    @pytest.mark.asyncio
    async def test_negative_position_rejected(self, client, db_session, auth_headers, test_lists):
        (a,) = await create_cards(db_session, test_lists[0], ["a"])

        response = await client.post(
            f"/api/cards/{a.id}/move",
            json={"targetListId": str(test_lists[1].id), "position": -1},
            headers=auth_headers,
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_move_colliding_with_unlisted_card(self, client, db_session, auth_headers, test_lists):
        source, target, _ = test_lists
        (a,) = await create_cards(db_session, source, ["a"])
        (x,) = await create_cards(db_session, target, ["x"])

        # x is left out of the target order and keeps position 0
        response = await client.post(
            f"/api/cards/{a.id}/move",
            json={"targetListId": str(target.id), "position": 0, "targetListCardIds": [str(a.id)]},
            headers=auth_headers,
        )

        assert response.status_code == 409
        response = await client.get(f"/api/cards/{a.id}", headers=auth_headers)
        assert response.json()["card"]["list"] == str(source.id)
        assert response.json()["card"]["position"] == 0


class TestComments:
    """Tests for POST /api/cards/{id}/comments."""

    @pytest.mark.asyncio
    async def test_comment_mentions_and_assignees(
        self, client, db_session, auth_headers, test_board, test_lists, test_user_2, test_user_3
    ):
        await add_member(db_session, test_board, test_user_2, "member")
        await add_member(db_session, test_board, test_user_3, "member")
        (card,) = await create_cards(db_session, test_lists[0], ["a"])
        await client.patch(
            f"/api/cards/{card.id}",
            json={"assignedMembers": [str(test_user_2.id), str(test_user_3.id)]},
            headers=auth_headers,
        )

        response = await client.post(
            f"/api/cards/{card.id}/comments", json={"text": "@bob please review"}, headers=auth_headers
        )

        assert response.status_code == 201
        body = response.json()
        assert body["comment"]["text"] == "@bob please review"
        assert len(body["card"]["comments"]) == 1

        result = await db_session.execute(
            select(Notification.recipient_id, Notification.type).where(Notification.type != "card_assigned")
        )
        assert set(result.all()) == {(test_user_2.id, "mention"), (test_user_3.id, "comment")}

    @pytest.mark.asyncio
    async def test_mention_of_outsider_is_ignored(self, client, db_session, auth_headers, test_lists, test_user_2):
        (card,) = await create_cards(db_session, test_lists[0], ["a"])

        response = await client.post(
            f"/api/cards/{card.id}/comments", json={"text": "hey @bob"}, headers=auth_headers
        )

        assert response.status_code == 201
        result = await db_session.execute(select(Notification))
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_blank_comment_rejected(self, client, db_session, auth_headers, test_lists):
        (card,) = await create_cards(db_session, test_lists[0], ["a"])

        response = await client.post(f"/api/cards/{card.id}/comments", json={"text": "   "}, headers=auth_headers)

        assert response.status_code == 400


class TestCardActivity:
    """Tests for card history pagination."""

    @pytest.mark.asyncio
    async def test_limit_and_before(self, client, db_session, auth_headers, test_lists):
        (card,) = await create_cards(db_session, test_lists[0], ["a"])
        for title in ["one", "two", "three"]:
            await client.patch(f"/api/cards/{card.id}", json={"title": title}, headers=auth_headers)

        response = await client.get(f"/api/cards/{card.id}/activity?limit=2", headers=auth_headers)
        page = response.json()["activity"]
        assert len(page) == 2

        response = await client.get(
            f"/api/cards/{card.id}/activity",
            params={"before": page[-1]["createdAt"], "limit": 100},
            headers=auth_headers,
        )
        older = response.json()["activity"]
        assert len(older) == 1
        assert older[0]["id"] not in {entry["id"] for entry in page}
