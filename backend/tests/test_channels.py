"""
Tests for channel listing and message history endpoints.
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from chat_backend.core.config import settings
from chat_backend.models.channel import Channel
from chat_backend.models.message import Message
from chat_backend.models.user import User


def add_message(db: Session, channel: Channel, user: User, content: str, **kwargs) -> Message:
    message = Message(
        channel_id=channel.id,
        user_id=user.id,
        username=user.username,
        content=content,
        **kwargs,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


class TestChannelList:
    """Tests for channel listing endpoint."""

    def test_list_channels(self, client: TestClient, general: Channel, random_channel: Channel):
        response = client.get("/api/channels")
        assert response.status_code == 200
        assert response.json() == [
            {"_id": str(general.id), "name": "general"},
            {"_id": str(random_channel.id), "name": "random"},
        ]

    def test_list_channels_empty(self, client: TestClient):
        response = client.get("/api/channels")
        assert response.status_code == 200
        assert response.json() == []


class TestChannelMessages:
    """Tests for channel message history endpoint."""

    def test_history_requires_auth(self, client: TestClient, general: Channel):
        response = client.get(f"/api/channels/{general.id}/messages")
        assert response.status_code == 401

    def test_history_public_when_configured(
        self, client: TestClient, general: Channel, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setattr(settings, "MESSAGE_HISTORY_REQUIRES_AUTH", False)
        response = client.get(f"/api/channels/{general.id}/messages")
        assert response.status_code == 200
        assert response.json() == []

    def test_history_wire_format(
        self, client: TestClient, db: Session, auth_headers: dict,
        general: Channel, test_user: User,
    ):
        message = add_message(db, general, test_user, "hi")
        response = client.get(f"/api/channels/{general.id}/messages", headers=auth_headers)
        assert response.status_code == 200
        [item] = response.json()
        assert item["_id"] == str(message.id)
        assert item["channelId"] == str(general.id)
        assert item["userId"] == str(test_user.id)
        assert item["username"] == "alice"
        assert item["content"] == "hi"
        assert item["parentId"] is None
        assert "timestamp" in item

    def test_history_timestamps_are_utc(
        self, client: TestClient, db: Session, auth_headers: dict,
        general: Channel, test_user: User,
    ):
        add_message(
            db, general, test_user, "hi",
            timestamp=datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
        )
        response = client.get(f"/api/channels/{general.id}/messages", headers=auth_headers)
        [item] = response.json()
        # Pydantic writes UTC as "Z"; either form must carry the offset
        timestamp = item["timestamp"].replace("Z", "+00:00")
        assert datetime.fromisoformat(timestamp) == datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )

    def test_history_ordered_by_timestamp(
        self, client: TestClient, db: Session, auth_headers: dict,
        general: Channel, test_user: User,
    ):
        t1 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        # Stored out of order
        add_message(db, general, test_user, "third", timestamp=t1 + timedelta(seconds=2))
        add_message(db, general, test_user, "first", timestamp=t1)
        add_message(db, general, test_user, "second", timestamp=t1 + timedelta(seconds=1))

        response = client.get(f"/api/channels/{general.id}/messages", headers=auth_headers)
        assert [m["content"] for m in response.json()] == ["first", "second", "third"]

    def test_history_ties_keep_insertion_order(
        self, client: TestClient, db: Session, auth_headers: dict,
        general: Channel, test_user: User,
    ):
        same = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        for content in ["a", "b", "c"]:
            add_message(db, general, test_user, content, timestamp=same)

        response = client.get(f"/api/channels/{general.id}/messages", headers=auth_headers)
        assert [m["content"] for m in response.json()] == ["a", "b", "c"]

    def test_history_only_includes_channel(
        self, client: TestClient, db: Session, auth_headers: dict,
        general: Channel, random_channel: Channel, test_user: User,
    ):
        add_message(db, general, test_user, "in general")
        add_message(db, random_channel, test_user, "in random")

        response = client.get(f"/api/channels/{random_channel.id}/messages", headers=auth_headers)
        assert [m["content"] for m in response.json()] == ["in random"]

    def test_history_unknown_channel_is_empty(self, client: TestClient, auth_headers: dict):
        fake_id = "00000000-0000-0000-0000-000000000000"
        response = client.get(f"/api/channels/{fake_id}/messages", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() == []

    def test_history_invalid_channel_id(self, client: TestClient, auth_headers: dict):
        response = client.get("/api/channels/not-a-uuid/messages", headers=auth_headers)
        assert response.status_code == 400

    def test_history_accepts_cookie(
        self, client: TestClient, general: Channel, test_user: User,
    ):
        client.post(
            "/api/auth/login",
            json={"username": "alice", "password": "AlicePassword1"},
        )
        response = client.get(f"/api/channels/{general.id}/messages")
        assert response.status_code == 200


class TestThread:
    """Tests for reply thread lookup."""

    def test_thread_replies(
        self, client: TestClient, db: Session, auth_headers: dict,
        general: Channel, test_user: User, other_user: User,
    ):
        root = add_message(db, general, test_user, "question")
        add_message(db, general, other_user, "answer", parent_id=root.id)
        add_message(db, general, test_user, "unrelated")
        add_message(db, general, test_user, "thanks", parent_id=root.id)

        response = client.get(f"/api/messages/{root.id}/thread", headers=auth_headers)
        assert response.status_code == 200
        replies = response.json()
        assert [m["content"] for m in replies] == ["answer", "thanks"]
        assert all(m["parentId"] == str(root.id) for m in replies)

    def test_thread_unknown_message(self, client: TestClient, auth_headers: dict):
        response = client.get("/api/messages/9999/thread", headers=auth_headers)
        assert response.status_code == 404
