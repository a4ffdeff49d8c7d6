"""
Tests for the message-send transaction: validation, recipient
normalization, atomic fan-out and rollback.
"""

import types

import pytest

from messaging_api.app.core.errors import InternalError, NotFoundError, ValidationError
from messaging_api.app.services import message_service
from messaging_api.app.services.message_service import (
    MISSING_INPUT_MESSAGE,
    NO_VALID_RECIPIENTS_MESSAGE,
    MessageService,
    normalize_recipients,
)
from tests.conftest import count_rows


class TestNormalizeRecipients:

    def test_removes_duplicates_keeping_order(self):
        assert normalize_recipients("a", ["c", "b", "c", "b"]) == ["c", "b"]

    def test_removes_sender(self):
        assert normalize_recipients("a", ["a", "b", "a"]) == ["b"]

    def test_sender_only_is_empty(self):
        assert normalize_recipients("a", ["a", "a"]) == []


class TestSendMessage:

    @pytest.mark.asyncio
    async def test_single_recipient(self, users):
        alice, bob = users["alice"], users["bob"]

        sent = await MessageService.send_message(
            sender_id=alice.id,
            recipient_ids=[bob.id],
            subject="Hello",
            content="Hi Bob",
        )

        assert sent.sender_id == alice.id
        assert sent.recipients == [bob.id]
        assert sent.subject == "Hello"
        assert sent.content == "Hi Bob"
        assert count_rows("messages") == 1
        assert count_rows("message_recipients") == 1

    @pytest.mark.asyncio
    async def test_subject_is_optional(self, users):
        sent = await MessageService.send_message(
            sender_id=users["alice"].id,
            recipient_ids=[users["bob"].id],
            content="No subject",
        )

        assert sent.subject is None

    @pytest.mark.asyncio
    async def test_fan_out_creates_one_unread_record_per_recipient(self, users):
        alice, bob, carol = users["alice"], users["bob"], users["carol"]

        sent = await MessageService.send_message(
            sender_id=alice.id,
            recipient_ids=[bob.id, carol.id],
            content="Team update",
        )

        view = await MessageService.get_message_with_recipients(sent.id)
        assert len(view.recipients) == 2
        assert all(not d.read and d.read_at is None for d in view.recipients)

    @pytest.mark.asyncio
    async def test_duplicates_are_collapsed(self, users):
        alice, bob, carol = users["alice"], users["bob"], users["carol"]

        sent = await MessageService.send_message(
            sender_id=alice.id,
            recipient_ids=[bob.id, bob.id, carol.id],
            content="Dedup",
        )

        assert sent.recipients == [bob.id, carol.id]
        assert count_rows("message_recipients") == 2

    @pytest.mark.asyncio
    async def test_sender_is_filtered_from_recipients(self, users):
        alice, bob = users["alice"], users["bob"]

        sent = await MessageService.send_message(
            sender_id=alice.id,
            recipient_ids=[alice.id, bob.id],
            content="Not to myself",
        )

        assert sent.recipients == [bob.id]

    @pytest.mark.asyncio
    async def test_sender_only_raises_distinct_validation_error(self, users):
        alice = users["alice"]

        with pytest.raises(ValidationError) as exc_info:
            await MessageService.send_message(
                sender_id=alice.id,
                recipient_ids=[alice.id, alice.id],
                content="Just me",
            )

        assert exc_info.value.message == NO_VALID_RECIPIENTS_MESSAGE
        assert exc_info.value.message != MISSING_INPUT_MESSAGE
        assert count_rows("messages") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides",
        [
            {"sender_id": None},
            {"sender_id": ""},
            {"recipient_ids": None},
            {"recipient_ids": []},
            {"recipient_ids": "not-a-list"},
            {"content": None},
            {"content": ""},
        ],
    )
    async def test_missing_input_raises_validation_error(self, users, overrides):
        kwargs = {
            "sender_id": users["alice"].id,
            "recipient_ids": [users["bob"].id],
            "content": "Body",
        }
        kwargs.update(overrides)

        with pytest.raises(ValidationError) as exc_info:
            await MessageService.send_message(**kwargs)

        assert exc_info.value.message == MISSING_INPUT_MESSAGE
        assert count_rows("messages") == 0

    @pytest.mark.asyncio
    async def test_whitespace_content_is_accepted_as_given(self, users):
        sent = await MessageService.send_message(
            sender_id=users["alice"].id,
            recipient_ids=[users["bob"].id],
            content="   ",
        )

        assert sent.content == "   "
        stored = await MessageService.get_message_with_recipients(sent.id)
        assert stored.content == "   "

    @pytest.mark.asyncio
    async def test_non_string_subject_is_rejected(self, users):
        with pytest.raises(ValidationError):
            await MessageService.send_message(
                sender_id=users["alice"].id,
                recipient_ids=[users["bob"].id],
                subject=42,
                content="Body",
            )

    @pytest.mark.asyncio
    async def test_unknown_sender_raises_not_found(self, users):
        with pytest.raises(NotFoundError) as exc_info:
            await MessageService.send_message(
                sender_id="ghost",
                recipient_ids=[users["bob"].id],
                content="Boo",
            )

        assert exc_info.value.message == "Sender not found"
        assert count_rows("messages") == 0

    @pytest.mark.asyncio
    async def test_unknown_recipient_aborts_whole_send(self, users):
        with pytest.raises(NotFoundError) as exc_info:
            await MessageService.send_message(
                sender_id=users["alice"].id,
                recipient_ids=[users["bob"].id, "ghost", users["carol"].id],
                content="Partial",
            )

        assert exc_info.value.message == "One or more recipients invalid"
        assert count_rows("messages") == 0
        assert count_rows("message_recipients") == 0

    @pytest.mark.asyncio
    async def test_recipients_are_resolved_in_chunks(self, users, monkeypatch):
        monkeypatch.setattr(message_service, "RECIPIENT_LOOKUP_CHUNK", 1)
        alice, bob, carol = users["alice"], users["bob"], users["carol"]

        sent = await MessageService.send_message(
            sender_id=alice.id, recipient_ids=[bob.id, carol.id], content="Chunked"
        )
        assert sent.recipients == [bob.id, carol.id]

        with pytest.raises(NotFoundError):
            await MessageService.send_message(
                sender_id=alice.id, recipient_ids=[bob.id, carol.id, "ghost"], content="x"
            )
        assert count_rows("messages") == 1
        assert count_rows("message_recipients") == 2

    @pytest.mark.asyncio
    async def test_oversized_unknown_recipient_list_raises_not_found(self, users):
        ghosts = [f"ghost-{i}" for i in range(40000)]

        with pytest.raises(NotFoundError) as exc_info:
            await MessageService.send_message(
                sender_id=users["alice"].id,
                recipient_ids=[users["bob"].id] + ghosts,
                content="Too many",
            )

        assert exc_info.value.message == "One or more recipients invalid"
        assert count_rows("messages") == 0

    @pytest.mark.asyncio
    async def test_storage_failure_during_fan_out_rolls_back(self, users, monkeypatch):
        # Every generated ID is identical, so the second delivery row
        # violates the primary key after the message row was inserted.
        monkeypatch.setattr(
            message_service, "uuid", types.SimpleNamespace(uuid4=lambda: "fixed-id")
        )

        with pytest.raises(InternalError):
            await MessageService.send_message(
                sender_id=users["alice"].id,
                recipient_ids=[users["bob"].id, users["carol"].id],
                content="Doomed",
            )

        assert count_rows("messages") == 0
        assert count_rows("message_recipients") == 0

    @pytest.mark.asyncio
    async def test_round_trip_recipient_set(self, users):
        alice, bob, carol = users["alice"], users["bob"], users["carol"]

        sent = await MessageService.send_message(
            sender_id=alice.id,
            recipient_ids=[carol.id, alice.id, bob.id, carol.id],
            content="Round trip",
        )
        view = await MessageService.get_message_with_recipients(sent.id)

        assert {d.recipient_id for d in view.recipients} == set(sent.recipients)
        assert {d.recipient.name for d in view.recipients} == {"Bob", "Carol"}
        assert view.sender.id == alice.id
        assert view.sender.email == "alice@example.com"
