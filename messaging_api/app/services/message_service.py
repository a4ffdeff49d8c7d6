"""
Business logic for messages and their delivery records.

Sending a message is a single transaction: the sender and every
recipient are resolved, one ``messages`` row is written and one
``message_recipients`` row per recipient is bulk-inserted.  Either all
of it is committed or none of it is.

Each delivery record moves through a one-way read state machine
(``ReadState.UNREAD`` -> ``ReadState.READ``).  Marking a record read a
second time is not an error; the caller gets
``MarkReadOutcome.ALREADY_READ`` and the record is left unchanged.
"""

import logging
import sqlite3
import uuid
from typing import Any, Dict, List, Optional

from ..core.db import storage_errors, transaction, utc_now
from ..core.errors import NotFoundError, ValidationError
from ..schemas.message import (
    DeliveryRecordRead,
    DeliveryView,
    InboxItem,
    MarkReadOutcome,
    MarkReadResult,
    MessageView,
    ReadStatus,
    SentMessage,
)
from ..schemas.user import UserSummary

logger = logging.getLogger(__name__)

MISSING_INPUT_MESSAGE = "Sender ID, at least one recipient ID, and content are required."
NO_VALID_RECIPIENTS_MESSAGE = "No valid recipients after filtering sender and duplicates."

MESSAGE_VIEW_QUERY = """
    SELECT m.id, m.sender_id, m.subject, m.content, m.timestamp,
           s.name AS sender_name, s.email AS sender_email
    FROM messages m
    JOIN users s ON s.id = m.sender_id
    WHERE {where}
    ORDER BY m.timestamp DESC, m.rowid DESC
"""

DELIVERY_VIEW_QUERY = """
    SELECT mr.id, mr.message_id, mr.recipient_id, mr.read, mr.read_at,
           u.name AS recipient_name, u.email AS recipient_email
    FROM message_recipients mr
    JOIN users u ON u.id = mr.recipient_id
    WHERE mr.message_id IN (SELECT m.id FROM messages m WHERE {where})
    ORDER BY mr.rowid
"""

DELIVERY_RECORD_QUERY = (
    "SELECT id, message_id, recipient_id, read, read_at FROM message_recipients WHERE id = ?"
)

# Ids per lookup query; SQLite caps bound parameters per statement (999 before 3.32)
RECIPIENT_LOOKUP_CHUNK = 500


def normalize_recipients(sender_id: str, recipient_ids: List[str]) -> List[str]:
    """Drop duplicates and the sender from ``recipient_ids``, keeping first-seen order."""
    return [rid for rid in dict.fromkeys(recipient_ids) if rid != sender_id]


def _is_missing(value: Any) -> bool:
    return not isinstance(value, str) or value == ""


def _validate_send_input(sender_id: Any, recipient_ids: Any, content: Any) -> None:
    if _is_missing(sender_id) or _is_missing(content):
        raise ValidationError(MISSING_INPUT_MESSAGE)
    if not isinstance(recipient_ids, list) or not recipient_ids:
        raise ValidationError(MISSING_INPUT_MESSAGE)
    if any(_is_missing(rid) for rid in recipient_ids):
        raise ValidationError(MISSING_INPUT_MESSAGE)


def _validate_subject(subject: Any) -> None:
    if subject is not None and not isinstance(subject, str):
        raise ValidationError("Subject must be a string.")


def _user_exists(conn: sqlite3.Connection, user_id: str) -> bool:
    return conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone() is not None


def _count_existing_users(conn: sqlite3.Connection, user_ids: List[str]) -> int:
    found = 0
    for start in range(0, len(user_ids), RECIPIENT_LOOKUP_CHUNK):
        chunk = user_ids[start:start + RECIPIENT_LOOKUP_CHUNK]
        placeholders = ", ".join("?" for _ in chunk)
        found += len(
            conn.execute(f"SELECT id FROM users WHERE id IN ({placeholders})", chunk).fetchall()
        )
    return found


def _row_to_record(row: sqlite3.Row) -> DeliveryRecordRead:
    return DeliveryRecordRead(
        id=row["id"],
        message_id=row["message_id"],
        recipient_id=row["recipient_id"],
        read=bool(row["read"]),
        read_at=row["read_at"],
    )


def _load_message_views(
    conn: sqlite3.Connection, where: str, params: tuple
) -> List[MessageView]:
    """Compose message views from two explicit queries.

    ``where`` filters the ``messages`` table (aliased ``m``).  The
    first query returns the messages joined with their sender, the
    second every delivery row of those messages joined with its
    recipient; the rows are then grouped by message.
    """
    message_rows = conn.execute(MESSAGE_VIEW_QUERY.format(where=where), params).fetchall()
    delivery_rows = conn.execute(DELIVERY_VIEW_QUERY.format(where=where), params).fetchall()

    deliveries: Dict[str, List[DeliveryView]] = {}
    for row in delivery_rows:
        deliveries.setdefault(row["message_id"], []).append(
            DeliveryView(
                id=row["id"],
                recipient_id=row["recipient_id"],
                read=bool(row["read"]),
                read_at=row["read_at"],
                recipient=UserSummary(
                    id=row["recipient_id"],
                    name=row["recipient_name"],
                    email=row["recipient_email"],
                ),
            )
        )

    return [
        MessageView(
            id=row["id"],
            sender_id=row["sender_id"],
            subject=row["subject"],
            content=row["content"],
            timestamp=row["timestamp"],
            sender=UserSummary(
                id=row["sender_id"],
                name=row["sender_name"],
                email=row["sender_email"],
            ),
            recipients=deliveries.get(row["id"], []),
        )
        for row in message_rows
    ]


class MessageService:
    """Service for sending, reading and acknowledging messages."""

    @classmethod
    async def send_message(
        cls,
        sender_id: Optional[str],
        recipient_ids: Optional[List[str]],
        subject: Optional[str] = None,
        content: Optional[str] = None,
    ) -> SentMessage:
        """Send a message from ``sender_id`` to every user in ``recipient_ids``.

        Duplicate recipient IDs and the sender's own ID are removed
        before anything is written.  The message row and all of its
        delivery records are committed together.

        Raises
        ------
        ValidationError
            If required input is missing, or if no recipient is left
            after removing the sender and duplicates.
        NotFoundError
            If the sender or any of the recipients does not exist.
        InternalError
            If the database fails; nothing is persisted in that case.
        """
        _validate_send_input(sender_id, recipient_ids, content)
        _validate_subject(subject)

        message_id = str(uuid.uuid4())
        with storage_errors("message sending"):
            with transaction() as conn:
                if not _user_exists(conn, sender_id):
                    raise NotFoundError("Sender not found")

                recipients = normalize_recipients(sender_id, recipient_ids)
                if not recipients:
                    raise ValidationError(NO_VALID_RECIPIENTS_MESSAGE)

                if _count_existing_users(conn, recipients) < len(recipients):
                    raise NotFoundError("One or more recipients invalid")

                timestamp = utc_now()
                conn.execute(
                    "INSERT INTO messages (id, sender_id, subject, content, timestamp) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (message_id, sender_id, subject, content, timestamp),
                )
                conn.executemany(
                    "INSERT INTO message_recipients (id, message_id, recipient_id, read, read_at) "
                    "VALUES (?, ?, ?, 0, NULL)",
                    [(str(uuid.uuid4()), message_id, rid) for rid in recipients],
                )

        logger.info(
            "User %s sent message %s to %s recipients", sender_id, message_id, len(recipients)
        )
        return SentMessage(
            id=message_id,
            sender_id=sender_id,
            subject=subject,
            content=content,
            timestamp=timestamp,
            recipients=recipients,
        )

    @classmethod
    async def get_message_with_recipients(cls, message_id: str) -> MessageView:
        """Return a message with its sender and every delivery record."""
        with storage_errors("message retrieval"):
            with transaction(immediate=False) as conn:
                views = _load_message_views(conn, "m.id = ?", (message_id,))
        if not views:
            raise NotFoundError("Message not found")
        return views[0]

    @classmethod
    async def get_sent_messages(cls, user_id: str) -> List[MessageView]:
        """Return every message sent by ``user_id``, most recent first."""
        with storage_errors("sent messages retrieval"):
            with transaction(immediate=False) as conn:
                if not _user_exists(conn, user_id):
                    raise NotFoundError("User not found")
                return _load_message_views(conn, "m.sender_id = ?", (user_id,))

    @classmethod
    async def get_inbox_messages(
        cls, user_id: str, read: Optional[bool] = None
    ) -> List[InboxItem]:
        """Return the inbox of ``user_id``.

        When ``read`` is given only records in that state are returned.
        Unread items come first; within each state the most recently
        read, then the most recently sent, come first.
        """
        query = """
            SELECT mr.id AS delivery_id, mr.read, mr.read_at,
                   m.id AS message_id, m.subject, m.content, m.timestamp,
                   s.id AS sender_id, s.name AS sender_name, s.email AS sender_email
            FROM message_recipients mr
            JOIN messages m ON m.id = mr.message_id
            JOIN users s ON s.id = m.sender_id
            WHERE mr.recipient_id = ?
        """
        params: list = [user_id]
        if read is not None:
            query += " AND mr.read = ?"
            params.append(1 if read else 0)
        query += " ORDER BY mr.read ASC, mr.read_at DESC, m.timestamp DESC"

        with storage_errors("inbox messages retrieval"):
            with transaction(immediate=False) as conn:
                if not _user_exists(conn, user_id):
                    raise NotFoundError("User not found")
                rows = conn.execute(query, tuple(params)).fetchall()

        return [
            InboxItem(
                message_id=row["message_id"],
                subject=row["subject"],
                content=row["content"],
                timestamp=row["timestamp"],
                sender=UserSummary(
                    id=row["sender_id"],
                    name=row["sender_name"],
                    email=row["sender_email"],
                ),
                read_status=ReadStatus(
                    is_read=bool(row["read"]),
                    read_at=row["read_at"],
                    delivery_record_id=row["delivery_id"],
                ),
            )
            for row in rows
        ]

    @classmethod
    async def mark_as_read(cls, delivery_record_id: str) -> MarkReadResult:
        """Move a delivery record from unread to read.

        The update only applies while the record is still unread, so
        of two concurrent callers exactly one gets
        ``MarkReadOutcome.MARKED``; ``read_at`` is written once.

        Raises
        ------
        NotFoundError
            If no delivery record has this ID.
        """
        with storage_errors("marking message as read"):
            with transaction() as conn:
                cursor = conn.execute(
                    "UPDATE message_recipients SET read = 1, read_at = ? "
                    "WHERE id = ? AND read = 0",
                    (utc_now(), delivery_record_id),
                )
                transitioned = cursor.rowcount == 1
                row = conn.execute(DELIVERY_RECORD_QUERY, (delivery_record_id,)).fetchone()
                if not row:
                    raise NotFoundError("Message recipient entry not found")

        record = _row_to_record(row)
        if transitioned:
            logger.info(
                "Delivery record %s of message %s marked read", record.id, record.message_id
            )
            return MarkReadResult(outcome=MarkReadOutcome.MARKED, record=record)
        return MarkReadResult(outcome=MarkReadOutcome.ALREADY_READ, record=record)
