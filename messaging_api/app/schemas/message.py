"""
Pydantic schemas for messages and the per-recipient delivery ledger.

A message is written once by its sender and fanned out to one
delivery record per recipient.  Each delivery record tracks whether
that recipient has read the message.  Timestamps are ``str`` because
they are stored as ISO-8601 strings in SQLite.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, computed_field

from .user import UserSummary


class ReadState(str, Enum):
    """State of a single delivery record.  The only transition is UNREAD -> READ."""

    UNREAD = "unread"
    READ = "read"

    @classmethod
    def from_flag(cls, read: bool) -> "ReadState":
        return cls.READ if read else cls.UNREAD


class MarkReadOutcome(str, Enum):
    """Result of a mark-read call: the transition happened, or it had already happened."""

    MARKED = "marked"
    ALREADY_READ = "already_read"


class MessageRead(BaseModel):
    """A stored message without its recipients."""

    id: str
    sender_id: str
    subject: Optional[str] = None
    content: str
    timestamp: str


class SentMessage(MessageRead):
    """A freshly sent message plus the normalized recipient IDs it was delivered to."""

    recipients: List[str]


class DeliveryRecordRead(BaseModel):
    """One row of the delivery ledger."""

    id: str
    message_id: str
    recipient_id: str
    read: bool
    read_at: Optional[str] = None

    @computed_field
    @property
    def state(self) -> ReadState:
        return ReadState.from_flag(self.read)


class DeliveryView(BaseModel):
    """A delivery record joined with its recipient, as shown inside a message view."""

    id: str
    recipient_id: str
    read: bool
    read_at: Optional[str] = None
    recipient: UserSummary

    @computed_field
    @property
    def state(self) -> ReadState:
        return ReadState.from_flag(self.read)


class MessageView(MessageRead):
    """A message joined with its sender and every delivery record."""

    sender: UserSummary
    recipients: List[DeliveryView] = Field(default_factory=list)


class ReadStatus(BaseModel):
    is_read: bool
    read_at: Optional[str] = None
    delivery_record_id: str

    @computed_field
    @property
    def state(self) -> ReadState:
        return ReadState.from_flag(self.is_read)


class InboxItem(BaseModel):
    """Message-centric projection of a delivery record for the recipient's inbox."""

    message_id: str
    subject: Optional[str] = None
    content: str
    timestamp: str
    sender: UserSummary
    read_status: ReadStatus


class MarkReadResult(BaseModel):
    """Outcome of ``MessageService.mark_as_read`` together with the record it concerns."""

    outcome: MarkReadOutcome
    record: DeliveryRecordRead

    @property
    def already_read(self) -> bool:
        return self.outcome is MarkReadOutcome.ALREADY_READ
