"""
User endpoints for API v1.

Registration, lookup and listing of users, plus each user's sent
messages and inbox.  Service errors propagate to the exception
handlers registered in ``main.create_app``.
"""

from typing import List, Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel

from messaging_api.app.schemas.message import InboxItem, MessageView
from messaging_api.app.schemas.user import UserCreate, UserRead
from messaging_api.app.services.message_service import MessageService
from messaging_api.app.services.user_service import UserService


router = APIRouter()


class UserCreated(BaseModel):
    message: str
    user: UserRead


class UserEnvelope(BaseModel):
    user: UserRead


class UserList(BaseModel):
    users: List[UserRead]


class SentMessages(BaseModel):
    sent_messages: List[MessageView]


class InboxMessages(BaseModel):
    inbox_messages: List[InboxItem]


@router.post("/", response_model=UserCreated, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate) -> UserCreated:
    """Register a new user.

    Returns 400 when ``email`` or ``name`` is missing and 409 when the
    e-mail is already taken.
    """
    user = await UserService.create_user(payload.email, payload.name)
    return UserCreated(message="User created successfully", user=user)


@router.get("/", response_model=UserList)
async def list_users() -> UserList:
    """List all users."""
    return UserList(users=await UserService.list_users())


@router.get("/{user_id}", response_model=UserEnvelope)
async def get_user(user_id: str) -> UserEnvelope:
    return UserEnvelope(user=await UserService.get_user(user_id))


@router.get("/{user_id}/sent-messages", response_model=SentMessages)
async def get_sent_messages(user_id: str) -> SentMessages:
    """Messages sent by the user, newest first, each with its recipients."""
    return SentMessages(sent_messages=await MessageService.get_sent_messages(user_id))


@router.get("/{user_id}/inbox-messages", response_model=InboxMessages)
async def get_inbox_messages(
    user_id: str,
    read: Optional[bool] = Query(
        None, description="Only return read (true) or unread (false) messages"
    ),
) -> InboxMessages:
    """Messages received by the user.

    Unread messages come first.  Each item carries the delivery record
    ID needed to mark it read.
    """
    items = await MessageService.get_inbox_messages(user_id, read=read)
    return InboxMessages(inbox_messages=items)
