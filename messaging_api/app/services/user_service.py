"""
Business logic for users.

The ``UserService`` is the user directory: it registers users with a
unique e-mail address and looks them up.  Users are immutable once
created and are never deleted here.
"""

import logging
import sqlite3
import uuid
from typing import List, Optional

from ..core.db import get_connection, storage_errors, transaction, utc_now
from ..core.errors import ConflictError, NotFoundError, ValidationError
from ..schemas.user import UserRead

logger = logging.getLogger(__name__)

USER_COLUMNS = "id, email, name, created_at"


def _row_to_user(row: sqlite3.Row) -> UserRead:
    return UserRead(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        created_at=row["created_at"],
    )


def _present(value: Optional[str]) -> bool:
    return isinstance(value, str) and value != ""


class UserService:
    """Service for registering and looking up users."""

    @classmethod
    async def create_user(cls, email: Optional[str], name: Optional[str]) -> UserRead:
        """Register a new user.

        Raises
        ------
        ValidationError
            If ``email`` or ``name`` is missing or empty.  Values are
            stored exactly as given.
        ConflictError
            If a user with the same e-mail already exists.  The
            existing row is left untouched.
        InternalError
            If the database operation fails.
        """
        if not _present(email) or not _present(name):
            raise ValidationError("Email and name are required.")

        user_id = str(uuid.uuid4())
        created_at = utc_now()
        with storage_errors("user creation"):
            try:
                with transaction() as conn:
                    existing = conn.execute(
                        "SELECT id FROM users WHERE email = ?", (email,)
                    ).fetchone()
                    if existing:
                        raise ConflictError("User with this email already exists.")
                    conn.execute(
                        "INSERT INTO users (id, email, name, created_at) VALUES (?, ?, ?, ?)",
                        (user_id, email, name, created_at),
                    )
            except sqlite3.IntegrityError as exc:
                # A concurrent registration of the same e-mail won the race
                raise ConflictError("User with this email already exists.") from exc

        logger.info("Registered user %s (%s)", user_id, email)
        return UserRead(id=user_id, email=email, name=name, created_at=created_at)

    @classmethod
    async def get_user(cls, user_id: str) -> UserRead:
        """Retrieve a user by ID or raise ``NotFoundError``."""
        with storage_errors("user retrieval"):
            conn = get_connection()
            try:
                row = conn.execute(
                    f"SELECT {USER_COLUMNS} FROM users WHERE id = ?", (user_id,)
                ).fetchone()
            finally:
                conn.close()
        if not row:
            raise NotFoundError("User not found")
        return _row_to_user(row)

    @classmethod
    async def list_users(cls) -> List[UserRead]:
        """Return the list of all users."""
        with storage_errors("user listing"):
            conn = get_connection()
            try:
                rows = conn.execute(f"SELECT {USER_COLUMNS} FROM users").fetchall()
            finally:
                conn.close()
        return [_row_to_user(row) for row in rows]
