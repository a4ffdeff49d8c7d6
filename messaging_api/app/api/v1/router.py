"""
Top-level router for version 1 of the API.

This router aggregates the domain-specific routers under a unified
prefix.  When new domains are introduced, include their routers here.
"""

from fastapi import APIRouter

from .endpoints import messages, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(messages.router, prefix="/messages", tags=["messages"])
