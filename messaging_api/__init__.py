"""
Top-level package for the Messaging System API.

All functionality lives in submodules under ``app``; import the ASGI
application as ``messaging_api.app.main.app``.
"""

__all__ = []
