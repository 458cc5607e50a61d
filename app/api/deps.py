"""
API dependency injection module.

Endpoints import their database session and acting user from here so the
wiring lives in one place (and can be overridden in one place by tests).
"""

from app.db.async_session import get_async_db
from app.services.async_auth import (
    get_current_active_user_async as get_current_active_user,
    get_current_user_async as get_current_user,
)

__all__ = ["get_async_db", "get_current_user", "get_current_active_user"]
