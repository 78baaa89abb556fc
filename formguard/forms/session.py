"""Ambient session identity used to bind CSRF tokens.

The id is bound per request by SessionIdMiddleware. Forms only read it.
"""

from __future__ import annotations

import contextvars
import logging

logger = logging.getLogger(__name__)

session_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("formguard_session_id")


def current_session_id() -> str:
    """Return the session id bound to the current request, or '' if none is bound."""
    session_id = session_id_var.get("")
    if not session_id:
        logger.warning("No session id bound; CSRF tokens will not be tied to a session")
    return session_id


def bind_session_id(session_id: str) -> contextvars.Token:
    """Bind a session id for the current context. Pass the token to reset_session_id()."""
    return session_id_var.set(session_id)


def reset_session_id(token: contextvars.Token) -> None:
    session_id_var.reset(token)
