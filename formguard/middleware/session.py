"""Session identity middleware for formguard.

Binds a stable per-session id into a ContextVar for the duration of each
HTTP request, so forms can sign CSRF tokens without being handed the
request. Must run inside Litestar's session middleware, which populates
``scope["session"]``:

    app = Litestar(
        middleware=[session_config.middleware, SessionIdMiddleware],
        ...
    )
"""

import secrets

from litestar.types import ASGIApp, Receive, Scope, Send

from formguard.forms.session import bind_session_id, reset_session_id

SESSION_ID_KEY = "_session_id"


class SessionIdMiddleware:
    """ASGI middleware that exposes the session id to forms.

    Args:
        app: The ASGI application to wrap.
        session_key: Session key holding the id. A random id is stored
            under it the first time a session is seen.
    """

    def __init__(self, app: ASGIApp, session_key: str = SESSION_ID_KEY) -> None:
        self.app = app
        self.session_key = session_key

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        session = scope.get("session")
        if not isinstance(session, dict):
            session = {}
            scope["session"] = session

        session_id = session.get(self.session_key)
        if not session_id:
            session_id = secrets.token_urlsafe(32)
            session[self.session_key] = session_id

        token = bind_session_id(session_id)
        try:
            await self.app(scope, receive, send)
        finally:
            reset_session_id(token)
