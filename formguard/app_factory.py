"""Litestar wiring for formguard: sessions, session id binding, error pages, templates."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Any, Callable, Sequence

from litestar import Litestar
from litestar.contrib.jinja import JinjaTemplateEngine
from litestar.exceptions import HTTPException
from litestar.middleware.session.client_side import CookieBackendConfig
from litestar.template import TemplateConfig

from formguard.config import get_settings
from formguard.forms.errors import InvalidCsrfToken
from formguard.forms.session import current_session_id
from formguard.lib import observability
from formguard.lib.exceptions import (
    http_exception_handler,
    internal_server_error_handler,
    invalid_csrf_token_handler,
)
from formguard.lib.template import get_template_directories
from formguard.middleware.session import SessionIdMiddleware

logger = logging.getLogger(__name__)

EXCEPTION_HANDLERS: dict[type[Exception], Any] = {
    HTTPException: http_exception_handler,
    InvalidCsrfToken: invalid_csrf_token_handler,
    Exception: internal_server_error_handler,
}


def create_session_config(
    secret_key: str,
    max_age: int = 86400,
    secure: bool = False,
    cookie_name: str = "session",
) -> CookieBackendConfig:
    """Create a cookie-backed session config."""
    session_secret = hashlib.sha256(secret_key.encode()).digest()
    return CookieBackendConfig(
        secret=session_secret,
        key=cookie_name,
        max_age=max_age,
        httponly=True,
        secure=secure,
        samesite="lax",
    )


def build_template_engine_callback(extra_globals: dict[str, Any] | None = None) -> Callable:
    """Build a template engine callback that exposes the session id to templates."""

    def configure_engine(engine: JinjaTemplateEngine):
        engine.engine.globals.update({
            "session_id": current_session_id,
            **(extra_globals or {}),
        })

    return configure_engine


def create_template_config(directories: list[Path], engine_callback: Callable) -> TemplateConfig:
    """Create template config using the given template directories."""
    return TemplateConfig(
        directory=directories,
        engine=JinjaTemplateEngine,
        engine_callback=engine_callback,
    )


def create_app(
    route_handlers: Sequence[Any],
    *,
    secret_key: str | None = None,
    template_dirs: Sequence[Path] = (),
    debug: bool | None = None,
    **kwargs: Any,
) -> Litestar:
    """Create a Litestar app whose handlers can build and verify formguard forms.

    Raises:
        ValueError: No secret key was given or configured.
    """
    settings = get_settings()
    secret_key = secret_key or settings.secret_key
    if not secret_key:
        raise ValueError("A secret key is required to sign session cookies")

    if debug is None:
        debug = settings.debug

    observability.configure(settings)

    session_config = create_session_config(secret_key, secure=not debug)
    template_config = create_template_config(
        get_template_directories(template_dirs),
        build_template_engine_callback(),
    )

    app = Litestar(
        route_handlers=list(route_handlers),
        middleware=[session_config.middleware, SessionIdMiddleware],
        template_config=template_config,
        exception_handlers=EXCEPTION_HANDLERS,
        debug=debug,
        **kwargs,
    )
    logger.debug("Created formguard app with %d route handlers", len(route_handlers))
    return app
