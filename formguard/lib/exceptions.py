import logging

from litestar import Request, Response
from litestar.exceptions import HTTPException
from litestar.status_codes import HTTP_403_FORBIDDEN, HTTP_500_INTERNAL_SERVER_ERROR

from formguard.forms.errors import InvalidCsrfToken
from formguard.lib import observability
from formguard.lib.template import Template

logger = logging.getLogger(__name__)


def _accepts_html(request: Request) -> bool:
    """Check if the request accepts HTML responses (browser request)."""
    accept = request.headers.get("accept", "")
    return "text/html" in accept


def _error_response(request: Request, status_code: int, message: str) -> Response:
    """HTML for browsers via error-{status}.html -> error.html, JSON for APIs."""
    template_engine = request.app.template_engine
    if _accepts_html(request) and template_engine is not None:
        content = Template("error", str(status_code)).try_render(
            template_engine,
            status_code=status_code,
            message=message,
        )
        if content is not None:
            return Response(
                content=content,
                status_code=status_code,
                media_type="text/html",
            )

    return Response(
        content={"status_code": status_code, "detail": message},
        status_code=status_code,
        media_type="application/json",
    )


def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    """Handle HTTP exceptions with HTML for browsers, JSON for APIs."""
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error_response(request, exc.status_code, detail)


def invalid_csrf_token_handler(request: Request, exc: InvalidCsrfToken) -> Response:
    """Reject a forged or expired form submission with 403."""
    return _error_response(request, HTTP_403_FORBIDDEN, str(exc))


def internal_server_error_handler(request: Request, exc: Exception) -> Response:
    """Handle unexpected exceptions with HTML for browsers, JSON for APIs."""
    if not observability.exception(
        "Unhandled exception on {method} {path}",
        method=request.method,
        path=request.url.path,
    ):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return _error_response(
        request, HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred."
    )

