"""Request correlation for the billing API.

Requests carrying a usable X-Request-ID keep it; anything else gets a fresh
UUID. The ID is echoed on the response and picked up by the structlog chain.
"""

import re
import uuid

from asgi_correlation_id import CorrelationIdMiddleware
from asgi_correlation_id.context import correlation_id
from fastapi import FastAPI

REQUEST_ID_HEADER = "X-Request-ID"

_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,128}$")


def _accept_request_id(value: str) -> bool:
    return bool(_ACCEPTED_ID.match(value))


def setup_correlation_middleware(app: FastAPI) -> None:
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name=REQUEST_ID_HEADER,
        generator=lambda: uuid.uuid4().hex,
        validator=_accept_request_id,
    )


def get_correlation_id() -> str | None:
    """Current request's correlation ID; None outside a request."""
    return correlation_id.get(None)
