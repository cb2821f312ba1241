import logging
import sys
from contextvars import ContextVar, Token
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] - %(message)s"

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def set_request_id(rid: Optional[str]) -> Token:
    return request_id_var.set(rid)


def reset_request_id(token: Token) -> None:
    request_id_var.reset(token)


class RequestIdFilter(logging.Filter):
    """Stamps every record with the current request id ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


def setup_logging(level: int | str = logging.INFO) -> None:
    root = logging.getLogger()
    if root.handlers:
        return  # already configured (uvicorn, pytest)
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
