"""Errors surfaced to API callers."""

import traceback

from . import config


class PersistenceError(Exception):
    """A storage-layer failure. Fatal to the request and never retried."""


def error_body(message: str, exc: BaseException | None = None) -> dict:
    """Response body for a 500: the message, plus a stack trace outside production."""
    body = {"message": message}
    if exc is not None and not config.IS_PRODUCTION:
        body["stack"] = "".join(traceback.format_exception(exc))
    return body
