"""Request correlation context and the log filter that reads it.

Whatever calls into the order service (an HTTP layer, a worker) binds a
correlation id for the duration of the call with ``request_context``.
The id lives in a ContextVar so code running downstream can read it
without passing it around; ``RequestIdFilter`` copies it onto every log
record so the JSON formatter can emit it.

Behavior contract:
- ``request_context(rid)`` reuses ``rid`` when given, otherwise a new
  UUIDv4 string is generated.
- The previous value is restored when the block exits.
- Outside any block the id is "-".
"""

import contextvars
import logging
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")


@contextmanager
def request_context(request_id: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id for the enclosed block.

    Args:
        request_id: Client-provided id to reuse, if any.

    Yields:
        str: The id bound for the block.
    """
    rid = request_id or str(uuid.uuid4())
    token = REQUEST_ID_CTX.set(rid)
    try:
        yield rid
    finally:
        REQUEST_ID_CTX.reset(token)


class RequestIdFilter(logging.Filter):
    """Stamp records with the bound correlation id.

    A ``request_id`` passed explicitly through ``extra=`` wins over the
    context value. Never drops a record.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True
