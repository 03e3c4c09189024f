from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Iterator


_operation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("operation_id", default=None)


def new_operation_id(prefix: str = "op") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def get_operation_id() -> str | None:
    return _operation_id.get()


@contextmanager
def bind_operation_id(op_id: str | None = None) -> Iterator[str]:
    """
    Tag every log line emitted inside the block with one operation id
    (one refresh, one bootstrap, ...).
    """
    oid = str(op_id or "").strip() or new_operation_id()
    token = _operation_id.set(oid)
    try:
        yield oid
    finally:
        _operation_id.reset(token)
