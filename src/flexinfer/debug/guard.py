"""Failure boundary for diagnostics code."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")

log = logging.getLogger("flexinfer.debug")


def guarded(label: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T | None:
    """Run *fn*; on any exception log it and return None.

    Diagnostics must never be the reason a completion call fails.
    """
    try:
        return fn(*args, **kwargs)
    except Exception:
        log.exception("%s failed; debug details dropped", label)
        return None
