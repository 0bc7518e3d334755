import logging
import threading
import time
from typing import Any, Callable, Dict, Iterator, Optional, Tuple, Type, TypeVar

from .errors import RetryCancelled, RetryError

log = logging.getLogger(__name__)

T = TypeVar("T")
Backoff = Callable[[int], float]

def no_backoff(attempt: int) -> float:
    return 0.0

def linear_backoff(step: float) -> Backoff:
    """Wait attempt * step after the given (1-based) failed attempt: step, 2*step, ..."""
    def _backoff(attempt: int) -> float:
        return attempt * step
    return _backoff

def retry_call(
    fn: Callable[[], T],
    *,
    attempts: int,
    backoff: Backoff = no_backoff,
    fatal: Tuple[Type[BaseException], ...] = (),
    cancel: Optional[threading.Event] = None,
    description: str = "call",
) -> T:
    """
    Call fn() until it succeeds, at most `attempts` times.

    Exceptions listed in `fatal` propagate at once. Any other Exception counts as a
    failed attempt; backoff(n) seconds are waited after failed attempt n unless it was
    the last one. With a cancel event the wait is interruptible and a set event raises
    RetryCancelled. Exhausting the budget raises RetryError carrying the last error.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    last_error = None
    for attempt in range(1, attempts + 1):
        if cancel is not None and cancel.is_set():
            raise RetryCancelled(description)
        try:
            return fn()
        except fatal:
            raise
        except Exception as exc:
            last_error = exc
            log.warning("Attempt: %d/%d. %s failed: %s", attempt, attempts, description, exc)
        if attempt == attempts:
            break
        delay = backoff(attempt)
        if cancel is not None:
            if cancel.wait(delay):
                raise RetryCancelled(description)
        elif delay > 0:
            time.sleep(delay)
    raise RetryError(attempts, last_error)

def paginated(fetch: Callable[..., Dict[str, Any]], url: str, key: str,
              params: Optional[Dict[str, Any]] = None) -> Iterator[Any]:
    """Generic Nova pagination helper: yields body[key] items and follows the '<key>_links' next href."""
    next_url: Optional[str] = url
    while next_url:
        body = fetch(next_url, params=params)
        yield from body.get(key, [])
        next_url = None
        for link in body.get(f"{key}_links", []):
            if link.get("rel") == "next":
                next_url = link.get("href")
                break
        # the next href already carries the marker and the original query
        params = None
