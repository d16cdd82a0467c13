"""Exception translation at module boundaries.

Filesystem helpers are wrapped with ``@rethrow(OSError, io_failure)`` so a
failed ``mkdir`` or write reaches the CLI as an ``IOFailureError`` naming the
path, instead of a bare ``OSError`` traceback.
"""

from collections.abc import Callable
from functools import wraps

from aipods.core.exceptions import IOFailureError


def rethrow[**P, R, E: BaseException, NewE: BaseException](
    catch: type[E],
    into: Callable[[E], NewE],
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Re-raise ``catch`` from the wrapped call as ``into(error)``, chained."""

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        @wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return fn(*args, **kwargs)
            except catch as e:
                raise into(e) from e

        return wrapper

    return decorator


def io_failure(e: OSError) -> IOFailureError:
    target = f" ({e.filename})" if e.filename else ""
    return IOFailureError(f"{e.strerror or e}{target}")
