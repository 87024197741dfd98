"""Decorators shared by the Google API clients."""

from __future__ import annotations

import functools
import time
from typing import Any, Callable, Iterable, Optional, Tuple, Type, TypeVar

from storefront_drive.infrastructure.log_utils import log_message

TFunc = TypeVar("TFunc", bound=Callable[..., Any])


def retry_on_transient_error(
    should_retry: Callable[[Any, int], bool],
    *,
    exception_types: Iterable[Type[BaseException]] = (),
) -> Callable[[TFunc], TFunc]:
    """Retry a client method with exponential backoff.

    Parameters
    ----------
    should_retry:
        Callable receiving ``self`` and the HTTP status of the failure,
        returning ``True`` when another attempt is worthwhile.
    exception_types:
        Exceptions to intercept. An intercepted exception whose
        ``status_code`` is ``None`` is treated as a network failure and is
        always retried.

    The wrapped object supplies ``max_retries`` (total attempts) and
    ``backoff_base`` (seconds before the second attempt, doubled each time).
    """

    exception_tuple: Tuple[Type[BaseException], ...] = tuple(exception_types)

    def decorator(func: TFunc) -> TFunc:
        @functools.wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            max_retries: int = max(1, int(getattr(self, "max_retries", 1)))
            backoff_base: float = float(getattr(self, "backoff_base", 0.0))

            last_exc: Optional[BaseException] = None

            for attempt in range(max_retries):
                try:
                    return func(self, *args, **kwargs)
                except exception_tuple as exc:  # type: ignore[misc]
                    last_exc = exc
                    status_code: Optional[int] = getattr(exc, "status_code", None)

                    retry_allowed = status_code is None or should_retry(self, status_code)
                    if not retry_allowed or attempt == max_retries - 1:
                        raise

                    sleep_for = backoff_base * (2 ** attempt)
                    reason = "network error" if status_code is None else f"transient {status_code}"
                    log_message(
                        f"[retry] {reason} in {func.__name__} "
                        f"(attempt {attempt + 1}/{max_retries}): {exc}; retrying in {sleep_for:.2f}s",
                        "WARN",
                    )
                    if sleep_for > 0:
                        time.sleep(sleep_for)

            if last_exc is not None:  # pragma: no cover - loop always returns or raises
                raise last_exc
            raise RuntimeError("retry_on_transient_error finished without calling the function.")

        return wrapper  # type: ignore[return-value]

    return decorator


__all__ = ["retry_on_transient_error"]
