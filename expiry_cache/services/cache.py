from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

from expiry_cache.config import get_settings
from expiry_cache.schemas.cache import CacheStatus
from expiry_cache.services.expiry import (
    ALREADY_EXPIRED,
    NEVER_EXPIRES,
    TimeFn,
    expires_in,
    is_past,
    now_ms,
    remaining,
)


logger = logging.getLogger(__name__)


T = TypeVar("T")

RefreshFunction = Callable[..., Union[T, Awaitable[T]]]


class _ExpiryCell(Generic[T]):
    """Single cached value with a TTL and a coalesced async refresh.

    Concurrent ``refresh`` calls share one in-flight task. The task stores the
    new value and expiry in one step and clears the in-flight handle before
    any caller resumes, whether it succeeded or failed.
    """

    # A duration of 0 means "never expires" instead of "expires now"
    _allow_never = False

    def __init__(
        self,
        data: Optional[T],
        refresh_fn: RefreshFunction[T],
        expiration_time: int | None = None,
        *,
        name: str | None = None,
        time_fn: TimeFn = now_ms,
        log_failures: bool | None = None,
    ):
        if expiration_time is None:
            expiration_time = get_settings().cache_default_ttl_ms

        self.name = name or type(self).__name__
        self._refresh_fn = refresh_fn
        self._expiration_time = expiration_time
        self._time_fn = time_fn
        # None defers to Settings.log_refresh_failures on the first failure
        self._log_failures = log_failures

        self._data = data
        self._has_data = True
        self._expires_at = self._expires_in(expiration_time)
        self._in_flight: asyncio.Task[None] | None = None

    @property
    def expiration_time(self) -> int:
        """Default TTL in milliseconds applied on each refresh."""
        return self._expiration_time

    @property
    def expires_at(self) -> int:
        return self._expires_at

    @property
    def refreshing(self) -> bool:
        return self._in_flight is not None

    @property
    def is_expired(self) -> bool:
        return self._does_expire() and is_past(self._expires_at, self._time_fn())

    def _does_expire(self) -> bool:
        return not (self._allow_never and self._expires_at == NEVER_EXPIRES)

    def _expires_in(self, ms: int) -> int:
        return expires_in(ms, self._time_fn(), allow_never=self._allow_never)

    def expire(self) -> None:
        """Expire the cache immediately. The value is kept."""
        self._expires_at = ALREADY_EXPIRED

    def set_expires_in(self, ms: int) -> None:
        self._expires_at = self._expires_in(ms)

    def set_expires_at(self, timestamp: int) -> None:
        """Set the raw expiry instant. Sentinel values are not interpreted."""
        self._expires_at = timestamp

    def _set_data_expires_at(self, data: T, expires_at: int) -> None:
        self._data = data
        self._has_data = True
        self._expires_at = expires_at

    def _set_data_expires_in(self, data: T, ms: int) -> None:
        self._set_data_expires_at(data, self._expires_in(ms))

    def _set_data(self, data: T) -> None:
        self._set_data_expires_in(data, self._expiration_time)

    def get_raw_data(self) -> Optional[T]:
        """Return the stored value without checking expiry."""
        return self._data

    def get_data(self) -> Optional[T]:
        """Return the stored value, or None once it has expired."""
        if self.is_expired:
            return None
        return self._data

    async def _call(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> T:
        result = self._refresh_fn(*args, **kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _run_refresh(self, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        logger.debug("Cache '%s' refresh started", self.name)
        try:
            self._set_data(await self._call(args, kwargs))
        finally:
            self._in_flight = None
        logger.debug("Cache '%s' refreshed, expires at %d", self.name, self._expires_at)

    def _failure_logging_enabled(self) -> bool:
        if self._log_failures is None:
            self._log_failures = get_settings().log_refresh_failures
        return self._log_failures

    def _on_refresh_done(self, task: asyncio.Task[None]) -> None:
        # Marks the exception retrieved even if no caller is still waiting
        if task.cancelled():
            return
        error = task.exception()
        if error is not None and self._log_failures:
            logger.warning("Cache '%s' refresh failed: %s", self.name, error)

    async def refresh(self, *args: Any, **kwargs: Any) -> None:
        """Recompute the value, sharing any refresh already in progress.

        Arguments are forwarded to the refresh function only when this call
        starts a new refresh. Errors from the refresh function propagate to
        every caller waiting on it.
        """
        task = self._in_flight
        if task is not None:
            logger.debug("Cache '%s' joining in-flight refresh", self.name)
        else:
            # Settings are read here, never inside the done-callback
            self._failure_logging_enabled()
            task = asyncio.create_task(self._run_refresh(args, kwargs))
            task.add_done_callback(self._on_refresh_done)
            self._in_flight = task

        # A cancelled caller must not cancel the refresh other callers share
        await asyncio.shield(task)

    async def get_data_or_refresh(self, *args: Any, **kwargs: Any) -> Optional[T]:
        """Return the value, refreshing it first if it has expired."""
        if self.is_expired:
            await self.refresh(*args, **kwargs)
        return self._data

    async def refresh_expires_at(self, timestamp: int, *args: Any, **kwargs: Any) -> None:
        """Recompute the value and expire it at ``timestamp``.

        Always calls the refresh function, even while a refresh is in flight.
        """
        log_failures = self._failure_logging_enabled()
        try:
            data = await self._call(args, kwargs)
        except Exception as e:
            if log_failures:
                logger.warning("Cache '%s' refresh failed: %s", self.name, e)
            raise
        self._set_data_expires_at(data, timestamp)

    async def refresh_expires_in(self, ms: int, *args: Any, **kwargs: Any) -> None:
        """Recompute the value and expire it ``ms`` milliseconds from now."""
        log_failures = self._failure_logging_enabled()
        try:
            data = await self._call(args, kwargs)
        except Exception as e:
            if log_failures:
                logger.warning("Cache '%s' refresh failed: %s", self.name, e)
            raise
        self._set_data_expires_in(data, ms)

    def get_status(self) -> CacheStatus:
        """Get cache status for monitoring."""
        does_expire = self._does_expire()
        return CacheStatus(
            name=self.name,
            has_data=self._has_data,
            is_expired=self.is_expired,
            does_expire=does_expire,
            expires_at=self._expires_at,
            time_to_live_ms=remaining(self._expires_at, self._time_fn()) if does_expire else None,
            expiration_time_ms=self._expiration_time,
            refreshing=self.refreshing,
        )


class ExpiryCache(_ExpiryCell[T]):
    """Cache that always holds a value, possibly a stale one.

    A TTL of 0 expires the value as soon as it is stored.
    """

    def __init__(
        self,
        data: T,
        refresh_fn: RefreshFunction[T],
        expiration_time: int | None = None,
        *,
        name: str | None = None,
        time_fn: TimeFn = now_ms,
        log_failures: bool | None = None,
    ):
        super().__init__(
            data, refresh_fn, expiration_time, name=name, time_fn=time_fn, log_failures=log_failures
        )


class ExpiryCacheNullable(_ExpiryCell[T]):
    """Cache that may hold no value at all.

    A TTL of 0 means the value never expires. A cache without a value always
    reports itself as expired, so the first read triggers a refresh.
    """

    _allow_never = True

    def __init__(
        self,
        data: Optional[T],
        refresh_fn: RefreshFunction[T],
        expiration_time: int | None = None,
        *,
        name: str | None = None,
        time_fn: TimeFn = now_ms,
        log_failures: bool | None = None,
    ):
        super().__init__(
            data, refresh_fn, expiration_time, name=name, time_fn=time_fn, log_failures=log_failures
        )
        self._has_data = data is not None
        if not self._has_data:
            self._expires_at = ALREADY_EXPIRED

    @property
    def has_data(self) -> bool:
        return self._has_data

    @property
    def does_expire(self) -> bool:
        return self._does_expire()

    @property
    def is_expired(self) -> bool:
        if not self._has_data:
            return True
        return self.does_expire and is_past(self._expires_at, self._time_fn())

    @property
    def time_to_live(self) -> int | None:
        """Milliseconds until expiry, or None if the cache never expires."""
        if not self.does_expire:
            return None
        return remaining(self._expires_at, self._time_fn())

    def invalidate(self) -> None:
        """Drop the cached value and expire the cache."""
        self._data = None
        self._has_data = False
        self.expire()

    def never_expire(self) -> None:
        self._expires_at = NEVER_EXPIRES

    async def try_get_data_or_refresh(self, *args: Any, **kwargs: Any) -> Optional[T]:
        """Like get_data_or_refresh, but a failed refresh returns None."""
        try:
            return await self.get_data_or_refresh(*args, **kwargs)
        except Exception as e:
            logger.debug("Cache '%s' returning None after failed refresh: %s", self.name, e)
            return None
