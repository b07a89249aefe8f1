from __future__ import annotations

from pydantic import BaseModel


class CacheStatus(BaseModel):
    name: str
    has_data: bool
    is_expired: bool
    does_expire: bool
    expires_at: int
    time_to_live_ms: int | None = None
    expiration_time_ms: int
    refreshing: bool
