"""Row models for the loader's own tables.

Tables:
  api_response_cache:
    - cache_key: VARCHAR PRIMARY KEY
    - api_source: VARCHAR NOT NULL
    - endpoint_url: TEXT
    - response_data: JSONB NOT NULL
    - status_code: INTEGER
    - cached_at: TIMESTAMPTZ NOT NULL
    - expires_at: TIMESTAMPTZ NOT NULL

  symbol_mappings:
    - sid: BIGINT NOT NULL
    - source_name: VARCHAR NOT NULL
    - source_identifier: VARCHAR NOT NULL
    - verified: BOOLEAN DEFAULT false
    - last_verified_at: TIMESTAMPTZ
    - created_at / updated_at: TIMESTAMPTZ
    - UNIQUE (sid, source_name)
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, model_validator


class CacheEntry(BaseModel):
    """One cached API response.

    Stored in: api_response_cache. Writing an entry with an existing
    ``cache_key`` replaces it.
    """

    cache_key: str = Field(..., min_length=1)
    api_source: str = Field(..., min_length=1, description="Vendor partition, e.g. 'alphavantage'")
    endpoint_url: str = Field("", description="Request URL or logical endpoint")
    response_data: Any = Field(..., description="JSON-serializable payload")
    status_code: int = Field(200)
    cached_at: datetime
    expires_at: datetime

    @model_validator(mode="after")
    def check_expiry(self) -> "CacheEntry":
        if self.expires_at <= self.cached_at:
            raise ValueError("expires_at must be later than cached_at")
        return self

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class SourceMapping(BaseModel):
    """How one vendor names one entity.

    Stored in: symbol_mappings, unique on (sid, source_name).
    """

    sid: int = Field(..., description="Entity identifier")
    source_name: str = Field(..., min_length=1)
    source_identifier: str = Field(..., min_length=1)
    verified: bool = Field(False)
    last_verified_at: datetime | None = Field(None)
    created_at: datetime | None = Field(None)
    updated_at: datetime | None = Field(None)
