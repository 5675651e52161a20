"""Configuration for the storage filesystem bridge."""

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ENV_PREFIX = "CHUK_BLOB_FS_"


class StorageFSConfig(BaseModel):
    """Tunables for listing, deletion and change notification."""

    model_config = ConfigDict(frozen=True)

    page_size: int = Field(
        default=1000, ge=1, le=5000, description="Entries requested per listing page"
    )
    drain_listings: bool = Field(
        default=False,
        description="Follow continuation tokens instead of using the first page only",
    )
    delete_concurrency: int = Field(
        default=5, ge=1, description="Parallel deletes during a recursive delete"
    )
    event_delay: float = Field(
        default=0.005, ge=0, description="Seconds to buffer change events before firing"
    )
    max_read_bytes: int | None = Field(
        default=None, ge=1, description="Refuse to read files larger than this"
    )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "StorageFSConfig":
        """Build a config from CHUK_BLOB_FS_* environment variables."""
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        return cls.model_validate(values)
