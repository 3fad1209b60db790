"""
Svalbard server configuration.

Values come from SVALBARD_* environment variables; unset variables keep the
defaults below.
"""

import os
from pathlib import Path
from typing import List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from svalbard.auth.token_store import DEFAULT_TOKEN_TTL_SECONDS
from svalbard.core.share_id import DEFAULT_OWNER_ID_TYPES

ENV_PREFIX = "SVALBARD_"


class ServerConfig(BaseModel):
    """API server configuration."""

    host: str = Field(
        default="127.0.0.1",
        description="Server host (use 0.0.0.0 for Docker/cloud, set via SVALBARD_HOST env var)"
    )
    port: int = Field(default=8080, description="Server port")
    workers: int = Field(default=1, description="Number of worker processes")
    reload: bool = Field(default=False, description="Auto-reload on code changes")

    # Share storage
    share_backend: Literal["memory", "local"] = Field(
        default="memory",
        description="Share store backend (memory, local)"
    )
    storage_dir: Path = Field(
        default=Path("./svalbard_shares"),
        description="Share directory for the local backend"
    )

    # Tokens
    token_ttl_seconds: float = Field(
        default=DEFAULT_TOKEN_TTL_SECONDS,
        gt=0,
        description="Validity window of access tokens in seconds"
    )
    max_tokens: Optional[int] = Field(
        default=None,
        description="Maximum number of live tokens (unbounded if unset)"
    )

    # Share ids
    owner_id_types: List[str] = Field(
        default_factory=lambda: list(DEFAULT_OWNER_ID_TYPES),
        description="Supported owner id types"
    )
    hash_algorithm: str = Field(default="sha256", description="Share id hash algorithm")

    # Secondary channel
    channel: Literal["log", "outbox", "file"] = Field(
        default="log",
        description="Secondary channel (log, outbox, file)"
    )
    outbox_dir: Path = Field(
        default=Path("./svalbard_outbox"),
        description="Outbox directory for the file channel"
    )

    # Logging
    log_file: Optional[str] = Field(
        default="logs/svalbard_{time}.log",
        description="Rotating log file (disabled if empty)"
    )
    log_level: str = Field(default="INFO", description="Log level")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ServerConfig":
        """Build configuration from SVALBARD_* environment variables."""
        environ = os.environ if environ is None else environ
        values = {}

        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None:
                continue
            if name == "owner_id_types":
                values[name] = [t.strip() for t in raw.split(",") if t.strip()]
            elif name == "reload":
                values[name] = raw.lower() == "true"
            elif name in ("max_tokens", "log_file") and raw == "":
                values[name] = None
            else:
                values[name] = raw

        return cls(**values)
