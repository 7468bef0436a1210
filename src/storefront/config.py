from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Mapping, Tuple

ENV_PREFIX = "STOREFRONT_"

# browser origins allowed by default: the local frontend dev server
DEFAULT_CORS_ORIGINS: Tuple[str, ...] = ("http://localhost:3000",)

_TRUE = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    database_url: str | None = None  # None -> in-memory store
    lock_timeout_seconds: float = 5.0
    conflict_retries: int = 2
    log_level: str = "INFO"
    log_json: bool = True
    host: str = "0.0.0.0"
    port: int = 8000
    seed_demo_data: bool = False
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS  # comma-separated in env

    @classmethod
    def load_from_env(
        cls, environ: Mapping[str, str] | None = None, prefix: str = ENV_PREFIX
    ) -> "Settings":
        """Build settings from ``<prefix><FIELD>`` variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = env.get(prefix + f.name.upper())
            if raw is None or raw == "":
                continue
            values[f.name] = _coerce(f.name, f.default, raw)
        return cls(**values)


def _coerce(name: str, default: Any, raw: str) -> Any:
    if isinstance(default, tuple):
        return tuple(part.strip() for part in raw.split(",") if part.strip())
    if isinstance(default, bool):
        return raw.strip().lower() in _TRUE
    try:
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError as e:
        raise ValueError(f"{ENV_PREFIX}{name.upper()}: {e}") from e
    return raw
