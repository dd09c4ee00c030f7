"""Startup configuration for the seat ledger service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_SEAT_COUNT = 10
DEFAULT_HOLD_TTL_MS = 60 * 1000
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000


class ConfigurationError(ValueError):
    """Raised when the ledger cannot be started with the given settings."""


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class LedgerConfig:
    seat_count: int = DEFAULT_SEAT_COUNT
    hold_ttl_ms: int = DEFAULT_HOLD_TTL_MS
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    def __post_init__(self) -> None:
        if self.seat_count < 1:
            raise ConfigurationError(f"seat count must be at least 1, got {self.seat_count}")
        if self.hold_ttl_ms <= 0:
            raise ConfigurationError(f"hold TTL must be positive, got {self.hold_ttl_ms} ms")
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"port must be between 1 and 65535, got {self.port}")

    @property
    def hold_ttl_seconds(self) -> float:
        return self.hold_ttl_ms / 1000

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerConfig":
        """Build a config from ``SEAT_LEDGER_*`` variables and ``PORT``."""

        env = os.environ if environ is None else environ
        return cls(
            seat_count=_int_setting(env, "SEAT_LEDGER_SEAT_COUNT", DEFAULT_SEAT_COUNT),
            hold_ttl_ms=_int_setting(env, "SEAT_LEDGER_HOLD_TTL_MS", DEFAULT_HOLD_TTL_MS),
            host=env.get("SEAT_LEDGER_HOST") or DEFAULT_HOST,
            port=_int_setting(env, "PORT", DEFAULT_PORT),
        )
