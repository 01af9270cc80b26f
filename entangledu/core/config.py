"""Environment configuration.

Every variable is read once at import into the frozen ``SETTINGS``; tests
and the app factory may build their own ``Settings`` instead.  Bad values
raise ValueError naming the variable.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

# Version string baked into every signed payload.
PROTOCOL_TAG = "ENTANGLEDU_V1"

# Durable client slots (one JSON value each).
LEDGER_SLOT = "entangledu-tokens"
WALLET_SLOT = "entangledu-wallet"

_TRUE = ("true", "1", "yes")
_FALSE = ("false", "0", "no")


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default).strip()


def _one_of(name: str, default: str, allowed: tuple[str, ...]) -> str:
    value = _env(name, default).lower()
    if value not in allowed:
        raise ValueError(f"{name} must be {'|'.join(allowed)} (got {value!r})")
    return value


def _flag(name: str, default: str) -> bool:
    value = _env(name, default).lower()
    if value not in _TRUE + _FALSE:
        raise ValueError(f"{name} must be a boolean (got {value!r})")
    return value in _TRUE


def _integer(name: str, default: str) -> int:
    raw = _env(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


def _positive(name: str, default: str) -> float:
    raw = _env(name, default)
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {value})")
    return value


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    redis_url: str | None
    # Required by the issuer app; validated when the signer is built.
    issuer_private_key: str | None
    issuer_url: str
    mint_timeout_seconds: float

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    return Settings(  # type: ignore[arg-type]
        app_env=_one_of("APP_ENV", "dev", ("dev", "test", "prod")),
        log_level=_one_of("LOG_LEVEL", "info", ("debug", "info", "warning", "error")),
        log_json=_flag("LOG_JSON", "false"),
        port=_integer("PORT", "4000"),
        redis_url=_env("REDIS_URL") or None,
        issuer_private_key=_env("ISSUER_PRIVATE_KEY") or None,
        issuer_url=_env("ISSUER_URL", "http://localhost:4000").rstrip("/"),
        mint_timeout_seconds=_positive("MINT_TIMEOUT_SECONDS", "10"),
    )


SETTINGS = load_settings()
