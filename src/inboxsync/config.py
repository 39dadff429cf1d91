"""Runtime settings read from the environment.

Read once by the app factory / CLI and passed down explicitly; nothing
else in the package reads os.environ for runtime behavior.
"""

import os
from dataclasses import dataclass
from typing import Literal, Mapping

StoreBackend = Literal["memory", "postgres"]
TasksBackend = Literal["thread", "inline"]

_TRUTHY = {"1", "true", "yes", "on"}


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "")
    if raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "")
    if raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None


def _get_choice(env: Mapping[str, str], name: str, default: str, choices: set[str]) -> str:
    value = (env.get(name) or default).strip().lower()
    if value not in choices:
        raise RuntimeError(f"{name} must be one of {sorted(choices)}, got {value!r}")
    return value


@dataclass(frozen=True)
class Settings:
    """Service configuration."""

    store_backend: StoreBackend = "memory"
    database_url: str | None = None
    db_pool_max: int = 10
    db_statement_timeout_ms: int = 5000
    simulate_status: bool = True
    tasks_backend: TasksBackend = "thread"
    delivered_after_seconds: float = 2.0
    read_after_seconds: float = 4.0
    allowed_origin: str = "*"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from environment variables.

        Raises:
            RuntimeError: On invalid values, or STORE_BACKEND=postgres
                without DATABASE_URL.
        """
        env = os.environ if env is None else env

        store_backend = _get_choice(env, "STORE_BACKEND", "memory", {"memory", "postgres"})
        database_url = env.get("DATABASE_URL") or None
        if store_backend == "postgres" and not database_url:
            raise RuntimeError("DATABASE_URL environment variable not set")

        return cls(
            store_backend=store_backend,  # type: ignore[arg-type]
            database_url=database_url,
            db_pool_max=_get_int(env, "DB_POOL_MAX", 10),
            db_statement_timeout_ms=_get_int(env, "DB_STATEMENT_TIMEOUT_MS", 5000),
            simulate_status=(env.get("SIMULATE_STATUS", "true").strip().lower() in _TRUTHY),
            tasks_backend=_get_choice(env, "TASKS_BACKEND", "thread", {"thread", "inline"}),  # type: ignore[arg-type]
            delivered_after_seconds=_get_float(env, "STATUS_DELIVERED_AFTER_SECONDS", 2.0),
            read_after_seconds=_get_float(env, "STATUS_READ_AFTER_SECONDS", 4.0),
            allowed_origin=env.get("ALLOWED_ORIGIN") or "*",
            log_level=(env.get("LOG_LEVEL") or "INFO").upper(),
        )
