from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

import yaml

TOKEN_ENV = "TASKDECK_TOKEN"


# -----------------------------
# Config model
# -----------------------------
@dataclass
class Config:
    base_url: Optional[str] = None
    page_size: int = 20
    debounce_ms: int = 300
    request_timeout: float = 30.0
    max_retry_wait: float = 60.0
    export_path: str = "tasks.csv"
    cache_max_entries: int = 100

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0


def _positive_int(raw: dict, name: str, default: int, *, minimum: int = 1) -> int:
    value = raw.get(name, default)
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Config: '{name}' must be an integer, got {value!r}") from None
    if value < minimum:
        raise ValueError(f"Config: '{name}' must be >= {minimum}")
    return value


def _seconds(raw: dict, name: str, default: float) -> float:
    value = raw.get(name, default)
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Config: '{name}' must be a number of seconds, got {value!r}") from None
    if value <= 0:
        raise ValueError(f"Config: '{name}' must be > 0")
    return value


def load_config(path: str) -> Config:
    """Read the YAML config file.

    Every key is optional; ``base_url`` is only needed when talking to a real
    store (not with ``--mock``).
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("Config: top level must be a mapping.")
    base_url = raw.get("base_url") or None
    if base_url is not None and not str(base_url).startswith(("http://", "https://")):
        raise ValueError(f"Config: 'base_url' must be an http(s) URL, got {base_url!r}")
    return Config(
        base_url=str(base_url) if base_url else None,
        page_size=_positive_int(raw, "page_size", 20),
        debounce_ms=_positive_int(raw, "debounce_ms", 300, minimum=0),
        request_timeout=_seconds(raw, "request_timeout", 30.0),
        max_retry_wait=_seconds(raw, "max_retry_wait", 60.0),
        export_path=str(raw.get("export_path") or "tasks.csv"),
        cache_max_entries=_positive_int(raw, "cache_max_entries", 100),
    )


def load_dotenv_token(search_dirs=None) -> Optional[str]:
    """Load TASKDECK_TOKEN (or TOKEN) from a .env file in the current directory if present."""
    candidates = list(search_dirs) if search_dirs is not None else [os.getcwd()]
    for base in candidates:
        path = os.path.join(base, ".env")
        if not os.path.isfile(path):
            continue
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#') or '=' not in line:
                    continue
                k, v = line.split('=', 1)
                k = k.strip()
                v = v.strip().strip('"').strip("'")
                if k in (TOKEN_ENV, "TOKEN") and v:
                    return v
    return None


def resolve_token() -> Optional[str]:
    # env var wins over .env
    return os.environ.get(TOKEN_ENV) or load_dotenv_token()
