"""Root conftest: test environment is fixed before marketplace_chat.config is imported."""
from __future__ import annotations

import os
from pathlib import Path

_ROOT = Path(__file__).resolve().parent


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip())


_load_env_file(_ROOT / ".env.test")

# Tests never talk to real Redis or a listings API.
os.environ["BROKER_BACKEND"] = "memory"
os.environ.pop("LISTINGS_API_URL", None)
