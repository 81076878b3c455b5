"""Root conftest: loads .env.test into the environment before settings are imported."""
from __future__ import annotations

import os
from pathlib import Path

_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    for line in _env_test.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        key, _, value = line.partition("=")
        os.environ.setdefault(key.strip(), value.strip())

# Keep the reaper and grace timers quiet unless a test opts in.
os.environ.setdefault("CALL_REAPER_INTERVAL_SECONDS", "3600")
os.environ.setdefault("WS_AUTH_MODE", "user_id")
