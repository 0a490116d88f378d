"""CLI helper to validate required environment variables.

Usage::

    python -m scripts.check_env

Importing :mod:`eduup.core.config` prints every validation error; this
script only turns them into exit status 1.
"""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

from pydantic import ValidationError  # noqa: E402

SECRET_MARKERS = ("key", "password", "secret")

try:
    from eduup.core.config import settings
except ValidationError:
    print("Environment validation failed, see details above.", file=sys.stderr)
    sys.exit(1)
else:
    print("Environment variables OK.")
    for name, value in settings.model_dump().items():
        if any(marker in name.lower() for marker in SECRET_MARKERS):
            print(f"- {name}: <hidden>")
        else:
            print(f"- {name}: {value}")
