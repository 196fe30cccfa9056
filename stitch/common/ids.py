"""Request identifiers."""

from __future__ import annotations

import secrets
from datetime import datetime, timezone


def generate_request_id() -> str:
    now = datetime.now(tz=timezone.utc)
    # Requests run concurrently, so the timestamp alone can collide.
    return f"req-{now:%Y%m%dT%H%M%S%f}Z-{secrets.token_hex(3)}"
