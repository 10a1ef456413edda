# services/ids.py
from __future__ import annotations

import uuid


def create_id(prefix: str = "") -> str:
    """
    Prefixed opaque id, e.g. "inv_6f1c0a...".
    """
    return f"{prefix}{uuid.uuid4().hex[:24]}"
