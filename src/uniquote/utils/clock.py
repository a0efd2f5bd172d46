"""Time and identifier helpers shared by caches, adapters and the engine."""

import time
import uuid


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def new_id(prefix: str) -> str:
    """Short unique identifier such as ``quote_1a2b3c4d5e6f``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"
