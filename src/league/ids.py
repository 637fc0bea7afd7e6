"""
Opaque identifiers for players, tournaments and matches.
"""
import time
import uuid


def new_id(prefix: str = "id") -> str:
    """Return a new identifier such as ``p_3f9c0a1b2d4e_18c2f4a1b7e``."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}_{int(time.time() * 1000):x}"
