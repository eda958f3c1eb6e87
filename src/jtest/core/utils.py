from __future__ import annotations
import time, uuid


def new_run_id() -> str:
    # <unix seconds>-<8 hex>
    return f"{int(time.time())}-{uuid.uuid4().hex[:8]}"
