from __future__ import annotations
import os
import sys
from typing import Any


def verbose() -> bool:
    return os.getenv("CEP_VERBOSE", "0").lower() in {"1", "true", "yes"}


def info(msg: Any) -> None:
    print(msg, flush=True)


def warn(msg: Any) -> None:
    print(f"[WARN] {msg}", file=sys.stderr, flush=True)


def debug(msg: Any) -> None:
    # No terminal spam: only when CEP_VERBOSE=1
    if verbose():
        print(f"[DEBUG] {msg}", flush=True)
