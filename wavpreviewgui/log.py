"""Lightweight debug tracing for WavPreview.

Usage::

    from wavpreviewgui.log import dbg

    dbg("transfer session restarted")

Output appears only when the environment variable ``WP_DEBUG`` is ``1`` or
``true`` (case-insensitive).  Lines carry a timestamp and the calling class
(or module) so they can be grepped.
"""

from __future__ import annotations

import os
import sys
from datetime import datetime
from functools import lru_cache


@lru_cache(maxsize=1)
def enabled() -> bool:
    return os.environ.get("WP_DEBUG", "").strip().lower() in ("1", "true")


def _origin(depth: int = 2) -> str:
    """Class name of the method *depth* frames up, else its module's short name."""
    frame = sys._getframe(depth)
    owner = frame.f_locals.get("self")
    if owner is not None:
        return type(owner).__name__
    return frame.f_globals.get("__name__", "?").rpartition(".")[2]


def dbg(msg: str) -> None:
    """Write ``[HH:MM:SS.mmm Origin] msg`` to stderr when tracing is on."""
    if not enabled():
        return
    stamp = datetime.now().strftime("%H:%M:%S.%f")[:-3]
    print(f"[{stamp} {_origin()}] {msg}", file=sys.stderr, flush=True)
