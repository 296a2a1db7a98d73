from __future__ import annotations

"""
Best-effort StatsD metrics for the pricing engine.

Usage:
  from capquote.utils.metrics import incr, Timer
  incr('pricing.cache.hit', tags={'cache': 'quote'})
  with Timer('pricing.quote.ms') as t:
      ...
  t.elapsed_ms

Env:
  METRICS_STATSD_ADDR = "host:port" (e.g., "127.0.0.1:8125"); unset disables
  METRICS_TAGS = "1" enables Datadog-style tag suffix (|#key:val,...)
"""

import logging
import os
import socket
import time
from typing import Dict, Optional

logger = logging.getLogger(__name__)

_ADDR = os.getenv("METRICS_STATSD_ADDR", "").strip()
_USE_TAGS = os.getenv("METRICS_TAGS", "1") not in ("0", "false", "False")
_SOCK: Optional[socket.socket] = None


def _get_sock() -> Optional[socket.socket]:
    global _SOCK
    if not _ADDR:
        return None
    if _SOCK is not None:
        return _SOCK
    try:
        host, port = _ADDR.split(":", 1)
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect((host, int(port)))
    except (OSError, ValueError) as exc:
        logger.debug("StatsD sink %s unavailable: %s", _ADDR, exc)
        return None
    _SOCK = s
    return _SOCK


def _format_tags(tags: Optional[Dict[str, object]]) -> str:
    if not tags or not _USE_TAGS:
        return ""
    parts = [
        f"{str(k).replace(',', '_')}:{str(v).replace(',', '_')}"
        for k, v in tags.items()
        if k is not None
    ]
    return "|#" + ",".join(parts) if parts else ""


def _send(msg: str) -> None:
    s = _get_sock()
    if not s:
        return
    try:
        s.send(msg.encode("utf-8"))
    except OSError:
        # UDP sink is best-effort only
        pass


def incr(name: str, value: int = 1, tags: Optional[Dict[str, object]] = None) -> None:
    _send(f"{name}:{int(value)}|c{_format_tags(tags)}")


def timing_ms(name: str, ms: float, tags: Optional[Dict[str, object]] = None) -> None:
    _send(f"{name}:{float(ms):.2f}|ms{_format_tags(tags)}")


class Timer:
    """Context manager that records elapsed milliseconds as a timing metric."""

    def __init__(self, name: str, tags: Optional[Dict[str, object]] = None):
        self.name = name
        self.tags = tags or {}
        self._t0: Optional[float] = None
        self.elapsed_ms: float = 0.0

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._t0 is not None:
            self.elapsed_ms = (time.perf_counter() - self._t0) * 1000.0
            timing_ms(self.name, self.elapsed_ms, tags=self.tags)
        return False
