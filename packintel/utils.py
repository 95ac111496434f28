from __future__ import annotations

import json
import math
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class RateLimiter:
    min_interval_s: float
    _last: float = 0.0

    def wait(self) -> None:
        now = time.time()
        elapsed = now - self._last
        if elapsed < self.min_interval_s:
            time.sleep(self.min_interval_s - elapsed)
        self._last = time.time()


class SimpleJsonCache:
    """
    Very small, file-backed key-value cache.
    Used for narrative answers so re-running the same dataset does not hit the API.
    """

    def __init__(self, path: str, enabled: bool = True, max_items: int = 500):
        self.path = path
        self.enabled = enabled
        self.max_items = max_items
        self._data: Dict[str, Any] = {}
        if self.enabled:
            self._load()

    def _load(self) -> None:
        if os.path.exists(self.path):
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    self._data = json.load(f)
            except (OSError, ValueError):
                self._data = {}

    def save(self) -> None:
        if not self.enabled:
            return
        if len(self._data) > self.max_items:
            for k in sorted(self._data.keys())[: len(self._data) - self.max_items]:
                self._data.pop(k, None)
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False)

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        self._data[key] = value


def safe_str(x: Any) -> str:
    if x is None:
        return ""
    if isinstance(x, float) and math.isnan(x):
        return ""
    s = str(x).strip()
    if s.lower() in {"nan", "none", "null"}:
        return ""
    return s


def to_number(x: Any) -> float:
    """Coerce a cell to float; missing or non-numeric values become 0."""
    if x is None or isinstance(x, bool):
        return 0.0
    if isinstance(x, (int, float)):
        f = float(x)
    else:
        s = safe_str(x)
        if not s:
            return 0.0
        try:
            f = float(s)
        except ValueError:
            return 0.0
    if math.isnan(f) or math.isinf(f):
        return 0.0
    return f


def company_key(x: Any) -> str:
    """String form of an identifier cell; integral floats (7.0) render as "7"."""
    if isinstance(x, float) and not math.isnan(x) and x.is_integer():
        return str(int(x))
    return str(x)


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
