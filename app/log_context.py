"""Structured logging context for multi-step account flows.

A ``LogContext`` is immutable: every step returns a new context with the
fields it learned, and the final report (success or failure) is logged with
whatever the flow accumulated up to that point.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

REDACTED = "***"
_SECRET_MARKERS = ("token", "secret")


def _is_secret(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SECRET_MARKERS)


def _redact(value: Any) -> str:
    text = str(value)
    if len(text) <= 8:
        return REDACTED
    return f"{text[:4]}{REDACTED}"


@dataclass(frozen=True)
class LogContext:
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def bind(self, **fields: Any) -> "LogContext":
        merged = dict(self.fields)
        merged.update(fields)
        return LogContext(merged)

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def render(self) -> str:
        parts = []
        for key, value in self.fields.items():
            if value is None:
                continue
            shown = _redact(value) if _is_secret(key) else value
            parts.append(f"{key}={shown}")
        return " ".join(parts)

    def __str__(self) -> str:
        return self.render()


__all__ = ["LogContext"]
