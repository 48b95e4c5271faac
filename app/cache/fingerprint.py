"""
app/cache/fingerprint.py

Deterministic cache keys for query parameter sets.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from app.domain.query_cache import QueryFingerprint

DEFAULT_NAMESPACE = "registry"

_ABSENT = object()


def _canonical(value: Any) -> Any:
    if value is None:
        return _ABSENT
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else _ABSENT
    if isinstance(value, Decimal):
        normalized = value.normalize()
        if normalized == normalized.to_integral_value():
            normalized = normalized.quantize(Decimal(1))
        return format(normalized, "f")
    if isinstance(value, (int, float)):
        return _canonical(Decimal(str(value)))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        items = {str(key): _canonical(item) for key, item in value.items()}
        cleaned = {key: item for key, item in sorted(items.items()) if item is not _ABSENT}
        return cleaned if cleaned else _ABSENT
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_canonical(item) for item in value]
        cleaned = [item for item in items if item is not _ABSENT]
        if isinstance(value, (set, frozenset)):
            cleaned = sorted(cleaned, key=lambda item: json.dumps(item, sort_keys=True))
        return cleaned if cleaned else _ABSENT
    return str(value)


def canonical_params(params: Mapping[str, Any] | None) -> dict[str, Any]:
    """
    Return the canonical form of `params`.

    None, empty strings and empty collections are treated as absent and
    dropped, so `{"q": None}` and `{}` address the same entry.
    """

    if not params:
        return {}
    canonical = _canonical(dict(params))
    return canonical if canonical is not _ABSENT else {}


def fingerprint(
    scope: str,
    kind: str,
    params: Mapping[str, Any] | None = None,
    *,
    namespace: str = DEFAULT_NAMESPACE,
) -> QueryFingerprint:
    payload = json.dumps(canonical_params(params), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return QueryFingerprint(namespace=namespace, scope=scope, kind=kind, digest=digest)


def scope_prefix(scope: str, *, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}:{scope}:"
