"""Ordered extraction rules for provider payloads whose shape varies.

A rule is a dotted path such as ``"motionSvdGenerationJob.generationId"``.
Rules are tried in order and the first non-empty value wins.
"""
from typing import Any, Callable, Iterable, Optional

_MISSING = object()


def dig(payload: Any, path: str) -> Any:
    current = payload
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _present(value: Any) -> bool:
    return value is not _MISSING and value is not None and value != ""


def first_match(payload: Any, rules: Iterable[str], predicate: Optional[Callable[[Any], bool]] = None) -> Any:
    for rule in rules:
        value = dig(payload, rule)
        if not _present(value):
            continue
        if predicate is not None and not predicate(value):
            continue
        return value
    return None
