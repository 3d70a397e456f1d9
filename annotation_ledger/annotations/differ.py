"""
Snapshot differ.

Computes which semantic fields changed between two comment snapshots. This is
a pure function used to render history entries; it performs no I/O.

Output order is fixed: title, priority, published, tags, issues, then the
text's scheme fields in scheme-definition order. A creation event (the before
snapshot has no title) yields the single ``created`` marker.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from .schemas import FieldType, SchemeField

CREATED = "created"

FieldRule = Callable[[Any, Any], bool]


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _number(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def text_changed(before: Any, after: Any) -> bool:
    """Strings compared after trimming; None and empty are the same."""
    return _text(before) != _text(after)


def number_changed(before: Any, after: Any) -> bool:
    return _number(before) != _number(after)


def flag_changed(before: Any, after: Any) -> bool:
    return bool(before) != bool(after)


def set_changed(before: Any, after: Any) -> bool:
    """Membership comparison; order and duplicates are ignored."""
    return set(before or []) != set(after or [])


def _or_none(value: Any) -> Any:
    if value in ([], {}, ""):
        return None
    return value


def deep_changed(before: Any, after: Any) -> bool:
    """Order-sensitive structural comparison; a missing value equals an empty one."""
    return _or_none(before) != _or_none(after)


# Fixed fields, in output order
FIXED_RULES: Dict[str, FieldRule] = {
    "title": text_changed,
    "priority": number_changed,
    "published": flag_changed,
    "tags": set_changed,
    "issues": deep_changed,
}

FIELD_TYPE_RULES: Dict[FieldType, FieldRule] = {
    FieldType.RICH_TEXT: deep_changed,
    FieldType.PLAIN_TEXT: text_changed,
    FieldType.LIST: deep_changed,
}


def rules_for_scheme(
    scheme: Optional[Iterable[Union[SchemeField, Mapping[str, Any]]]],
) -> Dict[str, FieldRule]:
    """Resolve a text scheme into an ordered field-id -> rule mapping.

    Later duplicates of a field id are ignored.
    """
    rules: Dict[str, FieldRule] = {}
    for raw in scheme or []:
        field = raw if isinstance(raw, SchemeField) else SchemeField.model_validate(raw)
        if field.id not in rules:
            rules[field.id] = FIELD_TYPE_RULES[field.type]
    return rules


def diff(
    before: Optional[Mapping[str, Any]],
    after: Optional[Mapping[str, Any]],
    rules: Optional[Mapping[str, FieldRule]] = None,
) -> List[str]:
    """Return the labels of fields that differ between two snapshots.

    Args:
        before: Prior snapshot; empty or title-less for a creation event
        after: New snapshot
        rules: Scheme field rules from ``rules_for_scheme``

    Returns:
        ``["created"]`` for a creation event, otherwise the changed labels
    """
    before = before or {}
    after = after or {}

    if "title" not in before:
        return [CREATED]

    changed = [
        name
        for name, rule in FIXED_RULES.items()
        if rule(before.get(name), after.get(name))
    ]

    entry0 = before.get("entry") or {}
    entry1 = after.get("entry") or {}
    for field_id, rule in (rules or {}).items():
        if rule(entry0.get(field_id), entry1.get(field_id)):
            changed.append(field_id)

    return changed
