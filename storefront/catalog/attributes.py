"""
Attribute normalization: canonical option maps for selections, variants and cart lines.

Every attribute map that crosses the API boundary is turned into a plain
Dict[str, str] here, exactly once. Keys are trimmed and case-folded; values are
stringified and trimmed; null-like values drop the key entirely.

Wire shapes seen from the backend:
- mapping:      {"Size": "M", "color": "red"}
- entry list:   [{"name": "size", "value": "M"}, {"key": "color", "val": "red"}]
- bare values:  ["XL"]  (only when the product declares a single attribute)
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

# Values that mean "nothing chosen" (compared case-insensitively)
NULL_LIKE_VALUES = frozenset({"", "null", "undefined"})

# Alternate spellings folded onto a canonical key
LEGACY_KEY_SYNONYMS: Dict[str, str] = {
    "colour": "color",
    "colors": "color",
    "sizes": "size",
}

_ENTRY_KEY_FIELDS = ("name", "key", "attr")
_ENTRY_VALUE_FIELDS = ("value", "val", "option", "label")


def normalize_key(key: Any) -> str:
    """Trim + case-fold an attribute name."""
    if key is None:
        return ""
    return str(key).strip().casefold()


def normalize_value(value: Any) -> str:
    """
    Stringify and trim an attribute value.

    Returns "" for None and for the literal strings "null" / "undefined",
    which callers treat as "no value".
    """
    if value is None:
        return ""
    text = str(value).strip()
    if text.casefold() in NULL_LIKE_VALUES:
        return ""
    return text


def normalize(raw: Optional[Mapping[Any, Any]]) -> Dict[str, str]:
    """
    Canonicalize a raw attribute map.

    Pure and idempotent: normalize(normalize(x)) == normalize(x).

    Args:
        raw: Any mapping of attribute name -> value (None is treated as empty)

    Returns:
        New dict of canonical name -> non-empty value
    """
    if not raw or not isinstance(raw, Mapping):
        return {}

    out: Dict[str, str] = {}
    for raw_key, raw_value in raw.items():
        key = normalize_key(raw_key)
        value = normalize_value(raw_value)
        if key and value:
            out[key] = value

    for alternate, canonical in LEGACY_KEY_SYNONYMS.items():
        if alternate not in out:
            continue
        value = out.pop(alternate)
        out.setdefault(canonical, value)

    return out


def attributes_equal(a: Optional[Mapping[Any, Any]], b: Optional[Mapping[Any, Any]]) -> bool:
    """True when both maps describe the same selection after normalization."""
    return normalize(a) == normalize(b)


def merge_legacy_size(size: Any, attributes: Optional[Mapping[Any, Any]]) -> Dict[str, str]:
    """Fold an old top-level `size` field into the attribute map unless already set."""
    merged = normalize(attributes)
    legacy_size = normalize_value(size)
    if legacy_size and "size" not in merged:
        merged["size"] = legacy_size
    return merged


# ----------------------------------------------------------------------------
# Wire-shape adapters
# ----------------------------------------------------------------------------

def from_mapping(raw: Mapping[Any, Any]) -> Dict[str, str]:
    """Adapter for {name: value} objects."""
    return normalize(raw)


def from_entry_list(entries: Iterable[Mapping[str, Any]]) -> Dict[str, str]:
    """Adapter for [{name|key|attr: ..., value|val|option|label: ...}] lists."""
    collected: Dict[str, Any] = {}
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        key = _first_present(entry, _ENTRY_KEY_FIELDS)
        value = _first_present(entry, _ENTRY_VALUE_FIELDS)
        if key is not None:
            collected[str(key)] = value
    return normalize(collected)


def from_value_list(values: Sequence[Any], attribute_names: Sequence[str]) -> Dict[str, str]:
    """
    Adapter for bare value lists such as ["XL"].

    Only meaningful when the product declares exactly one attribute; the
    value is then assigned to that attribute. Anything else yields {}.
    """
    if len(attribute_names) != 1:
        return {}
    collected: Dict[str, Any] = {}
    for value in values:
        if normalize_value(value):
            collected[attribute_names[0]] = value
    return normalize(collected)


def coerce_attribute_map(raw: Any, attribute_names: Sequence[str] = ()) -> Dict[str, str]:
    """
    Dispatch a raw attribute payload to the adapter for its wire shape.

    Args:
        raw: Mapping, list of entry dicts, list of bare values, or None
        attribute_names: Canonical names declared by the product

    Returns:
        Normalized Dict[str, str]
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return from_mapping(raw)
    if isinstance(raw, (list, tuple)):
        entries = [e for e in raw if isinstance(e, Mapping)]
        if entries:
            return from_entry_list(entries)
        return from_value_list([e for e in raw if isinstance(e, (str, int, float))], attribute_names)
    return {}


def _first_present(entry: Mapping[str, Any], fields: Sequence[str]) -> Optional[Any]:
    for name in fields:
        value = entry.get(name)
        if value is not None and value != "":
            return value
    return None


def display_text(attributes: Optional[Mapping[Any, Any]]) -> str:
    """Human-readable "Size: M, Color: red" summary."""
    normalized = normalize(attributes)
    return ", ".join(f"{k[:1].upper()}{k[1:]}: {v}" for k, v in normalized.items())
