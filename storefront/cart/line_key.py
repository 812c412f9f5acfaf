"""
Cart line identity.

Key format: "{product_id}|{name}:{value}|{name}:{value}" with names sorted,
or just "{product_id}" when the selection is empty. Two adds with equal keys
merge into one line; different keys never merge.
"""

from typing import Any, Mapping, Optional

from storefront.catalog.attributes import normalize

LINE_KEY_SEPARATOR = "|"


def _escape(text: str) -> str:
    # keeps keys injective when values contain separator characters
    return text.replace("\\", "\\\\").replace("|", "\\|").replace(":", "\\:")


def build_key(product_id: str, selected: Optional[Mapping[Any, Any]] = None) -> str:
    """
    Build the canonical line key.

    Raises:
        ValueError: product_id is empty
    """
    product_id = str(product_id or "").strip()
    if not product_id:
        raise ValueError("product_id is required to build a cart line key")

    head = _escape(product_id)
    attributes = normalize(selected)
    if not attributes:
        return head

    pairs = [f"{_escape(name)}:{_escape(attributes[name])}" for name in sorted(attributes)]
    return LINE_KEY_SEPARATOR.join([head, *pairs])
