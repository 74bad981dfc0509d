"""
Cache Key Codec

Pure functions from product ids and query fingerprints to cache keys.

Key Layout (entity = "product"):
    product:{id}:meta              descriptive fields (long TTL)
    product:{id}:price             price and visibility flags (short TTL)
    product:{id}:variants          ordered variants list (short TTL)
    product:{id}:detail            get-or-set reload slot
    product:{id}:detail:lock       stampede lock for the reload slot
    product:list:{fingerprint}     offset list pages
    product:list:cursor:{fp}       cursor pages

Every list and cursor key shares the "product:list:" prefix, so a single
prefix delete drops them all after a write.
"""

from collections.abc import Mapping
from enum import Enum
from typing import Any

from catalog_cache.core.config.constants import (
    DEFAULT_ENTITY_PREFIX,
    FINGERPRINT_SEPARATOR,
    KEY_CURSOR,
    KEY_DETAIL,
    KEY_LIST,
    KEY_LIST_PATTERN,
    KEY_META,
    KEY_PRICE,
    KEY_VARIANTS,
    LOCK_SUFFIX,
)

# Characters with structural meaning inside a fingerprint, percent-escaped in values
_ESCAPES = str.maketrans({"%": "%25", "|": "%7C", ":": "%3A", ",": "%2C"})


def lock_key_for(key: str) -> str:
    """Return the stampede lock key guarding ``key``."""
    return f"{key}{LOCK_SUFFIX}"


def _scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        value = value.value
    return str(value).translate(_ESCAPES)


def _render(value: Any) -> str:
    if isinstance(value, (set, frozenset)):
        value = sorted(value, key=str)
    if isinstance(value, (list, tuple)):
        return ",".join(_scalar(item) for item in value)
    return _scalar(value)


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, set, frozenset, dict)) and len(value) == 0:
        return True
    return False


def build_fingerprint(params: Mapping[str, Any]) -> str:
    """
    Build a deterministic string from a query's parameters.

    Absent or empty parameters are dropped, the rest are sorted by name and
    rendered as ``name:value`` joined by ``|``. Reserved characters inside
    values are percent-escaped, so two distinct parameter sets never render
    to the same fingerprint.

    Args:
        params: Query parameters (values may be scalars, bools, sequences)

    Returns:
        str: Fingerprint, empty string when no parameter is set

    Example:
        >>> build_fingerprint({"page": 2, "search": "a|b", "sort_by": None})
        'page:2|search:a%7Cb'
    """
    parts = []
    for name in sorted(params):
        value = params[name]
        if _is_empty(value):
            continue
        if isinstance(value, Mapping):
            rendered = build_fingerprint(value).translate(_ESCAPES)
        else:
            rendered = _render(value)
        parts.append(f"{_scalar(name)}:{rendered}")
    return FINGERPRINT_SEPARATOR.join(parts)


class KeyCodec:
    """
    Builds cache keys for one entity namespace.

    Usage:
        codec = KeyCodec()
        codec.meta_key(42)         # "product:42:meta"
        codec.list_key("page:1")   # "product:list:page:1"
    """

    def __init__(self, entity: str = DEFAULT_ENTITY_PREFIX):
        self.entity = entity

    def meta_key(self, product_id: int | str) -> str:
        return KEY_META.format(entity=self.entity, id=product_id)

    def price_key(self, product_id: int | str) -> str:
        return KEY_PRICE.format(entity=self.entity, id=product_id)

    def variants_key(self, product_id: int | str) -> str:
        return KEY_VARIANTS.format(entity=self.entity, id=product_id)

    def detail_key(self, product_id: int | str) -> str:
        return KEY_DETAIL.format(entity=self.entity, id=product_id)

    def lock_key(self, product_id: int | str) -> str:
        """Lock taken by the stampede guard while reloading the detail key."""
        return lock_key_for(self.detail_key(product_id))

    def list_key(self, fingerprint: str) -> str:
        return KEY_LIST.format(entity=self.entity, fingerprint=fingerprint)

    def cursor_key(self, fingerprint: str) -> str:
        return KEY_CURSOR.format(entity=self.entity, fingerprint=fingerprint)

    def list_pattern(self) -> str:
        return KEY_LIST_PATTERN.format(entity=self.entity)

    def field_keys(self, product_id: int | str) -> tuple[str, str, str]:
        """Return (meta, price, variants) keys for a product."""
        return (
            self.meta_key(product_id),
            self.price_key(product_id),
            self.variants_key(product_id),
        )
