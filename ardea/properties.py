"""
Properties - typed, multi-valued attribute bag attached to responses.

A ``PropertyType`` is a capability token: only code holding the key can read
or write the values stored under it. Keys compare by identity, two keys with
the same name are still different keys.
"""

from __future__ import annotations

from typing import Any, Dict, Generic, Iterator, List, Optional, TypeVar

from .faults import PropertyTypeFault


T = TypeVar("T")


class PropertyType(Generic[T]):
    """
    Typed property key.

    Args:
        name: Display name (diagnostics only)
        multivalued: When True values accumulate, otherwise the last write wins
    """

    __slots__ = ("name", "multivalued")

    def __init__(self, name: str, *, multivalued: bool = False):
        self.name = name
        self.multivalued = multivalued

    def __repr__(self) -> str:
        return f"PropertyType({self.name})"

    # Identity semantics
    __eq__ = object.__eq__
    __hash__ = object.__hash__

    # Built-in keys, assigned below
    MIME_TYPE: "PropertyType[str]"
    ENCODING: "PropertyType[str]"
    TITLE: "PropertyType[str]"
    HEADER: "PropertyType[tuple]"
    ASSET: "PropertyType[str]"
    META_TAG: "PropertyType[tuple]"
    META_HTTP_EQUIV: "PropertyType[tuple]"
    HEADER_TAG: "PropertyType[Any]"
    ESCAPE_XML: "PropertyType[bool]"
    REDIRECT_AFTER_ACTION: "PropertyType[bool]"


PropertyType.MIME_TYPE = PropertyType("mime_type")
PropertyType.ENCODING = PropertyType("encoding")
PropertyType.TITLE = PropertyType("title")
PropertyType.HEADER = PropertyType("header", multivalued=True)
PropertyType.ASSET = PropertyType("asset", multivalued=True)
PropertyType.META_TAG = PropertyType("meta_tag", multivalued=True)
PropertyType.META_HTTP_EQUIV = PropertyType("meta_http_equiv", multivalued=True)
PropertyType.HEADER_TAG = PropertyType("header_tag", multivalued=True)
PropertyType.ESCAPE_XML = PropertyType("escape_xml")
PropertyType.REDIRECT_AFTER_ACTION = PropertyType("redirect_after_action")


class PropertyMap:
    """
    Ordered mapping from PropertyType to values.

    Types iterate in first-insertion order, values in insertion order.
    """

    __slots__ = ("_values",)

    def __init__(self, other: Optional["PropertyMap"] = None):
        self._values: Dict[PropertyType[Any], List[Any]] = {}
        if other is not None:
            for property_type, values in other._values.items():
                self._values[property_type] = list(values)

    @staticmethod
    def _check(property_type: Optional[PropertyType[Any]]) -> None:
        if property_type is None:
            raise PropertyTypeFault()

    def add_value(self, property_type: PropertyType[T], value: Optional[T]) -> None:
        """
        Add a value following the type multiplicity.

        A ``None`` value removes every value of the type.
        """
        self._check(property_type)
        if value is None:
            self._values.pop(property_type, None)
        elif property_type.multivalued:
            self._values.setdefault(property_type, []).append(value)
        else:
            self._values[property_type] = [value]

    def set_value(self, property_type: PropertyType[T], value: Optional[T]) -> None:
        """Replace every value of the type with ``value`` (``None`` removes)."""
        self._check(property_type)
        if value is None:
            self._values.pop(property_type, None)
        else:
            self._values[property_type] = [value]

    def get_value(self, property_type: PropertyType[T]) -> Optional[T]:
        """Return the last value of the type or None."""
        self._check(property_type)
        values = self._values.get(property_type)
        return values[-1] if values else None

    def get_values(self, property_type: PropertyType[T]) -> Optional[List[T]]:
        """Return a copy of the values of the type or None."""
        self._check(property_type)
        values = self._values.get(property_type)
        return list(values) if values else None

    def remove(self, property_type: PropertyType[Any]) -> None:
        self._check(property_type)
        self._values.pop(property_type, None)

    def copy(self) -> "PropertyMap":
        return PropertyMap(self)

    def __contains__(self, property_type: object) -> bool:
        return property_type in self._values

    def __iter__(self) -> Iterator[PropertyType[Any]]:
        return iter(list(self._values))

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        items = ", ".join(f"{t.name}={v!r}" for t, v in self._values.items())
        return f"PropertyMap({items})"
