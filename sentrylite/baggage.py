"""W3C baggage strings: list-members with optional properties.

Duplicate list-members are resolved by keeping the last one, as
OpenTelemetry does.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from string import hexdigits
from typing import NamedTuple

MAX_MEMBERS = 180
MAX_BYTES_PER_MEMBER = 4096
MAX_BYTES_PER_BAGGAGE_STRING = 8192

LIST_DELIMITER = ","
KEY_VALUE_DELIMITER = "="
PROPERTY_DELIMITER = ";"

_SPACE = r"[\t\n\f\r ]*"
KEY_DEF = r"([\x21\x23-\x27\x2A\x2B\x2D\x2E\x30-\x39\x41-\x5a\x5e-\x7a\x7c\x7e]+)"
VALUE_DEF = r"([\x21\x23-\x2b\x2d-\x3a\x3c-\x5B\x5D-\x7e]*)"
_KEY_VALUE_DEF = _SPACE + KEY_DEF + _SPACE + KEY_VALUE_DELIMITER + _SPACE + VALUE_DEF + _SPACE

_KEY_RE = re.compile(KEY_DEF)
_VALUE_RE = re.compile(VALUE_DEF)
_PROPERTY_RE = re.compile(r"(?:" + _SPACE + KEY_DEF + _SPACE + r"|" + _KEY_VALUE_DEF + r")")

_WHITESPACE = (
    "\t\n\v\f\r \x85\xa0\u1680\u2000\u2001\u2002\u2003\u2004\u2005"
    "\u2006\u2007\u2008\u2009\u200a\u2028\u2029\u202f\u205f\u3000"
)
_HEX = "0123456789ABCDEF"


class BaggageError(ValueError):
    """Base class for baggage errors."""


class InvalidKeyError(BaggageError):
    """A key does not conform to the specification."""


class InvalidValueError(BaggageError):
    """A value does not conform to the specification."""


class InvalidPropertyError(BaggageError):
    """A list-member property is invalid."""


class InvalidMemberError(BaggageError):
    """A list-member is invalid."""


class MemberNumberError(BaggageError):
    """A baggage-string has too many list-members."""


class MemberBytesError(BaggageError):
    """A list-member is too large."""


class BaggageBytesError(BaggageError):
    """A baggage-string is too large."""


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8", "surrogateescape"))


def _valid_key(key: str) -> bool:
    return _KEY_RE.fullmatch(key) is not None


def _valid_value(value: str) -> bool:
    return _VALUE_RE.fullmatch(value) is not None


@dataclass(frozen=True)
class Property:
    """A metadata entry of a list-member.

    ``has_value`` tells a missing value from an empty one; a property
    without ``has_data`` is invalid.
    """

    key: str = ""
    value: str = ""
    has_value: bool = False
    has_data: bool = False

    def validate(self) -> None:
        """Raise a BaggageError if the property does not conform."""
        if not self.has_data:
            raise InvalidPropertyError(
                f"invalid property: invalid baggage list-member property: {self!r}"
            )
        if not _valid_key(self.key):
            raise InvalidKeyError(f"invalid property: invalid key: {self.key!r}")
        if self.has_value and not _valid_value(self.value):
            raise InvalidValueError(f"invalid property: invalid value: {self.value!r}")
        if not self.has_value and self.value != "":
            raise BaggageError("invalid property: inconsistent value")

    def __str__(self) -> str:
        if self.has_value:
            return f"{self.key}{KEY_VALUE_DELIMITER}{self.value}"
        return self.key


def new_key_property(key: str) -> Property:
    """Return a property with a key and no value."""
    if not _valid_key(key):
        raise InvalidKeyError(f"invalid key: {key!r}")
    return Property(key=key, has_data=True)


def new_key_value_property(key: str, value: str) -> Property:
    """Return a property with a key and a value."""
    if not _valid_key(key):
        raise InvalidKeyError(f"invalid key: {key!r}")
    if not _valid_value(value):
        raise InvalidValueError(f"invalid value: {value!r}")
    return Property(key=key, value=value, has_value=True, has_data=True)


def parse_property(text: str) -> Property:
    """Decode a property; an empty string gives an invalid, empty property."""
    if text == "":
        return Property()
    match = _PROPERTY_RE.fullmatch(text)
    if match is None:
        raise InvalidPropertyError(f"invalid baggage list-member property: {text!r}")
    if match.group(1):
        return Property(key=match.group(1), has_data=True)
    return Property(key=match.group(2), value=match.group(3), has_value=True, has_data=True)


def _internal(properties: Iterable[Property]) -> tuple[Property, ...]:
    return tuple(Property(p.key, p.value, p.has_value) for p in properties)


@dataclass(frozen=True)
class Member:
    """A list-member of a baggage-string."""

    key: str = ""
    value: str = ""
    properties: tuple[Property, ...] = field(default=())
    has_data: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "properties", tuple(self.properties))

    def validate(self) -> None:
        """Raise a BaggageError if the member does not conform."""
        if not self.has_data:
            raise InvalidMemberError(f"invalid baggage list-member: {self!r}")
        if not _valid_key(self.key):
            raise InvalidKeyError(f"invalid key: {self.key!r}")
        for prop in self.properties:
            prop.validate()

    def __str__(self) -> str:
        text = f"{self.key}{KEY_VALUE_DELIMITER}{percent_encode_value(self.value)}"
        if self.properties:
            text += PROPERTY_DELIMITER + PROPERTY_DELIMITER.join(
                str(prop) for prop in self.properties
            )
        return text


def new_member(key: str, value: str, *args: Property) -> Member:
    """Return a validated member; the value is kept as given."""
    member = Member(key=key, value=value, properties=tuple(args), has_data=True)
    member.validate()
    return member


def _path_unescape(text: str) -> str:
    out = bytearray()
    index = 0
    while index < len(text):
        char = text[index]
        if char == "%":
            digits = text[index + 1:index + 3]
            if len(digits) < 2 or not all(d in hexdigits for d in digits):
                raise BaggageError(f"invalid URL escape {text[index:index + 3]!r}")
            out.append(int(digits, 16))
            index += 3
        else:
            out.extend(char.encode("utf-8", "surrogateescape"))
            index += 1
    return out.decode("utf-8", "surrogateescape")


def parse_member(text: str) -> Member:
    """Decode a list-member, percent-decoding its value."""
    size = _byte_len(text)
    if size > MAX_BYTES_PER_MEMBER:
        raise MemberBytesError(f"list-member too large: {size}")
    head, sep, tail = text.partition(PROPERTY_DELIMITER)
    props = [parse_property(part) for part in tail.split(PROPERTY_DELIMITER)] if sep else []
    key, sep, value = head.partition(KEY_VALUE_DELIMITER)
    if not sep:
        raise InvalidMemberError(f"invalid baggage list-member: {text!r}")
    key = key.strip(_WHITESPACE)
    value = value.strip(_WHITESPACE)
    if not _valid_key(key):
        raise InvalidKeyError(f"invalid key: {key!r}")
    if not _valid_value(value):
        raise InvalidValueError(f"invalid value: {value!r}")
    return Member(key=key, value=_path_unescape(value), properties=tuple(props), has_data=True)


def percent_encode_value(value: str) -> str:
    """Percent-encode every octet of characters a baggage value may not hold."""
    parts = []
    for char in value:
        if char != "%" and _valid_value(char):
            parts.append(char)
        else:
            parts.extend(
                "%" + _HEX[b >> 4] + _HEX[b & 15]
                for b in char.encode("utf-8", "surrogateescape")
            )
    return "".join(parts)


class _Item(NamedTuple):
    value: str
    properties: tuple[Property, ...]


class Baggage:
    """An immutable set of list-members keyed by member key."""

    __slots__ = ("_list",)

    def __init__(self) -> None:
        self._list: dict[str, _Item] = {}

    @classmethod
    def _from_items(cls, items: Mapping[str, _Item]) -> Baggage:
        bag = cls()
        bag._list = dict(items)
        return bag

    def member(self, key: str) -> Member:
        """Return the member for ``key``, or an empty invalid member."""
        item = self._list.get(key)
        if item is None:
            return Member()
        return Member(key=key, value=item.value, properties=item.properties, has_data=True)

    def members(self) -> list[Member]:
        """Return all members; their order has no significance."""
        return [self.member(key) for key in self._list]

    def set_member(self, member: Member) -> Baggage:
        """Return a copy with ``member`` added or replacing one of the same key."""
        if not member.has_data:
            raise InvalidMemberError("invalid baggage list-member")
        items = dict(self._list)
        items[member.key] = _Item(member.value, _internal(member.properties))
        return Baggage._from_items(items)

    def delete_member(self, key: str) -> Baggage:
        """Return a copy without the member for ``key``."""
        return Baggage._from_items({k: v for k, v in self._list.items() if k != key})

    def __len__(self) -> int:
        return len(self._list)

    def __str__(self) -> str:
        return LIST_DELIMITER.join(
            str(Member(key=k, value=v.value, properties=v.properties))
            for k, v in self._list.items()
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Baggage):
            return NotImplemented
        return self._list == other._list

    def __hash__(self) -> int:
        return hash(frozenset(self._list.items()))

    def __repr__(self) -> str:
        return f"Baggage({str(self)!r})"


def new_baggage(*args: Member) -> Baggage:
    """Build baggage from already validated members; the last duplicate wins."""
    items: dict[str, _Item] = {}
    for member in args:
        if not member.has_data:
            raise InvalidMemberError("invalid baggage list-member")
        items[member.key] = _Item(member.value, _internal(member.properties))
    if len(items) > MAX_MEMBERS:
        raise MemberNumberError("too many list-members in baggage-string")
    bag = Baggage._from_items(items)
    size = _byte_len(str(bag))
    if size > MAX_BYTES_PER_BAGGAGE_STRING:
        raise BaggageBytesError(f"baggage-string too large: {size}")
    return bag


def parse(text: str) -> Baggage:
    """Decode a baggage-string; the last duplicate member wins."""
    if text == "":
        return Baggage()
    size = _byte_len(text)
    if size > MAX_BYTES_PER_BAGGAGE_STRING:
        raise BaggageBytesError(f"baggage-string too large: {size}")
    items: dict[str, _Item] = {}
    for part in text.split(LIST_DELIMITER):
        member = parse_member(part)
        items[member.key] = _Item(member.value, _internal(member.properties))
    if len(items) > MAX_MEMBERS:
        raise MemberNumberError("too many list-members in baggage-string")
    return Baggage._from_items(items)