# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Building blocks for the lxml element classes in the bindings module.
"""

from __future__ import annotations

import enum
import typing
from types import MappingProxyType
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterable,
    Literal,
    Mapping,
    Optional,
    Type,
    TypeVar,
    Union,
    overload,
)

from lxml import objectify
from typing_extensions import Self

from .bits import parse_integer
from .errors import DescriptorDefinitionError


class CaseInsensitiveStrEnum(enum.Enum):
    """Enum with string values where lookup by value ignores case."""

    @classmethod
    def _missing_(cls, value: object) -> Optional[Self]:
        if not isinstance(value, str):
            return None

        folded = value.casefold()
        return next((m for m in cls if m.value.casefold() == folded), None)


def to_int(text: str) -> int:
    """
    Convert a descriptor integer literal to an integer.

    :param text: Integer literal.
    :raises ValueError: If the text is not a valid literal.
    :return: Decoded integer.
    """
    value = parse_integer(text)
    if value is None:
        raise ValueError(f"Invalid integer literal: '{text}'")
    return value


def to_str(text: str) -> str:
    return text.strip()


def make_enum_converter(
    enum_cls: Type[CaseInsensitiveStrEnum],
) -> Callable[[str], CaseInsensitiveStrEnum]:
    """:return: Converter from element text to a member of enum_cls."""

    def convert(text: str) -> CaseInsensitiveStrEnum:
        try:
            return enum_cls(text.strip())
        except ValueError as e:
            raise ValueError(f"'{text}' is not a valid {enum_cls.__name__}") from e

    return convert


class DescriptorElement(objectify.ObjectifiedElement):
    """Base class for the lxml element classes of the descriptor tags."""

    TAG: str

    def __repr__(self) -> str:
        # Used in the messages of descriptor errors, so it points at the source line
        return self._repr()

    def _repr(self, props: Mapping[Any, Any] = MappingProxyType({})) -> str:
        """
        :param props: Extra properties to show after the tag.
        :return: Description of the element, its position among its siblings, its source line
                 and its ancestors.
        """
        parts = [self.tag]

        parent = self.getparent()
        if parent is not None:
            try:
                parts.append(f"({parent.index(self)})")
            except ValueError:
                pass

        if props:
            parts.append(f" {dict(props)}")

        if self.sourceline is not None:
            parts.append(f" line {self.sourceline}")

        description = f"[{''.join(parts)}]"

        if parent is not None:
            description += f" in {parent!r}"

        return description

    def _name_repr(self) -> str:
        """Variant of repr() that shows the text of the name child element."""
        name_elem = self.find("name")
        return self._repr(props={"name": name_elem.text if name_elem is not None else None})


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


# Marks an accessor without a default value
MISSING = _Missing()


O = TypeVar("O", bound=objectify.ObjectifiedElement)
T = TypeVar("T")


class _Accessor(Generic[T]):
    """Data descriptor reading a value out of the XML node it is accessed through."""

    KIND: str = ""

    def __init__(
        self,
        name: str,
        /,
        *,
        converter: Optional[Callable[[str], T]] = None,
        default: Union[T, _Missing] = MISSING,
    ) -> None:
        """
        :param name: Tag of the child element or name of the attribute.
        :param converter: Converts the raw text to the value returned by the descriptor.
                          If None, the raw value is returned.
        :param default: Value returned when the node has no such child or attribute. If not
                        given, absence is a definition error.
        """
        self.name: str = name
        self.converter: Optional[Callable[[str], T]] = converter
        self.default: Union[T, _Missing] = default

    @overload
    def __get__(self, node: Literal[None], owner: Optional[Type] = None) -> Self:
        ...

    @overload
    def __get__(self, node: O, owner: Optional[Type] = None) -> T:
        ...

    def __get__(self, node: Optional[O], owner: Any = None) -> Union[T, Self]:
        if node is None:
            return self

        found = self._lookup(node)

        if found is None:
            if isinstance(self.default, _Missing):
                raise DescriptorDefinitionError(
                    [node], f"Missing required {self.KIND} '{self.name}'"
                )
            return self.default

        raw, text = found

        if self.converter is None:
            return raw  # type: ignore

        try:
            return self.converter(text)
        except ValueError as e:
            raise DescriptorDefinitionError(
                [node], f"Invalid value for {self.KIND} '{self.name}': {e}"
            ) from e

    def _lookup(self, node: O) -> Optional[typing.Tuple[Any, str]]:
        """:return: The raw value and its text, or None if the node has no such value."""
        raise NotImplementedError


class Elem(_Accessor[T]):
    """Accessor for a child element. Without a converter the child element itself is returned."""

    KIND = "element"

    def _lookup(self, node: O) -> Optional[typing.Tuple[Any, str]]:
        child = node.find(self.name)
        if child is None:
            return None
        return child, child.text if child.text is not None else ""


class Attr(_Accessor[T]):
    """Accessor for an attribute of the element."""

    KIND = "attribute"

    def _lookup(self, node: O) -> Optional[typing.Tuple[Any, str]]:
        value = node.get(self.name)
        if value is None:
            return None
        return value, value


C = TypeVar("C", bound=DescriptorElement)


class BindingRegistry:
    """Element classes indexed by the tag they bind to."""

    def __init__(self) -> None:
        self._by_tag: Dict[str, Type[DescriptorElement]] = {}

    def add(self, element_class: Type[C], /) -> Type[C]:
        """Class decorator registering element_class for its TAG."""
        if element_class.TAG in self._by_tag:
            raise RuntimeError(f"Multiple bindings for the tag '{element_class.TAG}'")

        self._by_tag[element_class.TAG] = element_class

        return element_class

    @property
    def bindings(self) -> Mapping[str, Type[DescriptorElement]]:
        """Live view of the registered classes, indexed by tag."""
        return MappingProxyType(self._by_tag)


def iter_element_children(
    element: Optional[objectify.ObjectifiedElement], *tags: str
) -> Iterable[objectify.ObjectifiedElement]:
    """
    :param element: Element to iterate, or None.
    :param tags: Only yield children with one of these tags.
    :return: Iterator over the children of element. Empty if element is None.
    """
    if element is None:
        return iter(())

    return typing.cast(
        Iterable[objectify.ObjectifiedElement], element.iterchildren(*tags)  # type: ignore
    )
