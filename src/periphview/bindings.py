# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
lxml element classes for the CMSIS-SVD tags that the register map is built from.

Each class is bound to one tag and exposes the child elements and attributes the register map
needs as typed properties. Elements and attributes not listed here are ignored.
"""

from __future__ import annotations

import enum
import typing
from dataclasses import dataclass
from typing import Iterator, NamedTuple, Optional, Union

from lxml import objectify
from typing_extensions import TypeGuard

from ._bindings import (
    Attr,
    BindingRegistry,
    CaseInsensitiveStrEnum,
    DescriptorElement,
    Elem,
    iter_element_children,
    make_enum_converter,
    to_int,
    to_str,
)
from .errors import DescriptorDefinitionError

BINDING_REGISTRY = BindingRegistry()

# Decorator registering an element class
binding = BINDING_REGISTRY.add

# Registered element classes by tag, used to set up the XML parser
BINDINGS = BINDING_REGISTRY.bindings


@enum.unique
class Access(CaseInsensitiveStrEnum):
    """Access type of a register or field, as named by the SVD accessType values."""

    READ_ONLY = "read-only"
    WRITE_ONLY = "write-only"
    READ_WRITE = "read-write"
    # Writable once after reset, not readable
    WRITE_ONCE = "writeOnce"
    # Writable once after reset, readable
    READ_WRITE_ONCE = "read-writeOnce"

    def normalized(self) -> Access:
        """
        Collapse the write-once variants, since the register map only distinguishes
        read-only, write-only and read-write.
        """
        if self is Access.WRITE_ONCE:
            return Access.WRITE_ONLY
        if self is Access.READ_WRITE_ONCE:
            return Access.READ_WRITE
        return self


to_access = make_enum_converter(Access)


def _children(
    element: Optional[objectify.ObjectifiedElement], tag: str
) -> Iterator[typing.Any]:
    return iter(iter_element_children(element, tag))


@binding
class EnumeratedValueElement(DescriptorElement):
    """<enumeratedValue>: a named value of a field."""

    TAG: str = "enumeratedValue"

    name: Elem[str] = Elem("name", converter=to_str)
    description: Elem[str] = Elem("description", converter=to_str, default="")

    # Unparsed <value> text. None for <isDefault> entries, and may hold don't-care bits.
    value_text: Elem[Optional[str]] = Elem("value", converter=to_str, default=None)

    def __repr__(self) -> str:
        return self._name_repr()


@binding
class EnumerationElement(DescriptorElement):
    """<enumeratedValues>"""

    TAG: str = "enumeratedValues"

    @property
    def enums(self) -> Iterator[EnumeratedValueElement]:
        return _children(self, EnumeratedValueElement.TAG)


class BitRange(NamedTuple):
    """Position of a field within its register."""

    # Least significant bit
    offset: int

    # Number of bits
    width: int

    @property
    def msb(self) -> int:
        """Most significant bit."""
        return self.offset + self.width - 1


@dataclass
class Dimensions:
    """Repetition of an element, from its dim, dimIncrement and dimIndex children."""

    # Number of instances
    length: int

    # Address (or bit) distance between consecutive instances
    step: int

    # Unparsed dimIndex text
    index: Optional[str] = None


class DimElementGroupMixin(objectify.ObjectifiedElement):
    """Elements that may be repeated with dim/dimIncrement/dimIndex."""

    _dim: Elem[Optional[int]] = Elem("dim", converter=to_int, default=None)
    _dim_increment: Elem[Optional[int]] = Elem(
        "dimIncrement", converter=to_int, default=None
    )
    _dim_index: Elem[Optional[str]] = Elem("dimIndex", converter=to_str, default=None)

    @property
    def dimensions(self) -> Optional[Dimensions]:
        """
        :raises DescriptorDefinitionError: If dim is given without dimIncrement.
        :return: Repetition of the element, or None if it is not repeated.
        """
        length = self._dim
        if length is None:
            return None

        step = self._dim_increment
        if step is None:
            raise DescriptorDefinitionError(
                [self], "Element has a dim element, with no dimIncrement element."
            )

        return Dimensions(length=length, step=step, index=self._dim_index)


@binding
class FieldElement(DescriptorElement, DimElementGroupMixin):
    """<field>"""

    TAG: str = "field"

    name: Elem[str] = Elem("name", converter=to_str)
    description: Elem[str] = Elem("description", converter=to_str, default="")

    # None when the field takes the access of its register
    access: Elem[Optional[Access]] = Elem("access", converter=to_access, default=None)

    # The three ways of placing a field in a register
    _bit_offset: Elem[Optional[int]] = Elem("bitOffset", converter=to_int, default=None)
    _bit_width: Elem[Optional[int]] = Elem("bitWidth", converter=to_int, default=None)
    _bit_range: Elem[Optional[str]] = Elem("bitRange", converter=to_str, default=None)
    _lsb: Elem[Optional[int]] = Elem("lsb", converter=to_int, default=None)
    _msb: Elem[Optional[int]] = Elem("msb", converter=to_int, default=None)

    @property
    def enumeration(self) -> Optional[EnumerationElement]:
        """The first <enumeratedValues> of the field. Any others are ignored."""
        return next(_children(self, EnumerationElement.TAG), None)

    @property
    def bit_range(self) -> BitRange:
        """
        Position of the field, from bitOffset/bitWidth, bitRange "[msb:lsb]" or msb/lsb,
        whichever is found first in that order.

        :raises DescriptorDefinitionError: If none of the forms is present or bitRange is
                                           malformed.
        """
        offset, width = self._bit_offset, self._bit_width
        if offset is not None and width is not None:
            return BitRange(offset=offset, width=width)

        range_text = self._bit_range
        if range_text is not None:
            inner = range_text.strip()
            try:
                if not (inner.startswith("[") and inner.endswith("]")):
                    raise ValueError(range_text)
                msb_text, lsb_text = inner[1:-1].split(":")
                msb, lsb = to_int(msb_text), to_int(lsb_text)
            except ValueError as e:
                raise DescriptorDefinitionError(
                    [self], f"Invalid bitRange '{range_text}', expected [msb:lsb]"
                ) from e
            return BitRange(offset=lsb, width=msb - lsb + 1)

        msb_value, lsb_value = self._msb, self._lsb
        if msb_value is not None and lsb_value is not None:
            return BitRange(offset=lsb_value, width=msb_value - lsb_value + 1)

        raise DescriptorDefinitionError(
            [self],
            f"Field {self.name} must have either bitOffset and bitWidth elements, "
            "bitRange Element, or msb and lsb elements.",
        )

    def __repr__(self) -> str:
        return self._name_repr()


@binding
class FieldsElement(DescriptorElement):
    """<fields>"""

    TAG: str = "fields"


@dataclass
class RegisterProperties:
    """
    The size, access and resetValue defaults that device, peripheral and cluster elements pass
    down to the registers below them. None means not set at that level.
    """

    # Register width in bits
    size: Optional[int]
    access: Optional[Access]
    reset_value: Optional[int]

    def inherit(self, base_props: RegisterProperties) -> RegisterProperties:
        """:return: These properties, with unset values taken from base_props."""

        def pick(own, base):
            return own if own is not None else base

        return RegisterProperties(
            size=pick(self.size, base_props.size),
            access=pick(self.access, base_props.access),
            reset_value=pick(self.reset_value, base_props.reset_value),
        )


class FullRegisterProperties(typing.Protocol):
    """Register properties with every value set."""

    size: int
    access: Access
    reset_value: int

    @staticmethod
    def is_full(props: RegisterProperties) -> TypeGuard[FullRegisterProperties]:
        return None not in (props.size, props.access, props.reset_value)


# Fallbacks for what the <device> element leaves unset
DEFAULT_REGISTER_PROPERTIES = RegisterProperties(
    size=32, access=Access.READ_WRITE, reset_value=0
)


class RegisterPropertiesGroupMixin(objectify.ObjectifiedElement):
    """Elements that may set size, access and resetValue for the registers they contain."""

    _size: Elem[Optional[int]] = Elem("size", converter=to_int, default=None)
    _access: Elem[Optional[Access]] = Elem("access", converter=to_access, default=None)
    _reset_value: Elem[Optional[int]] = Elem(
        "resetValue", converter=to_int, default=None
    )

    @property
    def register_properties(self) -> RegisterProperties:
        """Only the properties set on this element."""
        return RegisterProperties(
            size=self._size,
            access=self._access,
            reset_value=self._reset_value,
        )

    def get_register_properties(
        self, base_props: RegisterProperties
    ) -> RegisterProperties:
        """:return: The properties set on this element, falling back to base_props."""
        return self.register_properties.inherit(base_props)


@binding
class RegisterElement(
    DescriptorElement,
    DimElementGroupMixin,
    RegisterPropertiesGroupMixin,
):
    """<register>"""

    TAG: str = "register"

    name: Elem[str] = Elem("name", converter=to_str)
    description: Elem[str] = Elem("description", converter=to_str, default="")

    # Relative to the enclosing peripheral or cluster
    offset: Elem[int] = Elem("addressOffset", converter=to_int)

    _fields: Elem[Optional[FieldsElement]] = Elem("fields", default=None)

    @property
    def fields(self) -> Iterator[FieldElement]:
        return _children(self._fields, FieldElement.TAG)

    def __repr__(self) -> str:
        return self._name_repr()


@binding
class ClusterElement(
    DescriptorElement,
    DimElementGroupMixin,
    RegisterPropertiesGroupMixin,
):
    """<cluster>"""

    TAG: str = "cluster"

    name: Elem[str] = Elem("name", converter=to_str)
    description: Elem[str] = Elem("description", converter=to_str, default="")

    # Relative to the peripheral
    offset: Elem[int] = Elem("addressOffset", converter=to_int)

    @property
    def registers(self) -> Iterator[RegisterElement]:
        return _children(self, RegisterElement.TAG)

    @property
    def clusters(self) -> Iterator[ClusterElement]:
        """Clusters nested in this one. The register map does not support these."""
        return _children(self, ClusterElement.TAG)

    def __repr__(self) -> str:
        return self._name_repr()


@binding
class RegistersElement(DescriptorElement):
    """<registers>"""

    TAG: str = "registers"

    @property
    def registers(self) -> Iterator[RegisterElement]:
        return _children(self, RegisterElement.TAG)

    @property
    def clusters(self) -> Iterator[ClusterElement]:
        return _children(self, ClusterElement.TAG)


@binding
class AddressBlockElement(DescriptorElement):
    """<addressBlock>"""

    TAG: str = "addressBlock"

    # Length of the block in bytes
    size: Elem[int] = Elem("size", converter=to_int)


@binding
class PeripheralElement(DescriptorElement, RegisterPropertiesGroupMixin):
    """
    <peripheral>

    Everything except derivedFrom is optional here, because a derived peripheral may take any
    of it from its base. Required values are checked after the derived peripherals are merged.
    """

    TAG: str = "peripheral"

    derived_from: Attr[Optional[str]] = Attr("derivedFrom", default=None)

    name: Elem[Optional[str]] = Elem("name", converter=to_str, default=None)
    description: Elem[Optional[str]] = Elem(
        "description", converter=to_str, default=None
    )
    base_address: Elem[Optional[int]] = Elem(
        "baseAddress", converter=to_int, default=None
    )
    group_name: Elem[Optional[str]] = Elem("groupName", converter=to_str, default=None)

    # Only the first address block is used
    address_block: Elem[Optional[AddressBlockElement]] = Elem(
        "addressBlock", default=None
    )

    registers: Elem[Optional[RegistersElement]] = Elem("registers", default=None)

    def __repr__(self) -> str:
        name_elem = self.find("name")
        props = {"name": name_elem.text if name_elem is not None else None}

        if (derived_from := self.derived_from) is not None:
            props["derived_from"] = derived_from

        return self._repr(props=props)


@binding
class PeripheralsElement(DescriptorElement):
    """<peripherals>"""

    TAG: str = "peripherals"


@binding
class DeviceElement(DescriptorElement, RegisterPropertiesGroupMixin):
    """<device>, the root of the document."""

    TAG: str = "device"

    name: Elem[str] = Elem("name", converter=to_str, default="")

    _peripherals: Elem[PeripheralsElement] = Elem("peripherals")

    @property
    def peripherals(self) -> Iterator[PeripheralElement]:
        return _children(self._peripherals, PeripheralElement.TAG)


RegisterLevelElement = Union[RegisterElement, ClusterElement]
