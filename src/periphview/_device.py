# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Various internal functionality used by the parsing and device modules.

The descriptor is first turned into a tree of immutable option records, one record per node of
the register map. Repeated elements are expanded and register properties are resolved at this
stage, so that building the register map itself is a straightforward walk over the records.
"""

from __future__ import annotations

import dataclasses as dc
import re
from collections import defaultdict
from dataclasses import dataclass
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
    Union,
)

import periphview

from . import bindings
from .bindings import Access, BitRange, Dimensions, RegisterProperties
from .bits import parse_integer
from .errors import DescriptorDefinitionError, DescriptorParseError

if TYPE_CHECKING:
    from .parsing import Options


@dataclass(frozen=True)
class EnumeratedValue:
    """Named value of a field."""

    name: str
    description: str
    value: int


class FieldOptions(NamedTuple):
    """Description of a single (expanded) field."""

    name: str
    description: str
    bit_range: BitRange
    # Access declared on the field itself, if any
    access: Optional[Access]
    enumeration: Optional[Mapping[int, EnumeratedValue]]


class RegisterOptions(NamedTuple):
    """Description of a single (expanded) register."""

    name: str
    description: str
    # Offset relative to the parent peripheral or cluster
    offset: int
    # Effective register properties, either inherited or specified on the element itself
    reg_props: bindings.RegisterProperties
    fields: Tuple[FieldOptions, ...]


class ClusterOptions(NamedTuple):
    """Description of a single (expanded) cluster."""

    name: str
    description: str
    # Offset relative to the parent peripheral
    offset: int
    reg_props: bindings.RegisterProperties
    registers: Tuple[RegisterOptions, ...]


class PeripheralOptions(NamedTuple):
    """Description of a peripheral, after any derivation has been applied."""

    name: str
    description: str
    group_name: str
    base_address: int
    address_span: int
    reg_props: bindings.RegisterProperties
    children: Tuple[Union[RegisterOptions, ClusterOptions], ...]


@dataclass(frozen=True)
class RawPeripheral:
    """
    Attributes of a peripheral element as written in the descriptor.
    Every attribute except the element itself may be unset, in which case it can be provided by
    the peripheral named in derived_from.
    """

    element: bindings.PeripheralElement
    name: Optional[str] = None
    derived_from: Optional[str] = None
    description: Optional[str] = None
    group_name: Optional[str] = None
    base_address: Optional[int] = None
    address_span: Optional[int] = None
    size: Optional[int] = None
    access: Optional[Access] = None
    reset_value: Optional[int] = None
    registers: Optional[bindings.RegistersElement] = None

    @classmethod
    def from_element(cls, element: bindings.PeripheralElement) -> RawPeripheral:
        address_block = element.address_block
        own_props = element.register_properties

        return cls(
            element=element,
            name=element.name,
            derived_from=element.derived_from,
            description=element.description,
            group_name=element.group_name,
            base_address=element.base_address,
            address_span=address_block.size if address_block is not None else None,
            size=own_props.size,
            access=own_props.access,
            reset_value=own_props.reset_value,
            registers=element.registers,
        )


def merge_derived(base: RawPeripheral, derived: RawPeripheral) -> RawPeripheral:
    """
    Merge the attributes of a derived peripheral on top of those of its base peripheral.
    Attributes set on the derived peripheral win, unset ones are taken from the base.

    :param base: The peripheral named in the derivedFrom attribute, already merged itself.
    :param derived: The peripheral carrying the derivedFrom attribute.
    :return: The merged peripheral attributes.
    """
    merged: Dict[str, Any] = {}

    for field in dc.fields(RawPeripheral):
        own = getattr(derived, field.name)
        merged[field.name] = own if own is not None else getattr(base, field.name)

    # The element is used for error reporting, which should point at the derived peripheral
    merged["element"] = derived.element

    return RawPeripheral(**merged)


def topo_sort_derived_peripherals(
    peripherals: Mapping[str, RawPeripheral],
) -> List[RawPeripheral]:
    """
    Topologically sort the peripherals based on 'derivedFrom' attributes using Kahn's algorithm.
    The returned list has the property that the peripheral at index i does not derive from
    any of the peripherals at indices (i + 1)...

    :param peripherals: Mapping of peripheral name to peripheral attributes, in document order.
    :raises DescriptorDefinitionError: If a derivedFrom attribute is unresolvable.
    :return: List of peripherals topologically sorted based on the 'derivedFrom' attribute.
    """
    sorted_peripherals: List[RawPeripheral] = []
    no_dep_peripherals: List[RawPeripheral] = []
    dep_graph: Dict[str, List[RawPeripheral]] = defaultdict(list)

    for name, peripheral in peripherals.items():
        if peripheral.derived_from is not None:
            if peripheral.derived_from not in peripherals:
                raise DescriptorDefinitionError(
                    [peripheral.element],
                    f"Peripheral {name} is derived from the nonexistent peripheral "
                    f"'{peripheral.derived_from}'",
                )
            dep_graph[peripheral.derived_from].append(peripheral)
        else:
            no_dep_peripherals.append(peripheral)

    # Process in document order
    no_dep_peripherals.reverse()

    while no_dep_peripherals:
        peripheral = no_dep_peripherals.pop()
        sorted_peripherals.append(peripheral)
        # Each peripheral has a maximum of one in-edge since they can only derive from one
        # peripheral. Therefore, once they are encountered here they have no remaining dependencies.
        no_dep_peripherals.extend(reversed(dep_graph.pop(peripheral.name or "", [])))

    if dep_graph:
        remaining = [p.element for deps in dep_graph.values() for p in deps]
        raise DescriptorDefinitionError(
            remaining, "Cycle detected in the 'derivedFrom' attributes of the peripherals"
        )

    return sorted_peripherals


def resolve_derived_peripherals(
    peripherals: Mapping[str, RawPeripheral]
) -> Dict[str, RawPeripheral]:
    """
    Apply derivedFrom inheritance to all the peripherals.
    This runs over the whole mapping before any peripheral is built, since a peripheral may be
    derived from one that is declared later in the document.

    :param peripherals: Mapping of peripheral name to attributes, in document order.
    :return: Mapping of peripheral name to merged attributes, in document order.
    """
    resolved: Dict[str, RawPeripheral] = {}

    for peripheral in topo_sort_derived_peripherals(peripherals):
        if peripheral.derived_from is not None:
            peripheral = merge_derived(resolved[peripheral.derived_from], peripheral)
        resolved[peripheral.name or ""] = peripheral

    return {name: resolved[name] for name in peripherals}


_NUMERIC_RANGE_RE = re.compile(r"([0-9]+)-([0-9]+)")
_LETTER_RANGE_RE = re.compile(r"([a-zA-Z])-([a-zA-Z])")


def parse_dim_index(dim_index: str, count: int) -> List[str]:
    """
    Convert a dimIndex value to the list of labels substituted into the element name.

    :param dim_index: dimIndex text. Either a comma separated list, a numeric range "N-M" or a
                      letter range "A-Z".
    :param count: Number of elements in the array (the dim value).
    :raises ValueError: If the dimIndex is not valid for the given count.
    :return: One label per array element.
    """
    if "," in dim_index:
        components = [c.strip() for c in dim_index.split(",")]
        if len(components) != count:
            raise ValueError(
                f"dimIndex '{dim_index}' has {len(components)} entries, but dim is {count}"
            )
        return components

    if (match := _NUMERIC_RANGE_RE.fullmatch(dim_index.strip())) is not None:
        start, end = int(match[1]), int(match[2])
        if end - start + 1 < count:
            raise ValueError(f"dimIndex '{dim_index}' does not cover {count} elements")
        return [str(start + i) for i in range(count)]

    if (match := _LETTER_RANGE_RE.fullmatch(dim_index.strip())) is not None:
        start, end = ord(match[1]), ord(match[2])
        if end - start + 1 < count:
            raise ValueError(f"dimIndex '{dim_index}' does not cover {count} elements")
        return [chr(start + i) for i in range(count)]

    raise ValueError(f"dimIndex '{dim_index}' is not a list or a range")


def expand_dimensions(
    element: Union[bindings.RegisterLevelElement, bindings.FieldElement],
    name: str,
    offset: int,
) -> List[Tuple[str, int]]:
    """
    Expand a possibly repeated element into (name, offset) pairs, one per array element.

    :param element: Register, cluster or field element.
    :param name: Name template of the element. The first "%s" is replaced by the index label.
    :param offset: Offset of the first array element.
    :return: List of names and offsets.
    """
    dimensions: Optional[Dimensions] = element.dimensions

    if dimensions is None:
        return [(name, offset)]

    if dimensions.index is not None:
        try:
            labels = parse_dim_index(dimensions.index, dimensions.length)
        except ValueError as e:
            raise DescriptorDefinitionError([element], str(e)) from e
    else:
        labels = [str(i) for i in range(dimensions.length)]

    return [
        (name.replace("%s", label, 1), offset + i * dimensions.step)
        for i, label in enumerate(labels)
    ]


def extract_peripheral_options(
    raw: RawPeripheral,
    device_props: RegisterProperties,
    options: Options,
) -> PeripheralOptions:
    """
    Build the option record tree of a peripheral.

    :param raw: Peripheral attributes, with derivedFrom already applied.
    :param device_props: Device level register properties.
    :param options: Parsing options.
    :return: Description of the peripheral and all of its descendants.
    """
    missing = [
        name
        for name, value in (
            ("name", raw.name),
            ("baseAddress", raw.base_address),
            ("addressBlock/size", raw.address_span),
        )
        if value is None
    ]
    if missing:
        raise DescriptorDefinitionError(
            [raw.element], f"Peripheral is missing required element(s): {', '.join(missing)}"
        )

    assert raw.name is not None
    assert raw.base_address is not None
    assert raw.address_span is not None

    reg_props = RegisterProperties(
        size=raw.size, access=raw.access, reset_value=raw.reset_value
    ).inherit(device_props)

    children: List[Union[RegisterOptions, ClusterOptions]] = []

    if raw.registers is not None:
        for register in raw.registers.registers:
            children.extend(_extract_register_options(register, reg_props))
        for cluster in raw.registers.clusters:
            children.extend(_extract_cluster_options(cluster, reg_props, options))

    return PeripheralOptions(
        name=raw.name,
        description=raw.description or "",
        group_name=raw.group_name or "",
        base_address=raw.base_address,
        address_span=raw.address_span,
        reg_props=reg_props,
        children=tuple(sorted(children, key=lambda c: c.offset)),
    )


def _extract_cluster_options(
    element: bindings.ClusterElement,
    base_reg_props: RegisterProperties,
    options: Options,
) -> List[ClusterOptions]:
    reg_props = element.get_register_properties(base_reg_props)

    for nested in element.clusters:
        periphview.log.warning(
            f"Skipping cluster {nested.name} nested in cluster {element.name}; "
            "nested clusters are not supported"
        )

    registers: List[RegisterOptions] = []
    for register in element.registers:
        registers.extend(_extract_register_options(register, reg_props))

    if not registers and not options.keep_empty_clusters:
        periphview.log.info(f"Dropping cluster {element.name} without registers")
        return []

    sorted_registers = tuple(sorted(registers, key=lambda r: r.offset))

    return [
        ClusterOptions(
            name=name,
            description=element.description,
            offset=offset,
            reg_props=reg_props,
            registers=sorted_registers,
        )
        for name, offset in expand_dimensions(element, element.name, element.offset)
    ]


def _extract_register_options(
    element: bindings.RegisterElement,
    base_reg_props: RegisterProperties,
) -> List[RegisterOptions]:
    reg_props = element.get_register_properties(base_reg_props)

    if not bindings.FullRegisterProperties.is_full(reg_props):
        raise DescriptorDefinitionError(
            [element],
            "Missing required register properties. "
            f"Register has the following properties: {reg_props}",
        )

    if reg_props.size <= 0:
        raise DescriptorDefinitionError(
            [element], f"Invalid register size: {reg_props.size}"
        )

    fields: List[FieldOptions] = []
    for field in element.fields:
        fields.extend(_extract_field_options(field, reg_props.size))

    sorted_fields = tuple(sorted(fields, key=lambda f: f.bit_range.offset))

    return [
        RegisterOptions(
            name=name,
            description=element.description,
            offset=offset,
            reg_props=reg_props,
            fields=sorted_fields,
        )
        for name, offset in expand_dimensions(element, element.name, element.offset)
    ]


def _extract_field_options(
    element: bindings.FieldElement, register_size: int
) -> List[FieldOptions]:
    bit_range = element.bit_range

    if bit_range.width < 1:
        raise DescriptorDefinitionError(
            [element], f"Field {element.name} has an invalid bit width of {bit_range.width}"
        )

    enumeration = _extract_enumeration(element.enumeration)

    field_options = []

    for name, offset in expand_dimensions(element, element.name, bit_range.offset):
        if offset < 0 or offset + bit_range.width > register_size:
            raise DescriptorDefinitionError(
                [element],
                f"Field {name} [{offset + bit_range.width - 1}:{offset}] does not fit in a "
                f"{register_size}-bit register",
            )

        field_options.append(
            FieldOptions(
                name=name,
                description=element.description,
                bit_range=BitRange(offset=offset, width=bit_range.width),
                access=element.access,
                enumeration=enumeration,
            )
        )

    return field_options


def _extract_enumeration(
    element: Optional[bindings.EnumerationElement],
) -> Optional[Mapping[int, EnumeratedValue]]:
    """Build the value to enumerated value mapping of a field."""
    if element is None:
        return None

    enumeration: Dict[int, EnumeratedValue] = {}

    for enum_element in element.enums:
        value_text = enum_element.value_text
        if value_text is None:
            # Default values (isDefault) are not modelled
            continue

        value = parse_integer(value_text.lower())
        if value is None:
            periphview.log.debug(
                f"Skipping enumerated value {enum_element.name} with value '{value_text}'"
            )
            continue

        enumeration[value] = EnumeratedValue(
            name=enum_element.name,
            description=enum_element.description,
            value=value,
        )

    return MappingProxyType(enumeration)


def node_repr(
    klass: type,
    name: str,
    /,
    *,
    address: Optional[int] = None,
    length: Optional[int] = None,
    content: Optional[int] = None,
    content_max_width: int = 32,
    bool_props: Iterable[Any] = (),
) -> str:
    """
    Common pretty print function for register map nodes.

    :param klass: Class of the node.
    :param name: Name of the node.
    :param address: Address of the node.
    :param length: Length of the node.
    :param content: Content of the node.
    :param content_max_width: Available width of the node, used to zero-pad the value.
    :param bool_props: Additional arguments to include in the pretty print.

    :return: Pretty printed string representing the node.
    """
    address_str: str = f" @ 0x{address:08x}" if address is not None else ""
    length_str: str = f"<{length}>" if length is not None else ""
    value_str: str

    if content is not None:
        leading_zeros: str = "0" * ((content_max_width - content.bit_length()) // 4)
        value_str = f" = 0x{leading_zeros}{content:x}"
    else:
        value_str = ""

    props_str = f" ({', '.join(f'{v!s}' for v in bool_props)})" if bool_props else ""

    return f"[{name}{length_str}{address_str}{value_str}{props_str} {{{klass.__name__}}}]"

