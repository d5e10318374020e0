# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
High level representation of the register map of a device.

The register map is a tree of peripherals, clusters, registers and fields. Each peripheral owns
a cached copy of its memory region, as last read from the device; registers decode their value
from that copy and fields read their value through their register. The tree itself never talks
to the device. Reading and writing device memory is done by the controller module.

Ownership flows from the register map down to the fields. Nodes only hold weak references to
their parent, so the whole tree goes away once the register map is dropped.
"""

from __future__ import annotations

import enum
import re
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass
from math import ceil
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Union,
)

import periphview

from . import bindings
from ._bindings import CaseInsensitiveStrEnum
from ._device import (
    ClusterOptions,
    EnumeratedValue,
    FieldOptions,
    PeripheralOptions,
    RawPeripheral,
    RegisterOptions,
    extract_peripheral_options,
    node_repr,
    resolve_derived_peripherals,
)
from .bindings import Access, BitRange
from .bits import binary_format, extract_bits, hex_format, mask, parse_integer
from .errors import (
    DescriptorDefinitionError,
    InvalidEditValue,
    NodeKeyError,
    UnsupportedRegisterSize,
)
from .memory_block import MemoryBlock, decode
from .path import NodePath

if TYPE_CHECKING:
    from .parsing import Options


@enum.unique
class NumberFormat(CaseInsensitiveStrEnum):
    """Number base used when displaying a node value."""

    # Use the format of the parent node. Registers default to hexadecimal, fields to hexadecimal
    # if they are at least 4 bits wide and binary otherwise.
    AUTO = "auto"
    HEXADECIMAL = "hexadecimal"
    DECIMAL = "decimal"
    BINARY = "binary"


@dataclass(frozen=True)
class NodeSetting:
    """Persisted display state of a single node."""

    # Dotted path of the node.
    node: str

    # Display format chosen for the node.
    format: NumberFormat = NumberFormat.AUTO

    # Whether the node is expanded. None for nodes that can't be expanded (fields).
    expanded: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        """:return: JSON compatible representation of the setting."""
        result: Dict[str, Any] = {"node": self.node}
        if self.expanded is not None:
            result["expanded"] = self.expanded
        result["format"] = self.format.value
        return result

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> NodeSetting:
        """
        :param obj: JSON object as produced by to_dict().
        :raises ValueError: If the object is not a valid setting.
        :return: The decoded setting.
        """
        node = obj.get("node")
        if not isinstance(node, str) or not node:
            raise ValueError(f"Invalid node path in setting: {obj!r}")

        expanded = obj.get("expanded")
        if expanded is not None and not isinstance(expanded, bool):
            raise ValueError(f"Invalid expanded flag in setting: {obj!r}")

        return cls(
            node=node,
            format=NumberFormat(obj.get("format", NumberFormat.AUTO.value)),
            expanded=expanded,
        )


class _Node(ABC):
    """Common functionality of all the register map nodes."""

    def __init__(self, name: str, description: str, parent: Optional[_Node]) -> None:
        self._name: str = name
        self._description: str = description
        self._parent_ref: Optional[weakref.ref[_Node]] = (
            weakref.ref(parent) if parent is not None else None
        )

        # Display state
        self.expanded: bool = False
        self.format: NumberFormat = NumberFormat.AUTO

    @property
    def name(self) -> str:
        """Name of the node."""
        return self._name

    @property
    def description(self) -> str:
        """Description of the node."""
        return self._description

    @property
    def parent(self) -> Optional[_Node]:
        """
        Parent of the node, or None for peripherals.

        :raises ReferenceError: If the register map owning the node no longer exists.
        """
        if self._parent_ref is None:
            return None

        parent = self._parent_ref()
        if parent is None:
            raise ReferenceError(f"The register map containing {self.name} no longer exists")

        return parent

    @property
    def path(self) -> NodePath:
        """Dotted path of the node, starting at the peripheral."""
        parent = self.parent
        if parent is None:
            return NodePath(self.name)
        return parent.path.join(self.name)

    @property
    def children(self) -> Sequence[_Node]:
        """Child nodes, ordered by ascending offset."""
        return ()

    @property
    def resolved_format(self) -> NumberFormat:
        """
        The format used to display the node value.
        Nodes with the AUTO format use the resolved format of their parent.
        """
        if self.format is not NumberFormat.AUTO:
            return self.format

        parent = self.parent
        if parent is None:
            return self.format

        return parent.resolved_format

    @property
    @abstractmethod
    def label(self) -> str:
        """Single line display text of the node."""
        ...

    @property
    @abstractmethod
    def copy_value(self) -> str:
        """Value of the node formatted for copying to the clipboard."""
        ...

    def find_by_path(self, path: Sequence[str]) -> Optional[_Node]:
        """
        Find a descendant node.

        :param path: Names of the nodes to traverse, relative to this node.
        :return: The node, or None if no node matched the path.
        """
        node: _Node = self

        for part in path:
            child = next((c for c in node.children if c.name == part), None)
            if child is None:
                return None
            node = child

        return node

    def save_state(self, prefix: Optional[NodePath] = None) -> List[NodeSetting]:
        """
        :param prefix: Path of the parent node, if any.
        :return: Settings of this node and its descendants, in tree order.
        """
        path = prefix.join(self.name) if prefix is not None else NodePath(self.name)
        settings: List[NodeSetting] = []

        if self.expanded or self.format is not NumberFormat.AUTO:
            settings.append(
                NodeSetting(node=str(path), format=self.format, expanded=self.expanded)
            )

        for child in self.children:
            settings.extend(child.save_state(path))

        return settings


class _Container(_Node):
    """Node that maps to a region of the peripheral memory."""

    @abstractmethod
    def get_address(self, offset: int) -> int:
        """
        :param offset: Offset relative to the node.
        :return: Absolute device address of the offset.
        """
        ...

    @abstractmethod
    def get_bytes(self, offset: int, length: int) -> bytes:
        """
        :param offset: Offset relative to the node.
        :param length: Number of bytes.
        :return: The cached bytes at [offset, offset + length), or an empty bytes object if the
                 cache does not cover the range yet.
        """
        ...


def _build_children(
    options: Iterable[Union[RegisterOptions, ClusterOptions]], parent: _Container
) -> List[Union[Register, Cluster]]:
    children: List[Union[Register, Cluster]] = []

    for child_options in options:
        if isinstance(child_options, ClusterOptions):
            children.append(Cluster(child_options, parent))
        else:
            children.append(Register(child_options, parent))

    return children


def _by_name(children: Iterable[Any]) -> Dict[str, Any]:
    """Index nodes by name. If multiple nodes have the same name, the first one wins."""
    result: Dict[str, Any] = {}
    for child in children:
        result.setdefault(child.name, child)
    return result


class RegisterMap(Mapping[str, "Peripheral"]):
    """Register map of a device, built from a SVD device element."""

    def __init__(self, device: bindings.DeviceElement, options: Options) -> None:
        """
        :param device: SVD device element.
        :param options: Parsing options.
        """
        self._name: str = device.name

        device_props = device.get_register_properties(bindings.DEFAULT_REGISTER_PROPERTIES)

        raw_peripherals: Dict[str, RawPeripheral] = {}

        for peripheral_element in device.peripherals:
            raw = RawPeripheral.from_element(peripheral_element)

            if raw.name is None:
                raise DescriptorDefinitionError(
                    [peripheral_element], "Peripheral is missing required element 'name'"
                )

            if raw.name in raw_peripherals:
                periphview.log.warning(
                    f"Ignoring duplicate definition of peripheral {raw.name}"
                )
                continue

            raw_peripherals[raw.name] = raw

        peripherals = [
            Peripheral(extract_peripheral_options(raw, device_props, options))
            for raw in resolve_derived_peripherals(raw_peripherals).values()
        ]
        peripherals.sort(key=lambda p: (p.group_name, p.name))

        self._peripherals: Dict[str, Peripheral] = {p.name: p for p in peripherals}

    @property
    def name(self) -> str:
        """Name of the device."""
        return self._name

    @property
    def peripherals(self) -> Mapping[str, Peripheral]:
        """
        Map of peripherals in the device, indexed by name.
        The peripherals are sorted by group name and then by name.
        """
        return MappingProxyType(self._peripherals)

    def find_by_path(self, path: Union[str, Sequence[str]]) -> Optional[_Node]:
        """
        Find a node by its path.

        :param path: Dotted path of the node, starting with the peripheral name.
        :return: The node, or None if there is no node with the given path.
        """
        try:
            node_path = NodePath(path)
        except ValueError:
            return None

        peripheral = self._peripherals.get(node_path[0])
        if peripheral is None:
            return None

        return peripheral.find_by_path(node_path[1:].parts if len(node_path) > 1 else ())

    def get_node(self, path: Union[str, Sequence[str]]) -> _Node:
        """
        Find a node by its path.

        :param path: Dotted path of the node, starting with the peripheral name.
        :raises NodeKeyError: If there is no node with the given path.
        :return: The node.
        """
        node = self.find_by_path(path)
        if node is None:
            path_str = path if isinstance(path, str) else ".".join(path)
            raise NodeKeyError(path_str, self, "node not found")
        return node

    def save_state(self) -> List[NodeSetting]:
        """:return: Display settings of all nodes that differ from the defaults, in tree order."""
        settings: List[NodeSetting] = []
        for peripheral in self._peripherals.values():
            settings.extend(peripheral.save_state())
        return settings

    def apply_state(self, settings: Iterable[NodeSetting]) -> int:
        """
        Apply saved display settings to the nodes of the register map.
        Settings for nodes that don't exist are ignored.

        :param settings: Settings to apply.
        :return: Number of settings applied.
        """
        applied = 0

        for setting in settings:
            node = self.find_by_path(setting.node)
            if node is None:
                periphview.log.debug(f"Ignoring setting for missing node {setting.node}")
                continue

            node.expanded = setting.expanded or False
            node.format = setting.format
            applied += 1

        return applied

    def register_iter(self) -> Iterator[Register]:
        """:return: Iterator over all registers in the device."""
        for peripheral in self._peripherals.values():
            yield from peripheral.register_iter()

    def __getitem__(self, name: str) -> Peripheral:
        """
        :param name: Peripheral name.
        :raises NodeKeyError: if the peripheral was not found.
        :return: Peripheral with the given name.
        """
        try:
            return self._peripherals[name]
        except LookupError as e:
            raise NodeKeyError(name, self, "peripheral not found") from e

    def __iter__(self) -> Iterator[str]:
        """:return: Iterator over the names of peripherals in the device."""
        return iter(self._peripherals)

    def __len__(self) -> int:
        """:return: Number of peripherals in the device."""
        return len(self._peripherals)

    def __repr__(self) -> str:
        """Short description of the device."""
        return node_repr(self.__class__, self.name, length=len(self))


class Peripheral(_Container, Mapping[str, Union["Register", "Cluster"]]):
    """
    A peripheral occupying a contiguous range of device memory.
    The peripheral holds the only cached copy of its memory. Its registers decode their values
    from that copy when set_content() is called.
    """

    def __init__(self, options: PeripheralOptions) -> None:
        """
        :param options: Description of the peripheral and its descendants.
        """
        super().__init__(options.name, options.description, parent=None)

        self._options: PeripheralOptions = options
        self._memory_block: MemoryBlock = MemoryBlock()
        self._children: List[Union[Register, Cluster]] = _build_children(
            options.children, self
        )
        self._children_by_name: Dict[str, Union[Register, Cluster]] = _by_name(
            self._children
        )

    @property
    def base_address(self) -> int:
        """Base address of the peripheral."""
        return self._options.base_address

    @property
    def address_span(self) -> int:
        """Number of bytes covered by the peripheral."""
        return self._options.address_span

    @property
    def group_name(self) -> str:
        """Name of the group the peripheral belongs to, or an empty string."""
        return self._options.group_name

    @property
    def access(self) -> Access:
        """Default access rights of the peripheral registers."""
        assert self._options.reg_props.access is not None
        return self._options.reg_props.access.normalized()

    @property
    def size(self) -> int:
        """Default size in bits of the peripheral registers."""
        assert self._options.reg_props.size is not None
        return self._options.reg_props.size

    @property
    def reset_value(self) -> int:
        """Default reset value of the peripheral registers."""
        assert self._options.reg_props.reset_value is not None
        return self._options.reg_props.reset_value

    @property
    def children(self) -> Sequence[Union[Register, Cluster]]:
        return self._children

    @property
    def content(self) -> bytes:
        """The cached memory of the peripheral."""
        return bytes(self._memory_block)

    def get_address(self, offset: int) -> int:
        return self.base_address + offset

    def get_bytes(self, offset: int, length: int) -> bytes:
        return self._memory_block.at(offset, length)

    def set_content(self, data: bytes) -> List[UnsupportedRegisterSize]:
        """
        Replace the cached memory of the peripheral and decode the value of every register.
        A register that can't be decoded does not prevent the remaining registers from being
        decoded.

        :param data: Memory of the peripheral, starting at the base address.
        :return: Errors for the registers that could not be decoded.
        """
        self._memory_block = MemoryBlock(data)
        errors: List[UnsupportedRegisterSize] = []

        for register in self.register_iter():
            try:
                register.update()
            except UnsupportedRegisterSize as e:
                periphview.log.warning(str(e))
                errors.append(e)

        return errors

    def register_iter(self) -> Iterator[Register]:
        """:return: Iterator over all registers in the peripheral, including those in clusters."""
        for child in self._children:
            if isinstance(child, Cluster):
                yield from child.children
            else:
                yield child

    @property
    def resolved_format(self) -> NumberFormat:
        return self.format

    @property
    def label(self) -> str:
        return f"{self.name}  [{hex_format(self.base_address)}]"

    @property
    def copy_value(self) -> str:
        return hex_format(self.base_address)

    def __getitem__(self, name: str) -> Union[Register, Cluster]:
        """
        :param name: Name of the register or cluster.
        :raises NodeKeyError: If there is no child with the given name.
        """
        try:
            return self._children_by_name[name]
        except LookupError as e:
            raise NodeKeyError(name, self, "register or cluster not found") from e

    def __iter__(self) -> Iterator[str]:
        return iter(self._children_by_name)

    def __len__(self) -> int:
        return len(self._children_by_name)

    def __repr__(self) -> str:
        return node_repr(
            self.__class__,
            self.name,
            address=self.base_address,
            length=self.address_span,
        )


class Cluster(_Container, Mapping[str, "Register"]):
    """Named group of registers at an offset within a peripheral."""

    def __init__(self, options: ClusterOptions, parent: _Container) -> None:
        super().__init__(options.name, options.description, parent=parent)

        self._options: ClusterOptions = options
        self._children: List[Register] = [
            Register(register_options, self) for register_options in options.registers
        ]
        self._children_by_name: Dict[str, Register] = _by_name(self._children)

    @property
    def offset(self) -> int:
        """Offset of the cluster relative to the peripheral."""
        return self._options.offset

    @property
    def address(self) -> int:
        """Absolute address of the cluster."""
        return self._container.get_address(self.offset)

    @property
    def size(self) -> int:
        """Default size in bits of the cluster registers."""
        assert self._options.reg_props.size is not None
        return self._options.reg_props.size

    @property
    def access(self) -> Access:
        """Default access rights of the cluster registers."""
        assert self._options.reg_props.access is not None
        return self._options.reg_props.access.normalized()

    @property
    def reset_value(self) -> int:
        """Default reset value of the cluster registers."""
        assert self._options.reg_props.reset_value is not None
        return self._options.reg_props.reset_value

    @property
    def children(self) -> Sequence[Register]:
        return self._children

    @property
    def _container(self) -> _Container:
        parent = self.parent
        assert isinstance(parent, _Container)
        return parent

    def get_address(self, offset: int) -> int:
        return self._container.get_address(self.offset + offset)

    def get_bytes(self, offset: int, length: int) -> bytes:
        return self._container.get_bytes(self.offset + offset, length)

    @property
    def label(self) -> str:
        return f"{self.name} [{hex_format(self.offset, 0)}]"

    @property
    def copy_value(self) -> str:
        return hex_format(self.address)

    def __getitem__(self, name: str) -> Register:
        try:
            return self._children_by_name[name]
        except LookupError as e:
            raise NodeKeyError(name, self, "register not found") from e

    def __iter__(self) -> Iterator[str]:
        return iter(self._children_by_name)

    def __len__(self) -> int:
        return len(self._children_by_name)

    def __repr__(self) -> str:
        return node_repr(self.__class__, str(self.path), address=self.offset)


class Register(_Node, Mapping[str, "Field"]):
    """
    A register within a peripheral or cluster.
    The register caches its value, which is kept up to date with the peripheral memory by
    update().
    """

    def __init__(self, options: RegisterOptions, parent: _Container) -> None:
        super().__init__(options.name, options.description, parent=parent)

        self._options: RegisterOptions = options
        self._content: int = self.reset_value
        self._children: List[Field] = [
            Field(field_options, self) for field_options in options.fields
        ]
        self._children_by_name: Dict[str, Field] = _by_name(self._children)

        self._hex_re = re.compile(rf"0x[0-9a-f]{{1,{self.hex_length}}}", re.IGNORECASE)
        self._binary_re = re.compile(rf"0b[01]{{1,{self.size}}}", re.IGNORECASE)

    @property
    def offset(self) -> int:
        """Offset of the register relative to its parent."""
        return self._options.offset

    @property
    def address(self) -> int:
        """Absolute address of the register."""
        return self._container.get_address(self.offset)

    @property
    def size(self) -> int:
        """Size of the register in bits."""
        assert self._options.reg_props.size is not None
        return self._options.reg_props.size

    @property
    def access(self) -> Access:
        """Access rights of the register."""
        assert self._options.reg_props.access is not None
        return self._options.reg_props.access.normalized()

    @property
    def reset_value(self) -> int:
        """Value of the register after reset, truncated to the register size."""
        assert self._options.reg_props.reset_value is not None
        return self._options.reg_props.reset_value & mask(0, self.size)

    @property
    def hex_length(self) -> int:
        """Number of hexadecimal digits needed to display the register value."""
        return ceil(self.size / 4)

    @property
    def max_value(self) -> int:
        """Largest value the register can hold."""
        return mask(0, self.size)

    @property
    def content(self) -> int:
        """Cached value of the register."""
        return self._content

    @property
    def children(self) -> Sequence[Field]:
        return self._children

    @property
    def _container(self) -> _Container:
        parent = self.parent
        assert isinstance(parent, _Container)
        return parent

    @property
    def peripheral(self) -> Peripheral:
        """The peripheral that owns the register."""
        node: Optional[_Node] = self.parent
        while node is not None and not isinstance(node, Peripheral):
            node = node.parent
        assert node is not None
        return node

    def reset(self) -> None:
        """Set the cached value back to the reset value."""
        self._content = self.reset_value

    def extract_bits(self, offset: int, width: int) -> int:
        """:return: The value of bits [offset, offset + width) of the cached value."""
        return extract_bits(self._content, offset, width)

    def compute_update(self, offset: int, width: int, value: int) -> int:
        """
        Compute the register value resulting from replacing a range of bits.
        The cached value is not changed.

        :param offset: Offset of the first bit to replace.
        :param width: Number of bits to replace.
        :param value: New value of the bits.
        :raises InvalidEditValue: If value does not fit in width bits.
        :return: The new register value.
        """
        max_value = mask(0, width)

        if value < 0 or value > max_value:
            raise InvalidEditValue(
                "Value entered is invalid. Maximum value for this field is "
                f"{max_value} ({hex_format(max_value, 0)})",
                max_value=max_value,
            )

        bits = mask(offset, width)
        return (self._content & ~bits) | (value << offset)

    def update(self) -> None:
        """
        Decode the cached value from the memory cached by the peripheral.
        The value is left unchanged if the peripheral memory does not cover the register.

        :raises UnsupportedRegisterSize: If the register size is not 8, 16 or 32 bits.
        """
        if self.size not in (8, 16, 32):
            raise UnsupportedRegisterSize(self, self.size)

        item_size = self.size // 8
        data = self._container.get_bytes(self.offset, item_size)

        if data:
            self._content = decode(data, item_size)

    def parse_input(self, text: str) -> int:
        """
        Parse a new register value entered by the user.
        Accepted forms are 0x<hex> with at most hex_length digits, 0b<binary> with at most size
        digits and decimal.

        :param text: Text entered by the user.
        :raises InvalidEditValue: If the text is not a valid value for the register.
        :return: The parsed value.
        """
        text = text.strip()

        if self._hex_re.fullmatch(text):
            return int(text[2:], 16)

        if self._binary_re.fullmatch(text):
            return int(text[2:], 2)

        if re.fullmatch(r"[0-9]+", text):
            value = int(text, 10)
            if value > self.max_value:
                raise InvalidEditValue(
                    f"Value entered ({value}) is greater than the maximum value of "
                    f"{self.max_value}",
                    max_value=self.max_value,
                )
            return value

        raise InvalidEditValue("Value entered is not a valid format.", max_value=self.max_value)

    def format_value(self, value: int) -> str:
        """:return: value formatted with the resolved format of the register."""
        fmt = self.resolved_format

        if fmt is NumberFormat.DECIMAL:
            return str(value)
        if fmt is NumberFormat.BINARY:
            return binary_format(value, self.hex_length * 4)
        return hex_format(value, self.hex_length)

    @property
    def label(self) -> str:
        label = f"{self.name} [{hex_format(self.offset, 0)}]"

        if self.access is Access.WRITE_ONLY:
            return f"{label} - <Write Only>"

        if self.resolved_format is NumberFormat.BINARY:
            value = binary_format(
                self._content, self.hex_length * 4, prefix=False, group=True
            )
        else:
            value = self.format_value(self._content)

        return f"{label} = {value}"

    @property
    def copy_value(self) -> str:
        return self.format_value(self._content)

    def __getitem__(self, name: str) -> Field:
        try:
            return self._children_by_name[name]
        except LookupError as e:
            raise NodeKeyError(name, self, "field not found") from e

    def __iter__(self) -> Iterator[str]:
        return iter(self._children_by_name)

    def __len__(self) -> int:
        return len(self._children_by_name)

    def __repr__(self) -> str:
        return node_repr(
            self.__class__,
            str(self.path),
            address=self.offset,
            content=self._content,
            content_max_width=self.size,
        )


class Field(_Node):
    """
    A named range of bits in a register.
    Fields hold no value of their own; their value is read through the register.
    """

    def __init__(self, options: FieldOptions, parent: Register) -> None:
        super().__init__(options.name, options.description, parent=parent)

        self._options: FieldOptions = options
        self._access: Access = self._narrow_access(options.access, parent.access)

        enumeration = options.enumeration or {}
        self._enums_by_name: Dict[str, EnumeratedValue] = {
            e.name: e for e in sorted(enumeration.values(), key=lambda e: e.value)
        }

    @staticmethod
    def _narrow_access(own: Optional[Access], register: Access) -> Access:
        if own is None:
            return register

        own = own.normalized()

        if register is Access.READ_ONLY and own is not Access.READ_ONLY:
            return Access.READ_ONLY
        if register is Access.WRITE_ONLY and own is not Access.WRITE_ONLY:
            return Access.WRITE_ONLY

        return own

    @property
    def register(self) -> Register:
        """The register containing the field."""
        parent = self.parent
        assert isinstance(parent, Register)
        return parent

    @property
    def bit_range(self) -> BitRange:
        """Bit range of the field within the register."""
        return self._options.bit_range

    @property
    def offset(self) -> int:
        """Bit offset of the field."""
        return self._options.bit_range.offset

    @property
    def width(self) -> int:
        """Bit width of the field."""
        return self._options.bit_range.width

    @property
    def msb(self) -> int:
        """Most significant bit of the field."""
        return self._options.bit_range.msb

    @property
    def access(self) -> Access:
        """Access rights of the field, narrowed by the access rights of the register."""
        return self._access

    @property
    def enumeration(self) -> Optional[Mapping[int, EnumeratedValue]]:
        """Mapping of value to enumerated value, if the field has an enumeration."""
        return self._options.enumeration

    @property
    def enum_names(self) -> List[str]:
        """Names of the enumerated values of the field, ordered by value."""
        return list(self._enums_by_name)

    def value_for_enum(self, name: str) -> Optional[int]:
        """:return: The value of the enumerated value with the given name, if it exists."""
        enum_value = self._enums_by_name.get(name)
        return enum_value.value if enum_value is not None else None

    @property
    def value(self) -> int:
        """Current value of the field, extracted from the cached register value."""
        return self.register.extract_bits(self.offset, self.width)

    def compute_update(self, value: int) -> int:
        """
        :param value: New value of the field.
        :raises InvalidEditValue: If the value does not fit in the field.
        :return: The register value resulting from setting the field to value.
        """
        return self.register.compute_update(self.offset, self.width, value)

    def parse_input(self, text: str) -> int:
        """
        Parse a new field value entered by the user.
        The text can be the name of an enumerated value, or an integer literal.

        :param text: Text entered by the user.
        :raises InvalidEditValue: If the text is not a valid value for the field.
        :return: The parsed value.
        """
        if (enum_value := self.value_for_enum(text.strip())) is not None:
            return enum_value

        value = parse_integer(text)
        if value is None:
            raise InvalidEditValue(
                "Unable to parse input value.", max_value=mask(0, self.width)
            )

        return value

    def format_value(self, value: int) -> str:
        """:return: value formatted with the resolved format of the field."""
        fmt = self.resolved_format

        if fmt is NumberFormat.DECIMAL:
            return str(value)
        if fmt is NumberFormat.BINARY:
            return binary_format(value, self.width)
        if fmt is NumberFormat.HEXADECIMAL or self.width >= 4:
            return hex_format(value, ceil(self.width / 4))
        return binary_format(value, self.width)

    @property
    def label(self) -> str:
        label = f"{self.name}[{self.msb}:{self.offset}]"

        if self.name.lower() == "reserved":
            return label

        if self.access is Access.WRITE_ONLY:
            return f"{label} - <Write Only>"

        value = self.value
        formatted = self.format_value(value)

        if self.enumeration is not None and (enum_value := self.enumeration.get(value)):
            return f"{label} = {enum_value.name} ({formatted})"

        return f"{label} = {formatted}"

    @property
    def copy_value(self) -> str:
        return self.format_value(self.value)

    def save_state(self, prefix: Optional[NodePath] = None) -> List[NodeSetting]:
        if self.format is NumberFormat.AUTO:
            return []

        path = prefix.join(self.name) if prefix is not None else NodePath(self.name)
        return [NodeSetting(node=str(path), format=self.format)]

    def __repr__(self) -> str:
        return node_repr(
            self.__class__,
            f"{self.name}[{self.msb}:{self.offset}]",
            content=self.value,
            content_max_width=self.width,
            bool_props=(self.access.value,),
        )
