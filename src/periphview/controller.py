# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Asynchronous owner of a live register map.

The controller keeps the register map in sync with device memory through a memory transport
supplied by the caller, and persists the display state of the register map through a settings
store. Requests against the same peripheral are serialized, and a write is always followed by
a read of the peripheral before the next request on that peripheral is started.
"""

from __future__ import annotations

import asyncio
import json
from functools import partial
from pathlib import Path
from typing import (
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Union,
)

import periphview

from .device import (
    Field,
    NodeSetting,
    NumberFormat,
    Peripheral,
    Register,
    RegisterMap,
    _Node,
)
from .errors import (
    DescriptorParseError,
    MemoryTransportError,
    PeriphViewError,
    UnsupportedRegisterSize,
)
from .memory_block import encode
from .parsing import Options, parse, parse_file

# Prompt shown when asking the user for a new register or field value.
VALUE_PROMPT = "Enter new value: (prefix hex with 0x, binary with 0b)"


class MemoryTransport(Protocol):
    """Reads and writes device memory, typically through a debugger."""

    async def read_memory(self, address: int, length: int) -> bytes:
        """
        :param address: Start address of the memory to read.
        :param length: Number of bytes to read.
        :return: The bytes read.
        """
        ...

    async def write_memory(self, address: int, data_hex: str) -> None:
        """
        :param address: Start address of the memory to write.
        :param data_hex: Bytes to write, as a string of lowercase hex octets.
        """
        ...


class InputProvider(Protocol):
    """Asks the user for a new value."""

    async def ask_value(self, prompt: str) -> Optional[str]:
        """:return: The text entered by the user, or None if the prompt was cancelled."""
        ...

    async def pick(self, options: Sequence[str]) -> Optional[str]:
        """:return: The option picked by the user, or None if the prompt was cancelled."""
        ...


class SettingsStore(Protocol):
    """Persistent storage of the register map display state."""

    def load(self) -> List[NodeSetting]:
        ...

    def save(self, settings: Sequence[NodeSetting]) -> None:
        ...


class JsonSettingsStore:
    """Settings store backed by a JSON file."""

    def __init__(self, path: Union[str, Path]) -> None:
        """
        :param path: Path to the settings file. The file does not need to exist.
        """
        self._path: Path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[NodeSetting]:
        """
        Read the settings from the file.
        A missing file is treated as an empty list of settings. Unreadable files and invalid
        entries are logged and ignored.

        :return: The settings found in the file.
        """
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            periphview.log.warning(f"Ignoring unreadable settings file {self._path}: {e}")
            return []

        if not isinstance(data, list):
            periphview.log.warning(
                f"Ignoring settings file {self._path}: expected a list of settings"
            )
            return []

        settings: List[NodeSetting] = []

        for entry in data:
            if not isinstance(entry, Mapping):
                periphview.log.warning(f"Ignoring invalid setting {entry!r}")
                continue
            try:
                settings.append(NodeSetting.from_dict(entry))
            except ValueError as e:
                periphview.log.warning(f"Ignoring invalid setting {entry!r}: {e}")

        return settings

    def save(self, settings: Sequence[NodeSetting]) -> None:
        """Write the settings to the file, replacing any previous content."""
        self._path.parent.mkdir(parents=True, exist_ok=True)

        with open(self._path, "w", encoding="utf-8") as f:
            json.dump([s.to_dict() for s in settings], f, indent=2)


class MapController:
    """Owner of the live register map of a debug session."""

    def __init__(
        self,
        transport: MemoryTransport,
        settings_store: Optional[SettingsStore] = None,
        options: Options = Options(),
    ) -> None:
        """
        :param transport: Used to read and write device memory.
        :param settings_store: Used to persist the display state of the register map.
        :param options: Parsing options.
        """
        self._transport: MemoryTransport = transport
        self._settings_store: Optional[SettingsStore] = settings_store
        self._options: Options = options
        self._register_map: Optional[RegisterMap] = None
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def register_map(self) -> Optional[RegisterMap]:
        """The current register map, or None if no descriptor is loaded."""
        return self._register_map

    async def load(self, svd_path: Union[str, Path]) -> RegisterMap:
        """
        Load a register map from a SVD file and restore its saved display state.
        The current register map is saved and discarded first.

        :param svd_path: Path to the SVD file.
        :raises FileNotFoundError: If the SVD file does not exist.
        :raises DescriptorParseError: If the SVD file could not be parsed. No register map is
                                      loaded in this case.
        :return: The new register map.
        """
        return await self._load(partial(parse_file, svd_path, self._options))

    async def load_text(self, xml_text: Union[str, bytes]) -> RegisterMap:
        """Same as load(), but with the SVD document given as text."""
        return await self._load(partial(parse, xml_text, self._options))

    async def _load(self, parse_func: Callable[[], RegisterMap]) -> RegisterMap:
        self._drop_register_map()

        try:
            register_map = await asyncio.to_thread(parse_func)
        except DescriptorParseError as e:
            periphview.log.error(f"Unable to parse SVD file: {e}")
            raise

        if self._settings_store is not None:
            applied = register_map.apply_state(self._settings_store.load())
            periphview.log.debug(f"Restored {applied} node settings")

        self._register_map = register_map

        return register_map

    def _drop_register_map(self) -> None:
        if self._register_map is not None and self._settings_store is not None:
            self._settings_store.save(self._register_map.save_state())

        self._register_map = None
        self._locks = {}

    async def close(self) -> None:
        """Save the display state of the current register map and discard it."""
        self._drop_register_map()

    def _require_map(self) -> RegisterMap:
        if self._register_map is None:
            raise RuntimeError("No register map is loaded")
        return self._register_map

    def _lock_for(self, peripheral: Peripheral) -> asyncio.Lock:
        return self._locks.setdefault(peripheral.name, asyncio.Lock())

    def _resolve_peripheral(self, peripheral: Union[Peripheral, str]) -> Peripheral:
        if isinstance(peripheral, str):
            return self._require_map()[peripheral]
        return peripheral

    async def refresh(
        self, peripheral: Union[Peripheral, str]
    ) -> Optional[List[UnsupportedRegisterSize]]:
        """
        Read the memory of an expanded peripheral and update its registers.
        Collapsed peripherals are not read.

        :param peripheral: Peripheral, or name of the peripheral, to refresh.
        :raises MemoryTransportError: If the memory could not be read. The cached values are
                                      left unchanged in this case.
        :return: None if the peripheral is collapsed and was not read. Otherwise the errors for
                 the registers that could not be decoded, which is empty if all of them were.
        """
        peripheral = self._resolve_peripheral(peripheral)

        if not peripheral.expanded:
            return None

        async with self._lock_for(peripheral):
            return await self._read_peripheral(peripheral)

    async def refresh_all(self) -> List[PeriphViewError]:
        """
        Refresh every expanded peripheral.
        A failure to read or decode one peripheral does not prevent the others from being read.

        :return: A MemoryTransportError for each peripheral that could not be read, and an
                 UnsupportedRegisterSize for each register that could not be decoded.
        """
        register_map = self._require_map()

        results = await asyncio.gather(
            *(self.refresh(p) for p in register_map.values()), return_exceptions=True
        )

        errors: List[PeriphViewError] = []

        for result in results:
            if isinstance(result, MemoryTransportError):
                periphview.log.warning(str(result))
                errors.append(result)
            elif isinstance(result, BaseException):
                raise result
            elif result:
                errors.extend(result)

        return errors

    async def _read_peripheral(self, peripheral: Peripheral) -> List[UnsupportedRegisterSize]:
        try:
            data = await self._transport.read_memory(
                peripheral.base_address, peripheral.address_span
            )
        except Exception as e:
            raise MemoryTransportError(
                f"Failed to read {peripheral.address_span} bytes of {peripheral.name} "
                f"at 0x{peripheral.base_address:08x}: {e}"
            ) from e

        return peripheral.set_content(bytes(data))

    async def _write_register(self, register: Register, value: int) -> None:
        if register.size not in (8, 16, 32):
            raise UnsupportedRegisterSize(register, register.size)

        address = register.address
        data_hex = encode(value, register.size // 8).hex()

        periphview.log.debug(f"Writing {data_hex} to {register.path} at 0x{address:08x}")

        try:
            await self._transport.write_memory(address, data_hex)
        except Exception as e:
            raise MemoryTransportError(
                f"Failed to write {register.path} at 0x{address:08x}: {e}"
            ) from e

    async def _commit(self, register: Register, compute: Callable[[], int]) -> None:
        peripheral = register.peripheral

        async with self._lock_for(peripheral):
            # Computed under the lock so that the value is based on the latest read
            value = compute()

            await self._write_register(register, value)

            try:
                await self._read_peripheral(peripheral)
            except MemoryTransportError as e:
                raise MemoryTransportError(
                    f"Wrote {register.path}, but could not read it back: {e}"
                ) from e

    async def commit(self, node: Union[Register, Field], value: int) -> None:
        """
        Write a new value to a register or field, and then read back the peripheral.

        :param node: Register or field to write.
        :param value: New value of the register or field.
        :raises InvalidEditValue: If the value does not fit in the register or field. Nothing is
                                  written in this case.
        :raises MemoryTransportError: If the write, or the read back after it, failed.
        """
        if isinstance(node, Field):
            await self._commit(node.register, partial(node.compute_update, value))
        else:
            await self._commit(node, partial(node.compute_update, 0, node.size, value))

    async def update_bits(
        self, register: Register, offset: int, width: int, value: int
    ) -> None:
        """
        Write a new value to a range of bits of a register, and then read back the peripheral.

        :param register: Register to write.
        :param offset: Offset of the first bit to write.
        :param width: Number of bits to write.
        :param value: New value of the bits.
        :raises InvalidEditValue: If the value does not fit in width bits.
        :raises MemoryTransportError: If the write, or the read back after it, failed.
        """
        await self._commit(register, partial(register.compute_update, offset, width, value))

    async def edit(self, node: Union[Register, Field], text: str) -> None:
        """
        Parse a new value entered by the user and commit it.

        :param node: Register or field to write.
        :param text: The value entered by the user. For fields with an enumeration this may be
                     the name of an enumerated value.
        :raises InvalidEditValue: If the text is not a valid value for the node.
        :raises MemoryTransportError: If the write, or the read back after it, failed.
        """
        await self.commit(node, node.parse_input(text))

    async def perform_update(
        self, node: Union[Register, Field], inputs: InputProvider
    ) -> bool:
        """
        Ask the user for a new value of a register or field and commit it.
        Fields with enumerated values offer a pick list, other nodes a free text prompt.

        :param node: Register or field to write.
        :param inputs: Used to ask the user for the value.
        :return: False if the user cancelled the prompt, True otherwise.
        """
        if isinstance(node, Field) and node.enum_names:
            text = await inputs.pick(node.enum_names)
        else:
            text = await inputs.ask_value(VALUE_PROMPT)

        if text is None:
            return False

        await self.edit(node, text)

        return True

    async def select(self, path: str) -> Optional[_Node]:
        """
        Select a node of the register map. Selecting a peripheral refreshes it.

        :param path: Dotted path of the node.
        :return: The node, or None if there is no node with the given path.
        """
        node = self._require_map().find_by_path(path)

        if isinstance(node, Peripheral):
            await self.refresh(node)

        return node

    async def set_expanded(self, path: str, expanded: bool) -> _Node:
        """
        Expand or collapse a node. Expanding a peripheral refreshes it.

        :param path: Dotted path of the node.
        :raises NodeKeyError: If there is no node with the given path.
        :return: The node.
        """
        node = self._require_map().get_node(path)
        node.expanded = expanded

        if expanded and isinstance(node, Peripheral):
            await self.refresh(node)

        return node

    def set_format(self, path: str, fmt: Union[NumberFormat, str]) -> _Node:
        """
        Set the display format of a node.

        :param path: Dotted path of the node.
        :param fmt: The new format.
        :raises NodeKeyError: If there is no node with the given path.
        :raises ValueError: If fmt is not a valid format name.
        :return: The node.
        """
        node = self._require_map().get_node(path)
        node.format = NumberFormat(fmt)
        return node

