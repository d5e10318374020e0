# Copyright (c) 2022 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from typing import Any, Iterable, Optional, Union

from .path import NodePath


class PeriphViewError(Exception):
    """Base class for errors raised by the library."""

    ...


class DescriptorParseError(PeriphViewError):
    """Raised when a device descriptor cannot be turned into a register map."""

    ...


class DescriptorDefinitionError(DescriptorParseError, ValueError):
    """Raised when the descriptor contains an element the register map can't be built from."""

    def __init__(self, elements: Iterable[Any], explanation: str):
        elements_str = "\n".join(f"  * {e!r}" for e in elements)
        super().__init__(f"Invalid descriptor element(s):\n{elements_str}\n{explanation}")


class InvalidEditValue(PeriphViewError, ValueError):
    """
    Raised when a new register or field value is rejected.
    The cached register content is left untouched when this is raised.
    """

    def __init__(self, message: str, max_value: Optional[int] = None) -> None:
        super().__init__(message)
        self.max_value: Optional[int] = max_value


class MemoryTransportError(PeriphViewError, IOError):
    """Raised when the memory read/write collaborator fails."""

    ...


class UnsupportedRegisterSize(PeriphViewError, BufferError):
    """Raised when a register can't be decoded because its size is not 8, 16 or 32 bits."""

    def __init__(self, register: Any, size: int) -> None:
        super().__init__(
            f"Register {register.name} has invalid size: {size}. Should be 8, 16 or 32."
        )
        self.register = register
        self.size: int = size


class NodePathError(PeriphViewError):
    """Raised when trying to access a nonexistent node path."""

    def __init__(
        self, path: Union[str, NodePath], source: Any, explanation: str = ""
    ) -> None:
        formatted_explanation = "" if not explanation else f" ({explanation})"
        message = f"{source!s} does not contain a node '{path}'{formatted_explanation}"

        super().__init__(message)


class NodeKeyError(NodePathError, KeyError):
    """Raised when given a child name that does not exist in a container node."""

    ...
