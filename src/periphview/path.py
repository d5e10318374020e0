# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Dotted paths used to address nodes in a register map.
"""

from __future__ import annotations

from itertools import chain
from typing import Any, List, Optional, Sequence, Tuple, Union, overload

from typing_extensions import Self


class NodePath(Sequence[str]):
    """
    Path to a node in the register map.
    A NodePath like "UART0.CONFIG.PARITY" refers to the node named "PARITY" whose parent is named
    "CONFIG", which in turn belongs to the peripheral named "UART0".
    """

    __slots__ = "_parts"

    def __init__(self, *parts: Union[str, Sequence[str]]) -> None:
        """
        :param parts: Path segments. String segments are split on ".".
        """
        split_parts: List[str] = []

        for part in parts:
            if isinstance(part, str):
                split_parts.extend(part.split("."))
            elif isinstance(part, NodePath):
                split_parts.extend(part.parts)
            else:
                sub_parts = (p.split(".") for p in part)
                split_parts.extend(chain.from_iterable(sub_parts))

        if not split_parts:
            raise ValueError(f"Empty {self.__class__.__name__} not allowed")

        if any(not p for p in split_parts):
            raise ValueError(f"Invalid {self.__class__.__name__} parts: {parts}")

        self._parts: Tuple[str, ...] = tuple(split_parts)

    @property
    def parts(self) -> Tuple[str, ...]:
        """:return: Path components."""
        return self._parts

    @property
    def name(self) -> str:
        """:return: Name of the node pointed to by the path."""
        return self._parts[-1]

    @property
    def parent(self) -> Optional[NodePath]:
        """:return: Path to the parent node, if any."""
        if len(self._parts) <= 1:
            return None
        return NodePath(*self._parts[:-1])

    def join(self, *other: Union[str, Sequence[str]]) -> Self:
        """:return: The path resulting from appending other to the end of this path."""
        return self.__class__(*self._parts, *other)

    @overload
    def __getitem__(self, item: int, /) -> str:
        ...

    @overload
    def __getitem__(self, item: slice, /) -> Self:
        ...

    def __getitem__(self, item: Union[int, slice], /) -> Union[str, Self]:
        if isinstance(item, slice):
            return self.__class__(*self._parts[item])
        return self._parts[item]

    def __len__(self) -> int:
        return len(self._parts)

    def __hash__(self) -> int:
        return hash(self._parts)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, NodePath):
            return self._parts == other._parts
        if isinstance(other, str):
            return str(self) == other
        return self._parts == other

    def __str__(self) -> str:
        return ".".join(self._parts)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self)!r})"
