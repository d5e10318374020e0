# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import Mapping, Union

import numpy as np

SIZE_TO_DTYPE: Mapping[int, np.dtype] = {
    1: np.dtype(np.uint8),
    2: np.dtype("<u2"),
    4: np.dtype("<u4"),
}


def _get_dtype_for_size(item_size: int) -> np.dtype:
    try:
        return SIZE_TO_DTYPE[item_size]
    except KeyError:
        raise ValueError(f"Unsupported item size: {item_size}")


def decode(data: bytes, item_size: int) -> int:
    """
    Decode a little-endian unsigned integer.

    :param data: Bytes to decode. Only the first item_size bytes are used.
    :param item_size: Size in bytes of the integer. Must be 1, 2 or 4.
    :raises ValueError: If the item size is not supported or data is too short.
    :return: The decoded integer.
    """
    dtype = _get_dtype_for_size(item_size)

    if len(data) < item_size:
        raise ValueError(f"Need {item_size} bytes to decode, got {len(data)}")

    return int(np.frombuffer(data, dtype=dtype, count=1)[0])


def encode(value: int, item_size: int) -> bytes:
    """
    Encode an unsigned integer as little-endian bytes.

    :param value: Integer to encode. Must fit in item_size bytes.
    :param item_size: Size in bytes of the integer. Must be 1, 2 or 4.
    :raises ValueError: If the item size is not supported or the value does not fit.
    :return: The encoded bytes.
    """
    dtype = _get_dtype_for_size(item_size)

    if not 0 <= value < (1 << (8 * item_size)):
        raise ValueError(f"Value {value} does not fit in {item_size} bytes")

    return np.array([value], dtype=dtype).tobytes()


class MemoryBlock:
    """
    Cached copy of a contiguous memory region, as last read from the device.
    Offsets are relative to the start of the region.
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview] = b"") -> None:
        """
        :param data: Initial content of the memory block.
        """
        self._array: np.ndarray = np.frombuffer(bytes(data), dtype=np.uint8).copy()

    @property
    def length(self) -> int:
        """Number of bytes held by the block."""
        return len(self._array)

    def covers(self, offset: int, length: int) -> bool:
        """:return: True if the range [offset, offset + length) is held by the block."""
        return offset >= 0 and length >= 0 and offset + length <= len(self._array)

    def at(self, offset: int, length: int) -> bytes:
        """
        Get the content of a range of the block.

        :param offset: Start offset of the range.
        :param length: Number of bytes in the range.
        :return: The bytes in the range, or an empty bytes object if the block does not hold
                 the full range.
        """
        if not self.covers(offset, length):
            return b""
        return self._array[offset : offset + length].tobytes()

    def __bytes__(self) -> bytes:
        return self._array.tobytes()

    def __len__(self) -> int:
        return self.length

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(length={self.length})"
