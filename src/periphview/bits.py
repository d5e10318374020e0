# Copyright (c) 2023 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

"""
Bit manipulation and number formatting helpers shared by the parser and the register map.
"""

from __future__ import annotations

import re
from typing import Optional

_BINARY_RE = re.compile(r"0b([01]+)", re.IGNORECASE)
_HEX_RE = re.compile(r"0x([0-9a-f]+)", re.IGNORECASE)
_DECIMAL_RE = re.compile(r"[0-9]+")
_HASH_BINARY_RE = re.compile(r"#([01]+)")


def mask(offset: int, width: int) -> int:
    """:return: Integer with the bits [offset, offset + width) set."""
    return ((1 << width) - 1) << offset


def extract_bits(value: int, offset: int, width: int) -> int:
    """:return: The value of bits [offset, offset + width) of value, shifted down to bit 0."""
    return (value & mask(offset, width)) >> offset


def hex_format(value: int, padding: int = 8, prefix: bool = True) -> str:
    """
    Format an integer as lowercase hexadecimal.

    :param value: Value to format.
    :param padding: Minimum number of digits. The value is zero-padded up to this width.
    :param prefix: Prepend "0x" to the result.
    """
    digits = f"{value:0{padding}x}" if padding > 0 else f"{value:x}"
    return f"0x{digits}" if prefix else digits


def binary_format(
    value: int, padding: int = 0, prefix: bool = True, group: bool = False
) -> str:
    """
    Format an integer as binary.

    :param value: Value to format.
    :param padding: Minimum number of digits. The value is zero-padded up to this width.
    :param prefix: Prepend "0b" to the result.
    :param group: Split the digits into space separated nibbles, counting from the least
                  significant bit.
    """
    digits = f"{value:0{padding}b}" if padding > 0 else f"{value:b}"

    if group:
        head_len = len(digits) % 4
        nibbles = [digits[i : i + 4] for i in range(head_len, len(digits), 4)]
        if head_len:
            nibbles.insert(0, digits[:head_len])
        digits = " ".join(nibbles)

    return f"0b{digits}" if prefix else digits


def parse_integer(text: str) -> Optional[int]:
    """
    Convert a descriptor/user integer literal to an integer.
    Accepted forms are 0b<binary>, 0x<hex>, #<binary> and plain decimal.

    :param text: Literal to convert.
    :return: The decoded integer, or None if text is not a recognized literal.
    """
    text = text.strip()

    if (match := _BINARY_RE.fullmatch(text)) is not None:
        return int(match[1], 2)
    if (match := _HEX_RE.fullmatch(text)) is not None:
        return int(match[1], 16)
    if _DECIMAL_RE.fullmatch(text) is not None:
        return int(text, 10)
    if (match := _HASH_BINARY_RE.fullmatch(text)) is not None:
        return int(match[1], 2)

    return None
