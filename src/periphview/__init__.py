# Copyright (c) 2022 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from .bindings import Access, BitRange
from .errors import (
    PeriphViewError,
    DescriptorParseError,
    DescriptorDefinitionError,
    InvalidEditValue,
    MemoryTransportError,
    UnsupportedRegisterSize,
    NodePathError,
    NodeKeyError,
)
from .parsing import (
    parse,
    parse_file,
    Options,
)
from .path import NodePath
from .device import (
    RegisterMap,
    Peripheral,
    Cluster,
    Register,
    Field,
    NumberFormat,
    NodeSetting,
)
from ._device import EnumeratedValue
from .controller import (
    MapController,
    MemoryTransport,
    InputProvider,
    SettingsStore,
    JsonSettingsStore,
)

import importlib.metadata
import logging

__version__ = importlib.metadata.version("periphview")


def _init_logger() -> logging.Logger:
    formatter = logging.Formatter("{message}", style="{")
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    logger = logging.getLogger("periphview")
    logger.setLevel(logging.ERROR)
    logger.addHandler(handler)

    return logger


# logging.Logger instance used for log output from periphview
log = _init_logger()

__all__ = [
    # from bindings
    "Access",
    "BitRange",
    # from errors
    "PeriphViewError",
    "DescriptorParseError",
    "DescriptorDefinitionError",
    "InvalidEditValue",
    "MemoryTransportError",
    "UnsupportedRegisterSize",
    "NodePathError",
    "NodeKeyError",
    # from parsing
    "parse",
    "parse_file",
    "Options",
    # from path
    "NodePath",
    # from device
    "RegisterMap",
    "Peripheral",
    "Cluster",
    "Register",
    "Field",
    "NumberFormat",
    "NodeSetting",
    "EnumeratedValue",
    # from controller
    "MapController",
    "MemoryTransport",
    "InputProvider",
    "SettingsStore",
    "JsonSettingsStore",
    # other
    "log",
    "__version__",
]
