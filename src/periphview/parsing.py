# Copyright (c) 2022 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from time import perf_counter_ns
from typing import Mapping, Type, Union

import lxml.etree as ET
from lxml import objectify

import periphview

from . import bindings
from ._bindings import DescriptorElement
from .device import RegisterMap
from .errors import DescriptorParseError


@dataclass(frozen=True)
class Options:
    """Options to configure the descriptor parsing behavior."""

    # Keep clusters that do not contain any registers as empty nodes in the register map.
    # If set to False, such clusters are left out of the register map.
    keep_empty_clusters: bool = True


def parse(xml_text: Union[str, bytes], options: Options = Options()) -> RegisterMap:
    """
    Parse a register map from the text of a SVD document.

    :param xml_text: Content of the SVD document.
    :param options: Parsing options.

    :raises DescriptorParseError: If the document could not be turned into a register map.

    :return: The parsed register map.
    """
    t_parse_start = perf_counter_ns()

    # lxml refuses unicode strings with an encoding declaration
    if isinstance(xml_text, str):
        xml_text = xml_text.encode("utf-8")

    try:
        # Note: remove comments as otherwise these are present as nodes in the returned XML tree
        xml_parser = objectify.makeparser(remove_comments=True)
        xml_parser.set_element_class_lookup(_TagLookup(bindings.BINDINGS))

        xml_device = objectify.fromstring(xml_text, parser=xml_parser)

        if not isinstance(xml_device, bindings.DeviceElement):
            raise DescriptorParseError(
                f"Expected a <{bindings.DeviceElement.TAG}> root element, "
                f"got <{xml_device.tag}>"
            )

        register_map = RegisterMap(xml_device, options=options)

    except DescriptorParseError:
        raise
    except Exception as e:
        raise DescriptorParseError(f"Error parsing SVD document: {e}") from e

    t_parse = (perf_counter_ns() - t_parse_start) / 1_000_000
    periphview.log.info(
        f"Parsed {register_map.name or 'device'} with {len(register_map)} peripherals "
        f"in {t_parse:.1f} ms"
    )

    return register_map


def parse_file(svd_path: Union[str, Path], options: Options = Options()) -> RegisterMap:
    """
    Parse a register map from a SVD file.

    :param svd_path: Path to the SVD file.
    :param options: Parsing options.

    :raises FileNotFoundError: If the SVD file does not exist.
    :raises DescriptorParseError: If an error occurred while parsing the SVD file.

    :return: The parsed register map.
    """
    svd_file = Path(svd_path)

    if not svd_file.is_file():
        raise FileNotFoundError(f"No such file: {svd_file.absolute()}")

    periphview.log.debug(f"Reading SVD file {svd_file}")

    with open(svd_file, "rb") as f:
        xml_text = f.read()

    return parse(xml_text, options=options)


class _TagLookup(ET.ElementNamespaceClassLookup):
    """
    XML element class lookup that maps an XML element to a Python class using the tag name.
    Elements without a binding class (the leaf elements holding text values) fall back to the
    default objectify classes.
    """

    def __init__(self, element_classes: Mapping[str, Type[DescriptorElement]]):
        """
        :param element_classes: lxml element classes to add to the lookup table, by tag.
        """
        super().__init__(fallback=objectify.ObjectifyElementClassLookup())

        namespace = self.get_namespace(None)  # None is the empty namespace

        for tag, element_class in element_classes.items():
            namespace[tag] = element_class
