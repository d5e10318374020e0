# Copyright (c) 2024 Nordic Semiconductor ASA
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from textwrap import dedent
from typing import List, Optional, TextIO

import periphview
from periphview.device import NumberFormat, Peripheral, RegisterMap, _Node


def cli(argv: Optional[List[str]] = None) -> None:
    top = argparse.ArgumentParser(
        prog="periphview",
        description=dedent(
            """\
            Inspect the peripheral register map described by a System View Description (SVD)
            file.
            """
        ),
        allow_abbrev=False,
    )
    top.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help=(
            "Output verbose logs. Can be given multiple times to increase the verbosity. "
            "By default only critical messages are output."
        ),
    )

    sub = top.add_subparsers(title="subcommands")

    tree = sub.add_parser(
        "tree",
        help="Print the register map as a tree.",
        description=dedent(
            """\
            Print the peripherals, clusters and registers of a device, one node per line,
            with register values at their reset value.
            """
        ),
        allow_abbrev=False,
    )
    tree.set_defaults(_command="tree")
    _add_svd_arguments(tree)
    tree.add_argument(
        "-p",
        "--peripheral",
        metavar="NAME",
        dest="peripherals",
        action="append",
        help="Limit output to the given peripheral. May be given multiple times.",
    )
    tree.add_argument(
        "-f",
        "--fields",
        action="store_true",
        help="Include register fields in the output.",
    )
    tree.add_argument(
        "--state",
        metavar="FILE",
        type=Path,
        help="Display state file to apply before printing, as written by the controller.",
    )
    tree.add_argument(
        "--format",
        choices=[f.value for f in NumberFormat],
        help="Display format applied to all peripherals.",
    )

    find = sub.add_parser(
        "find",
        help="Print a single node of the register map.",
        allow_abbrev=False,
    )
    find.set_defaults(_command="find")
    _add_svd_arguments(find)
    find.add_argument(
        "path",
        help="Dotted path of the node, for example UART0.CONFIG.PARITY.",
    )

    args = top.parse_args(argv)

    log_level = {
        0: logging.CRITICAL,
        1: logging.WARNING,
        2: logging.INFO,
        3: logging.DEBUG,
    }.get(args.verbose, logging.DEBUG)
    periphview.log.setLevel(log_level)

    if not hasattr(args, "_command"):
        top.print_usage()
        sys.exit(2)

    try:
        if args._command == "tree":
            cmd_tree(args, sys.stdout)
        elif args._command == "find":
            cmd_find(args, sys.stdout)
        else:
            top.print_usage()
            sys.exit(2)
    except (FileNotFoundError, periphview.PeriphViewError) as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)

    sys.exit(0)


def _add_svd_arguments(parser: argparse.ArgumentParser) -> None:
    svd_group = parser.add_argument_group("SVD options")
    svd_group.add_argument(
        "-s",
        "--svd-file",
        required=True,
        type=Path,
        help="Path to the device SVD file.",
    )
    svd_group.add_argument(
        "--parse-options",
        type=json.loads,
        help=(
            "JSON object used to override fields in the Options object to customize parsing "
            "behavior."
        ),
    )


def _load(args: argparse.Namespace) -> RegisterMap:
    options = periphview.Options()
    if args.parse_options:
        options = dataclasses.replace(options, **args.parse_options)

    return periphview.parse_file(args.svd_file, options=options)


def _print_node(node: _Node, out: TextIO, fields: bool, depth: int = 0) -> None:
    out.write(f"{'  ' * depth}{node.label}\n")

    for child in node.children:
        if not fields and isinstance(child, periphview.Field):
            continue
        _print_node(child, out, fields, depth + 1)


def cmd_tree(args: argparse.Namespace, out: TextIO) -> None:
    register_map = _load(args)

    if args.state is not None:
        settings = periphview.JsonSettingsStore(args.state).load()
        register_map.apply_state(settings)

    peripherals: List[Peripheral] = []

    if args.peripherals:
        for name in args.peripherals:
            peripherals.append(register_map[name])
    else:
        peripherals.extend(register_map.values())

    for peripheral in peripherals:
        if args.format is not None:
            peripheral.format = NumberFormat(args.format)
        _print_node(peripheral, out, args.fields)


def cmd_find(args: argparse.Namespace, out: TextIO) -> None:
    register_map = _load(args)
    node = register_map.get_node(args.path)

    out.write(f"{node.label}\n")
    if node.description:
        out.write(f"{node.description}\n")


# Entry point when running with python -m periphview
if __name__ == "__main__":
    cli()
