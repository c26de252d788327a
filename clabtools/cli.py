"""Command-line entry point: global flags, the tools group and offline commands."""

from __future__ import annotations

import argparse
import ipaddress
import logging
import re
import sys
from typing import Sequence

from clabtools.generate import (
    DEFAULT_GROUP_PREFIX,
    DEFAULT_NODE_PREFIX,
    SUPPORTED_KINDS,
    GenerateError,
    generate_topology_config,
    parse_flag,
    parse_nodes_flag,
    save_topo_file,
)
from clabtools.version import version_banner

log = logging.getLogger(__name__)

VERSION = "0.0.0"
COMMIT = "none"
DATE = "unknown"

DEFAULT_TIMEOUT = 120.0

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = r"(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|μs|ms|s|m|h)"
_DURATION_RE = re.compile(rf"([+-]?)((?:{_DURATION_PART})+)")
_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class CommandError(Exception):
    """A command failed; the message is shown to the user."""


def _duration(text: str) -> float:
    """Parse a duration such as ``30s``, ``1m`` or ``2m30s`` into seconds."""
    if text in ("0", "+0", "-0"):
        return 0.0
    match = _DURATION_RE.fullmatch(text)
    if not match:
        raise argparse.ArgumentTypeError(f"invalid duration {text!r}")
    sign, body = match.groups()
    total = sum(float(num) * _UNIT_SECONDS[unit] for num, unit in _PART_RE.findall(body))
    return -total if sign == "-" else total


def _ip_subnet(version: int):
    def parse(text: str) -> str:
        try:
            net = ipaddress.ip_network(text, strict=False)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"invalid subnet {text!r}") from exc
        if net.version != version:
            raise argparse.ArgumentTypeError(f"{text!r} is not an IPv{version} subnet")
        return str(net)

    return parse


def _split_values(values: Sequence[str] | None) -> list[str]:
    """Flatten repeated, comma separated flag values."""
    return [part for value in values or () for part in value.split(",") if part]


def _run_version(args: argparse.Namespace) -> str:
    """Return the version banner of this build."""
    return version_banner(VERSION, COMMIT, DATE)


def _run_generate(args: argparse.Namespace) -> str | None:
    """Generate a Clos topology; return it unless it was saved to a file."""
    if not args.name:
        raise CommandError("provide a lab name with --name flag")
    try:
        licenses = parse_flag(args.kind, _split_values(args.license))
        log.debug("parsed licenses: %s", licenses)
        images = parse_flag(args.kind, _split_values(args.image))
        log.debug("parsed images: %s", images)
        node_defs = parse_nodes_flag(args.kind, *_split_values(args.nodes))
        log.debug("parsed nodes definitions: %s", node_defs)
        text = generate_topology_config(
            args.name,
            args.network,
            args.ipv4_subnet,
            args.ipv6_subnet,
            images,
            licenses,
            node_defs,
            args.node_prefix,
            args.group_prefix,
        )
    except GenerateError as exc:
        raise CommandError(str(exc)) from exc
    log.debug("generated topo: %s", text)
    if args.file:
        try:
            save_topo_file(args.file, text)
        except OSError as exc:
            raise CommandError(str(exc)) from exc
        return None
    return text + "\n"


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with global flags and all subcommands."""
    parser = argparse.ArgumentParser(
        prog="clabtools",
        description="deploy container based lab environments with a user-defined interconnections",
    )
    parser.add_argument("-d", "--debug", action="count", default=0, help="enable debug mode")
    parser.add_argument(
        "-t", "--topo", default="", help="path to the file with topology information"
    )
    parser.add_argument("-n", "--name", default="", help="lab name")
    parser.add_argument(
        "--timeout",
        type=_duration,
        default=DEFAULT_TIMEOUT,
        help="timeout for external API requests (e.g. container runtimes), e.g: 30s, 1m, 2m30s",
    )
    parser.add_argument("-r", "--runtime", default="", help="container runtime")
    parser.set_defaults(func=None, subparser=parser)

    commands = parser.add_subparsers(dest="command")

    version = commands.add_parser("version", help="show version")
    version.set_defaults(func=_run_version)

    tools = commands.add_parser(
        "tools",
        help="various tools your lab might need",
        description="tools command groups various tools you might need for your lab",
    )
    tools.add_subparsers(dest="tool")
    tools.set_defaults(func=None, subparser=tools)

    gen = commands.add_parser(
        "generate", aliases=["gen"], help="generate a Clos topology file, based on provided flags"
    )
    gen.add_argument("--network", default="", help="management network name")
    gen.add_argument(
        "-4", "--ipv4-subnet", type=_ip_subnet(4), default=None,
        help="management network IPv4 subnet range",
    )
    gen.add_argument(
        "-6", "--ipv6-subnet", type=_ip_subnet(6), default=None,
        help="management network IPv6 subnet range",
    )
    gen.add_argument(
        "--image", action="append",
        help="container image name, can be prefixed with the node kind. <kind>=<image_name>",
    )
    gen.add_argument(
        "--kind", default="srl", help=f"container kind, one of {list(SUPPORTED_KINDS)}"
    )
    gen.add_argument(
        "--nodes", action="append",
        help="comma separated nodes definitions in format <num_nodes>:<kind>:<type>",
    )
    gen.add_argument(
        "--license", action="append",
        help="path to license file, can be prefix with the node kind. <kind>=/path/to/file",
    )
    gen.add_argument("--node-prefix", default=DEFAULT_NODE_PREFIX, help="prefix used in node names")
    gen.add_argument(
        "--group-prefix", default=DEFAULT_GROUP_PREFIX, help="prefix used in group names"
    )
    gen.add_argument("--file", default="", help="file path to save generated topology")
    gen.set_defaults(func=_run_generate)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line; return the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    debug = args.debug > 0
    logging.basicConfig(level=logging.DEBUG if debug else logging.INFO)
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.func is None:
        args.subparser.print_help()
        return 0
    try:
        output = args.func(args)
    except CommandError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if output:
        sys.stdout.write(output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())