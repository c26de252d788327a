"""Parsing of veth endpoint references."""

from __future__ import annotations

from dataclasses import dataclass

SUPPORTED_KINDS = ("ovs-bridge", "bridge", "host")


@dataclass(frozen=True)
class VethEndpoint:
    """One side of a veth pair: what it attaches to and the interface name."""

    kind: str
    node: str
    iface: str


def parse_veth_endpoint(s: str) -> VethEndpoint:
    """Parse ``<node>:<iface>`` or ``<kind>:<node>:<iface>``.

    Two-part references attach to a container unless the node is ``host``.
    """
    parts = s.split(":")
    if len(parts) == 2:
        node, iface = parts
        kind = "host" if node == "host" else "container"
        return VethEndpoint(kind, node, iface)
    if len(parts) == 3:
        kind, node, iface = parts
        if kind not in SUPPORTED_KINDS:
            quoted = " ".join(f'"{k}"' for k in SUPPORTED_KINDS)
            raise ValueError(
                f"node type {kind} is not supported, supported nodes are [{quoted}]"
            )
        return VethEndpoint(kind, node, iface)
    raise ValueError("malformed veth endpoint reference")