"""Generation of Clos fabric topology definitions from command-line style flags."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

import yaml

DEFAULT_SRL_TYPE = "ixrd2"
DEFAULT_NODE_PREFIX = "node"
DEFAULT_GROUP_PREFIX = "tier"

INTERFACE_FORMAT = {
    "srl": "e1-{}",
    "ceos": "eth{}",
    "crpd": "eth{}",
    "sonic-vs": "eth{}",
    "linux": "eth{}",
    "bridge": "veth{}",
    "vr-sros": "eth{}",
    "vr-vmx": "eth{}",
    "vr-xrv9k": "eth{}",
    "vr-veos": "eth{}",
}

SUPPORTED_KINDS = (
    "srl",
    "ceos",
    "linux",
    "bridge",
    "sonic-vs",
    "crpd",
    "vr-sros",
    "vr-vmx",
    "vr-xrv9k",
)

# kinds accepted as the second item of a "<num>:<kind>" nodes definition
_KINDS_WITHOUT_TYPE = {"ceos", "linux", "bridge", "sonic", "crpd"}

_INT_RE = re.compile(r"[+-]?\d+")


class GenerateError(Exception):
    """Base error for topology generation."""


class SyntaxFlagError(GenerateError):
    """A flag value does not follow the expected syntax."""


class DuplicatedValueError(GenerateError):
    """A flag value was given more than once for the same kind."""


@dataclass(frozen=True)
class NodesDef:
    """One Clos stage: how many nodes, of which kind and type."""

    num_nodes: int
    kind: str
    typ: str = ""


def parse_flag(kind: str, items: list[str] | None) -> dict[str, str]:
    """Parse ``[<kind>=]<value>`` items into a mapping of kind to value.

    Items without a kind prefix are attributed to ``kind``.
    """
    result: dict[str, str] = {}
    for item in items or ():
        key, sep, value = item.partition("=")
        if not sep:
            if not kind:
                raise SyntaxFlagError(f"no kind specified for flag item '{item}'")
            key, value = kind, item
        if key in result:
            raise DuplicatedValueError(f"duplicated flag item for kind '{key}'")
        result[key] = value
    return result


def _parse_count(text: str) -> int:
    if not _INT_RE.fullmatch(text):
        raise SyntaxFlagError(f"failed converting '{text}' to an integer")
    count = int(text)
    if count < 0:
        raise SyntaxFlagError(f"number of nodes must not be negative: '{text}'")
    return count


def parse_nodes_flag(kind: str, *args: str) -> list[NodesDef]:
    """Parse ``<num>[:<kind>][:<type>]`` stage definitions."""
    if not args:
        raise SyntaxFlagError("no nodes specified using --nodes")

    result: list[NodesDef] = []
    for definition in args:
        items = definition.split(":", 2)
        count = _parse_count(items[0])
        if len(items) == 1:
            if not kind:
                raise SyntaxFlagError(f"no kind specified for nodes '{definition}'")
            typ = DEFAULT_SRL_TYPE if kind == "srl" else ""
            result.append(NodesDef(count, kind, typ))
        elif len(items) == 2:
            second = items[1]
            if second in _KINDS_WITHOUT_TYPE:
                result.append(NodesDef(count, second))
            elif second == "srl":
                result.append(NodesDef(count, second, DEFAULT_SRL_TYPE))
            else:
                # the second item is a type when the kind comes from --kind
                if not kind:
                    raise SyntaxFlagError(f"no kind specified for nodes '{definition}'")
                result.append(NodesDef(count, kind, second))
        else:
            result.append(NodesDef(count, items[1], items[2]))
    return result


def _interface(kind: str, index: int) -> str:
    try:
        return INTERFACE_FORMAT[kind].format(index)
    except KeyError:
        raise GenerateError(f"no interface naming known for kind '{kind}'") from None


def _node_definition(group: str, stage: NodesDef) -> dict[str, str]:
    definition = {"kind": stage.kind, "group": group, "type": stage.typ}
    return {k: v for k, v in definition.items() if v}


def _is_set(value: str | None) -> bool:
    return bool(value) and value != "<nil>"


def generate_topology_config(
    name: str,
    network: str,
    ipv4_range: str | None,
    ipv6_range: str | None,
    images: dict[str, str],
    licenses: dict[str, str],
    nodes: list[NodesDef],
    node_prefix: str = DEFAULT_NODE_PREFIX,
    group_prefix: str = DEFAULT_GROUP_PREFIX,
) -> str:
    """Build a Clos topology definition and return it as YAML text."""
    mgmt: dict[str, str] = {}
    if network:
        mgmt["network"] = network
    if _is_set(ipv4_range):
        mgmt["ipv4_subnet"] = ipv4_range
    if _is_set(ipv6_range):
        mgmt["ipv6_subnet"] = ipv6_range

    kinds: dict[str, dict[str, str]] = {}
    for kind, image in images.items():
        kinds[kind] = {"image": image}
    for kind, lic in licenses.items():
        kinds.setdefault(kind, {})["license"] = lic

    topo_nodes: dict[str, dict[str, str]] = {}
    links: list[dict[str, list[str]]] = []

    if len(nodes) == 1:
        stage = nodes[0]
        for j in range(stage.num_nodes):
            topo_nodes.setdefault(
                f"{node_prefix}1-{j + 1}", _node_definition(f"{group_prefix}-1", stage)
            )

    for i, (lower, upper) in enumerate(zip(nodes, nodes[1:])):
        offset = nodes[i - 1].num_nodes if i > 0 else 0
        for j in range(lower.num_nodes):
            node1 = f"{node_prefix}{i + 1}-{j + 1}"
            topo_nodes.setdefault(node1, _node_definition(f"{group_prefix}-{i + 1}", lower))
            for k in range(upper.num_nodes):
                node2 = f"{node_prefix}{i + 2}-{k + 1}"
                topo_nodes.setdefault(
                    node2, _node_definition(f"{group_prefix}-{i + 2}", upper)
                )
                links.append(
                    {
                        "endpoints": [
                            f"{node1}:{_interface(lower.kind, k + 1 + offset)}",
                            f"{node2}:{_interface(upper.kind, j + 1)}",
                        ]
                    }
                )

    topology: dict[str, object] = {}
    if kinds:
        topology["kinds"] = {k: kinds[k] for k in sorted(kinds)}
    if topo_nodes:
        topology["nodes"] = {k: topo_nodes[k] for k in sorted(topo_nodes)}
    if links:
        topology["links"] = links

    config: dict[str, object] = {}
    if name:
        config["name"] = name
    config["mgmt"] = mgmt
    config["topology"] = topology
    return yaml.safe_dump(config, sort_keys=False, default_flow_style=False)


def save_topo_file(path: str | Path, data: str | bytes) -> None:
    """Write topology data to ``path``, replacing any existing content."""
    target = Path(path)
    if isinstance(data, bytes):
        target.write_bytes(data)
    else:
        target.write_text(data, encoding="utf-8")