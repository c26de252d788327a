"""Summaries of lab containers as tables or JSON."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Iterable

from tabulate import tabulate

_HEADER = (
    "Lab Name",
    "Name",
    "Container ID",
    "Image",
    "Kind",
    "State",
    "IPv4 Address",
    "IPv6 Address",
)

# (attribute, JSON key) in output order
_JSON_FIELDS = (
    ("lab_name", "lab_name"),
    ("lab_path", "labPath"),
    ("name", "name"),
    ("container_id", "container_id"),
    ("image", "image"),
    ("kind", "kind"),
    ("group", "group"),
    ("state", "state"),
    ("ipv4_address", "ipv4_address"),
    ("ipv6_address", "ipv6_address"),
)


@dataclass
class ContainerInfo:
    """A container as reported by a container runtime."""

    id: str = ""
    short_id: str = ""
    names: list[str] = field(default_factory=list)
    image: str = ""
    state: str = ""
    status: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    ipv4_address: str = ""
    ipv4_prefix_len: int = 0
    ipv6_address: str = ""
    ipv6_prefix_len: int = 0


@dataclass
class ContainerDetails:
    """One row of the inspect summary."""

    lab_name: str = ""
    lab_path: str = ""
    name: str = ""
    container_id: str = ""
    image: str = ""
    kind: str = ""
    group: str = ""
    state: str = ""
    ipv4_address: str = ""
    ipv6_address: str = ""

    def to_dict(self) -> dict[str, str]:
        """Return the non-empty fields keyed by their JSON names."""
        return {key: getattr(self, attr) for attr, key in _JSON_FIELDS if getattr(self, attr)}


def format_address(addr: str, prefix_len: int) -> str:
    """Return ``addr/prefix_len``, or ``N/A`` when there is no address."""
    if not addr:
        return "N/A"
    return f"{addr}/{prefix_len}"


def _relative_path(target: str, cwd: str) -> str:
    if not target or os.path.isabs(target) != os.path.isabs(cwd):
        return ""
    return os.path.relpath(target, cwd)


def container_details(
    containers: Iterable[ContainerInfo], cwd: str | None = None
) -> list[ContainerDetails]:
    """Build summary rows sorted by lab name, then container name."""
    base = cwd if cwd is not None else os.getcwd()
    result = []
    for cont in containers:
        labels = cont.labels
        result.append(
            ContainerDetails(
                lab_name=labels.get("containerlab", ""),
                lab_path=_relative_path(labels.get("clab-topo-file", ""), base),
                name=cont.names[0].lstrip("/") if cont.names else "",
                container_id=cont.short_id,
                image=cont.image,
                kind=labels.get("clab-node-kind", ""),
                group=labels.get("clab-node-group", ""),
                state=cont.state,
                ipv4_address=format_address(cont.ipv4_address, cont.ipv4_prefix_len),
                ipv6_address=format_address(cont.ipv6_address, cont.ipv6_prefix_len),
            )
        )
    result.sort(key=lambda d: (d.lab_name, d.name))
    return result


def to_table_data(details: Iterable[ContainerDetails], show_all: bool) -> list[list[str]]:
    """Return table rows, numbered from 1; lab path and name only with ``show_all``."""
    rows = []
    for number, d in enumerate(details, start=1):
        common = [d.name, d.container_id, d.image, d.kind, d.state, d.ipv4_address, d.ipv6_address]
        prefix = [str(number)]
        if show_all:
            prefix += [d.lab_path, d.lab_name]
        rows.append(prefix + common)
    return rows


def _merge_repeated(rows: list[list[str]], columns: tuple[int, ...]) -> list[list[str]]:
    merged = []
    previous: list[str] | None = None
    for row in rows:
        shown = list(row)
        if previous is not None:
            for col in columns:
                if row[col] == previous[col]:
                    shown[col] = ""
        merged.append(shown)
        previous = row
    return merged


def render_table(details: Iterable[ContainerDetails], show_all: bool) -> str:
    """Render the summary as a text table, merging repeated path and lab cells."""
    if show_all:
        headers = ["#", "Topo Path", *_HEADER]
    else:
        headers = ["#", *_HEADER[1:]]
    rows = _merge_repeated(to_table_data(details, show_all), (1, 2))
    return tabulate(rows, headers=headers, tablefmt="grid", disable_numparse=True)


def render_json(details: Iterable[ContainerDetails]) -> str:
    """Render the summary as indented JSON, leaving out empty fields."""
    return json.dumps([d.to_dict() for d in details], indent=2)