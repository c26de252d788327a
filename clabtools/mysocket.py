"""Parsing of mysocketio publish definitions and socket command construction."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

SUPPORTED_SOCK_TYPES = ("tcp", "tls", "http", "https")

_INT_RE = re.compile(r"[+-]?\d+")


class MySocketError(ValueError):
    """A publish definition is invalid."""


@dataclass
class MySocket:
    """A socket to publish through mysocketio."""

    stype: str = ""
    port: int = 0
    allowed_domains: list[str] = field(default_factory=list)
    allowed_emails: list[str] = field(default_factory=list)


def check_sock_type(t: str) -> None:
    """Raise MySocketError unless ``t`` is a supported socket type."""
    if t not in SUPPORTED_SOCK_TYPES:
        raise MySocketError(
            f"mysocketio type {t} is not supported. Supported types are tcp/tls/http/https"
        )


def check_sock_port(p: int) -> None:
    """Raise MySocketError unless ``p`` is a valid port number."""
    if p < 1 or p > 65535:
        raise MySocketError(f"incorrect port number {p}")


def parse_allowed_users(s: str) -> tuple[list[str], list[str]]:
    """Split a comma separated list into (domains, emails)."""
    domains: list[str] = []
    emails: list[str] = []
    for entry in (e.strip() for e in s.split(",")):
        if not entry:
            continue
        (emails if "@" in entry else domains).append(entry)
    return domains, emails


def parse_socket_cfg(s: str) -> MySocket:
    """Parse ``<type>/<port>[/<allowed domains and emails>]``."""
    parts = s.split("/")
    if len(parts) > 3:
        raise MySocketError(
            f"wrong mysocketio publish section {s}. should be "
            "<type>/<port-number>[/<allowed-domains>|<email>,], "
            "i.e. tcp/22 or tls/22/gmail.com or http/80/user@example.com,gmail.com"
        )
    check_sock_type(parts[0])
    if len(parts) < 2:
        raise MySocketError(f"missing port number in mysocketio publish section {s}")
    if not _INT_RE.fullmatch(parts[1]):
        raise MySocketError(f"invalid port number {parts[1]!r}")
    port = int(parts[1])
    check_sock_port(port)

    ms = MySocket(stype=parts[0], port=port)
    if len(parts) == 3:
        ms.allowed_domains, ms.allowed_emails = parse_allowed_users(parts[2])
        # identity aware TCP sockets require the TLS type
        if (ms.allowed_domains or ms.allowed_emails) and ms.stype == "tcp":
            ms.stype = "tls"
    return ms


def create_sock_cmd(ms: MySocket, name: str) -> str:
    """Build the mysocketctl command that creates the socket for node ``name``."""
    cmd = f"mysocketctl socket create -t {ms.stype} -n clab-{name}-{ms.stype}-{ms.port}"
    if ms.allowed_domains or ms.allowed_emails:
        cmd += " -c"
    if ms.allowed_domains:
        cmd += f" -d '{','.join(ms.allowed_domains)}'"
    if ms.allowed_emails:
        cmd += f" -e '{','.join(ms.allowed_emails)}'"
    return cmd