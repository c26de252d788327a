"""Version banner, release-notes slugs and version comparison."""

from __future__ import annotations

from packaging.version import InvalidVersion, Version

SLUG = r"""
                           _                   _       _     
                 _        (_)                 | |     | |    
 ____ ___  ____ | |_  ____ _ ____   ____  ____| | ____| | _  
/ ___) _ \|  _ \|  _)/ _  | |  _ \ / _  )/ ___) |/ _  | || \ 
( (__| |_|| | | | |_( ( | | | | | ( (/ /| |   | ( ( | | |_) )
\____)___/|_| |_|\___)_||_|_|_| |_|\____)_|   |_|\_||_|____/ 
"""


def _parse(ver: str) -> Version:
    try:
        return Version(ver)
    except InvalidVersion as exc:
        raise ValueError(f"invalid version {ver!r}") from exc


def docs_link_from_ver(ver: str) -> str:
    """Return the release-notes path for a version.

    ``0.15.0`` gives ``0.15/`` and ``0.15.1`` gives ``0.15/#0151``.
    """
    release = _parse(ver).release + (0, 0, 0)
    major, minor, patch = release[:3]
    slug = f"{major}.{minor}/"
    if patch != 0:
        slug += f"#{major}{minor}{patch}"
    return slug


def version_banner(version: str, commit: str, date: str) -> str:
    """Return the text shown by the ``version`` command."""
    lines = [
        SLUG,
        f"    version: {version}",
        f"     commit: {commit}",
        f"       date: {date}",
        f" rel. notes: rn/{docs_link_from_ver(version)}",
    ]
    return "\n".join(lines) + "\n"


def is_newer(latest: str, current: str) -> bool:
    """Tell whether ``latest`` is a newer version than ``current``.

    Versions that cannot be parsed are never considered newer.
    """
    try:
        return Version(latest) > Version(current)
    except InvalidVersion:
        return False