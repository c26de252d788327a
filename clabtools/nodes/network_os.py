"""Nokia SR Linux and Arista cEOS node kinds."""

from __future__ import annotations

import logging
import re
import secrets
import shlex
import shutil
import time
from pathlib import Path
from typing import Callable, Mapping, Sequence

from clabtools.nodes.base import (
    IMAGE_KEY,
    NODE_KIND_CEOS,
    NODE_KIND_SRL,
    ContainerRuntime,
    MgmtNet,
    Node,
    NodeConfig,
    NodeError,
    _text,
    gen_mac,
    merge_string_maps,
    register,
)

log = logging.getLogger(__name__)

SRL_DEFAULT_TYPE = "ixrd2"
SRL_READY_TIMEOUT = 120.0
SRL_RETRY_INTERVAL = 1.0

SRL_SYSCTLS = {
    "net.ipv4.ip_forward": "0",
    "net.ipv6.conf.all.disable_ipv6": "0",
    "net.ipv6.conf.all.accept_dad": "0",
    "net.ipv6.conf.default.accept_dad": "0",
    "net.ipv6.conf.all.autoconf": "0",
    "net.ipv6.conf.default.autoconf": "0",
}

SRL_TYPES = {
    "ixr6": "7250IXR6.yml",
    "ixr10": "7250IXR10.yml",
    "ixrd1": "7220IXRD1.yml",
    "ixrd2": "7220IXRD2.yml",
    "ixrd3": "7220IXRD3.yml",
    "ixrh2": "7220IXRH2.yml",
    "ixrh3": "7220IXRH3.yml",
}

SRL_ENV = {"SRLINUX": "1"}
SRL_CMD = "sudo bash -c 'touch /.dockerenv && /opt/srlinux/bin/sr_linux'"

SRL_SAVE_CMD = ("sr_cli", "-d", "tools", "system", "configuration", "save")
SRL_MGMT_SERVER_READY_CMD = tuple(
    shlex.split(
        "sr_cli -d info from state system app-management application mgmt_server state | grep running"
    )
)
SRL_COMMIT_COMPLETE_CMD = tuple(
    shlex.split("sr_cli -d info from state system configuration commit 1 status | grep complete")
)

CEOS_ENV = {
    "CEOS": "1",
    "EOS_PLATFORM": "ceoslab",
    "container": "docker",
    "ETBA": "4",
    "SKIP_ZEROTOUCH_BARRIER_IN_SYSDBINIT": "1",
    "INTFTYPE": "eth",
    "MAPETH0": "1",
    "MGMT_INTF": "eth0",
}
CEOS_MAC_OUI = "00:1c:73"
CEOS_SAVE_CMD = ("Cli", "-p", "15", "-c", "wr")
CEOS_CLI_PLATFORM = "arista_eos"

_MAC_TEMPLATE_RE = re.compile(r"\{\{-?\s*\.MAC\s*-?\}\}")
_MAC_RE = re.compile(r"[0-9A-Fa-f]{2}([:-])(?:[0-9A-Fa-f]{2}\1){4}[0-9A-Fa-f]{2}")

# sends configuration lines to a node CLI: (container name, platform, lines)
CliSender = Callable[[str, str, Sequence[str]], None]


def render_srl_default_config(tls_key: str, tls_cert: str, tls_anchor: str = "") -> str:
    """Return the CLI commands added on top of the SR Linux factory configuration."""
    profile = "set / system tls server-profile clab-profile"
    lines = [
        profile,
        f'{profile} key "{tls_key}"',
        f'{profile} certificate "{tls_cert}"',
    ]
    if tls_anchor:
        lines.append(f"{profile} authenticate-client true")
        lines.append(f'{profile} trust-anchor "{tls_anchor}"')
    else:
        lines.append(f"{profile} authenticate-client false")
    lines += [
        "set / system gnmi-server admin-state enable network-instance mgmt admin-state enable "
        "tls-profile clab-profile",
        "set / system json-rpc-server admin-state enable network-instance mgmt http admin-state enable",
        "set / system json-rpc-server admin-state enable network-instance mgmt https admin-state enable "
        "tls-profile clab-profile",
        "set / system lldp admin-state enable",
        "set / system aaa authentication idle-timeout 7200",
        "commit save",
    ]
    return "\n".join(lines)


def system_mac(mac: str) -> str:
    """Return the system MAC: ``mac`` with its last byte incremented (wrapping)."""
    if not _MAC_RE.fullmatch(mac):
        raise ValueError(f"invalid MAC address {mac!r}")
    octets = [int(part, 16) for part in re.split(r"[:-]", mac)]
    octets[5] = (octets[5] + 1) % 256
    return ":".join(f"{b:02x}" for b in octets)


def _copy(src: str | Path, dst: Path, message: str) -> None:
    try:
        shutil.copyfile(src, dst)
    except OSError as exc:
        raise NodeError(f"{message} src {src} -> dst {dst} failed {exc}") from exc
    log.debug("CopyFile src %s -> dst %s succeeded", src, dst)


class SrlNode(Node):
    """A Nokia SR Linux container."""

    kind = NODE_KIND_SRL

    def __init__(
        self,
        runtime: ContainerRuntime | None = None,
        topology_dir: str | Path | None = None,
        ready_timeout: float = SRL_READY_TIMEOUT,
        retry_interval: float = SRL_RETRY_INTERVAL,
    ) -> None:
        super().__init__(runtime)
        self.topology_dir = Path(topology_dir) if topology_dir is not None else None
        self.ready_timeout = ready_timeout
        self.retry_interval = retry_interval

    def init(self, cfg: NodeConfig, mgmt: MgmtNet | None = None) -> None:
        """Validate the node type and apply SR Linux defaults and mounts."""
        super().init(cfg, mgmt)
        if not cfg.node_type:
            cfg.node_type = SRL_DEFAULT_TYPE
        if cfg.node_type not in SRL_TYPES:
            raise NodeError(
                f"wrong node type. '{cfg.node_type}' doesn't exist. "
                f"should be any of {', '.join(SRL_TYPES)}"
            )
        # the touch supports runtimes other than docker
        cfg.cmd = SRL_CMD
        cfg.env = merge_string_maps(SRL_ENV, cfg.env)
        if not cfg.user:
            cfg.user = "0:0"
        cfg.sysctls.update(SRL_SYSCTLS)

        lab_dir = Path(cfg.lab_dir)
        if cfg.license:
            cfg.binds.append(f"{lab_dir / 'license.key'}:/opt/srlinux/etc/license.key:ro")
        cfg.binds.append(f"{lab_dir / 'config'}:/etc/opt/srlinux/:rw")
        cfg.binds.append(f"{lab_dir / 'topology.yml'}:/tmp/topology.yml:ro")

    def get_images(self) -> dict[str, str]:
        """Return the SR Linux container image."""
        return {IMAGE_KEY: self._require_cfg().image}

    def pre_deploy(self, config_name: str = "", lab_ca_dir: str = "", lab_ca_root: str = "") -> None:
        cfg = self._require_cfg()
        lab_dir = Path(cfg.lab_dir)
        lab_dir.mkdir(parents=True, exist_ok=True)

        if cfg.srl_agents:
            appmgr = lab_dir / "config" / "appmgr"
            appmgr.mkdir(parents=True, exist_ok=True)
            for agent in cfg.srl_agents:
                _copy(agent, appmgr / Path(agent).name, "agent copy")

        if cfg.license:
            _copy(cfg.license, lab_dir / "license.key", "CopyFile")

        self._write_topology_file(cfg)

        config_dir = lab_dir / "config"
        config_dir.mkdir(parents=True, exist_ok=True)
        if cfg.startup_config:
            log.debug("Reading startup-config %s", cfg.startup_config)
            try:
                content = Path(cfg.startup_config).read_text()
            except OSError as exc:
                raise NodeError(f"failed to read startup config {cfg.startup_config}: {exc}") from exc
            try:
                (config_dir / "config.json").write_text(content)
            except OSError as exc:
                log.error("node=%s, failed to generate config: %s", cfg.short_name, exc)

    def _write_topology_file(self, cfg: NodeConfig) -> None:
        if self.topology_dir is None:
            return
        src = self.topology_dir / SRL_TYPES[cfg.node_type]
        try:
            template = src.read_text()
        except OSError as exc:
            raise NodeError(f"failed to get srl topology file: {exc}") from exc
        # random 2nd and 3rd bytes give each node distinct port MACs
        b1, b2 = secrets.token_bytes(2)
        base_mac = f"02:{b1:02x}:{b2:02x}:00:00:00"
        (Path(cfg.lab_dir) / "topology.yml").write_text(_MAC_TEMPLATE_RE.sub(base_mac, template))

    def post_deploy(self, nodes: Mapping[str, Node]) -> None:
        cfg = self._require_cfg()
        existing = Path(cfg.lab_dir) / "config" / "config.json"
        # only provision additional config when there is no startup nor existing config
        if cfg.startup_config or existing.is_file():
            return
        log.info("Running postdeploy actions for Nokia SR Linux '%s' node", cfg.short_name)
        self._add_default_config()

    def save_config(self) -> None:
        cfg = self._require_cfg()
        try:
            stdout, stderr = self._require_runtime().exec(cfg.long_name, list(SRL_SAVE_CMD))
        except NodeError:
            raise
        except Exception as exc:
            raise NodeError(f"{cfg.short_name}: failed to execute cmd: {exc}") from exc
        err = _text(stderr)
        if err:
            raise NodeError(f"{cfg.short_name} errors: {err}")
        log.info("saved SR Linux configuration from %s node. Output:\n%s", cfg.short_name, _text(stdout))

    def _check(self, cmd: Sequence[str], expected: str) -> tuple[bool, Exception | None]:
        cfg = self._require_cfg()
        try:
            stdout, stderr = self._require_runtime().exec(cfg.long_name, list(cmd))
        except NodeError:
            raise
        except Exception as exc:
            return False, exc
        err = _text(stderr)
        if err:
            log.debug("error during checking SR Linux boot status: %s", err)
            return False, None
        return expected in _text(stdout), None

    def ready(self) -> None:
        """Wait until the node accepts configuration commands; raise NodeError on timeout."""
        cfg = self._require_cfg()
        deadline = time.monotonic() + self.ready_timeout
        last_error: Exception | None = None
        log.debug("Waiting for SR Linux node %r to boot...", cfg.short_name)
        while time.monotonic() < deadline:
            ok, last_error = self._check(SRL_MGMT_SERVER_READY_CMD, "running")
            if ok:
                ok, last_error = self._check(SRL_COMMIT_COMPLETE_CMD, "complete")
                if ok:
                    log.debug("Node %s booted", cfg.short_name)
                    return
                log.debug("node %s not yet ready", cfg.short_name)
            time.sleep(self.retry_interval)
        raise NodeError(
            f"timed out waiting for SR Linux node {cfg.short_name} to boot: {last_error}"
        )

    def _add_default_config(self) -> None:
        cfg = self._require_cfg()
        runtime = self._require_runtime()
        self.ready()
        config = render_srl_default_config(cfg.tls_key, cfg.tls_cert, cfg.tls_anchor)
        log.debug("Node %r additional config:\n%s", cfg.short_name, config)
        runtime.exec(cfg.long_name, ["bash", "-c", f"echo '{config}' > /tmp/clab-config"])
        stdout, stderr = runtime.exec(cfg.long_name, ["bash", "-c", "sr_cli -ed < tmp/clab-config"])
        log.debug("node %s. stdout: %s, stderr: %s", cfg.short_name, _text(stdout), _text(stderr))


class CeosNode(Node):
    """An Arista cEOS container."""

    kind = NODE_KIND_CEOS

    def __init__(
        self,
        runtime: ContainerRuntime | None = None,
        default_config: str = "",
        cli_sender: CliSender | None = None,
    ) -> None:
        super().__init__(runtime)
        self.default_config = default_config
        self.cli_sender = cli_sender

    def init(self, cfg: NodeConfig, mgmt: MgmtNet | None = None) -> None:
        """Apply the cEOS environment, matching init command, MAC and flash mount."""
        super().init(cfg, mgmt)
        cfg.env = merge_string_maps(CEOS_ENV, cfg.env)
        # the init command must match the environment
        cfg.cmd = "/sbin/init " + "".join(f"systemd.setenv={k}={v} " for k, v in cfg.env.items())
        cfg.mac_address = gen_mac(CEOS_MAC_OUI)
        cfg.binds.append(f"{Path(cfg.lab_dir) / 'flash'}:/mnt/flash/")

    def get_images(self) -> dict[str, str]:
        """Return the cEOS container image."""
        return {IMAGE_KEY: self._require_cfg().image}

    def pre_deploy(self, config_name: str = "", lab_ca_dir: str = "", lab_ca_root: str = "") -> None:
        cfg = self._require_cfg()
        flash = Path(cfg.lab_dir) / "flash"
        flash.mkdir(parents=True, exist_ok=True)
        startup = flash / "startup-config"
        cfg.res_startup_config = str(startup)

        content = self.default_config
        if cfg.startup_config:
            try:
                content = Path(cfg.startup_config).read_text()
            except OSError as exc:
                raise NodeError(f"failed to read startup config {cfg.startup_config}: {exc}") from exc
        startup.write_text(content)

        try:
            sys_mac = system_mac(cfg.mac_address)
        except ValueError as exc:
            raise NodeError(str(exc)) from exc
        (flash / "system_mac_address").write_text(sys_mac)

    def mgmt_configs(self) -> list[str]:
        """Return the CLI lines that set the management interface addresses."""
        cfg = self._require_cfg()
        lines = ["interface management 0", "no ip address", "no ipv6 address"]
        if cfg.mgmt_ipv4_address:
            lines.append(f"ip address {cfg.mgmt_ipv4_address}/{cfg.mgmt_ipv4_prefix_length}")
        if cfg.mgmt_ipv6_address:
            lines.append(f"ipv6 address {cfg.mgmt_ipv6_address}/{cfg.mgmt_ipv6_prefix_length}")
        lines.append("wr")
        return lines

    def post_deploy(self, nodes: Mapping[str, Node]) -> None:
        cfg = self._require_cfg()
        log.info("Running postdeploy actions for Arista cEOS '%s' node", cfg.short_name)
        if self.cli_sender is None:
            raise NodeError(f"{cfg.short_name}: no CLI sender is set")
        try:
            self.cli_sender(cfg.long_name, CEOS_CLI_PLATFORM, self.mgmt_configs())
        except NodeError:
            raise
        except Exception as exc:
            raise NodeError(f"failed CLI configuration: {exc}") from exc

    def save_config(self) -> None:
        cfg = self._require_cfg()
        try:
            _, stderr = self._require_runtime().exec(cfg.long_name, list(CEOS_SAVE_CMD))
        except NodeError:
            raise
        except Exception as exc:
            raise NodeError(f"{cfg.short_name}: failed to execute cmd: {exc}") from exc
        err = _text(stderr)
        if err:
            raise NodeError(f"{cfg.short_name} errors: {err}")
        log.info(
            "saved cEOS configuration from %s node to %s",
            cfg.short_name,
            Path(cfg.lab_dir) / "flash" / "startup-config",
        )


register(SrlNode.kind, SrlNode)
register(CeosNode.kind, CeosNode)