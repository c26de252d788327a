"""Node configuration, the node kind registry and the simpler node kinds."""

from __future__ import annotations

import logging
import secrets
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, Protocol, Sequence

from clabtools.mysocket import create_sock_cmd, parse_socket_cfg

log = logging.getLogger(__name__)

# default connection mode for vrnetlab based containers
VR_DEF_CONN_MODE = "tc"

# keys of the mapping returned by Node.get_images
IMAGE_KEY = "image"
KERNEL_KEY = "kernel"
SANDBOX_KEY = "sandbox"

IGNITE_RUNTIME = "ignite"

NODE_KIND_BRIDGE = "bridge"
NODE_KIND_CEOS = "ceos"
NODE_KIND_CVX = "cvx"
NODE_KIND_CRPD = "crpd"
NODE_KIND_HOST = "host"
NODE_KIND_LINUX = "linux"
NODE_KIND_MYSOCKETIO = "mysocketio"
NODE_KIND_OVS = "ovs-bridge"
NODE_KIND_SONIC = "sonic-vs"
NODE_KIND_SRL = "srl"
NODE_KIND_VR_CSR = "vr-csr"
NODE_KIND_VR_PAN = "vr-pan"
NODE_KIND_VR_N9KV = "vr-n9kv"
NODE_KIND_VR_FTOSV = "vr-ftosv"
NODE_KIND_VR_ROS = "vr-ros"
NODE_KIND_VR_SROS = "vr-sros"
NODE_KIND_VR_VEOS = "vr-veos"
NODE_KIND_VR_VMX = "vr-vmx"
NODE_KIND_VR_VQFX = "vr-vqfx"
NODE_KIND_VR_XRV = "vr-xrv"
NODE_KIND_VR_XRV9K = "vr-xrv9k"
NODE_KIND_VR_NXOS = "vr-nxos"

# node kinds that override the default global runtime
NON_DEFAULT_RUNTIMES = {NODE_KIND_CVX: IGNITE_RUNTIME}

DEFAULT_CONFIG_TEMPLATES = {"vr-sros": ""}

# default (username, password) per kind
DEFAULT_CREDENTIALS: dict[str, tuple[str, str]] = {
    "srl": ("admin", "admin"),
    "vr-pan": ("admin", "Admin@123"),
    "vr-n9kv": ("admin", "admin"),
    "vr-ftosv": ("admin", "admin"),
    "vr-sros": ("admin", "admin"),
    "vr-vmx": ("admin", "admin@123"),
    "vr-vqfx": ("admin", "admin@123"),
    "vr-xrv9k": ("clab", "clab@123"),
}

DEFAULT_CVX_KERNEL_IMAGE = "docker.io/networkop/kernel:4.19"
DEFAULT_IGNITE_SANDBOX_IMAGE = "networkop/ignite:dev"
CVX_MEMORY_REQS = {"4.3.0": "512MB", "4.4.0": "768MB"}
CVX_DEFAULT_RAM = "768MB"


class NodeError(Exception):
    """A node could not be configured, deployed or managed."""


class ContainerRuntime(Protocol):
    """What nodes need from a container runtime."""

    name: str

    def create_container(self, cfg: "NodeConfig") -> object: ...

    def delete_container(self, name: str) -> None: ...

    def exec(self, container: str, cmd: Sequence[str]) -> tuple[bytes | str, bytes | str]: ...

    def exec_not_wait(self, container: str, cmd: Sequence[str]) -> None: ...


@dataclass
class MgmtNet:
    """Management network settings of a lab."""

    network: str = ""
    ipv4_subnet: str = ""
    ipv6_subnet: str = ""
    bridge: str = ""


@dataclass
class NodeConfig:
    """Everything known about one node of a lab."""

    short_name: str = ""
    long_name: str = ""
    kind: str = ""
    image: str = ""
    node_type: str = ""
    group: str = ""
    index: int = 0
    fqdn: str = ""
    lab_dir: str = ""
    env: dict[str, str] = field(default_factory=dict)
    binds: list[str] = field(default_factory=list)
    sysctls: dict[str, str] = field(default_factory=dict)
    cmd: str = ""
    entrypoint: str = ""
    user: str = ""
    license: str = ""
    startup_config: str = ""
    res_startup_config: str = ""
    mac_address: str = ""
    network_mode: str = ""
    mgmt_ipv4_address: str = ""
    mgmt_ipv4_prefix_length: int = 0
    mgmt_ipv6_address: str = ""
    mgmt_ipv6_prefix_length: int = 0
    container_id: str = ""
    kernel: str = ""
    sandbox: str = ""
    ram: str = ""
    publish: list[str] = field(default_factory=list)
    exec: list[str] = field(default_factory=list)
    extra_hosts: list[str] = field(default_factory=list)
    mysocket_proxy: str = ""
    srl_agents: list[str] = field(default_factory=list)
    tls_cert: str = ""
    tls_key: str = ""
    tls_anchor: str = ""
    deployment_status: str = ""


def merge_string_maps(*args: Mapping[str, str] | None) -> dict[str, str]:
    """Merge mappings into a new dict; later mappings win. ``None`` is skipped."""
    merged: dict[str, str] = {}
    for mapping in args:
        if mapping:
            merged.update(mapping)
    return merged


def gen_mac(oui: str) -> str:
    """Return a MAC address with the given OUI and three random bytes."""
    tail = ":".join(f"{b:02x}" for b in secrets.token_bytes(3))
    return f"{oui}:{tail}"


def _text(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _image_tag(image: str) -> str:
    """Return the tag of an OCI image reference, ``latest`` when none is given."""
    if not image:
        raise NodeError("failed to parse OCI image ref '': empty reference")
    ref = image.split("@", 1)[0]
    name_start = ref.rfind("/") + 1
    colon = ref.rfind(":")
    if colon >= name_start and colon != -1:
        tag = ref[colon + 1:]
        if not tag:
            raise NodeError(f"failed to parse OCI image ref {image!r}: empty tag")
        return tag
    return "latest"


class Node:
    """A lab node of some kind; subclasses adapt it to a kind."""

    kind = ""
    # kinds that are not containers are neither created nor deleted
    has_container = True

    def __init__(self, runtime: ContainerRuntime | None = None) -> None:
        self.runtime = runtime
        self.cfg: NodeConfig | None = None
        self.mgmt = MgmtNet()

    def init(self, cfg: NodeConfig, mgmt: MgmtNet | None = None) -> None:
        """Attach the node configuration and apply kind specific defaults."""
        self.cfg = cfg
        self.mgmt = mgmt if mgmt is not None else MgmtNet()

    def _require_runtime(self) -> ContainerRuntime:
        if self.runtime is None:
            raise NodeError(f"node {self._name} has no container runtime")
        return self.runtime

    def _require_cfg(self) -> NodeConfig:
        if self.cfg is None:
            raise NodeError("node is not initialised")
        return self.cfg

    @property
    def _name(self) -> str:
        return self.cfg.short_name if self.cfg else "<uninitialised>"

    def get_images(self) -> dict[str, str]:
        """Return the images this node needs, keyed by image role."""
        if not self.has_container:
            return {}
        return {IMAGE_KEY: self._require_cfg().image}

    def pre_deploy(self, config_name: str = "", lab_ca_dir: str = "", lab_ca_root: str = "") -> None:
        """Prepare files on the host before the node is created."""

    def deploy(self) -> object:
        """Create the node's container."""
        if not self.has_container:
            return None
        return self._require_runtime().create_container(self._require_cfg())

    def post_deploy(self, nodes: Mapping[str, "Node"]) -> None:
        """Run actions needed once all nodes are created."""

    def save_config(self) -> None:
        """Save the node's running configuration."""

    def delete(self) -> None:
        """Remove the node's container."""
        if self.has_container:
            self._require_runtime().delete_container(self._require_cfg().long_name)

    def _exec_checked(self, container: str, cmd: Sequence[str], what: str) -> str:
        stdout, stderr = self._require_runtime().exec(container, cmd)
        err = _text(stderr)
        if err:
            raise NodeError(f"{what}: {err}")
        return _text(stdout)


_REGISTRY: dict[str, Callable[[], Node]] = {}


def register(kind: str, factory: Callable[[], Node]) -> Callable[[], Node]:
    """Register a factory creating nodes of ``kind``."""
    _REGISTRY[kind] = factory
    return factory


def new_node(kind: str) -> Node:
    """Create a new, uninitialised node of ``kind``."""
    try:
        factory = _REGISTRY[kind]
    except KeyError:
        raise NodeError(f"node kind {kind!r} is not supported") from None
    return factory()


def registered_kinds() -> list[str]:
    """Return the registered node kinds, sorted."""
    return sorted(_REGISTRY)


class BridgeNode(Node):
    """A Linux bridge that exists on the host."""

    kind = NODE_KIND_BRIDGE
    has_container = False

    def init(self, cfg: NodeConfig, mgmt: MgmtNet | None = None) -> None:
        super().init(cfg, mgmt)
        # bridges are not created here, so the status is implied
        cfg.deployment_status = "created"


class HostNode(Node):
    """The container host itself."""

    kind = NODE_KIND_HOST
    has_container = False


class OvsNode(Node):
    """An Open vSwitch bridge that exists on the host."""

    kind = NODE_KIND_OVS
    has_container = False


class LinuxNode(Node):
    """A generic Linux container."""

    kind = NODE_KIND_LINUX

    def init(self, cfg: NodeConfig, mgmt: MgmtNet | None = None) -> None:
        super().init(cfg, mgmt)
        # host network mode does not allow changing ipv6 settings
        if cfg.network_mode != "host":
            cfg.sysctls["net.ipv6.conf.all.disable_ipv6"] = "0"


class SonicNode(Node):
    """A SONiC virtual switch container."""

    kind = NODE_KIND_SONIC

    def init(self, cfg: NodeConfig, mgmt: MgmtNet | None = None) -> None:
        super().init(cfg, mgmt)
        cfg.entrypoint = "/bin/bash"

    def pre_deploy(self, config_name: str = "", lab_ca_dir: str = "", lab_ca_root: str = "") -> None:
        Path(self._require_cfg().lab_dir).mkdir(parents=True, exist_ok=True)

    def post_deploy(self, nodes: Mapping[str, Node]) -> None:
        cfg = self._require_cfg()
        log.debug("Running postdeploy actions for sonic-vs '%s' node", cfg.short_name)
        what = f"failed post-deploy node {cfg.short_name!r}"
        self._exec_checked(cfg.container_id, ["supervisord"], what)
        self._exec_checked(cfg.container_id, ["/usr/lib/frr/bgpd"], what)


class CvxNode(Node):
    """A Cumulus VX node."""

    kind = NODE_KIND_CVX

    def init(self, cfg: NodeConfig, mgmt: MgmtNet | None = None) -> None:
        super().init(cfg, mgmt)
        if not cfg.kernel:
            cfg.kernel = DEFAULT_CVX_KERNEL_IMAGE
        if not cfg.sandbox:
            cfg.sandbox = DEFAULT_IGNITE_SANDBOX_IMAGE
        tag = _image_tag(cfg.image)
        if not cfg.ram:
            cfg.ram = CVX_MEMORY_REQS.get(tag, CVX_DEFAULT_RAM)

    def get_images(self) -> dict[str, str]:
        cfg = self._require_cfg()
        images = {IMAGE_KEY: cfg.image}
        if self.runtime is None or self.runtime.name != IGNITE_RUNTIME:
            return images
        images[KERNEL_KEY] = cfg.kernel
        images[SANDBOX_KEY] = cfg.sandbox
        return images

    def save_config(self) -> None:
        log.debug("Save operation is currently not supported for %r node kind", self._require_cfg().kind)


class CrpdNode(Node):
    """A Juniper cRPD container."""

    kind = NODE_KIND_CRPD
    save_cmd = ("cli", "show", "conf")

    def init(self, cfg: NodeConfig, mgmt: MgmtNet | None = None) -> None:
        super().init(cfg, mgmt)
        lab_dir = Path(cfg.lab_dir)
        cfg.binds.extend(
            [
                f"{lab_dir / 'config'}:/config",
                f"{lab_dir / 'log'}:/var/log",
                f"{lab_dir / 'config' / 'sshd_config'}:/etc/ssh/sshd_config",
            ]
        )

    @property
    def _config_path(self) -> Path:
        return Path(self._require_cfg().lab_dir) / "config" / "juniper.conf"

    def pre_deploy(self, config_name: str = "", lab_ca_dir: str = "", lab_ca_root: str = "") -> None:
        cfg = self._require_cfg()
        lab_dir = Path(cfg.lab_dir)
        (lab_dir / "config").mkdir(parents=True, exist_ok=True)
        (lab_dir / "log").mkdir(parents=True, exist_ok=True)
        if cfg.startup_config:
            self._config_path.write_text(Path(cfg.startup_config).read_text())
        if cfg.license:
            dst = lab_dir / "config" / "license" / "safenet" / "junos_sfnt.lic"
            dst.parent.mkdir(parents=True, exist_ok=True)
            try:
                shutil.copyfile(cfg.license, dst)
            except OSError as exc:
                raise NodeError(f"file copy [src {cfg.license} -> dst {dst}] failed {exc}") from exc

    def post_deploy(self, nodes: Mapping[str, Node]) -> None:
        cfg = self._require_cfg()
        log.debug("Running postdeploy actions for CRPD %r node", cfg.short_name)
        self._exec_checked(cfg.container_id, ["service", "ssh", "restart"], "crpd post-deploy failed")

    def save_config(self) -> None:
        cfg = self._require_cfg()
        try:
            stdout, stderr = self._require_runtime().exec(cfg.long_name, list(self.save_cmd))
        except NodeError:
            raise
        except Exception as exc:
            raise NodeError(f"{cfg.short_name}: failed to execute cmd: {exc}") from exc
        err = _text(stderr)
        if err:
            raise NodeError(f"{cfg.short_name} errors: {err}")
        path = self._config_path
        try:
            path.write_text(_text(stdout))
        except OSError as exc:
            raise NodeError(
                f"failed to write config by {path} path from {cfg.short_name} container: {exc}"
            ) from exc
        log.info("saved cRPD configuration from %s node to %s", cfg.short_name, path)


class MySocketIONode(Node):
    """A mysocketio container publishing ports of other nodes."""

    kind = NODE_KIND_MYSOCKETIO

    def post_deploy(self, nodes: Mapping[str, Node]) -> None:
        log.info("Creating mysocketio tunnels...")
        self._create_tunnels(nodes)

    def _run(self, cmd: list[str], what: str) -> str:
        try:
            stdout, _ = self._require_runtime().exec(self._require_cfg().container_id, cmd)
        except NodeError:
            raise
        except Exception as exc:
            raise NodeError(f"{what}: {exc}") from exc
        return _text(stdout)

    def _create_tunnels(self, nodes: Mapping[str, Node]) -> None:
        cfg = self._require_cfg()
        runtime = self._require_runtime()
        self._run(
            [
                "/bin/sh",
                "-c",
                "mysocketctl socket ls | awk '/clab/ {print $2}' | xargs -n1 mysocketctl socket delete -s",
            ],
            "failed to remove existing sockets",
        )
        proxy = f"--proxy {cfg.mysocket_proxy}" if cfg.mysocket_proxy else ""
        for node in nodes.values():
            ncfg = node.cfg
            if ncfg is None or not ncfg.publish:
                continue
            for socket in ncfg.publish:
                try:
                    ms = parse_socket_cfg(socket)
                except ValueError as exc:
                    raise NodeError(str(exc)) from exc
                sock_cmd = create_sock_cmd(ms, ncfg.short_name)
                sock_id = self._run(
                    ["/bin/sh", "-c", f"{sock_cmd} | awk 'NR==4 {{print $2}}'"],
                    "failed to create mysocketio socket",
                ).strip()
                tun_id = self._run(
                    [
                        "/bin/sh",
                        "-c",
                        f"mysocketctl tunnel create -s {sock_id} | awk 'NR==4 {{print $4}}'",
                    ],
                    "failed to create mysocketio socket",
                ).strip()
                connect = (
                    f"mysocketctl tunnel connect --host {ncfg.long_name} -p {ms.port} "
                    f"-s {sock_id} -t {tun_id} {proxy} > "
                    f"socket-{ncfg.short_name}-{ms.stype}-{ms.port}.log"
                )
                runtime.exec_not_wait(cfg.container_id, ["/bin/sh", "-c", connect])


for _cls in (BridgeNode, HostNode, OvsNode, LinuxNode, SonicNode, CvxNode, CrpdNode, MySocketIONode):
    register(_cls.kind, _cls)