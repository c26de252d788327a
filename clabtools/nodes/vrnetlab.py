"""Node kinds running virtual routers packaged with vrnetlab."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Callable

from clabtools.nodes.base import (
    DEFAULT_CONFIG_TEMPLATES,
    DEFAULT_CREDENTIALS,
    IMAGE_KEY,
    NODE_KIND_VR_CSR,
    NODE_KIND_VR_FTOSV,
    NODE_KIND_VR_N9KV,
    NODE_KIND_VR_NXOS,
    NODE_KIND_VR_ROS,
    NODE_KIND_VR_SROS,
    NODE_KIND_VR_VEOS,
    VR_DEF_CONN_MODE,
    ContainerRuntime,
    MgmtNet,
    Node,
    NodeConfig,
    NodeError,
    merge_string_maps,
    register,
)

log = logging.getLogger(__name__)

VR_SROS_DEFAULT_TYPE = "sr-1"

# login used by vrnetlab images unless overridden through the environment
_DEFAULT_LOGIN = "admin"

# saves the running configuration: (container name, username, password, platform)
ConfigSaver = Callable[[str, str, str, str], None]


class VrNode(Node):
    """A vrnetlab container; launch arguments are passed through environment variables."""

    # extra default environment, besides connection mode and management subnets
    default_env: dict[str, str] = {"USERNAME": _DEFAULT_LOGIN, "PASSWORD": _DEFAULT_LOGIN}
    # whether macvtap connection mode mounts /dev
    macvtap_dev_bind = True
    # directory under the lab dir mounted at /<boot_dir> in the container
    boot_dir = ""
    # whether pre_deploy creates the node lab directory
    create_lab_dir = True
    # platform used to save the configuration over NETCONF, if supported
    netconf_platform = ""

    def __init__(
        self,
        runtime: ContainerRuntime | None = None,
        config_saver: ConfigSaver | None = None,
    ) -> None:
        super().__init__(runtime)
        self.config_saver = config_saver

    def init(self, cfg: NodeConfig, mgmt: MgmtNet | None = None) -> None:
        """Apply vrnetlab environment defaults, bind mounts and launch arguments."""
        super().init(cfg, mgmt)
        def_env = {
            "CONNECTION_MODE": VR_DEF_CONN_MODE,
            **self.default_env,
            "DOCKER_NET_V4_ADDR": self.mgmt.ipv4_subnet,
            "DOCKER_NET_V6_ADDR": self.mgmt.ipv6_subnet,
        }
        cfg.env = merge_string_maps(def_env, cfg.env)

        if self.boot_dir:
            cfg.binds.append(f"{Path(cfg.lab_dir) / self.boot_dir}:/{self.boot_dir}")
        if self.macvtap_dev_bind and cfg.env.get("CONNECTION_MODE") == "macvtap":
            # macvtap needs the host /dev directory
            cfg.binds.append("/dev:/dev")

        cfg.cmd = self._launch_cmd(cfg)

    def _launch_cmd(self, cfg: NodeConfig) -> str:
        env = cfg.env
        return (
            f"--username {env.get('USERNAME', '')} --password {env.get('PASSWORD', '')} "
            f"--hostname {cfg.short_name} --connection-mode {env.get('CONNECTION_MODE', '')} --trace"
        )

    def get_images(self) -> dict[str, str]:
        """Return the single container image of the node."""
        return {IMAGE_KEY: self._require_cfg().image}

    def pre_deploy(self, config_name: str = "", lab_ca_dir: str = "", lab_ca_root: str = "") -> None:
        cfg = self._require_cfg()
        if self.create_lab_dir:
            Path(cfg.lab_dir).mkdir(parents=True, exist_ok=True)
        self._create_files(cfg)

    def _create_files(self, cfg: NodeConfig) -> None:
        """Write kind specific files into the lab directory."""

    def _write_startup_config(self, cfg: NodeConfig, dst: Path) -> None:
        if not cfg.startup_config:
            return
        try:
            content = Path(cfg.startup_config).read_text()
        except OSError as exc:
            raise NodeError(f"failed to read startup config {cfg.startup_config}: {exc}") from exc
        try:
            dst.write_text(content)
        except OSError as exc:
            log.error("node=%s, failed to generate config: %s", cfg.short_name, exc)

    def save_config(self) -> None:
        if not self.netconf_platform:
            return
        cfg = self._require_cfg()
        try:
            username, password = DEFAULT_CREDENTIALS[cfg.kind]
        except KeyError:
            raise NodeError(f"no default credentials known for kind {cfg.kind!r}") from None
        if self.config_saver is None:
            raise NodeError(f"{cfg.short_name}: no NETCONF configuration saver is set")
        self.config_saver(cfg.long_name, username, password, self.netconf_platform)
        log.info("saved %s running configuration to startup configuration file", cfg.short_name)


class VrCsrNode(VrNode):
    """Cisco CSR1000v."""

    kind = NODE_KIND_VR_CSR
    netconf_platform = "cisco_iosxe"


class VrFtosvNode(VrNode):
    """Dell FTOS10v."""

    kind = NODE_KIND_VR_FTOSV


class VrN9kvNode(VrNode):
    """Cisco Nexus 9000v."""

    kind = NODE_KIND_VR_N9KV


class VrNxosNode(VrNode):
    """Cisco NX-OS."""

    kind = NODE_KIND_VR_NXOS
    default_env = {
        "USERNAME": _DEFAULT_LOGIN,
        "PASSWORD": _DEFAULT_LOGIN,
        "VCPU": "2",
        "RAM": "4096",
    }
    macvtap_dev_bind = False


class VrRosNode(VrNode):
    """MikroTik RouterOS."""

    kind = NODE_KIND_VR_ROS
    boot_dir = "ftpboot"

    def _create_files(self, cfg: NodeConfig) -> None:
        boot = Path(cfg.lab_dir) / self.boot_dir
        boot.mkdir(parents=True, exist_ok=True)
        self._write_startup_config(cfg, boot / "config.auto.rsc")


class VrSrosNode(VrNode):
    """Nokia SR OS."""

    kind = NODE_KIND_VR_SROS
    default_env: dict[str, str] = {}
    boot_dir = "tftpboot"
    netconf_platform = "nokia_sros"

    def init(self, cfg: NodeConfig, mgmt: MgmtNet | None = None) -> None:
        if not cfg.startup_config:
            cfg.startup_config = DEFAULT_CONFIG_TEMPLATES.get(cfg.kind, "")
        # the type selects the vrnetlab SR OS variant
        if not cfg.node_type:
            cfg.node_type = VR_SROS_DEFAULT_TYPE
        super().init(cfg, mgmt)

    def _launch_cmd(self, cfg: NodeConfig) -> str:
        return (
            f"--trace --connection-mode {cfg.env.get('CONNECTION_MODE', '')} "
            f'--hostname {cfg.short_name} --variant "{cfg.node_type}"'
        )

    def _create_files(self, cfg: NodeConfig) -> None:
        boot = Path(cfg.lab_dir) / self.boot_dir
        boot.mkdir(parents=True, exist_ok=True)
        if cfg.license:
            dst = boot / "license.txt"
            try:
                shutil.copyfile(cfg.license, dst)
            except OSError as exc:
                raise NodeError(f"file copy [src {cfg.license} -> dst {dst}] failed {exc}") from exc
            log.debug("CopyFile src %s -> dst %s succeeded", cfg.license, dst)
        self._write_startup_config(cfg, boot / "config.txt")


class VrVeosNode(VrNode):
    """Arista vEOS."""

    kind = NODE_KIND_VR_VEOS
    create_lab_dir = False
    netconf_platform = "arista_eos"


for _cls in (VrCsrNode, VrFtosvNode, VrN9kvNode, VrNxosNode, VrRosNode, VrSrosNode, VrVeosNode):
    register(_cls.kind, _cls)