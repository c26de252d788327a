import pytest

from clabtools.nodes.base import (
    DEFAULT_CREDENTIALS,
    IMAGE_KEY,
    VR_DEF_CONN_MODE,
    MgmtNet,
    NodeConfig,
    NodeError,
    new_node,
    registered_kinds,
)
from clabtools.nodes.vrnetlab import (
    VR_SROS_DEFAULT_TYPE,
    VrCsrNode,
    VrFtosvNode,
    VrN9kvNode,
    VrNxosNode,
    VrRosNode,
    VrSrosNode,
    VrVeosNode,
)

ALL_CLASSES = [VrCsrNode, VrFtosvNode, VrN9kvNode, VrNxosNode, VrRosNode, VrSrosNode, VrVeosNode]


class FakeRuntime:
    name = "docker"

    def __init__(self):
        self.created = []
        self.deleted = []

    def create_container(self, cfg):
        self.created.append(cfg.long_name)
        return cfg.long_name

    def delete_container(self, name):
        self.deleted.append(name)

    def exec(self, container, cmd):
        return b"", b""

    def exec_not_wait(self, container, cmd):
        pass


def make_cfg(cls, tmp_path=None, **kw):
    lab_dir = str(tmp_path / "node") if tmp_path is not None else "/lab/node"
    return NodeConfig(short_name="r1", long_name="clab-t-r1", kind=cls.kind, image="img:1", lab_dir=lab_dir, **kw)


@pytest.mark.parametrize("cls", ALL_CLASSES)
def test_registered(cls):
    assert cls.kind in registered_kinds()
    assert isinstance(new_node(cls.kind), cls)


@pytest.mark.parametrize("cls", ALL_CLASSES)
def test_env_defaults(cls):
    mgmt = MgmtNet(ipv4_subnet="172.20.20.0/24", ipv6_subnet="2001:db8::/64")
    cfg = make_cfg(cls)
    node = cls()
    node.init(cfg, mgmt)
    assert cfg.env["CONNECTION_MODE"] == VR_DEF_CONN_MODE
    assert cfg.env["DOCKER_NET_V4_ADDR"] == mgmt.ipv4_subnet
    assert cfg.env["DOCKER_NET_V6_ADDR"] == mgmt.ipv6_subnet
    assert "/dev:/dev" not in cfg.binds


@pytest.mark.parametrize("cls", [VrCsrNode, VrFtosvNode, VrN9kvNode, VrNxosNode, VrRosNode, VrVeosNode])
def test_username_default_and_cmd_hostname(cls):
    cfg = make_cfg(cls)
    cls().init(cfg)
    assert cfg.env["USERNAME"] == "admin"
    assert cfg.cmd.startswith("--username admin ")
    assert "--hostname r1" in cfg.cmd
    assert cfg.cmd.endswith("--trace")


def test_user_env_overrides_defaults():
    cfg = make_cfg(VrCsrNode, env={"USERNAME": "user", "PASSWORD": "password", "CONNECTION_MODE": "macvtap"})
    VrCsrNode().init(cfg)
    assert cfg.cmd == "--username user --password password --hostname r1 --connection-mode macvtap --trace"
    assert cfg.binds == ["/dev:/dev"]


@pytest.mark.parametrize("cls", [VrCsrNode, VrFtosvNode, VrN9kvNode, VrRosNode, VrSrosNode, VrVeosNode])
def test_macvtap_mounts_dev(cls):
    cfg = make_cfg(cls, env={"CONNECTION_MODE": "macvtap"})
    cls().init(cfg)
    assert cfg.binds[-1] == "/dev:/dev"


def test_nxos_no_dev_mount_and_resources():
    cfg = make_cfg(VrNxosNode, env={"CONNECTION_MODE": "macvtap"})
    VrNxosNode().init(cfg)
    assert "/dev:/dev" not in cfg.binds
    assert cfg.env["VCPU"] == "2"
    assert cfg.env["RAM"] == "4096"


def test_ros_and_sros_boot_binds():
    ros = make_cfg(VrRosNode)
    VrRosNode().init(ros)
    assert ros.binds == ["/lab/node/ftpboot:/ftpboot"]
    sros = make_cfg(VrSrosNode)
    VrSrosNode().init(sros)
    assert sros.binds == ["/lab/node/tftpboot:/tftpboot"]


def test_sros_defaults_and_cmd():
    cfg = make_cfg(VrSrosNode)
    VrSrosNode().init(cfg)
    assert cfg.node_type == VR_SROS_DEFAULT_TYPE
    assert "USERNAME" not in cfg.env
    assert cfg.cmd == '--trace --connection-mode tc --hostname r1 --variant "sr-1"'


def test_sros_custom_type_kept():
    cfg = make_cfg(VrSrosNode, node_type="sr-2s")
    VrSrosNode().init(cfg)
    assert cfg.node_type == "sr-2s"
    assert cfg.cmd.endswith('--variant "sr-2s"')


def test_ros_pre_deploy_writes_startup_config(tmp_path):
    startup = tmp_path / "startup.rsc"
    startup.write_text("/system identity set name=r1\n")
    cfg = make_cfg(VrRosNode, tmp_path, startup_config=str(startup))
    node = VrRosNode()
    node.init(cfg)
    node.pre_deploy()
    written = tmp_path / "node" / "ftpboot" / "config.auto.rsc"
    assert written.read_text() == startup.read_text()


def test_ros_pre_deploy_without_startup(tmp_path):
    cfg = make_cfg(VrRosNode, tmp_path)
    node = VrRosNode()
    node.init(cfg)
    node.pre_deploy()
    boot = tmp_path / "node" / "ftpboot"
    assert boot.is_dir()
    assert list(boot.iterdir()) == []


def test_sros_pre_deploy_copies_license_and_config(tmp_path):
    lic = tmp_path / "lic.txt"
    lic.write_text("license-data")
    startup = tmp_path / "cfg.txt"
    startup.write_text("configure system name r1")
    cfg = make_cfg(VrSrosNode, tmp_path, license=str(lic), startup_config=str(startup))
    node = VrSrosNode()
    node.init(cfg)
    node.pre_deploy()
    boot = tmp_path / "node" / "tftpboot"
    assert (boot / "license.txt").read_text() == lic.read_text()
    assert (boot / "config.txt").read_text() == startup.read_text()


def test_sros_missing_license_raises(tmp_path):
    cfg = make_cfg(VrSrosNode, tmp_path, license=str(tmp_path / "missing.txt"))
    node = VrSrosNode()
    node.init(cfg)
    with pytest.raises(NodeError):
        node.pre_deploy()


def test_ros_missing_startup_config_raises(tmp_path):
    cfg = make_cfg(VrRosNode, tmp_path, startup_config=str(tmp_path / "missing.rsc"))
    node = VrRosNode()
    node.init(cfg)
    with pytest.raises(NodeError):
        node.pre_deploy()


def test_veos_pre_deploy_creates_nothing(tmp_path):
    cfg = make_cfg(VrVeosNode, tmp_path)
    node = VrVeosNode()
    node.init(cfg)
    node.pre_deploy()
    assert not (tmp_path / "node").exists()


def test_n9kv_pre_deploy_creates_lab_dir(tmp_path):
    cfg = make_cfg(VrN9kvNode, tmp_path)
    node = VrN9kvNode()
    node.init(cfg)
    node.pre_deploy()
    assert (tmp_path / "node").is_dir()


def test_sros_save_config_uses_saver():
    calls = []
    node = VrSrosNode(config_saver=lambda *args: calls.append(args))
    cfg = make_cfg(VrSrosNode)
    node.init(cfg)
    node.save_config()
    assert calls == [(cfg.long_name, *DEFAULT_CREDENTIALS["vr-sros"], VrSrosNode.netconf_platform)]


def test_sros_save_config_without_saver_raises():
    node = VrSrosNode()
    node.init(make_cfg(VrSrosNode))
    with pytest.raises(NodeError):
        node.save_config()


def test_csr_save_config_without_credentials_raises():
    calls = []
    node = VrCsrNode(config_saver=lambda *args: calls.append(args))
    node.init(make_cfg(VrCsrNode))
    with pytest.raises(NodeError):
        node.save_config()
    assert calls == []


def test_ftosv_save_config_is_noop():
    calls = []
    node = VrFtosvNode(config_saver=lambda *args: calls.append(args))
    node.init(make_cfg(VrFtosvNode))
    node.save_config()
    assert calls == []


@pytest.mark.parametrize("cls", ALL_CLASSES)
def test_get_images(cls):
    cfg = make_cfg(cls)
    node = cls()
    node.init(cfg)
    assert node.get_images() == {IMAGE_KEY: cfg.image}


def test_deploy_and_delete_use_runtime():
    runtime = FakeRuntime()
    node = VrVeosNode(runtime)
    cfg = make_cfg(VrVeosNode)
    node.init(cfg)
    node.deploy()
    node.delete()
    assert runtime.created == [cfg.long_name]
    assert runtime.deleted == [cfg.long_name]


def test_deploy_without_runtime_raises():
    node = VrCsrNode()
    node.init(make_cfg(VrCsrNode))
    with pytest.raises(NodeError):
        node.deploy()