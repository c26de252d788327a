import re

import pytest

from clabtools.nodes.base import (
    IMAGE_KEY,
    KERNEL_KEY,
    SANDBOX_KEY,
    BridgeNode,
    CrpdNode,
    CvxNode,
    HostNode,
    LinuxNode,
    MgmtNet,
    MySocketIONode,
    Node,
    NodeConfig,
    NodeError,
    OvsNode,
    SonicNode,
    gen_mac,
    merge_string_maps,
    new_node,
    register,
    registered_kinds,
)


class FakeRuntime:
    def __init__(self, name="docker", outputs=None):
        self.name = name
        self.outputs = list(outputs or [])
        self.calls = []
        self.not_wait = []
        self.created = []
        self.deleted = []

    def create_container(self, cfg):
        self.created.append(cfg.long_name)
        return "id"

    def delete_container(self, name):
        self.deleted.append(name)

    def exec(self, container, cmd):
        self.calls.append((container, list(cmd)))
        if self.outputs:
            return self.outputs.pop(0)
        return b"", b""

    def exec_not_wait(self, container, cmd):
        self.not_wait.append((container, list(cmd)))


def test_registry_contains_kinds_and_creates_nodes():
    kinds = registered_kinds()
    for kind in ("bridge", "host", "ovs-bridge", "linux", "sonic-vs", "cvx", "crpd", "mysocketio"):
        assert kind in kinds
    assert kinds == sorted(kinds)
    assert isinstance(new_node("crpd"), CrpdNode)
    assert isinstance(new_node("ovs-bridge"), OvsNode)


def test_new_node_unknown_kind():
    with pytest.raises(NodeError):
        new_node("no-such-kind")


def test_register_custom_factory():
    class Custom(Node):
        kind = "custom-test"

    assert register("custom-test", Custom) is Custom
    assert isinstance(new_node("custom-test"), Custom)


def test_merge_string_maps_later_wins():
    merged = merge_string_maps({"a": "1", "b": "2"}, None, {"b": "3"})
    assert merged == {"a": "1", "b": "3"}


def test_merge_string_maps_does_not_mutate():
    first = {"a": "1"}
    merge_string_maps(first, {"a": "2"})
    assert first == {"a": "1"}


def test_gen_mac_keeps_oui():
    mac = gen_mac("00:1c:73")
    assert mac.startswith("00:1c:73:")
    assert re.fullmatch(r"([0-9a-f]{2}:){5}[0-9a-f]{2}", mac)


def test_bridge_status_and_no_images():
    node = BridgeNode()
    cfg = NodeConfig(short_name="br", image="ignored")
    node.init(cfg)
    assert cfg.deployment_status == "created"
    assert node.get_images() == {}


def test_host_and_ovs_do_not_touch_runtime():
    rt = FakeRuntime()
    for cls in (HostNode, OvsNode, BridgeNode):
        node = cls(rt)
        node.init(NodeConfig(long_name="x"))
        node.deploy()
        node.delete()
    assert rt.created == [] and rt.deleted == []


def test_linux_sysctl_and_images():
    node = LinuxNode()
    cfg = NodeConfig(image="alpine", network_mode="bridge")
    node.init(cfg)
    assert cfg.sysctls["net.ipv6.conf.all.disable_ipv6"] == "0"
    assert node.get_images() == {IMAGE_KEY: "alpine"}


def test_linux_host_network_leaves_sysctls():
    cfg = NodeConfig(network_mode="host")
    LinuxNode().init(cfg)
    assert cfg.sysctls == {}


def test_linux_deploy_and_delete_use_runtime():
    rt = FakeRuntime()
    node = LinuxNode(rt)
    node.init(NodeConfig(long_name="clab-lab-n1"))
    node.deploy()
    node.delete()
    assert rt.created == ["clab-lab-n1"]
    assert rt.deleted == ["clab-lab-n1"]


def test_deploy_without_runtime_fails():
    node = LinuxNode()
    node.init(NodeConfig(long_name="n"))
    with pytest.raises(NodeError):
        node.deploy()


def test_sonic_entrypoint_and_post_deploy():
    rt = FakeRuntime()
    node = SonicNode(rt)
    cfg = NodeConfig(short_name="s1", container_id="cid")
    node.init(cfg)
    assert cfg.entrypoint == "/bin/bash"
    node.post_deploy({})
    assert rt.calls == [("cid", ["supervisord"]), ("cid", ["/usr/lib/frr/bgpd"])]


def test_sonic_post_deploy_stderr_raises():
    rt = FakeRuntime(outputs=[(b"", b"boom")])
    node = SonicNode(rt)
    node.init(NodeConfig(short_name="s1", container_id="cid"))
    with pytest.raises(NodeError, match="boom"):
        node.post_deploy({})


@pytest.mark.parametrize(
    "image,ram",
    [("networkop/cx:4.3.0", "512MB"), ("networkop/cx:4.4.0", "768MB"), ("networkop/cx", "768MB")],
)
def test_cvx_ram_defaults(image, ram):
    cfg = NodeConfig(image=image)
    CvxNode().init(cfg)
    assert cfg.ram == ram
    assert cfg.kernel == "docker.io/networkop/kernel:4.19"
    assert cfg.sandbox == "networkop/ignite:dev"


def test_cvx_keeps_explicit_values():
    cfg = NodeConfig(image="cx:4.3.0", ram="2GB", kernel="k", sandbox="s")
    CvxNode().init(cfg)
    assert (cfg.ram, cfg.kernel, cfg.sandbox) == ("2GB", "k", "s")


def test_cvx_invalid_image():
    with pytest.raises(NodeError):
        CvxNode().init(NodeConfig(image=""))


def test_cvx_images_depend_on_runtime():
    cfg = NodeConfig(image="cx:4.3.0")
    node = CvxNode(FakeRuntime(name="docker"))
    node.init(cfg)
    assert node.get_images() == {IMAGE_KEY: "cx:4.3.0"}
    node.runtime = FakeRuntime(name="ignite")
    images = node.get_images()
    assert images[KERNEL_KEY] == cfg.kernel
    assert images[SANDBOX_KEY] == cfg.sandbox


def test_crpd_binds(tmp_path):
    cfg = NodeConfig(lab_dir=str(tmp_path))
    CrpdNode().init(cfg)
    assert cfg.binds == [
        f"{tmp_path / 'config'}:/config",
        f"{tmp_path / 'log'}:/var/log",
        f"{tmp_path / 'config' / 'sshd_config'}:/etc/ssh/sshd_config",
    ]


def test_crpd_pre_deploy_files(tmp_path):
    startup = tmp_path / "startup.conf"
    startup.write_text("system { host-name r1; }")
    lic = tmp_path / "lic.txt"
    lic.write_text("license-data")
    lab = tmp_path / "lab"
    cfg = NodeConfig(lab_dir=str(lab), startup_config=str(startup), license=str(lic))
    node = CrpdNode()
    node.init(cfg)
    node.pre_deploy()
    assert (lab / "log").is_dir()
    assert (lab / "config" / "juniper.conf").read_text() == startup.read_text()
    assert (lab / "config" / "license" / "safenet" / "junos_sfnt.lic").read_text() == "license-data"


def test_crpd_save_config_writes_file(tmp_path):
    (tmp_path / "config").mkdir()
    rt = FakeRuntime(outputs=[(b"interfaces {}", b"")])
    node = CrpdNode(rt)
    node.init(NodeConfig(short_name="r1", long_name="clab-l-r1", lab_dir=str(tmp_path)))
    node.save_config()
    assert rt.calls == [("clab-l-r1", ["cli", "show", "conf"])]
    assert (tmp_path / "config" / "juniper.conf").read_text() == "interfaces {}"


def test_crpd_save_config_stderr(tmp_path):
    rt = FakeRuntime(outputs=[(b"", b"bad")])
    node = CrpdNode(rt)
    node.init(NodeConfig(short_name="r1", lab_dir=str(tmp_path)))
    with pytest.raises(NodeError, match="r1 errors: bad"):
        node.save_config()


def test_crpd_post_deploy_restarts_ssh():
    rt = FakeRuntime()
    node = CrpdNode(rt)
    node.init(NodeConfig(container_id="cid"))
    node.post_deploy({})
    assert rt.calls == [("cid", ["service", "ssh", "restart"])]


def test_mysocketio_creates_tunnels():
    rt = FakeRuntime(outputs=[(b"", b""), (b"sock1\n", b""), (b"tun1\n", b"")])
    ms_node = MySocketIONode(rt)
    ms_node.init(NodeConfig(short_name="ms", container_id="mid"))
    target = LinuxNode()
    target.init(NodeConfig(short_name="n1", long_name="clab-lab-n1", publish=["tcp/22"]))
    ms_node.post_deploy({"ms": ms_node, "n1": target})
    assert len(rt.calls) == 3
    assert rt.calls[1][1][2].startswith("mysocketctl socket create -t tcp -n clab-n1-tcp-22")
    assert "tunnel create -s sock1" in rt.calls[2][1][2]
    (container, cmd), = rt.not_wait
    assert container == "mid"
    assert "--host clab-lab-n1 -p 22 -s sock1 -t tun1" in cmd[2]
    assert cmd[2].endswith("socket-n1-tcp-22.log")


def test_mysocketio_bad_publish():
    rt = FakeRuntime()
    ms_node = MySocketIONode(rt)
    ms_node.init(NodeConfig(container_id="mid"))
    target = LinuxNode()
    target.init(NodeConfig(short_name="n1", publish=["dns/53"]))
    with pytest.raises(NodeError, match="not supported"):
        ms_node.post_deploy({"n1": target})


def test_init_default_mgmt():
    node = LinuxNode()
    node.init(NodeConfig())
    assert node.mgmt == MgmtNet()
    mgmt = MgmtNet(network="clab", ipv4_subnet="172.20.20.0/24")
    node.init(NodeConfig(), mgmt)
    assert node.mgmt is mgmt