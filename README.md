# clabtools

Helpers for container-based network labs. The package generates Clos
topology files and describes node kinds together with the container settings
they need. It parses veth endpoint references and mysocket.io publish
entries, and it renders lab inspection tables.

## Installation

```
pip install .
```

To install the test dependencies and run the tests:

```
pip install ".[test]"
pytest
```

## Command line

The package installs a `clabtools` command:

```
clabtools --help
```

Global options go before the subcommand:

- `-d/--debug` turns on debug logging. The option can be repeated.
- `-t/--topo` gives the topology file path.
- `-n/--name` gives the lab name.
- `--timeout` takes a duration such as `30s`, `1m` or `2m30s`. The default is 120 seconds.
- `-r/--runtime` names the container runtime.

Subcommands:

- `version` prints the version banner.
- `generate` (alias `gen`) builds a Clos topology and prints it as YAML.
  With `--file PATH` it writes the topology to that file instead. The lab
  name comes from the global `--name` option. Other options are
  `--nodes`, `--kind` (default `srl`), `--image`, `--license`, `--network`,
  `-4/--ipv4-subnet`, `-6/--ipv6-subnet`, `--node-prefix` (default `node`) and
  `--group-prefix` (default `tier`). `--nodes`, `--image` and `--license` can
  be repeated, and each one also accepts a comma-separated list.

```
clabtools -n demo generate --nodes 2,4 --image ghcr.io/nokia/srlinux
```

- `tools` is a command group that currently holds no tools.

The command returns exit status 1 and prints `Error: ...` when a command fails.

## Library use

### Generating a Clos topology

```python
from clabtools.generate import parse_flag, parse_nodes_flag, generate_topology_config, save_topo_file

images = parse_flag("srl", ["ghcr.io/nokia/srlinux"])
licenses = parse_flag("srl", [])
nodes = parse_nodes_flag("srl", "2", "4")
data = generate_topology_config("demo", "", None, None, images, licenses, nodes, "node", "tier")
save_topo_file("demo.clab.yml", data)
```

`parse_flag` accepts items of the form `<kind>=<value>`. A bare value falls
back to the kind given as the first argument.

`parse_nodes_flag` takes one `<num_nodes>[:<kind>[:<type>]]` item for each
stage and returns a list of `NodesDef`. Kind `srl` gets type `ixrd2` by
default.

In `generate_topology_config`, a subnet given as `None`, as an empty string or
as `"<nil>"` is left out of the result. The function returns YAML text.

Errors are raised as follows:

- Malformed input raises `SyntaxFlagError`.
- A kind given twice raises `DuplicatedValueError`.
- A kind with no known interface naming raises `GenerateError`, which is
  also the base class of the two errors above.

### mysocket.io publish entries

```python
from clabtools.mysocket import parse_socket_cfg, create_sock_cmd

ms = parse_socket_cfg("tls/22/user@example.com,example.com")
print(create_sock_cmd(ms, "node1"))
```

`parse_socket_cfg` returns a `MySocket`. A TCP socket that has allowed users
is switched to TLS. `check_sock_type`, `check_sock_port` and
`parse_allowed_users` are also available. Invalid entries raise `ValueError`.

### veth endpoints

```python
from clabtools.veth import parse_veth_endpoint

ep = parse_veth_endpoint("bridge:br0:eth1")   # VethEndpoint(kind, node, iface)
```

A reference with two parts, `<node>:<iface>`, attaches to a container, or to
the host when the node is `host`. A reference with three parts names its kind
explicitly, which must be `ovs-bridge`, `bridge` or `host`.

### Node kinds

```python
from clabtools.nodes.base import NodeConfig, MgmtNet, new_node, registered_kinds
import clabtools.nodes.vrnetlab      # registers the vr-* kinds
import clabtools.nodes.network_os    # registers srl and ceos

print(registered_kinds())
node = new_node("linux")
node.init(NodeConfig(short_name="n1", image="alpine"), MgmtNet())
print(node.get_images())
```

Modules and the kinds they register:

- `clabtools.nodes.base` registers `bridge`, `host`, `ovs-bridge`, `linux`,
  `sonic-vs`, `cvx`, `crpd` and `mysocketio`.
- `clabtools.nodes.vrnetlab` registers `vr-csr`, `vr-ftosv`, `vr-n9kv`,
  `vr-nxos`, `vr-ros`, `vr-sros` and `vr-veos`.
- `clabtools.nodes.network_os` registers `srl` and `ceos`.

A kind is available from `new_node` only after its module has been imported.

`init` applies the kind's defaults to the `NodeConfig`: environment, command,
bind mounts and sysctls. `pre_deploy` writes files into the node's lab
directory.

Methods that act on containers call a runtime object. You pass it as
`Node(runtime=...)`, and it must provide `name`, `create_container`,
`delete_container`, `exec` and `exec_not_wait`. Failures raise `NodeError`.

Some kinds need extra helpers before they can work:

- vrnetlab kinds save their configuration through a `config_saver` callable.
- cEOS sends its management configuration through a `cli_sender` callable.
- SR Linux writes its `topology.yml` only when it is given a `topology_dir`
  that holds the per-type template files.

`render_srl_default_config` and `system_mac` are available as plain functions.

### Inspecting containers

`clabtools.inspect.container_details` turns `ContainerInfo` records into
`ContainerDetails` rows, sorted by lab name and then by container name.
`render_table(details, show_all)` renders them as a grid table. `render_json`
renders them as indented JSON and leaves out empty fields.

### Versions

- `clabtools.version.docs_link_from_ver("0.15.1")` returns `"0.15/#0151"`.
- `is_newer(latest, current)` compares two release versions.
- `version_banner` builds the text that the `version` command prints.

## What the package does not do

The package does not talk to Docker or any other container runtime by
itself. It has no commands to deploy, destroy, inspect, save or exec into
labs. It does not create certificates, network namespaces, veth pairs or
VxLAN interfaces, and it does not serve topology graphs. It does not log in
to mysocket.io and does not check for or install new releases.