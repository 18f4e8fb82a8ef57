import ipaddress
import random

import pytest

from sls_generator.errors import MissingXnameError, TopologyError
from sls_generator.hardware.types import CabinetClass, ConnectorExtra, GenericHardware, NodeExtra
from sls_generator.networking import defaults
from sls_generator.networking.subnet import IPSubnet
from sls_generator.reconcile.ncn import AllocatedNCN, HardwareNCN, UnresolvedNCN, allocate_ips, \
    extract_sls_ncns, extract_uans, generate_instance_id, merge_ncns, update_reservations


def _seed(xname="x3000c0s13b0n0", subrole="Worker"):
    return UnresolvedNCN(xname=xname, role="Management", subrole=subrole, bmc_mac="b4:2e:99:00:00:01")


def _nmn_network():
    network = defaults.default_templates()["NMN"]
    network.add_subnet(24, "network_hardware", 2)
    bootstrap = network.add_subnet(24, "bootstrap_dhcp", 2)
    bootstrap.full_name = "NMN Bootstrap DHCP Subnet"
    network.apply_supernet()
    return network


def _hmn_network():
    network = defaults.default_templates()["HMN"]
    network.add_subnet(24, "bootstrap_dhcp", 4)
    return network


def test_instance_id():
    rng = random.Random(4)
    value = generate_instance_id(rng)
    assert value.startswith("i-")
    assert len(value) == 10
    int(value[2:], 16)
    assert generate_instance_id(random.Random(4)) == value


@pytest.mark.parametrize("seed,problem", [
    (UnresolvedNCN(xname="x3000c0s13b0", role="Management", subrole="Worker"), "invalid type NodeBMC"),
    (UnresolvedNCN(xname="ncn-w001", role="Management", subrole="Worker"), "invalid xname for NCN"),
    (UnresolvedNCN(xname="x3000c0s13b0n0", role="", subrole="Worker"), "empty role"),
    (UnresolvedNCN(xname="x3000c0s13b0n0", role="Management", subrole=""), "empty sub-role"),
])
def test_validate(seed, problem):
    errors = seed.validate()
    assert len(errors) == 1
    assert problem in errors[0]


def test_normalize():
    seed = UnresolvedNCN(xname="X3000C0S03B0N0", role="Management", subrole="Master")
    seed.normalize()
    assert seed.xname == "x3000c0s3b0n0"
    assert seed.validate() == []


def test_allocate_ips():
    networks = {"NMN": _nmn_network(), "HMN": _hmn_network(), "HSN": defaults.default_templates()["HSN"]}
    allocated = allocate_ips([_seed()], networks, lambda: "i-0000CAFE")

    ncn = allocated[0]
    assert ncn.instance_id == "i-0000CAFE"
    assert ncn.bmc_ip == "10.254.0.2"
    assert ncn.ip_for("HMN") == "10.254.0.3"
    assert ncn.ip_for("NMN") == "10.252.1.2"
    assert ncn.ip_for("HSN") == ""

    nmn = [n for n in ncn.networks if n.network_name == "NMN"][0]
    assert nmn.todict() == {
        "network-name": "NMN",
        "full-name": "NMN Bootstrap DHCP Subnet",
        "ip-address": "10.252.1.2",
        "vlan": 2,
        "cidr": "10.252.1.2/17",
        "mask": "17",
        "interface-name": "bond0.nmn0",
        "parent-interface-name": "bond0",
        "gateway": "10.252.0.1",
    }

    bmc = networks["HMN"].lookup_subnet("bootstrap_dhcp").lookup_reservation("x3000c0s13b0")
    assert bmc.comment == "x3000c0s13b0n0-mgmt"


def _node(xname, role, sub_role, aliases):
    return GenericHardware.build(xname, CabinetClass.RIVER, NodeExtra(role=role, sub_role=sub_role, aliases=aliases))


def _hardware():
    nodes = [
        _node("x3000c0s13b0n0", "Management", "Worker", ["ncn-w001"]),
        _node("x3000c0s27b0n0", "Application", "UAN", ["uan01", "login01"]),
        _node("x3000c0s28b0n0", "Application", "Gateway", []),
        GenericHardware.build("x3000c0w14j36", CabinetClass.RIVER,
                              ConnectorExtra(node_nics=["x3000c0s13b0"], vendor_name="1/1/36")),
    ]
    return {hw.xname: hw for hw in nodes}


def test_extract_sls_ncns():
    ncns = extract_sls_ncns(_hardware())
    assert ncns == [HardwareNCN(xname="x3000c0s13b0n0", role="Management", subrole="Worker",
                                hostname="ncn-w001", aliases=["ncn-w001"], bmc_port="x3000c0w14:1/1/36")]


def test_extract_uans():
    uans = extract_uans(_hardware())
    assert [(u.xname, u.hostname, u.aliases) for u in uans] == [
        ("x3000c0s27b0n0", "uan01", ["uan01", "login01"])]

    hardware = _hardware()
    hardware["x3000c0s29b0n0"] = _node("x3000c0s29b0n0", "Application", "UAN", [])
    with pytest.raises(TopologyError):
        extract_uans(hardware)


def test_merge_ncns():
    allocated = [AllocatedNCN(seed=_seed(), instance_id="i-1")]
    resolved = merge_ncns(allocated, extract_sls_ncns(_hardware()))
    assert resolved[0].hostname == "ncn-w001"
    assert resolved[0].todict()["bmc-port"] == "x3000c0w14:1/1/36"

    missing = [AllocatedNCN(seed=_seed("x3000c0s5b0n0"), instance_id="i-2")]
    with pytest.raises(MissingXnameError) as exc:
        merge_ncns(missing, extract_sls_ncns(_hardware()))
    assert "x3000c0s5b0n0" in str(exc.value)


def test_update_reservations():
    hmn = IPSubnet(name="bootstrap_dhcp", cidr=ipaddress.IPv4Interface("10.254.1.0/24"),
                   gateway=ipaddress.IPv4Address("10.254.1.1"), net_name="HMN")
    nmn = IPSubnet(name="bootstrap_dhcp", cidr=ipaddress.IPv4Interface("10.252.1.0/24"),
                   gateway=ipaddress.IPv4Address("10.252.1.1"), net_name="NMN")
    networks = {
        "HMN": defaults.default_templates()["HMN"],
        "NMN": defaults.default_templates()["NMN"],
    }
    networks["HMN"].subnets.append(hmn)
    networks["NMN"].subnets.append(nmn)
    nmn.add_reservation("kubeapi-vip", "k8s-virtual-ip")

    seeds = [_seed(), _seed("x3000c0s19b0n0", "Storage")]
    allocated = allocate_ips(seeds, networks, lambda: "i-1")
    sls_ncns = [
        HardwareNCN("x3000c0s13b0n0", "Management", "Worker", "ncn-w001", ["ncn-w001"]),
        HardwareNCN("x3000c0s19b0n0", "Management", "Storage", "ncn-s001", ["ncn-s001"]),
    ]
    resolved = merge_ncns(allocated, sls_ncns)

    update_reservations(hmn, resolved)
    update_reservations(nmn, resolved)

    bmc = hmn.lookup_reservation("x3000c0s13b0")
    assert bmc.comment == "x3000c0s13b0"
    assert bmc.aliases == ["ncn-w001-mgmt"]
    storage = hmn.lookup_reservation("ncn-s001")
    assert storage.aliases == ["ncn-s001-hmn", "time-hmn", "time-hmn.local", "rgw-vip.hmn"]

    worker = nmn.lookup_reservation("ncn-w001")
    assert worker.aliases == ["ncn-w001-nmn", "time-nmn", "time-nmn.local", "x3000c0s13b0n0", "ncn-w001.local"]
    assert nmn.lookup_reservation("kubeapi-vip").aliases == ["kubeapi-vip.local"]
