import ipaddress

import pytest

from sls_generator.errors import SubnetExhaustedError, SubnetNotFoundError, TopologyError, \
    VlanAlreadyAllocatedError
from sls_generator.hardware.cabinets import CabinetDetail, CabinetGroupDetail, CabinetKind, filter_class
from sls_generator.hardware.types import CabinetClass
from sls_generator.networking import defaults
from sls_generator.networking.network import IPNetwork


def _nmn() -> IPNetwork:
    return defaults.default_templates()["NMN"]


def test_add_subnet_takes_first_free_block():
    network = _nmn()
    hardware = network.add_subnet(24, "network_hardware", 2)
    bootstrap = network.add_subnet(24, "bootstrap_dhcp", 2)
    uai = network.add_subnet(23, "uai_macvlan", 2)

    assert str(hardware.cidr) == "10.252.0.0/24"
    assert str(hardware.gateway) == "10.252.0.1"
    assert str(bootstrap.cidr) == "10.252.1.0/24"
    assert str(uai.cidr) == "10.252.2.0/23"
    assert bootstrap.net_name == "NMN"
    assert bootstrap.parent_device == "bond0"


def test_add_subnet_by_cidr_must_fit():
    network = _nmn()
    with pytest.raises(TopologyError):
        network.add_subnet_by_cidr("10.253.0.0/24", "elsewhere", 2)


def test_add_subnet_exhausted():
    network = IPNetwork(name="TINY", full_name="", cidr=ipaddress.ip_network("10.0.0.0/24"))
    network.add_subnet(24, "everything", 0)
    with pytest.raises(SubnetExhaustedError) as exc:
        network.add_subnet(28, "nothing left", 0)
    assert str(exc.value).startswith("TINY:")


def test_add_biggest_subnet_settles_for_smaller():
    network = IPNetwork(name="CMN", full_name="", cidr=ipaddress.ip_network("10.103.6.0/24"))
    network.add_subnet(29, "network_hardware", 7)
    bootstrap = network.add_biggest_subnet(24, "bootstrap_dhcp", 7)
    assert str(bootstrap.cidr) == "10.103.6.128/25"

    network.add_subnet(26, "a", 7)
    network.add_subnet(27, "b", 7)
    network.add_subnet(28, "c", 7)
    network.add_subnet(29, "d", 7)
    with pytest.raises(SubnetExhaustedError):
        network.add_biggest_subnet(24, "too late", 7)


def test_lookup_subnet():
    network = _nmn()
    network.add_subnet(24, "bootstrap_dhcp", 2)

    assert network.lookup_subnet("bootstrap_dhcp").name == "bootstrap_dhcp"
    assert network.subnet_by_name("BOOTSTRAP_DHCP") is not None
    with pytest.raises(SubnetNotFoundError):
        network.lookup_subnet("network_hardware")

    network.add_subnet(24, "bootstrap_dhcp", 2)
    with pytest.raises(TopologyError):
        network.lookup_subnet("bootstrap_dhcp")


def test_apply_supernet_keeps_host_part():
    network = _nmn()
    network.add_subnet(24, "network_hardware", 2)
    network.add_subnet(24, "bootstrap_dhcp", 2)
    uai = network.add_subnet(23, "uai_macvlan", 2)

    network.apply_supernet()

    bootstrap = network.lookup_subnet("bootstrap_dhcp")
    assert str(bootstrap.cidr) == "10.252.1.0/17"
    assert str(bootstrap.gateway) == "10.252.0.1"
    assert str(network.lookup_subnet("network_hardware").cidr) == "10.252.0.0/17"
    assert str(uai.cidr) == "10.252.2.0/23", "only the standard subnets share the supernet mask"


def _mountain_cabinets(*details):
    group = CabinetGroupDetail(kind=CabinetKind.MOUNTAIN, cabinets=len(details),
                               cabinet_details=list(details))
    return [group]


def test_cabinet_subnets_in_id_order():
    network = defaults.cabinet_network_template(
        _nmn(), "NMN_MTN", "Mountain Compute Node Management Network",
        defaults.DEFAULT_NMN_MTN_CIDR, defaults.DEFAULT_NMN_MTN_VLANS)
    cabinets = _mountain_cabinets(CabinetDetail(id=1001), CabinetDetail(id=1000))

    added = network.gen_cabinet_subnets(cabinets, 22, filter_class(CabinetClass.MOUNTAIN))

    assert [s.name for s in added] == ["cabinet_1000", "cabinet_1001"]
    assert [s.vlan_id for s in added] == [2000, 2001]
    assert [str(s.cidr) for s in added] == ["10.100.0.0/22", "10.100.4.0/22"]
    assert network.vlan_range == [2000, 2001]
    assert added[0].dhcp_start is not None


def test_cabinet_subnets_use_explicit_vlans():
    network = defaults.cabinet_network_template(
        _nmn(), "NMN_MTN", "", defaults.DEFAULT_NMN_MTN_CIDR, defaults.DEFAULT_NMN_MTN_VLANS)
    cabinets = _mountain_cabinets(CabinetDetail(id=1000, nmn_vlan_id=2500), CabinetDetail(id=1001))

    added = network.gen_cabinet_subnets(cabinets, 22, filter_class(CabinetClass.MOUNTAIN))

    assert [s.vlan_id for s in added] == [2500, 2000]
    assert network.vlan_range == [2000, 2500]


def test_cabinet_subnets_reject_reused_vlan():
    network = defaults.cabinet_network_template(
        _nmn(), "NMN_MTN", "", defaults.DEFAULT_NMN_MTN_CIDR, defaults.DEFAULT_NMN_MTN_VLANS)
    cabinets = _mountain_cabinets(CabinetDetail(id=1000, nmn_vlan_id=2100),
                                  CabinetDetail(id=1001, nmn_vlan_id=2100))

    with pytest.raises(VlanAlreadyAllocatedError):
        network.gen_cabinet_subnets(cabinets, 22, filter_class(CabinetClass.MOUNTAIN))


def test_todict():
    network = _nmn()
    network.add_subnet(24, "bootstrap_dhcp", 2)
    network.my_asn = 65531
    network.peer_asn = 65533

    data = network.todict()
    assert data["Name"] == "NMN"
    assert data["IPRanges"] == ["10.252.0.0/17"]
    assert data["Type"] == "ethernet"
    extra = data["ExtraProperties"]
    assert extra["CIDR"] == "10.252.0.0/17"
    assert extra["VlanRange"] == [2]
    assert extra["MTU"] == 9000
    assert extra["MyASN"] == 65531
    assert extra["PeerASN"] == 65533
    assert [s["Name"] for s in extra["Subnets"]] == ["bootstrap_dhcp"]
    assert "Comment" not in extra


def test_copy_is_deep():
    network = _nmn()
    network.add_subnet(24, "bootstrap_dhcp", 2)
    clone = network.copy()
    clone.subnets[0].add_reservation("ncn-w001")
    assert network.subnets[0].reservations == []
