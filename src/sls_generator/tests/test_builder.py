import pytest

from sls_generator.errors import TopologyError, VlanAlreadyAllocatedError
from sls_generator.hardware.cabinets import cabinet_counts
from sls_generator.networking.builder import NetworkBuilder
from sls_generator.networking.layout import prepare_layouts
from sls_generator.networking.vlan import VlanAllocator
from sls_generator.tests.system_builder import make_config, small_system


def _build(config, allocator=None):
    seeds = small_system().seeds(config)
    layouts = prepare_layouts(config, cabinet_counts(seeds.cabinets), len(seeds.ncns), len(seeds.switches))
    builder = NetworkBuilder(config, seeds.cabinets, seeds.switches, allocator)
    return builder.build(layouts)


def test_prepare_layouts_selects_networks():
    config = make_config()
    layouts = prepare_layouts(config, {"River": 1, "Mountain": 2, "Hill": 0}, 3, 4)
    assert sorted(layouts) == [
        "BICAN", "CAN", "CMN", "HMN", "HMN_MTN", "HMN_RVR", "HSN", "MTL", "NMN", "NMN_MTN", "NMN_RVR",
    ]
    assert layouts["CMN"].bootstrap_prefixlen == 29
    assert layouts["CMN"].hardware_prefixlen == 29
    assert layouts["NMN_MTN"].subdivide_by_cabinet
    assert not layouts["NMN_MTN"].supernet
    assert layouts["NMN"].include_uai_subnet
    assert layouts["BICAN"].template.system_default_route == "CAN"


def test_prepare_layouts_user_network_choice():
    config = make_config(bican_user_network_name="CHN", chn_cidr="10.104.7.0/24", chn_gateway="10.104.7.1")
    layouts = prepare_layouts(config, {"River": 1}, 3, 4)
    assert "CHN" in layouts
    assert "CAN" not in layouts
    assert "NMN_MTN" not in layouts

    retained = prepare_layouts(make_config(retain_unused_user_network=True), {"River": 1}, 3, 4)
    assert "CAN" in retained and "CHN" in retained


def test_prepare_layouts_overrides():
    config = make_config(nmn_bootstrap_vlan=12, nmn_cidr="10.40.0.0/16", management_net_ips=2)
    layouts = prepare_layouts(config, {"River": 1}, 3, 4)
    assert layouts["NMN"].base_vlan == 12
    assert layouts["NMN"].template.vlan_range == [12]
    assert str(layouts["NMN"].template.cidr) == "10.40.0.0/16"
    assert layouts["HMN"].additional_networking_space == 2
    # cabinet class networks keep their own VLAN ranges
    assert layouts["NMN_RVR"].base_vlan == 1770


def test_nmn_plan():
    networks = _build(make_config())
    nmn = networks["NMN"]

    bootstrap = nmn.lookup_subnet("bootstrap_dhcp")
    assert str(bootstrap.cidr) == "10.252.1.0/17"
    assert str(bootstrap.gateway) == "10.252.0.1"
    assert str(bootstrap.lookup_reservation("kubeapi-vip").ip_address) == "10.252.1.2"
    assert str(bootstrap.lookup_reservation("rgw-vip").ip_address) == "10.252.1.3"

    hardware = nmn.lookup_subnet("network_hardware")
    assert str(hardware.cidr) == "10.252.0.0/17"
    assert [r.name for r in hardware.reservations] == [
        "sw-spine-001", "sw-spine-002", "sw-leaf-bmc-001", "sw-cdu-001"]

    uai = nmn.lookup_subnet("uai_macvlan")
    assert str(uai.cidr) == "10.252.2.0/23"
    assert str(uai.gateway) == "10.252.0.1"
    assert uai.vlan_id == 2
    assert uai.lookup_reservation("slurmctld_service").aliases == ["slurmctld-service", "slurmctld-service-nmn"]

    assert nmn.my_asn == 65531
    assert nmn.peer_asn == 65533


def test_cabinet_networks():
    networks = _build(make_config())

    nmn_mtn = networks["NMN_MTN"]
    assert [(s.name, s.vlan_id, str(s.cidr)) for s in nmn_mtn.subnets] == [
        ("cabinet_1000", 2000, "10.100.0.0/22"),
        ("cabinet_1001", 2001, "10.100.4.0/22"),
    ]
    assert nmn_mtn.vlan_range == [2000, 2001]

    hmn_rvr = networks["HMN_RVR"]
    assert [(s.name, s.vlan_id) for s in hmn_rvr.subnets] == [("cabinet_3000", 1513)]
    assert networks["NMN_RVR"].subnets[0].vlan_id == 1770


def test_customer_networks():
    networks = _build(make_config())
    assert "CHN" not in networks

    cmn = networks["CMN"]
    assert str(cmn.lookup_subnet("network_hardware").cidr) == "10.103.6.0/24"
    cmn_bootstrap = cmn.lookup_subnet("bootstrap_dhcp")
    assert str(cmn_bootstrap.cidr) == "10.103.6.128/24"
    assert str(cmn_bootstrap.gateway) == "10.103.6.1"

    can = networks["CAN"]
    static_pool = can.lookup_subnet("can_metallb_static_pool")
    assert static_pool.metallb_pool_name == "customer-access-static"
    assert static_pool.vlan_id == 6
    can_bootstrap = can.lookup_subnet("bootstrap_dhcp")
    assert str(can_bootstrap.cidr) == "10.102.11.0/24"
    assert str(can_bootstrap.gateway) == "10.102.11.1"
    assert [(r.name, str(r.ip_address)) for r in can_bootstrap.reservations] == [
        ("can-switch-1", "10.102.11.2"),
        ("can-switch-2", "10.102.11.3"),
        ("kubeapi-vip", "10.102.11.4"),
    ]


def test_cmn_external_dns():
    config = make_config(cmn_static_pool="10.103.6.64/27", cmn_external_dns="10.103.6.65")
    networks = _build(config)
    pool = networks["CMN"].lookup_subnet("cmn_metallb_static_pool")
    dns = pool.lookup_reservation("external-dns")
    assert str(dns.ip_address) == "10.103.6.65"
    assert dns.comment == "site to system lookups"


def test_invalid_pool_is_skipped():
    networks = _build(make_config(can_static_pool="not-a-cidr"))
    assert networks["CAN"].subnet_by_name("can_metallb_static_pool") is None


def test_pool_outside_network_fails():
    with pytest.raises(TopologyError) as exc:
        _build(make_config(can_static_pool="10.200.0.0/28"))
    assert "Couldn't add CAN Network" in str(exc.value)
    assert "IP Addressing Failure" in str(exc.value)


def test_load_balancer_networks():
    networks = _build(make_config())

    nmn_pool = networks["NMNLB"].lookup_subnet("nmn_metallb_address_pool")
    assert nmn_pool.metallb_pool_name == "node-management"
    assert str(nmn_pool.lookup_reservation("rsyslog-aggregator").ip_address) == "10.92.100.72"
    assert "api-gw-service.local" in nmn_pool.lookup_reservation("istio-ingressgateway-local").aliases

    hmn_pool = networks["HMNLB"].lookup_subnet("hmn_metallb_address_pool")
    assert hmn_pool.vlan_id == 4
    assert hmn_pool.find_reservation("istio-ingressgateway-local") is None
    assert hmn_pool.lookup_reservation("istio-ingressgateway").aliases == []


def test_vlans_claimed_once():
    allocator = VlanAllocator()
    _build(make_config(), allocator)
    allocated = allocator.allocated()
    for vlan_id in (0, 1, 2, 4, 6, 7, 613, 868, 1513, 1770, 2000, 3999):
        assert vlan_id in allocated, f"VLAN {vlan_id} was not claimed"


def test_vlan_collision_aborts():
    with pytest.raises(VlanAlreadyAllocatedError) as exc:
        _build(make_config(can_bootstrap_vlan=2))
    assert "for NMN" in str(exc.value)


def test_missing_switches():
    config = make_config()
    seeds = small_system().seeds(config)
    layouts = prepare_layouts(config, cabinet_counts(seeds.cabinets), 3, 0)
    with pytest.raises(TopologyError) as exc:
        NetworkBuilder(config, seeds.cabinets, []).build(layouts)
    assert "without management switches" in str(exc.value)
