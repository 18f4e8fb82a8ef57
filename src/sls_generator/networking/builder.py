#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Builds every network of the system from its layout

VLANs of all layouts are claimed up front through one VlanAllocator, so a
collision aborts the run before any subnet is carved. Each network is then
built in a fixed order: MetalLB pools, HSN base subnet, network hardware,
bootstrap DHCP, ASNs, UAI subnet, per cabinet subnets and last the supernet
masks.
"""

import ipaddress
import logging
from typing import Dict, List, Optional

from . import defaults
from . import ipam
from .layout import NetworkLayoutConfiguration
from .network import IPNetwork
from .subnet import UAI_SUBNET_NAME, IPSubnet
from .vlan import VlanAllocator
from ..errors import SLSGeneratorError, TopologyError, VlanAllocationError
from ..hardware.cabinets import (
    CabinetGroupDetail,
    CabinetKind,
    filter_air_cooled_count,
    filter_and,
    filter_class,
    filter_kind,
    filter_or,
)
from ..hardware.switches import ManagementSwitch, SwitchType, switches_by_type
from ..hardware.types import CabinetClass

logger = logging.getLogger(__name__)

LOAD_BALANCER_PREFIXLEN = 24

# networks whose bootstrap subnet gets the kubernetes API VIP
KUBEAPI_NETWORKS = ("NMN", "HMN", "CMN", "CAN", "CHN")

# network -> ((subnet name, config attribute, full name, MetalLB pool name), ...)
METALLB_POOLS = {
    "CMN": (
        ("cmn_metallb_static_pool", "cmn_static_pool", "CMN Static Pool MetalLB", "customer-management-static"),
        ("cmn_metallb_address_pool", "cmn_dynamic_pool", "CMN Dynamic MetalLB", "customer-management"),
    ),
    "CAN": (
        ("can_metallb_static_pool", "can_static_pool", "CAN Static Pool MetalLB", "customer-access-static"),
        ("can_metallb_address_pool", "can_dynamic_pool", "CAN Dynamic MetalLB", "customer-access"),
    ),
    "CHN": (
        ("chn_metallb_static_pool", "chn_static_pool", "CHN Static Pool MetalLB", "customer-high-speed-static"),
        ("chn_metallb_address_pool", "chn_dynamic_pool", "CHN Dynamic MetalLB", "customer-high-speed"),
    ),
}

CMN_EXTERNAL_DNS = "external-dns"


def _config_value(config, name: str, suffix: str):
    return getattr(config, f"{name.lower()}_{suffix}", None)


def _parse_network(value: str) -> Optional[ipaddress.IPv4Network]:
    try:
        return ipaddress.ip_network(value, strict=False)
    except ValueError:
        return None


class NetworkBuilder:
    """
    Turns layouts into networks for one run.

    The allocator is passed in so one run's claims never leak into another.
    """

    def __init__(self, config, cabinets: List[CabinetGroupDetail], switches: List[ManagementSwitch],
                 allocator: Optional[VlanAllocator] = None):
        self.config = config
        self.cabinets = cabinets
        self.switches = switches
        self.allocator = allocator if allocator is not None else VlanAllocator()

    def claim_vlans(self, layouts: Dict[str, NetworkLayoutConfiguration]):
        for name in sorted(layouts):
            vlans = layouts[name].template.vlan_range
            try:
                if len(vlans) == 2:
                    self.allocator.allocate_range(vlans[0], vlans[1])
                    logger.info(f"Allocating VLANs {name} {vlans[0]} {vlans[1]}")
                elif vlans:
                    self.allocator.allocate(vlans[0])
                    logger.info(f"Allocating VLAN {name} {vlans[0]}")
            except VlanAllocationError as exc:
                raise type(exc)(f"Unable to allocate VLANs {vlans} for {name}: {exc}") from exc

            if not self.allocator.is_allocated(layouts[name].base_vlan):
                raise VlanAllocationError(
                    f"VLAN for {name} has not been initialized by defaults or input values: "
                    f"{layouts[name].base_vlan}")

    def build(self, layouts: Dict[str, NetworkLayoutConfiguration]) -> Dict[str, IPNetwork]:
        errors = []
        for name in sorted(layouts):
            errors.extend(layouts[name].validate(self.cabinets, self.switches))
        if errors:
            raise TopologyError("network layouts are incomplete: " + "; ".join(errors))

        self.claim_vlans(layouts)

        networks = {}
        for name in sorted(layouts):
            if name in ("CAN", "CHN") and not _config_value(self.config, name, "cidr"):
                logger.info(f"No {name} Network definition provided")
                continue
            try:
                networks[name] = self.build_network(layouts[name])
            except SLSGeneratorError as exc:
                raise type(exc)(f"Couldn't add {name} Network because {exc}") from exc
            logger.debug(f"built {name} with {len(networks[name].subnets)} subnets")

        networks["NMNLB"] = self.build_load_balancer_network(
            "NMNLB", self.config.nmn_dynamic_pool, "nmn_metallb_address_pool", "NMN MetalLB",
            "node-management", self.config.nmn_bootstrap_vlan, hmn=False)
        networks["HMNLB"] = self.build_load_balancer_network(
            "HMNLB", self.config.hmn_dynamic_pool, "hmn_metallb_address_pool", "HMN MetalLB",
            "hardware-management", self.config.hmn_bootstrap_vlan, hmn=True)
        return networks

    def build_load_balancer_network(self, name: str, cidr: str, pool_name: str, full_name: str,
                                    metallb_pool: str, vlan_id: int, hmn: bool) -> IPNetwork:
        network = defaults.default_templates()[name]
        if cidr:
            network.cidr = ipaddress.ip_network(cidr, strict=False)
        pool = network.add_subnet(LOAD_BALANCER_PREFIXLEN, pool_name, vlan_id)
        pool.full_name = full_name
        pool.metallb_pool_name = metallb_pool

        for reservation, (pin, aliases) in defaults.PINNED_METALLB_RESERVATIONS.items():
            if hmn and reservation == "istio-ingressgateway-local":
                continue
            comment = "" if hmn and reservation == "istio-ingressgateway" else ",".join(aliases.split())
            pool.add_reservation_with_pin(reservation, comment, pin)
        return network

    def _add_metallb_pools(self, network: IPNetwork):
        for subnet_name, attribute, full_name, pool_name in METALLB_POOLS.get(network.name, ()):
            value = getattr(self.config, attribute, "")
            if not value:
                logger.debug(f"no {attribute} given, {subnet_name} not created")
                continue
            pool_cidr = _parse_network(value)
            if pool_cidr is None:
                logger.warning(f"IP Addressing Failure: Invalid {attribute} {value}. "
                               f"Cowardly refusing to create it.")
                continue

            vlan_id = _config_value(self.config, network.name, "bootstrap_vlan")
            try:
                pool = network.add_subnet_by_cidr(pool_cidr, subnet_name, vlan_id)
            except TopologyError as exc:
                raise TopologyError(
                    f"IP Addressing Failure: Couldn't add MetalLB pool of {value} to net {network.cidr}: {exc}. "
                    f"Possible missing or mismatched {attribute} input value.") from exc
            pool.full_name = full_name
            pool.metallb_pool_name = pool_name

            if subnet_name == "cmn_metallb_static_pool":
                pool.add_reservation_with_ip(CMN_EXTERNAL_DNS, self.config.cmn_external_dns,
                                             "site to system lookups")

    def _add_hsn_base_subnet(self, network: IPNetwork):
        hsn_cidr = _parse_network(self.config.hsn_cidr)
        if hsn_cidr is None:
            logger.warning(f"IP Addressing Failure: Invalid hsn_cidr {self.config.hsn_cidr}. "
                           f"Cowardly refusing to create it.")
            return
        subnet = network.add_subnet_by_cidr(hsn_cidr, "hsn_base_subnet", defaults.DEFAULT_HSN_VLANS[0])
        subnet.full_name = "HSN Base Subnet"

    def _add_hardware_subnet(self, network: IPNetwork, layout: NetworkLayoutConfiguration):
        subnet = network.add_subnet(layout.hardware_prefixlen, "network_hardware", layout.base_vlan)
        subnet.full_name = f"{network.name} Management Network Infrastructure"
        subnet.reserve_net_mgmt_ips(
            switches_by_type(self.switches, SwitchType.SPINE),
            switches_by_type(self.switches, SwitchType.LEAF),
            switches_by_type(self.switches, SwitchType.LEAF_BMC),
            switches_by_type(self.switches, SwitchType.CDU),
            additional=layout.additional_networking_space,
        )

    def _add_bootstrap_subnet(self, network: IPNetwork, layout: NetworkLayoutConfiguration):
        net_cidr = _parse_network(_config_value(self.config, network.name, "cidr") or "")
        prefixlen = layout.bootstrap_prefixlen
        if network.name in defaults.CUSTOMER_NETWORKS and net_cidr is not None:
            prefixlen = net_cidr.prefixlen

        subnet = network.add_biggest_subnet(prefixlen, "bootstrap_dhcp", layout.base_vlan)
        subnet.full_name = f"{network.name} Bootstrap DHCP Subnet"
        subnet.parent_device = network.parent_device

        if network.name not in KUBEAPI_NETWORKS:
            return

        if network.name in ("CAN", "CHN"):
            subnet.cidr = ipaddress.IPv4Interface(str(net_cidr))
            gateway = _config_value(self.config, network.name, "gateway")
            if gateway:
                subnet.gateway = ipam.parse_address(gateway)
            else:
                subnet.gateway = ipam.gateway_ip(subnet.cidr)
            if network.name == "CAN":
                subnet.add_reservation("can-switch-1")
                subnet.add_reservation("can-switch-2")
            else:
                subnet.reserve_edge_switch_ips(switches_by_type(self.switches, SwitchType.EDGE))

        subnet.add_reservation("kubeapi-vip", "k8s-virtual-ip")
        if network.name == "NMN":
            subnet.add_reservation("rgw-vip", "rgw-virtual-ip")

    def _add_uai_subnet(self, network: IPNetwork, layout: NetworkLayoutConfiguration):
        # UAIs share the NMN VLAN
        subnet = network.add_subnet(layout.uai_prefixlen, UAI_SUBNET_NAME, self.config.nmn_bootstrap_vlan)
        subnet.gateway = ipam.gateway_ip(network.cidr)
        subnet.full_name = "NMN UAIs"
        for name in sorted(defaults.DEFAULT_UAI_RESERVATIONS):
            aliases = defaults.DEFAULT_UAI_RESERVATIONS[name]
            reservation = subnet.add_reservation(name, ",".join(aliases))
            for alias in aliases:
                reservation.add_alias(alias)

    def _add_cabinet_subnets(self, network: IPNetwork, layout: NetworkLayoutConfiguration) -> List[IPSubnet]:
        prefixlen = layout.cabinet_prefixlen
        added = []
        if layout.group_networks_by_cabinet_type:
            if network.name.endswith("RVR"):
                added += network.gen_cabinet_subnets(self.cabinets, prefixlen, filter_or(
                    filter_class(CabinetClass.RIVER),
                    # EX2500 cabinets holding an air-cooled chassis next to the liquid-cooled one
                    filter_and(filter_kind(CabinetKind.EX2500), filter_air_cooled_count(1)),
                ))
            if network.name.endswith("MTN"):
                added += network.gen_cabinet_subnets(self.cabinets, prefixlen, filter_class(CabinetClass.MOUNTAIN))
                added += network.gen_cabinet_subnets(self.cabinets, prefixlen, filter_class(CabinetClass.HILL))
        else:
            for cabinet_class in (CabinetClass.RIVER, CabinetClass.HILL, CabinetClass.MOUNTAIN):
                added += network.gen_cabinet_subnets(self.cabinets, prefixlen, filter_class(cabinet_class))
        return added

    def build_network(self, layout: NetworkLayoutConfiguration) -> IPNetwork:
        network = layout.template.copy()

        self._add_metallb_pools(network)

        if network.name == "HSN":
            self._add_hsn_base_subnet(network)

        if layout.include_networking_hardware_subnet:
            try:
                self._add_hardware_subnet(network, layout)
            except SLSGeneratorError as exc:
                raise type(exc)(f"unable to add network hardware subnet to {network.name} because {exc}") from exc

        if layout.include_bootstrap_dhcp and _config_value(self.config, network.name, "cidr"):
            try:
                self._add_bootstrap_subnet(network, layout)
            except SLSGeneratorError as exc:
                raise type(exc)(f"unable to add bootstrap_dhcp subnet to {network.name} because {exc}") from exc

        my_asn = getattr(self.config, f"bgp_{network.name.lower()}_asn", None)
        if my_asn:
            network.peer_asn = self.config.bgp_asn
            network.my_asn = my_asn

        if layout.include_uai_subnet:
            self._add_uai_subnet(network, layout)

        if layout.subdivide_by_cabinet:
            self._add_cabinet_subnets(network, layout)

        if layout.supernet:
            network.apply_supernet()
        return network
