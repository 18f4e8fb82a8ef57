#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
One generation run, from validated configuration and seed files to SLS state

The passes run in a fixed order. Networks are built before any NCN gets an
address, NCN addresses before the switches are read back from the hardware
subnet, and hostnames only once the hardware graph exists. DHCP ranges are
computed last because every reservation shifts them.
"""

import dataclasses
import ipaddress
import logging
from typing import Callable, Dict, List, Optional

from .ncn import (
    BOOTSTRAP_SUBNET,
    ResolvedNCN,
    allocate_ips,
    extract_sls_ncns,
    extract_uans,
    generate_instance_id,
    merge_ncns,
    update_reservations,
)
from ..errors import SubnetNotFoundError
from ..hardware.cabinets import cabinet_counts, gen_cabinet_templates
from ..hardware.generator import GeneratorInput, SkippedRow, StateGenerator
from ..hardware.switches import extract_switches_from_reservations, switch_to_hardware
from ..networking import defaults
from ..networking.builder import NetworkBuilder
from ..networking.layout import prepare_layouts
from ..networking.network import IPNetwork
from ..networking.subnet import UAI_SUBNET_NAME
from ..networking.vlan import VlanAllocator
from ..state import SLSState

logger = logging.getLogger(__name__)

HARDWARE_SUBNET = "network_hardware"


@dataclasses.dataclass
class GenerationResult:
    state: SLSState
    ncns: List[ResolvedNCN]
    skipped: List[SkippedRow] = dataclasses.field(default_factory=list)


def _pool_start(config, name: str) -> Optional[ipaddress.IPv4Address]:
    """ Lowest first address of a customer network's load balancer pools, else its broadcast
    """
    prefix = name.lower()
    starts = []
    for suffix in ("static_pool", "dynamic_pool"):
        value = getattr(config, f"{prefix}_{suffix}", "")
        if value:
            starts.append(ipaddress.ip_network(value, strict=False).network_address)
    if starts:
        return min(starts)
    cidr = getattr(config, f"{prefix}_cidr", "")
    if cidr:
        return ipaddress.ip_network(cidr, strict=False).broadcast_address
    return None


def finalize_dhcp_ranges(config, networks: Dict[str, IPNetwork], ncns: List[ResolvedNCN]):
    """
    Name the NCN reservations after their hostnames and place the DHCP
    range of every bootstrap subnet after the reservations.
    """
    for name in sorted(networks):
        if name not in defaults.VALID_NET_NAMES:
            continue
        network = networks[name]
        subnet = network.subnet_by_name(BOOTSTRAP_SUBNET)
        if subnet is None:
            continue

        update_reservations(subnet, ncns)
        if name in defaults.CUSTOMER_NETWORKS:
            subnet.update_dhcp_range(False, _pool_start(config, name))
        else:
            subnet.update_dhcp_range(config.supernet)

        if name == "NMN":
            uai = network.subnet_by_name(UAI_SUBNET_NAME)
            if uai is not None:
                update_reservations(uai, ncns)
                uai.update_dhcp_range(False)
        logger.debug(f"{name} dhcp range {subnet.dhcp_start} - {subnet.dhcp_end}")


def _reserve_uans(config, networks: Dict[str, IPNetwork], hardware):
    user_networks = []
    if config.bican_user_network_name == "CAN" or config.retain_unused_user_network:
        user_networks.append("CAN")
    if config.bican_user_network_name == "CHN" or config.retain_unused_user_network:
        user_networks.append("CHN")

    uans = extract_uans(hardware)
    for name in user_networks:
        network = networks.get(name)
        if network is None:
            continue
        try:
            subnet = network.lookup_subnet(BOOTSTRAP_SUBNET)
        except SubnetNotFoundError:
            logger.warning(f"no {BOOTSTRAP_SUBNET} subnet on {name}, UANs get no address there")
            continue
        for uan in uans:
            subnet.add_reservation(uan.hostname, uan.xname)
    if uans:
        logger.info(f"reserved {len(uans)} UAN addresses on {', '.join(user_networks) or 'no network'}")


def run(config, seeds, allocator: Optional[VlanAllocator] = None,
        instance_id: Callable[[], str] = generate_instance_id) -> GenerationResult:
    """ Generate the SLS state and the NCN records from loaded seed inputs
    """
    layouts = prepare_layouts(config, cabinet_counts(seeds.cabinets), len(seeds.ncns), len(seeds.switches))
    builder = NetworkBuilder(config, seeds.cabinets, seeds.switches, allocator)
    networks = builder.build(layouts)
    logger.info(f"built networks: {', '.join(sorted(networks))}")

    allocated = allocate_ips(seeds.ncns, networks, instance_id)

    hardware_subnet = networks["HMN"].lookup_subnet(HARDWARE_SUBNET)
    switches = extract_switches_from_reservations(hardware_subnet, seeds.switches)
    switch_hardware = {}
    for switch in switches:
        hw = switch_to_hardware(switch)
        switch_hardware[hw.xname] = hw

    inputs = GeneratorInput(
        cabinets=gen_cabinet_templates(seeds.cabinets, networks),
        management_switches=switch_hardware,
        application_config=seeds.application_config,
        mountain_starting_nid=config.starting_mountain_nid,
        platform_version=config.platform_version,
        networks=networks,
    )
    generator = StateGenerator(inputs, seeds.rows)
    state = generator.generate()

    ncns = merge_ncns(allocated, extract_sls_ncns(state.hardware))
    _reserve_uans(config, networks, state.hardware)
    finalize_dhcp_ranges(config, networks, ncns)

    logger.info(f"generated {len(state.hardware)} hardware entries and {len(state.networks)} networks, "
                f"skipped {len(generator.skipped)} cabling rows")
    return GenerationResult(state=state, ncns=ncns, skipped=generator.skipped)
