#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Declarative layouts that tell the network builder what to create per network
"""

import dataclasses
import ipaddress
import logging
from typing import Dict, List, Optional

from . import defaults
from . import ipam
from .network import IPNetwork

logger = logging.getLogger(__name__)

DEFAULT_CABINET_PREFIXLEN = 22
DEFAULT_HARDWARE_PREFIXLEN = 24
DEFAULT_BOOTSTRAP_PREFIXLEN = 24
DEFAULT_UAI_PREFIXLEN = 23


@dataclasses.dataclass
class NetworkLayoutConfiguration:
    """ Recipe for one network. The builder never looks past it for policy.
    """
    template: IPNetwork
    include_bootstrap_dhcp: bool = False
    bootstrap_prefixlen: int = DEFAULT_BOOTSTRAP_PREFIXLEN
    include_networking_hardware_subnet: bool = False
    hardware_prefixlen: int = DEFAULT_HARDWARE_PREFIXLEN
    supernet: bool = False
    additional_networking_space: int = 0
    base_vlan: int = 0
    subdivide_by_cabinet: bool = False
    group_networks_by_cabinet_type: bool = False
    include_uai_subnet: bool = False
    uai_prefixlen: int = DEFAULT_UAI_PREFIXLEN
    cabinet_prefixlen: int = DEFAULT_CABINET_PREFIXLEN

    @property
    def name(self) -> str:
        return self.template.name

    def validate(self, cabinets, switches) -> List[str]:
        errors = []
        if self.include_networking_hardware_subnet and not switches:
            errors.append(f"{self.name}: can't build networking hardware subnets without management switches")
        if self.subdivide_by_cabinet and not cabinets:
            errors.append(f"{self.name}: can't build per cabinet subnets without a list of cabinet details")
        return errors


def gen_default_bican_config(system_default_route: str) -> NetworkLayoutConfiguration:
    template = defaults.default_templates()["BICAN"]
    template.system_default_route = system_default_route
    return NetworkLayoutConfiguration(template=template)


def gen_default_hsn_config() -> NetworkLayoutConfiguration:
    return NetworkLayoutConfiguration(template=defaults.default_templates()["HSN"])


def gen_default_mtl_config() -> NetworkLayoutConfiguration:
    return NetworkLayoutConfiguration(
        template=defaults.default_templates()["MTL"],
        include_bootstrap_dhcp=True,
        include_networking_hardware_subnet=True,
        supernet=True,
    )


def _gen_management_config(name: str, include_uai: bool) -> NetworkLayoutConfiguration:
    return NetworkLayoutConfiguration(
        template=defaults.default_templates()[name],
        include_bootstrap_dhcp=True,
        include_networking_hardware_subnet=True,
        supernet=True,
        group_networks_by_cabinet_type=True,
        include_uai_subnet=include_uai,
    )


def gen_default_hmn_config() -> NetworkLayoutConfiguration:
    return _gen_management_config("HMN", include_uai=False)


def gen_default_nmn_config() -> NetworkLayoutConfiguration:
    return _gen_management_config("NMN", include_uai=True)


def gen_default_cmn_config(ncn_count: int, switch_count: int) -> NetworkLayoutConfiguration:
    """ CMN subnets are sized by what will live in them
    """
    return NetworkLayoutConfiguration(
        template=defaults.default_templates()["CMN"],
        include_bootstrap_dhcp=True,
        bootstrap_prefixlen=ipam.subnet_within(ncn_count),
        include_networking_hardware_subnet=True,
        hardware_prefixlen=ipam.subnet_within(switch_count),
        supernet=True,
    )


def gen_default_can_config() -> NetworkLayoutConfiguration:
    return NetworkLayoutConfiguration(
        template=defaults.default_templates()["CAN"],
        include_bootstrap_dhcp=True,
    )


def gen_default_chn_config() -> NetworkLayoutConfiguration:
    return NetworkLayoutConfiguration(
        template=defaults.default_templates()["CHN"],
        include_bootstrap_dhcp=True,
    )


def _cabinet_class_config(base: NetworkLayoutConfiguration, name, full_name, cidr, vlans):
    layout = dataclasses.replace(
        base,
        template=defaults.cabinet_network_template(base.template, name, full_name, cidr, vlans),
        subdivide_by_cabinet=True,
        include_bootstrap_dhcp=False,
        supernet=False,
        include_networking_hardware_subnet=False,
        include_uai_subnet=False,
    )
    return layout


def _override(config, name: str, suffix: str):
    return getattr(config, f"{name.lower()}_{suffix}", None)


def prepare_layouts(config, cabinet_counts: Dict[str, int], ncn_count: int,
                    switch_count: int) -> Dict[str, NetworkLayoutConfiguration]:
    """
    Pick the networks this system needs and apply per network overrides
    (bootstrap VLAN, CIDR, equipment headroom) from the configuration.
    """
    bican_name = config.bican_user_network_name
    layouts = {
        "BICAN": gen_default_bican_config(bican_name),
        "CMN": gen_default_cmn_config(ncn_count, switch_count + config.management_net_ips),
        "HMN": gen_default_hmn_config(),
        "HSN": gen_default_hsn_config(),
        "MTL": gen_default_mtl_config(),
        "NMN": gen_default_nmn_config(),
    }
    if bican_name == "CAN" or config.retain_unused_user_network:
        layouts["CAN"] = gen_default_can_config()
    if bican_name == "CHN" or config.retain_unused_user_network:
        layouts["CHN"] = gen_default_chn_config()

    liquid_cooled = cabinet_counts.get("Mountain", 0) + cabinet_counts.get("Hill", 0)
    air_cooled = cabinet_counts.get("River", 0)

    if layouts["HMN"].group_networks_by_cabinet_type:
        if liquid_cooled:
            layouts["HMN_MTN"] = _cabinet_class_config(
                layouts["HMN"], "HMN_MTN", "Mountain Compute Hardware Management Network",
                defaults.DEFAULT_HMN_MTN_CIDR, defaults.DEFAULT_HMN_MTN_VLANS)
        if air_cooled:
            layouts["HMN_RVR"] = _cabinet_class_config(
                layouts["HMN"], "HMN_RVR", "River Compute Hardware Management Network",
                defaults.DEFAULT_HMN_RVR_CIDR, defaults.DEFAULT_HMN_RVR_VLANS)

    if layouts["NMN"].group_networks_by_cabinet_type:
        if liquid_cooled:
            layouts["NMN_MTN"] = _cabinet_class_config(
                layouts["NMN"], "NMN_MTN", "Mountain Compute Node Management Network",
                defaults.DEFAULT_NMN_MTN_CIDR, defaults.DEFAULT_NMN_MTN_VLANS)
        if air_cooled:
            layouts["NMN_RVR"] = _cabinet_class_config(
                layouts["NMN"], "NMN_RVR", "River Compute Node Management Network",
                defaults.DEFAULT_NMN_RVR_CIDR, defaults.DEFAULT_NMN_RVR_VLANS)

    for name, layout in layouts.items():
        base_vlan: Optional[int] = _override(config, name, "bootstrap_vlan")
        if base_vlan is not None:
            layout.base_vlan = base_vlan
            layout.template.vlan_range[0] = base_vlan
        else:
            layout.base_vlan = layout.template.vlan_range[0]

        cidr = _override(config, name, "cidr")
        if cidr:
            layout.template.cidr = ipaddress.ip_network(cidr, strict=False)

        layout.additional_networking_space = config.management_net_ips
        logger.debug(f"layout {name}: {layout.template.cidr} vlans {layout.template.vlan_range}")

    return layouts
