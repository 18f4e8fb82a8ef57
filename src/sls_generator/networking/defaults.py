#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Default network templates and well-known reservations
"""

import ipaddress

from .network import IPNetwork

DEFAULT_MTU = 9000
DEFAULT_PARENT_DEVICE = "bond0"

DEFAULT_NMN_CIDR = "10.252.0.0/17"
DEFAULT_NMN_VLAN = 2
DEFAULT_HMN_CIDR = "10.254.0.0/17"
DEFAULT_HMN_VLAN = 4
DEFAULT_CHN_CIDR = "10.104.7.0/24"
DEFAULT_CHN_VLAN = 5
DEFAULT_CAN_CIDR = "10.102.11.0/24"
DEFAULT_CAN_VLAN = 6
DEFAULT_CMN_CIDR = "10.103.6.0/24"
DEFAULT_CMN_VLAN = 7
DEFAULT_MTL_CIDR = "10.1.1.0/16"
DEFAULT_MTL_VLAN = 0
DEFAULT_HSN_CIDR = "10.253.0.0/16"
DEFAULT_HSN_VLANS = [613, 868]
DEFAULT_NMN_LB_CIDR = "10.92.100.0/24"
DEFAULT_HMN_LB_CIDR = "10.94.100.0/24"

DEFAULT_NMN_MTN_CIDR = "10.100.0.0/17"
DEFAULT_NMN_MTN_VLANS = [2000, 2999]
DEFAULT_HMN_MTN_CIDR = "10.104.0.0/17"
DEFAULT_HMN_MTN_VLANS = [3000, 3999]
DEFAULT_NMN_RVR_CIDR = "10.106.0.0/17"
DEFAULT_NMN_RVR_VLANS = [1770, 1999]
DEFAULT_HMN_RVR_CIDR = "10.107.0.0/17"
DEFAULT_HMN_RVR_VLANS = [1513, 1769]

# networks the final reservation pass walks, in order
VALID_NET_NAMES = (
    "BICAN", "CAN", "CHN", "CMN", "HMN", "HMN_MTN", "HMN_RVR", "MTL", "NMN", "NMN_MTN", "NMN_RVR",
)

CUSTOMER_NETWORKS = ("CAN", "CMN", "CHN")

# last octet pins on the MetalLB networks: name -> (pin, space separated aliases)
PINNED_METALLB_RESERVATIONS = {
    "istio-ingressgateway": (71, "api-gw-service api-gw-service-nmn.local packages registry spire.local "
                                 "api_gw_service registry.local packages packages.local spire"),
    "istio-ingressgateway-local": (81, "api-gw-service.local"),
    "rsyslog-aggregator": (72, "rsyslog-agg-service"),
    "cray-tftp": (60, "tftp-service"),
    "unbound": (225, "unbound"),
    "docker-registry": (73, "docker_registry_service"),
}

DEFAULT_UAI_RESERVATIONS = {
    "uai_nmn_blackhole": ["uai-nmn-blackhole"],
    "slurmctld_service": ["slurmctld-service", "slurmctld-service-nmn"],
    "slurmdbd_service": ["slurmdbd-service", "slurmdbd-service-nmn"],
    "pbs_service": ["pbs-service", "pbs-service-nmn"],
    "pbs_comm_service": ["pbs-comm-service", "pbs-comm-service-nmn"],
}


def _net(name, full_name, cidr, vlans, parent_device=DEFAULT_PARENT_DEVICE, **kwargs) -> IPNetwork:
    return IPNetwork(
        name=name,
        full_name=full_name,
        cidr=ipaddress.ip_network(cidr, strict=False),
        vlan_range=list(vlans),
        mtu=DEFAULT_MTU,
        net_type=kwargs.pop("net_type", "ethernet"),
        parent_device=parent_device,
        **kwargs,
    )


def default_templates() -> dict:
    """ Fresh copies of every default network template, keyed by name
    """
    return {
        "BICAN": _net("BICAN", "SystemDefaultRoute points the network name of the default route",
                      "0.0.0.0/0", [1]),
        "CAN": _net("CAN", "Customer Access Network", DEFAULT_CAN_CIDR, [DEFAULT_CAN_VLAN]),
        "CHN": _net("CHN", "Customer High-Speed Network", DEFAULT_CHN_CIDR, [DEFAULT_CHN_VLAN]),
        "CMN": _net("CMN", "Customer Management Network", DEFAULT_CMN_CIDR, [DEFAULT_CMN_VLAN]),
        "HMN": _net("HMN", "Hardware Management Network", DEFAULT_HMN_CIDR, [DEFAULT_HMN_VLAN]),
        "HSN": _net("HSN", "High Speed Network", DEFAULT_HSN_CIDR, DEFAULT_HSN_VLANS,
                    net_type="slingshot10"),
        "MTL": _net("MTL", "Provisioning Network (untagged)", DEFAULT_MTL_CIDR, [DEFAULT_MTL_VLAN],
                    comment="This network is only valid for the NCNs"),
        "NMN": _net("NMN", "Node Management Network", DEFAULT_NMN_CIDR, [DEFAULT_NMN_VLAN]),
        "NMNLB": _net("NMNLB", "Node Management Network LoadBalancers", DEFAULT_NMN_LB_CIDR, [],
                      parent_device=""),
        "HMNLB": _net("HMNLB", "Hardware Management Network LoadBalancers", DEFAULT_HMN_LB_CIDR, [],
                      parent_device=""),
    }


def cabinet_network_template(base: IPNetwork, name: str, full_name: str, cidr: str, vlans) -> IPNetwork:
    """ Derive a per-cabinet-class network (HMN_MTN, NMN_RVR, ...) from HMN or NMN
    """
    template = base.copy()
    template.name = name
    template.full_name = full_name
    template.cidr = ipaddress.ip_network(cidr, strict=False)
    template.vlan_range = list(vlans)
    return template
