#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Site configuration for one generation run

Values come from the system config YAML file, then individual command line
flags override them. validate_flags reports every problem at once and runs
before anything is allocated.
"""

import ipaddress
import logging
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .common.yamlhandler import CustomYamlLoader
from .errors import InputValidationError
from .networking import defaults

logger = logging.getLogger(__name__)

PRIVATE_ASN_MIN = 64512
PRIVATE_ASN_MAX = 65534

BICAN_NETWORKS = ("CAN", "CHN", "HSN")
KUBE_PROXY_REPLACEMENTS = ("strict", "partial", "disabled")
PRIMARY_CNIS = ("weave", "cilium")

CIDR_FLAGS = (
    "can_cidr",
    "can_dynamic_pool",
    "can_static_pool",
    "chn_cidr",
    "chn_dynamic_pool",
    "chn_static_pool",
    "cmn_cidr",
    "cmn_dynamic_pool",
    "cmn_static_pool",
    "hmn_cidr",
    "hmn_dynamic_pool",
    "hmn_mtn_cidr",
    "hmn_rvr_cidr",
    "hsn_cidr",
    "mtl_cidr",
    "nmn_cidr",
    "nmn_dynamic_pool",
    "nmn_mtn_cidr",
    "nmn_rvr_cidr",
    "site_ip",
)

IPV4_FLAGS = ("site_dns", "site_gw")

ASN_FLAGS = ("bgp_asn", "bgp_cmn_asn", "bgp_nmn_asn", "bgp_chn_asn")


class InitConfig(BaseModel):
    system_name: str = Field("", description="Name of the System")
    site_domain: str = Field("", description="Site Domain Name")
    site_dns: str = Field("", description="Site Network DNS Server")
    site_gw: str = Field("", description="Site Network IPv4 Gateway")
    site_ip: str = Field("", description="Site Network Information in the form ipaddress/prefix like 192.168.1.1/24")

    bican_user_network_name: str = Field(
        "CAN", description="Name of the network over which non-admin users access the system [CAN, CHN, HSN]")
    retain_unused_user_network: bool = Field(
        False, description="Keep the user network that bican_user_network_name does not select")

    nmn_cidr: str = Field(defaults.DEFAULT_NMN_CIDR, description="Overall IPv4 CIDR for all Node Management subnets")
    nmn_dynamic_pool: str = Field(
        defaults.DEFAULT_NMN_LB_CIDR,
        description="Overall IPv4 CIDR for dynamic Node Management load balancer addresses")
    nmn_mtn_cidr: str = Field(
        defaults.DEFAULT_NMN_MTN_CIDR, description="IPv4 CIDR for grouped Mountain Node Management subnets")
    nmn_rvr_cidr: str = Field(
        defaults.DEFAULT_NMN_RVR_CIDR, description="IPv4 CIDR for grouped River Node Management subnets")
    nmn_bootstrap_vlan: int = Field(defaults.DEFAULT_NMN_VLAN, description="Bootstrap VLAN for the NMN")

    hmn_cidr: str = Field(
        defaults.DEFAULT_HMN_CIDR, description="Overall IPv4 CIDR for all Hardware Management subnets")
    hmn_dynamic_pool: str = Field(
        defaults.DEFAULT_HMN_LB_CIDR,
        description="Overall IPv4 CIDR for dynamic Hardware Management load balancer addresses")
    hmn_mtn_cidr: str = Field(
        defaults.DEFAULT_HMN_MTN_CIDR, description="IPv4 CIDR for grouped Mountain Hardware Management subnets")
    hmn_rvr_cidr: str = Field(
        defaults.DEFAULT_HMN_RVR_CIDR, description="IPv4 CIDR for grouped River Hardware Management subnets")
    hmn_bootstrap_vlan: int = Field(defaults.DEFAULT_HMN_VLAN, description="Bootstrap VLAN for the HMN")

    can_cidr: str = Field("", description="Overall IPv4 CIDR for all Customer Access subnets")
    can_gateway: str = Field("", description="Gateway for NCNs on the CAN (User)")
    can_static_pool: str = Field(
        "", description="Overall IPv4 CIDR for static Customer Access load balancer addresses")
    can_dynamic_pool: str = Field(
        "", description="Overall IPv4 CIDR for dynamic Customer Access load balancer addresses")
    can_bootstrap_vlan: int = Field(defaults.DEFAULT_CAN_VLAN, description="Bootstrap VLAN for the CAN")

    chn_cidr: str = Field("", description="Overall IPv4 CIDR for all Customer High-Speed subnets")
    chn_gateway: str = Field("", description="Gateway for NCNs on the CHN (User)")
    chn_static_pool: str = Field(
        "", description="Overall IPv4 CIDR for static Customer High-Speed load balancer addresses")
    chn_dynamic_pool: str = Field(
        "", description="Overall IPv4 CIDR for dynamic Customer High-Speed load balancer addresses")
    chn_bootstrap_vlan: int = Field(defaults.DEFAULT_CHN_VLAN, description="Bootstrap VLAN for the CHN")

    cmn_cidr: str = Field(
        defaults.DEFAULT_CMN_CIDR, description="Overall IPv4 CIDR for all Customer Management subnets")
    cmn_gateway: str = Field("", description="Gateway for NCNs on the CMN (Administrative/Management)")
    cmn_static_pool: str = Field(
        "", description="Overall IPv4 CIDR for static Customer Management load balancer addresses")
    cmn_dynamic_pool: str = Field(
        "", description="Overall IPv4 CIDR for dynamic Customer Management load balancer addresses")
    cmn_external_dns: str = Field(
        "", description="IP Address in the cmn_static_pool for the external dns service \"site-to-system lookups\"")
    cmn_bootstrap_vlan: int = Field(defaults.DEFAULT_CMN_VLAN, description="Bootstrap VLAN for the CMN")

    mtl_cidr: str = Field(defaults.DEFAULT_MTL_CIDR, description="Overall IPv4 CIDR for all Provisioning subnets")
    hsn_cidr: str = Field(defaults.DEFAULT_HSN_CIDR, description="Overall IPv4 CIDR for all HSN subnets")

    supernet: bool = Field(True, description="Use the supernet mask and gateway for NCNs and Switches")
    management_net_ips: int = Field(
        0, description="Additional number of IP addresses to reserve in each vlan for network equipment")

    mountain_cabinets: int = Field(4, description="Number of Mountain Cabinets")
    starting_mountain_cabinet: int = Field(1000, description="Starting ID number for Mountain Cabinets")
    river_cabinets: int = Field(1, description="Number of River Cabinets")
    starting_river_cabinet: int = Field(3000, description="Starting ID number for River Cabinets")
    hill_cabinets: int = Field(0, description="Number of Hill Cabinets")
    starting_hill_cabinet: int = Field(9000, description="Starting ID number for Hill Cabinets")
    starting_mountain_nid: int = Field(1000, description="Starting NID for Compute Nodes in liquid-cooled cabinets")

    bgp_asn: int = Field(65533, description="The autonomous system number for BGP router")
    bgp_cmn_asn: int = Field(65532, description="The autonomous system number for CMN BGP clients")
    bgp_nmn_asn: int = Field(65531, description="The autonomous system number for NMN BGP clients")
    bgp_chn_asn: int = Field(65530, description="The autonomous system number for CHN BGP clients")

    platform_version: str = Field("1.7", description="Version of the platform being installed, <major>.<minor>")

    cilium_operator_replicas: int = Field(1, description="Number of cilium operator replicas")
    cilium_kube_proxy_replacement: str = Field(
        "disabled", description="Cilium kube-proxy replacement mode: strict, partial or disabled")
    k8s_primary_cni: str = Field("cilium", description="Primary CNI for kubernetes: weave or cilium")

    class Config:
        extra = "forbid"

    @property
    def bican_gateway_flag(self) -> Optional[str]:
        """ Gateway flag the user network needs, once it was chosen explicitly or given a CIDR
        """
        name = self.bican_user_network_name
        if name not in ("CAN", "CHN"):
            return None
        if "bican_user_network_name" in self.model_fields_set or getattr(self, f"{name.lower()}_cidr"):
            return f"{name.lower()}_gateway"
        return None


def _describe(exc: ValidationError) -> List[str]:
    return [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> InitConfig:
    """ System config YAML (optional) with command line overrides applied on top

    Keys in the file may use - or _ as the word separator.
    """
    config = InitConfig()
    if path:
        with open(path) as config_file:
            data = yaml.load(config_file, Loader=CustomYamlLoader) or {}
        if not isinstance(data, dict):
            raise InputValidationError(f"system config {path} must be a mapping")
        data = {str(k).replace("-", "_"): v for k, v in data.items()}
        try:
            config = InitConfig(**data)
        except ValidationError as exc:
            raise InputValidationError(f"system config {path} is invalid", _describe(exc)) from exc
        logger.debug(f"loaded system config {path}")

    update = {k: v for k, v in (overrides or {}).items() if v is not None}
    if update:
        unknown = sorted(set(update) - set(InitConfig.model_fields))
        if unknown:
            raise InputValidationError("unknown configuration values", unknown)
        try:
            config = InitConfig.model_validate({**config.model_dump(exclude_unset=True), **update})
        except ValidationError as exc:
            raise InputValidationError("configuration overrides are invalid", _describe(exc)) from exc
    return config


def _is_cidr(value: str) -> bool:
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError:
        return False
    return "/" in value


def _is_ipv4(value: str) -> bool:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        return False
    return True


def validate_flags(config: InitConfig) -> List[str]:
    """ Every problem with the configuration, empty when it is usable
    """
    errors = []

    for flag in ASN_FLAGS:
        asn = getattr(config, flag)
        if asn > PRIVATE_ASN_MAX or asn < PRIVATE_ASN_MIN:
            errors.append(f"BGP ASNs must be within the private range {PRIVATE_ASN_MIN}-{PRIVATE_ASN_MAX}, "
                          f"fix the value for: {flag}")

    ipv4_flags = list(IPV4_FLAGS)
    if config.bican_user_network_name not in BICAN_NETWORKS:
        errors.append("bican_user_network_name must be set to CAN, CHN or HSN. (HSN requires NAT device)")
    elif config.bican_gateway_flag is not None:
        flag = config.bican_gateway_flag
        if not getattr(config, flag):
            errors.append(f"{flag} is required because bican_user_network_name is set to "
                          f"{config.bican_user_network_name} but {flag} was not set or was blank.")
        else:
            ipv4_flags.append(flag)

    for flag in ipv4_flags:
        value = getattr(config, flag)
        if value and not _is_ipv4(value):
            errors.append(f"{flag} should be an ip address and is not set correctly")

    for flag in CIDR_FLAGS:
        value = getattr(config, flag)
        if value and not _is_cidr(value):
            errors.append(f"{flag} should be a CIDR in the form 192.168.0.1/24 and is not set correctly")

    if config.cmn_static_pool and not config.cmn_external_dns:
        errors.append("cmn_external_dns is required when cmn_static_pool is set")

    if config.cilium_operator_replicas <= 0:
        errors.append("cilium_operator_replicas must be an integer > 0")
    if config.cilium_kube_proxy_replacement not in KUBE_PROXY_REPLACEMENTS:
        errors.append("cilium_kube_proxy_replacement must be set to strict, partial, or disabled")
    if config.k8s_primary_cni not in PRIMARY_CNIS:
        errors.append("k8s_primary_cni must be set to weave or cilium")

    return errors


def check_flags(config: InitConfig):
    errors = validate_flags(config)
    if errors:
        raise InputValidationError("configuration is invalid", errors)
