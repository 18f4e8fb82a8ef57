#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Management node (NCN) records and the passes that give them addresses and names

An NCN moves through three stages. UnresolvedNCN is what ncn_metadata.csv
says. allocate_ips turns it into an AllocatedNCN holding one address per
bootstrap network. merge_ncns joins that with the node the hardware graph
generated from the cabling rows and yields a ResolvedNCN with its hostname.
Only then can update_reservations put hostnames on the reservations, which
were keyed by xname until that point.
"""

import dataclasses
import logging
import random
from typing import Callable, Dict, List, Optional, Tuple

from ..errors import MissingXnameError, SubnetNotFoundError, TopologyError
from ..hardware import xname as xnames
from ..hardware.types import ConnectorExtra, GenericHardware, HardwareType, NodeExtra
from ..networking.network import IPNetwork
from ..networking.subnet import IPSubnet

logger = logging.getLogger(__name__)

BOOTSTRAP_SUBNET = "bootstrap_dhcp"


def generate_instance_id(rng: Optional[random.Random] = None) -> str:
    """ Cloud-init instance id, i- followed by 32 random bits in hex
    """
    rng = rng or random.SystemRandom()
    return f"i-{rng.getrandbits(32):08X}"


@dataclasses.dataclass
class UnresolvedNCN:
    """ One row of ncn_metadata.csv
    """
    xname: str
    role: str
    subrole: str
    bmc_mac: str = ""
    bmc_port: str = ""
    nmn_mac: str = ""
    nmn_port: str = ""
    bond0_mac0: str = ""
    bond0_mac1: str = ""

    def normalize(self):
        self.xname = xnames.normalize(self.xname)

    def validate(self) -> List[str]:
        type_name = xnames.get_type(self.xname)
        if type_name is None:
            return [f"invalid xname for NCN: {self.xname}"]
        if type_name != "Node":
            return [f"invalid type {type_name} for NCN xname: {self.xname}"]
        errors = []
        if not self.role:
            errors.append(f"empty role for NCN: {self.xname}")
        if not self.subrole:
            errors.append(f"empty sub-role for NCN: {self.xname}")
        return errors


@dataclasses.dataclass
class NCNNetwork:
    network_name: str
    full_name: str
    ip_address: str
    vlan: int
    cidr: str
    mask: str
    interface_name: str
    parent_interface_name: str
    gateway: str

    def todict(self) -> dict:
        return {
            "network-name": self.network_name,
            "full-name": self.full_name,
            "ip-address": self.ip_address,
            "vlan": self.vlan,
            "cidr": self.cidr,
            "mask": self.mask,
            "interface-name": self.interface_name,
            "parent-interface-name": self.parent_interface_name,
            "gateway": self.gateway,
        }


@dataclasses.dataclass
class AllocatedNCN:
    seed: UnresolvedNCN
    instance_id: str
    bmc_ip: str = ""
    networks: List[NCNNetwork] = dataclasses.field(default_factory=list)

    @property
    def xname(self) -> str:
        return self.seed.xname

    def ip_for(self, network_name: str) -> str:
        for network in self.networks:
            if network.network_name == network_name:
                return network.ip_address
        return ""


@dataclasses.dataclass
class HardwareNCN:
    """ A management node as the hardware graph knows it
    """
    xname: str
    role: str
    subrole: str
    hostname: str
    aliases: List[str]
    bmc_port: str = ""


@dataclasses.dataclass
class ResolvedNCN:
    allocated: AllocatedNCN
    hostname: str
    aliases: List[str]
    bmc_port: str = ""

    @property
    def xname(self) -> str:
        return self.allocated.xname

    @property
    def subrole(self) -> str:
        return self.allocated.seed.subrole

    def todict(self) -> dict:
        seed = self.allocated.seed
        return {
            "xname": seed.xname,
            "hostname": self.hostname,
            "aliases": list(self.aliases),
            "role": seed.role,
            "subrole": seed.subrole,
            "instance-id": self.allocated.instance_id,
            "bmc-mac": seed.bmc_mac,
            "bmc-port": self.bmc_port or seed.bmc_port,
            "bmc-ip": self.allocated.bmc_ip,
            "nmn-mac": seed.nmn_mac,
            "bond0-mac0": seed.bond0_mac0,
            "bond0-mac1": seed.bond0_mac1,
            "networks": [n.todict() for n in self.allocated.networks],
        }


@dataclasses.dataclass
class LogicalUAN:
    xname: str
    role: str
    subrole: str
    hostname: str
    aliases: List[str]


def bootstrap_subnets(networks: Dict[str, IPNetwork]) -> Dict[str, IPSubnet]:
    subnets = {}
    for name in sorted(networks):
        try:
            subnets[name] = networks[name].lookup_subnet(BOOTSTRAP_SUBNET)
        except SubnetNotFoundError:
            logger.debug(f"couldn't find a {BOOTSTRAP_SUBNET} subnet in the {name} network")
    return subnets


def allocate_ips(ncns: List[UnresolvedNCN], networks: Dict[str, IPNetwork],
                 instance_id: Callable[[], str] = generate_instance_id) -> List[AllocatedNCN]:
    """
    Reserve an address for every NCN on every network with a bootstrap
    subnet, plus one for its BMC on the HMN. The reservations are named and
    commented by xname since hostnames are not known yet.
    """
    subnets = bootstrap_subnets(networks)
    allocated = []
    for seed in ncns:
        ncn = AllocatedNCN(seed=seed, instance_id=instance_id())
        for net_name, subnet in subnets.items():
            if net_name == "HMN":
                bmc = subnet.add_reservation(xnames.bmc_of_node(seed.xname), f"{seed.xname}-mgmt")
                ncn.bmc_ip = str(bmc.ip_address)

            reservation = subnet.add_reservation(seed.xname, seed.xname)
            prefixlen = str(subnet.cidr.network.prefixlen)
            try:
                subnet.gen_interface_name()
            except ValueError as exc:
                logger.debug(f"no interface name for {net_name} {subnet.name}: {exc}")
            ncn.networks.append(NCNNetwork(
                network_name=net_name,
                full_name=subnet.full_name,
                ip_address=str(reservation.ip_address),
                vlan=subnet.vlan_id,
                cidr=f"{reservation.ip_address}/{prefixlen}",
                mask=prefixlen,
                interface_name=subnet.interface_name,
                parent_interface_name=subnet.parent_device,
                gateway=str(subnet.gateway) if subnet.gateway is not None else "",
            ))
        allocated.append(ncn)
    logger.info(f"allocated addresses for {len(allocated)} NCNs on {len(subnets)} networks")
    return allocated


def port_for_xname(hardware: Dict[str, GenericHardware], xname: str) -> Optional[Tuple[str, str]]:
    """ (switch xname, vendor port name) of the connector cabled to xname
    """
    for key in sorted(hardware):
        hw = hardware[key]
        if hw.type != HardwareType.MgmtSwitchConnector or not isinstance(hw.extra, ConnectorExtra):
            continue
        if xname in hw.extra.node_nics:
            return hw.parent, hw.extra.vendor_name
    return None


def _node_extras(hardware: Dict[str, GenericHardware]):
    for key in sorted(hardware):
        hw = hardware[key]
        if hw.type == HardwareType.Node and isinstance(hw.extra, NodeExtra):
            yield key, hw, hw.extra


def extract_sls_ncns(hardware: Dict[str, GenericHardware]) -> List[HardwareNCN]:
    ncns = []
    for xname, hw, extra in _node_extras(hardware):
        if extra.role != "Management":
            continue
        port = port_for_xname(hardware, hw.parent)
        if port is None:
            logger.warning(f"Couldn't find switch port for NCN: {hw.parent}")
        ncns.append(HardwareNCN(
            xname=xname,
            role=extra.role,
            subrole=extra.sub_role,
            hostname=extra.aliases[0] if extra.aliases else xname,
            aliases=list(extra.aliases),
            bmc_port=f"{port[0]}:{port[1]}" if port is not None else "",
        ))
    return ncns


def extract_uans(hardware: Dict[str, GenericHardware]) -> List[LogicalUAN]:
    uans = []
    for xname, _, extra in _node_extras(hardware):
        if extra.role != "Application" or extra.sub_role != "UAN":
            continue
        if not extra.aliases:
            raise TopologyError(f"UANs must have at least one alias defined in the application node "
                                f"config file: {xname}")
        uans.append(LogicalUAN(xname=xname, role=extra.role, subrole=extra.sub_role,
                               hostname=extra.aliases[0], aliases=list(extra.aliases)))
    return uans


def merge_ncns(allocated: List[AllocatedNCN], sls_ncns: List[HardwareNCN]) -> List[ResolvedNCN]:
    by_xname = {ncn.xname: ncn for ncn in sls_ncns}
    resolved = []
    for ncn in allocated:
        found = by_xname.get(ncn.xname)
        if found is None:
            raise MissingXnameError(f"failed to find NCN from ncn-metadata in generated SLS State: {ncn.xname}")
        resolved.append(ResolvedNCN(allocated=ncn, hostname=found.hostname, aliases=list(found.aliases),
                                    bmc_port=found.bmc_port))
    return resolved


def update_reservations(subnet: IPSubnet, ncns: List[ResolvedNCN]):
    """
    Rename the xname keyed reservations of a subnet after their NCN's
    hostname and add the per network aliases. BMC reservations keep their
    name and gain a <hostname>-mgmt alias. Every NMN reservation also gets
    a .local alias.
    """
    net = subnet.net_name.lower()
    for reservation in subnet.reservations:
        for ncn in ncns:
            if reservation.comment == ncn.xname:
                reservation.name = ncn.hostname
                reservation.add_alias(f"{ncn.hostname}-{net}")
                reservation.add_alias(f"time-{net}")
                reservation.add_alias(f"time-{net}.local")
                if ncn.subrole.lower() == "storage" and net == "hmn":
                    reservation.add_alias("rgw-vip.hmn")
                if net == "nmn":
                    # an NCN xname resolves to its NMN address
                    reservation.add_alias(ncn.xname)
            elif reservation.comment == f"{ncn.xname}-mgmt":
                reservation.comment = reservation.name
                reservation.add_alias(f"{ncn.hostname}-mgmt")
        if net == "nmn":
            reservation.add_alias(f"{reservation.name}.local")
