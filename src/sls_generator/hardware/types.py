#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Hardware graph types

ExtraProperties is a closed union: each hardware type carries exactly one
extra class, and GenericHardware refuses a mismatched pairing.
"""

import dataclasses
import enum
from typing import Dict, List, Optional, Union

from . import xname as xnames
from ..errors import InvalidXnameError, TopologyError


class CabinetClass(str, enum.Enum):
    RIVER = "River"
    HILL = "Hill"
    MOUNTAIN = "Mountain"


class HardwareType(enum.Enum):
    """ HMS type name -> SLS comptype string
    """
    CDU = "comptype_cdu"
    CDUMgmtSwitch = "comptype_cdu_mgmt_switch"
    Cabinet = "comptype_cabinet"
    CabinetPDUController = "comptype_cab_pdu_controller"
    Chassis = "comptype_chassis"
    ChassisBMC = "comptype_chassis_bmc"
    ComputeModule = "comptype_compmod"
    NodeBMC = "comptype_ncard"
    Node = "comptype_node"
    RouterModule = "comptype_rtrmod"
    RouterBMC = "comptype_rtr_bmc"
    MgmtSwitch = "comptype_mgmt_switch"
    MgmtSwitchConnector = "comptype_mgmt_switch_connector"
    MgmtHLSwitchEnclosure = "comptype_hl_switch_enclosure"
    MgmtHLSwitch = "comptype_hl_switch"

    @classmethod
    def from_xname(cls, xname: str) -> "HardwareType":
        type_name = xnames.get_type(xname)
        if type_name is None:
            raise InvalidXnameError(f"invalid xname: {xname}")
        return cls[type_name]


def _vault_path(xname: str) -> str:
    return f"vault://hms-creds/{xname}"


def _drop_empty(data: dict) -> dict:
    return {k: v for k, v in data.items() if v not in (None, "", [], 0)}


@dataclasses.dataclass
class NoExtra:
    def todict(self) -> Optional[dict]:
        return None


@dataclasses.dataclass
class CabinetNetwork:
    cidr: str
    gateway: str = ""
    vlan: int = 0

    def todict(self) -> dict:
        return _drop_empty({"CIDR": self.cidr, "Gateway": self.gateway, "VLan": self.vlan})


@dataclasses.dataclass
class CabinetExtra:
    model: str = ""
    # "cn"/"ncn" -> network name -> network
    networks: Dict[str, Dict[str, CabinetNetwork]] = dataclasses.field(default_factory=dict)

    def todict(self) -> dict:
        rv = {"Networks": {
            kind: {name: net.todict() for name, net in sorted(nets.items())}
            for kind, nets in sorted(self.networks.items())
        }}
        if self.model:
            rv["Model"] = self.model
        return rv


@dataclasses.dataclass
class NodeExtra:
    role: str
    sub_role: str = ""
    nid: int = 0
    aliases: List[str] = dataclasses.field(default_factory=list)

    def todict(self) -> dict:
        return _drop_empty({"NID": self.nid, "Role": self.role, "SubRole": self.sub_role,
                            "Aliases": list(self.aliases)})


@dataclasses.dataclass
class MgmtSwitchExtra:
    """ Leaf BMC switch, polled over SNMP
    """
    ip4_addr: str
    brand: str
    model: str = ""
    aliases: List[str] = dataclasses.field(default_factory=list)
    snmp_auth_password: str = ""
    snmp_auth_protocol: str = "MD5"
    snmp_priv_password: str = ""
    snmp_priv_protocol: str = "DES"
    snmp_username: str = "testuser"

    @classmethod
    def for_switch(cls, switch_xname: str, ip4_addr: str, brand: str, model: str, aliases):
        return cls(ip4_addr=ip4_addr, brand=brand, model=model, aliases=list(aliases),
                   snmp_auth_password=_vault_path(switch_xname),
                   snmp_priv_password=_vault_path(switch_xname))

    def todict(self) -> dict:
        return _drop_empty({
            "IP4addr": self.ip4_addr,
            "Brand": self.brand,
            "Model": self.model,
            "SNMPAuthPassword": self.snmp_auth_password,
            "SNMPAuthProtocol": self.snmp_auth_protocol,
            "SNMPPrivPassword": self.snmp_priv_password,
            "SNMPPrivProtocol": self.snmp_priv_protocol,
            "SNMPUsername": self.snmp_username,
            "Aliases": list(self.aliases),
        })


@dataclasses.dataclass
class MgmtHLSwitchExtra:
    ip4_addr: str
    brand: str
    model: str = ""
    aliases: List[str] = dataclasses.field(default_factory=list)

    def todict(self) -> dict:
        return _drop_empty({"IP4addr": self.ip4_addr, "Brand": self.brand, "Model": self.model,
                            "Aliases": list(self.aliases)})


@dataclasses.dataclass
class CDUMgmtSwitchExtra:
    brand: str
    model: str = ""
    aliases: List[str] = dataclasses.field(default_factory=list)

    def todict(self) -> dict:
        return _drop_empty({"Brand": self.brand, "Model": self.model, "Aliases": list(self.aliases)})


@dataclasses.dataclass
class ConnectorExtra:
    node_nics: List[str]
    vendor_name: str

    def todict(self) -> dict:
        return {"NodeNics": list(self.node_nics), "VendorName": self.vendor_name}


@dataclasses.dataclass
class PDUExtra:
    def todict(self) -> Optional[dict]:
        return None


@dataclasses.dataclass
class RouterBMCExtra:
    username: str = ""
    password: str = ""

    @classmethod
    def for_bmc(cls, bmc_xname: str):
        return cls(username=_vault_path(bmc_xname), password=_vault_path(bmc_xname))

    def todict(self) -> dict:
        return _drop_empty({"Username": self.username, "Password": self.password})


ExtraProperties = Union[NoExtra, CabinetExtra, NodeExtra, MgmtSwitchExtra, MgmtHLSwitchExtra,
                        CDUMgmtSwitchExtra, ConnectorExtra, PDUExtra, RouterBMCExtra]

# which extras each hardware type may carry
ALLOWED_EXTRAS = {
    HardwareType.Cabinet: (CabinetExtra,),
    HardwareType.Chassis: (NoExtra,),
    HardwareType.ChassisBMC: (NoExtra,),
    HardwareType.NodeBMC: (NoExtra,),
    HardwareType.Node: (NodeExtra,),
    HardwareType.MgmtSwitch: (MgmtSwitchExtra,),
    HardwareType.MgmtHLSwitch: (MgmtHLSwitchExtra,),
    HardwareType.CDUMgmtSwitch: (CDUMgmtSwitchExtra,),
    HardwareType.MgmtSwitchConnector: (ConnectorExtra,),
    HardwareType.CabinetPDUController: (PDUExtra,),
    HardwareType.RouterBMC: (RouterBMCExtra,),
}


@dataclasses.dataclass
class GenericHardware:
    xname: str
    type: HardwareType
    cabinet_class: CabinetClass
    parent: str
    extra: ExtraProperties = dataclasses.field(default_factory=NoExtra)

    def __post_init__(self):
        allowed = ALLOWED_EXTRAS.get(self.type, (NoExtra,))
        if not isinstance(self.extra, allowed):
            raise TopologyError(
                f"{self.xname}: {type(self.extra).__name__} is not valid for {self.type.name} hardware")

    @classmethod
    def build(cls, xname: str, cabinet_class: CabinetClass, extra: ExtraProperties = None,
              hardware_type: Optional[HardwareType] = None) -> "GenericHardware":
        """ Derive type and parent from the xname, hardware_type overrides the derived type
        """
        return cls(
            xname=xname,
            type=hardware_type or HardwareType.from_xname(xname),
            cabinet_class=cabinet_class,
            parent=xnames.get_parent(xname),
            extra=extra if extra is not None else NoExtra(),
        )

    def todict(self) -> dict:
        rv = {
            "Parent": self.parent,
            "Xname": self.xname,
            "Type": self.type.value,
            "Class": self.cabinet_class.value,
            "TypeString": self.type.name,
        }
        extra = self.extra.todict()
        if extra is not None:
            rv["ExtraProperties"] = extra
        return rv
