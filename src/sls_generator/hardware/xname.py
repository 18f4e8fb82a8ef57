#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Hardware names (xnames)

An xname encodes a component's position: x3000c0s13b0n0 is node 0 of BMC 0
in slot 13 of chassis 0 in cabinet 3000. Type and parent are derived from
the string alone.
"""

import re
from typing import Optional

from ..errors import InvalidXnameError

# parent of cabinets and CDUs
SYSTEM_XNAME = "s0"

# (type, pattern) pairs; patterns are anchored and mutually exclusive
XNAME_PATTERNS = (
    ("CDU", re.compile(r"^d(\d+)$")),
    ("CDUMgmtSwitch", re.compile(r"^d(\d+)w(\d+)$")),
    ("Cabinet", re.compile(r"^x(\d+)$")),
    ("CabinetPDUController", re.compile(r"^x(\d+)m(\d+)$")),
    ("Chassis", re.compile(r"^x(\d+)c(\d+)$")),
    ("ChassisBMC", re.compile(r"^x(\d+)c(\d+)b(\d+)$")),
    ("ComputeModule", re.compile(r"^x(\d+)c(\d+)s(\d+)$")),
    ("NodeBMC", re.compile(r"^x(\d+)c(\d+)s(\d+)b(\d+)$")),
    ("Node", re.compile(r"^x(\d+)c(\d+)s(\d+)b(\d+)n(\d+)$")),
    ("RouterModule", re.compile(r"^x(\d+)c(\d+)r(\d+)$")),
    ("RouterBMC", re.compile(r"^x(\d+)c(\d+)r(\d+)b(\d+)$")),
    ("MgmtSwitch", re.compile(r"^x(\d+)c(\d+)w(\d+)$")),
    ("MgmtSwitchConnector", re.compile(r"^x(\d+)c(\d+)w(\d+)j(\d+)$")),
    ("MgmtHLSwitchEnclosure", re.compile(r"^x(\d+)c(\d+)h(\d+)$")),
    ("MgmtHLSwitch", re.compile(r"^x(\d+)c(\d+)h(\d+)s(\d+)$")),
)

_LAST_COMPONENT = re.compile(r"^(.+?)[a-z]+\d+$")
_LEADING_ZEROS = re.compile(r"([a-z])0+(\d)")


def normalize(xname: str) -> str:
    """ Lower case with leading zeros stripped from every ordinal
    """
    return _LEADING_ZEROS.sub(r"\1\2", xname.strip().lower())


def get_type(xname: str) -> Optional[str]:
    """ Component type name for an xname, None when it matches no known pattern
    """
    for type_name, pattern in XNAME_PATTERNS:
        if pattern.match(xname):
            return type_name
    return None


def is_valid(xname: str) -> bool:
    return get_type(xname) is not None


def require_type(xname: str, *types: str) -> str:
    type_name = get_type(xname)
    if type_name is None:
        raise InvalidXnameError(f"invalid xname: {xname}")
    if types and type_name not in types:
        raise InvalidXnameError(f"invalid type {type_name} for xname {xname}, expected {', '.join(types)}")
    return type_name


def get_parent(xname: str) -> str:
    type_name = require_type(xname)
    if type_name in ("Cabinet", "CDU"):
        return SYSTEM_XNAME
    return _LAST_COMPONENT.match(xname).group(1)


def ordinals(xname: str):
    """ The numeric components of an xname, outermost first
    """
    for _, pattern in XNAME_PATTERNS:
        match = pattern.match(xname)
        if match:
            return tuple(int(group) for group in match.groups())
    raise InvalidXnameError(f"invalid xname: {xname}")


def cabinet(cabinet_id: int) -> str:
    return f"x{cabinet_id}"


def chassis(cabinet_xname: str, chassis_id: int) -> str:
    return f"{cabinet_xname}c{chassis_id}"


def chassis_bmc(chassis_xname: str, bmc: int = 0) -> str:
    return f"{chassis_xname}b{bmc}"


def compute_module(chassis_xname: str, slot: int) -> str:
    return f"{chassis_xname}s{slot}"


def node_bmc(module_xname: str, bmc: int) -> str:
    return f"{module_xname}b{bmc}"


def node(bmc_xname: str, node_id: int = 0) -> str:
    return f"{bmc_xname}n{node_id}"


def router_bmc(chassis_xname: str, slot: int, bmc: int) -> str:
    return f"{chassis_xname}r{slot}b{bmc}"


def pdu_controller(cabinet_xname: str, pdu: int) -> str:
    return f"{cabinet_xname}m{pdu}"


def mgmt_switch(chassis_xname: str, slot: int) -> str:
    return f"{chassis_xname}w{slot}"


def mgmt_switch_connector(switch_xname: str, port: int) -> str:
    return f"{switch_xname}j{port}"


def bmc_of_node(node_xname: str) -> str:
    """ x3000c0s1b0n0 -> x3000c0s1b0
    """
    require_type(node_xname, "Node")
    return get_parent(node_xname)
