#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Rule tables that turn a cabling row's Source into a component kind and,
for nodes, a role.

Both tables are evaluated top to bottom and the first match wins. Order
matters: "sw-leaf-bmc" is also an "sw-leaf", and "cn" sources must be
claimed as compute before the application prefixes are consulted.
"""

import dataclasses
import enum
import re
from typing import Callable, Optional, Tuple

from .application import ApplicationNodeConfig
from ..errors import TopologyError

PDU_PATTERN = re.compile(r"(x\d+p|pdu)(\d+)")
TRAILING_NUMBER = re.compile(r"(\d+)$")

# management switches only come from switch_metadata.csv, never from cabling rows
MGMT_SWITCH_PREFIXES = ("sw-leaf", "sw-25g", "sw-40g", "sw-leaf-bmc", "sw-agg", "sw-smn")

MANAGEMENT_NID_START = 100001


class SourceKind(enum.Enum):
    ROUTER_BMC = "router_bmc"
    PDU = "pdu"
    COOLING_DOOR = "cooling_door"
    MGMT_SWITCH = "mgmt_switch"
    NODE = "node"


SOURCE_RULES: Tuple[Tuple[Callable[[str], bool], SourceKind], ...] = (
    (lambda source: source == "columbia" or source.startswith("sw-hsn"), SourceKind.ROUTER_BMC),
    (lambda source: PDU_PATTERN.search(source) is not None, SourceKind.PDU),
    (lambda source: "door" in source, SourceKind.COOLING_DOOR),
    (lambda source: source.startswith(MGMT_SWITCH_PREFIXES), SourceKind.MGMT_SWITCH),
)


def classify_source(source: str) -> SourceKind:
    lowered = source.lower()
    for matches, kind in SOURCE_RULES:
        if matches(lowered):
            return kind
    return SourceKind.NODE


def pdu_number(source: str) -> int:
    match = PDU_PATTERN.search(source.lower())
    if match is None:
        raise TopologyError(f"no PDU number in source {source}")
    return int(match.group(2))


class Numbering(enum.Enum):
    # next management NID, alias built from the index in the source name
    MANAGEMENT = "management"
    # NID is the trailing number of the source name
    COMPUTE = "compute"
    NONE = "none"


@dataclasses.dataclass(frozen=True)
class NodeRule:
    prefixes: Tuple[str, ...]
    role: str
    sub_role: str = ""
    numbering: Numbering = Numbering.NONE
    alias_format: str = ""
    min_platform: Optional[str] = None


NODE_RULES: Tuple[NodeRule, ...] = (
    NodeRule(("mn",), "Management", "Master", Numbering.MANAGEMENT, "ncn-m{:03d}"),
    NodeRule(("wn",), "Management", "Worker", Numbering.MANAGEMENT, "ncn-w{:03d}"),
    NodeRule(("sn",), "Management", "Storage", Numbering.MANAGEMENT, "ncn-s{:03d}"),
    NodeRule(("fmn",), "Management", "FabricManager", Numbering.MANAGEMENT, "fmn{:03d}", min_platform="1.7"),
    NodeRule(("nid", "cn"), "Compute", "", Numbering.COMPUTE, "nid{:06d}"),
)

# chassis management controllers of multi-node enclosures
SYSTEM_MARKER = "cmc"


@dataclasses.dataclass
class NodeClass:
    role: str
    sub_role: str = ""
    numbering: Numbering = Numbering.NONE
    # index from the name for management nodes, the NID for compute nodes
    number: int = 0
    alias_format: str = ""


def parse_platform_version(version: str) -> Tuple[int, int]:
    parts = version.strip().lstrip("v").split(".")
    try:
        major = int(parts[0])
        minor = int(parts[1]) if len(parts) > 1 else 0
    except ValueError as exc:
        raise ValueError(f"invalid platform version: {version}") from exc
    return major, minor


def _rule_number(rule: NodeRule, source: str) -> int:
    if rule.numbering == Numbering.MANAGEMENT:
        index = source.lower()[len(rule.prefixes[0]):]
        try:
            return int(index)
        except ValueError:
            raise TopologyError(f"Failed to parse index number from source {source}: {index!r}")
    if rule.numbering == Numbering.COMPUTE:
        match = TRAILING_NUMBER.search(source)
        if match is None:
            raise TopologyError(f"did not find NID number in source {source}")
        return int(match.group(1))
    return 0


def classify_node(source: str, app_config: ApplicationNodeConfig,
                  platform_version: str) -> Tuple[Optional[NodeClass], str]:
    """
    Role of a node row. Returns (None, reason) for rows to skip: unknown
    prefixes and nodes the platform version does not support yet.
    """
    lowered = source.lower()
    for rule in NODE_RULES:
        if not lowered.startswith(rule.prefixes):
            continue
        if rule.min_platform and parse_platform_version(platform_version) < parse_platform_version(rule.min_platform):
            return None, f"{rule.sub_role} node requires platform {rule.min_platform} or later"
        return NodeClass(
            role=rule.role,
            sub_role=rule.sub_role,
            numbering=rule.numbering,
            number=_rule_number(rule, source),
            alias_format=rule.alias_format,
        ), ""

    subroles = app_config.merged_subroles()
    for prefix in app_config.merged_prefixes():
        if lowered.startswith(prefix):
            return NodeClass(role="Application", sub_role=subroles.get(prefix, "")), ""

    if SYSTEM_MARKER in lowered:
        return NodeClass(role="System"), ""

    return None, ("unknown source prefix, if this is expected to be an Application node "
                  "update application_node_config.yaml")
