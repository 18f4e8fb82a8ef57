#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Files written by a generation run and the network summary table
"""

import json
import logging
import os
from typing import Dict, List

from tabulate import tabulate

from .common.yamlhandler import dump_yaml
from .networking.network import IPNetwork
from .schema import SLSStateSchema

logger = logging.getLogger(__name__)

SLS_INPUT_FILE = "sls_input_file.json"
NCN_RECORDS_FILE = "ncn_records.yaml"
SKIPPED_ROWS_FILE = "skipped_rows.json"

SUBNET_TABLE_HEADERS = ["Network", "Subnet", "CIDR", "VLAN", "Gateway", "DHCP Start", "DHCP End", "Reservations"]


def network_rows(networks: Dict[str, IPNetwork]) -> List[list]:
    rows = []
    for name in sorted(networks):
        network = networks[name]
        if not network.subnets:
            rows.append([name, "", str(network.cidr), "", "", "", "", 0])
            continue
        for subnet in network.subnets:
            rows.append([
                name,
                subnet.name,
                str(subnet.cidr),
                subnet.vlan_id,
                str(subnet.gateway or ""),
                str(subnet.dhcp_start or subnet.reservation_start or ""),
                str(subnet.dhcp_end or subnet.reservation_end or ""),
                len(subnet.reservations),
            ])
    return rows


def network_table(networks: Dict[str, IPNetwork]) -> str:
    return tabulate(network_rows(networks), headers=SUBNET_TABLE_HEADERS)


def write_outputs(result, output_dir: str) -> Dict[str, str]:
    """ Write the SLS input file, NCN records and skipped rows, returning their paths
    """
    os.makedirs(output_dir, exist_ok=True)
    paths = {
        SLS_INPUT_FILE: os.path.join(output_dir, SLS_INPUT_FILE),
        NCN_RECORDS_FILE: os.path.join(output_dir, NCN_RECORDS_FILE),
        SKIPPED_ROWS_FILE: os.path.join(output_dir, SKIPPED_ROWS_FILE),
    }

    SLSStateSchema().save_json(result.state.todict(), paths[SLS_INPUT_FILE])

    with open(paths[NCN_RECORDS_FILE], "w") as ncn_file:
        dump_yaml([ncn.todict() for ncn in result.ncns], ncn_file)

    with open(paths[SKIPPED_ROWS_FILE], "w") as skipped_file:
        json.dump([row.todict() for row in result.skipped], skipped_file, indent=4)

    for path in paths.values():
        logger.info(f"wrote {path}")
    return paths
