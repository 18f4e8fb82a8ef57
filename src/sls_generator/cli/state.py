#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Network plan and SLS file inspection CLI classes
"""

import logging

from tabulate import tabulate

from .base import \
    SubCommandBase, \
    UsesSiteConfig, \
    add_seed_dir_arg
from .. import outputs
from ..hardware.cabinets import cabinet_counts
from ..inputs import load_seed_inputs
from ..networking.builder import NetworkBuilder
from ..networking.layout import prepare_layouts
from ..schema import SLSStateSchema

logger = logging.getLogger(__name__)


@UsesSiteConfig()
class ShowNetworks(SubCommandBase):
    """ Build the network plan only and print its subnets
    """
    sub_command = 'show-networks'

    @staticmethod
    def build_parser(parser):
        add_seed_dir_arg(parser)

    def __call__(self, args):
        seeds = load_seed_inputs(args.input_dir, args.config)
        layouts = prepare_layouts(args.config, cabinet_counts(seeds.cabinets),
                                  len(seeds.ncns), len(seeds.switches))
        networks = NetworkBuilder(args.config, seeds.cabinets, seeds.switches).build(layouts)
        print(outputs.network_table(networks))
        return 0


class CheckState(SubCommandBase):
    """ Validate an existing SLS input file against the bundled schema
    """
    sub_command = 'check-state'

    @staticmethod
    def build_parser(parser):
        parser.add_argument('-f', '--sls-file', required=True,
                            help='SLS input file to check')

    def __call__(self, args):
        state_schema = SLSStateSchema()
        sls_state = state_schema.load_json(args.sls_file)

        summary = {}
        for hardware in sls_state["Hardware"].values():
            summary[hardware["TypeString"]] = summary.get(hardware["TypeString"], 0) + 1
        print(tabulate(sorted(summary.items()), headers=["Type", "Count"]))
        logger.info(f"{args.sls_file} is valid: {len(sls_state['Hardware'])} hardware entries, "
                    f"{len(sls_state['Networks'])} networks")
        return 0
