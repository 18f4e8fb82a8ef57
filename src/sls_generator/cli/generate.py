#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Generation CLI classes
"""

import logging
import os

from .base import \
    SubCommandBase, \
    UsesSiteConfig, \
    add_seed_dir_arg, \
    add_site_config_args, \
    config_from_args
from .. import config as site_config
from .. import outputs
from ..common import logger as log_setup
from ..errors import InputValidationError
from ..inputs import load_seed_inputs
from ..reconcile import driver

logger = logging.getLogger(__name__)


@UsesSiteConfig()
class Generate(SubCommandBase):
    """ Generate the SLS input file and NCN records from seed files
    """
    sub_command = 'generate'

    @staticmethod
    def build_parser(parser):
        add_seed_dir_arg(parser)

        parser.add_argument('-o', '--output-dir', default='sls_output',
                            help='Directory for sls_input_file.json, ncn_records.yaml and skipped_rows.json')

    def __call__(self, args):
        os.makedirs(args.output_dir, exist_ok=True)
        file_handler = log_setup.add_file_logging(
            os.path.join(args.output_dir, log_setup.LOG_FILENAME))
        try:
            seeds = load_seed_inputs(args.input_dir, args.config)
            result = driver.run(args.config, seeds)
            outputs.write_outputs(result, args.output_dir)
            if result.skipped:
                logger.warning(f"{len(result.skipped)} cabling rows were skipped, "
                               f"see {outputs.SKIPPED_ROWS_FILE}")
        finally:
            log_setup.remove_handler(file_handler)
        return 0


class Validate(SubCommandBase):
    """ Check the configuration and seed files without generating anything
    """
    sub_command = 'validate'

    @staticmethod
    def build_parser(parser):
        add_site_config_args(parser)
        add_seed_dir_arg(parser)

    def __call__(self, args):
        loaded = config_from_args(vars(args))

        problems = site_config.validate_flags(loaded)
        try:
            load_seed_inputs(args.input_dir, loaded)
        except InputValidationError as exc:
            problems.extend(exc.errors or [str(exc)])

        if problems:
            raise InputValidationError("validation failed", problems)

        logger.info("configuration and seed files are valid")
        return 0
