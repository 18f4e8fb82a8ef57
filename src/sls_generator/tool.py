#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved

"""
SLS generator

Build the SLS network and hardware state of a system from its seed files
"""

import argparse
import logging
import sys

from . import cli
from .common.logger import remove_handler, setup_logging
from .errors import SLSGeneratorError

logger = logging.getLogger(__name__)


def _main(argv):
    running_cli = cli.CLI()

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Show debug messages')

    running_cli.build_parser(parser)

    args = parser.parse_args(argv)

    stdout_handler = setup_logging(verbose=args.verbose)

    try:
        rv = running_cli(args)
    except SLSGeneratorError as exc:
        for line in str(exc).splitlines():
            logger.error(line)
        return 1
    finally:
        remove_handler(stdout_handler)

    if rv is None:
        return 0
    elif isinstance(rv, int):
        return rv
    return 0


def main():
    sys.exit(_main(sys.argv[1:]))


if __name__ == "__main__":
    main()
