#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
SLS generator CLI
"""

from .base import \
    add_seed_dir_arg, \
    add_site_config_args, \
    config_from_args, \
    UsesSiteConfig, \
    SubCommandBase, \
    CLIBase

from .generate import \
    Generate, \
    Validate

from .state import \
    ShowNetworks, \
    CheckState

COMMAND_CLASSES = tuple(
    [ cls
      for cls in globals().values()
      if getattr(cls, 'sub_command', '') ])

class CLI(CLIBase):
    """ Run the SLS generator CLI
    """
    command_classes = COMMAND_CLASSES


__all__ = [
    'add_seed_dir_arg',
    'add_site_config_args',
    'config_from_args',
    'UsesSiteConfig',
    'SubCommandBase',
    'CLIBase',

    'Generate',
    'Validate',

    'ShowNetworks',
    'CheckState',

    'CLI',
]
