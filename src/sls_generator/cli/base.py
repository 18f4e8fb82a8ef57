#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

""" Base CLI classes and methods
"""

import argparse
import functools
import inspect
import types
from abc import ABCMeta, abstractmethod

from .. import config as site_config


def add_seed_dir_arg(parser):
    """ Add seed directory common argument
    """
    parser.add_argument('-i', '--input-dir', default='.',
                        help='Directory holding ncn_metadata.csv, switch_metadata.csv, '
                             'hmn_connections.json and the optional cabinets.yaml and '
                             'application_node_config.yaml')


def add_site_config_args(parser):
    """ Add the system config file and one override flag per configuration value
    """
    parser.add_argument('--system-config',
                        help='System config YAML file, flags below override its values')

    for name, field in site_config.InitConfig.model_fields.items():
        flag = '--' + name.replace('_', '-')
        if field.annotation is bool:
            parser.add_argument(flag, dest=name, default=None,
                                action=argparse.BooleanOptionalAction,
                                help=field.description)
        else:
            parser.add_argument(flag, dest=name, default=None,
                                type=field.annotation, help=field.description)


def config_from_args(cmd_dict):
    """ Site configuration from --system-config and the override flags, not yet validated
    """
    overrides = {name: cmd_dict.get(name)
                 for name in site_config.InitConfig.model_fields}
    return site_config.load_config(cmd_dict.get('system_config'), overrides)


class UsesSiteConfig:
    """ Decorate a class to provide the validated site configuration as args.config
    """

    def __call__(self, wrapped):
        @functools.wraps(getattr(wrapped, '__call__'))
        def new_call(instance, cmd_args, *args, **kwargs):
            cmd_dict = vars(cmd_args)

            loaded = config_from_args(cmd_dict)
            site_config.check_flags(loaded)

            new_dict = {k: v for k, v in cmd_dict.items()
                        if k not in site_config.InitConfig.model_fields}
            new_dict['config'] = loaded

            return super(instance.__class__, instance).__call__(
                argparse.Namespace(**new_dict), *args, **kwargs)

        @functools.wraps(getattr(wrapped, 'build_parser'))
        def new_build_parser(instance, parser):
            add_site_config_args(parser)
            super(instance.__class__, instance).build_parser(parser)

        cls_update = dict(__call__=new_call,
                          build_parser=new_build_parser)

        new_cls = types.new_class(wrapped.__name__,
                                  bases=inspect.getmro(wrapped),
                                  exec_body=lambda x: x.update(cls_update))

        functools.update_wrapper(new_cls, wrapped, updated=())

        return new_cls


class SubCommandBase(metaclass=ABCMeta):
    """ Base class for sub commands
    """
    sub_command = ''

    @abstractmethod
    def build_parser(self, parser):
        """ Add arguments to the parser for this subcommand
        """

    @abstractmethod
    def __call__(self, args):
        """ Run the subcommand with provided arguments
        """

class CLIBase(SubCommandBase):
    """ Base class for command CLIs
    """
    command_classes = ()

    def __init__(self):
        self.sub_commands = dict()

        for cls in self.command_classes:
            sub_command = getattr(cls, 'sub_command', '')
            if sub_command:
                self.sub_commands[sub_command] = cls()

    def build_parser(self, parser):
        sub_parsers = parser.add_subparsers(help='sub commands', required=True,
                                            dest='sub_command')

        for sub_command in sorted(self.sub_commands):
            obj = self.sub_commands[sub_command]
            cmd_parser = sub_parsers.add_parser(sub_command,
                                                help=obj.__doc__)
            if hasattr(obj, 'build_parser'):
                obj.build_parser(cmd_parser)

    def __call__(self, args):
        ret = self.sub_commands[args.sub_command](args)
        return ret[0] if isinstance(ret, tuple) else ret
