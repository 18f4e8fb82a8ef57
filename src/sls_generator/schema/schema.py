#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Managed JSON output files with their bundled schema
"""

import ipaddress
import json
import os
import tempfile
from abc import ABCMeta, abstractmethod
from importlib import resources

import jsonschema

from ..errors import InputValidationError
from ..hardware import xname as xnames


def _build_checker(ref):
    def _checker(value):
        try:
            return ref(value) is not False
        except Exception: # pylint: disable=broad-except
            pass

        return False

    return _checker


def _ip_network(value):
    return ipaddress.ip_network(value, strict=False)


class _ManagedJsonSchemaBase(metaclass=ABCMeta):
    """ ABC for managed JSON files with associated schema

    Subclasses must call this classes __init__
    """

    # Be generous with backup files
    backup_file_count = 20

    @property
    @abstractmethod
    def schema_dirname(self) -> str:
        """ Return the package data directory holding the schema
        """

    @property
    @abstractmethod
    def schema_filename(self) -> str:
        """ Return the schema filename to load
        """

    def __init__(self):
        schema_file = resources.files(__package__).joinpath(self.schema_dirname).joinpath(self.schema_filename)
        self.schema = json.loads(schema_file.read_text())

        self.format_checker = jsonschema.FormatChecker()
        self.format_checker.checks("ip_address")(_build_checker(ipaddress.ip_address))
        self.format_checker.checks("ip_network")(_build_checker(_ip_network))
        self.format_checker.checks("ip_interface")(_build_checker(ipaddress.ip_interface))
        self.format_checker.checks("xname")(_build_checker(xnames.is_valid))

        self.validator = jsonschema.validators.Draft4Validator(
            schema=self.schema, format_checker=self.format_checker)

    def validate(self, data_obj):
        """ Validate the provided object against this schema
        """
        return self.validator.validate(data_obj)

    def errors(self, data_obj):
        """ Every schema violation of the object, as readable strings
        """
        found = []
        for error in sorted(self.validator.iter_errors(data_obj), key=lambda e: list(e.path)):
            location = "/".join(str(p) for p in error.path) or "<root>"
            found.append(f"{location}: {error.message}")
        return found

    def check(self, data_obj):
        """ Like validate, reporting all violations at once
        """
        found = self.errors(data_obj)
        if found:
            raise InputValidationError(f"{self.schema_filename} validation failed", found)

    def load_json(self, data_filename):
        """ Load the json object and validate against this schema
        """
        with open(data_filename) as input_data:
            try:
                data_obj = json.load(input_data)
            except json.JSONDecodeError as exc:
                raise InputValidationError(f"{data_filename} is not valid JSON", [str(exc)]) from exc

        self.check(data_obj)

        return data_obj

    def save_json(self, data_obj, data_filename):
        """ Validate the JSON object against this schema and save
        """
        self.check(data_obj)

        dest_filename = str(data_filename)
        dest_prefix = os.path.abspath(dest_filename) + "."
        dest_backup = dest_filename + ".old"
        dest_backup_chain = [ dest_filename, dest_backup ] + \
            [ dest_backup + '.' + str(idx)
              for idx in range(1, self.backup_file_count + 1) ]

        with tempfile.NamedTemporaryFile(mode='w+', prefix=dest_prefix) as output:
            json.dump(data_obj, output, sort_keys=True, indent=4,
                      separators=(',', ': '))
            output.flush()

            backup_last = None
            for backup_this in reversed(dest_backup_chain):
                if backup_last is None:
                    if os.path.exists(backup_this):
                        os.unlink(backup_this)

                else: # if backup_last ...
                    if os.path.exists(backup_last):
                        os.unlink(backup_last)

                    if os.path.exists(backup_this):
                        os.rename(backup_this, backup_last)

                backup_last = backup_this

            os.link(output.name, dest_filename)


class SLSStateSchema(_ManagedJsonSchemaBase):
    """ Schema for the generated SLS input file
    """
    schema_dirname = "data"
    schema_filename = "sls_state_schema.json"

    def hardware_of_type(self, sls_state, type_string):
        """ Xnames of one hardware type in a loaded state
        """
        return sorted(xname for xname, hw in sls_state.get("Hardware", {}).items()
                      if hw.get("TypeString") == type_string)

    def subnet(self, sls_state, network_name, subnet_name):
        """ A subnet of a loaded state, None when missing
        """
        network = sls_state.get("Networks", {}).get(network_name)
        if network is None:
            return None
        for subnet in network["ExtraProperties"].get("Subnets", []):
            if subnet["Name"] == subnet_name:
                return subnet
        return None
