#!/usr/bin/env python

# Copyright 2022, Cerebras Systems, Inc. All rights reserved.

"""
Seed file readers
"""

from .loaders import SeedInputs, load_seed_inputs

__all__ = ['SeedInputs', 'load_seed_inputs']
