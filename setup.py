#!/usr/bin/env python

import sys

from setuptools import setup

if sys.version_info < (3, 8):
    raise RuntimeError(
        'cssindex requires Python 3.8 or newer.')

setup()
