#!/usr/bin/env python

from setuptools import setup

# Metadata and options are in setup.cfg
setup()
