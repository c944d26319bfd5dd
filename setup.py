#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
SETUP SCRIPT
============

Metadata and dependencies are declared in `setup.cfg`.
"""
from setuptools import setup, find_packages
import os
from configparser import ConfigParser

rootdir = os.path.dirname(os.path.abspath(__file__))
config = ConfigParser()
config.read(os.path.join(rootdir, 'setup.cfg'))
INSTALL_REQUIRES = config['options']['install_requires']
INSTALL_REQUIRES = [req for req in INSTALL_REQUIRES.split('\n') if req]

version = {}
with open(os.path.join(rootdir, 'nigmm', '_version.py')) as f:
    exec(f.read(), version)

setup(
    version=version['__version__'],
    packages=find_packages(include=['nigmm', 'nigmm.*']),
    install_requires=INSTALL_REQUIRES,
)
