#!/usr/bin/env python
# -*- coding: utf-8 -*-

import os
from setuptools import setup


def os_install_requires():
    # load dependencies from requirements.txt
    return [l.strip() for l in read("requirements.txt").strip().split('\n') if l.strip()]


def read(fname):
    with open(os.path.join(os.path.dirname(__file__), fname)) as fd:
        return fd.read()

#### setup main ####
setup(
    name="scapy-ssl3_handshake",
    version="1.0.0",
    packages=["scapy_ssl3_handshake"],
    author="tintinweb",
    author_email="tintinweb@oststrom.com",
    description=(
        "A mutually authenticated SSL3-style handshake simulator built on scapy layers"),
    license="GPLv2",
    keywords=["scapy", "ssl", "tls", "handshake", "x509", "rsa", "packets"],
    url="https://github.com/tintinweb/scapy-ssl_tls/",
    long_description=read("README.md"),
    long_description_content_type="text/markdown",
    python_requires=">=3.8",
    install_requires=os_install_requires(),
    extras_require={"test": ["pytest"]},
    entry_points={"console_scripts": ["scapy-ssl3-handshake = scapy_ssl3_handshake.__main__:main"]},
)
