#!/usr/bin/python3

from setuptools import setup

setup(
    name="umount-chroots",
    version="1.0",
    author="TurnKey GNU/Linux",
    packages=["umountlib"],
    scripts=["umount-chroots"],
    python_requires=">=3.10",
    extras_require={"test": ["pytest"]},
)
