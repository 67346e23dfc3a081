#!/usr/bin/env python

import re
from os.path import dirname, exists, join

from setuptools import setup


def get_version():
    with open(join(dirname(__file__), "sasblobfs", "_version.py")) as f:
        return re.search(r'__version__ = "(.+)"', f.read()).group(1)


setup(
    name="sasblobfs",
    version=get_version(),
    description="Access block blobs through SAS-signed URLs with fsspec",
    classifiers=[
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
    license="BSD",
    keywords=["file-system", "fsspec", "azure", "blob"],
    packages=["sasblobfs"],
    python_requires=">=3.8",
    long_description_content_type="text/markdown",
    long_description=open("README.md").read() if exists("README.md") else "",
    install_requires=[
        "azure-core>=1.23.1,<2.0.0",
        "fsspec>=2023.1.0",
        "aiohttp>=3.7.0",
    ],
    extras_require={
        "tests": ["pytest", "pytest-mock", "pytest-asyncio"],
    },
    zip_safe=False,
    entry_points={
        "fsspec.specs": [
            "blob=sasblobfs.BlobFileSystem",
        ],
    },
)
