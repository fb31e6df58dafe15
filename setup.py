"""
Setup script for Kestrel.
"""

from pathlib import Path
from setuptools import find_packages, setup

# Read version from VERSION file
version_file = Path(__file__).parent / "VERSION"
version = version_file.read_text().strip()

readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="kestrel",
    version=version,
    description="Key transparency verification core",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Garudex Labs",
    python_requires=">=3.9",
    packages=find_packages(include=["kestrel", "kestrel.*"]),
    install_requires=[
        "cryptography>=41.0",
        "protobuf>=4.25",
        "structlog>=23.1",
        "PyYAML>=6.0",
        "click>=8.1",
        "prometheus-client>=0.17",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-cov>=4.1",
            "hypothesis>=6.82",
        ],
    },
    entry_points={
        "console_scripts": [
            "kestrel=kestrel.cli.main:cli",
        ],
    },
)
