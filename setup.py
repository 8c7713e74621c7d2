# SPDX-License-Identifier: Apache-2.0

import logging
from pathlib import Path

from setuptools import setup
from setuptools_scm import get_version
from setuptools_scm.version import ScmVersion

ROOT_DIR = Path(__file__).parent
logger = logging.getLogger(__name__)


def fixed_version_scheme(version: ScmVersion) -> str:
    return "0.1.0"


def always_hash(version: ScmVersion) -> str:
    """
    Always include short commit hash and current date (YYYYMMDD)
    """
    from datetime import datetime

    date_str = datetime.now().strftime("%Y%m%d")
    if version.node is not None:
        short_hash = version.node[:7]  # short commit id
        return f"{short_hash}.d{date_str}"
    return f"unknown.{date_str}"


def get_hostpatch_version() -> str:
    version = get_version(
        root=str(ROOT_DIR),
        version_scheme=fixed_version_scheme,
        local_scheme=always_hash,
        fallback_version="0.1.0",
        write_to="hostpatch/_version.py",
    )
    logger.info("Building hostpatch %s", version)
    return version


def _read_requirements(filename: str) -> list[str]:
    with open(ROOT_DIR / "requirements" / filename) as f:
        requirements = f.read().strip().split("\n")
    resolved_requirements = []
    for line in requirements:
        if line.startswith("-r "):
            resolved_requirements += _read_requirements(line.split()[1])
        elif (
            not line.startswith("--")
            and not line.startswith("#")
            and line.strip() != ""
        ):
            resolved_requirements.append(line)
    return resolved_requirements


def get_requirements() -> list[str]:
    """Get Python package dependencies from requirements/common.txt."""
    return _read_requirements("common.txt")


setup(
    # static metadata should rather go in pyproject.toml
    version=get_hostpatch_version(),
    install_requires=get_requirements(),
    extras_require={
        "test": [
            r for r in _read_requirements("test.txt") if r not in get_requirements()
        ],
    },
)
