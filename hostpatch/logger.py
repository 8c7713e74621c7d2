# SPDX-License-Identifier: Apache-2.0
"""Logging configuration for hostpatch."""
import json
import logging
from functools import lru_cache
from logging import Logger
from logging.config import dictConfig
from os import path
from types import MethodType
from typing import Any, cast

import hostpatch.envs as envs

HOSTPATCH_CONFIGURE_LOGGING = envs.HOSTPATCH_CONFIGURE_LOGGING
HOSTPATCH_LOGGING_CONFIG_PATH = envs.HOSTPATCH_LOGGING_CONFIG_PATH
HOSTPATCH_LOGGING_LEVEL = envs.HOSTPATCH_LOGGING_LEVEL
HOSTPATCH_LOGGING_PREFIX = envs.HOSTPATCH_LOGGING_PREFIX

_FORMAT = (f"{HOSTPATCH_LOGGING_PREFIX}%(levelname)s %(asctime)s "
           "[%(filename)s:%(lineno)d] %(message)s")
_DATE_FORMAT = "%m-%d %H:%M:%S"

DEFAULT_LOGGING_CONFIG = {
    "formatters": {
        "hostpatch": {
            "class": "hostpatch.logging_utils.NewLineFormatter",
            "datefmt": _DATE_FORMAT,
            "format": _FORMAT,
        },
    },
    "handlers": {
        "hostpatch": {
            "class": "logging.StreamHandler",
            "formatter": "hostpatch",
            "level": HOSTPATCH_LOGGING_LEVEL,
            "stream": "ext://sys.stdout",
        },
    },
    "loggers": {
        "hostpatch": {
            "handlers": ["hostpatch"],
            "level": "DEBUG",
            "propagate": False,
        },
    },
    "version": 1,
    "disable_existing_loggers": False
}


@lru_cache
def _print_info_once(logger: Logger, msg: str, *args: Any) -> None:
    # Set the stacklevel to 2 to print the original caller's line info
    logger.info(msg, *args, stacklevel=2)


@lru_cache
def _print_warning_once(logger: Logger, msg: str, *args: Any) -> None:
    # Set the stacklevel to 2 to print the original caller's line info
    logger.warning(msg, *args, stacklevel=2)


class _HostPatchLogger(Logger):
    """
    Note:
        This class is just to provide type information.
        The methods are patched directly onto each :class:`logging.Logger`
        instance, so host applications that install their own logger class
        keep it.
    """

    def info_once(self, msg: str, *args: Any) -> None:
        """
        As :meth:`info`, but subsequent calls with the same message
        are silently dropped.
        """
        _print_info_once(self, msg, *args)

    def warning_once(self, msg: str, *args: Any) -> None:
        """
        As :meth:`warning`, but subsequent calls with the same message
        are silently dropped.
        """
        _print_warning_once(self, msg, *args)


def _configure_hostpatch_root_logger() -> None:
    logging_config = dict[str, Any]()

    if not HOSTPATCH_CONFIGURE_LOGGING and HOSTPATCH_LOGGING_CONFIG_PATH:
        raise RuntimeError(
            "HOSTPATCH_CONFIGURE_LOGGING evaluated to false, but "
            "HOSTPATCH_LOGGING_CONFIG_PATH was given. HOSTPATCH_LOGGING_CONFIG_PATH "
            "implies HOSTPATCH_CONFIGURE_LOGGING. Please enable "
            "HOSTPATCH_CONFIGURE_LOGGING or unset HOSTPATCH_LOGGING_CONFIG_PATH.")

    if HOSTPATCH_CONFIGURE_LOGGING:
        logging_config = DEFAULT_LOGGING_CONFIG

    if HOSTPATCH_LOGGING_CONFIG_PATH:
        if not path.exists(HOSTPATCH_LOGGING_CONFIG_PATH):
            raise RuntimeError(
                "Could not load logging config. File does not exist: %s",
                HOSTPATCH_LOGGING_CONFIG_PATH)
        with open(HOSTPATCH_LOGGING_CONFIG_PATH, encoding="utf-8") as file:
            custom_config = json.loads(file.read())

        if not isinstance(custom_config, dict):
            raise ValueError("Invalid logging config. Expected Dict, got %s.",
                             type(custom_config).__name__)
        logging_config = custom_config

    if logging_config:
        dictConfig(logging_config)


def init_logger(name: str) -> _HostPatchLogger:
    """The main purpose of this function is to ensure that loggers are
    retrieved in such a way that we can be sure the root hostpatch logger has
    already been configured."""

    logger = logging.getLogger(name)

    methods_to_patch = {
        "info_once": _print_info_once,
        "warning_once": _print_warning_once,
    }

    for method_name, method in methods_to_patch.items():
        setattr(logger, method_name, MethodType(method, logger))

    return cast(_HostPatchLogger, logger)


# The root logger is initialized when the module is imported.
# This is thread-safe as the module is only imported once,
# guaranteed by the Python GIL.
_configure_hostpatch_root_logger()

logger = init_logger(__name__)
