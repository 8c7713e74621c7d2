# SPDX-License-Identifier: Apache-2.0

import os
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    HOSTPATCH_DEV: bool = False
    HOSTPATCH_DIFF_CONTEXT: int = 200
    HOSTPATCH_HOST_VERSION: Optional[str] = None
    HOSTPATCH_CONFIGURE_LOGGING: int = 1
    HOSTPATCH_LOGGING_LEVEL: str = "INFO"
    HOSTPATCH_LOGGING_PREFIX: str = ""
    HOSTPATCH_LOGGING_CONFIG_PATH: Optional[str] = None

environment_variables: dict[str, Callable[[], Any]] = {
    # ================== Diagnostics ==================
    # If set, run in development mode: unpatched factories are used until
    # the runtime is initialized, and failed rewrites log a contextual diff.
    "HOSTPATCH_DEV": lambda: os.environ.get("HOSTPATCH_DEV", "0") == "1",
    # Characters of context kept on each side of a failed rewrite's match
    "HOSTPATCH_DIFF_CONTEXT": lambda: int(os.getenv("HOSTPATCH_DIFF_CONTEXT", "200")),
    # ================== Host ==================
    # Version of the host build being patched. Selects the source
    # normalization policy registered for that version range.
    "HOSTPATCH_HOST_VERSION": lambda: os.getenv("HOSTPATCH_HOST_VERSION", None),
    # ================== Logging ==================
    # If set to 0, hostpatch will not configure logging
    # If set to 1, hostpatch will configure logging using the default
    # configuration or the configuration file specified by
    # HOSTPATCH_LOGGING_CONFIG_PATH
    "HOSTPATCH_CONFIGURE_LOGGING": lambda: int(
        os.getenv("HOSTPATCH_CONFIGURE_LOGGING", "1")
    ),
    "HOSTPATCH_LOGGING_CONFIG_PATH": lambda: os.getenv("HOSTPATCH_LOGGING_CONFIG_PATH"),
    # this is used for configuring the default logging level
    "HOSTPATCH_LOGGING_LEVEL": lambda: os.getenv("HOSTPATCH_LOGGING_LEVEL", "INFO").upper(),
    # if set, HOSTPATCH_LOGGING_PREFIX will be prepended to all log messages
    "HOSTPATCH_LOGGING_PREFIX": lambda: os.getenv("HOSTPATCH_LOGGING_PREFIX", ""),
}

# end-env-vars-definition


def __getattr__(name: str):
    # lazy evaluation of environment variables
    if name in environment_variables:
        return environment_variables[name]()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return list(environment_variables.keys())


def is_set(name: str):
    """Check if an environment variable is explicitly set."""
    if name in environment_variables:
        return name in os.environ
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
