# SPDX-License-Identifier: Apache-2.0
import builtins
import enum
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any


class ExportKind(enum.Enum):
    GLOBAL = "global"
    NAMED = "named"
    DEFAULT_WRAPPED = "default_wrapped"


@dataclass(frozen=True)
class NormalizedExports:
    kind: ExportKind
    exports: Any
    default: Any = None

    def candidates(self) -> Iterator[Any]:
        """Values export filters are tested against, in order."""
        if self.kind is ExportKind.GLOBAL:
            return
        yield self.exports
        if self.kind is ExportKind.DEFAULT_WRAPPED:
            yield self.default


def _default_export(exports: Any) -> Any:
    if isinstance(exports, Mapping):
        return exports.get("default")
    return getattr(exports, "default", None)


def normalize_exports(exports: Any) -> NormalizedExports:
    if exports is builtins or exports is vars(builtins):
        return NormalizedExports(ExportKind.GLOBAL, exports)

    default = _default_export(exports)
    if default:
        return NormalizedExports(ExportKind.DEFAULT_WRAPPED, exports, default)
    return NormalizedExports(ExportKind.NAMED, exports)
