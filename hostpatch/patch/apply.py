# SPDX-License-Identifier: Apache-2.0
"""
Applies registered patch descriptors to a module factory.

The factory is serialized to source text, every matching descriptor's
replacements are applied in order, and the text is recompiled after each
successful rewrite so later rules work against a live factory. A failed or
no-op replacement rolls back that replacement, or the whole descriptor for
groups; a descriptor that contributed is removed unless it applies to all
modules.
"""
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any, Callable, Optional

import hostpatch.envs as envs
from hostpatch.logger import init_logger
from hostpatch.patch.canonicalize import canonicalize_replacement, find_matches
from hostpatch.patch.compiler import compile_factory, serialize_factory
from hostpatch.patch.differ import log_patch_diff
from hostpatch.patch.normalize import DEFAULT_POLICY
from hostpatch.patch.types import Factory, ModuleRecord, PatchDescriptor
from hostpatch.patch.wrapper import wrap_factory

if TYPE_CHECKING:
    from hostpatch.patch.hook_proxy import LazyModuleTable
    from hostpatch.patch.hook_registry import HookRegistry

logger = init_logger(__name__)


def _run_factory_listeners(factory: Factory, listeners: Iterable[Callable]) -> None:
    for listener in list(listeners):
        try:
            listener(factory)
        except Exception:
            logger.exception("Error in factory listener %r", listener)


def apply_patches(module_id: Any,
                  factory: Factory,
                  patches: list[PatchDescriptor],
                  *,
                  factory_listeners: Iterable[Callable] = (),
                  policy: Callable[[str], str] = DEFAULT_POLICY,
                  dev: Optional[bool] = None,
                  diff_context: Optional[int] = None) -> ModuleRecord:
    if dev is None:
        dev = envs.HOSTPATCH_DEV
    if diff_context is None:
        diff_context = envs.HOSTPATCH_DIFF_CONTEXT

    record = ModuleRecord(module_id, original=factory, current=factory)
    _run_factory_listeners(factory, factory_listeners)

    code_obj = getattr(factory, "__code__", None)
    # closure cells cannot be rebound by recompiling the source
    if code_obj is not None and code_obj.co_freevars:
        logger.debug("Module %s closes over %s, leaving it unpatched",
                     module_id, ", ".join(code_obj.co_freevars))
        return record

    try:
        code = policy(serialize_factory(factory))
    except (OSError, TypeError):
        logger.debug("No source available for module %s, leaving it unpatched", module_id)
        return record
    record.source = code
    namespace = getattr(factory, "__globals__", None)

    i = 0
    while i < len(patches):
        patch = patches[i]
        if patch.predicate is not None and not patch.predicate():
            i += 1
            continue
        if not find_matches(patch.find, code):
            i += 1
            continue

        previous_mod, previous_code = record.current, code
        previous_owners = list(record.patched_by)
        contributed = False

        for replacement in patch.replacement:
            if replacement.predicate is not None and not replacement.predicate():
                continue

            last_mod, last_code = record.current, code
            pattern = new_code = None
            try:
                pattern, repl, count = canonicalize_replacement(replacement)
                new_code = pattern.sub(repl, code, count=count)
                if new_code == code:
                    if not patch.no_warn:
                        logger.warning("Patch by %s had no effect (module id is %s): %s",
                                       patch.owner, module_id, replacement.match)
                        if dev:
                            logger.debug("Function source:\n%s", code)

                    if patch.group:
                        logger.warning(
                            "Undoing patch group %s by %s because replacement %s had no effect",
                            patch.find, patch.owner, replacement.match)
                        record.current, code = previous_mod, previous_code
                        contributed = False
                        break
                    continue

                if patch.owner not in record.patched_by:
                    record.patched_by.append(patch.owner)
                mod = compile_factory(new_code, module_id, record.patched_by, namespace)
                record.current, code = mod, new_code
                contributed = True
            except Exception:
                logger.exception("Patch by %s errored (module id is %s): %s",
                                 patch.owner, module_id, replacement.match)
                if dev and pattern is not None:
                    log_patch_diff(logger, last_code, new_code, pattern, diff_context)

                if patch.group:
                    logger.warning(
                        "Undoing patch group %s by %s because replacement %s errored",
                        patch.find, patch.owner, replacement.match)
                    record.current, code = previous_mod, previous_code
                    contributed = False
                    break

                record.current, code = last_mod, last_code

        if not contributed:
            record.patched_by = previous_owners

        if contributed and not patch.apply_to_all:
            del patches[i]
        else:
            i += 1

    record.source = code
    return record


def patch_factory(registry: "HookRegistry",
                  table: "LazyModuleTable",
                  module_id: Any,
                  factory: Factory) -> Factory:
    """Patches ``factory``, installs its wrapper under ``module_id`` and returns it."""
    record = apply_patches(
        module_id,
        factory,
        registry.patches,
        factory_listeners=registry.factory_listeners,
        policy=registry.policies.select(envs.HOSTPATCH_HOST_VERSION),
    )
    if record.patched_by:
        logger.debug("Module %s patched by %s", module_id, ", ".join(record.patched_by))

    wrapped = wrap_factory(record, registry, table)
    table[module_id] = wrapped
    return wrapped
