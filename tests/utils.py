# SPDX-License-Identifier: Apache-2.0
"""A small stand-in for a host application that loads modules from chunks."""
import asyncio
import itertools
import linecache
import textwrap
import types

HOST_ORIGIN = "boot_host_bundle"

_CHUNK_COUNTER = itertools.count()


def make_factory(source: str, namespace: dict = None):
    """Compile a module factory the way the host's chunk loader does."""
    source = textwrap.dedent(source)
    filename = f"<host chunk {next(_CHUNK_COUNTER)}>"
    linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)

    if namespace is None:
        namespace = {}
    namespace.setdefault("__name__", "host_chunk")
    exec(compile(source, filename, "exec"), namespace)
    return [v for v in namespace.values() if isinstance(v, types.FunctionType)][-1]


class HostModule:

    def __init__(self, module_id):
        self.id = module_id
        self.exports = {}


class RuntimeBase:
    """Base class shared by every runtime living in the host process."""


class HostRuntime(RuntimeBase):

    def __init__(self):
        self.cache = {}

    def __call__(self, module_id):
        if module_id in self.cache:
            return self.cache[module_id].exports
        module = HostModule(module_id)
        self.cache[module_id] = module
        self.modules[module_id](module, module.exports, self)
        return module.exports

    async def _fetch(self, chunk_id):
        return chunk_id

    def load_chunk(self, *chunk_ids):
        return asyncio.gather(*(self._fetch(c) for c in chunk_ids))


class DevtoolsRuntime(HostRuntime):

    def load_chunk(self, *chunk_ids):
        return list(chunk_ids)


def on_chunks_loaded(result, chunk_ids, callback=None, priority=0):
    if callback is not None:
        return callback()
    return result


def _boot(runtime_cls, factories):
    runtime = runtime_cls()
    runtime.modules = factories
    runtime.on_chunks_loaded = on_chunks_loaded
    return runtime


def boot_host_bundle(runtime_cls, factories):
    return _boot(runtime_cls, factories)


def boot_extension(runtime_cls, factories):
    return _boot(runtime_cls, factories)


def start_host(runtime):
    """Waits for the main chunks, then requires the entry module."""
    return runtime.on_chunks_loaded(None, ["main"], lambda: runtime("100"))
