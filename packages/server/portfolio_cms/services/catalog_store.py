"""
Locale catalog persistence.

The three locale documents (pt/en/es) are read and written as one unit:
- `read_all` loads them concurrently and fails if any is missing or broken
- `write_all` replaces each file atomically (temp sibling + rename)
- `submit` runs a read-modify-write mutation behind a FIFO lock so only one
  mutation is in flight; a started mutation finishes even if its caller
  goes away.

Reads do not take the lock.
"""

from __future__ import annotations

import asyncio
import json
import os
import stat
import tempfile
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, List, Mapping, TypeVar

import structlog

from portfolio_cms.core.errors import CatalogReadError, CatalogWriteError
from portfolio_cms.core.sandbox import PathSandbox

log = structlog.get_logger()

T = TypeVar("T")

_UMASK = os.umask(0)
os.umask(_UMASK)

# category -> ordered list of project records
LocaleCatalog = Dict[str, List[Dict[str, Any]]]
# locale -> catalog
Catalogs = Dict[str, LocaleCatalog]


def dump_catalog(document: Mapping[str, Any]) -> str:
    return json.dumps(document, indent=4, ensure_ascii=False) + "\n"


def _target_mode(path) -> int:
    """Permission bits for a catalog rewrite: keep the current ones, else the umask default."""
    try:
        return stat.S_IMODE(os.stat(path).st_mode)
    except FileNotFoundError:
        return 0o666 & ~_UMASK



class CatalogStore:
    """Reads and writes the per-locale project catalogs."""

    def __init__(self, sandbox: PathSandbox, files_by_locale: Mapping[str, str]):
        self._sandbox = sandbox
        self._files = dict(files_by_locale)
        self._write_lock = asyncio.Lock()
        self._inflight: set[asyncio.Task] = set()

    @property
    def locales(self) -> list[str]:
        return list(self._files)

    @property
    def files(self) -> dict[str, str]:
        return dict(self._files)

    # --- Reads ---

    def _read_sync(self, locale: str) -> LocaleCatalog:
        relative = self._files[locale]
        path = self._sandbox.resolve(relative)
        try:
            with open(path, encoding="utf-8") as f:
                document = json.load(f, object_pairs_hook=OrderedDict)
        except FileNotFoundError:
            raise CatalogReadError(f'Catalog file for locale "{locale}" not found: {relative}')
        except (OSError, ValueError) as exc:
            raise CatalogReadError(f'Catalog file for locale "{locale}" is unreadable: {relative} ({exc})')

        if not isinstance(document, dict) or not all(isinstance(v, list) for v in document.values()):
            raise CatalogReadError(
                f'Catalog file for locale "{locale}" must map category names to lists: {relative}'
            )
        return document

    async def read_locale(self, locale: str) -> LocaleCatalog:
        return await asyncio.to_thread(self._read_sync, locale)

    async def read_all(self) -> Catalogs:
        """Load every locale document concurrently."""
        documents = await asyncio.gather(*(self.read_locale(locale) for locale in self._files))
        return dict(zip(self._files, documents))

    # --- Writes ---

    def _write_sync(self, locale: str, document: Mapping[str, Any]) -> None:
        relative = self._files[locale]
        path = self._sandbox.resolve(relative)
        body = dump_catalog(document)
        fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(body)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_path, _target_mode(path))
            os.replace(tmp_path, path)
        except OSError as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise CatalogWriteError(f'Could not write catalog for locale "{locale}": {relative} ({exc})')

    async def write_all(self, documents: Mapping[str, Mapping[str, Any]]) -> None:
        """Persist every locale document; each file is replaced atomically."""
        for locale in self._files:
            await asyncio.to_thread(self._write_sync, locale, documents[locale])
        log.info("catalog.written", locales=list(self._files))

    # --- Mutations ---

    async def _run_locked(self, operation: Callable[[], Awaitable[T]]) -> T:
        async with self._write_lock:
            return await operation()

    async def submit(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Queue a mutation behind every earlier one and wait for its result.

        The mutation runs in its own task: cancelling the caller does not
        interrupt a read-modify-write cycle that has been queued.
        """
        task = asyncio.ensure_future(self._run_locked(operation))
        self._inflight.add(task)
        task.add_done_callback(self._mutation_done)
        return await asyncio.shield(task)

    def _mutation_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.debug("catalog.mutation_failed", error=str(task.exception()))

    async def drain(self) -> None:
        """Wait for queued mutations (used at shutdown)."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
