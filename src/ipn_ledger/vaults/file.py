"""FileVault: VaultBackend implementation on the local filesystem.

The ledger is one JSON document. Writes go to a temp file in the same
directory, are flushed and fsync'd, then renamed over the live file with
``os.replace`` and the directory entry is fsync'd. A reader (or a restart)
sees either the old document or the new one, never a torn write.

Blocking file I/O runs in a worker thread so the event loop keeps serving
requests during a commit.
"""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


class FileVault:
    """Vault persistence in a single JSON file.

    Implements the ``VaultBackend`` protocol:

    - ``store_ledger(ledger_json) -> None``
    - ``fetch_ledger() -> str | None``
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def store_ledger(self, ledger_json: str) -> None:
        await asyncio.to_thread(self._write_atomic, ledger_json)

    async def fetch_ledger(self) -> str | None:
        return await asyncio.to_thread(self._read)

    # -- blocking helpers -----------------------------------------------------

    def _read(self) -> str | None:
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No ledger file at %s; starting empty.", self._path)
            return None

    def _write_atomic(self, ledger_json: str) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.", suffix=".tmp", dir=directory,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(ledger_json)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise
        self._fsync_dir(directory)

    @staticmethod
    def _fsync_dir(directory: Path) -> None:
        # Directory fds are not available on Windows.
        if os.name != "posix":
            return
        dir_fd = os.open(directory, os.O_RDONLY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
