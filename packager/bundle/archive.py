"""In-memory ZIP archive construction.

``ArchiveBuilder`` is a generic, single-use sink: entries are written in the
order they are added and the finished archive is returned as bytes.  Nothing
touches the filesystem, so abandoning a builder needs no cleanup.
"""

from __future__ import annotations

import io
import stat
import zipfile
from datetime import datetime, timezone
from typing import Optional

from .errors import BuilderClosed, DuplicatePath

# Earliest timestamp the ZIP format can represent.
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)

_FILE_MODE = stat.S_IFREG | 0o644
_EXEC_MODE = stat.S_IFREG | 0o755
_EXECUTABLE_SUFFIXES = (".sh",)


class ArchiveBuilder:
    """Incrementally builds a deflate-compressed ZIP archive.

    Entry timestamps come from *timestamp* rather than the wall clock, so the
    same sequence of ``add`` calls always yields the same bytes.
    """

    def __init__(
        self,
        compression_level: int = 6,
        timestamp: Optional[datetime] = None,
    ) -> None:
        self._buffer = io.BytesIO()
        self._zip = zipfile.ZipFile(
            self._buffer,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=compression_level,
        )
        self._compression_level = compression_level
        self._date_time = _zip_date_time(timestamp)
        self._paths: list[str] = []
        self._seen: set[str] = set()
        self._closed = False

    # -- Contract ----------------------------------------------------------

    def add(self, path: str, content: bytes | str) -> None:
        """Append one entry.

        Raises:
            BuilderClosed: If ``finish()`` was already called.
            DuplicatePath: If *path* was added earlier in this build.
        """
        if self._closed:
            raise BuilderClosed()
        if path in self._seen:
            raise DuplicatePath(path)

        data = content.encode("utf-8") if isinstance(content, str) else content
        info = zipfile.ZipInfo(path, date_time=self._date_time)
        info.compress_type = zipfile.ZIP_DEFLATED
        mode = _EXEC_MODE if path.endswith(_EXECUTABLE_SUFFIXES) else _FILE_MODE
        info.external_attr = mode << 16
        self._zip.writestr(info, data, compresslevel=self._compression_level)

        self._seen.add(path)
        self._paths.append(path)

    def finish(self) -> bytes:
        """Close the archive and return its bytes.

        Raises:
            BuilderClosed: If called more than once.
        """
        if self._closed:
            raise BuilderClosed()
        self._closed = True
        self._zip.close()
        return self._buffer.getvalue()

    # -- Introspection -----------------------------------------------------

    @property
    def paths(self) -> list[str]:
        """Entry paths in insertion order."""
        return list(self._paths)

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._paths)


def _zip_date_time(timestamp: Optional[datetime]) -> tuple[int, int, int, int, int, int]:
    if timestamp is None:
        return _ZIP_EPOCH
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    value = (
        timestamp.year,
        timestamp.month,
        timestamp.day,
        timestamp.hour,
        timestamp.minute,
        timestamp.second,
    )
    return max(value, _ZIP_EPOCH)
