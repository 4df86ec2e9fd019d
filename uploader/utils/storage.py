import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from starlette.concurrency import run_in_threadpool

log = logging.getLogger("storage")

MAX_NAME_BYTES = 255
TMP_PREFIX = ".upload-"
TMP_SUFFIX = ".part"

_UNSAFE = re.compile(r"[/\\\x00-\x1f\x7f]")


def sanitize_original_name(name: str, reserved: int = 0) -> str:
    """
    Replace path separators and control characters with '_' and trim the
    name so that `reserved` prefix bytes plus the name fit in one path
    component. The extension survives trimming.
    """
    safe = _UNSAFE.sub("_", name or "")
    budget = MAX_NAME_BYTES - reserved
    if len(safe.encode("utf-8")) <= budget:
        return safe
    stem, ext = os.path.splitext(safe)
    ext = ext[:20]
    while stem and len((stem + ext).encode("utf-8")) > budget:
        stem = stem[:-1]
    return stem + ext


class PartialUpload:
    """Hidden temp file receiving one upload's bytes as they arrive."""

    def __init__(self, directory: Path):
        self._fh = tempfile.NamedTemporaryFile(
            dir=directory, prefix=TMP_PREFIX, suffix=TMP_SUFFIX, delete=False
        )
        self.path = Path(self._fh.name)
        self.size = 0

    async def write(self, data: bytes) -> None:
        await run_in_threadpool(self._fh.write, data)
        self.size += len(data)

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()


class StorageSink:
    """Flat directory of uploaded files, written via temp file + rename."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def prepare(self) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        return self.directory

    def open_partial(self) -> PartialUpload:
        self.prepare()
        return PartialUpload(self.directory)

    def commit(self, partial: PartialUpload, stored_name: str) -> Path:
        partial.close()
        root = self.directory.resolve()
        dest = (root / stored_name).resolve()
        if dest.parent != root:
            raise OSError(f"refusing to store outside {root}: {stored_name!r}")
        os.replace(partial.path, dest)
        return dest

    def discard(self, partial: Optional[PartialUpload]) -> None:
        if partial is None:
            return
        partial.close()
        try:
            os.remove(partial.path)
        except FileNotFoundError:
            pass
        except OSError:
            log.exception("Could not remove partial upload %s", partial.path)
