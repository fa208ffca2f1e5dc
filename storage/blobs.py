"""
storage/blobs.py -- Local-directory blob storage for uploaded car images.

BlobStore.save() writes the bytes under upload_dir and returns a reference
string (the path relative to the working directory, e.g.
"uploads/1718000000000-3f9a1c2b-civic.jpg"). The reference is what car
records keep in their images list.

File naming: <epoch milliseconds>-<8 hex chars>-<original basename>. Only
the basename of the client-supplied filename is used, so "../../etc/passwd"
is stored as "...-passwd" inside upload_dir.

There is no delete: replacing a car's images leaves the old files in place.
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from pathlib import Path, PurePath

logger = logging.getLogger("carvault.storage")

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_name(filename: str | None) -> str:
    # PurePath handles "/" separators; browsers on Windows may send "\".
    name = PurePath((filename or "").replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).lstrip(".")
    return name or "upload"


class BlobStore:
    def __init__(self, upload_dir: str | Path) -> None:
        self.root = Path(upload_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def save(self, content: bytes, filename: str | None) -> str:
        """Write content to a new file and return its reference string."""
        stored_name = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}-{_safe_name(filename)}"
        path = self.root / stored_name
        path.write_bytes(content)
        logger.info("Stored upload %s (%d bytes)", stored_name, len(content))
        return path.as_posix()

