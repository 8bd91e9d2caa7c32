"""In-memory blob storage for uploaded and baked images."""

from __future__ import annotations

import os
import re
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List

from ..errors import AssetNotFoundError

ALLOWED_EXT = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp"}
FONT_EXT = {".ttf", ".otf", ".woff", ".woff2"}
MAX_UPLOAD_BYTES = 50 * 1024 * 1024


@dataclass(frozen=True)
class Asset:
    ref: str
    kind: str
    filename: str
    data: bytes
    created_at: datetime

    @property
    def size(self) -> int:
        return len(self.data)


def safe_slug(name: str) -> str:
    base = os.path.basename(name)
    base = re.sub(r"\s+", "_", base)
    base = re.sub(r"[^A-Za-z0-9._-]", "", base)
    return base or "upload"


def check_upload(filename: str, data: bytes, allowed_ext: Iterable[str]) -> str:
    """Validate an uploaded file name and payload size, returning its slug."""

    ext = os.path.splitext(filename)[1].lower()
    if ext not in set(allowed_ext):
        raise ValueError(f"Unsupported file type: {ext or filename}")
    if not data:
        raise ValueError("Uploaded file is empty")
    if len(data) > MAX_UPLOAD_BYTES:
        raise ValueError("File too large")
    return safe_slug(filename)


class AssetStore:
    """Session-scoped table of binary assets addressed by opaque references."""

    def __init__(self) -> None:
        self._assets: Dict[str, Asset] = {}
        self._lock = threading.Lock()

    def put(self, data: bytes, *, kind: str, filename: str = "") -> str:
        ref = f"{kind}:{uuid.uuid4().hex}"
        asset = Asset(
            ref=ref,
            kind=kind,
            filename=safe_slug(filename or kind),
            data=bytes(data),
            created_at=datetime.now(),
        )
        with self._lock:
            self._assets[ref] = asset
        return ref

    def get(self, ref: str) -> bytes:
        return self.describe(ref).data

    def describe(self, ref: str) -> Asset:
        with self._lock:
            try:
                return self._assets[ref]
            except KeyError as exc:
                raise AssetNotFoundError(f"Unknown asset: {ref}") from exc

    def discard(self, ref: str) -> None:
        with self._lock:
            self._assets.pop(ref, None)

    def refs(self, kind: str | None = None) -> List[str]:
        with self._lock:
            return [ref for ref, asset in self._assets.items() if kind is None or asset.kind == kind]

    def __contains__(self, ref: object) -> bool:
        with self._lock:
            return ref in self._assets

    def __len__(self) -> int:
        with self._lock:
            return len(self._assets)


__all__ = [
    "ALLOWED_EXT",
    "FONT_EXT",
    "MAX_UPLOAD_BYTES",
    "Asset",
    "AssetStore",
    "check_upload",
    "safe_slug",
]
