"""
On-disk cache of rendered SVG previews, plus age-based cleanup.

One file per document identifier under the cache root. Writes go through a
temp file and an atomic rename so readers never see a partial document.
"""

from __future__ import annotations

import hashlib
import html
import json
import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from src.core.cad.dxf.entities import Layer
from src.core.cad.svg.renderer import LAYERS_METADATA_ID
from src.utils.metrics import cache_evicted_total

logger = logging.getLogger(__name__)

_SAFE_ID_RE = re.compile(r"^[a-z0-9][a-z0-9_.-]{0,127}$")
_METADATA_RE = re.compile(
    r'<metadata id="' + re.escape(LAYERS_METADATA_ID) + r'"><!\[CDATA\[(.*?)\]\]></metadata>',
    re.DOTALL,
)
_DATA_LAYER_RE = re.compile(r'data-layer="([^"]*)"')

SECONDS_PER_DAY = 86400


def _write_bytes_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_fd: Optional[int] = None
    tmp_path: Optional[str] = None
    try:
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        with os.fdopen(tmp_fd, "wb") as f:
            f.write(data)
        Path(tmp_path).replace(path)
    finally:
        if tmp_path is not None:
            Path(tmp_path).unlink(missing_ok=True)


def cache_file_name(document_id: str) -> str:
    """
    Deterministic file name for a document identifier.

    Identifiers that are already safe file names are used as is; anything
    else (path separators, spaces, very long ids, uppercase letters) is
    hashed. Ids differing only in case must not share a file on
    case-insensitive filesystems.
    """
    document_id = str(document_id)
    if _SAFE_ID_RE.match(document_id) and ".." not in document_id:
        return f"{document_id}.svg"
    digest = hashlib.sha256(document_id.encode("utf-8")).hexdigest()
    return f"doc-{digest}.svg"


def layers_from_svg(svg: str) -> List[Dict[str, Any]]:
    """Recover the layer list from a rendered document."""
    match = _METADATA_RE.search(svg)
    if match:
        try:
            layers = json.loads(match.group(1))
            if isinstance(layers, list):
                return layers
        except ValueError:
            logger.warning("Ignoring unreadable layer metadata in cached SVG")

    names: Dict[str, None] = {}
    for raw in _DATA_LAYER_RE.findall(svg):
        names.setdefault(html.unescape(raw), None)
    return [Layer(name=name).to_dict() for name in names]


class SvgCache:
    """Rendered previews keyed by document identifier."""

    def __init__(self, cache_root: Union[str, Path]):
        self._root = Path(cache_root)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, document_id: str) -> Path:
        return self._root / cache_file_name(document_id)

    def get(self, document_id: str) -> Optional[str]:
        path = self.path_for(document_id)
        if not path.is_file():
            return None
        try:
            return path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(
                f"Unreadable cache entry {path}: {e}",
                extra={"document_id": document_id, "stage": "cache"},
            )
            return None

    def put(self, document_id: str, svg: str) -> Path:
        """Persist a rendered document; raises ``OSError`` when the write fails."""
        path = self.path_for(document_id)
        _write_bytes_atomic(path, svg.encode("utf-8"))
        return path

    def cleanup(self, max_age_days: float = 7) -> int:
        """
        Remove entries last modified more than ``max_age_days`` ago.

        Args:
            max_age_days: Age threshold in days

        Returns:
            Number of files removed
        """
        if max_age_days < 0:
            raise ValueError("max_age_days must be >= 0")
        if not self._root.is_dir():
            return 0

        cutoff = time.time() - max_age_days * SECONDS_PER_DAY
        count = 0
        for file_path in self._root.glob("*.svg"):
            try:
                if file_path.stat().st_mtime >= cutoff:
                    continue
                file_path.unlink()
                count += 1
            except FileNotFoundError:
                # Removed concurrently
                continue
            except OSError as e:
                logger.warning(f"Failed to delete cache file {file_path}: {e}")

        if count:
            cache_evicted_total.inc(count)
        logger.info(
            f"Cleared {count} cached previews",
            extra={"stage": "cache", "count": count},
        )
        return count

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        files = list(self._root.glob("*.svg")) if self._root.is_dir() else []
        total_size = 0
        for f in files:
            try:
                total_size += f.stat().st_size
            except FileNotFoundError:
                continue

        return {
            "directory": str(self._root),
            "file_count": len(files),
            "total_size_mb": round(total_size / (1024 * 1024), 2),
        }
