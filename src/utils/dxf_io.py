"""DXF I/O utilities.

Why: DXF sources reach the extractor as files on disk (uploads or the output of
an external DWG converter). Old DXF versions are not UTF-8, so the payload is
decoded with a best-effort encoding guessed from the header before being handed
to ``ezdxf.read`` as text.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Any, List, Optional, Union

import ezdxf
from ezdxf.tools import codepage as ezdxf_codepage

from src.core.errors import ParseCorruptedError, SourceNotFoundError

logger = logging.getLogger(__name__)

_HEADER_SCAN_BYTES = 128 * 1024


def _find_header_value(lines: List[str], key: str) -> Optional[str]:
    """Return the value line for a DXF header key (e.g. ``$ACADVER``)."""

    needle = key.strip()
    for idx, line in enumerate(lines):
        if line.strip() != needle:
            continue
        # DXF header layout:
        #   9
        #   $ACADVER
        #   1
        #   AC1032
        value_idx = idx + 2
        if value_idx >= len(lines):
            return None
        value = lines[value_idx].strip()
        return value or None
    return None


def guess_dxf_encoding(data: bytes) -> str:
    """Guess the DXF text encoding from the header (best effort).

    - For DXF R2007+ (AC1021 and later), DXF text is UTF-8.
    - For older versions, fall back to $DWGCODEPAGE when present.
    """

    if not data:
        return "utf-8"

    header_text = data[:_HEADER_SCAN_BYTES].decode("latin1", errors="ignore")
    lines = header_text.splitlines()

    acadver = _find_header_value(lines, "$ACADVER")
    if acadver and acadver >= "AC1021":
        return "utf-8"

    codepage = _find_header_value(lines, "$DWGCODEPAGE")
    if codepage:
        encoding = ezdxf_codepage.toencoding(codepage)
        if encoding:
            return encoding

    return "utf-8"


def decode_dxf_bytes(data: bytes) -> str:
    """Decode a DXF payload to text using the guessed encoding."""

    encoding = guess_dxf_encoding(data)
    try:
        return data.decode(encoding, errors="ignore")
    except LookupError:
        logger.debug("Unknown DXF encoding %s, falling back to utf-8", encoding)
        return data.decode("utf-8", errors="ignore")


def read_dxf_document_from_text(content: str) -> Any:
    """Parse DXF text into an ezdxf document.

    Raises:
        ParseCorruptedError: the content is empty or its section framing is broken
    """

    if not content or not content.strip():
        raise ParseCorruptedError("DXF content is empty")

    try:
        return ezdxf.read(io.StringIO(content))
    except Exception as e:  # noqa: BLE001 - ezdxf raises several structure errors
        raise ParseCorruptedError(f"Invalid DXF structure: {e}") from e


def read_dxf_text(path: Union[str, Path]) -> str:
    """Read a DXF file from disk and return its decoded text.

    Raises:
        SourceNotFoundError: the file is missing or cannot be read
    """

    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise SourceNotFoundError(f"Cannot read DXF file: {e.strerror or e}", path=str(path)) from e
    return decode_dxf_bytes(data)
