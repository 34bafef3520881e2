"""
DWG to DXF converter using external tools.

ODA File Converter is the primary tool; LibreDWG's ``dwg2dxf`` is tried when
ODA is missing or fails. Both are optional: absence is only reported when a
conversion is requested, as a status on the result rather than an exception.
"""

from __future__ import annotations

import glob
import logging
import os
import platform
import shutil
import subprocess
import tempfile
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from src.utils.metrics import external_tool_runs_total

logger = logging.getLogger(__name__)


class DXFVersion(str, Enum):
    """Supported DXF output versions."""
    R12 = "ACAD12"
    R2000 = "ACAD2000"
    R2004 = "ACAD2004"
    R2007 = "ACAD2007"
    R2010 = "ACAD2010"
    R2013 = "ACAD2013"
    R2018 = "ACAD2018"


class ConversionStatus(str, Enum):
    """Conversion status."""
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"
    CONVERTER_NOT_FOUND = "converter_not_found"


class ConverterTool(str, Enum):
    ODA = "oda"
    DWG2DXF = "dwg2dxf"


@dataclass
class ConverterConfig:
    """Configuration for DWG converter."""
    oda_path: Optional[str] = None  # Path to ODA File Converter
    dwg2dxf_path: Optional[str] = None  # Path to dwg2dxf (else looked up on PATH)
    output_version: DXFVersion = DXFVersion.R2010
    output_format: str = "DXF"
    audit: bool = True  # Audit and fix errors
    timeout: int = 60  # Per-tool timeout in seconds
    staging_root: Optional[str] = None  # Parent of per-job staging dirs


@dataclass
class ToolAttempt:
    """One external tool invocation."""
    tool: ConverterTool
    status: ConversionStatus
    error_message: Optional[str] = None
    duration: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tool": self.tool.value,
            "status": self.status.value,
            "error_message": self.error_message,
            "duration": round(self.duration, 3),
        }


@dataclass
class DxfConversionResult:
    """Result of a DWG conversion."""
    input_path: str
    output_path: Optional[str] = None
    status: ConversionStatus = ConversionStatus.SUCCESS
    tool: Optional[ConverterTool] = None
    error_message: Optional[str] = None
    conversion_time: float = 0.0
    attempts: List[ToolAttempt] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == ConversionStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "input_path": self.input_path,
            "output_path": self.output_path,
            "status": self.status.value,
            "tool": self.tool.value if self.tool else None,
            "error_message": self.error_message,
            "conversion_time": round(self.conversion_time, 3),
            "attempts": [a.to_dict() for a in self.attempts],
        }


class DWGConverter:
    """
    DWG to DXF converter.

    Each conversion stages its input in job-specific directories under the
    staging root so concurrent jobs never share files. Staging directories
    are removed whether the tool succeeds, fails or times out.
    """

    # Default ODA paths by platform
    _DEFAULT_ODA_PATHS = {
        "Darwin": [
            "/Applications/ODAFileConverter.app/Contents/MacOS/ODAFileConverter",
            "~/Applications/ODAFileConverter.app/Contents/MacOS/ODAFileConverter",
        ],
        "Windows": [
            "C:\\Program Files\\ODA\\ODAFileConverter\\ODAFileConverter.exe",
            "C:\\Program Files (x86)\\ODA\\ODAFileConverter\\ODAFileConverter.exe",
        ],
        "Linux": [
            "/usr/bin/ODAFileConverter",
            "/opt/ODAFileConverter/ODAFileConverter",
            "~/ODAFileConverter/ODAFileConverter",
        ],
    }

    # Versioned installs, e.g. "ODA/ODAFileConverter 25.12.0/ODAFileConverter.exe"
    _VERSIONED_ODA_PATTERNS = {
        "Windows": [
            os.path.join(os.environ.get("ProgramFiles", "C:\\Program Files"),
                         "ODA", "ODAFileConverter*", "ODAFileConverter.exe"),
        ],
        "Linux": [
            "/opt/ODAFileConverter*/ODAFileConverter",
            "/usr/lib/ODAFileConverter*/ODAFileConverter",
        ],
    }

    def __init__(self, config: Optional[ConverterConfig] = None):
        """
        Initialize DWG converter.

        Args:
            config: Converter configuration
        """
        self._config = config or ConverterConfig()
        self._oda_path: Optional[str] = None
        self._dwg2dxf_path: Optional[str] = None

        self._find_oda_converter()
        self._find_dwg2dxf()

    def _find_oda_converter(self) -> None:
        """Find ODA File Converter installation."""
        # Check config path first
        if self._config.oda_path:
            path = Path(self._config.oda_path).expanduser()
            if path.exists():
                self._oda_path = str(path)
                logger.info(f"Using ODA converter at: {self._oda_path}")
                return

        # Check environment variable
        env_path = os.environ.get("ODA_FILE_CONVERTER")
        if env_path:
            path = Path(env_path).expanduser()
            if path.exists():
                self._oda_path = str(path)
                logger.info(f"Using ODA converter from env: {self._oda_path}")
                return

        system = platform.system()
        for path_str in self._DEFAULT_ODA_PATHS.get(system, []):
            path = Path(path_str).expanduser()
            if path.exists():
                self._oda_path = str(path)
                logger.info(f"Found ODA converter at: {self._oda_path}")
                return

        for pattern in self._VERSIONED_ODA_PATTERNS.get(system, []):
            # Newest version sorts last
            matches = sorted(glob.glob(pattern), reverse=True)
            if matches:
                self._oda_path = matches[0]
                logger.info(f"Found versioned ODA converter at: {self._oda_path}")
                return

        logger.info("ODA File Converter not found")

    def _find_dwg2dxf(self) -> None:
        if self._config.dwg2dxf_path:
            path = Path(self._config.dwg2dxf_path).expanduser()
            if path.exists():
                self._dwg2dxf_path = str(path)
                return
        self._dwg2dxf_path = shutil.which("dwg2dxf")
        if self._dwg2dxf_path:
            logger.info(f"Found dwg2dxf at: {self._dwg2dxf_path}")

    @property
    def is_available(self) -> bool:
        """Check if any converter is available."""
        return self._oda_path is not None or self._dwg2dxf_path is not None

    @property
    def oda_path(self) -> Optional[str]:
        return self._oda_path

    @property
    def dwg2dxf_path(self) -> Optional[str]:
        return self._dwg2dxf_path

    @property
    def staging_root(self) -> Path:
        return Path(self._config.staging_root or tempfile.gettempdir())

    def convert(
        self,
        input_path: Union[str, Path],
        output_dir: Union[str, Path],
    ) -> DxfConversionResult:
        """
        Convert a DWG file to DXF, trying ODA first and dwg2dxf second.

        Args:
            input_path: Path to input DWG file
            output_dir: Directory receiving ``<stem>.dxf``

        Returns:
            DxfConversionResult; ``status`` reports why no DXF was produced
        """
        input_path = Path(input_path)
        output_dir = Path(output_dir)
        start_time = time.time()

        if not input_path.exists():
            return DxfConversionResult(
                input_path=str(input_path),
                status=ConversionStatus.FAILED,
                error_message=f"Input file not found: {input_path}",
            )

        if input_path.suffix.lower() != ".dwg":
            return DxfConversionResult(
                input_path=str(input_path),
                status=ConversionStatus.SKIPPED,
                error_message="Not a DWG file",
            )

        if not self.is_available:
            self._record(ToolAttempt(ConverterTool.ODA, ConversionStatus.CONVERTER_NOT_FOUND))
            return DxfConversionResult(
                input_path=str(input_path),
                status=ConversionStatus.CONVERTER_NOT_FOUND,
                error_message="No DWG converter available (ODA File Converter, dwg2dxf)",
            )

        output_dir.mkdir(parents=True, exist_ok=True)
        output_path = output_dir / f"{input_path.stem}.dxf"
        attempts: List[ToolAttempt] = []

        for tool, runner in (
            (ConverterTool.ODA, self._run_oda_conversion if self._oda_path else None),
            (ConverterTool.DWG2DXF, self._run_dwg2dxf if self._dwg2dxf_path else None),
        ):
            if runner is None:
                continue
            attempt = runner(input_path, output_path)
            attempts.append(attempt)
            self._record(attempt)
            if attempt.status == ConversionStatus.SUCCESS:
                return DxfConversionResult(
                    input_path=str(input_path),
                    output_path=str(output_path),
                    status=ConversionStatus.SUCCESS,
                    tool=tool,
                    conversion_time=time.time() - start_time,
                    attempts=attempts,
                )

        last = attempts[-1]
        return DxfConversionResult(
            input_path=str(input_path),
            status=last.status,
            tool=last.tool,
            error_message=last.error_message,
            conversion_time=time.time() - start_time,
            attempts=attempts,
        )

    def _run_oda_conversion(self, input_path: Path, output_path: Path) -> ToolAttempt:
        """Run ODA File Converter; it works on directories, so stage per job."""
        job_id = uuid.uuid4().hex[:12]
        temp_input = self.staging_root / f"oda_in_{job_id}"
        temp_output = self.staging_root / f"oda_out_{job_id}"
        started = time.time()

        try:
            temp_input.mkdir(parents=True)
            temp_output.mkdir(parents=True)
            shutil.copy2(input_path, temp_input / input_path.name)

            cmd = [
                self._oda_path,
                str(temp_input),
                str(temp_output),
                DXFVersion(self._config.output_version).value,
                self._config.output_format,
                "0",  # Recursive: 0=no, 1=yes
                "1" if self._config.audit else "0",
            ]
            # ODA shipped as an app bundle resolves its resources from cwd
            status, message = self._run(
                ConverterTool.ODA, cmd, cwd=str(Path(self._oda_path).parent)
            )

            produced = temp_output / f"{input_path.stem}.dxf"
            if not produced.exists():
                candidates = sorted(temp_output.rglob("*.dxf"))
                produced = candidates[0] if candidates else produced

            if produced.exists():
                shutil.move(str(produced), str(output_path))
                return ToolAttempt(ConverterTool.ODA, ConversionStatus.SUCCESS,
                                   duration=time.time() - started)
            if status == ConversionStatus.SUCCESS:
                status, message = ConversionStatus.FAILED, "ODA produced no DXF output"
            return ToolAttempt(ConverterTool.ODA, status, message, time.time() - started)

        except OSError as e:
            logger.error(f"ODA staging error: {e}", extra={"tool": "oda"})
            return ToolAttempt(ConverterTool.ODA, ConversionStatus.FAILED, str(e),
                               time.time() - started)
        finally:
            shutil.rmtree(temp_input, ignore_errors=True)
            shutil.rmtree(temp_output, ignore_errors=True)

    def _run_dwg2dxf(self, input_path: Path, output_path: Path) -> ToolAttempt:
        started = time.time()
        # dwg2dxf refuses to overwrite without -y
        cmd = [self._dwg2dxf_path, "-y", "-o", str(output_path), str(input_path)]
        status, message = self._run(ConverterTool.DWG2DXF, cmd)

        # dwg2dxf exits non-zero on recoverable warnings; the output decides
        if output_path.exists() and output_path.stat().st_size > 0:
            return ToolAttempt(ConverterTool.DWG2DXF, ConversionStatus.SUCCESS,
                               duration=time.time() - started)
        if status == ConversionStatus.SUCCESS:
            status, message = ConversionStatus.FAILED, "dwg2dxf produced no DXF output"
        return ToolAttempt(ConverterTool.DWG2DXF, status, message, time.time() - started)

    def _run(self, tool: ConverterTool, cmd: List[str], cwd: Optional[str] = None):
        """Run one tool bounded by the configured timeout; never raises."""
        logger.debug(f"Running {tool.value}: {' '.join(cmd)}", extra={"tool": tool.value})
        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=self._config.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.error(
                f"{tool.value} conversion timeout after {self._config.timeout}s",
                extra={"tool": tool.value, "status": ConversionStatus.TIMEOUT.value},
            )
            return ConversionStatus.TIMEOUT, f"Timed out after {self._config.timeout}s"
        except OSError as e:
            logger.error(f"{tool.value} could not be started: {e}", extra={"tool": tool.value})
            return ConversionStatus.FAILED, str(e)

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()[-500:]
            logger.warning(
                f"{tool.value} exited with code {result.returncode}: {stderr}",
                extra={"tool": tool.value, "status": ConversionStatus.FAILED.value},
            )
            return ConversionStatus.FAILED, f"rc={result.returncode} stderr={stderr!r}"
        return ConversionStatus.SUCCESS, None

    def _record(self, attempt: ToolAttempt) -> None:
        external_tool_runs_total.labels(
            tool=attempt.tool.value, status=attempt.status.value
        ).inc()
        logger.info(
            f"{attempt.tool.value} conversion {attempt.status.value}",
            extra={
                "tool": attempt.tool.value,
                "status": attempt.status.value,
                "latency_ms": round(attempt.duration * 1000, 1),
            },
        )

    def get_info(self) -> Dict[str, Any]:
        """Get converter information."""
        return {
            "is_available": self.is_available,
            "oda_path": self._oda_path,
            "dwg2dxf_path": self._dwg2dxf_path,
            "output_version": DXFVersion(self._config.output_version).value,
            "output_format": self._config.output_format,
            "timeout": self._config.timeout,
        }
