"""
Mesh volume service: the in-memory boundary of the core.

Takes a complete model buffer with optional hints and returns the triangle
count and enclosed volume, or raises a typed :class:`MeshVolumeError`.
Fetching the buffer, authenticating the caller and serialising the response
are the caller's job; nothing here touches the network or the filesystem.

Stages:
    1. Resource limits on the raw buffer
    2. Format resolution (content type, source name, magic bytes)
    3. Structural validation and decode
    4. Compensated volume accumulation
    5. Unit scaling
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

from mesh_volume.config import ServiceConfig
from mesh_volume.errors import (
    BufferLimitError, InternalError, InvalidInputError, InvalidParameterError,
    InvalidUnitError, MeshVolumeError, UnsupportedFormatError, handle_error
)
from mesh_volume.formats import MeshFormat, detect_format
from mesh_volume.geometry import Mesh
from mesh_volume.logging_config import get_logger, PerformanceTimer
from mesh_volume.volume import UNIT_DIVISORS, VolumeAccumulator, scale_volume

logger = get_logger(__name__)


@dataclass
class VolumeResult:
    """Outcome of a successful volume calculation."""
    triangle_count: int
    volume: float
    unit: str
    format: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_response(self) -> Dict[str, Any]:
        """Payload in the shape returned to API clients."""
        return {
            "status": "success",
            "triangles": self.triangle_count,
            "volume": self.volume,
        }


class MeshVolumeService:
    """
    Orchestrates detection, decoding and volume accumulation for one buffer
    at a time. Instances hold only configuration and may be shared between
    threads.
    """

    def __init__(self, config: Optional[ServiceConfig] = None):
        """
        Initialize the service.

        Args:
            config: Service configuration. If None, uses default configuration.

        Raises:
            InvalidParameterError: If the configuration is invalid
        """
        self.config = config if config is not None else ServiceConfig()

        errors = self.config.validate()
        if errors:
            raise InvalidParameterError("Invalid configuration:\n" + "\n".join(errors))

        self.accumulator = VolumeAccumulator(self.config.volume)

    def detect(self, data: bytes, content_type: Optional[str] = None,
               source_name: Optional[str] = None) -> MeshFormat:
        """
        Resolve the format of ``data`` or fail.

        Raises:
            UnsupportedFormatError: If no format matches
        """
        fmt = detect_format(data, content_type, source_name, self.config.formats)
        if fmt is None:
            raise UnsupportedFormatError("unsupported model format")
        return fmt

    def decode(self, data: bytes, content_type: Optional[str] = None,
               source_name: Optional[str] = None) -> Mesh:
        """Check limits, resolve the format and decode ``data`` into a Mesh."""
        self._check_buffer(data)
        fmt = self.detect(data, content_type, source_name)
        return fmt.decode(data, self.config.formats)

    def calculate(self, data: bytes, content_type: Optional[str] = None,
                  source_name: Optional[str] = None,
                  unit: Optional[str] = None) -> VolumeResult:
        """
        Calculate the enclosed volume of the model in ``data``.

        Args:
            data: Complete model file contents
            content_type: Declared content type, if known
            source_name: File name or URL of the model, if known
            unit: Output unit, "mm", "cm" or "m"; source coordinates are
                  taken as millimetres. Defaults to the configured unit.

        Returns:
            VolumeResult with the triangle count and scaled volume

        Raises:
            InvalidInputError: For unsupported, malformed or truncated input
            ResourceLimitError: For oversized buffers or triangle counts
            InternalError: For unexpected failures
        """
        unit = unit if unit is not None else self.config.limits.default_unit

        try:
            if unit not in UNIT_DIVISORS:
                raise InvalidUnitError(
                    "unit must be one of 'mm', 'cm', or 'm'",
                    details={"got": unit}
                )

            self._check_buffer(data)
            fmt = self.detect(data, content_type, source_name)

            with PerformanceTimer(logger, "Volume request", size=len(data)):
                mesh = fmt.decode(data, self.config.formats)
                volume_mm3 = self.accumulator.volume(mesh)

        except InternalError as e:
            handle_error(e, logger)
        except MeshVolumeError as e:
            logger.info(f"Rejected model: {e}", error_type=type(e).__name__)
            raise

        result = VolumeResult(
            triangle_count=len(mesh),
            volume=scale_volume(volume_mm3, unit),
            unit=unit,
            format=fmt.as_str()
        )

        logger.info(
            "Volume calculated",
            format=result.format,
            triangles=result.triangle_count,
            volume=f"{result.volume:.6f}",
            unit=unit
        )

        return result

    def _check_buffer(self, data: bytes) -> None:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise InvalidInputError(
                "model data must be bytes",
                details={"got": type(data).__name__}
            )

        max_bytes = self.config.limits.max_buffer_bytes
        if len(data) > max_bytes:
            raise BufferLimitError(
                "model file too large",
                details={"size": len(data), "max": max_bytes}
            )


def create_service(config: Optional[ServiceConfig] = None) -> MeshVolumeService:
    """Create a service with the given (or default) configuration."""
    return MeshVolumeService(config)


def calculate_volume(data: bytes, content_type: Optional[str] = None,
                     source_name: Optional[str] = None,
                     unit: Optional[str] = None,
                     config: Optional[ServiceConfig] = None) -> VolumeResult:
    """Shortcut for ``MeshVolumeService(config).calculate(...)``."""
    return MeshVolumeService(config).calculate(data, content_type, source_name, unit)
