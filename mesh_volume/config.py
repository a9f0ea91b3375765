"""Parameter configuration system for the mesh volume service."""

from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any, List
import json
import os
from pathlib import Path

# Hard ceiling on the number of triangles a single model may declare.
MAX_TRIANGLES = 10_000_000

# 100 MiB
MAX_MODEL_FILE_SIZE = 100 * 1024 * 1024

VOLUME_UNITS = ("mm", "cm", "m")

EXECUTORS = ("thread", "process")


def default_max_workers() -> int:
    """Worker pool size used when none is configured."""
    return min(32, os.cpu_count() or 1)


@dataclass
class FormatConfig:
    """Format detection and decoding limits."""
    max_triangles: int = MAX_TRIANGLES
    trailing_slack_bytes: int = 80
    text_preview_bytes: int = 4096

    def validate(self) -> List[str]:
        """Validate format configuration parameters."""
        errors = []

        if not (1 <= self.max_triangles <= MAX_TRIANGLES):
            errors.append(
                f"max_triangles must be between 1 and {MAX_TRIANGLES}, "
                f"got {self.max_triangles}"
            )

        if self.trailing_slack_bytes < 0:
            errors.append(
                f"trailing_slack_bytes must be non-negative, got {self.trailing_slack_bytes}"
            )

        # Bounded so that the binary size check stays a tight window
        if self.trailing_slack_bytes > 1024:
            errors.append(
                f"trailing_slack_bytes should be <= 1024, got {self.trailing_slack_bytes}"
            )

        if self.text_preview_bytes < 64:
            errors.append(
                f"text_preview_bytes must be >= 64, got {self.text_preview_bytes}"
            )

        return errors


@dataclass
class VolumeConfig:
    """Volume accumulation configuration."""
    parallel_threshold: int = 1000
    chunk_size: int = 1000
    max_workers: Optional[int] = None
    executor: str = "thread"

    def validate(self) -> List[str]:
        """Validate volume configuration parameters."""
        errors = []

        if self.parallel_threshold < 1:
            errors.append(
                f"parallel_threshold must be >= 1, got {self.parallel_threshold}"
            )

        if self.chunk_size < 1:
            errors.append(f"chunk_size must be >= 1, got {self.chunk_size}")

        if self.max_workers is not None and self.max_workers < 1:
            errors.append(f"max_workers must be >= 1, got {self.max_workers}")

        if self.executor not in EXECUTORS:
            errors.append(
                f"executor must be 'thread' or 'process', got '{self.executor}'"
            )

        return errors

    def resolved_workers(self) -> int:
        """Number of workers the reduction pool will use."""
        return self.max_workers if self.max_workers is not None else default_max_workers()


@dataclass
class LimitsConfig:
    """Request-level resource limits."""
    max_buffer_bytes: int = MAX_MODEL_FILE_SIZE
    default_unit: str = "mm"

    def validate(self) -> List[str]:
        """Validate limits configuration parameters."""
        errors = []

        # Room for the binary header and one facet record
        if self.max_buffer_bytes < 134:
            errors.append(
                f"max_buffer_bytes must be >= 134, got {self.max_buffer_bytes}"
            )

        if self.default_unit not in VOLUME_UNITS:
            errors.append(
                f"default_unit must be one of {', '.join(VOLUME_UNITS)}, "
                f"got '{self.default_unit}'"
            )

        return errors


@dataclass
class ServiceConfig:
    """Complete service configuration."""
    formats: FormatConfig = field(default_factory=FormatConfig)
    volume: VolumeConfig = field(default_factory=VolumeConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)

    def validate(self) -> List[str]:
        """Validate all configuration parameters."""
        errors = []

        errors.extend([f"Formats: {e}" for e in self.formats.validate()])
        errors.extend([f"Volume: {e}" for e in self.volume.validate()])
        errors.extend([f"Limits: {e}" for e in self.limits.validate()])

        errors.extend(self._validate_cross_section())

        return errors

    def _validate_cross_section(self) -> List[str]:
        """Validate consistency across configuration sections."""
        errors = []

        if self.volume.chunk_size > self.formats.max_triangles:
            errors.append(
                f"chunk_size ({self.volume.chunk_size}) should be <= "
                f"max_triangles ({self.formats.max_triangles})"
            )

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'ServiceConfig':
        """Create configuration from dictionary."""
        return cls(
            formats=FormatConfig(**config_dict.get('formats', {})),
            volume=VolumeConfig(**config_dict.get('volume', {})),
            limits=LimitsConfig(**config_dict.get('limits', {})),
        )

    def save_to_file(self, filepath: str) -> None:
        """Save configuration to JSON file."""
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def load_from_file(cls, filepath: str) -> 'ServiceConfig':
        """Load configuration from JSON file."""
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(path, 'r') as f:
            config_dict = json.load(f)

        config = cls.from_dict(config_dict)

        errors = config.validate()
        if errors:
            raise ValueError(
                f"Invalid configuration loaded from {filepath}:\n" +
                "\n".join(errors)
            )

        return config


def create_default_config() -> ServiceConfig:
    """Create default service configuration."""
    return ServiceConfig()


def create_serial_config() -> ServiceConfig:
    """Create a configuration that never fans out to a worker pool."""
    return ServiceConfig(
        volume=VolumeConfig(
            parallel_threshold=MAX_TRIANGLES + 1,
            max_workers=1
        )
    )
