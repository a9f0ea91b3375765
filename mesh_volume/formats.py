"""
Mesh format detection and decode dispatch.

A format is resolved from, in order: the declared content type, the source
name's extension, and finally a magic-byte heuristic on the buffer. None of
these is trusted on its own: the chosen format's decoder validates the whole
structure again before reading any record.

Supported formats form a closed enumeration. Each member is bound to its
validator and decoder in the tables at the bottom of this module, so adding
a format means adding a member and two table entries.
"""

from enum import Enum
from typing import Callable, Dict, Optional, Tuple
from urllib.parse import urlsplit

from mesh_volume import stl
from mesh_volume.config import FormatConfig
from mesh_volume.geometry import Mesh
from mesh_volume.logging_config import get_logger

logger = get_logger(__name__)


class MeshFormat(Enum):
    """Mesh formats the service can decode."""
    STL = "stl"

    @classmethod
    def from_content_type(cls, content_type: Optional[str]) -> Optional['MeshFormat']:
        """Match a declared content type such as ``model/stl``."""
        if not content_type:
            return None
        content_type = content_type.lower()
        for fmt, types in _CONTENT_TYPES.items():
            if any(t in content_type for t in types):
                return fmt
        return None

    @classmethod
    def from_source_name(cls, source_name: Optional[str]) -> Optional['MeshFormat']:
        """Match the extension of a file name or URL path (query ignored)."""
        if not source_name:
            return None
        path = (urlsplit(source_name).path or source_name).lower()
        for fmt, extensions in _EXTENSIONS.items():
            if path.endswith(extensions):
                return fmt
        return None

    @classmethod
    def from_magic_bytes(cls, data: bytes,
                         config: Optional[FormatConfig] = None) -> Optional['MeshFormat']:
        """
        Guess the format from the buffer contents alone.

        Returns None rather than raising when nothing matches.
        """
        config = config if config is not None else FormatConfig()

        if not data:
            return None

        if _sniff_binary_stl(data, config) or _sniff_ascii_stl(data, config):
            return cls.STL

        return None

    def validate_bytes(self, data: bytes, config: Optional[FormatConfig] = None) -> str:
        """
        Structural validation independent of detection.

        Returns:
            The variant name reported by the format's validator

        Raises:
            InvalidInputError, ResourceLimitError: If the buffer is inconsistent
        """
        return _VALIDATORS[self](data, config)

    def decode(self, data: bytes, config: Optional[FormatConfig] = None) -> Mesh:
        """Validate and decode ``data`` with this format's decoder."""
        return _DECODERS[self](data, config)

    def as_str(self) -> str:
        return self.value


def _sniff_binary_stl(data: bytes, config: FormatConfig) -> bool:
    count = stl.read_declared_count(data)
    if count is None or count == 0 or count > config.max_triangles:
        return False

    expected = stl.expected_binary_size(count)
    return expected <= len(data) <= expected + config.trailing_slack_bytes


def _sniff_ascii_stl(data: bytes, config: FormatConfig) -> bool:
    if bytes(data[:len(stl.ASCII_SENTINEL)]) != stl.ASCII_SENTINEL:
        return False

    preview = bytes(data[:config.text_preview_bytes])
    try:
        text = preview.decode("utf-8")
    except UnicodeDecodeError as e:
        # The cut may split a multi-byte character at the end of the preview
        if len(preview) == len(data) or e.start < len(preview) - 3:
            return False
        text = preview[:e.start].decode("utf-8")

    return stl.looks_like_ascii(text)


def detect_format(data: bytes,
                  content_type: Optional[str] = None,
                  source_name: Optional[str] = None,
                  config: Optional[FormatConfig] = None) -> Optional[MeshFormat]:
    """
    Resolve the format of a buffer from hints and contents.

    Args:
        data: Complete file contents
        content_type: Declared content type, if any
        source_name: File name or URL the buffer came from, if any
        config: Format limits. If None, uses the defaults.

    Returns:
        The resolved format, or None when no signal matches
    """
    fmt = MeshFormat.from_content_type(content_type)
    if fmt is not None:
        logger.debug("Format resolved from content type", format=fmt.value, content_type=content_type)
        return fmt

    fmt = MeshFormat.from_source_name(source_name)
    if fmt is not None:
        logger.debug("Format resolved from source name", format=fmt.value)
        return fmt

    fmt = MeshFormat.from_magic_bytes(data, config)
    if fmt is not None:
        logger.debug("Format resolved from magic bytes", format=fmt.value)
        return fmt

    logger.debug("No format matched", size=len(data))
    return None


_CONTENT_TYPES: Dict[MeshFormat, Tuple[str, ...]] = {
    MeshFormat.STL: ("application/sla", "application/vnd.ms-pki.stl", "model/stl"),
}

_EXTENSIONS: Dict[MeshFormat, Tuple[str, ...]] = {
    MeshFormat.STL: (".stl",),
}

_VALIDATORS: Dict[MeshFormat, Callable[..., str]] = {
    MeshFormat.STL: stl.validate_stl,
}

_DECODERS: Dict[MeshFormat, Callable[..., Mesh]] = {
    MeshFormat.STL: stl.decode_stl,
}
