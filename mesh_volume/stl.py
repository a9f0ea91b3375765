"""
STL decoding.

STL comes in two variants:

Binary (little-endian, fixed width)::

    bytes 0-79    header, ignored
    bytes 80-83   uint32 triangle count N
    then N records of 50 bytes:
        12 bytes  facet normal (3 x float32), ignored
        36 bytes  vertex 0, 1, 2 (3 x 3 x float32)
         2 bytes  attribute word, ignored

ASCII (keywords separated by arbitrary whitespace)::

    solid [name]
      facet normal nx ny nz
        outer loop
          vertex x y z
          vertex x y z
          vertex x y z
        endloop
      endfacet
      ...
    endsolid [name]

Decoding validates the structure again independently of format detection
and never reads past the declared sizes. The decoded facets must then form
a closed, consistently wound surface without zero-area facets. Decoding is
all-or-nothing: any inconsistency raises a typed error and no partial mesh
is returned.
"""

import math
import struct
from typing import List, Optional

import numpy as np

from mesh_volume.config import FormatConfig
from mesh_volume.errors import (
    InternalError, MalformedMeshError, MeshVolumeError, OversizedMeshError,
    TriangleLimitError, TruncatedMeshError
)
from mesh_volume.geometry import Mesh
from mesh_volume.logging_config import get_logger, PerformanceTimer

logger = get_logger(__name__)

HEADER_SIZE = 80
BINARY_HEADER_SIZE = 84  # header + uint32 count
RECORD_SIZE = 50

STL_RECORD_DTYPE = np.dtype([
    ("normal", "<f4", (3,)),
    ("vertices", "<f4", (3, 3)),
    ("attribute", "<u2"),
])

ASCII_SENTINEL = b"solid"

# Facets with a smaller area are rejected as degenerate
ZERO_AREA_EPSILON = float(np.finfo(np.float32).eps)

BINARY = "binary"
ASCII = "ascii"


def read_declared_count(data: bytes) -> Optional[int]:
    """Triangle count from a binary header, or None if the header is incomplete."""
    if len(data) < BINARY_HEADER_SIZE:
        return None
    return struct.unpack_from("<I", data, HEADER_SIZE)[0]


def expected_binary_size(count: int) -> int:
    """Exact size of a binary STL holding ``count`` triangles."""
    return BINARY_HEADER_SIZE + count * RECORD_SIZE


def looks_like_ascii(text: str) -> bool:
    """Whether decoded text carries both ASCII STL sub-keywords."""
    return "facet" in text and "vertex" in text


def is_ascii_stl(data: bytes) -> bool:
    """
    Whether the whole buffer is ASCII STL text.

    Binary files are allowed to start with ``solid`` in their free-form
    header, so the sentinel alone is not enough: the full buffer must also
    decode as UTF-8 and contain the facet and vertex keywords.
    """
    if bytes(data[:len(ASCII_SENTINEL)]) != ASCII_SENTINEL:
        return False
    try:
        text = bytes(data).decode("utf-8")
    except UnicodeDecodeError:
        return False
    return looks_like_ascii(text)


def validate_stl(data: bytes, config: Optional[FormatConfig] = None) -> str:
    """
    Structurally validate an STL buffer and report its variant.

    Args:
        data: Complete file contents
        config: Format limits. If None, uses the defaults.

    Returns:
        "ascii" or "binary"

    Raises:
        TruncatedMeshError: If the buffer is shorter than its declared size
        OversizedMeshError: If it is longer than declared size plus slack
        TriangleLimitError: If the declared count exceeds the maximum
    """
    config = config if config is not None else FormatConfig()

    if is_ascii_stl(data):
        return ASCII

    count = read_declared_count(data)
    if count is None:
        raise TruncatedMeshError(
            "invalid model file: truncated header",
            details={"size": len(data), "required": BINARY_HEADER_SIZE}
        )

    if count > config.max_triangles:
        raise TriangleLimitError(
            "model has too many triangles",
            details={"triangles": count, "max": config.max_triangles}
        )

    expected = expected_binary_size(count)
    if len(data) < expected:
        raise TruncatedMeshError(
            "invalid model file: truncated triangle data",
            details={"size": len(data), "expected": expected}
        )

    if len(data) > expected + config.trailing_slack_bytes:
        raise OversizedMeshError(
            "invalid model file: unexpected trailing data",
            details={"size": len(data), "expected": expected}
        )

    return BINARY


def decode_binary(data: bytes, count: int) -> np.ndarray:
    """
    Decode ``count`` binary records into an (N, 3, 3) float64 array.

    The caller guarantees ``len(data) >= 84 + count * 50``.
    """
    records = np.frombuffer(data, dtype=STL_RECORD_DTYPE, count=count, offset=BINARY_HEADER_SIZE)
    triangles = records["vertices"].astype(np.float64)

    finite = np.isfinite(triangles).all(axis=(1, 2))
    if not finite.all():
        raise MalformedMeshError(
            "invalid STL mesh: non-finite vertex coordinate",
            details={"facet": int(np.argmin(finite))}
        )

    return triangles


def validate_closed_surface(triangles: np.ndarray) -> None:
    """
    Require a closed, consistently wound surface without zero-area facets.

    Vertices are welded by exact coordinate. Every directed edge ``(u, v)``
    must occur once and be matched by exactly one opposite edge ``(v, u)``.
    An unmatched edge means the surface is open; a repeated directed edge
    means a neighbouring facet is wound the other way.

    Args:
        triangles: (N, 3, 3) float64 array

    Raises:
        MalformedMeshError: On the first zero-area facet, repeated edge or
                            open edge, with the facet index in the details
    """
    if triangles.shape[0] == 0:
        return

    v0, v1, v2 = triangles[:, 0], triangles[:, 1], triangles[:, 2]
    areas = 0.5 * np.linalg.norm(np.cross(v1 - v0, v2 - v0), axis=1)
    degenerate = areas < ZERO_AREA_EPSILON
    if degenerate.any():
        raise MalformedMeshError(
            "invalid STL mesh: facet has zero area",
            details={"facet": int(np.argmax(degenerate))}
        )

    points, welded = np.unique(triangles.reshape(-1, 3), axis=0, return_inverse=True)
    faces = welded.reshape(-1, 3).astype(np.int64)
    stride = np.int64(len(points))

    # Edge k belongs to facet k // 3 and runs from its vertex k % 3 to the next
    starts = faces.reshape(-1)
    ends = faces[:, [1, 2, 0]].reshape(-1)
    keys = starts * stride + ends
    reverse = ends * stride + starts

    order = np.argsort(keys, kind="stable")
    sorted_keys = keys[order]

    repeated = np.flatnonzero(sorted_keys[1:] == sorted_keys[:-1])
    if repeated.size:
        edge = int(order[repeated[0] + 1])
        raise MalformedMeshError(
            "invalid STL mesh: inconsistent facet winding",
            details={"facet": edge // 3, "edge": edge % 3}
        )

    position = np.minimum(np.searchsorted(sorted_keys, reverse), len(sorted_keys) - 1)
    unmatched = sorted_keys[position] != reverse
    if unmatched.any():
        edge = int(np.argmax(unmatched))
        raise MalformedMeshError(
            "invalid STL mesh: open edge",
            details={"facet": edge // 3, "edge": edge % 3}
        )


class AsciiStlReader:
    """
    Token-level reader for ASCII STL.

    Keywords are matched case-insensitively; the optional solid name is
    skipped up to the first ``facet`` or ``endsolid`` keyword.
    """

    def __init__(self, text: str, max_triangles: int):
        self.tokens = text.split()
        self.pos = 0
        self.max_triangles = max_triangles
        self.facets = 0

    def _next(self) -> str:
        if self.pos >= len(self.tokens):
            raise TruncatedMeshError(
                "invalid STL mesh: unexpected end of file",
                details={"facet": self.facets}
            )
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _expect(self, keyword: str) -> None:
        token = self._next()
        if token.lower() != keyword:
            raise MalformedMeshError(
                f"invalid STL mesh: expected '{keyword}'",
                details={"facet": self.facets, "token": self.pos}
            )

    def _number(self) -> float:
        token = self._next()
        try:
            value = float(token)
        except ValueError:
            raise MalformedMeshError(
                "invalid STL mesh: malformed number",
                details={"facet": self.facets, "token": self.pos}
            )
        if not math.isfinite(value):
            raise MalformedMeshError(
                "invalid STL mesh: non-finite number",
                details={"facet": self.facets, "token": self.pos}
            )
        return value

    def _skip_name(self) -> None:
        while self.pos < len(self.tokens):
            if self.tokens[self.pos].lower() in ("facet", "endsolid"):
                return
            self.pos += 1

    def read(self) -> np.ndarray:
        """Parse every facet and return an (N, 3, 3) float64 array."""
        self._expect("solid")
        self._skip_name()

        coords: List[float] = []
        while True:
            token = self._next().lower()
            if token == "endsolid":
                break
            if token != "facet":
                raise MalformedMeshError(
                    "invalid STL mesh: expected 'facet' or 'endsolid'",
                    details={"facet": self.facets, "token": self.pos}
                )

            self._expect("normal")
            for _ in range(3):
                self._number()

            self._expect("outer")
            self._expect("loop")
            for _ in range(3):
                self._expect("vertex")
                coords.append(self._number())
                coords.append(self._number())
                coords.append(self._number())
            self._expect("endloop")
            self._expect("endfacet")

            self.facets += 1
            if self.facets > self.max_triangles:
                raise TriangleLimitError(
                    "model has too many triangles",
                    details={"max": self.max_triangles}
                )

        if not coords:
            return np.empty((0, 3, 3), dtype=np.float64)
        return np.array(coords, dtype=np.float64).reshape(-1, 3, 3)


def decode_ascii(data: bytes, max_triangles: int) -> np.ndarray:
    """Decode an ASCII STL buffer into an (N, 3, 3) float64 array."""
    try:
        text = bytes(data).decode("utf-8")
    except UnicodeDecodeError:
        raise MalformedMeshError("invalid STL mesh: text is not valid UTF-8")
    return AsciiStlReader(text, max_triangles).read()


def decode_stl(data: bytes, config: Optional[FormatConfig] = None) -> Mesh:
    """
    Validate and decode an STL buffer.

    Args:
        data: Complete file contents
        config: Format limits. If None, uses the defaults.

    Returns:
        Mesh with triangles in file order

    Raises:
        InvalidInputError: On any structural inconsistency, including an
                           open or inconsistently wound surface
        ResourceLimitError: If the triangle count exceeds the maximum
        InternalError: On an unexpected decoder failure
    """
    config = config if config is not None else FormatConfig()

    variant = validate_stl(data, config)
    logger.debug("Decoding STL", variant=variant, size=len(data))

    try:
        with PerformanceTimer(logger, f"{variant} STL decode", size=len(data)):
            if variant == ASCII:
                triangles = decode_ascii(data, config.max_triangles)
            else:
                triangles = decode_binary(data, read_declared_count(data))
            validate_closed_surface(triangles)
    except MeshVolumeError:
        raise
    except Exception as e:
        logger.log_exception(e, {"stage": "STL decode", "variant": variant})
        raise InternalError(
            "failed to parse STL file",
            details={"error": type(e).__name__}
        ) from e

    return Mesh(triangles)
