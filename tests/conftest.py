"""Shared fixtures: reference geometry and STL buffer builders."""

import io
import struct

import numpy as np
import pytest

from mesh_volume.logging_config import configure_logging


# Unit cube [0, 1]^3, outward-facing counter-clockwise winding
CUBE_TRIANGLES = np.array([
    # bottom (z = 0)
    [[0, 0, 0], [0, 1, 0], [1, 1, 0]],
    [[0, 0, 0], [1, 1, 0], [1, 0, 0]],
    # top (z = 1)
    [[0, 0, 1], [1, 0, 1], [1, 1, 1]],
    [[0, 0, 1], [1, 1, 1], [0, 1, 1]],
    # front (y = 0)
    [[0, 0, 0], [1, 0, 0], [1, 0, 1]],
    [[0, 0, 0], [1, 0, 1], [0, 0, 1]],
    # back (y = 1)
    [[0, 1, 0], [0, 1, 1], [1, 1, 1]],
    [[0, 1, 0], [1, 1, 1], [1, 1, 0]],
    # left (x = 0)
    [[0, 0, 0], [0, 0, 1], [0, 1, 1]],
    [[0, 0, 0], [0, 1, 1], [0, 1, 0]],
    # right (x = 1)
    [[1, 0, 0], [1, 1, 0], [1, 1, 1]],
    [[1, 0, 0], [1, 1, 1], [1, 0, 1]],
], dtype=np.float64)


def build_binary_stl(triangles, header: bytes = b"", count=None, trailing: bytes = b"") -> bytes:
    """Binary STL bytes; ``count`` overrides the declared triangle count."""
    triangles = np.asarray(triangles, dtype=np.float64)
    declared = len(triangles) if count is None else count

    parts = [header[:80].ljust(80, b"\0"), struct.pack("<I", declared)]
    for tri in triangles:
        parts.append(struct.pack("<12fH", 0.0, 0.0, 0.0, *tri.reshape(-1).tolist(), 0))
    parts.append(trailing)

    return b"".join(parts)


def build_ascii_stl(triangles, name: str = "test") -> bytes:
    """ASCII STL bytes in the usual one-keyword-per-line layout."""
    lines = [f"solid {name}"]
    for tri in np.asarray(triangles, dtype=np.float64):
        lines.append("  facet normal 0 0 0")
        lines.append("    outer loop")
        for x, y, z in tri.tolist():
            lines.append(f"      vertex {x!r} {y!r} {z!r}")
        lines.append("    endloop")
        lines.append("  endfacet")
    lines.append(f"endsolid {name}")

    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture
def cube_triangles():
    """Unit cube as a (12, 3, 3) array."""
    return CUBE_TRIANGLES.copy()


@pytest.fixture
def binary_stl():
    return build_binary_stl


@pytest.fixture
def ascii_stl():
    return build_ascii_stl


@pytest.fixture
def log_stream():
    """Route package logging to an in-memory stream at DEBUG."""
    stream = io.StringIO()
    configure_logging("DEBUG", stream=stream)
    yield stream
    configure_logging("WARNING")
