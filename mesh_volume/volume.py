"""
Volume accumulation for closed triangle meshes.

Each triangle contributes the signed volume of the tetrahedron it spans with
the origin, ``v0 . (v1 x v2) / 6``. By the divergence theorem these sum to
the enclosed volume of a closed, consistently oriented mesh wherever the
mesh sits relative to the origin.

Summation is compensated (Kahan), which keeps the rounding error bounded by
a few ulps instead of growing with the triangle count. Large meshes are cut
into fixed-size chunks whose compensated partial sums are computed on a
bounded worker pool and then added with a plain, uncompensated sum. Its
extra error grows with the number of chunks, not the number of triangles.
"""

import math
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor
from typing import Dict, Iterable, Optional

import numpy as np

from mesh_volume.config import VolumeConfig
from mesh_volume.errors import (
    InternalError, InvalidInputError, InvalidParameterError, InvalidUnitError,
    MeshVolumeError
)
from mesh_volume.geometry import TriangleInput, as_triangle_array
from mesh_volume.logging_config import get_logger, PerformanceTimer

logger = get_logger(__name__)

# Divisors from cubic millimetres (the source unit) to the requested unit.
UNIT_DIVISORS: Dict[str, float] = {
    "mm": 1.0,
    "cm": 1_000.0,
    "m": 1_000_000_000.0,
}


def signed_volumes(triangles: TriangleInput) -> np.ndarray:
    """
    Per-triangle signed tetrahedron volumes.

    Args:
        triangles: Anything accepted by :func:`as_triangle_array`

    Returns:
        float64 array of length N
    """
    tris = as_triangle_array(triangles)
    v0, v1, v2 = tris[:, 0], tris[:, 1], tris[:, 2]
    return np.einsum('ij,ij->i', v0, np.cross(v1, v2)) / 6.0


def kahan_sum(values: Iterable[float]) -> float:
    """
    Compensated summation.

    A running compensation term recovers the low-order bits lost by each
    addition and feeds them into the next one.
    """
    if isinstance(values, np.ndarray):
        values = values.tolist()

    total = 0.0
    compensation = 0.0

    for value in values:
        y = value - compensation
        t = total + y
        compensation = (t - total) - y
        total = t

    return total


def kahan_sum_rows(block: np.ndarray) -> np.ndarray:
    """
    Compensated sum of every row of a 2D array at once.

    Walks the columns left to right and applies the Kahan update to all rows
    together, so each row gets exactly the result :func:`kahan_sum` would
    give it while the arithmetic runs in numpy.

    Args:
        block: (rows, width) float64 array

    Returns:
        float64 array of length ``rows``
    """
    total = np.zeros(block.shape[0], dtype=np.float64)
    compensation = np.zeros(block.shape[0], dtype=np.float64)

    for column in block.T:
        y = column - compensation
        t = total + y
        compensation = (t - total) - y
        total = t

    return total


def chunked_sum(contributions: np.ndarray, chunk_size: int, max_workers: int,
                executor: str = "thread") -> float:
    """
    Sum ``contributions`` chunk by chunk on a bounded worker pool.

    Whole chunks are laid out as rows of a 2D view and split into one block
    of rows per worker. Each worker runs :func:`kahan_sum_rows` on its block,
    so the compensated loop is vectorised across chunks. A short final chunk
    is summed on the calling thread. Blocks are disjoint read-only views and
    workers share no mutable state. Partial sums are combined in chunk order
    with a plain addition.

    Args:
        contributions: 1D array of values to sum
        chunk_size: Number of values per chunk
        max_workers: Upper bound on the pool size
        executor: "thread" or "process"

    Returns:
        Sum of all values
    """
    values = np.ascontiguousarray(contributions, dtype=np.float64)
    width = max(1, min(chunk_size, values.shape[0]))
    full = values.shape[0] // width

    rows = values[:full * width].reshape(full, width)
    workers = max(1, min(max_workers, full))
    blocks = [block for block in np.array_split(rows, workers) if block.shape[0]]

    pool: Executor
    if executor == "process":
        pool = ProcessPoolExecutor(max_workers=workers)
    else:
        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="mesh-volume")

    total = 0.0
    with pool:
        for partials in pool.map(kahan_sum_rows, blocks):
            for partial in partials.tolist():
                total += partial

    remainder = values[full * width:]
    if remainder.shape[0]:
        total += kahan_sum(remainder)

    logger.debug(
        "Chunked reduction finished",
        chunks=full + (1 if remainder.shape[0] else 0),
        workers=workers
    )
    return total


class VolumeAccumulator:
    """
    Reduces a triangle list to the magnitude of its enclosed volume.

    Below ``parallel_threshold`` triangles a single Kahan pass is used; at or
    above it the chunked parallel reduction takes over.
    """

    def __init__(self, config: Optional[VolumeConfig] = None):
        """
        Initialize the accumulator.

        Args:
            config: Volume configuration. If None, uses the defaults.

        Raises:
            InvalidParameterError: If the configuration is invalid
        """
        self.config = config if config is not None else VolumeConfig()

        errors = self.config.validate()
        if errors:
            raise InvalidParameterError(
                "Invalid volume configuration:\n" + "\n".join(errors)
            )

    def signed_volume(self, triangles: TriangleInput) -> float:
        """
        Signed total volume; its sign reflects the global winding convention.

        Raises:
            InvalidInputError: If the triangles are malformed or the result
                               is not finite
            InternalError: On any unexpected failure during the reduction
        """
        tris = as_triangle_array(triangles)
        count = tris.shape[0]

        if count == 0:
            return 0.0

        try:
            with PerformanceTimer(logger, "Volume accumulation", triangles=count):
                contributions = signed_volumes(tris)

                if count >= self.config.parallel_threshold:
                    total = chunked_sum(
                        contributions,
                        self.config.chunk_size,
                        self.config.resolved_workers(),
                        self.config.executor
                    )
                else:
                    total = kahan_sum(contributions)
        except MeshVolumeError:
            raise
        except Exception as e:
            logger.log_exception(e, {"stage": "volume accumulation", "triangles": count})
            raise InternalError(
                "volume calculation failed",
                details={"error": type(e).__name__}
            ) from e

        if not math.isfinite(total):
            raise InvalidInputError(
                "mesh volume is not a finite number",
                details={"triangles": count}
            )

        return total

    def volume(self, triangles: TriangleInput) -> float:
        """
        Enclosed volume magnitude in the cube of the source units.

        Empty input returns 0.0 without touching the reduction machinery.
        """
        return abs(self.signed_volume(triangles))


def volume(triangles: TriangleInput, config: Optional[VolumeConfig] = None) -> float:
    """
    Enclosed volume magnitude of a closed triangle mesh.

    Args:
        triangles: A Mesh, an (N, 3, 3) array or a sequence of Triangles
        config: Optional volume configuration

    Returns:
        Absolute value of the summed signed tetrahedron volumes
    """
    return VolumeAccumulator(config).volume(triangles)


def scale_volume(volume_mm3: float, unit: str) -> float:
    """
    Convert a volume in cubic millimetres to the cube of ``unit``.

    Args:
        volume_mm3: Volume in mm^3
        unit: "mm", "cm" or "m"

    Returns:
        Volume in unit^3

    Raises:
        InvalidUnitError: If the unit is unknown
    """
    divisor = UNIT_DIVISORS.get(unit)
    if divisor is None:
        raise InvalidUnitError(
            "unit must be one of 'mm', 'cm', or 'm'",
            details={"got": unit}
        )
    return volume_mm3 / divisor
