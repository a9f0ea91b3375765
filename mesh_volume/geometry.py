"""
Geometric value types shared by the decoders, the triangulator and the
volume accumulator.

Meshes are stored as a single ``(N, 3, 3)`` float64 array (triangle, vertex,
coordinate) so that decoding and per-triangle arithmetic stay vectorised for
models with millions of facets. :class:`Triangle` is the value a caller sees
when iterating a mesh or receiving triangulation output.
"""

from dataclasses import dataclass
from typing import Iterator, NamedTuple, Sequence, Tuple, Union

import numpy as np

from mesh_volume.errors import InvalidInputError


class Point2(NamedTuple):
    """A point in a 2D projection plane."""
    x: float
    y: float


class Point3(NamedTuple):
    """A point in 3D model space."""
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class Triangle:
    """
    A triangle given by exactly three vertices in emission order.

    Winding is significant: it decides the sign of :meth:`signed_volume`.
    Planarity and non-degeneracy are not checked.
    """
    vertices: Tuple[Point3, Point3, Point3]

    def __post_init__(self):
        if len(self.vertices) != 3:
            raise InvalidInputError(
                "triangle must have exactly 3 vertices",
                details={"got": len(self.vertices)}
            )
        for vertex in self.vertices:
            if len(vertex) != 3:
                raise InvalidInputError(
                    "triangle vertex must have exactly 3 coordinates",
                    details={"got": len(vertex)}
                )
        object.__setattr__(
            self, "vertices", tuple(Point3(*(float(c) for c in v)) for v in self.vertices)
        )

    def signed_volume(self) -> float:
        """Signed volume of the tetrahedron spanned by the triangle and the origin."""
        a, b, c = self.vertices
        cross = (
            b.y * c.z - b.z * c.y,
            b.z * c.x - b.x * c.z,
            b.x * c.y - b.y * c.x,
        )
        return (a.x * cross[0] + a.y * cross[1] + a.z * cross[2]) / 6.0

    def as_array(self) -> np.ndarray:
        """Vertices as a 3x3 float64 array."""
        return np.array(self.vertices, dtype=np.float64)


TriangleInput = Union["Mesh", np.ndarray, Sequence[Triangle], Sequence[Sequence[Sequence[float]]]]


def as_triangle_array(triangles: TriangleInput) -> np.ndarray:
    """
    Coerce any supported triangle collection into an ``(N, 3, 3)`` array.

    Args:
        triangles: A Mesh, an ``(N, 3, 3)`` array, or a sequence of
                   Triangle values or nested coordinate triples

    Returns:
        float64 array of shape (N, 3, 3)

    Raises:
        InvalidInputError: If any element is not a 3-vertex triangle
    """
    if isinstance(triangles, Mesh):
        return triangles.triangles

    if not isinstance(triangles, np.ndarray):
        if len(triangles) == 0:
            return np.empty((0, 3, 3), dtype=np.float64)
        if isinstance(triangles[0], Triangle):
            triangles = [t.vertices for t in triangles]
        try:
            triangles = np.asarray(triangles, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(
                "triangle must have exactly 3 vertices of 3 coordinates",
                details={"error": str(e)}
            )

    if triangles.ndim != 3 or triangles.shape[1:] != (3, 3):
        raise InvalidInputError(
            "triangle must have exactly 3 vertices of 3 coordinates",
            details={"expected": "Nx3x3", "got": triangles.shape}
        )

    return triangles.astype(np.float64, copy=False)


@dataclass
class Mesh:
    """
    An ordered sequence of triangles.

    No connectivity is modelled and shared vertices are not welded; the order
    of ``triangles`` is the order of the source file.

    Attributes:
        triangles: (N, 3, 3) float64 array of triangle vertex coordinates
    """
    triangles: np.ndarray

    def __post_init__(self):
        self.triangles = as_triangle_array(self.triangles)

    @classmethod
    def empty(cls) -> 'Mesh':
        return cls(np.empty((0, 3, 3), dtype=np.float64))

    @classmethod
    def from_triangles(cls, triangles: Sequence[Triangle]) -> 'Mesh':
        return cls(as_triangle_array(list(triangles)))

    def __len__(self) -> int:
        return self.triangles.shape[0]

    def __iter__(self) -> Iterator[Triangle]:
        for tri in self.triangles:
            yield Triangle(tuple(Point3(*v) for v in tri.tolist()))

    def __getitem__(self, index: int) -> Triangle:
        return Triangle(tuple(Point3(*v) for v in self.triangles[index].tolist()))

    @property
    def triangle_count(self) -> int:
        return len(self)

    def bounds(self) -> Tuple[Point3, Point3]:
        """Axis-aligned bounding box as (min corner, max corner)."""
        if len(self) == 0:
            raise InvalidInputError("mesh contains no triangles")
        points = self.triangles.reshape(-1, 3)
        return Point3(*points.min(axis=0).tolist()), Point3(*points.max(axis=0).tolist())
