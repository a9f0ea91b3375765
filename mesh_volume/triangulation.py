"""
Polygon triangulation by ear clipping.

Converts a simple polygon given as indices into a shared 3D vertex pool into
triangles. The polygon need not be planar or convex: a normal is estimated
with Newell's method, the polygon is projected onto the coordinate plane it
faces most directly, and ears are clipped in that 2D projection while the
emitted triangles keep the original 3D vertices.

Each call is independent and stateless, so separate polygons can be
triangulated concurrently by the caller. Worst-case cost is cubic in the
number of polygon vertices, which is acceptable for individual faces.

References:
    https://www.khronos.org/opengl/wiki/Calculating_a_Surface_Normal
    https://www.geometrictools.com/Documentation/TriangulationByEarClipping.pdf
"""

import operator
import sys
from typing import List, Sequence

from mesh_volume.errors import (
    DegeneratePolygonError, InvalidInputError, MeshVolumeError, NonSimplePolygonError
)
from mesh_volume.geometry import Mesh, Point2, Point3, Triangle
from mesh_volume.logging_config import get_logger

logger = get_logger(__name__)

_EPSILON = sys.float_info.epsilon


def polygon_normal(points: Sequence[Point3]) -> Point3:
    """
    Estimate the normal of a closed polygon with Newell's method.

    The sum runs over every edge including the closing edge from the last
    vertex back to the first. The result is not normalised; its length is
    twice the area of the polygon.

    Args:
        points: Polygon vertices in loop order

    Returns:
        Unnormalised normal vector
    """
    nx = ny = nz = 0.0
    count = len(points)

    for i in range(count):
        v0 = points[i]
        v1 = points[(i + 1) % count]

        nx += (v0.y - v1.y) * (v0.z + v1.z)
        ny += (v0.z - v1.z) * (v0.x + v1.x)
        nz += (v0.x - v1.x) * (v0.y + v1.y)

    return Point3(nx, ny, nz)


def dominant_axis(normal: Point3) -> int:
    """Index (0=x, 1=y, 2=z) of the largest-magnitude normal component."""
    ax, ay, az = abs(normal.x), abs(normal.y), abs(normal.z)

    if ax > ay and ax > az:
        return 0
    if ay > az:
        return 1
    return 2


def project_polygon(points: Sequence[Point3]) -> List[Point2]:
    """
    Project a 3D polygon onto the coordinate plane it faces most directly.

    The axis dropped is the dominant axis of the Newell normal, which keeps
    the projection as large (and as far from degenerate) as possible.

    Args:
        points: Polygon vertices in loop order

    Returns:
        2D points in the same order
    """
    axis = dominant_axis(polygon_normal(points))

    if axis == 0:
        return [Point2(p.y, p.z) for p in points]  # YZ plane
    if axis == 1:
        return [Point2(p.x, p.z) for p in points]  # XZ plane
    return [Point2(p.x, p.y) for p in points]  # XY plane


def signed_area(points: Sequence[Point2]) -> float:
    """
    Signed area of a 2D polygon by the shoelace formula.

    Positive for counter-clockwise loops, negative for clockwise ones.
    """
    area = 0.0
    count = len(points)

    for i in range(count):
        a = points[i]
        b = points[(i + 1) % count]
        area += a.x * b.y - b.x * a.y

    return area / 2.0


def _cross(o: Point2, a: Point2, b: Point2) -> float:
    """z component of (a - o) x (b - a)."""
    return (a.x - o.x) * (b.y - a.y) - (a.y - o.y) * (b.x - a.x)


def is_convex(prev: Point2, curr: Point2, nxt: Point2, winding_positive: bool) -> bool:
    """Whether the corner at ``curr`` turns in the polygon's winding direction."""
    cross = _cross(prev, curr, nxt)
    if winding_positive:
        return cross > 0.0
    return cross < 0.0


def point_in_triangle(point: Point2, a: Point2, b: Point2, c: Point2) -> bool:
    """
    Barycentric point-in-triangle test, inclusive of the edges.

    A degenerate triangle (no measurable area relative to its edge lengths)
    is reported as containing nothing.
    """
    v0x, v0y = b.x - a.x, b.y - a.y
    v1x, v1y = c.x - a.x, c.y - a.y
    v2x, v2y = point.x - a.x, point.y - a.y

    dot00 = v0x * v0x + v0y * v0y
    dot01 = v0x * v1x + v0y * v1y
    dot02 = v0x * v2x + v0y * v2y
    dot11 = v1x * v1x + v1y * v1y
    dot12 = v1x * v2x + v1y * v2y

    denom = dot00 * dot11 - dot01 * dot01
    if abs(denom) <= _EPSILON * dot00 * dot11:
        return False

    inv_denom = 1.0 / denom
    u = (dot11 * dot02 - dot01 * dot12) * inv_denom
    v = (dot00 * dot12 - dot01 * dot02) * inv_denom

    return u >= 0.0 and v >= 0.0 and u + v <= 1.0


def _resolve_polygon(vertices, indices) -> List[Point3]:
    """Bounds-check ``indices`` against the pool and return the polygon's points."""
    pool_size = len(vertices)
    points = []

    for position, raw_index in enumerate(indices):
        try:
            index = operator.index(raw_index)
        except TypeError:
            raise InvalidInputError(
                "polygon index must be an integer",
                details={"position": position, "got": type(raw_index).__name__}
            )

        if not 0 <= index < pool_size:
            raise InvalidInputError(
                "polygon index out of range",
                details={"position": position, "index": index, "vertices": pool_size}
            )

        vertex = vertices[index]
        if len(vertex) != 3:
            raise InvalidInputError(
                "polygon vertex must have exactly 3 coordinates",
                details={"index": index, "got": len(vertex)}
            )
        points.append(Point3(float(vertex[0]), float(vertex[1]), float(vertex[2])))

    return points


def triangulate(vertices, indices: Sequence[int]) -> List[Triangle]:
    """
    Triangulate a simple polygon by ear clipping.

    Args:
        vertices: Shared vertex pool, a sequence of (x, y, z) triples or an
                  Nx3 array
        indices: Polygon loop as indices into ``vertices``, at least 3

    Returns:
        ``len(indices) - 2`` triangles whose vertices are taken from the pool

    Raises:
        DegeneratePolygonError: If fewer than 3 indices are given
        InvalidInputError: If an index is out of range or a vertex malformed
        NonSimplePolygonError: If no ear can be found within the attempt
                               bound. This catches loops where clipping
                               stalls, such as repeated windings or some
                               figure-eights. It is not a general
                               self-intersection test: a bowtie or a
                               pentagram still has ears and is clipped into
                               overlapping triangles.
    """
    indices = list(indices)
    if len(indices) < 3:
        raise DegeneratePolygonError(
            "cannot triangulate polygon with less than 3 vertices",
            details={"vertices": len(indices)}
        )

    points = _resolve_polygon(vertices, indices)
    projection = project_polygon(points)
    winding_positive = signed_area(projection) > 0.0

    active = list(range(len(points)))
    triangles: List[Triangle] = []

    i = 0
    remaining = len(active)
    attempts = 0

    while remaining > 3:
        attempts += 1
        if attempts > 2 * remaining * remaining:
            logger.debug(
                "Ear clipping made no progress",
                polygon_vertices=len(points),
                remaining=remaining
            )
            raise NonSimplePolygonError(
                "failed to triangulate polygon: possible non-simple polygon"
            )

        prev_idx = (i + remaining - 1) % remaining
        next_idx = (i + 1) % remaining

        prev = projection[active[prev_idx]]
        curr = projection[active[i]]
        nxt = projection[active[next_idx]]

        if not is_convex(prev, curr, nxt, winding_positive):
            i = (i + 1) % remaining
            continue

        # Some other active vertex inside the candidate means it is not an ear
        inside = False
        for j, pj in enumerate(active):
            if j == prev_idx or j == i or j == next_idx:
                continue
            if point_in_triangle(projection[pj], prev, curr, nxt):
                inside = True
                break

        if inside:
            i = (i + 1) % remaining
            continue

        triangles.append(Triangle((
            points[active[prev_idx]],
            points[active[i]],
            points[active[next_idx]],
        )))

        del active[i]
        remaining -= 1
        i %= remaining
        attempts = 0

    triangles.append(Triangle((points[active[0]], points[active[1]], points[active[2]])))

    return triangles


def triangulate_polygons(vertices, polygons: Sequence[Sequence[int]]) -> Mesh:
    """
    Triangulate every polygonal face of a shared vertex pool into one mesh.

    Faces are processed in order and their triangles appended in order. The
    call is all-or-nothing: the first face that fails aborts it.

    Args:
        vertices: Shared vertex pool
        polygons: Faces, each a sequence of indices into ``vertices``

    Returns:
        Mesh of all resulting triangles

    Raises:
        MeshVolumeError: The triangulation error of the first bad face, with
                         its position added to the details
    """
    triangles: List[Triangle] = []

    for position, polygon in enumerate(polygons):
        try:
            triangles.extend(triangulate(vertices, polygon))
        except MeshVolumeError as e:
            raise type(e)(e.message, details={**e.details, "polygon": position}) from e

    if not triangles:
        return Mesh.empty()

    return Mesh.from_triangles(triangles)
