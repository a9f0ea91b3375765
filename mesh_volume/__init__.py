"""Triangle mesh volume computation: format detection, decoding, triangulation."""

from mesh_volume.service import MeshVolumeService, VolumeResult, calculate_volume, create_service
from mesh_volume.config import ServiceConfig
from mesh_volume.formats import MeshFormat, detect_format
from mesh_volume.geometry import Mesh, Point2, Point3, Triangle
from mesh_volume.triangulation import triangulate, triangulate_polygons
from mesh_volume.volume import VolumeAccumulator

__version__ = "1.0.0"

__all__ = [
    'MeshVolumeService',
    'VolumeResult',
    'calculate_volume',
    'create_service',
    'ServiceConfig',
    'MeshFormat',
    'detect_format',
    'Mesh',
    'Point2',
    'Point3',
    'Triangle',
    'triangulate',
    'triangulate_polygons',
    'VolumeAccumulator',
]
