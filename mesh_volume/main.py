#!/usr/bin/env python3
"""
Command line interface for the mesh volume service.

Usage:
    # Volume of a model in cubic centimetres
    mesh-volume part.stl --unit cm

    # Machine-readable output with a custom configuration
    mesh-volume part.stl --config service.json --json

    # Force the format when the file has no useful extension
    mesh-volume upload.bin --content-type model/stl
"""

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional

from mesh_volume.config import VOLUME_UNITS, ServiceConfig, create_default_config
from mesh_volume.errors import MeshVolumeError
from mesh_volume.logging_config import configure_logging, get_logger
from mesh_volume.service import MeshVolumeService

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mesh-volume",
        description="Compute the enclosed volume of a triangle mesh file"
    )
    parser.add_argument("path", help="Mesh file to measure")
    parser.add_argument("--unit", choices=VOLUME_UNITS, default=None,
                        help="Output unit; coordinates are read as millimetres (default: mm)")
    parser.add_argument("--content-type", default=None,
                        help="Declared content type, e.g. model/stl")
    parser.add_argument("--config", default=None,
                        help="JSON configuration file")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging level (default: WARNING)")
    parser.add_argument("--log-dir", default=None,
                        help="Directory for log files")
    parser.add_argument("--json", action="store_true",
                        help="Print the result as JSON")
    return parser


def load_config(path: Optional[str]) -> ServiceConfig:
    if path is None:
        return create_default_config()
    return ServiceConfig.load_from_file(path)


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level, args.log_dir, stream=sys.stderr)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, TypeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    path = Path(args.path)
    logger.debug("Reading model", path=str(path))
    try:
        data = path.read_bytes()
    except OSError as e:
        print(f"Error: could not read {path}: {e.strerror}", file=sys.stderr)
        return 2

    try:
        service = MeshVolumeService(config)
        result = service.calculate(
            data,
            content_type=args.content_type,
            source_name=path.name,
            unit=args.unit
        )
    except MeshVolumeError as e:
        if args.json:
            print(json.dumps({"status": "error", "message": str(e)}))
        else:
            print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(result.to_response()))
    else:
        print(f"Format:    {result.format}")
        print(f"Triangles: {result.triangle_count}")
        print(f"Volume:    {result.volume:.6f} {result.unit}^3")

    return 0


if __name__ == "__main__":
    sys.exit(main())
