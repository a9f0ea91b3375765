"""
Basic unit tests for format detection.

Tests hint precedence, magic-byte heuristics and their boundaries.
"""

import pytest

from mesh_volume.config import FormatConfig
from mesh_volume.errors import TruncatedMeshError
from mesh_volume.formats import MeshFormat, detect_format


class TestContentType:
    """Test resolution from declared content types."""

    @pytest.mark.parametrize("content_type", [
        "application/sla",
        "application/vnd.ms-pki.stl",
        "model/stl",
        "MODEL/STL",
        "model/stl; charset=binary",
    ])
    def test_known_types(self, content_type):
        assert MeshFormat.from_content_type(content_type) is MeshFormat.STL

    @pytest.mark.parametrize("content_type", [None, "", "application/octet-stream", "text/plain"])
    def test_unknown_types(self, content_type):
        assert MeshFormat.from_content_type(content_type) is None


class TestSourceName:
    """Test resolution from file names and URLs."""

    @pytest.mark.parametrize("source_name", [
        "part.stl",
        "PART.STL",
        "/srv/models/bracket.Stl",
        "https://example.com/models/part.stl",
        "https://example.com/models/part.stl?token=abc&v=2",
    ])
    def test_stl_names(self, source_name):
        assert MeshFormat.from_source_name(source_name) is MeshFormat.STL

    @pytest.mark.parametrize("source_name", [
        None,
        "",
        "part.obj",
        "part.stl.zip",
        "https://example.com/download?file=part.stl",
    ])
    def test_other_names(self, source_name):
        assert MeshFormat.from_source_name(source_name) is None


class TestMagicBytes:
    """Test the binary and ASCII STL heuristics."""

    def test_binary(self, binary_stl, cube_triangles):
        assert MeshFormat.from_magic_bytes(binary_stl(cube_triangles)) is MeshFormat.STL

    def test_binary_with_solid_header(self, binary_stl, cube_triangles):
        data = binary_stl(cube_triangles, header=b"solid exported by CAD")
        assert MeshFormat.from_magic_bytes(data) is MeshFormat.STL

    def test_ascii(self, ascii_stl, cube_triangles):
        assert MeshFormat.from_magic_bytes(ascii_stl(cube_triangles)) is MeshFormat.STL

    def test_empty_buffer(self):
        assert MeshFormat.from_magic_bytes(b"") is None

    def test_short_buffer(self):
        assert MeshFormat.from_magic_bytes(b"\0" * 83) is None

    def test_zero_count_is_rejected(self, binary_stl):
        assert MeshFormat.from_magic_bytes(binary_stl([])) is None

    def test_count_above_maximum_is_rejected(self, binary_stl, cube_triangles):
        config = FormatConfig(max_triangles=10)
        assert MeshFormat.from_magic_bytes(binary_stl(cube_triangles), config) is None

    def test_truncated_binary(self, binary_stl, cube_triangles):
        data = binary_stl(cube_triangles)
        assert MeshFormat.from_magic_bytes(data[:-1]) is None

    def test_trailing_slack_boundary(self, binary_stl, cube_triangles):
        assert MeshFormat.from_magic_bytes(
            binary_stl(cube_triangles, trailing=b"\0" * 80)
        ) is MeshFormat.STL
        assert MeshFormat.from_magic_bytes(
            binary_stl(cube_triangles, trailing=b"\0" * 81)
        ) is None

    def test_slack_follows_config(self, binary_stl, cube_triangles):
        data = binary_stl(cube_triangles, trailing=b"\0" * 10)
        assert MeshFormat.from_magic_bytes(data, FormatConfig(trailing_slack_bytes=0)) is None

    def test_text_without_keywords(self):
        data = b"solid nothing here\n" + b"x" * 200
        assert MeshFormat.from_magic_bytes(data) is None

    def test_text_needs_both_keywords(self):
        assert MeshFormat.from_magic_bytes(b"solid a\nfacet normal 0 0 0\nendsolid a\n") is None
        assert MeshFormat.from_magic_bytes(b"solid a\nvertex 0 0 0\nendsolid a\n") is None

    def test_keywords_beyond_preview_are_ignored(self):
        data = b"solid padded\n" + b" " * 200 + b"facet vertex"
        config = FormatConfig(text_preview_bytes=64)
        assert MeshFormat.from_magic_bytes(data, config) is None

    def test_preview_may_split_multibyte_character(self):
        data = b"solid facet vertex " + b"a" * 44 + "é".encode("utf-8") + b" rest"
        config = FormatConfig(text_preview_bytes=64)

        assert MeshFormat.from_magic_bytes(data, config) is MeshFormat.STL

    def test_invalid_utf8_is_not_text(self):
        data = b"solid facet vertex \xff\xfe"
        assert MeshFormat.from_magic_bytes(data) is None


class TestDetectFormat:
    """Test signal precedence in detect_format."""

    def test_content_type_wins_over_bytes(self):
        assert detect_format(b"garbage", content_type="model/stl") is MeshFormat.STL

    def test_source_name_used_when_content_type_unknown(self):
        fmt = detect_format(b"garbage", content_type="application/octet-stream",
                            source_name="part.stl")
        assert fmt is MeshFormat.STL

    def test_magic_bytes_as_fallback(self, binary_stl, cube_triangles):
        fmt = detect_format(binary_stl(cube_triangles), source_name="upload.bin")
        assert fmt is MeshFormat.STL

    def test_nothing_matches(self):
        assert detect_format(b"PK\x03\x04 not a mesh", source_name="upload.zip") is None

    def test_hint_does_not_skip_validation(self):
        fmt = detect_format(b"garbage", content_type="model/stl")

        with pytest.raises(TruncatedMeshError):
            fmt.validate_bytes(b"garbage")

    def test_as_str(self):
        assert MeshFormat.STL.as_str() == "stl"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
