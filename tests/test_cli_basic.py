"""Tests for the mesh-volume command line interface."""

import json

import pytest

from mesh_volume.config import LimitsConfig, ServiceConfig
from mesh_volume.main import build_parser, main


@pytest.fixture
def cube_file(tmp_path, binary_stl, cube_triangles):
    path = tmp_path / "cube.stl"
    path.write_bytes(binary_stl(cube_triangles * 10.0))
    return path


def run(argv):
    return main(list(argv) + ["--log-level", "CRITICAL"])


class TestParser:
    """Test argument parsing."""

    def test_defaults(self):
        args = build_parser().parse_args(["model.stl"])

        assert args.path == "model.stl"
        assert args.unit is None
        assert args.json is False
        assert args.log_level == "WARNING"

    def test_unknown_unit_is_a_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["model.stl", "--unit", "ft"])
        assert exc_info.value.code == 2


class TestMain:
    """Test end-to-end CLI runs."""

    def test_text_output(self, cube_file, capsys):
        assert run([str(cube_file), "--unit", "cm"]) == 0

        out = capsys.readouterr().out
        assert "Format:    stl" in out
        assert "Triangles: 12" in out
        assert "Volume:    1.000000 cm^3" in out

    def test_json_output(self, cube_file, capsys):
        assert run([str(cube_file), "--json"]) == 0

        payload = json.loads(capsys.readouterr().out)
        assert payload["status"] == "success"
        assert payload["triangles"] == 12
        assert payload["volume"] == pytest.approx(1000.0)

    def test_content_type_overrides_extension(self, tmp_path, binary_stl, cube_triangles, capsys):
        path = tmp_path / "upload.bin"
        path.write_bytes(binary_stl(cube_triangles)[:-1])

        # Without a hint nothing matches the truncated buffer
        assert run([str(path), "--json"]) == 1
        assert "unsupported model format" in json.loads(capsys.readouterr().out)["message"]

        assert run([str(path), "--json", "--content-type", "model/stl"]) == 1
        assert "truncated" in json.loads(capsys.readouterr().out)["message"]

    def test_rejected_model(self, tmp_path, capsys):
        path = tmp_path / "notes.txt"
        path.write_text("not a mesh")

        assert run([str(path)]) == 1
        assert "Error: unsupported model format" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        assert run([str(tmp_path / "missing.stl")]) == 2
        assert "could not read" in capsys.readouterr().err

    def test_config_file(self, cube_file, tmp_path, capsys):
        config_path = tmp_path / "service.json"
        ServiceConfig(limits=LimitsConfig(default_unit="cm")).save_to_file(str(config_path))

        assert run([str(cube_file), "--config", str(config_path)]) == 0
        assert "cm^3" in capsys.readouterr().out

    def test_config_limit_is_enforced(self, cube_file, tmp_path, capsys):
        config_path = tmp_path / "small.json"
        config_path.write_text(json.dumps({"limits": {"max_buffer_bytes": 200}}))

        assert run([str(cube_file), "--config", str(config_path)]) == 1
        assert "model file too large" in capsys.readouterr().err

    def test_invalid_config_file(self, cube_file, tmp_path, capsys):
        config_path = tmp_path / "bad.json"
        config_path.write_text(json.dumps({"volume": {"chunk_size": 0}}))

        assert run([str(cube_file), "--config", str(config_path)]) == 2
        assert "chunk_size" in capsys.readouterr().err

    def test_log_dir(self, cube_file, tmp_path):
        log_dir = tmp_path / "logs"

        assert main([str(cube_file), "--log-level", "CRITICAL", "--log-dir", str(log_dir)]) == 0
        assert any(log_dir.glob("mesh_volume_*.log"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
