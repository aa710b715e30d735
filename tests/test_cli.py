"""Tests for the command line entry point."""

import json

import pytest
from fluxmux.cli import build_parser, main, merge_middleware
from fluxmux.common import ConfigurationError
from fluxmux.config import MiddlewareConfig

pytestmark = pytest.mark.usefixtures("isolated_config", "restore_logging")


def write_rows(path, rows):
    path.write_text(json.dumps(rows), encoding="utf-8")
    return path


class TestParser:
    """Test argument parsing."""

    def test_pipe_steps_are_collected(self):
        args = build_parser().parse_args(["pipe", "file:in.json", "filter", "v>1", "limit", "5", "tee", "stdout"])
        assert args.source == "file:in.json"
        assert args.steps == ["filter", "v>1", "limit", "5", "tee", "stdout"]

    def test_bridge_requires_endpoints(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["bridge", "--source", "-"])

    def test_merge_middleware_flags_win(self):
        args = build_parser().parse_args(["bridge", "--source", "-", "--sink", "-", "--batch-size", "4", "--deduplicate"])
        merged = merge_middleware(MiddlewareConfig(batch_size=10, throttle_per_sec=3), args)

        assert merged.batch_size == 4
        assert merged.deduplicate is True
        assert merged.throttle_per_sec == 3

    def test_merge_middleware_rejects_bad_values(self):
        args = build_parser().parse_args(["bridge", "--source", "-", "--sink", "-", "--batch-size", "0"])
        with pytest.raises(ConfigurationError):
            merge_middleware(MiddlewareConfig(), args)


class TestCommands:
    """Test full command runs."""

    def test_pipe_to_stdout(self, tmp_path, capsys):
        source = write_rows(tmp_path / "in.json", [{"v": 1}, {"v": 5}, {"v": 9}])

        code = main(["pipe", f"file:{source}", "filter", "v>2", "transform", "w=v*2"])

        assert code == 0
        lines = capsys.readouterr().out.splitlines()
        assert [json.loads(line) for line in lines] == [{"v": 5, "w": 10.0}, {"v": 9, "w": 18.0}]

    def test_pipe_aggregate(self, tmp_path, capsys):
        source = write_rows(tmp_path / "in.json", [{"g": "a", "v": 1}, {"g": "a", "v": 2}])

        assert main(["pipe", f"file:{source}", "aggregate", "group_by=g;sum=v"]) == 0
        assert json.loads(capsys.readouterr().out) == {"g": "a", "sum_v": 3.0}

    def test_bridge_with_batching(self, tmp_path, capsys):
        source = write_rows(tmp_path / "in.json", [1, 2, 3])

        code = main(["bridge", "--source", f"file:{source}", "--sink", "stdout", "--batch-size", "2"])

        assert code == 0
        assert capsys.readouterr().out.splitlines() == ["[1,2]", "[3]"]

    def test_file_to_file_is_rejected(self, tmp_path):
        source = write_rows(tmp_path / "in.json", [1])
        sink = tmp_path / "out.json"

        assert main(["bridge", "--source", f"file:{source}", "--sink", f"file:{sink}"]) == 1
        assert not sink.exists()

    def test_unknown_action_fails(self, tmp_path):
        source = write_rows(tmp_path / "in.json", [1])
        assert main(["pipe", f"file:{source}", "explode"]) == 1

    def test_source_error_exit_code(self, tmp_path):
        source = tmp_path / "in.ndjson"
        source.write_text('{"a": 1}\nbroken\n', encoding="utf-8")
        assert main(["pipe", f"file:{source}"]) == 1

    def test_convert(self, tmp_path):
        src = write_rows(tmp_path / "in.json", [{"id": 1}])
        dst = tmp_path / "out.yaml"

        assert main(["convert", str(src), str(dst), "--to", "yaml"]) == 0
        assert dst.read_text(encoding="utf-8") == "- id: 1\n"

    def test_convert_unsupported(self, tmp_path):
        src = write_rows(tmp_path / "in.json", [{"id": 1}])
        assert main(["convert", str(src), str(tmp_path / "out.xlsx")]) == 1

    def test_bad_config_file(self, tmp_path):
        assert main(["--config", str(tmp_path / "missing.toml"), "convert", "a.json", "b.json"]) == 1

    def test_config_after_subcommand(self, tmp_path):
        args = build_parser().parse_args(["convert", "a.json", "b.json", "--config", "x.toml"])
        assert str(args.config) == "x.toml"
        assert build_parser().parse_args(["convert", "a.json", "b.json"]).config is None
