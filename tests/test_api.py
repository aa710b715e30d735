"""Tests for the HTTP API."""

import base64
import json

import pytest
from fastapi.testclient import TestClient
from fluxmux import __version__
from fluxmux.api import create_app
from fluxmux.config import FluxmuxConfig


@pytest.fixture
def client():
    return TestClient(create_app(FluxmuxConfig()))


@pytest.fixture
def rows_file(tmp_path):
    path = tmp_path / "rows.json"
    path.write_text(json.dumps([{"v": 1}, {"v": 4}, {"v": 8}]), encoding="utf-8")
    return path


class TestHealth:
    """Test health and config endpoints."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "version": __version__}

    def test_config(self, client):
        response = client.get("/api/config")
        assert response.status_code == 200
        assert response.json()["engine"]["channel_capacity"] == 1024


class TestConvert:
    """Test in-memory conversion."""

    def test_json_to_csv(self, client):
        response = client.post("/api/convert", json={
            "data": '[{"id": 1, "name": "a"}]', "fromFormat": "json", "toFormat": "csv",
        })
        assert response.status_code == 200
        assert response.json() == {"success": True, "output": "id,name\n1,a\n", "encoding": "utf-8"}

    def test_unsupported_format(self, client):
        response = client.post("/api/convert", json={"data": "[]", "fromFormat": "json", "toFormat": "xlsx"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_malformed_document(self, client):
        response = client.post("/api/convert", json={"data": "{oops", "fromFormat": "json", "toFormat": "yaml"})
        assert response.status_code == 400

    def test_binary_output_is_base64(self, client):
        msgpack = pytest.importorskip("msgpack")
        response = client.post("/api/convert", json={"data": '{"id": 1}', "fromFormat": "json", "toFormat": "msgpack"})

        assert response.status_code == 200
        body = response.json()
        assert body["encoding"] == "base64"
        assert msgpack.unpackb(base64.b64decode(body["output"])) == {"id": 1}

    def test_binary_input_is_base64(self, client):
        msgpack = pytest.importorskip("msgpack")
        data = base64.b64encode(msgpack.packb([{"id": 2}])).decode("ascii")
        response = client.post("/api/convert", json={"data": data, "fromFormat": "msgpack", "toFormat": "ndjson"})

        assert response.status_code == 200
        assert response.json()["output"] == '{"id": 2}\n'

    def test_binary_input_must_be_base64(self, client):
        response = client.post("/api/convert", json={"data": "not base64!", "fromFormat": "cbor", "toFormat": "json"})
        assert response.status_code == 400

    def test_missing_field(self, client):
        response = client.post("/api/convert", json={"data": "[]", "fromFormat": "json"})
        assert response.status_code == 400
        assert "toFormat" in response.json()["error"]


class TestPipelines:
    """Test bridge and pipe runs."""

    def test_pipe_to_stdout(self, client, rows_file, capsys):
        response = client.post("/api/pipe", json={
            "source": f"file:{rows_file}",
            "actions": [{"type": "filter", "param": "v>2"}, {"type": "limit", "param": "1"}],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["stats"]["mode"] == "pipe"
        assert body["stats"]["received"] == 3
        assert [json.loads(line) for line in capsys.readouterr().out.splitlines()] == [{"v": 4}]

    def test_pipe_unknown_action(self, client, rows_file):
        response = client.post("/api/pipe", json={"source": f"file:{rows_file}", "actions": [{"type": "explode"}]})
        assert response.status_code == 400

    def test_bridge_to_stdout(self, client, rows_file, capsys):
        response = client.post("/api/bridge", json={
            "source": f"file:{rows_file}", "sink": "stdout", "batchSize": 3,
        })

        assert response.status_code == 200
        assert response.json()["stats"]["delivered"] == 1
        assert capsys.readouterr().out == '[{"v":1},{"v":4},{"v":8}]\n'

    def test_bridge_file_to_file_rejected(self, client, rows_file, tmp_path):
        response = client.post("/api/bridge", json={
            "source": f"file:{rows_file}", "sink": f"file:{tmp_path / 'out.json'}",
        })
        assert response.status_code == 400
        assert "convert" in response.json()["error"]

    def test_bridge_bad_middleware(self, client, rows_file):
        response = client.post("/api/bridge", json={
            "source": f"file:{rows_file}", "sink": "stdout", "batchSize": 0,
        })
        assert response.status_code == 400

    def test_bridge_unknown_field(self, client, rows_file):
        response = client.post("/api/bridge", json={
            "source": f"file:{rows_file}", "sink": "stdout", "compress": True,
        })
        assert response.status_code == 400

    def test_source_failure_is_server_error(self, client, tmp_path):
        response = client.post("/api/bridge", json={
            "source": f"file:{tmp_path / 'missing.json'}", "sink": "stdout",
        })
        assert response.status_code == 500
