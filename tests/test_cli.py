"""Tests for the apimcp command line front-end."""

import json

import pytest
import yaml

from apimcp import cli
from apimcp.config import OpenAPIParams


@pytest.fixture
def spec_file(write_spec, users_spec):
    return write_spec(users_spec, "users.json")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("OPENAPI_URL", "API_BASE_URL", "MCP_TRANSPORT", "MCP_PORT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def served(monkeypatch):
    apps = []
    monkeypatch.setattr(cli.MCPServer, "run", lambda self: apps.append(self.app))
    return apps


class TestOpenAPICommand:
    def test_config_only_writes_catalog(self, spec_file, tmp_path, monkeypatch, served):
        monkeypatch.chdir(tmp_path)
        code = cli.main(["openapi", "-s", spec_file, "-b", "https://api.ex.com/", "--config-only", "--file", "users"])
        assert code == 0
        assert served == []
        data = json.loads((tmp_path / "users.json").read_text())
        assert data["name"] == "Users API"
        assert data["config"]["baseUrl"] == "https://api.ex.com"
        assert data["config"]["configOnly"] is True

    def test_builds_persists_and_serves(self, spec_file, tmp_path, monkeypatch, served):
        monkeypatch.chdir(tmp_path)
        code = cli.main(["openapi", "-s", spec_file, "-b", "https://api.ex.com", "-t", "http", "--port", "9000"])
        assert code == 0
        assert (tmp_path / "Users API_makemcp.json").exists()
        assert len(served) == 1
        assert served[0].transport == "http"
        assert served[0].port == 9000
        assert all(tool.handler is not None for tool in served[0].tools)

    def test_environment_fallbacks(self, spec_file, tmp_path, monkeypatch, served):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("OPENAPI_URL", spec_file)
        monkeypatch.setenv("API_BASE_URL", "https://env.ex.com")
        monkeypatch.setenv("MCP_TRANSPORT", "http")
        monkeypatch.setenv("MCP_PORT", "8181")
        assert cli.main(["openapi"]) == 0
        app = served[0]
        assert isinstance(app.source_params, OpenAPIParams)
        assert app.source_params.base_url == "https://env.ex.com"
        assert (app.transport, app.port) == ("http", 8181)

    def test_missing_base_url_exits_1(self, spec_file, tmp_path, monkeypatch, served):
        monkeypatch.chdir(tmp_path)
        assert cli.main(["openapi", "-s", spec_file]) == 1
        assert served == []

    def test_bad_spec_exits_1(self, tmp_path, monkeypatch, served):
        monkeypatch.chdir(tmp_path)
        assert cli.main(["openapi", "-s", str(tmp_path / "missing.yaml"), "-b", "https://api.ex.com"]) == 1

    def test_duplicate_names_exit_1_before_serving(self, write_spec, tmp_path, monkeypatch, served):
        monkeypatch.chdir(tmp_path)
        spec = {
            "openapi": "3.0.0",
            "info": {"title": "dup", "version": "1"},
            "paths": {"/a": {"get": {"operationId": "x"}}, "/b": {"get": {"operationId": "x"}}},
        }
        assert cli.main(["openapi", "-s", write_spec(spec), "-b", "https://api.ex.com"]) == 1
        assert served == []
        assert not (tmp_path / "dup_makemcp.json").exists()

    def test_usage_error_exits_2(self):
        with pytest.raises(SystemExit) as exc:
            cli.main(["openapi", "--transport", "carrier-pigeon"])
        assert exc.value.code == 2


class TestLoadAndList:
    @pytest.fixture
    def catalog(self, spec_file, tmp_path, monkeypatch, served):
        monkeypatch.chdir(tmp_path)
        cli.main(["openapi", "-s", spec_file, "-b", "https://api.ex.com", "--config-only", "--file", "users"])
        return str(tmp_path / "users.json")

    def test_load_serves_with_overrides(self, catalog, served):
        assert cli.main(["load", catalog, "--transport", "http", "--port", "7001"]) == 0
        app = served[-1]
        assert (app.transport, app.port) == ("http", 7001)
        assert app.get_tool("listUsers").handler is not None

    def test_load_unknown_source_type(self, tmp_path, served):
        path = tmp_path / "other.json"
        path.write_text(json.dumps({"sourceType": "docs"}))
        assert cli.main(["load", str(path)]) == 1
        assert served == []

    def test_list_json(self, catalog, capsys):
        assert cli.main(["list", catalog]) == 0
        summary = json.loads(capsys.readouterr().out)
        tools = {t["name"]: t for t in summary["tools"]}
        assert tools["updateUser"] == {
            "name": "updateUser",
            "method": "POST",
            "path": "/users/{userId}",
            "required": ["path__userId", "body__name", "body__email"],
        }

    def test_list_yaml(self, catalog, capsys):
        assert cli.main(["list", catalog, "--output", "yaml"]) == 0
        summary = yaml.safe_load(capsys.readouterr().out)
        assert summary["name"] == "Users API"
        assert len(summary["tools"]) == 6
