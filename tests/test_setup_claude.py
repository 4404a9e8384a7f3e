"""
Tests for registering the MCP server in claude_desktop_config.json.
"""

import json

from form_discovery.setup_claude import SERVER_NAME, register_server


class TestRegisterServer:

    def test_creates_config(self, tmp_path):
        config_file = tmp_path / "Claude" / "claude_desktop_config.json"

        assert register_server(config_file, "/usr/bin/form-discovery-mcp") is True

        data = json.loads(config_file.read_text(encoding="utf-8"))
        assert data["mcpServers"][SERVER_NAME] == {"command": "/usr/bin/form-discovery-mcp"}

    def test_keeps_other_servers(self, tmp_path):
        config_file = tmp_path / "claude_desktop_config.json"
        config_file.write_text(json.dumps({"mcpServers": {"other": {"command": "other-mcp"}}, "theme": "dark"}))

        register_server(config_file, "form-discovery-mcp")

        data = json.loads(config_file.read_text(encoding="utf-8"))
        assert data["mcpServers"]["other"] == {"command": "other-mcp"}
        assert data["mcpServers"][SERVER_NAME] == {"command": "form-discovery-mcp"}
        assert data["theme"] == "dark"

    def test_replaces_invalid_config(self, tmp_path):
        config_file = tmp_path / "claude_desktop_config.json"
        config_file.write_text("{not json")

        assert register_server(config_file, "form-discovery-mcp") is True
        assert json.loads(config_file.read_text(encoding="utf-8"))["mcpServers"][SERVER_NAME]
