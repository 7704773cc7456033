"""Shared fixtures: a throwaway workspace with one project file."""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config as cfg  # noqa: E402


CRLF_PROJECT = (
    '<?xml version="1.0" encoding="utf-8"?>\r\n'
    '<Project ToolsVersion="15.0" xmlns="http://schemas.microsoft.com/developer/msbuild/2003">\r\n'
    "  <PropertyGroup>\r\n"
    "    <OutputType>Exe</OutputType>\r\n"
    "  </PropertyGroup>\r\n"
    "  <ItemGroup>\r\n"
    '    <Compile Include="Program.cs" />\r\n'
    "  </ItemGroup>\r\n"
    "</Project>\r\n"
)


@pytest.fixture
def workspace(tmp_path):
    """Workspace with App/App.csproj and App/Program.cs."""
    app = tmp_path / "App"
    app.mkdir()
    (app / "App.csproj").write_bytes(CRLF_PROJECT.encode("utf-8"))
    (app / "Program.cs").write_text("class Program {}\n")
    return tmp_path


@pytest.fixture
def write_settings(workspace):
    """Write .csproj-sync.json into the workspace."""
    def _write(**data):
        import json
        (workspace / cfg.SETTINGS_FILE).write_text(json.dumps(data))
    return _write
