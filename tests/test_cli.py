"""Tests for the csproj-sync command line."""

import json

import pytest

import config as cfg
import csprojsync

UNFORMATTED = (
    '<?xml version="1.0" encoding="utf-8"?>\r\n'
    "<Project>\r\n"
    "  <ItemGroup>\r\n"
    '<Compile Include="Program.cs"/>\r\n'
    "  </ItemGroup>\r\n"
    "</Project>"
)


@pytest.fixture
def run(workspace):
    def _run(*argv):
        return csprojsync.run(["--workspace", str(workspace), *argv])
    return _run


def _project_text(workspace):
    return (workspace / "App" / "App.csproj").read_bytes().decode("utf-8")


class TestParser:
    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            csprojsync.build_parser().parse_args([])

    def test_watch_defaults(self):
        args = csprojsync.build_parser().parse_args(["watch"])
        assert args.poll_interval == 2.0
        assert args.debounce == 1.0
        assert args.func is csprojsync.cmd_watch


class TestAddRemove:
    def test_add_and_remove(self, run, workspace):
        new = workspace / "App" / "Util.cs"
        new.write_text("")
        assert run("add", str(new)) == 0
        assert '<Compile Include="Util.cs" />' in _project_text(workspace)

        assert run("remove", str(new)) == 0
        assert "Util.cs" not in _project_text(workspace)

    def test_malformed_project(self, run, workspace):
        (workspace / "App" / "App.csproj").write_text("<Project>")
        assert run("add", str(workspace / "App" / "Program.cs")) == 1

    def test_bad_settings(self, run, workspace):
        (workspace / cfg.SETTINGS_FILE).write_text('{"autoAdd": "maybe"}')
        assert run("status", str(workspace / "App" / "Program.cs")) == 1


class TestStatus:
    def test_in_project(self, run, workspace):
        assert run("status", str(workspace / "App" / "Program.cs")) == 0

    def test_not_in_project(self, run, workspace):
        assert run("status", str(workspace / "App" / "Other.cs")) == 1


class TestList:
    def test_list(self, run, workspace, capsys):
        assert run("list", str(workspace / "App" / "App.csproj")) == 0
        assert "Program.cs" in capsys.readouterr().out

    def test_missing_project(self, run, workspace):
        assert run("list", str(workspace / "Nope.csproj")) == 1


class TestFormat:
    def test_clean_workspace(self, run):
        assert run("format", "--check") == 0

    def test_check_does_not_write(self, run, workspace):
        (workspace / "App" / "App.csproj").write_bytes(UNFORMATTED.encode("utf-8"))
        assert run("format", "--check") == 1
        assert _project_text(workspace) == UNFORMATTED

    def test_format_rewrites(self, run, workspace):
        (workspace / "App" / "App.csproj").write_bytes(UNFORMATTED.encode("utf-8"))
        assert run("format", str(workspace / "App" / "App.csproj")) == 0
        assert _project_text(workspace) == (
            '<?xml version="1.0" encoding="utf-8"?>\r\n'
            "<Project>\r\n"
            "  <ItemGroup>\r\n"
            '    <Compile Include="Program.cs" />\r\n'
            "  </ItemGroup>\r\n"
            "</Project>\r\n"
        )
        assert run("format", "--check") == 0

    def test_no_projects(self, tmp_path):
        assert csprojsync.run(["--workspace", str(tmp_path), "format"]) == 0


class TestIgnore:
    def test_add_list_clear(self, run, workspace, capsys):
        path = workspace / "App" / "Scratch.cs"
        assert run("ignore", "add", str(path)) == 0
        assert cfg.get_ignored_paths(workspace) == [str(path)]

        capsys.readouterr()
        assert run("ignore", "list") == 0
        assert "Scratch.cs" in capsys.readouterr().out.replace("\n", "")

        assert run("ignore", "clear") == 0
        assert cfg.get_ignored_paths(workspace) == []


class TestConfigure:
    def test_adds_entry_once(self, run, workspace):
        assert run("configure", "--path", "App/App.csproj", "--glob", "web/**") == 0
        assert run("configure", "--path", "App/App.csproj", "--glob", "web/**") == 0
        data = json.loads((workspace / cfg.SETTINGS_FILE).read_text())
        assert data["projectFiles"] == [{"path": "App/App.csproj", "glob": "web/**"}]

    def test_missing_project(self, run):
        assert run("configure", "--path", "Nope/Nope.csproj", "--glob", "**") == 1
