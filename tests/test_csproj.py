"""Tests for the Csproj model: structural edits and formatting-preserving output."""

import codecs
import time

import pytest

from conftest import CRLF_PROJECT
from csproj import Csproj
from xmltree import ParseError
from xmlutils import Indent

PROLOG = '<?xml version="1.0" encoding="utf-8"?>'

CSP_ORIGINAL = PROLOG + "<Project />"
CSP_MODIFIED = (
    PROLOG
    + "<Project>"
    + '<ItemGroup><Compile Include="src\\Test1.cs" /></ItemGroup>'
    + '<ItemGroup><TypescriptCompile Include="src\\Test2.ts" /></ItemGroup>'
    + '<ItemGroup><Content Include="src\\Test3.html" /></ItemGroup>'
    + "</Project>"
)


def _lines(*lines, newline="\n"):
    return newline.join(lines) + newline


COMMENTED_PROJECT = _lines(
    PROLOG,
    '<Project Sdk="Microsoft.NET.Sdk">',
    "  <!-- build settings -->",
    "  <PropertyGroup Condition=\"'$(Configuration)' == 'Debug'\">",
    "    <DefineConstants>DEBUG;TRACE</DefineConstants>",
    "  </PropertyGroup>",
    "  <ItemGroup Condition=\"'$(OS)' != 'Windows_NT'\">",
    '    <Compile Include="Unix.cs" />',
    "    <!-- generated -->",
    "  </ItemGroup>",
    "</Project>",
)

TARGET_PROJECT = _lines(
    PROLOG,
    "<Project>",
    "  <ItemGroup>",
    '    <Compile Include="A.cs" />',
    "  </ItemGroup>",
    '  <Target Name="Gen">',
    "    <ItemGroup>",
    '      <Compile Include="@(Generated)" />',
    "    </ItemGroup>",
    "  </Target>",
    "</Project>",
    newline="\r\n",
)


@pytest.fixture
def make_project(tmp_path):
    """Write a project file and open it."""
    def _make(text, name="test.csproj", bom=False):
        path = tmp_path / name
        data = text.encode("utf-8")
        if bom:
            data = codecs.BOM_UTF8 + data
        path.write_bytes(data)
        return Csproj.open(path)
    return _make


def _add_three(csproj, root):
    csproj.add_item("Compile", root / "src" / "Test1.cs")
    csproj.add_item("TypescriptCompile", root / "src" / "Test2.ts")
    csproj.add_item("Content", root / "src" / "Test3.html")


class TestOpen:
    def test_name_and_path(self, make_project, tmp_path):
        csproj = make_project(CSP_ORIGINAL, name="App.csproj")
        assert csproj.name == "App.csproj"
        assert csproj.path == tmp_path / "App.csproj"

    def test_indent_is_detected_once(self, make_project):
        csproj = make_project(CRLF_PROJECT)
        assert csproj.indent == Indent(newline="\r\n", whitespace="  ")

    def test_malformed_xml(self, make_project):
        with pytest.raises(ParseError) as excinfo:
            make_project("<Project><ItemGroup></Project>")
        assert "test.csproj" in str(excinfo.value)

    def test_root_must_be_project(self, make_project):
        with pytest.raises(ParseError):
            make_project(PROLOG + "<Solution />")

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Csproj.open(tmp_path / "missing.csproj")


class TestCompactDocument:
    def test_add_items(self, make_project, tmp_path):
        csproj = make_project(CSP_ORIGINAL)
        _add_three(csproj, tmp_path)
        assert csproj.serialize() == CSP_MODIFIED

    def test_remove_items(self, make_project, tmp_path):
        csproj = make_project(CSP_MODIFIED)
        csproj.remove_item(tmp_path / "src" / "Test1.cs")
        csproj.remove_item(tmp_path / "src" / "Test2.ts")
        csproj.remove_item(tmp_path / "src" / "Test3.html")
        assert csproj.serialize() == CSP_ORIGINAL

    def test_save_to_other_path(self, make_project, tmp_path):
        csproj = make_project(CSP_ORIGINAL)
        dest = tmp_path / "test_identical.csproj"
        csproj.save(dest)
        assert dest.read_bytes().decode("utf-8") == CSP_ORIGINAL
        assert (tmp_path / "test.csproj").read_bytes().decode("utf-8") == CSP_ORIGINAL


class TestIndentedDocument:
    def test_add_items(self, make_project, tmp_path):
        csproj = make_project(PROLOG + "\n<Project />\n")
        _add_three(csproj, tmp_path)
        assert csproj.serialize() == _lines(
            PROLOG,
            "<Project>",
            "  <ItemGroup>",
            '    <Compile Include="src\\Test1.cs" />',
            "  </ItemGroup>",
            "  <ItemGroup>",
            '    <TypescriptCompile Include="src\\Test2.ts" />',
            "  </ItemGroup>",
            "  <ItemGroup>",
            '    <Content Include="src\\Test3.html" />',
            "  </ItemGroup>",
            "</Project>",
        )

    def test_add_then_remove_restores_document(self, make_project, tmp_path):
        original = PROLOG + "\n<Project />\n"
        csproj = make_project(original)
        _add_three(csproj, tmp_path)
        csproj.serialize()
        csproj.remove_item(tmp_path / "src" / "Test1.cs")
        csproj.remove_item(tmp_path / "src" / "Test2.ts")
        csproj.remove_item(tmp_path / "src" / "Test3.html")
        assert csproj.serialize() == original

    def test_trailing_newlines_collapse_to_one(self, make_project):
        csproj = make_project(PROLOG + "\n<Project />\n\n\n")
        assert csproj.serialize() == PROLOG + "\n<Project />\n"


class TestCrlfDocument:
    def test_unchanged_document_round_trips(self, make_project):
        csproj = make_project(CRLF_PROJECT)
        assert csproj.serialize() == CRLF_PROJECT

    def test_serialize_is_idempotent(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        csproj.add_item("Compile", tmp_path / "Foo.cs")
        first = csproj.serialize()
        assert csproj.serialize() == first

    @pytest.mark.parametrize("text", [CRLF_PROJECT, COMMENTED_PROJECT], ids=["crlf", "comments"])
    def test_saved_output_reparses_to_same_text(self, make_project, tmp_path, text):
        csproj = make_project(text)
        csproj.add_item("Compile", tmp_path / "Foo.cs")
        csproj.save()
        first = (tmp_path / "test.csproj").read_bytes()

        reopened = Csproj.open(tmp_path / "test.csproj")
        assert reopened.serialize().encode("utf-8") == first

    def test_comments_and_conditions_round_trip(self, make_project):
        csproj = make_project(COMMENTED_PROJECT)
        assert csproj.serialize() == COMMENTED_PROJECT

    def test_add_reuses_group_of_same_type(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        csproj.add_item("Compile", tmp_path / "Foo.cs")
        expected = CRLF_PROJECT.replace(
            '    <Compile Include="Program.cs" />\r\n',
            '    <Compile Include="Program.cs" />\r\n    <Compile Include="Foo.cs" />\r\n',
        )
        assert csproj.serialize() == expected

    def test_add_other_type_creates_group(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        csproj.add_item("Content", tmp_path / "wwwroot" / "index.html")
        expected = CRLF_PROJECT.replace(
            "</Project>\r\n",
            '  <ItemGroup>\r\n    <Content Include="wwwroot\\index.html" />\r\n  </ItemGroup>\r\n</Project>\r\n',
        )
        assert csproj.serialize() == expected

    def test_add_then_remove_is_identity(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        csproj.add_item("Compile", tmp_path / "Foo.cs")
        assert csproj.remove_item(tmp_path / "Foo.cs")
        assert csproj.serialize() == CRLF_PROJECT

    def test_removing_last_item_prunes_group(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        assert csproj.remove_item(tmp_path / "Program.cs")
        assert csproj.serialize() == _lines(
            PROLOG,
            '<Project ToolsVersion="15.0" xmlns="http://schemas.microsoft.com/developer/msbuild/2003">',
            "  <PropertyGroup>",
            "    <OutputType>Exe</OutputType>",
            "  </PropertyGroup>",
            "</Project>",
            newline="\r\n",
        )

    def test_save_writes_back(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        csproj.add_item("Compile", tmp_path / "Foo.cs")
        csproj.save()
        assert b'<Compile Include="Foo.cs" />\r\n' in (tmp_path / "test.csproj").read_bytes()


class TestItems:
    def test_has_item(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        assert csproj.has_item(tmp_path / "Program.cs")
        assert not csproj.has_item(tmp_path / "Other.cs")

    def test_has_item_after_add(self, make_project, tmp_path):
        csproj = make_project(CSP_ORIGINAL)
        csproj.add_item("Compile", tmp_path / "src" / "A.cs")
        assert csproj.has_item(tmp_path / "src" / "A.cs")

    def test_remove_missing_item(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        assert not csproj.remove_item(tmp_path / "Nope.cs")
        assert csproj.serialize() == CRLF_PROJECT

    def test_remove_directory(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        csproj.add_item("Compile", tmp_path / "src" / "A.cs")
        csproj.add_item("Compile", tmp_path / "src" / "sub" / "B.cs")
        csproj.add_item("Compile", tmp_path / "srcx" / "C.cs")
        assert csproj.remove_item(tmp_path / "src", directory=True)
        assert csproj.items() == [("Compile", "Program.cs"), ("Compile", "srcx\\C.cs")]

    def test_remove_project_directory_removes_everything(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        csproj.add_item("Content", tmp_path / "a.txt")
        assert csproj.remove_item(tmp_path, directory=True)
        assert csproj.items() == []

    def test_remove_project_directory_keeps_non_local_items(self, make_project, tmp_path):
        csproj = make_project(_lines(
            PROLOG,
            "<Project>",
            "  <ItemGroup>",
            '    <Compile Include="..\\Shared\\X.cs" />',
            '    <Compile Include="$(Gen)\\a.cs" />',
            '    <Compile Include="Local.cs" />',
            '    <Content Include="wwwroot\\index.html" />',
            '    <PackageReference Include="Newtonsoft.Json" Version="13.0.3" />',
            '    <ProjectReference Include="..\\Lib\\Lib.csproj" />',
            "  </ItemGroup>",
            "</Project>",
        ))
        assert csproj.remove_item(tmp_path, directory=True)
        assert csproj.items() == [
            ("Compile", "..\\Shared\\X.cs"),
            ("Compile", "$(Gen)\\a.cs"),
            ("PackageReference", "Newtonsoft.Json"),
            ("ProjectReference", "..\\Lib\\Lib.csproj"),
        ]

    def test_items_inside_targets_are_ignored(self, make_project, tmp_path):
        csproj = make_project(TARGET_PROJECT)
        assert csproj.items() == [("Compile", "A.cs")]
        assert not csproj.has_item(tmp_path / "@(Generated)")

    def test_add_skips_groups_inside_targets(self, make_project, tmp_path):
        csproj = make_project(TARGET_PROJECT)
        csproj.add_item("Compile", tmp_path / "B.cs")
        assert csproj.serialize() == TARGET_PROJECT.replace(
            '    <Compile Include="A.cs" />\r\n',
            '    <Compile Include="A.cs" />\r\n    <Compile Include="B.cs" />\r\n',
        )

    def test_items_in_document_order(self, make_project, tmp_path):
        csproj = make_project(CSP_MODIFIED)
        assert csproj.items() == [
            ("Compile", "src\\Test1.cs"),
            ("TypescriptCompile", "src\\Test2.ts"),
            ("Content", "src\\Test3.html"),
        ]


class TestEncoding:
    def test_bom_is_preserved(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT, bom=True)
        csproj.add_item("Compile", tmp_path / "Foo.cs")
        csproj.save()
        data = (tmp_path / "test.csproj").read_bytes()
        assert data.startswith(codecs.BOM_UTF8)
        assert data.count(codecs.BOM_UTF8) == 1

    def test_no_bom_added(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        csproj.save()
        assert (tmp_path / "test.csproj").read_bytes() == CRLF_PROJECT.encode("utf-8")

    def test_non_ascii_include(self, make_project, tmp_path):
        csproj = make_project(CRLF_PROJECT)
        csproj.add_item("Content", tmp_path / "Données.txt")
        csproj.save()
        reopened = Csproj.open(tmp_path / "test.csproj")
        assert reopened.has_item(tmp_path / "Données.txt")


class TestLargeDocument:
    def test_prettify_scales_linearly(self, make_project, tmp_path):
        count = 5000
        csproj = make_project(_lines(
            PROLOG,
            "<Project>",
            "  <ItemGroup>",
            *(f'    <Compile Include="src\\File{i}.cs" />' for i in range(count)),
            "  </ItemGroup>",
            "</Project>",
        ))
        csproj.add_item("Compile", tmp_path / "src" / "Extra.cs")

        start = time.perf_counter()
        text = csproj.serialize()
        elapsed = time.perf_counter() - start

        assert text.count("<Compile ") == count + 1
        assert text.count('\n    <Compile Include="src\\') == count + 1
        assert elapsed < 1.5
