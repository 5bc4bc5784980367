"""Tests for the TypeScript/JavaScript adapters and file filtering."""

from typelint.engine.file_filter import filter_files, has_excluded_extension, is_excluded_path, should_analyze_file
from typelint.engine.typescript_adapter import (
    JavaScriptAdapter, TypeScriptAdapter, default_javascript_adapter, default_typescript_adapter,
)


class TestTypeScriptAdapter:
    """Parsing and position helpers."""

    def setup_method(self):
        """Set up test fixtures."""
        self.adapter = TypeScriptAdapter()

    def test_identity(self):
        assert self.adapter.language_id == "typescript"
        assert ".ts" in self.adapter.file_extensions
        assert default_javascript_adapter.language_id == "javascript"
        assert ".mjs" in default_javascript_adapter.file_extensions
        assert isinstance(default_javascript_adapter, JavaScriptAdapter)

    def test_parse_typescript(self):
        tree = self.adapter.parse("let a: number = 1;")
        assert tree.root_node.type == "program"
        assert not tree.root_node.has_error

    def test_parse_tsx(self):
        tree = self.adapter.parse("const el = <div className='row'>{count}</div>;", file_path="view.tsx")
        assert not tree.root_node.has_error

    def test_parse_javascript(self):
        tree = default_javascript_adapter.parse("if (a < b) { run(); }", file_path="main.js")
        assert not tree.root_node.has_error

    def test_parse_jsx_in_javascript(self):
        text = "const el = <div>{a < b}</div>;"
        tree = default_javascript_adapter.parse(text, file_path="comp.js")
        assert not tree.root_node.has_error
        ops = list(default_javascript_adapter.iter_binary_ops(tree))
        assert [text[slice(*op.range)] for op in ops] == ["a < b"]

    def test_grammar_selection(self):
        assert self.adapter.grammar_for("view.tsx") == "tsx"
        assert self.adapter.grammar_for("main.ts") == "typescript"
        assert default_javascript_adapter.grammar_for("view.jsx") == "javascript"

    def test_iter_binary_ops(self):
        text = "a < b && c + d;"
        ops = list(self.adapter.iter_binary_ops(self.adapter.parse(text)))
        assert [op.operator for op in ops] == ["&&", "<", "+"]
        assert ops[1].left_range == (0, 1)
        assert ops[1].range == (0, 5)

    def test_positions(self):
        text = "let é = 1;\na < b;\n"
        offset = text.encode('utf-8').index(b"a < b")
        assert self.adapter.byte_to_linecol(text, offset) == (2, 1)
        assert self.adapter.line_col_to_byte(text, 2, 1) == offset
        assert self.adapter.node_text(text, offset, offset + 5) == "a < b"

    def test_list_files(self, tmp_path):
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "main.ts").write_text("", encoding="utf-8")
        (tmp_path / "src" / "view.tsx").write_text("", encoding="utf-8")
        (tmp_path / "src" / "notes.md").write_text("", encoding="utf-8")
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "lib.ts").write_text("", encoding="utf-8")
        (tmp_path / ".hidden").mkdir()
        (tmp_path / ".hidden" / "secret.ts").write_text("", encoding="utf-8")

        found = default_typescript_adapter.list_files([str(tmp_path)])
        assert found == [str(tmp_path / "src" / "main.ts"), str(tmp_path / "src" / "view.tsx")]


class TestFileFilter:
    """Excluded directories and extensions."""

    def test_excluded_directories(self):
        assert is_excluded_path("/repo/node_modules/pkg/index.ts")
        assert is_excluded_path("C:\\repo\\dist\\bundle.js")
        assert not is_excluded_path("/repo/src/distance.ts")

    def test_excluded_extensions(self):
        assert has_excluded_extension("/repo/types/global.d.ts")
        assert has_excluded_extension("/repo/vendor.min.js", "javascript")
        assert not has_excluded_extension("/repo/src/main.ts")

    def test_should_analyze_file(self):
        files = ["/repo/src/main.ts", "/repo/build/main.ts", "/repo/src/types.d.ts"]
        assert should_analyze_file(files[0])
        assert filter_files(files, "typescript") == ["/repo/src/main.ts"]
