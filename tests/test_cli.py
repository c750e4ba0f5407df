"""
Tests for the markup command line tool.

The CLI is driven through ``main(argv)`` with stdin, stdout and stderr
captured by pytest.
"""

import io
import json
import logging

import pytest

from main import MarkupTool, main, parse_arguments

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def restoreRootLogger():
    """Restore root logger handlers and level replaced by initLogging."""
    rootLogger = logging.getLogger()
    handlers = rootLogger.handlers[:]
    level = rootLogger.level
    yield
    rootLogger.handlers = handlers
    rootLogger.setLevel(level)


@pytest.fixture
def stdin(monkeypatch):
    """Replace stdin with the given text."""

    def _setStdin(text: str):
        monkeypatch.setattr("sys.stdin", io.StringIO(text))

    return _setStdin


@pytest.fixture
def constrainedConfig(tmp_path):
    """Config file selecting the chat dialect without inline images."""
    configPath = tmp_path / "config.toml"
    configPath.write_text('[markup]\ndialect = "constrained"\nsupports-inline-images = false\n')
    return configPath


# ============================================================================
# Argument Parsing Tests
# ============================================================================


class TestArgumentParsing:
    """Test command line argument handling."""

    def testCommandRequired(self):
        """Test a command is required unless the config is printed."""
        with pytest.raises(SystemExit) as excInfo:
            parse_arguments([])
        assert excInfo.value.code == 2

    def testUnknownDialectRejected(self):
        """Test --dialect only accepts known dialects."""
        with pytest.raises(SystemExit):
            parse_arguments(["parse", "--dialect", "commonmark"])

    def testConfigPathsMadeAbsolute(self, tmp_path):
        """Test config paths are resolved to absolute paths."""
        args = parse_arguments(["-c", "config.toml", "--config-dir", "a", "--config-dir", "b", "to-markdown"])

        assert args.config.endswith("config.toml")
        assert args.config.startswith("/")
        assert len(args.config_dir) == 2
        assert all(path.startswith("/") for path in args.config_dir)


# ============================================================================
# Command Tests
# ============================================================================


class TestParseCommand:
    """Test the parse command."""

    def testParseFromStdin(self, stdin, capsys):
        """Test the AST of stdin is printed as JSON."""
        stdin("Hello **world**")

        assert main(["parse"]) == 0

        nodes = json.loads(capsys.readouterr().out)
        assert nodes[0]["type"] == "paragraph"
        assert [child["type"] for child in nodes[0]["children"]] == ["text", "bold"]

    def testParseFromFile(self, tmp_path, capsys):
        """Test input is read from the given file."""
        inputPath = tmp_path / "input.md"
        inputPath.write_text("# Title", encoding="utf-8")

        assert main(["parse", str(inputPath)]) == 0

        nodes = json.loads(capsys.readouterr().out)
        assert nodes[0]["type"] == "heading"

    def testMissingFile(self, tmp_path, capsys):
        """Test a missing input file fails with exit code 1."""
        assert main(["parse", str(tmp_path / "missing.md")]) == 1
        assert capsys.readouterr().out == ""

    def testDialectOption(self, stdin, capsys):
        """Test --dialect overrides the configured dialect."""
        stdin("# not heading")

        assert main(["parse", "--dialect", "constrained"]) == 0

        nodes = json.loads(capsys.readouterr().out)
        assert nodes == [{"type": "text", "source": "# not heading", "content": "# not heading"}]


class TestRenderCommand:
    """Test the render command."""

    def testRender(self, stdin, capsys):
        """Test markup is rendered to HTML."""
        stdin("Hello **world**")

        assert main(["render"]) == 0

        assert capsys.readouterr().out == "<p>Hello <b>world</b></p>\n"

    def testNoInlineImages(self, stdin, capsys):
        """Test images become links with --no-inline-images."""
        stdin("![alt](http://x/i.png)")

        assert main(["render", "--no-inline-images"]) == 0

        out = capsys.readouterr().out
        assert '<a href="http://x/i.png">alt</a>' in out
        assert "<img" not in out

    def testInlineImagesByDefault(self, stdin, capsys):
        """Test images are inline by default."""
        stdin("![alt](http://x/i.png)")

        assert main(["render"]) == 0

        assert '<img src="http://x/i.png" alt="alt">' in capsys.readouterr().out

    def testConfigFile(self, stdin, capsys, constrainedConfig):
        """Test dialect and capabilities come from the config file."""
        stdin("__italic__ ![alt](http://x/i.png)")

        assert main(["-c", str(constrainedConfig), "render"]) == 0

        out = capsys.readouterr().out
        assert out.startswith("<i>italic</i>")
        assert "<img" not in out


class TestToMarkdownCommand:
    """Test the to-markdown command."""

    def testConvert(self, stdin, capsys):
        """Test HTML is converted to chat markdown."""
        stdin("<b>bold</b> and <a href='http://x'>link</a>")

        assert main(["to-markdown"]) == 0

        assert capsys.readouterr().out == "**bold** and [link](http://x)\n"

    def testConfiguredTemplate(self, stdin, capsys, tmp_path):
        """Test templates from the config replace the built-in ones."""
        configPath = tmp_path / "config.toml"
        configPath.write_text('[converter.templates]\nb = "*#text#*"\n')
        stdin("<b>bold</b>")

        assert main(["-c", str(configPath), "to-markdown"]) == 0

        assert capsys.readouterr().out == "*bold*\n"


class TestPrintConfig:
    """Test --print-config."""

    def testPrintConfig(self, capsys, constrainedConfig):
        """Test the merged configuration is printed as JSON."""
        assert main(["-c", str(constrainedConfig), "--print-config"]) == 0

        config = json.loads(capsys.readouterr().out)
        assert config["markup"]["dialect"] == "constrained"
        assert config["logging"]["level"] == "WARNING"


class TestMarkupTool:
    """Test the tool object used by the commands."""

    def testDefaults(self):
        """Test the tool works with built-in defaults."""
        tool = MarkupTool()

        assert tool.render("*em*") == "<p><i>em</i></p>"
        assert tool.toMarkdown("<i>em</i>") == "__em__"
