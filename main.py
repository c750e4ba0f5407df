"""
Markup tools - parse, render and convert chat markup from the command line.
"""

import argparse
import json
import logging
import os
import sys
from typing import List, Optional

from internal.config.manager import ConfigManager
from lib.logging_utils import initLogging
from lib.markup import (
    Dialect,
    HTMLRenderer,
    HTMLToMarkdownConverter,
    MarkupParser,
    MarkupRuleError,
    RenderCapabilities,
    get_rules,
)

# Configure basic logging first
logging.basicConfig(format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.WARNING)
logger = logging.getLogger(__name__)


class MarkupTool:
    """Wires configuration, parser, renderer and converter together."""

    def __init__(self, configPath: Optional[str] = None, configDirs: Optional[List[str]] = None):
        self.configManager = ConfigManager(configPath, configDirs)
        initLogging(self.configManager.getLoggingConfig())

    def parse(self, text: str, dialect: Optional[Dialect] = None) -> str:
        """Parse text and dump the AST as JSON."""
        nodes = MarkupParser(get_rules(dialect or self.configManager.getDialect())).parse(text)
        return json.dumps([node.to_dict() for node in nodes], indent=2, ensure_ascii=False)

    def render(
        self,
        text: str,
        dialect: Optional[Dialect] = None,
        noInlineImages: bool = False,
        escapeHtml: bool = False,
    ) -> str:
        """Parse text and render it to HTML."""
        capabilities = self.configManager.getRenderCapabilities()
        capabilities = RenderCapabilities(
            supports_inline_images=capabilities.supports_inline_images and not noInlineImages,
            escape_html=capabilities.escape_html or escapeHtml,
        )
        nodes = MarkupParser(get_rules(dialect or self.configManager.getDialect())).parse(text)
        return HTMLRenderer(capabilities).render(nodes)

    def toMarkdown(self, markup: str) -> str:
        """Convert HTML markup to chat markdown."""
        return HTMLToMarkdownConverter(self.configManager.getConverterTemplates()).convert(markup)


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Parse, render and convert chat markup")
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help="Path to configuration file (default: built-in defaults)",
    )
    parser.add_argument(
        "--config-dir",
        action="append",
        help="Directory to search for .toml config files recursively (can be specified multiple times)",
    )
    parser.add_argument(
        "--print-config",
        action="store_true",
        help="Pretty-print loaded configuration and exit",
    )

    subparsers = parser.add_subparsers(dest="command")
    dialects = [dialect.value for dialect in Dialect]

    parseCommand = subparsers.add_parser("parse", help="Print the AST of markup text as JSON")
    parseCommand.add_argument("--dialect", choices=dialects, help="Markup dialect (default: from config)")
    parseCommand.add_argument("file", nargs="?", help="Input file (default: stdin)")

    renderCommand = subparsers.add_parser("render", help="Render markup text to HTML")
    renderCommand.add_argument("--dialect", choices=dialects, help="Markup dialect (default: from config)")
    renderCommand.add_argument("--no-inline-images", action="store_true", help="Render images as links")
    renderCommand.add_argument("--escape-html", action="store_true", help="Escape HTML special characters in text")
    renderCommand.add_argument("file", nargs="?", help="Input file (default: stdin)")

    convertCommand = subparsers.add_parser("to-markdown", help="Convert HTML markup to chat markdown")
    convertCommand.add_argument("file", nargs="?", help="Input file (default: stdin)")

    args = parser.parse_args(argv)
    if args.command is None and not args.print_config:
        parser.error("a command is required")

    if args.config is not None:
        args.config = os.path.abspath(args.config)
    if args.config_dir:
        args.config_dir = [os.path.abspath(dir_path) for dir_path in args.config_dir]

    return args


def readInput(path: Optional[str]) -> str:
    """Read the whole input file, or stdin when no file is given."""
    if path is None:
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def prettyPrintConfig(configManager: ConfigManager):
    """Pretty-print the loaded configuration."""
    print(json.dumps(configManager.config, indent=2, ensure_ascii=False, sort_keys=True))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    tool = MarkupTool(configPath=args.config, configDirs=args.config_dir)

    if args.print_config:
        prettyPrintConfig(tool.configManager)
        return 0

    try:
        text = readInput(args.file)
    except OSError as e:
        logger.error(f"Failed to read input: {e}")
        return 1

    dialect = Dialect(args.dialect) if getattr(args, "dialect", None) else None

    try:
        if args.command == "parse":
            output = tool.parse(text, dialect)
        elif args.command == "render":
            output = tool.render(text, dialect, args.no_inline_images, args.escape_html)
        else:
            output = tool.toMarkdown(text)
    except MarkupRuleError as e:
        logger.error(f"Failed to process input: {e}")
        logger.exception(e)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
