"""
Markup round-trip library

Parses markdown-like text into a typed AST, renders the AST to HTML markup
and converts rendered markup back into chat markdown.

This module provides:
- Ordered rule tables for two dialects (permissive markdown, constrained chat markdown)
- A recursive rule-driven parser with reference link resolution
- HTML rendering of the AST
- HTML to chat markdown conversion for round-trip editing

Usage:
    from lib.markup import Dialect, parse_markup, render_markup, html_to_markdown

    nodes = parse_markup("**Hello** [world](https://example.com)", Dialect.CONSTRAINED)
    html = render_markup(nodes)
    markdown = html_to_markdown(html)
"""

from .ast_nodes import *
from .html_converter import TELEGRAM_TEMPLATES, HTMLToMarkdownConverter, html_to_markdown, is_html
from .parser import MarkupParser, MarkupRuleError, ParseContext, parse_markup
from .renderer import SPOILER_ENTITY_TYPE, HTMLRenderer, RenderCapabilities, render_markup
from .rules import EMOJI_SHORTCODES, Dialect, Rule, RuleType, SubstitutionRule, get_rules

__version__ = "1.0.0"
__all__ = [
    "Dialect",
    "Rule",
    "RuleType",
    "SubstitutionRule",
    "EMOJI_SHORTCODES",
    "get_rules",
    "MarkupParser",
    "MarkupRuleError",
    "ParseContext",
    "parse_markup",
    "HTMLRenderer",
    "RenderCapabilities",
    "SPOILER_ENTITY_TYPE",
    "render_markup",
    "HTMLToMarkdownConverter",
    "TELEGRAM_TEMPLATES",
    "html_to_markdown",
    "is_html",
    # AST Nodes
    "NodeType",
    "Alignment",
    "MDNode",
    "MDLeaf",
    "MDText",
    "MDHtml",
    "MDBlock",
    "MDList",
    "MDLink",
    "MDCodeBlock",
    "MDHeading",
    "MDTable",
    "MDTableCell",
]
