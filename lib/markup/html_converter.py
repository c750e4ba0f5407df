"""
HTML to chat markdown converter

Converts rendered (and possibly hand-edited) HTML markup back into chat
markdown. The markup is parsed with BeautifulSoup and walked depth-first,
children before their parent; each recognized element is mapped back to
markdown through a template table.
"""

import logging
import re
from typing import Dict, Mapping, Optional, Union

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PageElement, PreformattedString, Tag

from .renderer import SPOILER_ENTITY_TYPE

logger = logging.getLogger(__name__)

# Paired HTML element anywhere in the text
HTML_PATTERN = re.compile(r"<\s*(\w+)[^>]*>((\s*(\w+)[^>]*)|(.*))</\s*(\w+)[^/>]*>", re.MULTILINE)

LANGUAGE_CLASS_PATTERN = re.compile(r"^language-(.+)$")

# Markup cleanup applied before parsing, in order
PREPROCESS_SUBSTITUTIONS = (
    (re.compile(r"&gt;"), ">"),
    (re.compile(r"&lt;"), "<"),
    (re.compile(r"&nbsp;"), " "),
    (re.compile(r"<div><br([^>]*)?></div>"), "\n"),
    (re.compile(r"<br([^>]*)?>"), "\n"),
)

# Template table for the constrained chat dialect. Tag templates are keyed by
# lowercase tag name, the remaining entries drive the structural elements.
TELEGRAM_TEMPLATES: Dict[str, str] = {
    "b": "**#text#**",
    "strong": "**#text#**",
    "i": "__#text#__",
    "em": "__#text#__",
    "ins": "_#text#_",
    "u": "_#text#_",
    "s": "~~#text#~~",
    "strike": "~~#text#~~",
    "del": "~~#text#~~",
    "code": "`#text#`",
    "pre_code": "```#language#\n#text#\n```\n",
    "blockquote_newline": ">#text#",
    "blockquote_inline": ">>#text#<<",
    "link": "[#text#](#url#)",
    "spoiler": "||#text#||",
    "code_title": "code-title",
}

# Entries of the template table that are not tag names
FEATURE_TEMPLATE_KEYS = frozenset(
    {"pre_code", "blockquote_newline", "blockquote_inline", "link", "spoiler", "code_title"}
)


def is_html(text: str) -> bool:
    """
    Check whether text contains a paired HTML element.

    Args:
        text: Text to check

    Returns:
        True if an opening and a closing tag were found
    """
    return HTML_PATTERN.search(text) is not None


def _fill(template: str, placeholder: str, value: str) -> str:
    """Replace the first occurrence of a placeholder."""
    return template.replace(placeholder, value, 1)


class HTMLToMarkdownConverter:
    """
    Converter from HTML markup to chat markdown.

    The template table must be kept in step with the renderer: every element
    the renderer produces for a chat feature needs a template here, otherwise
    the feature is lost on the way back.
    """

    def __init__(self, templates: Optional[Mapping[str, str]] = None):
        """
        Initialize the converter.

        Args:
            templates: Template table, defaults to ``TELEGRAM_TEMPLATES``
        """
        self.templates: Dict[str, str] = dict(TELEGRAM_TEMPLATES if templates is None else templates)

    def convert(self, markup: Union[str, BeautifulSoup]) -> str:
        """
        Convert HTML markup to markdown.

        Args:
            markup: HTML string, or an already parsed tree

        Returns:
            Markdown text
        """
        if isinstance(markup, str):
            markup = BeautifulSoup(self.preprocess(markup), "html.parser")

        result = ""
        for node in list(markup.children):
            result += self._convert_node(node, result)
        return result

    @staticmethod
    def preprocess(markup: str) -> str:
        """Decode entities and turn line break elements into newlines."""
        for pattern, replacement in PREPROCESS_SUBSTITUTIONS:
            markup = pattern.sub(replacement, markup)
        return markup

    def _template(self, key: str) -> str:
        template = self.templates.get(key)
        if template is None:
            logger.debug(f"No template for {key}, using the default one")
            template = TELEGRAM_TEMPLATES[key]
        return template

    def _convert_node(self, node: PageElement, result: str) -> str:
        """
        Convert one node and its subtree.

        Args:
            node: Node to convert
            result: Output produced so far by every node preceding this one

        Returns:
            Markdown for the node
        """
        if isinstance(node, PreformattedString):
            # Comments, CDATA, doctypes, processing instructions
            return ""
        if isinstance(node, NavigableString):
            # Parsed trees keep &nbsp; as U+00A0
            return str(node).replace("\u00a0", " ")
        if not isinstance(node, Tag):
            return ""

        text = ""
        for child in node.children:
            text += self._convert_node(child, result + text)
        name = node.name.lower()

        if name == "br":
            return "\n"

        if name not in FEATURE_TEMPLATE_KEYS and name in self.templates:
            if name == "code" and node.parent is not None and node.parent.name == "pre":
                return text
            return _fill(self.templates[name], "#text#", text)

        if name == "blockquote":
            return self._convert_blockquote(text)
        if name == "a":
            return self._convert_link(node, text)
        if name == "span" and node.get("data-entity-type") == SPOILER_ENTITY_TYPE:
            return _fill(self._template("spoiler"), "#text#", text)
        if name == "pre":
            return self._convert_pre(node, text, result)
        if name == "p" and self._template("code_title") in node.get("class", []):
            return ""

        return text

    def _convert_blockquote(self, text: str) -> str:
        lines = text.split("\n")
        if len(lines) == 1:
            return _fill(self._template("blockquote_inline"), "#text#", lines[0])

        template = self._template("blockquote_newline")
        return "".join(_fill(template, "#text#", line) + "\n" for line in lines if line)

    def _convert_link(self, node: Tag, text: str) -> str:
        if not text:
            for child in node.children:
                if isinstance(child, Tag) and child.name == "img" and child.get("alt"):
                    text = child["alt"]
                    break

        href = node.get("href", "")
        return _fill(_fill(self._template("link"), "#text#", text), "#url#", href)

    def _convert_pre(self, node: Tag, text: str, result: str) -> str:
        language = node.get("data-language", "")
        if not language:
            code = node.find("code")
            if code is not None:
                for class_name in code.get("class", []):
                    language_match = LANGUAGE_CLASS_PATTERN.match(class_name)
                    if language_match:
                        language = language_match.group(1)
                        break

        markdown = _fill(_fill(self._template("pre_code"), "#text#", text), "#language#", language)
        if result and not result.endswith("\n"):
            markdown = "\n" + markdown
        return markdown


def html_to_markdown(markup: Union[str, BeautifulSoup], templates: Optional[Mapping[str, str]] = None) -> str:
    """
    Convert HTML markup to chat markdown.

    Args:
        markup: HTML string or parsed tree
        templates: Template table, defaults to ``TELEGRAM_TEMPLATES``

    Returns:
        Markdown text
    """
    return HTMLToMarkdownConverter(templates).convert(markup)
