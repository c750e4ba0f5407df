"""
Rule tables for the markup parser

A dialect is nothing more than an ordered sequence of rules. The parser tries
the rules of a dialect in order at the current input position and the first
rule whose pattern matches wins, so rule order is part of each dialect's
contract. Two dialects are provided:

- ``Dialect.PERMISSIVE``: markdown with headings, lists, tables, HTML
  passthrough, reference links, autolinks and emoji shortcodes
- ``Dialect.CONSTRAINED``: chat markdown with code, quotes, bold, italic,
  underline, strikethrough, spoiler, links and images only

Tables are built lazily on first use and shared by the whole process.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from threading import RLock
from typing import Callable, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


class Dialect(Enum):
    """Supported markup dialects."""

    PERMISSIVE = "permissive"
    CONSTRAINED = "constrained"


class RuleType(Enum):
    """Token kinds recognized by the rule tables."""

    SPACE = "space"
    NEW_LINE = "new_line"
    LINE_BREAK = "br"
    FENCED_CODE = "fences"
    INLINE_CODE = "monospace"
    HEADING = "heading"
    UNDERLINE_HEADING = "lheading"
    HORIZONTAL_RULE = "hr"
    BLOCKQUOTE = "blockquote"
    INLINE_BLOCKQUOTE = "blockquote_inline"
    LIST = "list"
    HTML = "html"
    NP_TABLE = "np_table"
    DEFINITION = "def"
    TABLE = "table"
    PARAGRAPH = "paragraph"
    ESCAPE = "escape"
    IMAGE = "image"
    AUTO_LINK = "auto_link"
    EMOJI = "emoji"
    URL = "url"
    LINK = "link"
    REFERENCE_LINK = "ref_link"
    ID_LINK = "id_link"
    TAG = "tag"
    BOLD = "bold"
    ITALIC = "italic"
    STRIKETHROUGH = "strike"
    HIGHLIGHT = "mark"
    UNDERLINE = "underline"
    SPOILER = "spoiler"
    SUBSCRIPT = "sub"
    SUPERSCRIPT = "sup"
    INLINE_TEXT = "text_inline"
    TEXT = "text"


@dataclass(frozen=True)
class Rule:
    """
    A single grammar rule.

    Attributes:
        rule_type: Token kind produced when the rule matches
        pattern: Compiled pattern matched against the start of the remaining input
        block_level_only: Only tried when parsing at the top of the document
    """

    rule_type: RuleType
    pattern: re.Pattern
    block_level_only: bool = False

    def match(self, source: str) -> Optional[re.Match]:
        """Match the rule against the start of ``source``."""
        return self.pattern.match(source)


@dataclass(frozen=True)
class SubstitutionRule(Rule):
    """
    Rule that rewrites the remaining input instead of producing a node.

    It fires whenever its pattern occurs anywhere in the remaining input and
    replaces every occurrence through ``replacements``.
    """

    replacements: Mapping[str, str] = field(default_factory=dict)

    def match(self, source: str) -> Optional[re.Match]:
        return self.pattern.search(source)

    def substitute(self, source: str) -> str:
        """Replace every occurrence of the pattern in ``source``."""
        return self.pattern.sub(lambda m: self.replacements.get(m.group(1), m.group(0)), source)


# Shortcode -> pictographic character
EMOJI_SHORTCODES: Dict[str, str] = {
    ":-)": "\U0001F603",
    ":-(": "\U0001F626",
    "8-)": "\U0001F60E",
    ";)": "\U0001F609",
    ":wink:": "\U0001F609",
    ":cry:": "\U0001F622",
    ":laughing:": "\U0001F606",
    ":yum:": "\U0001F60B",
}

# Inline HTML elements, never treated as block level HTML
_INLINE_TAGS = (
    r"(?:a|em|strong|small|s|cite|q|dfn|abbr|data|time|code|var|samp|kbd|sub|sup|i|b|u|mark"
    r"|ruby|rt|rp|bdi|bdo|span|br|wbr|ins|del|img)\b"
)
_BLOCK_TAG_NAME = r"(?!" + _INLINE_TAGS + r")\w+(?!:/|[^\w\s@]*@)\b"

# `[id]: url "title"` line
_DEFINITION = r' *\[([^\]]+)\]: *<?([^\s>]+)>?(?: +["(]([^\n]+)[")])? *(?:\n+|\Z)'
_DEFINITION_AHEAD = r' *\[[^\]]+\]: *<?[^\s>]+>?(?: +["(][^\n]+[")])? *(?:\n+|\Z)'

# Block starts that end a paragraph
_PARAGRAPH_INTERRUPTS = "|".join(
    [
        r" *(?P<fence>`{3,}|~{3,}) *(?:\S+)? *\n[\s\S]+?\s*(?P=fence) *(?:\n+|\Z)",
        r" *(?:[*+-]|\d+\.) [\s\S]",
        r"(?: *[-*_]){3,} *(?:\n+|\Z)",
        r" *#{1,6} *[^\n]+? *#* *(?:\n+|\Z)",
        r"[^\n]+\n *[=-]{2,} *(?:\n+|\Z)",
        r" *>[^\n]",
        r"<" + _BLOCK_TAG_NAME,
        _DEFINITION_AHEAD,
    ]
)

_FENCED_CODE = r"^ *(`{3,}|~{3,}) *(\S+)? *\n([\s\S]+?)\s*\1 *(?:\n+|\Z)"
_INLINE_CODE = r"^(`+)\s*([\s\S]*?[^`])\s*\1(?!`)"
_IMAGE = r'^!\[(.*)\]\((.*?)\s*(?:"(.*[^"])")?\s*\)'
_LINK = r"^\[([^\]]*)\]\(([^)]*)\)"
_STRIKETHROUGH = r"^~~(?=\S)([\s\S]*?\S)~~"


def _rule(rule_type: RuleType, pattern: str, flags: int = 0, block_level_only: bool = False) -> Rule:
    return Rule(rule_type, re.compile(pattern, flags), block_level_only)


def _build_permissive_rules() -> Tuple[Rule, ...]:
    emoji_pattern = "(" + "|".join(re.escape(code) for code in EMOJI_SHORTCODES) + ")"
    return (
        _rule(RuleType.NEW_LINE, r"^\n+"),
        _rule(RuleType.SPACE, r"^\n+"),
        _rule(RuleType.LINE_BREAK, r"^ {2,}\n(?!\s*\Z)"),
        _rule(RuleType.FENCED_CODE, _FENCED_CODE),
        _rule(RuleType.INLINE_CODE, _INLINE_CODE),
        _rule(RuleType.HEADING, r"^ *(#{1,6}) *([^\n]+?) *#* *(?:\n+|\Z)"),
        _rule(RuleType.UNDERLINE_HEADING, r"^([^\n]+)\n *(=|-){2,} *(?:\n+|\Z)"),
        _rule(RuleType.HORIZONTAL_RULE, r"^( *[-*_]){3,} *(?:\n+|\Z)"),
        _rule(
            RuleType.BLOCKQUOTE,
            r"^( *>[^\n]+(\n(?!" + _DEFINITION_AHEAD + r")[^\n]+)*\n*)+",
        ),
        _rule(
            RuleType.LIST,
            r"^( *)((?:[*+-]|\d+\.)) [\s\S]+?(?:"
            r"\n+(?=\1?(?:[-*_] *){3,}(?:\n+|\Z))"
            r"|\n+(?=" + _DEFINITION_AHEAD + r")"
            r"|\n{2,}(?! )(?!\1(?:[*+-]|\d+\.) )\n*"
            r"|\s*\Z)",
        ),
        _rule(
            RuleType.HTML,
            r"^ *(?:<!--[\s\S]*?-->"
            r"|<(" + _BLOCK_TAG_NAME + r")[\s\S]+?</\1>"
            r"|<" + _BLOCK_TAG_NAME + r"(?:[^'\">])*?>"
            r") *(?:\n{2,}|\s*$)",
            re.MULTILINE,
        ),
        _rule(
            RuleType.NP_TABLE,
            r"^ *(\S.*\|.*)\n *([-:]+ *\|[-| :]*)\n((?:.*\|.*(?:\n|\Z))*)\n*",
            block_level_only=True,
        ),
        _rule(RuleType.DEFINITION, "^" + _DEFINITION, block_level_only=True),
        _rule(
            RuleType.TABLE,
            r"^ *\|(.+)\n *\|( *[-:]+[-| :]*)\n((?: *\|.*(?:\n|\Z))*)\n*",
            block_level_only=True,
        ),
        _rule(
            RuleType.PARAGRAPH,
            r"^((?:[^\n]+\n?(?!" + _PARAGRAPH_INTERRUPTS + r"))+)\n*",
            block_level_only=True,
        ),
        _rule(RuleType.ESCAPE, r"^\\([\\`*{}\[\]()#+\-.!_>~|])"),
        _rule(RuleType.IMAGE, _IMAGE),
        _rule(RuleType.AUTO_LINK, r"^<([^ >]+(@|:/)[^ >]+)>"),
        SubstitutionRule(RuleType.EMOJI, re.compile(emoji_pattern), replacements=EMOJI_SHORTCODES),
        _rule(RuleType.URL, r"^(https?://[^\s<]+[^<.,:;\"')\]\s])"),
        _rule(RuleType.LINK, _LINK),
        _rule(
            RuleType.REFERENCE_LINK,
            r"^!?\[((?:\[[^\]]*\]|[^\[\]]|\](?=[^\[]*\]))*)\]\s*\[([^\]]*)\]",
        ),
        _rule(RuleType.ID_LINK, r'^\[(.*)\]:\s*(\S*)\s*(?:"(.*[^"])")?\s*'),
        _rule(RuleType.TAG, r"^<!--[\s\S]*?-->|^</?\w+(?:[^'\">])*?>"),
        _rule(RuleType.BOLD, r"^__([\s\S]+?)__(?!_)|^\*\*([\s\S]+?)\*\*(?!\*)"),
        _rule(RuleType.ITALIC, r"^\b_((?:__|[\s\S])+?)_\b|^\*((?:\*\*|[\s\S])+?)\*(?!\*)"),
        _rule(RuleType.STRIKETHROUGH, _STRIKETHROUGH),
        _rule(RuleType.HIGHLIGHT, r"^==(?=\S)([\s\S]*?\S)=="),
        _rule(RuleType.UNDERLINE, r"^\+\+(?=\S)([\s\S]*?\S)\+\+"),
        _rule(RuleType.SUBSCRIPT, r"^~(?=\S)([\s\S]*?\S)~"),
        _rule(RuleType.SUPERSCRIPT, r"^\^(?=\S)([\s\S]*?\S)\^"),
        _rule(RuleType.INLINE_TEXT, r"^[\s\S]+?(?=[\\<!\[_*`~^]|https?://| {2,}\n|\Z)"),
        _rule(RuleType.TEXT, r"^[^\n]+"),
    )


def _build_constrained_rules() -> Tuple[Rule, ...]:
    return (
        _rule(RuleType.NEW_LINE, r"^\n+"),
        _rule(RuleType.FENCED_CODE, _FENCED_CODE),
        _rule(RuleType.INLINE_CODE, _INLINE_CODE),
        # `>>quote<<`, written back by the markdown converter for one-line quotes
        _rule(RuleType.INLINE_BLOCKQUOTE, r"^>>([\s\S]+?)<<"),
        _rule(RuleType.BLOCKQUOTE, r"^(> ?.+\n*)+ ?"),
        _rule(RuleType.IMAGE, _IMAGE),
        _rule(RuleType.LINK, _LINK),
        _rule(RuleType.BOLD, r"^\*\*(.*)\*\*"),
        _rule(RuleType.STRIKETHROUGH, _STRIKETHROUGH),
        _rule(RuleType.ITALIC, r"^__(.*)__"),
        _rule(RuleType.UNDERLINE, r"^_(.*)_"),
        _rule(RuleType.SPOILER, r"^\|\|(.*)\|\|", re.MULTILINE),
        _rule(RuleType.INLINE_TEXT, r"^[\s\S]+?(?=[\\<!\[>|_*`~^]|https?://| {2,}\n|$)", re.MULTILINE),
        _rule(RuleType.TEXT, r"^[^\n]+"),
    )


_RULE_BUILDERS: Dict[Dialect, Callable[[], Tuple[Rule, ...]]] = {
    Dialect.PERMISSIVE: _build_permissive_rules,
    Dialect.CONSTRAINED: _build_constrained_rules,
}

_rule_tables: Dict[Dialect, Tuple[Rule, ...]] = {}
_rule_tables_lock = RLock()


def get_rules(dialect: Dialect) -> Tuple[Rule, ...]:
    """
    Get the ordered rule table of a dialect.

    The table is built on first use, under a process-wide lock, and the same
    immutable tuple is returned to every later caller.

    Args:
        dialect: Dialect to get rules for

    Returns:
        Ordered tuple of rules
    """
    rules = _rule_tables.get(dialect)
    if rules is None:
        with _rule_tables_lock:
            rules = _rule_tables.get(dialect)
            if rules is None:
                rules = _RULE_BUILDERS[dialect]()
                _rule_tables[dialect] = rules
                logger.debug(f"Built {dialect.value} rule table with {len(rules)} rules")
    return rules
