"""
Rule-driven recursive parser

The parser consumes its input against an ordered rule table: at every
position the first rule whose pattern matches wins, the matched prefix is
consumed and a handler for the rule's token kind builds the nodes, recursing
into captured sub-content with the same rule table.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .ast_nodes import (
    Alignment,
    MDBlock,
    MDCodeBlock,
    MDHeading,
    MDHtml,
    MDLeaf,
    MDLink,
    MDList,
    MDNode,
    MDTable,
    MDTableCell,
    MDText,
    NodeType,
)
from .rules import Dialect, Rule, RuleType, SubstitutionRule, get_rules

logger = logging.getLogger(__name__)

# List item boundaries inside a matched list block
LIST_ITEM_PATTERN = re.compile(r"^( *)((?:[*+-]|\d+\.)) [^\n]*(?:\n(?!\1(?:[*+-]|\d+\.) )[^\n]*)*", re.MULTILINE)
LIST_ITEM_PREFIX_PATTERN = re.compile(r"^ *([*+-]|\d+\.) +")
LOOSE_ITEM_PATTERN = re.compile(r"\n\n(?!\s*\Z)")
BLANK_LINE_PATTERN = re.compile(r"^ +$", re.MULTILINE)
BLOCKQUOTE_PREFIX_PATTERN = re.compile(r"^ *> ?", re.MULTILINE)
DOCUMENT_ID_PATTERN = re.compile(r"(\?|&)id=(.*)")
ABSOLUTE_URL_PATTERN = re.compile(r"^[a-z][a-z0-9+.-]*:", re.IGNORECASE)

# Title characters kept as entities, all other listed characters are dropped
TITLE_SPECIAL_CHARS = re.compile(r'[\\~#%&*{}/:<>?|"\'-]')
TITLE_ENTITIES: Dict[str, str] = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&#39;",
    "/": "&#x2F;",
}

PREFORMATTED_TAGS = ("pre", "script", "style")


class MarkupRuleError(RuntimeError):
    """
    Raised when no rule of the table matches the remaining input.

    This never depends on user data for a complete rule table: it signals a
    gap in the rule table itself and is not meant to be recovered from.
    """

    def __init__(self, message: str, snippet: str = "", rule_set_size: int = 0):
        """
        Initialize rule error.

        Args:
            message: Error message
            snippet: Beginning of the input no rule could consume
            rule_set_size: Number of rules that were tried
        """
        self.message = message
        self.snippet = snippet
        self.rule_set_size = rule_set_size
        super().__init__(f"{message} at: {snippet!r} ({rule_set_size} rules tried)")


@dataclass
class ParseContext:
    """
    State shared by all recursive calls of one top-level parse.

    Attributes:
        references: Reference links still waiting for a definition, by lowercased id
        definitions: Definitions seen so far as (href, title), by lowercased id
    """

    references: Dict[str, List[MDLink]] = field(default_factory=dict)
    definitions: Dict[str, Tuple[str, str]] = field(default_factory=dict)

    def register_reference(self, ref_id: str, link: MDLink) -> None:
        """Register a placeholder link, resolving it at once if already defined."""
        if ref_id in self.definitions:
            link.href, link.title = self.definitions[ref_id]
            return
        self.references.setdefault(ref_id, []).append(link)

    def define(self, ref_id: str, href: str, title: str) -> None:
        """Record a definition and resolve every placeholder waiting for it."""
        self.definitions.setdefault(ref_id, (href, title))
        for link in self.references.pop(ref_id, []):
            link.href = href
            link.title = title


def normalize_source(text: str) -> str:
    """
    Normalize raw input before the outermost parse.

    Args:
        text: Raw input text

    Returns:
        Text without carriage returns, with tabs expanded to 4 spaces,
        no-break spaces turned into spaces and U+2424 into newlines
    """
    return text.replace("\r", "").replace("\t", "    ").replace("\u00a0", " ").replace("\u2424", "\n")


def sanitize_title(title: Optional[str]) -> str:
    """Make a link title safe to put into an attribute."""
    if not title:
        return ""
    return TITLE_SPECIAL_CHARS.sub(lambda m: TITLE_ENTITIES.get(m.group(0), ""), title)


def _formatting_content(match: re.Match) -> str:
    """Content of a formatting rule: second group when it matched, first otherwise."""
    if match.re.groups >= 2 and match.group(2):
        return match.group(2)
    return match.group(1) or ""


Handler = Callable[[re.Match, ParseContext, bool], List[MDNode]]


class MarkupParser:
    """
    Parser turning markup text into a list of AST nodes.

    The parser itself only holds its (immutable) rule table. All per-call
    state lives in a ``ParseContext`` created by ``parse``, so one parser
    instance may be shared between threads.
    """

    def __init__(self, rules: Sequence[Rule]):
        """
        Initialize the parser.

        Args:
            rules: Ordered rule table, see ``lib.markup.rules.get_rules``
        """
        self.rules = tuple(rules)

        formatting: Dict[RuleType, NodeType] = {
            RuleType.BOLD: NodeType.BOLD,
            RuleType.ITALIC: NodeType.ITALIC,
            RuleType.INLINE_CODE: NodeType.INLINE_CODE,
            RuleType.STRIKETHROUGH: NodeType.STRIKETHROUGH,
            RuleType.HIGHLIGHT: NodeType.HIGHLIGHT,
            RuleType.UNDERLINE: NodeType.UNDERLINE,
            RuleType.SPOILER: NodeType.SPOILER,
            RuleType.SUBSCRIPT: NodeType.SUBSCRIPT,
            RuleType.SUPERSCRIPT: NodeType.SUPERSCRIPT,
        }

        self._handlers: Dict[RuleType, Handler] = {
            RuleType.NEW_LINE: self._parse_new_line,
            RuleType.SPACE: self._parse_space,
            RuleType.LINE_BREAK: self._parse_line_break,
            RuleType.FENCED_CODE: self._parse_fenced_code,
            RuleType.HEADING: self._parse_heading,
            RuleType.UNDERLINE_HEADING: self._parse_underline_heading,
            RuleType.HORIZONTAL_RULE: self._parse_horizontal_rule,
            RuleType.BLOCKQUOTE: self._parse_blockquote,
            RuleType.INLINE_BLOCKQUOTE: self._parse_inline_blockquote,
            RuleType.LIST: self._parse_list,
            RuleType.HTML: self._parse_html,
            RuleType.NP_TABLE: self._parse_table,
            RuleType.TABLE: self._parse_table,
            RuleType.DEFINITION: self._parse_definition,
            RuleType.ID_LINK: self._parse_definition,
            RuleType.PARAGRAPH: self._parse_paragraph,
            RuleType.ESCAPE: self._parse_escape,
            RuleType.IMAGE: self._parse_link,
            RuleType.LINK: self._parse_link,
            RuleType.AUTO_LINK: self._parse_auto_link,
            RuleType.URL: self._parse_auto_link,
            RuleType.REFERENCE_LINK: self._parse_reference_link,
            RuleType.TAG: self._parse_tag,
            RuleType.INLINE_TEXT: self._parse_text,
            RuleType.TEXT: self._parse_text,
        }
        for rule_type, node_type in formatting.items():
            self._handlers[rule_type] = self._make_formatting_handler(node_type)

    def parse(self, source: str) -> List[MDNode]:
        """
        Parse markup text into AST nodes.

        Args:
            source: Text to parse, may be empty

        Returns:
            Top-level nodes in document order

        Raises:
            MarkupRuleError: If the rule table cannot consume the input
        """
        context = ParseContext()
        return self._parse(normalize_source(source), context, True)

    def _parse(self, source: str, context: ParseContext, is_top_level: bool = False) -> List[MDNode]:
        """Consume ``source`` rule by rule; recursive calls share ``context``."""
        source = BLANK_LINE_PATTERN.sub("", source)
        nodes: List[MDNode] = []

        while source:
            for rule in self.rules:
                if rule.block_level_only and not is_top_level:
                    continue

                match = rule.match(source)
                if match is None:
                    continue

                if isinstance(rule, SubstitutionRule):
                    # Rewrite the input in place and start over at the same position
                    rewritten = rule.substitute(source)
                    if rewritten == source:
                        raise self._rule_error(f"Rule {rule.rule_type.value} did not rewrite its match", source)
                    source = rewritten
                    break

                matched = match.group(0)
                if not matched:
                    raise self._rule_error(f"Rule {rule.rule_type.value} matched empty input", source)
                source = source[len(matched) :]
                nodes.extend(self._handlers[rule.rule_type](match, context, is_top_level))
                break
            else:
                raise self._rule_error("No markup rule matches", source)

        return nodes

    def _rule_error(self, message: str, source: str) -> MarkupRuleError:
        snippet = source[:20]
        logger.error(f"{message} at: {snippet!r}")
        return MarkupRuleError(message, snippet, len(self.rules))

    def _parse_children(self, content: Optional[str], context: ParseContext) -> List[MDNode]:
        return self._parse(content or "", context, False)

    def _make_formatting_handler(self, node_type: NodeType) -> Handler:
        def handler(match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
            children = self._parse_children(_formatting_content(match), context)
            return [MDBlock(node_type, match.group(0), children)]

        return handler

    def _parse_new_line(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        return [MDLeaf(NodeType.NEW_LINE, match.group(0))]

    def _parse_space(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        if len(match.group(0)) > 1:
            return [MDLeaf(NodeType.SPACE, match.group(0))]
        return []

    def _parse_line_break(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        return [MDLeaf(NodeType.LINE_BREAK, match.group(0))]

    def _parse_horizontal_rule(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        return [MDLeaf(NodeType.HORIZONTAL_RULE, match.group(0))]

    def _parse_fenced_code(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        children = self._parse_children(match.group(3), context)
        return [MDCodeBlock(match.group(2), match.group(0), children)]

    def _parse_heading(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        children = self._parse_children(match.group(2), context)
        return [MDHeading(len(match.group(1)), match.group(0), children)]

    def _parse_underline_heading(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        level = 1 if match.group(2) == "=" else 2
        children = self._parse_children(match.group(1), context)
        return [MDHeading(level, match.group(0), children)]

    def _parse_blockquote(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        source = match.group(0)
        content = BLOCKQUOTE_PREFIX_PATTERN.sub("", source)
        node_type = NodeType.BLOCKQUOTE

        # A quote closed with `||` is collapsed by default
        if len(source) > 1 and source.endswith("||"):
            node_type = NodeType.EXPANDABLE_BLOCKQUOTE
            content = content.replace("||", "")

        return [MDBlock(node_type, source, self._parse(content, context, is_top_level))]

    def _parse_inline_blockquote(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        return [MDBlock(NodeType.BLOCKQUOTE, match.group(0), self._parse_children(match.group(1), context))]

    def _parse_list(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        bullet = match.group(2)
        list_node = MDList(is_ordered=len(bullet) > 1, source=match.group(0))

        items = [item_match.group(0) for item_match in LIST_ITEM_PATTERN.finditer(match.group(0))]
        is_next_loose = False
        for index, item in enumerate(items):
            text = LIST_ITEM_PREFIX_PATTERN.sub("", item, count=1)
            # A blank line inside the item, or right after the previous one
            is_loose = is_next_loose or LOOSE_ITEM_PATTERN.search(text) is not None
            if index < len(items) - 1:
                is_next_loose = text.endswith("\n")

            item_type = NodeType.LOOSE_LIST_ITEM if is_loose else NodeType.LIST_ITEM
            children = self._parse_children(text.replace("\n", ""), context)
            list_node.children.append(MDBlock(item_type, item, children))

        return [list_node]

    def _parse_html(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        tag = (match.group(1) or "").lower()
        return [MDHtml(match.group(0), is_preformatted=tag in PREFORMATTED_TAGS)]

    def _parse_tag(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        return [MDHtml(match.group(0))]

    def _parse_table(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        headers = re.split(r" *\| *", re.sub(r"^ *| *\| *$", "", match.group(1)))
        alignment_cells = re.split(r" *\| *", re.sub(r"^ *|\| *$", "", match.group(2)))
        alignments = [self._column_alignment(cell) for cell in alignment_cells]

        body = re.sub(r"(?: *\| *)?\n\Z", "", match.group(3))
        rows = body.split("\n") if body else []

        header_nodes = [
            MDTableCell(
                NodeType.TABLE_HEADER,
                alignments[i] if i < len(alignments) else None,
                header,
                self._parse_children(header, context),
            )
            for i, header in enumerate(headers)
        ]

        row_nodes: List[MDNode] = []
        for row in rows:
            cells = re.split(r" *\| ", re.sub(r"^ *\| *| *\| *$", "", row))
            cell_nodes: List[MDNode] = [
                MDTableCell(
                    NodeType.TABLE_CELL,
                    alignments[i] if i < len(alignments) else None,
                    cell,
                    self._parse_children(cell, context),
                )
                for i, cell in enumerate(cells)
            ]
            # Short rows are padded up to the header width with unaligned empty cells
            cell_nodes.extend(MDTableCell(NodeType.TABLE_CELL) for _ in range(len(headers) - len(cells)))
            row_nodes.append(MDBlock(NodeType.TABLE_ROW, row, cell_nodes))

        return [MDTable(header_nodes, match.group(0), row_nodes)]

    @staticmethod
    def _column_alignment(cell: str) -> Optional[Alignment]:
        if re.match(r"^ *-+: *$", cell):
            return Alignment.RIGHT
        if re.match(r"^ *:-+: *$", cell):
            return Alignment.CENTER
        if re.match(r"^ *:-+ *$", cell):
            return Alignment.LEFT
        return None

    def _parse_definition(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        context.define(match.group(1).lower(), match.group(2), sanitize_title(match.group(3)))
        return []

    def _parse_paragraph(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        text = match.group(1)
        if text.endswith("\n"):
            text = text[:-1]
        return [MDBlock(NodeType.PARAGRAPH, match.group(0), self._parse_children(text, context))]

    def _parse_escape(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        # The marker keeps the fact of escaping, the text node carries the character
        return [
            MDText(NodeType.ESCAPE, match.group(1), match.group(0)),
            MDText(NodeType.TEXT, match.group(1)),
        ]

    def _parse_link(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        source = match.group(0)
        href = match.group(2) or ""
        id_match = DOCUMENT_ID_PATTERN.search(href)
        title = match.group(3) if match.re.groups >= 3 else None
        return [
            MDLink(
                NodeType.IMAGE if source.startswith("!") else NodeType.LINK,
                href=href,
                title=sanitize_title(title),
                source=source,
                children=self._parse_children(match.group(1), context),
                document_id=id_match.group(2) if id_match else None,
            )
        ]

    def _parse_auto_link(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        url = match.group(1)
        href = url
        if "@" in url and not ABSOLUTE_URL_PATTERN.match(url):
            href = f"mailto:{url}"
        return [MDLink(NodeType.LINK, href=href, source=match.group(0), children=[MDText(NodeType.TEXT, url)])]

    def _parse_reference_link(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        source = match.group(0)
        text = match.group(1)
        # `[text][]` uses the text itself as the reference id
        ref_id = (match.group(2) or text).lower()
        link = MDLink(
            NodeType.IMAGE if source.startswith("!") else NodeType.LINK,
            source=source,
            children=self._parse_children(text, context),
            id=ref_id,
        )
        context.register_reference(ref_id, link)
        return [link]

    def _parse_text(self, match: re.Match, context: ParseContext, is_top_level: bool) -> List[MDNode]:
        return [MDText(NodeType.TEXT, match.group(0))]


def parse_markup(text: str, dialect: Dialect = Dialect.PERMISSIVE) -> List[MDNode]:
    """
    Parse markup text with the rule table of a dialect.

    Args:
        text: Text to parse
        dialect: Dialect to parse with

    Returns:
        Top-level AST nodes
    """
    return MarkupParser(get_rules(dialect)).parse(text)
