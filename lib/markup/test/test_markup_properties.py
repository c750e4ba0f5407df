#!/usr/bin/env python3
"""
Whole-pipeline properties of the markup library.

These tests check guarantees that hold across the parser, the renderer and
the markdown converter rather than single constructs.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "..", ".."))

from lib.markup import Dialect, html_to_markdown, parse_markup, render_markup  # noqa: E402
from lib.markup.ast_nodes import MDNode, NodeType  # noqa: E402

AWKWARD_INPUTS = [
    "",
    "   \n  \n",
    "日本語のテキスト",
    "\U0001F642\u200d\U0001F643",
    "\u2424\u00a0\r\t",
    "**__~~||",
    "[[[]]]((()))",
    "<<<>>>",
    "```\n```",
    "- \n- \n1. ",
    "| |\n|-|\n| |",
    "#\n##\n###### x #######",
    "![](<>)",
    "\\",
    "a  \n  \n",
    ":-) 8-) ;) :wink: :cry: :laughing: :yum: :-(",
    "[x]: <>",
    "*" * 50,
    "_" * 50,
    "> " * 20 + "deep",
]


def walk(nodes):
    """Yield every node of a tree."""
    for node in nodes:
        yield node
        yield from walk(getattr(node, "headers", []))
        yield from walk(getattr(node, "children", []))


class TestTotality(unittest.TestCase):
    """Test every input parses and renders without raising."""

    def test_awkward_inputs(self):
        """Test parsing terminates with a node list for both dialects."""
        for dialect in Dialect:
            for source in AWKWARD_INPUTS:
                with self.subTest(dialect=dialect, source=source):
                    nodes = parse_markup(source, dialect)
                    self.assertIsInstance(nodes, list)
                    self.assertTrue(all(isinstance(node, MDNode) for node in walk(nodes)))
                    self.assertIsInstance(render_markup(nodes), str)

    def test_no_characters_dropped(self):
        """Test plain text survives parsing unchanged."""
        source = "just some words, 123 and symbols: % $ @"
        nodes = parse_markup(source, Dialect.CONSTRAINED)
        self.assertEqual("".join(node.content for node in nodes), source)


class TestRenderIdempotence(unittest.TestCase):
    """Test rendering a parsed rendering changes nothing."""

    def test_unambiguous_inputs(self):
        """Test render(parse(render(parse(s)))) equals render(parse(s))."""
        sources = [
            "plain paragraph",
            "Hello **world**",
            "[link](https://example.com) and *em*",
            "a\n\nb",
            "# Title",
        ]
        for source in sources:
            with self.subTest(source=source):
                rendered = render_markup(parse_markup(source))
                self.assertEqual(render_markup(parse_markup(rendered)), rendered)


class TestReferenceResolution(unittest.TestCase):
    """Test reference links render resolved or with an empty href."""

    def test_defined_reference(self):
        """Test a defined reference renders with its href and title."""
        rendered = render_markup(parse_markup('[text][id]\n\n[id]: http://x "T"'))
        self.assertEqual(rendered, '<p><a href="http://x" title="T" target="_blank" rel="nofollow">text</a></p>')

    def test_missing_definition(self):
        """Test a reference without definition renders with an empty href."""
        self.assertEqual(render_markup(parse_markup("[text][id]")), '<p><a href="">text</a></p>')


class TestListLooseness(unittest.TestCase):
    """Test blank lines make the following list item loose."""

    def test_next_item_loose(self):
        """Test the item after a blank line is loose without an own blank line."""
        items = parse_markup("- one\n\n- two\n- three")[0].children
        self.assertEqual(items[0].node_type, NodeType.LIST_ITEM)
        self.assertEqual(items[1].node_type, NodeType.LOOSE_LIST_ITEM)
        self.assertEqual(items[2].node_type, NodeType.LIST_ITEM)

    def test_item_with_inner_blank_line(self):
        """Test an item with a blank line inside it is loose itself."""
        items = parse_markup("- one\n\n  more\n- two")[0].children
        self.assertEqual(items[0].node_type, NodeType.LOOSE_LIST_ITEM)


class TestTableAlignment(unittest.TestCase):
    """Test column alignment reaches the rendered cells."""

    def test_alignment(self):
        """Test left, center and right columns and an unaligned missing cell."""
        rendered = render_markup(parse_markup("| A | B | C |\n| :-- | :-: | --: |\n| 1 | 2 |"))
        self.assertEqual(
            rendered,
            "<table>\n"
            "<thead>\n"
            '<th style="text-align:left">A</th>\n'
            '<th style="text-align:center">B</th>\n'
            '<th style="text-align:right">C</th>\n'
            "</thead>\n"
            "<tbody>\n"
            '<tr><td style="text-align:left">1</td>\n'
            '<td style="text-align:center">2</td>\n'
            "<td></td>\n"
            "</tr>\n"
            "</tbody>\n"
            "</table>\n",
        )


class TestBlockquoteConversion(unittest.TestCase):
    """Test the two markdown forms of quotes."""

    def test_forms(self):
        """Test multi-line and single-line quotes."""
        self.assertEqual(html_to_markdown("<blockquote>line1\nline2</blockquote>"), ">line1\n>line2\n")
        self.assertEqual(html_to_markdown("<blockquote>line1</blockquote>"), ">>line1<<")


class TestCodeTitleSuppression(unittest.TestCase):
    """Test code titles never reach the markdown."""

    def test_any_content(self):
        """Test the code title paragraph contributes no characters."""
        for title in ("", "Python", "<b>bold</b> and <i>more</i>", "x" * 200):
            with self.subTest(title=title):
                markup = f'before<p class="code-title">{title}</p>after'
                self.assertEqual(html_to_markdown(markup), "beforeafter")


if __name__ == "__main__":
    unittest.main(verbosity=2)
