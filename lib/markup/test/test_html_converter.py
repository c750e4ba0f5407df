"""
Tests for the HTML to chat markdown converter.
"""

import os
import sys
import unittest

from bs4 import BeautifulSoup

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "..", ".."))

from lib.markup import (  # noqa: E402
    TELEGRAM_TEMPLATES,
    Dialect,
    HTMLToMarkdownConverter,
    html_to_markdown,
    is_html,
    parse_markup,
    render_markup,
)


class TestSimpleTags(unittest.TestCase):
    """Test tags mapped through a single template."""

    def test_formatting_tags(self):
        """Test every formatting tag of the template table."""
        cases = {
            "<b>x</b>": "**x**",
            "<strong>x</strong>": "**x**",
            "<i>x</i>": "__x__",
            "<em>x</em>": "__x__",
            "<ins>x</ins>": "_x_",
            "<u>x</u>": "_x_",
            "<s>x</s>": "~~x~~",
            "<strike>x</strike>": "~~x~~",
            "<del>x</del>": "~~x~~",
            "<code>x</code>": "`x`",
        }
        for markup, expected in cases.items():
            with self.subTest(markup=markup):
                self.assertEqual(html_to_markdown(markup), expected)

    def test_nested_tags(self):
        """Test children are converted before their parent."""
        self.assertEqual(html_to_markdown("<b><i>x</i></b> y"), "**__x__** y")

    def test_unknown_tags_keep_text(self):
        """Test unknown elements contribute their children's text."""
        self.assertEqual(html_to_markdown("<div>a <span>b</span></div>"), "a b")

    def test_spoiler(self):
        """Test spoiler spans are detected by their entity type."""
        self.assertEqual(html_to_markdown('<span data-entity-type="MessageEntitySpoiler">x</span>'), "||x||")


class TestLinks(unittest.TestCase):
    """Test link conversion."""

    def test_link(self):
        """Test text and url are substituted."""
        self.assertEqual(html_to_markdown('<a href="https://t.me">tg</a>'), "[tg](https://t.me)")

    def test_link_without_href(self):
        """Test a missing href leaves the url empty."""
        self.assertEqual(html_to_markdown("<a>tg</a>"), "[tg]()")

    def test_image_alt_fallback(self):
        """Test a link without text falls back to its image alt text."""
        self.assertEqual(html_to_markdown('<a href="https://x"><img src="y" alt="pic"></a>'), "[pic](https://x)")


class TestBlockquotes(unittest.TestCase):
    """Test the two quote forms."""

    def test_multi_line_quote(self):
        """Test each line of a multi-line quote is converted on its own."""
        self.assertEqual(html_to_markdown("<blockquote>line1\nline2</blockquote>"), ">line1\n>line2\n")

    def test_single_line_quote(self):
        """Test a one-line quote uses the inline form."""
        self.assertEqual(html_to_markdown("<blockquote>line1</blockquote>"), ">>line1<<")

    def test_line_break_elements(self):
        """Test line break elements split quote lines."""
        self.assertEqual(html_to_markdown("<blockquote>line1<br>line2</blockquote>"), ">line1\n>line2\n")

    def test_empty_lines_skipped(self):
        """Test empty lines of a multi-line quote are dropped."""
        self.assertEqual(html_to_markdown("<blockquote>a\n\nb\n</blockquote>"), ">a\n>b\n")


class TestCodeBlocks(unittest.TestCase):
    """Test preformatted blocks."""

    def test_language_attribute(self):
        """Test the language is read from the data attribute."""
        self.assertEqual(
            html_to_markdown('<pre data-language="python">print(1)</pre>'),
            "```python\nprint(1)\n```\n",
        )

    def test_language_class(self):
        """Test the language falls back to the class of the inner code element."""
        self.assertEqual(
            html_to_markdown('<pre><code class="language-js">x()</code></pre>'),
            "```js\nx()\n```\n",
        )

    def test_without_language(self):
        """Test a block without language."""
        self.assertEqual(html_to_markdown("<pre>x</pre>"), "```\nx\n```\n")

    def test_newline_before_fence(self):
        """Test a fence never follows other text on the same line."""
        self.assertEqual(html_to_markdown("text<pre>x</pre>"), "text\n```\nx\n```\n")
        self.assertEqual(html_to_markdown("text\n<pre>x</pre>"), "text\n```\nx\n```\n")

    def test_newline_before_nested_fence(self):
        """Test text of earlier siblings inside the same parent counts as preceding output."""
        self.assertEqual(html_to_markdown("<div>abc<pre>x</pre></div>"), "abc\n```\nx\n```\n")
        self.assertEqual(html_to_markdown("<p>abc <b>def</b><pre>x</pre></p>"), "abc **def**\n```\nx\n```\n")
        self.assertEqual(html_to_markdown("<div>abc\n<pre>x</pre></div>"), "abc\n```\nx\n```\n")

    def test_code_title_suppressed(self):
        """Test a code title paragraph contributes nothing."""
        markup = '<p class="code-title">Python <b>source</b></p><pre data-language="python">x</pre>'
        self.assertEqual(html_to_markdown(markup), "```python\nx\n```\n")

    def test_other_paragraphs_kept(self):
        """Test paragraphs without the code title class keep their text."""
        self.assertEqual(html_to_markdown('<p class="note">hello</p>'), "hello")


class TestPreprocessing(unittest.TestCase):
    """Test substitutions applied before parsing."""

    def test_entities(self):
        """Test the fixed set of decoded entities."""
        self.assertEqual(html_to_markdown("&gt;quote"), ">quote")
        self.assertEqual(html_to_markdown("a&nbsp;b"), "a b")

    def test_parsed_tree_non_breaking_space(self):
        """Test an already parsed tree converts non-breaking spaces like a string does."""
        markup = "<b>a&nbsp;b</b>"
        soup = BeautifulSoup(markup, "html.parser")
        self.assertEqual(html_to_markdown(soup), html_to_markdown(markup))
        self.assertEqual(html_to_markdown(soup), "**a b**")

    def test_line_breaks(self):
        """Test line break representations become newlines."""
        self.assertEqual(html_to_markdown("a<div><br></div>b"), "a\nb")
        self.assertEqual(html_to_markdown("a<br/>b"), "a\nb")

    def test_comments_dropped(self):
        """Test comments contribute nothing."""
        self.assertEqual(html_to_markdown("a<!-- note -->b"), "ab")


class TestConverterOptions(unittest.TestCase):
    """Test template tables and input forms."""

    def test_custom_templates(self):
        """Test templates can be replaced."""
        templates = dict(TELEGRAM_TEMPLATES, b="*#text#*")
        self.assertEqual(HTMLToMarkdownConverter(templates).convert("<b>x</b>"), "*x*")

    def test_missing_feature_template(self):
        """Test a missing structural template falls back to the default one."""
        converter = HTMLToMarkdownConverter({"b": "**#text#**"})
        self.assertEqual(converter.convert("<blockquote>q</blockquote>"), ">>q<<")
        # Tags without a template keep their text
        self.assertEqual(converter.convert("<i>x</i>"), "x")

    def test_parsed_tree(self):
        """Test an already parsed tree is accepted."""
        soup = BeautifulSoup("<b>x</b>", "html.parser")
        self.assertEqual(html_to_markdown(soup), "**x**")

    def test_is_html(self):
        """Test paired element detection."""
        self.assertTrue(is_html("<b>x</b>"))
        self.assertTrue(is_html('text <a href="y">link</a> text'))
        self.assertFalse(is_html("plain text"))
        self.assertFalse(is_html("a < b"))
        self.assertFalse(is_html("<br>"))


class TestRoundTrip(unittest.TestCase):
    """Test chat markdown survives a render and convert cycle."""

    def test_chat_formatting(self):
        """Test formatting of the chat dialect converts back unchanged."""
        for source in ("**bold** and ||secret||", "__it__ _u_ ~~s~~", "[tg](https://t.me)", "`code`"):
            with self.subTest(source=source):
                html = render_markup(parse_markup(source, Dialect.CONSTRAINED))
                self.assertEqual(html_to_markdown(html), source)

    def test_inline_quote(self):
        """Test one-line quotes convert back to the inline quote form."""
        html = render_markup(parse_markup(">>quote<<", Dialect.CONSTRAINED))
        self.assertEqual(html, "<blockquote>quote</blockquote>")
        self.assertEqual(html_to_markdown(html), ">>quote<<")


if __name__ == "__main__":
    unittest.main(verbosity=2)
