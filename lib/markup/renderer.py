"""
Renderer for the markup AST

Walks the AST depth-first and concatenates one markup fragment per node.
Output depends only on the nodes and on the ``RenderCapabilities`` the
renderer was created with.
"""

import html
import re
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Tuple

from .ast_nodes import (
    MDBlock,
    MDCodeBlock,
    MDHeading,
    MDHtml,
    MDLink,
    MDList,
    MDNode,
    MDTable,
    MDTableCell,
    MDText,
    NodeType,
)

# Entity type marking spoilers, shared with the markdown converter
SPOILER_ENTITY_TYPE = "MessageEntitySpoiler"

# Links opened in a new tab
EXTERNAL_HREF_PATTERN = re.compile(r"^(//|http)", re.IGNORECASE)

# Node kinds rendered as <tag>children</tag> plus suffix
WRAPPING_TAGS: Dict[NodeType, Tuple[str, str, str]] = {
    NodeType.PARAGRAPH: ("p", "", ""),
    NodeType.BLOCKQUOTE: ("blockquote", "", ""),
    NodeType.EXPANDABLE_BLOCKQUOTE: ("blockquote", ' class="expandable"', "\n"),
    NodeType.INLINE_CODE: ("code", "", ""),
    NodeType.ITALIC: ("i", "", ""),
    NodeType.BOLD: ("b", "", ""),
    NodeType.STRIKETHROUGH: ("s", "", ""),
    NodeType.HIGHLIGHT: ("mark", "", ""),
    NodeType.UNDERLINE: ("u", "", ""),
    NodeType.SPOILER: ("span", f' data-entity-type="{SPOILER_ENTITY_TYPE}"', ""),
    NodeType.SUBSCRIPT: ("sub", "", ""),
    NodeType.SUPERSCRIPT: ("sup", "", ""),
    NodeType.LIST_ITEM: ("li", "", ""),
    NodeType.LOOSE_LIST_ITEM: ("li", "", ""),
    NodeType.TABLE_ROW: ("tr", "", "\n"),
}


@dataclass(frozen=True)
class RenderCapabilities:
    """
    Presentation capabilities of the output surface.

    Attributes:
        supports_inline_images: Render images as <img>, otherwise as plain links
        escape_html: Escape text content instead of passing it through
    """

    supports_inline_images: bool = True
    escape_html: bool = False


class HTMLRenderer:
    """
    Renderer that converts the markup AST to an HTML string.

    Unknown and escape nodes produce nothing; the renderer never raises for
    a well-formed node list.
    """

    def __init__(self, capabilities: Optional[RenderCapabilities] = None):
        """
        Initialize the HTML renderer.

        Args:
            capabilities: Output capabilities, defaults to ``RenderCapabilities()``
        """
        self.capabilities = capabilities or RenderCapabilities()

        self._renderers: Dict[NodeType, Callable[[MDNode], str]] = {
            NodeType.TEXT: self._render_text,
            NodeType.HTML: self._render_html,
            NodeType.NEW_LINE: lambda node: "<br>",
            NodeType.LINE_BREAK: lambda node: "<br>",
            NodeType.SPACE: lambda node: " ",
            NodeType.HORIZONTAL_RULE: lambda node: "<hr>",
            NodeType.CODE_BLOCK: self._render_code_block,
            NodeType.HEADING: self._render_heading,
            NodeType.LIST: self._render_list,
            NodeType.LINK: self._render_link,
            NodeType.IMAGE: self._render_image,
            NodeType.TABLE_HEADER: self._render_table_cell,
            NodeType.TABLE_CELL: self._render_table_cell,
            NodeType.TABLE: self._render_table,
        }

    def render(self, nodes: Sequence[MDNode]) -> str:
        """
        Render AST nodes to HTML.

        Args:
            nodes: Nodes to render, in document order

        Returns:
            HTML string
        """
        if not nodes:
            return ""
        return "".join(self._render_node(node) for node in nodes)

    def _render_node(self, node: MDNode) -> str:
        wrapping = WRAPPING_TAGS.get(node.node_type)
        if wrapping is not None and isinstance(node, MDBlock):
            tag, attrs, suffix = wrapping
            return f"<{tag}{attrs}>{self.render(node.children)}</{tag}>{suffix}"

        renderer = self._renderers.get(node.node_type)
        if renderer is None:
            # Escape, unknown
            return ""
        return renderer(node)

    def _escape(self, text: str) -> str:
        return html.escape(text, quote=False) if self.capabilities.escape_html else text

    def _render_text(self, node: MDNode) -> str:
        if not isinstance(node, MDText):
            return ""
        return self._escape(node.content)

    def _render_html(self, node: MDNode) -> str:
        if not isinstance(node, MDHtml):
            return ""
        return node.content

    def _render_code_block(self, node: MDNode) -> str:
        if not isinstance(node, MDCodeBlock):
            return ""
        class_attr = f' class="language-{node.language}"' if node.language else ""
        return f"<pre><code{class_attr}>{self.render(node.children)}</code></pre>\n"

    def _render_heading(self, node: MDNode) -> str:
        if not isinstance(node, MDHeading):
            return ""
        return f"<h{node.level}>{self.render(node.children)}</h{node.level}>\n"

    def _render_list(self, node: MDNode) -> str:
        if not isinstance(node, MDList):
            return ""
        tag = "ol" if node.is_ordered else "ul"
        return f"<{tag}>{self.render(node.children)}</{tag}>"

    def _render_link(self, node: MDNode) -> str:
        if not isinstance(node, MDLink):
            return ""
        title_attr = f' title="{node.title}"' if node.title else ""
        target_attr = ' target="_blank" rel="nofollow"' if EXTERNAL_HREF_PATTERN.match(node.href) else ""
        return f'<a href="{node.href}"{title_attr}{target_attr}>{self.render(node.children)}</a>'

    def _render_image(self, node: MDNode) -> str:
        if not isinstance(node, MDLink):
            return ""
        title_attr = f' title="{node.title}"' if node.title else ""
        id_attr = f' data-document-id="{node.document_id}"' if node.document_id else ""
        content = self.render(node.children)

        if self.capabilities.supports_inline_images:
            return f'<img src="{node.href}"{title_attr} alt="{content}"{id_attr}>'
        return f'<a href="{node.href}"{title_attr}{id_attr}>{content}</a>'

    def _render_table_cell(self, node: MDNode) -> str:
        if not isinstance(node, MDTableCell):
            return ""
        tag = "th" if node.node_type == NodeType.TABLE_HEADER else "td"
        style_attr = f' style="text-align:{node.alignment.value}"' if node.alignment else ""
        return f"<{tag}{style_attr}>{self.render(node.children)}</{tag}>\n"

    def _render_table(self, node: MDNode) -> str:
        if not isinstance(node, MDTable):
            return ""
        return (
            "<table>\n"
            f"<thead>\n{self.render(node.headers)}</thead>\n"
            f"<tbody>\n{self.render(node.children)}</tbody>\n"
            "</table>\n"
        )


def render_markup(nodes: Sequence[MDNode], capabilities: Optional[RenderCapabilities] = None) -> str:
    """
    Render AST nodes to HTML.

    Args:
        nodes: Nodes to render
        capabilities: Output capabilities

    Returns:
        HTML string
    """
    return HTMLRenderer(capabilities).render(nodes)
