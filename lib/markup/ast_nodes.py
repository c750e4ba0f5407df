"""
AST Node Classes for the markup parser

This module defines the Abstract Syntax Tree node classes produced by
the rule-driven parser and consumed by the renderer. Every node carries its
kind (``NodeType``) and the slice of source text it was built from; the
node class decides which extra fields the kind carries.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class NodeType(Enum):
    """Enumeration of all AST node types."""

    UNKNOWN = "unknown"
    SPACE = "space"
    NEW_LINE = "new_line"
    HORIZONTAL_RULE = "hr"
    HEADING = "heading"
    CODE_BLOCK = "code"
    INLINE_CODE = "code_inline"
    TABLE = "table"
    TABLE_CELL = "table_cell"
    TABLE_ROW = "table_row"
    TABLE_HEADER = "table_header"
    BLOCKQUOTE = "blockquote"
    EXPANDABLE_BLOCKQUOTE = "blockquote_expandable"
    LIST = "list"
    LIST_ITEM = "list_item"
    LOOSE_LIST_ITEM = "loose_list_item"
    HTML = "html"
    PARAGRAPH = "paragraph"
    TEXT = "text"
    LINK = "link"
    ESCAPE = "escape"
    LINE_BREAK = "br"
    STRIKETHROUGH = "strikethrough"
    ITALIC = "italic"
    BOLD = "bold"
    IMAGE = "img"
    HIGHLIGHT = "mark"
    UNDERLINE = "underline"
    SPOILER = "spoiler"
    SUBSCRIPT = "sub"
    SUPERSCRIPT = "sup"


class Alignment(Enum):
    """Horizontal alignment of a table column."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class MDNode(ABC):
    """Base class for all markup AST nodes."""

    # Node kinds this class is allowed to carry
    KINDS: FrozenSet[NodeType] = frozenset()

    def __init__(self, node_type: NodeType, source: str = ""):
        if node_type not in self.KINDS:
            raise ValueError(f"{self.__class__.__name__} cannot carry node type {node_type.value}")
        self.node_type = node_type
        self.source = source

    @abstractmethod
    def to_dict(self) -> Dict[str, Any]:
        """Convert node to dictionary representation."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.node_type.value})"


class MDLeaf(MDNode):
    """Node without content or children (line breaks, rules, spaces)."""

    KINDS = frozenset(
        {
            NodeType.SPACE,
            NodeType.NEW_LINE,
            NodeType.HORIZONTAL_RULE,
            NodeType.LINE_BREAK,
            NodeType.UNKNOWN,
        }
    )

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.node_type.value, "source": self.source}


class MDText(MDNode):
    """Leaf node carrying raw text content."""

    KINDS = frozenset({NodeType.TEXT, NodeType.ESCAPE})

    def __init__(self, node_type: NodeType, content: str, source: Optional[str] = None):
        super().__init__(node_type, content if source is None else source)
        self.content = content

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.node_type.value, "source": self.source, "content": self.content}


class MDHtml(MDNode):
    """Raw HTML passed through to the output untouched."""

    KINDS = frozenset({NodeType.HTML})

    def __init__(self, content: str, is_preformatted: bool = False):
        super().__init__(NodeType.HTML, content)
        self.content = content
        self.is_preformatted = is_preformatted

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.node_type.value,
            "source": self.source,
            "content": self.content,
            "is_preformatted": self.is_preformatted,
        }


class MDBlock(MDNode):
    """Node wrapping an ordered sequence of child nodes."""

    KINDS = frozenset(
        {
            NodeType.PARAGRAPH,
            NodeType.BLOCKQUOTE,
            NodeType.EXPANDABLE_BLOCKQUOTE,
            NodeType.LIST_ITEM,
            NodeType.LOOSE_LIST_ITEM,
            NodeType.TABLE_ROW,
            NodeType.INLINE_CODE,
            NodeType.BOLD,
            NodeType.ITALIC,
            NodeType.STRIKETHROUGH,
            NodeType.HIGHLIGHT,
            NodeType.UNDERLINE,
            NodeType.SPOILER,
            NodeType.SUBSCRIPT,
            NodeType.SUPERSCRIPT,
        }
    )

    def __init__(self, node_type: NodeType, source: str = "", children: Optional[List[MDNode]] = None):
        super().__init__(node_type, source)
        self.children: List[MDNode] = children if children is not None else []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.node_type.value,
            "source": self.source,
            "children": [child.to_dict() for child in self.children],
        }


class MDList(MDBlock):
    """Ordered or unordered list; children are (loose) list items."""

    KINDS = frozenset({NodeType.LIST})

    def __init__(self, is_ordered: bool, source: str = "", children: Optional[List[MDNode]] = None):
        super().__init__(NodeType.LIST, source, children)
        self.is_ordered = is_ordered

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.node_type.value,
            "source": self.source,
            "is_ordered": self.is_ordered,
            "children": [child.to_dict() for child in self.children],
        }


class MDLink(MDBlock):
    """
    Link or image node.

    ``id`` is only set for reference-style links (the lowercased reference
    id), ``document_id`` is taken from an ``id=`` query parameter of the
    href. Children hold the parsed display content (alt text for images).
    """

    KINDS = frozenset({NodeType.LINK, NodeType.IMAGE})

    def __init__(
        self,
        node_type: NodeType,
        href: str = "",
        title: str = "",
        source: str = "",
        children: Optional[List[MDNode]] = None,
        id: Optional[str] = None,
        document_id: Optional[str] = None,
    ):
        super().__init__(node_type, source, children)
        self.href = href
        self.title = title
        self.id = id
        self.document_id = document_id

    @property
    def is_resolved(self) -> bool:
        """True unless this is a reference link still missing its definition."""
        return self.id is None or bool(self.href)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.node_type.value,
            "source": self.source,
            "href": self.href,
            "title": self.title,
            "id": self.id,
            "document_id": self.document_id,
            "children": [child.to_dict() for child in self.children],
        }


class MDCodeBlock(MDBlock):
    """Fenced code block with optional language identifier."""

    KINDS = frozenset({NodeType.CODE_BLOCK})

    def __init__(self, language: Optional[str] = None, source: str = "", children: Optional[List[MDNode]] = None):
        super().__init__(NodeType.CODE_BLOCK, source, children)
        self.language = language

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.node_type.value,
            "source": self.source,
            "language": self.language,
            "children": [child.to_dict() for child in self.children],
        }


class MDHeading(MDBlock):
    """Heading node with level (1-6)."""

    KINDS = frozenset({NodeType.HEADING})

    def __init__(self, level: int, source: str = "", children: Optional[List[MDNode]] = None):
        super().__init__(NodeType.HEADING, source, children)
        if not 1 <= level <= 6:
            raise ValueError(f"Heading level must be 1-6, got {level}")
        self.level = level

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.node_type.value,
            "source": self.source,
            "level": self.level,
            "children": [child.to_dict() for child in self.children],
        }


class MDTableCell(MDBlock):
    """Header or body cell of a table."""

    KINDS = frozenset({NodeType.TABLE_CELL, NodeType.TABLE_HEADER})

    def __init__(
        self,
        node_type: NodeType,
        alignment: Optional[Alignment] = None,
        source: str = "",
        children: Optional[List[MDNode]] = None,
    ):
        super().__init__(node_type, source, children)
        self.alignment = alignment

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.node_type.value,
            "source": self.source,
            "alignment": self.alignment.value if self.alignment else None,
            "children": [child.to_dict() for child in self.children],
        }


class MDTable(MDBlock):
    """Table node: header cells plus body rows as children."""

    KINDS = frozenset({NodeType.TABLE})

    def __init__(
        self,
        headers: Optional[List[MDTableCell]] = None,
        source: str = "",
        children: Optional[List[MDNode]] = None,
    ):
        super().__init__(NodeType.TABLE, source, children)
        self.headers: List[MDTableCell] = headers if headers is not None else []

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.node_type.value,
            "source": self.source,
            "headers": [header.to_dict() for header in self.headers],
            "children": [child.to_dict() for child in self.children],
        }
