"""Block document model and markdown bridge."""

from .document_model import (
    SPECIAL_BLOCK_TYPES,
    Block,
    BlockDocument,
    DocumentInvariantError,
    InlineSpan,
    TableContent,
)
from .markdown import MarkdownBlockParser, blocks_to_markdown

__all__ = [
    "SPECIAL_BLOCK_TYPES",
    "Block",
    "BlockDocument",
    "DocumentInvariantError",
    "InlineSpan",
    "TableContent",
    "MarkdownBlockParser",
    "blocks_to_markdown",
]
