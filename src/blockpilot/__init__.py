"""Tool-call mediated editing of block documents."""

from .editor.document_model import Block, BlockDocument, InlineSpan, TableContent
from .orchestration.tool_dispatcher import DispatchResult, ToolCallDispatcher, create_tool_dispatcher
from .services.session import DocumentSession
from .services.settings import Settings, SettingsStore

__version__ = "0.1.0"

__all__ = [
    "Block",
    "BlockDocument",
    "InlineSpan",
    "TableContent",
    "DispatchResult",
    "ToolCallDispatcher",
    "create_tool_dispatcher",
    "DocumentSession",
    "Settings",
    "SettingsStore",
    "__version__",
]
