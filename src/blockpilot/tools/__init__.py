"""Tool-call argument schemas, errors and the mutation executor."""

from .errors import ErrorCode, ToolError
from .executor import DocumentMutationExecutor, MutationOutcome, MutationPlan
from .schemas import ToolName, parse_tool_arguments

__all__ = [
    "ErrorCode",
    "ToolError",
    "DocumentMutationExecutor",
    "MutationOutcome",
    "MutationPlan",
    "ToolName",
    "parse_tool_arguments",
]
