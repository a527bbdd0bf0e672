"""Dialogue loop, tool dispatch and confirmation gate."""

# Core types
from .types import (
    ActionState,
    ErrorDescriptor,
    Message,
    ModelResponse,
    PendingAction,
    SessionContext,
    ToolCall,
    ToolCallRecord,
    ToolResult,
    TurnOutput,
    TurnUsage,
    UserContext,
)

# Confirmation gate
from .confirmation import ConfirmationGate, fingerprint

# Dispatch
from .tool_dispatcher import ToolDispatcher

# Dialogue loop
from .runner import ConversationRunner, RunnerConfig, truncate_history

# Services
from .services import Services, create_services

__all__ = [
    # Types
    "ActionState",
    "ErrorDescriptor",
    "Message",
    "ModelResponse",
    "PendingAction",
    "SessionContext",
    "ToolCall",
    "ToolCallRecord",
    "ToolResult",
    "TurnOutput",
    "TurnUsage",
    "UserContext",
    # Confirmation
    "ConfirmationGate",
    "fingerprint",
    # Dispatch
    "ToolDispatcher",
    # Runner
    "ConversationRunner",
    "RunnerConfig",
    "truncate_history",
    # Services
    "Services",
    "create_services",
]
