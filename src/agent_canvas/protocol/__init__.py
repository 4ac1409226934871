from .constants import (
    BOOTSTRAP_SIZE_KEY,
    C_ADD_ELEMENT,
    C_CLEAR_CANVAS,
    C_EXECUTE_SCRIPT,
    C_REMOVE_ELEMENT,
    C_SET_3D_FOCUS,
    C_UPDATE_ELEMENT,
    COMMAND_TYPES,
    ELEMENT_TYPES,
    SYSTEM_AGENT_ID,
)
from .messages import (
    AddElement,
    ClearCanvas,
    Command,
    ExecuteScript,
    MalformedCommandError,
    RemoveElement,
    Set3DFocus,
    UpdateElement,
    bootstrap_size,
    parse_command,
)

__all__ = [
    "BOOTSTRAP_SIZE_KEY",
    "C_ADD_ELEMENT",
    "C_UPDATE_ELEMENT",
    "C_REMOVE_ELEMENT",
    "C_EXECUTE_SCRIPT",
    "C_CLEAR_CANVAS",
    "C_SET_3D_FOCUS",
    "COMMAND_TYPES",
    "ELEMENT_TYPES",
    "SYSTEM_AGENT_ID",
    "AddElement",
    "UpdateElement",
    "RemoveElement",
    "ExecuteScript",
    "ClearCanvas",
    "Set3DFocus",
    "Command",
    "MalformedCommandError",
    "bootstrap_size",
    "parse_command",
]
