# Command type constants (stringly-typed protocol; canonical list lives here)

C_ADD_ELEMENT = "addElement"
C_UPDATE_ELEMENT = "updateElement"
C_REMOVE_ELEMENT = "removeElement"
C_EXECUTE_SCRIPT = "executeScript"
C_CLEAR_CANVAS = "clearCanvas"
C_SET_3D_FOCUS = "set3DFocus"

COMMAND_TYPES = (
    C_ADD_ELEMENT,
    C_UPDATE_ELEMENT,
    C_REMOVE_ELEMENT,
    C_EXECUTE_SCRIPT,
    C_CLEAR_CANVAS,
    C_SET_3D_FOCUS,
)

# Element types renderers know about. Unknown strings are passed through.
E_TEXT = "text"
E_IMAGE = "image"
E_VIDEO = "video"
E_3D_MODEL = "3dModel"
E_SHAPE = "shape"
E_AGENT_WIDGET = "agent-widget"
E_DRAWING = "drawing"

ELEMENT_TYPES = (E_TEXT, E_IMAGE, E_VIDEO, E_3D_MODEL, E_SHAPE, E_AGENT_WIDGET, E_DRAWING)

# Owner used when a producer does not declare an agentId.
SYSTEM_AGENT_ID = "system"

# Payload extension field on the relay's bootstrap clearCanvas:
# number of commands that follow to rebuild the current state.
BOOTSTRAP_SIZE_KEY = "snapshotSize"
