"""formcraft: form-schema interpreter for visual form builders.

formcraft provides:
- A component type registry (text, email, number, select, slider, rating, ...)
- An ordered form schema model with a stable wire format
- An editor state machine for drag-and-drop building, reordering and edits
- Per-type renderers producing framework-neutral widget descriptions
- Submission-time validation and a pluggable publish/submit gateway

Basic usage:
    >>> from formcraft import EditorStateMachine, FormRuntime, InMemoryGateway, publish
    >>> editor = EditorStateMachine()
    >>> editor.set_form_name("Contact")
    >>> name = editor.add_field("text")
    >>> gateway = InMemoryGateway()
    >>> result = publish(editor.schema, gateway, session_token="0123456789abcdef")
    >>> runtime = FormRuntime.open_published(gateway, result.identifier)
    >>> runtime.schema.display_name
    'Contact'
"""

__version__ = "0.1.0"
__author__ = "formcraft contributors"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formcraft.config import Policy
from formcraft.editor import EditorStateMachine
from formcraft.gateway import HttpGateway, InMemoryGateway
from formcraft.registry import ComponentRegistry
from formcraft.runtime import FormRuntime, publish
from formcraft.schema import FieldInstance, FormSchema

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "Policy",
    "ComponentRegistry",
    "EditorStateMachine",
    "FieldInstance",
    "FormSchema",
    "FormRuntime",
    "HttpGateway",
    "InMemoryGateway",
    "publish",
]
