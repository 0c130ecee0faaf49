"""Core type definitions for the formcraft form-schema interpreter.

This module defines the fundamental enumerations used throughout formcraft:
- ComponentType: Supported field types (the palette)
- EditorState: States of the builder's editor state machine
- EventType: Editor event types emitted on every accepted mutation
- ValidationErrorCode: Codes carried by inline validation errors
- RenderMode: The three contexts a schema is rendered in

These types form the contract between host applications and the interpreter.
"""

from enum import Enum


class ComponentType(str, Enum):
    """Supported field types, in palette order.

    The declaration order is the order the registry lists them in.
    """
    TEXT = "text"
    EMAIL = "email"
    NUMBER = "number"
    TEXTAREA = "textarea"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    SLIDER = "slider"
    DATE = "date"
    TIME = "time"
    URL = "url"
    RATING = "rating"
    IFRAME = "iframe"
    COLOR = "color"
    LOCATION = "location"
    DIVIDER = "divider"


# Types whose options list is edited in the builder
CHOICE_TYPES = frozenset({
    ComponentType.SELECT,
    ComponentType.CHECKBOX,
    ComponentType.RADIO,
})


class EditorState(str, Enum):
    """Editor state machine states.

    idle: nothing selected, no drag in flight
    dragging: a palette entry or an existing field is being dragged
    editing: exactly one field is selected for property editing
    """
    IDLE = "idle"
    DRAGGING = "dragging"
    EDITING = "editing"


class EventType(str, Enum):
    """Editor event types for the event stream."""
    DRAG_STARTED = "drag.started"
    DRAG_CANCELLED = "drag.cancelled"
    FIELD_INSERTED = "field.inserted"
    FIELD_MOVED = "field.moved"
    FIELD_UPDATED = "field.updated"
    FIELD_DELETED = "field.deleted"
    FIELD_SELECTED = "field.selected"
    FIELD_DESELECTED = "field.deselected"
    FORM_RENAMED = "form.renamed"
    DRAFT_LOADED = "draft.loaded"


class ValidationErrorCode(str, Enum):
    """Codes for per-field validation failures.

    Only NOT_INTEGER is produced by the default policy; REQUIRED and
    DOMAIN_NOT_ALLOWED are produced when the policy opts into them.
    """
    NOT_INTEGER = "not_integer"
    REQUIRED = "required"
    DOMAIN_NOT_ALLOWED = "domain_not_allowed"


class RenderMode(str, Enum):
    """Contexts in which a schema is rendered.

    BUILDER: inline preview inside the editor canvas (inputs disabled)
    PREVIEW: draft preview of an unpublished schema (cannot submit)
    PUBLISHED: live form reached through the public link
    """
    BUILDER = "builder"
    PREVIEW = "preview"
    PUBLISHED = "published"


__all__ = [
    "ComponentType",
    "CHOICE_TYPES",
    "EditorState",
    "EventType",
    "ValidationErrorCode",
    "RenderMode",
]
