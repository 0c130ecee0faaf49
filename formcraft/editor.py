"""Editor state machine for the form builder.

This module implements the state machine that governs a builder session:
selection, drag-and-drop insertion and reordering, move up/down, in-place
property edits and deletion. It owns the FormSchema being edited.

States:
- idle: nothing selected
- dragging: a palette entry or an existing field is being dragged
- editing: one field is selected for property editing

The state machine:
- Enforces valid state transitions (table-driven)
- Applies every edit synchronously, in call order
- Emits a typed EditorEvent for each accepted change
- Applies the option and slider-bound edit policies
- Provides serialization/deserialization of the session snapshot

Usage:
    >>> from formcraft.editor import EditorStateMachine
    >>> editor = EditorStateMachine()
    >>> editor.start_drag("text")
    >>> field = editor.drop()
    >>> editor.select(field.id)
    >>> editor.state
    <EditorState.EDITING: 'editing'>
    >>> editor.delete(field.id)
    True
    >>> editor.state
    <EditorState.IDLE: 'idle'>
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set
import logging
import re
import uuid

from formcraft.config import Policy
from formcraft.drafts import DraftTransport
from formcraft.errors import InvalidStateTransitionError, UnknownTypeError
from formcraft.events import EditorEvent, EventEmitter
from formcraft.registry import ComponentRegistry
from formcraft.renderers import SLIDER_DEFAULT_MAX, SLIDER_DEFAULT_MIN, parse_number
from formcraft.schema import FieldInstance, FormSchema
from formcraft.types import CHOICE_TYPES, ComponentType, EditorState, EventType

logger = logging.getLogger(__name__)

DEFAULT_OPTION_PATTERN = re.compile(r"^Option \d+$")


# Valid state transitions. A drag may start while a field is selected; the
# selection survives the drop.
VALID_TRANSITIONS: Dict[EditorState, Set[EditorState]] = {
    EditorState.IDLE: {
        EditorState.DRAGGING,
        EditorState.EDITING,
    },
    EditorState.DRAGGING: {
        EditorState.IDLE,
        EditorState.EDITING,
    },
    EditorState.EDITING: {
        EditorState.DRAGGING,
        EditorState.EDITING,
        EditorState.IDLE,
    },
}


class DragSourceKind(str, Enum):
    PALETTE = "palette"
    FIELD = "field"


@dataclass(frozen=True)
class DragSource:
    """What is being dragged: a palette type or an existing field id."""
    kind: DragSourceKind
    ref: str


def array_move(items: List[Any], from_index: int, to_index: int) -> List[Any]:
    """Return a copy with the item at ``from_index`` moved to ``to_index``."""
    result = list(items)
    result.insert(to_index, result.pop(from_index))
    return result


def renumber_default_options(options: List[str]) -> List[str]:
    """Renumber "Option N" entries to their position; custom options are kept."""
    return [
        f"Option {position}" if DEFAULT_OPTION_PATTERN.match(option) else option
        for position, option in enumerate(options, start=1)
    ]


@dataclass
class EditorStateMachine:
    """State machine and mutation API for one builder session.

    Attributes:
        schema: The form schema being edited
        registry: Component registry used to instantiate new fields
        state: Current editor state
        selected_id: Id of the selected field (set only in editing, or while
            dragging from editing)
        emitter: Event emitter notified of every accepted change

    Examples:
        >>> editor = EditorStateMachine()
        >>> first = editor.add_field("text")
        >>> second = editor.add_field("email")
        >>> editor.move_up(second.id)
        True
        >>> [f.type.value for f in editor.schema]
        ['email', 'text']
        >>> editor.move_up(second.id)
        False
    """

    schema: FormSchema = field(default_factory=FormSchema)
    registry: ComponentRegistry = field(default_factory=ComponentRegistry)
    state: EditorState = EditorState.IDLE
    selected_id: Optional[str] = None
    emitter: EventEmitter = field(default_factory=EventEmitter, repr=False)
    drag_source: Optional[DragSource] = field(default=None, init=False)
    _events: List[EditorEvent] = field(default_factory=list, init=False, repr=False)

    @property
    def policy(self) -> Policy:
        return self.registry.policy

    @property
    def selected_field(self) -> Optional[FieldInstance]:
        if self.selected_id is None:
            return None
        index = self.schema.index_of(self.selected_id)
        return self.schema.fields[index] if index >= 0 else None

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def can_transition_to(self, target_state: EditorState) -> bool:
        return target_state in VALID_TRANSITIONS.get(self.state, set())

    def _transition_to(self, target_state: EditorState) -> None:
        if not self.can_transition_to(target_state):
            raise InvalidStateTransitionError(
                current_state=self.state,
                target_state=target_state,
                message=(
                    f"Invalid editor transition: cannot go from "
                    f"'{self.state.value}' to '{target_state.value}'. "
                    f"Valid transitions from '{self.state.value}' are: "
                    f"{', '.join(sorted(s.value for s in VALID_TRANSITIONS[self.state]))}"
                ),
            )
        self.state = target_state

    def _ensure_not_dragging(self, action: str) -> None:
        if self.state == EditorState.DRAGGING:
            raise InvalidStateTransitionError(
                current_state=self.state,
                target_state=self.state,
                message=f"Cannot {action} while a drag is in progress",
            )

    def _settle_state(self) -> None:
        """Leave dragging for editing or idle depending on the selection."""
        if self.selected_id is not None and self.selected_id in self.schema:
            self._transition_to(EditorState.EDITING)
        else:
            self.selected_id = None
            self._transition_to(EditorState.IDLE)

    # ------------------------------------------------------------------
    # Drag and drop
    # ------------------------------------------------------------------

    def start_drag(self, source: str) -> None:
        """Begin dragging a palette type or an existing field.

        Palette types take precedence, then field ids.

        Raises:
            UnknownTypeError: If the source is neither a registered type nor a field id
            InvalidStateTransitionError: If a drag is already in progress
        """
        if source in self.registry:
            drag_source = DragSource(DragSourceKind.PALETTE, ComponentType(source).value)
        elif source in self.schema:
            drag_source = DragSource(DragSourceKind.FIELD, source)
        else:
            raise UnknownTypeError(source)

        self._transition_to(EditorState.DRAGGING)
        self.drag_source = drag_source
        self._emit(
            EventType.DRAG_STARTED,
            field_id=drag_source.ref if drag_source.kind == DragSourceKind.FIELD else None,
            payload={"source": drag_source.kind.value, "ref": drag_source.ref},
        )

    def drop(self, target_id: Optional[str] = None) -> Optional[FieldInstance]:
        """Finish the drag over ``target_id`` (None when dropped on no field).

        Palette drags insert a new field at the target's position, or append
        when there is no valid target. Field drags move the field to the
        target's position; without a valid target nothing changes.

        Returns:
            The inserted or moved field, or None when nothing changed

        Raises:
            InvalidStateTransitionError: If no drag is in progress
        """
        if self.state != EditorState.DRAGGING or self.drag_source is None:
            raise InvalidStateTransitionError(
                current_state=self.state,
                target_state=EditorState.IDLE,
                message="Cannot drop: no drag is in progress",
            )
        source = self.drag_source
        self.drag_source = None

        if source.kind == DragSourceKind.PALETTE:
            instance = self.registry.instantiate(source.ref)
            index = self.schema.index_of(target_id) if target_id is not None else -1
            if index < 0:
                index = len(self.schema.fields)
            self.schema.fields.insert(index, instance)
            self._settle_state()
            logger.debug("Inserted %s field %s at %d", instance.type.value, instance.id, index)
            self._emit(
                EventType.FIELD_INSERTED,
                field_id=instance.id,
                payload={"index": index, "type": instance.type.value, "source": "palette"},
            )
            return instance

        from_index = self.schema.index_of(source.ref)
        to_index = self.schema.index_of(target_id) if target_id is not None else -1
        if from_index < 0 or to_index < 0 or from_index == to_index:
            self._settle_state()
            self._emit(EventType.DRAG_CANCELLED, field_id=source.ref, payload={"reason": "no_target"})
            return None

        self.schema.fields = array_move(self.schema.fields, from_index, to_index)
        self._settle_state()
        logger.debug("Moved field %s from %d to %d", source.ref, from_index, to_index)
        self._emit(
            EventType.FIELD_MOVED,
            field_id=source.ref,
            payload={"from": from_index, "to": to_index},
        )
        return self.schema.fields[to_index]

    def cancel_drag(self) -> None:
        """Abandon the current drag without changing the schema."""
        if self.state != EditorState.DRAGGING:
            raise InvalidStateTransitionError(
                current_state=self.state,
                target_state=EditorState.IDLE,
                message="Cannot cancel: no drag is in progress",
            )
        source = self.drag_source
        self.drag_source = None
        self._settle_state()
        self._emit(
            EventType.DRAG_CANCELLED,
            field_id=source.ref if source and source.kind == DragSourceKind.FIELD else None,
            payload={"reason": "cancelled"},
        )

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def add_field(self, component_type: Any, index: Optional[int] = None) -> FieldInstance:
        """Instantiate a field of the given type and insert it (append by default).

        Raises:
            UnknownTypeError: If the type is not registered
        """
        return self.insert_field(self.registry.instantiate(component_type), index)

    def insert_field(self, instance: FieldInstance, index: Optional[int] = None) -> FieldInstance:
        """Insert an existing field instance (e.g. from a coerced external schema).

        Raises:
            UnknownTypeError: If the instance's type is not registered
            ValueError: If a field with the same id already exists
        """
        self._ensure_not_dragging("insert a field")
        self.registry.describe(instance.type)
        if instance.id in self.schema:
            raise ValueError(f"Field id already present in schema: {instance.id}")
        if index is None or index > len(self.schema.fields):
            index = len(self.schema.fields)
        index = max(index, 0)
        self.schema.fields.insert(index, instance)
        logger.debug("Inserted %s field %s at %d", instance.type.value, instance.id, index)
        self._emit(
            EventType.FIELD_INSERTED,
            field_id=instance.id,
            payload={"index": index, "type": instance.type.value, "source": "programmatic"},
        )
        return instance

    def select(self, field_id: str) -> None:
        """Select a field for property editing (replaces any selection).

        Raises:
            KeyError: If the field does not exist
            InvalidStateTransitionError: If a drag is in progress
        """
        self._ensure_not_dragging("select a field")
        self.schema.get(field_id)
        self._transition_to(EditorState.EDITING)
        self.selected_id = field_id
        self._emit(EventType.FIELD_SELECTED, field_id=field_id)

    def deselect(self) -> None:
        """Clear the selection; a no-op when nothing is selected."""
        self._ensure_not_dragging("deselect")
        if self.state != EditorState.EDITING:
            return
        previous = self.selected_id
        self._transition_to(EditorState.IDLE)
        self.selected_id = None
        self._emit(EventType.FIELD_DESELECTED, field_id=previous)

    def delete(self, field_id: str) -> bool:
        """Remove a field; deleting the selected field returns the editor to idle.

        Returns:
            True if a field was removed, False if the id was unknown
        """
        self._ensure_not_dragging("delete a field")
        index = self.schema.index_of(field_id)
        if index < 0:
            return False
        del self.schema.fields[index]
        if self.selected_id == field_id:
            self._transition_to(EditorState.IDLE)
            self.selected_id = None
        logger.debug("Deleted field %s at %d", field_id, index)
        self._emit(EventType.FIELD_DELETED, field_id=field_id, payload={"index": index})
        return True

    def can_move_up(self, field_id: str) -> bool:
        return self.schema.index_of(field_id) > 0

    def can_move_down(self, field_id: str) -> bool:
        index = self.schema.index_of(field_id)
        return 0 <= index < len(self.schema.fields) - 1

    def move_up(self, field_id: str) -> bool:
        """Swap a field with the one above it; no-op for the first field."""
        return self._swap(field_id, -1)

    def move_down(self, field_id: str) -> bool:
        """Swap a field with the one below it; no-op for the last field."""
        return self._swap(field_id, 1)

    def _swap(self, field_id: str, offset: int) -> bool:
        self._ensure_not_dragging("move a field")
        index = self.schema.index_of(field_id)
        target = index + offset
        if index < 0 or not 0 <= target < len(self.schema.fields):
            return False
        fields = self.schema.fields
        fields[index], fields[target] = fields[target], fields[index]
        self._emit(EventType.FIELD_MOVED, field_id=field_id, payload={"from": index, "to": target})
        return True

    # ------------------------------------------------------------------
    # Property edits
    # ------------------------------------------------------------------

    def update_field(self, field_id: str, **attributes: Any) -> FieldInstance:
        """Replace the given attributes of one field, in place.

        Order and every other field are unchanged. Attributes the type does
        not recognize are stored and ignored by its renderer.

        Raises:
            KeyError: If the field does not exist
            ValueError: If ``id``, ``type`` or an unknown attribute is named
        """
        index = self.schema.index_of(field_id)
        if index < 0:
            raise KeyError(field_id)
        updated = self.schema.fields[index].with_attributes(**attributes)
        self.schema.fields[index] = updated
        self._emit(
            EventType.FIELD_UPDATED,
            field_id=field_id,
            payload={"attributes": sorted(attributes)},
        )
        return updated

    def set_label(self, field_id: str, label: str) -> FieldInstance:
        return self.update_field(field_id, label=label)

    def set_placeholder(self, field_id: str, placeholder: str) -> FieldInstance:
        return self.update_field(field_id, placeholder=placeholder)

    def set_comment(self, field_id: str, comment: str) -> FieldInstance:
        return self.update_field(field_id, comment=comment)

    def set_required(self, field_id: str, required: bool) -> FieldInstance:
        return self.update_field(field_id, required=bool(required))

    def toggle_required(self, field_id: str) -> FieldInstance:
        return self.update_field(field_id, required=not self.schema.get(field_id).required)

    def toggle_disallow_decimals(self, field_id: str) -> FieldInstance:
        current = self.schema.get(field_id).disallow_decimals
        return self.update_field(field_id, disallow_decimals=not current)

    def set_allow_half(self, field_id: str, allow_half: bool) -> FieldInstance:
        return self.update_field(field_id, allow_half=bool(allow_half))

    def set_form_name(self, name: Optional[str]) -> None:
        name = name or ""
        self.schema.name = name
        self._emit(EventType.FORM_RENAMED, payload={"name": name})

    # Options ---------------------------------------------------------

    def _choice_options(self, field_id: str) -> Optional[List[str]]:
        instance = self.schema.get(field_id)
        if instance.type not in CHOICE_TYPES:
            logger.debug("Field %s (%s) has no options; edit ignored", field_id, instance.type.value)
            return None
        return list(instance.options or ())

    def set_option(self, field_id: str, index: int, text: str) -> bool:
        """Replace the text of one option.

        Returns:
            True if the option was replaced; False for a field without options

        Raises:
            IndexError: If the option index is out of range
        """
        options = self._choice_options(field_id)
        if options is None:
            return False
        options[index] = text
        self.update_field(field_id, options=options)
        return True

    def add_option(self, field_id: str) -> bool:
        """Append "Option {n+1}"; a field already at the option cap is unchanged.

        Returns:
            True if an option was added; False at the cap or for a field
            without options
        """
        options = self._choice_options(field_id)
        if options is None:
            return False
        if len(options) >= self.policy.option_cap:
            logger.debug(
                "Option cap %d reached for field %s; add ignored", self.policy.option_cap, field_id
            )
            return False
        options.append(f"Option {len(options) + 1}")
        self.update_field(field_id, options=options)
        return True

    def remove_option(self, field_id: str, index: int) -> bool:
        """Remove one option and renumber the remaining default-named options.

        Returns:
            True if the option was removed; False for a field without options

        Raises:
            IndexError: If the option index is out of range
        """
        options = self._choice_options(field_id)
        if options is None:
            return False
        del options[index]
        self.update_field(field_id, options=renumber_default_options(options))
        return True

    # Email allow-list -----------------------------------------------

    def add_domain(self, field_id: str) -> FieldInstance:
        """Append an empty allowed-domain entry to be filled in."""
        domains = list(self.schema.get(field_id).allowed_domains or ())
        domains.append("")
        return self.update_field(field_id, allowed_domains=domains)

    def set_domain(self, field_id: str, index: int, domain: str) -> FieldInstance:
        domains = list(self.schema.get(field_id).allowed_domains or ())
        domains[index] = domain
        return self.update_field(field_id, allowed_domains=domains)

    def remove_domain(self, field_id: str, index: int) -> FieldInstance:
        domains = list(self.schema.get(field_id).allowed_domains or ())
        del domains[index]
        return self.update_field(field_id, allowed_domains=domains)

    # Slider bounds ----------------------------------------------------

    def set_slider_min(self, field_id: str, value: Any) -> bool:
        """Set the slider minimum if it does not exceed the current maximum.

        Fractions are truncated toward zero; unparseable input is read as
        the default minimum (0).

        Returns:
            True if the edit was accepted; a rejected edit changes nothing
        """
        instance = self.schema.get(field_id)
        new_min = _parse_bound(value, SLIDER_DEFAULT_MIN)
        current_max = instance.max_value if instance.max_value is not None else SLIDER_DEFAULT_MAX
        if new_min > current_max:
            logger.debug("Rejected slider min %s > max %s for field %s", new_min, current_max, field_id)
            return False
        self.update_field(field_id, min_value=new_min)
        return True

    def set_slider_max(self, field_id: str, value: Any) -> bool:
        """Set the slider maximum if it is not below the current minimum.

        Fractions are truncated toward zero; unparseable input is read as
        the default maximum (100).

        Returns:
            True if the edit was accepted; a rejected edit changes nothing
        """
        instance = self.schema.get(field_id)
        new_max = _parse_bound(value, SLIDER_DEFAULT_MAX)
        current_min = instance.min_value if instance.min_value is not None else SLIDER_DEFAULT_MIN
        if new_max < current_min:
            logger.debug("Rejected slider max %s < min %s for field %s", new_max, current_min, field_id)
            return False
        self.update_field(field_id, max_value=new_max)
        return True

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def export_draft(self, transport: DraftTransport) -> None:
        """Hand the current schema to a draft preview."""
        transport.write(self.schema.copy())

    def load_schema(self, schema: FormSchema) -> None:
        """Replace the schema being edited and reset the session to idle."""
        self._ensure_not_dragging("load a schema")
        self.schema = schema
        self.selected_id = None
        self.state = EditorState.IDLE
        self._emit(EventType.DRAFT_LOADED, payload={"fields": len(schema)})

    def _emit(
        self,
        event_type: EventType,
        field_id: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        event = EditorEvent(
            event_id=f"evt_{uuid.uuid4().hex[:16]}",
            type=event_type,
            ts=datetime.now(timezone.utc),
            state=self.state,
            field_id=field_id,
            payload=payload,
        )
        self._events.append(event)
        self.emitter.emit(event)

    def get_events(self) -> List[EditorEvent]:
        """Return all events emitted in this session, oldest first."""
        return list(self._events)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the session snapshot.

        Examples:
            >>> EditorStateMachine().to_dict()["state"]
            'idle'
        """
        return {
            "state": self.state.value,
            "selectedId": self.selected_id,
            "schema": self.schema.to_dict(),
        }

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        registry: Optional[ComponentRegistry] = None,
    ) -> "EditorStateMachine":
        """Restore a session snapshot.

        A snapshot taken mid-drag restores to the state the drop would settle
        into, since the drag source is not persisted.
        """
        schema = FormSchema.from_dict(data["schema"])
        selected_id = data.get("selectedId")
        if selected_id is not None and selected_id not in schema:
            selected_id = None
        state = EditorState.EDITING if selected_id is not None else EditorState.IDLE
        return cls(
            schema=schema,
            registry=registry or ComponentRegistry(),
            state=state,
            selected_id=selected_id,
        )


def _parse_bound(value: Any, default: int) -> int:
    number = parse_number(value)
    if number is None:
        return default
    return int(number)


__all__ = [
    "EditorStateMachine",
    "DragSource",
    "DragSourceKind",
    "VALID_TRANSITIONS",
    "array_move",
    "renumber_default_options",
]
