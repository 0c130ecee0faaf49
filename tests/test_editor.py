"""Unit tests for the editor state machine.

Tests cover:
- Initialization and transition table
- Palette drag-and-drop insertion and field reordering
- Selection, deselection and deletion
- Move up/down boundaries
- In-place property edits
- Option and slider-bound edit policies
- Event emission and snapshot serialization
"""

import itertools
import random

import pytest

from formcraft.config import Policy
from formcraft.drafts import InMemoryDraftTransport
from formcraft.editor import (
    VALID_TRANSITIONS,
    DragSourceKind,
    EditorStateMachine,
    array_move,
    renumber_default_options,
)
from formcraft.errors import InvalidStateTransitionError, UnknownTypeError
from formcraft.registry import ComponentRegistry
from formcraft.types import EditorState, EventType


def make_editor(*types, policy=None):
    registry = ComponentRegistry(policy=policy) if policy else ComponentRegistry()
    editor = EditorStateMachine(registry=registry)
    for component_type in types:
        editor.add_field(component_type)
    return editor


class TestInitialization:
    """Test editor defaults."""

    def test_starts_idle_and_empty(self):
        editor = EditorStateMachine()
        assert editor.state == EditorState.IDLE
        assert editor.selected_id is None
        assert len(editor.schema) == 0
        assert editor.get_events() == []

    def test_transition_table_covers_all_states(self):
        assert set(VALID_TRANSITIONS) == set(EditorState)

    def test_idle_cannot_stay_idle_by_transition(self):
        editor = EditorStateMachine()
        assert editor.can_transition_to(EditorState.DRAGGING)
        assert editor.can_transition_to(EditorState.EDITING)
        assert not editor.can_transition_to(EditorState.IDLE)


class TestPaletteDrop:
    """Test inserting fields by dragging palette entries."""

    def test_drag_start_enters_dragging(self):
        editor = EditorStateMachine()
        editor.start_drag("text")
        assert editor.state == EditorState.DRAGGING
        assert editor.drag_source.kind == DragSourceKind.PALETTE

    def test_drop_without_target_appends(self):
        editor = make_editor("text", "email")
        editor.start_drag("number")
        inserted = editor.drop()
        assert editor.state == EditorState.IDLE
        assert editor.schema.fields[-1] is inserted
        assert inserted.type.value == "number"

    def test_drop_on_target_inserts_at_its_position(self):
        editor = make_editor("text", "email")
        target = editor.schema.fields[1]
        editor.start_drag("number")
        inserted = editor.drop(target.id)
        assert [f.type.value for f in editor.schema] == ["text", "number", "email"]
        assert editor.schema.index_of(inserted.id) == 1

    def test_drop_on_unknown_target_appends(self):
        editor = make_editor("text")
        editor.start_drag("divider")
        editor.drop("not-a-field")
        assert [f.type.value for f in editor.schema] == ["text", "divider"]

    def test_unknown_drag_source(self):
        editor = EditorStateMachine()
        with pytest.raises(UnknownTypeError):
            editor.start_drag("signature")
        assert editor.state == EditorState.IDLE

    def test_double_drag_start_rejected(self):
        editor = EditorStateMachine()
        editor.start_drag("text")
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            editor.start_drag("email")
        assert exc_info.value.current_state == EditorState.DRAGGING
        assert exc_info.value.target_state == EditorState.DRAGGING

    def test_drop_without_drag_rejected(self):
        editor = EditorStateMachine()
        with pytest.raises(InvalidStateTransitionError):
            editor.drop()

    def test_cancel_drag(self):
        editor = make_editor("text")
        editor.start_drag("email")
        editor.cancel_drag()
        assert editor.state == EditorState.IDLE
        assert len(editor.schema) == 1
        assert editor.drag_source is None

    def test_cancel_without_drag_rejected(self):
        with pytest.raises(InvalidStateTransitionError):
            EditorStateMachine().cancel_drag()


class TestFieldReorderDrop:
    """Test reordering by dragging existing fields."""

    def test_move_to_target_position(self):
        editor = make_editor("text", "email", "number")
        first = editor.schema.fields[0]
        last = editor.schema.fields[2]
        editor.start_drag(first.id)
        assert editor.drag_source.kind == DragSourceKind.FIELD
        moved = editor.drop(last.id)
        assert moved.id == first.id
        assert [f.type.value for f in editor.schema] == ["email", "number", "text"]

    def test_move_upwards(self):
        editor = make_editor("text", "email", "number")
        ids = editor.schema.field_ids()
        editor.start_drag(ids[2])
        editor.drop(ids[0])
        assert editor.schema.field_ids() == [ids[2], ids[0], ids[1]]

    def test_invalid_target_is_noop(self):
        editor = make_editor("text", "email")
        before = editor.schema.field_ids()
        editor.start_drag(before[0])
        assert editor.drop(None) is None
        assert editor.schema.field_ids() == before
        assert editor.state == EditorState.IDLE

    def test_drop_on_itself_is_noop(self):
        editor = make_editor("text", "email")
        before = editor.schema.field_ids()
        editor.start_drag(before[1])
        assert editor.drop(before[1]) is None
        assert editor.schema.field_ids() == before

    def test_ids_stable_across_reorder(self):
        editor = make_editor("text", "email", "number")
        before = set(editor.schema.field_ids())
        ids = editor.schema.field_ids()
        editor.start_drag(ids[0])
        editor.drop(ids[2])
        assert set(editor.schema.field_ids()) == before


class TestSelection:
    """Test select/deselect/delete transitions."""

    def test_select_enters_editing(self):
        editor = make_editor("text")
        field_id = editor.schema.fields[0].id
        editor.select(field_id)
        assert editor.state == EditorState.EDITING
        assert editor.selected_id == field_id
        assert editor.selected_field.id == field_id

    def test_single_selection(self):
        editor = make_editor("text", "email")
        a, b = editor.schema.field_ids()
        editor.select(a)
        editor.select(b)
        assert editor.selected_id == b
        assert editor.state == EditorState.EDITING

    def test_select_unknown_field(self):
        editor = make_editor("text")
        with pytest.raises(KeyError):
            editor.select("missing")
        assert editor.state == EditorState.IDLE

    def test_deselect(self):
        editor = make_editor("text")
        editor.select(editor.schema.fields[0].id)
        editor.deselect()
        assert editor.state == EditorState.IDLE
        assert editor.selected_id is None

    def test_deselect_when_idle_is_noop(self):
        editor = EditorStateMachine()
        editor.deselect()
        assert editor.state == EditorState.IDLE
        assert editor.get_events() == []

    def test_delete_selected_returns_to_idle(self):
        editor = make_editor("text", "email")
        selected = editor.schema.fields[0].id
        editor.select(selected)
        assert editor.delete(selected) is True
        assert editor.state == EditorState.IDLE
        assert editor.selected_id is None
        assert selected not in editor.schema

    def test_delete_other_field_keeps_selection(self):
        editor = make_editor("text", "email")
        a, b = editor.schema.field_ids()
        editor.select(a)
        editor.delete(b)
        assert editor.state == EditorState.EDITING
        assert editor.selected_id == a

    def test_delete_unknown_is_noop(self):
        editor = make_editor("text")
        assert editor.delete("missing") is False
        assert len(editor.schema) == 1

    def test_select_during_drag_rejected(self):
        editor = make_editor("text")
        editor.start_drag("email")
        with pytest.raises(InvalidStateTransitionError):
            editor.select(editor.schema.fields[0].id)

    def test_drag_from_editing_keeps_selection(self):
        editor = make_editor("text", "email")
        a = editor.schema.fields[0].id
        editor.select(a)
        editor.start_drag("number")
        assert editor.state == EditorState.DRAGGING
        editor.drop()
        assert editor.state == EditorState.EDITING
        assert editor.selected_id == a


class TestMoveUpDown:
    """Test neighbour swaps."""

    def test_move_down(self):
        editor = make_editor("text", "email", "number")
        ids = editor.schema.field_ids()
        assert editor.move_down(ids[0]) is True
        assert editor.schema.field_ids() == [ids[1], ids[0], ids[2]]

    def test_boundaries_are_noops(self):
        editor = make_editor("text", "email")
        ids = editor.schema.field_ids()
        assert editor.move_up(ids[0]) is False
        assert editor.move_down(ids[1]) is False
        assert editor.schema.field_ids() == ids
        assert not editor.can_move_up(ids[0])
        assert not editor.can_move_down(ids[1])
        assert editor.can_move_down(ids[0])
        assert editor.can_move_up(ids[1])

    def test_selection_unchanged(self):
        editor = make_editor("text", "email")
        ids = editor.schema.field_ids()
        editor.select(ids[1])
        editor.move_up(ids[1])
        assert editor.selected_id == ids[1]
        assert editor.state == EditorState.EDITING

    def test_random_moves_are_permutations(self):
        """Any sequence of moves keeps the same multiset of ids."""
        editor = make_editor("text", "email", "number", "select", "divider")
        original = sorted(editor.schema.field_ids())
        rng = random.Random(7)
        for _ in range(200):
            field_id = rng.choice(editor.schema.field_ids())
            rng.choice([editor.move_up, editor.move_down])(field_id)
            assert sorted(editor.schema.field_ids()) == original


class TestPropertyEdits:
    """Test in-place attribute edits."""

    def test_edit_preserves_order_and_others(self):
        editor = make_editor("text", "email", "number")
        before = list(editor.schema.fields)
        target = before[1]
        editor.set_label(target.id, "Work email")
        after = editor.schema.fields
        assert [f.id for f in after] == [f.id for f in before]
        assert after[0] is before[0]
        assert after[2] is before[2]
        assert after[1].label == "Work email"
        assert after[1].placeholder == target.placeholder

    def test_update_field_multiple_attributes(self):
        editor = make_editor("text")
        field_id = editor.schema.fields[0].id
        updated = editor.update_field(field_id, placeholder="Your name", comment="As on ID")
        assert updated.placeholder == "Your name"
        assert updated.comment == "As on ID"

    def test_update_unknown_field(self):
        with pytest.raises(KeyError):
            EditorStateMachine().update_field("missing", label="x")

    def test_cannot_edit_id(self):
        editor = make_editor("text")
        with pytest.raises(ValueError):
            editor.update_field(editor.schema.fields[0].id, id="other")

    def test_toggles(self):
        editor = make_editor("number")
        field_id = editor.schema.fields[0].id
        assert editor.toggle_disallow_decimals(field_id).disallow_decimals is True
        assert editor.toggle_disallow_decimals(field_id).disallow_decimals is False
        assert editor.toggle_required(field_id).required is True
        assert editor.set_required(field_id, False).required is False

    def test_set_form_name(self):
        editor = EditorStateMachine()
        editor.set_form_name("Survey")
        assert editor.schema.display_name == "Survey"
        assert editor.get_events()[-1].type == EventType.FORM_RENAMED

    def test_cleared_form_name_is_empty(self):
        """Should store a cleared name as empty so the default title shows."""
        editor = EditorStateMachine()
        editor.set_form_name("Survey")
        editor.set_form_name(None)
        assert editor.schema.name == ""
        assert editor.schema.display_name == "Untitled Form"
        assert editor.schema.to_dict()["formName"] == ""
        assert editor.get_events()[-1].payload == {"name": ""}

    def test_domain_edits(self):
        editor = make_editor("email")
        field_id = editor.schema.fields[0].id
        editor.add_domain(field_id)
        editor.set_domain(field_id, 0, "example.com")
        editor.add_domain(field_id)
        editor.set_domain(field_id, 1, "example.org")
        assert editor.schema.get(field_id).allowed_domains == ("example.com", "example.org")
        editor.remove_domain(field_id, 0)
        assert editor.schema.get(field_id).allowed_domains == ("example.org",)


class TestOptionPolicy:
    """Test option add/remove/renumber."""

    def test_add_option_appends_next_number(self):
        editor = make_editor("select")
        field_id = editor.schema.fields[0].id
        assert editor.add_option(field_id) is True
        assert editor.schema.get(field_id).options[-1] == "Option 4"

    def test_cap_is_noop(self):
        editor = make_editor("radio")
        field_id = editor.schema.fields[0].id
        editor.add_option(field_id)
        editor.add_option(field_id)
        before = editor.schema.get(field_id)
        assert len(before.options) == 5
        assert editor.add_option(field_id) is False
        assert editor.schema.get(field_id) == before

    def test_cap_from_policy(self):
        editor = make_editor("select", policy=Policy(option_cap=3, default_option_count=3))
        field_id = editor.schema.fields[0].id
        assert editor.add_option(field_id) is False

    def test_add_then_remove_round_trip(self):
        editor = make_editor("select")
        field_id = editor.schema.fields[0].id
        before = editor.schema.get(field_id).options
        editor.add_option(field_id)
        editor.remove_option(field_id, 3)
        assert editor.schema.get(field_id).options == before

    def test_remove_renumbers_default_options(self):
        editor = make_editor("select")
        field_id = editor.schema.fields[0].id
        editor.remove_option(field_id, 0)
        assert editor.schema.get(field_id).options == ("Option 1", "Option 2")

    def test_remove_keeps_custom_options(self):
        editor = make_editor("select")
        field_id = editor.schema.fields[0].id
        editor.set_option(field_id, 1, "Support")
        editor.remove_option(field_id, 0)
        assert editor.schema.get(field_id).options == ("Support", "Option 2")

    def test_set_option_out_of_range(self):
        editor = make_editor("select")
        with pytest.raises(IndexError):
            editor.set_option(editor.schema.fields[0].id, 9, "x")

    @pytest.mark.parametrize("kind", ["text", "slider", "email"])
    def test_option_edits_ignored_on_non_choice_fields(self, kind):
        """Should leave fields without options untouched."""
        editor = make_editor(kind)
        field_id = editor.schema.fields[0].id
        before = editor.schema.get(field_id)
        assert editor.add_option(field_id) is False
        assert editor.set_option(field_id, 0, "x") is False
        assert editor.remove_option(field_id, 0) is False
        assert editor.schema.get(field_id) == before
        assert before.options is None

    def test_renumber_helper(self):
        assert renumber_default_options(["Option 3", "Custom", "Option 9"]) == [
            "Option 1", "Custom", "Option 3",
        ]
        assert renumber_default_options(["Option 1a"]) == ["Option 1a"]


class TestSliderPolicy:
    """Test slider bound edits."""

    def test_accepts_ordered_edits(self):
        editor = make_editor("slider")
        field_id = editor.schema.fields[0].id
        assert editor.set_slider_min(field_id, 10) is True
        assert editor.set_slider_max(field_id, 20) is True
        f = editor.schema.get(field_id)
        assert (f.min_value, f.max_value) == (10, 20)

    def test_rejects_min_above_max(self):
        editor = make_editor("slider")
        field_id = editor.schema.fields[0].id
        before = editor.schema.get(field_id)
        assert editor.set_slider_min(field_id, 101) is False
        assert editor.schema.get(field_id) == before

    def test_rejects_max_below_min(self):
        editor = make_editor("slider")
        field_id = editor.schema.fields[0].id
        editor.set_slider_min(field_id, 30)
        assert editor.set_slider_max(field_id, 29) is False
        assert editor.schema.get(field_id).max_value == 100

    def test_equal_bounds_allowed(self):
        editor = make_editor("slider")
        field_id = editor.schema.fields[0].id
        assert editor.set_slider_min(field_id, 100) is True

    def test_text_input_parsed(self):
        editor = make_editor("slider")
        field_id = editor.schema.fields[0].id
        assert editor.set_slider_max(field_id, "40") is True
        assert editor.schema.get(field_id).max_value == 40
        assert editor.set_slider_min(field_id, "") is True
        assert editor.schema.get(field_id).min_value == 0

    def test_fractional_bounds_truncated(self):
        editor = make_editor("slider")
        field_id = editor.schema.fields[0].id
        assert editor.set_slider_max(field_id, "12.7") is True
        assert editor.set_slider_min(field_id, 5.9) is True
        f = editor.schema.get(field_id)
        assert (f.min_value, f.max_value) == (5, 12)
        assert isinstance(f.max_value, int)

    def test_non_finite_bound_reads_as_default(self):
        editor = make_editor("slider")
        field_id = editor.schema.fields[0].id
        assert editor.set_slider_max(field_id, "inf") is True
        assert editor.schema.get(field_id).max_value == 100

    def test_invariant_holds_for_all_edit_sequences(self):
        editor = make_editor("slider")
        field_id = editor.schema.fields[0].id
        candidates = [-10, 0, 5, 50, 99, 100, 150]
        for low, high in itertools.product(candidates, repeat=2):
            before = editor.schema.get(field_id)
            accepted = editor.set_slider_min(field_id, low)
            after = editor.schema.get(field_id)
            assert after.min_value <= after.max_value
            if not accepted:
                assert after == before
            before = after
            accepted = editor.set_slider_max(field_id, high)
            after = editor.schema.get(field_id)
            assert after.min_value <= after.max_value
            if not accepted:
                assert after == before


class TestEvents:
    """Test event emission."""

    def test_every_change_emits(self):
        editor = EditorStateMachine()
        seen = []
        editor.emitter.on_any(seen.append)
        editor.start_drag("text")
        inserted = editor.drop()
        editor.select(inserted.id)
        editor.set_label(inserted.id, "Name")
        editor.delete(inserted.id)
        assert [e.type for e in seen] == [
            EventType.DRAG_STARTED,
            EventType.FIELD_INSERTED,
            EventType.FIELD_SELECTED,
            EventType.FIELD_UPDATED,
            EventType.FIELD_DELETED,
        ]
        assert seen == editor.get_events()

    def test_event_records_state_after_change(self):
        editor = make_editor("text")
        field_id = editor.schema.fields[0].id
        editor.select(field_id)
        editor.delete(field_id)
        deleted = editor.get_events()[-1]
        assert deleted.state == EditorState.IDLE
        assert deleted.field_id == field_id
        assert deleted.payload == {"index": 0}

    def test_failing_listener_does_not_block_edit(self):
        editor = EditorStateMachine()

        def broken(event):
            raise RuntimeError("boom")

        editor.emitter.on(EventType.FIELD_INSERTED, broken)
        inserted = editor.add_field("text")
        assert inserted.id in editor.schema


class TestSnapshot:
    """Test serialization, schema loading and drafts."""

    def test_round_trip(self):
        editor = make_editor("text", "select")
        editor.set_form_name("Survey")
        selected = editor.schema.fields[1].id
        editor.select(selected)
        restored = EditorStateMachine.from_dict(editor.to_dict())
        assert restored.state == EditorState.EDITING
        assert restored.selected_id == selected
        assert restored.schema == editor.schema

    def test_stale_selection_dropped(self):
        data = {"state": "editing", "selectedId": "gone",
                "schema": {"formName": "X", "formComponents": []}}
        restored = EditorStateMachine.from_dict(data)
        assert restored.state == EditorState.IDLE
        assert restored.selected_id is None

    def test_load_schema_resets_session(self):
        editor = make_editor("text")
        editor.select(editor.schema.fields[0].id)
        other = make_editor("email").schema
        editor.load_schema(other)
        assert editor.state == EditorState.IDLE
        assert editor.schema is other
        assert editor.get_events()[-1].type == EventType.DRAFT_LOADED

    def test_export_draft(self):
        editor = make_editor("text")
        transport = InMemoryDraftTransport()
        editor.export_draft(transport)
        assert transport.read_once() == editor.schema


def test_array_move():
    assert array_move(["a", "b", "c"], 0, 2) == ["b", "c", "a"]
    assert array_move(["a", "b", "c"], 2, 0) == ["c", "a", "b"]
