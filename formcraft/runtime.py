"""FormRuntime orchestrator for rendering and submitting a form.

A FormRuntime is one render session over a schema: the builder canvas, a
draft preview, or the live published form. It never mutates the schema; it
owns a parallel values map, renders widgets through the registry's per-type
strategies, validates on submit and hands the payload to a gateway.

Usage:
    >>> from formcraft.gateway import InMemoryGateway
    >>> from formcraft.registry import ComponentRegistry
    >>> from formcraft.schema import FormSchema
    >>> registry = ComponentRegistry()
    >>> schema = FormSchema(name="Feedback", fields=[registry.instantiate("text")])
    >>> gateway = InMemoryGateway()
    >>> published = publish(schema, gateway, session_token="0123456789abcdef")
    >>> runtime = FormRuntime.open_published(gateway, published.identifier)
    >>> runtime.set_value(schema.fields[0].id, "Great")
    >>> runtime.submit().startswith("sub_")
    True
    >>> runtime.values
    {}
"""

import logging
from typing import Any, Dict, List, Optional, Set

from formcraft.drafts import DraftTransport
from formcraft.errors import PreviewSubmitError, SubmissionBlockedError, ValidationError
from formcraft.gateway import FormGateway, PublishResult
from formcraft.registry import ComponentRegistry
from formcraft.renderers import CheckboxRenderer, RatingRenderer, Widget, commit_location
from formcraft.schema import FieldInstance, FormSchema, LocationValue
from formcraft.types import ComponentType, RenderMode
from formcraft.validation import ValidationEngine, ValidationResult

logger = logging.getLogger(__name__)


def publish(schema: FormSchema, gateway: FormGateway, session_token: str) -> PublishResult:
    """Persist a schema through a gateway so it becomes publicly fillable.

    Each call creates a new form record. TransportError propagates unchanged
    and the caller's schema is untouched, so the user may retry.
    """
    result = gateway.create_form(schema.display_name, schema.copy(), session_token)
    logger.info("Form '%s' published at %s", schema.display_name, result.url)
    return result


class FormRuntime:
    """Render/submit session over one schema.

    Attributes:
        schema: The schema being rendered (treated as immutable)
        mode: Builder canvas, draft preview or published form
        identifier: Gateway identifier of a published form
        values: Field id -> current value
        errors: Field id -> inline error from the last validation

    Examples:
        >>> from formcraft.schema import FieldInstance
        >>> schema = FormSchema(fields=[
        ...     FieldInstance(id="d", type=ComponentType.DIVIDER, label="Break"),
        ... ])
        >>> FormRuntime(schema, mode=RenderMode.PREVIEW).render_all()[0].show_label
        False
    """

    def __init__(
        self,
        schema: FormSchema,
        mode: RenderMode = RenderMode.PUBLISHED,
        registry: Optional[ComponentRegistry] = None,
        gateway: Optional[FormGateway] = None,
        identifier: Optional[str] = None,
    ):
        self.schema = schema
        self.mode = mode
        self.registry = registry or ComponentRegistry()
        self.gateway = gateway
        self.identifier = identifier
        self.values: Dict[str, Any] = {}
        self.errors: Dict[str, ValidationError] = {}
        self._loaded_frames: Set[str] = set()
        self._validation_engine = ValidationEngine(schema, self.registry)

    @classmethod
    def open_published(
        cls,
        gateway: FormGateway,
        identifier: str,
        registry: Optional[ComponentRegistry] = None,
    ) -> "FormRuntime":
        """Fetch a published form and open a session on it.

        Raises:
            FormNotFoundError: If the gateway has no such form
            TransportError: If the form cannot be fetched
        """
        schema = gateway.fetch_form(identifier)
        return cls(
            schema,
            mode=RenderMode.PUBLISHED,
            registry=registry,
            gateway=gateway,
            identifier=identifier,
        )

    @classmethod
    def from_draft(
        cls,
        transport: DraftTransport,
        registry: Optional[ComponentRegistry] = None,
    ) -> "FormRuntime":
        """Open a draft preview from the builder's hand-off.

        Raises:
            LookupError: If the transport holds no draft
        """
        schema = transport.read_once()
        if schema is None:
            raise LookupError("No draft available for preview")
        return cls(schema, mode=RenderMode.PREVIEW, registry=registry)

    @classmethod
    def for_builder(
        cls,
        schema: FormSchema,
        registry: Optional[ComponentRegistry] = None,
    ) -> "FormRuntime":
        """Canvas rendering for the editor: disabled widgets, no values."""
        return cls(schema, mode=RenderMode.BUILDER, registry=registry)

    @property
    def can_submit(self) -> bool:
        return self.mode == RenderMode.PUBLISHED

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def _value_field(self, field_id: str) -> FieldInstance:
        instance = self.schema.get(field_id)
        if not self.registry.renderer_for(instance.type).has_value:
            raise ValueError(f"Field '{field_id}' ({instance.type.value}) does not hold a value")
        return instance

    def set_value(self, field_id: str, value: Any) -> None:
        """Set a field's current value.

        Raises:
            KeyError: If the field does not exist
            ValueError: If the field type holds no value (divider, iframe)
        """
        self._value_field(field_id)
        self.values[field_id] = value

    def clear_value(self, field_id: str) -> None:
        """Return a field to its unset state (e.g. select's empty choice)."""
        self.values.pop(field_id, None)

    def toggle_option(self, field_id: str, option: str, checked: bool) -> List[str]:
        """Tick or untick a checkbox option, keeping toggle order."""
        self._value_field(field_id)
        values = CheckboxRenderer.toggle(self.values.get(field_id), option, checked)
        self.values[field_id] = values
        return values

    def set_location(
        self,
        field_id: str,
        lat_text: Any,
        lng_text: Any,
        address: Optional[str] = None,
    ) -> Optional[LocationValue]:
        """Commit a coordinate pair; partial entry leaves the value unchanged."""
        self._value_field(field_id)
        location = commit_location(lat_text, lng_text, address)
        if location is not None:
            self.values[field_id] = location
        return location

    def rate(self, field_id: str, star: int, half: bool = False) -> float:
        """Apply a click on a rating star (or on its left half).

        Raises:
            ValueError: If the star is outside 1..max stars for the field
        """
        instance = self._value_field(field_id)
        max_stars = RatingRenderer.max_stars(instance)
        if not 1 <= star <= max_stars:
            raise ValueError(f"Star {star} is outside 1..{max_stars} for field '{field_id}'")
        value = RatingRenderer.rating_value(star, half and bool(instance.allow_half))
        self.values[field_id] = value
        return value

    def mark_frame_loaded(self, field_id: str) -> None:
        """Record the load signal of an embedded frame, hiding its failure overlay."""
        instance = self.schema.get(field_id)
        if instance.type != ComponentType.IFRAME:
            raise ValueError(f"Field '{field_id}' is not an iframe")
        self._loaded_frames.add(field_id)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, field_id: str) -> Widget:
        return self._render(self.schema.get(field_id))

    def render_all(self) -> List[Widget]:
        """Render every field in schema order."""
        return [self._render(instance) for instance in self.schema.fields]

    def _render(self, instance: FieldInstance) -> Widget:
        renderer = self.registry.renderer_for(instance.type)
        if instance.type == ComponentType.IFRAME:
            value: Any = instance.id in self._loaded_frames
        elif self.mode == RenderMode.BUILDER:
            value = None
        else:
            value = self.values.get(instance.id)
        return renderer.render(
            instance,
            value,
            error=self.errors.get(instance.id),
            disabled=self.mode == RenderMode.BUILDER,
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def validate(self) -> ValidationResult:
        """Validate the current values and record inline errors."""
        result = self._validation_engine.validate(self.values)
        self.errors = {error.field_id: error for error in result.errors}
        return result

    def submit(self) -> str:
        """Validate and submit the current values through the gateway.

        On success the values map is cleared. On failure it is kept so the
        user can correct or retry.

        Returns:
            The gateway's submission id

        Raises:
            PreviewSubmitError: If this is not a published-form session
            SubmissionBlockedError: If any field failed validation
            TransportError: If the gateway call fails (not retried)
        """
        if not self.can_submit or self.gateway is None or self.identifier is None:
            raise PreviewSubmitError(
                "This is a preview of your form. Publish it to collect responses."
            )
        result = self.validate()
        if not result.is_valid:
            logger.info(
                "Submission for form %s withheld: %d invalid field(s)",
                self.identifier, len(result.errors),
            )
            raise SubmissionBlockedError(result)

        submission_id = self.gateway.submit(self.identifier, result.data or {})
        self.values = {}
        self.errors = {}
        self._loaded_frames.clear()
        return submission_id


__all__ = [
    "FormRuntime",
    "publish",
]
