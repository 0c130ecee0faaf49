"""Component type registry.

The registry enumerates the supported field types for the builder palette,
describes each type's label, default attributes and recognized attributes,
and pairs every type with its render/validate strategy.

Usage:
    >>> from formcraft.registry import ComponentRegistry
    >>> registry = ComponentRegistry()
    >>> [d.type.value for d in registry.list_types()][:3]
    ['text', 'email', 'number']
    >>> field = registry.instantiate("select")
    >>> list(field.options)
    ['Option 1', 'Option 2', 'Option 3']
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Union

from formcraft.config import DEFAULT_POLICY, Policy
from formcraft.errors import UnknownTypeError
from formcraft.renderers import DEFAULT_RENDERERS, FieldRenderer
from formcraft.schema import FieldInstance
from formcraft.types import CHOICE_TYPES, ComponentType

logger = logging.getLogger(__name__)

TypeRef = Union[ComponentType, str]


@dataclass(frozen=True)
class ComponentTypeDescriptor:
    """Static metadata describing one field type.

    Attributes:
        type: The component type
        label: Palette label, also the label given to new instances
        default_attributes: Attribute values given to new instances
        recognized_attributes: Attribute names meaningful for this type
    """
    type: ComponentType
    label: str
    default_attributes: Mapping[str, Any] = field(default_factory=dict)
    recognized_attributes: FrozenSet[str] = frozenset()

    def __post_init__(self):
        unknown = set(self.default_attributes) - set(self.recognized_attributes)
        if unknown:
            raise ValueError(
                f"Defaults for '{self.type.value}' use unrecognized attributes: "
                f"{', '.join(sorted(unknown))}"
            )

    def recognizes(self, attribute: str) -> bool:
        return attribute in self.recognized_attributes


_INPUT = frozenset({"placeholder", "required", "comment"})
_CHOICE = frozenset({"required", "options"})


def _descriptor(
    component_type: ComponentType,
    label: str,
    recognized: FrozenSet[str],
    **defaults: Any,
) -> ComponentTypeDescriptor:
    if "placeholder" in recognized:
        defaults.setdefault("placeholder", f"Enter {label.lower()}...")
    if "required" in recognized:
        defaults.setdefault("required", False)
    return ComponentTypeDescriptor(
        type=component_type,
        label=label,
        default_attributes=defaults,
        recognized_attributes=recognized,
    )


# Palette order
DEFAULT_DESCRIPTORS: List[ComponentTypeDescriptor] = [
    _descriptor(ComponentType.TEXT, "Text Input", _INPUT),
    _descriptor(ComponentType.EMAIL, "Email", _INPUT | {"allowed_domains"}),
    _descriptor(ComponentType.NUMBER, "Number", _INPUT | {"disallow_decimals"}),
    _descriptor(ComponentType.TEXTAREA, "Textarea", _INPUT),
    _descriptor(ComponentType.SELECT, "Select", _CHOICE),
    _descriptor(ComponentType.CHECKBOX, "Checkbox", _CHOICE),
    _descriptor(ComponentType.RADIO, "Radio", _CHOICE),
    _descriptor(
        ComponentType.SLIDER, "Slider",
        frozenset({"required", "min_value", "max_value", "value"}),
        min_value=0, max_value=100, value=50,
    ),
    _descriptor(ComponentType.DATE, "Date", frozenset({"required", "comment"})),
    _descriptor(ComponentType.TIME, "Time", frozenset({"required", "comment"})),
    _descriptor(ComponentType.URL, "URL", frozenset({"placeholder", "required", "comment"}),
                placeholder="https://example.com"),
    _descriptor(
        ComponentType.RATING, "Rating",
        frozenset({"required", "comment", "max_value", "allow_half"}),
        max_value=5, allow_half=False,
    ),
    _descriptor(
        ComponentType.IFRAME, "Iframe",
        frozenset({"src", "width", "height", "comment"}),
        src="", width="100%", height="400px",
    ),
    _descriptor(ComponentType.COLOR, "Color", frozenset({"required", "color_value"}),
                color_value="#000000"),
    _descriptor(ComponentType.LOCATION, "Location", frozenset({"required", "location_value"})),
    _descriptor(ComponentType.DIVIDER, "Divider", frozenset()),
]


def default_options(count: int) -> List[str]:
    """Default option labels "Option 1".."Option {count}"."""
    return [f"Option {n}" for n in range(1, count + 1)]


def generate_field_id() -> str:
    return str(uuid.uuid4())


class ComponentRegistry:
    """Registry of component type descriptors and their renderers.

    Lookups accept either a ComponentType member or its string value.

    Attributes:
        policy: Policy consulted for the default option count
    """

    def __init__(
        self,
        descriptors: Optional[List[ComponentTypeDescriptor]] = None,
        renderers: Optional[Dict[ComponentType, FieldRenderer]] = None,
        policy: Policy = DEFAULT_POLICY,
    ):
        self.policy = policy
        self._descriptors: Dict[ComponentType, ComponentTypeDescriptor] = {}
        self._renderers: Dict[ComponentType, FieldRenderer] = {}
        renderers = DEFAULT_RENDERERS if renderers is None else renderers
        for descriptor in DEFAULT_DESCRIPTORS if descriptors is None else descriptors:
            self.register(descriptor, renderers[descriptor.type])

    def register(self, descriptor: ComponentTypeDescriptor, renderer: FieldRenderer) -> None:
        """Register a type, replacing any existing descriptor and renderer.

        Replacing keeps the type's palette position.
        """
        if renderer.kind != descriptor.type:
            raise ValueError(
                f"Renderer for '{renderer.kind.value}' cannot render '{descriptor.type.value}'"
            )
        if descriptor.type in self._descriptors:
            logger.debug("Replacing registration for component type %s", descriptor.type.value)
        self._descriptors[descriptor.type] = descriptor
        self._renderers[descriptor.type] = renderer

    def _resolve(self, component_type: TypeRef) -> ComponentType:
        try:
            resolved = ComponentType(component_type)
        except ValueError:
            raise UnknownTypeError(component_type) from None
        if resolved not in self._descriptors:
            raise UnknownTypeError(component_type)
        return resolved

    def __contains__(self, component_type: object) -> bool:
        try:
            self._resolve(component_type)  # type: ignore[arg-type]
        except UnknownTypeError:
            return False
        return True

    def list_types(self) -> List[ComponentTypeDescriptor]:
        """Return all descriptors in stable palette order."""
        return list(self._descriptors.values())

    def search(self, term: str) -> List[ComponentTypeDescriptor]:
        """Filter the palette by a case-insensitive label substring."""
        needle = (term or "").strip().lower()
        return [d for d in self._descriptors.values() if needle in d.label.lower()]

    def describe(self, component_type: TypeRef) -> ComponentTypeDescriptor:
        """Return the descriptor for a type.

        Raises:
            UnknownTypeError: If the type is not registered
        """
        return self._descriptors[self._resolve(component_type)]

    def renderer_for(self, component_type: TypeRef) -> FieldRenderer:
        """Return the render/validate strategy for a type.

        Raises:
            UnknownTypeError: If the type is not registered
        """
        return self._renderers[self._resolve(component_type)]

    def instantiate(self, component_type: TypeRef) -> FieldInstance:
        """Create a new field instance with a fresh id and default attributes.

        Raises:
            UnknownTypeError: If the type is not registered
        """
        descriptor = self.describe(component_type)
        attributes = dict(descriptor.default_attributes)
        if descriptor.type in CHOICE_TYPES and "options" not in attributes:
            attributes["options"] = default_options(self.policy.default_option_count)
        instance = FieldInstance(
            id=generate_field_id(),
            type=descriptor.type,
            label=descriptor.label,
            **attributes,
        )
        logger.debug("Instantiated %s field %s", descriptor.type.value, instance.id)
        return instance


__all__ = [
    "ComponentTypeDescriptor",
    "ComponentRegistry",
    "DEFAULT_DESCRIPTORS",
    "default_options",
    "generate_field_id",
]
