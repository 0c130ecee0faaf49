"""Form schema model: field instances and the ordered form schema.

A FormSchema is the single source of truth shared by the builder, the draft
preview and the published form. The editor mutates it; renderers only read
it.

FieldInstance is immutable. Edits produce a new instance through
``with_attributes`` and the editor swaps it into place, so the field's
position and every other field stay untouched.

The wire format (``to_dict``/``from_dict``) uses the camelCase keys the
builder has always persisted::

    {
        "formName": "Contact",
        "formComponents": [
            {"id": "...", "type": "email", "label": "Email",
             "required": true, "allowedDomains": ["example.com"]}
        ]
    }
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterator, List, Optional, Tuple

from formcraft.errors import UnknownTypeError
from formcraft.types import ComponentType

DEFAULT_FORM_NAME = "Untitled Form"


@dataclass(frozen=True)
class LocationValue:
    """A committed latitude/longitude pair with an optional address."""
    lat: float
    lng: float
    address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"lat": self.lat, "lng": self.lng}
        if self.address is not None:
            result["address"] = self.address
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocationValue":
        return cls(
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            address=data.get("address"),
        )


# Python attribute name -> wire key, for every attribute in the bag
ATTRIBUTE_WIRE_KEYS: Dict[str, str] = {
    "placeholder": "placeholder",
    "required": "required",
    "options": "options",
    "min_value": "min",
    "max_value": "max",
    "value": "value",
    "allowed_domains": "allowedDomains",
    "comment": "comment",
    "disallow_decimals": "disallowDecimals",
    "allow_half": "allowHalf",
    "src": "src",
    "width": "width",
    "height": "height",
    "color_value": "colorValue",
    "location_value": "locationValue",
}

WIRE_KEY_ATTRIBUTES: Dict[str, str] = {wire: attr for attr, wire in ATTRIBUTE_WIRE_KEYS.items()}

# Attributes that may never be changed through an edit
IMMUTABLE_ATTRIBUTES = frozenset({"id", "type"})


def resolve_type(value: Any) -> ComponentType:
    """Coerce a type value (enum member or string) to a ComponentType.

    Raises:
        UnknownTypeError: If the value names no supported type
    """
    if isinstance(value, ComponentType):
        return value
    try:
        return ComponentType(value)
    except ValueError:
        raise UnknownTypeError(value) from None


@dataclass(frozen=True)
class FieldInstance:
    """One configured element of a form.

    Only ``id``, ``type`` and ``label`` are always meaningful; the remaining
    attributes form a type-dependent bag. Attributes a type does not
    recognize may be present and are ignored by its renderer.

    Attributes:
        id: Unique within a schema, immutable, stable across reorders
        type: Component type
        label: Field label shown above the widget
        placeholder: Input placeholder text
        required: Declared required flag
        options: Choice options, in display order
        min_value: Lower bound (slider)
        max_value: Upper bound (slider, rating)
        value: Default numeric value (slider)
        allowed_domains: Email domain allow-list
        comment: Help text shown below the widget
        disallow_decimals: Integer-only flag (number)
        allow_half: Half-star ratings (rating)
        src: Embedded page URL (iframe)
        width: Frame width (iframe)
        height: Frame height (iframe)
        color_value: Default hex colour (color)
        location_value: Default coordinates (location)

    Examples:
        >>> f = FieldInstance(id="f1", type=ComponentType.TEXT, label="Name")
        >>> f.with_attributes(label="Full name").label
        'Full name'
    """
    id: str
    type: ComponentType
    label: str = ""
    placeholder: Optional[str] = None
    required: Optional[bool] = None
    options: Optional[Tuple[str, ...]] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    value: Optional[float] = None
    allowed_domains: Optional[Tuple[str, ...]] = None
    comment: Optional[str] = None
    disallow_decimals: Optional[bool] = None
    allow_half: Optional[bool] = None
    src: Optional[str] = None
    width: Optional[str] = None
    height: Optional[str] = None
    color_value: Optional[str] = None
    location_value: Optional[LocationValue] = None

    def __post_init__(self):
        object.__setattr__(self, "type", resolve_type(self.type))
        # Sequences are stored as tuples so instances stay immutable
        if self.options is not None and not isinstance(self.options, tuple):
            object.__setattr__(self, "options", tuple(self.options))
        if self.allowed_domains is not None and not isinstance(self.allowed_domains, tuple):
            object.__setattr__(self, "allowed_domains", tuple(self.allowed_domains))
        if isinstance(self.location_value, dict):
            object.__setattr__(self, "location_value", LocationValue.from_dict(self.location_value))

    def attributes(self) -> Dict[str, Any]:
        """Return the attribute bag: every attribute that is set."""
        return {
            name: getattr(self, name)
            for name in ATTRIBUTE_WIRE_KEYS
            if getattr(self, name) is not None
        }

    def with_attributes(self, **changes: Any) -> "FieldInstance":
        """Return a copy with the given attributes replaced.

        Raises:
            ValueError: If ``id``/``type`` or an unknown attribute is named
        """
        for name in changes:
            if name in IMMUTABLE_ATTRIBUTES:
                raise ValueError(f"Attribute '{name}' cannot be edited")
            if name != "label" and name not in ATTRIBUTE_WIRE_KEYS:
                raise ValueError(f"Unknown field attribute: '{name}'")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization (unset attributes omitted)."""
        result: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
        }
        for name, value in self.attributes().items():
            if isinstance(value, tuple):
                value = list(value)
            elif isinstance(value, LocationValue):
                value = value.to_dict()
            result[ATTRIBUTE_WIRE_KEYS[name]] = value
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldInstance":
        """Create FieldInstance from a trusted dict.

        Unknown keys are ignored. Use ``formcraft.coercion.coerce_schema``
        for externally supplied data.

        Raises:
            KeyError: If ``id`` or ``type`` is missing
            UnknownTypeError: If ``type`` is not supported
        """
        kwargs: Dict[str, Any] = {
            WIRE_KEY_ATTRIBUTES[key]: value
            for key, value in data.items()
            if key in WIRE_KEY_ATTRIBUTES and value is not None
        }
        return cls(
            id=data["id"],
            type=resolve_type(data["type"]),
            label=data.get("label") or "",
            **kwargs,
        )


@dataclass
class FormSchema:
    """Ordered collection of field instances plus the form name.

    Field order is render order.

    Examples:
        >>> schema = FormSchema()
        >>> schema.display_name
        'Untitled Form'
        >>> len(schema)
        0
    """
    name: str = ""
    fields: List[FieldInstance] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        """Form name, falling back to the default when empty."""
        return self.name.strip() or DEFAULT_FORM_NAME

    def __len__(self) -> int:
        return len(self.fields)

    def __iter__(self) -> Iterator[FieldInstance]:
        return iter(self.fields)

    def __contains__(self, field_id: object) -> bool:
        return any(f.id == field_id for f in self.fields)

    def field_ids(self) -> List[str]:
        return [f.id for f in self.fields]

    def index_of(self, field_id: str) -> int:
        """Return the position of a field, or -1 when absent."""
        for index, instance in enumerate(self.fields):
            if instance.id == field_id:
                return index
        return -1

    def get(self, field_id: str) -> FieldInstance:
        """Return the field with the given id.

        Raises:
            KeyError: If no field has that id
        """
        index = self.index_of(field_id)
        if index < 0:
            raise KeyError(field_id)
        return self.fields[index]

    def copy(self) -> "FormSchema":
        """Shallow copy; field instances are immutable and shared."""
        return FormSchema(name=self.name, fields=list(self.fields))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted wire format."""
        return {
            "formName": self.name,
            "formComponents": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormSchema":
        """Create FormSchema from the persisted wire format."""
        return cls(
            name=data.get("formName") or "",
            fields=[FieldInstance.from_dict(item) for item in data.get("formComponents") or []],
        )


__all__ = [
    "DEFAULT_FORM_NAME",
    "ATTRIBUTE_WIRE_KEYS",
    "LocationValue",
    "FieldInstance",
    "FormSchema",
    "resolve_type",
]
