"""Per-type render/validate strategies.

Each supported component type has one FieldRenderer subclass. A renderer is
stateless: ``render(field, value)`` is a pure function of the field
definition and the current value, and ``validate(field, value)`` returns an
inline ValidationError or None.

The Widget returned by ``render`` is a framework-neutral description of what
to draw. Hosts map ``Widget.kind`` and ``Widget.props`` onto their own
controls; the same widget description is used by the builder canvas, the
draft preview and the published form.

Usage:
    >>> from formcraft.schema import FieldInstance
    >>> from formcraft.types import ComponentType
    >>> f = FieldInstance(id="n1", type=ComponentType.NUMBER, label="Age",
    ...                   disallow_decimals=True)
    >>> renderer = DEFAULT_RENDERERS[ComponentType.NUMBER]
    >>> renderer.render(f, "3").props["step"]
    '1'
    >>> renderer.validate(f, "3.5").code
    <ValidationErrorCode.NOT_INTEGER: 'not_integer'>
"""

import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from formcraft.config import DEFAULT_POLICY, Policy
from formcraft.errors import ValidationError
from formcraft.schema import FieldInstance, LocationValue
from formcraft.types import ComponentType, ValidationErrorCode

PRESET_COLORS = (
    "#000000", "#FFFFFF", "#FF0000", "#00FF00", "#0000FF", "#FFFF00",
    "#FF00FF", "#00FFFF", "#FFA500", "#800080", "#FFC0CB", "#A52A2A",
    "#808080", "#000080", "#008000", "#800000", "#FFD700", "#C0C0C0",
)

DEFAULT_COLOR = "#000000"
HEX_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")

SLIDER_DEFAULT_MIN = 0
SLIDER_DEFAULT_MAX = 100
SLIDER_DEFAULT_VALUE = 50
RATING_DEFAULT_MAX = 5

IFRAME_DEFAULT_WIDTH = "100%"
IFRAME_DEFAULT_HEIGHT = "400px"
IFRAME_SANDBOX = "allow-scripts allow-same-origin allow-forms allow-popups"


@dataclass(frozen=True)
class Widget:
    """Framework-neutral description of a rendered field.

    Attributes:
        kind: Component type of the field
        field_id: Id of the rendered field instance
        label: Label to show above the widget; None when no label is drawn
        value: Display value after type-specific normalization
        placeholder: Placeholder text, if the widget has one
        help_text: Help comment shown below the widget
        props: Type-specific properties (options, bounds, overlay state, ...)
        error: Inline validation error to show next to the widget
        disabled: Inputs are drawn but not interactive (builder canvas)
    """
    kind: ComponentType
    field_id: str
    label: Optional[str]
    value: Any = None
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    props: Dict[str, Any] = field(default_factory=dict)
    error: Optional[ValidationError] = None
    disabled: bool = False

    @property
    def show_label(self) -> bool:
        return self.label is not None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for hosts that render from JSON."""
        value = self.value
        if isinstance(value, LocationValue):
            value = value.to_dict()
        result: Dict[str, Any] = {
            "kind": self.kind.value,
            "fieldId": self.field_id,
            "label": self.label,
            "value": value,
            "props": self.props,
            "disabled": self.disabled,
        }
        if self.placeholder is not None:
            result["placeholder"] = self.placeholder
        if self.help_text:
            result["helpText"] = self.help_text
        if self.error is not None:
            result["error"] = self.error.to_dict()
        return result


class FieldRenderer:
    """Base strategy: render a field and validate its submitted value.

    Subclasses set ``kind`` and override ``props``/``display_value``/
    ``validate`` as needed. ``has_value`` is False for types that never
    contribute to a submission payload.
    """

    kind: ComponentType
    default_placeholder: Optional[str] = None
    has_value: bool = True
    shows_comment: bool = True

    def render(
        self,
        field: FieldInstance,
        value: Any = None,
        error: Optional[ValidationError] = None,
        disabled: bool = False,
    ) -> Widget:
        """Project a field definition and its current value into a Widget."""
        return Widget(
            kind=self.kind,
            field_id=field.id,
            label=field.label if self.has_label else None,
            value=self.display_value(field, value),
            placeholder=self.placeholder(field),
            help_text=field.comment if self.shows_comment else None,
            props=self.props(field, value),
            error=error,
            disabled=disabled,
        )

    @property
    def has_label(self) -> bool:
        return True

    def placeholder(self, field: FieldInstance) -> Optional[str]:
        if self.default_placeholder is None:
            return None
        return field.placeholder or self.default_placeholder

    def display_value(self, field: FieldInstance, value: Any) -> Any:
        return "" if value is None else value

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        return {}

    def is_empty(self, value: Any) -> bool:
        """Whether a value counts as "not provided"."""
        if value is None:
            return True
        if isinstance(value, str):
            return value.strip() == ""
        if isinstance(value, (list, tuple)):
            return len(value) == 0
        return False

    def validate(
        self,
        field: FieldInstance,
        value: Any,
        policy: Policy = DEFAULT_POLICY,
    ) -> Optional[ValidationError]:
        """Return an inline error for the value, or None when it passes."""
        return None


class TextRenderer(FieldRenderer):
    kind = ComponentType.TEXT
    default_placeholder = "Enter text..."


class TextareaRenderer(FieldRenderer):
    kind = ComponentType.TEXTAREA
    default_placeholder = "Enter text..."


class DateRenderer(FieldRenderer):
    kind = ComponentType.DATE


class TimeRenderer(FieldRenderer):
    kind = ComponentType.TIME


class UrlRenderer(FieldRenderer):
    """URL input; hosts may pre-fill ``prefill`` when an empty input gains focus."""

    kind = ComponentType.URL
    default_placeholder = "https://example.com"

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        return {"prefill": "https://www."}


class EmailRenderer(FieldRenderer):
    """Email input with a displayed (not render-enforced) domain allow-list."""

    kind = ComponentType.EMAIL
    default_placeholder = "Enter email..."

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        domains = list(_allowed_domains(field))
        props: Dict[str, Any] = {"allowed_domains": domains}
        if domains:
            props["allowed_domains_text"] = f"Allowed domains: {', '.join(domains)}"
        return props

    def validate(
        self,
        field: FieldInstance,
        value: Any,
        policy: Policy = DEFAULT_POLICY,
    ) -> Optional[ValidationError]:
        if not policy.enforce_allowed_domains or self.is_empty(value):
            return None
        domains = _allowed_domains(field)
        if not domains:
            return None
        text = str(value).strip()
        domain = text.rpartition("@")[2].lower()
        if "@" in text and domain in {d.lower() for d in domains}:
            return None
        return ValidationError(
            field_id=field.id,
            code=ValidationErrorCode.DOMAIN_NOT_ALLOWED,
            message=f"Email must use one of: {', '.join(domains)}",
            expected=list(domains),
            received=text,
        )


def _allowed_domains(field: FieldInstance) -> Sequence[str]:
    # Blank entries are domains added in the builder but not yet typed
    return tuple(d.strip() for d in field.allowed_domains or () if d and d.strip())


def parse_number(value: Any) -> Optional[float]:
    """Re-parse a number input's text; None when empty, unparseable or not finite."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    # "nan" and "inf" parse as floats but are not numbers a user can enter
    return number if math.isfinite(number) else None


class NumberRenderer(FieldRenderer):
    """Number input edited as text.

    With ``disallow_decimals`` a non-integer value is flagged at submission
    time; typing is never blocked.
    """

    kind = ComponentType.NUMBER
    default_placeholder = "Enter number..."

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        props: Dict[str, Any] = {"step": "1" if field.disallow_decimals else "any"}
        if field.disallow_decimals:
            props["hint"] = "Only whole numbers allowed"
        return props

    def validate(
        self,
        field: FieldInstance,
        value: Any,
        policy: Policy = DEFAULT_POLICY,
    ) -> Optional[ValidationError]:
        if not field.disallow_decimals or self.is_empty(value):
            return None
        number = parse_number(value)
        if number is not None and number == int(number):
            return None
        return ValidationError(
            field_id=field.id,
            code=ValidationErrorCode.NOT_INTEGER,
            message="Only whole numbers allowed",
            expected="integer",
            received=value,
        )


class SelectRenderer(FieldRenderer):
    """Single choice; None is the unset selection, distinct from ""."""

    kind = ComponentType.SELECT
    shows_comment = False

    def display_value(self, field: FieldInstance, value: Any) -> Any:
        return value

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        return {
            "empty_label": "Select an option...",
            "has_selection": value is not None,
            "options": [
                {"value": option, "selected": value is not None and value == option}
                for option in field.options or ()
            ],
        }

    def is_empty(self, value: Any) -> bool:
        return value is None


class RadioRenderer(FieldRenderer):
    kind = ComponentType.RADIO
    shows_comment = False

    def display_value(self, field: FieldInstance, value: Any) -> Any:
        return value

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        return {
            "group": field.id,
            "options": [
                {"value": option, "checked": value is not None and value == option}
                for option in field.options or ()
            ],
        }


class CheckboxRenderer(FieldRenderer):
    """Multi-select; the value lists options in the order they were ticked."""

    kind = ComponentType.CHECKBOX
    shows_comment = False

    def display_value(self, field: FieldInstance, value: Any) -> Any:
        return list(value or [])

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        selected = set(value or [])
        return {
            "options": [
                {"value": option, "checked": option in selected}
                for option in field.options or ()
            ],
        }

    @staticmethod
    def toggle(current: Optional[Sequence[str]], option: str, checked: bool) -> List[str]:
        """Apply one tick/untick to a checkbox value."""
        values = list(current or [])
        if checked:
            if option not in values:
                values.append(option)
            return values
        return [v for v in values if v != option]


class SliderRenderer(FieldRenderer):
    kind = ComponentType.SLIDER
    shows_comment = False

    @staticmethod
    def bounds(field: FieldInstance):
        low = field.min_value if field.min_value is not None else SLIDER_DEFAULT_MIN
        high = field.max_value if field.max_value is not None else SLIDER_DEFAULT_MAX
        return low, high

    def display_value(self, field: FieldInstance, value: Any) -> Any:
        number = parse_number(value)
        if number is None:
            number = field.value if field.value is not None else SLIDER_DEFAULT_VALUE
        low, high = self.bounds(field)
        return min(max(number, low), high)

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        low, high = self.bounds(field)
        return {"min": low, "max": high}


class RatingRenderer(FieldRenderer):
    """Star rating 0..max; with ``allow_half`` each star has a half region."""

    kind = ComponentType.RATING

    @staticmethod
    def max_stars(field: FieldInstance) -> int:
        return int(field.max_value) if field.max_value else RATING_DEFAULT_MAX

    def display_value(self, field: FieldInstance, value: Any) -> Any:
        number = parse_number(value)
        return 0 if number is None else number

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        current = self.display_value(field, value)
        allow_half = bool(field.allow_half)
        stars = []
        for star in range(1, self.max_stars(field) + 1):
            stars.append({
                "star": star,
                "value": star,
                "half_value": star - 0.5 if allow_half else None,
                "filled": star <= current,
                "half_filled": allow_half and star - 0.5 <= current < star,
            })
        return {"max": self.max_stars(field), "allow_half": allow_half, "stars": stars}

    @staticmethod
    def rating_value(star: int, half: bool = False) -> float:
        """Value produced by clicking a star (or its left half)."""
        return star - 0.5 if half else star


class IframeRenderer(FieldRenderer):
    """Read-only embed.

    The "refused to connect" overlay is part of the widget and stays
    visible until the host reports a load signal by passing a truthy
    value. Origins that refuse embedding never signal, so the overlay is
    what the user sees.
    """

    kind = ComponentType.IFRAME
    has_value = False

    def display_value(self, field: FieldInstance, value: Any) -> Any:
        return None

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        loaded = bool(value)
        return {
            "src": field.src or "",
            "width": field.width or IFRAME_DEFAULT_WIDTH,
            "height": field.height or IFRAME_DEFAULT_HEIGHT,
            "title": field.label,
            "sandbox": IFRAME_SANDBOX,
            "loaded": loaded,
            "overlay": {
                "visible": not loaded,
                "title": "Refused to connect",
                "detail": "The website blocked this iframe",
            },
        }


class ColorRenderer(FieldRenderer):
    kind = ComponentType.COLOR
    shows_comment = False

    def display_value(self, field: FieldInstance, value: Any) -> Any:
        if value:
            return value
        return field.color_value or DEFAULT_COLOR

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        current = self.display_value(field, value)
        return {
            "presets": list(PRESET_COLORS),
            "custom": current.upper() not in PRESET_COLORS,
            "valid_hex": bool(HEX_COLOR_PATTERN.match(current)),
        }


def commit_location(lat_text: Any, lng_text: Any, address: Optional[str] = None) -> Optional[LocationValue]:
    """Commit a coordinate pair once both components parse.

    Partial entry (only one component) produces no value.
    """
    lat = parse_number(lat_text)
    lng = parse_number(lng_text)
    if lat is None or lng is None:
        return None
    return LocationValue(lat=lat, lng=lng, address=address)


class LocationRenderer(FieldRenderer):
    kind = ComponentType.LOCATION
    shows_comment = False

    def display_value(self, field: FieldInstance, value: Any) -> Any:
        if isinstance(value, dict):
            value = LocationValue.from_dict(value)
        return value if value is not None else field.location_value

    def props(self, field: FieldInstance, value: Any) -> Dict[str, Any]:
        current = self.display_value(field, value)
        return {
            "lat_text": "" if current is None else str(current.lat),
            "lng_text": "" if current is None else str(current.lng),
            "lat_placeholder": "40.7128",
            "lng_placeholder": "-74.0060",
            "complete": current is not None,
        }


class DividerRenderer(FieldRenderer):
    """Visual section break: no label, no value, never submitted."""

    kind = ComponentType.DIVIDER
    has_value = False
    shows_comment = False

    @property
    def has_label(self) -> bool:
        return False

    def display_value(self, field: FieldInstance, value: Any) -> Any:
        return None


DEFAULT_RENDERERS: Dict[ComponentType, FieldRenderer] = {
    renderer.kind: renderer
    for renderer in (
        TextRenderer(),
        EmailRenderer(),
        NumberRenderer(),
        TextareaRenderer(),
        SelectRenderer(),
        CheckboxRenderer(),
        RadioRenderer(),
        SliderRenderer(),
        DateRenderer(),
        TimeRenderer(),
        UrlRenderer(),
        RatingRenderer(),
        IframeRenderer(),
        ColorRenderer(),
        LocationRenderer(),
        DividerRenderer(),
    )
}


__all__ = [
    "Widget",
    "FieldRenderer",
    "DEFAULT_RENDERERS",
    "PRESET_COLORS",
    "parse_number",
    "commit_location",
    "CheckboxRenderer",
    "RatingRenderer",
    "SliderRenderer",
]
