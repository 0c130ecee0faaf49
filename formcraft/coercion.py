"""Coercion of externally supplied schemas.

Schemas that do not come from our own editor (a text-to-schema generator,
hand-written JSON, an older client) are coerced item by item instead of
being trusted:

- attributes the item's type does not recognize are dropped
- attributes holding the wrong JSON type are dropped
- missing, malformed or duplicate ids are regenerated
- choice options beyond the option cap are truncated
- an item without a usable ``type`` is excluded on its own; the rest of the
  batch is still coerced

Each item is checked against FIELD_ITEM_SCHEMA with jsonschema.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from jsonschema import Draft7Validator

from formcraft.errors import UnknownTypeError
from formcraft.registry import ComponentRegistry, generate_field_id
from formcraft.schema import ATTRIBUTE_WIRE_KEYS, WIRE_KEY_ATTRIBUTES, FieldInstance, FormSchema
from formcraft.types import CHOICE_TYPES

logger = logging.getLogger(__name__)

_STRING = {"type": "string"}
_STRING_LIST = {"type": "array", "items": _STRING}

FIELD_ITEM_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["type"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "type": _STRING,
        "label": _STRING,
        "placeholder": _STRING,
        "required": {"type": "boolean"},
        "options": _STRING_LIST,
        "min": {"type": "number"},
        "max": {"type": "number"},
        "value": {"type": "number"},
        "allowedDomains": _STRING_LIST,
        "comment": _STRING,
        "disallowDecimals": {"type": "boolean"},
        "allowHalf": {"type": "boolean"},
        "src": _STRING,
        "width": _STRING,
        "height": _STRING,
        "colorValue": _STRING,
        "locationValue": {
            "type": "object",
            "required": ["lat", "lng"],
            "properties": {
                "lat": {"type": "number"},
                "lng": {"type": "number"},
                "address": _STRING,
            },
        },
    },
}

_ITEM_VALIDATOR = Draft7Validator(FIELD_ITEM_SCHEMA)


@dataclass
class CoercionResult:
    """Outcome of coercing an external schema.

    Attributes:
        schema: The coerced schema holding every accepted item
        rejected: (item index, reason) for each excluded item
        dropped: item index -> attribute keys removed from that item
        regenerated_ids: Ids generated for items whose id was missing or unusable
    """
    schema: FormSchema
    rejected: List[Tuple[int, str]] = field(default_factory=list)
    dropped: Dict[int, List[str]] = field(default_factory=dict)
    regenerated_ids: List[str] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        return not (self.rejected or self.dropped or self.regenerated_ids)


def coerce_schema(raw: Any, registry: Optional[ComponentRegistry] = None) -> CoercionResult:
    """Coerce raw schema data into a FormSchema.

    Args:
        raw: Either the persisted form ``{"formName", "formComponents"}``
            (``name``/``fields`` are accepted as aliases) or a bare list of items
        registry: Registry used to resolve types and recognized attributes

    Returns:
        CoercionResult with the schema and a record of what was changed

    Raises:
        TypeError: If ``raw`` is neither a mapping nor a list

    Examples:
        >>> result = coerce_schema([
        ...     {"type": "text", "label": "Name", "colour": "red"},
        ...     {"label": "No type"},
        ... ])
        >>> len(result.schema), result.rejected
        (1, [(1, 'missing type')])
    """
    registry = registry or ComponentRegistry()
    if isinstance(raw, dict):
        name = raw.get("formName", raw.get("name"))
        items = raw.get("formComponents", raw.get("fields")) or []
    elif isinstance(raw, list):
        name, items = "", raw
    else:
        raise TypeError(f"Cannot coerce schema from {type(raw).__name__}")

    if not isinstance(items, list):
        logger.warning("Schema components are not a list (%s); using none", type(items).__name__)
        items = []

    result = CoercionResult(schema=FormSchema(name=name if isinstance(name, str) else ""))
    seen_ids = set()
    for index, item in enumerate(items):
        instance = _coerce_item(index, item, registry, seen_ids, result)
        if instance is not None:
            seen_ids.add(instance.id)
            result.schema.fields.append(instance)

    if not result.is_clean:
        logger.warning(
            "Coerced external schema: %d item(s) rejected, %d item(s) trimmed, %d id(s) regenerated",
            len(result.rejected), len(result.dropped), len(result.regenerated_ids),
        )
    return result


def _coerce_item(
    index: int,
    item: Any,
    registry: ComponentRegistry,
    seen_ids: set,
    result: CoercionResult,
) -> Optional[FieldInstance]:
    if not isinstance(item, dict):
        result.rejected.append((index, "not an object"))
        return None

    bad_keys = set()
    for error in _ITEM_VALIDATOR.iter_errors(item):
        if not error.path:
            # Only the top-level "required" keyword can fail without a path here
            result.rejected.append((index, "missing type"))
            return None
        bad_keys.add(str(error.path[0]))

    if "type" in bad_keys:
        result.rejected.append((index, "invalid type"))
        return None

    try:
        descriptor = registry.describe(item["type"])
    except UnknownTypeError as exc:
        result.rejected.append((index, f"unknown type {exc.type_name!r}"))
        return None

    cleaned: Dict[str, Any] = {"type": descriptor.type.value}
    dropped = sorted(bad_keys - {"id"})
    for key, value in item.items():
        if key in ("id", "type") or key in bad_keys:
            continue
        if key == "label":
            cleaned["label"] = value
        elif key in WIRE_KEY_ATTRIBUTES and descriptor.recognizes(WIRE_KEY_ATTRIBUTES[key]):
            cleaned[key] = value
        else:
            dropped.append(key)

    options_key = ATTRIBUTE_WIRE_KEYS["options"]
    cap = registry.policy.option_cap
    if descriptor.type in CHOICE_TYPES and len(cleaned.get(options_key, [])) > cap:
        cleaned[options_key] = cleaned[options_key][:cap]
        dropped.append(f"{options_key}[{cap}:]")

    if not cleaned.get("label"):
        cleaned["label"] = descriptor.label

    field_id = item.get("id")
    if "id" in bad_keys or not field_id or field_id in seen_ids:
        field_id = generate_field_id()
        result.regenerated_ids.append(field_id)
    cleaned["id"] = field_id

    if dropped:
        result.dropped[index] = sorted(set(dropped))
        logger.debug("Dropped attributes %s from schema item %d", result.dropped[index], index)
    return FieldInstance.from_dict(cleaned)


__all__ = [
    "FIELD_ITEM_SCHEMA",
    "CoercionResult",
    "coerce_schema",
]
