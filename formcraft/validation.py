"""Submission-time validation for form values.

This module provides a ValidationEngine that checks a values map against a
FormSchema when the user submits (never per keystroke) and produces the
payload that is handed to the gateway.

Rules:
- Each field's type strategy validates its own value. With the default
  policy the only rule that fires is the integer-only check for number
  fields with ``disallow_decimals``.
- ``required`` and email ``allowed_domains`` are declared in schemas but not
  enforced unless the Policy opts in. Required checks are expressed as a
  generated JSON Schema and run through jsonschema.

Errors are reported per field; one failing field does not stop the others
from being checked.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import jsonschema
from jsonschema import Draft7Validator

from formcraft.config import Policy
from formcraft.errors import ValidationError
from formcraft.registry import ComponentRegistry
from formcraft.schema import FormSchema, LocationValue
from formcraft.types import ValidationErrorCode


@dataclass(frozen=True)
class ValidationResult:
    """Result of validating a values map against a form schema.

    Attributes:
        is_valid: Whether every field passed
        errors: Per-field validation errors, in field order (empty if valid)
        data: Submission payload: values of value-bearing fields only
            (dividers and embeds excluded), JSON-ready
        missing_fields: Ids of required fields without a value
        invalid_fields: Ids of fields whose value failed a type rule
    """
    is_valid: bool
    errors: List[ValidationError]
    data: Optional[Dict[str, Any]] = None
    missing_fields: Optional[List[str]] = None
    invalid_fields: Optional[List[str]] = None

    def error_for(self, field_id: str) -> Optional[ValidationError]:
        """Return the inline error for one field, if any."""
        for error in self.errors:
            if error.field_id == field_id:
                return error
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "isValid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.data is not None:
            result["data"] = self.data
        if self.missing_fields is not None:
            result["missingFields"] = self.missing_fields
        if self.invalid_fields is not None:
            result["invalidFields"] = self.invalid_fields
        return result


def build_values_schema(schema: FormSchema, registry: ComponentRegistry) -> Dict[str, Any]:
    """Build a JSON Schema describing the required entries of a values map.

    Only value-bearing fields marked ``required`` are listed.

    Examples:
        >>> from formcraft.schema import FieldInstance
        >>> from formcraft.types import ComponentType
        >>> form = FormSchema(fields=[
        ...     FieldInstance(id="a", type=ComponentType.TEXT, label="A", required=True),
        ...     FieldInstance(id="b", type=ComponentType.DIVIDER, label="", required=True),
        ... ])
        >>> build_values_schema(form, ComponentRegistry())["required"]
        ['a']
    """
    required = [
        f.id
        for f in schema.fields
        if f.required and registry.renderer_for(f.type).has_value
    ]
    values_schema: Dict[str, Any] = {
        "type": "object",
        "properties": {f.id: {"title": f.label} for f in schema.fields},
        "required": required,
    }
    Draft7Validator.check_schema(values_schema)
    return values_schema


class ValidationEngine:
    """Validates values maps for one form schema.

    Attributes:
        schema: The form schema whose fields are validated
        registry: Registry supplying each type's render/validate strategy
        policy: Which declared-but-optional constraints to enforce

    Examples:
        >>> from formcraft.schema import FieldInstance
        >>> from formcraft.types import ComponentType
        >>> form = FormSchema(fields=[
        ...     FieldInstance(id="n", type=ComponentType.NUMBER, label="Qty",
        ...                   disallow_decimals=True),
        ... ])
        >>> engine = ValidationEngine(form)
        >>> engine.validate({"n": "3"}).is_valid
        True
        >>> engine.validate({"n": "3.5"}).invalid_fields
        ['n']
    """

    def __init__(
        self,
        schema: FormSchema,
        registry: Optional[ComponentRegistry] = None,
        policy: Optional[Policy] = None,
    ) -> None:
        self.schema = schema
        self.registry = registry or ComponentRegistry()
        self.policy = policy or self.registry.policy
        self.validator: Optional[Draft7Validator] = None
        if self.policy.enforce_required:
            self.validator = Draft7Validator(build_values_schema(schema, self.registry))

    def validate(self, values: Dict[str, Any]) -> ValidationResult:
        """Validate a values map and build the submission payload.

        Args:
            values: Field id -> current value

        Returns:
            ValidationResult with per-field errors and the payload
        """
        payload: Dict[str, Any] = {}
        provided: Dict[str, Any] = {}
        by_field: Dict[str, ValidationError] = {}
        missing_fields: List[str] = []
        invalid_fields: List[str] = []

        for field in self.schema.fields:
            renderer = self.registry.renderer_for(field.type)
            if not renderer.has_value or field.id not in values:
                continue
            value = values[field.id]
            payload[field.id] = _to_json(value)
            if not renderer.is_empty(value):
                provided[field.id] = payload[field.id]
            error = renderer.validate(field, value, self.policy)
            if error is not None:
                by_field[field.id] = error
                invalid_fields.append(field.id)

        if self.validator is not None:
            for error in self.validator.iter_errors(provided):
                for required_error in self._translate_error(error):
                    if required_error.field_id not in by_field:
                        by_field[required_error.field_id] = required_error
                        missing_fields.append(required_error.field_id)

        errors = [by_field[f.id] for f in self.schema.fields if f.id in by_field]
        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            data=payload,
            missing_fields=missing_fields,
            invalid_fields=invalid_fields,
        )

    def _translate_error(self, error: jsonschema.ValidationError) -> List[ValidationError]:
        """Translate a jsonschema 'required' error into inline ValidationErrors.

        Missing ids are the schema keyword's ids absent from the instance.
        """
        if error.validator != "required" or not isinstance(error.instance, dict):
            return []
        errors = []
        for field_id in error.validator_value:
            if field_id in error.instance or field_id not in self.schema:
                continue
            label = self.schema.get(field_id).label or "This field"
            errors.append(ValidationError(
                field_id=field_id,
                code=ValidationErrorCode.REQUIRED,
                message=f"{label} is required",
                expected="a value",
                received=None,
            ))
        return errors


def _to_json(value: Any) -> Any:
    if isinstance(value, LocationValue):
        return value.to_dict()
    if isinstance(value, tuple):
        return list(value)
    return value


__all__ = [
    "ValidationEngine",
    "ValidationResult",
    "build_values_schema",
]
