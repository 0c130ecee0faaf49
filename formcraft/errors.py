"""Exception hierarchy and inline error records for formcraft.

Two kinds of failure exist in the interpreter:

- Exceptions (rooted at FormcraftError) are raised where an operation cannot
  complete: unknown component types, illegal editor transitions, gateway
  transport failures.
- ValidationError records are *reported*, not raised. They are attached to
  the offending field's widget and collected into a ValidationResult, so one
  bad field never hides the state of the others.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from formcraft.types import EditorState, ValidationErrorCode


class FormcraftError(Exception):
    """Base class for all formcraft exceptions."""


class UnknownTypeError(FormcraftError, LookupError):
    """Raised when a component type is not present in the registry.

    Attributes:
        type_name: The type value that failed to resolve
    """

    def __init__(self, type_name: Any):
        self.type_name = type_name
        super().__init__(f"Unknown component type: {type_name!r}")


class InvalidStateTransitionError(FormcraftError):
    """Raised when an editor action is not allowed in the current state.

    Attributes:
        current_state: The editor state before the attempted transition
        target_state: The state that was attempted
    """

    def __init__(self, current_state: EditorState, target_state: EditorState, message: str):
        self.current_state = current_state
        self.target_state = target_state
        super().__init__(message)


class TransportError(FormcraftError):
    """Raised when a publish, fetch or submit call fails in transit.

    Operations are never retried automatically; callers keep their local
    state and may retry manually.

    Attributes:
        status_code: HTTP status of the failed response, if one was received
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class FormNotFoundError(FormcraftError, LookupError):
    """Raised when a gateway has no form with the requested identifier."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Form not found: {identifier}")


class AuthorizationError(FormcraftError):
    """Raised when a gateway call lacks a valid admin credential or session."""


class PreviewSubmitError(FormcraftError):
    """Raised when a draft preview session is asked to submit."""


class SubmissionBlockedError(FormcraftError):
    """Raised when validation errors withhold a submission.

    Attributes:
        result: The ValidationResult holding the per-field errors
    """

    def __init__(self, result: Any):
        self.result = result
        count = len(result.errors)
        super().__init__(f"Submission withheld: {count} field(s) failed validation")


@dataclass(frozen=True)
class ValidationError:
    """Inline validation failure for a single field.

    Attributes:
        field_id: Id of the offending field instance
        code: Specific validation error code
        message: Human-readable description shown next to the field
        expected: Optional - what was expected
        received: Optional - what was actually received

    Examples:
        >>> err = ValidationError(
        ...     field_id="f1",
        ...     code=ValidationErrorCode.NOT_INTEGER,
        ...     message="Only whole numbers allowed",
        ...     received="3.5",
        ... )
        >>> err.to_dict()["code"]
        'not_integer'
    """
    field_id: str
    code: ValidationErrorCode
    message: str
    expected: Optional[Any] = None
    received: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "fieldId": self.field_id,
            "code": self.code.value if isinstance(self.code, ValidationErrorCode) else self.code,
            "message": self.message,
        }
        if self.expected is not None:
            result["expected"] = self.expected
        if self.received is not None:
            result["received"] = self.received
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationError":
        """Create ValidationError from dict."""
        code = data["code"]
        if isinstance(code, str):
            code = ValidationErrorCode(code)
        return cls(
            field_id=data["fieldId"],
            code=code,
            message=data["message"],
            expected=data.get("expected"),
            received=data.get("received"),
        )


__all__ = [
    "FormcraftError",
    "UnknownTypeError",
    "InvalidStateTransitionError",
    "TransportError",
    "FormNotFoundError",
    "AuthorizationError",
    "PreviewSubmitError",
    "SubmissionBlockedError",
    "ValidationError",
]
