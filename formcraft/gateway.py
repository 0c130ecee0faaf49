"""Publish/Submit gateway: persistence of forms and submissions.

The interpreter itself never stores anything. Publishing a schema and
recording a submission go through a FormGateway, an external collaborator
with five operations:

- create_form: persist a schema, returning an identifier and public URL
- fetch_form: load a published schema by identifier
- submit: record a values map against a form
- list_forms: forms with their submissions, scoped by session or admin
- delete_form: admin-only removal, cascading to submissions

Two implementations ship with the library: InMemoryGateway (reference
behaviour, used in tests and single-process hosts) and HttpGateway (an httpx
client for the builder's REST API).

Every create_form call creates a new record; there is no de-duplication and
no locking between concurrent publishes.
"""

import logging
import secrets
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from dateutil.parser import isoparse

from formcraft.errors import AuthorizationError, FormNotFoundError, TransportError
from formcraft.schema import DEFAULT_FORM_NAME, FormSchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishResult:
    """Identifier and public path of a newly published form."""
    identifier: str
    url: str


@dataclass(frozen=True)
class SubmissionRecord:
    """A stored values-map snapshot for one form."""
    id: str
    form_id: str
    data: Dict[str, Any]
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "formId": self.form_id,
            "data": self.data,
            "createdAt": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubmissionRecord":
        return cls(
            id=str(data["id"]),
            form_id=str(data["formId"]),
            data=data.get("data") or {},
            created_at=isoparse(data["createdAt"]),
        )


@dataclass
class FormRecord:
    """A published form as stored by a gateway.

    Attributes:
        identifier: Public identifier used in the form's URL
        name: Form name at publish time
        schema: The published schema
        session_id: Session token of the publisher
        created_at: UTC publish time
        submissions: Submissions for this form, newest first
    """
    identifier: str
    name: str
    schema: FormSchema
    session_id: str
    created_at: datetime
    submissions: List[SubmissionRecord] = field(default_factory=list)

    @property
    def url(self) -> str:
        return public_path(self.identifier)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": self.identifier,
            "name": self.name,
            "content": self.schema.to_dict(),
            "sessionId": self.session_id,
            "createdAt": self.created_at.isoformat(),
            "submissions": [s.to_dict() for s in self.submissions],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormRecord":
        return cls(
            identifier=data["uuid"],
            name=data.get("name") or DEFAULT_FORM_NAME,
            schema=FormSchema.from_dict(data.get("content") or {}),
            session_id=data.get("sessionId") or "",
            created_at=isoparse(data["createdAt"]),
            submissions=[SubmissionRecord.from_dict(s) for s in data.get("submissions") or []],
        )


def public_path(identifier: str) -> str:
    return f"/f/{identifier}"


class FormGateway(ABC):
    """Persistence contract consumed by the form runtime."""

    @abstractmethod
    def create_form(self, name: str, schema: FormSchema, session_token: str) -> PublishResult:
        """Persist a schema as a new form.

        Raises:
            ValueError: If no session token is given
            TransportError: If the store cannot be reached
        """

    @abstractmethod
    def fetch_form(self, identifier: str) -> FormSchema:
        """Load a published schema.

        Raises:
            FormNotFoundError: If no such form exists
        """

    @abstractmethod
    def submit(self, identifier: str, values: Dict[str, Any]) -> str:
        """Record a submission and return its id.

        Raises:
            FormNotFoundError: If no such form exists
        """

    @abstractmethod
    def list_forms(
        self,
        session_token: Optional[str] = None,
        admin_password: Optional[str] = None,
    ) -> List[FormRecord]:
        """List forms with submissions, newest first.

        A valid admin password lists every form; otherwise the session token
        scopes the listing to that session's forms.

        Raises:
            AuthorizationError: If neither credential is usable
        """

    @abstractmethod
    def delete_form(self, identifier: str, admin_password: str) -> None:
        """Delete a form and its submissions.

        Raises:
            AuthorizationError: If the admin password is wrong
            FormNotFoundError: If no such form exists
        """


class InMemoryGateway(FormGateway):
    """Process-local gateway holding forms and submissions in dicts.

    Examples:
        >>> gateway = InMemoryGateway(admin_password="secret")
        >>> result = gateway.create_form("Contact", FormSchema(name="Contact"), "0123456789abcdef")
        >>> result.url == f"/f/{result.identifier}"
        True
    """

    def __init__(self, admin_password: Optional[str] = None):
        self._admin_password = admin_password
        self._forms: Dict[str, FormRecord] = {}

    def _is_admin(self, password: Optional[str]) -> bool:
        return (
            self._admin_password is not None
            and password is not None
            and secrets.compare_digest(password, self._admin_password)
        )

    def _get(self, identifier: str) -> FormRecord:
        record = self._forms.get(identifier)
        if record is None:
            raise FormNotFoundError(identifier)
        return record

    def create_form(self, name: str, schema: FormSchema, session_token: str) -> PublishResult:
        if not session_token:
            raise ValueError("Session ID required")
        name = name or DEFAULT_FORM_NAME
        stored = FormSchema.from_dict({**schema.to_dict(), "formName": name})
        identifier = str(uuid.uuid4())
        self._forms[identifier] = FormRecord(
            identifier=identifier,
            name=name,
            schema=stored,
            session_id=session_token,
            created_at=datetime.now(timezone.utc),
        )
        logger.info("Published form %s (%s) with %d field(s)", identifier, name, len(stored))
        return PublishResult(identifier=identifier, url=public_path(identifier))

    def fetch_form(self, identifier: str) -> FormSchema:
        return self._get(identifier).schema.copy()

    def submit(self, identifier: str, values: Dict[str, Any]) -> str:
        record = self._get(identifier)
        submission = SubmissionRecord(
            id=f"sub_{uuid.uuid4().hex[:16]}",
            form_id=identifier,
            data=dict(values),
            created_at=datetime.now(timezone.utc),
        )
        record.submissions.insert(0, submission)
        logger.info("Recorded submission %s for form %s", submission.id, identifier)
        return submission.id

    def list_forms(
        self,
        session_token: Optional[str] = None,
        admin_password: Optional[str] = None,
    ) -> List[FormRecord]:
        if self._is_admin(admin_password):
            records = list(self._forms.values())
        elif session_token:
            records = [r for r in self._forms.values() if r.session_id == session_token]
        else:
            raise AuthorizationError("Session ID required")
        # Insertion order is creation order
        return list(reversed(records))

    def delete_form(self, identifier: str, admin_password: str) -> None:
        if not self._is_admin(admin_password):
            raise AuthorizationError("Unauthorized")
        self._get(identifier)
        del self._forms[identifier]
        logger.info("Deleted form %s and its submissions", identifier)


class HttpGateway(FormGateway):
    """Gateway speaking the builder's REST API over httpx.

    Routes:
        POST   /api/forms                  create
        GET    /api/forms                  list (Bearer admin or x-session-id)
        GET    /api/forms/{id}             fetch
        DELETE /api/forms/{id}             delete (Bearer admin)
        POST   /api/forms/{id}/submit      submit

    Network failures and unexpected statuses raise TransportError; requests
    are never retried.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "HttpGateway":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        identifier: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        try:
            response = self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 404 and identifier is not None:
            raise FormNotFoundError(identifier)
        if response.status_code == 401:
            raise AuthorizationError(_error_message(response, "Unauthorized"))
        if response.status_code == 400:
            raise AuthorizationError(_error_message(response, "Bad request"))
        if response.status_code >= 300:
            message = _error_message(response, f"HTTP {response.status_code}")
            logger.warning("%s %s returned %d: %s", method, path, response.status_code, message)
            raise TransportError(message, status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"{method} {path} returned a non-JSON body", status_code=response.status_code
            ) from exc

    def create_form(self, name: str, schema: FormSchema, session_token: str) -> PublishResult:
        if not session_token:
            raise ValueError("Session ID required")
        body = {
            "formName": name or DEFAULT_FORM_NAME,
            "formComponents": schema.to_dict()["formComponents"],
            "sessionId": session_token,
        }
        data = self._request("POST", "/api/forms", json=body)
        logger.info("Published form %s", data["uuid"])
        return PublishResult(identifier=data["uuid"], url=data.get("url") or public_path(data["uuid"]))

    def fetch_form(self, identifier: str) -> FormSchema:
        data = self._request("GET", f"/api/forms/{identifier}", identifier=identifier)
        return FormSchema.from_dict(data.get("content") or {})

    def submit(self, identifier: str, values: Dict[str, Any]) -> str:
        data = self._request(
            "POST", f"/api/forms/{identifier}/submit", identifier=identifier, json=values
        )
        return str(data["submissionId"])

    def list_forms(
        self,
        session_token: Optional[str] = None,
        admin_password: Optional[str] = None,
    ) -> List[FormRecord]:
        headers: Dict[str, str] = {}
        if admin_password:
            headers["Authorization"] = f"Bearer {admin_password}"
        if session_token:
            headers["x-session-id"] = session_token
        if not headers:
            raise AuthorizationError("Session ID required")
        data = self._request("GET", "/api/forms", headers=headers)
        return [FormRecord.from_dict(item) for item in data]

    def delete_form(self, identifier: str, admin_password: str) -> None:
        self._request(
            "DELETE",
            f"/api/forms/{identifier}",
            identifier=identifier,
            headers={"Authorization": f"Bearer {admin_password}"},
        )


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        data = response.json()
    except ValueError:
        return default
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return default


__all__ = [
    "PublishResult",
    "SubmissionRecord",
    "FormRecord",
    "FormGateway",
    "InMemoryGateway",
    "HttpGateway",
    "public_path",
]
