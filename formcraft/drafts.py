"""Draft transfer between the builder and the draft preview.

The builder serializes its current schema into a transport; the preview
reads it once when it loads. Any host can provide a transport (browser
storage, a query parameter, a direct in-memory hand-off).
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import parse_qs, urlencode

from formcraft.schema import FormSchema

logger = logging.getLogger(__name__)

DRAFT_PARAM = "formData"


class DraftTransport(ABC):
    """Carries one serialized draft schema from builder to preview."""

    @abstractmethod
    def write(self, schema: FormSchema) -> None:
        ...

    @abstractmethod
    def read_once(self) -> Optional[FormSchema]:
        """Return the pending draft and consume it; None if there is none."""


class InMemoryDraftTransport(DraftTransport):
    """Direct hand-off within one process."""

    def __init__(self):
        self._payload: Optional[str] = None

    def write(self, schema: FormSchema) -> None:
        self._payload = json.dumps(schema.to_dict())

    def read_once(self) -> Optional[FormSchema]:
        payload, self._payload = self._payload, None
        if payload is None:
            return None
        return FormSchema.from_dict(json.loads(payload))


class QueryStringDraftTransport(DraftTransport):
    """Encodes the draft as a ``formData`` query parameter.

    Examples:
        >>> transport = QueryStringDraftTransport()
        >>> transport.write(FormSchema(name="Survey"))
        >>> transport.query.startswith("formData=")
        True
        >>> QueryStringDraftTransport.from_query(transport.query).read_once().name
        'Survey'
    """

    def __init__(self, query: str = ""):
        self.query = query

    @classmethod
    def from_query(cls, query: str) -> "QueryStringDraftTransport":
        return cls(query=query.lstrip("?"))

    def write(self, schema: FormSchema) -> None:
        self.query = urlencode({DRAFT_PARAM: json.dumps(schema.to_dict(), separators=(",", ":"))})

    def read_once(self) -> Optional[FormSchema]:
        values = parse_qs(self.query).get(DRAFT_PARAM)
        self.query = ""
        if not values:
            return None
        try:
            data = json.loads(values[0])
        except ValueError:
            logger.warning("Ignoring draft with malformed JSON")
            return None
        return FormSchema.from_dict(data)


__all__ = [
    "DraftTransport",
    "InMemoryDraftTransport",
    "QueryStringDraftTransport",
]
