"""Immutable view of the request a form is being built for."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from litestar import Request

SUBMISSION_METHODS = frozenset({"POST"})


@dataclass(frozen=True)
class RequestSnapshot:
    method: str
    fields: Mapping[str, str] = field(default_factory=dict)
    uri: str = ""

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def is_submission_method(self) -> bool:
        return self.method in SUBMISSION_METHODS

    def get_submitted_fields(self) -> Mapping[str, str]:
        return self.fields

    def get_request_uri(self) -> str:
        return self.uri

    @classmethod
    async def from_request(cls, request: Request) -> RequestSnapshot:
        """Read a Litestar request into a snapshot.

        Query parameters and form body are merged, body values winning.
        Non-string values (file uploads) are skipped.
        """
        fields: dict[str, str] = {
            k: v for k, v in request.query_params.items() if isinstance(v, str)
        }
        if request.method.upper() in SUBMISSION_METHODS:
            form_data = await request.form()
            fields.update((k, v) for k, v in form_data.items() if isinstance(v, str))

        uri = request.url.path
        if request.url.query:
            uri += f"?{request.url.query}"

        return cls(method=request.method, fields=fields, uri=uri)
