"""Pydantic models describing the YAML schema and service config documents."""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

_HTTP_VERBS: tuple[str, ...] = ("get", "post", "put", "patch", "delete")

type OperationFieldRole = Literal["name", "status", "error_code", "error_message"]


class _DocumentModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class HttpRuleDoc(_DocumentModel):
    """One HTTP binding; exactly one verb key carries the URL template."""

    selector: Optional[str] = None
    get: Optional[str] = None
    post: Optional[str] = None
    put: Optional[str] = None
    patch: Optional[str] = None
    delete: Optional[str] = None
    body: str = ""

    @model_validator(mode="after")
    def _single_pattern(self) -> HttpRuleDoc:
        patterns = [verb for verb in _HTTP_VERBS if getattr(self, verb) is not None]
        if len(patterns) != 1:
            raise ValueError(f"HTTP rule must declare exactly one verb, got {patterns or 'none'}")
        return self

    def verb_and_url(self) -> tuple[str, str]:
        """Return the declared verb and its URL template."""
        for verb in _HTTP_VERBS:
            url = getattr(self, verb)
            if url is not None:
                return verb, url
        raise ValueError("HTTP rule declares no verb")


class MapDoc(_DocumentModel):
    key: str
    value: str


class FieldDoc(_DocumentModel):
    """A message field; either ``type`` or ``map`` must be given."""

    name: str
    type: Optional[str] = None
    map: Optional[MapDoc] = None
    number: Optional[int] = None
    repeated: bool = False
    optional: bool = False
    required: bool = False
    json_name: Optional[str] = None
    comment: Optional[str] = None
    operation_field: Optional[OperationFieldRole] = None
    operation_request_field: Optional[str] = None
    operation_response_field: Optional[str] = None

    @model_validator(mode="after")
    def _type_or_map(self) -> FieldDoc:
        if (self.type is None) == (self.map is None):
            raise ValueError(f"Field {self.name!r} must declare exactly one of 'type' or 'map'")
        if self.map is not None and (self.repeated or self.optional):
            raise ValueError(f"Map field {self.name!r} cannot be repeated or optional")
        return self


class EnumDoc(_DocumentModel):
    name: str
    values: list[str] = Field(default_factory=list)
    comment: Optional[str] = None


class MessageDoc(_DocumentModel):
    name: str
    fields: list[FieldDoc] = Field(default_factory=list)
    messages: list[MessageDoc] = Field(default_factory=list)
    enums: list[EnumDoc] = Field(default_factory=list)
    comment: Optional[str] = None


class OperationInfoDoc(_DocumentModel):
    response_type: str
    metadata_type: Optional[str] = None


class PaginationDoc(_DocumentModel):
    """Explicit pagination roles; ``items`` defaults to the first repeated field."""

    page_size: str = "page_size"
    page_token: str = "page_token"
    next_page_token: str = "next_page_token"
    items: Optional[str] = None


class MethodDoc(_DocumentModel):
    name: str
    input: str
    output: str
    client_streaming: bool = False
    server_streaming: bool = False
    http: Optional[HttpRuleDoc] = None
    operation_info: Optional[OperationInfoDoc] = None
    operation_service: Optional[str] = None
    operation_polling_method: bool = False
    pagination: Union[PaginationDoc, bool, None] = None
    comment: Optional[str] = None


class ServiceDoc(_DocumentModel):
    name: str
    default_host: Optional[str] = None
    methods: list[MethodDoc] = Field(default_factory=list)
    comment: Optional[str] = None


class FileDoc(_DocumentModel):
    package: str
    messages: list[MessageDoc] = Field(default_factory=list)
    enums: list[EnumDoc] = Field(default_factory=list)
    services: list[ServiceDoc] = Field(default_factory=list)


class SchemaDocument(_DocumentModel):
    """Root of an API schema document."""

    files: list[FileDoc]


class ApiDoc(_DocumentModel):
    name: str


class HttpDoc(_DocumentModel):
    rules: list[HttpRuleDoc] = Field(default_factory=list)


class DocumentationRuleDoc(_DocumentModel):
    selector: str
    description: str


class DocumentationDoc(_DocumentModel):
    rules: list[DocumentationRuleDoc] = Field(default_factory=list)


class ServiceConfigDoc(BaseModel):
    """API service config; unknown top-level sections are ignored."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str
    apis: list[ApiDoc] = Field(default_factory=list)
    http: HttpDoc = Field(default_factory=HttpDoc)
    documentation: DocumentationDoc = Field(default_factory=DocumentationDoc)
