from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _RTModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _id_as_str(value: Any) -> Any:
    # RT emits record ids as strings in most places, as integers in a few.
    return str(value) if isinstance(value, int) else value


class RTObject(_RTModel):
    """Reference to another RT record as embedded in responses."""

    id: str
    url: str = Field(alias="_url")
    type: str

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _id_as_str(value)


class Hyperlink(_RTModel):
    ref: str
    url: str = Field(alias="_url")
    type: str | None = None
    id: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return _id_as_str(value)


class _LinkedModel(_RTModel):
    hyperlinks: list[Hyperlink] = Field(default_factory=list, alias="_hyperlinks")

    def link(self, ref: str) -> Hyperlink | None:
        for hyperlink in self.hyperlinks:
            if hyperlink.ref == ref:
                return hyperlink
        return None


class Queue(_LinkedModel):
    id: int
    name: str = Field(alias="Name")
    description: str | None = Field(default=None, alias="Description")
    lifecycle: str | None = Field(default=None, alias="Lifecycle")
    disabled: str | None = Field(default=None, alias="Disabled")
    sort_order: str | None = Field(default=None, alias="SortOrder")
    correspond_address: str | None = Field(default=None, alias="CorrespondAddress")
    comment_address: str | None = Field(default=None, alias="CommentAddress")
    sla_disabled: str | None = Field(default=None, alias="SLADisabled")
    created: str | None = Field(default=None, alias="Created")
    last_updated: str | None = Field(default=None, alias="LastUpdated")
    creator: RTObject | None = Field(default=None, alias="Creator")
    last_updated_by: RTObject | None = Field(default=None, alias="LastUpdatedBy")
    cc: list[RTObject] = Field(default_factory=list, alias="Cc")
    admin_cc: list[RTObject] = Field(default_factory=list, alias="AdminCc")
    custom_fields: list[Any] = Field(default_factory=list, alias="CustomFields")
    ticket_custom_fields: list[Any] = Field(default_factory=list, alias="TicketCustomFields")
    ticket_transaction_custom_fields: list[Any] = Field(
        default_factory=list, alias="TicketTransactionCustomFields"
    )


class Ticket(_LinkedModel):
    id: int
    subject: str | None = Field(default=None, alias="Subject")
    status: str | None = Field(default=None, alias="Status")
    queue: RTObject | None = Field(default=None, alias="Queue")
    owner: RTObject | None = Field(default=None, alias="Owner")
    creator: RTObject | None = Field(default=None, alias="Creator")
    requestor: list[RTObject] = Field(default_factory=list, alias="Requestor")
    priority: str | None = Field(default=None, alias="Priority")
    created: str | None = Field(default=None, alias="Created")
    last_updated: str | None = Field(default=None, alias="LastUpdated")
    resolved: str | None = Field(default=None, alias="Resolved")
    custom_fields: list[Any] = Field(default_factory=list, alias="CustomFields")

    # Concurrency token from the ETag response header; required for updates.
    etag: str | None = Field(default=None, exclude=True)


class User(_RTModel):
    id: int
    name: str = Field(alias="Name")
    real_name: str | None = Field(default=None, alias="RealName")
