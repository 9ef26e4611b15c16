from __future__ import annotations

from pydantic import BaseModel, Field


class Recipient(BaseModel):
    first_name: str = ""
    last_name: str = ""
    company: str | None = None
    address1: str = ""
    address2: str | None = None
    city: str = ""
    state: str = ""
    zip: str = ""
    phone: str | None = None
    email: str | None = None
    gift_message: str | None = None
    is_valid: bool = True
    errors: list[str] = Field(default_factory=list)


class RecipientListRequest(BaseModel):
    recipients: list[Recipient] = Field(default_factory=list)


class DuplicateGroup(BaseModel):
    key: str
    recipients: list[Recipient]


class DedupeResponse(BaseModel):
    recipients: list[Recipient]
    duplicate_groups: list[DuplicateGroup]
    removed_count: int


class MergeRequest(BaseModel):
    existing: list[Recipient] = Field(default_factory=list)
    incoming: list[Recipient] = Field(default_factory=list)


class MergeResponse(BaseModel):
    recipients: list[Recipient]
    added: list[Recipient]
    duplicates: list[Recipient]


class ValidateRecipientsResponse(BaseModel):
    recipients: list[Recipient]
    valid_count: int
    invalid_count: int
