"""Legajo (applicant record) models and resource references."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Strategy(str, Enum):
    """Create-time directive passed through to the API as a header."""

    IGNORE = "IGNORE"
    COMPLETE = "COMPLETE"
    OVERRIDE = "OVERRIDE"


class Legajo(BaseModel):
    """A legajo as returned by the API. Unknown fields are preserved."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(alias="_id")
    name: str | None = None
    email: str | None = None
    id_number: str | None = Field(default=None, alias="idNumber")
    reference_code: str | None = Field(default=None, alias="referenceCode")
    link_landing_next: str | None = Field(default=None, alias="linkLandingNext")
    link_recover: str | None = Field(default=None, alias="linkRecover")
    link_applicant: str | None = Field(default=None, alias="linkApplicant")
    created_at: str | None = Field(default=None, alias="createdAt")
    updated_at: str | None = Field(default=None, alias="updatedAt")


class LegajoCreateData(BaseModel):
    """Payload for creating a legajo."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    firstname: str | None = None
    lastname: str | None = None
    email: str | None = None
    id_number: str | None = Field(default=None, alias="idNumber")
    name: str | None = None


class LegajoUpdateData(BaseModel):
    """Payload for updating a legajo. Any extra field is sent as-is."""

    model_config = ConfigDict(extra="allow")

    vouchers: dict[str, Any] | None = None


class FileResponse(BaseModel):
    """File content returned by the API."""

    file: str
    """
    Base64-encoded file content.
    """


@dataclass(frozen=True)
class ById:
    """Reference to a legajo that still has to be fetched."""

    id: str


@dataclass(frozen=True)
class Resolved:
    """Reference to a legajo already in hand."""

    legajo: Legajo


Reference = ById | Resolved
