"""Pydantic v2 models for the deployment package assembler.

Defines the value types that flow between the catalog, the selection, the
template renderer, the archive builder and the assembler, plus the structured
progress and failure records handed back to UI collaborators.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class DeploymentType(str, Enum):
    """Target installation topology. Only used as a label."""
    SAAS = "saas"
    ON_PREMISE = "on-premise"
    HYBRID = "hybrid"


class AssemblyState(str, Enum):
    """Lifecycle of a single assembly run."""
    IDLE = "idle"
    VALIDATING = "validating"
    GENERATING = "generating"
    DONE = "done"
    FAILED = "failed"


class ReasonCode(str, Enum):
    """Machine-readable failure reasons."""
    UNKNOWN_COMPONENT = "UnknownComponent"
    TEMPLATE_ERROR = "TemplateError"
    DUPLICATE_PATH = "DuplicatePath"
    BUILDER_CLOSED = "BuilderClosed"
    TERMS_NOT_ACCEPTED = "TermsNotAccepted"
    MISSING_COMPANY_NAME = "MissingCompanyName"
    EMPTY_SELECTION = "EmptySelection"


class LicenseKind(str, Enum):
    PERPETUAL = "perpetual"
    EVALUATION = "evaluation"


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

class ComponentDescriptor(BaseModel):
    """One independently toggleable unit of the installation package."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable identifier, unique within the catalog")
    name: str = Field(..., description="Display name")
    description: str = Field(default="", description="Display description")
    required: bool = Field(default=False, description="Always part of every selection")
    approx_size_bytes: int = Field(default=0, ge=0, description="Size hint for the download form")
    folder: str = Field(default="", description="Archive directory; defaults to the id")

    @property
    def archive_folder(self) -> str:
        """Directory inside the archive that holds this component's files."""
        return self.folder or self.id


# ---------------------------------------------------------------------------
# Customer input
# ---------------------------------------------------------------------------

class CustomerContext(BaseModel):
    """Customer identity and choices collected by the download form."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    company_name: str = Field(default="", description="Licensee; required before generation")
    license_key: Optional[str] = Field(
        default=None, description="Purchased key; blank means an evaluation key is issued"
    )
    accepted_terms: bool = Field(default=False, description="License terms acceptance gate")
    deployment_type: DeploymentType = Field(default=DeploymentType.ON_PREMISE)

    @field_validator("license_key")
    @classmethod
    def _blank_key_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value

    @property
    def has_license_key(self) -> bool:
        return self.license_key is not None


# ---------------------------------------------------------------------------
# Generated output
# ---------------------------------------------------------------------------

class GeneratedFile(BaseModel):
    """A rendered file, relative to its component folder or the archive root."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1, description="Forward-slash separated relative path")
    content: bytes = Field(default=b"")


class LicenseRecord(BaseModel):
    """License metadata written to ``LICENSE.txt`` for the end customer."""

    model_config = ConfigDict(frozen=True)

    company_name: str
    license_key: str
    issued_at: datetime
    kind: LicenseKind
    deployment_type: DeploymentType
    valid_days: Optional[int] = Field(
        default=None, description="Evaluation validity; None for perpetual licenses"
    )


class ProgressEvent(BaseModel):
    """Emitted after each component has been written to the archive."""

    model_config = ConfigDict(frozen=True)

    completed: int = Field(..., ge=0)
    total: int = Field(..., ge=1)
    component_id: str = Field(default="")

    @computed_field  # type: ignore[misc]
    @property
    def percent(self) -> float:
        """Completion percentage in the ``0..100`` range."""
        return round(self.completed / self.total * 100, 2)


class PackageArtifact(BaseModel):
    """The final archive returned to the caller."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(..., description="ZIP archive bytes")
    suggested_filename: str
    components: list[str] = Field(
        default_factory=list, description="Component ids in archive order"
    )
    file_count: int = Field(default=0, ge=0)
    created_at: datetime

    @property
    def size_bytes(self) -> int:
        return len(self.data)


class AssemblyFailure(BaseModel):
    """Structured failure report for UI collaborators."""

    stage: AssemblyState
    reason: ReasonCode
    component_id: Optional[str] = None
    field: Optional[str] = Field(
        default=None, description="Form field to highlight for user-correctable errors"
    )
    message: str = ""
