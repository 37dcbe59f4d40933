"""Exception taxonomy for package assembly.

Every error is terminal for the run that raised it.  The assembler stamps the
``stage`` it was in before re-raising so callers can turn any error into an
``AssemblyFailure`` without inspecting tracebacks.
"""

from __future__ import annotations

from typing import Optional

from .models import AssemblyFailure, AssemblyState, ReasonCode


class PackagerError(Exception):
    """Base class for all assembly errors."""

    reason: ReasonCode
    field: Optional[str] = None

    def __init__(self, message: str, *, component_id: Optional[str] = None) -> None:
        self.component_id = component_id
        self.stage: Optional[AssemblyState] = None
        super().__init__(message)

    def to_failure(self) -> AssemblyFailure:
        """Convert the error into the structured failure record."""
        return AssemblyFailure(
            stage=self.stage or AssemblyState.FAILED,
            reason=self.reason,
            component_id=self.component_id,
            field=self.field,
            message=str(self),
        )


# ---------------------------------------------------------------------------
# Authoring / programmer errors
# ---------------------------------------------------------------------------


class UnknownComponent(PackagerError):
    """Raised when a component id is not present in the catalog."""

    reason = ReasonCode.UNKNOWN_COMPONENT

    def __init__(self, component_id: str) -> None:
        super().__init__(f"Unknown component: {component_id!r}", component_id=component_id)


class TemplateError(PackagerError):
    """Raised for an invalid template table or a failed render."""

    reason = ReasonCode.TEMPLATE_ERROR


class DuplicatePath(PackagerError):
    """Raised when two entries target the same archive path."""

    reason = ReasonCode.DUPLICATE_PATH

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Archive path already added: {path}")


class BuilderClosed(PackagerError):
    """Raised when an archive builder is used after ``finish()``."""

    reason = ReasonCode.BUILDER_CLOSED

    def __init__(self) -> None:
        super().__init__("Archive builder is closed; start a new build")


# ---------------------------------------------------------------------------
# User-correctable validation errors
# ---------------------------------------------------------------------------


class AssemblyValidationError(PackagerError):
    """Base class for errors the customer can fix by editing the form."""


class TermsNotAccepted(AssemblyValidationError):
    reason = ReasonCode.TERMS_NOT_ACCEPTED
    field = "accepted_terms"

    def __init__(self) -> None:
        super().__init__("The license terms must be accepted")


class MissingCompanyName(AssemblyValidationError):
    reason = ReasonCode.MISSING_COMPANY_NAME
    field = "company_name"

    def __init__(self) -> None:
        super().__init__("A company name is required")


class EmptySelection(AssemblyValidationError):
    reason = ReasonCode.EMPTY_SELECTION
    field = "selection"

    def __init__(self) -> None:
        super().__init__("At least one component must be selected")
