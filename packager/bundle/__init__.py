"""Deployment package assembler.

Takes a component selection and a customer context and produces a ZIP archive
of rendered configuration files, documentation and scripts, stamped with a
license record and a version marker.

Quick usage::

    from packager.bundle import CustomerContext, PackageAssembler, SelectionSet, default_catalog

    catalog = default_catalog()
    selection = SelectionSet(catalog)
    selection.toggle("docs")
    ctx = CustomerContext(company_name="Acme", accepted_terms=True)
    artifact = await PackageAssembler(catalog).generate(selection, ctx)
"""

from packager.bundle.archive import ArchiveBuilder
from packager.bundle.assembler import PackageAssembler, assemble_package
from packager.bundle.catalog import DEFAULT_COMPONENTS, ComponentCatalog, default_catalog
from packager.bundle.errors import (
    AssemblyValidationError,
    BuilderClosed,
    DuplicatePath,
    EmptySelection,
    MissingCompanyName,
    PackagerError,
    TemplateError,
    TermsNotAccepted,
    UnknownComponent,
)
from packager.bundle.licensing import issue_license
from packager.bundle.models import (
    AssemblyFailure,
    AssemblyState,
    ComponentDescriptor,
    CustomerContext,
    DeploymentType,
    GeneratedFile,
    LicenseKind,
    LicenseRecord,
    PackageArtifact,
    ProgressEvent,
    ReasonCode,
)
from packager.bundle.preview import PackagePreview, preview_package, print_preview
from packager.bundle.selection import SelectionSet
from packager.bundle.templates import TemplateRenderer

__all__ = [
    "ArchiveBuilder",
    "AssemblyFailure",
    "AssemblyState",
    "AssemblyValidationError",
    "BuilderClosed",
    "ComponentCatalog",
    "ComponentDescriptor",
    "CustomerContext",
    "DEFAULT_COMPONENTS",
    "DeploymentType",
    "DuplicatePath",
    "EmptySelection",
    "GeneratedFile",
    "LicenseKind",
    "LicenseRecord",
    "MissingCompanyName",
    "PackageArtifact",
    "PackageAssembler",
    "PackagePreview",
    "PackagerError",
    "ProgressEvent",
    "ReasonCode",
    "SelectionSet",
    "TemplateError",
    "TemplateRenderer",
    "TermsNotAccepted",
    "UnknownComponent",
    "assemble_package",
    "default_catalog",
    "issue_license",
    "preview_package",
    "print_preview",
]
