"""Pre-download package preview.

Summarises what a selection will produce before anything is rendered: the
components in archive order, an approximate download size, the filename
pattern, the quick-start commands and the minimum host requirements shown
next to the download form.
"""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, Field
from rich.table import Table

from packager.config import PackagerConfig
from packager.utils import console, format_size

from .catalog import ComponentCatalog
from .errors import UnknownComponent
from .models import ComponentDescriptor, DeploymentType
from .selection import SelectionSet


class QuickStartStep(BaseModel):
    """One copy-and-paste command of the quick-start list."""
    label: str
    command: str


class SystemRequirement(BaseModel):
    """Minimum host requirement for an on-premise install."""
    name: str
    minimum: str


SYSTEM_REQUIREMENTS: tuple[SystemRequirement, ...] = (
    SystemRequirement(name="Node.js", minimum=">= 18.0"),
    SystemRequirement(name="Docker", minimum=">= 20.0"),
    SystemRequirement(name="RAM", minimum=">= 8 GB"),
    SystemRequirement(name="Disk", minimum=">= 50 GB SSD"),
)


class PackagePreview(BaseModel):
    """What a selection will produce, computed without rendering."""

    components: list[ComponentDescriptor] = Field(default_factory=list)
    approx_size_bytes: int = Field(default=0, ge=0)
    filename_pattern: str = ""
    quick_start: list[QuickStartStep] = Field(default_factory=list)
    requirements: list[SystemRequirement] = Field(default_factory=list)

    @property
    def size_label(self) -> str:
        return format_size(self.approx_size_bytes)


def quick_start_steps(
    deployment_type: DeploymentType, config: PackagerConfig | None = None
) -> list[QuickStartStep]:
    """Commands to unpack, configure and start a generated package."""
    config = config or PackagerConfig()
    slug = config.product_slug
    return [
        QuickStartStep(
            label="Unpack package",
            command=f"unzip {slug}-{deployment_type.value}-*.zip -d {slug}",
        ),
        QuickStartStep(label="Configure variables", command="cp config/.env.template .env && nano .env"),
        QuickStartStep(label="Start PostgreSQL", command="docker-compose up -d postgres"),
        QuickStartStep(
            label="Run migrations",
            command="psql -f database/schema.sql && psql -f database/migrations.sql",
        ),
        QuickStartStep(label="Build frontend", command="cd frontend && npm install && npm run build"),
        QuickStartStep(label="Start services", command="docker-compose up -d"),
    ]


def preview_package(
    catalog: ComponentCatalog,
    selection: SelectionSet | Iterable[str],
    deployment_type: DeploymentType = DeploymentType.ON_PREMISE,
    config: PackagerConfig | None = None,
) -> PackagePreview:
    """Describe the package a selection would produce.

    Required components are always included.

    Raises:
        UnknownComponent: If the selection lists an id missing from the catalog.
    """
    config = config or PackagerConfig()
    if isinstance(selection, SelectionSet):
        requested = set(selection.current())
    else:
        requested = set(selection)
    for component_id in sorted(requested):
        if not catalog.exists(component_id):
            raise UnknownComponent(component_id)

    components = catalog.order(requested | catalog.required_ids())
    return PackagePreview(
        components=components,
        approx_size_bytes=sum(c.approx_size_bytes for c in components),
        filename_pattern=f"{config.product_slug}-{deployment_type.value}-<timestamp>.zip",
        quick_start=quick_start_steps(deployment_type, config),
        requirements=list(SYSTEM_REQUIREMENTS),
    )


def print_preview(preview: PackagePreview) -> None:
    """Render a preview with Rich."""
    table = Table(title="Package Components", show_header=True, header_style="bold cyan")
    table.add_column("Component", no_wrap=True)
    table.add_column("Description", style="dim")
    table.add_column("Size", justify="right")
    table.add_column("Required", justify="center")
    for component in preview.components:
        table.add_row(
            component.name,
            component.description,
            format_size(component.approx_size_bytes),
            "yes" if component.required else "",
        )
    console.print(table)
    console.print(f"Estimated download: [bold]{preview.size_label}[/bold]")
    console.print(f"Filename: [dim]{preview.filename_pattern}[/dim]")
    console.print()

    console.print("[bold]Quick start[/bold]")
    for index, step in enumerate(preview.quick_start, start=1):
        console.print(f"  {index}. {step.label}: [green]{step.command}[/green]")
    console.print()

    console.print("[bold]System requirements[/bold]")
    for requirement in preview.requirements:
        console.print(f"  {requirement.name}: {requirement.minimum}")
    console.print()
