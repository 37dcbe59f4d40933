"""Package assembly orchestrator.

Drives one assembly run through ``idle -> validating -> generating -> done``
(or ``failed``):

1. VALIDATE  -- terms accepted, company name present, every selected id known,
   selection non-empty.
2. GENERATE  -- render each selected component in catalog order, add its files
   to a fresh ``ArchiveBuilder`` and emit a ``ProgressEvent``.
3. STAMP     -- add ``LICENSE.txt`` and ``VERSION.txt``.
4. FINISH    -- close the archive and wrap it in a ``PackageArtifact``.

Quick usage::

    from packager.bundle import PackageAssembler, CustomerContext, default_catalog

    catalog = default_catalog()
    assembler = PackageAssembler(catalog)
    artifact = await assembler.generate(
        ["docs"],
        CustomerContext(company_name="Acme", accepted_terms=True),
    )

An assembler instance serves exactly one run; concurrent requests each build
their own.  The catalog and renderer are read-only and may be shared.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from datetime import datetime, timezone
from typing import Any, Optional, Union

from packager.config import PackagerConfig
from packager.utils import (
    format_size,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
    unix_millis,
)

from .archive import ArchiveBuilder
from .catalog import ComponentCatalog
from .errors import DuplicatePath, EmptySelection, MissingCompanyName, PackagerError, TermsNotAccepted, UnknownComponent
from .licensing import issue_license
from .models import (
    AssemblyFailure,
    AssemblyState,
    ComponentDescriptor,
    CustomerContext,
    LicenseKind,
    PackageArtifact,
    ProgressEvent,
)
from .selection import SelectionSet
from .templates import TemplateRenderer

Clock = Callable[[], datetime]
ProgressCallback = Callable[[ProgressEvent], Union[None, Awaitable[None]]]
BuilderFactory = Callable[..., ArchiveBuilder]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PackageAssembler:
    """Single-use orchestrator for one package assembly run.

    Attributes:
        state: Current ``AssemblyState``.
        progress: Every ``ProgressEvent`` emitted so far.
        failure: Structured failure once the run has failed, else ``None``.
        artifact: The finished ``PackageArtifact`` once the run is done.
    """

    def __init__(
        self,
        catalog: ComponentCatalog,
        renderer: Optional[TemplateRenderer] = None,
        config: Optional[PackagerConfig] = None,
        *,
        clock: Clock = _utc_now,
        builder_factory: BuilderFactory = ArchiveBuilder,
        verbose: bool = False,
    ) -> None:
        self.catalog = catalog
        self.config = config or (renderer.config if renderer is not None else PackagerConfig())
        self.renderer = renderer or TemplateRenderer(catalog, self.config)
        self.clock = clock
        self.builder_factory = builder_factory
        self.verbose = verbose

        self.state = AssemblyState.IDLE
        self.progress: list[ProgressEvent] = []
        self.failure: Optional[AssemblyFailure] = None
        self.artifact: Optional[PackageArtifact] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def stream(
        self,
        selection: SelectionSet | Iterable[str],
        ctx: CustomerContext,
    ) -> AsyncIterator[Union[ProgressEvent, PackageArtifact]]:
        """Run the assembly, yielding progress events then the artifact.

        Control returns to the caller after every component.  Abandoning the
        iteration cancels the run; the in-memory archive is simply dropped.

        Raises:
            PackagerError: Any validation or generation failure.  The error's
                ``stage`` tells which phase failed.
            RuntimeError: If this assembler has already been used.
        """
        if self.state != AssemblyState.IDLE:
            raise RuntimeError(
                f"PackageAssembler already used (state={self.state.value}); create a new one"
            )

        # 1. Validate
        self.state = AssemblyState.VALIDATING
        try:
            components = self._validate(selection, ctx)
        except PackagerError as exc:
            self._fail(exc)
            raise

        # 2. Generate
        now = self.clock()
        builder = self.builder_factory(
            compression_level=self.config.compression_level, timestamp=now
        )
        self.state = AssemblyState.GENERATING
        total = len(components)

        try:
            for index, component in enumerate(components, start=1):
                self._add_component(builder, component, ctx, now)
                event = ProgressEvent(completed=index, total=total, component_id=component.id)
                self.progress.append(event)
                yield event
                await asyncio.sleep(0)

            # 3. License and version stamp, independent of the selection
            record = issue_license(ctx, now, self.config)
            if self.verbose and record.kind == LicenseKind.EVALUATION:
                print_warning(
                    f"No license key supplied; issued {record.license_key} "
                    f"valid for {record.valid_days} days"
                )
            license_file = self.renderer.render_license(record)
            version_file = self.renderer.render_version(now)
            builder.add(license_file.path, license_file.content)
            builder.add(version_file.path, version_file.content)

            # 4. Finish
            file_count = len(builder)
            data = builder.finish()
        except PackagerError as exc:
            self._fail(exc)
            raise

        self.artifact = PackageArtifact(
            data=data,
            suggested_filename=self.suggested_filename(ctx, now),
            components=[c.id for c in components],
            file_count=file_count,
            created_at=now,
        )
        self.state = AssemblyState.DONE
        if self.verbose:
            self._print_summary(self.artifact)
        yield self.artifact

    async def generate(
        self,
        selection: SelectionSet | Iterable[str],
        ctx: CustomerContext,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PackageArtifact:
        """Run the assembly to completion and return the artifact.

        Args:
            selection: A ``SelectionSet`` or a snapshot of component ids.
            ctx: Customer context from the download form.
            on_progress: Optional callback (plain or async) invoked with each
                ``ProgressEvent``.
        """
        artifact: Optional[PackageArtifact] = None
        async for item in self.stream(selection, ctx):
            if isinstance(item, ProgressEvent):
                if on_progress is not None:
                    result = on_progress(item)
                    if inspect.isawaitable(result):
                        await result
            else:
                artifact = item
        assert artifact is not None  # stream() always ends with the artifact
        return artifact

    def suggested_filename(self, ctx: CustomerContext, now: datetime) -> str:
        """``{product_slug}-{deployment_type}-{unix_millis}.zip``."""
        return f"{self.config.product_slug}-{ctx.deployment_type.value}-{unix_millis(now)}.zip"

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _validate(
        self, selection: SelectionSet | Iterable[str], ctx: CustomerContext
    ) -> list[ComponentDescriptor]:
        """Check user input and return the components to build, in catalog order."""
        if not ctx.accepted_terms:
            raise TermsNotAccepted()
        if not ctx.company_name.strip():
            raise MissingCompanyName()

        if isinstance(selection, SelectionSet):
            requested = sorted(selection.current())
        else:
            requested = list(selection)
        for component_id in requested:
            if not self.catalog.exists(component_id):
                raise UnknownComponent(component_id)

        components = self.catalog.order(set(requested) | self.catalog.required_ids())
        if not components:
            raise EmptySelection()
        return components

    def _add_component(
        self,
        builder: ArchiveBuilder,
        component: ComponentDescriptor,
        ctx: CustomerContext,
        now: datetime,
    ) -> None:
        """Render one component and feed its files to the builder."""
        files = self.renderer.render(component.id, ctx, now=now)
        for generated in files:
            try:
                builder.add(generated.path, generated.content)
            except DuplicatePath as exc:
                exc.component_id = component.id
                raise

    def _fail(self, exc: PackagerError) -> None:
        exc.stage = self.state
        self.failure = exc.to_failure()
        self.state = AssemblyState.FAILED
        if self.verbose:
            where = f" [{exc.component_id}]" if exc.component_id else ""
            print_error(f"Assembly failed during {exc.stage.value}{where}: {exc}")

    def _print_summary(self, artifact: PackageArtifact) -> None:
        data: dict[str, Any] = {
            "Filename": artifact.suggested_filename,
            "Components": ", ".join(artifact.components),
            "Files": artifact.file_count,
            "Archive size": format_size(artifact.size_bytes),
        }
        print_summary_table(data, title="Package")
        print_success(f"Package {artifact.suggested_filename} generated")


async def assemble_package(
    catalog: ComponentCatalog,
    selection: SelectionSet | Iterable[str],
    ctx: CustomerContext,
    *,
    renderer: Optional[TemplateRenderer] = None,
    config: Optional[PackagerConfig] = None,
    clock: Clock = _utc_now,
    on_progress: Optional[ProgressCallback] = None,
) -> PackageArtifact:
    """Assemble a package with a fresh ``PackageAssembler``."""
    assembler = PackageAssembler(catalog, renderer, config, clock=clock)
    return await assembler.generate(selection, ctx, on_progress=on_progress)
