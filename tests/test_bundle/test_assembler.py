"""Tests for the PackageAssembler orchestrator.

Covers:
- The required-only scenario (folders, top-level files, progress events)
- Optional components, catalog ordering and reproducible bytes
- License kinds stamped into LICENSE.txt
- Validation failures (terms, company name, unknown ids, empty selection)
- Generation failures (TemplateError, DuplicatePath) and state transitions
- stream() / generate() / on_progress / cancellation / single use
"""

from __future__ import annotations

import asyncio
import re
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest

from packager.bundle.archive import ArchiveBuilder
from packager.bundle.assembler import PackageAssembler, assemble_package
from packager.bundle.catalog import ComponentCatalog
from packager.bundle.errors import (
    DuplicatePath,
    EmptySelection,
    MissingCompanyName,
    TemplateError,
    TermsNotAccepted,
    UnknownComponent,
)
from packager.bundle.models import (
    AssemblyState,
    ComponentDescriptor,
    CustomerContext,
    GeneratedFile,
    PackageArtifact,
    ProgressEvent,
    ReasonCode,
)
from packager.bundle.selection import SelectionSet
from packager.bundle.templates import TemplateRenderer
from packager.config import PackagerConfig
from packager.utils import unix_millis


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def assembler(small_catalog, small_renderer, fixed_clock) -> PackageAssembler:
    return PackageAssembler(small_catalog, small_renderer, clock=fixed_clock)


@pytest.fixture
def spy_factory():
    """Builder factory returning an ArchiveBuilder-shaped mock so ``add`` calls can be checked."""
    spy = MagicMock(spec=ArchiveBuilder)
    factory = MagicMock(return_value=spy)
    factory.spy = spy
    return factory


def _collect(events: list[ProgressEvent]) -> list[tuple[int, int]]:
    return [(e.completed, e.total) for e in events]


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestRequiredOnlyScenario:
    async def test_two_folders_two_files(self, assembler, small_catalog, acme, archive_layout):
        artifact = await assembler.generate(SelectionSet(small_catalog), acme)
        folders, files = archive_layout(artifact.data)
        assert folders == {"frontend", "database"}
        assert files == {"LICENSE.txt", "VERSION.txt"}

    async def test_progress_events(self, assembler, small_catalog, acme):
        seen: list[ProgressEvent] = []
        await assembler.generate(SelectionSet(small_catalog), acme, on_progress=seen.append)
        assert _collect(seen) == [(1, 2), (2, 2)]
        assert [e.component_id for e in seen] == ["frontend", "database"]
        assert seen[-1].percent == 100.0

    async def test_toggle_required_before_generation(self, assembler, small_catalog, acme, archive_layout):
        selection = SelectionSet(small_catalog)
        selection.toggle("frontend")
        assert selection.current() == frozenset({"frontend", "database"})
        artifact = await assembler.generate(selection, acme)
        folders, _ = archive_layout(artifact.data)
        assert folders == {"frontend", "database"}

    async def test_no_optional_files(self, assembler, small_catalog, acme, open_archive):
        artifact = await assembler.generate(SelectionSet(small_catalog), acme)
        with open_archive(artifact.data) as zf:
            names = zf.namelist()
        assert not any(n.startswith(("docs/", "security/")) for n in names)

    async def test_artifact_metadata(self, assembler, small_catalog, acme, fixed_now):
        artifact = await assembler.generate(SelectionSet(small_catalog), acme)
        assert artifact.components == ["frontend", "database"]
        assert artifact.file_count == 3 + 5 + 2
        assert artifact.created_at == fixed_now
        assert artifact.size_bytes == len(artifact.data)

    async def test_suggested_filename(self, assembler, small_catalog, acme, fixed_now):
        artifact = await assembler.generate(SelectionSet(small_catalog), acme)
        assert artifact.suggested_filename == f"obelixia-on-premise-{unix_millis(fixed_now)}.zip"

    async def test_state_done(self, assembler, small_catalog, acme):
        artifact = await assembler.generate(SelectionSet(small_catalog), acme)
        assert assembler.state == AssemblyState.DONE
        assert assembler.artifact == artifact
        assert assembler.failure is None


@pytest.mark.unit
class TestSelectionHandling:
    async def test_snapshot_of_ids(self, assembler, acme, archive_layout):
        artifact = await assembler.generate(["security", "docs"], acme)
        folders, _ = archive_layout(artifact.data)
        assert folders == {"frontend", "database", "docs", "security"}

    async def test_catalog_order_not_input_order(self, assembler, acme, open_archive):
        artifact = await assembler.generate(["security", "docs", "database", "frontend"], acme)
        with open_archive(artifact.data) as zf:
            folders = []
            for name in zf.namelist():
                head = name.split("/")[0]
                if "/" in name and head not in folders:
                    folders.append(head)
        assert folders == ["frontend", "database", "docs", "security"]
        assert artifact.components == folders

    async def test_license_and_version_last(self, assembler, acme, open_archive):
        artifact = await assembler.generate(["docs"], acme)
        with open_archive(artifact.data) as zf:
            assert zf.namelist()[-2:] == ["LICENSE.txt", "VERSION.txt"]

    async def test_full_product_catalog(self, catalog, renderer, fixed_clock, acme, archive_layout):
        selection = SelectionSet(catalog)
        selection.toggle("docs")
        selection.toggle("security")
        artifact = await PackageAssembler(catalog, renderer, clock=fixed_clock).generate(selection, acme)
        folders, files = archive_layout(artifact.data)
        assert folders == {"frontend", "database", "functions", "config", "docs", "security"}
        assert files == {"LICENSE.txt", "VERSION.txt"}


@pytest.mark.unit
class TestDeterminism:
    async def test_identical_runs_identical_bytes(self, small_catalog, small_renderer, fixed_clock, acme):
        first = await PackageAssembler(small_catalog, small_renderer, clock=fixed_clock).generate(["docs"], acme)
        second = await PackageAssembler(small_catalog, small_renderer, clock=fixed_clock).generate(["docs"], acme)
        assert first.data == second.data

    async def test_static_files_independent_of_time(
        self, small_catalog, small_renderer, fixed_now, acme, open_archive
    ):
        later = fixed_now + timedelta(hours=5)
        first = await PackageAssembler(small_catalog, small_renderer, clock=lambda: fixed_now).generate(["docs"], acme)
        second = await PackageAssembler(small_catalog, small_renderer, clock=lambda: later).generate(["docs"], acme)
        with open_archive(first.data) as a, open_archive(second.data) as b:
            assert a.namelist() == b.namelist()
            for name in a.namelist():
                if name.startswith(("frontend/", "docs/")):
                    assert a.read(name) == b.read(name), name
            assert a.read("VERSION.txt") != b.read("VERSION.txt")

    async def test_concurrent_runs_do_not_interfere(self, small_catalog, small_renderer, fixed_clock, acme):
        results = await asyncio.gather(
            *(
                PackageAssembler(small_catalog, small_renderer, clock=fixed_clock).generate(["security"], acme)
                for _ in range(4)
            )
        )
        assert len({r.data for r in results}) == 1


@pytest.mark.unit
class TestLicenseStamp:
    async def test_evaluation_without_key(self, assembler, acme, open_archive):
        artifact = await assembler.generate([], acme)
        with open_archive(artifact.data) as zf:
            text = zf.read("LICENSE.txt").decode()
        assert "Type: Evaluation (30 days)" in text
        assert re.search(r"License Key: EVAL-[0-9A-Z]+", text)

    async def test_perpetual_with_key(self, assembler, licensed_customer, open_archive):
        artifact = await assembler.generate([], licensed_customer)
        with open_archive(artifact.data) as zf:
            text = zf.read("LICENSE.txt").decode()
        assert "Type: Perpetual" in text
        assert "License Key: OBX-1234-ABCD" in text

    async def test_blank_key_is_evaluation(self, assembler, open_archive):
        ctx = CustomerContext(company_name="Acme", license_key="   ", accepted_terms=True)
        artifact = await assembler.generate([], ctx)
        with open_archive(artifact.data) as zf:
            assert b"Type: Evaluation" in zf.read("LICENSE.txt")

    async def test_deployment_type_in_filename(self, assembler, licensed_customer):
        artifact = await assembler.generate([], licensed_customer)
        assert artifact.suggested_filename.startswith("obelixia-hybrid-")

    async def test_version_marker(self, assembler, acme, open_archive):
        artifact = await assembler.generate([], acme)
        with open_archive(artifact.data) as zf:
            assert zf.read("VERSION.txt").startswith(b"ObelixIA v8.0.0\nBuild: ")


# ---------------------------------------------------------------------------
# Validation failures
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestValidationFailures:
    async def test_terms_not_accepted_never_touches_builder(self, small_catalog, small_renderer, spy_factory):
        assembler = PackageAssembler(small_catalog, small_renderer, builder_factory=spy_factory)
        ctx = CustomerContext(company_name="Acme", accepted_terms=False)
        with pytest.raises(TermsNotAccepted):
            await assembler.generate(["docs"], ctx)
        spy_factory.spy.add.assert_not_called()
        spy_factory.assert_not_called()
        assert assembler.progress == []

    async def test_terms_checked_before_company(self, assembler):
        with pytest.raises(TermsNotAccepted):
            await assembler.generate([], CustomerContext())

    async def test_missing_company_name(self, assembler):
        with pytest.raises(MissingCompanyName) as exc_info:
            await assembler.generate([], CustomerContext(company_name="  ", accepted_terms=True))
        assert exc_info.value.field == "company_name"

    async def test_unknown_component(self, small_catalog, small_renderer, spy_factory, acme):
        assembler = PackageAssembler(small_catalog, small_renderer, builder_factory=spy_factory)
        seen: list[ProgressEvent] = []
        with pytest.raises(UnknownComponent) as exc_info:
            await assembler.generate(["frontend", "mobile-app"], acme, on_progress=seen.append)
        assert exc_info.value.component_id == "mobile-app"
        assert seen == []
        spy_factory.spy.add.assert_not_called()

    async def test_empty_selection(self, tmp_path, acme):
        catalog = ComponentCatalog([ComponentDescriptor(id="docs", name="Docs")])
        renderer = TemplateRenderer(
            catalog, template_table={"docs": (("INSTALLATION.md", "docs/INSTALLATION.md.j2"),)}
        )
        assembler = PackageAssembler(catalog, renderer)
        with pytest.raises(EmptySelection):
            await assembler.generate([], acme)

    async def test_failure_record(self, assembler):
        with pytest.raises(TermsNotAccepted):
            await assembler.generate([], CustomerContext(company_name="Acme"))
        assert assembler.state == AssemblyState.FAILED
        failure = assembler.failure
        assert failure.stage == AssemblyState.VALIDATING
        assert failure.reason == ReasonCode.TERMS_NOT_ACCEPTED
        assert failure.field == "accepted_terms"
        assert failure.component_id is None
        assert assembler.artifact is None


# ---------------------------------------------------------------------------
# Generation failures
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestGenerationFailures:
    @pytest.fixture
    def failing_renderer(self, small_catalog):
        renderer = MagicMock(spec=TemplateRenderer)

        def render(component_id, ctx, *, now):
            if component_id == "database":
                raise TemplateError("broken template", component_id="database")
            return [GeneratedFile(path=f"{component_id}/README.md", content=b"ok")]

        renderer.render.side_effect = render
        return renderer

    async def test_template_error(self, small_catalog, failing_renderer, spy_factory, acme):
        assembler = PackageAssembler(
            small_catalog, failing_renderer, PackagerConfig(), builder_factory=spy_factory
        )
        seen: list[ProgressEvent] = []
        with pytest.raises(TemplateError):
            await assembler.generate([], acme, on_progress=seen.append)
        assert _collect(seen) == [(1, 2)]
        assert assembler.state == AssemblyState.FAILED
        assert assembler.failure.stage == AssemblyState.GENERATING
        assert assembler.failure.reason == ReasonCode.TEMPLATE_ERROR
        assert assembler.failure.component_id == "database"
        spy_factory.spy.finish.assert_not_called()
        assert assembler.artifact is None

    async def test_duplicate_path_between_components(self, acme):
        catalog = ComponentCatalog(
            [
                ComponentDescriptor(id="frontend", name="Frontend", required=True, folder="shared"),
                ComponentDescriptor(id="docs", name="Docs", folder="shared"),
            ]
        )
        renderer = TemplateRenderer(
            catalog,
            template_table={
                "frontend": (("README.md", "frontend/README.md.j2"),),
                "docs": (("README.md", "docs/INSTALLATION.md.j2"),),
            },
        )
        assembler = PackageAssembler(catalog, renderer)
        with pytest.raises(DuplicatePath) as exc_info:
            await assembler.generate(["docs"], acme)
        assert exc_info.value.component_id == "docs"
        assert exc_info.value.path == "shared/README.md"
        assert assembler.failure.reason == ReasonCode.DUPLICATE_PATH
        assert len(assembler.progress) == 1


# ---------------------------------------------------------------------------
# Streaming, callbacks, lifecycle
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestStreaming:
    async def test_stream_yields_events_then_artifact(self, assembler, acme):
        items = [item async for item in assembler.stream(["docs"], acme)]
        assert _collect(items[:-1]) == [(1, 3), (2, 3), (3, 3)]
        assert isinstance(items[-1], PackageArtifact)

    async def test_async_progress_callback(self, assembler, acme):
        seen: list[int] = []

        async def on_progress(event: ProgressEvent) -> None:
            await asyncio.sleep(0)
            seen.append(event.completed)

        await assembler.generate(["security"], acme, on_progress=on_progress)
        assert seen == [1, 2, 3]

    async def test_progress_is_monotonic(self, assembler, acme):
        seen: list[ProgressEvent] = []
        await assembler.generate(["docs", "security"], acme, on_progress=seen.append)
        percents = [e.percent for e in seen]
        assert percents == sorted(percents)
        assert percents[-1] == 100.0

    async def test_cancel_between_components(self, assembler, acme):
        stream = assembler.stream(["docs", "security"], acme)
        first = await stream.__anext__()
        await stream.aclose()
        assert first.completed == 1
        assert assembler.artifact is None
        assert assembler.state == AssemblyState.GENERATING

    async def test_single_use(self, assembler, acme):
        await assembler.generate([], acme)
        with pytest.raises(RuntimeError, match="already used"):
            await assembler.generate([], acme)

    async def test_single_use_after_failure(self, assembler):
        with pytest.raises(TermsNotAccepted):
            await assembler.generate([], CustomerContext())
        with pytest.raises(RuntimeError):
            await assembler.generate([], CustomerContext(company_name="Acme", accepted_terms=True))


@pytest.mark.unit
class TestConsoleOutput:
    async def test_verbose_prints_summary(self, small_catalog, small_renderer, fixed_clock, acme):
        assembler = PackageAssembler(small_catalog, small_renderer, clock=fixed_clock, verbose=True)
        with patch("packager.bundle.assembler.print_summary_table") as summary, patch(
            "packager.bundle.assembler.print_success"
        ) as success:
            await assembler.generate([], acme)
        summary.assert_called_once()
        assert "Filename" in summary.call_args.args[0]
        success.assert_called_once()

    async def test_verbose_warns_about_evaluation_license(
        self, small_catalog, small_renderer, fixed_clock, acme, licensed_customer
    ):
        with patch("packager.bundle.assembler.print_warning") as warning, patch(
            "packager.bundle.assembler.print_summary_table"
        ):
            await PackageAssembler(
                small_catalog, small_renderer, clock=fixed_clock, verbose=True
            ).generate([], acme)
            await PackageAssembler(
                small_catalog, small_renderer, clock=fixed_clock, verbose=True
            ).generate([], licensed_customer)
        warning.assert_called_once()
        assert "30 days" in warning.call_args.args[0]

    async def test_verbose_prints_failure(self, small_catalog, small_renderer):
        assembler = PackageAssembler(small_catalog, small_renderer, verbose=True)
        with patch("packager.bundle.assembler.print_error") as error:
            with pytest.raises(TermsNotAccepted):
                await assembler.generate([], CustomerContext())
        assert "validating" in error.call_args.args[0]

    async def test_quiet_by_default(self, assembler, acme):
        with patch("packager.bundle.assembler.print_summary_table") as summary:
            await assembler.generate([], acme)
        summary.assert_not_called()


@pytest.mark.unit
class TestAssemblePackage:
    async def test_convenience_function(self, small_catalog, small_renderer, fixed_clock, acme, archive_layout):
        seen: list[ProgressEvent] = []
        artifact = await assemble_package(
            small_catalog,
            ["docs"],
            acme,
            renderer=small_renderer,
            clock=fixed_clock,
            on_progress=seen.append,
        )
        folders, _ = archive_layout(artifact.data)
        assert folders == {"frontend", "database", "docs"}
        assert len(seen) == 3

    async def test_default_renderer_built_from_catalog(self, catalog, fixed_clock, acme):
        artifact = await assemble_package(catalog, [], acme, clock=fixed_clock)
        assert artifact.components == ["frontend", "database", "edge-functions", "config"]
