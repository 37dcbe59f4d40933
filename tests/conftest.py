"""Shared pytest fixtures for the packager test suite.

Provides reusable fixtures for:
- The product catalog and a small four-component catalog
- Template renderers bound to either catalog
- A fixed clock so archives are reproducible
- Customer contexts (evaluation and licensed)
- Helpers for inspecting generated ZIP archives
"""

from __future__ import annotations

import io
import zipfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from packager.bundle.catalog import ComponentCatalog, default_catalog
from packager.bundle.models import ComponentDescriptor, CustomerContext, DeploymentType
from packager.bundle.templates import DEFAULT_TEMPLATE_TABLE, TemplateRenderer
from packager.config import PackagerConfig


FIXED_NOW = datetime(2024, 5, 17, 10, 30, 45, 123000, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Catalogs
# ---------------------------------------------------------------------------


@pytest.fixture
def catalog() -> ComponentCatalog:
    """The full product catalog (four required, two optional components)."""
    return default_catalog()


@pytest.fixture
def small_catalog() -> ComponentCatalog:
    """frontend(required), database(required), docs(optional), security(optional)."""
    return ComponentCatalog(
        [
            ComponentDescriptor(id="frontend", name="Frontend", required=True, approx_size_bytes=1000),
            ComponentDescriptor(id="database", name="Database", required=True, approx_size_bytes=200),
            ComponentDescriptor(id="docs", name="Docs", approx_size_bytes=300),
            ComponentDescriptor(id="security", name="Security", approx_size_bytes=100),
        ]
    )


@pytest.fixture
def small_template_table() -> dict[str, tuple[tuple[str, str], ...]]:
    return {
        cid: DEFAULT_TEMPLATE_TABLE[cid]
        for cid in ("frontend", "database", "docs", "security")
    }


# ---------------------------------------------------------------------------
# Renderers & config
# ---------------------------------------------------------------------------


@pytest.fixture
def config() -> PackagerConfig:
    return PackagerConfig()


@pytest.fixture
def renderer(catalog, config) -> TemplateRenderer:
    return TemplateRenderer(catalog, config)


@pytest.fixture
def small_renderer(small_catalog, small_template_table, config) -> TemplateRenderer:
    return TemplateRenderer(small_catalog, config, template_table=small_template_table)


@pytest.fixture
def fixed_clock():
    """Clock that always returns ``FIXED_NOW``."""
    return lambda: FIXED_NOW


# ---------------------------------------------------------------------------
# Customer contexts
# ---------------------------------------------------------------------------


@pytest.fixture
def acme() -> CustomerContext:
    """Evaluation customer: no license key, terms accepted."""
    return CustomerContext(company_name="Acme", accepted_terms=True)


@pytest.fixture
def licensed_customer() -> CustomerContext:
    return CustomerContext(
        company_name="Banco Andorra",
        license_key="OBX-1234-ABCD",
        accepted_terms=True,
        deployment_type=DeploymentType.HYBRID,
    )


# ---------------------------------------------------------------------------
# Archive helpers
# ---------------------------------------------------------------------------


def open_zip(data: bytes) -> zipfile.ZipFile:
    """Open archive bytes for reading."""
    return zipfile.ZipFile(io.BytesIO(data))


def top_level_entries(data: bytes) -> tuple[set[str], set[str]]:
    """Return ``(folders, files)`` found at the root of an archive."""
    folders: set[str] = set()
    files: set[str] = set()
    with open_zip(data) as zf:
        for name in zf.namelist():
            head, sep, _ = name.partition("/")
            if sep:
                folders.add(head)
            else:
                files.add(head)
    return folders, files


@pytest.fixture
def templates_dir() -> Path:
    """Location of the packaged ``.j2`` templates."""
    import packager.bundle.templates as templates_module

    return Path(templates_module.__file__).parent / "templates"


@pytest.fixture
def open_archive():
    return open_zip


@pytest.fixture
def archive_layout():
    return top_level_entries


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW
