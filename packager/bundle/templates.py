"""Jinja2 template rendering for package components.

Provides the TemplateRenderer class which loads ``.j2`` templates from the
``packager/bundle/templates/`` directory and renders them with customer
context.  Each component maps to a fixed, ordered list of
``(relative path, template name)`` pairs; the table is validated once when the
renderer is built, so a render call can only fail on bad customer input.

Rendering is pure: nothing is written to disk and the current time is always
passed in by the caller.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound, meta, select_autoescape
from jinja2 import TemplateError as JinjaTemplateError

from packager.config import PackagerConfig
from packager.utils import as_utc, iso_timestamp, slugify

from .catalog import ComponentCatalog
from .errors import TemplateError, UnknownComponent
from .models import CustomerContext, GeneratedFile, LicenseKind, LicenseRecord


# ---------------------------------------------------------------------------
# Template directory & table
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"

TemplateTable = Mapping[str, Sequence[tuple[str, str]]]

DEFAULT_TEMPLATE_TABLE: dict[str, tuple[tuple[str, str], ...]] = {
    "frontend": (
        ("README.md", "frontend/README.md.j2"),
        ("build-instructions.md", "frontend/build-instructions.md.j2"),
        (".env.production.template", "frontend/env.production.template.j2"),
    ),
    "database": (
        ("schema.sql", "database/schema.sql.j2"),
        ("migrations.sql", "database/migrations.sql.j2"),
        ("functions.sql", "database/functions.sql.j2"),
        ("rls-policies.sql", "database/rls-policies.sql.j2"),
        ("seed-data.sql", "database/seed-data.sql.j2"),
    ),
    "edge-functions": (
        ("README.md", "edge-functions/README.md.j2"),
        ("deno-adapter.ts", "edge-functions/deno-adapter.ts.j2"),
        ("node-adapter.js", "edge-functions/node-adapter.js.j2"),
    ),
    "config": (
        ("docker-compose.yml", "config/docker-compose.yml.j2"),
        ("nginx.conf", "config/nginx.conf.j2"),
        ("Dockerfile", "config/Dockerfile.j2"),
        (".env.template", "config/env.template.j2"),
    ),
    "docs": (
        ("INSTALLATION.md", "docs/INSTALLATION.md.j2"),
        ("CONFIGURATION.md", "docs/CONFIGURATION.md.j2"),
        ("MAINTENANCE.md", "docs/MAINTENANCE.md.j2"),
        ("TROUBLESHOOTING.md", "docs/TROUBLESHOOTING.md.j2"),
    ),
    "security": (
        ("hardening.sh", "security/hardening.sh.j2"),
        ("waf-rules.conf", "security/waf-rules.conf.j2"),
        ("audit-config.yml", "security/audit-config.yml.j2"),
    ),
}

LICENSE_TEMPLATE = "LICENSE.txt.j2"
VERSION_TEMPLATE = "VERSION.txt.j2"
LICENSE_PATH = "LICENSE.txt"
VERSION_PATH = "VERSION.txt"

# Every variable a template may reference.
CONTEXT_FIELDS: frozenset[str] = frozenset(
    {
        "product_name",
        "product_slug",
        "product_version",
        "support_email",
        "company_name",
        "deployment_type",
        "timestamp",
        "date",
        "year",
    }
)

# Fields that must be non-blank when a template references them.
_NON_BLANK_FIELDS: frozenset[str] = frozenset({"company_name"})


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders a component's template list into ``GeneratedFile`` objects.

    The renderer is safe to share between concurrent assembly runs: after
    construction it holds no mutable state.
    """

    def __init__(
        self,
        catalog: ComponentCatalog,
        config: Optional[PackagerConfig] = None,
        *,
        template_table: Optional[TemplateTable] = None,
        template_dir: str | Path | None = None,
    ) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.catalog = catalog
        self.config = config or PackagerConfig()
        self.template_dir = Path(template_dir)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        self.env.filters["slugify"] = slugify

        table = DEFAULT_TEMPLATE_TABLE if template_table is None else template_table
        self._table = {cid: tuple(entries) for cid, entries in table.items()}
        self._fields: dict[str, frozenset[str]] = {}
        self._validate_table()

    # -- Table validation --------------------------------------------------

    def _validate_table(self) -> None:
        """Check the template table once, at load time."""
        for component_id in self._table:
            if not self.catalog.exists(component_id):
                raise TemplateError(
                    f"Template table references unknown component {component_id!r}",
                    component_id=component_id,
                )
        for component in self.catalog:
            if component.id not in self._table:
                raise TemplateError(
                    f"No templates defined for component {component.id!r}",
                    component_id=component.id,
                )
            _check_relative_path(component.archive_folder, component.id)

            used: set[str] = set()
            seen: set[str] = set()
            for rel_path, template_name in self._table[component.id]:
                _check_relative_path(rel_path, component.id)
                if rel_path in seen:
                    raise TemplateError(
                        f"Path {rel_path!r} listed twice for component {component.id!r}",
                        component_id=component.id,
                    )
                seen.add(rel_path)
                used |= self._template_fields(template_name, component.id)
            self._fields[component.id] = frozenset(used)

        for template_name in (LICENSE_TEMPLATE, VERSION_TEMPLATE):
            self._template_fields(template_name, None)

    def _template_fields(self, template_name: str, component_id: Optional[str]) -> set[str]:
        """Return the context variables *template_name* references."""
        try:
            source, _, _ = self.env.loader.get_source(self.env, template_name)
            fields = meta.find_undeclared_variables(self.env.parse(source))
        except TemplateNotFound as exc:
            raise TemplateError(
                f"Template not found: {template_name}", component_id=component_id
            ) from exc
        except JinjaTemplateError as exc:
            raise TemplateError(
                f"Invalid template {template_name}: {exc}", component_id=component_id
            ) from exc

        if component_id is not None:
            unknown = fields - CONTEXT_FIELDS
            if unknown:
                raise TemplateError(
                    f"Template {template_name} uses unknown fields: {', '.join(sorted(unknown))}",
                    component_id=component_id,
                )
        return set(fields)

    # -- Rendering ---------------------------------------------------------

    def required_fields(self, component_id: str) -> frozenset[str]:
        """Context fields referenced by *component_id*'s templates."""
        if component_id not in self._fields:
            raise UnknownComponent(component_id)
        return self._fields[component_id]

    def build_context(self, ctx: CustomerContext, now: datetime) -> dict[str, Any]:
        """Build the Jinja2 template context for one render."""
        return {
            "product_name": self.config.product_name,
            "product_slug": self.config.product_slug,
            "product_version": self.config.product_version,
            "support_email": self.config.support_email,
            "company_name": ctx.company_name,
            "deployment_type": ctx.deployment_type.value,
            "timestamp": iso_timestamp(now),
            "date": as_utc(now).date().isoformat(),
            "year": as_utc(now).year,
        }

    def render(
        self, component_id: str, ctx: CustomerContext, *, now: datetime
    ) -> list[GeneratedFile]:
        """Render every file of one component.

        Args:
            component_id: Catalog id of the component.
            ctx: Customer context supplying the substitutable fields.
            now: Render time, embedded wherever a template shows a timestamp.

        Returns:
            Files with archive-relative paths under the component folder, in
            template-table order.

        Raises:
            UnknownComponent: If the id is not in the catalog.
            TemplateError: If a referenced field is blank or rendering fails.
        """
        component = self.catalog.get(component_id)
        if component is None:
            raise UnknownComponent(component_id)

        context = self.build_context(ctx, now)
        for field_name in sorted(self._fields[component_id] & _NON_BLANK_FIELDS):
            if not str(context[field_name]).strip():
                raise TemplateError(
                    f"Component {component_id!r} requires a non-empty {field_name}",
                    component_id=component_id,
                )

        files: list[GeneratedFile] = []
        for rel_path, template_name in self._table[component_id]:
            content = self._render_template(template_name, context, component_id)
            files.append(
                GeneratedFile(path=f"{component.archive_folder}/{rel_path}", content=content)
            )
        return files

    def render_license(self, record: LicenseRecord) -> GeneratedFile:
        """Render ``LICENSE.txt`` from a license record."""
        if not record.company_name.strip():
            raise TemplateError("License file requires a non-empty company_name")
        context = {
            "product_name": self.config.product_name,
            "support_email": self.config.support_email,
            "company_name": record.company_name,
            "license_key": record.license_key,
            "issued_date": as_utc(record.issued_at).date().isoformat(),
            "year": as_utc(record.issued_at).year,
            "deployment_type": record.deployment_type.value,
            "kind": record.kind.value,
            "kind_label": _license_kind_label(record),
        }
        content = self._render_template(LICENSE_TEMPLATE, context, None)
        return GeneratedFile(path=LICENSE_PATH, content=content)

    def render_version(self, now: datetime) -> GeneratedFile:
        """Render ``VERSION.txt`` with the build timestamp."""
        context = {
            "version_label": self.config.version_label,
            "timestamp": iso_timestamp(now),
        }
        content = self._render_template(VERSION_TEMPLATE, context, None)
        return GeneratedFile(path=VERSION_PATH, content=content)

    def _render_template(
        self, template_name: str, context: dict[str, Any], component_id: Optional[str]
    ) -> bytes:
        try:
            template = self.env.get_template(template_name)
            return template.render(**context).encode("utf-8")
        except JinjaTemplateError as exc:
            raise TemplateError(
                f"Failed to render {template_name}: {exc}", component_id=component_id
            ) from exc

    # -- Utility -----------------------------------------------------------

    def templates_for(self, component_id: str) -> list[tuple[str, str]]:
        """Return the ``(relative path, template name)`` list of a component."""
        if component_id not in self._table:
            raise UnknownComponent(component_id)
        return list(self._table[component_id])


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _check_relative_path(path: str, component_id: Optional[str]) -> None:
    """Reject absolute paths, backslashes and ``..`` segments."""
    pure = PurePosixPath(path)
    if (
        not path
        or "\\" in path
        or pure.is_absolute()
        or (len(path) > 1 and path[1] == ":")
        or ".." in pure.parts
    ):
        raise TemplateError(
            f"Unsafe template path {path!r}", component_id=component_id
        )


def _license_kind_label(record: LicenseRecord) -> str:
    if record.kind == LicenseKind.PERPETUAL:
        return "Perpetual"
    return f"Evaluation ({record.valid_days} days)"

