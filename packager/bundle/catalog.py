"""Static registry of generatable package components.

The catalog is built once at process start and never mutated.  Its order is
significant: the assembler processes components in catalog order, which is
what makes archive contents reproducible.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Optional

from .models import ComponentDescriptor

KB = 1024
MB = 1024 * KB


# ---------------------------------------------------------------------------
# Product catalog
# ---------------------------------------------------------------------------

DEFAULT_COMPONENTS: tuple[ComponentDescriptor, ...] = (
    ComponentDescriptor(
        id="frontend",
        name="Frontend Application",
        description="React + Vite production build",
        required=True,
        approx_size_bytes=15 * MB,
    ),
    ComponentDescriptor(
        id="database",
        name="Database Scripts",
        description="PostgreSQL schema, migrations, functions and RLS policies",
        required=True,
        approx_size_bytes=2 * MB,
    ),
    ComponentDescriptor(
        id="edge-functions",
        name="Edge Functions",
        description="Serverless functions adapted for Deno and Node.js",
        required=True,
        approx_size_bytes=5 * MB,
        folder="functions",
    ),
    ComponentDescriptor(
        id="config",
        name="Configuration Files",
        description="Docker, nginx and environment templates",
        required=True,
        approx_size_bytes=500 * KB,
    ),
    ComponentDescriptor(
        id="docs",
        name="Documentation",
        description="Installation, configuration and maintenance guides",
        required=False,
        approx_size_bytes=3 * MB,
    ),
    ComponentDescriptor(
        id="security",
        name="Security Hardening",
        description="Hardening scripts, WAF rules and audit configuration",
        required=False,
        approx_size_bytes=1 * MB,
    ),
)


class ComponentCatalog:
    """Ordered, read-only registry of ``ComponentDescriptor`` entries.

    Lookups never raise: unknown ids simply yield ``False`` / ``None`` and it
    is up to the caller to surface ``UnknownComponent``.
    """

    def __init__(self, components: Iterable[ComponentDescriptor]) -> None:
        entries = tuple(components)
        by_id: dict[str, ComponentDescriptor] = {}
        for component in entries:
            if component.id in by_id:
                raise ValueError(f"Duplicate component id in catalog: {component.id!r}")
            by_id[component.id] = component
        self._components = entries
        self._by_id = by_id
        self._required = frozenset(c.id for c in entries if c.required)

    def __len__(self) -> int:
        return len(self._components)

    def __iter__(self):
        return iter(self._components)

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._by_id

    # -- Contract ----------------------------------------------------------

    def list_components(self) -> list[ComponentDescriptor]:
        """Return every component in catalog order."""
        return list(self._components)

    def required_ids(self) -> frozenset[str]:
        return self._required

    def exists(self, component_id: str) -> bool:
        return component_id in self._by_id

    def get(self, component_id: str) -> Optional[ComponentDescriptor]:
        return self._by_id.get(component_id)

    # -- Ordering & sizing -------------------------------------------------

    def ids(self) -> list[str]:
        return [c.id for c in self._components]

    def order(self, component_ids: Iterable[str]) -> list[ComponentDescriptor]:
        """Filter *component_ids* to known ids and return them in catalog order."""
        wanted = set(component_ids)
        return [c for c in self._components if c.id in wanted]

    def estimate_size(self, component_ids: Iterable[str]) -> int:
        """Sum of ``approx_size_bytes`` for the known ids in *component_ids*."""
        return sum(c.approx_size_bytes for c in self.order(component_ids))


def default_catalog(components: Sequence[ComponentDescriptor] = DEFAULT_COMPONENTS) -> ComponentCatalog:
    """Return the product's component catalog."""
    return ComponentCatalog(components)
