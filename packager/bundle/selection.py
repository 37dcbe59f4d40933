"""Per-session component selection.

A ``SelectionSet`` starts with every required component and can never lose
one: removal of a required id is a no-op, mirroring the download form where
the checkbox is disabled.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from .catalog import ComponentCatalog
from .errors import UnknownComponent


class SelectionSet:
    """Mutable set of selected component ids bound to one catalog."""

    def __init__(self, catalog: ComponentCatalog) -> None:
        self.catalog = catalog
        self._selected: set[str] = set(catalog.required_ids())

    @classmethod
    def from_ids(cls, catalog: ComponentCatalog, component_ids: Iterable[str]) -> "SelectionSet":
        """Build a selection from a UI snapshot.

        Required ids are always included, whether or not the snapshot lists
        them.

        Raises:
            UnknownComponent: If any id is not in the catalog.
        """
        selection = cls(catalog)
        for component_id in component_ids:
            selection.add(component_id)
        return selection

    # -- Mutation ----------------------------------------------------------

    def toggle(self, component_id: str) -> None:
        """Flip membership of an optional component.

        Required components are left untouched.

        Raises:
            UnknownComponent: If *component_id* is not in the catalog.
        """
        self._check(component_id)
        if component_id in self._selected:
            self.remove(component_id)
        else:
            self._selected.add(component_id)

    def add(self, component_id: str) -> None:
        self._check(component_id)
        self._selected.add(component_id)

    def remove(self, component_id: str) -> None:
        """Deselect an optional component; a no-op for required ones."""
        self._check(component_id)
        if component_id in self.catalog.required_ids():
            return
        self._selected.discard(component_id)

    # -- Queries -----------------------------------------------------------

    def current(self) -> frozenset[str]:
        """Immutable snapshot of the selected ids."""
        return frozenset(self._selected)

    def is_selected(self, component_id: str) -> bool:
        return component_id in self._selected

    def __contains__(self, component_id: object) -> bool:
        return component_id in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def __iter__(self) -> Iterator[str]:
        # Catalog order, not insertion order.
        return iter(c.id for c in self.catalog.order(self._selected))

    def __repr__(self) -> str:
        return f"SelectionSet({list(self)!r})"

    def _check(self, component_id: str) -> None:
        if not self.catalog.exists(component_id):
            raise UnknownComponent(component_id)
