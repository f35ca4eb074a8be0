from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import replace

from ..db.store import SlabStore, StoreError
from ..models.material import Material, extract_thickness, infer_material_type
from ..models.parsed_row import ParsedSlabRow

"""Material reconciliation for imported rows.

Each row names its material by ``ref``. Resolution order:

1. the per-run cache (lowercased ref, pre-populated from the catalog)
2. an exact, case-insensitive ref lookup in the store
3. creation of a new material derived from the row

Whatever is resolved in steps 2-3 is cached so that later rows with the same
ref never reach the store again.
"""

__all__ = [
    "MaterialCreationError",
    "MaterialCache",
    "MaterialReconciler",
    "material_from_row",
]

logger = logging.getLogger(__name__)


class MaterialCreationError(Exception):
    """Raised when a material can be neither found nor created."""

    def __init__(self, ref: str, reason: str) -> None:
        self.ref = ref
        self.reason = reason
        super().__init__(f"cannot create material {ref}: {reason}")


class MaterialCache:
    """Lowercased ref -> Material, valid for one import run."""

    def __init__(self, materials: Iterable[Material] = ()) -> None:
        self._by_ref: dict[str, Material] = {}
        for m in materials:
            self.put(m)

    @staticmethod
    def key(ref: str) -> str:
        return ref.strip().lower()

    def get(self, ref: str) -> Material | None:
        return self._by_ref.get(self.key(ref))

    def put(self, material: Material) -> None:
        key = material.ref_key
        if key is not None:
            self._by_ref.setdefault(key, material)

    def __contains__(self, ref: object) -> bool:
        return isinstance(ref, str) and self.key(ref) in self._by_ref

    def __len__(self) -> int:
        return len(self._by_ref)


def material_from_row(row: ParsedSlabRow) -> Material:
    """New catalog entry for a row whose ref is unknown."""
    return Material(
        id=None,
        name=row.material,
        ref=row.ref,
        type=infer_material_type(row.material),
        thickness=extract_thickness(row.material),
        cmup=row.cmup if row.cmup is not None else row.value,
        is_active=True,
    )


class MaterialReconciler:
    def __init__(self, store: SlabStore, cache: MaterialCache) -> None:
        self.store = store
        self.cache = cache
        self.created: list[Material] = []

    def resolve(self, row: ParsedSlabRow) -> Material:
        """Return the material for ``row``, creating it if needed.

        Raises:
            MaterialCreationError: lookup or creation failed in the store
        """
        cached = self.cache.get(row.ref)
        if cached is not None:
            return cached

        try:
            found = self.store.find_material_by_ref(row.ref)
        except StoreError as e:
            raise MaterialCreationError(row.ref, str(e)) from e
        if found is not None:
            if not found.type.stocks_slabs:
                logger.warning("material ref=%s is catalogued as block stock, importing slabs anyway", found.ref)
            self.cache.put(found)
            return found

        try:
            created = self.store.insert_material(material_from_row(row))
        except StoreError as e:
            raise MaterialCreationError(row.ref, str(e)) from e
        logger.info("material created ref=%s name=%s type=%s", created.ref, created.name, created.type.value)
        self.created.append(created)
        if created.ref_key is None:
            created = replace(created, ref=row.ref)
        self.cache.put(created)
        return created
