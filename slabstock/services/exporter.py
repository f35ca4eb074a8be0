from __future__ import annotations

import logging
from datetime import date
from pathlib import Path

from ..db.store import SlabStore, read_all
from ..excel.writer import export_filename, generate_slab_report
from .auth import require_store_user

"""Stock report export: read everything, render, write the file."""

__all__ = [
    "build_report",
    "export_slabs",
]

logger = logging.getLogger(__name__)


def build_report(store: SlabStore, user_id: str | None, *, page_size: int = 1000) -> bytes:
    """Render the stock report of ``user_id`` to xlsx bytes.

    Raises AuthenticationError when ``store`` is scoped to a different user.
    """
    require_store_user(store.user_id, user_id)
    slabs = read_all(store.fetch_slabs, page_size)
    materials = read_all(store.fetch_materials, page_size)
    logger.debug("export slabs=%d materials=%d", len(slabs), len(materials))
    return generate_slab_report(slabs, materials)


def export_slabs(
    store: SlabStore,
    user_id: str | None,
    output_dir: Path | str = ".",
    *,
    page_size: int = 1000,
    today: date | None = None,
) -> Path:
    """Write ``Stock_Tranches_<date>.xlsx`` into ``output_dir`` and return its path."""
    content = build_report(store, user_id, page_size=page_size)
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / export_filename(today)
    path.write_bytes(content)
    logger.info("exported %s (%d bytes)", path, len(content))
    return path
