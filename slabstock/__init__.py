"""Slab stock tooling: workbook import, stock report export and dimensional matching."""

__version__ = "0.1.0"
