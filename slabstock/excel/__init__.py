"""Workbook decoding and report rendering."""
