#!/usr/bin/env python3
"""Synthetic slab stock workbook generator for performance runs.

Writes a single-sheet workbook in the layout the importer expects:
- Row 1: header (n°saisie, Ref, Matière, Allée, Longueur, Largeur, Épaisseur, NBRE, CMUP, Valeur)
- Row 2+: one line per stock entry, quantities between 1 and ``--max-quantity``

Usage:
    python scripts/gen_perf_dataset.py stock.xlsx --rows 10000
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

HEADERS = ["n°saisie", "Ref", "Matière", "Allée", "Longueur", "Largeur", "Épaisseur", "NBRE", "CMUP", "Valeur"]

MATERIALS = [
    ("BLC", "Granit Blanc K2"),
    ("NRZ", "Noir Zimbabwe K3"),
    ("CRR", "Marbre Carrare K2"),
    ("TRV", "Travertin K3"),
    ("ARD", "Ardoise K1"),
    ("QTZ", "Quartzite Taj Mahal K2"),
]
PARK_ROWS = "ABCDEFGHIJKL"


def generate_slab_rows(rows: int, max_quantity: int = 3, seed: int = 42) -> pd.DataFrame:
    """Random but reproducible stock lines.

    Entry numbers are unique (``S000001``...) so a first import inserts every
    unit and a second one skips them all.
    """
    np.random.seed(seed)

    mat_idx = np.random.randint(0, len(MATERIALS), rows)
    thickness = np.array([float(MATERIALS[i][1].rsplit("K", 1)[1]) for i in mat_idx])
    quantity = np.random.randint(1, max_quantity + 1, rows)
    length = np.round(np.random.uniform(120, 340, rows), 0)
    width = np.round(np.random.uniform(60, 200, rows), 0)
    cmup = np.round(np.random.uniform(40, 450, rows), 2)

    return pd.DataFrame(
        {
            "n°saisie": [f"S{i:06d}" for i in range(1, rows + 1)],
            "Ref": [MATERIALS[i][0] for i in mat_idx],
            "Matière": [MATERIALS[i][1] for i in mat_idx],
            "Allée": [
                f"{PARK_ROWS[r]}{c}"
                for r, c in zip(
                    np.random.randint(0, len(PARK_ROWS), rows), np.random.randint(1, 9, rows), strict=True
                )
            ],
            "Longueur": length,
            "Largeur": width,
            "Épaisseur": thickness,
            "NBRE": quantity,
            "CMUP": cmup,
            "Valeur": np.round(length * width * quantity / 10000 * cmup, 2),
        },
        columns=HEADERS,
    )


def create_slab_workbook(output_path: Path, rows: int, max_quantity: int = 3, seed: int = 42) -> None:
    df = generate_slab_rows(rows, max_quantity, seed)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name="Stock", index=False)

    print(f"Created slab workbook: {output_path}")
    print(f"  Lines: {rows:,}")
    print(f"  Units: {int(df['NBRE'].sum()):,}")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate a synthetic slab stock workbook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s stock.xlsx
  %(prog)s big.xlsx --rows 50000 --max-quantity 5 --seed 7
        """,
    )
    parser.add_argument("output", type=Path, help="Output workbook path")
    parser.add_argument("--rows", type=int, default=10_000, help="Stock lines (default: 10,000)")
    parser.add_argument("--max-quantity", type=int, default=3, help="Max units per line (default: 3)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--dry-run", action="store_true", help="Show the plan without writing")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if args.max_quantity <= 0:
        print("Error: --max-quantity must be positive", file=sys.stderr)
        return 1

    print("Dataset generation plan:")
    print(f"  Output file: {args.output}")
    print(f"  Lines: {args.rows:,} (+ 1 header row)")
    print(f"  Units per line: 1..{args.max_quantity}")
    print(f"  Random seed: {args.seed}")
    if args.dry_run:
        print("\n[DRY RUN] Would generate the workbook but not creating it.")
        return 0

    try:
        create_slab_workbook(args.output, args.rows, args.max_quantity, args.seed)
    except OSError as e:
        print(f"\nError generating dataset: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
