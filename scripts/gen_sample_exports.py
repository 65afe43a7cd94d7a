#!/usr/bin/env python3
"""Synthetic vendor export generator for manual and performance testing.

Writes files shaped like the real exports the importer accepts:
- bosta_shipments   .xlsx  (Tracking Number / Delivery State / COD Amount ...)
- shopify_products  .csv   (one row per variant)
- shopify_orders    .csv
- shipblu_tracking  .xlsx  (combined "CoD Estimated Date" column)
- system_template   .xlsx

A share of rows can be made in-file duplicates or invalid so the preview
statistics have something to report.
"""
from __future__ import annotations

import argparse
import sys
from collections.abc import Callable
from pathlib import Path

import numpy as np
import pandas as pd

CITIES = ["Cairo", "Giza", "Alexandria", "Mansoura", "Tanta", "Luxor"]
BOSTA_STATES = ["Delivered", "Returned", "Heading to customer", "Out for delivery", "Picked up"]
SHIPBLU_STATES = ["Delivered", "Out for delivery", "In transit", "Returned"]


def _with_duplicates(keys: np.ndarray, rng: np.random.Generator, ratio: float) -> np.ndarray:
    """Overwrite `ratio` of the keys with an earlier key (in-file duplicates)."""
    n = int(len(keys) * ratio)
    if n == 0 or len(keys) < 2:
        return keys
    targets = rng.choice(np.arange(1, len(keys)), size=min(n, len(keys) - 1), replace=False)
    for t in targets:
        keys[t] = keys[rng.integers(0, t)]
    return keys


def _blank_some(values: np.ndarray, rng: np.random.Generator, ratio: float) -> np.ndarray:
    n = int(len(values) * ratio)
    if n:
        values[rng.choice(len(values), size=n, replace=False)] = ""
    return values


def bosta_shipments(rows: int, rng: np.random.Generator, dup: float, invalid: float) -> pd.DataFrame:
    tracking = np.array([f"{7_000_000_000 + i}" for i in range(rows)], dtype=object)
    return pd.DataFrame({
        "Tracking Number": _with_duplicates(tracking, rng, dup),
        "Delivery State": rng.choice(BOSTA_STATES, size=rows, p=[0.6, 0.1, 0.1, 0.1, 0.1]),
        "COD Amount": np.round(rng.uniform(50, 2500, rows), 2),
        "SKU": _blank_some(
            np.array([f"BOS-{rng.integers(1, 400):04d}" for _ in range(rows)], dtype=object), rng, invalid
        ),
        "Consignee Name": [f"Customer {i}" for i in range(rows)],
        "Consignee Phone": [f"010{rng.integers(10_000_000, 99_999_999)}" for _ in range(rows)],
        "Dropoff City": rng.choice(CITIES, size=rows),
        "Delivered At": pd.Timestamp("2024-01-01") + pd.to_timedelta(rng.integers(0, 365, rows), unit="D"),
    })


def shopify_products(rows: int, rng: np.random.Generator, dup: float, invalid: float) -> pd.DataFrame:
    skus = np.array([f"SKU-{i:06d}" for i in range(rows)], dtype=object)
    skus = _blank_some(_with_duplicates(skus, rng, dup), rng, invalid)
    return pd.DataFrame({
        "Handle": [f"product-{i // 4}" for i in range(rows)],
        "Title": [f"Product {i // 4}" for i in range(rows)],
        "Body (HTML)": "<p>Imported sample product</p>",
        "Vendor": rng.choice(["Acme", "Nile Textiles", "Delta Goods"], size=rows),
        "Type": rng.choice(["Clothing", "Accessories", "Home"], size=rows),
        "Option1 Name": "Size",
        "Option1 Value": rng.choice(["S", "M", "L", "XL"], size=rows),
        "Option2 Name": "Color",
        "Option2 Value": rng.choice(["Red", "Blue", "Black", "White"], size=rows),
        "Variant SKU": skus,
        "Variant Inventory Qty": rng.integers(0, 150, rows),
        "Variant Price": np.round(rng.uniform(50, 1500, rows), 2),
        "Variant Compare At Price": np.round(rng.uniform(1500, 2000, rows), 2),
        "Cost per item": np.round(rng.uniform(10, 400, rows), 2),
        "Status": "active",
    })


def shopify_orders(rows: int, rng: np.random.Generator, dup: float, invalid: float) -> pd.DataFrame:
    names = _with_duplicates(np.array([f"#{1001 + i}" for i in range(rows)], dtype=object), rng, dup)
    subtotal = np.round(rng.uniform(100, 3000, rows), 2)
    shipping = np.full(rows, 50.0)
    total = subtotal + shipping
    total[rng.random(rows) < invalid] = 0.0
    return pd.DataFrame({
        "Name": names,
        "Email": [f"customer{rng.integers(1, rows // 2 + 2)}@example.com" for _ in range(rows)],
        "Financial Status": rng.choice(["paid", "pending", "refunded", "voided"], size=rows, p=[0.7, 0.2, 0.05, 0.05]),
        "Fulfillment Status": rng.choice(["fulfilled", "unfulfilled", ""], size=rows),
        "Currency": "EGP",
        "Subtotal": subtotal,
        "Shipping": shipping,
        "Taxes": 0.0,
        "Total": total,
        "Created at": (
            pd.Timestamp("2024-01-01") + pd.to_timedelta(rng.integers(0, 365 * 24, rows), unit="h")
        ).strftime("%Y-%m-%d %H:%M:%S +0200"),
    })


def shipblu_tracking(rows: int, rng: np.random.Generator, dup: float, invalid: float) -> pd.DataFrame:
    tracking = _with_duplicates(np.array([f"SB-{100_000 + i}" for i in range(rows)], dtype=object), rng, dup)
    cod = np.round(rng.uniform(50, 1500, rows), 0).astype(int)
    eta = pd.Timestamp("2024-01-05") + pd.to_timedelta(rng.integers(0, 300, rows), unit="D")
    return pd.DataFrame({
        "Tracking Number": tracking,
        "Pickup Date": (eta - pd.Timedelta(days=2)).strftime("%Y-%m-%d"),
        "Customer Name": _blank_some(np.array([f"Customer {i}" for i in range(rows)], dtype=object), rng, invalid),
        "Customer Phone": [f"012{rng.integers(10_000_000, 99_999_999)}" for _ in range(rows)],
        "Customer Zone": rng.choice(["Nasr City", "Dokki", "Maadi", "Smouha"], size=rows),
        "Customer City": rng.choice(CITIES, size=rows),
        "CoD Estimated Date": [f"{c} - {d:%Y-%m-%d}" for c, d in zip(cod, eta, strict=True)],
        "Status": rng.choice(SHIPBLU_STATES, size=rows),
    })


def system_template(rows: int, rng: np.random.Generator, dup: float, invalid: float) -> pd.DataFrame:
    skus = _with_duplicates(np.array([f"SKU-{i:05d}" for i in range(rows)], dtype=object), rng, dup)
    stock = rng.integers(0, 500, rows).astype(object)
    stock[rng.random(rows) < invalid] = "n/a"
    return pd.DataFrame({
        "Product Name": [f"Item {i}" for i in range(rows)],
        "Base SKU": skus,
        "Category": rng.choice(["Electronics", "Clothing", "Home", "Beauty"], size=rows),
        "Stock": stock,
        "Selling Price": np.round(rng.uniform(20, 900, rows), 2),
        "Cost Price": np.round(rng.uniform(5, 300, rows), 2),
        "Supplier": rng.choice(["Tech Supplies Co", "Fashion Wholesale"], size=rows),
        "Location": rng.choice(["Warehouse A", "Warehouse B"], size=rows),
        "Sizes": "",
        "Colors": rng.choice(["Black", "Red, Blue", ""], size=rows),
    })


GENERATORS: dict[str, tuple[Callable[..., pd.DataFrame], str]] = {
    "bosta_shipments": (bosta_shipments, ".xlsx"),
    "shopify_products": (shopify_products, ".csv"),
    "shopify_orders": (shopify_orders, ".csv"),
    "shipblu_tracking": (shipblu_tracking, ".xlsx"),
    "system_template": (system_template, ".xlsx"),
}


def write_export(df: pd.DataFrame, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix == ".csv":
        df.to_csv(path, index=False, encoding="utf-8-sig")
    else:
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name="Sheet1", index=False)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate synthetic vendor exports for the bulk importer",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # every format, 1,000 rows each, into ./data
  %(prog)s data

  # 50k Shopify variants with 5% duplicates
  %(prog)s data --formats shopify_products --rows 50000 --dup-ratio 0.05
        """,
    )
    parser.add_argument("output_dir", type=Path, help="Directory for the generated files")
    parser.add_argument("--formats", nargs="+", choices=sorted(GENERATORS), default=sorted(GENERATORS))
    parser.add_argument("--rows", type=int, default=1_000, help="Data rows per file (default: 1,000)")
    parser.add_argument("--dup-ratio", type=float, default=0.02, help="Share of in-file duplicates")
    parser.add_argument("--invalid-ratio", type=float, default=0.01, help="Share of invalid rows")
    parser.add_argument("--seed", type=int, default=42, help="Random seed for reproducible data")
    parser.add_argument("--dry-run", action="store_true", help="Show the plan without writing files")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    for name in ("dup_ratio", "invalid_ratio"):
        if not 0 <= getattr(args, name) < 1:
            print(f"Error: --{name.replace('_', '-')} must be in [0, 1)", file=sys.stderr)
            return 1

    print("Export generation plan:")
    print(f"  Output dir: {args.output_dir}")
    print(f"  Formats: {', '.join(args.formats)}")
    print(f"  Rows per file: {args.rows:,}")
    print(f"  Duplicates: {args.dup_ratio:.0%}  Invalid: {args.invalid_ratio:.0%}  Seed: {args.seed}")
    if args.dry_run:
        print("\n[DRY RUN] Would generate files but not creating them.")
        return 0

    try:
        for name in args.formats:
            generate, suffix = GENERATORS[name]
            rng = np.random.default_rng(args.seed)
            df = generate(args.rows, rng, args.dup_ratio, args.invalid_ratio)
            path = args.output_dir / f"{name}{suffix}"
            write_export(df, path)
            print(f"Created {path} ({len(df):,} rows, {len(df.columns)} columns)")
    except Exception as e:
        print(f"\nError generating exports: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
