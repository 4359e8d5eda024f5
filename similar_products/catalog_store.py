from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from loguru import logger

from .config import CATALOG_RAW_DIR, CATALOG_SNAPSHOT_PATH, Product
from .errors import CatalogUnavailable
from .normalize import basic_clean


SNAPSHOT_COLUMNS: List[str] = ["id", "name", "category", "description", "image_url", "price"]


# ---------------------------
# Column detection / standardization
# ---------------------------

# Catalog exports come from a few different tools; accept the common spellings.
COLUMN_CANDIDATES: Dict[str, List[str]] = {
    "id": ["id", "ID", "product_id", "Product ID", "sku", "SKU", "uuid"],
    "name": ["name", "Name", "Product Name", "product_name", "Title", "title"],
    "category": ["category", "Category", "Product Category", "product_category", "Department", "type"],
    "description": ["description", "Description", "Product Description", "Long Description", "Summary", "details"],
    "image_url": ["image_url", "Image URL", "imageUrl", "image", "Image", "thumbnail", "photo_url"],
    "price": ["price", "Price", "Unit Price", "unit_price", "Cost", "amount"],
}


def _standardize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rename columns from the raw export to the canonical snapshot schema.
    """
    col_map: Dict[str, str] = {}
    lower_to_original = {str(c).lower(): c for c in df.columns}

    for canon, candidates in COLUMN_CANDIDATES.items():
        for candidate in candidates:
            if candidate in df.columns:
                col_map[candidate] = canon
                break
            cand_lower = candidate.lower()
            if cand_lower in lower_to_original:
                col_map[lower_to_original[cand_lower]] = canon
                break

    logger.info("Standardizing catalog columns with map: {}", col_map)
    df_std = df.rename(columns=col_map)

    missing = [c for c in ("name", "description") if c not in df_std.columns]
    if missing:
        logger.warning("Raw catalog is missing columns: {}", missing)

    return df_std


# ---------------------------
# Field parsing helpers
# ---------------------------

_PRICE_RE = re.compile(r"-?\d[\d,]*(?:\.\d+)?")


def parse_price(value) -> float:
    """
    Parse a price cell into a non-negative float.

    "$1,299.00" -> 1299.0, 49 -> 49.0, "" / None / NaN / negative -> 0.0
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float, np.integer, np.floating)):
        if isinstance(value, (float, np.floating)) and np.isnan(value):
            return 0.0
        return max(0.0, float(value))

    match = _PRICE_RE.search(str(value))
    if not match:
        return 0.0
    try:
        return max(0.0, float(match.group(0).replace(",", "")))
    except ValueError:
        return 0.0


def _coerce_id(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (float, np.floating)):
        if np.isnan(value):
            return ""
        if float(value).is_integer():
            return str(int(value))
    return str(value).strip()


def stable_product_id(name: str, image_url: str) -> str:
    """Deterministic id for rows exported without one."""
    digest = hashlib.sha1(f"{name}\x1f{image_url}".encode("utf-8")).hexdigest()
    return digest[:16]


# ---------------------------
# Catalog normalization
# ---------------------------

def normalize_catalog_df(df_raw: pd.DataFrame) -> pd.DataFrame:
    """
    Normalize a raw product export into the snapshot schema.

    Output columns: id (str), name (str), category (str), description (str),
    image_url (str), price (float >= 0). Rows without a name are dropped;
    duplicate ids keep the first occurrence.
    """
    logger.info("Normalizing catalog dataframe with {} raw rows", len(df_raw))

    df = _standardize_columns(df_raw.copy())

    if "name" not in df.columns:
        logger.error("No name column found after standardization; resulting catalog will be empty.")
        return pd.DataFrame(columns=SNAPSHOT_COLUMNS)

    for col in ("name", "category", "description"):
        if col in df.columns:
            df[col] = df[col].apply(basic_clean)
        else:
            df[col] = ""

    if "image_url" in df.columns:
        df["image_url"] = df["image_url"].fillna("").astype(str).str.strip()
    else:
        df["image_url"] = ""

    df = df[df["name"] != ""].copy()

    df["price"] = df["price"].apply(parse_price) if "price" in df.columns else 0.0

    if "id" in df.columns:
        df["id"] = df["id"].apply(_coerce_id)
    else:
        df["id"] = ""
    no_id = df["id"] == ""
    if no_id.any():
        df.loc[no_id, "id"] = [
            stable_product_id(n, u) for n, u in zip(df.loc[no_id, "name"], df.loc[no_id, "image_url"])
        ]

    before = len(df)
    df = df.drop_duplicates(subset=["id"], keep="first").reset_index(drop=True)
    if len(df) < before:
        logger.warning("Dropped {} rows with duplicate product ids", before - len(df))

    df_out = df[SNAPSHOT_COLUMNS].copy()
    df_out["price"] = df_out["price"].astype(float)

    logger.info("Catalog normalization complete. Final rows: {}", len(df_out))
    return df_out


# ---------------------------
# IO helpers
# ---------------------------

_RAW_READERS = {
    ".csv": pd.read_csv,
    ".json": pd.read_json,
    ".xlsx": pd.read_excel,
}


def load_raw_catalog(path: Optional[Path] = None) -> pd.DataFrame:
    """
    Load a raw product export (.csv, .json or .xlsx).

    If no path is provided, we take the first supported file under data/catalog_raw.
    """
    if path is None:
        candidates = sorted(
            p for p in CATALOG_RAW_DIR.glob("*") if p.suffix.lower() in _RAW_READERS
        )
        if not candidates:
            raise FileNotFoundError(
                f"No .csv/.json/.xlsx files found under {CATALOG_RAW_DIR}. "
                f"Place the product export there and re-run."
            )
        path = candidates[0]

    reader = _RAW_READERS.get(Path(path).suffix.lower())
    if reader is None:
        raise ValueError(f"Unsupported catalog file type: {path}")

    logger.info("Loading raw catalog from {}", path)
    df = reader(path)
    logger.info("Loaded {} rows from raw catalog", len(df))
    return df


def build_catalog_snapshot(
    raw_path: Optional[Path] = None,
    output_path: Path = CATALOG_SNAPSHOT_PATH,
) -> Path:
    """
    End-to-end: load raw export → normalize → write Parquet snapshot.

    Returns the output path.
    """
    df_raw = load_raw_catalog(raw_path)
    df_norm = normalize_catalog_df(df_raw)

    logger.info("Writing catalog snapshot to {}", output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df_norm.to_parquet(output_path, index=False)
    logger.info("Catalog snapshot written with {} rows", len(df_norm))

    return output_path


def load_catalog_snapshot(path: Path = CATALOG_SNAPSHOT_PATH) -> pd.DataFrame:
    logger.info("Loading catalog snapshot from {}", path)
    df = pd.read_parquet(path)
    logger.info("Loaded catalog snapshot with {} rows", len(df))
    return df


def products_from_df(df: pd.DataFrame) -> List[Product]:
    """Convert a normalized snapshot frame into Product records, in row order."""
    products: List[Product] = []
    for row in df.itertuples(index=False):
        products.append(
            Product(
                id=str(row.id),
                name=str(row.name),
                category=str(row.category or ""),
                description=str(row.description or ""),
                image_url=str(row.image_url or ""),
                price=parse_price(row.price),
            )
        )
    return products


# ---------------------------
# Read interface used by the ranking pipeline
# ---------------------------

class CatalogStore:
    """
    Read-only view over the catalog snapshot.

    `list()` returns every product in snapshot order: no filtering, no
    pagination. Products are loaded once and handed out as an immutable tuple
    copy per call.
    """

    def __init__(self, products: Optional[List[Product]] = None, path: Path = CATALOG_SNAPSHOT_PATH):
        self.path = path
        self._products: Optional[tuple] = tuple(products) if products is not None else None

    @classmethod
    def from_snapshot(cls, path: Path = CATALOG_SNAPSHOT_PATH) -> "CatalogStore":
        store = cls(path=path)
        store.reload()
        return store

    def reload(self) -> None:
        try:
            df = load_catalog_snapshot(self.path)
        except Exception as e:
            logger.error("Error fetching products from {}: {}", self.path, e)
            raise CatalogUnavailable() from e
        self._products = tuple(products_from_df(df))

    def list(self) -> List[Product]:
        if self._products is None:
            self.reload()
        return list(self._products)

    def __len__(self) -> int:
        return len(self.list())


# ---------------------------
# CLI entrypoint
# ---------------------------

if __name__ == "__main__":
    # python -m similar_products.catalog_store
    build_catalog_snapshot()
