# similar_products/search_cli.py
import argparse
import asyncio
import json
from pathlib import Path

from . import config
from .catalog_store import CatalogStore
from .errors import SimilaritySearchError


def _print_table(products) -> None:
    if not products:
        print("No similar products found.")
        return
    print(f"{'#':>3}  {'sim':>3}  {'price':>9}  {'category':<12}  name")
    for i, p in enumerate(products, start=1):
        print(f"{i:>3}  {p.similarity:>3}  {p.price:>9.2f}  {p.category[:12]:<12}  {p.name}")


def main(args) -> int:
    # imported here so --help works without the web stack loaded
    from .api import search_single_image

    concurrency = args.concurrency if args.concurrency is not None else config.MAX_CONCURRENT_COMPARISONS
    try:
        catalog = CatalogStore.from_snapshot(Path(args.snapshot))
        products = asyncio.run(search_single_image(args.image, catalog=catalog, max_concurrency=concurrency))
    except SimilaritySearchError as e:
        print(f"error ({e.status_code}): {e.message}")
        return 1

    if args.json:
        print(json.dumps({"products": [p.model_dump() for p in products]}, indent=2))
    else:
        _print_table(products)
    return 0


if __name__ == "__main__":
    ap = argparse.ArgumentParser(description="Rank catalog products by similarity to one image.")
    ap.add_argument("--image", required=True, help="http(s) URL or data:image/...;base64 URI")
    ap.add_argument("--snapshot", default=str(config.CATALOG_SNAPSHOT_PATH))
    ap.add_argument("--concurrency", type=int, default=None)
    ap.add_argument("--json", action="store_true")
    raise SystemExit(main(ap.parse_args()))
