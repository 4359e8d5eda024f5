# similar_products/_singletons.py
from functools import lru_cache

from .catalog_store import CatalogStore
from .reasoning import build_http_client


@lru_cache(maxsize=1)
def get_catalog_store() -> CatalogStore:
    return CatalogStore.from_snapshot()


@lru_cache(maxsize=1)
def get_http_client():
    # one pooled AsyncClient for the app's lifetime; closed on shutdown
    return build_http_client()
