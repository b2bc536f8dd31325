# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/catalog/factory.py

from pathlib import Path

from tfcmesh.catalog.base import Catalog
from tfcmesh.catalog.filesystem import FilesystemCatalog
from tfcmesh.catalog.relational import RelationalCatalog
from tfcmesh.config import CatalogConfig
from tfcmesh.errors import ConfigError

DEFAULT_DB_NAME = "tfc.db"


def make_catalog(config: CatalogConfig) -> Catalog:
    """Build the catalog variant named by ``config.type``."""
    if config.type == "filesystem":
        return FilesystemCatalog(Path(config.uri))
    if config.type in ("sqlite3", "sqlite"):
        uri = config.uri
        if "://" not in uri and (not uri or Path(uri).is_dir()):
            uri = str(Path(uri or ".") / DEFAULT_DB_NAME)
            Path(uri).parent.mkdir(parents=True, exist_ok=True)
        return RelationalCatalog(config.model_copy(update={"uri": uri}).database_url())
    if config.type in ("postgresql", "mysql"):
        return RelationalCatalog(config.database_url())
    if "://" in config.uri:
        return RelationalCatalog(config.uri)
    raise ConfigError(f"Unsupported catalog type: {config.type}")
