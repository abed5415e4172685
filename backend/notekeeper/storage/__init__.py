"""
Storage layer: one abstract contract (`base`), two backends (`sql`, `files`).

`create_storage()` is the only place the backend choice is made.
"""

import logging
from typing import Optional

from notekeeper.config import Settings
from notekeeper.storage.base import AdminSeed, StorageProvider

logger = logging.getLogger(__name__)


def create_storage(settings: Settings, admin_seed: Optional[AdminSeed] = None) -> StorageProvider:
    """
    Build the provider named by `settings.storage_backend`.

    The returned provider is not yet initialized; the caller awaits
    `initialize()` before first use.
    """
    if settings.uses_database:
        from notekeeper.storage.sql import RelationalStorage

        logger.info("Storage backend: database")
        return RelationalStorage(settings, admin_seed=admin_seed)

    from notekeeper.storage.files import FileStorage

    logger.info("Storage backend: file (%s)", settings.data_dir)
    return FileStorage(settings.data_dir, admin_seed=admin_seed)


__all__ = ["AdminSeed", "StorageProvider", "create_storage"]
