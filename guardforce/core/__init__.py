"""
Core infrastructure package for the Guardforce service layer.

Provides:
- Configuration management via pydantic-settings (config)
- Async PostgreSQL connectivity via asyncpg (database)
- The Store persistence protocol and its PostgreSQL implementation (store)
- The typed error taxonomy (exceptions)

The composition root lives in guardforce.core.dependencies and is imported
from there directly, since it depends on the services package.

Usage Examples:
    from guardforce.core import get_settings, init_db, close_db

    settings = get_settings()
    await init_db()
    ...
    await close_db()
"""

# =============================================================================
# Re-exports from guardforce.core.config
# =============================================================================
from guardforce.core.config import Settings, get_settings

# =============================================================================
# Re-exports from guardforce.core.database
# =============================================================================
from guardforce.core.database import init_db, close_db, get_db_pool

# =============================================================================
# Re-exports from guardforce.core.exceptions
# =============================================================================
from guardforce.core.exceptions import (
    GuardforceError,
    NotFoundError,
    ConfigurationError,
    InsufficientDataError,
    ValidationError,
)

# =============================================================================
# Re-exports from guardforce.core.store
# =============================================================================
from guardforce.core.store import Store, PostgresStore

__all__ = [
    # Configuration management (from config.py)
    'Settings',
    'get_settings',
    # Database pool lifecycle (from database.py)
    'init_db',
    'close_db',
    'get_db_pool',
    # Errors (from exceptions.py)
    'GuardforceError',
    'NotFoundError',
    'ConfigurationError',
    'InsufficientDataError',
    'ValidationError',
    # Persistence (from store.py)
    'Store',
    'PostgresStore',
]
