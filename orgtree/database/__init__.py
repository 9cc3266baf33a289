"""
Database package for the org tree service.

This package provides the SQLAlchemy models, database configuration and the
tree store gateway used by traversals and write operations.
"""

from .models import (
    Base,
    Group,
    Person,
    create_all_tables,
)

from .config import (
    DatabaseConfig,
    initialize_database,
)

from .gateway import (
    TreeStoreGateway,
    find_descendant_ids,
    ensure_acyclic_move,
    touch_groups,
)

__all__ = [
    # Models
    'Base',
    'Group',
    'Person',
    'create_all_tables',

    # Configuration
    'DatabaseConfig',
    'initialize_database',

    # Gateway
    'TreeStoreGateway',
    'find_descendant_ids',
    'ensure_acyclic_move',
    'touch_groups',
]
