"""
orgtree: organizational hierarchy service with Valkey cache-aside reads.

Groups nest under parent groups and persons belong to at most one group.
The package provides:
1. Ancestor chains for a group (and for a person's group)
2. Filtered descendant subtrees rooted at a group
3. Write operations that invalidate cached traversals before they return

Cached traversals live in Valkey (or an in-process store for local runs),
and the relational store is reached through SQLAlchemy.
"""

__version__ = "0.1.0"
