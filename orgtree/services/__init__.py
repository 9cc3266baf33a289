"""
Hierarchy services for the org tree.

This module contains the ancestor and descendant traversals, the
invalidation coordinator and the directory facade used by the API.
"""

from .ancestors import AncestorTraversal
from .descendants import DescendantTraversal
from .invalidation import InvalidationCoordinator, InvalidationEventModel, WriteKind
from .directory import OrgDirectory

__all__ = [
    'AncestorTraversal',
    'DescendantTraversal',
    'InvalidationCoordinator',
    'InvalidationEventModel',
    'WriteKind',
    'OrgDirectory',
]
