"""
Exception taxonomy for the org tree core.

Not-found and structural-conflict errors are raised by traversals and write
operations and mapped to HTTP status codes by the API layer. Nothing in this
family is ever stored in the cache.
"""

from typing import Any, Dict, Optional


class OrgTreeError(Exception):
    """Base class for org tree errors carrying a user-facing message."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        """Structured form returned to API callers."""
        return {"error": self.message}


class NotFoundError(OrgTreeError):
    """A referenced group or person does not exist."""

    status_code = 404


class GroupNotFoundError(NotFoundError):
    def __init__(self, group_id: int):
        super().__init__(f"Group with ID {group_id} not found")
        self.group_id = group_id


class PersonNotFoundError(NotFoundError):
    def __init__(self, person_id: Optional[int] = None):
        super().__init__("Person not found.")
        self.person_id = person_id


class PersonUnassignedError(NotFoundError):
    def __init__(self, person_id: int):
        super().__init__("No group associated with the person.")
        self.person_id = person_id


class StructuralConflictError(OrgTreeError):
    """A proposed tree edit would create a cycle in the parent relation."""

    status_code = 400

    def __init__(self, message: str = "Circular reference detected."):
        super().__init__(message)


class HierarchyCycleError(StructuralConflictError):
    """A traversal revisited a group, so the stored tree already holds a cycle."""

    def __init__(self, group_id: int):
        super().__init__(f"Cycle detected in group hierarchy at group {group_id}")
        self.group_id = group_id


class ValidationError(OrgTreeError):
    """A write request carried nothing usable."""

    status_code = 400


class CacheInvalidationError(OrgTreeError):
    """Cache entries could not be removed after a write."""

    status_code = 500
