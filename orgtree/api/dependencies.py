"""Request-scoped access to the directory held by the application."""

from fastapi import Request

from ..services.directory import OrgDirectory


def get_directory(request: Request) -> OrgDirectory:
    return request.app.state.directory
