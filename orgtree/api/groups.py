"""Group endpoints."""

from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query

from ..models import (
    AncestorNodeModel,
    GroupCreateModel,
    GroupModel,
    GroupUpdateModel,
    SubtreeNodeModel,
    build_filters,
)
from ..services.directory import OrgDirectory
from .dependencies import get_directory

router = APIRouter(prefix="/groups", tags=["groups"])


@router.get("", response_model=Union[SubtreeNodeModel, List[GroupModel]])
async def get_groups(
    id: Optional[int] = Query(None, description="Root of the subtree; omit to list all groups"),
    jobTitle: Optional[str] = Query(None, description="Keep persons with this job title"),
    firstName: Optional[str] = Query(None, description="Keep persons with this first name"),
    directory: OrgDirectory = Depends(get_directory),
):
    """
    Subtree below a group with persons filtered by job title and first name,
    or the flat list of groups when no id is given.
    """
    if id is not None:
        return await directory.get_group_subtree(id, build_filters(jobTitle, firstName))
    return await directory.list_groups()


@router.get("/get-groups-above", response_model=AncestorNodeModel)
async def get_groups_above(id: int = Query(...), directory: OrgDirectory = Depends(get_directory)):
    return await directory.get_group_ancestors(id)


@router.post("/create")
async def create_group(payload: GroupCreateModel, directory: OrgDirectory = Depends(get_directory)):
    group = await directory.create_group(payload)
    return {"message": "Group created successfully!", "id": group.id}


@router.patch("/update")
async def update_group(
    payload: GroupUpdateModel,
    id: int = Query(...),
    directory: OrgDirectory = Depends(get_directory),
):
    await directory.update_group(id, payload)
    return {"message": "Group updated successfully!"}


@router.delete("/delete")
async def delete_group(id: int = Query(...), directory: OrgDirectory = Depends(get_directory)):
    await directory.delete_group(id)
    return {"message": "Group deleted successfully!"}
