"""Person endpoints."""

from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query

from ..models import AncestorNodeModel, PersonCreateModel, PersonModel, PersonUpdateModel
from ..services.directory import OrgDirectory
from .dependencies import get_directory

router = APIRouter(prefix="/persons", tags=["persons"])


@router.get("", response_model=Union[PersonModel, List[PersonModel]])
async def get_persons(
    id: Optional[int] = Query(None, description="Person ID; omit to list everyone"),
    directory: OrgDirectory = Depends(get_directory),
):
    if id is not None:
        return await directory.get_person(id)
    return await directory.list_persons()


@router.post("/create")
async def create_person(payload: PersonCreateModel, directory: OrgDirectory = Depends(get_directory)):
    person = await directory.create_person(payload)
    return {"message": "Person created successfully!", "id": person.id}


@router.patch("/update")
async def update_person(
    payload: PersonUpdateModel,
    id: int = Query(...),
    directory: OrgDirectory = Depends(get_directory),
):
    await directory.update_person(id, payload)
    return {"message": "Person updated successfully!"}


@router.delete("/delete")
async def delete_person(id: int = Query(...), directory: OrgDirectory = Depends(get_directory)):
    await directory.delete_person(id)
    return {"message": "Person deleted successfully!"}


@router.get("/get-groups-above", response_model=AncestorNodeModel)
async def get_groups_above(id: int = Query(...), directory: OrgDirectory = Depends(get_directory)):
    """Ancestor chain of the group the person belongs to."""
    return await directory.get_groups_above_person(id)
