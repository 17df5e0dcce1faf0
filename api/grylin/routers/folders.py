import uuid

from fastapi import APIRouter, Depends, HTTPException, status

from grylin.core.deps import Principal, get_principal, get_storage
from grylin.schemas.folder import FolderCreate, FolderResponse
from grylin.services import documents
from grylin.services.folder_router import match_folder
from grylin.storage.base import StorageBackend

router = APIRouter(prefix="/folders", tags=["folders"])


@router.get("", response_model=list[FolderResponse])
async def list_folders(
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.list_folders(user.id)


@router.post("", response_model=FolderResponse, status_code=201)
async def create_folder(
    payload: FolderCreate,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    name = payload.name.strip()
    if match_folder(name, await storage.list_folders(user.id)) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Folder already exists",
        )
    return await storage.create_folder(user.id, name)


@router.delete("/{folder_id}", status_code=204)
async def delete_folder(
    folder_id: uuid.UUID,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    """Documents in the folder are kept and become unfiled."""
    await documents.delete_folder(storage, user.id, folder_id)
