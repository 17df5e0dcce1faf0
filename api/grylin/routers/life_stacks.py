import uuid

from fastapi import APIRouter, Depends

from grylin.core.deps import Principal, get_principal, get_storage
from grylin.schemas.life_stack import LifeStackCreate, LifeStackResponse, LifeStackUpdate
from grylin.services import documents
from grylin.storage.base import StorageBackend

router = APIRouter(prefix="/life-stacks", tags=["life-stacks"])


@router.get("", response_model=list[LifeStackResponse])
async def list_stacks(
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.list_stacks(user.id)


@router.post("", response_model=LifeStackResponse, status_code=201)
async def create_stack(
    payload: LifeStackCreate,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    return await storage.create_stack(user.id, payload)


@router.patch("/{stack_id}", response_model=LifeStackResponse)
async def update_stack(
    stack_id: uuid.UUID,
    payload: LifeStackUpdate,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    # New keywords apply to documents filed from now on; existing ones stay put
    return await storage.update_stack(user.id, stack_id, payload)


@router.delete("/{stack_id}", status_code=204)
async def delete_stack(
    stack_id: uuid.UUID,
    user: Principal = Depends(get_principal),
    storage: StorageBackend = Depends(get_storage),
):
    await documents.delete_stack(storage, user.id, stack_id)
