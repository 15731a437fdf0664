from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from uuid import UUID
from typing import Optional, Union
import logging

from warranty.db.session import get_db
from warranty.api.deps import require_role, get_actor_context
from warranty.schemas.master_data import MasterDataCreate, MasterDataOut, MasterDataListOut, MasterDataAllOut
from warranty.schemas.activity_log import ActorContext
from warranty.schemas.admin_user import APIResponse
from warranty.models.admin_user import AdminUser, AdminRole
from warranty.models.master_data import MasterDataType
from warranty.models.activity_log import ActivityAction
from warranty.crud import master_data as crud_master_data
from warranty.crud.activity_log import log_activity

logger = logging.getLogger(__name__)

router = APIRouter()

ENTITY_TYPE = "master_data"


@router.get(
    "/master-data",
    response_model=Union[MasterDataListOut, MasterDataAllOut],
    status_code=status.HTTP_200_OK,
    tags=["Master Data"],
)
async def list_master_data(
    type: Optional[MasterDataType] = Query(None, description="bauleitung, verantwortlicher, gewerk or firma"),
    db: Session = Depends(get_db),
):
    """
    Active master-data items, ascending by name.

    Without `type` all four lists are returned (populates the form selects).
    """
    if type is not None:
        return MasterDataListOut(items=crud_master_data.get_active_items(db, type))

    items = crud_master_data.get_all_active_items(db)
    return MasterDataAllOut(**{kind.value: rows for kind, rows in items.items()})


@router.post(
    "/master-data",
    response_model=MasterDataOut,
    status_code=status.HTTP_201_CREATED,
    tags=["Master Data"],
    responses={
        403: {"model": APIResponse, "description": "ADMIN role required"},
        409: {"model": APIResponse, "description": "Active item with that name exists"},
    }
)
async def create_master_data(
    item_data: MasterDataCreate,
    current_admin: AdminUser = Depends(require_role(AdminRole.ADMIN, mutating=True)),
    actor: ActorContext = Depends(get_actor_context),
    db: Session = Depends(get_db),
):
    """Create a master-data item"""
    try:
        item = crud_master_data.create_item(db, item_data.type, item_data.name)
    except crud_master_data.DuplicateNameError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    log_activity(db, actor, ActivityAction.created, ENTITY_TYPE, str(item.id),
                 new_value={"type": item_data.type.value, "name": item.name})
    return item


@router.delete(
    "/master-data/{item_id}",
    response_model=MasterDataOut,
    status_code=status.HTTP_200_OK,
    tags=["Master Data"],
    responses={
        403: {"model": APIResponse, "description": "ADMIN role required"},
        404: {"model": APIResponse, "description": "Item not found"},
    }
)
async def delete_master_data(
    item_id: UUID,
    type: MasterDataType = Query(..., description="bauleitung, verantwortlicher, gewerk or firma"),
    current_admin: AdminUser = Depends(require_role(AdminRole.ADMIN, mutating=True)),
    actor: ActorContext = Depends(get_actor_context),
    db: Session = Depends(get_db),
):
    """
    Deactivate a master-data item.

    Repeating the call is harmless; submissions keep their reference.
    """
    existing = crud_master_data.get_item_by_id(db, type, item_id)
    if not existing:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Eintrag nicht gefunden")
    was_active = existing.active

    item = crud_master_data.soft_delete_item(db, type, item_id)
    if was_active:
        log_activity(db, actor, ActivityAction.deleted, ENTITY_TYPE, str(item_id),
                     old_value={"type": type.value, "name": item.name})
    return item
