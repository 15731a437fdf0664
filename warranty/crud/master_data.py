from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from warranty.models.master_data import MasterDataType, MASTER_DATA_MODELS
from uuid import UUID
from typing import Optional, List, Dict
import logging

logger = logging.getLogger(__name__)


class DuplicateNameError(ValueError):
    pass


def get_active_items(db: Session, kind: MasterDataType) -> List:
    """Active items of one kind, ascending by name"""
    model = MASTER_DATA_MODELS[kind]
    return db.query(model).filter(model.active == True).order_by(model.name.asc()).all()


def get_all_active_items(db: Session) -> Dict[MasterDataType, List]:
    """Active items of every kind (populates the form selects)"""
    return {kind: get_active_items(db, kind) for kind in MasterDataType}


def get_item_by_id(db: Session, kind: MasterDataType, item_id: UUID):
    model = MASTER_DATA_MODELS[kind]
    return db.query(model).filter(model.id == item_id).first()


def get_active_item_by_name(db: Session, kind: MasterDataType, name: str):
    """Exact, case-sensitive match among active rows"""
    model = MASTER_DATA_MODELS[kind]
    return db.query(model).filter(model.name == name, model.active == True).first()


def resolve_name(db: Session, kind: MasterDataType, name: Optional[str]) -> Optional[UUID]:
    """
    Resolve a display name to the id of the active row.

    Unknown names resolve to None; the caller stores a null reference.
    """
    if not name:
        return None
    item = get_active_item_by_name(db, kind, name.strip())
    if not item:
        logger.warning(f"No active {kind.value} named '{name}', storing empty reference")
        return None
    return item.id


def create_item(db: Session, kind: MasterDataType, name: str):
    """Create a master-data item. Raises DuplicateNameError when an active item has that name."""
    name = name.strip()
    if get_active_item_by_name(db, kind, name):
        raise DuplicateNameError(f"Eintrag '{name}' existiert bereits")

    model = MASTER_DATA_MODELS[kind]
    db_item = model(name=name, active=True)
    db.add(db_item)
    try:
        db.commit()
    except IntegrityError:
        # concurrent insert of the same name
        db.rollback()
        raise DuplicateNameError(f"Eintrag '{name}' existiert bereits")
    db.refresh(db_item)
    return db_item


def soft_delete_item(db: Session, kind: MasterDataType, item_id: UUID):
    """
    Deactivate an item. Deactivating an inactive item is a no-op.

    Submissions keep referencing the row.
    """
    db_item = get_item_by_id(db, kind, item_id)
    if not db_item:
        return None
    if db_item.active:
        db_item.active = False
        db.commit()
        db.refresh(db_item)
    return db_item
