from sqlalchemy import func, or_, case, extract
from sqlalchemy.orm import Session
from warranty.models.submission import Submission, SubmissionStatus
from warranty.models.submission_file import SubmissionFile
from warranty.models.master_data import MasterDataType, Bauleitung, Gewerk, Firma
from warranty.models.activity_log import ActivityAction
from warranty.schemas.submission import SubmissionCreate, SubmissionUpdate, STATUS_LABELS
from warranty.schemas.activity_log import ActorContext
from warranty.crud import master_data as master_data_crud
from warranty.crud import customer as customer_crud
from warranty.crud.activity_log import log_activity
from warranty.core.security import generate_tracking_token
from warranty.core.storage import delete_blobs
from warranty.services.workflow import apply_workflow_patch
from uuid import UUID
from typing import Optional, List, Tuple, Dict, Any
import logging

logger = logging.getLogger(__name__)

ENTITY_TYPE = "submission"

STATUS_SORT_RANK = case(
    (Submission.status == SubmissionStatus.OPEN, 0),
    (Submission.status == SubmissionStatus.IN_PROGRESS, 1),
    (Submission.status == SubmissionStatus.DONE, 2),
    (Submission.status == SubmissionStatus.REJECTED, 3),
    else_=4,
)

SORT_COLUMNS = {
    "created_at": Submission.created_at,
    "first_name": func.lower(Submission.first_name),
    "last_name": func.lower(Submission.last_name),
    "city": func.lower(Submission.city),
    "tc_number": Submission.tc_number,
    "status": STATUS_SORT_RANK,
}

SEARCH_COLUMNS = [
    Submission.first_name,
    Submission.last_name,
    Submission.email,
    Submission.tc_number,
    Submission.street,
    Submission.postal_code,
    Submission.city,
    Submission.description,
]

# Fields whose customer account copy follows the submission
CUSTOMER_SYNC_FIELDS = ("email", "tc_number")


def get_submission(db: Session, submission_id: UUID) -> Optional[Submission]:
    """Get submission by ID"""
    return db.query(Submission).filter(Submission.id == submission_id).first()


def get_submission_by_token(db: Session, token: str) -> Optional[Submission]:
    """Get submission by tracking token"""
    if not token:
        return None
    return db.query(Submission).filter(Submission.tracking_token == token).first()


def create_submission(db: Session, data: SubmissionCreate, files: List[Dict[str, Any]]) -> Submission:
    """
    Insert a submission with its already uploaded files.

    Args:
        data: Validated form fields
        files: One dict per uploaded blob with name, content_type, size and url

    Returns:
        The new submission (status open, fresh tracking token)
    """
    db_submission = Submission(
        tc_number=data.tc_number,
        first_name=data.first_name,
        last_name=data.last_name,
        street=data.street,
        postal_code=data.postal_code,
        city=data.city,
        email=data.email,
        phone=data.phone,
        description=data.description,
        consent_accepted=data.consent_accepted,
        house_type=data.house_type,
        status=SubmissionStatus.OPEN,
        tracking_token=generate_tracking_token(),
    )
    for file_info in files:
        db_submission.files.append(
            SubmissionFile(
                name=file_info["name"],
                content_type=file_info["content_type"],
                size=file_info["size"],
                url=file_info["url"],
            )
        )
    db.add(db_submission)
    db.commit()
    db.refresh(db_submission)

    try:
        customer_crud.create_for_submission(db, db_submission)
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to create customer account for submission {db_submission.id}: {e}")

    logger.info(f"Submission {db_submission.id} created (TC {db_submission.tc_number}, {len(files)} files)")
    return db_submission


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filtered_query(
    db: Session,
    status: Optional[SubmissionStatus] = None,
    search: Optional[str] = None,
    year: Optional[int] = None,
    bauleitung_id: Optional[UUID] = None,
    verantwortlicher_id: Optional[UUID] = None,
    gewerk_id: Optional[UUID] = None,
    firma_id: Optional[UUID] = None,
):
    query = db.query(Submission)
    if status is not None:
        query = query.filter(Submission.status == status)
    if search and search.strip():
        pattern = f"%{_escape_like(search.strip())}%"
        query = query.filter(or_(*[column.ilike(pattern, escape="\\") for column in SEARCH_COLUMNS]))
    if year is not None:
        query = query.filter(extract("year", Submission.created_at) == year)
    if bauleitung_id is not None:
        query = query.filter(Submission.bauleitung_id == bauleitung_id)
    if verantwortlicher_id is not None:
        query = query.filter(Submission.verantwortlicher_id == verantwortlicher_id)
    if gewerk_id is not None:
        query = query.filter(Submission.gewerk_id == gewerk_id)
    if firma_id is not None:
        query = query.filter(Submission.firma_id == firma_id)
    return query


def get_submissions(
    db: Session,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    skip: int = 0,
    limit: Optional[int] = None,
    **filters,
) -> Tuple[List[Submission], int]:
    """
    Filtered, sorted submission list.

    ``filters`` are the keyword arguments of the list endpoint: status,
    search, year and the four classification ids.

    Returns:
        (page of submissions, total matching)
    """
    if sort_by not in SORT_COLUMNS:
        raise ValueError(f"Ungültiges Sortierfeld: {sort_by}")
    if sort_order not in ("asc", "desc"):
        raise ValueError(f"Ungültige Sortierrichtung: {sort_order}")

    query = _filtered_query(db, **filters)
    total = query.count()

    column = SORT_COLUMNS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = query.order_by(ordering, Submission.created_at.desc(), Submission.id)

    if skip:
        query = query.offset(skip)
    if limit is not None:
        query = query.limit(limit)
    return query.all(), total


def _resolve_classification(db: Session, changes: Dict[str, Any]) -> None:
    """Turn classification names into ids and check given ids exist"""
    for kind in MasterDataType:
        name_key = kind.value
        id_key = f"{kind.value}_id"
        if name_key in changes:
            name = changes.pop(name_key)
            if id_key not in changes:
                changes[id_key] = master_data_crud.resolve_name(db, kind, name)
        if changes.get(id_key) is not None:
            if not master_data_crud.get_item_by_id(db, kind, changes[id_key]):
                raise ValueError(f"Unbekannter Eintrag für {kind.value}")


def _display_value(db: Session, field: str, value: Any) -> Any:
    """Value as written to the activity log"""
    if value is None:
        return None
    if field == "status":
        return STATUS_LABELS[SubmissionStatus(value)]
    if field.endswith("_id"):
        kind = MasterDataType(field[:-3])
        item = master_data_crud.get_item_by_id(db, kind, value)
        return item.name if item else str(value)
    return value


def update_submission(
    db: Session,
    submission_id: UUID,
    update: SubmissionUpdate,
    actor: Optional[ActorContext] = None,
) -> Optional[Submission]:
    """
    Apply a partial update.

    Only fields present in the request are changed. Status and completion
    timestamp are derived together. Each changed field is written to the
    activity log when an actor is given.

    Raises:
        ValueError: unknown classification id
        WorkflowConflictError: contradicting status / completion values
    """
    db_submission = get_submission(db, submission_id)
    if not db_submission:
        return None

    changes = update.model_dump(exclude_unset=True)
    _resolve_classification(db, changes)

    workflow_patch = {key: changes.pop(key) for key in ("status", "completed_at") if key in changes}
    if workflow_patch:
        new_status, new_completed_at = apply_workflow_patch(
            db_submission.status,
            db_submission.completed_at,
            workflow_patch,
        )
        changes["status"] = new_status
        changes["completed_at"] = new_completed_at

    changed = []
    for field, value in changes.items():
        old_value = getattr(db_submission, field)
        if old_value == value:
            continue
        changed.append((field, old_value, value))
        setattr(db_submission, field, value)

    if not changed:
        return db_submission

    if db_submission.customer:
        for field, _, value in changed:
            if field in CUSTOMER_SYNC_FIELDS:
                setattr(db_submission.customer, field, value.strip().lower() if field == "email" else value)

    if actor:
        for field, old_value, value in changed:
            action = ActivityAction.status_changed if field == "status" else ActivityAction.field_updated
            log_activity(
                db,
                actor,
                action,
                ENTITY_TYPE,
                str(db_submission.id),
                old_value={field: _display_value(db, field, old_value)},
                new_value={field: _display_value(db, field, value)},
                commit=False,
            )

    db.commit()
    db.refresh(db_submission)
    logger.info(f"Submission {submission_id} updated: {', '.join(field for field, _, _ in changed)}")
    return db_submission


def bulk_update_submissions(
    db: Session,
    submission_ids: List[UUID],
    update: SubmissionUpdate,
    actor: Optional[ActorContext] = None,
) -> Tuple[int, List[UUID]]:
    """
    Apply the same change to several submissions.

    Returns:
        (number updated, ids that were not found)
    """
    updated = 0
    not_found = []
    for submission_id in submission_ids:
        if update_submission(db, submission_id, update, actor) is None:
            not_found.append(submission_id)
        else:
            updated += 1
    return updated, not_found


def delete_submission(
    db: Session,
    submission_id: UUID,
    storage,
    actor: Optional[ActorContext] = None,
) -> bool:
    """
    Delete a submission, its file rows and (best effort) its blobs.

    Storage failures are logged and never block the database delete.
    """
    db_submission = get_submission(db, submission_id)
    if not db_submission:
        return False

    delete_blobs(storage, [f.url for f in db_submission.files])

    if actor:
        log_activity(
            db,
            actor,
            ActivityAction.deleted,
            ENTITY_TYPE,
            str(db_submission.id),
            old_value={
                "tc_number": db_submission.tc_number,
                "name": f"{db_submission.first_name} {db_submission.last_name}",
                "email": db_submission.email,
                "status": STATUS_LABELS[db_submission.status],
                "files": len(db_submission.files),
            },
            commit=False,
        )

    db.delete(db_submission)
    db.commit()
    logger.info(f"Submission {submission_id} deleted")
    return True


def get_stats(db: Session) -> Dict[str, Any]:
    """Counts feeding the dashboard charts"""
    count = func.count(Submission.id)

    by_gewerk = (
        db.query(Gewerk.name, count)
        .select_from(Submission)
        .join(Gewerk, Submission.gewerk_id == Gewerk.id)
        .group_by(Gewerk.name)
        .order_by(count.desc(), Gewerk.name.asc())
        .all()
    )
    by_bauleitung = (
        db.query(Bauleitung.name, count)
        .select_from(Submission)
        .join(Bauleitung, Submission.bauleitung_id == Bauleitung.id)
        .group_by(Bauleitung.name)
        .order_by(count.desc(), Bauleitung.name.asc())
        .all()
    )
    by_firma = (
        db.query(Firma.name, Gewerk.name, count)
        .select_from(Submission)
        .join(Firma, Submission.firma_id == Firma.id)
        .join(Gewerk, Submission.gewerk_id == Gewerk.id)
        .group_by(Firma.name, Gewerk.name)
        .order_by(count.desc(), Firma.name.asc())
        .all()
    )
    status_counts = dict(
        db.query(Submission.status, count).select_from(Submission).group_by(Submission.status).all()
    )

    return {
        "total": sum(status_counts.values()),
        "by_gewerk": [{"name": name, "count": n} for name, n in by_gewerk],
        "by_bauleitung": [{"name": name, "count": n} for name, n in by_bauleitung],
        "by_firma": [{"name": name, "gewerk": gewerk, "count": n} for name, gewerk, n in by_firma],
        "by_status": [
            {"status": status, "label": STATUS_LABELS[status], "count": status_counts.get(status, 0)}
            for status in SubmissionStatus
        ],
    }
