from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy.orm import Session
from uuid import UUID
from typing import Optional, List
import logging

from warranty.db.session import get_db
from warranty.api.deps import require_role, get_actor_context, get_blob_storage
from warranty.schemas.submission import (
    SubmissionCreate,
    SubmissionUpdate,
    SubmissionBulkUpdate,
    SubmissionOut,
    SubmissionPublicOut,
    SubmissionListOut,
    SubmissionCreatedOut,
    SubmissionUpdatedOut,
    BulkUpdateOut,
    STATUS_LABELS,
    ALL_STATUS_FILTERS,
    parse_status,
)
from warranty.schemas.activity_log import ActorContext
from warranty.schemas.admin_user import Msg, APIResponse
from warranty.models.admin_user import AdminUser, AdminRole
from warranty.crud import submission as crud_submission
from warranty.core.config import settings
from warranty.core.email import email_service, EmailDeliveryError
from warranty.core.errors import first_error_message
from warranty.core.export import build_submission_export_workbook, workbook_to_bytes, export_filename, XLSX_MEDIA_TYPE
from warranty.core.storage import StorageError, delete_blobs
from warranty.services.notifications import notify_new_submission
from warranty.services.workflow import WorkflowConflictError

logger = logging.getLogger(__name__)

router = APIRouter()


def submission_filters(
    status_filter: Optional[str] = Query(None, alias="status", description="Status label, enum value or 'Alle'"),
    search: Optional[str] = Query(None, description="Case-insensitive substring search"),
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Year of creation"),
    bauleitung_id: Optional[UUID] = Query(None),
    verantwortlicher_id: Optional[UUID] = Query(None),
    gewerk_id: Optional[UUID] = Query(None),
    firma_id: Optional[UUID] = Query(None),
) -> dict:
    """Shared query filters of the list and export endpoints"""
    parsed_status = None
    if status_filter and status_filter.strip().lower() not in ALL_STATUS_FILTERS:
        try:
            parsed_status = parse_status(status_filter)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {
        "status": parsed_status,
        "search": search,
        "year": year,
        "bauleitung_id": bauleitung_id,
        "verantwortlicher_id": verantwortlicher_id,
        "gewerk_id": gewerk_id,
        "firma_id": firma_id,
    }


async def _read_uploads(files: List[UploadFile]) -> List[dict]:
    """Read and validate uploaded files (type and size) before anything is stored"""
    uploads = []
    for upload in files:
        if not upload.filename:
            continue
        content_type = (upload.content_type or "").lower()
        if content_type not in settings.ALLOWED_UPLOAD_TYPES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Dateityp nicht erlaubt: {upload.filename}",
            )
        data = await upload.read()
        if len(data) > settings.MAX_UPLOAD_SIZE_BYTES:
            max_mb = settings.MAX_UPLOAD_SIZE_BYTES // (1024 * 1024)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Datei zu groß (max. {max_mb} MB): {upload.filename}",
            )
        uploads.append({"name": upload.filename, "content_type": content_type, "data": data})
    return uploads


@router.post(
    "/submissions",
    response_model=SubmissionCreatedOut,
    status_code=status.HTTP_200_OK,
    tags=["Submissions"],
    responses={
        400: {"model": APIResponse, "description": "Validation error"},
        500: {"model": APIResponse, "description": "File upload failed"},
    }
)
async def create_submission(
    background_tasks: BackgroundTasks,
    first_name: str = Form(""),
    last_name: str = Form(""),
    street: str = Form(""),
    postal_code: str = Form(""),
    city: str = Form(""),
    tc_number: str = Form(""),
    email: str = Form(""),
    phone: str = Form(""),
    description: str = Form(""),
    consent_accepted: bool = Form(False),
    house_type: Optional[str] = Form(None),
    files: List[UploadFile] = File(default=[]),
    db: Session = Depends(get_db),
    storage=Depends(get_blob_storage),
):
    """
    Public intake form (multipart).

    Files are uploaded to blob storage first; the submission and its file
    rows are inserted afterwards. The staff alert and the customer
    confirmation are sent in the background and never fail the request.
    """
    try:
        data = SubmissionCreate(
            first_name=first_name,
            last_name=last_name,
            street=street,
            postal_code=postal_code,
            city=city,
            tc_number=tc_number,
            email=email,
            phone=phone,
            description=description,
            consent_accepted=consent_accepted,
            house_type=house_type,
        )
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=first_error_message(e.errors()))

    uploads = await _read_uploads(files)

    stored = []
    try:
        for upload in uploads:
            url = storage.put(upload["name"], upload["data"], upload["content_type"])
            stored.append({
                "name": upload["name"],
                "content_type": upload["content_type"],
                "size": len(upload["data"]),
                "url": url,
            })
    except StorageError as e:
        logger.error(f"File upload failed, removing {len(stored)} stored blobs: {e}")
        delete_blobs(storage, [f["url"] for f in stored])
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Datei-Upload fehlgeschlagen",
        )

    try:
        db_submission = crud_submission.create_submission(db, data, stored)
    except Exception:
        db.rollback()
        delete_blobs(storage, [f["url"] for f in stored])
        raise

    background_tasks.add_task(
        notify_new_submission,
        SubmissionOut.from_submission(db_submission),
        [f["name"] for f in stored],
    )

    return {"success": True, "submission": SubmissionPublicOut.from_submission(db_submission)}


@router.get(
    "/submissions",
    response_model=SubmissionListOut,
    status_code=status.HTTP_200_OK,
    tags=["Submissions"],
    responses={
        400: {"model": APIResponse, "description": "Invalid filter or sort"},
        401: {"model": APIResponse, "description": "No valid session"},
    }
)
async def list_submissions(
    filters: dict = Depends(submission_filters),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, le=1000),
    current_admin: AdminUser = Depends(require_role(AdminRole.STAFF)),
    db: Session = Depends(get_db),
):
    """
    Filtered and sorted submission list.

    - **status**: exact status or `Alle`
    - **search**: name, email, TC number, address, description
    - **year**: year of creation
    - **sortBy**: created_at, first_name, last_name, city, tc_number, status
    """
    try:
        submissions, total = crud_submission.get_submissions(
            db, sort_by=sort_by, sort_order=sort_order, skip=skip, limit=limit, **filters
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {
        "submissions": [SubmissionOut.from_submission(s) for s in submissions],
        "total": total,
    }


@router.get(
    "/submissions/export",
    status_code=status.HTTP_200_OK,
    tags=["Submissions"],
    responses={
        200: {"content": {XLSX_MEDIA_TYPE: {}}, "description": "Excel workbook"},
        401: {"model": APIResponse, "description": "No valid session"},
    }
)
async def export_submissions(
    filters: dict = Depends(submission_filters),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    current_admin: AdminUser = Depends(require_role(AdminRole.STAFF)),
    db: Session = Depends(get_db),
):
    """Excel export of the filtered list"""
    try:
        submissions, total = crud_submission.get_submissions(
            db, sort_by=sort_by, sort_order=sort_order, **filters
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    workbook = build_submission_export_workbook(submissions, STATUS_LABELS)
    logger.info(f"{current_admin.username} exported {total} submissions")
    return Response(
        content=workbook_to_bytes(workbook),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{export_filename()}"'},
    )


@router.post(
    "/submissions/bulk",
    response_model=BulkUpdateOut,
    status_code=status.HTTP_200_OK,
    tags=["Submissions"],
    responses={
        400: {"model": APIResponse, "description": "Invalid changes"},
        403: {"model": APIResponse, "description": "Password change required"},
    }
)
async def bulk_update_submissions(
    bulk_request: SubmissionBulkUpdate,
    current_admin: AdminUser = Depends(require_role(AdminRole.STAFF, mutating=True)),
    actor: ActorContext = Depends(get_actor_context),
    db: Session = Depends(get_db),
):
    """Set status and/or deadlines on several submissions at once"""
    try:
        update = SubmissionUpdate.model_validate(bulk_request.changes.model_dump(exclude_unset=True))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=first_error_message(e.errors()))

    try:
        updated, not_found = crud_submission.bulk_update_submissions(db, bulk_request.ids, update, actor)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"success": True, "updated": updated, "not_found": not_found}


@router.get(
    "/submissions/{submission_id}",
    response_model=SubmissionOut,
    status_code=status.HTTP_200_OK,
    tags=["Submissions"],
    responses={
        404: {"model": APIResponse, "description": "Submission not found"},
    }
)
async def get_submission(
    submission_id: UUID,
    current_admin: AdminUser = Depends(require_role(AdminRole.STAFF)),
    db: Session = Depends(get_db),
):
    db_submission = crud_submission.get_submission(db, submission_id)
    if not db_submission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Meldung nicht gefunden")
    return SubmissionOut.from_submission(db_submission)


@router.patch(
    "/submissions/{submission_id}",
    response_model=SubmissionUpdatedOut,
    status_code=status.HTTP_200_OK,
    tags=["Submissions"],
    responses={
        400: {"model": APIResponse, "description": "Invalid field value or status/completion conflict"},
        403: {"model": APIResponse, "description": "Password change required"},
        404: {"model": APIResponse, "description": "Submission not found"},
    }
)
async def update_submission(
    submission_id: UUID,
    update: SubmissionUpdate,
    current_admin: AdminUser = Depends(require_role(AdminRole.STAFF, mutating=True)),
    actor: ActorContext = Depends(get_actor_context),
    db: Session = Depends(get_db),
):
    """
    Inline edit of one or more fields.

    Setting status `Erledigt` fills `completed_at`; setting `completed_at`
    promotes the status to `Erledigt`.
    """
    try:
        db_submission = crud_submission.update_submission(db, submission_id, update, actor)
    except WorkflowConflictError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    if not db_submission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Meldung nicht gefunden")
    return {"success": True, "submission": SubmissionOut.from_submission(db_submission)}


@router.delete(
    "/submissions/{submission_id}",
    response_model=Msg,
    status_code=status.HTTP_200_OK,
    tags=["Submissions"],
    responses={
        403: {"model": APIResponse, "description": "Password change required"},
        404: {"model": APIResponse, "description": "Submission not found"},
    }
)
async def delete_submission(
    submission_id: UUID,
    current_admin: AdminUser = Depends(require_role(AdminRole.STAFF, mutating=True)),
    actor: ActorContext = Depends(get_actor_context),
    db: Session = Depends(get_db),
    storage=Depends(get_blob_storage),
):
    """Delete a submission with its files"""
    if not crud_submission.delete_submission(db, submission_id, storage, actor):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Meldung nicht gefunden")
    return {"message": "Meldung gelöscht"}


@router.post(
    "/submissions/{submission_id}/resend-confirmation",
    response_model=Msg,
    status_code=status.HTTP_200_OK,
    tags=["Submissions"],
    responses={
        404: {"model": APIResponse, "description": "Submission not found"},
        502: {"model": APIResponse, "description": "Email could not be sent"},
    }
)
async def resend_confirmation(
    submission_id: UUID,
    current_admin: AdminUser = Depends(require_role(AdminRole.STAFF, mutating=True)),
    db: Session = Depends(get_db),
):
    """Send the customer confirmation email again; SMTP failures are reported"""
    db_submission = crud_submission.get_submission(db, submission_id)
    if not db_submission:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Meldung nicht gefunden")

    try:
        email_service.send_confirmation_email(SubmissionOut.from_submission(db_submission))
    except EmailDeliveryError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="E-Mail konnte nicht gesendet werden",
        )
    return {"message": "Bestätigung erneut gesendet"}
