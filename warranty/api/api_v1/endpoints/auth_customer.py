from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import logging

from warranty.db.session import get_db
from warranty.api.deps import customer_sessions, get_current_customer, get_current_customer_account
from warranty.schemas.customer import (
    CustomerLoginRequest,
    CustomerLoginResponse,
    CustomerSetupPasswordRequest,
    CustomerPasswordChangeRequest,
    CustomerSessionPayload,
    CustomerMeResponse,
    CustomerSubmissionsResponse,
)
from warranty.schemas.submission import SubmissionPublicOut
from warranty.schemas.admin_user import Msg, APIResponse
from warranty.models.customer import Customer
from warranty.core.security import verify_password
from warranty.crud import customer as crud_customer
from warranty.crud import submission as crud_submission

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_credentials(email: str, tc_number: str) -> None:
    if not email.strip() or not tc_number.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="E-Mail und TC-Nummer sind erforderlich",
        )


@router.post(
    "/login",
    response_model=CustomerLoginResponse,
    status_code=status.HTTP_200_OK,
    tags=["Customer Authentication"],
    responses={
        400: {"model": APIResponse, "description": "Missing email or TC number"},
        401: {"model": APIResponse, "description": "Invalid credentials or password required"},
    }
)
async def login(
    login_request: CustomerLoginRequest,
    response: Response,
    db: Session = Depends(get_db),
):
    """
    Customer login with email and TC number.

    As long as no password has been set, email and TC number are enough and
    the response asks the customer to set one. Afterwards the password is
    required as well.

    Sets the `customer_session` cookie (HTTP-only, 7 days).
    """
    _require_credentials(login_request.email, login_request.tc_number)

    submission = crud_customer.find_submission_for_login(db, login_request.email, login_request.tc_number)
    if not submission:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Keine Meldung mit diesen Daten gefunden",
        )

    customer = crud_customer.get_customer_by_submission(db, submission.id)
    # a password on any submission with these credentials covers all of them
    protected = crud_customer.get_protected_account(db, login_request.email, login_request.tc_number)
    has_password = protected is not None

    if has_password:
        if not login_request.password:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Passwort erforderlich", "requires_password": True},
            )
        if not verify_password(login_request.password, protected.password_hash):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Ungültiges Passwort",
            )

    payload = CustomerSessionPayload(
        customer_id=customer.id if customer else None,
        email=submission.email,
        tc_number=submission.tc_number,
        submission_id=submission.id,
        password_verified=has_password,
    )
    customer_sessions.set_cookie(response, payload)
    logger.info(f"Customer logged in for submission {submission.id}")

    return {
        "success": True,
        "customer": {
            "id": payload.customer_id,
            "email": payload.email,
            "tc_number": payload.tc_number,
            "submission_id": payload.submission_id,
        },
        "requires_password_setup": not has_password,
    }


@router.delete(
    "/login",
    response_model=Msg,
    status_code=status.HTTP_200_OK,
    tags=["Customer Authentication"],
)
async def logout(response: Response):
    """Clear the customer session cookie"""
    customer_sessions.clear_cookie(response)
    return {"message": "Abgemeldet"}


@router.post(
    "/setup-password",
    response_model=Msg,
    status_code=status.HTTP_200_OK,
    tags=["Customer Authentication"],
    responses={
        400: {"model": APIResponse, "description": "Invalid password or password already set"},
        404: {"model": APIResponse, "description": "No matching submission"},
    }
)
async def setup_password(
    setup_request: CustomerSetupPasswordRequest,
    db: Session = Depends(get_db),
):
    """Set the first password of a customer account"""
    _require_credentials(setup_request.email, setup_request.tc_number)

    submission = crud_customer.find_submission_for_login(db, setup_request.email, setup_request.tc_number)
    if not submission:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Keine Meldung mit diesen Daten gefunden",
        )

    customer = crud_customer.get_customer_by_submission(db, submission.id)
    if customer is None:
        customer = crud_customer.create_for_submission(db, submission)

    try:
        crud_customer.set_initial_password(db, customer, setup_request.password)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

    logger.info(f"Customer password set for submission {submission.id}")
    return {"message": "Passwort erfolgreich gesetzt"}


@router.post(
    "/change-password",
    response_model=Msg,
    status_code=status.HTTP_200_OK,
    tags=["Customer Authentication"],
    responses={
        400: {"model": APIResponse, "description": "Invalid password"},
        401: {"model": APIResponse, "description": "No valid session"},
    }
)
async def change_password(
    password_request: CustomerPasswordChangeRequest,
    customer: Customer = Depends(get_current_customer_account),
    db: Session = Depends(get_db),
):
    try:
        crud_customer.change_password(
            db,
            customer,
            password_request.old_password,
            password_request.new_password,
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    return {"message": "Passwort geändert"}


@router.get(
    "/me",
    response_model=CustomerMeResponse,
    status_code=status.HTTP_200_OK,
    tags=["Customer Authentication"],
    responses={
        401: {"model": APIResponse, "description": "No valid session"},
    }
)
async def me(
    session: CustomerSessionPayload = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    """Session customer and the submission used to log in"""
    submission = crud_submission.get_submission(db, session.submission_id)
    customer = crud_customer.get_customer_by_submission(db, session.submission_id)
    return {
        "customer": {
            "id": customer.id if customer else None,
            "email": session.email,
            "tc_number": session.tc_number,
            "submission_id": session.submission_id,
        },
        "has_password": bool(customer and customer.has_password),
        "submission": SubmissionPublicOut.from_submission(submission),
    }


@router.get(
    "/submissions",
    response_model=CustomerSubmissionsResponse,
    status_code=status.HTTP_200_OK,
    tags=["Customer Authentication"],
    responses={
        401: {"model": APIResponse, "description": "No valid session"},
    }
)
async def my_submissions(
    session: CustomerSessionPayload = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    """
    Submissions made with the session's email address.

    Submissions protected by a password the session did not log in with are
    left out.
    """
    submissions = crud_customer.get_submissions_for_session(
        db, session.email, session.tc_number, session.password_verified
    )
    return {"submissions": [SubmissionPublicOut.from_submission(s) for s in submissions]}
