from pydantic import BaseModel, Field
from typing import Optional, List
from uuid import UUID

from warranty.schemas.submission import SubmissionPublicOut


class CustomerLoginRequest(BaseModel):
    """
    Customer login request.

    Without a password set on the account, email and TC number are enough.
    Once the customer has set a password it is required.
    """
    email: str = Field(..., description="Email used in the submission")
    tc_number: str = Field(..., description="TC number (Bauvorhaben-Nummer)")
    password: Optional[str] = None


class CustomerSetupPasswordRequest(BaseModel):
    email: str
    tc_number: str
    password: str


class CustomerPasswordChangeRequest(BaseModel):
    old_password: str
    new_password: str


class CustomerSessionPayload(BaseModel):
    """Contents of the signed customer_session cookie"""
    customer_id: Optional[UUID] = None
    email: str
    tc_number: str
    submission_id: UUID
    password_verified: bool = False


class CustomerOut(BaseModel):
    id: Optional[UUID] = None
    email: str
    tc_number: str
    submission_id: UUID


class CustomerLoginResponse(BaseModel):
    success: bool = True
    customer: CustomerOut
    requires_password_setup: bool


class CustomerMeResponse(BaseModel):
    """Session customer with the submission the session was opened for"""
    customer: CustomerOut
    has_password: bool
    submission: SubmissionPublicOut


class CustomerSubmissionsResponse(BaseModel):
    submissions: List[SubmissionPublicOut]
