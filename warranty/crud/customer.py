from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from warranty.models.customer import Customer
from warranty.models.submission import Submission
from warranty.core.security import get_password_hash, verify_password
from warranty.core.config import settings
from uuid import UUID
from typing import Optional, List


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def get_customer_by_id(db: Session, customer_id: UUID) -> Optional[Customer]:
    return db.query(Customer).filter(Customer.id == customer_id).first()


def get_customer_by_submission(db: Session, submission_id: UUID) -> Optional[Customer]:
    return db.query(Customer).filter(Customer.submission_id == submission_id).first()


def find_submission_for_login(db: Session, email: str, tc_number: str) -> Optional[Submission]:
    """
    Most recent submission matching email (case-insensitive) and TC number.

    Used as the credential of the passwordless login.
    """
    return (
        db.query(Submission)
        .filter(
            func.lower(Submission.email) == _normalize_email(email),
            Submission.tc_number == tc_number.strip(),
        )
        .order_by(Submission.created_at.desc())
        .first()
    )


def get_accounts_for_credentials(db: Session, email: str, tc_number: str) -> List[Customer]:
    """Every account opened with this email and TC number, one per submission"""
    return (
        db.query(Customer)
        .filter(
            Customer.email == _normalize_email(email),
            Customer.tc_number == tc_number.strip(),
        )
        .all()
    )


def get_protected_account(db: Session, email: str, tc_number: str) -> Optional[Customer]:
    """
    Account of these credentials that already has a password.

    A password set on one account protects every submission filed with the
    same email and TC number, including later ones.
    """
    for account in get_accounts_for_credentials(db, email, tc_number):
        if account.has_password:
            return account
    return None


def create_for_submission(db: Session, submission: Submission) -> Customer:
    """Create the customer account belonging to a submission"""
    existing = get_customer_by_submission(db, submission.id)
    if existing:
        return existing

    protected = get_protected_account(db, submission.email, submission.tc_number)
    db_customer = Customer(
        submission_id=submission.id,
        email=_normalize_email(submission.email),
        tc_number=submission.tc_number,
        password_hash=protected.password_hash if protected else None,
    )
    db.add(db_customer)
    db.commit()
    db.refresh(db_customer)
    return db_customer


def _set_password_for_credentials(db: Session, customer: Customer, password_hash: str) -> None:
    accounts = get_accounts_for_credentials(db, customer.email, customer.tc_number)
    if customer not in accounts:
        accounts.append(customer)
    for account in accounts:
        account.password_hash = password_hash
    db.commit()
    db.refresh(customer)


def set_initial_password(db: Session, customer: Customer, password: str) -> Customer:
    """First password of an account; refused once a password exists"""
    if customer.has_password or get_protected_account(db, customer.email, customer.tc_number):
        raise ValueError("Passwort wurde bereits festgelegt")
    if len(password) < settings.MIN_PASSWORD_LENGTH:
        raise ValueError(f"Passwort muss mindestens {settings.MIN_PASSWORD_LENGTH} Zeichen haben")

    _set_password_for_credentials(db, customer, get_password_hash(password))
    return customer


def change_password(db: Session, customer: Customer, old_password: str, new_password: str) -> Customer:
    if not verify_password(old_password, customer.password_hash):
        raise ValueError("Aktuelles Passwort ist falsch")
    if len(new_password) < settings.MIN_PASSWORD_LENGTH:
        raise ValueError(f"Passwort muss mindestens {settings.MIN_PASSWORD_LENGTH} Zeichen haben")

    _set_password_for_credentials(db, customer, get_password_hash(new_password))
    return customer


def get_submissions_for_session(
    db: Session,
    email: str,
    tc_number: str,
    password_verified: bool = False,
) -> List[Submission]:
    """
    Submissions made with the session's email address, newest first.

    Submissions behind a password are only listed when the session proved
    that password, i.e. it logged in with one for the same TC number.
    """
    visible = or_(Customer.id.is_(None), Customer.password_hash.is_(None))
    if password_verified:
        visible = or_(visible, Customer.tc_number == tc_number.strip())

    return (
        db.query(Submission)
        .outerjoin(Customer, Customer.submission_id == Submission.id)
        .filter(func.lower(Submission.email) == _normalize_email(email))
        .filter(visible)
        .order_by(Submission.created_at.desc())
        .all()
    )
