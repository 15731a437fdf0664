from sqlalchemy import Column, String, Text, Boolean, Date, DateTime, ForeignKey, Enum as SQLEnum, Uuid, func
from sqlalchemy.orm import relationship
import uuid
from enum import Enum
from warranty.db.session import Base


class SubmissionStatus(str, Enum):
    """Submission status enumeration"""
    OPEN = "OFFEN"
    IN_PROGRESS = "IN_BEARBEITUNG"
    DONE = "ERLEDIGT"
    REJECTED = "MANGEL_ABGELEHNT"


class Submission(Base):
    """One customer-reported warranty defect claim"""
    __tablename__ = "submissions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    tc_number = Column(String(100), nullable=False, index=True)

    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    street = Column(String(255), nullable=False)
    postal_code = Column(String(5), nullable=False)
    city = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=False)
    description = Column(Text, nullable=False)
    consent_accepted = Column(Boolean, default=False, nullable=False)
    house_type = Column(String(100), nullable=True)

    bauleitung_id = Column(Uuid, ForeignKey("bauleitung.id", ondelete="SET NULL"), nullable=True, index=True)
    verantwortlicher_id = Column(Uuid, ForeignKey("verantwortlicher.id", ondelete="SET NULL"), nullable=True, index=True)
    gewerk_id = Column(Uuid, ForeignKey("gewerk.id", ondelete="SET NULL"), nullable=True, index=True)
    firma_id = Column(Uuid, ForeignKey("firma.id", ondelete="SET NULL"), nullable=True, index=True)

    status = Column(SQLEnum(SubmissionStatus, name="submissionstatus"), default=SubmissionStatus.OPEN, nullable=False, index=True)
    first_deadline = Column(Date, nullable=True)
    second_deadline = Column(Date, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    acceptance = Column(String(100), nullable=True)

    tracking_token = Column(String(64), unique=True, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    files = relationship(
        "SubmissionFile",
        back_populates="submission",
        cascade="all, delete-orphan",
        order_by="SubmissionFile.uploaded_at",
    )
    bauleitung = relationship("Bauleitung", lazy="joined")
    verantwortlicher = relationship("Verantwortlicher", lazy="joined")
    gewerk = relationship("Gewerk", lazy="joined")
    firma = relationship("Firma", lazy="joined")
    customer = relationship("Customer", back_populates="submission", uselist=False, cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Submission(id={self.id}, tc_number={self.tc_number}, status={self.status})>"
