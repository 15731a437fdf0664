from sqlalchemy import Column, String, DateTime, ForeignKey, Uuid, func
from sqlalchemy.orm import relationship
from warranty.db.session import Base
import uuid


class Customer(Base):
    """Customer login account, one per submission. password_hash is NULL until the customer sets one."""
    __tablename__ = "customers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    submission_id = Column(Uuid, ForeignKey("submissions.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    tc_number = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    submission = relationship("Submission", back_populates="customer")

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)
