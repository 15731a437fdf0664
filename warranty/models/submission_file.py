from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Uuid, func
from sqlalchemy.orm import relationship
from warranty.db.session import Base
import uuid


class SubmissionFile(Base):
    """Metadata and storage URL of one file uploaded with a submission"""
    __tablename__ = "submission_files"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    submission_id = Column(Uuid, ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=False)
    size = Column(Integer, nullable=False)
    url = Column(String(1000), nullable=False)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    submission = relationship("Submission", back_populates="files")

    def __repr__(self):
        return f"<SubmissionFile(id={self.id}, name={self.name})>"
