from sqlalchemy import Column, String, Boolean, DateTime, Index, func, text, Uuid
from warranty.db.session import Base
import uuid
import enum


class MasterDataType(str, enum.Enum):
    """The four lookup lists used to classify submissions"""
    BAULEITUNG = "bauleitung"
    VERANTWORTLICHER = "verantwortlicher"
    GEWERK = "gewerk"
    FIRMA = "firma"


def _active_name_index(table_name: str) -> Index:
    # Names only have to be unique among active rows, so a deactivated
    # entry can be re-created later under the same name.
    return Index(
        f"uq_{table_name}_active_name",
        "name",
        unique=True,
        postgresql_where=text("active"),
        sqlite_where=text("active = 1"),
    )


class MasterDataMixin:
    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)
    name = Column(String(200), nullable=False)
    active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<{type(self).__name__}(id={self.id}, name={self.name}, active={self.active})>"


class Bauleitung(MasterDataMixin, Base):
    """Construction supervisor"""
    __tablename__ = "bauleitung"
    __table_args__ = (_active_name_index("bauleitung"),)


class Verantwortlicher(MasterDataMixin, Base):
    """Responsible party"""
    __tablename__ = "verantwortlicher"
    __table_args__ = (_active_name_index("verantwortlicher"),)


class Gewerk(MasterDataMixin, Base):
    """Trade"""
    __tablename__ = "gewerk"
    __table_args__ = (_active_name_index("gewerk"),)


class Firma(MasterDataMixin, Base):
    """Contractor"""
    __tablename__ = "firma"
    __table_args__ = (_active_name_index("firma"),)


MASTER_DATA_MODELS = {
    MasterDataType.BAULEITUNG: Bauleitung,
    MasterDataType.VERANTWORTLICHER: Verantwortlicher,
    MasterDataType.GEWERK: Gewerk,
    MasterDataType.FIRMA: Firma,
}
