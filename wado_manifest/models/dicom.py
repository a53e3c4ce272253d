"""SQLAlchemy models for the manifest instance index."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID

from wado_manifest.database import Base


class DicomInstance(Base):
    """Indexed DICOM instance with the attributes a manifest needs."""

    __tablename__ = "dicom_instances"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    archive_id = Column(String(64), nullable=False, index=True)

    # Patient level
    patient_id = Column(String(64), index=True)
    issuer_of_patient_id = Column(String(64))
    patient_name = Column(String(256))
    patient_birth_date = Column(String(8))  # YYYYMMDD
    patient_sex = Column(String(16))

    # Study level
    study_instance_uid = Column(String(128), nullable=False, index=True)
    study_description = Column(String(256))
    study_date = Column(String(8))  # YYYYMMDD
    study_time = Column(String(14))
    accession_number = Column(String(64), index=True)
    study_id = Column(String(16))
    referring_physician_name = Column(String(256))

    # Series level
    series_instance_uid = Column(String(128), nullable=False, index=True)
    series_description = Column(String(256))
    series_number = Column(Integer)
    modality = Column(String(16))
    transfer_syntax_uid = Column(String(128))

    # Instance level
    sop_instance_uid = Column(String(128), nullable=False, unique=True)
    sop_class_uid = Column(String(128))
    instance_number = Column(Integer)

    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_archive_study", "archive_id", "study_instance_uid"),
        Index("ix_patient_issuer", "patient_id", "issuer_of_patient_id"),
    )
