"""
Manifest API Router (v2)

Implements:
- Instance indexing: register DICOM instances under a configured archive
- Manifest retrieval: build a Weasis XML manifest for a patient/study/series query
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from wado_manifest.database import get_db
from wado_manifest.models.dicom import DicomInstance
from wado_manifest.models.manifest import MessageLevel, QueryResult, ViewerMessage, WadoParameters
from wado_manifest.services.archive_config import (
    default_manifest_version,
    load_archives_from_config,
)
from wado_manifest.services.dicom_engine import (
    build_patients,
    extract_manifest_metadata,
    parse_dicom,
    validate_required_attributes,
)
from wado_manifest.services.manifest_builder import CHARSET_ENCODING, ManifestBuilder

logger = logging.getLogger(__name__)

router = APIRouter()

# ── Query parameters accepted by the manifest endpoint ─────────────
MANIFEST_QUERY_MAP = {
    "PatientID": "patient_id",
    "00100020": "patient_id",
    "IssuerOfPatientID": "issuer_of_patient_id",
    "00100021": "issuer_of_patient_id",
    "StudyInstanceUID": "study_instance_uid",
    "0020000D": "study_instance_uid",
    "AccessionNumber": "accession_number",
    "00080050": "accession_number",
    "SeriesInstanceUID": "series_instance_uid",
    "0020000E": "series_instance_uid",
}

# Columns that select instances on their own; the issuer only qualifies a PatientID
IDENTIFIER_COLUMNS = {
    "patient_id",
    "study_instance_uid",
    "accession_number",
    "series_instance_uid",
}

NO_STUDY_TITLE = "No study found"
NO_STUDY_MESSAGE = "No study matches the requested identifiers."


def get_archives() -> list[WadoParameters]:
    """Dependency returning the configured archives."""
    return load_archives_from_config()


def _find_archive(archives: list[WadoParameters], archive_id: str | None) -> WadoParameters:
    if archive_id is None:
        return archives[0]
    for archive in archives:
        if archive.archive_id == archive_id:
            return archive
    raise HTTPException(status_code=400, detail=f"Unknown archive: {archive_id}")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Instance Indexing
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@router.post("/instances", status_code=201)
async def index_instance(
    request: Request,
    archive: Optional[str] = Query(None),
    content_type: str = Header(...),
    db: AsyncSession = Depends(get_db),
    archives: list[WadoParameters] = Depends(get_archives),
):
    """
    Index one DICOM instance (application/dicom body) under an archive.

    The instance is not stored; only the attributes needed to describe it in
    a manifest are kept. Without an archive parameter the first configured
    archive is used.
    """
    if "application/dicom" not in content_type.lower():
        raise HTTPException(status_code=415, detail="Content-Type must be application/dicom")

    target = _find_archive(archives, archive)

    body = await request.body()
    try:
        ds = parse_dicom(body)
        errors = validate_required_attributes(ds)
    except Exception as e:
        logger.warning(f"Rejected unreadable DICOM upload: {e}")
        raise HTTPException(status_code=400, detail=f"Invalid DICOM data: {e}")

    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))

    metadata = extract_manifest_metadata(ds)
    sop_uid = metadata["sop_instance_uid"]

    existing = await db.execute(
        select(DicomInstance).where(DicomInstance.sop_instance_uid == sop_uid)
    )
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail=f"Instance already indexed: {sop_uid}")

    db.add(DicomInstance(archive_id=target.archive_id, **metadata))
    await db.commit()

    logger.info(f"Indexed instance {sop_uid} under archive {target.archive_id}")
    return {
        "archiveId": target.archive_id,
        "studyInstanceUID": metadata["study_instance_uid"],
        "seriesInstanceUID": metadata["series_instance_uid"],
        "sopInstanceUID": sop_uid,
    }


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  Manifest Retrieval
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


@router.get("/manifest")
async def get_manifest(
    request: Request,
    version: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    archives: list[WadoParameters] = Depends(get_archives),
):
    """
    Build a manifest for the instances matching the query.

    Query parameters (DICOM keyword or tag):
    - PatientID, IssuerOfPatientID (only together with another identifier)
    - StudyInstanceUID, AccessionNumber, SeriesInstanceUID
    - version: "1" for the legacy single-archive format

    Each configured archive contributes one query block with the instances
    indexed under it. When nothing matches, the first archive carries a
    warning message for the viewer instead.
    """
    criteria = _parse_manifest_params(request.query_params)
    if not criteria.keys() & IDENTIFIER_COLUMNS:
        raise HTTPException(
            status_code=400,
            detail="At least one of PatientID, StudyInstanceUID, AccessionNumber "
            "or SeriesInstanceUID is required; IssuerOfPatientID only narrows a PatientID",
        )

    filters = [getattr(DicomInstance, column) == value for column, value in criteria.items()]
    result = await db.execute(select(DicomInstance).where(and_(*filters)))
    instances = result.scalars().all()

    by_archive: dict[str, list[DicomInstance]] = {}
    for inst in instances:
        by_archive.setdefault(inst.archive_id, []).append(inst)

    query_results = [
        QueryResult(
            wado_parameters=archive,
            patients=build_patients(by_archive.pop(archive.archive_id, [])),
        )
        for archive in archives
    ]

    for archive_id, orphans in by_archive.items():
        logger.warning(
            f"Ignoring {len(orphans)} matching instance(s) indexed under "
            f"unconfigured archive {archive_id}"
        )

    if all(query_result.is_empty for query_result in query_results):
        logger.info(f"No instance matches manifest query {dict(request.query_params)}")
        query_results[0].viewer_message = ViewerMessage(
            NO_STUDY_TITLE, NO_STUDY_MESSAGE, MessageLevel.WARN
        )

    selector = version if version is not None else default_manifest_version()
    builder = ManifestBuilder(query_results)
    return Response(
        content=builder.render(selector),
        media_type=f"application/xml; charset={CHARSET_ENCODING}",
    )


def _parse_manifest_params(query_params) -> dict[str, str]:
    """Translate manifest query parameters into index column criteria."""
    criteria = {}
    for param, value in query_params.items():
        column_name = MANIFEST_QUERY_MAP.get(param)
        if column_name is None or not value:
            continue
        criteria[column_name] = value
    return criteria
