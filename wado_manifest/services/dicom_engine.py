"""
DICOM Engine: instance parsing and patient hierarchy grouping.

Uses pydicom to read instances and reduces each one to the flat set of
attributes a manifest needs. Flat records are then grouped back into the
Patient → Study → Series → Instance hierarchy rendered by the manifest builder.
"""

import logging
from io import BytesIO
from typing import Any, Iterable

import pydicom
from pydicom.dataset import Dataset

from wado_manifest.models.manifest import Patient, Series, SopInstance, Study

logger = logging.getLogger(__name__)

# Tags extracted into index columns
MANIFEST_TAGS = {
    "PatientID": "patient_id",
    "IssuerOfPatientID": "issuer_of_patient_id",
    "PatientName": "patient_name",
    "PatientBirthDate": "patient_birth_date",
    "PatientSex": "patient_sex",
    "StudyInstanceUID": "study_instance_uid",
    "StudyDescription": "study_description",
    "StudyDate": "study_date",
    "StudyTime": "study_time",
    "AccessionNumber": "accession_number",
    "StudyID": "study_id",
    "ReferringPhysicianName": "referring_physician_name",
    "SeriesInstanceUID": "series_instance_uid",
    "SeriesDescription": "series_description",
    "SeriesNumber": "series_number",
    "Modality": "modality",
    "SOPInstanceUID": "sop_instance_uid",
    "SOPClassUID": "sop_class_uid",
    "InstanceNumber": "instance_number",
}

_INTEGER_TAGS = ("SeriesNumber", "InstanceNumber")
_PERSON_NAME_TAGS = ("PatientName", "ReferringPhysicianName")


def parse_dicom(data: bytes) -> Dataset:
    """Parse raw bytes into a pydicom Dataset."""
    return pydicom.dcmread(BytesIO(data), force=True)


def validate_required_attributes(ds: Dataset) -> list[str]:
    """Return one error message per missing identifying attribute."""
    errors = []
    required = [
        ("StudyInstanceUID", "0020000D"),
        ("SeriesInstanceUID", "0020000E"),
        ("SOPInstanceUID", "00080018"),
        ("SOPClassUID", "00080016"),
    ]
    for keyword, tag in required:
        if not hasattr(ds, keyword) or not getattr(ds, keyword):
            errors.append(f"Missing required attribute: {keyword} ({tag})")
    return errors


def extract_manifest_metadata(ds: Dataset) -> dict[str, Any]:
    """Extract manifest tag values into a flat dict for index columns."""
    meta = {}
    for dicom_keyword, column in MANIFEST_TAGS.items():
        value = getattr(ds, dicom_keyword, None)
        if value is None or str(value).strip() == "":
            meta[column] = None
        elif dicom_keyword in _INTEGER_TAGS:
            try:
                meta[column] = int(value)
            except (ValueError, TypeError):
                meta[column] = None
        elif dicom_keyword in _PERSON_NAME_TAGS:
            meta[column] = str(value)
        else:
            meta[column] = str(value).strip()

    file_meta = getattr(ds, "file_meta", None)
    transfer_syntax = getattr(file_meta, "TransferSyntaxUID", None) if file_meta else None
    meta["transfer_syntax_uid"] = str(transfer_syntax) if transfer_syntax else None
    return meta


def build_patients(records: Iterable[Any]) -> list[Patient]:
    """
    Group flat instance records into the patient hierarchy.

    Records are any objects exposing the index column names as attributes
    (ORM rows, namespaces). Patients are keyed by PatientID and issuer;
    the first record seen for a patient, study or series supplies its
    descriptive attributes. Repeated SOP Instance UIDs are collapsed.

    Args:
        records: Instance records in any order

    Returns:
        Patients in order of first appearance
    """
    patients: dict[tuple[str, str | None], Patient] = {}

    for record in records:
        key = (record.patient_id or "", record.issuer_of_patient_id)
        patient = patients.get(key)
        if patient is None:
            patient = Patient(
                patient_id=record.patient_id or "",
                patient_name=record.patient_name,
                issuer_of_patient_id=record.issuer_of_patient_id,
                patient_birth_date=record.patient_birth_date,
                patient_sex=record.patient_sex,
            )
            patients[key] = patient

        study = patient.get_study(record.study_instance_uid)
        if study is None:
            study = Study(
                study_instance_uid=record.study_instance_uid,
                study_description=record.study_description,
                study_date=record.study_date,
                study_time=record.study_time,
                accession_number=record.accession_number,
                study_id=record.study_id,
                referring_physician_name=record.referring_physician_name,
            )
            patient.add_study(study)

        series = study.get_series(record.series_instance_uid)
        if series is None:
            series = Series(
                series_instance_uid=record.series_instance_uid,
                series_description=record.series_description,
                series_number=record.series_number,
                modality=record.modality,
                wado_transfer_syntax_uid=record.transfer_syntax_uid,
            )
            study.add_series(series)

        if series.get_instance(record.sop_instance_uid) is not None:
            logger.debug(f"Skipping duplicate instance {record.sop_instance_uid}")
            continue
        series.add_instance(
            SopInstance(
                sop_instance_uid=record.sop_instance_uid,
                instance_number=record.instance_number,
            )
        )

    return list(patients.values())
