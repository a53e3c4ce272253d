"""Test data factories for DICOM instances and manifest entities."""

import uuid
from io import BytesIO

from pydicom.dataset import Dataset, FileDataset
from pydicom.uid import UID, ExplicitVRLittleEndian, generate_uid

from wado_manifest.models.manifest import (
    Patient,
    QueryResult,
    Series,
    SopInstance,
    Study,
    ViewerMessage,
    WadoParameters,
)


class DicomFactory:
    """Factory for creating test DICOM files."""

    @staticmethod
    def create_instance(
        patient_id: str = "TEST-001",
        patient_name: str = "Test^Patient",
        study_uid: str | None = None,
        series_uid: str | None = None,
        sop_uid: str | None = None,
        accession_number: str | None = None,
        study_date: str = "20260115",
        study_time: str = "120000",
        modality: str = "CT",
        series_number: int = 1,
        instance_number: int = 1,
        issuer_of_patient_id: str | None = None,
        transfer_syntax: str | UID = ExplicitVRLittleEndian,
    ) -> bytes:
        """
        Create a minimal DICOM instance (no pixel data).

        Args:
            patient_id: Patient identifier
            patient_name: Patient name in DICOM format (Last^First)
            study_uid: Study Instance UID (generated if None)
            series_uid: Series Instance UID (generated if None)
            sop_uid: SOP Instance UID (generated if None)
            accession_number: Accession number (generated if None)
            study_date: Study date YYYYMMDD
            study_time: Study time HHMMSS
            modality: DICOM modality
            series_number: Series number
            instance_number: Instance number
            issuer_of_patient_id: Issuer of Patient ID (omitted if None)
            transfer_syntax: Transfer syntax UID

        Returns:
            DICOM file as bytes
        """
        study_uid = study_uid or generate_uid()
        series_uid = series_uid or generate_uid()
        sop_uid = sop_uid or generate_uid()
        accession_number = accession_number or f"ACC-{uuid.uuid4().hex[:8]}"

        file_meta = Dataset()
        file_meta.MediaStorageSOPClassUID = "1.2.840.10008.5.1.4.1.1.2"  # CT Image
        file_meta.MediaStorageSOPInstanceUID = sop_uid
        file_meta.TransferSyntaxUID = transfer_syntax
        file_meta.ImplementationClassUID = "1.2.826.0.1.3680043.8.498.1"

        ds = FileDataset(
            filename_or_obj=BytesIO(),
            dataset=Dataset(),
            file_meta=file_meta,
            preamble=b"\x00" * 128,
        )

        ds.SOPClassUID = "1.2.840.10008.5.1.4.1.1.2"
        ds.SOPInstanceUID = sop_uid
        ds.StudyInstanceUID = study_uid
        ds.SeriesInstanceUID = series_uid
        ds.PatientID = patient_id
        ds.PatientName = patient_name
        ds.PatientBirthDate = "19700101"
        ds.PatientSex = "O"
        if issuer_of_patient_id:
            ds.IssuerOfPatientID = issuer_of_patient_id
        ds.StudyDate = study_date
        ds.StudyTime = study_time
        ds.StudyID = "1"
        ds.Modality = modality
        ds.AccessionNumber = accession_number
        ds.StudyDescription = "Test Study"
        ds.SeriesDescription = "Test Series"
        ds.SeriesNumber = series_number
        ds.InstanceNumber = instance_number

        buffer = BytesIO()
        ds.save_as(buffer, enforce_file_format=True)
        return buffer.getvalue()

    @staticmethod
    def create_invalid_dicom(missing_tags: list[str] | None = None) -> bytes:
        """
        Create a DICOM instance lacking some identifying attributes.

        Args:
            missing_tags: List of required tag names to omit

        Returns:
            DICOM file as bytes
        """
        missing_tags = missing_tags or []

        file_meta = Dataset()
        file_meta.MediaStorageSOPClassUID = "1.2.840.10008.5.1.4.1.1.2"
        file_meta.MediaStorageSOPInstanceUID = generate_uid()
        file_meta.TransferSyntaxUID = ExplicitVRLittleEndian
        file_meta.ImplementationClassUID = "1.2.826.0.1.3680043.8.498.1"

        ds = FileDataset(
            filename_or_obj=BytesIO(),
            dataset=Dataset(),
            file_meta=file_meta,
            preamble=b"\x00" * 128,
        )

        if "SOPClassUID" not in missing_tags:
            ds.SOPClassUID = "1.2.840.10008.5.1.4.1.1.2"
        if "SOPInstanceUID" not in missing_tags:
            ds.SOPInstanceUID = generate_uid()
        if "StudyInstanceUID" not in missing_tags:
            ds.StudyInstanceUID = generate_uid()
        if "SeriesInstanceUID" not in missing_tags:
            ds.SeriesInstanceUID = generate_uid()
        ds.PatientID = "TEST-999"
        ds.Modality = "CT"

        buffer = BytesIO()
        ds.save_as(buffer, enforce_file_format=True)
        return buffer.getvalue()


class ManifestFactory:
    """Factory for in-memory manifest entities."""

    @staticmethod
    def create_patient(name: str, patient_id: str | None = None) -> Patient:
        """Create a patient with one study, one series and one instance."""
        patient = Patient(patient_id=patient_id or f"PID-{name}", patient_name=name)
        uid_suffix = ".".join(str(ord(c)) for c in name)
        study = Study(study_instance_uid=f"1.2.3.{uid_suffix}", study_date="20260115")
        series = Series(series_instance_uid=f"{study.study_instance_uid}.1", series_number=1)
        series.add_instance(
            SopInstance(sop_instance_uid=f"{series.series_instance_uid}.1", instance_number=1)
        )
        study.add_series(series)
        patient.add_study(study)
        return patient

    @staticmethod
    def create_archive(
        patient_names: list[str] | None = None,
        archive_id: str | None = "1000",
        base_url: str | None = "http://pacs.local/wado",
        message: ViewerMessage | None = None,
        **params,
    ) -> QueryResult:
        """Create a query result holding one patient per name."""
        wado = WadoParameters(base_url=base_url, archive_id=archive_id, **params)
        patients = [ManifestFactory.create_patient(name) for name in (patient_names or [])]
        return QueryResult(wado_parameters=wado, patients=patients, viewer_message=message)
