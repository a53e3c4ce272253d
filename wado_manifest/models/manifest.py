"""Manifest object model: archives, connection parameters and the patient hierarchy.

The patient hierarchy renders itself as XML fragments using DICOM keywords as
attribute names, which is the vocabulary the viewer expects inside a query block.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

from wado_manifest.services.xml_writer import add_xml_attribute


class HttpTag(NamedTuple):
    """Custom HTTP header applied by the viewer when querying an archive."""

    key: str
    value: str


class MessageLevel(Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"


@dataclass(frozen=True)
class ViewerMessage:
    """Informational banner shown to the end user alongside (or instead of) images."""

    title: str | None
    message: str | None
    level: MessageLevel = MessageLevel.INFO


@dataclass
class WadoParameters:
    """Connection and query configuration for one WADO archive."""

    base_url: str | None
    archive_id: str | None = None
    web_login: str | None = None
    require_only_sop_instance_uid: bool | None = False
    additional_parameters: str | None = None
    override_dicom_tags: list[int] | None = None
    http_tags: list[HttpTag] = field(default_factory=list)

    def add_http_tag(self, key: str, value: str) -> None:
        if key is not None and value is not None:
            self.http_tags.append(HttpTag(key, value))


# ── Patient hierarchy ──────────────────────────────────────────────


def _number_key(number: int | None) -> tuple[int, int]:
    # Missing numbers sort after numbered entries
    return (1, 0) if number is None else (0, number)


@dataclass
class SopInstance:
    sop_instance_uid: str
    instance_number: int | None = None
    direct_download_file: str | None = None

    def to_xml(self) -> str:
        parts = ["\n<Instance "]
        add_xml_attribute("SOPInstanceUID", self.sop_instance_uid, parts)
        add_xml_attribute("InstanceNumber", self.instance_number, parts)
        add_xml_attribute("DirectDownloadFile", self.direct_download_file, parts)
        parts.append("/>")
        return "".join(parts)


@dataclass
class Series:
    series_instance_uid: str
    series_description: str | None = None
    series_number: int | None = None
    modality: str | None = None
    wado_transfer_syntax_uid: str | None = None
    instances: list[SopInstance] = field(default_factory=list)

    def add_instance(self, instance: SopInstance) -> None:
        self.instances.append(instance)

    def get_instance(self, sop_instance_uid: str) -> SopInstance | None:
        for instance in self.instances:
            if instance.sop_instance_uid == sop_instance_uid:
                return instance
        return None

    def to_xml(self) -> str:
        parts = ["\n<Series "]
        add_xml_attribute("SeriesInstanceUID", self.series_instance_uid, parts)
        add_xml_attribute("SeriesDescription", self.series_description, parts)
        add_xml_attribute("SeriesNumber", self.series_number, parts)
        add_xml_attribute("Modality", self.modality, parts)
        add_xml_attribute("WadoTransferSyntaxUID", self.wado_transfer_syntax_uid, parts)
        parts.append(">")
        for instance in sorted(self.instances, key=lambda i: _number_key(i.instance_number)):
            parts.append(instance.to_xml())
        parts.append("\n</Series>")
        return "".join(parts)


@dataclass
class Study:
    study_instance_uid: str
    study_description: str | None = None
    study_date: str | None = None  # YYYYMMDD
    study_time: str | None = None
    accession_number: str | None = None
    study_id: str | None = None
    referring_physician_name: str | None = None
    series: list[Series] = field(default_factory=list)

    def add_series(self, series: Series) -> None:
        self.series.append(series)

    def get_series(self, series_instance_uid: str) -> Series | None:
        for series in self.series:
            if series.series_instance_uid == series_instance_uid:
                return series
        return None

    def to_xml(self) -> str:
        parts = ["\n<Study "]
        add_xml_attribute("StudyInstanceUID", self.study_instance_uid, parts)
        add_xml_attribute("StudyDescription", self.study_description, parts)
        add_xml_attribute("StudyDate", self.study_date, parts)
        add_xml_attribute("StudyTime", self.study_time, parts)
        add_xml_attribute("AccessionNumber", self.accession_number, parts)
        add_xml_attribute("StudyID", self.study_id, parts)
        add_xml_attribute("ReferringPhysicianName", self.referring_physician_name, parts)
        parts.append(">")
        for series in sorted(self.series, key=lambda s: _number_key(s.series_number)):
            parts.append(series.to_xml())
        parts.append("\n</Study>")
        return "".join(parts)


@dataclass
class Patient:
    patient_id: str
    patient_name: str | None = None
    issuer_of_patient_id: str | None = None
    patient_birth_date: str | None = None
    patient_sex: str | None = None
    studies: list[Study] = field(default_factory=list)

    def add_study(self, study: Study) -> None:
        self.studies.append(study)

    def get_study(self, study_instance_uid: str) -> Study | None:
        for study in self.studies:
            if study.study_instance_uid == study_instance_uid:
                return study
        return None

    def to_xml(self) -> str:
        parts = ["\n<Patient "]
        add_xml_attribute("PatientID", self.patient_id, parts)
        add_xml_attribute("IssuerOfPatientID", self.issuer_of_patient_id, parts)
        add_xml_attribute("PatientName", self.patient_name, parts)
        add_xml_attribute("PatientBirthDate", self.patient_birth_date, parts)
        add_xml_attribute("PatientSex", self.patient_sex, parts)
        parts.append(">")
        # Most recent study first
        ordered = sorted(
            self.studies,
            key=lambda s: (s.study_date or "", s.study_time or ""),
            reverse=True,
        )
        for study in ordered:
            parts.append(study.to_xml())
        parts.append("\n</Patient>")
        return "".join(parts)


@dataclass
class QueryResult:
    """One archive to query: its connection parameters plus matched patients."""

    wado_parameters: WadoParameters
    patients: list[Patient] = field(default_factory=list)
    viewer_message: ViewerMessage | None = None

    @property
    def is_empty(self) -> bool:
        return not self.patients and self.viewer_message is None
