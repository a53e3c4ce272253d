"""
Manifest Builder: renders archive query results as a Weasis XML manifest.

Two document formats are supported:
- Current (default): a <manifest> root with one <arcQuery> per non-empty archive
  and an optional <presentations> block.
- Legacy (version "1"): a single <wado_query> root built from the first
  non-empty archive only. Kept for older viewers, deprecated.
"""

import logging
from enum import Enum
from typing import Sequence

from wado_manifest.models.manifest import HttpTag, Patient, QueryResult, ViewerMessage
from wado_manifest.services.xml_writer import add_xml_attribute, format_override_tags

logger = logging.getLogger(__name__)

CHARSET_ENCODING = "UTF-8"

# ── Element and attribute names ────────────────────────────────────
TAG_DOCUMENT_ROOT = "manifest"
SCHEMA = (
    'xmlns="http://www.weasis.org/xsd/2.5" '
    'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"'
)
TAG_ARC_QUERY = "arcQuery"
TAG_HTTP_TAG = "httpTag"
TAG_PR_ROOT = "presentations"
TAG_DOCUMENT_MSG = "Message"

TAG_WADO_QUERY = "wado_query"
LEGACY_SCHEMA = (
    'xmlns="http://www.weasis.org/xsd" '
    'xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"'
)

ARCHIVE_ID = "arcId"
BASE_URL = "baseUrl"
WADO_URL = "wadoURL"
WEB_LOGIN = "webLogin"
WADO_ONLY_SOP_UID = "requireOnlySOPInstanceUID"
ADDITIONAL_PARAMETERS = "additionnalParameters"
OVERRIDE_TAGS = "overrideDicomTagsList"

MSG_ATTRIBUTE_TITLE = "title"
MSG_ATTRIBUTE_DESC = "description"
MSG_ATTRIBUTE_LEVEL = "severity"


class ConfigurationError(Exception):
    """Builder constructed without the required inputs."""
    pass


class ManifestVersion(Enum):
    CURRENT = "2"
    LEGACY = "1"

    @classmethod
    def from_selector(cls, selector: "str | ManifestVersion | None") -> "ManifestVersion":
        """
        Resolve a version selector.

        Only the literal "1" (surrounding whitespace ignored) selects the legacy
        format; every other value, None included, selects the current one.
        """
        if isinstance(selector, cls):
            return selector
        if selector is not None and str(selector).strip() == cls.LEGACY.value:
            return cls.LEGACY
        return cls.CURRENT


class ManifestBuilder:
    """
    Assemble a manifest from archive query results.

    Each call to render() writes into its own buffer, so a builder can be
    rendered more than once and always returns the same document for the
    same inputs.

    Patients are rendered sorted by name. By default the sort works on a copy
    and leaves each archive's patient list untouched; pass
    sort_patients_in_place=True to sort the caller's lists as older releases did.
    """

    def __init__(
        self,
        archives: Sequence[QueryResult] | None,
        presentations: Sequence[str] | None = None,
        sort_patients_in_place: bool = False,
    ):
        if archives is None:
            raise ConfigurationError("Archive query results are required to build a manifest")
        self.archives = archives
        self.presentations = presentations
        self.sort_patients_in_place = sort_patients_in_place

    @property
    def charset_encoding(self) -> str:
        return CHARSET_ENCODING

    def render(self, version: "str | ManifestVersion | None" = None) -> str:
        """
        Render the manifest document.

        Args:
            version: Format selector, "1" for the legacy format

        Returns:
            Complete XML document, terminated by a newline
        """
        manifest_version = ManifestVersion.from_selector(version)
        parts = [f'<?xml version="1.0" encoding="{self.charset_encoding}" ?>']

        if manifest_version is ManifestVersion.LEGACY:
            blocks = self._render_legacy(parts)
        else:
            blocks = self._render_current(parts)

        logger.debug(
            f"Rendered {manifest_version.name.lower()} manifest: "
            f"{blocks} query block(s) from {len(self.archives)} archive(s)"
        )
        return "".join(parts)

    # ── Current format ─────────────────────────────────────────────

    def _render_current(self, parts: list[str]) -> int:
        parts.append(f"\n<{TAG_DOCUMENT_ROOT} {SCHEMA}>")

        blocks = 0
        for archive in self.archives:
            if archive.is_empty:
                continue
            params = archive.wado_parameters
            parts.append(f"\n<{TAG_ARC_QUERY} ")
            add_xml_attribute(ARCHIVE_ID, params.archive_id, parts)
            add_xml_attribute(BASE_URL, params.base_url, parts)
            self._add_query_attributes(archive, parts)
            parts.append(">")

            self._add_query_content(archive, parts)

            parts.append(f"\n</{TAG_ARC_QUERY}>")
            blocks += 1

        if self.presentations:
            parts.append(f"\n<{TAG_PR_ROOT}>\n")
            for presentation in self.presentations:
                parts.append(presentation)
                parts.append("\n")
            parts.append(f"\n</{TAG_PR_ROOT}>")

        # Viewers expect a final end of line
        parts.append(f"\n</{TAG_DOCUMENT_ROOT}>\n")
        return blocks

    # ── Legacy format ──────────────────────────────────────────────

    def _render_legacy(self, parts: list[str]) -> int:
        for archive in self.archives:
            if archive.is_empty:
                continue
            params = archive.wado_parameters
            parts.append(f"\n<{TAG_WADO_QUERY} {LEGACY_SCHEMA} ")
            add_xml_attribute(WADO_URL, params.base_url, parts)
            self._add_query_attributes(archive, parts)
            parts.append(">")

            self._add_query_content(archive, parts)

            parts.append(f"\n</{TAG_WADO_QUERY}>\n")
            # Legacy viewers understand a single query only
            return 1

        parts.append(f"\n<{TAG_WADO_QUERY} {LEGACY_SCHEMA} />\n")
        return 0

    # ── Query block content ────────────────────────────────────────

    @staticmethod
    def _add_query_attributes(archive: QueryResult, parts: list[str]) -> None:
        params = archive.wado_parameters
        add_xml_attribute(WEB_LOGIN, params.web_login, parts)
        add_xml_attribute(WADO_ONLY_SOP_UID, params.require_only_sop_instance_uid, parts)
        add_xml_attribute(ADDITIONAL_PARAMETERS, params.additional_parameters, parts)
        add_xml_attribute(OVERRIDE_TAGS, format_override_tags(params.override_dicom_tags), parts)

    def _add_query_content(self, archive: QueryResult, parts: list[str]) -> None:
        self._add_http_tags(archive.wado_parameters.http_tags, parts)
        self._add_viewer_message(archive.viewer_message, parts)
        self._add_patients(archive, parts)

    def _add_patients(self, archive: QueryResult, parts: list[str]) -> None:
        if archive.patients is None:
            return
        patients: list[Patient]
        if self.sort_patients_in_place:
            archive.patients.sort(key=_patient_name_key)
            patients = archive.patients
        else:
            patients = sorted(archive.patients, key=_patient_name_key)

        for patient in patients:
            parts.append(patient.to_xml())

    @staticmethod
    def _add_http_tags(http_tags: Sequence[HttpTag] | None, parts: list[str]) -> None:
        if not http_tags:
            return
        for tag in http_tags:
            parts.append(f"\n<{TAG_HTTP_TAG} ")
            add_xml_attribute("key", tag.key, parts)
            add_xml_attribute("value", tag.value, parts)
            parts.append("/>")

    @staticmethod
    def _add_viewer_message(message: ViewerMessage | None, parts: list[str]) -> None:
        if message is None:
            return
        parts.append(f"\n<{TAG_DOCUMENT_MSG} ")
        add_xml_attribute(MSG_ATTRIBUTE_TITLE, message.title, parts)
        add_xml_attribute(MSG_ATTRIBUTE_DESC, message.message, parts)
        level = message.level.name if message.level is not None else None
        add_xml_attribute(MSG_ATTRIBUTE_LEVEL, level, parts)
        parts.append("/>")


def _patient_name_key(patient: Patient) -> str:
    return patient.patient_name or ""


def build_manifest(
    archives: Sequence[QueryResult],
    presentations: Sequence[str] | None = None,
    version: "str | ManifestVersion | None" = None,
) -> str:
    """Render a manifest in one call."""
    return ManifestBuilder(archives, presentations).render(version)
