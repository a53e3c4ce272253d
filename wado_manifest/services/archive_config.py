"""Configuration loading for WADO archives."""

import json
import logging
import os
from typing import Any

from wado_manifest.models.manifest import WadoParameters

logger = logging.getLogger(__name__)

DEFAULT_WADO_BASE_URL = "http://localhost:8080/dcm4chee-arc/aets/DCM4CHEE/wado"
DEFAULT_ARCHIVE_ID = "1000"


def default_manifest_version() -> str | None:
    """Version selector used when a request does not specify one."""
    return os.getenv("MANIFEST_VERSION")


def load_archives_from_config() -> list[WadoParameters]:
    """
    Load archive connection parameters from the MANIFEST_ARCHIVES environment variable.

    Expected JSON format:
    {
        "archives": [
            {"archive_id": "1000", "base_url": "http://pacs/wado", "web_login": "user:pwd"},
            {"archive_id": "2000", "base_url": "http://other/wado", "enabled": false},
            {
                "archive_id": "3000",
                "base_url": "http://third/wado",
                "require_only_sop_instance_uid": true,
                "additional_parameters": "&transferSyntax=1.2.840.10008.1.2.4.70",
                "override_dicom_tags": ["0x00100010", 1048608],
                "http_tags": {"Authorization": "Bearer ..."}
            }
        ]
    }

    A bare JSON array of archive objects is accepted as well. An entry without
    archive_id is named after its position ("archive-2"); an entry repeating
    an earlier id is skipped. When nothing
    usable is configured, a single archive is built from WADO_BASE_URL and
    WADO_ARCHIVE_ID.

    Returns:
        List of WadoParameters in configuration order (never empty).
    """
    archives: list[WadoParameters] = []

    config_json = os.getenv("MANIFEST_ARCHIVES")
    if config_json:
        archives = _parse_archives(config_json)

    if not archives:
        logger.info("No archives configured in MANIFEST_ARCHIVES, using default archive")
        archives.append(
            WadoParameters(
                base_url=os.getenv("WADO_BASE_URL", DEFAULT_WADO_BASE_URL),
                archive_id=os.getenv("WADO_ARCHIVE_ID", DEFAULT_ARCHIVE_ID),
            )
        )

    return archives


def _parse_archives(config_json: str) -> list[WadoParameters]:
    archives: list[WadoParameters] = []

    try:
        config = json.loads(config_json)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse MANIFEST_ARCHIVES JSON: {e}")
        return archives

    if isinstance(config, list):
        archive_configs = config
    elif isinstance(config, dict):
        archive_configs = config.get("archives", [])
    else:
        logger.error("MANIFEST_ARCHIVES must be a JSON array or object with 'archives' key")
        return archives

    seen_ids: set[str] = set()
    for position, archive_config in enumerate(archive_configs, start=1):
        if not isinstance(archive_config, dict):
            logger.warning(f"Ignoring archive entry that is not an object: {archive_config!r}")
            continue

        if not archive_config.get("enabled", True):
            logger.debug(f"Skipping disabled archive: {archive_config.get('archive_id')}")
            continue

        try:
            archive = _create_archive(archive_config, position)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid archive configuration {archive_config.get('archive_id')}: {e}")
            continue

        if not archive:
            continue

        # Indexed instances are routed to archives by id
        if archive.archive_id in seen_ids:
            logger.error(f"Duplicate archive id {archive.archive_id}, skipping {archive.base_url}")
            continue
        seen_ids.add(archive.archive_id)

        archives.append(archive)
        logger.debug(f"Loaded archive: {archive.archive_id} ({archive.base_url})")

    return archives


def _create_archive(config: dict[str, Any], position: int = 1) -> WadoParameters | None:
    """
    Create WadoParameters from one archive configuration entry.

    Args:
        config: Archive configuration entry
        position: 1-based position of the entry, names archives without an id

    Returns:
        WadoParameters or None if the entry has no base_url
    """
    base_url = config.get("base_url")
    if not base_url:
        logger.error("Archive configuration missing 'base_url', skipping")
        return None

    archive_id = config.get("archive_id")
    if archive_id is None or str(archive_id).strip() == "":
        archive_id = f"archive-{position}"
        logger.warning(f"Archive {base_url} has no 'archive_id', using {archive_id}")

    archive = WadoParameters(
        base_url=base_url,
        archive_id=str(archive_id),
        web_login=config.get("web_login"),
        require_only_sop_instance_uid=bool(config.get("require_only_sop_instance_uid", False)),
        additional_parameters=config.get("additional_parameters"),
        override_dicom_tags=_parse_tags(config.get("override_dicom_tags")),
    )

    http_tags = config.get("http_tags") or {}
    if isinstance(http_tags, dict):
        for key, value in http_tags.items():
            archive.add_http_tag(str(key), str(value))
    else:
        for item in http_tags:
            archive.add_http_tag(str(item["key"]), str(item["value"]))

    return archive


def _parse_tags(tags: Any) -> list[int] | None:
    """Parse override tags given as integers or hex strings ("0x00100010", "00100010")."""
    if not tags:
        return None
    if isinstance(tags, str):
        tags = tags.split(",")

    parsed = []
    for tag in tags:
        if isinstance(tag, int):
            parsed.append(tag)
        else:
            text = str(tag).strip()
            parsed.append(int(text[2:] if text.lower().startswith("0x") else text, 16))
    return parsed
