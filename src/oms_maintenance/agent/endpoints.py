"""
Endpoint Extractor - Server-Directed Configuration

Pulls the certificate update endpoint and the DSC endpoint out of management
service responses and persists them through the ConfigStore. A certificate
update endpoint flagged ``updateCertificate="true"`` also triggers renewal.
"""

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable, Iterator, Optional, Union

from ..errors import (
    AttributeExtractionError,
    CertUpdateEndpointMissingError,
    ErrorCode,
    MaintenanceError,
)
from ..logging import get_logger
from ..schemas import EndpointUpdate, Result
from ..utils.config import MaintenanceSettings
from ..utils.files import chown_to_agent, file_exists_nonempty
from .config_store import ConfigStore

logger = get_logger(__name__)

CERT_UPDATE_TAG = "CertificateUpdateEndpoint"
UPDATE_ATTRIBUTE = "updateCertificate"
DSC_TAG = "DscConfiguration"
DSC_ENDPOINT_TAG = "Endpoint"


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _iter_named(root: ET.Element, name: str) -> Iterator[ET.Element]:
    for element in root.iter():
        if isinstance(element.tag, str) and _local_name(element.tag) == name:
            yield element


def _parse(response: str) -> Optional[ET.Element]:
    try:
        return ET.fromstring(response)
    except ET.ParseError as e:
        logger.debug(f"Response is not well-formed XML: {e}")
        return None


def parse_certificate_update_endpoint(response: str) -> EndpointUpdate:
    """
    Extract the certificate update endpoint and its ``updateCertificate`` flag.

    Raises CertUpdateEndpointMissingError when no endpoint is present and
    AttributeExtractionError when the flag is absent or not true/false.
    """
    root = _parse(response)
    element = next(_iter_named(root, CERT_UPDATE_TAG), None) if root is not None else None
    endpoint = (element.text or "").strip() if element is not None else ""
    if not endpoint:
        raise CertUpdateEndpointMissingError("Could not extract the update certificate endpoint.")

    update_attr = None
    for name, value in element.attrib.items():
        if _local_name(name) == UPDATE_ATTRIBUTE:
            update_attr = value.strip().lower()
    if update_attr not in ("true", "false"):
        raise AttributeExtractionError(
            "Could not find the updateCertificate tag in OMS Agent management service telemetry response"
        )

    return EndpointUpdate(endpoint=endpoint, renewal_requested=update_attr == "true")


def parse_dsc_endpoint(response: str) -> str:
    """Extract ``DscConfiguration/Endpoint`` with parentheses backslash-escaped."""
    root = _parse(response)
    endpoint = ""
    if root is not None:
        for dsc in _iter_named(root, DSC_TAG):
            element = next(_iter_named(dsc, DSC_ENDPOINT_TAG), None)
            if element is not None and element.text:
                endpoint = element.text.strip()
                break

    if not endpoint:
        raise AttributeExtractionError("Could not extract the DSC endpoint.")

    # The DSC consumer treats bare parentheses specially
    return endpoint.replace("(", "\\(").replace(")", "\\)")


class EndpointExtractor:
    """
    Apply server-directed endpoints to the agent configuration.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        renew: Optional[Callable[[], Result]] = None,
        settings: Optional[MaintenanceSettings] = None,
    ):
        self.config_store = config_store
        self.renew = renew
        self.settings = settings or MaintenanceSettings()

    def apply_certificate_update_endpoint(self, response: str, trigger_renewal: bool = True) -> Result:
        """Persist CERTIFICATE_UPDATE_ENDPOINT and renew the certs if the service asks."""
        try:
            update = parse_certificate_update_endpoint(response)
        except MaintenanceError as e:
            logger.error(e.message, extra={"error": e.to_dict()})
            return Result.failure(e.code)

        stored = self.config_store.update("CERTIFICATE_UPDATE_ENDPOINT", update.endpoint)
        if not stored.ok:
            return stored

        if update.renewal_requested and trigger_renewal and self.renew is not None:
            renewed = self.renew()
            if not renewed.ok:
                return renewed

        return Result.success(update.endpoint)

    def apply_dsc_endpoint(self, response: str) -> Result:
        """Persist DSC_ENDPOINT from the server response."""
        try:
            dsc_endpoint = parse_dsc_endpoint(response)
        except MaintenanceError as e:
            logger.error(e.message, extra={"error": e.to_dict()})
            return Result.failure(e.code)

        stored = self.config_store.update("DSC_ENDPOINT", dsc_endpoint)
        if not stored.ok:
            return stored

        return Result.success(dsc_endpoint)

    def apply_endpoints_file(self, xml_path: Union[str, Path], output_path: Union[str, Path]) -> Result:
        """
        Apply both endpoints from a response saved by the onboarding script.

        Renewal is never triggered here. The two endpoint values are written
        one per line to ``output_path`` for the onboarding script to read.
        """
        if not file_exists_nonempty(xml_path):
            logger.error(f"Missing endpoints file: {xml_path}")
            return Result.failure(ErrorCode.MISSING_CONFIG_FILE)

        try:
            response = Path(xml_path).read_text(encoding="utf-8")
        except (OSError, ValueError) as e:
            logger.error(f"Error reading endpoints file {xml_path}: {e}")
            return Result.failure(ErrorCode.MISSING_CONFIG_FILE)

        cert_applied = self.apply_certificate_update_endpoint(response, trigger_renewal=False)
        if not cert_applied.ok:
            return cert_applied

        dsc_applied = self.apply_dsc_endpoint(response)
        if not dsc_applied.ok:
            return dsc_applied

        try:
            with open(output_path, "w", encoding="utf-8") as handle:
                handle.write(f"{cert_applied.value}\n{dsc_applied.value}\n")
            chown_to_agent([output_path], self.settings.AGENT_USER, self.settings.AGENT_GROUP)
        except (OSError, LookupError) as e:
            logger.error(f"Error saving endpoints to file: {e}")
            return Result.failure(ErrorCode.ERROR_WRITING_TO_FILE)

        return Result.success(str(output_path))
