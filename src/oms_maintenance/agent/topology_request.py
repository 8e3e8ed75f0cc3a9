"""
Topology Request Builder

Produces the XML body of the topology heartbeat. The heartbeat treats the body
as opaque; anything with a matching ``build`` method can replace the default
builder here.
"""

import platform
import socket
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Union

from ..logging import get_logger
from ..utils.files import file_exists_nonempty
from .certificates import PROTOCOL_NAMESPACE, XSD_NAMESPACE, XSI_NAMESPACE

logger = get_logger(__name__)

# Returns attributes for the <Telemetry> element given the agent pid file
TelemetrySource = Callable[[Optional[str]], Dict[str, str]]


class TopologyRequestBuilder(Protocol):
    def build(
        self,
        agent_guid: str,
        cert_body: str,
        os_info_path: Optional[Union[str, Path]],
        pid_path: Optional[Union[str, Path]],
        telemetry: bool = True,
    ) -> str:
        ...


def read_os_info(os_info_path: Optional[Union[str, Path]]) -> Dict[str, str]:
    """Parse the ``Key=value`` lines of the agent's os-info (scx-release) file."""
    info: Dict[str, str] = {}
    if not file_exists_nonempty(os_info_path):
        return info
    for line in Path(os_info_path).read_text(encoding="utf-8", errors="replace").splitlines():
        key, sep, value = line.partition("=")
        if sep and key.strip():
            info[key.strip()] = value.strip()
    return info


def contains_telemetry(body: Optional[str]) -> bool:
    return bool(body) and "<Telemetry" in body


class AgentTopologyRequestBuilder:
    """Default ``AgentTopologyRequest`` body."""

    def __init__(self, telemetry_source: Optional[TelemetrySource] = None):
        self.telemetry_source = telemetry_source

    def build(
        self,
        agent_guid: str,
        cert_body: str,
        os_info_path: Optional[Union[str, Path]],
        pid_path: Optional[Union[str, Path]],
        telemetry: bool = True,
    ) -> str:
        os_info = read_os_info(os_info_path)

        root = ET.Element("AgentTopologyRequest", {
            "xmlns:xsi": XSI_NAMESPACE,
            "xmlns:xsd": XSD_NAMESPACE,
            "xmlns": PROTOCOL_NAMESPACE,
        })
        # Element name spelling is fixed by the service schema
        ET.SubElement(root, "FullyQualfiedDomainName").text = socket.getfqdn()
        ET.SubElement(root, "EntityTypeId").text = agent_guid
        ET.SubElement(root, "AuthenticationCertificate").text = cert_body

        operating_system = ET.SubElement(root, "OperatingSystem")
        if telemetry and self.telemetry_source is not None:
            attributes = self.telemetry_source(str(pid_path) if pid_path else None)
            ET.SubElement(operating_system, "Telemetry", {k: str(v) for k, v in attributes.items()})
        ET.SubElement(operating_system, "Name").text = os_info.get("OSName", platform.system())
        ET.SubElement(operating_system, "Manufacturer").text = os_info.get("OSManufacturer", "")
        ET.SubElement(operating_system, "ProcessorArchitecture").text = platform.machine()
        ET.SubElement(operating_system, "Version").text = os_info.get("OSVersion", platform.release())

        return '<?xml version="1.0"?>\n' + ET.tostring(root, encoding="unicode")
