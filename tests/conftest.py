"""
Pytest configuration and fixtures.

This file ensures proper path setup for imports and provides an onboarded
agent layout (config file, identity pair, auxiliary files) under tmp_path.
"""

import sys
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

# Add src directory to Python path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from cryptography.hazmat.primitives import serialization  # noqa: E402

from oms_maintenance.agent.certificates import build_self_signed_identity  # noqa: E402
from oms_maintenance.agent.maintenance import Maintenance  # noqa: E402
from oms_maintenance.utils.config import MaintenanceSettings  # noqa: E402

WORKSPACE_ID = "3fa85f64-5717-4562-b3fc-2c963f66afa6"
AGENT_GUID = "9b1deb4d-3b7d-4bad-9bdd-2b0d7b3dcb6d"
URL_TLD = "opinsights.azure.com"
RENEW_ENDPOINT = f"https://{WORKSPACE_ID}.oms.{URL_TLD}/ConfigurationService.Svc/RenewCertificate"
DSC_ENDPOINT = f"https://{WORKSPACE_ID}.agentsvc.azure-automation.net/Accounts/{WORKSPACE_ID}/Nodes(AgentId='{AGENT_GUID}')"
PROTOCOL_NAMESPACE = "http://schemas.microsoft.com/WorkloadMonitoring/HealthServiceProtocol/2014/09/"

CONFIG_TEXT = (
    f"WORKSPACE_ID={WORKSPACE_ID}\n"
    f"AGENT_GUID={AGENT_GUID}\n"
    "LOG_FACILITY=local0\n"
    f"CERTIFICATE_UPDATE_ENDPOINT={RENEW_ENDPOINT}\n"
    f"URL_TLD={URL_TLD}\n"
    "DSC_ENDPOINT=https://old.example/dsc\n"
    f"OMS_ENDPOINT=https://{WORKSPACE_ID}.ods.{URL_TLD}/OperationalData.svc/PostJsonDataItems\n"
    "AZURE_RESOURCE_ID=\n"
)


def topology_response(update="false", endpoint=RENEW_ENDPOINT, dsc_endpoint=DSC_ENDPOINT):
    """Management service response carrying both endpoints."""
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<LinuxAgentTopologyResponse xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance" '
        f'xmlns="{PROTOCOL_NAMESPACE}">'
        f'<CertificateUpdateEndpoint updateCertificate="{update}">{endpoint}</CertificateUpdateEndpoint>'
        f"<DscConfiguration><Endpoint>{dsc_endpoint}</Endpoint><AccountId>{WORKSPACE_ID}</AccountId></DscConfiguration>"
        "</LinuxAgentTopologyResponse>"
    )


def http_response(status_code=200, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


@pytest.fixture(autouse=True)
def no_ownership_handoff(monkeypatch):
    """The agent service account does not exist on test hosts."""
    monkeypatch.setattr("oms_maintenance.utils.files.is_current_user_root", lambda: False)


@pytest.fixture(scope="session")
def existing_identity():
    """A PEM identity pair standing in for the one created at onboarding."""
    private_key, certificate = build_self_signed_identity(WORKSPACE_ID, AGENT_GUID)
    key_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return SimpleNamespace(
        cert_pem=certificate.public_bytes(serialization.Encoding.PEM),
        key_pem=key_pem,
    )


@pytest.fixture
def agent_files(tmp_path, existing_identity):
    """Onboarded agent layout: config, identity pair and auxiliary files."""
    files = SimpleNamespace(
        config=tmp_path / "omsadmin.conf",
        cert=tmp_path / "oms.crt",
        key=tmp_path / "oms.key",
        pid=tmp_path / "omsagent.pid",
        proxy=tmp_path / "proxy.conf",
        os_info=tmp_path / "scx-release",
        install_info=tmp_path / "installinfo.txt",
    )
    files.config.write_text(CONFIG_TEXT)
    files.cert.write_bytes(existing_identity.cert_pem)
    files.key.write_bytes(existing_identity.key_pem)
    files.os_info.write_text("OSName=Ubuntu\nOSVersion=22.04\nOSManufacturer=Canonical Group Limited\n")
    files.install_info.write_text("1.14.19-0 20240101 Release_Build\n")
    return files


@pytest.fixture
def settings():
    return MaintenanceSettings(HTTP_RETRIES=0, HTTP_TIMEOUT_SECONDS=5)


@pytest.fixture
def maintenance(agent_files, settings, monkeypatch):
    monkeypatch.setenv("TEST_WORKSPACE_ID", WORKSPACE_ID)
    return Maintenance(
        agent_files.config,
        agent_files.cert,
        agent_files.key,
        pid_path=agent_files.pid,
        proxy_path=agent_files.proxy,
        os_info_path=agent_files.os_info,
        install_info_path=agent_files.install_info,
        settings=settings,
    )
