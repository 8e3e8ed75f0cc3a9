"""
Certificate Manager - Agent Identity Lifecycle

Generates the agent's self-signed identity certificate and renews it with the
management service. The private key is created locally and never leaves the
agent; only the certificate (public material) is sent.

Renewal is transactional: the current pair is held in memory while the new
one is pushed and confirmed, and written back if anything fails.
"""

import base64
import secrets
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from ..errors import (
    CertificateGenerationError,
    CertificatesMissingError,
    ConfigMissingError,
    ErrorCode,
    HTTPStatusError,
    MaintenanceError,
    SendError,
)
from ..logging import get_logger
from ..schemas import Configuration, Result
from ..utils.config import MaintenanceSettings
from ..utils.files import (
    chown_to_agent,
    file_exists_nonempty,
    restrict_permissions,
    write_bytes,
)
from ..utils.http import ServiceClient, temporary_client_cert
from .config_store import ConfigStore

logger = get_logger(__name__)

ORGANIZATIONAL_UNIT = "Linux Monitoring Agent"
ORGANIZATION = "Microsoft"
MAX_SERIAL = 2**16 - 1

PROTOCOL_NAMESPACE = "http://schemas.microsoft.com/WorkloadMonitoring/HealthServiceProtocol/2014/09/"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"
XSD_NAMESPACE = "http://www.w3.org/2001/XMLSchema"


def build_self_signed_identity(
    workspace_id: str,
    agent_guid: str,
    key_size: int = 2048,
    validity_days: int = 365,
    now: Optional[datetime] = None,
) -> Tuple[rsa.RSAPrivateKey, x509.Certificate]:
    """
    Create an RSA key and a self-signed certificate for the agent.

    The subject carries two Common Names (workspace ID, then agent GUID),
    which is how the service binds the certificate to the agent.
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)

    subject = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, workspace_id),
        x509.NameAttribute(NameOID.COMMON_NAME, agent_guid),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, ORGANIZATIONAL_UNIT),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, ORGANIZATION),
    ])

    # Sign a CSR first so the request itself is proven by the key
    csr = (
        x509.CertificateSigningRequestBuilder()
        .subject_name(subject)
        .sign(private_key, hashes.SHA256())
    )

    not_before = now or datetime.now(timezone.utc)
    public_key = csr.public_key()
    certificate = (
        x509.CertificateBuilder()
        .subject_name(csr.subject)
        .issuer_name(csr.subject)
        .public_key(public_key)
        .serial_number(secrets.randbelow(MAX_SERIAL) + 1)
        .not_valid_before(not_before)
        .not_valid_after(not_before + timedelta(days=validity_days))
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False)
        .add_extension(x509.AuthorityKeyIdentifier.from_issuer_public_key(public_key), critical=False)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=False)
        .sign(private_key, hashes.SHA256())
    )
    return private_key, certificate


def certificate_body(cert_pem: bytes) -> str:
    """Base64 DER of a PEM certificate, as the service expects it inline in XML."""
    certificate = x509.load_pem_x509_certificate(cert_pem)
    return base64.b64encode(certificate.public_bytes(serialization.Encoding.DER)).decode("ascii")


def renewal_request_body(cert_pem: bytes) -> str:
    """XML body announcing the new certificate to the renewal endpoint."""
    root = ET.Element("CertificateUpdateRequest", {
        "xmlns:xsi": XSI_NAMESPACE,
        "xmlns:xsd": XSD_NAMESPACE,
        "xmlns": PROTOCOL_NAMESPACE,
    })
    ET.SubElement(root, "NewCertificate").text = certificate_body(cert_pem)
    return '<?xml version="1.0"?>\n' + ET.tostring(root, encoding="unicode")


class IdentitySnapshot:
    """
    Guards the on-disk identity pair across a renewal.

    Captures the current cert/key bytes on entry. Unless ``commit()`` is
    called, the bytes are written back on exit, whatever path left the block.
    """

    def __init__(self, cert_path: Path, key_path: Path):
        self.cert_path = cert_path
        self.key_path = key_path
        self.cert_pem = b""
        self.key_pem = b""
        self.committed = False

    def __enter__(self) -> "IdentitySnapshot":
        self.cert_pem = self.cert_path.read_bytes()
        self.key_pem = self.key_path.read_bytes()
        return self

    def commit(self) -> None:
        self.committed = True

    def restore(self) -> None:
        write_bytes(self.cert_path, self.cert_pem)
        write_bytes(self.key_path, self.key_pem)

    def __exit__(self, exc_type, exc, tb) -> bool:
        if not self.committed:
            logger.info("Restoring the previous certificates")
            self.restore()
        return False


class CertificateManager:
    """
    Generate and renew the agent identity pair.

    Renewal confirms the new pair with a heartbeat through ``confirm_renewal``,
    which the owner wires to ``TopologyClient.heartbeat``. Without it, renewal
    fails before the pair is touched.
    """

    def __init__(
        self,
        cert_path: Union[str, Path],
        key_path: Union[str, Path],
        config_store: ConfigStore,
        client: ServiceClient,
        settings: Optional[MaintenanceSettings] = None,
        confirm_renewal: Optional[Callable[[], Result]] = None,
        verbose: bool = False,
    ):
        self.cert_path = Path(cert_path)
        self.key_path = Path(key_path)
        self.config_store = config_store
        self.client = client
        self.settings = settings or client.settings
        self.confirm_renewal = confirm_renewal
        self.verbose = verbose

    def identity_present(self) -> bool:
        return file_exists_nonempty(self.cert_path) and file_exists_nonempty(self.key_path)

    def generate(self, workspace_id: Optional[str], agent_guid: Optional[str]) -> Result:
        """
        Create the public/private key pair for the agent/workspace.

        Returns the certificate path on success.
        """
        if not workspace_id or not agent_guid:
            logger.error("Both WORKSPACE_ID and AGENT_GUID must be defined to generate certificates")
            return Result.failure(ErrorCode.MISSING_CONFIG)

        logger.info("Generating certificate ...")
        paths = [self.key_path, self.cert_path]

        try:
            # Lock the files down before any key material exists
            restrict_permissions(paths, self.settings.CERT_FILE_MODE)
            chown_to_agent(paths, self.settings.AGENT_USER, self.settings.AGENT_GROUP)

            private_key, certificate = build_self_signed_identity(
                workspace_id,
                agent_guid,
                key_size=self.settings.KEY_SIZE,
                validity_days=self.settings.CERT_VALIDITY_DAYS,
            )
            write_bytes(self.key_path, private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.TraditionalOpenSSL,
                encryption_algorithm=serialization.NoEncryption(),
            ))
            write_bytes(self.cert_path, certificate.public_bytes(serialization.Encoding.PEM))
        except Exception as e:
            error = CertificateGenerationError(f"Error generating certs: {e}")
            logger.error(error.message, extra={"error": error.to_dict()})
            return Result.failure(error.code)

        if not self.identity_present():
            error = CertificateGenerationError("Error generating certs")
            logger.error(error.message, extra={"error": error.to_dict()})
            return Result.failure(error.code)

        return Result.success(str(self.cert_path))

    def _check_renewal_inputs(self, config: Configuration) -> None:
        if not config.has_identity:
            raise ConfigMissingError(
                f"Missing required field from configuration file: {self.config_store.config_path}"
            )
        if not config.certificate_update_endpoint:
            raise ConfigMissingError(
                "Missing CERTIFICATE_UPDATE_ENDPOINT from configuration",
                config_key="CERTIFICATE_UPDATE_ENDPOINT",
            )
        if not self.identity_present():
            raise CertificatesMissingError("No certificates exist; cannot renew certificates")
        if self.confirm_renewal is None:
            raise SendError("No heartbeat is configured to confirm the renewed certificates")

    def renew(self, config: Optional[Configuration] = None) -> Result:
        """Renew the identity pair, restoring the previous pair on any failure."""
        if config is None:
            loaded = self.config_store.load()
            if not loaded.ok:
                logger.error(f"Error loading configuration from {self.config_store.config_path}")
                return loaded
            config = loaded.value

        try:
            self._check_renewal_inputs(config)
        except MaintenanceError as e:
            logger.error(e.message, extra={"error": e.to_dict()})
            return Result.failure(e.code)

        logger.info("Renewing the certificates")

        with IdentitySnapshot(self.cert_path, self.key_path) as snapshot:
            generated = self.generate(config.workspace_id, config.agent_guid)
            if not generated.ok:
                return generated

            sent = self._send_renewal(
                config.certificate_update_endpoint,
                renewal_request_body(self.cert_path.read_bytes()),
                snapshot,
            )
            if not sent.ok:
                return sent

            # One heartbeat for the service to acknowledge the change
            confirmed = self.confirm_renewal()
            if not confirmed.ok:
                logger.error("Error renewing certificate. Restoring old certs.")
                return confirmed

            snapshot.commit()

        logger.info("Certificates successfully renewed")
        return Result.success(str(self.cert_path))

    def _send_renewal(self, endpoint: str, body: str, snapshot: IdentitySnapshot) -> Result:
        """POST the new certificate, authenticated with the pair being replaced."""
        if self.verbose:
            logger.info(f"Generated renew certificates request:\n{body}")

        try:
            with temporary_client_cert(snapshot.cert_pem, snapshot.key_pem) as old_identity:
                response = self.client.post(endpoint, body, old_identity)
        except (SendError, OSError) as e:
            logger.error(f"Error renewing certificate: {e}")
            return Result.failure(ErrorCode.ERROR_SENDING_HTTP)

        if self.verbose:
            logger.info(f"Renew certificates response code: {response.status_code}")

        if response.status_code != 200:
            error = HTTPStatusError("Error renewing certificate.", response.status_code)
            logger.error(f"{error.message} HTTP code {error.status_code}")
            return Result.failure(error.code)

        return Result.success(response.text)
