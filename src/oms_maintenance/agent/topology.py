"""
Topology Client - Agent Heartbeat

Sends the topology request to the OMS agent management service over mutual
TLS and applies the server-directed configuration found in the response.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional, Union

from ..errors import ErrorCode, HTTPStatusError, SendError
from ..logging import get_logger
from ..schemas import Configuration, Result
from ..utils.files import file_exists_nonempty
from ..utils.http import ServiceClient
from .certificates import certificate_body
from .config_store import ConfigStore
from .endpoints import EndpointExtractor
from .topology_request import (
    AgentTopologyRequestBuilder,
    TopologyRequestBuilder,
    contains_telemetry,
)

logger = get_logger(__name__)

USER_AGENT_PREFIX = "LinuxMonitoringAgent/"

# Applies request intervals from the response body; success payload is a string
IntervalApplier = Callable[[str], Result]


def keep_request_intervals(response: str) -> Result:
    """Interval applier used when none is supplied: leaves intervals unchanged."""
    return Result.success("")


def user_agent(install_info_path: Optional[Union[str, Path]]) -> str:
    """``LinuxMonitoringAgent/<version>``, version from the install-info file (ASCII only)."""
    agent = USER_AGENT_PREFIX
    if file_exists_nonempty(install_info_path):
        lines = Path(install_info_path).read_text(encoding="ascii", errors="ignore").splitlines()
        tokens = lines[0].split() if lines else []
        if tokens:
            agent += tokens[0]
    return agent


class TopologyClient:
    """
    Performs the topology heartbeat for the configured workspace.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        cert_path: Union[str, Path],
        key_path: Union[str, Path],
        client: ServiceClient,
        extractor: EndpointExtractor,
        pid_path: Optional[Union[str, Path]] = None,
        os_info_path: Optional[Union[str, Path]] = None,
        install_info_path: Optional[Union[str, Path]] = None,
        request_builder: Optional[TopologyRequestBuilder] = None,
        interval_applier: Optional[IntervalApplier] = None,
        verbose: bool = False,
    ):
        self.config_store = config_store
        self.cert_path = Path(cert_path)
        self.key_path = Path(key_path)
        self.client = client
        self.extractor = extractor
        self.pid_path = pid_path
        self.os_info_path = os_info_path
        self.install_info_path = install_info_path
        self.request_builder = request_builder or AgentTopologyRequestBuilder()
        self.interval_applier = interval_applier or keep_request_intervals
        self.verbose = verbose

    def _headers(self) -> Dict[str, str]:
        req_date = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f") + "+00:00"
        return {
            "x-ms-Date": req_date,
            "User-Agent": user_agent(self.install_info_path),
            "Accept-Language": "en-US",
        }

    def _build_body(self, config: Configuration) -> str:
        cert_body = certificate_body(self.cert_path.read_bytes())
        try:
            body = self.request_builder.build(
                config.agent_guid, cert_body, self.os_info_path, self.pid_path, telemetry=True
            )
        except Exception as e:
            logger.error(f"Error when appending Telemetry to OMS agent management service topology request: {e}")
            body = self.request_builder.build(
                config.agent_guid, cert_body, self.os_info_path, self.pid_path, telemetry=False
            )

        if not contains_telemetry(body):
            logger.debug("No Telemetry data was appended to OMS agent management service topology request")
        return body

    def heartbeat(self, trigger_renewal: bool = True) -> Result:
        """Perform a topology request against the OMS endpoint."""
        # Reload config in case of updates since the last topology request
        loaded = self.config_store.load()
        if not loaded.ok:
            logger.error(f"Error loading configuration from {self.config_store.config_path}")
            return loaded
        config: Configuration = loaded.value

        if not (config.workspace_id and config.agent_guid and config.url_tld):
            logger.error(f"Missing required field from configuration file: {self.config_store.config_path}")
            return Result.failure(ErrorCode.MISSING_CONFIG)
        if not (file_exists_nonempty(self.cert_path) and file_exists_nonempty(self.key_path)):
            logger.error("Certificates for topology request do not exist")
            return Result.failure(ErrorCode.MISSING_CERTS)

        try:
            body = self._build_body(config)
            headers = self._headers()
        except Exception as e:
            logger.error(f"Error generating the topology request: {e}")
            return Result.failure(ErrorCode.ERROR_SENDING_HTTP)

        if self.verbose:
            logger.info(f"Generated topology request:\n{body}")

        try:
            response = self.client.post(
                config.service_url, body, (self.cert_path, self.key_path), headers=headers
            )
        except SendError as e:
            logger.error(f"Error sending the topology request to OMS agent management service: {e.message}")
            return Result.failure(ErrorCode.ERROR_SENDING_HTTP)

        if self.verbose:
            logger.info(f"OMS agent management service topology request response code: {response.status_code}")

        if response.status_code != 200:
            error = HTTPStatusError(
                "Error sending OMS agent management service topology request.", response.status_code
            )
            logger.error(f"{error.message} HTTP code {error.status_code}")
            return Result.failure(error.code)

        steps = (
            lambda: self.extractor.apply_certificate_update_endpoint(response.text, trigger_renewal),
            lambda: self.extractor.apply_dsc_endpoint(response.text),
            lambda: self.interval_applier(response.text),
        )
        for step in steps:
            applied = step()
            if not applied.ok:
                return applied

        logger.info("OMS agent management service topology request success")
        return Result.success()
