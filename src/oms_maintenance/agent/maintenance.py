"""
Agent Maintenance

Wires the ConfigStore, CertificateManager, EndpointExtractor and
TopologyClient together for one invocation. Each public method is one
top-level operation and returns a ``Result``.
"""

from pathlib import Path
from typing import Optional, Union

from ..errors import MaintenanceError, NonPrivilegedUserError
from ..logging import get_logger
from ..schemas import Result
from ..utils.config import MaintenanceSettings, is_test_mode
from ..utils.files import current_user_name, is_current_user_root
from ..utils.http import ServiceClient
from .certificates import CertificateManager
from .config_store import ConfigStore
from .endpoints import EndpointExtractor
from .topology import IntervalApplier, TopologyClient
from .topology_request import TopologyRequestBuilder

logger = get_logger(__name__)

PathLike = Union[str, Path]


class Maintenance:
    """
    Maintenance operations for an agent onboarded to a workspace.
    """

    def __init__(
        self,
        config_path: PathLike,
        cert_path: PathLike,
        key_path: PathLike,
        pid_path: Optional[PathLike] = None,
        proxy_path: Optional[PathLike] = None,
        os_info_path: Optional[PathLike] = None,
        install_info_path: Optional[PathLike] = None,
        settings: Optional[MaintenanceSettings] = None,
        request_builder: Optional[TopologyRequestBuilder] = None,
        interval_applier: Optional[IntervalApplier] = None,
        verbose: bool = False,
    ):
        self.settings = settings or MaintenanceSettings()
        self.config_store = ConfigStore(config_path)
        self.client = ServiceClient(self.settings, proxy_path)

        self.certificates = CertificateManager(
            cert_path,
            key_path,
            self.config_store,
            self.client,
            settings=self.settings,
            verbose=verbose,
        )
        self.extractor = EndpointExtractor(
            self.config_store,
            renew=self.certificates.renew,
            settings=self.settings,
        )
        self.topology = TopologyClient(
            self.config_store,
            cert_path,
            key_path,
            self.client,
            self.extractor,
            pid_path=pid_path,
            os_info_path=os_info_path,
            install_info_path=install_info_path,
            request_builder=request_builder,
            interval_applier=interval_applier,
            verbose=verbose,
        )
        # The confirmation heartbeat must not start another renewal
        self.certificates.confirm_renewal = lambda: self.topology.heartbeat(trigger_renewal=False)

    @property
    def agent_user(self) -> str:
        return self.settings.AGENT_USER

    def log_facility(self) -> Optional[str]:
        """LOG_FACILITY from the config file; None if it cannot be read yet."""
        try:
            return self.config_store.read().log_facility
        except (MaintenanceError, OSError):
            return None

    def check_user(self) -> Result:
        """Succeeds for root, the agent user, or a test run."""
        if is_test_mode() or is_current_user_root() or current_user_name() == self.agent_user:
            return Result.success()
        error = NonPrivilegedUserError(self.agent_user)
        logger.error(error.message, extra={"error": error.to_dict()})
        return Result.failure(error.code)

    def heartbeat(self) -> Result:
        return self.topology.heartbeat()

    def generate_certs(self, workspace_id: Optional[str], agent_guid: Optional[str]) -> Result:
        return self.certificates.generate(workspace_id, agent_guid)

    def renew_certs(self) -> Result:
        return self.certificates.renew()

    def apply_endpoints_file(self, xml_path: PathLike, output_path: PathLike) -> Result:
        return self.extractor.apply_endpoints_file(xml_path, output_path)
