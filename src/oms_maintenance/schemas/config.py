"""
Agent Configuration Schema

Immutable snapshot of the workspace identity and endpoint fields held in the
agent's flat ``KEY=value`` configuration file (omsadmin.conf).
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict

# File key -> Configuration field
CONFIG_KEYS = {
    "WORKSPACE_ID": "workspace_id",
    "AGENT_GUID": "agent_guid",
    "URL_TLD": "url_tld",
    "LOG_FACILITY": "log_facility",
    "CERTIFICATE_UPDATE_ENDPOINT": "certificate_update_endpoint",
    "DSC_ENDPOINT": "dsc_endpoint",
}


class Configuration(BaseModel):
    """Values loaded from the configuration file. Unset keys stay ``None``."""
    model_config = ConfigDict(frozen=True)

    workspace_id: Optional[str] = None
    agent_guid: Optional[str] = None
    url_tld: Optional[str] = None
    log_facility: Optional[str] = None
    certificate_update_endpoint: Optional[str] = None
    dsc_endpoint: Optional[str] = None

    @property
    def has_identity(self) -> bool:
        return bool(self.workspace_id) and bool(self.agent_guid)

    @property
    def service_url(self) -> str:
        """Topology request URL for this workspace."""
        return (
            f"https://{self.workspace_id}.oms.{self.url_tld}/"
            "AgentService.svc/LinuxAgentTopologyRequest"
        )
