"""
OMS Agent Maintenance Components

- ConfigStore: reads and updates omsadmin.conf
- CertificateManager: generates and renews the agent identity pair
- EndpointExtractor: applies endpoints announced by the service
- TopologyClient: sends the mutual-TLS topology heartbeat
- Maintenance: wires the above together for one CLI invocation
"""

from .certificates import CertificateManager
from .config_store import ConfigStore
from .endpoints import EndpointExtractor
from .maintenance import Maintenance
from .topology import TopologyClient

__all__ = [
    "CertificateManager",
    "ConfigStore",
    "EndpointExtractor",
    "Maintenance",
    "TopologyClient",
]
