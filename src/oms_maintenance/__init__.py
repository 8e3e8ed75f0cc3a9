"""
OMS Agent Maintenance

Keeps the Linux monitoring agent's trust relationship with the OMS agent
management service healthy:
- Generates the self-signed identity certificate used for mutual TLS
- Renews it on request from the service, rolling back on failure
- Sends the topology heartbeat and applies the endpoints it returns
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
