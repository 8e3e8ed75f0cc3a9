"""
OMS Agent Maintenance Settings

Provides process-level settings with:
- Environment variable loading (OMS_ prefix)
- Type validation via Pydantic
- Defaults matching the packaged agent (omsagent user, omiusers group)

The per-workspace values (workspace ID, agent GUID, endpoints) do not live
here; they are read from the agent configuration file by ``ConfigStore``.
"""

import os

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Presence of either variable marks a test run and bypasses the user checks
TEST_MODE_ENV_VARS = ("TEST_WORKSPACE_ID", "TEST_SHARED_KEY")


class MaintenanceSettings(BaseSettings):
    """
    Maintenance tool settings.

    Loads from environment variables with OMS_ prefix.

    Usage:
        from oms_maintenance.utils.config import MaintenanceSettings

        settings = MaintenanceSettings(HTTP_TIMEOUT_SECONDS=10)
    """
    model_config = SettingsConfigDict(
        env_prefix='OMS_',
        extra='ignore'
    )

    # ==========================================================================
    # GENERAL
    # ==========================================================================
    ENVIRONMENT: str = Field(default="development", description="Runtime environment: development, production")
    LOG_LEVEL: str = Field(default="DEBUG", description="Logging level: DEBUG, INFO, WARNING, ERROR")

    # ==========================================================================
    # SERVICE ACCOUNT
    # ==========================================================================
    AGENT_USER: str = Field(default="omsagent", description="User owning the generated files")
    AGENT_GROUP: str = Field(default="omiusers", description="Group owning the generated files")

    # ==========================================================================
    # IDENTITY CERTIFICATE
    # ==========================================================================
    KEY_SIZE: int = Field(default=2048, description="RSA key size in bits")
    CERT_VALIDITY_DAYS: int = Field(default=365, description="Self-signed certificate lifetime in days")
    CERT_FILE_MODE: int = Field(default=0o640, description="Permissions applied to the cert/key files")

    # ==========================================================================
    # NETWORKING
    # ==========================================================================
    HTTP_TIMEOUT_SECONDS: float = Field(default=30.0, description="Timeout for each request to the service")
    HTTP_RETRIES: int = Field(default=2, description="Retries on connection errors and 5xx responses")


def is_test_mode() -> bool:
    """True when TEST_WORKSPACE_ID or TEST_SHARED_KEY is set."""
    return any(os.environ.get(name) is not None for name in TEST_MODE_ENV_VARS)
