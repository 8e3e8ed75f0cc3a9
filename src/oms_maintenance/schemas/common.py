"""
Common Schemas

Operation results and values extracted from management service responses.
"""

from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel

from ..errors import ErrorCode


@dataclass(frozen=True)
class Result:
    """Outcome of a maintenance operation: a payload or an error code."""
    value: Any = None
    error: Optional[ErrorCode] = None

    @classmethod
    def success(cls, value: Any = "") -> "Result":
        return cls(value=value)

    @classmethod
    def failure(cls, error: ErrorCode) -> "Result":
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        """Process exit code for this result (0 on success)."""
        return 0 if self.error is None else int(self.error)


class EndpointUpdate(BaseModel):
    """Certificate update endpoint announced by the service."""
    endpoint: str
    renewal_requested: bool = False
