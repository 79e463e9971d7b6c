from typing import Any, Optional
from pydantic import BaseModel


class ClientResult(BaseModel):
    """Outcome of a call to an external collaborator"""
    ok: bool
    data: Optional[Any] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, data: Any = None) -> "ClientResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "ClientResult":
        return cls(ok=False, error=error or "Unknown error")
