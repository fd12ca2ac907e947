from __future__ import annotations
from dataclasses import dataclass
from enum import Enum


class FetchFailureKind(str, Enum):
    TIMEOUT = "timeout"
    HTTP_STATUS = "http_status"
    TRANSPORT = "transport"


@dataclass
class SourceFetchError(Exception):
    message: str
    kind: FetchFailureKind = FetchFailureKind.TRANSPORT
    status_code: int | None = None

    def __str__(self) -> str:
        return f"{self.message} (kind={self.kind.value})"

    @property
    def attempt_status(self) -> str:
        """Status tag recorded in the per-source attempt log."""
        if self.kind == FetchFailureKind.TIMEOUT:
            return "timeout"
        if self.kind == FetchFailureKind.HTTP_STATUS and self.status_code is not None:
            return f"error_{self.status_code}"
        return "error"
