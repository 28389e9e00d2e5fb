"""Data models for scan submission results and batch summaries."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ErrorKind(str, Enum):
    """Outcome class of a single scan submission"""

    SUCCESS = "success"
    AUTH_FAILURE = "auth_failure"
    QUOTA_EXHAUSTED = "quota_exhausted"
    RATE_LIMITED = "rate_limited"
    GENERIC_FAILURE = "generic_failure"


class ApiResult(BaseModel):
    """Raw result of a scan submission as reported by the API

    A result without status_code and message is a success.
    """

    success: bool = True
    status_code: Optional[int] = None
    message: str = ""

    @classmethod
    def ok(cls) -> "ApiResult":
        return cls(success=True)

    @classmethod
    def failure(cls, status_code: Optional[int], message: str) -> "ApiResult":
        return cls(success=False, status_code=status_code, message=message)


class UploadOutcome(BaseModel):
    """Classified result of uploading one item"""

    item: str
    success: bool
    error_kind: ErrorKind = ErrorKind.SUCCESS
    message: str = ""


class FailedItem(BaseModel):
    url: str
    error: str


class BatchSummary(BaseModel):
    """Aggregate result of a batch upload

    ``total`` is the size of the whole batch; in a resumed run
    ``succeeded + failed`` only counts the items attempted this time.
    """

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    last_item: str = ""
    success_items: List[str] = Field(default_factory=list)
    failed_items: List[FailedItem] = Field(default_factory=list)

    def record(self, outcome: UploadOutcome) -> None:
        """Add one outcome to the running totals."""
        self.last_item = outcome.item
        if outcome.success:
            self.succeeded += 1
            self.success_items.append(outcome.item)
        else:
            self.failed += 1
            self.failed_items.append(
                FailedItem(url=outcome.item, error=outcome.message)
            )

    def to_report(self) -> dict:
        """Render the JSON document printed at the end of a batch."""
        return {
            "success": list(self.success_items),
            "failed": [item.model_dump() for item in self.failed_items],
            "summary": {
                "total": self.total,
                "success": self.succeeded,
                "failed": self.failed,
                "lastUrl": self.last_item,
            },
        }
