from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass
class NotificationRecord:
    """One row of the inbox table.

    ``row_key`` is the server-assigned ``data-ri`` index and changes after
    every AJAX rebuild; ``secondary_key`` (the notification number) is the
    stable identity used to find the row again.
    """

    row_key: Optional[str] = None
    secondary_key: str = ""
    case_number: str = ""
    summary: str = ""
    court: str = ""
    timestamp: str = ""
    has_attachment_button: bool = False
    page_number: int = 1
    attachment_pdf: str = ""
    attachment_filename: str = ""
    attachment_size: int = 0
    downloaded: bool = False

    @property
    def label(self) -> str:
        return self.secondary_key or self.case_number or f"row {self.row_key}"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "NotificationRecord":
        """Build a record from external input (JSON, CLI fixtures)."""

        case_number = str(data.get("case_number") or "").strip()
        secondary_key = str(data.get("secondary_key") or "").strip()
        if not case_number and not secondary_key:
            raise ValueError("notification needs a case_number or a secondary_key")
        try:
            page_number = max(1, int(data.get("page_number") or 1))
        except (TypeError, ValueError):
            page_number = 1
        row_key = data.get("row_key")
        return cls(
            row_key=str(row_key) if row_key is not None else None,
            secondary_key=secondary_key,
            case_number=case_number,
            summary=str(data.get("summary") or ""),
            court=str(data.get("court") or ""),
            timestamp=str(data.get("timestamp") or ""),
            has_attachment_button=bool(data.get("has_attachment_button", True)),
            page_number=page_number,
        )

    def to_dict(self, *, include_pdf: bool = False) -> Dict[str, Any]:
        payload = asdict(self)
        if not include_pdf:
            payload.pop("attachment_pdf", None)
        return payload


STATUS_SUCCEEDED = "succeeded"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"


@dataclass
class ItemDetail:
    index: int
    row_key: Optional[str]
    secondary_key: str
    case_number: str
    page_number: int
    status: str
    error: str = ""
    error_code: Optional[str] = None
    filename: str = ""
    size: int = 0

    @property
    def success(self) -> bool:
        return self.status != STATUS_FAILED


@dataclass
class ProcessingOutcome:
    succeeded: int = 0
    partial: int = 0
    failed: int = 0
    details: List[ItemDetail] = field(default_factory=list)
    aborted: bool = False
    abort_reason: str = ""
    recoveries: int = 0

    @property
    def total(self) -> int:
        return self.succeeded + self.partial + self.failed

    def record(self, detail: ItemDetail) -> None:
        if detail.status == STATUS_SUCCEEDED:
            self.succeeded += 1
        elif detail.status == STATUS_PARTIAL:
            self.partial += 1
        else:
            self.failed += 1
        self.details.append(detail)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": self.succeeded,
            "partial": self.partial,
            "failed": self.failed,
            "total": self.total,
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
            "recoveries": self.recoveries,
            "details": [asdict(detail) for detail in self.details],
        }


__all__ = [
    "NotificationRecord",
    "ItemDetail",
    "ProcessingOutcome",
    "STATUS_SUCCEEDED",
    "STATUS_PARTIAL",
    "STATUS_FAILED",
]
