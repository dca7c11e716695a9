# parcel_hub/services/report.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass
class ReconciliationReport:
    """
    Outcome of one bulk import.

    Counts are exact; `errors` / `warnings` keep only the first `max_errors`
    messages each.
    """
    total_rows: int = 0
    processed_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    warning_count: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    progress: List[Tuple[int, int]] = field(default_factory=list)
    created_codes: List[str] = field(default_factory=list)
    cancelled: bool = False
    max_errors: int = 10

    def add_error(self, message: str, count: int = 1) -> None:
        """Count `count` failed rows under one message."""
        self.error_count += count
        if len(self.errors) < self.max_errors:
            self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warning_count += 1
        if len(self.warnings) < self.max_errors:
            self.warnings.append(message)

    def add_success(self, short_code: str) -> None:
        self.success_count += 1
        self.created_codes.append(short_code)

    def add_skipped(self) -> None:
        self.skipped_count += 1

    def advance(self, processed: int) -> Tuple[int, int]:
        # never moves backwards
        self.processed_rows = max(self.processed_rows, min(processed, self.total_rows))
        point = (self.processed_rows, self.total_rows)
        self.progress.append(point)
        return point

    @property
    def completed(self) -> bool:
        return not self.cancelled and self.processed_rows == self.total_rows

    def to_dict(self) -> dict:
        return {
            "total_rows": self.total_rows,
            "processed_rows": self.processed_rows,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "skipped_count": self.skipped_count,
            "warning_count": self.warning_count,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "created_codes": list(self.created_codes),
            "cancelled": self.cancelled,
        }
