from __future__ import annotations

import dataclasses
from typing import Any, Optional


@dataclasses.dataclass(frozen=True)
class DoctorCheck:
    name: str
    passed: bool
    message: str
    check_id: str
    severity: str = "error"
    fix: Optional[str] = None

    @property
    def status(self) -> str:
        if self.passed:
            return "ok"
        return "warning" if self.severity == "warning" else "error"

    def to_dict(self) -> dict[str, Any]:
        return {
            "check_id": self.check_id,
            "name": self.name,
            "status": self.status,
            "message": self.message,
            "fix": self.fix,
        }


@dataclasses.dataclass
class DoctorReport:
    checks: list[DoctorCheck]

    def has_errors(self) -> bool:
        return any(check.status == "error" for check in self.checks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": not self.has_errors(),
            "checks": [check.to_dict() for check in self.checks],
        }
