# Contract-only models. Keep names/fields stable.
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


Severity = Literal["Critical", "High", "Medium", "Low", "Note"]
TicketKind = Literal["vulnerability", "library"]

_SEVERITIES = {"critical": "Critical", "high": "High", "medium": "Medium", "low": "Low", "note": "Note"}


class Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    detail: str
    source: str
    severity: Severity
    fingerprint: str

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value: object) -> object:
        if isinstance(value, str):
            return _SEVERITIES.get(value.strip().lower(), value)
        return value


class Resolution(BaseModel):
    name: str
    category: Optional[str] = None


class Transition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class Ticket(BaseModel):
    key: str
    project: str = ""
    description: str = ""
    resolution: Optional[Resolution] = None
    status: str = ""
    transitions: List[Transition] = Field(default_factory=list)


def _default_for_null(model: type, value: object, info: ValidationInfo) -> object:
    # The backend sends explicit nulls for fields it has no value for.
    if value is None:
        return model.model_fields[info.field_name].default
    return value


class Trace(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uuid: str
    title: str = ""
    status: str = ""
    severity: str = "Note"

    @field_validator("title", "status", "severity", mode="before")
    @classmethod
    def _null_to_default(cls, value: object, info: ValidationInfo) -> object:
        return _default_for_null(cls, value, info)


class Library(BaseModel):
    model_config = ConfigDict(extra="ignore")

    file_name: str
    file_version: str = ""
    latest_version: str = ""
    hash: str
    grade: str = ""
    total_vulnerabilities: int = 0

    @field_validator("file_version", "latest_version", "grade", "total_vulnerabilities", mode="before")
    @classmethod
    def _null_to_default(cls, value: object, info: ValidationInfo) -> object:
        return _default_for_null(cls, value, info)


class BatchReport(BaseModel):
    stage: str
    succeeded: List[str] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)
    failed: List[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        return (
            f"{self.stage}: succeeded={len(self.succeeded)}"
            f" skipped={len(self.skipped)} failed={len(self.failed)}"
        )
