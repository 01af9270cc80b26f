"""Wire schemas shared by the issuer endpoints and the credential client."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr


class MintIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str | None = None
    # Strict so JSON true or 1.0 is rejected instead of coerced to 1.
    lesson_id: StrictInt | StrictStr | None = Field(default=None, alias="lessonId")
    lesson_title: str | None = Field(default=None, alias="lessonTitle")


class CertificateOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    lesson_id: int | str = Field(alias="lessonId")
    title: str
    recipient: str
    signature: str
    hash: str
    timestamp: int


class MintOut(BaseModel):
    success: bool
    certificate: CertificateOut


class AuditOut(BaseModel):
    total: int
    certificates: list[CertificateOut]
