from datetime import datetime, timedelta

from pydantic import BaseModel, Field, field_validator

from filedrop.utils.dates import utcnow
from filedrop.utils.formatting import megabytes_to_bytes

MAX_EXPIRY_HOURS = 24 * 365 * 100
MAX_QUOTA_MB = 1024 * 1024 * 1024


class CreateLinkForm(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    max_file_size_mb: float = Field(gt=0, le=MAX_QUOTA_MB, allow_inf_nan=False)
    expires_in_hours: int | None = Field(default=None, le=MAX_EXPIRY_HOURS)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v

    @field_validator("expires_in_hours", mode="before")
    @classmethod
    def _empty_is_none(cls, v):
        if v is None:
            return None
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
        return v

    @property
    def max_file_size(self) -> int:
        return megabytes_to_bytes(self.max_file_size_mb)

    def expires_at(self, now: datetime | None = None) -> datetime | None:
        # zero or negative hours means the link never expires
        if not self.expires_in_hours or self.expires_in_hours <= 0:
            return None
        return (now or utcnow()) + timedelta(hours=self.expires_in_hours)


