import secrets
import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from filedrop.core.database import Base
from filedrop.utils.dates import utcnow
from filedrop.utils.formatting import format_file_size


def generate_token() -> str:
    return secrets.token_urlsafe(24)


class UploadLink(Base):
    __tablename__ = "upload_links"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String(64), unique=True, nullable=False, index=True, default=generate_token)
    name = Column(String, nullable=False)
    max_file_size = Column(Integer, nullable=False)
    remaining_quota = Column(Integer, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    uploads = relationship("FileUpload", back_populates="link", passive_deletes=True)

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or utcnow()) > self.expires_at

    def is_valid(self, now: datetime | None = None) -> bool:
        return bool(self.is_active) and not self.is_expired(now) and self.remaining_quota > 0

    def can_accept_file(self, file_size: int, now: datetime | None = None) -> bool:
        return self.is_valid(now) and self.remaining_quota >= file_size

    @property
    def used_quota(self) -> int:
        return self.max_file_size - self.remaining_quota

    @property
    def formatted_max_size(self) -> str:
        return format_file_size(self.max_file_size)

    @property
    def formatted_remaining(self) -> str:
        return format_file_size(self.remaining_quota)

    def __repr__(self) -> str:
        return f"<UploadLink {self.id} {self.name!r} remaining={self.remaining_quota}>"
