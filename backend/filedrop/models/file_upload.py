import uuid
from pathlib import Path

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from filedrop.core.database import Base
from filedrop.utils.dates import utcnow
from filedrop.utils.formatting import format_file_size


class FileUpload(Base):
    __tablename__ = "file_uploads"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    link_id = Column(String(36), ForeignKey("upload_links.id", ondelete="RESTRICT"), nullable=False, index=True)
    original_filename = Column(String, nullable=False)
    stored_filename = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    mime_type = Column(String, nullable=False, default="application/octet-stream")
    uploaded_at = Column(DateTime, default=utcnow, nullable=False)
    guest_folder = Column(String(36), nullable=False)

    link = relationship("UploadLink", back_populates="uploads")

    def file_path(self, upload_dir: str | Path) -> Path:
        return Path(upload_dir) / self.guest_folder / self.stored_filename

    @property
    def formatted_size(self) -> str:
        return format_file_size(self.file_size)
