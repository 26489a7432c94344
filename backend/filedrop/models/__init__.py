from .admin import Admin
from .file_upload import FileUpload
from .upload_link import UploadLink

__all__ = ["Admin", "FileUpload", "UploadLink"]
