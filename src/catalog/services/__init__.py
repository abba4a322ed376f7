from catalog.services.files import FileService, resolve_content_type, sanitize_filename
from catalog.services.maintenance import MaintenanceService

__all__ = [
    "FileService",
    "MaintenanceService",
    "resolve_content_type",
    "sanitize_filename",
]
