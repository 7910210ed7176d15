from app.models.invoice import InvoiceRecord
from app.models.migration_marker import MigrationMarker

__all__ = [
    "InvoiceRecord",
    "MigrationMarker",
]
