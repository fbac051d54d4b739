from .confirmation_service import ConfirmationService
from .inventory_service import InventoryService
from .sales_service import SalesService
from .export_service import ExportService
from .reporting_service import ReportingService
from .auth_service import AuthService
from .connectivity_service import ConnectivityService

__all__ = [
    "ConfirmationService",
    "InventoryService",
    "SalesService",
    "ExportService",
    "ReportingService",
    "AuthService",
    "ConnectivityService",
]
