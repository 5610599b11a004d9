"""Enumerations and literals shared across the truck ledger modules.

Centralises domain constants so that the data access layer (DAL), the
business logic layer (BLL), the print workflow and the CLI rely on a single
source of truth for sheet names, document types and user-facing messages.
"""

from __future__ import annotations

from enum import Enum


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Exact status literal returned by the print boundary on success.
PRINT_SUCCESS_STATUS = "Print Success"
PRINT_RETRY_MESSAGE = "Mohon coba kembali"
LOADING_MESSAGE = "Loading..."

CUSTOMER_NOT_REGISTERED_MESSAGE = "Customer tidak terdaftar"


class DocType(str, Enum):
    """Enumerate the printable document types."""

    BON = "bon"
    TAGIHAN = "tagihan"


class UserRole(str, Enum):
    """Enumerate the roles that influence which columns and actions show."""

    ADMIN = "admin"
    USER = "user"
    GUEST = "guest"


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the DAL."""

    CUSTOMERS = "Customers"
    TRUCKS = "Trucks"
    TRUCK_TRANSACTIONS = "TruckTransactions"
    ADDITIONAL_TRUCK_TRANSACTIONS = "AdditionalTruckTransactions"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "PRINT_SUCCESS_STATUS",
    "PRINT_RETRY_MESSAGE",
    "LOADING_MESSAGE",
    "CUSTOMER_NOT_REGISTERED_MESSAGE",
    "DocType",
    "UserRole",
    "SheetName",
]
