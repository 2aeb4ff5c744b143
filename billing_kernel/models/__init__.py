"""
billing_kernel.models -- ORM models.

Importing this package registers every table on ``Base.metadata``.
"""

from billing_kernel.models.catalog import Bundle, Package
from billing_kernel.models.customer import Customer
from billing_kernel.models.customer_history import AuditEntry
from billing_kernel.models.saved_snapshot import SavedSnapshot
from billing_kernel.models.setting import Setting

__all__ = [
    "AuditEntry",
    "Bundle",
    "Customer",
    "Package",
    "SavedSnapshot",
    "Setting",
]
