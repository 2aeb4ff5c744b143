"""billing_kernel.selectors -- read-only queries returning DTOs."""

from billing_kernel.selectors.billing_summary_selector import (
    BillingSummary,
    BillingSummarySelector,
)
from billing_kernel.selectors.customer_selector import CustomerExpiry, CustomerSelector

__all__ = [
    "BillingSummary",
    "BillingSummarySelector",
    "CustomerExpiry",
    "CustomerSelector",
]
