"""
Billing Kernel - recurring-billing state for subscription customers.

A cycle-aware billing engine with:
- Month-keyed reset of paid customers (at most once per cycle)
- Time-based auto-expiry from the last recharge date
- Append-only customer history
- Scoped snapshot backup and restore
"""

__version__ = "0.1.0"
