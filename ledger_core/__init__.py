"""
Ledger Core - Source Package

A double-entry bookkeeping engine for multi-user organizations.

DESIGN PRINCIPLES:
1. Every transaction balances to zero in the org's native currency
2. Validate everything before writing anything
3. Multi-row writes are all-or-nothing
4. Permissions are recomputed on every call, never cached
5. Storage and notification backends are swappable
"""

__version__ = "1.0.0"
__author__ = "Ledger Core Team"
