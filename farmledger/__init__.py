"""
Farm Ledger - Source Package

Bookkeeping for a small poultry farm: income and expense transactions,
categories, user accounts and periodic ledger closing.

DESIGN PRINCIPLES:
1. The spreadsheet backend is the source of truth when reachable
2. Reads never block the user - fall back to cache or defaults
3. Writes are optimistic and warn-only on failure
4. Malformed backend data is coerced or skipped, never fatal
5. Every significant action is logged
"""

__version__ = "1.0.0"
__author__ = "Farm Ledger Team"
