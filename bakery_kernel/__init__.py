"""
Bakery Kernel - payment core of the bakery back office.

Provides:
- Fixed-point money values and a single tolerance policy
- Immutable payment and invoice domain records
- Typed exceptions with machine-readable codes
- Structured JSON logging
- SQLAlchemy persistence for invoices, payments, rates and cash movements
"""

__version__ = "0.1.0"
