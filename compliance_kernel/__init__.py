"""
Compliance Kernel

Shared primitives for the tax, invoicing and compliance rule engine:
- Exact Decimal money with ISO 4217 precision
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Workflow state-machine value objects
- SQLAlchemy declarative base for persistence adapters
"""

__version__ = "0.1.0"
