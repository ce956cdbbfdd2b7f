"""
Module ORM Registry (``compliance_modules._orm_registry``).

Ensures every module ORM model is imported so ``Base.metadata`` holds its
table before ``create_tables()`` runs. Imported lazily by
``compliance_kernel.db.engine.create_tables``.
"""


def import_all_orm_models() -> None:
    """Import every ``compliance_modules.*.orm`` module. Idempotent."""
    import compliance_modules.billing.orm  # noqa: F401
    import compliance_modules.gdpr.orm  # noqa: F401
