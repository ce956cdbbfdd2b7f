"""
compliance_modules -- thin glue between the pure engines and persistence.

Each sub-package follows the same layout:

    models.py     frozen DTOs and status enums
    workflows.py  lifecycle state machines (compliance_kernel.domain.workflow)
    orm.py        SQLAlchemy companions with to_dto() / from_dto()
    service.py    session-owning services; consult the engines before writes

Sub-packages: ``invoicing``, ``billing``, ``gdpr``.
"""
