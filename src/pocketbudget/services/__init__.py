"""Service module exports."""

from . import (
    balances,
    classification,
    export_csv,
    import_csv,
    import_excel,
    ledger_service,
    persistence,
    reconciler,
    reports,
    sync,
)

__all__ = [
    "balances",
    "classification",
    "export_csv",
    "import_csv",
    "import_excel",
    "ledger_service",
    "persistence",
    "reconciler",
    "reports",
    "sync",
]
