"""Services package — all business logic lives here, never in routers.

Files:
  lifecycle.py    — status state machine (pure)
  permissions.py  — PermissionSet capability grant (pure)
  signatures.py   — dual-signature status derivation (pure)
  commission.py   — commission math (pure)
  mandate.py      — MandateService: applies transitions / permission / signature writes
  batch.py        — BatchMandateCreator: all-or-nothing multi-property creation
  query.py        — filter / sort / board / KPI read views
  agency.py       — active agency directory

Rule: routers call services, services call repositories, repositories call the DB.
      No SQLAlchemy queries in routers. No FastAPI imports in services.
"""
