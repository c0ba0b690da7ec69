"""v1 router package — all /api/v1/* endpoints live here.

Files:
  mandates.py  — mandate lifecycle, permissions, signatures and read views
  agencies.py  — directory of agencies an owner can invite

Rule: Routers only handle HTTP (request parsing, response shaping).
      All business logic delegates to mandate_engine/services/.
"""
