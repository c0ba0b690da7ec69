"""Routers package — HTTP endpoint definitions.

Files:
  deps.py  — shared dependencies (caller identity, tenant)
  v1/      — Versioned API routes (/api/v1/*)
"""
