"""Pydantic schemas package.

Folder intent:
  common.py   — CamelModel base + HealthResponse (all schemas inherit CamelModel)
  mandate.py  — mandate request DTOs and response models
  agency.py   — agency directory entries
"""
