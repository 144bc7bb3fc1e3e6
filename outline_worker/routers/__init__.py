"""FastAPI routers for the worker.

Routers are grouped by concern (refine, health) and mounted under ``/api``.
"""
