"""
Application package initializer.

Each portal domain (teams, applications, links, turnovers, automation)
exposes a router from ``api/v1/endpoints`` and keeps its business logic
in a matching module under ``services``.
"""

from .main import app  # noqa: F401
