"""
Top-level package for the Team Hub API.

The package provides no public exports; the service itself lives in
the ``app`` subpackage and is importable as ``team_hub_api.app.main``.
"""

__all__ = []
