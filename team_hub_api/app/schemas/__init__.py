"""
Pydantic schema definitions for API payloads.

Schemas are kept separate from the SQLite tables so that the API
representation can evolve independently of storage.
"""
