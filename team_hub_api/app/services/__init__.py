"""
Service layer.

Each service encapsulates the business rules of one domain and talks
to SQLite through ``core.db``.  Endpoints only translate service
results and errors into HTTP responses.
"""
