"""
Shared, cross-cutting code for the API.

`core/` holds the building blocks every feature uses: the connection pool and
query gateway, the generic partial UPDATE, and schema bootstrap. Keep
feature-specific SQL in the corresponding feature package (e.g. `events/`).
"""
