"""cars/ -- Owner-scoped car listing records.

Layer rule: cars/ imports from core/, storage/ and auth.models only.
It does NOT import from api/.
"""
