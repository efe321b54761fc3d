"""
Persistence adapters.

These modules encapsulate how profile documents are stored and retrieved.
Services depend on the repository instead of touching SQLAlchemy sessions.
"""
