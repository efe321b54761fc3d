"""
High-level use cases for the profile page service.

Each service module orchestrates repositories/domain helpers to implement
business rules (migrate storage, load and save documents, drive an edit
session, render pages). Routers call these services instead of manipulating
the database directly.
"""
