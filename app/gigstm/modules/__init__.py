"""
Feature modules live under this package.

Each module owns its models, service layer and blueprint(s), and reuses the
platform primitives (auth, RBAC, audit, storage, DB session, lifecycle).
"""
