"""
Backend package for per-user task synchronization.

Holds the session manager, the task sync gateway, the account lifecycle
hooks and their store/identity collaborators, plus a FastAPI service that
exposes the lifecycle hooks for deployments outside Cloud Functions.
"""
