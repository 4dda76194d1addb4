"""
Source control for workflow automation entities.

Reconciles the database state of workflows, credentials, variables and tags
with a JSON export committed to a remote git repository.
"""

__version__ = "0.1.0"
