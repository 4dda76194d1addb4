"""
Source Control Constants

Folder names, file names and defaults shared by the source control services.
The export layout below is a compatibility contract with existing repositories.
"""

# =============================================================================
# Export Layout
# =============================================================================

WORKFLOW_EXPORT_FOLDER = "workflows"
CREDENTIAL_EXPORT_FOLDER = "credentials"
VARIABLES_EXPORT_FILE = "variables.json"
TAGS_EXPORT_FILE = "tags.json"
README_FILE = "README.md"

# =============================================================================
# Git
# =============================================================================

ORIGIN = "origin"
DEFAULT_COMMIT_MESSAGE = "Updated Workfolder"
INITIAL_COMMIT_MESSAGE = "Initial commit"
DEFAULT_AUTHOR_NAME = "Source Control"
DEFAULT_AUTHOR_EMAIL = "source-control@localhost"

# ssh prints this on the first connection to an unknown host; benign
HOST_KEY_ADDED_WARNING = "Warning: Permanently added"

README_CONTENT = """# Source Control Repository

This repository is managed by source control synchronization.

- `workflows/` holds one JSON file per workflow, named by workflow id
- `credentials/` holds one JSON file per credential stub (no secrets)
- `variables.json` holds all variables
- `tags.json` holds all tags and their workflow mappings
"""

# =============================================================================
# Preferences Storage
# =============================================================================

PREFERENCES_CONFIG_CATEGORY = "source_control"
PREFERENCES_CONFIG_KEY = "preferences"

# =============================================================================
# Aggregated Changeset Ids
# =============================================================================

VARIABLES_ITEM_ID = "variables"
TAGS_ITEM_ID = "mappings"
