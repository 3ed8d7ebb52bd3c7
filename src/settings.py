"""Static locations for notifrelay.

All user-editable settings (endpoint, token, allow list, retention, logging)
live in a single JSON file read through JsonConfigStore, so this module only
decides where that file and the database are.
"""

import os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Config file location; a collaborator can point us elsewhere.
CONFIG_PATH = os.getenv("NOTIFRELAY_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))

# Where to store the SQLite database holding history and delivery outcomes.
DB_PATH = os.getenv("NOTIFRELAY_DB", os.path.join(PROJECT_ROOT, "notifrelay.db"))

# Default log file, relative paths in the logging section resolve here.
DEFAULT_LOG_PATH = "logs/notifrelay.log"
