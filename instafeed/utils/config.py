"""Configuration management for Instafeed."""

from pathlib import Path
from typing import List

# Per-user data directory
DATA_DIR = Path.home() / ".instafeed"

# Secure storage configuration
SECRETS_DIR = DATA_DIR / "secrets"
KEYCHAIN_DB_PATH = SECRETS_DIR / "keychain.db"
KEYCHAIN_DB_URL = f"sqlite:///{KEYCHAIN_DB_PATH}"

# Logs configuration
LOG_DIR = DATA_DIR / "logs"
LOG_FILE = LOG_DIR / "instafeed.log"

# Fetch scheduling
FETCH_INTERVAL = 60.0 * 60.0  # Seconds between automatic fetches
TRIGGER_POLL_INTERVAL = 30.0  # Seconds between automatic trigger checks
MAX_MEDIA_PAGES = 1  # Root pages followed per fetch (single page by default)

# HTTP configuration
CONNECT_TIMEOUT = 10.0  # Seconds
READ_TIMEOUT = 30.0  # Seconds

# Instagram endpoints
INSTAGRAM_AUTHORIZE_URL = "https://api.instagram.com/oauth/authorize"
INSTAGRAM_GRAPH_URL = "https://graph.instagram.com"
INSTAGRAM_MEDIA_URL = f"{INSTAGRAM_GRAPH_URL}/me/media"

# OAuth configuration
OAUTH_SCOPES: List[str] = ["user_profile", "user_media"]
OAUTH_RESPONSE_TYPE = "code"
REDIRECT_PATH = "/authenticated"
TOKEN_EXCHANGE_PATH = "/auth"

# Graph API field selections
MEDIA_FIELDS: List[str] = ["media_url", "thumbnail_url", "timestamp", "media_type", "caption"]
CHILDREN_FIELDS: List[str] = ["media_url", "thumbnail_url", "timestamp", "media_type"]

# Graph API timestamp format, e.g. 2021-08-20T09:14:56+0000
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S%z"

# Canned media served in preview mode
PREVIEW_MEDIA_URLS: List[str] = [
    "https://images.unsplash.com/photo-1624374984719-0d146ea066e1?ixid=MnwxMjA3fDB8MHxwaG90by1wYWdlfHx8fGVufDB8fHx8&ixlib=rb-1.2.1&auto=format&fit=crop&w=750&q=80",
    "https://images.unsplash.com/photo-1628547274104-fca69938d030?ixid=MnwxMjA3fDB8MHxwaG90by1wYWdlfHx8fGVufDB8fHx8&ixlib=rb-1.2.1&auto=format&fit=crop&w=400&q=80",
]
PREVIEW_CAPTION = "Preview image comment"

# App information
APP_NAME = "Instafeed"
