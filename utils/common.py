import base64
import os
from typing import Optional

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

USER_AGENT = "jira-query"
SEARCH_API_PATH = "/rest/api/3/search/jql"
URL_MAX_LENGTH = 1500

# Defaults; JIRA_PAGE_SIZE, JIRA_API_TIMEOUT and JIRA_HTTP_* overrides are
# read as raw strings by config_loader.settings_from_env and validated there.
PAGE_SIZE = 50
API_TIMEOUT = 30.0
HTTP_POOL_SIZE = 10
HTTP_MAX_RETRIES = 3
HTTP_BACKOFF_BASE = 1.0


def get_input(name: str, env_name: Optional[str] = None) -> str:
    """
    Read an input the way a GitHub Actions step receives it (INPUT_<NAME>),
    falling back to a plain environment variable.
    """
    action_key = "INPUT_" + name.replace(" ", "_").upper()
    value = os.getenv(action_key)
    if value is None and env_name:
        value = os.getenv(env_name)
    return (value or "").strip()


def normalize_base_url(base_url: str) -> str:
    return base_url.rstrip("/")


def basic_auth_header(email: str, api_token: str) -> str:
    token = base64.b64encode(f"{email}:{api_token}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"
