from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from search.query import QueryDescriptor, SearchMethod, parse_method
from utils import common
from utils.errors import ConfigurationError
from utils.inputs import split_csv, split_csv_ints, to_bool, to_positive_int


DEFAULT_CONFIG_FILENAMES = (
    ".jiraquery.toml",
    ".jiraquery.yaml",
    ".jiraquery.yml",
)

# settings key -> (action input name, plain environment variable)
ENV_INPUTS: Dict[str, Tuple[str, Optional[str]]] = {
    "base_url": ("baseUrl", "JIRA_BASE_URL"),
    "user_email": ("userEmail", "JIRA_USER_EMAIL"),
    "api_token": ("apiToken", "JIRA_API_TOKEN"),
    "jql": ("jql", "JIRA_JQL"),
    "fields": ("fields", None),
    "expand": ("expand", None),
    "properties": ("properties", None),
    "fields_by_keys": ("fieldsByKeys", None),
    "fail_fast": ("failFast", None),
    "reconcile_issues": ("reconcileIssues", None),
    "max_results": ("maxResults", "JIRA_PAGE_SIZE"),
    "limit": ("limit", None),
    "method": ("method", None),
    "ids_only": ("idsOnly", None),
}

# settings key -> environment variable for the [http] table
ENV_HTTP: Dict[str, str] = {
    "request_timeout": "JIRA_API_TIMEOUT",
    "pool_size": "JIRA_HTTP_POOL_SIZE",
    "max_retries": "JIRA_HTTP_MAX_RETRIES",
    "backoff_base": "JIRA_HTTP_BACKOFF_BASE",
}


def _load_toml(path: Path) -> Dict[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    return data or {}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load jira-query configuration.

    Search order:
    1. Explicit config_path (if provided, it must exist)
    2. .jiraquery.(toml|yaml|yml) in current working directory
    """
    candidates: list[Path] = []
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
        candidates.append(path)
    else:
        cwd = Path(os.getcwd())
        candidates.extend(cwd / name for name in DEFAULT_CONFIG_FILENAMES)

    for candidate in candidates:
        if not candidate.exists():
            continue
        suffix = candidate.suffix.lower()
        try:
            if suffix == ".toml":
                return _load_toml(candidate)
            if suffix in (".yaml", ".yml"):
                return _load_yaml(candidate)
        except (OSError, tomllib.TOMLDecodeError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Failed to parse configuration file {candidate}: {exc}") from exc
        raise ConfigurationError(f"Unsupported configuration format: {candidate}")

    return {}


def merge_settings(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge overlay into base, returning a new dict.
    """
    result = dict(base)
    for key, value in overlay.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = merge_settings(result[key], value)
        else:
            result[key] = value
    return result


def settings_from_env() -> Dict[str, Any]:
    search: Dict[str, Any] = {}
    for key, (input_name, env_name) in ENV_INPUTS.items():
        value = common.get_input(input_name, env_name)
        if value:
            search[key] = value
    settings: Dict[str, Any] = {"search": search}
    http = {key: os.getenv(env_name, "").strip() for key, env_name in ENV_HTTP.items()}
    http = {key: value for key, value in http.items() if value}
    if http:
        settings["http"] = http
    output_file = common.get_input("outputFile", "JIRA_OUTPUT_FILE")
    if output_file:
        settings["output"] = {"file": output_file}
    return settings


@dataclass(frozen=True)
class RunSettings:
    base_url: str
    user_email: str
    api_token: str
    query: QueryDescriptor
    method: SearchMethod
    limit: Optional[int]
    ids_only: bool
    output_file: Optional[str]
    timeout: Optional[float]
    request_timeout: float
    max_retries: int
    backoff_base: float
    pool_size: int


def _number(value: Any, name: str, default: Any, cast=float, positive: bool = False):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    try:
        number = cast(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if number < 0:
        raise ConfigurationError(f"{name} must not be negative, got {number}")
    if positive and number == 0:
        raise ConfigurationError(f"{name} must be greater than zero")
    return number


def build_run_settings(settings: Dict[str, Any]) -> RunSettings:
    """Validate merged settings; nothing touches the network before this succeeds."""
    search = settings.get("search", {}) or {}
    http = settings.get("http", {}) or {}
    output = settings.get("output", {}) or {}

    missing = [key for key in ("base_url", "user_email", "api_token", "jql") if not search.get(key)]
    if missing:
        raise ConfigurationError("Missing required input(s): " + ", ".join(missing))

    ids_only = to_bool(search.get("ids_only"))
    fields = ["id"] if ids_only else split_csv(search.get("fields"))
    query = QueryDescriptor(
        jql=str(search["jql"]),
        max_results=to_positive_int(search.get("max_results"), common.PAGE_SIZE, "maxResults"),
        fields=fields,
        expand=split_csv(search.get("expand")),
        properties=split_csv(search.get("properties")),
        fields_by_keys=to_bool(search.get("fields_by_keys")),
        fail_fast=to_bool(search.get("fail_fast")),
        reconcile_issues=split_csv_ints(search.get("reconcile_issues"), "reconcileIssues"),
    )

    return RunSettings(
        base_url=common.normalize_base_url(str(search["base_url"])),
        user_email=str(search["user_email"]),
        api_token=str(search["api_token"]),
        query=query,
        method=parse_method(search.get("method")),
        limit=to_positive_int(search.get("limit"), None, "limit"),
        ids_only=ids_only,
        output_file=output.get("file") or None,
        timeout=_number(http.get("timeout"), "timeout", None) or None,
        request_timeout=_number(http.get("request_timeout"), "request_timeout", common.API_TIMEOUT, positive=True),
        max_retries=_number(http.get("max_retries"), "max_retries", common.HTTP_MAX_RETRIES, int),
        backoff_base=_number(http.get("backoff_base"), "backoff_base", common.HTTP_BACKOFF_BASE),
        pool_size=to_positive_int(http.get("pool_size"), common.HTTP_POOL_SIZE, "pool_size"),
    )
