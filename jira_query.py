from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from time import perf_counter
from typing import Any, Dict, List, Optional, Sequence

from search.client import issue_ids, search_jql
from utils.cancel import CancelScope
from utils.config_loader import RunSettings, build_run_settings, load_config, merge_settings, settings_from_env
from utils.errors import ApiError, JiraQueryError
from utils.export import write_action_outputs, write_results
from utils.secrets import ActionsMasker, SecretMasker, mask_all

LOG = logging.getLogger("JiraQuery")
VERSION = "1.2.0"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        return json.dumps(payload, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """Colored formatter for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'
    DIM = '\033[2m'

    def __init__(self, debug_mode: bool = False):
        self.debug_mode = debug_mode
        fmt = "%(asctime)s %(levelname)s [%(name)s] %(message)s" if debug_mode else "%(message)s"
        super().__init__(fmt)

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        if self.debug_mode:
            original_levelname = record.levelname
            record.levelname = f"{color}{original_levelname}{self.RESET}"
            result = super().format(record)
            record.levelname = original_levelname
            return result

        message = record.getMessage()
        symbol = {
            'DEBUG': ' ',
            'INFO': '✓',
            'WARNING': '⚠',
            'ERROR': '✗',
            'CRITICAL': '✗',
        }.get(record.levelname, '•')
        logger_name = record.name.replace('JiraQuery.', '')
        if logger_name == 'JiraQuery':
            return f"{color}{symbol}{self.RESET} {message}"
        return f"{color}{symbol}{self.RESET} {self.DIM}[{logger_name}]{self.RESET} {message}"


def setup_logging(
    json_mode: bool,
    level: int = logging.INFO,
    debug_mode: bool = False,
    masker: Optional[SecretMasker] = None,
) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if json_mode else ColoredFormatter(debug_mode=debug_mode))
    if masker is not None:
        handler.addFilter(masker)
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    return handler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="jira-query - fetch every issue matching a JQL search")
    parser.add_argument("--config", help="Path to configuration file (.toml/.yaml).")
    parser.add_argument("--base-url", help="Jira site, e.g. https://your-domain.atlassian.net (env: JIRA_BASE_URL).")
    parser.add_argument("--email", help="Account email used with the API token (env: JIRA_USER_EMAIL).")
    parser.add_argument("--jql", help="JQL query to run.")
    parser.add_argument("--fields", help="comma-separated fields to return.")
    parser.add_argument("--expand", help="comma-separated expansions.")
    parser.add_argument("--properties", help="comma-separated issue properties to return.")
    parser.add_argument("--reconcile-issues", help="comma-separated issue ids to reconcile.")
    parser.add_argument("--fields-by-keys", action="store_true", help="Reference fields by key instead of id.")
    parser.add_argument("--fail-fast", action="store_true", help="Ask Jira to fail the whole request on any field error.")
    parser.add_argument("--ids-only", action="store_true", help="Only fetch and return issue ids.")
    parser.add_argument("--max-results", help="Page size requested from Jira (default: 50).")
    parser.add_argument("--limit", help="Maximum total issues to return (default: all).")
    parser.add_argument("--method", help="get, post or auto (default: auto).")
    parser.add_argument("--output-file", help="Write the results as JSON to this path.")
    parser.add_argument("--timeout", type=float, help="Overall deadline for the search in seconds.")
    parser.add_argument("--request-timeout", type=float, help="Per-request timeout in seconds (default: 30).")
    parser.add_argument("--log-json", action="store_true", help="Emit structured JSON logs.")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    parser.add_argument("--version", action="store_true", help="Print version information and exit.")
    return parser


def _cli_settings(args: argparse.Namespace) -> Dict[str, Any]:
    search = {
        "base_url": args.base_url,
        "user_email": args.email,
        "jql": args.jql,
        "fields": args.fields,
        "expand": args.expand,
        "properties": args.properties,
        "reconcile_issues": args.reconcile_issues,
        "max_results": args.max_results,
        "limit": args.limit,
        "method": args.method,
    }
    for flag in ("fields_by_keys", "fail_fast", "ids_only"):
        if getattr(args, flag):
            search[flag] = True
    settings: Dict[str, Any] = {"search": {k: v for k, v in search.items() if v not in (None, "")}}

    http = {"timeout": args.timeout, "request_timeout": args.request_timeout}
    http = {k: v for k, v in http.items() if v is not None}
    if http:
        settings["http"] = http
    if args.output_file:
        settings["output"] = {"file": args.output_file}

    logging_overrides: Dict[str, bool] = {}
    if args.log_json:
        logging_overrides["json"] = True
    if args.debug:
        logging_overrides["debug"] = True
    if logging_overrides:
        settings["logging"] = logging_overrides
    return settings


def run_search(run: RunSettings, cancel: CancelScope) -> List[Dict[str, Any]]:
    LOG.info("Executing JQL search against %s", run.base_url)
    LOG.debug("JQL: %s", run.query.jql)
    if run.ids_only:
        LOG.debug('IDs-only mode enabled; overriding fields to "id"')
    return search_jql(
        run.base_url,
        run.user_email,
        run.api_token,
        run.query,
        method=run.method,
        cap=run.limit,
        cancel=cancel,
        request_timeout=run.request_timeout,
        max_retries=run.max_retries,
        backoff_base=run.backoff_base,
        pool_size=run.pool_size,
    )


def report_results(run: RunSettings, issues: List[Dict[str, Any]]) -> Dict[str, str]:
    outputs: Dict[str, str] = {"issuesCount": str(len(issues))}
    if not issues:
        LOG.info("No issues found; exiting early")
        return outputs

    ids = issue_ids(issues)
    LOG.info("Retrieved %d issues from Jira", len(issues))
    outputs["issuesId"] = ", ".join("" if issue_id is None else issue_id for issue_id in ids)

    if run.output_file:
        path = write_results(ids if run.ids_only else issues, run.output_file)
        LOG.info("Saved issues to file: %s", path)
        outputs["issuesFile"] = str(path)
    return outputs


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"jira-query version {VERSION}")
        return 0

    masker = SecretMasker()
    setup_logging(args.log_json, level=logging.DEBUG if args.debug else logging.INFO, debug_mode=args.debug, masker=masker)

    try:
        settings = merge_settings(settings_from_env(), load_config(args.config))
        settings = merge_settings(settings, _cli_settings(args))
        logging_settings = settings.get("logging", {})
        debug_mode = bool(logging_settings.get("debug", False))
        setup_logging(
            bool(logging_settings.get("json", False)),
            level=logging.DEBUG if debug_mode else logging.INFO,
            debug_mode=debug_mode,
            masker=masker,
        )
        run = build_run_settings(settings)
    except JiraQueryError as exc:
        LOG.error("%s", exc)
        return 1

    sinks = [masker]
    if os.getenv("GITHUB_ACTIONS") == "true":
        sinks.append(ActionsMasker())
    mask_all(sinks, run.api_token, run.user_email)

    cancel = CancelScope(timeout=run.timeout)
    start = perf_counter()
    try:
        issues = run_search(run, cancel)
        outputs = report_results(run, issues)
        write_action_outputs(outputs)
    except KeyboardInterrupt:
        cancel.cancel()
        LOG.error("Search cancelled")
        return 1
    except ApiError as exc:
        LOG.error("Error querying Jira: %s", exc)
        return 1
    except (JiraQueryError, OSError) as exc:
        LOG.error("%s", exc)
        return 1

    LOG.info("Done in %.2fs (%s issues)", perf_counter() - start, outputs["issuesCount"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
