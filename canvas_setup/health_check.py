# canvas_setup/health_check.py
# -*- coding: utf-8 -*-
"""
Standalone health check for an installed Canvas LMS host.

Installed by the installer as /usr/local/bin/canvas-health-check, which runs
this module with the deployment's domain and protocol. It checks the managed
services, database connectivity, Redis, Apache over local HTTP(S), the login
page and recent errors in the production log. Exits 1 if any check FAILs.
"""

import argparse
import logging
import re
import subprocess
import sys
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import psycopg
import requests
import urllib3
import yaml

from canvas_setup import config as static_config
from canvas_setup.config_models import (
    CANVAS_INSTALL_DIR_DEFAULT,
    PGDATABASE_DEFAULT,
)
from common.command_utils import run_elevated_command
from common.core_utils import colourise
from common.system_utils import get_service_state
from configure.redis_configurator import redis_ping

module_logger = logging.getLogger(__name__)

STATUS_OK = "OK"
STATUS_WARN = "WARN"
STATUS_FAIL = "FAIL"

STATUS_LEVELS = {
    STATUS_OK: logging.INFO,
    STATUS_WARN: logging.WARNING,
    STATUS_FAIL: logging.ERROR,
}

LOG_ERROR_PATTERN = re.compile(r" (ERROR|FATAL|Failed|Traceback|PG::|Errno::)", re.IGNORECASE)
LOG_TAIL_LINES = 200
LOG_MATCH_LIMIT = 10
LOGIN_OK_STATUSES = (200, 302)
REQUEST_TIMEOUT = 15


@dataclass
class CheckResult:
    name: str
    status: str
    detail: str = ""


def check_services(services: Sequence[str]) -> List[CheckResult]:
    results = []
    for service in services:
        state = get_service_state(service, None, module_logger)
        status = STATUS_OK if state == "active" else STATUS_FAIL
        results.append(CheckResult(f"service {service}", status, state))
    return results


def read_database_config(app_root: Path) -> dict:
    """Production section of config/database.yml."""
    data = yaml.safe_load((app_root / "config" / "database.yml").read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not isinstance(data.get("production"), dict):
        raise ValueError("database.yml has no production section")
    return data["production"]


def check_database(app_root: Path, database: str) -> CheckResult:
    name = f"database {database}"
    try:
        db = read_database_config(app_root)
    except (OSError, yaml.YAMLError, ValueError) as e:
        return CheckResult(name, STATUS_FAIL, f"cannot read database.yml: {e}")
    try:
        with psycopg.connect(
            host=db.get("host", "localhost"),
            dbname=db.get("database", database),
            user=db.get("username"),
            password=db.get("password"),
            connect_timeout=10,
        ) as conn:
            conn.execute("SELECT 1")
    except psycopg.Error as e:
        return CheckResult(name, STATUS_FAIL, str(e).strip())
    return CheckResult(name, STATUS_OK, "connection succeeded")


def check_redis() -> CheckResult:
    if redis_ping(None, module_logger):
        return CheckResult("redis", STATUS_OK, "PONG")
    return CheckResult("redis", STATUS_FAIL, "no PONG from redis-cli ping")


def check_apache(protocol: str) -> CheckResult:
    name = f"apache {protocol}://localhost"
    try:
        response = requests.head(
            f"{protocol}://localhost",
            timeout=REQUEST_TIMEOUT,
            allow_redirects=False,
            verify=False,
        )
    except requests.RequestException as e:
        return CheckResult(name, STATUS_FAIL, str(e))
    server = response.headers.get("Server", "")
    if "apache" not in server.lower():
        return CheckResult(name, STATUS_WARN, f"HTTP {response.status_code}, Server header '{server}'")
    return CheckResult(name, STATUS_OK, f"HTTP {response.status_code}")


def check_login(protocol: str, domain: str, login_path: str) -> CheckResult:
    url = f"{protocol}://{domain}{login_path}"
    try:
        response = requests.get(
            url, timeout=REQUEST_TIMEOUT, allow_redirects=True, verify=False
        )
    except requests.RequestException as e:
        return CheckResult(f"login {url}", STATUS_FAIL, str(e))
    status = STATUS_OK if response.status_code in LOGIN_OK_STATUSES else STATUS_FAIL
    return CheckResult(f"login {url}", status, f"HTTP {response.status_code}")


def read_log_tail(log_file: Path, tail: int = LOG_TAIL_LINES) -> List[str]:
    """
    Last `tail` lines of the log. The log is only readable by the service
    user, so an unprivileged caller falls back to `sudo tail`.
    """
    try:
        with open(log_file, "r", encoding="utf-8", errors="replace") as f:
            return list(deque(f, maxlen=tail))
    except PermissionError:
        result = run_elevated_command(
            ["tail", "-n", str(tail), str(log_file)],
            None,
            capture_output=True,
            current_logger=module_logger,
        )
        return (result.stdout or "").splitlines(keepends=True)


def recent_log_errors(
    log_file: Path, tail: int = LOG_TAIL_LINES, limit: int = LOG_MATCH_LIMIT
) -> List[str]:
    """Last `limit` error/warning lines among the last `tail` lines of the log."""
    last_lines = read_log_tail(log_file, tail)
    matches = [line.rstrip("\n") for line in last_lines if LOG_ERROR_PATTERN.search(line)]
    return matches[-limit:]


def check_log(log_file: Path) -> CheckResult:
    name = f"log {log_file}"
    try:
        errors = recent_log_errors(log_file)
    except (OSError, subprocess.CalledProcessError) as e:
        return CheckResult(name, STATUS_WARN, f"cannot read log: {e}")
    if not errors:
        return CheckResult(name, STATUS_OK, "no recent errors")
    return CheckResult(name, STATUS_WARN, "recent errors:\n    " + "\n    ".join(errors))


def run_health_check(args: argparse.Namespace) -> List[CheckResult]:
    app_root = Path(args.app_root)
    services = [
        static_config.POSTGRES_SERVICE,
        static_config.REDIS_SERVICE,
        static_config.APACHE_SERVICE,
        args.worker_service,
    ]
    results = check_services(services)
    results.append(check_database(app_root, args.database))
    results.append(check_redis())
    results.append(check_apache("http"))
    if args.protocol == "https":
        results.append(check_apache("https"))
    results.append(check_login(args.protocol, args.domain, args.login_path))
    results.append(check_log(app_root / "log" / "production.log"))
    return results


def format_result(result: CheckResult, use_colour: bool) -> str:
    label = f"[{result.status:<4}]"
    if use_colour:
        label = colourise(label, STATUS_LEVELS[result.status])
    return f"{label} {result.name}: {result.detail}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Check the health of a Canvas LMS installation."
    )
    parser.add_argument("--domain", default="localhost", help="Public domain of the Canvas site.")
    parser.add_argument("--protocol", choices=["http", "https"], default="http")
    parser.add_argument("--app-root", default=str(CANVAS_INSTALL_DIR_DEFAULT))
    parser.add_argument("--database", default=PGDATABASE_DEFAULT)
    parser.add_argument("--worker-service", default="canvas_delayed_jobs")
    parser.add_argument("--login-path", default="/login/canvas")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    use_colour = sys.stdout.isatty()

    print(f"Canvas LMS health check for {args.protocol}://{args.domain}")
    results = run_health_check(args)
    for result in results:
        print(format_result(result, use_colour))

    failed = [r for r in results if r.status == STATUS_FAIL]
    if failed:
        print(f"{len(failed)} check(s) failed.")
        return 1
    print("All checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
