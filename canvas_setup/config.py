# canvas_setup/config.py
"""
Static constants for the Canvas LMS installer.

This module defines values that never change at runtime: the installer
version, apt package lists, well-known host paths and logging symbols.
Anything an operator may reasonably want to override lives in
canvas_setup.config_models instead.
"""

from pathlib import Path

# Represents the version of the installer logic.
SCRIPT_VERSION: str = "7.0.0"

# Checkout root; the installed health-check wrapper puts it on PYTHONPATH.
INSTALLER_PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent

# --- Package Lists (for apt installation) ---
BASE_PACKAGES: list[str] = [
    "git",
    "curl",
    "gnupg2",
    "postgresql",
    "postgresql-contrib",
    "redis-server",
    "libpq-dev",
    "libxml2-dev",
    "libxslt1-dev",
    "libsqlite3-dev",
    "apache2",
    "libapache2-mod-passenger",
    "imagemagick",
    "libmagickwand-dev",
    "zlib1g-dev",
    "build-essential",
    "libssl-dev",
    "libreadline-dev",
    "libyaml-dev",
    "sqlite3",
    "libcurl4-openssl-dev",
    "libffi-dev",
    "python3-pip",
    "certbot",
    "python3-certbot-apache",
    "pkg-config",
    "libidn11-dev",
    "libxmlsec1-dev",
]

APACHE_MODULES: list[str] = [
    "rewrite",
    "ssl",
    "passenger",
    "headers",
    "proxy",
    "proxy_http",
]

# --- Well-known host paths ---
APACHE_SITES_AVAILABLE_DIR: str = "/etc/apache2/sites-available"
APACHE_LOG_GLOB: str = "/var/log/apache2/canvas_*.log"
LETSENCRYPT_LIVE_DIR: str = "/etc/letsencrypt/live"
SYSTEMD_UNIT_DIR: str = "/etc/systemd/system"
PG_CONF_FILE_TEMPLATE: str = "/etc/postgresql/{version}/main/postgresql.conf"

# OS services the installer manages; order matters for restarts.
POSTGRES_SERVICE: str = "postgresql"
REDIS_SERVICE: str = "redis-server"
APACHE_SERVICE: str = "apache2"

# --- Symbols for Logging ---
SYMBOLS: dict[str, str] = {
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "info": "ℹ️",
    "step": "➡️",
    "gear": "⚙️",
    "package": "📦",
    "rocket": "🚀",
    "sparkles": "✨",
    "critical": "🔥",
    "debug": "🐛",
}
