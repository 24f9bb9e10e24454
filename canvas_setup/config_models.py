# canvas_setup/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for installer configuration.

This module defines the structured settings for the installer, including
defaults, type annotations, and descriptions, plus the immutable
InstallConfig that carries the operator-supplied deployment parameters
through every pipeline step.
"""

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from canvas_setup import config as static_config

# --- Default Static Values (can be overridden by config file/env/cli) ---
LOG_PREFIX_DEFAULT: str = "[CANVAS-SETUP]"

CANVAS_REPO_URL_DEFAULT: str = "https://github.com/instructure/canvas-lms.git"
CANVAS_BRANCH_DEFAULT: str = "prod"
CANVAS_INSTALL_DIR_DEFAULT: Path = Path("/var/canvas")
SERVICE_USER_DEFAULT: str = "www-data"

RUBY_VERSION_DEFAULT: str = "3.3.1"
RBENV_REPO_URL_DEFAULT: str = "https://github.com/rbenv/rbenv.git"
RUBY_BUILD_REPO_URL_DEFAULT: str = "https://github.com/rbenv/ruby-build.git"

NODE_MAJOR_VERSION_DEFAULT: int = 20
NODESOURCE_SETUP_URL_TEMPLATE_DEFAULT: str = "https://deb.nodesource.com/setup_{major}.x"

PGUSER_DEFAULT: str = "canvasuser"
PGDATABASE_DEFAULT: str = "canvas_production"

MIN_RAM_MB_DEFAULT: int = 3800
EXPECTED_OS_RELEASE_DEFAULT: str = "24.04"
REQUIRED_COMMANDS_DEFAULT: List[str] = ["curl", "git", "sudo", "systemctl", "apt", "free"]

HEALTH_CHECK_PATH_DEFAULT: str = "/usr/local/bin/canvas-health-check"

SYMBOLS_DEFAULT: Dict[str, str] = dict(static_config.SYMBOLS)

POSTGRESQL_CONF_MARKER_DEFAULT: str = "# Canvas LMS recommended settings"

# Default template for postgresql.conf additions
POSTGRESQL_CONF_ADDITIONS_TEMPLATE_DEFAULT: str = """\

{marker} (adjust based on server resources) - appended by canvas-installer V{script_version}
shared_buffers = 512MB
work_mem = 16MB
maintenance_work_mem = 256MB
effective_cache_size = 1536MB
"""

APACHE_VHOST_TEMPLATE_DEFAULT: str = """\
# Canvas LMS virtual host - written by canvas-installer V{script_version}
<VirtualHost *:80>
    ServerName {server_name}
    ServerAdmin {server_admin}
    DocumentRoot {app_root}/public

    PassengerAppRoot {app_root}
    PassengerAppEnv production
    PassengerRuby {passenger_ruby}

    Header always set X-Content-Type-Options "nosniff"
    Header always set X-Frame-Options "SAMEORIGIN"
    Header always set Referrer-Policy "strict-origin-when-cross-origin"

    <Directory {app_root}/public>
        Options FollowSymLinks
        AllowOverride All
        Require all granted
    </Directory>

    ErrorLog ${{APACHE_LOG_DIR}}/canvas_error.log
    CustomLog ${{APACHE_LOG_DIR}}/canvas_access.log combined
</VirtualHost>
"""

DELAYED_JOBS_UNIT_TEMPLATE_DEFAULT: str = """\
# Written by canvas-installer V{script_version}
[Unit]
Description=Canvas LMS Delayed Jobs Worker
After=network.target postgresql.service redis-server.service apache2.service
Requires=postgresql.service redis-server.service

[Service]
Type=simple
User={service_user}
Group={service_group}
WorkingDirectory={app_root}
Environment=RAILS_ENV=production
Environment=RBENV_ROOT={rbenv_root}
Environment=PATH={rbenv_root}/shims:{rbenv_root}/bin:/usr/local/bin:/usr/bin:/bin
ExecStart={bundle_path} exec script/delayed_job run
Restart=always
RestartSec=10

[Install]
WantedBy=multi-user.target
"""

HEALTH_CHECK_WRAPPER_TEMPLATE_DEFAULT: str = """\
#!/bin/sh
# Canvas LMS health check - installed by canvas-installer V{script_version}
export PYTHONPATH="{project_root}${{PYTHONPATH:+:$PYTHONPATH}}"
exec {python_executable} -m canvas_setup.health_check \\
    --domain {domain} \\
    --protocol {protocol} \\
    --app-root {app_root} \\
    --database {database} \\
    --worker-service {worker_service} \\
    --login-path {login_path} \\
    "$@"
"""

ENV_EXAMPLE_DEFAULTS: Dict[str, str] = {
    "CANVAS_LMS_ADMIN_EMAIL": "admin@example.com",
    "CANVAS_LMS_ADMIN_PASSWORD": "password",
    "CANVAS_LMS_ACCOUNT_NAME": "Canvas LMS",
    "CANVAS_LMS_STATS_COLLECTION": "opt_out",
    "RAILS_ENV": "production",
    "NODE_ENV": "production",
    "ENCRYPTION_KEY": "",
}

YARN_INSTALL_STRATEGIES_DEFAULT: List[List[str]] = [
    ["--frozen-lockfile", "--check-files", "--network-timeout", "600000"],
    ["--network-timeout", "600000"],
    ["--ignore-engines", "--network-timeout", "900000"],
]


class InstallConfig(BaseModel):
    """Operator-supplied deployment parameters, fixed for the whole run."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    domain: str = Field(min_length=1, description="Public domain name of the Canvas site.")
    db_password: str = Field(min_length=1, repr=False, description="Password for the Canvas database role.")
    email_sender: str = Field(min_length=1, description="Sender address for outgoing mail.")
    use_ssl: bool = Field(description="Obtain a Let's Encrypt certificate for the domain.")
    admin_email: str = Field(min_length=1, description="Email of the initial Canvas administrator.")
    admin_password: str = Field(min_length=1, repr=False, description="Password of the initial administrator.")


class InstallInputs(BaseSettings):
    """
    Pre-supplied InstallConfig values for unattended runs.

    Every field is optional; the configuration collector prompts for the
    ones left unset.
    """
    model_config = SettingsConfigDict(env_prefix="CANVAS_", extra="ignore")

    domain: Optional[str] = None
    db_password: Optional[str] = Field(default=None, repr=False)
    email_sender: Optional[str] = None
    use_ssl: Optional[bool] = None
    admin_email: Optional[str] = None
    admin_password: Optional[str] = Field(default=None, repr=False)


class PostgresSettings(BaseSettings):
    """PostgreSQL role, database and tuning settings."""
    model_config = SettingsConfigDict(env_prefix="CANVAS_PG_", extra="ignore")

    user: str = Field(default=PGUSER_DEFAULT, description="Role owning the Canvas database.")
    database: str = Field(default=PGDATABASE_DEFAULT, description="Canvas production database name.")
    conf_marker: str = Field(
        default=POSTGRESQL_CONF_MARKER_DEFAULT,
        description="Marker line identifying an already tuned postgresql.conf.",
    )
    conf_additions_template: str = Field(
        default=POSTGRESQL_CONF_ADDITIONS_TEMPLATE_DEFAULT,
        description="Template appended to postgresql.conf. Supports {marker} and {script_version}.",
    )


class RubySettings(BaseSettings):
    """Pinned Ruby runtime managed through rbenv."""
    model_config = SettingsConfigDict(env_prefix="CANVAS_RUBY_", extra="ignore")

    version: str = Field(default=RUBY_VERSION_DEFAULT, description="Exact Ruby version Canvas requires.")
    rbenv_repo_url: str = Field(default=RBENV_REPO_URL_DEFAULT)
    ruby_build_repo_url: str = Field(default=RUBY_BUILD_REPO_URL_DEFAULT)


class NodeSettings(BaseSettings):
    """Node.js runtime and Yarn install strategies."""
    model_config = SettingsConfigDict(env_prefix="CANVAS_NODE_", extra="ignore")

    major_version: int = Field(default=NODE_MAJOR_VERSION_DEFAULT, description="Minimum Node.js major version.")
    nodesource_setup_url_template: str = Field(default=NODESOURCE_SETUP_URL_TEMPLATE_DEFAULT)
    max_old_space_size_mb: int = Field(default=3072, description="Node heap limit during asset compilation.")
    yarn_install_strategies: List[List[str]] = Field(
        default_factory=lambda: [list(s) for s in YARN_INSTALL_STRATEGIES_DEFAULT],
        description="Ordered `yarn install` argument lists; the first that succeeds wins.",
    )


class ApacheSettings(BaseSettings):
    """Apache virtual host settings."""
    model_config = SettingsConfigDict(env_prefix="CANVAS_APACHE_", extra="ignore")

    site_name: str = Field(default="canvas", description="Name of the site under sites-available.")
    default_site: str = Field(default="000-default", description="Distribution default site to disable.")
    vhost_template: str = Field(
        default=APACHE_VHOST_TEMPLATE_DEFAULT,
        description="Virtual host template. Supports {server_name}, {server_admin}, {app_root}, "
                    "{passenger_ruby}, {script_version}.",
    )

    @property
    def site_conf_path(self) -> str:
        return f"{static_config.APACHE_SITES_AVAILABLE_DIR}/{self.site_name}.conf"


class CanvasSettings(BaseSettings):
    """Where the Canvas application comes from and where it is deployed."""
    model_config = SettingsConfigDict(env_prefix="CANVAS_APP_", extra="ignore")

    repo_url: str = Field(default=CANVAS_REPO_URL_DEFAULT)
    branch: str = Field(default=CANVAS_BRANCH_DEFAULT, description="Canvas branch to check out.")
    install_dir: Path = Field(default=CANVAS_INSTALL_DIR_DEFAULT)
    service_user: str = Field(default=SERVICE_USER_DEFAULT, description="Account running Passenger and the worker.")
    required_config_templates: List[str] = Field(
        default_factory=lambda: [
            "database", "dynamic_settings", "domain", "outgoing_mail", "security", "redis",
        ],
        description="config/<name>.yml.example files that must exist after the fetch.",
    )
    allow_fallback_production_env: bool = Field(
        default=False,
        description="Write a minimal production.rb when the checkout ships none.",
    )
    smtp_placeholder_address: str = Field(default="mail.example.com")
    login_path: str = Field(default="/login/canvas",
                                   description="Path probed by the health check.")

    @property
    def log_file(self) -> Path:
        return self.install_dir / "log" / "production.log"


class DelayedJobsSettings(BaseSettings):
    """Background worker systemd unit."""
    model_config = SettingsConfigDict(env_prefix="CANVAS_JOBS_", extra="ignore")

    service_name: str = Field(default="canvas_delayed_jobs")
    unit_template: str = Field(default=DELAYED_JOBS_UNIT_TEMPLATE_DEFAULT)

    @property
    def unit_path(self) -> str:
        return f"{static_config.SYSTEMD_UNIT_DIR}/{self.service_name}.service"


class HostRequirementSettings(BaseSettings):
    """Minimum host requirements checked before anything is changed."""
    model_config = SettingsConfigDict(env_prefix="CANVAS_HOST_", extra="ignore")

    min_ram_mb: int = Field(default=MIN_RAM_MB_DEFAULT)
    expected_os_release: str = Field(default=EXPECTED_OS_RELEASE_DEFAULT)
    required_commands: List[str] = Field(default_factory=lambda: list(REQUIRED_COMMANDS_DEFAULT))


class HostInfo(BaseModel):
    """Facts about the host gathered by the requirement checks."""

    model_config = ConfigDict(frozen=True)

    user: str
    home: Path
    os_release: str = ""
    ram_mb: int = 0


class InstallContext(BaseModel):
    """Everything a provisioning step needs besides AppSettings."""

    model_config = ConfigDict(frozen=True)

    install: InstallConfig
    host: HostInfo

    @property
    def rbenv_root(self) -> Path:
        return self.host.home / ".rbenv"


class AppSettings(BaseSettings):
    """Main installer settings."""
    model_config = SettingsConfigDict(env_prefix="CANVAS_INSTALLER_", extra="ignore")

    log_prefix: str = Field(default=LOG_PREFIX_DEFAULT,
                            description="Prefix for log messages from the installer.")
    assume_yes: bool = Field(default=False,
                             description="Answer yes to every confirmation prompt.")
    non_interactive: bool = Field(default=False,
                                  description="Never prompt; missing install inputs are fatal.")
    health_check_path: str = Field(default=HEALTH_CHECK_PATH_DEFAULT)
    health_check_wrapper_template: str = Field(default=HEALTH_CHECK_WRAPPER_TEMPLATE_DEFAULT)

    install: InstallInputs = Field(default_factory=InstallInputs)
    pg: PostgresSettings = Field(default_factory=PostgresSettings)
    ruby: RubySettings = Field(default_factory=RubySettings)
    node: NodeSettings = Field(default_factory=NodeSettings)
    apache: ApacheSettings = Field(default_factory=ApacheSettings)
    canvas: CanvasSettings = Field(default_factory=CanvasSettings)
    delayed_jobs: DelayedJobsSettings = Field(default_factory=DelayedJobsSettings)
    host: HostRequirementSettings = Field(default_factory=HostRequirementSettings)

    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))

    @field_validator("symbols")
    @classmethod
    def _fill_missing_symbols(cls, value: Dict[str, str]) -> Dict[str, str]:
        merged = dict(SYMBOLS_DEFAULT)
        merged.update(value)
        return merged
