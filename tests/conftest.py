# tests/conftest.py
import logging
from unittest.mock import MagicMock

import pytest

from canvas_setup.config_models import (
    AppSettings,
    HostInfo,
    InstallConfig,
    InstallContext,
)

TEMPLATE_CONTENT = {
    "database": (
        "production:\n"
        "  adapter: postgresql\n"
        "  encoding: utf8\n"
        "  database: canvas_production\n"
        "  host: localhost\n"
        "  username: canvas\n"
        "  password: your_password\n"
        "  timeout: 5000\n"
    ),
    "dynamic_settings": "production:\n  config:\n    canvas:\n      canvas: {}\n",
    "domain": "production:\n  domain: canvas.example.com\n  ssl: true\n",
    "outgoing_mail": "production:\n  address: smtp.example.com\n  port: 25\n",
    "security": "production:\n  encryption_key: facdd3a131ddd8988b14f6e4e01039c93cfa0160\n",
    "redis": "production:\n  servers:\n    - redis://localhost\n",
}


@pytest.fixture
def mock_logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def app_settings(tmp_path):
    return AppSettings(canvas={"install_dir": tmp_path / "canvas"})


@pytest.fixture
def install_config():
    return InstallConfig(
        domain="canvas.example.org",
        db_password="x",
        email_sender="no-reply@canvas.example.org",
        use_ssl=False,
        admin_email="admin@example.org",
        admin_password="y",
    )


@pytest.fixture
def host_info(tmp_path):
    home = tmp_path / "home" / "deploy"
    home.mkdir(parents=True)
    return HostInfo(user="deploy", home=home, os_release="24.04", ram_mb=8000)


@pytest.fixture
def context(install_config, host_info):
    return InstallContext(install=install_config, host=host_info)


@pytest.fixture
def canvas_tree(app_settings):
    """A checkout with every required config template."""
    config_dir = app_settings.canvas.install_dir / "config"
    (config_dir / "environments").mkdir(parents=True)
    for name, content in TEMPLATE_CONTENT.items():
        (config_dir / f"{name}.yml.example").write_text(content, encoding="utf-8")
    (config_dir / "environments" / "production.rb").write_text(
        "Rails.application.configure do\nend\n", encoding="utf-8"
    )
    return app_settings.canvas.install_dir
