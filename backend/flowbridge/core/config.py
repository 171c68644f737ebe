# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
FlowBridge Configuration - Single source of truth.
YAML for everything, env vars ONLY for secrets.

The engine never reads this module directly: the application factory
loads a Config and hands the relevant values to each component.
"""

import logging
import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "configs/flowbridge.yaml"


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class Config:
    """
    Immutable application configuration.
    All values from YAML. No hidden state.
    """

    # -- Service --
    service_host: str = "0.0.0.0"
    service_port: int = 8100

    # -- Paths --
    flows_path: str = "flows"
    interfaces_config_path: str = "configs/interfaces.yaml"
    runs_path: str = "runs"

    # -- Run store --
    run_store: str = "memory"

    # -- HTTP dispatch defaults --
    http_timeout: float = 30.0
    http_retry_attempts: int = 3
    http_retry_delay: float = 1.0

    # -- Token cache --
    token_refresh_stale_after: float = 60.0
    token_expiry_skew: float = 30.0

    # -- Runtime --
    emulation_mode: bool = False

    # -- Email --
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_use_tls: bool = True
    email_from: str = "flowbridge@localhost"

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    def get_smtp_password(self) -> Optional[str]:
        """Get SMTP password from environment"""
        return get_smtp_password()


# =============================================================================
# SECRETS - The ONLY thing from environment variables
# =============================================================================

def get_smtp_password() -> Optional[str]:
    """Credentials cannot be in version control."""
    return os.getenv("FLOWBRIDGE_SMTP_PASSWORD")


# =============================================================================
# LOADER
# =============================================================================

def load_config(path: str = DEFAULT_CONFIG_PATH) -> Config:
    """
    Load configuration from YAML.
    Returns defaults if file doesn't exist.
    """
    if not Path(path).exists():
        logger.info(f"Config not found at {path}, using defaults")
        return Config()

    with open(path) as f:
        y = yaml.safe_load(f) or {}

    def get(d: dict, *keys, default=None):
        for k in keys:
            if not isinstance(d, dict):
                return default
            d = d.get(k, {})
        return d if d != {} else default

    defaults = Config()
    return Config(
        service_host=get(y, "service", "host", default=defaults.service_host),
        service_port=int(get(y, "service", "port", default=defaults.service_port)),

        flows_path=get(y, "paths", "flows", default=defaults.flows_path),
        interfaces_config_path=get(y, "paths", "interfaces", default=defaults.interfaces_config_path),
        runs_path=get(y, "paths", "runs", default=defaults.runs_path),

        run_store=get(y, "runs", "store", default=defaults.run_store),

        http_timeout=float(get(y, "http", "timeout", default=defaults.http_timeout)),
        http_retry_attempts=int(get(y, "http", "retry_attempts", default=defaults.http_retry_attempts)),
        http_retry_delay=float(get(y, "http", "retry_delay", default=defaults.http_retry_delay)),

        token_refresh_stale_after=float(
            get(y, "auth", "refresh_stale_after", default=defaults.token_refresh_stale_after)
        ),
        token_expiry_skew=float(get(y, "auth", "expiry_skew", default=defaults.token_expiry_skew)),

        emulation_mode=bool(get(y, "runtime", "emulation_mode", default=defaults.emulation_mode)),

        smtp_host=get(y, "email", "smtp_host", default=defaults.smtp_host),
        smtp_port=int(get(y, "email", "smtp_port", default=defaults.smtp_port)),
        smtp_username=get(y, "email", "smtp_username", default=defaults.smtp_username),
        smtp_use_tls=bool(get(y, "email", "use_tls", default=defaults.smtp_use_tls)),
        email_from=get(y, "email", "from_address", default=defaults.email_from),

        log_level=os.getenv("LOG_LEVEL") or get(y, "logging", "level", default=defaults.log_level),
        log_format=get(y, "logging", "format", default=defaults.log_format),
        log_file=get(y, "logging", "file", default=defaults.log_file),
    )


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        config_path = os.getenv("FLOWBRIDGE_CONFIG_PATH", DEFAULT_CONFIG_PATH)
        _config = load_config(config_path)
    return _config


def reload_config() -> Config:
    """Force reload configuration."""
    global _config
    _config = None
    return get_config()
