"""
Configuration management for GhostComment.

Handles loading, saving, and validating configuration settings.
"""

import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv

from . import constants
from .errors import AuthError, ConfigError
from ..utils.logger_setup import get_logger

logger = get_logger(__name__)


@dataclass
class ScanConfig:
    """Annotation scanning configuration."""
    prefix: str = constants.DEFAULT_PREFIX
    include: List[str] = field(default_factory=lambda: list(constants.DEFAULT_INCLUDE))
    exclude: List[str] = field(default_factory=lambda: list(constants.DEFAULT_EXCLUDE))
    fail_on_found: bool = False

    def validate(self):
        """
        Check the scan limits before any file is touched.

        Raises:
            ConfigError: If the prefix or pattern lists are out of bounds.
        """
        if not self.prefix or not isinstance(self.prefix, str):
            raise ConfigError("Comment prefix is required")
        if len(self.prefix) > constants.MAX_PREFIX_LENGTH:
            raise ConfigError(
                f"Prefix too long: {self.prefix} (max: {constants.MAX_PREFIX_LENGTH})"
            )
        if not self.include:
            raise ConfigError("Include patterns are required")
        if len(self.include) > constants.MAX_INCLUDE_PATTERNS:
            raise ConfigError(
                f"Too many include patterns: {len(self.include)} "
                f"(max: {constants.MAX_INCLUDE_PATTERNS})"
            )
        if self.exclude and len(self.exclude) > constants.MAX_EXCLUDE_PATTERNS:
            raise ConfigError(
                f"Too many exclude patterns: {len(self.exclude)} "
                f"(max: {constants.MAX_EXCLUDE_PATTERNS})"
            )


@dataclass
class PlatformConfig:
    """Review platform credentials and endpoints."""
    github_token: Optional[str] = None
    gitlab_token: Optional[str] = None
    github_api_url: str = constants.GITHUB_API_URL
    gitlab_url: str = constants.GITLAB_URL
    timeout: int = constants.REQUEST_TIMEOUT

    def __post_init__(self):
        """Fill credentials from environment variables when not set explicitly."""
        if not self.github_token:
            self.github_token = os.getenv("GITHUB_TOKEN")
        if not self.gitlab_token:
            self.gitlab_token = os.getenv("GITLAB_TOKEN")
        self.github_api_url = os.getenv("GITHUB_API_URL") or self.github_api_url
        self.gitlab_url = os.getenv("GITLAB_URL") or self.gitlab_url


@dataclass
class CleanConfig:
    """Cleaning behaviour."""
    create_backups: bool = True
    restore_on_error: bool = True
    remove_backups: bool = False


@dataclass
class Config:
    """Main configuration class."""
    scanning: ScanConfig = field(default_factory=ScanConfig)
    platform: PlatformConfig = field(default_factory=PlatformConfig)
    cleaning: CleanConfig = field(default_factory=CleanConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create Config from dictionary."""
        try:
            return cls(
                scanning=ScanConfig(**(data.get('scanning') or {})),
                platform=PlatformConfig(**(data.get('platform') or {})),
                cleaning=CleanConfig(**(data.get('cleaning') or {}))
            )
        except TypeError as e:
            raise ConfigError(f"Unknown configuration key: {e}", e) from e

    def to_dict(self, redact: bool = False) -> Dict[str, Any]:
        """
        Convert Config to dictionary.

        Args:
            redact: Replace tokens with ``***`` (for display)
        """
        platform = asdict(self.platform)
        if redact:
            for key in ('github_token', 'gitlab_token'):
                if platform.get(key):
                    platform[key] = '***'
        return {
            'scanning': asdict(self.scanning),
            'platform': platform,
            'cleaning': asdict(self.cleaning)
        }


class ConfigManager:
    """Manages configuration loading, saving, and resolution."""

    DEFAULT_CONFIG_FILE = constants.CONFIG_FILE_NAME

    def __init__(self, project_root: Optional[str] = None):
        """
        Initialize ConfigManager.

        Args:
            project_root: Root directory of the project. If None, uses current directory.
        """
        self.project_root = Path(project_root or os.getcwd())
        self.config_file = self.project_root / self.DEFAULT_CONFIG_FILE

        env_file = self.project_root / ".env"
        if env_file.exists():
            load_dotenv(env_file)

    def load(self) -> Config:
        """
        Load configuration from file or create default.

        Returns:
            Loaded or default configuration

        Raises:
            ConfigError: If the file exists but cannot be parsed or is invalid.
        """
        if self.config_file.exists():
            config = self._load_from_file()
        else:
            config = Config()

        errors = self.validate(config)
        if errors:
            details = "\n".join(f"  - {error}" for error in errors)
            raise ConfigError(f"Configuration validation failed:\n{details}")
        return config

    def _load_from_file(self) -> Config:
        """Load configuration from YAML file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to parse config file {self.config_file}: {e}", e) from e

        if not isinstance(data, dict):
            raise ConfigError(f"Configuration file {self.config_file} must contain a mapping")

        data = self._resolve_env_vars(data)
        logger.debug(f"Loaded configuration from {self.config_file}")
        return Config.from_dict(data)

    def save(self, config: Config):
        """
        Save configuration to file.

        Tokens are never written; they belong in the environment.

        Args:
            config: Configuration to save
        """
        data = config.to_dict()
        data['platform'].pop('github_token', None)
        data['platform'].pop('gitlab_token', None)

        with open(self.config_file, 'w', encoding='utf-8') as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    def init_config(self, overwrite: bool = False) -> bool:
        """
        Initialize configuration file with defaults.

        Args:
            overwrite: Whether to overwrite existing config

        Returns:
            True if config was created/updated, False otherwise
        """
        if self.config_file.exists() and not overwrite:
            logger.info(f"Configuration already exists at: {self.config_file}")
            return False

        self.save(Config())
        logger.info(f"Configuration initialized at: {self.config_file}")
        return True

    def _resolve_env_vars(self, data: Any) -> Any:
        """
        Recursively resolve environment variables in configuration.

        Supports ${VAR_NAME} syntax.
        """
        if isinstance(data, dict):
            return {k: self._resolve_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [self._resolve_env_vars(item) for item in data]
        elif isinstance(data, str):
            if data.startswith('${') and data.endswith('}'):
                var_name = data[2:-1]
                return os.environ.get(var_name, data)
        return data

    def get_token(self, config: Config, platform: str) -> str:
        """
        Get the bearer token for a platform.

        Args:
            config: Configuration object
            platform: 'github' or 'gitlab'

        Returns:
            The token

        Raises:
            AuthError: If no token is configured for the platform.
        """
        token = config.platform.gitlab_token if platform == 'gitlab' else config.platform.github_token
        if not token:
            name = 'GitLab' if platform == 'gitlab' else 'GitHub'
            raise AuthError(f"{name} token is required. Set {platform.upper()}_TOKEN "
                            f"or pass --token.")
        return token

    def validate(self, config: Config) -> List[str]:
        """
        Validate configuration.

        Args:
            config: Configuration to validate

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        try:
            config.scanning.validate()
        except ConfigError as e:
            errors.append(e.message)

        for name, patterns in (('include', config.scanning.include),
                               ('exclude', config.scanning.exclude)):
            if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
                errors.append(f"all {name} patterns must be strings")

        if not isinstance(config.scanning.fail_on_found, bool):
            errors.append("fail_on_found must be a boolean")

        for name in ('github_api_url', 'gitlab_url'):
            url = getattr(config.platform, name)
            parsed = urlparse(url or "")
            if parsed.scheme not in ('http', 'https') or not parsed.netloc:
                errors.append(f"{name} must be a valid URL: {url}")

        if config.platform.timeout <= 0:
            errors.append(f"timeout must be positive: {config.platform.timeout}")

        return errors
