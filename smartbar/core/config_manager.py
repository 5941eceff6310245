from __future__ import annotations

import json
import logging
import os
import pathlib
from copy import deepcopy
from typing import Any, Callable, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from smartbar.core.base import SmartbarManager
from smartbar.utils.exceptions import ConfigurationError, ManagerInitializationError


class FeedSettings(BaseModel):
    """Settings for the remote package feed and the package server."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    server_url: str = 'http://localhost:8080'
    feed_suffix: str = 'nuget'
    api_key: str = ''
    user_agent: str = 'SmartbarPackageAuthoring'
    timeout: float = 100.0

    @field_validator('server_url')
    @classmethod
    def validate_server_url(cls, v: str) -> str:
        if not v.startswith(('http://', 'https://')):
            raise ValueError('Feed server URL must use http or https')
        return v.rstrip('/')

    @field_validator('feed_suffix')
    @classmethod
    def validate_feed_suffix(cls, v: str) -> str:
        return v.strip('/')

    @property
    def feed_url(self) -> str:
        """URL of the package feed used for listing and unpublishing."""
        if not self.feed_suffix:
            return self.server_url
        return f'{self.server_url}/{self.feed_suffix}'


class PackagingSettings(BaseModel):
    """Settings that control manifest discovery and archive naming."""

    model_config = ConfigDict(coerce_numbers_to_str=True)

    manifest_extension: str = 'nuspec'
    package_extension: str = 'nupkg'
    file_name_pattern: str = '{id} ({version})'
    required_tag: str = 'smartbar'

    @field_validator('manifest_extension', 'package_extension')
    @classmethod
    def validate_extension(cls, v: str) -> str:
        v = v.lstrip('.')
        if not v:
            raise ValueError('File extensions must not be empty')
        return v

    @field_validator('file_name_pattern')
    @classmethod
    def validate_file_name_pattern(cls, v: str) -> str:
        try:
            v.format(id='id', version='1.0.0')
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f'Invalid package file name pattern: {e}') from e
        return v

    @field_validator('required_tag')
    @classmethod
    def validate_required_tag(cls, v: str) -> str:
        if not v or any(ch.isspace() for ch in v):
            raise ValueError('Required tag must be a single non-empty word')
        return v

    def package_file_name(self, package_id: str, version: str) -> str:
        """Build the archive file name for a package id and version."""
        return f'{self.file_name_pattern.format(id=package_id, version=version)}.{self.package_extension}'


class ConfigSchema(BaseModel):
    """Schema for validating configuration data.

    This model defines the expected structure and default values for the
    authoring tool configuration.
    """
    feed: Dict[str, Any] = Field(
        default_factory=lambda: FeedSettings().model_dump(),
        description='Remote feed and package server settings',
    )
    packaging: Dict[str, Any] = Field(
        default_factory=lambda: PackagingSettings().model_dump(),
        description='Manifest and archive settings',
    )
    repository: Dict[str, Any] = Field(
        default_factory=lambda: {
            'local_directory': '',
        },
        description='Local repository settings',
    )
    logging: Dict[str, Any] = Field(
        default_factory=lambda: {
            'level': 'INFO',
            'format': 'text',
            'file': {
                'enabled': False,
                'path': 'logs/smartbar.log',
                'rotation': '10 MB',
                'retention': '30 days',
            },
            'console': {
                'enabled': True,
                'level': 'INFO',
            },
        },
        description='Logging settings',
    )

    @model_validator(mode='after')
    def validate_sections(self) -> 'ConfigSchema':
        """Validate the typed sections against their settings models."""
        self.feed = FeedSettings(**self.feed).model_dump()
        self.packaging = PackagingSettings(**self.packaging).model_dump()
        if self.logging.get('format', 'text').lower() not in ('text', 'json'):
            raise ValueError("Logging format must be either 'text' or 'json'.")
        return self


class ConfigManager(SmartbarManager):
    """Configuration manager for the authoring tool.

    This manager handles loading, validating, and providing access to
    configuration settings from files and environment variables.

    Attributes:
        _config_path: Path to the configuration file
        _env_prefix: Prefix for environment variables
        _config: The loaded configuration
        _listeners: Dictionary of config change listeners
    """

    ENV_SEPARATOR = '__'

    def __init__(
            self,
            config_path: Optional[Union[str, pathlib.Path]] = None,
            env_prefix: str = 'SMARTBAR_'
    ) -> None:
        """Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
            env_prefix: Prefix for environment variables
        """
        super().__init__(name='config_manager')
        self._config_path = pathlib.Path(config_path) if config_path else pathlib.Path('smartbar.yaml')
        self._env_prefix = env_prefix
        self._config: Dict[str, Any] = {}
        self._listeners: Dict[str, List[Callable[[str, Any], None]]] = {}

    def initialize(self) -> None:
        """Initialize the configuration manager.

        Loads configuration from default schema, file, and environment variables.

        Raises:
            ManagerInitializationError: If initialization fails
        """
        try:
            self._config = ConfigSchema().model_dump()
            self._load_from_file()
            self._apply_env_vars()
            self._validate_config()

            self._initialized = True
            self._healthy = True
        except Exception as e:
            raise ManagerInitializationError(
                f'Failed to initialize ConfigManager: {str(e)}',
                manager_name=self.name
            ) from e

    def _load_from_file(self) -> None:
        """Load configuration from a file.

        Raises:
            ConfigurationError: If the file cannot be parsed
        """
        if not self._config_path.exists():
            return

        try:
            content = self._config_path.read_text(encoding='utf-8')

            if self._config_path.suffix.lower() in ('.yaml', '.yml'):
                file_config = yaml.safe_load(content)
            elif self._config_path.suffix.lower() == '.json':
                file_config = json.loads(content) if content.strip() else None
            else:
                raise ConfigurationError(
                    f'Unsupported config file format: {self._config_path.suffix}',
                    config_key='config_path'
                )

            if file_config:
                if not isinstance(file_config, dict):
                    raise ConfigurationError(
                        f'Config file {self._config_path} must contain a mapping',
                        config_key='config_path'
                    )
                self._merge_config(file_config, self._config)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f'Error parsing config file {self._config_path}: {str(e)}',
                config_key='config_path'
            ) from e

    def _apply_env_vars(self) -> None:
        """Apply environment variables to the configuration.

        ``SMARTBAR_FEED__API_KEY`` overrides ``feed.api_key``. Values for
        string settings are applied verbatim.
        """
        for env_name, env_value in os.environ.items():
            if not env_name.startswith(self._env_prefix):
                continue

            config_path = env_name[len(self._env_prefix):].lower().split(self.ENV_SEPARATOR)
            if not all(config_path):
                continue
            current = self._get_nested_value(self._config, config_path)
            self._set_nested_value(self._config, config_path, self._parse_env_value(env_value, current))

    @staticmethod
    def _parse_env_value(value: str, current: Any = None) -> Any:
        """Parse environment variable values into appropriate types.

        Args:
            value: The string value from the environment
            current: The value currently configured for the key

        Returns:
            The raw string if the current value is a string, otherwise the
            parsed value (bool, int, float, or string)
        """
        if isinstance(current, str):
            return value
        if value.lower() in ('true', 'yes', 'on'):
            return True
        if value.lower() in ('false', 'no', 'off'):
            return False

        try:
            if value.isdigit() or (value.startswith('-') and value[1:].isdigit()):
                return int(value)
            return float(value)
        except ValueError:
            return value

    @staticmethod
    def _get_nested_value(config: Dict[str, Any], path: List[str]) -> Any:
        result: Any = config
        for key in path:
            if not isinstance(result, dict) or key not in result:
                return None
            result = result[key]
        return result

    def _set_nested_value(self, config: Dict[str, Any], path: List[str], value: Any) -> None:
        """Set a nested value in the configuration dictionary.

        Args:
            config: The configuration dictionary
            path: List of keys forming the path to the value
            value: The value to set
        """
        if not path:
            return

        if len(path) == 1:
            config[path[0]] = value
            return

        key = path[0]
        if not isinstance(config.get(key), dict):
            config[key] = {}

        self._set_nested_value(config[key], path[1:], value)

    def _validate_config(self) -> None:
        """Validate the configuration against the schema.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        try:
            self._config = ConfigSchema(**self._config).model_dump()
        except ValidationError as e:
            errors = e.errors()
            error_details = ', '.join((
                f"{'.'.join((str(loc) for loc in error['loc']))}: {error['msg']}"
                for error in errors
            ))
            raise ConfigurationError(
                f'Invalid configuration: {error_details}',
                details={'validation_errors': errors}
            ) from e

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by key.

        Args:
            key: The configuration key (dot-separated for nested values)
            default: Default value if the key doesn't exist

        Returns:
            The configuration value or default

        Raises:
            ConfigurationError: If the manager isn't initialized
        """
        if not self._initialized:
            raise ConfigurationError(
                'Cannot access configuration before initialization',
                config_key=key
            )

        result: Any = self._config
        try:
            for part in key.split('.'):
                result = result[part]
            return result
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value by key.

        Args:
            key: The configuration key (dot-separated for nested values)
            value: The value to set

        Raises:
            ConfigurationError: If the manager isn't initialized or the value is invalid
        """
        if not self._initialized:
            raise ConfigurationError(
                'Cannot modify configuration before initialization',
                config_key=key
            )

        new_config = deepcopy(self._config)
        self._set_nested_value(new_config, key.split('.'), value)

        try:
            self._config = ConfigSchema(**new_config).model_dump()
        except ValidationError as e:
            raise ConfigurationError(
                f'Invalid configuration value for {key}: {str(e)}',
                config_key=key,
                details={'validation_errors': e.errors()}
            ) from e

        self._notify_listeners(key, value)

    def feed_settings(self) -> FeedSettings:
        """Get the validated feed settings."""
        return FeedSettings(**self.get('feed', {}))

    def packaging_settings(self) -> PackagingSettings:
        """Get the validated packaging settings."""
        return PackagingSettings(**self.get('packaging', {}))

    def _merge_config(self, from_config: Dict[str, Any], to_config: Dict[str, Any]) -> None:
        """Merge a configuration dictionary into another.

        Args:
            from_config: The source configuration
            to_config: The target configuration
        """
        for key, value in from_config.items():
            if isinstance(to_config.get(key), dict) and isinstance(value, dict):
                self._merge_config(value, to_config[key])
            elif value is not None:
                to_config[key] = value

    def register_listener(self, key: str, callback: Callable[[str, Any], None]) -> None:
        """Register a listener for configuration changes.

        Args:
            key: The configuration key to listen for
            callback: Callback function to call when the key changes
        """
        callbacks = self._listeners.setdefault(key, [])
        if callback not in callbacks:
            callbacks.append(callback)

    def unregister_listener(self, key: str, callback: Callable[[str, Any], None]) -> None:
        """Unregister a listener for configuration changes.

        Args:
            key: The configuration key
            callback: The callback function to unregister
        """
        if key in self._listeners and callback in self._listeners[key]:
            self._listeners[key].remove(callback)
            if not self._listeners[key]:
                del self._listeners[key]

    def _notify_listeners(self, key: str, value: Any) -> None:
        """Notify listeners about a configuration change.

        Args:
            key: The changed configuration key
            value: The new value
        """
        for listener_key, callbacks in list(self._listeners.items()):
            if listener_key == key or key.startswith(f'{listener_key}.'):
                for callback in list(callbacks):
                    try:
                        callback(key, value)
                    except Exception as e:
                        logging.getLogger(__name__).error(
                            f'Error in config listener for {key}: {str(e)}'
                        )

    def shutdown(self) -> None:
        """Shut down the configuration manager."""
        self._listeners.clear()
        self._initialized = False
        self._healthy = False
