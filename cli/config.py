#!/usr/bin/env python3
"""
Configuration Management Module for the DropForge CLI

Handles hierarchical configuration loading (defaults, profile, file,
environment), validation, and typed accessors for the blob store, ledger
and share link sections.
"""

import copy
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

# Configuration file locations in order of precedence (highest to lowest)
CONFIG_SEARCH_PATHS = [
    Path.cwd() / '.dropforge.yml',
    Path.cwd() / '.dropforge.json',
    Path.home() / '.dropforge' / 'config.yml',
    Path.home() / '.dropforge' / 'config.json',
    Path('/etc/dropforge/config.yml'),
]

# Environment variable prefix; `__` separates nesting levels
ENV_PREFIX = 'DROPFORGE_'
ENV_NESTING = '__'

OUTPUT_FORMATS = ['table', 'json', 'yaml']
NETWORKS = ['mainnet', 'testnet', 'devnet']

_OBJECT_ID = re.compile(r'^0x[a-fA-F0-9]{1,64}$')

DEFAULT_CONFIG = {
    'network': {
        'type': 'testnet',
        'rpc': {
            'url': 'https://fullnode.testnet.sui.io:443',
            'timeout': 30,
            'max_retries': 3,
            'backoff_factor': 0.5
        }
    },

    # Collection contract
    'contract': {
        'package_id': None,
        'registry_id': None,
        'module': 'dropforge'
    },

    'walrus': {
        'publisher_url': 'https://publisher.walrus-testnet.walrus.space',
        'aggregator_url': 'https://aggregator.walrus-testnet.walrus.space',
        'epochs': 5,
        'upload_timeout': 120,
        'read_timeout': 30,
        'max_retries': 3,
        'backoff_factor': 0.5,
        'max_workers': 4
    },

    'ledger': {
        'finality_timeout': 60,
        'poll_interval': 1.0,
        'event_page_size': 50,
        'max_event_pages': 20
    },

    'registry': {
        'cache_enabled': True,
        'cache_ttl': 30
    },

    'share': {
        'base_url': 'https://dropforge.app',
        'qr_endpoint': 'https://api.qrserver.com/v1/create-qr-code/',
        'qr_size': 200
    },

    'publish': {
        'max_concurrency': 1
    },

    'cli': {
        'output_format': 'table',
        'verbose': 0
    }
}

PROFILES = {
    'mainnet': {
        'network': {
            'type': 'mainnet',
            'rpc': {'url': 'https://fullnode.mainnet.sui.io:443'}
        },
        'walrus': {
            'publisher_url': 'https://publisher.walrus.space',
            'aggregator_url': 'https://aggregator.walrus.space',
            'epochs': 53
        }
    },
    'testnet': {
        'network': {
            'type': 'testnet',
            'rpc': {'url': 'https://fullnode.testnet.sui.io:443'}
        }
    },
    'devnet': {
        'network': {
            'type': 'devnet',
            'rpc': {'url': 'https://fullnode.devnet.sui.io:443'}
        },
        'walrus': {'epochs': 1},
        'cli': {'verbose': 2}
    }
}


class ConfigurationManager:
    """Manages hierarchical configuration with environment variable support."""

    def __init__(self, config_file: Optional[str] = None, profile: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_file: Explicit configuration file path
            profile: Configuration profile to load (mainnet, testnet, devnet)
        """
        self.logger = logging.getLogger(__name__)
        self.config_file = config_file
        self.profile = profile
        self._config_cache = None
        self._config_sources = []

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from all sources in hierarchical order.

        Returns:
            Merged configuration dictionary
        """
        if self._config_cache is not None:
            return self._config_cache

        self._config_sources = ["defaults"]
        configs = [copy.deepcopy(DEFAULT_CONFIG)]

        if self.profile:
            if self.profile not in PROFILES:
                raise ValueError(
                    f"Unknown profile '{self.profile}'. Choose from: {', '.join(PROFILES)}"
                )
            configs.append(PROFILES[self.profile])
            self._config_sources.append(f"profile:{self.profile}")
            self.logger.debug(f"Applied profile: {self.profile}")

        if self.config_file:
            path = Path(self.config_file)
            if not path.exists():
                raise FileNotFoundError(f"Configuration file not found: {path}")
            configs.append(self._load_config_file(path))
            self._config_sources.append(f"file:{path}")
        else:
            for config_path in CONFIG_SEARCH_PATHS:
                if config_path.exists():
                    configs.append(self._load_config_file(config_path))
                    self._config_sources.append(f"file:{config_path}")
                    self.logger.debug(f"Loaded config from {config_path}")
                    break

        env_config = self._load_environment_variables()
        if env_config:
            configs.append(env_config)
            self._config_sources.append("environment")

        self._config_cache = self._deep_merge(*configs)
        return self._config_cache

    def _load_config_file(self, path: Path) -> Dict[str, Any]:
        """Load a YAML or JSON configuration file."""
        with open(path, 'r') as f:
            if path.suffix in ['.yml', '.yaml']:
                data = yaml.safe_load(f)
            elif path.suffix == '.json':
                data = json.load(f)
            else:
                raise ValueError(f"Unknown config file format: {path}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        return data

    def _load_environment_variables(self) -> Dict[str, Any]:
        """
        Load configuration from environment variables.

        DROPFORGE_WALRUS__EPOCHS=10 -> {'walrus': {'epochs': 10}}
        """
        env_config = {}

        for key, value in os.environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            parts = [p for p in key[len(ENV_PREFIX):].lower().split(ENV_NESTING) if p]
            if not parts:
                continue

            current = env_config
            for part in parts[:-1]:
                if not isinstance(current.get(part), dict):
                    current[part] = {}
                current = current[part]

            current[parts[-1]] = self._parse_env_value(value)

        return env_config

    def _parse_env_value(self, value: str) -> Union[str, int, float, bool, None]:
        """Parse environment variable value to appropriate type."""
        lowered = value.strip().lower()
        if lowered in ['true', 'yes', 'on']:
            return True
        if lowered in ['false', 'no', 'off']:
            return False
        if lowered in ['null', 'none']:
            return None

        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            pass

        # Lists and mappings
        if value.strip().startswith(('[', '{')):
            try:
                return json.loads(value)
            except ValueError:
                pass

        return value

    def _deep_merge(self, *dicts: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge multiple dictionaries."""
        result = {}

        for dictionary in dicts:
            for key, value in dictionary.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = self._deep_merge(result[key], value)
                else:
                    result[key] = copy.deepcopy(value)

        return result

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation path.

        Args:
            key_path: Dot-separated path (e.g., 'walrus.epochs')
            default: Default value if key not found
        """
        current = self.load()

        for key in key_path.split('.'):
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default

        return current

    def section(self, key_path: str) -> Dict[str, Any]:
        """Configuration section as a dict (empty when absent)."""
        value = self.get(key_path, {})
        return value if isinstance(value, dict) else {}

    def set(self, key_path: str, value: Any):
        """Set configuration value by dot-notation path."""
        config = self.load()

        keys = key_path.split('.')
        current = config
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def save(self, path: Optional[str] = None, format: str = 'yaml'):
        """
        Save current configuration to file.

        Args:
            path: File path to save to (default: project config file)
            format: Output format ('yaml' or 'json')
        """
        config = self.load()

        if not path:
            path = Path.cwd() / ('.dropforge.yml' if format == 'yaml' else '.dropforge.json')

        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            if format == 'yaml':
                yaml.safe_dump(config, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(config, f, indent=2)

        self.logger.info(f"Configuration saved to {path}")

    def validate(self) -> List[str]:
        """
        Validate current configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        config = self.load()
        errors = []

        network_type = self.get('network.type')
        if network_type not in NETWORKS:
            errors.append(f"Invalid network type: {network_type}")

        rpc_url = self.get('network.rpc.url')
        if not isinstance(rpc_url, str) or not rpc_url.startswith(('http://', 'https://')):
            errors.append(f"RPC URL must be http(s): {rpc_url}")

        for key in ['publisher_url', 'aggregator_url']:
            url = self.get(f'walrus.{key}')
            if not isinstance(url, str) or not url.startswith(('http://', 'https://')):
                errors.append(f"walrus.{key} must be an http(s) URL: {url}")

        epochs = self.get('walrus.epochs')
        if not isinstance(epochs, int) or isinstance(epochs, bool) or epochs < 1:
            errors.append(f"walrus.epochs must be a positive integer: {epochs}")

        for key in ['package_id', 'registry_id']:
            value = self.get(f'contract.{key}')
            if value is not None and not (isinstance(value, str) and _OBJECT_ID.match(value)):
                errors.append(f"contract.{key} is not a valid object id: {value}")

        concurrency = self.get('publish.max_concurrency')
        if not isinstance(concurrency, int) or isinstance(concurrency, bool) or concurrency < 1:
            errors.append(f"publish.max_concurrency must be a positive integer: {concurrency}")

        output_format = config.get('cli', {}).get('output_format')
        if output_format not in OUTPUT_FORMATS:
            errors.append(f"Invalid output format: {output_format}")

        return errors

    def get_sources(self) -> List[str]:
        """Get list of configuration sources that were loaded."""
        self.load()
        return list(self._config_sources)

    def reset(self):
        """Reset configuration cache."""
        self._config_cache = None
        self._config_sources = []

