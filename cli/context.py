"""
Shared CLI context for the DropForge CLI

Holds global options, logging setup, output formatting, and lazily built
service objects (blob store, ledger, registry) shared by all commands.
"""

import functools
import json
import logging
import sys
import traceback
from typing import Any, Dict, Optional

import click
import yaml

from blobstore.walrus import WalrusBlobStore, WalrusConfig
from ledger.client import LedgerClient, LedgerConfig
from ledger.rpc import LedgerRPCClient, RPCConfig
from nft.share import ShareConfig, ShareLinkService
from registry.manager import CollectionRegistry, ContractConfig

from .config import ConfigurationManager


class CLIContext:
    """Global CLI context for sharing state across commands."""

    def __init__(self):
        self.config_file: Optional[str] = None
        self.profile: Optional[str] = None
        self.output_format: str = "table"
        self.verbose: int = 0
        self.logger: logging.Logger = logging.getLogger('dropforge-cli')
        self._config_manager: Optional[ConfigurationManager] = None
        self._blob_store: Optional[WalrusBlobStore] = None
        self._ledger: Optional[LedgerClient] = None

    def setup_logging(self):
        """Configure logging based on verbosity level."""
        log_levels = {
            0: logging.WARNING,
            1: logging.INFO,
            2: logging.DEBUG
        }
        level = log_levels.get(min(self.verbose, 2), logging.DEBUG)

        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

        root = logging.getLogger()
        root.handlers = [handler]
        root.setLevel(level)

        # Suppress verbose third-party logs unless in debug mode
        if self.verbose < 2:
            logging.getLogger('requests').setLevel(logging.WARNING)
            logging.getLogger('urllib3').setLevel(logging.WARNING)

    @property
    def config(self) -> ConfigurationManager:
        if self._config_manager is None:
            self._config_manager = ConfigurationManager(self.config_file, self.profile)
        return self._config_manager

    # Services

    def blob_store(self) -> WalrusBlobStore:
        if self._blob_store is None:
            self._blob_store = WalrusBlobStore(WalrusConfig.from_config(self.config.section('walrus')))
        return self._blob_store

    def ledger(self) -> LedgerClient:
        if self._ledger is None:
            rpc = LedgerRPCClient(RPCConfig.from_config(self.config.section('network.rpc')))
            self._ledger = LedgerClient(rpc, LedgerConfig.from_config(self.config.section('ledger')))
        return self._ledger

    def registry(self) -> CollectionRegistry:
        return CollectionRegistry(
            self.ledger(),
            self.blob_store(),
            ContractConfig.from_config(self.config.section('contract')),
            cache_ttl=float(self.config.get('registry.cache_ttl', 30)),
            enable_cache=bool(self.config.get('registry.cache_enabled', True))
        )

    def share_service(self) -> ShareLinkService:
        return ShareLinkService(ShareConfig.from_config(self.config.section('share')))

    def close(self):
        if self._blob_store is not None:
            self._blob_store.close()
        if self._ledger is not None:
            self._ledger.close()

    # Output

    def output(self, data: Any, format_override: Optional[str] = None):
        """Output data in specified format."""
        format_type = format_override or self.output_format

        if format_type == "json":
            click.echo(json.dumps(data, indent=2, default=str))
        elif format_type == "yaml":
            click.echo(yaml.safe_dump(json.loads(json.dumps(data, default=str)),
                                      default_flow_style=False, sort_keys=False))
        else:
            self._output_table(data)

    def _output_table(self, data: Any):
        if isinstance(data, dict):
            for key, value in data.items():
                click.echo(f"{key:20} {value}")
        elif isinstance(data, list) and data:
            if isinstance(data[0], dict):
                headers = list(data[0].keys())
                click.echo(" | ".join(f"{h:15}" for h in headers))
                click.echo("-" * (len(headers) * 18))
                for item in data:
                    values = [str(item.get(h, ""))[:15] for h in headers]
                    click.echo(" | ".join(f"{v:15}" for v in values))
            else:
                for item in data:
                    click.echo(item)
        elif isinstance(data, list):
            click.echo("No results.")
        else:
            click.echo(str(data))


pass_context = click.make_pass_decorator(CLIContext, ensure=True)


def handle_cli_error(func):
    """Decorator to handle CLI errors gracefully."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            click.echo("\nOperation cancelled by user.", err=True)
            sys.exit(130)
        except click.ClickException:
            raise
        except Exception as e:
            ctx = None
            current = click.get_current_context(silent=True)
            if current is not None:
                ctx = current.find_object(CLIContext)

            click.echo(f"Error: {e}", err=True)
            if ctx and ctx.verbose >= 2:
                click.echo(traceback.format_exc(), err=True)
            else:
                click.echo("Use -vv for detailed error information.", err=True)

            sys.exit(1)

    return wrapper


def config_summary(config: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a nested configuration for table output."""
    flat = {}

    def flatten(obj: Dict[str, Any], prefix: str = ''):
        for key, value in obj.items():
            path = f"{prefix}.{key}" if prefix else key
            if isinstance(value, dict):
                flatten(value, path)
            else:
                flat[path] = value

    flatten(config)
    return flat
