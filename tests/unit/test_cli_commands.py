"""
Unit tests for CLI commands, run through click's CliRunner against
in-memory blob store and ledger fakes.
"""

import json
import os
from urllib.parse import parse_qs, urlparse

import pytest
from click.testing import CliRunner

from cli.context import CLIContext
from cli.main import cli

from conftest import CREATOR, seed_collection


class StubContext(CLIContext):
    """CLI context wired to fakes instead of network services."""

    def __init__(self, ledger, blob_store, registry):
        super().__init__()
        self._fake_ledger = ledger
        self._fake_blob_store = blob_store
        self._fake_registry = registry
        self.closed = 0

    def setup_logging(self):
        pass

    def blob_store(self):
        return self._fake_blob_store

    def ledger(self):
        return self._fake_ledger

    def registry(self):
        return self._fake_registry

    def close(self):
        self.closed += 1


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith("DROPFORGE_"):
            monkeypatch.delenv(key)
    monkeypatch.setattr("cli.config.CONFIG_SEARCH_PATHS", [tmp_path / ".dropforge.yml"])


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def context(ledger, blob_store, registry):
    return StubContext(ledger, blob_store, registry)


class TestCollectionCommands:
    """Test collection inspection and publishing commands."""

    def test_show(self, runner, context, ledger, blob_store):
        collection_id = seed_collection(ledger, blob_store, size=4, minted_count=1)

        result = runner.invoke(cli, ['-o', 'json', 'show', collection_id], obj=context)

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["id"] == collection_id
        assert data["name"] == "Sunsets"
        assert data["minted_count"] == 1
        assert data["remaining"] == 3
        assert data["price_sui"] == 1.0
        assert data["manifest_size"] == 4
        assert "warning" not in data
        assert context.closed == 1

    def test_show_manifest_mismatch(self, runner, context, ledger, blob_store):
        collection_id = seed_collection(ledger, blob_store, size=3, supply_cap=5)

        result = runner.invoke(cli, ['-o', 'json', 'show', collection_id], obj=context)

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["warning"] == "manifest size differs from supply cap"

    def test_show_missing_collection(self, runner, context):
        result = runner.invoke(cli, ['show', "0x" + "9" * 64], obj=context)

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert context.closed == 1

    def test_slots(self, runner, context, ledger, blob_store):
        collection_id = seed_collection(ledger, blob_store, size=4, minted_count=2)

        result = runner.invoke(cli, ['-o', 'json', 'slots', collection_id], obj=context)

        assert result.exit_code == 0, result.output
        slots = json.loads(result.output)
        assert [slot["available"] for slot in slots] == [False, False, True, True]
        assert slots[0]["label"] == "Sunsets #1"

    def test_slots_available_only(self, runner, context, ledger, blob_store):
        collection_id = seed_collection(ledger, blob_store, size=4, minted_count=3)

        result = runner.invoke(cli, ['-o', 'json', 'slots', '--available-only', collection_id],
                               obj=context)

        assert result.exit_code == 0, result.output
        slots = json.loads(result.output)
        assert len(slots) == 1
        assert slots[0]["number"] == 4

    def test_collections(self, runner, context, ledger, blob_store):
        seed_collection(ledger, blob_store, name="First")
        seed_collection(ledger, blob_store, name="Second")
        seed_collection(ledger, blob_store, name="Other", creator="0x" + "e" * 64)

        result = runner.invoke(cli, ['-o', 'json', 'collections', CREATOR], obj=context)

        assert result.exit_code == 0, result.output
        assert [c["name"] for c in json.loads(result.output)] == ["Second", "First"]

    def test_publish(self, runner, context, blob_store, tmp_path):
        files = []
        for i in range(3):
            path = tmp_path / f"sunset-{i}.png"
            path.write_bytes(f"image-{i}".encode())
            files.append(str(path))

        result = runner.invoke(cli, ['publish'] + files, obj=context)

        assert result.exit_code == 0, result.output
        assert "All uploads verified!" in result.output
        assert len(blob_store.json_uploads) == 1
        manifest = json.loads(blob_store.json_uploads[0]["data"])
        assert [blob_store.blobs[u.rsplit("/", 1)[-1]] for u in manifest] == \
            [b"image-0", b"image-1", b"image-2"]
        assert blob_store.uploads[0]["content_type"] == "image/png"
        assert context.closed == 1

    def test_publish_verification_failure(self, runner, context, blob_store, tmp_path):
        path = tmp_path / "sunset.png"
        path.write_bytes(b"image")
        blob_store.drop_uploads = {0}

        result = runner.invoke(cli, ['publish', str(path)], obj=context)

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert blob_store.json_uploads == []


class TestShareCommands:
    """Test share link commands."""

    def test_share(self, runner, context):
        collection_id = "0x" + "a" * 64

        result = runner.invoke(cli, ['-o', 'json', 'share', collection_id, '2'], obj=context)

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["number"] == 3
        assert data["url"] == f"https://dropforge.app/collections/{collection_id}?mintIndex=2"
        query = parse_qs(urlparse(data["qr_code_url"]).query)
        assert query["data"] == [data["url"]]
        assert query["size"] == ["200x200"]

    def test_share_uses_configured_base_url(self, runner, context, monkeypatch):
        monkeypatch.setenv("DROPFORGE_SHARE__BASE_URL", "https://mint.example.org/")

        result = runner.invoke(cli, ['-o', 'json', 'share', '0xabc', '0'], obj=context)

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["url"] == \
            "https://mint.example.org/collections/0xabc?mintIndex=0"

    def test_share_rejects_negative_index(self, runner, context):
        result = runner.invoke(cli, ['share', '0xabc', '-1'], obj=context)
        assert result.exit_code == 2

    def test_resolve_link(self, runner, context):
        url = "https://dropforge.app/collections/0xabc?mintIndex=1"

        result = runner.invoke(cli, ['-o', 'json', 'resolve-link', url], obj=context)

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {
            "collection_id": "0xabc", "valid": True, "index": 1, "number": 2
        }

    @pytest.mark.parametrize("url,args", [
        ("https://dropforge.app/collections/0xabc?mintIndex=abc", []),
        ("https://dropforge.app/collections/0xabc?mintIndex=-1", []),
        ("https://dropforge.app/collections/0xabc?mintIndex=4", ['--manifest-length', '4']),
        ("https://dropforge.app/collections/0xabc", []),
    ])
    def test_resolve_link_invalid(self, runner, context, url, args):
        result = runner.invoke(cli, ['-o', 'json', 'resolve-link', url] + args, obj=context)

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["valid"] is False
        assert data["number"] is None


class TestConfigCommands:
    """Test configuration commands."""

    def test_show_key(self, runner, context):
        result = runner.invoke(cli, ['-o', 'json', 'config', 'show', '--key', 'walrus.epochs'],
                               obj=context)

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"walrus.epochs": 5}

    def test_show_profile(self, runner, context):
        result = runner.invoke(cli, ['-p', 'mainnet', '-o', 'json', 'config', 'show',
                                     '--key', 'network'], obj=context)

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["type"] == "mainnet"

    def test_show_table_flattens(self, runner, context):
        result = runner.invoke(cli, ['config', 'show'], obj=context)

        assert result.exit_code == 0, result.output
        assert "network.rpc.url" in result.output

    def test_show_sources(self, runner, context, tmp_path):
        config_file = tmp_path / "dropforge.yml"
        config_file.write_text("walrus:\n  epochs: 9\n")

        result = runner.invoke(cli, ['-c', str(config_file), '-o', 'json', 'config', 'show',
                                     '--sources'], obj=context)

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == ["defaults", f"file:{config_file}"]

    def test_show_missing_key(self, runner, context):
        result = runner.invoke(cli, ['config', 'show', '--key', 'walrus.nope'], obj=context)

        assert result.exit_code == 1
        assert "Configuration key not found" in result.output

    def test_validate(self, runner, context):
        result = runner.invoke(cli, ['config', 'validate'], obj=context)

        assert result.exit_code == 0
        assert "Configuration is valid." in result.output

    def test_configured_output_format(self, runner, context, monkeypatch):
        monkeypatch.setenv("DROPFORGE_CLI__OUTPUT_FORMAT", "json")

        result = runner.invoke(cli, ['share', '0xabc', '1'], obj=context)

        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["number"] == 2
        assert context.output_format == "json"

    def test_output_option_overrides_configuration(self, runner, context, monkeypatch):
        monkeypatch.setenv("DROPFORGE_CLI__OUTPUT_FORMAT", "json")

        result = runner.invoke(cli, ['-o', 'yaml', 'share', '0xabc', '1'], obj=context)

        assert result.exit_code == 0, result.output
        assert "number: 2" in result.output

    def test_invalid_configured_output_format(self, runner, context, monkeypatch):
        monkeypatch.setenv("DROPFORGE_CLI__OUTPUT_FORMAT", "csv")

        result = runner.invoke(cli, ['share', '0xabc', '1'], obj=context)

        assert result.exit_code == 1
        assert "cli.output_format" in result.output

    def test_profile_verbosity(self, runner, context):
        result = runner.invoke(cli, ['-p', 'devnet', 'config', 'validate'], obj=context)

        assert result.exit_code == 0, result.output
        assert context.verbose == 2

    def test_validate_errors(self, runner, context, monkeypatch):
        monkeypatch.setenv("DROPFORGE_WALRUS__EPOCHS", "0")

        result = runner.invoke(cli, ['config', 'validate'], obj=context)

        assert result.exit_code == 1
        assert "walrus.epochs" in result.output


def test_version(runner):
    result = runner.invoke(cli, ['--version'])

    assert result.exit_code == 0
    assert "1.0.0" in result.output

