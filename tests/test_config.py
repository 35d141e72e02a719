"""
Layered configuration.
"""

import os

import pytest

from marshalry import Marshal
from marshalry.config import ConfigError, ConfigLoader
from marshalry.sources import SourceLoader
from marshalry.testing import StaticSourceLoader


class TestConfigLoader:

    def test_defaults(self, monkeypatch):
        for key in list(os.environ):
            if key.startswith("MARSHAL_"):
                monkeypatch.delenv(key)

        config = ConfigLoader.load()
        assert config.get("loader.timeout") == 10.0
        assert config.get("loader.base_path") is None
        assert config.get("manifests") == []
        assert config.get("scan_budget_factor") == 1

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "marshal.yaml"
        path.write_text("loader:\n  timeout: 2.5\nscan_budget_factor: 3\n")

        config = ConfigLoader.load(paths=[str(path)])
        assert config.get("loader.timeout") == 2.5
        assert config.get("scan_budget_factor") == 3

    def test_json_file(self, tmp_path):
        path = tmp_path / "marshal.json"
        path.write_text('{"loader": {"base_path": "/srv/modules"}}')

        config = ConfigLoader.load(paths=[str(path)])
        assert config.get("loader.base_path") == "/srv/modules"
        assert config.get("loader.timeout") == 10.0

    def test_env_file(self, tmp_path):
        path = tmp_path / ".env"
        path.write_text("MARSHAL_LOADER__TIMEOUT=4\nOTHER_KEY=ignored\n")

        config = ConfigLoader.load(env_file=str(path))
        assert config.get("loader.timeout") == 4
        assert config.get("other_key") is None

    def test_environment_beats_env_file(self, tmp_path, monkeypatch):
        path = tmp_path / ".env"
        path.write_text("MARSHAL_SCAN_BUDGET_FACTOR=2\n")
        monkeypatch.setenv("MARSHAL_SCAN_BUDGET_FACTOR", "5")

        config = ConfigLoader.load(env_file=str(path))
        assert config.get("scan_budget_factor") == 5

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("MARSHAL_LOADER__TIMEOUT", "3")
        config = ConfigLoader.load(overrides={"loader": {"timeout": 7.0}})
        assert config.get("loader.timeout") == 7.0

    def test_single_manifest_string(self, monkeypatch):
        monkeypatch.setenv("MARSHAL_MANIFESTS", "modules.yaml")
        assert ConfigLoader.load().get("manifests") == ["modules.yaml"]

    def test_invalid_timeout(self):
        with pytest.raises(ConfigError, match="loader.timeout"):
            ConfigLoader.load(overrides={"loader": {"timeout": -1}})

    def test_invalid_budget(self):
        with pytest.raises(ConfigError, match="scan_budget_factor"):
            ConfigLoader.load(overrides={"scan_budget_factor": 0})


class TestMarshalFromConfig:

    def test_default_loader_uses_config(self, tmp_path):
        config = ConfigLoader.load(overrides={"loader": {"base_path": str(tmp_path), "timeout": 2.0}})
        marshal = Marshal(config=config)

        assert isinstance(marshal.source_loader, SourceLoader)
        assert marshal.source_loader.base_path == tmp_path
        assert marshal.source_loader.timeout == 2.0

    @pytest.mark.asyncio
    async def test_registers_manifests(self, tmp_path):
        path = tmp_path / "modules.yaml"
        path.write_text("modules:\n  - {namespace: app, name: db, version: '1', source: db}\n")
        config = ConfigLoader.load(overrides={"manifests": [str(path)]})

        marshal = Marshal.from_config(config, StaticSourceLoader({"db": {"ok": True}}))
        await marshal.load()

        assert marshal.get("app/db") == {"ok": True}
