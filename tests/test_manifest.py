"""
Descriptor manifests in YAML and JSON.
"""

import json

import pytest

from marshalry import Marshal, ModuleKind
from marshalry.descriptor import DirectRef, TagRef
from marshalry.errors import ManifestValidationError
from marshalry.manifest import ManifestLoader
from marshalry.testing import StaticSourceLoader


YAML_MANIFEST = """
modules:
  - namespace: app
    name: main
    version: 1.0.0
    source: app.main:Main
    tags: [plugin]
    requires: [app/db, "!plugin"]
    arguments: [1, 2]
    resource: {src: /static/main/}
  - namespace: app
    name: helpers
    version: "2.1"
    source: helpers.py
    type: scope
  - namespace: app
    name: report
    version: 1.0.0
    source: report.py
    lazy: true
"""


class TestManifestLoader:

    def test_yaml(self, tmp_path):
        path = tmp_path / "modules.yaml"
        path.write_text(YAML_MANIFEST)

        main, helpers, report = ManifestLoader().load(path)

        assert main.constraint_key == "app/main"
        assert main.source == "app.main:Main"
        assert main.tags == frozenset({"plugin"})
        assert main.requires == (DirectRef("app/db"), TagRef("plugin"))
        assert main.entry.arguments == (1, 2)
        assert main.resource == {"src": "/static/main/"}
        assert helpers.kind is ModuleKind.SCOPE
        assert helpers.entry.version == "2.1"
        assert report.lazy is True

    def test_json(self, tmp_path):
        path = tmp_path / "modules.json"
        path.write_text(json.dumps({
            "modules": [
                {"namespace": "app", "name": "db", "version": "1.0", "source": "db.py"},
            ],
        }))

        (db,) = ManifestLoader().load(path)
        assert db.constraint_key == "app/db"

    def test_collects_errors(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({
            "modules": [
                {"namespace": "app", "version": "1.0", "source": "x.py"},
                {"namespace": "app", "name": "y", "version": "1.0", "source": "y.py", "tags": "plugin"},
                {"namespace": "app", "name": "z", "version": "1.0", "source": "z.py", "type": "plugin"},
            ],
        }))

        with pytest.raises(ManifestValidationError) as exc_info:
            ManifestLoader().load(path)

        errors = exc_info.value.errors
        assert len(errors) == 3
        assert "missing required field: name" in errors[0]
        assert "'tags' must be a list" in errors[1]
        assert "unknown type 'plugin'" in errors[2]

    def test_missing_modules_list(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("name: nothing\n")
        with pytest.raises(ManifestValidationError):
            ManifestLoader().load(path)

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "modules.toml"
        path.write_text("")
        with pytest.raises(ManifestValidationError, match="Unsupported manifest format"):
            ManifestLoader().load(path)


class TestRegisterManifest:

    @pytest.mark.asyncio
    async def test_register_and_load(self, tmp_path):
        path = tmp_path / "modules.yaml"
        path.write_text(
            "modules:\n"
            "  - {namespace: app, name: db, version: '1', source: db}\n"
            "  - {namespace: app, name: api, version: '1', source: api, requires: [app/db]}\n"
        )

        class Api:
            __inject__ = {"db": "app/db"}

            def inject(self, injections):
                self.db = injections["db"]

        marshal = Marshal(StaticSourceLoader({"db": {"url": "memory://"}, "api": Api}))
        marshal.register_manifest(str(path))
        await marshal.load()

        assert marshal.get("app/api").db == {"url": "memory://"}
