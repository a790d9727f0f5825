"""Tests for config loading, collection selection and client factory."""

import textwrap

import pytest

from directus_sync.adapters.http import AsyncDirectusAdapter
from directus_sync.collections.models import DEFAULT_COLLECTIONS, CollectionDef
from directus_sync.config.loader import load_config
from directus_sync.config.models import CollectionsConfig, InstanceConfig
from directus_sync.errors import ConfigError
from directus_sync.factory import build_restorers, create_context, get_client


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("DIRECTUS_URL", "DIRECTUS_TOKEN", "DIRECTUS_EMAIL", "DIRECTUS_PASSWORD"):
        monkeypatch.delenv(name, raising=False)


def _write(tmp_path, content: str):
    path = tmp_path / "directus-sync.toml"
    path.write_text(textwrap.dedent(content))
    return path


class TestLoadConfig:

    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = load_config()

        assert config.instance.url == "http://localhost:8055"
        assert config.instance.token is None
        assert config.snapshot.split_files is True
        assert config.collections.max_passes == 0

    def test_default_file_in_working_directory(self, tmp_path, monkeypatch):
        _write(tmp_path, """
            [instance]
            url = "https://cms.example.com"
        """)
        monkeypatch.chdir(tmp_path)
        assert load_config().instance.url == "https://cms.example.com"

    def test_explicit_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "missing.toml")

    def test_invalid_toml_raises(self, tmp_path):
        path = _write(tmp_path, "[instance\nurl = ")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(path)

    def test_invalid_structure_raises(self, tmp_path):
        path = _write(tmp_path, """
            [collections]
            max_passes = "many"
        """)
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_config(path)

    def test_full_file(self, tmp_path):
        path = _write(tmp_path, """
            [instance]
            url = "https://cms.example.com"
            token = "abc"
            timeout = 5
            retries = 0

            [snapshot]
            dump_path = "out/snapshot"
            split_files = false

            [collections]
            dump_path = "out/collections"
            max_passes = 10

            [[collections.custom]]
            name = "articles"
            refs = [{ field = "author", collection = "users", nullable = true }]
        """)
        config = load_config(path)

        assert config.instance.timeout == 5
        assert config.instance.retries == 0
        assert config.snapshot.dump_path == "out/snapshot"
        assert config.snapshot.split_files is False
        assert config.collections.max_passes == 10
        custom = config.collections.custom[0]
        assert custom.name == "articles"
        assert custom.refs[0].nullable is True

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = _write(tmp_path, """
            [instance]
            url = "https://file.example.com"
            token = "from-file"
        """)
        monkeypatch.setenv("DIRECTUS_TOKEN", "from-env")
        config = load_config(path)

        assert config.instance.url == "https://file.example.com"
        assert config.instance.token == "from-env"

    def test_env_prefix(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("DIRECTUS_URL", "https://unprefixed.example.com")
        monkeypatch.setenv("STAGING_DIRECTUS_URL", "https://staging.example.com")

        assert load_config(env_prefix="STAGING_").instance.url == "https://staging.example.com"


class TestDefinitions:
    """CollectionsConfig.definitions() keeps restore order."""

    def test_defaults(self):
        names = [d.name for d in CollectionsConfig().definitions()]
        assert names == [d.name for d in DEFAULT_COLLECTIONS]
        assert names.index("roles") < names.index("users") < names.index("files")

    def test_custom_appended_and_overrides_in_place(self):
        config = CollectionsConfig(custom=[
            CollectionDef(name="articles"),
            CollectionDef(name="users", pk="email"),
        ])
        definitions = config.definitions()
        names = [d.name for d in definitions]

        assert names[-1] == "articles"
        assert names.count("users") == 1
        users = definitions[names.index("users")]
        assert users.pk == "email"
        assert names.index("users") == [d.name for d in DEFAULT_COLLECTIONS].index("users")

    def test_include_and_exclude(self):
        config = CollectionsConfig(include=["roles", "users", "files"], exclude=["files"])
        assert [d.name for d in config.definitions()] == ["roles", "users"]


class TestFactory:

    def test_client_requires_credentials(self):
        with pytest.raises(ConfigError, match="No credentials"):
            get_client(InstanceConfig())

    def test_client_with_token(self):
        client = get_client(InstanceConfig(token="abc"))
        assert isinstance(client, AsyncDirectusAdapter)

    def test_client_with_login(self):
        client = get_client(InstanceConfig(email="a@b.c", password="pw"))
        assert isinstance(client, AsyncDirectusAdapter)

    def test_restorers_share_registry(self, fake_client, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = load_config()
        restorers = build_restorers(config, fake_client)

        assert [r.name for r in restorers] == [d.name for d in DEFAULT_COLLECTIONS]
        assert len({id(r.registry) for r in restorers}) == 1

    async def test_context_uses_given_client(self, fake_client, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        context = create_context(load_config(), client=fake_client)

        assert context.snapshots.client is fake_client
        assert context.restore_driver().max_passes == 0
        assert context.restore_driver(max_passes=4).max_passes == 4
        await context.close()
        assert fake_client.closed is True
