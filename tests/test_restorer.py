"""Tests for CollectionRestorer and its variants."""

import json

import pytest

from directus_sync.collections.models import CollectionDef, DependencyRef
from directus_sync.collections.restorer import (
    MASKED_VALUE,
    CollectionRestorer,
    IdRegistry,
    PermissionsRestorer,
    UsersRestorer,
    create_restorer,
)
from directus_sync.collections.store import RecordStore
from directus_sync.errors import MalformedDumpError, RemoteValidationError

ROLES = CollectionDef(name="roles")
USERS = CollectionDef(
    name="users",
    refs=[DependencyRef(field="role", collection="roles")],
)
FOLDERS = CollectionDef(
    name="folders",
    refs=[DependencyRef(field="parent", collection="folders")],
)
FILES = CollectionDef(
    name="files",
    refs=[DependencyRef(field="uploaded_by", collection="users", nullable=True)],
)


def _loaded(restorers):
    for restorer in restorers:
        restorer.load()
    return restorers


# ------------------------------------------------------------------
# restore()
# ------------------------------------------------------------------


class TestRestore:
    """restore() applies resolvable records and defers the rest."""

    async def test_no_references_applies_in_one_call(self, fake_client, make_restorers):
        (roles,) = _loaded(make_restorers(fake_client, [
            (ROLES, [{"id": "r1", "name": "Admin"}, {"id": "r2", "name": "Editor"}]),
        ]))

        assert await roles.restore() is False
        assert fake_client.created == [("roles", "r1"), ("roles", "r2")]
        assert roles.pending == []
        assert roles.outcomes[-1].applied == 2
        assert roles.outcomes[-1].deferred == 0

    async def test_existing_record_is_updated_not_created(self, fake_client, make_restorers):
        fake_client.seed("roles", [{"id": "r1", "name": "Old"}])
        (roles,) = _loaded(make_restorers(fake_client, [
            (ROLES, [{"id": "r1", "name": "Admin"}]),
        ]))

        assert await roles.restore() is False
        assert fake_client.created == []
        assert fake_client.updated == [("roles", "r1")]
        assert fake_client.items["roles"]["r1"]["name"] == "Admin"
        assert roles.summary().updated == 1

    async def test_second_call_is_a_no_op(self, fake_client, make_restorers):
        (roles,) = _loaded(make_restorers(fake_client, [(ROLES, [{"id": "r1"}])]))

        assert await roles.restore() is False
        list_calls = len(fake_client.list_calls)
        assert await roles.restore() is False

        assert fake_client.created == [("roles", "r1")]
        assert fake_client.updated == []
        assert len(fake_client.list_calls) == list_calls
        assert len(fake_client.items["roles"]) == 1

    async def test_unresolved_reference_defers(self, fake_client, make_restorers):
        (users,) = _loaded(make_restorers(fake_client, [
            (USERS, [{"id": "u1", "role": "r1"}, {"id": "u2", "role": None}]),
        ]))

        assert await users.restore() is True
        assert fake_client.created == [("users", "u2")]
        assert users.pending == ["u1"]
        assert users.outcomes[-1].deferred == 1

    async def test_deferred_record_applied_once_reference_exists(self, fake_client, make_restorers):
        users, roles = _loaded(make_restorers(fake_client, [
            (USERS, [{"id": "u1", "role": "r1"}]),
            (ROLES, [{"id": "r1"}]),
        ]))

        assert await users.restore() is True
        assert await roles.restore() is False
        assert await users.restore() is False
        assert ("users", "u1") in fake_client.created

    async def test_reference_to_pre_existing_remote_record(self, fake_client, make_restorers):
        fake_client.seed("roles", [{"id": "r1"}])
        (users,) = _loaded(make_restorers(fake_client, [
            (USERS, [{"id": "u1", "role": "r1"}]),
        ]))

        assert await users.restore() is False
        assert fake_client.created == [("users", "u1")]

    async def test_same_collection_reference_in_one_call(self, fake_client, make_restorers):
        (folders,) = _loaded(make_restorers(fake_client, [
            (FOLDERS, [{"id": "root", "parent": None}, {"id": "child", "parent": "root"}]),
        ]))

        assert await folders.restore() is False
        assert fake_client.created == [("folders", "root"), ("folders", "child")]

    async def test_child_listed_before_parent_takes_two_calls(self, fake_client, make_restorers):
        (folders,) = _loaded(make_restorers(fake_client, [
            (FOLDERS, [{"id": "child", "parent": "root"}, {"id": "root", "parent": None}]),
        ]))

        assert await folders.restore() is True
        assert await folders.restore() is False
        assert fake_client.created == [("folders", "root"), ("folders", "child")]

    async def test_reference_to_itself_resolves(self, fake_client, make_restorers):
        (folders,) = _loaded(make_restorers(fake_client, [
            (FOLDERS, [{"id": "loop", "parent": "loop"}]),
        ]))

        assert await folders.restore() is False
        assert fake_client.created == [("folders", "loop")]

    async def test_list_reference_needs_every_target(self, fake_client, make_restorers):
        tags = CollectionDef(
            name="articles",
            refs=[DependencyRef(field="tags", collection="tags")],
        )
        fake_client.seed("tags", [{"id": "t1"}])
        (articles,) = _loaded(make_restorers(fake_client, [
            (tags, [{"id": "a1", "tags": ["t1", "t2"]}, {"id": "a2", "tags": ["t1"]}]),
        ]))

        assert await articles.restore() is True
        assert articles.pending == ["a1"]

    async def test_excluded_fields_not_written(self, fake_client, make_restorers):
        roles_def = CollectionDef(name="roles", exclude_fields=["users"])
        (roles,) = _loaded(make_restorers(fake_client, [
            (roles_def, [{"id": "r1", "name": "Admin", "users": ["u1"]}]),
        ]))

        await roles.restore()
        assert fake_client.items["roles"]["r1"] == {"id": "r1", "name": "Admin"}

    async def test_update_payload_has_no_identifier(self, make_restorers, tmp_path):
        class RecordingClient:
            def __init__(self):
                self.payloads = []

            async def list_ids(self, collection, pk="id"):
                return {"r1"}

            async def update_item(self, collection, item_id, data):
                self.payloads.append((item_id, data))
                return data

        client = RecordingClient()
        (roles,) = _loaded(make_restorers(client, [(ROLES, [{"id": "r1", "name": "A"}])]))

        await roles.restore()
        assert client.payloads == [("r1", {"name": "A"})]

    async def test_remote_validation_error_propagates(self, fake_client, make_restorers):
        fake_client.reject.add(("roles", "r2"))
        (roles,) = _loaded(make_restorers(fake_client, [
            (ROLES, [{"id": "r1"}, {"id": "r2"}, {"id": "r3"}]),
        ]))

        with pytest.raises(RemoteValidationError):
            await roles.restore()

        assert fake_client.created == [("roles", "r1")]
        assert "r2" in roles.pending


# ------------------------------------------------------------------
# clean_up()
# ------------------------------------------------------------------


class TestCleanUp:
    """clean_up() clears dangling nullable references only."""

    async def test_clean_record_set_is_untouched(self, fake_client, make_restorers):
        records = [{"id": "f1", "uploaded_by": "u1"}, {"id": "f2", "uploaded_by": None}]
        users, files = _loaded(make_restorers(fake_client, [
            (USERS, [{"id": "u1", "role": None}]),
            (FILES, records),
        ]))
        before = json.loads(json.dumps(files.records))

        assert await files.clean_up() == 0
        assert files.records == before

    async def test_dangling_nullable_reference_is_cleared(self, fake_client, make_restorers):
        users, files = _loaded(make_restorers(fake_client, [
            (USERS, [{"id": "u1", "role": None}]),
            (FILES, [{"id": "f1", "uploaded_by": "ghost"}]),
        ]))

        assert await files.clean_up() == 1
        assert files.records[0]["uploaded_by"] is None
        assert await files.restore() is False

    async def test_reference_existing_remotely_is_kept(self, fake_client, make_restorers):
        fake_client.seed("users", [{"id": "remote-user"}])
        (files,) = _loaded(make_restorers(fake_client, [
            (FILES, [{"id": "f1", "uploaded_by": "remote-user"}]),
        ]))

        assert await files.clean_up() == 0
        assert files.records[0]["uploaded_by"] == "remote-user"

    async def test_dangling_element_removed_from_list_reference(self, fake_client, make_restorers):
        tags_def = CollectionDef(name="tags")
        articles_def = CollectionDef(
            name="articles",
            refs=[DependencyRef(field="tags", collection="tags", nullable=True)],
        )
        fake_client.seed("tags", [{"id": "t-remote"}])
        tags, articles = _loaded(make_restorers(fake_client, [
            (tags_def, [{"id": "t1"}]),
            (articles_def, [{"id": "a1", "tags": ["t1", "gone", "t-remote", "lost"]}]),
        ]))

        assert await articles.clean_up() == 2
        assert articles.records[0]["tags"] == ["t1", "t-remote"]

        await tags.restore()
        assert await articles.restore() is False
        assert fake_client.items["articles"]["a1"]["tags"] == ["t1", "t-remote"]

    async def test_clean_list_reference_is_untouched(self, fake_client, make_restorers):
        tags_def = CollectionDef(name="tags")
        articles_def = CollectionDef(
            name="articles",
            refs=[DependencyRef(field="tags", collection="tags", nullable=True)],
        )
        tags, articles = _loaded(make_restorers(fake_client, [
            (tags_def, [{"id": "t1"}, {"id": "t2"}]),
            (articles_def, [{"id": "a1", "tags": ["t2", "t1"]}]),
        ]))

        assert await articles.clean_up() == 0
        assert articles.records[0]["tags"] == ["t2", "t1"]

    async def test_required_reference_is_kept(self, fake_client, make_restorers):
        (users,) = _loaded(make_restorers(fake_client, [
            (USERS, [{"id": "u1", "role": "ghost"}]),
        ]))

        assert await users.clean_up() == 0
        assert users.records[0]["role"] == "ghost"

    async def test_users_drop_masked_secrets(self, fake_client, make_restorers):
        (users,) = _loaded(make_restorers(fake_client, [
            (CollectionDef(name="users"), [
                {"id": "u1", "password": MASKED_VALUE, "token": MASKED_VALUE},
                {"id": "u2", "password": "plain-text-new-password"},
            ]),
        ]))
        assert isinstance(users, UsersRestorer)

        assert await users.clean_up() == 2
        assert "password" not in users.records[0]
        assert "token" not in users.records[0]
        assert users.records[1]["password"] == "plain-text-new-password"

    async def test_permissions_drop_system_records(self, fake_client, make_restorers):
        (permissions,) = _loaded(make_restorers(fake_client, [
            (CollectionDef(name="permissions"), [
                {"id": 1, "collection": "articles", "action": "read"},
                {"id": 2, "collection": "directus_users", "action": "read", "system": True},
            ]),
        ]))
        assert isinstance(permissions, PermissionsRestorer)

        assert await permissions.clean_up() == 1
        assert [r["id"] for r in permissions.records] == [1]
        assert await permissions.restore() is False
        assert fake_client.created == [("permissions", 1)]


# ------------------------------------------------------------------
# load() / dump() / create_restorer()
# ------------------------------------------------------------------


class TestLoadAndDump:

    def test_record_without_identifier_rejected(self, fake_client, make_restorers):
        (roles,) = make_restorers(fake_client, [(ROLES, [{"name": "no id"}])])
        with pytest.raises(MalformedDumpError, match="missing 'id'"):
            roles.load()

    def test_duplicate_identifier_rejected(self, fake_client, make_restorers):
        (roles,) = make_restorers(fake_client, [(ROLES, [{"id": "r1"}, {"id": "r1"}])])
        with pytest.raises(MalformedDumpError, match="duplicate"):
            roles.load()

    def test_load_registers_dump_ids(self, fake_client, make_restorers):
        (roles,) = make_restorers(fake_client, [(ROLES, [{"id": "r1"}, {"id": "r2"}])])
        assert roles.load() == 2
        assert roles.registry.dumped("roles") == {"r1", "r2"}

    async def test_dump_writes_remote_records(self, fake_client, tmp_path):
        fake_client.seed("roles", [{"id": "r1"}, {"id": "r2"}])
        store = RecordStore(tmp_path, "roles")
        restorer = CollectionRestorer(ROLES, store, fake_client, IdRegistry(fake_client))

        assert await restorer.dump() == 1
        assert store.load() == [{"id": "r1"}, {"id": "r2"}]

    def test_create_restorer_variants(self, fake_client, tmp_path):
        registry = IdRegistry(fake_client)

        def build(name):
            return create_restorer(
                CollectionDef(name=name), RecordStore(tmp_path, name), fake_client, registry
            )

        assert type(build("users")) is UsersRestorer
        assert type(build("permissions")) is PermissionsRestorer
        assert type(build("roles")) is CollectionRestorer
        assert type(build("articles")) is CollectionRestorer
