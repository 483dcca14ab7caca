"""Tests for token persistence and change notifications."""

import stat

from ridekit.auth.models.scopes import Scope
from ridekit.auth.models.tokens import AccessToken
from ridekit.auth.services.token_store import (
    DEFAULT_ACCESS_GROUP,
    DEFAULT_ACCESS_TOKEN_IDENTIFIER,
    FileBackend,
    InMemoryBackend,
    TokenStore,
    TokenStoreEvent,
)


def make_token(value: str = "token123") -> AccessToken:
    return AccessToken.from_parameters(
        {"access_token": value, "refresh_token": "refresh456", "expires_in": "3600"},
        [Scope.PROFILE, Scope.HISTORY],
    )


class TestTokenStore:
    def setup_method(self):
        self.store = TokenStore()
        self.events = []
        self.store.add_listener(lambda *event: self.events.append(event))

    def test_save_then_fetch(self):
        # Arrange
        token = make_token()

        # Act
        saved = self.store.save(token)
        fetched = self.store.fetch()

        # Assert
        assert saved
        assert fetched == token
        assert fetched.refresh_token == "refresh456"
        assert fetched.granted_scopes == {Scope.PROFILE, Scope.HISTORY}
        assert self.events == [
            (TokenStoreEvent.SAVED, DEFAULT_ACCESS_TOKEN_IDENTIFIER, DEFAULT_ACCESS_GROUP)
        ]

    def test_fetch_missing_returns_none(self):
        assert self.store.fetch("nothing-here") is None

    def test_save_replaces_existing(self):
        self.store.save(make_token("first"))
        self.store.save(make_token("second"))

        assert self.store.fetch().token_string == "second"

    def test_identifier_and_group_are_separate_keys(self):
        self.store.save(make_token("a"), identifier="id1")
        self.store.save(make_token("b"), identifier="id1", access_group="group")

        assert self.store.fetch("id1").token_string == "a"
        assert self.store.fetch("id1", "group").token_string == "b"
        assert self.store.fetch() is None

    def test_delete(self):
        # Arrange
        self.store.save(make_token(), identifier="custom")
        self.events.clear()

        # Act
        removed = self.store.delete("custom")

        # Assert
        assert removed
        assert self.store.fetch("custom") is None
        assert self.events == [(TokenStoreEvent.DELETED, "custom", DEFAULT_ACCESS_GROUP)]

    def test_delete_missing_does_not_notify(self):
        assert not self.store.delete("missing")
        assert self.events == []

    def test_removed_listener_is_not_called(self):
        calls = []

        def listener(*event):
            calls.append(event)

        self.store.add_listener(listener)
        self.store.remove_listener(listener)
        self.store.save(make_token())

        assert calls == []

    def test_corrupted_record_is_discarded(self):
        backend = InMemoryBackend()
        backend.write(DEFAULT_ACCESS_TOKEN_IDENTIFIER, DEFAULT_ACCESS_GROUP, "{not json")
        store = TokenStore(backend)

        assert store.fetch() is None


class TestFileBackend:
    def test_round_trip_on_disk(self, tmp_path):
        # Arrange
        store = TokenStore(FileBackend(tmp_path))
        token = make_token()

        # Act
        store.save(token, identifier="my token", access_group="team/group")

        # Assert
        reloaded = TokenStore(FileBackend(tmp_path)).fetch("my token", "team/group")
        assert reloaded == token
        assert reloaded.expiration_date == token.expiration_date

    def test_file_is_owner_only(self, tmp_path):
        backend = FileBackend(tmp_path)
        TokenStore(backend).save(make_token())

        files = list(tmp_path.rglob("*.json"))
        assert len(files) == 1
        assert stat.S_IMODE(files[0].stat().st_mode) == 0o600

    def test_default_group_directory(self, tmp_path):
        TokenStore(FileBackend(tmp_path)).save(make_token())

        assert (tmp_path / "default" / f"{DEFAULT_ACCESS_TOKEN_IDENTIFIER}.json").exists()

    def test_delete_removes_file(self, tmp_path):
        store = TokenStore(FileBackend(tmp_path))
        store.save(make_token())

        assert store.delete()
        assert not store.delete()
        assert list(tmp_path.rglob("*.json")) == []

    def test_corrupted_file_returns_none(self, tmp_path):
        path = tmp_path / "default" / f"{DEFAULT_ACCESS_TOKEN_IDENTIFIER}.json"
        path.parent.mkdir(parents=True)
        path.write_text('{"token_string": ""}', encoding="utf-8")

        assert TokenStore(FileBackend(tmp_path)).fetch() is None
