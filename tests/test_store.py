"""Tests for the in-memory record store."""

import pytest

from blog_api.store import InMemoryRecordStore, Relation, UniqueViolation


@pytest.fixture
def users():
    return InMemoryRecordStore("users", unique=("username", "email"))


@pytest.fixture
def posts(users):
    return InMemoryRecordStore("posts", relations=[Relation("author", users, "author_id", ("id", "username"))])


class TestCreateAndFind:
    def test_create_assigns_id_and_timestamps(self, users):
        record = users.create({"username": "alice", "email": "a@example.com"})

        assert record["id"] == 1
        assert record["created_at"] is not None
        assert record["created_at"] == record["updated_at"]

    def test_create_ignores_caller_supplied_id(self, users):
        users.create({"username": "alice", "email": "a@example.com"})
        record = users.create({"id": 99, "username": "bob", "email": "b@example.com"})

        assert record["id"] == 2

    def test_find_one_returns_none_when_absent(self, users):
        assert users.find_one({"username": "ghost"}) is None

    def test_find_one_matches_all_fields(self, users):
        users.create({"username": "alice", "email": "a@example.com"})

        assert users.find_one({"username": "alice", "email": "a@example.com"})["id"] == 1
        assert users.find_one({"username": "alice", "email": "other@example.com"}) is None

    def test_returned_records_are_copies(self, users):
        record = users.create({"username": "alice", "email": "a@example.com"})
        record["username"] = "mallory"

        assert users.find_one({"id": 1})["username"] == "alice"

    def test_unique_fields_are_enforced(self, users):
        users.create({"username": "alice", "email": "a@example.com"})

        with pytest.raises(UniqueViolation) as exc_info:
            users.create({"username": "alice", "email": "other@example.com"})
        assert exc_info.value.field == "username"


class TestOrderingAndRelations:
    def test_find_orders_descending(self, posts):
        for title in ("first", "second", "third"):
            posts.create({"title": title, "author_id": None})

        titles = [p["title"] for p in posts.find(order=[("id", "desc")])]

        assert titles == ["third", "second", "first"]

    def test_find_rejects_unknown_direction(self, posts):
        posts.create({"title": "t", "author_id": None})

        with pytest.raises(ValueError):
            posts.find(order=[("id", "sideways")])

    def test_include_attaches_projection(self, users, posts):
        users.create({"username": "alice", "email": "a@example.com", "password": "hash"})
        posts.create({"title": "t", "author_id": 1})

        post = posts.find_one({"id": 1}, include=["author"])

        assert post["author"] == {"id": 1, "username": "alice"}

    def test_include_unknown_relation_raises(self, posts):
        posts.create({"title": "t", "author_id": 1})

        with pytest.raises(ValueError):
            posts.find(include=["editor"])

    def test_missing_related_record_attaches_none(self, posts):
        posts.create({"title": "t", "author_id": 42})

        assert posts.find(include=["author"])[0]["author"] is None


class TestUpdateAndDelete:
    def test_update_is_partial(self, users):
        users.create({"username": "alice", "email": "a@example.com"})
        users.update(1, {"email": "new@example.com"})

        record = users.find_one({"id": 1})
        assert record["username"] == "alice"
        assert record["email"] == "new@example.com"
        assert record["updated_at"] >= record["created_at"]

    def test_update_unknown_id_is_noop(self, users):
        users.update(5, {"username": "x"})

        assert users.find() == []

    def test_delete_removes_record(self, users):
        users.create({"username": "alice", "email": "a@example.com"})
        users.delete(1)

        assert users.find_one({"id": 1}) is None
