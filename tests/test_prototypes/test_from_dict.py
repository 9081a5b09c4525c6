"""Tests for Prototype._from_dict() method."""

from blockconfig import Label, NotRequired, Prototype


class Replica(Prototype):
    name: Label
    host: str


class Database(Prototype):
    host: str
    port: int = 5432
    replica: list[Replica]


class Cache(Prototype):
    ttl: int


class Config(Prototype):
    database: Database
    cache: NotRequired[Cache]
    tags: list[str]


def test_from_dict_builds_nested_instances():
    # given
    data = {
        "database": {
            "host": "db",
            "port": 5433,
            "replica": [{"name": "r1", "host": "replica-1"}],
        },
        "cache": {"ttl": 60},
        "tags": ["a", "b"],
    }

    # when
    config = Config._from_dict(data)

    # then
    assert config == Config(
        database=Database(
            host="db", port=5433, replica=[Replica(name="r1", host="replica-1")]
        ),
        cache=Cache(ttl=60),
        tags=["a", "b"],
    )


def test_from_dict_keeps_missing_optional_block_as_none():
    # given
    data = {
        "database": {"host": "db", "port": 5432, "replica": []},
        "cache": None,
        "tags": [],
    }

    # when
    config = Config._from_dict(data)

    # then
    assert config.cache is None
    assert config.database.replica == []


def test_from_dict_uses_defaults_for_absent_attributes():
    # given
    data = {"host": "db", "replica": []}

    # when
    database = Database._from_dict(data)

    # then
    assert database.port == 5432
