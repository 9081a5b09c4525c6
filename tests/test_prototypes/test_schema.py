"""Tests for Prototype._schema() method."""

from typing import Any

from blockconfig import Label, NotRequired, Prototype, validate_schema


def test_schema_with_attributes_only():
    # given
    class Config(Prototype):
        group: str
        workers: int

    # when
    schema = Config._schema()

    # then
    validate_schema(schema)
    assert schema == {
        "type": "body",
        "required_attributes": {
            "group": {"type": "string"},
            "workers": {"type": "integer"},
        },
    }


def test_schema_with_optional_attributes():
    # given
    class Config(Prototype):
        debug: bool = False
        ratio: NotRequired[float]
        owner: str | None = None

    # when
    schema = Config._schema()

    # then
    validate_schema(schema)
    assert schema == {
        "type": "body",
        "optional_attributes": {
            "debug": {"type": "boolean", "default": False},
            "ratio": {"type": "float"},
            "owner": {"type": "string", "nullable": True, "default": None},
        },
    }


def test_schema_with_container_attributes():
    # given
    class Config(Prototype):
        tags: list[str]
        limits: dict[str, int]
        extra: Any

    # when
    schema = Config._schema()

    # then
    validate_schema(schema)
    assert schema == {
        "type": "body",
        "required_attributes": {
            "tags": {"type": "list", "element_schema": {"type": "string"}},
            "limits": {"type": "dict", "extra_keys_schema": {"type": "integer"}},
            "extra": {"type": "any"},
        },
    }


def test_schema_with_blocks():
    # given
    class Database(Prototype):
        host: str

    class Cache(Prototype):
        ttl: int

    class Service(Prototype):
        name: Label
        port: int

    class Config(Prototype):
        database: Database
        cache: NotRequired[Cache]
        service: list[Service]

    # when
    schema = Config._schema()

    # then
    validate_schema(schema)
    assert schema == {
        "type": "body",
        "required_blocks": {
            "database": {
                "type": "body",
                "required_attributes": {"host": {"type": "string"}},
            },
        },
        "optional_blocks": {
            "cache": {
                "type": "body",
                "required_attributes": {"ttl": {"type": "integer"}},
            },
        },
        "repeated_blocks": {
            "service": {
                "type": "body",
                "required_attributes": {"port": {"type": "integer"}},
                "label": "name",
            },
        },
    }


def test_schema_with_nullable_block_is_optional():
    # given
    class Cache(Prototype):
        ttl: int

    class Config(Prototype):
        cache: Cache | None

    # when
    schema = Config._schema()

    # then
    assert list(schema["optional_blocks"]) == ["cache"]
