"""Tests for reading environment variables with env() and env_or()."""

from pytest import raises

from blockconfig import load, exceptions
from blockconfig.types import Schema


SCHEMA: Schema = {
    "type": "body",
    "required_blocks": {
        "database": {
            "type": "body",
            "required_attributes": {"host": {"type": "string"}},
        },
    },
}

UNSET = "BLOCKCONFIG_TEST_UNSET_VARIABLE"


def test_env_reads_a_set_variable(monkeypatch):
    # given
    monkeypatch.setenv("BLOCKCONFIG_TEST_DB_HOST", "db.internal")
    source = 'database { host = env("BLOCKCONFIG_TEST_DB_HOST") }'

    # when
    result = load(source, "cfg.hcl", SCHEMA, strict_env=True)

    # then
    assert result == {"database": {"host": "db.internal"}}


def test_env_in_strict_mode_raises_for_unset_variable(monkeypatch):
    # given
    monkeypatch.delenv(UNSET, raising=False)
    source = f'database {{\n  host = env("{UNSET}")\n}}'

    # when
    with raises(exceptions.MissingEnvironmentVariableError) as excinfo:
        load(source, "cfg.hcl", SCHEMA, strict_env=True)

    # then
    assert excinfo.value.name == UNSET
    assert excinfo.value.position.line == 2
    assert UNSET in str(excinfo.value)


def test_env_in_lenient_mode_returns_empty_string(monkeypatch):
    # given
    monkeypatch.delenv(UNSET, raising=False)
    source = f'database {{ host = env("{UNSET}") }}'

    # when
    result = load(source, "cfg.hcl", SCHEMA)

    # then
    assert result == {"database": {"host": ""}}


def test_env_with_fallback_never_fails(monkeypatch):
    # given
    monkeypatch.delenv(UNSET, raising=False)
    source = f'database {{ host = env("{UNSET}", "localhost") }}'

    # when
    result = load(source, "cfg.hcl", SCHEMA, strict_env=True)

    # then
    assert result == {"database": {"host": "localhost"}}


def test_env_with_fallback_prefers_the_variable(monkeypatch):
    # given
    monkeypatch.setenv("BLOCKCONFIG_TEST_DB_HOST", "db.internal")
    source = 'database { host = env("BLOCKCONFIG_TEST_DB_HOST", "localhost") }'

    # when
    result = load(source, "cfg.hcl", SCHEMA, strict_env=True)

    # then
    assert result == {"database": {"host": "db.internal"}}


def test_env_inside_a_template(monkeypatch):
    # given
    monkeypatch.setenv("BLOCKCONFIG_TEST_DOMAIN", "example.com")
    source = 'database { host = "db.${env("BLOCKCONFIG_TEST_DOMAIN")}" }'

    # when
    result = load(source, "cfg.hcl", SCHEMA)

    # then
    assert result == {"database": {"host": "db.example.com"}}


def test_env_or(monkeypatch):
    # given
    monkeypatch.delenv(UNSET, raising=False)
    source = f'database {{ host = env_or("{UNSET}", "fallback") }}'

    # when
    result = load(source, "cfg.hcl", SCHEMA, strict_env=True)

    # then
    assert result == {"database": {"host": "fallback"}}
