"""Tests for the options of load() and for load_file()."""

from pytest import raises

from blockconfig import DEFAULT_FUNCTIONS, load, load_file, exceptions
from blockconfig.types import Schema


SCHEMA: Schema = {
    "type": "body",
    "required_blocks": {
        "app": {
            "type": "body",
            "required_attributes": {"name": {"type": "string"}},
        },
    },
}


def test_global_variables_are_available_to_expressions():
    # given
    source = 'app { name = "${team.name}-${region}" }'

    # when
    result = load(
        source,
        "cfg.hcl",
        SCHEMA,
        global_variables={"region": "eu", "team": {"name": "infra"}},
    )

    # then
    assert result == {"app": {"name": "infra-eu"}}


def test_document_entries_shadow_global_variables():
    # given
    source = """
region = "us"
app { name = region }
"""

    # when
    result = load(source, "cfg.hcl", SCHEMA, global_variables={"region": "eu"})

    # then
    assert result == {"app": {"name": "us"}}


def test_custom_functions_are_callable():
    # given
    def slug(*parts):
        return "-".join(parts)

    source = 'app { name = slug("web", "prod") }'

    # when
    result = load(source, "cfg.hcl", SCHEMA, functions={"slug": slug})

    # then
    assert result == {"app": {"name": "web-prod"}}


def test_custom_functions_keep_the_builtins(monkeypatch):
    # given
    monkeypatch.setenv("BLOCKCONFIG_TEST_APP", "web")
    source = 'app { name = env("BLOCKCONFIG_TEST_APP") }'

    # when
    result = load(source, "cfg.hcl", SCHEMA, functions={"slug": lambda: ""})

    # then
    assert result == {"app": {"name": "web"}}


def test_custom_filters():
    # given
    source = """
group = "web"
app { name = group | shout }
"""

    # when
    result = load(
        source, "cfg.hcl", SCHEMA, filters={"shout": lambda s: s.upper() + "!"}
    )

    # then
    assert result == {"app": {"name": "WEB!"}}


def test_builtin_jinja_filters():
    # given
    source = """
parts = ["a", "b"]
app { name = parts | join("+") }
"""

    # when
    result = load(source, "cfg.hcl", SCHEMA)

    # then
    assert result == {"app": {"name": "a+b"}}


def test_load_file(tmp_path):
    # given
    path = tmp_path / "app.hcl"
    path.write_text('app {\n  name = "from-file"\n}\n')

    # when
    result = load_file(path, SCHEMA)

    # then
    assert result == {"app": {"name": "from-file"}}


def test_load_file_uses_the_path_in_error_messages(tmp_path):
    # given
    path = tmp_path / "app.hcl"
    path.write_text("app {\n  name = missing\n}\n")

    # when
    with raises(exceptions.DiagnosticsError) as excinfo:
        load_file(path, SCHEMA)

    # then
    assert f"{path}:2:10: Unknown variable" in str(excinfo.value)


def test_default_functions_are_used_by_load(monkeypatch):
    # given
    monkeypatch.setitem(DEFAULT_FUNCTIONS, "app_name", lambda: "from-defaults")
    source = "app { name = app_name() }"

    # when
    result = load(source, "cfg.hcl", SCHEMA)

    # then
    assert result == {"app": {"name": "from-defaults"}}
