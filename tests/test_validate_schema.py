from blockconfig import validate_schema, exceptions
from pytest import raises


# body schemata ========================================================================


def test_body_schema_smoke():
    schema = {
        "type": "body",
        "required_attributes": {"group": {"type": "string"}},
        "optional_attributes": {"debug": {"type": "boolean", "default": False}},
        "required_blocks": {
            "database": {
                "type": "body",
                "required_attributes": {"host": {"type": "string"}},
            }
        },
        "optional_blocks": {"cache": {"type": "body"}},
        "repeated_blocks": {
            "service": {
                "type": "body",
                "label": "name",
                "required_attributes": {"port": {"type": "integer"}},
            }
        },
    }

    validate_schema(schema)


def test_raises_if_document_is_not_a_body():
    schema = {"type": "dict", "required_keys": {}}

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert excinfo.value.keypath == ("type",)


def test_raises_if_unknown_key_is_provided_for_body_schema():
    schema = {"type": "body", "foo": 42}

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert "Unexpected key." in str(excinfo.value)


def test_document_cannot_have_a_label():
    schema = {"type": "body", "label": "name"}

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert excinfo.value.keypath == ("label",)


def test_raises_if_var_is_used_at_the_top_level():
    schema = {
        "type": "body",
        "optional_attributes": {"var": {"type": "string", "default": "x"}},
    }

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert excinfo.value.keypath == ("optional_attributes", "var")


def test_var_is_allowed_inside_a_block():
    schema = {
        "type": "body",
        "required_blocks": {
            "database": {
                "type": "body",
                "required_attributes": {"var": {"type": "string"}},
            }
        },
    }

    validate_schema(schema)


def test_raises_if_name_is_both_an_attribute_and_a_block():
    schema = {
        "type": "body",
        "required_attributes": {"database": {"type": "string"}},
        "optional_blocks": {"database": {"type": "body"}},
    }

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert excinfo.value.keypath == ("optional_blocks", "database")
    assert "more than once" in str(excinfo.value)


def test_raises_if_block_schema_is_not_a_body():
    schema = {
        "type": "body",
        "required_blocks": {"database": {"type": "dict"}},
    }

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert excinfo.value.keypath == ("required_blocks", "database")


def test_raises_if_label_is_not_a_string():
    schema = {
        "type": "body",
        "repeated_blocks": {"service": {"type": "body", "label": 3}},
    }

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert excinfo.value.keypath == ("repeated_blocks", "service", "label")


def test_raises_if_label_collides_with_an_attribute():
    schema = {
        "type": "body",
        "repeated_blocks": {
            "service": {
                "type": "body",
                "label": "name",
                "required_attributes": {"name": {"type": "string"}},
            }
        },
    }

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert "collides" in str(excinfo.value)


def test_raises_if_section_is_not_a_dict():
    schema = {"type": "body", "required_attributes": ["group"]}

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert excinfo.value.keypath == ("required_attributes",)


# attribute value schemata =============================================================


def test_raises_if_leaf_type_is_unknown():
    schema = {
        "type": "body",
        "required_attributes": {"port": {"type": "number"}},
    }

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert excinfo.value.keypath == ("required_attributes", "port", "type")


def test_custom_leaf_types_are_accepted_when_listed():
    schema = {
        "type": "body",
        "required_attributes": {"when": {"type": "date"}},
    }

    validate_schema(schema, leaf_types={"date"})


def test_raises_if_default_is_provided_for_a_required_attribute():
    schema = {
        "type": "body",
        "required_attributes": {"port": {"type": "integer", "default": 1}},
    }

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert excinfo.value.keypath == ("required_attributes", "port", "default")


def test_dict_and_list_attribute_schemata():
    schema = {
        "type": "body",
        "required_attributes": {
            "limits": {
                "type": "dict",
                "required_keys": {"cpu": {"type": "integer"}},
                "optional_keys": {"memory": {"type": "string", "default": "1G"}},
            },
            "hosts": {"type": "list", "element_schema": {"type": "string"}},
            "labels": {"type": "dict", "extra_keys_schema": {"type": "string"}},
        },
    }

    validate_schema(schema)


def test_raises_if_list_schema_lacks_element_schema():
    schema = {
        "type": "body",
        "required_attributes": {"hosts": {"type": "list"}},
    }

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert excinfo.value.keypath == ("required_attributes", "hosts", "element_schema")


def test_raises_if_default_is_provided_for_a_required_key():
    schema = {
        "type": "body",
        "required_attributes": {
            "limits": {
                "type": "dict",
                "required_keys": {"cpu": {"type": "integer", "default": 42}},
            }
        },
    }

    with raises(exceptions.InvalidSchemaError) as excinfo:
        validate_schema(schema)

    assert excinfo.value.keypath == (
        "required_attributes",
        "limits",
        "required_keys",
        "cpu",
        "default",
    )


def test_raises_if_extra_keys_schema_is_not_a_valid_schema():
    schema = {
        "type": "body",
        "required_attributes": {"labels": {"type": "dict", "extra_keys_schema": 42}},
    }

    with raises(exceptions.InvalidSchemaError):
        validate_schema(schema)
