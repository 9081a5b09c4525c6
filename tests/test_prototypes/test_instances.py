"""Tests for constructing, comparing and printing Prototype instances."""

from pytest import raises

from blockconfig import Label, NotRequired, Prototype, is_prototype_class


class Service(Prototype):
    name: Label
    port: int
    public: bool = False
    region: NotRequired[str]


# __init__ =============================================================================


def test_init_sets_given_fields_and_defaults():
    # when
    service = Service(name="api", port=8080)

    # then
    assert service.name == "api"
    assert service.port == 8080
    assert service.public is False
    assert not hasattr(service, "region")


def test_init_with_missing_required_field_raises():
    with raises(TypeError, match="missing required field 'port'"):
        Service(name="api")


def test_init_ignores_extra_fields():
    # when
    service = Service(name="api", port=8080, colour="blue")

    # then
    assert not hasattr(service, "colour")


# __eq__ ===============================================================================


def test_equal_when_fields_are_equal():
    assert Service(name="api", port=1) == Service(name="api", port=1)


def test_not_equal_when_fields_differ():
    assert Service(name="api", port=1) != Service(name="web", port=1)


def test_not_equal_when_optional_field_only_set_on_one():
    assert Service(name="api", port=1) != Service(name="api", port=1, region="eu")


def test_not_equal_to_a_dict_with_the_same_contents():
    assert Service(name="api", port=1) != {"name": "api", "port": 1, "public": False}


def test_not_equal_to_a_different_prototype_with_the_same_fields():
    # given
    class Worker(Prototype):
        name: Label
        port: int
        public: bool = False
        region: NotRequired[str]

    # then
    assert Service(name="api", port=1) != Worker(name="api", port=1)


# __repr__ =============================================================================


def test_repr_lists_set_fields_in_definition_order():
    # when
    result = repr(Service(name="api", port=8080))

    # then
    assert result == "Service(name='api', port=8080, public=False)"


# is_prototype_class ===================================================================


def test_is_prototype_class():
    assert is_prototype_class(Service)
    assert not is_prototype_class(Prototype)
    assert not is_prototype_class(Service(name="api", port=1))
    assert not is_prototype_class(dict)
    assert not is_prototype_class(42)
