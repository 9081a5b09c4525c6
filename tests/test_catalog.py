"""Tests for listing the entities of a document."""

from pytest import raises

from blockconfig._catalog import build_catalog
from blockconfig.exceptions import DiagnosticsError
from blockconfig.parsers import parse
from blockconfig.types import EntityKind, Schema


SCHEMA: Schema = {
    "type": "body",
    "required_attributes": {"group": {"type": "string"}},
    "optional_blocks": {"database": {"type": "body"}},
    "repeated_blocks": {
        "service": {"type": "body", "label": "name"},
        "mount": {"type": "body"},
    },
}


def _catalog(source):
    return build_catalog(parse(source, "cfg.hcl"), SCHEMA)


def test_entities_are_listed_in_document_order():
    # given
    source = """
service "api" {}
group = "web"
database {}
var "base" { default = 1 }
extra = 2
service "web" {}
"""

    # when
    entities = _catalog(source)

    # then
    assert [(e.key, e.kind, e.index) for e in entities] == [
        ("service.api", EntityKind.LABELED_BLOCK, 0),
        ("group", EntityKind.ATTRIBUTE, 1),
        ("database", EntityKind.TYPED_BLOCK, 2),
        ("var.base", EntityKind.VARIABLE, 3),
        ("extra", EntityKind.ATTRIBUTE, 4),
        ("service.web", EntityKind.LABELED_BLOCK, 5),
    ]


def test_entities_know_their_slots():
    # given
    source = 'group = "web"\nextra = 1\nservice "api" {}\n'

    # when
    entities = {e.key: e for e in _catalog(source)}

    # then
    assert entities["group"].slot.kind == "attribute"
    assert entities["extra"].slot is None
    assert entities["service.api"].slot.label_field == "name"


def test_unlabeled_repeated_blocks_share_an_entity():
    # given
    source = """
group = "web"
mount { path = "/a" }
mount { path = "/b" }
"""

    # when
    entities = _catalog(source)

    # then
    [mount] = [e for e in entities if e.type_name == "mount"]
    assert mount.key == "mount"
    assert len(mount.nodes) == 2


def test_nested_children_are_not_entities():
    # given
    source = """
group = "web"
database {
  replica {
    host = "a"
  }
}
"""

    # when
    entities = _catalog(source)

    # then
    assert [e.key for e in entities] == ["group", "database"]
    assert [b.type for b in entities[1].nested_children] == ["replica"]


def test_unmapped_blocks_are_skipped():
    # given
    source = 'group = "web"\nterraform {}\n'

    # when
    entities = _catalog(source)

    # then
    assert [e.key for e in entities] == ["group"]


def test_all_problems_are_reported_together():
    # given
    source = """
database {}
database {}
service {}
service "api" {}
service "api" {}
mount "x" {}
var { default = 1 }
"""

    # when
    with raises(DiagnosticsError) as excinfo:
        _catalog(source)

    # then
    assert [d.summary for d in excinfo.value.diagnostics] == [
        "Duplicate database block",
        "Missing name for service",
        'Duplicate service "api" block',
        "Extraneous label for mount",
        "Missing name for var",
        "Missing required argument",
    ]
