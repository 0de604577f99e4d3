"""Tests for core/flatten.py."""

from __future__ import annotations

import pytest

from fleetaudit.core.flatten import (
    flatten,
    flatten_raw,
    is_unidentified_key,
    normalize_type_tag,
    parse_setting_instance,
    parse_settings,
    stringify_value,
)
from fleetaudit.models.setting import Group, GroupCollection, Leaf

ODATA = "#microsoft.graph.deviceManagementConfiguration"


def choice(definition_id, value, children=None):
    return {
        "@odata.type": f"{ODATA}ChoiceSettingInstance",
        "settingDefinitionId": definition_id,
        "choiceSettingValue": {"value": value, "children": children or []},
    }


def simple(definition_id, value):
    return {
        "@odata.type": f"{ODATA}SimpleSettingInstance",
        "settingDefinitionId": definition_id,
        "simpleSettingValue": {"value": value},
    }


def group(definition_id, children):
    return {
        "@odata.type": f"{ODATA}GroupSettingInstance",
        "settingDefinitionId": definition_id,
        "groupSettingValue": {"children": children},
    }


def group_collection(definition_id, instances):
    return {
        "@odata.type": f"{ODATA}GroupSettingCollectionInstance",
        "settingDefinitionId": definition_id,
        "groupSettingCollectionValue": [{"children": c} for c in instances],
    }


def keys(entries):
    return [e.composite_key for e in entries]


class TestFlatten:
    def test_leaf_at_root(self):
        result = flatten("P1", Leaf(definition_id="x", value="1"))
        assert len(result) == 1
        assert result[0].owner_id == "P1"
        assert result[0].composite_key == "x"
        assert result[0].value == "1"

    def test_group_prefixes_each_child(self):
        root = Group(definition_id="g", children=[
            Leaf(definition_id="a", value="1"),
            Leaf(definition_id="b", value="2"),
            Leaf(definition_id="c", value="3"),
        ])
        result = flatten("P1", root)
        assert keys(result) == ["g\\a", "g\\b", "g\\c"]
        assert [e.value for e in result] == ["1", "2", "3"]

    def test_nested_chain(self):
        root = Group(definition_id="A", children=[
            Group(definition_id="B", children=[Leaf(definition_id="C", value="v")]),
        ])
        result = flatten("P1", root)
        assert keys(result) == ["A\\B\\C"]
        assert result[0].value == "v"

    def test_empty_group_contributes_nothing(self):
        assert flatten("P1", Group(definition_id="g", children=[])) == []

    def test_empty_collection_contributes_nothing(self):
        assert flatten("P1", GroupCollection(definition_id="fw", instances=[])) == []

    def test_collection_indexed_keys(self):
        root = GroupCollection(definition_id="fw", instances=[
            Group(definition_id="fw", children=[Leaf(definition_id="name", value="a")]),
            Group(definition_id="fw", children=[Leaf(definition_id="name", value="b")]),
        ])
        result = flatten("P1", root)
        assert keys(result) == ["fw[0]\\name", "fw[1]\\name"]
        assert [e.value for e in result] == ["a", "b"]

    def test_collection_shared_keys(self):
        root = GroupCollection(definition_id="fw", instances=[
            Group(definition_id="fw", children=[Leaf(definition_id="name", value="a")]),
            Group(definition_id="fw", children=[Leaf(definition_id="name", value="b")]),
        ])
        result = flatten("P1", root, collection_keys="shared")
        assert keys(result) == ["fw\\name", "fw\\name"]
        assert [e.value for e in result] == ["a", "b"]

    def test_unknown_collection_scheme_rejected(self):
        with pytest.raises(ValueError):
            flatten("P1", Leaf(definition_id="x"), collection_keys="bogus")

    def test_null_value_preserved(self):
        result = flatten("P1", Leaf(definition_id="x", value=None))
        assert result[0].value is None

    def test_leaf_without_id_gets_positional_key(self):
        roots = [Leaf(definition_id="a", value="1"), Leaf(definition_id=""), Leaf(definition_id="")]
        assert keys(flatten("P1", roots)) == ["a", "<unidentified:1>", "<unidentified:2>"]

    def test_group_without_id_does_not_hoist_children(self):
        root = Group(definition_id="", children=[Leaf(definition_id="a", value="1")])
        assert keys(flatten("P1", root)) == ["<unidentified:0>\\a"]
        assert is_unidentified_key("<unidentified:0>\\a")
        assert not is_unidentified_key("g\\a")

    def test_sequence_of_roots_keeps_order(self):
        roots = [
            Leaf(definition_id="z", value="1"),
            Group(definition_id="g", children=[Leaf(definition_id="a", value="2")]),
            Leaf(definition_id="b", value="3"),
        ]
        assert keys(flatten("P1", roots)) == ["z", "g\\a", "b"]

    def test_every_entry_has_owner(self):
        roots = [Leaf(definition_id="a"), Group(definition_id="g", children=[Leaf(definition_id="b")])]
        assert all(e.owner_id == "Policy X" for e in flatten("Policy X", roots))

    def test_leaf_count_matches_tree(self):
        root = Group(definition_id="g", children=[
            Leaf(definition_id="a"),
            GroupCollection(definition_id="c", instances=[
                Group(definition_id="c", children=[Leaf(definition_id="x"), Leaf(definition_id="y")]),
                Group(definition_id="c", children=[Leaf(definition_id="x")]),
            ]),
        ])
        assert len(flatten("P1", root)) == 4


class TestParseSettingInstance:
    def test_simple_integer(self):
        assert parse_setting_instance(simple("laps_passwordlength", 14)) == [
            Leaf(definition_id="laps_passwordlength", value="14"),
        ]

    def test_simple_boolean(self):
        nodes = parse_setting_instance(simple("flag", True))
        assert nodes[0].value == "true"

    def test_choice_without_children(self):
        nodes = parse_setting_instance(choice("c", "c_1"))
        assert nodes == [Leaf(definition_id="c", value="c_1")]

    def test_choice_children_become_sibling_group(self):
        nodes = parse_setting_instance(choice("c", "c_1", [simple("c_child", "x")]))
        assert nodes[0] == Leaf(definition_id="c", value="c_1")
        assert isinstance(nodes[1], Group)
        assert keys(flatten("P1", nodes)) == ["c", "c\\c_child"]

    def test_group_instance(self):
        nodes = parse_setting_instance(group("g", [simple("a", 1), choice("b", "b_0")]))
        assert len(nodes) == 1
        assert isinstance(nodes[0], Group)
        assert keys(flatten("P1", nodes)) == ["g\\a", "g\\b"]

    def test_group_collection_instance(self):
        raw = group_collection("fw", [[simple("name", "in")], [simple("name", "out")]])
        nodes = parse_setting_instance(raw)
        assert isinstance(nodes[0], GroupCollection)
        assert len(nodes[0].instances) == 2
        result = flatten("P1", nodes)
        assert keys(result) == ["fw[0]\\name", "fw[1]\\name"]
        assert [e.value for e in result] == ["in", "out"]

    def test_group_collection_non_list_is_null_leaf(self):
        raw = {
            "@odata.type": f"{ODATA}GroupSettingCollectionInstance",
            "settingDefinitionId": "fw",
            "groupSettingCollectionValue": "oops",
        }
        assert parse_setting_instance(raw) == [Leaf(definition_id="fw", value=None)]

    def test_simple_collection_serialized(self):
        raw = {
            "@odata.type": f"{ODATA}SimpleSettingCollectionInstance",
            "settingDefinitionId": "list",
            "simpleSettingCollectionValue": [{"value": "a"}, {"value": "b"}],
        }
        assert parse_setting_instance(raw)[0].value == '["a", "b"]'

    def test_choice_collection_serialized(self):
        raw = {
            "@odata.type": f"{ODATA}ChoiceSettingCollectionInstance",
            "settingDefinitionId": "multi",
            "choiceSettingCollectionValue": [{"value": "multi_1", "children": []}, {"value": "multi_3"}],
        }
        nodes = parse_setting_instance(raw)
        assert nodes == [Leaf(definition_id="multi", value='["multi_1", "multi_3"]')]

    def test_unwraps_setting_instance(self):
        wrapped = {"id": "0", "settingInstance": choice("c", "c_1")}
        assert parse_setting_instance(wrapped) == [Leaf(definition_id="c", value="c_1")]

    def test_infers_shape_without_odata_type(self):
        raw = {"settingDefinitionId": "c", "choiceSettingValue": {"value": "c_0"}}
        assert parse_setting_instance(raw) == [Leaf(definition_id="c", value="c_0")]

    def test_unknown_shape_becomes_null_leaf(self):
        raw = {"@odata.type": f"{ODATA}MysterySettingInstance", "settingDefinitionId": "m"}
        assert parse_setting_instance(raw) == [Leaf(definition_id="m", value=None)]

    def test_malformed_value_becomes_null_leaf(self):
        raw = {
            "@odata.type": f"{ODATA}ChoiceSettingInstance",
            "settingDefinitionId": "c",
            "choiceSettingValue": "not-an-object",
        }
        assert parse_setting_instance(raw) == [Leaf(definition_id="c", value=None)]

    def test_non_mapping_becomes_null_leaf(self):
        assert parse_setting_instance("junk") == [Leaf(definition_id="", value=None)]


class TestParseSettings:
    def test_list_order_preserved(self):
        nodes = parse_settings([simple("b", 1), simple("a", 2)])
        assert [n.definition_id for n in nodes] == ["b", "a"]

    def test_single_instance(self):
        assert len(parse_settings(simple("a", 1))) == 1

    def test_non_list_is_empty(self):
        assert parse_settings("nope") == []
        assert parse_settings(None) == []


class TestFlattenRaw:
    def test_same_tree_same_keys_for_any_owner(self):
        raw = [group("g", [simple("a", 1)]), choice("c", "c_1", [simple("d", "x")])]
        baseline = flatten_raw("Baseline", raw)
        policy = flatten_raw("Policy", raw)
        assert keys(baseline) == keys(policy) == ["g\\a", "c", "c\\d"]


class TestHelpers:
    def test_normalize_full_odata_type(self):
        assert normalize_type_tag(f"{ODATA}ChoiceSettingInstance") == "ChoiceSettingInstance"

    def test_normalize_short_tag(self):
        assert normalize_type_tag("choiceSettingInstance") == "ChoiceSettingInstance"

    def test_normalize_empty(self):
        assert normalize_type_tag("") == ""

    def test_stringify(self):
        assert stringify_value(None) is None
        assert stringify_value(False) == "false"
        assert stringify_value(5) == "5"
        assert stringify_value(["a"]) == '["a"]'
