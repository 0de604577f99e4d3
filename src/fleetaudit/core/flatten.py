"""Settings flattener.

Parses raw setting-instance JSON (as returned by the device-management service
or stored in baseline files) into ``SettingNode`` trees, and flattens those trees
into ``FlattenedSetting`` lists addressed by composite keys.

The same code path is used for baseline definitions and live policies, which is
what makes composite keys comparable across the two.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Optional, Union

from ..models.setting import FlattenedSetting, Group, GroupCollection, Leaf, SettingNode

KEY_SEPARATOR = "\\"

COLLECTION_KEYS_INDEXED = "indexed"
COLLECTION_KEYS_SHARED = "shared"

# Segment used for leaves whose definition id could not be read
UNIDENTIFIED_SEGMENT = "<unidentified:{position}>"

ODATA_TYPE_PREFIX = "#microsoft.graph.deviceManagementConfiguration"

ShapeParser = Callable[[Mapping], list[SettingNode]]

SHAPE_PARSERS: dict[str, ShapeParser] = {}


def register_shape(*tags: str) -> Callable[[ShapeParser], ShapeParser]:
    """Register a parser for one or more setting-instance type tags."""

    def decorator(func: ShapeParser) -> ShapeParser:
        for tag in tags:
            SHAPE_PARSERS[tag] = func
        return func

    return decorator


def normalize_type_tag(odata_type: str) -> str:
    """Reduce an ``@odata.type`` to its short tag.

    ``#microsoft.graph.deviceManagementConfigurationChoiceSettingInstance`` ->
    ``ChoiceSettingInstance``.
    """
    tag = (odata_type or "").strip()
    if tag.startswith(ODATA_TYPE_PREFIX):
        return tag[len(ODATA_TYPE_PREFIX):]
    if tag.startswith("#"):
        tag = tag.rsplit(".", 1)[-1]
    return tag[:1].upper() + tag[1:]


def stringify_value(value: Any) -> Optional[str]:
    """Render a raw setting value as the comparable string form."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def _definition_id(raw: Mapping) -> str:
    return str(raw.get("settingDefinitionId") or raw.get("definitionId") or raw.get("id") or "")


def _children(container: Any) -> list[SettingNode]:
    """Parse a ``children`` list of raw setting instances."""
    if not isinstance(container, Mapping):
        return []
    raw_children = container.get("children")
    if not isinstance(raw_children, Sequence) or isinstance(raw_children, str):
        return []
    nodes: list[SettingNode] = []
    for child in raw_children:
        nodes.extend(parse_setting_instance(child))
    return nodes


@register_shape("SimpleSettingInstance", "StringSettingInstance", "IntegerSettingInstance")
def _parse_simple(raw: Mapping) -> list[SettingNode]:
    simple = raw.get("simpleSettingValue")
    value = simple.get("value") if isinstance(simple, Mapping) else None
    return [Leaf(definition_id=_definition_id(raw), value=stringify_value(value))]


@register_shape("ChoiceSettingInstance")
def _parse_choice(raw: Mapping) -> list[SettingNode]:
    definition_id = _definition_id(raw)
    choice = raw.get("choiceSettingValue")
    value = choice.get("value") if isinstance(choice, Mapping) else None

    nodes: list[SettingNode] = [Leaf(definition_id=definition_id, value=stringify_value(value))]
    children = _children(choice)
    if children:
        nodes.append(Group(definition_id=definition_id, children=children))
    return nodes


@register_shape("SimpleSettingCollectionInstance")
def _parse_simple_collection(raw: Mapping) -> list[SettingNode]:
    items = raw.get("simpleSettingCollectionValue")
    if not isinstance(items, Sequence) or isinstance(items, str):
        return [Leaf(definition_id=_definition_id(raw), value=None)]
    values = [item.get("value") for item in items if isinstance(item, Mapping)]
    return [Leaf(definition_id=_definition_id(raw), value=stringify_value(values))]


@register_shape("ChoiceSettingCollectionInstance")
def _parse_choice_collection(raw: Mapping) -> list[SettingNode]:
    definition_id = _definition_id(raw)
    items = raw.get("choiceSettingCollectionValue")
    if not isinstance(items, Sequence) or isinstance(items, str):
        return [Leaf(definition_id=definition_id, value=None)]

    values: list[Any] = []
    children: list[SettingNode] = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        values.append(item.get("value"))
        children.extend(_children(item))

    nodes: list[SettingNode] = [Leaf(definition_id=definition_id, value=stringify_value(values))]
    if children:
        nodes.append(Group(definition_id=definition_id, children=children))
    return nodes


@register_shape("GroupSettingInstance")
def _parse_group(raw: Mapping) -> list[SettingNode]:
    return [Group(
        definition_id=_definition_id(raw),
        children=_children(raw.get("groupSettingValue")),
    )]


@register_shape("GroupSettingCollectionInstance")
def _parse_group_collection(raw: Mapping) -> list[SettingNode]:
    definition_id = _definition_id(raw)
    instances = raw.get("groupSettingCollectionValue")
    if not isinstance(instances, Sequence) or isinstance(instances, str):
        return [Leaf(definition_id=definition_id, value=None)]
    return [GroupCollection(
        definition_id=definition_id,
        instances=[
            Group(definition_id=definition_id, children=_children(instance))
            for instance in instances
        ],
    )]


def _infer_tag(raw: Mapping) -> str:
    """Guess the shape of an instance that carries no ``@odata.type``."""
    if "groupSettingCollectionValue" in raw:
        return "GroupSettingCollectionInstance"
    if "groupSettingValue" in raw:
        return "GroupSettingInstance"
    if "choiceSettingCollectionValue" in raw:
        return "ChoiceSettingCollectionInstance"
    if "choiceSettingValue" in raw:
        return "ChoiceSettingInstance"
    if "simpleSettingCollectionValue" in raw:
        return "SimpleSettingCollectionInstance"
    if "simpleSettingValue" in raw:
        return "SimpleSettingInstance"
    return ""


def parse_setting_instance(raw: Any) -> list[SettingNode]:
    """Parse one raw setting instance into setting nodes.

    Returns a list because a choice setting with dependent children yields the
    choice leaf plus a sibling group holding the children. Anything that cannot
    be classified becomes a leaf with no value.
    """
    if not isinstance(raw, Mapping):
        return [Leaf(definition_id="", value=None)]

    # Items from the policy /settings endpoint wrap the instance
    if isinstance(raw.get("settingInstance"), Mapping):
        raw = raw["settingInstance"]

    tag = normalize_type_tag(str(raw.get("@odata.type") or "")) or _infer_tag(raw)
    parser = SHAPE_PARSERS.get(tag)
    if parser is None:
        tag = _infer_tag(raw)
        parser = SHAPE_PARSERS.get(tag)
    if parser is None:
        return [Leaf(definition_id=_definition_id(raw), value=None)]

    try:
        return parser(raw)
    except (AttributeError, TypeError, ValueError):
        return [Leaf(definition_id=_definition_id(raw), value=None)]


def parse_settings(raw_settings: Any) -> list[SettingNode]:
    """Parse a policy's top-level setting list (or a single instance)."""
    if isinstance(raw_settings, Mapping):
        return parse_setting_instance(raw_settings)
    if not isinstance(raw_settings, Sequence) or isinstance(raw_settings, str):
        return []
    nodes: list[SettingNode] = []
    for raw in raw_settings:
        nodes.extend(parse_setting_instance(raw))
    return nodes


def _join(prefix: str, segment: str) -> str:
    return f"{prefix}{KEY_SEPARATOR}{segment}" if prefix else segment


def _flatten_node(
    owner_id: str,
    node: SettingNode,
    prefix: str,
    collection_keys: str,
    out: list[FlattenedSetting],
) -> None:
    definition_id = node.definition_id or UNIDENTIFIED_SEGMENT.format(position=len(out))
    if isinstance(node, Leaf):
        out.append(FlattenedSetting(
            owner_id=owner_id,
            composite_key=_join(prefix, definition_id),
            value=node.value,
        ))
    elif isinstance(node, Group):
        group_prefix = _join(prefix, definition_id)
        for child in node.children:
            _flatten_node(owner_id, child, group_prefix, collection_keys, out)
    elif isinstance(node, GroupCollection):
        indexed = collection_keys == COLLECTION_KEYS_INDEXED
        for index, instance in enumerate(node.instances):
            segment = f"{definition_id}[{index}]" if indexed else definition_id
            instance_prefix = _join(prefix, segment)
            for child in instance.children:
                _flatten_node(owner_id, child, instance_prefix, collection_keys, out)


def flatten(
    owner_id: str,
    root: Union[SettingNode, Sequence[SettingNode]],
    collection_keys: str = COLLECTION_KEYS_INDEXED,
) -> list[FlattenedSetting]:
    """Flatten a setting tree into leaf entries, preserving input order.

    ``root`` may be a single node or a sequence of top-level nodes. Repeated
    group-collection instances are keyed ``id[0]``, ``id[1]``... when
    ``collection_keys`` is "indexed", or all share ``id`` when it is "shared".
    """
    if collection_keys not in (COLLECTION_KEYS_INDEXED, COLLECTION_KEYS_SHARED):
        raise ValueError(f"Unknown collection key scheme: {collection_keys}")

    roots = [root] if isinstance(root, (Leaf, Group, GroupCollection)) else list(root)
    out: list[FlattenedSetting] = []
    for node in roots:
        _flatten_node(owner_id, node, "", collection_keys, out)
    return out


def flatten_raw(
    owner_id: str,
    raw_settings: Any,
    collection_keys: str = COLLECTION_KEYS_INDEXED,
) -> list[FlattenedSetting]:
    """Parse and flatten raw setting JSON in one step."""
    return flatten(owner_id, parse_settings(raw_settings), collection_keys)


def is_unidentified_key(composite_key: str) -> bool:
    """True if any segment of the key stands in for an unreadable definition id."""
    return any(
        segment.startswith("<unidentified:")
        for segment in composite_key.split(KEY_SEPARATOR)
    )
