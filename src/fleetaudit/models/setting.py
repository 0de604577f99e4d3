"""Setting tree data models.

A configured setting is one of three shapes: a scalar ``Leaf``, a ``Group`` of
child settings, or a ``GroupCollection`` holding repeated group instances.
"""

from __future__ import annotations

from typing import Literal, Optional, Union

from pydantic import BaseModel


class Leaf(BaseModel):
    kind: Literal["leaf"] = "leaf"
    definition_id: str
    value: Optional[str] = None


class Group(BaseModel):
    kind: Literal["group"] = "group"
    definition_id: str
    children: list[SettingNode] = []


class GroupCollection(BaseModel):
    kind: Literal["group_collection"] = "group_collection"
    definition_id: str
    instances: list[Group] = []


SettingNode = Union[Leaf, Group, GroupCollection]

Group.model_rebuild()
GroupCollection.model_rebuild()


class FlattenedSetting(BaseModel):
    """A single leaf setting addressed by its composite key."""

    owner_id: str
    composite_key: str
    value: Optional[str] = None
