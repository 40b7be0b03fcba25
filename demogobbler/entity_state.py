"""Flattened server class layouts and the tracked state of every entity."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional

from .datatables import DataTables, SendProp, SendPropType, SendTable
from .propstore import PropArray
from .version import DemoVersion, Game

__all__ = [
    "MAX_EDICTS",
    "EntityStateError",
    "ServerClassData",
    "PropValue",
    "EntUpdate",
    "PacketEntitiesData",
    "Edict",
    "EntityState",
]

MAX_EDICTS = 2048
_MAX_BASECLASSES = 1024


class EntityStateError(ValueError):
    """Raised when entity state cannot be built or updated."""


@dataclass
class ServerClassData:
    """Flattened prop layout of one server class; ``dt_name`` is None until built."""

    dt_name: Optional[str] = None
    props: list[SendProp] = field(default_factory=list)

    @property
    def prop_count(self) -> int:
        return len(self.props)


@dataclass
class PropValue:
    """A decoded value for the flattened prop at ``prop_index``."""

    prop_index: int
    value: Any = None


@dataclass
class EntUpdate:
    """One entity update out of a packet entities message."""

    DELTA: ClassVar[int] = 0
    LEAVE_PVS: ClassVar[int] = 1
    ENTER_PVS: ClassVar[int] = 2
    DELETE: ClassVar[int] = 3

    ent_index: int
    update_type: int
    datatable_id: int = 0
    handle: int = 0
    prop_values: list[PropValue] = field(default_factory=list)


@dataclass
class PacketEntitiesData:
    ent_updates: list[EntUpdate] = field(default_factory=list)
    explicit_deletes: list[int] = field(default_factory=list)


@dataclass
class Edict:
    """State of one entity slot."""

    exists: bool = False
    in_pvs: bool = False
    explicitly_deleted: bool = False
    datatable_id: int = 0
    handle: int = 0
    props: Optional[PropArray] = None


@dataclass
class _Walk:
    excluded: set[tuple[Optional[str], str]] = field(default_factory=set)
    tables_with_excludes: set[Optional[str]] = field(default_factory=set)
    baseclasses: list[int] = field(default_factory=list)
    insert_at: int = 0


def _priority(prop: SendProp) -> int:
    if prop.priority >= 64 and prop.flag_changesoften:
        return 64
    return prop.priority


def _blank_value(prop: SendProp) -> Any:
    if prop.proptype is SendPropType.ARRAY:
        return [None] * prop.array_num_elements
    return None


class EntityState:
    """Server class layouts from a datatables block and the edicts they describe."""

    def __init__(
        self,
        datatables: DataTables,
        version: DemoVersion,
        flatten_datatables: bool = False,
        should_store_props: bool = False,
    ) -> None:
        self.version = version
        self.should_store_props = should_store_props
        self.sendtables = datatables.sendtables
        self.serverclasses = datatables.serverclasses

        self._dt_lookup: dict[str, int] = {}
        for index, table in enumerate(self.sendtables):
            if table.name in self._dt_lookup:
                raise EntityStateError(
                    "Hashtable collision with datatable names or ran out of space"
                )
            self._dt_lookup[table.name] = index
        self._table_index = {id(table): index for index, table in enumerate(self.sendtables)}

        self.class_datas = [ServerClassData() for _ in self.serverclasses]
        self.edicts = [Edict() for _ in range(MAX_EDICTS)]

        if flatten_datatables:
            for index in range(len(self.serverclasses)):
                self._flatten(index)

    def serverclass_data(self, index: int) -> ServerClassData:
        """Return the flattened layout of a server class, building it on first use."""
        if self.class_datas[index].dt_name is None:
            self._flatten(index)
        return self.class_datas[index]

    def _resolve(self, prop: SendProp) -> int:
        if prop.baseclass is None:
            index = self._dt_lookup.get(prop.dtname or "")
            if index is None:
                raise EntityStateError("Was unable to find datatable pointed to by sendprop")
            prop.baseclass = self.sendtables[index]
        index = self._table_index.get(id(prop.baseclass))
        if index is None:
            raise EntityStateError("Was unable to find datatable pointed to by sendprop")
        return index

    def _gather_excludes(self, walk: _Walk, table_index: int) -> None:
        for prop in self.sendtables[table_index].props:
            if prop.proptype is SendPropType.DATATABLE:
                self._gather_excludes(walk, self._resolve(prop))
            elif prop.flag_exclude:
                walk.excluded.add((prop.exclude_name, prop.name))
                walk.tables_with_excludes.add(prop.exclude_name)

    def _is_excluded(self, walk: _Walk, table: SendTable, prop: SendProp) -> bool:
        return (
            table.name in walk.tables_with_excludes
            and (table.name, prop.name) in walk.excluded
        )

    def _gather_baseclasses(self, walk: _Walk, table_index: int) -> None:
        table = self.sendtables[table_index]
        for prop in table.props:
            if self._is_excluded(walk, table, prop):
                continue
            if prop.proptype is not SendPropType.DATATABLE:
                continue
            base_index = self._resolve(prop)
            if prop.flag_collapsible:
                self._gather_baseclasses(walk, base_index)
            else:
                if len(walk.baseclasses) >= _MAX_BASECLASSES:
                    raise EntityStateError("Too many baseclasses in datatable hierarchy")
                walk.baseclasses.insert(walk.insert_at, base_index)
                self._gather_baseclasses(walk, base_index)
                walk.insert_at += 1

    def _collect_props(self, walk: _Walk, table: SendTable, out: list[SendProp]) -> None:
        for prop in table.props:
            if prop.proptype is SendPropType.DATATABLE:
                if prop.flag_collapsible:
                    self._collect_props(walk, self.sendtables[self._resolve(prop)], out)
            elif not prop.flag_exclude and not prop.flag_insidearray:
                if not self._is_excluded(walk, table, prop):
                    out.append(prop)

    def _sort_props(self, props: list[SendProp]) -> None:
        if self.version.demo_protocol >= 4 and self.version.game is not Game.L4D:
            start = 0
            for current in sorted({_priority(prop) for prop in props}):
                for i in range(start, len(props)):
                    if _priority(props[i]) == current:
                        props[start], props[i] = props[i], props[start]
                        start += 1
        else:
            start = 0
            for i in range(len(props)):
                if props[i].flag_changesoften:
                    props[start], props[i] = props[i], props[start]
                    start += 1

    def _flatten(self, index: int) -> None:
        serverclass = self.serverclasses[index]
        dt_index = self._dt_lookup.get(serverclass.datatable_name)
        if dt_index is None:
            raise EntityStateError("No datatable found for serverclass")

        walk = _Walk()
        self._gather_excludes(walk, dt_index)
        self._gather_baseclasses(walk, dt_index)

        props: list[SendProp] = []
        for base_index in walk.baseclasses:
            self._collect_props(walk, self.sendtables[base_index], props)
        self._collect_props(walk, self.sendtables[dt_index], props)
        self._sort_props(props)

        self.class_datas[index] = ServerClassData(self.sendtables[dt_index].name, props)

    @staticmethod
    def _store_props(ent: Edict, update: EntUpdate, data: ServerClassData) -> None:
        if ent.props is None:
            ent.props = PropArray(data.prop_count)
        for prop_value in update.prop_values:
            prop = data.props[prop_value.prop_index]
            slot, created = ent.props.get(prop_value.prop_index)
            if created:
                slot.value = _blank_value(prop)
            if prop.proptype is SendPropType.ARRAY:
                values = list(prop_value.value)
                slot.value[: len(values)] = values
            else:
                slot.value = prop_value.value

    def update(self, data: PacketEntitiesData) -> None:
        """Apply the updates and explicit deletes of one packet entities message."""
        for update in data.ent_updates:
            if not 0 <= update.ent_index < MAX_EDICTS:
                raise EntityStateError("update index was out of bounds")

            ent = self.edicts[update.ent_index]
            if update.update_type == EntUpdate.ENTER_PVS:
                class_data = self.class_datas[update.datatable_id]
                if self.should_store_props:
                    if ent.exists and ent.datatable_id != update.datatable_id:
                        ent = self.edicts[update.ent_index] = Edict()
                    if not ent.exists:
                        ent.props = PropArray(class_data.prop_count)
                ent.explicitly_deleted = False
                ent.exists = True
                ent.datatable_id = update.datatable_id
                ent.handle = update.handle
                ent.in_pvs = True
                if self.should_store_props:
                    self._store_props(ent, update, class_data)
            elif update.update_type == EntUpdate.DELTA:
                if self.should_store_props:
                    self._store_props(ent, update, self.class_datas[ent.datatable_id])
            elif update.update_type == EntUpdate.LEAVE_PVS:
                ent.in_pvs = False
            elif update.update_type == EntUpdate.DELETE:
                self.edicts[update.ent_index] = Edict()

        for ent_index in data.explicit_deletes:
            self.edicts[ent_index] = Edict(explicitly_deleted=True)