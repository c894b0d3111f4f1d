"""Flat control registry built from the LoxAPP3.json structure file.

The structure file nests controls, their named states and their subControls.
Event tables only ever reference identifiers, so everything that can be
addressed by one (controls, states, rooms, categories, ...) is flattened into a
single map keyed by identifier.

Display names follow ``<prefix><name> (<type>)``; states append ``::<state>``
(or ``::<state>[<idx>]`` for array-valued states) and subControls are prefixed
with their parent's display name and `` / ``.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field, field_validator

from loxone_client.const import (
    CATEGORY_AUTOPILOT,
    CATEGORY_CATEGORY,
    CATEGORY_PRIMARY_STATE,
    CATEGORY_ROOM,
    CATEGORY_STATE,
    NON_COMMANDABLE_CATEGORIES,
)
from loxone_client.exceptions import UnknownIdentifierError
from loxone_client.logging_abstraction import get_logger
from loxone_client.protocol.event_tables import DaytimerState, TableUpdate, WeatherState
from loxone_client.protocol.uuid_codec import Identifier

__all__ = [
    "ControlNode",
    "DeviceEntry",
    "Registry",
    "StructureFile",
    "build_registry",
    "flatten_controls",
]

logger = get_logger(__name__)

StateRef = str | list[str]


class ControlNode(BaseModel):
    """A control (or room, category, ...) entry of the structure file."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str | None = None
    type: str | None = None
    states: dict[str, StateRef] = Field(default_factory=dict)
    sub_controls: dict[str, ControlNode] = Field(default_factory=dict, alias="subControls")

    @field_validator("name", "type", mode="before")
    @classmethod
    def _as_text(cls, v: object) -> object:
        # rooms carry numeric types
        return str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v


class WeatherServerBlock(BaseModel):
    model_config = ConfigDict(extra="ignore")

    states: dict[str, StateRef] = Field(default_factory=dict)


class StructureFile(BaseModel):
    """The parts of LoxAPP3.json that end up in the registry."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    last_modified: str | None = Field(default=None, alias="lastModified")
    controls: dict[str, ControlNode] = Field(default_factory=dict)
    rooms: dict[str, ControlNode] = Field(default_factory=dict)
    cats: dict[str, ControlNode] = Field(default_factory=dict)
    autopilot: dict[str, ControlNode] = Field(default_factory=dict)
    media_server: dict[str, ControlNode] = Field(default_factory=dict, alias="mediaServer")
    weather_server: WeatherServerBlock | None = Field(default=None, alias="weatherServer")
    global_states: dict[str, StateRef] = Field(default_factory=dict, alias="globalStates")


@dataclass(slots=True)
class DeviceEntry:
    """One addressable item of the registry.

    ``value`` holds the last scalar pushed by a value or text table. Daytimer and
    weather tables also set ``table_data`` to the full decoded structure.
    """

    uuid: Identifier
    name: str
    category: str | None
    value: float | int | str | None = None
    table_data: TableUpdate | None = None


def _display_name(prefix: str, node: ControlNode) -> str:
    return f"{prefix}{node.name or ''} ({node.type or ''})"


def _add_states(
    table: dict[Identifier, DeviceEntry],
    owner_uuid: Identifier | None,
    owner_name: str,
    states: Mapping[str, StateRef],
    forced_category: str | None,
) -> None:
    """Register every state of one control.

    A state that reuses the owning control's own identifier is the control's
    primary state; any other identifier is a plain state. A forced category
    (rooms, categories, autopilot) wins over both.
    """
    for state_name, ref in states.items():
        if isinstance(ref, list):
            named = [(f"{owner_name}::{state_name}[{idx}]", state_uuid) for idx, state_uuid in enumerate(ref)]
        else:
            named = [(f"{owner_name}::{state_name}", ref)]
        for name, state_uuid in named:
            if forced_category is not None:
                category = forced_category
            elif state_uuid == owner_uuid:
                category = CATEGORY_PRIMARY_STATE
            else:
                category = CATEGORY_STATE
            table[state_uuid] = DeviceEntry(uuid=state_uuid, name=name, category=category)


def flatten_controls(
    nodes: Mapping[str, ControlNode],
    prefix: str = "",
    forced_category: str | None = None,
) -> dict[Identifier, DeviceEntry]:
    """Recursively flatten a ``uuid -> node`` mapping.

    Args:
        nodes: Controls keyed by identifier
        prefix: Prepended to every display name
        forced_category: Category for every entry of this level (subControls
            never inherit it)

    Returns:
        Flat ``uuid -> DeviceEntry`` map in discovery order

    """
    table: dict[Identifier, DeviceEntry] = {}
    for uuid, node in nodes.items():
        name = _display_name(prefix, node)
        category = forced_category if forced_category is not None else node.type
        table[uuid] = DeviceEntry(uuid=uuid, name=name, category=category)
        _add_states(table, uuid, name, node.states, forced_category)
        if node.sub_controls:
            table.update(flatten_controls(node.sub_controls, f"{name} / "))
    return table


def _flatten_state_block(
    name: str,
    type_: str,
    states: Mapping[str, StateRef],
    prefix: str,
) -> dict[Identifier, DeviceEntry]:
    """Flatten a block that only contributes states (no entry for the block itself)."""
    table: dict[Identifier, DeviceEntry] = {}
    owner_name = _display_name(prefix, ControlNode(name=name, type=type_))
    _add_states(table, None, owner_name, states, None)
    return table


class Registry:
    """Flat identifier-keyed view of the structure file with live values."""

    lp: str = "Registry:"

    def __init__(self, entries: Mapping[Identifier, DeviceEntry] | None = None) -> None:
        self._entries: dict[Identifier, DeviceEntry] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, uuid: object) -> bool:
        return uuid in self._entries

    def __iter__(self) -> Iterator[DeviceEntry]:
        return iter(self._entries.values())

    def __getitem__(self, uuid: Identifier) -> DeviceEntry:
        try:
            return self._entries[uuid]
        except KeyError:
            raise UnknownIdentifierError(uuid) from None

    def get(self, uuid: Identifier) -> DeviceEntry | None:
        return self._entries.get(uuid)

    def display_name(self, uuid: Identifier) -> str:
        """Human-readable name for an identifier, or the identifier itself when unknown."""
        entry = self._entries.get(uuid)
        return entry.name if entry is not None else uuid

    def controls(self) -> list[DeviceEntry]:
        """Entries that can be commanded (controls and subControls, not states/rooms/categories)."""
        return [entry for entry in self._entries.values() if entry.category not in NON_COMMANDABLE_CATEGORIES]

    def apply(self, update: TableUpdate) -> DeviceEntry:
        """Store a decoded update on its entry.

        Raises:
            UnknownIdentifierError: The update references an identifier not in the registry

        """
        entry = self[update.uuid]
        entry.value = update.value
        if isinstance(update, (DaytimerState, WeatherState)):
            entry.table_data = update
        return entry

    def apply_all(self, updates: Iterable[TableUpdate]) -> list[Identifier]:
        """Apply a decoded table, reporting (not raising) identifiers that are missing.

        Returns:
            Identifiers that were not found in the registry

        """
        lp = f"{self.lp}apply_all:"
        missing: list[Identifier] = []
        for update in updates:
            try:
                _ = self.apply(update)
            except UnknownIdentifierError as e:
                missing.append(update.uuid)
                logger.warning("%s %s", lp, e)
        return missing


def build_registry(structure: StructureFile | Mapping[str, object]) -> Registry:
    """Flatten the whole structure file into a new Registry.

    Groups are merged in a fixed order and later groups overwrite earlier ones on
    identifier collisions: controls, mediaServer, rooms, cats, autopilot,
    weatherServer states, globalStates.
    """
    if not isinstance(structure, StructureFile):
        structure = StructureFile.model_validate(structure)

    table: dict[Identifier, DeviceEntry] = {}
    table.update(flatten_controls(structure.controls))
    table.update(flatten_controls(structure.media_server, "(MediaServer) "))
    table.update(flatten_controls(structure.rooms, "(Room) ", CATEGORY_ROOM))
    table.update(flatten_controls(structure.cats, "(Category) ", CATEGORY_CATEGORY))
    table.update(flatten_controls(structure.autopilot, "(autopilot) ", CATEGORY_AUTOPILOT))
    if structure.weather_server is not None:
        table.update(
            _flatten_state_block("WeatherServer", "WeatherServer", structure.weather_server.states, "(WeatherServer) "),
        )
    table.update(_flatten_state_block("GlobalState", "", structure.global_states, "(GlobalStates) "))

    logger.info(
        "%s Built registry with %d entries (%d controls)",
        "Registry:build:",
        len(table),
        len(structure.controls),
    )
    return Registry(table)
