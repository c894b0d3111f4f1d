"""Unit tests for structure flattening and the registry."""

from __future__ import annotations

import pytest

from loxone_client.exceptions import UnknownIdentifierError
from loxone_client.protocol.event_tables import DaytimerState, TextUpdate, ValueUpdate, WeatherState
from loxone_client.registry import ControlNode, DeviceEntry, Registry, StructureFile, build_registry, flatten_controls
from tests.helpers.sample_data import (
    AUTOPILOT_STATE_UUID,
    AUTOPILOT_UUID,
    CAT_UUID,
    DAYTIMER_STATE_UUID,
    GLOBAL_OPMODE_UUID,
    LIGHT_OUTPUT_0_UUID,
    LIGHT_OUTPUT_1_UUID,
    LIGHT_UUID,
    LIGHT_VALUE_UUID,
    MEDIA_UUID,
    ROOM_UUID,
    SUB_STATE_UUID,
    SUB_UUID,
    TEXT_STATE_UUID,
    TEXT_UUID,
    UNKNOWN_UUID,
    WEATHER_STATE_UUID,
)

CTRL = "0b734138-037d-034e-ffff403fb0c34b9e"
OTHER = "0b734138-037d-034e-ffff403fb0c34b9f"
STATE_A = "0b734138-037d-0350-ffff403fb0c34b9e"
STATE_B = "0b734138-037d-0351-ffff403fb0c34b9e"


def _node(**kwargs: object) -> dict[str, ControlNode]:
    return {CTRL: ControlNode.model_validate({"name": "Lamp", "type": "Switch", **kwargs})}


class TestFlattenControls:
    """Tests for flatten_controls."""

    def test_control_entry(self):
        table = flatten_controls(_node())
        assert table[CTRL] == DeviceEntry(uuid=CTRL, name="Lamp (Switch)", category="Switch")

    def test_state_sharing_control_uuid_is_primary(self):
        table = flatten_controls(_node(states={"active": CTRL}))
        assert table[CTRL].category == "_primarystate_"
        assert table[CTRL].name == "Lamp (Switch)::active"

    def test_state_with_distinct_uuid(self):
        table = flatten_controls(_node(states={"active": OTHER}))
        assert table[OTHER].category == "_state_"
        assert table[OTHER].name == "Lamp (Switch)::active"
        assert table[CTRL].category == "Switch"

    def test_array_state(self):
        table = flatten_controls(_node(states={"outputs": [STATE_A, STATE_B]}))
        assert table[STATE_A].name == "Lamp (Switch)::outputs[0]"
        assert table[STATE_B].name == "Lamp (Switch)::outputs[1]"
        assert table[STATE_A].category == "_state_"

    def test_prefix(self):
        table = flatten_controls(_node(), prefix="(Room) ")
        assert table[CTRL].name == "(Room) Lamp (Switch)"

    def test_forced_category_wins_over_primary(self):
        table = flatten_controls(_node(states={"active": CTRL, "x": OTHER}), forced_category="_room_")
        assert table[CTRL].category == "_room_"
        assert table[OTHER].category == "_room_"

    def test_sub_controls(self):
        nodes = _node(subControls={OTHER: {"name": "Channel", "type": "Dimmer", "states": {"position": STATE_A}}})
        table = flatten_controls(nodes)
        assert table[OTHER].name == "Lamp (Switch) / Channel (Dimmer)"
        assert table[OTHER].category == "Dimmer"
        assert table[STATE_A].name == "Lamp (Switch) / Channel (Dimmer)::position"

    def test_sub_controls_do_not_inherit_forced_category(self):
        nodes = _node(subControls={OTHER: {"name": "Channel", "type": "Dimmer"}})
        table = flatten_controls(nodes, forced_category="_category_")
        assert table[CTRL].category == "_category_"
        assert table[OTHER].category == "Dimmer"

    def test_missing_name_and_type(self):
        table = flatten_controls({CTRL: ControlNode()})
        assert table[CTRL].name == " ()"
        assert table[CTRL].category is None

    def test_numeric_type_is_text(self):
        table = flatten_controls({CTRL: ControlNode.model_validate({"name": "Kitchen", "type": 0})})
        assert table[CTRL].name == "Kitchen (0)"


class TestBuildRegistry:
    """Tests for build_registry over a full structure file."""

    def test_accepts_raw_mapping(self, sample_structure: dict[str, object]):
        registry = build_registry(sample_structure)
        assert LIGHT_UUID in registry

    def test_controls(self, structure_file: StructureFile):
        registry = build_registry(structure_file)
        assert registry[LIGHT_UUID].name == "Ceiling (LightController)::active"
        assert registry[LIGHT_UUID].category == "_primarystate_"
        assert registry[LIGHT_VALUE_UUID].name == "Ceiling (LightController)::value"
        assert registry[LIGHT_VALUE_UUID].category == "_state_"
        assert registry[LIGHT_OUTPUT_0_UUID].name == "Ceiling (LightController)::outputs[0]"
        assert registry[LIGHT_OUTPUT_1_UUID].name == "Ceiling (LightController)::outputs[1]"
        assert registry[TEXT_UUID].name == "Status (TextState)"
        assert registry[TEXT_STATE_UUID].name == "Status (TextState)::textAndIcon"

    def test_sub_controls(self, structure_file: StructureFile):
        registry = build_registry(structure_file)
        assert registry[SUB_UUID].name == "Ceiling (LightController) / Spot (Dimmer)"
        assert registry[SUB_UUID].category == "Dimmer"
        assert registry[SUB_STATE_UUID].name == "Ceiling (LightController) / Spot (Dimmer)::position"

    def test_groups(self, structure_file: StructureFile):
        registry = build_registry(structure_file)
        assert registry[MEDIA_UUID].name == "(MediaServer) Music Server (MusicServer)"
        assert registry[MEDIA_UUID].category == "MusicServer"
        assert registry[ROOM_UUID].name == "(Room) Kitchen (0)"
        assert registry[ROOM_UUID].category == "_room_"
        assert registry[CAT_UUID].name == "(Category) Lighting (lights)"
        assert registry[CAT_UUID].category == "_category_"
        assert registry[AUTOPILOT_UUID].name == "(autopilot) Night mode ()"
        assert registry[AUTOPILOT_UUID].category == "_autopilot_"
        assert registry[AUTOPILOT_STATE_UUID].category == "_autopilot_"

    def test_weather_and_global_states(self, structure_file: StructureFile):
        registry = build_registry(structure_file)
        assert registry[WEATHER_STATE_UUID].name == "(WeatherServer) WeatherServer (WeatherServer)::actual"
        assert registry[WEATHER_STATE_UUID].category == "_state_"
        assert registry[GLOBAL_OPMODE_UUID].name == "(GlobalStates) GlobalState ()::operatingMode"
        assert registry[GLOBAL_OPMODE_UUID].category == "_state_"

    def test_later_groups_overwrite_earlier(self):
        structure = {
            "controls": {CTRL: {"name": "Lamp", "type": "Switch"}},
            "rooms": {CTRL: {"name": "Kitchen", "type": 0}},
        }
        registry = build_registry(structure)
        assert registry[CTRL].name == "(Room) Kitchen (0)"
        assert registry[CTRL].category == "_room_"

    def test_empty_structure(self):
        assert len(build_registry({})) == 0


class TestRegistry:
    """Tests for Registry lookups and update application."""

    @pytest.fixture
    def registry(self, structure_file: StructureFile) -> Registry:
        return build_registry(structure_file)

    def test_unknown_identifier(self, registry: Registry):
        with pytest.raises(UnknownIdentifierError) as exc_info:
            _ = registry[UNKNOWN_UUID]
        assert exc_info.value.uuid == UNKNOWN_UUID
        assert UNKNOWN_UUID in str(exc_info.value)
        assert registry.get(UNKNOWN_UUID) is None

    def test_unknown_identifier_is_a_key_error(self, registry: Registry):
        with pytest.raises(KeyError):
            _ = registry[UNKNOWN_UUID]

    def test_display_name(self, registry: Registry):
        assert registry.display_name(SUB_UUID) == "Ceiling (LightController) / Spot (Dimmer)"
        assert registry.display_name(UNKNOWN_UUID) == UNKNOWN_UUID

    def test_controls_excludes_states_rooms_categories_autopilot(self, registry: Registry):
        uuids = {entry.uuid for entry in registry.controls()}
        assert {LIGHT_UUID, SUB_UUID, TEXT_UUID, MEDIA_UUID} <= uuids
        assert not {LIGHT_VALUE_UUID, ROOM_UUID, CAT_UUID, AUTOPILOT_UUID, GLOBAL_OPMODE_UUID} & uuids

    def test_iteration_and_len(self, registry: Registry):
        entries = list(registry)
        assert len(entries) == len(registry)
        assert all(isinstance(entry, DeviceEntry) for entry in entries)

    def test_apply_value(self, registry: Registry):
        entry = registry.apply(ValueUpdate(LIGHT_VALUE_UUID, 75.0))
        assert entry is registry[LIGHT_VALUE_UUID]
        assert entry.value == 75.0
        assert entry.table_data is None

    def test_apply_text(self, registry: Registry):
        _ = registry.apply(TextUpdate(TEXT_STATE_UUID, "00000000-0000-0000-0000000000000000", "Open"))
        assert registry[TEXT_STATE_UUID].value == "Open"

    def test_apply_daytimer_keeps_table(self, registry: Registry):
        update = DaytimerState(uuid=DAYTIMER_STATE_UUID, default_value=20.5, entries=())
        entry = registry.apply(update)
        assert entry.value == 20.5
        assert entry.table_data is update

    def test_apply_weather_keeps_table(self, registry: Registry):
        update = WeatherState(uuid=WEATHER_STATE_UUID, last_update=1710000000, entries=())
        entry = registry.apply(update)
        assert entry.value == 1710000000
        assert entry.table_data is update

    def test_apply_unknown_raises(self, registry: Registry):
        with pytest.raises(UnknownIdentifierError):
            _ = registry.apply(ValueUpdate(UNKNOWN_UUID, 1.0))

    def test_apply_all_continues_past_unknown(self, registry: Registry):
        missing = registry.apply_all(
            [
                ValueUpdate(LIGHT_VALUE_UUID, 1.0),
                ValueUpdate(UNKNOWN_UUID, 2.0),
                ValueUpdate(LIGHT_OUTPUT_0_UUID, 3.0),
            ],
        )
        assert missing == [UNKNOWN_UUID]
        assert registry[LIGHT_VALUE_UUID].value == 1.0
        assert registry[LIGHT_OUTPUT_0_UUID].value == 3.0
