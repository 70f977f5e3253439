"""Tests for the topology index and fuzzy location matching."""

from __future__ import annotations

import pytest

from tutera.services.crestron.models import Area, DeviceCollections, Light, Room
from tutera.services.crestron.topology import (
    MATCH_STRATEGIES,
    UNASSIGNED,
    TopologyIndex,
    build_areas,
    find_area,
    find_room,
    fuzzy_match,
    match_strategy,
)

# =============================================================================
# fuzzy_match
# =============================================================================


class TestFuzzyMatch:
    """Tests for the ordered match strategies."""

    def test_strategy_order_is_exact_substring_alias(self) -> None:
        """The cascade order is fixed."""
        assert [name for name, _ in MATCH_STRATEGIES] == ["exact", "substring", "alias"]

    def test_exact_match_ignores_case_and_whitespace(self) -> None:
        assert match_strategy("  KITCHEN ", "Kitchen") == "exact"

    def test_substring_either_direction(self) -> None:
        assert match_strategy("kitchen", "Kitchen Pendant") == "substring"
        assert match_strategy("the master bedroom lamp", "Master Bedroom") == "substring"

    @pytest.mark.parametrize(
        ("query", "target"),
        [
            ("upstairs", "2nd Floor"),
            ("second floor", "2nd Floor"),
            ("main floor", "1st Floor"),
            ("basement", "Lower Level"),
            ("primary suite", "Master Suite"),
            ("primary bedroom", "Master Bedroom"),
        ],
    )
    def test_alias_table(self, query: str, target: str) -> None:
        """Canonical aliases match after exact and substring fail."""
        assert match_strategy(query, target) == "alias"

    def test_no_match(self) -> None:
        assert fuzzy_match("garage", "Kitchen") is False

    def test_empty_strings_never_match(self) -> None:
        assert match_strategy("", "Kitchen") is None
        assert match_strategy("kitchen", "  ") is None


class TestFindAreaAndRoom:
    """Tests for first-match lookup."""

    def test_find_area_returns_first_match(self) -> None:
        areas = [Area("a1", "1st Floor"), Area("a2", "2nd Floor")]
        assert find_area("upstairs", areas).id == "a2"

    def test_find_room_returns_none_when_nothing_matches(self) -> None:
        rooms = [Room("r1", "Kitchen")]
        assert find_room("garage", rooms) is None

    def test_find_room_none_name(self) -> None:
        assert find_room(None, [Room("r1", "Kitchen")]) is None


# =============================================================================
# build_areas
# =============================================================================


class TestBuildAreas:
    """Tests for deriving area membership from rooms."""

    def test_membership_derived_from_rooms(self) -> None:
        areas = [Area("a1", "1st Floor")]
        rooms = [Room("r1", "Kitchen", "a1", "1st Floor"), Room("r2", "Den", "a1", "1st Floor")]

        built = build_areas(areas, rooms)

        assert built[0].room_ids == {"r1", "r2"}

    def test_areas_known_only_through_rooms_are_created(self) -> None:
        rooms = [Room("r1", "Office", "a9", "Annex")]

        built = build_areas([], rooms)

        assert len(built) == 1
        assert built[0].name == "Annex"
        assert built[0].room_ids == {"r1"}

    def test_existing_membership_is_kept(self) -> None:
        areas = [Area("a1", "1st Floor", {"r5"})]
        rooms = [Room("r1", "Kitchen", "a1", "1st Floor")]

        assert build_areas(areas, rooms)[0].room_ids == {"r5"}


# =============================================================================
# TopologyIndex
# =============================================================================


class TestTopologyIndex:
    """Tests for the hierarchy and lookups."""

    @pytest.fixture
    def topology(self) -> TopologyIndex:
        rooms = [
            Room("r1", "Kitchen", "a1", "1st Floor"),
            Room("r2", "Den", "a1", "1st Floor"),
            Room("r3", "Loft"),
        ]
        return TopologyIndex(
            DeviceCollections(
                areas=build_areas([Area("a1", "1st Floor")], rooms),
                rooms=rooms,
                lights=[
                    Light("l1", "Pendant", "r1"),
                    Light("l2", "Lost Light", "r404"),
                    Light("l3", "Loose Light", None),
                ],
            )
        )

    def test_room_name_resolves(self, topology: TopologyIndex) -> None:
        assert topology.room_name("r1") == "Kitchen"

    def test_dangling_room_reference_is_none(self, topology: TopologyIndex) -> None:
        assert topology.room_name("r404") is None
        assert topology.get_room(None) is None

    def test_area_for_room(self, topology: TopologyIndex) -> None:
        assert topology.area_for_room("r2").name == "1st Floor"
        assert topology.area_for_room("r3") is None

    def test_hierarchy_groups_devices_by_room(self, topology: TopologyIndex) -> None:
        tree = topology.hierarchy()

        kitchen = next(r for r in tree["a1"].rooms if r.room.id == "r1")
        assert [d.id for d in kitchen.devices] == ["l1"]

    def test_unresolved_references_degrade_to_unassigned(self, topology: TopologyIndex) -> None:
        """Unclaimed rooms and dangling devices land under "unassigned"."""
        tree = topology.hierarchy()

        assert UNASSIGNED in tree
        unassigned_rooms = {r.room.id: r for r in tree[UNASSIGNED].rooms}
        assert "r3" in unassigned_rooms
        orphans = unassigned_rooms[UNASSIGNED].devices
        assert {d.id for d in orphans} == {"l2", "l3"}
