"""
Tests for the tag normalizer: coordinate resolution, tri-state attributes,
default names and batch de-duplication.
"""

import pytest

from services.amenities.domain import Category
from services.amenities.geodata.normalizer import (
    external_id,
    normalize,
    normalize_element,
    resolve_coordinate,
)
from services.amenities.tests.helpers.factories import make_node, make_way


# ---------------------------------------------------------------------------
# Coordinates
# ---------------------------------------------------------------------------

class TestResolveCoordinate:

    def test_direct_point(self):
        assert resolve_coordinate({"lat": 37.5, "lon": -122.1}) == (37.5, -122.1)

    def test_center_used_when_no_direct_point(self):
        element = make_way(center={"lat": 10.0, "lon": 20.0})
        assert resolve_coordinate(element) == (10.0, 20.0)

    def test_first_geometry_vertex(self):
        element = make_way(geometry=[{"lat": 1.5, "lon": 2.5}, {"lat": 9.0, "lon": 9.0}])
        assert resolve_coordinate(element) == (1.5, 2.5)

    def test_bounds_mean(self):
        element = make_way(bounds={"minlat": 1.0, "minlon": 1.0, "maxlat": 3.0, "maxlon": 3.0})
        assert resolve_coordinate(element) == (2.0, 2.0)

    def test_direct_point_wins_over_bounds(self):
        element = make_way(
            lat=5.0, lon=6.0,
            bounds={"minlat": 1.0, "minlon": 1.0, "maxlat": 3.0, "maxlon": 3.0},
        )
        assert resolve_coordinate(element) == (5.0, 6.0)

    def test_center_wins_over_geometry(self):
        element = make_way(center={"lat": 4.0, "lon": 4.0}, geometry=[{"lat": 8.0, "lon": 8.0}])
        assert resolve_coordinate(element) == (4.0, 4.0)

    def test_zero_is_a_valid_coordinate(self):
        assert resolve_coordinate({"lat": 0, "lon": 0}) == (0.0, 0.0)

    def test_partial_bounds_do_not_resolve(self):
        element = make_way(bounds={"minlat": 1.0, "maxlat": 3.0})
        assert resolve_coordinate(element) is None

    def test_nothing_resolves(self):
        assert resolve_coordinate(make_way()) is None

    def test_non_numeric_latitude_skipped(self):
        element = make_way(lat="north", lon=1.0, center={"lat": 2.0, "lon": 3.0})
        assert resolve_coordinate(element) == (2.0, 3.0)


class TestExternalId:

    def test_type_and_id(self):
        assert external_id({"type": "way", "id": 456}) == "way_456"

    def test_missing_id(self):
        assert external_id({"type": "node"}) is None


# ---------------------------------------------------------------------------
# Attributes
# ---------------------------------------------------------------------------

class TestNormalizeElement:

    def test_tristate_yes_no_absent(self):
        node = make_node(1, changing_table="yes", bidet="no")
        amenity = normalize_element(node, Category.toilet)

        assert amenity.attributes["hasChangingTable"] is True
        assert amenity.attributes["hasBidet"] is False
        assert amenity.attributes["isSelfCleaning"] is None

    def test_tag_values_are_case_insensitive(self):
        amenity = normalize_element(make_node(1, fee="No"), Category.toilet)
        assert amenity.attributes["hasFee"] is False

    def test_unrecognized_value_is_unknown(self):
        amenity = normalize_element(make_node(1, wheelchair="limited"), Category.toilet)
        assert amenity.attributes["wheelchairAccessible"] is None
        assert amenity.rawTags["wheelchair"] == "limited"

    def test_alias_key_sets_true(self):
        amenity = normalize_element(make_node(1, toiletries="yes"), Category.toilet)
        assert amenity.attributes["hasToiletPaper"] is True

    def test_secondary_yes_outranks_primary_no(self):
        node = make_node(1, toilet_paper="no", toiletries="yes")
        assert normalize_element(node, Category.toilet).attributes["hasToiletPaper"] is True

    def test_only_primary_key_sets_false(self):
        amenity = normalize_element(make_node(1, toiletries="no"), Category.toilet)
        assert amenity.attributes["hasToiletPaper"] is None
        amenity = normalize_element(make_node(1, toilet_paper="no"), Category.toilet)
        assert amenity.attributes["hasToiletPaper"] is False

    def test_every_attribute_key_present(self):
        amenity = normalize_element(make_node(1), Category.toilet)
        assert "hasChangingTable" in amenity.attributes
        assert all(v is None for v in amenity.attributes.values())

    def test_details_and_gender(self):
        node = make_node(1, opening_hours="Mo-Su 08:00-20:00", unisex="yes")
        amenity = normalize_element(node, Category.toilet)
        assert amenity.details["openingHours"] == "Mo-Su 08:00-20:00"
        assert amenity.details["gender"] == "unisex"
        assert amenity.details["operator"] is None

    def test_default_name_when_untagged(self):
        assert normalize_element(make_node(1), Category.toilet).name == "Public Bathroom"

    def test_blank_name_falls_back_to_default(self):
        assert normalize_element(make_node(1, name="  "), Category.dog_park).name == "Dog Park"

    def test_source_name_kept(self):
        assert normalize_element(make_node(1, name="Ferry Building WC"), Category.toilet).name == "Ferry Building WC"

    def test_off_leash_only_positive(self):
        leashed = normalize_element(make_node(1, dog="leashed"), Category.dog_park)
        unleashed = normalize_element(make_node(2, dog="unleashed"), Category.dog_park)
        assert leashed.attributes["isOffLeash"] is None
        assert unleashed.attributes["isOffLeash"] is True

    def test_no_coordinate_dropped(self):
        assert normalize_element(make_way(7, tags={"amenity": "toilets"}), Category.toilet) is None

    def test_identity_and_coordinates(self):
        amenity = normalize_element(make_node(42, lat=1.25, lon=-3.5), Category.shower)
        assert amenity.externalId == "node_42"
        assert amenity.category == Category.shower
        assert (amenity.latitude, amenity.longitude) == (1.25, -3.5)
        assert amenity.id is None


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------

class TestNormalizeBatch:

    def test_duplicate_external_id_last_wins(self):
        elements = [
            make_node(1, name="First"),
            make_node(2, name="Other"),
            make_node(1, name="Second"),
        ]
        result = normalize(elements, Category.toilet)

        assert [a.externalId for a in result] == ["node_2", "node_1"]
        assert result[1].name == "Second"

    def test_unresolvable_elements_dropped(self):
        elements = [make_node(1), make_way(2), "garbage", {"type": "node", "lat": 1, "lon": 1}]
        result = normalize(elements, Category.toilet)
        assert [a.externalId for a in result] == ["node_1"]

    def test_deterministic(self):
        elements = [make_node(i, lat=float(i), lon=float(i)) for i in range(5)]
        assert normalize(elements, Category.playground) == normalize(elements, Category.playground)

    @pytest.mark.parametrize("category", list(Category))
    def test_every_category_normalizes(self, category):
        [amenity] = normalize([make_node(1)], category)
        assert amenity.category == category
        assert amenity.name
