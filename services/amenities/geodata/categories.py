"""
Per-category tables for the amenity pipeline.

Each category defines:
  - the Overpass selectors that find it (tag filters x element types)
  - the output mode ("center" for one point per way, "geom" for outlines)
  - a default display name used when the source has no `name` tag
  - a tri-state attribute table (canonical attribute -> tag rule)
  - a free-text detail table (canonical detail -> tag keys)

Tag values outside these tables never reach typed fields; they survive
only in Amenity.rawTags.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from services.amenities.domain import Category

YES = frozenset({"yes"})
NO = frozenset({"no"})


# ---------------------------------------------------------------------------
# Rule primitives
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TagMatch:
    """Matches when `key` carries one of `values` (None = any non-empty value)."""
    key: str
    values: Optional[frozenset[str]] = YES

    def matches(self, tags: dict[str, str]) -> bool:
        raw = tags.get(self.key)
        if raw is None:
            return False
        value = str(raw).strip().lower()
        if not value:
            return False
        if self.values is None:
            return True
        return value in self.values


@dataclass(frozen=True)
class TriStateRule:
    """True if any `when_true` matches, else False if any `when_false` matches, else None."""
    when_true: tuple[TagMatch, ...]
    when_false: tuple[TagMatch, ...] = ()

    def resolve(self, tags: dict[str, str]) -> Optional[bool]:
        if any(m.matches(tags) for m in self.when_true):
            return True
        if any(m.matches(tags) for m in self.when_false):
            return False
        return None


@dataclass(frozen=True)
class TextRule:
    """First present, non-empty tag among `keys`."""
    keys: tuple[str, ...]

    def resolve(self, tags: dict[str, str]) -> Optional[str]:
        for key in self.keys:
            value = tags.get(key)
            if value is not None and str(value).strip():
                return str(value).strip()
        return None


@dataclass(frozen=True)
class ChoiceRule:
    """First matching option's label, e.g. male=yes -> 'male'."""
    options: tuple[tuple[TagMatch, str], ...]

    def resolve(self, tags: dict[str, str]) -> Optional[str]:
        for match, label in self.options:
            if match.matches(tags):
                return label
        return None


DetailRule = Union[TextRule, ChoiceRule]


def yes_no(*keys: str) -> TriStateRule:
    """Plain yes/no rule: any key == yes -> True; first key == no -> False."""
    return TriStateRule(
        when_true=tuple(TagMatch(k) for k in keys),
        when_false=(TagMatch(keys[0], NO),),
    )


def text(*keys: str) -> TextRule:
    return TextRule(keys=keys)


# ---------------------------------------------------------------------------
# Overpass selectors
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Selector:
    """One tag-filter clause applied to each element type."""
    filters: tuple[str, ...]
    element_types: tuple[str, ...] = ("node", "way")


def sel(*filters: str, types: tuple[str, ...] = ("node", "way")) -> Selector:
    return Selector(filters=filters, element_types=types)


NWR = ("node", "way", "relation")


@dataclass(frozen=True)
class CategorySpec:
    category: Category
    slug: str  # URL path segment, e.g. "dog-parks"
    default_name: str
    selectors: tuple[Selector, ...]
    output: str = "center"
    tristate: dict[str, TriStateRule] = field(default_factory=dict)
    details: dict[str, DetailRule] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Shared tables
# ---------------------------------------------------------------------------

COMMON_TRISTATE: dict[str, TriStateRule] = {
    "hasFee": yes_no("fee"),
    "wheelchairAccessible": yes_no("wheelchair"),
}

COMMON_DETAILS: dict[str, DetailRule] = {
    "openingHours": text("opening_hours"),
    "operator": text("operator"),
    "accessType": text("access"),
}

GENDER = ChoiceRule(options=(
    (TagMatch("male"), "male"),
    (TagMatch("female"), "female"),
    (TagMatch("unisex"), "unisex"),
))

TOILET_TRISTATE: dict[str, TriStateRule] = {
    "hasChangingTable": yes_no("changing_table"),
    "hasBidet": yes_no("bidet"),
    "hasToiletPaper": yes_no("toilet_paper", "toiletries"),
    "hasHandDryer": yes_no("hand_dryer", "dryer"),
    "hasSanitaryDisposal": yes_no("sanitary_disposal", "bin"),
    "isSelfCleaning": yes_no("self_cleaning"),
    "hasDrinkingWater": yes_no("drinking_water"),
}

SHOWER_TRISTATE: dict[str, TriStateRule] = {
    "hasHotWater": yes_no("hot_water"),
    "isInBuilding": yes_no("building"),
    "isCovered": yes_no("covered"),
    "isSupervised": yes_no("supervised"),
    "hasDrinkingWater": yes_no("drinking_water"),
}

DOG_PARK_TRISTATE: dict[str, TriStateRule] = {
    # Only a positive leash tag is recorded; "leashed" is not evidence of "no off-leash area"
    "isOffLeash": TriStateRule(when_true=(TagMatch("dog", frozenset({"unleashed", "off-leash"})),)),
    "hasDrinkingWater": yes_no("drinking_water"),
    "hasDogWasteBins": TriStateRule(
        when_true=(
            TagMatch("waste_basket", frozenset({"dog_yes", "yes"})),
            TagMatch("dog_waste_bin"),
        ),
        when_false=(TagMatch("waste_basket", NO),),
    ),
    "isFenced": TriStateRule(
        when_true=(TagMatch("barrier", frozenset({"fence"})), TagMatch("fenced")),
        when_false=(TagMatch("fenced", NO),),
    ),
}

FITNESS_TRISTATE: dict[str, TriStateRule] = {
    "isCovered": yes_no("covered"),
    "isLit": yes_no("lit"),
    "hasParkingNearby": yes_no("parking"),
    "hasDrinkingWater": yes_no("drinking_water"),
    "hasRestrooms": yes_no("toilets"),
    "hasMultipleStations": TriStateRule(
        when_true=(TagMatch("multiple"), TagMatch("count", None)),
    ),
}

FITNESS_DETAILS: dict[str, DetailRule] = {
    "equipmentType": text("fitness_station", "exercise", "sport"),
    "material": text("material"),
    "surface": text("surface"),
    "difficulty": text("difficulty"),
    "manufacturer": text("manufacturer"),
    "ageGroup": text("min_age", "age_group"),
}

PLAYGROUND_TRISTATE: dict[str, TriStateRule] = {
    "isFenced": TriStateRule(
        when_true=(TagMatch("barrier", frozenset({"fence"})), TagMatch("fenced")),
        when_false=(TagMatch("fenced", NO),),
    ),
    "isShaded": TriStateRule(
        when_true=(TagMatch("shade"), TagMatch("natural", frozenset({"tree"}))),
        when_false=(TagMatch("shade", NO),),
    ),
    "hasWaterPlay": yes_no("water_play", "water"),
    "hasChangingTable": yes_no("changing_table", "baby_changing"),
    "isLit": yes_no("lit"),
}

PLAYGROUND_DETAILS: dict[str, DetailRule] = {
    "ageGroup": text("min_age", "max_age", "age_group"),
    "equipment": text("playground", "equipment"),
    "surface": text("surface"),
}

PRAYER_TRISTATE: dict[str, TriStateRule] = {
    "hasAblutionFacilities": yes_no("ablution", "wudu"),
    "hasPrayerMats": yes_no("prayer_mats", "prayer_mat"),
    "hasQiblaDirection": TriStateRule(
        when_true=(TagMatch("qibla"), TagMatch("qibla_direction", None)),
        when_false=(TagMatch("qibla", NO),),
    ),
    "isQuietSpace": yes_no("quiet"),
    "requiresShoeRemoval": TriStateRule(
        when_true=(TagMatch("shoes", NO), TagMatch("barefoot")),
    ),
    "isInBuilding": yes_no("building"),
}

PRAYER_DETAILS: dict[str, DetailRule] = {
    "religion": text("religion"),
    "denomination": text("denomination"),
    "prayerTimes": text("prayer_times"),
    "capacity": text("capacity"),
    "supervisor": text("supervisor"),
    "gender": GENDER,
}

SALON_TRISTATE: dict[str, TriStateRule] = {
    "requiresAppointment": yes_no("appointment"),
}

SALON_DETAILS: dict[str, DetailRule] = {
    "beautyServices": text("beauty", "service"),
    "website": text("website", "contact:website"),
    "phone": text("phone", "contact:phone"),
}

WHEELS_TRISTATE: dict[str, TriStateRule] = {
    "isLit": yes_no("lit"),
    "isCovered": yes_no("covered"),
    "hasRestrooms": yes_no("toilets"),
    "hasParkingNearby": yes_no("parking"),
    "hasDrinkingWater": yes_no("drinking_water"),
}

WHEELS_DETAILS: dict[str, DetailRule] = {
    "surface": text("surface"),
    "difficulty": text("difficulty"),
    "website": text("website", "contact:website"),
    "phone": text("phone", "contact:phone"),
}


def _spec(
    category: Category,
    slug: str,
    default_name: str,
    selectors: tuple[Selector, ...],
    *,
    output: str = "center",
    tristate: Optional[dict[str, TriStateRule]] = None,
    details: Optional[dict[str, DetailRule]] = None,
) -> CategorySpec:
    return CategorySpec(
        category=category,
        slug=slug,
        default_name=default_name,
        selectors=selectors,
        output=output,
        tristate={**COMMON_TRISTATE, **(tristate or {})},
        details={**COMMON_DETAILS, **(details or {})},
    )


_FITNESS_SELECTORS = (
    sel('["amenity"="exercise_equipment"]'),
    sel('["fitness_station"="yes"]'),
    sel('["exercise"="yes"]'),
)

CATEGORY_SPECS: dict[Category, CategorySpec] = {
    Category.toilet: _spec(
        Category.toilet, "bathrooms", "Public Bathroom",
        (sel('["amenity"="toilets"]', types=NWR),),
        output="geom",
        tristate=TOILET_TRISTATE,
        details={"gender": GENDER},
    ),
    Category.dog_park: _spec(
        Category.dog_park, "dog-parks", "Dog Park",
        (sel('["leisure"="dog_park"]', types=("way", "relation")),),
        tristate=DOG_PARK_TRISTATE,
        details={"barrier": text("barrier"), "surface": text("surface")},
    ),
    Category.shower: _spec(
        Category.shower, "showers", "Public Shower",
        (sel('["amenity"="shower"]', types=NWR),),
        output="geom",
        tristate=SHOWER_TRISTATE,
        details={"gender": GENDER},
    ),
    Category.fitness_station: _spec(
        Category.fitness_station, "fitness-stations", "Fitness Equipment",
        (sel('["leisure"="fitness_station"]', types=NWR),) + _FITNESS_SELECTORS,
        output="geom",
        tristate=FITNESS_TRISTATE,
        details=FITNESS_DETAILS,
    ),
    Category.outdoor_gym: _spec(
        Category.outdoor_gym, "outdoor-gyms", "Outdoor Gym",
        (
            sel('["leisure"="fitness_centre"]', '["location"="outdoor"]'),
            sel('["sport"="fitness"]', '["location"="outdoor"]'),
            sel('["leisure"="fitness_centre"]', '["outdoor"="yes"]'),
            sel('["sport"="fitness"]', '["outdoor"="yes"]'),
            sel('["amenity"="fitness_centre"]', '["location"="outdoor"]'),
            sel('["amenity"="outdoor_fitness"]'),
        ) + _FITNESS_SELECTORS,
        tristate=FITNESS_TRISTATE,
        details=FITNESS_DETAILS,
    ),
    Category.swimming_pool: _spec(
        Category.swimming_pool, "swimming-pools", "Swimming Pool",
        (
            sel('["leisure"="swimming_pool"]', '["access"~"^(public|yes)$"]'),
            sel('["amenity"="swimming_pool"]', '["access"~"^(public|yes)$"]'),
        ),
        tristate={
            "isCovered": yes_no("covered"),
            "isLit": yes_no("lit"),
            "hasChangingTable": yes_no("changing_table"),
            "hasRestrooms": yes_no("toilets"),
        },
        details={"surface": text("surface")},
    ),
    Category.gym: _spec(
        Category.gym, "gyms", "Gym",
        (
            sel('["leisure"="fitness_centre"]', '["location"!="outdoor"]', types=NWR),
            sel('["leisure"="fitness_centre"]', '[!"location"]', types=NWR),
        ),
        tristate=FITNESS_TRISTATE,
        details=FITNESS_DETAILS,
    ),
    Category.playground: _spec(
        Category.playground, "playgrounds", "Playground",
        (sel('["leisure"="playground"]', types=NWR),),
        output="geom",
        tristate=PLAYGROUND_TRISTATE,
        details=PLAYGROUND_DETAILS,
    ),
    Category.mosque: _spec(
        Category.mosque, "mosques", "Mosque",
        (
            sel('["amenity"="place_of_worship"]', '["religion"="muslim"]'),
            sel('["building"="mosque"]'),
        ),
        tristate=PRAYER_TRISTATE,
        details=PRAYER_DETAILS,
    ),
    Category.church: _spec(
        Category.church, "churches", "Church",
        (
            sel('["amenity"="place_of_worship"]', '["religion"="christian"]'),
            sel('["building"="church"]'),
        ),
        tristate=PRAYER_TRISTATE,
        details=PRAYER_DETAILS,
    ),
    Category.prayer_room: _spec(
        Category.prayer_room, "prayer-rooms", "Prayer Room",
        (
            sel('["amenity"="place_of_worship"]'),
            sel('["amenity"="prayer_room"]'),
        ),
        tristate=PRAYER_TRISTATE,
        details=PRAYER_DETAILS,
    ),
    Category.waxing_salon: _spec(
        Category.waxing_salon, "waxing-salons", "Waxing Salon",
        (
            sel('["shop"="beauty"]', '["beauty"~"waxing"]'),
            sel('["amenity"="waxing_salon"]'),
            sel('["shop"="beauty"]', '["service"~"waxing"]'),
        ),
        tristate=SALON_TRISTATE,
        details=SALON_DETAILS,
    ),
    Category.nail_salon: _spec(
        Category.nail_salon, "nail-salons", "Nail Salon",
        (
            sel('["shop"="beauty"]', '["beauty"~"nails"]'),
            sel('["amenity"="nail_salon"]'),
            sel('["shop"="beauty"]', '["service"~"manicure"]'),
            sel('["shop"="beauty"]', '["service"~"pedicure"]'),
        ),
        tristate=SALON_TRISTATE,
        details=SALON_DETAILS,
    ),
    Category.skate_park: _spec(
        Category.skate_park, "skate-parks", "Skate Park",
        (
            sel('["leisure"="playground"]', '["playground"~"skatepark|skateboard"]'),
            sel('["sport"="skateboard"]'),
            sel('["amenity"="skate_park"]'),
        ),
        output="geom",
        tristate=WHEELS_TRISTATE,
        details=WHEELS_DETAILS,
    ),
    Category.bmx_track: _spec(
        Category.bmx_track, "bmx-tracks", "BMX Track",
        (
            sel('["sport"="bmx"]'),
            sel('["leisure"="track"]', '["sport"="bmx"]'),
        ),
        output="geom",
        tristate=WHEELS_TRISTATE,
        details=WHEELS_DETAILS,
    ),
}

_BY_SLUG: dict[str, Category] = {spec.slug: cat for cat, spec in CATEGORY_SPECS.items()}


def get_spec(category: Category) -> CategorySpec:
    return CATEGORY_SPECS[category]


def resolve_category(name: str) -> Optional[Category]:
    """Accept either the enum value ("dog_park") or the URL slug ("dog-parks")."""
    if name in _BY_SLUG:
        return _BY_SLUG[name]
    try:
        return Category(name)
    except ValueError:
        return None
