"""Unit tests for free-text location resolution."""

import pytest

from src.logistics.location_resolver import compact_location, normalize_location


class TestNormalize:
    def test_separators_and_case(self):
        assert normalize_location("  Thunder-Horse_PDQ (Drilling) ") == "thunder horse pdq drilling"

    def test_quotes_removed(self):
        assert normalize_location("'Mad Dog'") == "mad dog"

    def test_empty(self):
        assert normalize_location(None) == ""
        assert normalize_location("   ") == ""

    def test_compact(self):
        assert compact_location("STENA ICE-MAX") == "stenaicemax"


class TestResolve:
    @pytest.mark.parametrize("raw,facility_id", [
        ("Thunder Horse Drilling", 11),
        ("THR Drilling", 11),
        ("Mad Dog", 102),
        ("mad dog prod", 5),
        ("Deepwater Invictus", 15),
        ("Argos", 1),
    ])
    def test_exact(self, resolver, raw, facility_id):
        facility, rule = resolver.explain(raw)
        assert facility.facility_id == facility_id
        assert rule == "exact"

    def test_alias_substring(self, resolver):
        facility, rule = resolver.explain("Invictus rig site")
        assert facility.facility_id == 15
        assert rule == "alias"

    def test_longest_alias_wins(self, resolver):
        # "stena ice max" contains alias "ice max"
        facility, rule = resolver.explain("STENA ICE-MAX")
        assert facility.facility_id == 17
        assert rule == "alias"

    def test_qualifier_refines_parent(self, resolver):
        facility, rule = resolver.explain("Thunder Horse PDQ (Drilling)")
        assert facility.facility_id == 11
        assert rule == "qualifier"

    def test_production_qualifier(self, resolver):
        facility, _ = resolver.explain("Mad Dog Prod Platform")
        assert facility.facility_id == 5

    def test_bare_parent_stays_parent(self, resolver):
        assert resolver.resolve("Thunder Horse").facility_id == 101

    def test_compact_token(self, resolver):
        facility, rule = resolver.explain("StenaIceMAX rig")
        assert facility.facility_id == 17
        assert rule == "token"

    @pytest.mark.parametrize("raw", [
        "Random Platform", "Drilling", "Production", "Prod", "Ocean", "Island", "Deepwater",
    ])
    def test_unresolved(self, resolver, raw):
        facility, rule = resolver.explain(raw)
        assert facility is None
        assert rule == "unresolved"

    def test_partial_name_skips_qualified_children(self, resolver):
        facility, rule = resolver.explain("Thunder")
        assert facility.facility_id == 101
        assert rule == "alias"

    def test_abbreviated_qualified_alias(self, resolver):
        assert resolver.resolve("THR Drilling rig").facility_id == 11

    def test_empty(self, resolver):
        assert resolver.explain(None) == (None, "empty")
        assert resolver.explain("  ") == (None, "empty")

    def test_resolution_is_cached(self, resolver):
        resolver.resolve("Auriga")
        before = resolver.cache_info().hits
        resolver.resolve("Auriga")
        assert resolver.cache_info().hits == before + 1


class TestMatching:
    def test_parent_matches_children(self, resolver, registry):
        pdq = registry.get(101)
        assert resolver.matches("Thunder Horse Drilling", pdq)
        assert resolver.matches("Thunder Horse Prod", pdq)
        assert resolver.matches("Thunder Horse PDQ", pdq)

    def test_child_does_not_match_sibling(self, resolver, registry):
        assert not resolver.matches("Thunder Horse Prod", registry.get(11))

    def test_unresolved_never_matches(self, resolver, registry):
        assert not resolver.matches("Random Platform", registry.get(101))

    def test_matches_any_skips_blanks(self, resolver, registry):
        assert resolver.matches_any([None, "", "Mad Dog Drilling"], registry.get(102))
        assert not resolver.matches_any([None, ""], registry.get(102))

    def test_resolve_first(self, resolver):
        assert resolver.resolve_first(["Fourchon", "Auriga"]).facility_id == 18
        assert resolver.resolve_first(["Fourchon"]) is None
