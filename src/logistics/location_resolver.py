"""
Free-text location to canonical facility resolution.

Resolution order:
1. exact match on canonical name, display name or alias
2. alias substring match in either direction (longest alias wins); the
   reverse direction needs a non-generic word, and a qualified facility
   such as "Thunder Horse (Drilling)" needs its qualifier word
3. special cases: parenthetical qualifier rule, compact token containment
4. unresolved (None)

Unresolved is a normal outcome; callers drop such records from
location-scoped views and the integrity validator reports them.
"""

import logging
import re
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Tuple

from .facilities import Facility, FacilityRegistry

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\-_/(),.:;]+")
_QUOTES = re.compile(r"[\"'`]")
_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9]")

QUALIFIER_TOKENS = {
    "drilling": frozenset({"drill", "drilling", "drlg"}),
    "production": frozenset({"prod", "production"}),
}

# Words shared by many facility names; on their own they identify nothing
GENERIC_TOKENS = frozenset().union(*QUALIFIER_TOKENS.values()) | frozenset({
    "ocean", "island", "deepwater", "stena", "platform", "rig",
})

# Reverse substring (alias contains raw) needs at least this many characters
MIN_REVERSE_MATCH_LENGTH = 4
MIN_COMPACT_MATCH_LENGTH = 4


def normalize_location(text: Optional[str]) -> str:
    """Lowercase, strip quotes, treat separators as spaces, collapse whitespace."""
    if not text:
        return ""
    value = _QUOTES.sub("", str(text).lower())
    value = _SEPARATORS.sub(" ", value)
    return _WHITESPACE.sub(" ", value).strip()


def compact_location(text: Optional[str]) -> str:
    """Alphanumerics only ("STENA ICE-MAX" -> "stenaicemax")."""
    return _NON_ALNUM.sub("", normalize_location(text))


def _contains_phrase(haystack: str, needle: str) -> bool:
    if not needle or not haystack:
        return False
    return f" {needle} " in f" {haystack} "


class LocationResolver:
    """Resolves raw location strings against a FacilityRegistry."""

    def __init__(self, registry: FacilityRegistry, cache_size: int = 4096):
        self.registry = registry
        self._exact: Dict[str, Facility] = {}
        self._aliases: List[Tuple[str, Facility]] = []
        self._compact: List[Tuple[str, Facility]] = []

        for facility in registry.facilities:
            names = [facility.location_name, facility.display_name, *facility.aliases]
            for name in names:
                key = normalize_location(name)
                if key:
                    self._exact.setdefault(key, facility)
                    if (key, facility) not in self._aliases:
                        self._aliases.append((key, facility))
                compact = compact_location(name)
                if len(compact) >= MIN_COMPACT_MATCH_LENGTH:
                    self._compact.append((compact, facility))

        self._qualified = [f for f in registry.facilities if self._qualifier_key(f)]
        self._explain_cached = lru_cache(maxsize=cache_size)(self._explain)

    @staticmethod
    def _qualifier_key(facility: Facility) -> Optional[str]:
        qualifier = normalize_location(facility.qualifier)
        return qualifier if qualifier in QUALIFIER_TOKENS else None

    def _qualifier_holds(self, facility: Facility, raw: str) -> bool:
        key = self._qualifier_key(facility)
        if key is None:
            return False
        tokens = set(raw.split())
        if not tokens & QUALIFIER_TOKENS[key]:
            return False
        return _contains_phrase(raw, normalize_location(facility.base_name))

    def _refine_qualified(self, match: Facility, raw: str) -> Facility:
        """Swap a parent/base-name match for its qualified child when the qualifier holds."""
        base = normalize_location(match.base_name)
        for candidate in self._qualified:
            if candidate.facility_id == match.facility_id:
                continue
            related = (
                candidate.parent_id == match.facility_id
                or normalize_location(candidate.base_name) == base
            )
            if related and self._qualifier_holds(candidate, raw):
                return candidate
        return match

    def _explain(self, raw_location: str) -> Tuple[Optional[Facility], str]:
        raw = normalize_location(raw_location)
        if not raw:
            return None, "empty"

        exact = self._exact.get(raw)
        if exact is not None:
            return exact, "exact"

        tokens = set(raw.split())
        distinctive = bool(tokens - GENERIC_TOKENS)
        best: Optional[Tuple[str, Facility]] = None
        for alias, facility in self._aliases:
            forward = _contains_phrase(raw, alias)
            reverse = (
                distinctive
                and len(raw) >= MIN_REVERSE_MATCH_LENGTH
                and _contains_phrase(alias, raw)
            )
            if not (forward or reverse):
                continue
            # A qualified facility needs its qualifier word in the raw text
            key = self._qualifier_key(facility)
            if key is not None and not tokens & QUALIFIER_TOKENS[key]:
                continue
            if best is None or len(alias) > len(best[0]):
                best = (alias, facility)
        if best is not None:
            refined = self._refine_qualified(best[1], raw)
            return refined, "alias" if refined is best[1] else "qualifier"

        for facility in self._qualified:
            if self._qualifier_holds(facility, raw):
                return facility, "qualifier"

        compact = _NON_ALNUM.sub("", raw)
        best = None
        if len(compact) >= MIN_COMPACT_MATCH_LENGTH:
            for name, facility in self._compact:
                if name in compact and (best is None or len(name) > len(best[0])):
                    best = (name, facility)
        if best is not None:
            return best[1], "token"

        return None, "unresolved"

    def explain(self, raw_location: Optional[str]) -> Tuple[Optional[Facility], str]:
        """Resolve and report which rule matched."""
        if raw_location is None:
            return None, "empty"
        return self._explain_cached(str(raw_location))

    def resolve(self, raw_location: Optional[str]) -> Optional[Facility]:
        return self.explain(raw_location)[0]

    def resolve_first(self, candidates: Iterable[Optional[str]]) -> Optional[Facility]:
        """First resolvable location among several record fields."""
        for raw in candidates:
            facility = self.resolve(raw)
            if facility is not None:
                return facility
        return None

    def matches(self, raw_location: Optional[str], selected: Facility) -> bool:
        """True when raw resolves to selected or to one of its children."""
        facility = self.resolve(raw_location)
        if facility is None:
            return False
        return (
            facility.facility_id == selected.facility_id
            or facility.parent_id == selected.facility_id
        )

    def matches_any(self, candidates: Iterable[Optional[str]], selected: Facility) -> bool:
        return any(self.matches(raw, selected) for raw in candidates if raw)

    def cache_info(self):
        return self._explain_cached.cache_info()


@lru_cache()
def get_location_resolver(registry: FacilityRegistry) -> LocationResolver:
    return LocationResolver(registry)
