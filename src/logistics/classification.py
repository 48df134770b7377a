"""
Drilling / production classification of logistics records.

Classification is an explicit ordered policy: each rule is a plain
function ``rule(record, context) -> Optional[ClassificationDecision]``
and the first decisive answer wins. Allocation codes come first so a
production code can never be overridden by department, project type or
location-name signals.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Tuple

from .facilities import FacilityRegistry, FacilityType
from .location_resolver import LocationResolver, normalize_location
from .records import CostAllocationLine, normalize_code

logger = logging.getLogger(__name__)


class Classification(str, Enum):
    DRILLING = "Drilling"
    PRODUCTION = "Production"
    UNCLASSIFIED = "Unclassified"


@dataclass(frozen=True)
class ClassificationDecision:
    """Outcome of the policy for one record."""
    classification: Classification
    rule: str = "none"
    via_allocation_code: bool = False

    @property
    def is_drilling(self) -> bool:
        return self.classification == Classification.DRILLING

    @property
    def is_production(self) -> bool:
        return self.classification == Classification.PRODUCTION


UNCLASSIFIED = ClassificationDecision(Classification.UNCLASSIFIED)

DRILLING_PROJECT_TYPES = frozenset({"drilling", "completions", "completion"})
PRODUCTION_PROJECT_TYPES = frozenset({"production", "maintenance"})
PRODUCTION_TOKENS = ("prod", "pdq")


@dataclass(frozen=True)
class ClassificationContext:
    """Read-only lookups shared by every rule."""
    registry: FacilityRegistry
    resolver: LocationResolver
    ledger_codes: Dict[str, Classification] = field(default_factory=dict)


Rule = Callable[[object, ClassificationContext], Optional[ClassificationDecision]]


def _text(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _cost_line_location_text(record: CostAllocationLine) -> str:
    return normalize_location(" ".join(record.location_fields))


def _has_production_token(text: str) -> bool:
    return any(token in text for token in PRODUCTION_TOKENS)


# =============================================================================
# Rules (in precedence order)
# =============================================================================

def allocation_code_rule(record, ctx: ClassificationContext) -> Optional[ClassificationDecision]:
    """Registry production/drilling code sets, then the batch ledger map."""
    code = normalize_code(getattr(record, "allocation_code", None))
    if code is None:
        return None
    if code in ctx.registry.production_codes:
        return ClassificationDecision(Classification.PRODUCTION, "allocation_code", True)
    if code in ctx.registry.drilling_codes:
        return ClassificationDecision(Classification.DRILLING, "allocation_code", True)
    learned = ctx.ledger_codes.get(code)
    if learned is not None:
        return ClassificationDecision(learned, "ledger_code", True)
    return None


def department_rule(record, ctx: ClassificationContext) -> Optional[ClassificationDecision]:
    if _text(getattr(record, "department", None)) == "drilling":
        return ClassificationDecision(Classification.DRILLING, "department")
    return None


def project_type_rule(record, ctx: ClassificationContext) -> Optional[ClassificationDecision]:
    if _text(getattr(record, "project_type", None)) in DRILLING_PROJECT_TYPES:
        return ClassificationDecision(Classification.DRILLING, "project_type")
    return None


def location_heuristic_rule(record, ctx: ClassificationContext) -> Optional[ClassificationDecision]:
    """Rig-name heuristics, cost-allocation lines only."""
    if not isinstance(record, CostAllocationLine):
        return None
    text = _cost_line_location_text(record)
    if not text or _has_production_token(text):
        return None
    if "drill" in text:
        return ClassificationDecision(Classification.DRILLING, "location_heuristic")
    for raw in record.location_fields:
        facility = ctx.resolver.resolve(raw)
        if facility is not None and facility.facility_type == FacilityType.DRILLING:
            return ClassificationDecision(Classification.DRILLING, "location_heuristic")
    return None


def production_signal_rule(record, ctx: ClassificationContext) -> Optional[ClassificationDecision]:
    if _text(getattr(record, "department", None)) == "production":
        return ClassificationDecision(Classification.PRODUCTION, "production_signal")
    if _text(getattr(record, "project_type", None)) in PRODUCTION_PROJECT_TYPES:
        return ClassificationDecision(Classification.PRODUCTION, "production_signal")
    if isinstance(record, CostAllocationLine) and _has_production_token(_cost_line_location_text(record)):
        return ClassificationDecision(Classification.PRODUCTION, "production_signal")
    return None


DEFAULT_RULES: Tuple[Rule, ...] = (
    allocation_code_rule,
    department_rule,
    project_type_rule,
    location_heuristic_rule,
    production_signal_rule,
)


# =============================================================================
# Policy
# =============================================================================

class ClassificationPolicy:
    """Ordered rule chain; the first decisive rule wins."""

    def __init__(
        self,
        registry: FacilityRegistry,
        resolver: Optional[LocationResolver] = None,
        ledger_codes: Optional[Dict[str, Classification]] = None,
        rules: Tuple[Rule, ...] = DEFAULT_RULES,
    ):
        self.context = ClassificationContext(
            registry=registry,
            resolver=resolver or LocationResolver(registry),
            ledger_codes=dict(ledger_codes or {}),
        )
        self.rules = tuple(rules)

    @classmethod
    def for_cost_lines(
        cls,
        lines: Iterable[CostAllocationLine],
        registry: FacilityRegistry,
        resolver: Optional[LocationResolver] = None,
    ) -> "ClassificationPolicy":
        resolver = resolver or LocationResolver(registry)
        ledger = build_ledger_code_map(lines, registry, resolver)
        return cls(registry, resolver, ledger)

    def explain(self, record) -> ClassificationDecision:
        for rule in self.rules:
            decision = rule(record, self.context)
            if decision is not None:
                return decision
        return UNCLASSIFIED

    def classify(self, record) -> Classification:
        return self.explain(record).classification


def build_ledger_code_map(
    lines: Iterable[CostAllocationLine],
    registry: FacilityRegistry,
    resolver: Optional[LocationResolver] = None,
) -> Dict[str, Classification]:
    """
    Learn code -> classification from the batch cost-allocation ledger.

    Codes seen as both drilling and production map to Production. Codes
    already in the registry are left to the registry.
    """
    policy = ClassificationPolicy(registry, resolver)
    seen: Dict[str, set] = {}
    for line in lines:
        code = normalize_code(line.allocation_code)
        if code is None or code in registry.all_codes:
            continue
        decision = policy.explain(line)
        if decision.classification == Classification.UNCLASSIFIED:
            continue
        seen.setdefault(code, set()).add(decision.classification)

    ledger: Dict[str, Classification] = {}
    conflicts = 0
    for code, classes in seen.items():
        if Classification.PRODUCTION in classes:
            ledger[code] = Classification.PRODUCTION
            if Classification.DRILLING in classes:
                conflicts += 1
        else:
            ledger[code] = Classification.DRILLING

    if conflicts:
        logger.warning(f"Ledger codes classified both ways (resolved to Production): {conflicts}")
    counts = Counter(ledger.values())
    logger.debug(
        f"Ledger code map: {counts.get(Classification.DRILLING, 0)} drilling, "
        f"{counts.get(Classification.PRODUCTION, 0)} production"
    )
    return ledger
