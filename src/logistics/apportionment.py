"""
Percentage-based apportionment of record hours and costs.

Records may carry a free-text allocation description ending in a
percentage ("Cost Dedicated to 10140 45%") or an explicit fallback
percentage field. ``apportion`` turns a record's raw hours or cost into
the share attributable to the requested classification and is pure:
the result always lies in [0, base].
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import List, Optional

from .classification import Classification, ClassificationDecision
from .records import finite_or_none

logger = logging.getLogger(__name__)

_TRAILING_PERCENT = re.compile(r"(\d+(?:\.\d+)?)\s*%\s*$")


@dataclass(frozen=True)
class AllocationShare:
    """One allocation code and its share of a multi-code allocation string."""
    code: str
    percentage: float


def _valid_percentage(value) -> Optional[float]:
    pct = finite_or_none(value)
    if pct is None or pct < 0 or pct > 100:
        return None
    return pct


def parse_percentage_annotation(text: Optional[str]) -> Optional[float]:
    """Read a trailing "NN%" token; None when absent or outside [0, 100]."""
    if not text:
        return None
    match = _TRAILING_PERCENT.search(str(text).strip())
    if match is None:
        return None
    pct = _valid_percentage(match.group(1))
    if pct is None:
        logger.warning(f"Ignoring out-of-range percentage annotation: {text!r}")
    return pct


def parse_allocation_string(text: Optional[str]) -> List[AllocationShare]:
    """
    Parse a multi-code allocation string such as "9358 45, 10137 12, 10101".

    Codes without a percentage share the remainder equally. Totals that
    do not reach 100 are normalised to 100; percentages are rounded to
    two decimals.
    """
    if not text or not str(text).strip():
        return []

    normalized = re.sub(r"[;|]", ",", str(text))
    parts = [p.strip() for p in normalized.split(",") if p.strip()]
    if not parts:
        return []

    if len(parts) == 1 and len(parts[0].split()) == 1:
        return [AllocationShare(parts[0].rstrip("%"), 100.0)]

    with_pct: List[List] = []
    without_pct: List[str] = []
    total = 0.0
    for part in parts:
        tokens = part.split()
        code = tokens[0]
        if len(tokens) == 1:
            without_pct.append(code)
            continue
        pct = _valid_percentage(tokens[1].rstrip("%"))
        if pct is None:
            logger.warning(f"Invalid percentage {tokens[1]!r} for code {code}, treating as unspecified")
            without_pct.append(code)
            continue
        with_pct.append([code, pct])
        total += pct

    remainder = max(0.0, 100.0 - total)
    if without_pct:
        if remainder > 0:
            each = remainder / len(without_pct)
            with_pct.extend([code, each] for code in without_pct)
            total = 100.0
        else:
            logger.warning(f"No remainder left for codes {without_pct} in {text!r}")
            with_pct.extend([code, 0.0] for code in without_pct)

    if abs(total - 100.0) > 0.01 and total > 0:
        factor = 100.0 / total
        for share in with_pct:
            share[1] *= factor

    return [
        AllocationShare(code, round(pct, 2))
        for code, pct in with_pct
        if 0.0 <= pct <= 100.0 + 1e-9
    ]


def _annotation_text(record) -> Optional[str]:
    text = getattr(record, "allocation_description", None)
    if text is None:
        text = getattr(record, "description", None)
    return text


def apportion(
    record,
    base_amount,
    decision: ClassificationDecision,
    target: Optional[Classification] = Classification.DRILLING,
) -> float:
    """
    Share of ``base_amount`` attributable to ``target``.

    With ``target=None`` (no department scope) only the percentage
    annotations apply. Records classified as anything other than the
    target contribute 0.
    """
    base = finite_or_none(base_amount)
    if base is None or base <= 0:
        return 0.0

    annotation = parse_percentage_annotation(_annotation_text(record))
    fallback = _valid_percentage(getattr(record, "allocation_percentage", None))

    if target is None:
        pct = annotation if annotation is not None else fallback
    elif decision.classification != target:
        return 0.0
    elif decision.via_allocation_code:
        pct = annotation
    else:
        pct = fallback if fallback is not None else annotation

    if pct is None:
        return base
    share = base * pct / 100.0
    if math.isnan(share):
        return 0.0
    return min(max(share, 0.0), base)
