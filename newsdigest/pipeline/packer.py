"""Content budget packer: fit many text units into one Generator request."""

import logging
from typing import List, NamedTuple, Sequence

from pydantic import BaseModel, Field

from ..errors import EmptyAggregationError

logger = logging.getLogger(__name__)

OMITTED_BODY = "[omitted: over budget]"

ARTICLE_PREAMBLE = (
    "Analyze the news articles provided below. Each article includes its URL, "
    "a headline and its verbatim text, between '--- ARTICLE START ---' and "
    "'--- ARTICLE END ---'.\n\n"
)

DOCUMENT_PREAMBLE = (
    "Analyze the per-source analyses provided below. Each one names its source "
    "and is placed between '--- DOCUMENT START ---' and '--- DOCUMENT END ---'.\n\n"
)


class PackUnit(NamedTuple):
    identifier: str
    headline: str
    body: str


class PackResult(BaseModel):
    """Outcome of one packing pass."""

    payload: str
    included_count: int = Field(..., description="Units included with their full body")
    truncated: bool = Field(..., description="Any unit was degraded, dropped or cut")
    degraded: List[str] = Field(default_factory=list, description="Units kept headline-only")
    dropped: List[str] = Field(default_factory=list, description="Units left out entirely")
    forced: bool = Field(False, description="First unit force-included as a truncated prefix")


def render_entry(unit: PackUnit, body: str, label: str = "ARTICLE") -> str:
    return (
        f"--- {label} START ---\n"
        f"ID: {unit.identifier}\n"
        f"Headline: {unit.headline}\n\n"
        f"Content:\n{body}\n"
        f"--- {label} END ---\n\n"
    )


def pack(
    units: Sequence[PackUnit],
    budget: int,
    preamble: str = ARTICLE_PREAMBLE,
    label: str = "ARTICLE",
) -> PackResult:
    """
    Greedily pack ``units`` in order under ``budget`` characters.

    A unit that does not fit in full is kept headline-only when that fits,
    otherwise dropped. If no unit fits in full, the payload is the preamble
    plus the first unit with its body cut to whatever room is left.
    The payload never exceeds ``budget``.

    Raises:
        EmptyAggregationError: ``units`` is empty
        ValueError: ``budget`` is not positive
    """
    if budget < 1:
        raise ValueError(f"Budget must be positive, got {budget}")
    if not units:
        raise EmptyAggregationError("Nothing to pack: no units were provided")

    parts = [preamble] if len(preamble) <= budget else []
    length = sum(len(p) for p in parts)
    included = 0
    degraded: List[str] = []
    dropped: List[str] = []

    for unit in units:
        entry = render_entry(unit, unit.body, label)
        if length + len(entry) <= budget:
            parts.append(entry)
            length += len(entry)
            included += 1
            continue

        headline_only = render_entry(unit, OMITTED_BODY, label)
        if length + len(headline_only) <= budget:
            logger.warning("Over budget: %s kept headline-only", unit.identifier[:80])
            parts.append(headline_only)
            length += len(headline_only)
            degraded.append(unit.identifier)
        else:
            logger.warning("Over budget: %s dropped", unit.identifier[:80])
            dropped.append(unit.identifier)

    if included:
        logger.info("Packed %d/%d units (%d chars)", included, len(units), length)
        return PackResult(
            payload="".join(parts),
            included_count=included,
            truncated=bool(degraded or dropped),
            degraded=degraded,
            dropped=dropped,
        )

    first = units[0]
    room = budget - len(preamble) - len(render_entry(first, "", label))
    if room > 0:
        payload = preamble + render_entry(first, first.body[:room], label)
    else:
        payload = (preamble + render_entry(first, first.body, label))[:budget]

    logger.warning(
        "No unit fit the %d char budget; forcing a %d char prefix of %s",
        budget, len(payload), first.identifier[:80],
    )
    return PackResult(
        payload=payload,
        included_count=0,
        truncated=True,
        dropped=[u.identifier for u in units[1:]],
        forced=True,
    )
