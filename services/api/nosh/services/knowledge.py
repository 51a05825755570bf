"""Per-cuisine knowledge: context for prompts and learning from sacred analyses.

The KnowledgeBase row for a cuisine is always a full recompute over every
SacredAnalysis of that cuisine, never an incremental update, so running the
learner again with no new analyses changes nothing.
"""

import logging
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ..ai.prompts import NO_KNOWLEDGE_MARKER
from ..core.text import normalize_cuisine
from ..infra.locks import redis_lock, learn_lock_key
from ..models import KnowledgeBase, SacredAnalysis
from ..settings import settings

logger = logging.getLogger("nosh.knowledge")

SACRED_THRESHOLD_PCT = 30
REMOVED_THRESHOLD_PCT = 40
SIDE_TASK_THRESHOLD_PCT = 30

TOP_UNIQUE = 5
TOP_REMOVED = 10
TOP_SUBSTITUTIONS = 10
CONTEXT_SACRED_ITEMS = 6


# --- Context builder ---

def _format_knowledge(kb: KnowledgeBase) -> str:
    sacred = ", ".join(
        f"{s.get('ingredient')} ({s.get('frequency')}%)"
        for s in (kb.common_sacred_ingredients or [])[:CONTEXT_SACRED_ITEMS]
    )
    techniques = ", ".join(kb.common_sacred_techniques or [])
    removed = ", ".join(kb.commonly_removed or [])
    sides = ", ".join(kb.common_side_tasks or [])
    return (
        f"{kb.cuisine} ({kb.recipe_count} recipes learned):\n"
        f"  Sacred ingredients: {sacred or 'none yet'}\n"
        f"  Techniques: {techniques or 'none yet'}\n"
        f"  Usually flexible/removable: {removed or 'none yet'}\n"
        f"  Common sides: {sides or 'none'}"
    )


def build_knowledge_context(db: Session, limit: Optional[int] = None) -> str:
    """Render the most-learned cuisines as a prompt block. Read-only."""
    limit = limit or settings.knowledge_context_limit
    rows = (
        db.query(KnowledgeBase)
        .order_by(KnowledgeBase.recipe_count.desc(), KnowledgeBase.cuisine)
        .limit(limit)
        .all()
    )
    if not rows:
        return NO_KNOWLEDGE_MARKER
    return "\n\n".join(_format_knowledge(kb) for kb in rows)


# --- Aggregation ---

@dataclass
class KnowledgeAggregate:
    common_sacred_ingredients: list[dict] = field(default_factory=list)
    common_sacred_techniques: list[str] = field(default_factory=list)
    common_flavour_profiles: list[str] = field(default_factory=list)
    typical_hero_ingredients: list[str] = field(default_factory=list)
    commonly_removed: list[str] = field(default_factory=list)
    common_substitutions: list[dict] = field(default_factory=list)
    common_side_tasks: list[str] = field(default_factory=list)
    recipe_count: int = 0
    avg_quality_score: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def _meets(count: int, total: int, pct: int) -> bool:
    return count * 100 >= pct * total


def _round_div(numerator: int, denominator: int) -> int:
    """Round-half-up integer division for non-negative values."""
    return (2 * numerator + denominator) // (2 * denominator)


def _entry_name(entry) -> str:
    if isinstance(entry, str):
        return entry.strip()
    if isinstance(entry, dict):
        return str(entry.get("ingredient") or "").strip()
    return ""


def _first_unique(values, limit: int) -> list[str]:
    seen = set()
    out = []
    for v in values:
        s = (v or "").strip()
        if not s or s.lower() in seen:
            continue
        seen.add(s.lower())
        out.append(s)
        if len(out) >= limit:
            break
    return out


def _ranked(counts: dict[str, int]) -> list[tuple[str, int]]:
    return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))


def recompute_knowledge(analyses: Sequence[SacredAnalysis]) -> KnowledgeAggregate:
    """
    Aggregate sacred analyses of one cuisine.

    ``analyses`` must already be in a deterministic order (newest first);
    first-seen values and reasons follow that order.
    """
    total = len(analyses)
    if total == 0:
        return KnowledgeAggregate()

    sacred_counts: dict[str, int] = {}
    sacred_reasons: dict[str, str] = {}
    removed_counts: dict[str, int] = {}
    side_counts: dict[str, int] = {}
    substitutions: list[dict] = []
    seen_subs = set()
    quality_total = 0

    for a in analyses:
        quality_total += a.quality_score or 0

        seen_here = set()
        for entry in a.sacred_ingredients or []:
            key = _entry_name(entry).lower()
            if not key or key in seen_here:
                continue
            seen_here.add(key)
            sacred_counts[key] = sacred_counts.get(key, 0) + 1
            reason = entry.get("reason") if isinstance(entry, dict) else None
            if reason and key not in sacred_reasons:
                sacred_reasons[key] = reason

        removed_here = set()
        for entry in a.flexible_ingredients or []:
            if not isinstance(entry, dict):
                continue
            name = _entry_name(entry)
            key = name.lower()
            if entry.get("can_remove") and key and key not in removed_here:
                removed_here.add(key)
                removed_counts[key] = removed_counts.get(key, 0) + 1

            substitute = (entry.get("substitute") or "").strip()
            pair = (key, substitute.lower())
            if name and substitute and pair not in seen_subs:
                seen_subs.add(pair)
                substitutions.append({"original": name, "substitute": substitute})

        sides_here = set()
        for task in a.side_tasks_needed or []:
            key = str(task).strip().lower()
            if not key or key in sides_here:
                continue
            sides_here.add(key)
            side_counts[key] = side_counts.get(key, 0) + 1

    common_sacred = [
        {
            "ingredient": name,
            "frequency": _round_div(count * 100, total),
            "reason": sacred_reasons.get(name, ""),
        }
        for name, count in _ranked(sacred_counts)
        if _meets(count, total, SACRED_THRESHOLD_PCT)
    ]
    removed = [
        name for name, count in _ranked(removed_counts)
        if _meets(count, total, REMOVED_THRESHOLD_PCT)
    ]
    sides = [
        name for name, count in _ranked(side_counts)
        if _meets(count, total, SIDE_TASK_THRESHOLD_PCT)
    ]

    return KnowledgeAggregate(
        common_sacred_ingredients=common_sacred,
        common_sacred_techniques=_first_unique((a.sacred_technique for a in analyses), TOP_UNIQUE),
        common_flavour_profiles=_first_unique((a.sacred_flavour_profile for a in analyses), TOP_UNIQUE),
        typical_hero_ingredients=_first_unique((a.hero_ingredient for a in analyses), TOP_UNIQUE),
        commonly_removed=removed[:TOP_REMOVED],
        common_substitutions=substitutions[:TOP_SUBSTITUTIONS],
        common_side_tasks=sides,
        recipe_count=total,
        avg_quality_score=_round_div(quality_total, total),
    )


# --- Learner ---

class KnowledgeLearner:
    def __init__(
        self,
        min_analyses: Optional[int] = None,
        lock_ttl_sec: Optional[int] = None,
        lock_wait_sec: Optional[float] = None,
    ):
        self.min_analyses = min_analyses if min_analyses is not None else settings.learn_min_analyses
        self.lock_ttl_sec = lock_ttl_sec if lock_ttl_sec is not None else settings.learn_lock_ttl_sec
        self.lock_wait_sec = lock_wait_sec if lock_wait_sec is not None else settings.learn_lock_wait_sec

    def learn(self, db: Session, cuisine: str) -> Optional[KnowledgeBase]:
        """
        Recompute and store the KnowledgeBase row for ``cuisine``.

        Never raises: lock timeouts, database and Redis errors are logged,
        the session is rolled back and None is returned.
        """
        cuisine = normalize_cuisine(cuisine)
        try:
            with redis_lock(learn_lock_key(cuisine), self.lock_ttl_sec, wait_sec=self.lock_wait_sec):
                return self._learn_locked(db, cuisine)
        except Exception as e:
            db.rollback()
            logger.error(f"Knowledge learning failed for cuisine={cuisine}: {e}")
            return None

    def _learn_locked(self, db: Session, cuisine: str) -> Optional[KnowledgeBase]:
        analyses = (
            db.query(SacredAnalysis)
            .filter(SacredAnalysis.cuisine == cuisine)
            .order_by(SacredAnalysis.created_at.desc(), SacredAnalysis.recipe_id)
            .all()
        )
        if len(analyses) < self.min_analyses:
            logger.info(f"Skipping learning for {cuisine}: {len(analyses)} analyses")
            return db.get(KnowledgeBase, cuisine)

        values = recompute_knowledge(analyses).as_dict()

        row = db.get(KnowledgeBase, cuisine)
        if row is not None and all(getattr(row, k) == v for k, v in values.items()):
            logger.info(f"Knowledge for {cuisine} unchanged ({len(analyses)} analyses)")
            return row

        if row is None:
            row = KnowledgeBase(cuisine=cuisine)
            db.add(row)
        for k, v in values.items():
            setattr(row, k, v)
        row.last_learned_at = datetime.now(timezone.utc)

        db.commit()
        db.refresh(row)
        logger.info(f"Learned {cuisine}: {row.recipe_count} analyses, {len(row.common_sacred_ingredients)} sacred")
        return row


knowledge_learner = KnowledgeLearner()
