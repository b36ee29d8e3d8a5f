"""Evaluation aggregation.

Read side of the scoring model: the latest player evaluation for a
(team, player) pair joined to its derived score rows, plus summaries of the
raw repeated-attempt fields captured in the evaluation cycle.

Attempt semantics:
    - A missing or null attempt is excluded; a present zero counts.
    - Non-numeric and non-finite values (NaN, infinities) are treated as
      missing.
    - A group with no valid attempts carries only its (empty) attempt list;
      average/max/best/total are omitted, never reported as zero.

The four-trait DNA vector and cluster are produced elsewhere and returned
as stored.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from models import (
    Evaluation,
    OverallScores,
    Player,
    PlayerCluster,
    PlayerDna,
    PlayerEvaluation,
    TestScores,
)
from services.authorization import Action, Principal, Scope, ensure_allowed, scope_for
from services.tenancy import get_team, team_target, player_target

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptGroup:
    """Repeated-attempt test: ``{prefix}_1 .. {prefix}_{attempts}``."""
    name: str
    prefix: str
    attempts: int
    stats: Tuple[str, ...]


# "best" is the minimum (timed tests: lower is better)
ATTEMPT_GROUPS: Tuple[AttemptGroup, ...] = (
    AttemptGroup("power_strong", "power_strong", 4, ("average", "max")),
    AttemptGroup("power_weak", "power_weak", 4, ("average", "max")),
    AttemptGroup("serve_strong", "serve_strong", 4, ("average", "max")),
    AttemptGroup("serve_weak", "serve_weak", 4, ("average", "max")),
    AttemptGroup("onevone", "onevone_round", 6, ("average", "total")),
    AttemptGroup("juggling", "juggling", 4, ("average", "max", "total")),
    AttemptGroup("skill_moves", "skillmove", 6, ("average", "total")),
    AttemptGroup("agility", "agility", 3, ("average", "best")),
    AttemptGroup("reaction_cue", "reaction_cue", 3, ("average", "best")),
    AttemptGroup("reaction_total", "reaction_total", 3, ("average", "best")),
    AttemptGroup("hop_left", "hop_left", 3, ("average", "max")),
    AttemptGroup("hop_right", "hop_right", 3, ("average", "max")),
)

SINGLE_FIELDS: Tuple[str, ...] = (
    "figure8_strong",
    "figure8_weak",
    "figure8_both",
    "passing_strong",
    "passing_weak",
    "jumps_10s",
    "jumps_20s",
    "jumps_30s",
    "ankle_left",
    "ankle_right",
    "plank_time",
    "plank_form",
)


def finite_number(value: Any) -> Optional[float]:
    """A finite number, or None. NaN and infinities count as missing."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
    elif not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _clean(value: float) -> Any:
    """Render whole numbers as ints (5.0 -> 5)."""
    return int(value) if float(value).is_integer() else round(value, 4)


def summarize_attempts(values: List[Any], stats: Tuple[str, ...]) -> Dict[str, Any]:
    valid = [n for n in (finite_number(v) for v in values) if n is not None]
    summary: Dict[str, Any] = {"attempts": [_clean(n) for n in valid]}
    if not valid:
        return summary
    total = sum(valid)
    if "average" in stats:
        summary["average"] = _clean(total / len(valid))
    if "max" in stats:
        summary["max"] = _clean(max(valid))
    if "best" in stats:
        summary["best"] = _clean(min(valid))
    if "total" in stats:
        summary["total"] = _clean(total)
    return summary


def summarize_raw_scores(raw: Mapping[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Summaries for every attempt group and single-value test in a raw record."""
    result: Dict[str, Dict[str, Any]] = {}
    for group in ATTEMPT_GROUPS:
        values = [raw.get(f"{group.prefix}_{i}") for i in range(1, group.attempts + 1)]
        result[group.name] = summarize_attempts(values, group.stats)
    for field in SINGLE_FIELDS:
        number = finite_number(raw.get(field))
        if number is not None:
            result[field] = {"value": _clean(number)}
    return result


def _raw_record(db: Session, player_evaluation: PlayerEvaluation) -> Optional[Mapping[str, Any]]:
    if player_evaluation.evaluation_id is None:
        return None
    evaluation = db.query(Evaluation).filter(Evaluation.id == player_evaluation.evaluation_id).first()
    if evaluation is None or not isinstance(evaluation.scores, dict):
        return None
    record = evaluation.scores.get(str(player_evaluation.player_id))
    return record if isinstance(record, dict) else None


def _authorize_player_read(db: Session, principal: Principal, team_id: UUID, player_id: UUID) -> Player:
    team = get_team(db, team_id)
    # Team-level check first: a coach must own the team, owner/admin share its tenant.
    # Supervisors are checked against the player row instead.
    if scope_for(principal, Action.view_evaluations) is not Scope.supervised:
        ensure_allowed(principal, Action.view_evaluations, team_target(team), error_code="ACCESS_DENIED")

    player = (
        db.query(Player)
        .filter(Player.id == player_id, Player.team_id == team.id)
        .first()
    )
    if player is None:
        raise NotFoundError("Player", error_code="PLAYER_NOT_FOUND")

    ensure_allowed(principal, Action.view_evaluations, player_target(player), error_code="ACCESS_DENIED")
    return player


def latest_evaluation(
    db: Session,
    principal: Principal,
    team_id: UUID,
    player_id: UUID,
) -> Dict[str, Any]:
    """
    The most recent evaluation of a player in a team with its derived rows.

    Returns ``{"player_evaluation": None, ...}`` when the player has not
    been evaluated yet; missing derived rows come back as None.
    """
    _authorize_player_read(db, principal, team_id, player_id)

    pe = (
        db.query(PlayerEvaluation)
        .filter(PlayerEvaluation.team_id == team_id, PlayerEvaluation.player_id == player_id)
        .order_by(PlayerEvaluation.created_at.desc().nulls_last(), PlayerEvaluation.id)
        .first()
    )
    if pe is None:
        return {"player_evaluation": None}

    test_scores = db.query(TestScores).filter(TestScores.player_evaluation_id == pe.id).first()
    overall = db.query(OverallScores).filter(OverallScores.player_evaluation_id == pe.id).first()
    dna = db.query(PlayerDna).filter(PlayerDna.player_evaluation_id == pe.id).first()
    cluster = db.query(PlayerCluster).filter(PlayerCluster.player_evaluation_id == pe.id).first()

    raw = _raw_record(db, pe)

    return {
        "player_evaluation": pe,
        "test_scores": test_scores.scores if test_scores else None,
        "overall_scores": overall.scores if overall else None,
        "player_dna": dna.dna if dna else None,
        "player_cluster": cluster.cluster if cluster else None,
        "attempt_summaries": summarize_raw_scores(raw) if raw is not None else None,
    }


def list_team_evaluations(db: Session, principal: Principal, team_id: UUID) -> List[Dict[str, Any]]:
    """Evaluation cycles of a team, newest first. Staff only."""
    team = get_team(db, team_id)
    ensure_allowed(principal, Action.view_teams, team_target(team), error_code="ACCESS_DENIED")

    rows = (
        db.query(Evaluation)
        .filter(Evaluation.team_id == team.id)
        .order_by(Evaluation.created_at.desc())
        .all()
    )
    counts = dict(
        db.query(PlayerEvaluation.evaluation_id, func.count(PlayerEvaluation.id))
        .filter(PlayerEvaluation.team_id == team.id)
        .group_by(PlayerEvaluation.evaluation_id)
        .all()
    )
    return [
        {
            "id": e.id,
            "team_id": e.team_id,
            "name": e.name,
            "player_count": counts.get(e.id, 0),
            "created_at": e.created_at,
        }
        for e in rows
    ]


def get_team_evaluation(db: Session, principal: Principal, team_id: UUID, evaluation_id: UUID) -> Evaluation:
    """One evaluation cycle of a team with its raw score records. Staff only."""
    team = get_team(db, team_id)
    ensure_allowed(principal, Action.view_teams, team_target(team), error_code="ACCESS_DENIED")
    evaluation = (
        db.query(Evaluation)
        .filter(Evaluation.id == evaluation_id, Evaluation.team_id == team.id)
        .first()
    )
    if evaluation is None:
        raise NotFoundError("Evaluation", error_code="EVALUATION_NOT_FOUND")
    return evaluation
