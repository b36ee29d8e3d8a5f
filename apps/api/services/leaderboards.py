"""Team leaderboards.

Rankings over a team's latest evaluation cycle, and movement since the
cycle before it. Values are read from the derived rows of each player
evaluation in the cycle: the cluster vector for the four trait bars and
the overall scores for the individual tests.

Ranking is competition style: equal values share a rank and the next
distinct value takes its position (1, 2, 2, 4). Missing and non-finite
values leave the player out of that ranking.

Movement per test is the rank change scaled by the ranking size when the
test ranked more than one player, otherwise the relative value change;
both are clamped to [-1, 1] with positive meaning improved. A player's
score averages the changes that moved a rank or at least 5%, falling back
to all changes when none did.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from models import Evaluation, OverallScores, Player, PlayerCluster, PlayerEvaluation
from services.authorization import Action, Principal, ensure_allowed
from services.evaluations import finite_number
from services.tenancy import get_team, team_target

logger = logging.getLogger(__name__)

MEANINGFUL_CHANGE = 0.05
TOP_MOVERS = 5
TOP_CHANGES = 3


@dataclass(frozen=True)
class Metric:
    """A ranked test read from one key of the overall scores."""
    id: str
    name: str
    higher_is_better: bool
    key: str = ""
    unit: str = ""

    def value(self, scores: Mapping[str, Any]) -> Optional[float]:
        return finite_number(scores.get(self.key))

    def label(self, value: float) -> str:
        return f"{format_value(value)}{self.unit}"


@dataclass(frozen=True)
class BestSideMetric(Metric):
    """The better of a left/right pair; one side alone is enough."""
    keys: Tuple[str, ...] = ()

    def value(self, scores: Mapping[str, Any]) -> Optional[float]:
        sides = [n for n in (finite_number(scores.get(k)) for k in self.keys) if n is not None]
        return max(sides) if sides else None


CLUSTER_DIMENSIONS: Tuple[Tuple[str, str], ...] = (
    ("ps", "Power / Strength"),
    ("tc", "Technique / Control"),
    ("ms", "Mobility / Stability"),
    ("dc", "Decision / Cognition"),
)

TESTS: Tuple[Metric, ...] = (
    Metric("onevone", "1v1", True, "one_v_one_avg_score"),
    Metric("agility", "Agility (5-10-5)", False, "agility_5_10_5_best_time", "s"),
    Metric("ankle", "Ankle Mobility", True, "ankle_dorsiflex_avg_cm", "cm"),
    Metric("jumps", "Double Leg Jumps", True, "double_leg_jumps_total_reps"),
    Metric("core", "Core Plank", True, "core_plank_hold_sec_if_good_form", "s"),
    BestSideMetric("hop", "Single Leg Hop", True, keys=("single_leg_hop_left", "single_leg_hop_right")),
    Metric("juggling", "Juggling", True, "juggle_best"),
    Metric("skillmoves", "Skill Moves", True, "skill_moves_avg_rating"),
    Metric("figure8", "Figure 8", True, "figure8_loops_both"),
    Metric("passing", "Passing Gates", True, "passing_gates_total_hits"),
    Metric("reaction", "Reaction Sprint (5m)", False, "reaction_5m_total_time_best", "s"),
    Metric("shotpower", "Shot Power", True, "shot_power_strong_avg"),
    Metric("serve", "Serve Distance", True, "serve_distance_strong_avg"),
)


def format_value(value: float) -> str:
    """At most three decimals, whole numbers without a fraction."""
    rounded = round(value, 3)
    if float(rounded).is_integer():
        return str(int(rounded))
    return repr(rounded)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = -1.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def pct_change(old: float, new: float, higher_is_better: bool) -> Optional[float]:
    """Relative change, positive when improved. None from a zero baseline."""
    if old == 0:
        return None
    delta = new - old if higher_is_better else old - new
    return delta / abs(old)


def rank_entries(entries: List[Tuple[UUID, float]], higher_is_better: bool) -> List[Tuple[int, UUID, float]]:
    ordered = sorted(entries, key=lambda e: e[1], reverse=higher_is_better)
    ranked = []
    rank = 0
    last = None
    for i, (player_id, value) in enumerate(ordered):
        if last is None or value != last:
            rank = i + 1
            last = value
        ranked.append((rank, player_id, value))
    return ranked


@dataclass
class CycleRow:
    overall: Dict[str, Any]
    cluster: Dict[str, Any]


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _cycle_rows(db: Session, team_id: UUID, evaluation_id: UUID) -> Dict[UUID, CycleRow]:
    rows = (
        db.query(PlayerEvaluation.player_id, OverallScores.scores, PlayerCluster.cluster)
        .outerjoin(OverallScores, OverallScores.player_evaluation_id == PlayerEvaluation.id)
        .outerjoin(PlayerCluster, PlayerCluster.player_evaluation_id == PlayerEvaluation.id)
        .filter(PlayerEvaluation.team_id == team_id, PlayerEvaluation.evaluation_id == evaluation_id)
        .order_by(PlayerEvaluation.created_at, PlayerEvaluation.id)
        .all()
    )
    return {
        player_id: CycleRow(overall=_as_dict(overall), cluster=_as_dict(cluster))
        for player_id, overall, cluster in rows
    }


def _player_names(db: Session, team_id: UUID) -> Dict[UUID, str]:
    players = (
        db.query(Player.id, Player.first_name, Player.last_name)
        .filter(Player.team_id == team_id)
        .all()
    )
    return {
        pid: f"{first or ''} {last or ''}".strip() or "Player"
        for pid, first, last in players
    }


def _evaluation_ref(evaluation: Optional[Evaluation]) -> Optional[Dict[str, Any]]:
    if evaluation is None:
        return None
    return {"id": evaluation.id, "name": evaluation.name, "created_at": evaluation.created_at}


def rank_clusters(latest: Mapping[UUID, CycleRow], names: Mapping[UUID, str]) -> List[Dict[str, Any]]:
    result = []
    for key, name in CLUSTER_DIMENSIONS:
        entries = [
            (pid, value)
            for pid, row in latest.items()
            if (value := finite_number(row.cluster.get(key))) is not None
        ]
        rankings = [
            {
                "rank": rank,
                "player_id": pid,
                "player_name": names.get(pid, "Player"),
                "percent": round_half_up(value * 100),
                "value": value,
            }
            for rank, pid, value in rank_entries(entries, True)
        ]
        top = rankings[0] if rankings else None
        result.append({
            "id": key,
            "name": name,
            "top": {k: top[k] for k in ("player_id", "player_name", "percent")} if top else None,
            "rankings": rankings,
        })
    return result


def rank_tests(latest: Mapping[UUID, CycleRow], names: Mapping[UUID, str]) -> List[Dict[str, Any]]:
    result = []
    for metric in TESTS:
        entries = [
            (pid, value)
            for pid, row in latest.items()
            if (value := metric.value(row.overall)) is not None
        ]
        rankings = [
            {
                "rank": rank,
                "player_id": pid,
                "player_name": names.get(pid, "Player"),
                "value": value,
                "value_label": metric.label(value),
            }
            for rank, pid, value in rank_entries(entries, metric.higher_is_better)
        ]
        top = rankings[0] if rankings else None
        result.append({
            "id": metric.id,
            "name": metric.name,
            "higher_is_better": metric.higher_is_better,
            "top": {k: v for k, v in top.items() if k != "rank"} if top else None,
            "rankings": rankings,
        })
    return result


def _ranks_by_test(rows: Mapping[UUID, CycleRow]) -> Dict[str, Dict[UUID, int]]:
    ranks = {}
    for metric in TESTS:
        entries = [
            (pid, value)
            for pid, row in rows.items()
            if (value := metric.value(row.overall)) is not None
        ]
        ranks[metric.id] = {pid: rank for rank, pid, _ in rank_entries(entries, metric.higher_is_better)}
    return ranks


def _changes(
    player_id: UUID,
    previous: CycleRow,
    latest: CycleRow,
    old_ranks: Mapping[str, Mapping[UUID, int]],
    new_ranks: Mapping[str, Mapping[UUID, int]],
) -> List[Dict[str, Any]]:
    changes = []
    for metric in TESTS:
        old = metric.value(previous.overall)
        new = metric.value(latest.overall)
        if old is None or new is None:
            continue
        pct = pct_change(old, new, metric.higher_is_better)
        if pct is None:
            continue
        pct = clamp(pct)

        old_rank = old_ranks[metric.id].get(player_id)
        new_rank = new_ranks[metric.id].get(player_id)
        rank_change = None if old_rank is None or new_rank is None else old_rank - new_rank
        ranked = len(new_ranks[metric.id])
        contrib = pct
        if rank_change is not None and ranked > 1:
            contrib = clamp(rank_change / (ranked - 1))

        delta = new - old if metric.higher_is_better else old - new
        changes.append({
            "test_id": metric.id,
            "name": metric.name,
            "pct": pct,
            "old_rank": old_rank,
            "new_rank": new_rank,
            "rank_change": rank_change,
            "old_value": old,
            "new_value": new,
            "old_value_label": metric.label(old),
            "new_value_label": metric.label(new),
            "delta_value": delta,
            "delta_value_label": metric.label(abs(delta)),
            "contrib": contrib,
        })
    return changes


def movement_score(changes: List[Dict[str, Any]]) -> float:
    meaningful = [
        c for c in changes
        if c["rank_change"] not in (None, 0) or abs(c["contrib"]) >= MEANINGFUL_CHANGE
    ]
    considered = meaningful or changes
    return sum(c["contrib"] for c in considered) / len(considered)


def movers(
    latest: Mapping[UUID, CycleRow],
    previous: Mapping[UUID, CycleRow],
    names: Mapping[UUID, str],
) -> Dict[str, List[Dict[str, Any]]]:
    old_ranks = _ranks_by_test(previous)
    new_ranks = _ranks_by_test(latest)

    scored = []
    for player_id, row in latest.items():
        if player_id not in previous:
            continue
        changes = _changes(player_id, previous[player_id], row, old_ranks, new_ranks)
        if not changes:
            continue
        score = movement_score(changes)
        scored.append({
            "score": score,
            "player_id": player_id,
            "player_name": names.get(player_id, "Player"),
            "score_pct": round_half_up(score * 100),
            "improved": sorted((c for c in changes if c["contrib"] > 0), key=lambda c: -c["contrib"])[:TOP_CHANGES],
            "declined": sorted((c for c in changes if c["contrib"] < 0), key=lambda c: c["contrib"])[:TOP_CHANGES],
        })

    scored.sort(key=lambda s: -s["score"])
    dropped = sorted((s for s in scored if s["score"] < 0), key=lambda s: s["score"])
    return {
        "most_improved": scored[:TOP_MOVERS],
        "biggest_drop": dropped[:TOP_MOVERS],
    }


def team_leaderboards(db: Session, principal: Principal, team_id: UUID) -> Dict[str, Any]:
    """
    Cluster and test rankings for the team's latest evaluation cycle and
    the players who moved most since the previous one. Staff only.
    """
    team = get_team(db, team_id)
    ensure_allowed(principal, Action.view_teams, team_target(team), error_code="ACCESS_DENIED")

    cycles = (
        db.query(Evaluation)
        .filter(Evaluation.team_id == team.id)
        .order_by(Evaluation.created_at.desc().nulls_last(), Evaluation.id)
        .limit(2)
        .all()
    )
    if not cycles:
        return {
            "latest_evaluation": None,
            "previous_evaluation": None,
            "cluster_rankings": [],
            "test_rankings": [],
            "movers": {"most_improved": [], "biggest_drop": []},
        }

    latest_cycle = cycles[0]
    previous_cycle = cycles[1] if len(cycles) > 1 else None
    names = _player_names(db, team.id)
    latest = _cycle_rows(db, team.id, latest_cycle.id)

    moved = {"most_improved": [], "biggest_drop": []}
    if previous_cycle is not None:
        moved = movers(latest, _cycle_rows(db, team.id, previous_cycle.id), names)

    return {
        "latest_evaluation": _evaluation_ref(latest_cycle),
        "previous_evaluation": _evaluation_ref(previous_cycle),
        "cluster_rankings": rank_clusters(latest, names),
        "test_rankings": rank_tests(latest, names),
        "movers": moved,
    }
