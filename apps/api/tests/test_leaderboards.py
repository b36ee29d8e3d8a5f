"""
Tests for team leaderboards and the evaluation cycle detail read.
"""
from datetime import timedelta
from uuid import uuid4

import pytest

from conftest import BASE_TIME
from models import Evaluation, OverallScores, PlayerCluster, PlayerEvaluation
from services.leaderboards import format_value, movement_score, rank_entries


def record(db, cycle, player, overall=None, cluster=None):
    pe = PlayerEvaluation(
        player_id=player.id,
        team_id=cycle.team_id,
        evaluation_id=cycle.id,
        name=cycle.name,
        created_at=cycle.created_at,
    )
    db.add(pe)
    db.flush()
    if overall is not None:
        db.add(OverallScores(player_evaluation_id=pe.id, scores=overall))
    if cluster is not None:
        db.add(PlayerCluster(player_evaluation_id=pe.id, cluster=cluster))
    db.flush()
    return pe


class TestRanking:
    def test_ties_share_rank_and_skip(self):
        a, b, c, d = uuid4(), uuid4(), uuid4(), uuid4()
        ranked = rank_entries([(a, 3), (b, 5), (c, 5), (d, 1)], True)
        assert [(rank, pid) for rank, pid, _ in ranked] == [(1, b), (1, c), (3, a), (4, d)]

    def test_lower_is_better(self):
        a, b = uuid4(), uuid4()
        ranked = rank_entries([(a, 9.8), (b, 9.4)], False)
        assert [pid for _, pid, _ in ranked] == [b, a]

    @pytest.mark.parametrize("value, label", [(2.0, "2"), (1.23456, "1.235"), (4.5, "4.5"), (0.0004, "0")])
    def test_labels_keep_three_decimals(self, value, label):
        assert format_value(value) == label

    def test_small_changes_only_count_when_nothing_moved(self):
        changes = [
            {"rank_change": 0, "contrib": 0.01},
            {"rank_change": None, "contrib": -0.03},
        ]
        assert movement_score(changes) == pytest.approx(-0.01)

        changes.append({"rank_change": 1, "contrib": 0.5})
        assert movement_score(changes) == pytest.approx(0.5)


@pytest.fixture
def scored_team(db_session, tenant, factory):
    """
    Two cycles on the coached team. Sam improves on juggling and agility,
    Ann falls back on both, Bo is only in the latest cycle.
    """
    ann = factory.player(tenant.team, tenant.parent, "Ann", "Baker")
    bo = factory.player(tenant.team, tenant.parent, "Bo", "Chen")
    sam = tenant.player

    autumn = Evaluation(team_id=tenant.team.id, name="Autumn", scores={}, created_at=BASE_TIME)
    spring = Evaluation(team_id=tenant.team.id, name="Spring", scores={}, created_at=BASE_TIME + timedelta(days=90))
    db_session.add_all([autumn, spring])
    db_session.flush()

    record(db_session, autumn, sam, {"juggle_best": 10, "agility_5_10_5_best_time": 5.0})
    record(db_session, autumn, ann, {"juggle_best": 20, "agility_5_10_5_best_time": 4.8})

    record(
        db_session, spring, sam,
        {
            "juggle_best": 30,
            "agility_5_10_5_best_time": 4.5,
            "single_leg_hop_left": 1.2,
            "single_leg_hop_right": "NaN",
        },
        {"ps": 0.75, "tc": 0.5},
    )
    record(db_session, spring, ann, {"juggle_best": 20, "agility_5_10_5_best_time": 4.9}, {"ps": 0.9})
    record(db_session, spring, bo, {"juggle_best": "20"}, {"ps": 0.75})
    db_session.commit()
    return {"sam": sam, "ann": ann, "bo": bo, "autumn": autumn, "spring": spring}


def by_id(items):
    return {item["id"]: item for item in items}


def ranks_by_name(ranking):
    return {r["playerName"]: r["rank"] for r in ranking["rankings"]}


class TestTeamLeaderboards:
    def url(self, team):
        return f"/v1/teams/{team.id}/leaderboards"

    def test_rankings_for_latest_cycle(self, client, tenant, scored_team, auth_headers):
        resp = client.get(self.url(tenant.team), headers=auth_headers(tenant.coach))
        assert resp.status_code == 200
        body = resp.json()
        assert body["latestEvaluation"]["name"] == "Spring"
        assert body["previousEvaluation"]["name"] == "Autumn"

        clusters = by_id(body["clusterRankings"])
        assert list(clusters) == ["ps", "tc", "ms", "dc"]
        assert clusters["ps"]["top"] == {
            "playerId": str(scored_team["ann"].id),
            "playerName": "Ann Baker",
            "percent": 90,
        }
        assert ranks_by_name(clusters["ps"]) == {"Ann Baker": 1, "Sam Young": 2, "Bo Chen": 2}
        assert [r["percent"] for r in clusters["ps"]["rankings"]] == [90, 75, 75]
        assert clusters["ms"] == {"id": "ms", "name": "Mobility / Stability", "top": None, "rankings": []}

        tests = by_id(body["testRankings"])
        assert len(tests) == 13
        assert ranks_by_name(tests["juggling"]) == {"Sam Young": 1, "Ann Baker": 2, "Bo Chen": 2}
        assert tests["agility"]["higherIsBetter"] is False
        assert tests["agility"]["top"]["playerName"] == "Sam Young"
        assert [r["valueLabel"] for r in tests["agility"]["rankings"]] == ["4.5s", "4.9s"]
        assert [r["valueLabel"] for r in tests["hop"]["rankings"]] == ["1.2"]
        assert tests["onevone"]["top"] is None

    def test_movers_since_previous_cycle(self, client, tenant, scored_team, auth_headers):
        body = client.get(self.url(tenant.team), headers=auth_headers(tenant.owner)).json()
        movers = body["movers"]

        assert [m["playerName"] for m in movers["mostImproved"]] == ["Sam Young", "Ann Baker"]
        sam = movers["mostImproved"][0]
        assert sam["scorePct"] == 75
        assert [c["testId"] for c in sam["improved"]] == ["agility", "juggling"]
        assert sam["declined"] == []
        agility = sam["improved"][0]
        assert agility["oldRank"] == 2 and agility["newRank"] == 1
        assert agility["oldValueLabel"] == "5s"
        assert agility["newValueLabel"] == "4.5s"
        assert agility["deltaValueLabel"] == "0.5s"
        assert agility["pct"] == pytest.approx(0.1)

        assert [m["playerName"] for m in movers["biggestDrop"]] == ["Ann Baker"]
        ann = movers["biggestDrop"][0]
        assert ann["scorePct"] == -75
        assert [c["testId"] for c in ann["declined"]] == ["agility", "juggling"]

    def test_team_without_cycles(self, client, tenant, auth_headers):
        resp = client.get(self.url(tenant.other_team), headers=auth_headers(tenant.admin))
        assert resp.status_code == 200
        assert resp.json() == {
            "latestEvaluation": None,
            "previousEvaluation": None,
            "clusterRankings": [],
            "testRankings": [],
            "movers": {"mostImproved": [], "biggestDrop": []},
        }

    def test_single_cycle_has_no_movers(self, client, db_session, tenant, auth_headers):
        cycle = Evaluation(team_id=tenant.team.id, name="Only", scores={}, created_at=BASE_TIME)
        db_session.add(cycle)
        db_session.flush()
        record(db_session, cycle, tenant.player, {"juggle_best": 7})
        db_session.commit()

        body = client.get(self.url(tenant.team), headers=auth_headers(tenant.coach)).json()
        assert body["previousEvaluation"] is None
        assert body["movers"] == {"mostImproved": [], "biggestDrop": []}
        assert by_id(body["testRankings"])["juggling"]["top"]["value"] == 7

    def test_parent_denied(self, client, tenant, auth_headers):
        resp = client.get(self.url(tenant.team), headers=auth_headers(tenant.parent))
        assert resp.status_code == 403
        assert resp.json()["error"] == "ACCESS_DENIED"

    def test_coach_of_other_team_denied(self, client, tenant, auth_headers):
        resp = client.get(self.url(tenant.other_team), headers=auth_headers(tenant.coach))
        assert resp.status_code == 403
        assert resp.json()["details"]["reason"] == "NOT_OWNER_OF_RECORD"

    def test_other_tenant_denied(self, client, tenant, other_tenant, auth_headers):
        resp = client.get(self.url(other_tenant.team), headers=auth_headers(tenant.owner))
        assert resp.status_code == 403
        assert resp.json()["details"]["reason"] == "CROSS_TENANT"


class TestEvaluationDetail:
    def test_staff_read_cycle_with_raw_scores(self, client, db_session, tenant, auth_headers):
        raw = {str(tenant.player.id): {"juggling_1": 12}}
        cycle = Evaluation(team_id=tenant.team.id, name="Winter", scores=raw, created_at=BASE_TIME)
        db_session.add(cycle)
        db_session.commit()

        resp = client.get(f"/v1/teams/{tenant.team.id}/evaluations/{cycle.id}", headers=auth_headers(tenant.coach))
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == str(cycle.id)
        assert body["teamId"] == str(tenant.team.id)
        assert body["name"] == "Winter"
        assert body["scores"] == raw

    def test_cycle_of_another_team(self, client, db_session, tenant, auth_headers):
        cycle = Evaluation(team_id=tenant.other_team.id, name="Elsewhere", scores={}, created_at=BASE_TIME)
        db_session.add(cycle)
        db_session.commit()

        resp = client.get(f"/v1/teams/{tenant.team.id}/evaluations/{cycle.id}", headers=auth_headers(tenant.owner))
        assert resp.status_code == 404
        assert resp.json()["error"] == "EVALUATION_NOT_FOUND"

    def test_parent_denied(self, client, db_session, tenant, auth_headers):
        cycle = Evaluation(team_id=tenant.team.id, name="Winter", scores={}, created_at=BASE_TIME)
        db_session.add(cycle)
        db_session.commit()

        resp = client.get(f"/v1/teams/{tenant.team.id}/evaluations/{cycle.id}", headers=auth_headers(tenant.parent))
        assert resp.status_code == 403
