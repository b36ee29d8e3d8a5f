"""
Tests for evaluation aggregation: attempt summaries and the latest
evaluation read with its derived score rows.
"""
from datetime import timedelta

import pytest

from conftest import BASE_TIME
from models import Evaluation, OverallScores, PlayerCluster, PlayerDna, PlayerEvaluation, TestScores
from services.evaluations import summarize_attempts, summarize_raw_scores


class TestSummaries:
    def test_no_valid_attempts_omits_statistics(self):
        assert summarize_attempts([None, None, None], ("average", "max", "total")) == {"attempts": []}

    def test_single_attempt(self):
        summary = summarize_attempts([5, None, None, None], ("average", "max", "total"))
        assert summary == {"attempts": [5], "average": 5, "max": 5, "total": 5}

    def test_zero_is_a_valid_attempt(self):
        summary = summarize_attempts([0, 4], ("average", "max"))
        assert summary == {"attempts": [0, 4], "average": 2, "max": 4}

    def test_best_is_minimum(self):
        summary = summarize_attempts([2.5, "2.1", "n/a"], ("average", "best"))
        assert summary["attempts"] == [2.5, 2.1]
        assert summary["best"] == 2.1
        assert summary["average"] == pytest.approx(2.3)

    def test_non_finite_values_are_missing(self):
        summary = summarize_attempts(["NaN", 5, float("inf"), "-Infinity", float("nan")], ("average", "max", "total"))
        assert summary == {"attempts": [5], "average": 5, "max": 5, "total": 5}
        assert summarize_attempts(["NaN", "Infinity"], ("average",)) == {"attempts": []}

    def test_raw_record_groups(self):
        raw = {
            "power_strong_1": 60,
            "power_strong_2": 64,
            "onevone_round_1": 1,
            "onevone_round_2": 0,
            "juggling_3": 12,
            "agility_1": 9.8,
            "agility_2": 9.4,
            "plank_time": 45,
            "plank_form": None,
        }
        result = summarize_raw_scores(raw)
        assert result["power_strong"] == {"attempts": [60, 64], "average": 62, "max": 64}
        assert result["onevone"] == {"attempts": [1, 0], "average": 0.5, "total": 1}
        assert result["juggling"] == {"attempts": [12], "average": 12, "max": 12, "total": 12}
        assert result["agility"]["best"] == 9.4
        assert result["serve_weak"] == {"attempts": []}
        assert result["plank_time"] == {"value": 45}
        assert "plank_form" not in result


@pytest.fixture
def evaluated(db_session, tenant):
    """Two evaluation cycles for the coached player, plus one undated record."""
    older_cycle = Evaluation(
        team_id=tenant.team.id,
        name="Autumn",
        scores={str(tenant.player.id): {"power_strong_1": 50}},
        created_at=BASE_TIME,
    )
    newer_cycle = Evaluation(
        team_id=tenant.team.id,
        name="Spring",
        scores={str(tenant.player.id): {"power_strong_1": 70, "power_strong_2": 74, "skillmove_1": 3}},
        created_at=BASE_TIME + timedelta(days=90),
    )
    db_session.add_all([older_cycle, newer_cycle])
    db_session.flush()

    undated = PlayerEvaluation(player_id=tenant.player.id, team_id=tenant.team.id, name="Undated")
    older = PlayerEvaluation(
        player_id=tenant.player.id,
        team_id=tenant.team.id,
        evaluation_id=older_cycle.id,
        name="Autumn",
        created_at=BASE_TIME,
    )
    newer = PlayerEvaluation(
        player_id=tenant.player.id,
        team_id=tenant.team.id,
        evaluation_id=newer_cycle.id,
        name="Spring",
        created_at=BASE_TIME + timedelta(days=90),
    )
    db_session.add_all([undated, older, newer])
    db_session.flush()
    # the server default stamps every insert; the undated row is nulled afterwards
    db_session.query(PlayerEvaluation).filter(PlayerEvaluation.id == undated.id).update(
        {"created_at": None}, synchronize_session=False
    )

    db_session.add_all([
        TestScores(player_evaluation_id=newer.id, scores={"power": 72}),
        OverallScores(player_evaluation_id=newer.id, scores={"overall": 81}),
        PlayerDna(player_evaluation_id=newer.id, dna={"power_strength": 0.7, "technique_control": 0.6}),
        PlayerCluster(player_evaluation_id=newer.id, cluster={"label": "Engine"}),
        TestScores(player_evaluation_id=older.id, scores={"power": 50}),
    ])
    db_session.commit()
    return newer


class TestLatestEvaluation:
    def url(self, tenant, player=None):
        player = player or tenant.player
        return f"/v1/teams/{tenant.team.id}/players/{player.id}/latest-evaluation"

    def test_latest_with_derived_rows(self, client, tenant, evaluated, auth_headers):
        resp = client.get(self.url(tenant), headers=auth_headers(tenant.coach))
        assert resp.status_code == 200
        body = resp.json()
        assert body["playerEvaluation"]["id"] == str(evaluated.id)
        assert body["playerEvaluation"]["name"] == "Spring"
        assert body["testScores"] == {"power": 72}
        assert body["overallScores"] == {"overall": 81}
        assert body["playerDna"]["power_strength"] == 0.7
        assert body["playerCluster"] == {"label": "Engine"}
        summaries = body["attemptSummaries"]
        assert summaries["power_strong"] == {"attempts": [70, 74], "average": 72, "max": 74}
        assert summaries["skill_moves"] == {"attempts": [3], "average": 3, "total": 3}
        assert summaries["hop_left"] == {"attempts": []}

    def test_non_finite_raw_attempts_are_skipped(self, client, db_session, tenant, auth_headers):
        cycle = Evaluation(
            team_id=tenant.team.id,
            name="Summer",
            scores={str(tenant.player.id): {"juggling_1": "Infinity", "juggling_2": 3}},
            created_at=BASE_TIME,
        )
        db_session.add(cycle)
        db_session.flush()
        db_session.add(PlayerEvaluation(
            player_id=tenant.player.id,
            team_id=tenant.team.id,
            evaluation_id=cycle.id,
            name="Summer",
            created_at=BASE_TIME,
        ))
        db_session.commit()

        body = client.get(self.url(tenant), headers=auth_headers(tenant.coach)).json()
        assert body["attemptSummaries"]["juggling"] == {"attempts": [3], "average": 3, "max": 3, "total": 3}

    def test_missing_derived_rows_are_null(self, client, db_session, tenant, auth_headers):
        db_session.add(PlayerEvaluation(
            player_id=tenant.player.id,
            team_id=tenant.team.id,
            name="Bare",
            created_at=BASE_TIME,
        ))
        db_session.commit()

        body = client.get(self.url(tenant), headers=auth_headers(tenant.owner)).json()
        assert body["playerEvaluation"]["name"] == "Bare"
        assert body["testScores"] is None
        assert body["playerDna"] is None
        assert body["attemptSummaries"] is None

    def test_not_evaluated(self, client, tenant, auth_headers):
        resp = client.get(self.url(tenant), headers=auth_headers(tenant.admin))
        assert resp.status_code == 200
        assert resp.json()["playerEvaluation"] is None

    def test_parent_reads_supervised_player(self, client, tenant, evaluated, auth_headers):
        resp = client.get(self.url(tenant), headers=auth_headers(tenant.parent))
        assert resp.status_code == 200
        assert resp.json()["playerEvaluation"]["id"] == str(evaluated.id)

    def test_coach_of_other_team_denied(self, client, tenant, evaluated, auth_headers):
        resp = client.get(self.url(tenant), headers=auth_headers(tenant.other_coach))
        assert resp.status_code == 403
        assert resp.json()["error"] == "ACCESS_DENIED"

    def test_other_tenant_denied(self, client, tenant, other_tenant, evaluated, auth_headers):
        resp = client.get(self.url(tenant), headers=auth_headers(other_tenant.owner))
        assert resp.status_code == 403

    def test_player_not_in_team(self, client, tenant, auth_headers):
        resp = client.get(self.url(tenant, tenant.sibling), headers=auth_headers(tenant.owner))
        assert resp.status_code == 404
        assert resp.json()["error"] == "PLAYER_NOT_FOUND"


class TestTeamEvaluations:
    def test_lists_cycles_with_counts(self, client, tenant, evaluated, auth_headers):
        resp = client.get(f"/v1/teams/{tenant.team.id}/evaluations", headers=auth_headers(tenant.coach))
        assert resp.status_code == 200
        cycles = resp.json()
        assert [c["name"] for c in cycles] == ["Spring", "Autumn"]
        assert all(c["playerCount"] == 1 for c in cycles)

    def test_parent_cannot_list_cycles(self, client, tenant, auth_headers):
        resp = client.get(f"/v1/teams/{tenant.team.id}/evaluations", headers=auth_headers(tenant.parent))
        assert resp.status_code == 403
