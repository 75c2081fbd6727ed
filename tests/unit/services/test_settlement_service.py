"""
Unit tests for SettlementService
"""

import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

from roach_rally.models.game_config import GameConfig
from roach_rally.models.race import Race
from roach_rally.models.vote import Vote
from roach_rally.services.settlement_service import (
    SettlementService,
    RaceNotFoundError,
    RaceAlreadySettledError,
)


def make_vote(user_id, pick, now):
    return Vote(
        _id=Vote.make_id("race_1", user_id),
        race_id="race_1",
        user_id=user_id,
        pick=pick,
        sig=f"sig_{user_id}",
        created_at=now,
    )


def make_service(race, votes, config=None, settled=None):
    service = SettlementService(MagicMock())
    service.race_repo = MagicMock()
    service.race_repo.get_by_id = AsyncMock(return_value=race)
    service.race_repo.mark_settled = AsyncMock(return_value=settled)
    service.vote_repo = MagicMock()
    service.vote_repo.get_for_race = AsyncMock(return_value=votes)
    service.user_repo = MagicMock()
    service.user_repo.award_points = AsyncMock(return_value=0)
    service.user_repo.record_settled_vote = AsyncMock(return_value=None)
    service.config_repo = MagicMock()
    service.config_repo.get = AsyncMock(return_value=config or GameConfig())
    return service


class TestSettlementServiceWithMocks:
    """Flujo del settle sin base de datos."""

    async def test_settle_partitions_votes(self, sample_race_data, now):
        race = Race(**sample_race_data)
        settled = race.model_copy(update={"status": "SETTLED", "winner": "JESSE"})
        votes = [
            make_vote("u1", "JESSE", now),
            make_vote("u2", "BRIAN", now),
            make_vote("u3", "JESSE", now),
        ]
        service = make_service(race, votes, settled=settled)

        result = await service.settle_race("race_1", "JESSE", now=now)

        assert result.correct_votes == 2
        assert result.total_votes == 3
        assert result.points_awarded == 2
        assert result.race.status == "SETTLED"

        service.user_repo.award_points.assert_awaited_once_with(["u1", "u3"], 1, session=None)
        assert service.user_repo.record_settled_vote.await_count == 3
        calls = {
            c.args[0]: c.kwargs["is_correct"]
            for c in service.user_repo.record_settled_vote.await_args_list
        }
        assert calls == {"u1": True, "u2": False, "u3": True}

    async def test_points_per_correct_from_config(self, sample_race_data, now):
        race = Race(**sample_race_data)
        settled = race.model_copy(update={"status": "SETTLED", "winner": "DALE"})
        votes = [make_vote("u1", "DALE", now)]
        config = GameConfig(points_per_correct=5, enable_streaks=False)
        service = make_service(race, votes, config=config, settled=settled)

        result = await service.settle_race("race_1", "DALE", now=now)

        assert result.points_awarded == 5
        service.user_repo.award_points.assert_awaited_once_with(["u1"], 5, session=None)
        assert service.user_repo.record_settled_vote.await_args.kwargs["track_streak"] is False

    async def test_settle_race_without_votes(self, sample_race_data, now):
        race = Race(**sample_race_data)
        settled = race.model_copy(update={"status": "SETTLED", "winner": "GREG"})
        service = make_service(race, [], settled=settled)

        result = await service.settle_race("race_1", "GREG", now=now)

        assert result.total_votes == 0
        assert result.correct_votes == 0
        assert result.points_awarded == 0

    async def test_race_not_found(self, now):
        service = make_service(None, [])

        with pytest.raises(RaceNotFoundError):
            await service.settle_race("race_404", "JESSE", now=now)

        service.race_repo.mark_settled.assert_not_awaited()

    async def test_already_settled(self, sample_race_data, now):
        sample_race_data["status"] = "SETTLED"
        sample_race_data["winner"] = "BRIAN"
        service = make_service(Race(**sample_race_data), [])

        with pytest.raises(RaceAlreadySettledError):
            await service.settle_race("race_1", "JESSE", now=now)

        service.race_repo.mark_settled.assert_not_awaited()
        service.user_repo.award_points.assert_not_awaited()

    async def test_concurrent_settle_loses_claim(self, sample_race_data, now):
        """Otro settle marcó la carrera entre la lectura y el update."""
        service = make_service(Race(**sample_race_data), [], settled=None)

        with pytest.raises(RaceAlreadySettledError):
            await service.settle_race("race_1", "JESSE", now=now)

        service.user_repo.award_points.assert_not_awaited()
        service.vote_repo.get_for_race.assert_not_awaited()


class TestSettlementServiceWithDatabase:
    """Escenarios completos sobre la base en memoria."""

    async def _seed(self, test_db, sample_race_data, now, picks):
        sample_race_data["status"] = "LOCKED"
        await test_db["races"].insert_one(sample_race_data)
        for user_id, pick in picks.items():
            await test_db["users"].insert_one({
                "_id": user_id,
                "wallet_address": f"wallet_{user_id}",
                "points": 10,
                "accuracy_pct": 50.0,
                "streak": 2,
                "votes_total": 2,
                "votes_correct": 1,
                "created_at": now - timedelta(days=1),
            })
            await test_db["votes"].insert_one({
                "_id": f"race_1:{user_id}",
                "race_id": "race_1",
                "user_id": user_id,
                "pick": pick,
                "sig": f"sig_{user_id}",
                "created_at": now,
            })

    async def test_settle_scenario(self, test_db, sample_race_data, now):
        """Winner JESSE: u1 gains 1 point and streak, u2 resets streak."""
        await self._seed(test_db, sample_race_data, now, {"u1": "JESSE", "u2": "BRIAN"})
        service = SettlementService(test_db)

        result = await service.settle_race("race_1", "JESSE", now=now)

        assert result.correct_votes == 1
        assert result.total_votes == 2
        assert result.points_awarded == 1

        race = await test_db["races"].find_one({"_id": "race_1"})
        assert race["status"] == "SETTLED"
        assert race["winner"] == "JESSE"

        u1 = await test_db["users"].find_one({"_id": "u1"})
        assert u1["points"] == 11
        assert u1["streak"] == 3
        assert u1["votes_total"] == 3
        assert u1["votes_correct"] == 2
        assert u1["accuracy_pct"] == pytest.approx(200 / 3)

        u2 = await test_db["users"].find_one({"_id": "u2"})
        assert u2["points"] == 10
        assert u2["streak"] == 0
        assert u2["votes_total"] == 3
        assert u2["votes_correct"] == 1
        assert u2["accuracy_pct"] == pytest.approx(100 / 3)

    async def test_second_settle_does_not_double_award(self, test_db, sample_race_data, now):
        await self._seed(test_db, sample_race_data, now, {"u1": "JESSE"})
        service = SettlementService(test_db)

        await service.settle_race("race_1", "JESSE", now=now)

        with pytest.raises(RaceAlreadySettledError):
            await service.settle_race("race_1", "JESSE", now=now)

        u1 = await test_db["users"].find_one({"_id": "u1"})
        assert u1["points"] == 11
        assert u1["votes_total"] == 3

    async def test_streaks_disabled(self, test_db, sample_race_data, now):
        await self._seed(test_db, sample_race_data, now, {"u1": "JESSE", "u2": "GREG"})
        await test_db["config"].insert_one({
            "_id": "global",
            "points_per_correct": 1,
            "enable_streaks": False,
            "last_race_number": 1,
        })

        await SettlementService(test_db).settle_race("race_1", "JESSE", now=now)

        u1 = await test_db["users"].find_one({"_id": "u1"})
        u2 = await test_db["users"].find_one({"_id": "u2"})
        assert u1["streak"] == 2
        assert u2["streak"] == 2

    async def test_recalculate_all_user_stats(self, test_db, now):
        """Full recompute from all-time votes against settled winners."""
        await test_db["races"].insert_many([
            {"_id": "race_1", "unique_idx": 1, "start_at": now, "end_at": now,
             "status": "SETTLED", "winner": "JESSE", "created_at": now},
            {"_id": "race_2", "unique_idx": 2, "start_at": now, "end_at": now,
             "status": "SETTLED", "winner": "DALE", "created_at": now},
            {"_id": "race_3", "unique_idx": 3, "start_at": now, "end_at": now,
             "status": "OPEN", "winner": None, "created_at": now},
        ])
        await test_db["users"].insert_one({
            "_id": "u1", "wallet_address": "wallet_u1", "created_at": now,
            "votes_total": 99, "votes_correct": 99, "accuracy_pct": 100.0,
        })
        await test_db["votes"].insert_many([
            {"_id": "race_1:u1", "race_id": "race_1", "user_id": "u1", "pick": "JESSE", "sig": "a", "created_at": now},
            {"_id": "race_2:u1", "race_id": "race_2", "user_id": "u1", "pick": "BRIAN", "sig": "b", "created_at": now},
            {"_id": "race_3:u1", "race_id": "race_3", "user_id": "u1", "pick": "DALE", "sig": "c", "created_at": now},
        ])

        processed = await SettlementService(test_db).recalculate_all_user_stats()

        assert processed == 1
        u1 = await test_db["users"].find_one({"_id": "u1"})
        # race_3 sigue OPEN: su voto no cuenta hasta el settle
        assert u1["votes_total"] == 2
        assert u1["votes_correct"] == 1
        assert u1["accuracy_pct"] == pytest.approx(50.0)

    async def test_recalculate_then_settle_counts_vote_once(self, test_db, now):
        """El voto de la carrera activa entra una sola vez: en el settle."""
        await test_db["races"].insert_many([
            {"_id": "race_1", "unique_idx": 1, "start_at": now, "end_at": now,
             "status": "SETTLED", "winner": "JESSE", "created_at": now},
            {"_id": "race_2", "unique_idx": 2, "start_at": now, "end_at": now,
             "status": "LOCKED", "winner": None, "created_at": now},
        ])
        await test_db["users"].insert_one({"_id": "u1", "wallet_address": "wallet_u1", "created_at": now})
        await test_db["votes"].insert_many([
            {"_id": "race_1:u1", "race_id": "race_1", "user_id": "u1", "pick": "JESSE", "sig": "a", "created_at": now},
            {"_id": "race_2:u1", "race_id": "race_2", "user_id": "u1", "pick": "DALE", "sig": "b", "created_at": now},
        ])
        service = SettlementService(test_db)

        await service.recalculate_all_user_stats()
        await service.settle_race("race_2", "DALE", now=now)

        u1 = await test_db["users"].find_one({"_id": "u1"})
        assert u1["votes_total"] == 2
        assert u1["votes_correct"] == 2
        assert u1["accuracy_pct"] == pytest.approx(100.0)

        # Recalcular de nuevo da lo mismo que los contadores
        await service.recalculate_all_user_stats()
        u1 = await test_db["users"].find_one({"_id": "u1"})
        assert (u1["votes_total"], u1["votes_correct"]) == (2, 2)
