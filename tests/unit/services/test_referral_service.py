"""
Unit tests for ReferralService
"""

import pytest
from datetime import timedelta

from roach_rally.models.user import User
from roach_rally.services.referral_service import (
    ReferralService,
    InvalidReferralCodeError,
    SelfReferralError,
    ReferralAlreadyTrackedError,
    generate_referral_code,
    referral_points_total,
    referral_reward,
)


class TestReferralReward:
    """Premio por tramos, función pura de (viejo, nuevo)."""

    def test_third_referral_awards_one_point(self):
        assert referral_reward(2, 3) == 1

    def test_non_multiple_awards_nothing(self):
        assert referral_reward(0, 1) == 0
        assert referral_reward(3, 4) == 0

    def test_reaching_100_awards_nothing(self):
        """floor(100/3) - floor(99/3) = 33 - 33 = 0"""
        assert referral_reward(99, 100) == 0

    def test_99th_referral(self):
        assert referral_reward(98, 99) == 1

    def test_crossing_tier_boundary(self):
        assert referral_reward(100, 101) == 0
        assert referral_reward(101, 102) == 0

    def test_second_tier_awards_two_points(self):
        assert referral_reward(102, 103) == 2
        assert referral_reward(105, 106) == 2

    def test_totals(self):
        assert referral_points_total(0) == 0
        assert referral_points_total(100) == 33
        assert referral_points_total(103) == 35
        assert referral_points_total(160) == 33 + 40

    def test_sum_of_rewards_matches_total(self):
        """Sumar premios uno a uno nunca cuenta doble."""
        assert sum(referral_reward(n, n + 1) for n in range(250)) == referral_points_total(250)


class TestReferralCode:
    def test_code_format(self):
        code = generate_referral_code("7UwkPhbKdgcoTx2JjFwWkNs8x8ZfEH443tdrwe2NQmuP")

        assert len(code) == 12
        assert code.startswith("7UWKPHBK")
        assert code[8:].isalnum()
        assert code == code.upper()


class TestReferralServiceWithDatabase:
    async def _create_referrer(self, test_db, now, referral_count=0, referral_points=0, points=0):
        await test_db["users"].insert_one({
            "_id": "referrer",
            "wallet_address": "referrer_wallet",
            "points": points,
            "referral_code": "REFERRERABCD",
            "referral_count": referral_count,
            "referral_points": referral_points,
            "created_at": now - timedelta(days=30),
        })

    async def test_track_third_referral(self, test_db, now):
        await self._create_referrer(test_db, now, referral_count=2, points=7)
        service = ReferralService(test_db)

        result = await service.track("REFERRERABCD", "new_wallet", now=now)

        assert result.points_awarded == 1
        assert result.new_referral_count == 3
        assert result.total_referral_points == 1

        referrer = await test_db["users"].find_one({"_id": "referrer"})
        assert referrer["referral_count"] == 3
        assert referrer["referral_points"] == 1
        assert referrer["points"] == 8

        referral = await test_db["referrals"].find_one({"_id": "REFERRERABCD:new_wallet"})
        assert referral["points_awarded"] == 1

    async def test_track_100th_referral_awards_nothing(self, test_db, now):
        await self._create_referrer(test_db, now, referral_count=99, referral_points=33, points=50)
        service = ReferralService(test_db)

        result = await service.track("REFERRERABCD", "wallet_100", now=now)

        assert result.points_awarded == 0
        assert result.new_referral_count == 100
        assert result.total_referral_points == 33

    async def test_unknown_code(self, test_db, now):
        with pytest.raises(InvalidReferralCodeError):
            await ReferralService(test_db).track("NOPE", "new_wallet", now=now)

    async def test_self_referral(self, test_db, now):
        await self._create_referrer(test_db, now)

        with pytest.raises(SelfReferralError):
            await ReferralService(test_db).track("REFERRERABCD", "referrer_wallet", now=now)

    async def test_same_pair_only_once(self, test_db, now):
        await self._create_referrer(test_db, now, referral_count=2)
        service = ReferralService(test_db)
        await service.track("REFERRERABCD", "new_wallet", now=now)

        with pytest.raises(ReferralAlreadyTrackedError):
            await service.track("REFERRERABCD", "new_wallet", now=now)

        referrer = await test_db["users"].find_one({"_id": "referrer"})
        assert referrer["referral_count"] == 3
        assert referrer["points"] == 1

    async def test_get_or_create_code_is_stable(self, test_db, now):
        await test_db["users"].insert_one({
            "_id": "u1",
            "wallet_address": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
            "referral_code": None,
            "created_at": now,
        })
        service = ReferralService(test_db)
        user = User(**await test_db["users"].find_one({"_id": "u1"}))

        code = await service.get_or_create_code(user)
        again = await service.get_or_create_code(user)

        assert code.startswith("9XQEWVG8")
        assert again == code
        stored = await test_db["users"].find_one({"_id": "u1"})
        assert stored["referral_code"] == code

    def test_referral_link(self):
        assert ReferralService.build_referral_link("ABC") == "http://localhost:3000?ref=ABC"

    async def test_referral_leaderboard(self, test_db, now):
        await test_db["users"].insert_many([
            {"_id": "a", "wallet_address": "wa", "referral_count": 5, "referral_points": 1, "created_at": now},
            {"_id": "b", "wallet_address": "wb", "referral_count": 9, "referral_points": 3, "created_at": now},
            {"_id": "c", "wallet_address": "wc", "referral_count": 0, "referral_points": 0, "created_at": now},
        ])

        entries = await ReferralService(test_db).get_leaderboard()

        assert [e.wallet_address for e in entries] == ["wb", "wa"]
        assert entries[0].rank == 1
