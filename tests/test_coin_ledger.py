from datetime import datetime, timedelta

import pytest

from app.core.errors import AlreadyClaimed, InsufficientFunds
from app.core.tiers import REFERRAL_BONUS, SIGNUP_BONUS
from app.models.coin_transaction import MAX_TRANSACTIONS_PER_USER, CoinTransaction
from app.services import coin_ledger


def test_debit_and_credit_record_post_operation_balance(db, make_user):
    user = make_user(coins=10_000)

    entry = coin_ledger.debit(db, user, 4_000, "generation", "Website generation (groq)", ai_model="groq")
    assert entry.amount == -4_000
    assert entry.balance == 6_000
    assert entry.ai_model == "groq"
    assert user.bl_coins == 6_000

    entry = coin_ledger.credit(db, user, 1_500, "topup", "Top-up")
    assert entry.amount == 1_500
    assert entry.balance == 7_500
    assert user.bl_coins == 7_500


def test_debit_more_than_balance_raises_and_changes_nothing(db, make_user):
    user = make_user(coins=4_999)

    with pytest.raises(InsufficientFunds) as exc:
        coin_ledger.debit(db, user, 5_000, "generation", "Website generation (groq)")

    assert exc.value.status_code == 402
    assert exc.value.detail["required"] == 5_000
    assert exc.value.detail["balance"] == 4_999
    assert exc.value.detail["topup"] is True
    db.refresh(user)
    assert user.bl_coins == 4_999
    assert coin_ledger.transaction_log(db, user) == []


def test_zero_debit_is_a_no_op(db, make_user):
    user = make_user(coins=100)
    assert coin_ledger.debit(db, user, 0, "generation", "free") is None
    assert user.bl_coins == 100
    assert coin_ledger.transaction_log(db, user) == []


def test_super_admin_is_never_charged(db, make_user):
    admin = make_user(coins=0, role="super-admin")
    assert coin_ledger.debit(db, admin, 50_000, "generation", "Website generation (opus)") is None
    assert admin.bl_coins == 0
    assert coin_ledger.transaction_log(db, admin) == []


def test_negative_amounts_are_rejected(db, make_user):
    user = make_user(coins=100)
    with pytest.raises(ValueError):
        coin_ledger.debit(db, user, -1, "generation", "x")
    with pytest.raises(ValueError):
        coin_ledger.credit(db, user, -1, "topup", "x")


def test_unknown_kind_is_rejected(db, make_user):
    user = make_user()
    with pytest.raises(ValueError):
        coin_ledger.credit(db, user, 10, "lottery", "x")


def test_log_is_trimmed_to_newest_entries(db, make_user):
    user = make_user()
    for i in range(MAX_TRANSACTIONS_PER_USER + 20):
        coin_ledger.credit(db, user, 1, "topup", f"credit {i}")

    log = coin_ledger.transaction_log(db, user)
    assert len(log) == MAX_TRANSACTIONS_PER_USER
    assert log[0].description == "credit 20"
    assert log[-1].description == f"credit {MAX_TRANSACTIONS_PER_USER + 19}"
    assert [e.id for e in log] == sorted(e.id for e in log)
    assert log[-1].balance == user.bl_coins == MAX_TRANSACTIONS_PER_USER + 20


def test_trim_only_touches_the_same_user(db, make_user):
    user = make_user()
    other = make_user()
    coin_ledger.credit(db, other, 5, "topup", "keep me")
    for _ in range(MAX_TRANSACTIONS_PER_USER + 5):
        coin_ledger.credit(db, user, 1, "topup", "fill")

    assert db.query(CoinTransaction).filter(CoinTransaction.user_id == other.id).count() == 1


def test_recent_transactions_newest_first(db, make_user):
    user = make_user()
    for i in range(5):
        coin_ledger.credit(db, user, 1, "topup", f"credit {i}")
    recent = coin_ledger.recent_transactions(db, user, limit=2)
    assert [e.description for e in recent] == ["credit 4", "credit 3"]


def test_first_claim_pays_signup_bonus_once(db, make_user):
    user = make_user("free")
    now = datetime(2026, 3, 1, 12, 0)

    result = coin_ledger.claim(db, user, now=now)
    assert result == {"claimed": 2_000, "bonus": SIGNUP_BONUS, "balance": 2_000 + SIGNUP_BONUS}
    assert user.signup_bonus_claimed is True
    assert user.last_daily_claim == now

    result = coin_ledger.claim(db, user, now=now + timedelta(hours=24))
    assert result["bonus"] == 0
    assert user.bl_coins == 4_000 + SIGNUP_BONUS

    kinds = [e.kind for e in coin_ledger.transaction_log(db, user)]
    assert kinds == ["signup_bonus", "claim", "claim"]


def test_second_claim_within_a_day_raises(db, make_user):
    user = make_user("gold")
    now = datetime(2026, 3, 1, 12, 0)
    coin_ledger.claim(db, user, now=now)
    balance = user.bl_coins

    with pytest.raises(AlreadyClaimed) as exc:
        coin_ledger.claim(db, user, now=now + timedelta(hours=23))

    assert exc.value.status_code == 403
    assert exc.value.detail["nextClaimIn"] == 3600
    assert exc.value.detail["canClaim"] is False
    db.refresh(user)
    assert user.bl_coins == balance


def test_claim_countdown(make_user):
    now = datetime(2026, 3, 1, 12, 0)
    user = make_user(last_daily_claim=now - timedelta(hours=23, minutes=59, seconds=59, microseconds=500_000))
    assert not coin_ledger.can_claim(user, now)
    assert coin_ledger.claim_countdown(user, now) == 1
    assert coin_ledger.claim_countdown(make_user(), now) == 0


def test_claim_amount_follows_plan(db, make_user):
    user = make_user("diamond", signup_bonus_claimed=True)
    assert coin_ledger.claim(db, user)["claimed"] == 500_000


def test_admin_adjustment_cannot_overdraw(db, make_user):
    user = make_user(coins=1_000)
    entry = coin_ledger.adjust(db, user, -400, "Admin adjustment: chargeback")
    assert entry.amount == -400
    assert user.bl_coins == 600

    with pytest.raises(InsufficientFunds):
        coin_ledger.adjust(db, user, -601, "Admin adjustment: too much")
    db.refresh(user)
    assert user.bl_coins == 600


def test_referral_bonus_pays_both_sides(db, make_user):
    referrer = make_user()
    referee = make_user()

    coin_ledger.grant_referral_bonus(db, referrer, referee)

    assert referrer.bl_coins == REFERRAL_BONUS
    assert referee.bl_coins == REFERRAL_BONUS
    assert referrer.referral_count == 1
    assert referee.referred_by_id == referrer.id
