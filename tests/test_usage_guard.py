import pytest

from app.core.errors import DailyLimitReached, ExternalProviderFailure, InsufficientFunds, PlanFeatureLocked
from app.services import coin_ledger, usage_counter
from app.services.usage_guard import effective_model, run_metered_action


def _ok(model):
    return [{"name": "index.html", "content": f"<html>{model}</html>"}]


def test_free_account_can_afford_exactly_one_generation(db, make_user):
    user = make_user("free", coins=5_000)

    outcome = run_metered_action(db, user, "generation", _ok)
    assert outcome.model == "groq"
    assert outcome.cost == 5_000
    assert outcome.balance == 0
    assert outcome.daily_usage["generations"] == 1

    # Free cap is one generation a day, so lift it to reach the coin check
    user.usage_date = None
    db.commit()
    with pytest.raises(InsufficientFunds):
        run_metered_action(db, user, "generation", _ok)

    db.refresh(user)
    assert user.bl_coins == 0
    assert usage_counter.current_count(user, "generation") == 0


def test_fourth_bronze_fix_hits_daily_cap(db, make_user):
    user = make_user("bronze", coins=100_000)
    for _ in range(3):
        run_metered_action(db, user, "codeFix", _ok)

    with pytest.raises(DailyLimitReached) as exc:
        run_metered_action(db, user, "codeFix", _ok)

    assert exc.value.detail["limit"] == 3
    assert exc.value.detail["used"] == 3
    assert user.bl_coins == 100_000 - 3 * 5_000


def test_provider_exception_refunds_coins_and_counter(db, make_user):
    user = make_user("silver", coins=30_000)
    run_metered_action(db, user, "codeFix", _ok)
    balance_before = user.bl_coins
    fixes_before = usage_counter.current_count(user, "codeFix")

    def boom(model):
        raise RuntimeError("provider down")

    with pytest.raises(ExternalProviderFailure) as exc:
        run_metered_action(db, user, "codeFix", boom)

    assert exc.value.status_code == 502
    assert exc.value.detail["refunded"] == 10_000
    db.refresh(user)
    assert user.bl_coins == balance_before
    assert usage_counter.current_count(user, "codeFix") == fixes_before

    log = coin_ledger.transaction_log(db, user)
    assert log[-1].amount == 10_000
    assert log[-1].description == "Refund: code fix failed (haiku)"
    assert log[-2].amount == -10_000


def test_empty_result_counts_as_failure(db, make_user):
    user = make_user("bronze", coins=5_000)

    with pytest.raises(ExternalProviderFailure):
        run_metered_action(db, user, "generation", lambda model: [])

    db.refresh(user)
    assert user.bl_coins == 5_000
    assert usage_counter.current_count(user, "generation") == 0


def test_feature_flag_actions_skip_daily_counters(db, make_user):
    user = make_user("gold", coins=20_000)
    outcome = run_metered_action(db, user, "pwaBuild", lambda model: {"manifest": {}})
    assert outcome.model is None
    assert outcome.cost == 20_000
    assert user.bl_coins == 0
    assert user.usage_date is None


def test_locked_feature_is_rejected_before_any_charge(db, make_user):
    user = make_user("silver", coins=200_000)
    with pytest.raises(PlanFeatureLocked) as exc:
        run_metered_action(db, user, "badgeRemoval", lambda model: True)
    assert exc.value.detail["upgrade"] is True
    assert user.bl_coins == 200_000


def test_super_admin_runs_for_free_and_skips_caps(db, make_user):
    admin = make_user("free", coins=0, role="super-admin")
    for _ in range(3):
        outcome = run_metered_action(db, admin, "codeFix", _ok, requested_model="opus")
        assert outcome.model == "opus"
        assert outcome.cost == 0
    assert admin.bl_coins == 0
    assert admin.daily_code_fixes == 3


def test_super_admin_failure_has_nothing_to_refund(db, make_user):
    admin = make_user("free", role="super-admin")
    with pytest.raises(ExternalProviderFailure) as exc:
        run_metered_action(db, admin, "generation", lambda model: None)
    assert exc.value.detail["refunded"] == 0
    assert coin_ledger.transaction_log(db, admin) == []


def test_effective_model(make_user):
    assert effective_model(make_user("free"), "opus") == "groq"
    assert effective_model(make_user("diamond"), "opus") == "opus"
    assert effective_model(make_user("diamond"), "groq") == "haiku"
    assert effective_model(make_user("silver")) == "haiku"
    assert effective_model(make_user("bronze", role="super-admin")) == "haiku"
