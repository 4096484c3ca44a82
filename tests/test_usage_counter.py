from datetime import datetime

import pytest

from app.core.errors import DailyLimitReached, ScanLimitReached
from app.services import usage_counter


def test_today_is_utc_day_string():
    assert usage_counter.today(datetime(2026, 3, 1, 23, 59)) == "2026-03-01"


def test_zero_cap_denies_even_at_zero_count(make_user):
    user = make_user("free")
    assert not usage_counter.can_perform(user, "codeFix")
    assert not usage_counter.can_perform(user, "githubPush")
    assert usage_counter.can_perform(user, "generation")


def test_unknown_action_is_denied(make_user):
    assert not usage_counter.can_perform(make_user("diamond"), "teleport")


def test_stale_day_reads_zero_without_a_write(db, make_user):
    user = make_user("bronze", usage_date="2026-01-01", daily_code_fixes=3, daily_generations=5)

    assert not usage_counter.can_perform(user, "codeFix", day="2026-01-01")
    assert usage_counter.can_perform(user, "codeFix", day="2026-01-02")
    assert usage_counter.usage_snapshot(user, "2026-01-02") == {
        "date": "2026-01-02",
        "generations": 0,
        "codeFixes": 0,
        "githubPushes": 0,
    }

    db.refresh(user)
    assert user.usage_date == "2026-01-01"
    assert user.daily_code_fixes == 3


def test_record_usage_starts_a_fresh_day(db, make_user):
    user = make_user("bronze", usage_date="2026-01-01", daily_code_fixes=3, daily_generations=5)

    usage_counter.record_usage(db, user, "generation", cap=5, day="2026-01-02")

    assert user.usage_date == "2026-01-02"
    assert user.daily_generations == 1
    assert user.daily_code_fixes == 0


def test_record_usage_increments_same_day(db, make_user):
    user = make_user("bronze")
    for _ in range(3):
        usage_counter.record_usage(db, user, "codeFix", cap=3, day="2026-01-02")
    assert user.daily_code_fixes == 3

    with pytest.raises(DailyLimitReached) as exc:
        usage_counter.record_usage(db, user, "codeFix", cap=3, day="2026-01-02")
    assert exc.value.status_code == 403
    assert exc.value.detail["used"] == 3
    assert user.daily_code_fixes == 3


def test_record_usage_with_zero_cap_raises(db, make_user):
    user = make_user("free")
    with pytest.raises(DailyLimitReached):
        usage_counter.record_usage(db, user, "codeFix", cap=0)
    assert user.usage_date is None


def test_release_usage_clamps_at_zero(db, make_user):
    user = make_user("bronze")
    usage_counter.record_usage(db, user, "githubPush", cap=3, day="2026-01-02")
    usage_counter.release_usage(db, user, "githubPush", day="2026-01-02")
    usage_counter.release_usage(db, user, "githubPush", day="2026-01-02")
    assert user.daily_github_pushes == 0


def test_super_admin_bypasses_daily_caps(make_user):
    admin = make_user("free", role="super-admin")
    assert usage_counter.can_perform(admin, "codeFix")


def test_scans_count_against_scans_limit(db, make_user):
    user = make_user("free")
    assert user.scans_limit == 5

    for _ in range(5):
        usage_counter.reserve_scan(db, user)
    assert user.scans_used == 5

    with pytest.raises(ScanLimitReached) as exc:
        usage_counter.reserve_scan(db, user)
    assert exc.value.detail["scansUsed"] == 5
    assert user.scans_used == 5


def test_release_scan_gives_the_scan_back(db, make_user):
    user = make_user("free", scans_used=5)
    usage_counter.release_scan(db, user)
    assert user.scans_used == 4
    usage_counter.reserve_scan(db, user)
    assert user.scans_used == 5


def test_unlimited_scans_and_super_admin(db, make_user):
    diamond = make_user("diamond", scans_used=500)
    usage_counter.reserve_scan(db, diamond)
    assert diamond.scans_used == 501

    admin = make_user("free", role="super-admin", scans_used=5)
    usage_counter.reserve_scan(db, admin)
    assert admin.scans_used == 6
