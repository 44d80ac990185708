from datetime import datetime, timedelta

import pytest

from fitcoach.core.errors import EmptyAudienceError
from fitcoach.models.user import Department, Organization
from fitcoach.services.audience import resolve_audience

NOW = datetime(2026, 3, 1, 12, 0)


def ids(users) -> list[int]:
    return [user.id for user in users]


def test_specific_target_returns_active_users_once(db, make_user) -> None:
    first = make_user()
    second = make_user()
    suspended = make_user(status='suspended')

    users = resolve_audience(db, 'specific', [second.id, first.id, second.id, suspended.id], now=NOW)

    assert ids(users) == [first.id, second.id]


def test_all_target_excludes_non_active_users(db, make_user) -> None:
    active = make_user()
    make_user(status='inactive')

    assert ids(resolve_audience(db, 'all', now=NOW)) == [active.id]


def test_all_target_without_active_users_raises_empty_audience(db, make_user) -> None:
    make_user(status='suspended')

    with pytest.raises(EmptyAudienceError):
        resolve_audience(db, 'all', now=NOW)


def test_inactive_target_includes_never_logged_in_and_long_absent_users(db, make_user) -> None:
    never_logged_in = make_user(last_login=None)
    long_absent = make_user(last_login=NOW - timedelta(days=40))
    make_user(last_login=NOW - timedelta(days=10))

    users = resolve_audience(db, 'inactive', now=NOW)

    assert ids(users) == [never_logged_in.id, long_absent.id]


def test_active_target_uses_seven_day_login_window(db, make_user) -> None:
    recent = make_user(last_login=NOW - timedelta(days=3))
    make_user(last_login=NOW - timedelta(days=10))
    make_user(last_login=None)

    assert ids(resolve_audience(db, 'active', now=NOW)) == [recent.id]


def test_organization_and_department_targets(db, make_user) -> None:
    acme = Organization(name='Acme')
    globex = Organization(name='Globex')
    db.add_all([acme, globex])
    db.commit()
    sales = Department(name='Sales', organization_id=acme.id)
    db.add(sales)
    db.commit()

    acme_sales = make_user(organization_id=acme.id, department_id=sales.id)
    acme_other = make_user(organization_id=acme.id)
    make_user(organization_id=globex.id)

    assert ids(resolve_audience(db, 'organization', [acme.id], now=NOW)) == [acme_sales.id, acme_other.id]
    assert ids(resolve_audience(db, 'department', [sales.id], now=NOW)) == [acme_sales.id]


def test_role_target_selects_by_role(db, make_user) -> None:
    trainer = make_user(role='trainer')
    make_user(role='user')

    assert ids(resolve_audience(db, 'role', role_filter='trainer', now=NOW)) == [trainer.id]


def test_role_filter_narrows_other_targets(db, make_user) -> None:
    nutritionist = make_user(role='nutritionist')
    regular = make_user(role='user')

    users = resolve_audience(db, 'specific', [nutritionist.id, regular.id], role_filter='nutritionist', now=NOW)

    assert ids(users) == [nutritionist.id]


def test_unknown_target_type_is_rejected(db) -> None:
    with pytest.raises(ValueError):
        resolve_audience(db, 'everyone', now=NOW)
