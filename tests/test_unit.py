from decimal import Decimal

import pytest
from sqlalchemy import func

from storerate import crud, models
from storerate.errors import Conflict, InvalidCredentials, NotFound, ValidationFailed

from conftest import PASSWORD, make_store, make_user


def rating_rows(db, user_id, store_id):
    return (
        db.query(models.Rating)
        .filter(models.Rating.user_id == user_id, models.Rating.store_id == store_id)
        .all()
    )


def test_create_user_hashes_password(db_session):
    user = make_user(db_session, "alice@example.com")
    assert user.id is not None
    assert user.password_hash != PASSWORD
    assert user.password_hash.startswith("$pbkdf2-sha256$")


def test_duplicate_email_conflict_writes_nothing(db_session):
    make_user(db_session, "dup@example.com")
    with pytest.raises(Conflict):
        make_user(db_session, "dup@example.com")
    assert db_session.query(func.count(models.User.id)).scalar() == 1


def test_contractor_role_is_stored_as_store_owner(db_session):
    user = make_user(db_session, "legacy@example.com", role="contractor")
    assert user.role == models.ROLE_STORE_OWNER


def test_login_errors_do_not_reveal_which_field(db_session):
    make_user(db_session, "bob@example.com")
    with pytest.raises(InvalidCredentials) as wrong_password:
        crud.authenticate(db_session, {"email": "bob@example.com", "password": "Wrong@123"})
    with pytest.raises(InvalidCredentials) as unknown_email:
        crud.authenticate(db_session, {"email": "nobody@example.com", "password": PASSWORD})
    assert str(wrong_password.value) == str(unknown_email.value) == "Invalid email or password"


def test_login_success(db_session):
    created = make_user(db_session, "carol@example.com")
    user = crud.authenticate(db_session, {"email": "carol@example.com", "password": PASSWORD})
    assert user.id == created.id


def test_update_password(db_session):
    user = make_user(db_session, "dave@example.com")
    with pytest.raises(ValidationFailed) as exc:
        crud.update_password(db_session, {"userId": user.id, "oldPassword": "Nope@1234", "newPassword": "Fresh@1234"})
    assert exc.value.errors == {"oldPassword": "Current password is incorrect"}

    crud.update_password(db_session, {"userId": user.id, "oldPassword": PASSWORD, "newPassword": "Fresh@1234"})
    assert crud.authenticate(db_session, {"email": "dave@example.com", "password": "Fresh@1234"}).id == user.id
    with pytest.raises(InvalidCredentials):
        crud.authenticate(db_session, {"email": "dave@example.com", "password": PASSWORD})


def test_update_password_unknown_user(db_session):
    with pytest.raises(NotFound):
        crud.update_password(db_session, {"userId": 999, "oldPassword": PASSWORD, "newPassword": "Fresh@1234"})


def test_search_filters_are_case_insensitive_and_anded(db_session, owner, shopper):
    make_store(db_session, owner, "Alpha Bakery", address="12 Baker Street")
    make_store(db_session, owner, "Beta Books", address="5 Main Road")
    make_store(db_session, owner, "Gamma Books", address="99 Baker Lane")

    def names(**filters):
        return {s.name for s in crud.search_stores(db_session, shopper.id, **filters)}

    assert names() == {"Alpha Bakery", "Beta Books", "Gamma Books"}
    assert names(name="BOOKS") == {"Beta Books", "Gamma Books"}
    assert names(address="baker") == {"Alpha Bakery", "Gamma Books"}
    assert names(name="books", address="baker") == {"Gamma Books"}
    assert names(name="books", address="nowhere") == set()


def test_search_treats_like_wildcards_literally(db_session, owner, shopper):
    make_store(db_session, owner, "Plain Store")
    make_store(db_session, owner, "100% Organic")
    assert [s.name for s in crud.search_stores(db_session, shopper.id, name="%")] == ["100% Organic"]
    assert crud.search_stores(db_session, shopper.id, name="%' OR '1'='1") == []


def test_search_orders_by_name(db_session, owner, shopper):
    for name in ("Corner Shop", "Apple Market", "Bread Hub"):
        make_store(db_session, owner, name)
    assert [s.name for s in crud.search_stores(db_session, shopper.id)] == ["Apple Market", "Bread Hub", "Corner Shop"]


def test_listings_order_names_ignoring_case(db_session, owner, shopper):
    for name in ("Banana Stand", "apple corner", "Cherry Cart"):
        make_store(db_session, owner, name)
    expected = ["apple corner", "Banana Stand", "Cherry Cart"]
    assert [s.name for s in crud.search_stores(db_session, shopper.id)] == expected
    assert [s.name for s in crud.list_stores_with_stats(db_session)] == expected

    make_user(db_session, "lower@example.com", name="aaron lowercase account")
    names = [u.name for u in crud.list_users_with_stats(db_session)]
    assert names == ["aaron lowercase account", "Regular Shopper Account", "Store Owner Test Account"]


def test_search_requires_user_id(db_session):
    with pytest.raises(ValidationFailed):
        crud.search_stores(db_session, None)


def test_unrated_store_reports_zero(db_session, owner, shopper):
    make_store(db_session, owner, "Quiet Store")
    [row] = crud.search_stores(db_session, shopper.id)
    assert row.average_rating == Decimal("0.00")
    assert row.ratings_count == 0
    assert row.user_rating is None

    [admin_row] = crud.list_stores_with_stats(db_session)
    assert admin_row.average_rating == Decimal("0.00")
    assert admin_row.ratings_count == 0


def test_rating_resubmission_keeps_one_row(db_session, owner, shopper):
    store = make_store(db_session, owner, "Busy Store")
    crud.submit_rating(db_session, shopper.id, store.id, 4)
    summary = crud.submit_rating(db_session, shopper.id, store.id, 2)

    rows = rating_rows(db_session, shopper.id, store.id)
    assert len(rows) == 1
    assert rows[0].rating == Decimal("2")
    assert summary.user_rating == Decimal("2.00")
    assert summary.average_rating == Decimal("2.00")
    assert summary.ratings_count == 1


@pytest.mark.parametrize("value", [0, 6, 4.5, "4.5", "abc", True, -1, None])
def test_invalid_rating_writes_nothing(db_session, owner, shopper, value):
    store = make_store(db_session, owner, "Strict Store")
    with pytest.raises(ValidationFailed):
        crud.submit_rating(db_session, shopper.id, store.id, value)
    assert rating_rows(db_session, shopper.id, store.id) == []


def test_rating_unknown_store_is_not_found(db_session, shopper):
    with pytest.raises(NotFound):
        crud.submit_rating(db_session, shopper.id, 4242, 3)
    assert db_session.query(func.count(models.Rating.id)).scalar() == 0


def test_average_and_own_rating(db_session, owner, shopper):
    other = make_user(db_session, "other@example.com")
    third = make_user(db_session, "third@example.com")
    store = make_store(db_session, owner, "Popular Store")
    crud.submit_rating(db_session, shopper.id, store.id, 1)
    crud.submit_rating(db_session, other.id, store.id, 2)
    crud.submit_rating(db_session, third.id, store.id, "2", comment="<b>ok</b>")

    [mine] = crud.search_stores(db_session, shopper.id)
    assert mine.average_rating == Decimal("1.67")
    assert mine.ratings_count == 3
    assert mine.user_rating == Decimal("1.00")

    stranger = make_user(db_session, "stranger@example.com")
    [theirs] = crud.search_stores(db_session, stranger.id)
    assert theirs.user_rating is None

    raters = crud.list_store_rating_users(db_session, store.id)
    assert [r.email for r in raters] == ["third@example.com", "other@example.com", "shopper@example.com"]
    assert raters[0].comment == "ok"


def test_create_store_requires_store_owner(db_session, shopper):
    with pytest.raises(ValidationFailed) as exc:
        make_store(db_session, shopper, "Not Allowed")
    assert "owner_user_id" in exc.value.errors


def test_owner_flow_allows_one_store(db_session, owner):
    data = {"name": "Only Store", "email": "only@stores.test", "address": "1 Road", "owner_user_id": owner.id}
    crud.create_store(db_session, data, single_store=True)
    with pytest.raises(Conflict):
        crud.create_store(db_session, dict(data, name="Second Store"), single_store=True)


def test_store_by_owner(db_session, owner, shopper):
    with pytest.raises(NotFound):
        crud.get_store_by_owner(db_session, owner.id)
    store = make_store(db_session, owner, "Owner Store")
    crud.submit_rating(db_session, shopper.id, store.id, 5)
    found = crud.get_store_by_owner(db_session, owner.id)
    assert found.id == store.id
    assert found.average_rating == Decimal("5.00")
    assert found.ratings_count == 1


def test_rating_users_unknown_store(db_session):
    with pytest.raises(NotFound):
        crud.list_store_rating_users(db_session, 77)


def test_list_users_with_store_stats(db_session, owner, shopper):
    store = make_store(db_session, owner, "Stats Store")
    crud.submit_rating(db_session, shopper.id, store.id, 3)
    rows = {r.email: r for r in crud.list_users_with_stats(db_session)}
    assert rows["owner@example.com"].store_id == store.id
    assert rows["owner@example.com"].store_average_rating == Decimal("3.00")
    assert rows["owner@example.com"].ratings_count == 1
    assert rows["shopper@example.com"].store_id is None
    assert rows["shopper@example.com"].ratings_count == 0

    detail = crud.get_user_with_stats(db_session, owner.id)
    assert detail.store_id == store.id
    with pytest.raises(NotFound):
        crud.get_user_with_stats(db_session, 999)


def test_out_of_range_ids_are_rejected(db_session, owner, shopper):
    store = make_store(db_session, owner, "Range Check Store")
    with pytest.raises(ValidationFailed):
        crud.submit_rating(db_session, "9" * 25, store.id, 3)
    with pytest.raises(ValidationFailed):
        crud.submit_rating(db_session, shopper.id, 10**30, 3)
    with pytest.raises(NotFound):
        crud.get_user_with_stats(db_session, 10**30)
    with pytest.raises(NotFound):
        crud.get_store_by_owner(db_session, 10**30)
    with pytest.raises(NotFound):
        crud.list_store_rating_users(db_session, 10**30)
