import pytest

from sellfast.coins import balance, credit, debit
from sellfast.errors import BadRequest, NotFound
from sellfast.models import CoinTransaction


def test_credit_and_debit_keep_ledger_in_step(db, make_user):
    u = make_user(coins=0)

    credit(db, u.id, 50, "RECHARGE", "Recharged 50 coins via card", payment_method="card")
    debit(db, u.id, 20, "BID_PLACED", "Placed offer")
    db.commit()

    assert balance(db, u.id) == 30
    rows = db.query(CoinTransaction).filter(CoinTransaction.user_id == u.id).all()
    assert sorted(r.amount for r in rows) == [-20, 50]
    assert sum(r.amount for r in rows) == balance(db, u.id)


def test_debit_never_goes_negative(db, make_user):
    u = make_user(coins=10)
    with pytest.raises(BadRequest) as exc:
        debit(db, u.id, 11, "BID_PLACED", "too much")
    assert exc.value.detail == "Insufficient coins"
    db.rollback()
    assert balance(db, u.id) == 10


@pytest.mark.parametrize("amount", [0, -5, 2.5, True])
def test_amount_must_be_positive_int(db, make_user, amount):
    u = make_user(coins=10)
    with pytest.raises(BadRequest):
        credit(db, u.id, amount, "RECHARGE", "bad")


def test_unknown_user(db):
    with pytest.raises(NotFound):
        balance(db, 12345)
    with pytest.raises(NotFound):
        credit(db, 12345, 5, "RECHARGE", "nobody")


# ---------------------------------------------------
# HTTP
# ---------------------------------------------------
def test_http_recharge_floors_to_whole_coins(client, make_user, auth):
    u = make_user(coins=5)

    r = client.post("/api/user/recharge-coins", json={"amount": 10.55, "payment_method": "card"}, headers=auth(u))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body == {"success": True, "coins_added": 105, "new_balance": 110}

    r = client.get("/api/user/coins", headers=auth(u))
    assert r.json() == {"coins": 110}

    r = client.get("/api/user/coin-transactions", headers=auth(u))
    txs = r.json()["transactions"]
    assert len(txs) == 1
    assert txs[0]["type"] == "RECHARGE"
    assert txs[0]["description"] == "Recharged 105 coins via card"
    assert txs[0]["payment_id"].startswith("payment_")


@pytest.mark.parametrize("amount", [0, -3, 0.01])
def test_http_recharge_invalid_amount(client, make_user, auth, amount):
    u = make_user(coins=5)
    r = client.post("/api/user/recharge-coins", json={"amount": amount}, headers=auth(u))
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid amount"


def test_http_recharge_missing_amount_is_bad_request(client, make_user, auth):
    u = make_user()
    r = client.post("/api/user/recharge-coins", json={}, headers=auth(u))
    assert r.status_code == 400
    assert r.json()["code"] == "BadRequest"
    assert r.json()["field"] == "amount"
