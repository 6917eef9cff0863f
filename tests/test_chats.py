import pytest

from sellfast.bids import accept_bid, place_bid
from sellfast.chats import list_chats, list_messages, post_message
from sellfast.errors import BadRequest, NotFound
from sellfast.models import Chat


@pytest.fixture
def buyer(make_user):
    return make_user(role="BUYER", coins=50, name="Buyer")


@pytest.fixture
def chat(db, listing, seller, buyer):
    bid = place_bid(db, buyer, listing.id, 175, 25)
    _, c = accept_bid(db, bid.id, seller.id)
    return c


def test_clean_message_is_stored(db, chat, buyer):
    msg = post_message(db, chat.id, buyer.id, text="  Hello, is it still boxed?  ")
    assert msg.message == "Hello, is it still boxed?"
    assert msg.is_blocked is False
    assert msg.is_location is False

    db.expire_all()
    assert db.get(Chat, chat.id).blocked is False


def test_phone_number_blocks_message_and_chat(db, chat, buyer, seller):
    msg = post_message(db, chat.id, buyer.id, text="call me on 5551234567")
    assert msg.is_blocked is True
    assert msg.block_reason == "Mobile number sharing is not allowed"

    db.expire_all()
    stored = db.get(Chat, chat.id)
    assert stored.blocked is True
    assert stored.block_reason == "Mobile number sharing detected"

    with pytest.raises(NotFound):
        post_message(db, chat.id, seller.id, text="hello?")


def test_number_split_by_no_break_spaces_blocks_chat(db, chat, seller):
    msg = post_message(db, chat.id, seller.id, text="ring 06\u00a012\u00a034\u00a056")
    assert msg.is_blocked is True

    db.expire_all()
    assert db.get(Chat, chat.id).blocked is True


def test_blocked_chat_hidden_from_chat_list_but_history_readable(db, chat, buyer):
    post_message(db, chat.id, buyer.id, text="first message")
    post_message(db, chat.id, buyer.id, text="555-123-4567")

    assert list_chats(db, buyer.id) == []
    texts = [m.message for m in list_messages(db, chat.id, buyer.id)]
    assert texts == ["first message", "555-123-4567"]


def test_location_message_skips_moderation(db, chat, seller):
    msg = post_message(
        db, chat.id, seller.id, text="5551234567", latitude=33.5, longitude=-7.6, is_location=True
    )
    assert msg.is_location is True
    assert msg.message is None
    assert msg.latitude == 33.5
    assert msg.is_blocked is False

    db.expire_all()
    assert db.get(Chat, chat.id).blocked is False


def test_location_needs_coordinates(db, chat, seller):
    with pytest.raises(BadRequest):
        post_message(db, chat.id, seller.id, latitude=33.5, is_location=True)


def test_empty_text_rejected(db, chat, buyer):
    with pytest.raises(BadRequest):
        post_message(db, chat.id, buyer.id, text="   ")


def test_outsider_sees_not_found(db, chat, make_user):
    stranger = make_user(role="BUYER")
    with pytest.raises(NotFound):
        post_message(db, chat.id, stranger.id, text="hello")
    with pytest.raises(NotFound):
        list_messages(db, chat.id, stranger.id)


def test_unknown_chat(db, buyer):
    with pytest.raises(NotFound):
        post_message(db, 999, buyer.id, text="hello")


def test_messages_in_posting_order(db, chat, buyer, seller):
    post_message(db, chat.id, buyer.id, text="one")
    post_message(db, chat.id, seller.id, text="two")
    post_message(db, chat.id, buyer.id, text="three")
    assert [m.message for m in list_messages(db, chat.id, seller.id)] == ["one", "two", "three"]


# ---------------------------------------------------
# HTTP
# ---------------------------------------------------
def test_http_chat_flow(client, chat, buyer, seller, auth):
    r = client.post(f"/api/chats/{chat.id}/messages", json={"message": "hi there"}, headers=auth(buyer))
    assert r.status_code == 201, r.text
    assert r.json()["message"]["is_blocked"] is False

    r = client.get("/api/chats", headers=auth(seller))
    assert r.status_code == 200
    chats = r.json()["chats"]
    assert len(chats) == 1
    assert chats[0]["last_message"]["message"] == "hi there"
    assert chats[0]["deal"]["status"] == "IN_PROGRESS"

    r = client.post(
        f"/api/chats/{chat.id}/messages",
        json={"message": "my number is 555.123.4567"},
        headers=auth(seller),
    )
    assert r.status_code == 201
    assert r.json()["message"]["block_reason"] == "Mobile number sharing is not allowed"

    r = client.post(f"/api/chats/{chat.id}/messages", json={"message": "hello"}, headers=auth(buyer))
    assert r.status_code == 404
    assert r.json() == {"error": "Chat not found", "code": "NotFound"}

    r = client.get(f"/api/chats/{chat.id}/messages", headers=auth(buyer))
    assert r.status_code == 200
    assert len(r.json()["messages"]) == 2


def test_http_location_message(client, chat, buyer, auth):
    r = client.post(
        f"/api/chats/{chat.id}/messages",
        json={"isLocation": True, "latitude": 1.5, "longitude": 2.5},
        headers=auth(buyer),
    )
    assert r.status_code == 201
    body = r.json()["message"]
    assert body["is_location"] is True
    assert body["longitude"] == 2.5
