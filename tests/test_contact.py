from sellfast.models import ContactForm

FORM = {"name": "Sam", "email": "sam@example.com", "subject": "Shipping", "message": "Do you ship abroad?"}


def test_anonymous_contact_form(client, db):
    r = client.post("/api/contact", json=FORM)
    assert r.status_code == 201, r.text
    form = r.json()["contact_form"]
    assert form["subject"] == "Shipping"
    assert form["user_id"] is None
    assert form["user"] is None
    assert db.query(ContactForm).count() == 1


def test_signed_in_sender_is_linked(client, make_user, auth):
    user = make_user(name="Known")
    r = client.post("/api/contact", json=FORM, headers=auth(user))
    assert r.status_code == 201
    assert r.json()["contact_form"]["user"] == {"id": user.id, "name": "Known", "email": user.email}


def test_contact_form_validation(client):
    r = client.post("/api/contact", json={**FORM, "message": "   "})
    assert r.status_code == 400
    assert r.json()["error"] == "Missing required fields"

    r = client.post("/api/contact", json={**FORM, "email": "nope"})
    assert r.status_code == 400
    assert r.json()["field"] == "email"


def test_admin_sees_newest_first(client, admin, make_user, auth):
    client.post("/api/contact", json={**FORM, "subject": "First"})
    client.post("/api/contact", json={**FORM, "subject": "Second"})

    assert client.get("/api/admin/contacts").status_code == 401
    assert client.get("/api/admin/contacts", headers=auth(make_user())).status_code == 403

    r = client.get("/api/admin/contacts", headers=auth(admin))
    assert r.status_code == 200
    assert [c["subject"] for c in r.json()["contacts"]] == ["Second", "First"]


def test_deleting_sender_keeps_the_message(client, db, admin, make_user, auth):
    user = make_user()
    client.post("/api/contact", json=FORM, headers=auth(user))

    r = client.delete(f"/api/admin/users/{user.id}", headers=auth(admin))
    assert r.status_code == 200, r.text

    contacts = client.get("/api/admin/contacts", headers=auth(admin)).json()["contacts"]
    assert len(contacts) == 1
    assert contacts[0]["user_id"] is None
