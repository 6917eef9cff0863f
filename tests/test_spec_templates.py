from sellfast.models import BrandSpecification, CategorySpecification
from sellfast.spec_templates import DEFAULT_COMMON_SPECS


def _new_category(client, h, name):
    return client.post("/api/admin/categories", json={"name": name}, headers=h).json()["category"]["id"]


# ---------------------------------------------------
# Category templates
# ---------------------------------------------------
def test_category_template_crud(client, admin, catalog, auth):
    h = auth(admin)
    cat_id = catalog["category"].id
    url = "/api/admin/category-specifications"

    r = client.post(
        url,
        json={"categoryId": cat_id, "name": "RAM", "valueType": "select", "options": ["4GB", "8GB"], "order": 1, "isRequired": True},
        headers=h,
    )
    assert r.status_code == 201, r.text
    spec = r.json()["specification"]
    assert spec["category"] == {"id": cat_id, "name": "Mobile Phones"}
    assert spec["options"] == ["4GB", "8GB"]
    assert spec["position"] == 1
    assert spec["is_required"] is True

    r = client.post(url, json={"categoryId": cat_id, "name": "ram", "valueType": "text"}, headers=h)
    assert r.status_code == 409
    assert r.json()["conflict"] is True
    assert r.json()["specification"]["id"] == spec["id"]

    assert client.post(url, json={"categoryId": cat_id, "name": "Color"}, headers=h).status_code == 400
    r = client.post(url, json={"categoryId": cat_id, "name": "Color", "valueType": "colour"}, headers=h)
    assert r.json()["field"] == "value_type"
    assert client.post(url, json={"categoryId": 999, "name": "Color", "valueType": "text"}, headers=h).status_code == 404

    r = client.patch(f"{url}/{spec['id']}", json={"name": "Memory", "options": "6GB, 12GB"}, headers=h)
    assert r.status_code == 200, r.text
    assert r.json()["specification"]["name"] == "Memory"
    assert r.json()["specification"]["options"] == ["6GB", "12GB"]

    r = client.get(f"{url}?categoryId={cat_id}", headers=h)
    assert [s["name"] for s in r.json()["specifications"]] == ["Memory"]

    assert client.delete(f"{url}/{spec['id']}", headers=h).json() == {"success": True}
    assert client.delete(f"{url}/{spec['id']}", headers=h).status_code == 404


def test_replace_category_templates(client, db, admin, catalog, auth):
    h = auth(admin)
    cat_id = catalog["category"].id
    url = "/api/admin/category-specifications"
    client.post(url, json={"categoryId": cat_id, "name": "Color", "valueType": "text"}, headers=h)

    r = client.put(
        url,
        json={
            "categoryId": cat_id,
            "specifications": [
                {"name": "RAM", "valueType": "select", "options": ["8GB"]},
                {"name": "ram", "valueType": "select"},
                {"name": "", "valueType": "text"},
                {"name": "Weight", "valueType": "number", "order": 2},
            ],
        },
        headers=h,
    )
    assert r.status_code == 200, r.text
    assert [s["name"] for s in r.json()["specifications"]] == ["RAM", "Weight"]
    names = {s.name for s in db.query(CategorySpecification).filter(CategorySpecification.category_id == cat_id)}
    assert names == {"RAM", "Weight"}

    # nothing valid: the old list stays
    r = client.put(url, json={"categoryId": cat_id, "specifications": [{"name": "Bad"}]}, headers=h)
    assert r.status_code == 400
    db.expire_all()
    assert db.query(CategorySpecification).count() == 2

    r = client.put(url, json={"categoryId": cat_id, "specifications": []}, headers=h)
    assert r.json() == {"specifications": []}
    assert db.query(CategorySpecification).count() == 0

    assert client.put(url, json={"categoryId": cat_id}, headers=h).status_code == 400


def test_deleting_category_drops_its_templates(client, db, admin, auth):
    h = auth(admin)
    cat_id = _new_category(client, h, "Cameras")
    client.post("/api/admin/category-specifications", json={"categoryId": cat_id, "name": "Zoom", "valueType": "text"}, headers=h)

    assert client.delete(f"/api/admin/categories/{cat_id}", headers=h).status_code == 200
    db.expire_all()
    assert db.query(CategorySpecification).count() == 0


# ---------------------------------------------------
# Brand templates
# ---------------------------------------------------
def test_brand_templates(client, db, admin, catalog, auth):
    h = auth(admin)
    brand_id = catalog["company"].id
    cat_id = catalog["category"].id
    url = "/api/admin/brand-specifications"

    r = client.get(url, headers=h)
    assert r.status_code == 400
    assert r.json()["error"] == "Company ID is required"

    r = client.post(url, json={"companyId": brand_id, "name": "Warranty", "valueType": "text"}, headers=h)
    assert r.status_code == 201, r.text
    general = r.json()["specification"]
    assert general["company"] == {"id": brand_id, "name": "Acme"}
    assert general["category"] is None

    r = client.post(url, json={"companyId": brand_id, "categoryId": cat_id, "name": "Warranty", "valueType": "text"}, headers=h)
    assert r.status_code == 201
    assert client.post(url, json={"companyId": brand_id, "name": "WARRANTY", "valueType": "text"}, headers=h).status_code == 409
    assert client.post(url, json={"companyId": 999, "name": "X", "valueType": "text"}, headers=h).status_code == 404

    assert len(client.get(f"{url}?companyId={brand_id}", headers=h).json()["specifications"]) == 2
    scoped = client.get(f"{url}?companyId={brand_id}&categoryId={cat_id}", headers=h).json()["specifications"]
    assert [s["category_id"] for s in scoped] == [cat_id]

    r = client.delete(f"{url}/{general['id']}", headers=h)
    assert r.json() == {"message": "Brand specification deleted successfully"}
    assert client.delete(f"{url}/{general['id']}", headers=h).status_code == 404
    assert db.query(BrandSpecification).count() == 1


# ---------------------------------------------------
# Common specs
# ---------------------------------------------------
def test_common_specs_fall_back_to_defaults(client, admin, auth):
    r = client.get("/api/admin/configurations/common-specs", headers=auth(admin))
    assert r.status_code == 200
    specs = r.json()["common_specs"]
    assert len(specs) == len(DEFAULT_COMMON_SPECS)
    assert specs[0]["name"] == "RAM"


def test_common_specs_first_definition_wins(client, admin, catalog, auth):
    h = auth(admin)
    url = "/api/admin/category-specifications"
    laptops = _new_category(client, h, "Laptops")
    client.post(url, json={"categoryId": catalog["category"].id, "name": "Storage", "valueType": "select", "options": ["64GB"]}, headers=h)
    client.post(url, json={"categoryId": laptops, "name": "Storage", "valueType": "select", "options": ["1TB"]}, headers=h)
    client.post(url, json={"categoryId": laptops, "name": "Color", "valueType": "text", "icon": "palette"}, headers=h)

    r = client.get("/api/admin/configurations/common-specs", headers=h)
    assert r.json()["common_specs"] == [
        {"name": "Storage", "value_type": "select", "options": ["64GB"]},
        {"name": "Color", "value_type": "text", "icon": "palette"},
    ]


def test_templates_are_admin_only(client, make_user, auth):
    h = auth(make_user())
    assert client.get("/api/admin/category-specifications", headers=h).status_code == 403
    assert client.get("/api/admin/configurations/common-specs", headers=h).status_code == 403
