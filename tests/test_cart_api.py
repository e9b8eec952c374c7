import uuid


def add(client, product_id, headers=None):
    return client.post("/api/cart/items", json={"product_id": str(product_id)}, headers=headers or {})


def test_new_client_has_empty_cart(client):
    response = client.get("/api/cart")
    assert response.status_code == 200
    assert response.json() == {"items": [], "total": 0.0, "item_count": 0}


def test_add_item_snapshots_catalog_product(client, product):
    response = add(client, product.id)
    assert response.status_code == 200
    body = response.json()
    item = body["items"][0]
    assert item["id"] == str(product.id)
    assert item["name"] == "Crème hydratante"
    assert item["slug"] == "creme-hydratante"
    assert item["image"] == "https://cdn.example.com/p.jpg"
    assert item["stock"] == 5
    assert item["quantity"] == 1
    assert body["total"] == 29.99


def test_cart_persists_between_requests(client, product):
    add(client, product.id)
    add(client, product.id)
    body = client.get("/api/cart").json()
    assert body["item_count"] == 2


def test_adding_beyond_stock_is_clamped(client, make_product):
    scarce = make_product(stock=2)
    for _ in range(4):
        response = add(client, scarce.id)
    assert response.status_code == 200
    assert response.json()["items"][0]["quantity"] == 2


def test_unknown_product_returns_404(client):
    response = add(client, uuid.uuid4())
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "PRODUCT_NOT_FOUND"


def test_inactive_product_returns_404(client, make_product):
    hidden = make_product(is_active=False)
    assert add(client, hidden.id).status_code == 404


def test_out_of_stock_product_returns_409(client, make_product):
    sold_out = make_product(stock=0)
    response = add(client, sold_out.id)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "OUT_OF_STOCK"
    assert client.get("/api/cart").json()["items"] == []


def test_update_quantity_clamps_and_removes(client, product):
    add(client, product.id)

    response = client.patch(f"/api/cart/items/{product.id}", json={"quantity": 50})
    assert response.json()["items"][0]["quantity"] == 5

    response = client.patch(f"/api/cart/items/{product.id}", json={"quantity": 0})
    assert response.json() == {"items": [], "total": 0.0, "item_count": 0}


def test_remove_and_clear(client, product, make_product):
    other = make_product(price=5.0)
    add(client, product.id)
    add(client, other.id)

    body = client.delete(f"/api/cart/items/{product.id}").json()
    assert [i["id"] for i in body["items"]] == [str(other.id)]
    assert body["total"] == 5.0

    body = client.delete("/api/cart").json()
    assert body["items"] == []


def test_load_refreshes_lines_from_catalog(client, product):
    stale = {
        "id": str(product.id),
        "name": "Old name",
        "price": 1.0,
        "image": None,
        "slug": "old",
        "stock": 99,
        "quantity": 9,
    }
    missing = {**stale, "id": str(uuid.uuid4())}
    garbage = {**stale, "id": "not-a-uuid"}

    response = client.put("/api/cart", json={"items": [stale, missing, garbage]})
    assert response.status_code == 200
    body = response.json()
    assert len(body["items"]) == 1
    item = body["items"][0]
    assert item["name"] == "Crème hydratante"
    assert item["price"] == 29.99
    assert item["quantity"] == 5


def test_anonymous_cart_is_kept_after_sign_in(client, product, auth_headers):
    add(client, product.id)
    body = client.get("/api/cart", headers=auth_headers).json()
    assert body["item_count"] == 1


def test_switching_account_clears_cart(client, product, make_user, login, auth_headers):
    add(client, product.id, headers=auth_headers)
    assert client.get("/api/cart", headers=auth_headers).json()["item_count"] == 1

    other = make_user(email="other@example.com", name="Other")
    other_headers = login(other.email)
    assert client.get("/api/cart", headers=other_headers).json()["items"] == []


def test_logout_clears_cart(client, product, auth_headers):
    add(client, product.id, headers=auth_headers)
    assert client.get("/api/cart").json()["items"] == []


def test_large_cart_fits_in_the_session_cookie(client, make_product):
    image = "https://res.cloudinary.com/immo1/image/upload/v1712345678/products/" + "x" * 80 + ".jpg"
    products = [
        make_product(name=f"Sérum réparateur intensif édition {n}", images=(image,)) for n in range(20)
    ]
    for p in products:
        response = add(client, p.id)

    assert response.json()["item_count"] == 20
    assert len(response.headers["set-cookie"]) < 4096
    assert len(client.get("/api/cart").json()["items"]) == 20


def test_saved_cart_follows_catalog_changes(client, db_session, product, make_product):
    retired = make_product(price=5.0)
    add(client, product.id)
    add(client, product.id)
    add(client, retired.id)

    product.price = 24.99
    product.stock = 1
    retired.is_active = False
    db_session.commit()

    body = client.get("/api/cart").json()
    assert [i["id"] for i in body["items"]] == [str(product.id)]
    assert body["items"][0]["price"] == 24.99
    assert body["items"][0]["quantity"] == 1
    assert body["total"] == 24.99
