from conftest import add_product


def test_add_twice_increments_quantity(client, customer, mongo):
    pid = add_product(mongo, "Mug")
    client.post("/cart", json={"product_id": pid})
    response = client.post("/cart", json={"product_id": pid})
    assert response.status_code == 200
    assert response.json() == [{"product_id": pid, "quantity": 2}]


def test_product_id_case_does_not_split_lines(client, customer, mongo):
    pid = add_product(mongo, "Mug")
    client.post("/cart", json={"product_id": pid.upper()})
    response = client.post("/cart", json={"product_id": pid})
    assert response.json() == [{"product_id": pid, "quantity": 2}]

    items = client.get("/cart").json()
    assert [item["quantity"] for item in items] == [2]

    response = client.put(f"/cart/{pid.upper()}", json={"quantity": 3})
    assert response.json() == [{"product_id": pid, "quantity": 3}]

    response = client.request("DELETE", "/cart", json={"product_id": pid.upper()})
    assert response.json() == []


def test_add_unknown_product(client, customer):
    response = client.post("/cart", json={"product_id": "64b7f0000000000000000000"})
    assert response.status_code == 404


def test_set_quantity_zero_removes_line(client, customer, mongo):
    pid = add_product(mongo, "Mug")
    other = add_product(mongo, "Lamp")
    client.post("/cart", json={"product_id": pid})
    client.post("/cart", json={"product_id": other})

    response = client.put(f"/cart/{pid}", json={"quantity": 0})
    assert response.status_code == 200
    assert response.json() == [{"product_id": other, "quantity": 1}]
    stored = mongo["user"].find_one({"email": "shopper@shop.com"})["cart_items"]
    assert all(line["quantity"] >= 1 for line in stored)


def test_set_quantity_overwrites(client, customer, mongo):
    pid = add_product(mongo, "Mug")
    client.post("/cart", json={"product_id": pid})
    response = client.put(f"/cart/{pid}", json={"quantity": 5})
    assert response.json() == [{"product_id": pid, "quantity": 5}]


def test_set_quantity_for_line_not_in_cart(client, customer, mongo):
    pid = add_product(mongo, "Mug")
    response = client.put(f"/cart/{pid}", json={"quantity": 2})
    assert response.status_code == 404
    assert response.json()["message"] == "Product not found in cart"


def test_set_negative_quantity(client, customer, mongo):
    pid = add_product(mongo, "Mug")
    client.post("/cart", json={"product_id": pid})
    assert client.put(f"/cart/{pid}", json={"quantity": -1}).status_code == 400


def test_clear_one_line_and_everything(client, customer, mongo):
    pid = add_product(mongo, "Mug")
    other = add_product(mongo, "Lamp")
    client.post("/cart", json={"product_id": pid})
    client.post("/cart", json={"product_id": other})

    response = client.request("DELETE", "/cart", json={"product_id": pid})
    assert response.json() == [{"product_id": other, "quantity": 1}]

    response = client.request("DELETE", "/cart", json={})
    assert response.json() == []


def test_get_cart_materializes_products(client, customer, mongo):
    pid = add_product(mongo, "Mug", price=10.0)
    client.post("/cart", json={"product_id": pid})
    client.post("/cart", json={"product_id": pid})

    response = client.get("/cart")
    assert response.status_code == 200
    [item] = response.json()
    assert item["id"] == pid
    assert item["name"] == "Mug"
    assert item["quantity"] == 2


def test_get_cart_skips_deleted_products(client, customer, mongo):
    pid = add_product(mongo, "Mug")
    gone = add_product(mongo, "Lamp")
    client.post("/cart", json={"product_id": pid})
    client.post("/cart", json={"product_id": gone})
    mongo["product"].delete_one({"name": "Lamp"})

    response = client.get("/cart")
    assert [item["name"] for item in response.json()] == ["Mug"]


def test_cart_requires_login(client):
    assert client.get("/cart").status_code == 401
