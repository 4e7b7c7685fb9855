import pytest


@pytest.fixture
def order(client, listing, signup):
    doc, farmer_headers = listing
    buyer, buyer_headers = signup("Buyer", first="Meera", last="Shah")
    res = client.post("/orders", json={"cropListingId": doc["id"], "quantity": 5}, headers=buyer_headers)
    assert res.status_code == 201
    return res.get_json(), buyer_headers, farmer_headers


def test_buyer_places_order(order):
    doc, _, _ = order
    assert doc["status"] == "pending"
    assert doc["quantity"] == 5
    assert doc["deliveryAddress"] == "123 Main St, Anytown, USA"
    assert doc["cropListing"]["cropType"] == "Wheat"
    assert doc["buyerName"] == "Meera Shah"


def test_only_buyers_can_purchase(client, listing):
    doc, farmer_headers = listing
    res = client.post("/orders", json={"cropListingId": doc["id"]}, headers=farmer_headers)
    assert res.status_code == 403
    assert res.get_json()["message"] == 'Only users with the "Buyer" role can purchase crops.'


def test_orders_are_filtered_by_role(client, order, signup):
    doc, buyer_headers, farmer_headers = order
    assert [o["id"] for o in client.get("/orders", headers=buyer_headers).get_json()] == [doc["id"]]
    assert [o["id"] for o in client.get("/orders", headers=farmer_headers).get_json()] == [doc["id"]]

    _, other_buyer = signup("Buyer")
    assert client.get("/orders", headers=other_buyer).get_json() == []

    _, transporter = signup("Transporter")
    orders = client.get("/orders", headers=transporter).get_json()
    assert len(orders) == 1
    assert orders[0]["transportRequest"] is None


def test_farmer_updates_status(client, order):
    doc, buyer_headers, farmer_headers = order
    url = f"/orders/{doc['id']}/status"
    assert client.patch(url, json={"status": "shipped"}, headers=buyer_headers).status_code == 403
    res = client.patch(url, json={"status": "teleported"}, headers=farmer_headers)
    assert res.status_code == 400
    res = client.patch(url, json={"status": "shipped"}, headers=farmer_headers)
    assert res.get_json()["status"] == "shipped"


def test_review_requires_delivered_order(client, order, database):
    doc, buyer_headers, farmer_headers = order
    url = f"/orders/{doc['id']}/reviews"
    res = client.post(url, json={"rating": 5, "comment": "Lovely grain"}, headers=buyer_headers)
    assert res.status_code == 400

    client.patch(f"/orders/{doc['id']}/status", json={"status": "delivered"}, headers=farmer_headers)
    res = client.post(url, json={"rating": 0}, headers=buyer_headers)
    assert res.status_code == 400
    assert res.get_json()["errors"]["rating"] == ["Please provide a rating and a comment."]

    res = client.post(url, json={"rating": 5, "comment": "Lovely grain"}, headers=buyer_headers)
    assert res.status_code == 201
    review = res.get_json()["review"]
    assert review["farmerId"] == doc["farmerId"]
    assert review["buyerName"] == "Meera Shah"
    assert database.reviews.count_documents({"orderId": doc["id"]}) == 1


def test_only_buyer_reviews(client, order):
    doc, _, farmer_headers = order
    client.patch(f"/orders/{doc['id']}/status", json={"status": "delivered"}, headers=farmer_headers)
    res = client.post(f"/orders/{doc['id']}/reviews", json={"rating": 5, "comment": "Mine"}, headers=farmer_headers)
    assert res.status_code == 403


def test_transport_request_once_per_order(client, order, signup):
    doc, buyer_headers, farmer_headers = order
    url = f"/orders/{doc['id']}/transport-request"

    _, stranger = signup("Transporter")
    assert client.post(url, headers=stranger).status_code == 403

    res = client.post(url, headers=buyer_headers)
    assert res.status_code == 201
    req = res.get_json()
    assert req["pickupLocation"] == "Sehore, Madhya Pradesh"
    assert req["deliveryLocation"] == "123 Main St, Anytown, USA"
    assert req["requiredVehicle"] == "Standard Truck"
    assert req["status"] == "open"
    assert req["bidCount"] == 0

    assert client.post(url, headers=farmer_headers).status_code == 409

    orders = client.get("/orders", headers=buyer_headers).get_json()
    assert orders[0]["transportRequest"]["id"] == req["id"]
