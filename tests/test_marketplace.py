def test_farmer_creates_listing(listing):
    doc, _ = listing
    assert doc["farmerName"] == "Asha Patel"
    assert doc["currency"] == "INR"
    assert doc["imageUrl"] == ""
    assert doc["listingDate"]


def test_only_farmers_create_listings(client, signup):
    _, headers = signup("Buyer")
    res = client.post("/listings", json={}, headers=headers)
    assert res.status_code == 403


def test_listing_validation(client, signup):
    _, headers = signup("Farmer")
    res = client.post("/listings", json={
        "cropType": "W", "variety": "Sharbati", "quantity": -1, "unit": "kg",
        "pricePerUnit": 10, "location": "Indore", "harvestDate": "2024-04-10",
        "description": "short", "imageUrl": "ftp://nope",
    }, headers=headers)
    errors = res.get_json()["errors"]
    assert res.status_code == 400
    assert set(errors) == {"cropType", "quantity", "description", "imageUrl"}


def test_listings_sorted_newest_first_and_filtered(client, database):
    database.cropListings.insert_many([
        {"cropType": "Old", "farmerId": "f1", "listingDate": "2024-01-01T00:00:00+00:00"},
        {"cropType": "New", "farmerId": "f2", "listingDate": "2024-06-01T00:00:00+00:00"},
    ])
    names = [d["cropType"] for d in client.get("/listings").get_json()]
    assert names == ["New", "Old"]

    only = client.get("/listings?farmerId=f1").get_json()
    assert [d["cropType"] for d in only] == ["Old"]


def test_get_listing_and_404(client, listing):
    doc, _ = listing
    assert client.get(f"/listings/{doc['id']}").get_json()["variety"] == "Sharbati"
    res = client.get("/listings/doesnotexist")
    assert res.status_code == 404
    assert res.get_json()["message"] == "The crop listing could not be found."


def test_only_owner_can_edit(client, listing, signup):
    doc, owner_headers = listing
    update = {k: doc[k] for k in ("cropType", "variety", "quantity", "unit", "pricePerUnit",
                                  "location", "harvestDate", "description")}
    update["pricePerUnit"] = 2600

    _, other = signup("Farmer", first="Other")
    res = client.put(f"/listings/{doc['id']}", json=update, headers=other)
    assert res.status_code == 403
    assert res.get_json()["message"] == "You do not have permission to edit this listing."

    res = client.put(f"/listings/{doc['id']}", json=update, headers=owner_headers)
    assert res.status_code == 200
    assert client.get(f"/listings/{doc['id']}").get_json()["pricePerUnit"] == 2600


def test_seed_sample_listings(client, signup):
    user, headers = signup("Farmer")
    res = client.post("/listings/seed", headers=headers)
    assert res.get_json()["count"] == 6
    # seeding twice upserts the same ids
    client.post("/listings/seed", headers=headers)

    listings = client.get("/listings").get_json()
    assert len(listings) == 6
    tomatoes = client.get("/listings/3").get_json()
    assert tomatoes["cropType"] == "Tomatoes"
    assert tomatoes["farmerId"] == user["id"]


def test_farmer_profile_with_reviews(client, database, listing):
    doc, _ = listing
    farmer_id = doc["farmerId"]
    database.reviews.insert_many([
        {"farmerId": farmer_id, "rating": 5, "comment": "Great", "reviewDate": "2024-05-01"},
        {"farmerId": farmer_id, "rating": 4, "comment": "Good", "reviewDate": "2024-05-02"},
    ])
    body = client.get(f"/farmers/{farmer_id}").get_json()
    assert body["farmer"]["name"] == "Asha Patel"
    assert len(body["listings"]) == 1
    assert body["averageRating"] == 4.5
    assert body["reviews"][0]["comment"] == "Good"


def test_unknown_farmer(client):
    assert client.get("/farmers/0123456789abcdef01234567").status_code == 404
