# marketplace.py - crop listings and farmer profiles

import logging

from flask import Blueprint, g, jsonify, request
from pymongo import DESCENDING

import database as db
from auth import display_name, login_required, role_required, user_id
from errors import Forbidden, NotFound
from schemas import ListingForm

logger = logging.getLogger("croptrade.marketplace")

bp = Blueprint("marketplace", __name__)

LISTING_NOT_FOUND = "The crop listing could not be found."


@bp.route("/listings", methods=["GET"])
def list_listings():
    query = {}
    farmer_id = request.args.get("farmerId")
    if farmer_id:
        query["farmerId"] = farmer_id
    docs = db.col(db.LISTINGS).find(query).sort("listingDate", DESCENDING)
    return jsonify([db.serialize(d) for d in docs])


@bp.route("/listings/<listing_id>", methods=["GET"])
def get_listing(listing_id):
    return jsonify(db.serialize(db.find_or_404(db.LISTINGS, listing_id, LISTING_NOT_FOUND)))


@bp.route("/listings", methods=["POST"])
@role_required("Farmer")
def create_listing():
    form = ListingForm.parse(request.get_json(silent=True))
    doc = form.model_dump()
    doc["imageUrl"] = doc.get("imageUrl") or ""
    doc.update({
        "farmerId": user_id(),
        "farmerName": display_name(g.user),
        "listingDate": db.now_iso(),
        "currency": "INR",
    })
    res = db.col(db.LISTINGS).insert_one(doc)
    doc["_id"] = res.inserted_id
    logger.info("Listing %s created by farmer %s", res.inserted_id, user_id())
    return jsonify(db.serialize(doc)), 201


@bp.route("/listings/<listing_id>", methods=["PUT"])
@login_required
def update_listing(listing_id):
    listing = db.find_or_404(db.LISTINGS, listing_id, LISTING_NOT_FOUND)
    if listing.get("farmerId") != user_id():
        raise Forbidden("You do not have permission to edit this listing.")
    form = ListingForm.parse(request.get_json(silent=True))
    changes = form.model_dump()
    changes["imageUrl"] = changes.get("imageUrl") or ""
    db.col(db.LISTINGS).update_one({"_id": listing["_id"]}, {"$set": changes})
    listing.update(changes)
    return jsonify(db.serialize(listing))


@bp.route("/listings/seed", methods=["POST"])
@login_required
def seed_listings():
    """Upsert the demo crops under their fixed ids, owned by the caller."""
    coll = db.col(db.LISTINGS)
    for crop in db.DEMO_CROPS:
        fields = {k: v for k, v in crop.items() if k not in ("id", "imageHint")}
        fields.update({
            "farmerId": user_id(),
            "farmerName": display_name(g.user),
            "location": "Green Valley Farms",
            "harvestDate": db.now_iso(),
            "listingDate": db.now_iso(),
            "description": f"Fresh {crop['variety']} {crop['cropType'].lower()} from Green Valley Farms.",
            "imageUrl": "https://picsum.photos/seed/{}/600/400".format(crop["imageHint"].replace(" ", "-")),
            "currency": "INR",
        })
        coll.update_one({"_id": crop["id"]}, {"$set": fields}, upsert=True)
    logger.info("Seeded %d demo listings for %s", len(db.DEMO_CROPS), user_id())
    return jsonify({"message": "Sample data added successfully.", "count": len(db.DEMO_CROPS)})


@bp.route("/farmers/<farmer_id>", methods=["GET"])
def farmer_profile(farmer_id):
    oid = db.to_object_id(farmer_id)
    farmer = db.col(db.USERS).find_one({"_id": oid}) if oid else None
    if farmer is None:
        raise NotFound("The farmer could not be found.")
    listings = db.col(db.LISTINGS).find({"farmerId": farmer_id}).sort("listingDate", DESCENDING)
    reviews = list(db.col(db.REVIEWS).find({"farmerId": farmer_id}).sort("reviewDate", DESCENDING))
    average = sum(r["rating"] for r in reviews) / len(reviews) if reviews else None
    profile = {
        "id": farmer_id,
        "firstName": farmer.get("firstName"),
        "lastName": farmer.get("lastName"),
        "name": display_name(farmer),
        "createdAt": farmer.get("createdAt"),
    }
    return jsonify({
        "farmer": profile,
        "listings": [db.serialize(d) for d in listings],
        "reviews": [db.serialize(r) for r in reviews],
        "averageRating": average,
        "reviewCount": len(reviews),
    })
