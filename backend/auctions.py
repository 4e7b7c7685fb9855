# auctions.py - timed auctions over crop listings

import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request
from pymongo import ASCENDING, ReturnDocument

import database as db
from auth import login_required, role_required, user_id
from errors import APIError, Forbidden
from schemas import AuctionBidForm, AuctionForm

logger = logging.getLogger("croptrade.auctions")

bp = Blueprint("auctions", __name__, url_prefix="/auctions")


def parse_iso(value):
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (AttributeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def leading_bid(auction):
    return auction.get("currentBid") or auction["startingBid"]


def with_min_bid(auction):
    out = db.serialize(auction)
    out["minBid"] = leading_bid(auction) + 1
    return out


def is_ended(auction):
    end = parse_iso(auction.get("endDate"))
    return auction.get("status") != "open" or end is None or end <= datetime.now(timezone.utc)


@bp.route("", methods=["GET"])
def list_auctions():
    docs = db.col(db.AUCTIONS).find({"status": "open"}).sort("endDate", ASCENDING)
    return jsonify([with_min_bid(d) for d in docs])


@bp.route("", methods=["POST"])
@role_required("Farmer")
def create_auction():
    form = AuctionForm.parse(request.get_json(silent=True))
    end = parse_iso(form.endDate)
    if end is None or end <= datetime.now(timezone.utc):
        raise APIError("error:Invalid form data.", errors={"endDate": ["End date must be in the future."]})
    listing = db.find_or_404(db.LISTINGS, form.cropListingId, "The crop listing could not be found.")
    if listing.get("farmerId") != user_id():
        raise Forbidden("You can only auction your own listings.")
    doc = {
        "cropListingId": str(listing["_id"]),
        "cropListing": db.serialize(listing),
        "farmerId": user_id(),
        "startingBid": form.startingBid,
        "currentBid": None,
        "currentBidderId": None,
        "bidderCount": 0,
        "endDate": end.isoformat(),
        "status": "open",
        "createdAt": db.now_iso(),
    }
    res = db.col(db.AUCTIONS).insert_one(doc)
    doc["_id"] = res.inserted_id
    logger.info("Auction %s opened on listing %s", res.inserted_id, doc["cropListingId"])
    return jsonify(with_min_bid(doc)), 201


@bp.route("/<auction_id>/bids", methods=["POST"])
@login_required
def place_bid(auction_id):
    auction = db.find_or_404(db.AUCTIONS, auction_id, "The auction could not be found.")
    form = AuctionBidForm.parse(request.get_json(silent=True))
    if is_ended(auction):
        raise APIError("This auction has ended.")
    current = leading_bid(auction)
    if form.bidAmount <= current:
        raise APIError(f"Your bid must be higher than the current bid of ${current:.2f}.")

    # only apply while the stored bid is still below ours
    beaten = {"$or": [
        {"currentBid": None, "startingBid": {"$lt": form.bidAmount}},
        {"currentBid": {"$lt": form.bidAmount}},
    ]}
    updated = db.col(db.AUCTIONS).find_one_and_update(
        {"_id": auction["_id"], "status": "open", **beaten},
        {"$set": {"currentBid": form.bidAmount, "currentBidderId": user_id()}, "$inc": {"bidderCount": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        latest = db.find_or_404(db.AUCTIONS, auction_id, "The auction could not be found.")
        raise APIError(f"Your bid must be higher than the current bid of ${leading_bid(latest):.2f}.")
    logger.info("Auction %s: new high bid %.2f by %s", auction_id, form.bidAmount, user_id())
    return jsonify({"message": "Bid placed successfully!", "auction": with_min_bid(updated)})
