# transport.py - open transport requests and transporter bids

import logging

from flask import Blueprint, g, jsonify, request
from pymongo import ASCENDING, DESCENDING

import database as db
from auth import display_name, login_required, role_required, user_id
from schemas import TransportBidForm

logger = logging.getLogger("croptrade.transport")

bp = Blueprint("transport", __name__, url_prefix="/transport-requests")

REQUEST_NOT_FOUND = "The transport request could not be found."


@bp.route("", methods=["GET"])
@login_required
def list_requests():
    query = {}
    status = request.args.get("status")
    if status:
        query["status"] = status
    docs = db.col(db.TRANSPORT_REQUESTS).find(query).sort("createdAt", DESCENDING)
    return jsonify([db.serialize(d) for d in docs])


@bp.route("/<request_id>", methods=["GET"])
@login_required
def get_request(request_id):
    req = db.find_or_404(db.TRANSPORT_REQUESTS, request_id, REQUEST_NOT_FOUND)
    bids = db.col(db.TRANSPORT_BIDS).find({"transportRequestId": str(req["_id"])}).sort("bidAmount", ASCENDING)
    out = db.serialize(req)
    out["bids"] = [db.serialize(b) for b in bids]
    return jsonify(out)


@bp.route("/<request_id>/bids", methods=["POST"])
@role_required("Transporter")
def place_bid(request_id):
    req = db.find_or_404(db.TRANSPORT_REQUESTS, request_id, REQUEST_NOT_FOUND)
    form = TransportBidForm.parse(request.get_json(silent=True))
    bid = {
        "transportRequestId": str(req["_id"]),
        "transporterId": user_id(),
        "transporterName": display_name(g.user) or "Anonymous Transporter",
        "bidAmount": form.bidAmount,
        "estimatedDeliveryDate": form.estimatedDeliveryDate,
        "status": "pending",
        "createdAt": db.now_iso(),
    }
    res = db.col(db.TRANSPORT_BIDS).insert_one(bid)
    db.col(db.TRANSPORT_REQUESTS).update_one({"_id": req["_id"]}, {"$inc": {"bidCount": 1}})
    bid["_id"] = res.inserted_id
    logger.info("Bid of %.2f placed on transport request %s", form.bidAmount, request_id)
    return jsonify({"message": "Your bid has been placed successfully.", "bid": db.serialize(bid)}), 201
