# orders.py - purchases, delivery status, reviews and transport requests

import logging

from flask import Blueprint, g, jsonify, request
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

import database as db
from auth import display_name, login_required, user_id
from errors import APIError, Conflict, Forbidden
from schemas import OrderForm, OrderStatusForm, ReviewForm

logger = logging.getLogger("croptrade.orders")

bp = Blueprint("orders", __name__, url_prefix="/orders")

ORDER_NOT_FOUND = "The order could not be found."


def _farmer_id(order):
    return order.get("farmerId") or (order.get("cropListing") or {}).get("farmerId")


def _with_transport_requests(orders):
    """Attach each order's transport request (or None)."""
    order_ids = [str(o["_id"]) for o in orders]
    requests_by_order_id = {
        r["orderId"]: db.serialize(r)
        for r in db.col(db.TRANSPORT_REQUESTS).find({"orderId": {"$in": order_ids}})
    }
    out = []
    for o in orders:
        item = db.serialize(o)
        item["transportRequest"] = requests_by_order_id.get(item["id"])
        out.append(item)
    return out


@bp.route("", methods=["POST"])
@login_required
def create_order():
    if g.user.get("role") != "Buyer":
        raise Forbidden('Only users with the "Buyer" role can purchase crops.')
    form = OrderForm.parse(request.get_json(silent=True))
    listing = db.find_or_404(db.LISTINGS, form.cropListingId, "The crop listing could not be found.")
    doc = {
        "buyerId": user_id(),
        "buyerName": display_name(g.user),
        "farmerId": listing.get("farmerId"),
        "cropListingId": str(listing["_id"]),
        "cropListing": db.serialize(listing),
        "quantity": form.quantity,
        "deliveryAddress": form.deliveryAddress,
        "status": "pending",
        "orderDate": db.now_iso(),
    }
    res = db.col(db.ORDERS).insert_one(doc)
    doc["_id"] = res.inserted_id
    logger.info("Order %s placed by buyer %s", res.inserted_id, user_id())
    return jsonify(db.serialize(doc)), 201


@bp.route("", methods=["GET"])
@login_required
def list_orders():
    role = g.user.get("role")
    if role == "Buyer":
        query = {"buyerId": user_id()}
    elif role == "Farmer":
        query = {"farmerId": user_id()}
    else:
        query = {}
    orders = list(db.col(db.ORDERS).find(query).sort("orderDate", DESCENDING))
    return jsonify(_with_transport_requests(orders))


@bp.route("/<order_id>/status", methods=["PATCH"])
@login_required
def update_status(order_id):
    order = db.find_or_404(db.ORDERS, order_id, ORDER_NOT_FOUND)
    if g.user.get("role") != "Admin" and _farmer_id(order) != user_id():
        raise Forbidden("You do not have permission to update this order.")
    form = OrderStatusForm.parse(request.get_json(silent=True))
    db.col(db.ORDERS).update_one({"_id": order["_id"]}, {"$set": {"status": form.status}})
    order["status"] = form.status
    logger.info("Order %s moved to %s", order_id, form.status)
    return jsonify(db.serialize(order))


@bp.route("/<order_id>/reviews", methods=["POST"])
@login_required
def review_order(order_id):
    order = db.find_or_404(db.ORDERS, order_id, ORDER_NOT_FOUND)
    if order.get("buyerId") != user_id():
        raise Forbidden("Only the buyer of this order can leave a review.")
    if order.get("status") != "delivered":
        raise APIError("You can only review delivered orders.")
    form = ReviewForm.parse(request.get_json(silent=True))
    review = {
        "orderId": str(order["_id"]),
        "buyerId": user_id(),
        "farmerId": _farmer_id(order),
        "rating": form.rating,
        "comment": form.comment,
        "reviewDate": db.now_iso(),
        "buyerName": display_name(g.user),
    }
    res = db.col(db.REVIEWS).insert_one(review)
    review["_id"] = res.inserted_id
    return jsonify({"message": "Review submitted successfully!", "review": db.serialize(review)}), 201


@bp.route("/<order_id>/transport-request", methods=["POST"])
@login_required
def request_transport(order_id):
    order = db.find_or_404(db.ORDERS, order_id, ORDER_NOT_FOUND)
    if user_id() not in (order.get("buyerId"), _farmer_id(order)):
        raise Forbidden("Only the buyer or the farmer can request transport for this order.")
    listing = order.get("cropListing") or {}
    doc = {
        "orderId": str(order["_id"]),
        "pickupLocation": listing.get("location") or "Unknown Location",
        "deliveryLocation": order.get("deliveryAddress"),
        "requiredVehicle": "Standard Truck",
        "status": "open",
        "bidCount": 0,
        "createdAt": db.now_iso(),
    }
    try:
        res = db.col(db.TRANSPORT_REQUESTS).insert_one(doc)
    except DuplicateKeyError:
        raise Conflict("A transport request already exists for this order.")
    doc["_id"] = res.inserted_id
    logger.info("Transport requested for order %s", order_id)
    return jsonify(db.serialize(doc)), 201
