# soil_kits.py - lab soil test kit orders

import logging
import time

from flask import Blueprint, g, jsonify, request
from pymongo import DESCENDING

import database as db
from auth import login_required, role_required, user_id
from errors import APIError, Forbidden
from schemas import SoilKitUpdateForm, SoilReportForm

logger = logging.getLogger("croptrade.soil_kits")

bp = Blueprint("soil_kits", __name__, url_prefix="/soil-kits")

KIT_NOT_FOUND = "The soil kit order could not be found."


def kit_qr(uid):
    return f"SK-{uid[:5]}-{int(time.time() * 1000)}"


@bp.route("/orders", methods=["POST"])
@login_required
def order_kit():
    uid = user_id()
    doc = {
        "userId": uid,
        "status": "ordered",
        "orderDate": db.now_iso(),
        "trackingId": None,
        "soilKitQr": kit_qr(uid),
        "labReportUrl": None,
    }
    res = db.col(db.SOIL_KIT_ORDERS).insert_one(doc)
    doc["_id"] = res.inserted_id
    logger.info("Soil kit ordered by %s", uid)
    return jsonify(db.serialize(doc)), 201


@bp.route("/orders", methods=["GET"])
@login_required
def list_kits():
    query = {} if g.user.get("role") == "Admin" else {"userId": user_id()}
    docs = db.col(db.SOIL_KIT_ORDERS).find(query).sort("orderDate", DESCENDING)
    return jsonify([db.serialize(d) for d in docs])


@bp.route("/orders/<order_id>", methods=["DELETE"])
@login_required
def cancel_kit(order_id):
    kit = db.find_or_404(db.SOIL_KIT_ORDERS, order_id, KIT_NOT_FOUND)
    if kit.get("userId") != user_id():
        raise Forbidden("You can only cancel your own soil kit orders.")
    if kit.get("status") != "ordered":
        raise APIError("This order can no longer be cancelled.")
    db.col(db.SOIL_KIT_ORDERS).delete_one({"_id": kit["_id"]})
    return jsonify({"message": "Soil kit order cancelled."})


@bp.route("/orders/<order_id>", methods=["PATCH"])
@role_required("Admin")
def update_kit(order_id):
    kit = db.find_or_404(db.SOIL_KIT_ORDERS, order_id, KIT_NOT_FOUND)
    form = SoilKitUpdateForm.parse(request.get_json(silent=True))
    changes = {"status": form.status}
    if form.trackingId is not None:
        changes["trackingId"] = form.trackingId
    db.col(db.SOIL_KIT_ORDERS).update_one({"_id": kit["_id"]}, {"$set": changes})
    kit.update(changes)
    return jsonify(db.serialize(kit))


@bp.route("/orders/<order_id>/report", methods=["POST"])
@role_required("Admin")
def upload_report(order_id):
    kit = db.find_or_404(db.SOIL_KIT_ORDERS, order_id, KIT_NOT_FOUND)
    form = SoilReportForm.parse(request.get_json(silent=True))
    changes = {"status": "completed", "labReportUrl": form.labReportUrl}
    db.col(db.SOIL_KIT_ORDERS).update_one({"_id": kit["_id"]}, {"$set": changes})
    kit.update(changes)
    logger.info("Lab report attached to soil kit %s", order_id)
    return jsonify(db.serialize(kit))
