# traceability.py - farm-to-buyer event chain per trace hash

from flask import Blueprint, jsonify, request
from pymongo import ASCENDING

import database as db
from auth import role_required
from schemas import TraceEventForm

bp = Blueprint("traceability", __name__, url_prefix="/trace")


@bp.route("/<trace_hash>", methods=["GET"])
def get_trace(trace_hash):
    docs = db.col(db.TRACE_EVENTS).find({"traceHash": trace_hash}).sort("timestamp", ASCENDING)
    return jsonify({"traceHash": trace_hash, "events": [db.serialize(d) for d in docs]})


@bp.route("/<trace_hash>/events", methods=["POST"])
@role_required("Farmer", "Admin")
def add_event(trace_hash):
    form = TraceEventForm.parse(request.get_json(silent=True))
    doc = {
        "traceHash": trace_hash,
        "event": form.event,
        "location": form.location,
        "details": form.details,
        "timestamp": form.timestamp or db.now_iso(),
    }
    res = db.col(db.TRACE_EVENTS).insert_one(doc)
    doc["_id"] = res.inserted_id
    return jsonify(db.serialize(doc)), 201
