# database.py - MongoDB connection, collection names and document helpers

import logging
from datetime import datetime, timezone

from bson import ObjectId
from flask import current_app
from pymongo import ASCENDING, DESCENDING, MongoClient

from errors import NotFound

logger = logging.getLogger("croptrade.db")

USERS = "users"
LISTINGS = "cropListings"
ORDERS = "orders"
REVIEWS = "reviews"
AUCTIONS = "auctions"
TRANSPORT_REQUESTS = "transportRequests"
TRANSPORT_BIDS = "transportBids"
SOIL_KIT_ORDERS = "soilKitOrders"
SOIL_ANALYSES = "soilAnalyses"
TRACE_EVENTS = "traceEvents"

DEMO_TRACE_HASH = "A1B2C3D4E5"


def connect(uri, db_name):
    client = MongoClient(uri)
    db = client.get_database(db_name)
    logger.info("✅ MongoDB client ready for database %s.", db_name)
    return db


def get_db():
    return current_app.extensions["croptrade_db"]


def col(name):
    return get_db()[name]


def now_iso():
    return datetime.now(timezone.utc).isoformat()


def to_object_id(value):
    if isinstance(value, ObjectId):
        return value
    if value and ObjectId.is_valid(str(value)):
        return ObjectId(str(value))
    return None


def serialize(doc):
    """Swap Mongo's ``_id`` for a string ``id`` and drop secrets."""
    if doc is None:
        return None
    out = dict(doc)
    _id = out.pop("_id", None)
    if _id is not None:
        out["id"] = str(_id)
    out.pop("passwordHash", None)
    return out


def find_or_404(name, doc_id, message="Not found."):
    oid = to_object_id(doc_id)
    doc = col(name).find_one({"_id": oid}) if oid else None
    if doc is None:
        doc = col(name).find_one({"_id": doc_id})
    if doc is None:
        raise NotFound(message)
    return doc


def ensure_indexes(db):
    db[USERS].create_index("email", unique=True)
    db[LISTINGS].create_index("farmerId")
    db[ORDERS].create_index([("orderDate", DESCENDING)])
    db[ORDERS].create_index("buyerId")
    db[REVIEWS].create_index("farmerId")
    db[AUCTIONS].create_index("status")
    db[TRANSPORT_REQUESTS].create_index("orderId", unique=True)
    db[TRANSPORT_BIDS].create_index([("transportRequestId", ASCENDING), ("bidAmount", ASCENDING)])
    db[SOIL_KIT_ORDERS].create_index([("userId", ASCENDING), ("orderDate", DESCENDING)])
    db[SOIL_ANALYSES].create_index("userId")
    db[TRACE_EVENTS].create_index([("traceHash", ASCENDING), ("timestamp", ASCENDING)])


# Seed data
DEMO_CROPS = [
    {"id": "1", "cropType": "Wheat", "variety": "Winter Red", "pricePerUnit": 250, "quantity": 1000,
     "unit": "quintal", "imageHint": "wheat field"},
    {"id": "2", "cropType": "Corn", "variety": "Golden Bantam", "pricePerUnit": 180, "quantity": 2500,
     "unit": "quintal", "imageHint": "corn field"},
    {"id": "3", "cropType": "Tomatoes", "variety": "Roma", "pricePerUnit": 3.5, "quantity": 500,
     "unit": "kg", "imageHint": "ripe tomatoes"},
    {"id": "4", "cropType": "Carrots", "variety": "Danvers", "pricePerUnit": 1.2, "quantity": 1200,
     "unit": "kg", "imageHint": "fresh carrots"},
    {"id": "5", "cropType": "Potatoes", "variety": "Russet", "pricePerUnit": 0.8, "quantity": 5000,
     "unit": "kg", "imageHint": "fresh potatoes"},
    {"id": "6", "cropType": "Lettuce", "variety": "Iceberg", "pricePerUnit": 1.5, "quantity": 800,
     "unit": "kg", "imageHint": "lettuce"},
]

DEMO_TRACE_EVENTS = [
    ("Planted", "2023-03-15T08:00:00+00:00", "Field 4, Green Valley Farms", "Seed Variety: Winter Red"),
    ("Fertilized", "2023-05-20T10:00:00+00:00", "Field 4, Green Valley Farms", "Organic nutrient mix applied."),
    ("Harvested", "2023-08-01T14:30:00+00:00", "Field 4, Green Valley Farms", "Moisture content: 14%"),
    ("Stored", "2023-08-01T18:00:00+00:00", "Silo 2, Green Valley Farms", "Temperature: 15°C"),
    ("Shipped", "2023-08-05T09:00:00+00:00", "Central Distribution Hub", "Carrier: AgroTrans, Truck ID: T-123"),
    ("Delivered", "2023-08-06T16:00:00+00:00", "Buyer Warehouse, Cityville", "Signed by: John Doe"),
]


def seed_trace_events(db):
    """Insert the demo trace chain if the collection is empty."""
    if db[TRACE_EVENTS].count_documents({}) > 0:
        return 0
    docs = [
        {"traceHash": DEMO_TRACE_HASH, "event": event, "timestamp": ts, "location": location, "details": details}
        for event, ts, location, details in DEMO_TRACE_EVENTS
    ]
    db[TRACE_EVENTS].insert_many(docs)
    logger.info("Seeded %d trace events for %s.", len(docs), DEMO_TRACE_HASH)
    return len(docs)
