# auth.py - signup/login with hashed passwords and JWT bearer tokens

import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import Blueprint, current_app, g, jsonify, request
from pymongo.errors import DuplicateKeyError
from werkzeug.security import check_password_hash, generate_password_hash

import database as db
from errors import Conflict, Forbidden, Unauthorized
from schemas import LoginForm, RoleForm, SignupForm

logger = logging.getLogger("croptrade.auth")

bp = Blueprint("auth", __name__, url_prefix="/auth")


def display_name(user):
    if not user:
        return ""
    return f"{user.get('firstName', '')} {user.get('lastName', '')}".strip()


def issue_token(user_id):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": now + timedelta(hours=current_app.config["TOKEN_TTL_HOURS"]),
    }
    return jwt.encode(payload, current_app.config["JWT_SECRET_KEY"], algorithm="HS256")


def decode_token(token):
    try:
        payload = jwt.decode(token, current_app.config["JWT_SECRET_KEY"], algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Session expired. Please log in again.")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid authentication token.")
    if payload.get("type") != "access":
        raise Unauthorized("Invalid authentication token.")
    return payload


def current_user():
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        raise Unauthorized("Authentication required.")
    payload = decode_token(header[len("Bearer "):].strip())
    user = db.col(db.USERS).find_one({"_id": db.to_object_id(payload.get("sub"))})
    if user is None:
        raise Unauthorized("User no longer exists.")
    return user


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        g.user = current_user()
        return view(*args, **kwargs)
    return wrapper


def role_required(*roles):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            g.user = current_user()
            if g.user.get("role") not in roles:
                raise Forbidden(f"This action requires the {' or '.join(roles)} role.")
            return view(*args, **kwargs)
        return wrapper
    return decorator


def user_id():
    return str(g.user["_id"])


# -------------------------------
# Routes
# -------------------------------
@bp.route("/signup", methods=["POST"])
def signup():
    form = SignupForm.parse(request.get_json(silent=True))
    doc = {
        "firstName": form.firstName,
        "lastName": form.lastName,
        "email": form.email,
        "passwordHash": generate_password_hash(form.password),
        "role": "Farmer",
        "createdAt": db.now_iso(),
    }
    try:
        res = db.col(db.USERS).insert_one(doc)
    except DuplicateKeyError:
        raise Conflict("An account with this email already exists.")
    doc["_id"] = res.inserted_id
    logger.info("New user signed up: %s", form.email)
    return jsonify({"user": db.serialize(doc), "token": issue_token(res.inserted_id)}), 201


@bp.route("/login", methods=["POST"])
def login():
    form = LoginForm.parse(request.get_json(silent=True))
    user = db.col(db.USERS).find_one({"email": form.email})
    if not user or not check_password_hash(user.get("passwordHash", ""), form.password):
        raise Unauthorized("Invalid email or password")
    return jsonify({"user": db.serialize(user), "token": issue_token(user["_id"])})


@bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify({"user": db.serialize(g.user)})


@bp.route("/me/role", methods=["PATCH"])
@login_required
def switch_role():
    form = RoleForm.parse(request.get_json(silent=True))
    db.col(db.USERS).update_one({"_id": g.user["_id"]}, {"$set": {"role": form.role}})
    g.user["role"] = form.role
    logger.info("User %s switched role to %s", user_id(), form.role)
    return jsonify({"user": db.serialize(g.user)})
