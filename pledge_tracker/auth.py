import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

import bcrypt
import jwt
from flask import request, jsonify
from sqlalchemy.exc import SQLAlchemyError

from . import app, db
from .models import User

logger = logging.getLogger(__name__)


# JWT middleware
def token_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        token = request.headers.get("Authorization")
        if not token:
            logger.error("Token missing in request")
            return jsonify({"message": "Token required"}), 401
        if token.startswith("Bearer "):
            token = token[7:]
        try:
            payload = jwt.decode(token, app.config["JWT_SECRET_KEY"], algorithms=["HS256"])
            user = db.session.get(User, payload["user_id"])
            if not user:
                logger.error("User not found for token")
                return jsonify({"message": "Invalid token"}), 403
        except jwt.ExpiredSignatureError:
            logger.error("Token expired")
            return jsonify({"message": "Token expired"}), 401
        except jwt.InvalidTokenError:
            logger.error("Invalid token")
            return jsonify({"message": "Invalid token"}), 401
        return f(user, *args, **kwargs)
    return decorated


# Generate JWT
def generate_token(user_id, email):
    now = datetime.now(timezone.utc)
    payload = {
        "user_id": user_id,
        "email": email,
        "exp": now + timedelta(hours=app.config["JWT_EXPIRATION_HOURS"]),
        "iat": now
    }
    return jwt.encode(payload, app.config["JWT_SECRET_KEY"], algorithm="HS256")


# Register endpoint
@app.route("/api/register", methods=["POST"])
def register():
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    email = data.get("email")
    password = data.get("password")
    if not username or not email or not password:
        return jsonify({"message": "Username, email, and password required"}), 400
    if User.query.filter_by(username=username).first():
        return jsonify({"message": "Username already exists"}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({"message": "Email already exists"}), 400
    hashed_password = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    new_user = User(
        username=username,
        email=email,
        password=hashed_password.decode("utf-8")
    )
    try:
        db.session.add(new_user)
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Database error registering user: {str(e)}")
        db.session.rollback()
        return jsonify({"message": "Failed to register"}), 500
    logger.info(f"User registered: {username}")
    token = generate_token(new_user.id, new_user.email)
    return jsonify({"message": "User registered", "token": token}), 201


# Login endpoint
@app.route("/api/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    identifier = data.get("identifier")  # Can be username or email
    password = data.get("password") or ""
    user = User.query.filter((User.username == identifier) | (User.email == identifier)).first()
    if not user or not bcrypt.checkpw(password.encode("utf-8"), user.password.encode("utf-8")):
        logger.error(f"Failed login for {identifier}")
        return jsonify({"message": "Invalid credentials"}), 401
    token = generate_token(user.id, user.email)
    return jsonify({"token": token, "username": user.username, "email": user.email}), 200
