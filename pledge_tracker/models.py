from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _utcnow():
    return datetime.now(timezone.utc)


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)


class StoreRecord(db.Model):
    # One row per (namespace, collection); the whole collection is replaced on write
    __tablename__ = "store_record"
    id = db.Column(db.Integer, primary_key=True)
    namespace = db.Column(db.String(64), nullable=False, index=True)
    collection = db.Column(db.String(64), nullable=False)
    records = db.Column(db.JSON, nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    # Bumped on every UPDATE; a write against an older version fails with StaleDataError
    version = db.Column(db.Integer, nullable=False)
    __table_args__ = (db.UniqueConstraint("namespace", "collection", name="uniq_namespace_collection"), )
    __mapper_args__ = {"version_id_col": version}
