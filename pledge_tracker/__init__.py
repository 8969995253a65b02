import logging
from flask import Flask
from flask_cors import CORS
from flask_migrate import Migrate

from .config import Config
from .models import db

# Configure logging
logging.basicConfig(level=Config.LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
app.config.from_object(Config)
CORS(app, resources={r"/api/*": {
    "origins": app.config["FRONTEND_URL"],
    "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    "allow_headers": ["Content-Type", "Authorization"]
}})
db.init_app(app)
migrate = Migrate(app, db)

# Create database tables
with app.app_context():
    db.create_all()

from . import auth, habits_api, analysis  # noqa: E402,F401
