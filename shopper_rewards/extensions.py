"""
Flask extensions shared across the shopper rewards service.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Database (redemption ledger, feedback, rewards, payment audit trail)
db = SQLAlchemy()

# Alembic migrations
migrate = Migrate()
