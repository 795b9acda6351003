"""Flask extension singletons, bound to the app inside ``create_app``."""
from __future__ import annotations

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
