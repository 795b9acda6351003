#!/usr/bin/env python3
"""Create the back office tables on the configured database."""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backoffice import create_app
from backoffice.extensions import db


def init_database():
    app = create_app()
    with app.app_context():
        db.create_all()
        print(f"✅ Tables ready on {app.config['SQLALCHEMY_DATABASE_URI']}")


if __name__ == "__main__":
    init_database()
