#!/usr/bin/env python3
"""Create all Happy InLine tables in the configured database."""
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from happyinline import create_app
from happyinline.extensions import db

def init_database():
    app = create_app()
    with app.app_context():
        db.create_all()
        print(f"✅ Tables created in {app.config['SQLALCHEMY_DATABASE_URI']}")

if __name__ == "__main__":
    init_database()
