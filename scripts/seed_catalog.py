#!/usr/bin/env python3
"""Seed business categories and the platform service catalog."""
import sys
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from happyinline import create_app
from happyinline.extensions import db
from happyinline.models import CatalogService, Category

CATEGORIES = [
    {"name": "Barbershop", "icon": "content-cut"},
    {"name": "Hair Salon", "icon": "hair-dryer"},
    {"name": "Nail Salon", "icon": "hand-back-right"},
    {"name": "Spa & Massage", "icon": "spa"},
    {"name": "Beauty & Makeup", "icon": "lipstick"},
]

CATALOG = [
    {"name": "Haircut", "category": "Hair", "default_duration": 30, "default_price_cents": 2500,
     "description": "Classic cut and style"},
    {"name": "Beard Trim", "category": "Grooming", "default_duration": 15, "default_price_cents": 1200,
     "description": "Shape and line up"},
    {"name": "Hot Towel Shave", "category": "Grooming", "default_duration": 30, "default_price_cents": 3000,
     "description": "Straight razor shave with hot towel"},
    {"name": "Hair Coloring", "category": "Hair", "default_duration": 90, "default_price_cents": 8500,
     "description": "Full color treatment"},
    {"name": "Manicure", "category": "Nails", "default_duration": 45, "default_price_cents": 3000,
     "description": "Nail shaping, cuticle care and polish"},
    {"name": "Pedicure", "category": "Nails", "default_duration": 60, "default_price_cents": 4500,
     "description": "Foot soak, exfoliation and polish"},
    {"name": "Swedish Massage", "category": "Massage", "default_duration": 60, "default_price_cents": 8000,
     "description": "Full body relaxation massage"},
]


def seed_catalog():
    """Insert categories and catalog services that are not present yet."""
    app = create_app()

    with app.app_context():
        db.create_all()

        added_categories = 0
        for category_data in CATEGORIES:
            if Category.query.filter_by(name=category_data["name"]).first():
                print(f"⏭️  Category {category_data['name']} already exists. Skipping...")
                continue
            db.session.add(Category(**category_data))
            added_categories += 1

        added_services = 0
        for service_data in CATALOG:
            if CatalogService.query.filter_by(name=service_data["name"]).first():
                print(f"⏭️  Catalog service {service_data['name']} already exists. Skipping...")
                continue
            db.session.add(CatalogService(**service_data))
            added_services += 1
            print(f"  ✓ Added: {service_data['name']} (${service_data['default_price_cents'] / 100:.2f})")

        db.session.commit()
        print(f"\n✅ Seeded {added_categories} categories and {added_services} catalog services")

if __name__ == "__main__":
    seed_catalog()
