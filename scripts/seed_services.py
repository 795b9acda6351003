#!/usr/bin/env python3
"""Seed the salon price list."""
import sys
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Service

# (name, category, single, combined, child, child combined, minutes)
PRICE_LIST = [
    ("SHAMPOO", "HAIR_TREATMENTS", 7000, None, 9000, None, 45),
    ("BRAIDS WASH", "HAIR_TREATMENTS", 9000, None, 12000, None, 60),
    ("PROTEIN TREATMENT", "HAIR_TREATMENTS", 10000, 15000, 12000, 17000, 60),
    ("HYDRATION DEEP TREATMENT", "HAIR_TREATMENTS", 12000, 17000, 14000, 19000, 60),
    ("FENUGREEK", "HAIR_TREATMENTS", 10000, 15000, 12000, 17000, 60),
    ("HOT OIL TREATMENT", "HAIR_TREATMENTS", 15000, 20000, 14000, 22000, 45),
    ("HENNA TREATMENT", "HAIR_TREATMENTS", 15000, 20000, 14000, 22000, 90),
    ("CHEBE TWIST", "HAIR_TREATMENTS", 15000, 20000, None, None, 120),
    ("HAIR COLORING (TEINTURE)", "HAIR_TREATMENTS", 15000, 15000, None, None, 90),
    ("NORMAL TWIST", "TWIST_HAIRSTYLE", 7000, 12000, 12000, 17000, 90),
    ("SMALL SIZE", "TWIST_HAIRSTYLE", 9000, 15000, None, None, 150),
    ("TWIST OUT", "TWIST_HAIRSTYLE", 10000, 15000, None, None, 90),
    ("CORNROWS", "CORNROWS_BRAIDS", 5000, 10000, 4000, 8000, 60),
    ("KNOTLESS BRAIDS", "CORNROWS_BRAIDS", 25000, None, 20000, None, 240),
    ("BANTU KNOTS", "STYLING", 6000, 11000, 5000, 9000, 60),
]


def seed_services():
    app = create_app()

    with app.app_context():
        added = 0
        for name, category, single, combined, child, child_combined, minutes in PRICE_LIST:
            if Service.query.filter_by(name=name).first():
                print(f"⏭️  {name} already exists. Skipping...")
                continue

            db.session.add(
                Service(
                    name=name,
                    category=category,
                    single_price=single,
                    combined_price=combined,
                    child_price=child,
                    child_combined_price=child_combined,
                    duration=minutes,
                )
            )
            added += 1
            print(f"  ✓ Added: {name} ({single} RWF)")

        db.session.commit()
        print(f"\n✅ {added} services added, {Service.query.count()} in catalogue")


if __name__ == "__main__":
    seed_services()
