"""
ROBOSTORE Database Seeder

Populates the robot catalog with demo products. Robots whose name is
already in the catalog are skipped, so the seeder can be re-run.

Run with: python -m scripts.seed_database
"""

import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.database import get_database, init_firebase, is_mock_mode
from store_service.models import RobotCreate, create_robot
from store_service.models.catalog import ROBOTS_COLLECTION


DEMO_ROBOTS = [
    {
        "name": "JAXON Humanoid",
        "description": "Full-size research humanoid with 30+ actuated joints, ideal for whole-body teleoperation.",
        "price": 74999.0,
        "image": "/images/jaxon.png",
        "category": "humanoid",
        "specifications": {
            "height_cm": 188,
            "weight_kg": 127,
            "degrees_of_freedom": 33,
            "urdf_id": "jaxon_jvrc",
        },
    },
    {
        "name": "Hexapod Explorer",
        "description": "Six-legged walking platform for rough terrain with 18 servo joints.",
        "price": 1299.0,
        "image": "/images/hexapod.png",
        "category": "legged",
        "specifications": {
            "legs": 6,
            "servos": 18,
            "battery_hours": 1.5,
            "urdf_id": "hexapod_robot",
        },
    },
    {
        "name": "DeskArm 6",
        "description": "Six-axis desktop robotic arm with a parallel gripper for pick-and-place.",
        "price": 849.0,
        "image": "/images/deskarm.png",
        "category": "arm",
        "specifications": {
            "axes": 6,
            "payload_g": 500,
            "reach_mm": 420,
        },
    },
    {
        "name": "Rover Mini",
        "description": "Four-wheel skid-steer rover with camera mast and lidar mount.",
        "price": 499.0,
        "image": "/images/rover.png",
        "category": "wheeled",
        "specifications": {
            "wheels": 4,
            "top_speed_kmh": 6,
            "sensors": ["camera", "imu", "lidar-ready"],
        },
    },
]


def seed_catalog() -> int:
    """Add the demo robots that are not in the catalog yet. Returns how many were added."""
    db = get_database()
    existing = {doc.to_dict().get("name") for doc in db.collection(ROBOTS_COLLECTION).stream()}

    added = 0
    for data in DEMO_ROBOTS:
        if data["name"] in existing:
            print(f"  ⏭️ Skipped existing robot: {data['name']}")
            continue
        robot = create_robot(RobotCreate(**data))
        print(f"  ✅ Created robot: {robot.name} ({robot.category}, ${robot.price:,.2f})")
        added += 1
    return added


def main():
    """Main seeder function."""
    print("=" * 60)
    print("🌱 ROBOSTORE Database Seeder")
    print("=" * 60)

    print("\n📡 Connecting to Firebase...")
    if not init_firebase() and is_mock_mode():
        print("⚠️ Running in MEMORY MODE - data will not be persisted!")
        print("   To connect to Firestore, set FIREBASE_CREDENTIALS_PATH")
        return

    print("✅ Connected to Firestore!")
    print("\n🤖 Seeding robot catalog...")

    added = seed_catalog()

    print("\n" + "=" * 60)
    print(f"🎉 DATABASE SEEDING COMPLETE! ({added} robots added)")
    print("=" * 60)


if __name__ == "__main__":
    main()
