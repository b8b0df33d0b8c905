#!/usr/bin/env python3
"""
Seed script — creates a realistic dataset for exercising the feed.

Creates:
  • 10 practitioners across specialties
  • A follow graph (each user follows 4 others)
  • 3 clinical cases per user (30 total) with random engagement
  • 12 forum threads
  • 4 clinics

Writes straight to the database configured in network32.config:
  DATABASE_URL_OVERRIDE=sqlite+aiosqlite:///./dev.db python scripts/seed_data.py

All user IDs are printed so you can use them in curl commands.
"""
import argparse
import asyncio
import random
from datetime import datetime, timedelta, timezone

from network32.database import AsyncSessionLocal, init_db
from network32.models import Case, Clinic, Follow, ForumThread, User


BASE_USERS = [
    ("Dr. Aisha Rao", "endodontics", "BDS, MDS"),
    ("Dr. Ben Okafor", "orthodontics", "DDS"),
    ("Dr. Carla Mendes", "periodontics", "DMD"),
    ("Dr. Dev Patel", "prosthodontics", "BDS, MDS"),
    ("Dr. Elena Petrova", "oral_surgery", "DDS, OMFS"),
    ("Dr. Farid Haddad", "general_dentistry", "BDS"),
    ("Dr. Grace Lin", "pediatric_dentistry", "DMD"),
    ("Dr. Hugo Martin", "cosmetic_dentistry", "DDS"),
    ("Dr. Ines Duarte", "oral_medicine_radiology", "BDS, MDS"),
    ("Ravi Kumar", "general_dentistry", None),
]

PROCEDURES = [
    "rct", "restorations", "cosmetics", "prosthesis", "periodontic_surgeries",
    "implants", "extractions", "surgeries", "orthodontics", "fmr",
]

THREAD_TITLES = [
    ("Rotary vs reciprocating files for curved canals?", "techniques"),
    ("Managing post-op sensitivity after composite restorations", "clinical_cases"),
    ("Intraoral scanner recommendations under $20k", "equipment"),
    ("How do you handle no-shows?", "practice_management"),
    ("Best CE courses for implantology this year", "education"),
    ("New evidence on SDF for caries arrest", "research"),
    ("Immediate loading: when do you say no?", "clinical_cases"),
    ("Rubber dam isolation tips for molars", "techniques"),
    ("Digital smile design workflow", "techniques"),
    ("Staff retention ideas", "practice_management"),
    ("CBCT before every implant?", "research"),
    ("Weekend reading recommendations", "off_topic"),
]

CLINICS = [
    ("Bright Smile Dental", "Mumbai", ["Implants", "Orthodontics"]),
    ("Harbour Endodontics", "Lisbon", ["RCT", "Retreatment"]),
    ("Kids First Dental", "Toronto", ["Pediatric care", "Sealants"]),
    ("Summit Oral Surgery", "Denver", ["Extractions", "Implants", "Bone grafts"]),
]


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


async def seed() -> list[User]:
    await init_db()
    now = _now()
    async with AsyncSessionLocal() as db:
        # ── Users ─────────────────────────────────────────────────────────
        print("Creating users...")
        users: list[User] = []
        for i, (name, specialty, degree) in enumerate(BASE_USERS):
            user = User(
                email=f"user{i}@network32.example",
                full_name=name,
                role="student" if degree is None else "professional",
                degree=degree,
                specialty=specialty,
                headline=f"{specialty.replace('_', ' ').title()} practitioner",
                location=random.choice(["Mumbai", "Lisbon", "Toronto", "Denver"]),
                onboarding_completed=True,
                created_at=now - timedelta(days=90 - i),
            )
            db.add(user)
            users.append(user)
        await db.flush()
        for u in users:
            print(f"  ✓ {u.full_name} ({u.id})")

        # ── Follow graph ──────────────────────────────────────────────────
        print("\nCreating follow relationships...")
        for follower in users:
            for followee in random.sample([u for u in users if u is not follower], k=4):
                db.add(Follow(follower_id=follower.id, following_id=followee.id))
        print("  ✓ Follow graph created")

        # ── Cases ─────────────────────────────────────────────────────────
        print("\nCreating cases...")
        cases = 0
        for user in users:
            for _ in range(3):
                created = now - timedelta(days=random.randint(0, 45), hours=random.randint(0, 23))
                procedure = random.choice(PROCEDURES)
                db.add(Case(
                    user_id=user.id,
                    title=f"{procedure.replace('_', ' ').title()} case",
                    procedure_type=procedure,
                    case_notes="Pre-op assessment, treatment and 6-month follow-up.",
                    tags=[procedure],
                    before_image_url=f"cases/{user.id}/before-{cases}.jpg",
                    after_image_url=f"cases/{user.id}/after-{cases}.jpg",
                    patient_consent_given=True,
                    consent_timestamp=created,
                    views_count=random.randint(0, 400),
                    saves_count=random.randint(0, 40),
                    created_at=created,
                    updated_at=created,
                ))
                cases += 1
        print(f"  ✓ {cases} cases created")

        # ── Threads ───────────────────────────────────────────────────────
        print("\nCreating forum threads...")
        for title, category in THREAD_TITLES:
            created = now - timedelta(days=random.randint(0, 30))
            db.add(ForumThread(
                author_id=random.choice(users).id,
                title=title,
                body="Curious how others approach this. Share your protocols.",
                category=category,
                views_count=random.randint(0, 300),
                replies_count=random.randint(0, 25),
                created_at=created,
                updated_at=created,
                last_activity_at=created + timedelta(hours=random.randint(0, 72)),
            ))
        print(f"  ✓ {len(THREAD_TITLES)} threads created")

        # ── Clinics ───────────────────────────────────────────────────────
        print("\nCreating clinics...")
        for name, location, services in CLINICS:
            created = now - timedelta(days=random.randint(10, 60))
            db.add(Clinic(
                owner_id=random.choice(users).id,
                name=name,
                location=location,
                services=services,
                created_at=created,
                updated_at=created + timedelta(days=random.randint(0, 9)),
            ))
        print(f"  ✓ {len(CLINICS)} clinics created")

        await db.commit()
    return users


def main(api_url: str) -> None:
    users = asyncio.run(seed())

    print("\n" + "=" * 60)
    print("Seed complete! Here are some commands to try:\n")
    u = users[0].id
    print(f"# Latest feed for '{users[0].full_name}':")
    print(f"  curl -s '{api_url}/feed/?user_id={u}' | python3 -m json.tool\n")
    print("# Trending cases only:")
    print(f"  curl -s '{api_url}/feed/?user_id={u}&filter=cases&sort=trending' | python3 -m json.tool\n")
    print("# Network feed + sidebar:")
    print(f"  curl -s '{api_url}/feed/?user_id={u}&sort=my_network' | python3 -m json.tool")
    print(f"  curl -s '{api_url}/feed/sidebar?user_id={u}' | python3 -m json.tool\n")
    print("# Check Jaeger traces: http://localhost:16686")
    print("# Check Prometheus: http://localhost:9090")
    print("=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Network32 database")
    parser.add_argument("--api-url", default="http://localhost:8000", help="API base URL (for printed examples)")
    args = parser.parse_args()
    main(args.api_url)
