"""
Seed demo patient records for a doctor account.
Run with: python -m scripts.seed_patients --email doc@example.com --count 20
"""

import argparse
import asyncio
import random
from datetime import timedelta
from sqlalchemy import select, func
from clinic.database import engine, async_session, Base, utcnow
from clinic.models.patient import Patient
from clinic.schemas.patient import PatientCreate, VisitCreate
from clinic.services.auth_service import upsert_account
from clinic.services.patient_service import patient_service

FIRST_NAMES_F = ["Emily", "Sarah", "Maria", "Priya", "Fatima", "Aisha", "Elena", "Mei", "Lucia", "Anita"]
FIRST_NAMES_M = ["James", "Robert", "Raj", "Carlos", "Ahmed", "Wei", "Omar", "Diego", "Kwame", "Ivan"]
LAST_NAMES = ["Johnson", "Garcia", "Patel", "Chen", "Singh", "Ali", "Nguyen", "Santos", "Kim", "Okonkwo"]
STREETS = ["Main St", "Oak Ave", "Elm Dr", "Maple Ln", "Cedar Rd", "Park Dr", "River Rd"]
CITIES = ["Springfield", "Riverside", "Georgetown", "Fairview", "Madison"]

PROBLEMS = [
    {
        "problem": "Fever and sore throat for three days",
        "prescriptions": "Paracetamol 500mg TDS x 5 days\nAmoxicillin 500mg TDS x 7 days",
        "advisories": "Warm fluids, rest, return if fever persists beyond 3 days",
    },
    {
        "problem": "Elevated blood sugar on routine check",
        "prescriptions": "Metformin 500mg BD after meals",
        "advisories": "Low-sugar diet, 30 minutes walking daily, recheck RBS in 2 weeks",
    },
    {
        "problem": "Headaches and dizziness",
        "prescriptions": "Amlodipine 5mg OD",
        "advisories": "Reduce salt intake, monitor BP at home",
    },
    {
        "problem": "Lower back pain after lifting",
        "prescriptions": "Ibuprofen 400mg BD x 5 days\nDiclofenac gel local application",
        "advisories": "Avoid heavy lifting, hot compress twice daily",
    },
]


def generate_fields() -> dict:
    gender = random.choice(["Male", "Female"])
    first = random.choice(FIRST_NAMES_M if gender == "Male" else FIRST_NAMES_F)
    case = random.choice(PROBLEMS)
    return {
        "prefix": "Mr." if gender == "Male" else random.choice(["Ms.", "Mrs."]),
        "patient_name": f"{first} {random.choice(LAST_NAMES)}",
        "age": str(random.randint(4, 85)),
        "gender": gender,
        "weight": str(random.randint(15, 110)),
        "bp": f"{random.randint(100, 160)}/{random.randint(60, 100)}",
        "rbs": str(random.randint(70, 250)),
        "address": f"{random.randint(1, 9999)} {random.choice(STREETS)}, {random.choice(CITIES)}",
        "reference_person": f"{random.choice(FIRST_NAMES_F + FIRST_NAMES_M)} {random.choice(LAST_NAMES)}",
        "contact_number": f"9{random.randint(100000000, 999999999)}",
        "patient_problem": case["problem"],
        "medicine_prescriptions": case["prescriptions"],
        "advisories": case["advisories"],
    }


async def seed(email: str, count: int):
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with async_session() as db:
            account = await upsert_account(db, email, "doctor")
            existing = await db.scalar(select(func.count(Patient.id)).where(Patient.owner_id == account.id))
            if existing and existing >= count:
                print(f"{email} already has {existing} patients. Skipping generation.")
                return

            print(f"Generating {count} demo patients for {email}...")
            for _ in range(count):
                patient = await patient_service.create(db, account.id, PatientCreate(**generate_fields()))
                # Back-date the seeded visit and add a follow-up to some records
                if patient.visits:
                    patient.visits[0].date = utcnow() - timedelta(days=random.randint(20, 120))
                if random.random() < 0.5:
                    await patient_service.add_visit(
                        db,
                        account.id,
                        patient.id,
                        VisitCreate(
                            medicine_prescriptions="Continue current medication",
                            notes="Follow-up visit, symptoms improving",
                            bp=f"{random.randint(110, 140)}/{random.randint(70, 90)}",
                        ),
                    )
            await db.commit()
            print(f"Created {count} patients.")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo patient records")
    parser.add_argument("--email", required=True, help="Doctor account email")
    parser.add_argument("--count", type=int, default=20)
    args = parser.parse_args()
    asyncio.run(seed(args.email, args.count))
