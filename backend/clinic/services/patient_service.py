import logging
import random
import time
import uuid
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from clinic.database import utcnow
from clinic.exceptions import NotFoundError, ValidationError
from clinic.models.patient import Patient, TreatmentVisit
from clinic.schemas.patient import PatientCreate, PatientUpdate, VisitCreate, VisitUpdate

logger = logging.getLogger(__name__)

# Always-required fields: an empty incoming value keeps the stored one.
REQUIRED_FIELDS = ("patient_name", "age", "reference_number", "contact_number")

VITAL_FIELDS = ("weight", "bp", "rbs")

VISIT_TEXT_FIELDS = ("medicine_prescriptions", "advisories", "notes")

PATIENT_SEARCH_FIELDS = (
    "prefix", "patient_name", "age", "gender", "weight", "height", "bp", "rbs",
    "address", "reference_number", "reference_person", "contact_number", "patient_problem",
)
VISIT_SEARCH_FIELDS = VISIT_TEXT_FIELDS + VITAL_FIELDS


def generate_reference_number() -> str:
    """ID-<last 6 digits of epoch millis>-<3-digit random suffix>."""
    millis = str(int(time.time() * 1000))[-6:]
    return f"ID-{millis}-{random.randint(0, 999):03d}"


def matches_search(patient: Patient, term: str) -> bool:
    """Case-insensitive substring match over the record and its visits."""
    needle = term.lower()
    for field in PATIENT_SEARCH_FIELDS:
        value = getattr(patient, field)
        if isinstance(value, str) and needle in value.lower():
            return True
    for visit in patient.visits:
        for field in VISIT_SEARCH_FIELDS:
            value = getattr(visit, field)
            if isinstance(value, str) and needle in value.lower():
                return True
    return False


class PatientService:
    """
    CRUD over patient records and their nested visits.

    Every read and write is scoped to the calling owner. A record owned by someone
    else is reported exactly like a missing one.
    """

    async def list_patients(self, db: AsyncSession, owner_id: str, search: str = "") -> list[Patient]:
        result = await db.execute(
            select(Patient).where(Patient.owner_id == owner_id).order_by(Patient.created_at)
        )
        patients = list(result.scalars().all())
        search = (search or "").strip()
        if search:
            patients = [p for p in patients if matches_search(p, search)]
        return patients

    async def get_patient(self, db: AsyncSession, owner_id: str, patient_id: str) -> Patient:
        patient = await db.scalar(
            select(Patient).where(Patient.id == patient_id, Patient.owner_id == owner_id)
        )
        if patient is None:
            raise NotFoundError("Patient not found")
        return patient

    async def create(self, db: AsyncSession, owner_id: str, data: PatientCreate) -> Patient:
        fields = data.model_dump(exclude={"medicine_prescriptions", "advisories", "reference_number"})

        if data.reference_number:
            await self._ensure_reference_free(db, data.reference_number)
            reference_number = data.reference_number
        else:
            reference_number = await self._new_reference_number(db)

        patient = Patient(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            reference_number=reference_number,
            **fields,
        )
        if data.medicine_prescriptions or data.advisories:
            patient.visits.append(
                TreatmentVisit(
                    id=str(uuid.uuid4()),
                    date=utcnow(),
                    medicine_prescriptions=data.medicine_prescriptions or "",
                    advisories=data.advisories or "",
                )
            )

        db.add(patient)
        await self._flush(db)
        await db.refresh(patient)
        logger.info("Created patient %s (%s) for owner %s", patient.id, patient.reference_number, owner_id)
        return patient

    async def update(self, db: AsyncSession, owner_id: str, patient_id: str, data: PatientUpdate) -> Patient:
        patient = await self.get_patient(db, owner_id, patient_id)

        changes = data.model_dump(exclude_unset=True, exclude={"visits"})
        for key, value in changes.items():
            if key in REQUIRED_FIELDS and not value:
                continue
            if key == "reference_number" and value != patient.reference_number:
                await self._ensure_reference_free(db, value)
            setattr(patient, key, value)

        if data.visits is not None:
            self._replace_visits(patient, data.visits)

        await self._flush(db)
        await db.refresh(patient)
        return patient

    async def delete(self, db: AsyncSession, owner_id: str, patient_id: str) -> None:
        patient = await self.get_patient(db, owner_id, patient_id)
        await db.delete(patient)
        await db.flush()
        logger.info("Deleted patient %s for owner %s", patient_id, owner_id)

    async def add_visit(self, db: AsyncSession, owner_id: str, patient_id: str, data: VisitCreate) -> Patient:
        patient = await self.get_patient(db, owner_id, patient_id)

        visit = TreatmentVisit(
            id=str(uuid.uuid4()),
            date=utcnow(),
            medicine_prescriptions=data.medicine_prescriptions,
            advisories=data.advisories or "",
            notes=data.notes or "",
        )
        # Vitals supplied with a visit become the record's current vitals
        for field in VITAL_FIELDS:
            value = getattr(data, field)
            if value is not None:
                setattr(visit, field, value)
                setattr(patient, field, value)

        patient.visits.append(visit)
        await db.flush()
        return patient

    async def update_visit(
        self, db: AsyncSession, owner_id: str, patient_id: str, visit_id: str, data: VisitUpdate
    ) -> Patient:
        patient = await self.get_patient(db, owner_id, patient_id)
        visit = self._find_visit(patient, visit_id)

        for key, value in data.model_dump(exclude_unset=True).items():
            if key == "medicine_prescriptions" and not value:
                raise ValidationError("Medicine prescriptions cannot be empty")
            setattr(visit, key, value)

        await db.flush()
        return patient

    async def remove_visit(self, db: AsyncSession, owner_id: str, patient_id: str, visit_id: str) -> Patient:
        patient = await self.get_patient(db, owner_id, patient_id)
        visit = self._find_visit(patient, visit_id)
        patient.visits.remove(visit)
        await db.flush()
        return patient

    @staticmethod
    def _find_visit(patient: Patient, visit_id: str) -> TreatmentVisit:
        for visit in patient.visits:
            if visit.id == visit_id:
                return visit
        raise NotFoundError("Treatment entry not found")

    @staticmethod
    def _replace_visits(patient: Patient, items: list) -> None:
        """Swap in a new visit list; entries naming an existing visit id update it in place."""
        existing = {visit.id: visit for visit in patient.visits}
        replacement = []
        for item in items:
            visit = existing.pop(item.id, None) if item.id else None
            if visit is None:
                visit = TreatmentVisit(id=str(uuid.uuid4()))
            visit.date = item.date or visit.date or utcnow()
            visit.medicine_prescriptions = item.medicine_prescriptions
            visit.advisories = item.advisories
            visit.notes = item.notes
            for field in VITAL_FIELDS:
                setattr(visit, field, getattr(item, field))
            replacement.append(visit)
        patient.visits = replacement
        patient.visits.reorder()

    async def _ensure_reference_free(self, db: AsyncSession, reference_number: str) -> None:
        taken = await db.scalar(select(Patient.id).where(Patient.reference_number == reference_number))
        if taken is not None:
            raise ValidationError("Reference number already in use")

    async def _new_reference_number(self, db: AsyncSession, attempts: int = 5) -> str:
        for _ in range(attempts):
            candidate = generate_reference_number()
            taken = await db.scalar(select(Patient.id).where(Patient.reference_number == candidate))
            if taken is None:
                return candidate
        return f"ID-{uuid.uuid4().hex[:10].upper()}"

    @staticmethod
    async def _flush(db: AsyncSession) -> None:
        try:
            await db.flush()
        except IntegrityError as e:
            raise ValidationError("Reference number already in use") from e


patient_service = PatientService()
