from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime
from typing import Optional

# Free-text fields that clients commonly send as numbers
NUMERIC_TEXT_FIELDS = ("age", "weight", "height", "bp", "rbs", "contact_number")


class _TextCoercion(BaseModel):
    @field_validator(*NUMERIC_TEXT_FIELDS, mode="before", check_fields=False)
    @classmethod
    def _numbers_as_text(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class VisitCreate(_TextCoercion):
    medicine_prescriptions: str = Field(..., min_length=1)
    advisories: Optional[str] = None
    notes: Optional[str] = None
    weight: Optional[str] = None
    bp: Optional[str] = None
    rbs: Optional[str] = None


class VisitUpdate(_TextCoercion):
    medicine_prescriptions: Optional[str] = None
    advisories: Optional[str] = None
    notes: Optional[str] = None
    weight: Optional[str] = None
    bp: Optional[str] = None
    rbs: Optional[str] = None


class VisitReplace(VisitCreate):
    """
    One entry of a wholesale replacement of a record's visit list.

    An entry naming an existing visit may carry an empty prescription; new
    entries need one.
    """
    id: Optional[str] = None
    date: Optional[datetime] = None
    medicine_prescriptions: str = ""

    @model_validator(mode="after")
    def _new_visit_needs_prescription(self):
        if not self.id and not self.medicine_prescriptions:
            raise ValueError("medicine_prescriptions is required for a new visit")
        return self


class VisitResponse(BaseModel):
    id: str
    date: datetime
    medicine_prescriptions: str
    advisories: Optional[str] = None
    notes: Optional[str] = None
    weight: Optional[str] = None
    bp: Optional[str] = None
    rbs: Optional[str] = None

    class Config:
        from_attributes = True


class PatientBase(_TextCoercion):
    prefix: Optional[str] = None
    patient_name: str
    age: str
    gender: Optional[str] = None
    weight: Optional[str] = None
    height: Optional[str] = None
    bp: Optional[str] = None
    rbs: Optional[str] = None
    address: Optional[str] = None
    reference_number: Optional[str] = None
    reference_person: Optional[str] = None
    contact_number: str
    patient_problem: Optional[str] = None


class PatientCreate(PatientBase):
    patient_name: str = Field(..., min_length=1)
    age: str = Field(..., min_length=1)
    contact_number: str = Field(..., min_length=1)
    # Seed the first visit
    medicine_prescriptions: Optional[str] = None
    advisories: Optional[str] = None


class PatientUpdate(_TextCoercion):
    prefix: Optional[str] = None
    patient_name: Optional[str] = None
    age: Optional[str] = None
    gender: Optional[str] = None
    weight: Optional[str] = None
    height: Optional[str] = None
    bp: Optional[str] = None
    rbs: Optional[str] = None
    address: Optional[str] = None
    reference_number: Optional[str] = None
    reference_person: Optional[str] = None
    contact_number: Optional[str] = None
    patient_problem: Optional[str] = None
    visits: Optional[list[VisitReplace]] = None


class PatientResponse(PatientBase):
    id: str
    owner_id: str
    reference_number: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    visits: list[VisitResponse] = []

    class Config:
        from_attributes = True
