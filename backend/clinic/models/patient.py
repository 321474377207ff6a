from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from clinic.database import Base, utcnow


class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True)  # UUID string
    owner_id = Column(String(36), ForeignKey("accounts.id"), nullable=False, index=True)
    prefix = Column(String(20))
    patient_name = Column(String(200), nullable=False)
    age = Column(String(20), nullable=False)
    gender = Column(String(20))
    weight = Column(String(20))
    height = Column(String(20))
    bp = Column(String(20))
    rbs = Column(String(20))
    address = Column(Text)
    reference_number = Column(String(50), unique=True, index=True, nullable=False)
    reference_person = Column(String(200))
    contact_number = Column(String(30), nullable=False)
    patient_problem = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    visits = relationship(
        "TreatmentVisit",
        back_populates="patient",
        order_by="TreatmentVisit.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class TreatmentVisit(Base):
    __tablename__ = "treatment_visits"

    id = Column(String(36), primary_key=True)  # UUID string
    patient_id = Column(String(36), ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    date = Column(DateTime(timezone=True), nullable=False)
    medicine_prescriptions = Column(Text, nullable=False)
    advisories = Column(Text)
    notes = Column(Text)
    # Vitals recorded at this visit
    weight = Column(String(20))
    bp = Column(String(20))
    rbs = Column(String(20))

    patient = relationship("Patient", back_populates="visits")
