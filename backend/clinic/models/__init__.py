from clinic.models.account import Account
from clinic.models.patient import Patient, TreatmentVisit

__all__ = ["Account", "Patient", "TreatmentVisit"]
