"""Database models."""

from app.models.appointments import appointments
from app.models.clinical_records import clinical_records
from app.models.doctor_profiles import doctor_profiles
from app.models.users import metadata, users

__all__ = [
    "appointments",
    "clinical_records",
    "doctor_profiles",
    "metadata",
    "users",
]
