"""Static doctor roster and default weekly availability."""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from .security import PasskeyType


# Philippine holidays for 2025
HOLIDAYS = [
    # Regular holidays
    date(2025, 1, 1),
    date(2025, 4, 9),
    date(2025, 4, 17),
    date(2025, 4, 18),
    date(2025, 5, 1),
    date(2025, 6, 12),
    date(2025, 8, 25),
    date(2025, 11, 30),
    date(2025, 12, 25),
    date(2025, 12, 30),
    # Special non-working holidays
    date(2025, 1, 25),
    date(2025, 2, 25),
    date(2025, 4, 19),
    date(2025, 8, 21),
    date(2025, 11, 1),
    date(2025, 11, 2),
    date(2025, 12, 8),
    date(2025, 12, 24),
    date(2025, 12, 31),
    # Islamic holidays (approximate)
    date(2025, 4, 11),
    date(2025, 6, 17),
]


@dataclass(frozen=True)
class DefaultAvailability:
    # ISO weekdays, 1 = Monday
    days: List[int] = field(default_factory=lambda: [1, 2, 3, 4, 5])
    start_hour: int = 8
    end_hour: int = 17
    holidays: List[date] = field(default_factory=lambda: list(HOLIDAYS))
    max_appointments_per_day: int = 10


@dataclass(frozen=True)
class Doctor:
    id: str
    name: str
    display_name: str
    image: str
    category: str
    passkey_type: PasskeyType
    availability: DefaultAvailability = field(default_factory=DefaultAvailability)


DOCTORS = [
    Doctor(
        id="dr-abundo",
        name="Abegail M. Abundo",
        display_name="Abegail M. Abundo (Medical)",
        image="/assets/images/dr-abundo.png",
        category="Medical",
        passkey_type=PasskeyType.DR_ABUNDO,
    ),
    Doctor(
        id="dr-decastro",
        name="Genevieve S. De Castro",
        display_name="Genevieve S. De Castro (Dentist)",
        image="/assets/images/dr-decastro.png",
        category="Dental",
        passkey_type=PasskeyType.DR_DECASTRO,
    ),
]

DOCTOR_CATEGORIES = sorted({doctor.category for doctor in DOCTORS})


def get_doctor(doctor_id: str) -> Optional[Doctor]:
    return next((doctor for doctor in DOCTORS if doctor.id == doctor_id), None)


def get_doctor_by_name(name: str) -> Optional[Doctor]:
    """Doctors are referenced from appointments by display name."""
    return next((doctor for doctor in DOCTORS if doctor.name == name), None)


def get_doctor_by_passkey_type(passkey_type: PasskeyType) -> Optional[Doctor]:
    return next((doctor for doctor in DOCTORS if doctor.passkey_type == passkey_type), None)
