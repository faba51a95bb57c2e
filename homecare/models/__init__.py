# homecare/models/__init__.py
from .identity import Identity
from .profile import Profile, PatientProfile, NurseProfile, ProfileRole, Gender
from .service_area import ServiceArea, NurseServiceArea
from .slot import NurseSlot, SlotStatus, SLOT_LENGTH
from .booking import Booking, BookingStatus, LIVE_STATUSES

__all__ = [
    "Identity",
    "Profile",
    "PatientProfile",
    "NurseProfile",
    "ProfileRole",
    "Gender",
    "ServiceArea",
    "NurseServiceArea",
    "NurseSlot",
    "SlotStatus",
    "SLOT_LENGTH",
    "Booking",
    "BookingStatus",
    "LIVE_STATUSES",
]
