# SQLModel database models

from bluecarbon.models.profile import Profile
from bluecarbon.models.project import Project
from bluecarbon.models.mrv import MRVSubmission
from bluecarbon.models.credit import Credit
from bluecarbon.models.transaction import CreditTransaction
from bluecarbon.models.audit import AuditLog

__all__ = [
    "Profile",
    "Project",
    "MRVSubmission",
    "Credit",
    "CreditTransaction",
    "AuditLog",
]
