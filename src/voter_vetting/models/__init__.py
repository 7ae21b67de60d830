"""ORM model registry: import all models so Alembic autogenerate discovers them."""

from voter_vetting.models.audit_log import AuditLog
from voter_vetting.models.jurisdiction import Jurisdiction
from voter_vetting.models.roll_import import ImportStatus, ImportType, RollImport
from voter_vetting.models.roll_voter import RollVoter, RollVoterStatus
from voter_vetting.models.supporter import Supporter, SupporterStatus, VerificationStatus

__all__ = [
    "AuditLog",
    "ImportStatus",
    "ImportType",
    "Jurisdiction",
    "RollImport",
    "RollVoter",
    "RollVoterStatus",
    "Supporter",
    "SupporterStatus",
    "VerificationStatus",
]
