"""
Python enums for every status/category column.
Values are stored as plain strings; names and values MUST stay identical.
"""

from enum import Enum


class EntityCategory(str, Enum):
    AMOUNTS = "amounts"
    DATES = "dates"
    ACCOUNT_NUMBERS = "account_numbers"
    ENTITY_NAMES = "entity_names"
    TAX_IDS = "tax_ids"


class ExtractionValidationStatus(str, Enum):
    VALIDATED = "VALIDATED"
    MANUAL_REVIEW = "MANUAL_REVIEW"


class RiskCategory(str, Enum):
    FINANCIAL = "FINANCIAL"
    OPERATIONAL = "OPERATIONAL"
    COMPLIANCE = "COMPLIANCE"
    FRAUD = "FRAUD"
    DATA_QUALITY = "DATA_QUALITY"


class AssessmentStatus(str, Enum):
    PENDING = "PENDING"
    REVIEWED = "REVIEWED"
    APPROVED = "APPROVED"
    FLAGGED = "FLAGGED"


class AnomalyType(str, Enum):
    LARGE_AMOUNT = "LARGE_AMOUNT"
    UNUSUAL_PATTERN = "UNUSUAL_PATTERN"
    MISSING_DATA = "MISSING_DATA"
    INCONSISTENCY = "INCONSISTENCY"


class ComplianceStatus(str, Enum):
    PASSED = "PASSED"
    MANUAL_REVIEW = "MANUAL_REVIEW"
    FAILED = "FAILED"


class AdjustmentKind(str, Enum):
    NONE = "none"
    FIXED_BONUS = "fixed_bonus"
    TAG_PENALTY = "tag_penalty"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    VIEW = "VIEW"
    DOWNLOAD = "DOWNLOAD"
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class WorkflowStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class StepStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    SKIPPED = "SKIPPED"


class CommentType(str, Enum):
    GENERAL = "GENERAL"
    QUESTION = "QUESTION"
    CONCERN = "CONCERN"
    APPROVAL = "APPROVAL"
    REJECTION = "REJECTION"


class CommentPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"
