"""
Data models and status constants for the workshop engine.

Workshop lifecycle: draft -> (scheduled) -> published -> archived.
Registration lifecycle per mode:
    open        -> registered
    capped      -> registered | waitlisted | cancelled
    approval    -> pending_approval -> registered | rejected | cancelled
    level_gated -> registered | rejected (level too low) | cancelled

"registered" is the only "may attend" state; there is no separate approved
state, an approval moves pending_approval straight to registered.

Fields that are one of several shapes (registration mode, assignment type,
submission content and status, XP source, ...) are modelled as one frozen
dataclass per variant. They are stored in DynamoDB as maps with a 'type' tag.
"""
from dataclasses import dataclass, fields, MISSING
from decimal import Decimal
from typing import ClassVar, Optional, Tuple, Union

from workshop_engine.errors import ValidationError


class PublicationState:
    """Workshop publication states."""
    DRAFT = 'draft'
    SCHEDULED = 'scheduled'
    PUBLISHED = 'published'
    ARCHIVED = 'archived'


class RegistrationStatus:
    """Workshop registration statuses."""
    REGISTERED = 'registered'
    WAITLISTED = 'waitlisted'
    PENDING_APPROVAL = 'pending_approval'
    REJECTED = 'rejected'
    CANCELLED = 'cancelled'

    ACTIVE = (REGISTERED, WAITLISTED, PENDING_APPROVAL)
    ALL = (REGISTERED, WAITLISTED, PENDING_APPROVAL, REJECTED, CANCELLED)


class AttendanceMethod:
    """How an attendee was checked in."""
    CODE = 'code'
    MANUAL = 'manual'


class ReviewDecision:
    """Organizer decisions on an assignment submission."""
    APPROVED = 'approved'
    REJECTED = 'rejected'


# =============================================================================
# Tagged union machinery
# =============================================================================

def _camel(name: str) -> str:
    first, *rest = name.split('_')
    return first + ''.join(part.title() for part in rest)


def as_int(value, name: str, minimum: int = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    try:
        number = Decimal(str(value))
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError(f"{name} must be an integer")
    if number != number.to_integral_value():
        raise ValidationError(f"{name} must be an integer")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    return int(number)


def as_decimal(value, name: str) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        return Decimal(str(value))
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError(f"{name} must be a number")


def as_str(value, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} must be a non-empty string")
    return value


class _Variant:
    """Shared (de)serialization for tagged union variants."""
    type: ClassVar[str] = ''

    @classmethod
    def from_item(cls, data: dict):
        kwargs = {}
        for f in fields(cls):
            key = _camel(f.name)
            if data.get(key) is not None:
                kwargs[f.name] = data[key]
            elif f.default is MISSING and f.default_factory is MISSING:
                raise ValidationError(f"'{cls.type}' requires '{key}'")
        return cls(**kwargs)

    def to_item(self) -> dict:
        item = {'type': self.type}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, tuple):
                value = list(value)
            item[_camel(f.name)] = value
        return item


def _parse_union(variants: dict, data, label: str):
    if not isinstance(data, dict) or 'type' not in data:
        raise ValidationError(f"{label} must be an object with a 'type'")
    variant = variants.get(data['type'])
    if variant is None:
        raise ValidationError(f"Unknown {label} type '{data['type']}'")
    return variant.from_item(data)


def unreachable(value):
    """Exhaustiveness guard for isinstance dispatch over a union."""
    raise TypeError(f"Unhandled variant: {value!r}")


# =============================================================================
# Registration mode
# =============================================================================

@dataclass(frozen=True)
class OpenMode(_Variant):
    type: ClassVar[str] = 'open'


@dataclass(frozen=True)
class CappedMode(_Variant):
    type: ClassVar[str] = 'capped'
    max_capacity: int
    waitlist_enabled: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'max_capacity', as_int(self.max_capacity, 'maxCapacity', 0))
        object.__setattr__(self, 'waitlist_enabled', bool(self.waitlist_enabled))


@dataclass(frozen=True)
class ApprovalMode(_Variant):
    type: ClassVar[str] = 'approval'
    max_capacity: Optional[int] = None

    def __post_init__(self):
        if self.max_capacity is not None:
            object.__setattr__(self, 'max_capacity', as_int(self.max_capacity, 'maxCapacity', 0))


@dataclass(frozen=True)
class LevelGatedMode(_Variant):
    type: ClassVar[str] = 'level_gated'
    min_level: int
    max_capacity: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, 'min_level', as_int(self.min_level, 'minLevel', 0))
        if self.max_capacity is not None:
            object.__setattr__(self, 'max_capacity', as_int(self.max_capacity, 'maxCapacity', 0))


RegistrationMode = Union[OpenMode, CappedMode, ApprovalMode, LevelGatedMode]

_REGISTRATION_MODES = {m.type: m for m in (OpenMode, CappedMode, ApprovalMode, LevelGatedMode)}


def parse_registration_mode(data) -> Optional[RegistrationMode]:
    """Parse a stored or submitted registration mode; None when unset."""
    if data is None:
        return None
    return _parse_union(_REGISTRATION_MODES, data, 'registrationMode')


def capacity_limit(mode: RegistrationMode) -> Optional[int]:
    """Seat limit for a mode, or None when unlimited."""
    if isinstance(mode, OpenMode):
        return None
    if isinstance(mode, (CappedMode, ApprovalMode, LevelGatedMode)):
        return mode.max_capacity
    return unreachable(mode)


# =============================================================================
# Workshop location
# =============================================================================

@dataclass(frozen=True)
class OnlineLocation(_Variant):
    type: ClassVar[str] = 'online'
    link: str

    def __post_init__(self):
        as_str(self.link, 'link')


@dataclass(frozen=True)
class InPersonLocation(_Variant):
    type: ClassVar[str] = 'in-person'
    address: str
    instructions: Optional[str] = None

    def __post_init__(self):
        as_str(self.address, 'address')


Location = Union[OnlineLocation, InPersonLocation]


def parse_location(data) -> Location:
    return _parse_union({OnlineLocation.type: OnlineLocation, InPersonLocation.type: InPersonLocation},
                        data, 'location')


# =============================================================================
# Assignment type and submission content
# =============================================================================

QUIZ = 'quiz'
FILE_UPLOAD = 'file_upload'
LINK_SUBMISSION = 'link_submission'


@dataclass(frozen=True)
class QuizAssignment(_Variant):
    type: ClassVar[str] = QUIZ
    quiz_id: str

    def __post_init__(self):
        as_str(self.quiz_id, 'quizId')


@dataclass(frozen=True)
class FileUploadAssignment(_Variant):
    type: ClassVar[str] = FILE_UPLOAD
    accepted_formats: Optional[Tuple[str, ...]] = None
    max_file_size_mb: Optional[Decimal] = None

    def __post_init__(self):
        if self.accepted_formats is not None:
            if isinstance(self.accepted_formats, str):
                raise ValidationError("acceptedFormats must be a list")
            formats = tuple(as_str(f, 'acceptedFormats') for f in self.accepted_formats)
            object.__setattr__(self, 'accepted_formats', formats)
        if self.max_file_size_mb is not None:
            size = as_decimal(self.max_file_size_mb, 'maxFileSizeMb')
            if size <= 0:
                raise ValidationError("maxFileSizeMb must be positive")
            object.__setattr__(self, 'max_file_size_mb', size)


@dataclass(frozen=True)
class LinkAssignment(_Variant):
    type: ClassVar[str] = LINK_SUBMISSION
    placeholder: Optional[str] = None


AssignmentType = Union[QuizAssignment, FileUploadAssignment, LinkAssignment]


def parse_assignment_type(data) -> AssignmentType:
    return _parse_union({v.type: v for v in (QuizAssignment, FileUploadAssignment, LinkAssignment)},
                        data, 'assignmentType')


@dataclass(frozen=True)
class QuizContent(_Variant):
    type: ClassVar[str] = QUIZ
    quiz_submission_id: str

    def __post_init__(self):
        as_str(self.quiz_submission_id, 'quizSubmissionId')


@dataclass(frozen=True)
class FileUploadContent(_Variant):
    type: ClassVar[str] = FILE_UPLOAD
    file_id: str
    file_name: str

    def __post_init__(self):
        as_str(self.file_id, 'fileId')
        as_str(self.file_name, 'fileName')


@dataclass(frozen=True)
class LinkContent(_Variant):
    type: ClassVar[str] = LINK_SUBMISSION
    url: str

    def __post_init__(self):
        as_str(self.url, 'url')


SubmissionContent = Union[QuizContent, FileUploadContent, LinkContent]


def parse_submission_content(data) -> SubmissionContent:
    return _parse_union({v.type: v for v in (QuizContent, FileUploadContent, LinkContent)},
                        data, 'content')


# =============================================================================
# Submission review status
# =============================================================================

@dataclass(frozen=True)
class Submitted(_Variant):
    type: ClassVar[str] = 'submitted'


@dataclass(frozen=True)
class Approved(_Variant):
    type: ClassVar[str] = 'approved'
    reviewed_at: int
    reviewed_by: str
    xp_awarded: int
    feedback: Optional[str] = None


@dataclass(frozen=True)
class Rejected(_Variant):
    type: ClassVar[str] = 'rejected'
    reviewed_at: int
    reviewed_by: str
    feedback: Optional[str] = None


SubmissionStatus = Union[Submitted, Approved, Rejected]


def parse_submission_status(data) -> SubmissionStatus:
    return _parse_union({v.type: v for v in (Submitted, Approved, Rejected)}, data, 'status')


# =============================================================================
# XP transaction source
# =============================================================================

@dataclass(frozen=True)
class AttendanceSource(_Variant):
    type: ClassVar[str] = 'workshop_attendance'
    workshop_id: str
    attendance_id: str


@dataclass(frozen=True)
class AssignmentSource(_Variant):
    type: ClassVar[str] = 'workshop_assignment'
    workshop_id: str
    assignment_id: str
    submission_id: str


@dataclass(frozen=True)
class QuizSource(_Variant):
    type: ClassVar[str] = 'quiz'
    quiz_id: str
    submission_id: str
    question_id: str
    workshop_id: Optional[str] = None


@dataclass(frozen=True)
class ModuleSource(_Variant):
    type: ClassVar[str] = 'module'
    module_id: str


@dataclass(frozen=True)
class DailyTaskSource(_Variant):
    type: ClassVar[str] = 'dailyTask'
    date: str


XpSource = Union[AttendanceSource, AssignmentSource, QuizSource, ModuleSource, DailyTaskSource]


def parse_xp_source(data) -> XpSource:
    variants = (AttendanceSource, AssignmentSource, QuizSource, ModuleSource, DailyTaskSource)
    return _parse_union({v.type: v for v in variants}, data, 'source')


# =============================================================================
# Workshop resources
# =============================================================================

@dataclass(frozen=True)
class FileResource(_Variant):
    type: ClassVar[str] = 'file'
    file_id: str
    file_name: str
    file_size: int
    mime_type: Optional[str] = None

    def __post_init__(self):
        as_str(self.file_id, 'fileId')
        as_str(self.file_name, 'fileName')
        object.__setattr__(self, 'file_size', as_int(self.file_size, 'fileSize', 0))


@dataclass(frozen=True)
class LinkResource(_Variant):
    type: ClassVar[str] = 'link'
    url: str

    def __post_init__(self):
        as_str(self.url, 'url')


@dataclass(frozen=True)
class RichTextResource(_Variant):
    type: ClassVar[str] = 'richtext'
    body: str  # Markdown


ResourceContent = Union[FileResource, LinkResource, RichTextResource]


def parse_resource_content(data) -> ResourceContent:
    return _parse_union({v.type: v for v in (FileResource, LinkResource, RichTextResource)},
                        data, 'content')
