"""
Pydantic schemas for Rahat backend payloads and dashboard form input.

Backend bodies are camelCase (and Mongo-style `_id`); models accept both
the wire names and the snake_case field names. Form models carry the
client-side validation rules, so an invalid form never reaches the wire.
"""

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Generic, Literal, TypeVar

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from rahat_dashboard.auth.roles import RahatRole, WorkflowAction

T = TypeVar("T")


class RahatModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ── Envelopes & pagination ──

class Envelope(RahatModel, Generic[T]):
    message: str | None = None
    data: T
    success: bool | None = None
    status: int | None = None
    timestamp: datetime | None = None
    cache: bool | None = None


class CasePage(RahatModel, Generic[T]):
    """`/v1/cases` and `/v1/cases/my-pending` pagination."""
    docs: list[T] = []
    total: int = 0
    page: int = 1
    limit: int = 10
    total_pages: int = 0
    has_next_page: bool = False
    has_previous_page: bool = False


class DocsPage(RahatModel, Generic[T]):
    """`/v1/cases/ready-to-close` and search pagination."""
    docs: list[T] = []
    total_docs: int = 0
    page: int = 1
    limit: int = 10
    total_pages: int = 0
    next_page: int | bool | None = None
    prev_page: int | bool | None = None

    @property
    def has_next_page(self) -> bool:
        return bool(self.next_page)

    @property
    def has_previous_page(self) -> bool:
        return bool(self.prev_page)


# ── Case aggregate ──

class CaseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CLOSED = "closed"


class CaseType(str, Enum):
    UNNATURAL_DEATH = "unnatural-death"
    HIT_AND_RUN = "hit-and-run"


class DocumentKind(str, Enum):
    PATWARI_INSPECTION = "patwari-inspection"
    POSTMORTEM_REPORT = "postmortem-report"
    INSPECTION_REPORT = "inspection-report"


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"
    CHEQUE = "cheque"
    ONLINE = "online"

    @property
    def label(self) -> str:
        return _PAYMENT_LABELS[self]


_PAYMENT_LABELS = {
    PaymentMethod.BANK_TRANSFER: "Bank Transfer",
    PaymentMethod.CASH: "Cash",
    PaymentMethod.CHEQUE: "Cheque",
    PaymentMethod.ONLINE: "Online Payment",
}


class Relative(RahatModel):
    name: str
    contact: str
    relation: str


class Victim(RahatModel):
    name: str
    dob: str
    dod: str
    address: str
    description: str
    relative: Relative


class FileRef(RahatModel):
    id: str = Field(alias="_id")
    original_name: str | None = None
    filename: str | None = None
    mimetype: str | None = None


class CaseDocument(RahatModel):
    file_id: FileRef | str
    type: DocumentKind


class Payment(RahatModel):
    id: str = Field(alias="_id")
    status: str | None = None
    amount: float | None = None
    remark: str | None = None


class Remark(RahatModel):
    id: str | None = Field(default=None, alias="_id")
    stage: int
    remark: str
    user_id: str | None = None
    date: datetime

    @field_validator("date")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # naive timestamps are UTC on the backend
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class Case(RahatModel):
    id: str = Field(alias="_id")
    case_id: str
    victim: Victim
    stage: str
    status: CaseStatus
    current_roles: list[RahatRole] = []
    role_user_map: dict[RahatRole, str] = {}
    documents: list[CaseDocument] = []
    remarks: list[Remark] = []
    payment_id: Payment | str | None = None
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("remarks")
    @classmethod
    def _order_remarks(cls, remarks: list[Remark]) -> list[Remark]:
        return sorted(remarks, key=lambda r: (r.stage, r.date))

    @model_validator(mode="after")
    def _closed_requires_payment(self):
        if self.status == CaseStatus.CLOSED and not self.payment_id:
            raise ValueError(f"Case {self.case_id} is closed without a paymentId")
        return self

    @property
    def is_closed(self) -> bool:
        return self.status == CaseStatus.CLOSED


class WorkflowStatus(RahatModel):
    case_id: str | None = None
    stage: str
    status: CaseStatus
    current_roles: list[RahatRole] = []
    available_actions: list[WorkflowAction] = []
    next_stage: str | None = None
    can_proceed: bool = False


class WorkflowUpdate(RahatModel):
    case_id: str
    stage: str
    status: CaseStatus
    current_roles: list[RahatRole] = []
    remarks: list[Remark] = []


class WorkflowStage(RahatModel):
    stage: int
    name: str
    description: str | None = None
    roles: list[RahatRole] = []
    actions: list[WorkflowAction] = []
    next_stage: str | None = None


class DocumentType(RahatModel):
    type: str
    name: str
    description: str | None = None
    required: bool = False
    uploaded_by: str | None = None


class StageCount(RahatModel):
    stage: str
    count: int


class CaseStats(RahatModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    closed: int = 0
    by_stage: list[StageCount] = []


class ThanaIncharge(RahatModel):
    id: str = Field(alias="_id")
    name: str
    email: str | None = None
    rahat_role: RahatRole | None = None
    jurisdiction: str | None = None


class CreatedCase(RahatModel):
    case_id: str
    stage: str
    status: CaseStatus
    victim: Victim
    current_roles: list[RahatRole] = []
    role_user_map: dict[RahatRole, str] = {}
    remarks: list[Remark] = []


class LinkedDocuments(RahatModel):
    case_id: str
    documents: list[CaseDocument] = []
    remarks: list[Remark] = []


class UploadedFile(RahatModel):
    id: str
    original_name: str
    filename: str
    mimetype: str
    size: int
    uploaded_for: str | None = None
    entity_type: str | None = None
    description: str | None = None
    tags: list[str] = []
    is_public: bool = False
    file_url: str | None = None
    download_url: str | None = None


class ClosedCase(RahatModel):
    case_id: str
    stage: str
    status: CaseStatus
    payment_id: str
    remarks: list[Remark] = []


class CloseOutcome(RahatModel):
    """Result of a close request; `already_closed` is a normal terminal state."""
    outcome: Literal["closed", "already_closed"]
    case_id: str
    payment_id: str | None = None
    remarks: list[Remark] = []

    @property
    def already_closed(self) -> bool:
        return self.outcome == "already_closed"


# ── Case forms ──

def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value


Required = Annotated[str, AfterValidator(_not_blank)]


class RelativeInput(RahatModel):
    name: Required
    contact: str = Field(..., min_length=10)
    relation: Required


class VictimInput(RahatModel):
    name: Required
    dob: Required
    dod: Required
    address: Required
    description: Required
    relative: RelativeInput


class CreateCaseRequest(RahatModel):
    case_type: CaseType = CaseType.UNNATURAL_DEATH
    victim: VictimInput
    thana_incharge_id: str = Field(..., min_length=1)


class WorkflowActionRequest(RahatModel):
    action: WorkflowAction
    remark: str

    @field_validator("remark")
    @classmethod
    def _remark_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Remark is required")
        return value


class BeneficiaryDetails(RahatModel):
    name: str
    account_number: str | None = None
    bank_name: str | None = None
    ifsc_code: str | None = None

    @field_validator("name")
    @classmethod
    def _name_required(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Beneficiary name is required")
        return value


class CloseCaseRequest(RahatModel):
    amount: float = Field(..., gt=0)
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    remark: str | None = None
    beneficiary_details: BeneficiaryDetails

    @model_validator(mode="after")
    def _bank_details_for_transfer(self):
        if self.payment_method != PaymentMethod.BANK_TRANSFER:
            return self
        details = self.beneficiary_details
        missing = [
            label
            for label, value in (
                ("account number", details.account_number),
                ("bank name", details.bank_name),
                ("IFSC code", details.ifsc_code),
            )
            if not value or not value.strip()
        ]
        if missing:
            raise ValueError(f"Bank transfer requires {', '.join(missing)}")
        return self


class DocumentLink(RahatModel):
    file_id: str = Field(..., min_length=1)
    document_type: DocumentKind


class LinkDocumentsRequest(RahatModel):
    documents: list[DocumentLink] = Field(..., min_length=1)


class FileUpload(RahatModel):
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"
    uploaded_for: str
    entity_type: str
    description: str = ""
    tags: str = ""
    is_public: bool = False


# ── Auth ──

class SignInRequest(RahatModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    remember_me: bool = True


class User(RahatModel):
    id: str
    name: str
    email: str
    email_verified: bool = False
    image: str | None = None
    role: str | None = None
    rahat_role: RahatRole | None = None
    jurisdiction: str | None = None
    banned: bool | None = None
    ban_reason: str | None = None
    ban_expires: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Session(RahatModel):
    id: str
    token: str | None = None
    user_id: str
    expires_at: datetime
    ip_address: str | None = None
    user_agent: str | None = None
    impersonated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SessionInfo(RahatModel):
    session: Session
    user: User


class SignInResult(RahatModel):
    redirect: bool = False
    token: str | None = None
    user: User | dict


# ── Admin ──

_ISO_DURATION = re.compile(r"^P(?!$)(\d+Y)?(\d+M)?(\d+W)?(\d+D)?(T(?=\d)(\d+H)?(\d+M)?(\d+S)?)?$")


class UserProfileData(RahatModel):
    rahat_role: RahatRole
    jurisdiction: str | None = None


class CreateUserRequest(RahatModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1)
    data: UserProfileData


class UserChanges(RahatModel):
    email: EmailStr | None = None
    name: str | None = None
    rahat_role: RahatRole | None = None
    jurisdiction: str | None = None


class UpdateUserRequest(RahatModel):
    user_id: str
    data: UserChanges


class BanUserRequest(RahatModel):
    user_id: str
    ban_reason: str = Field(..., min_length=1)
    ban_expires_in: str | None = None  # ISO-8601 duration; None = permanent

    @field_validator("ban_expires_in")
    @classmethod
    def _iso_duration(cls, value: str | None) -> str | None:
        if value in (None, "", "permanent"):
            return None
        if not _ISO_DURATION.match(value):
            raise ValueError(f"Not an ISO-8601 duration: {value!r}")
        return value


class SetPasswordRequest(RahatModel):
    user_id: str
    new_password: str = Field(..., min_length=8)


class ListUsersParams(RahatModel):
    search_value: str | None = None
    search_field: Literal["email", "name"] | None = None
    search_operator: Literal["contains", "starts_with", "ends_with"] | None = None
    limit: int | None = Field(default=None, ge=1)
    offset: int | None = Field(default=None, ge=0)
    sort_by: str | None = None
    sort_direction: Literal["asc", "desc"] | None = None
    filter_field: str | None = None
    filter_value: str | int | bool | None = None
    filter_operator: Literal["eq", "ne", "lt", "lte", "gt", "gte"] | None = None

    def to_query(self) -> dict:
        return {k: v for k, v in self.to_wire().items() if v != ""}


class UserList(RahatModel):
    users: list[User] = []
    total: int = 0


class SessionList(RahatModel):
    sessions: list[Session] = []
