# Ledger - Case Record Model
#
# A case record is one immutable entry in a user's audit trail. Its details
# are a tagged variant: the case type decides the fixed field set. None of
# the variants has a field that could hold a credential.

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union


class CaseType(str, Enum):
    """Kinds of actions recorded in the ledger."""
    KEY_UPDATE = "key-update"
    CHAT = "chat"
    IMAGE = "image"
    PAYMENT = "payment"


class Outcome(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class KeyUpdateDetails:
    """Credential submission. Carries slot names only."""
    slots: List[str] = field(default_factory=list)
    message: str = "Credentials updated"

    case_type = CaseType.KEY_UPDATE


@dataclass(frozen=True)
class ChatDetails:
    prompt: str
    response: Optional[str] = None
    model: str = ""
    outcome: Outcome = Outcome.SUCCEEDED
    error: Optional[str] = None

    case_type = CaseType.CHAT


@dataclass(frozen=True)
class ImageDetails:
    """Image generation. Stores the asset reference, never the asset."""
    prompt: str
    image_url: Optional[str] = None
    model: str = ""
    outcome: Outcome = Outcome.SUCCEEDED
    error: Optional[str] = None

    case_type = CaseType.IMAGE


@dataclass(frozen=True)
class PaymentDetails:
    amount: str
    currency: str = "USD"
    order_id: Optional[str] = None
    status: Optional[str] = None
    outcome: Outcome = Outcome.SUCCEEDED
    error: Optional[str] = None

    case_type = CaseType.PAYMENT


CaseDetails = Union[KeyUpdateDetails, ChatDetails, ImageDetails, PaymentDetails]

DETAILS_BY_TYPE: Dict[CaseType, Type] = {
    CaseType.KEY_UPDATE: KeyUpdateDetails,
    CaseType.CHAT: ChatDetails,
    CaseType.IMAGE: ImageDetails,
    CaseType.PAYMENT: PaymentDetails,
}


def details_to_dict(details: CaseDetails) -> Dict[str, Any]:
    data = asdict(details)
    if "outcome" in data:
        data["outcome"] = Outcome(data["outcome"]).value
    return data


def details_from_dict(case_type: CaseType, data: Dict[str, Any]) -> CaseDetails:
    """Rebuild the variant for ``case_type``, ignoring unknown keys."""
    cls = DETAILS_BY_TYPE[case_type]
    known = {f.name for f in fields(cls)}
    kwargs = {k: v for k, v in data.items() if k in known}
    if "outcome" in kwargs:
        kwargs["outcome"] = Outcome(kwargs["outcome"])
    return cls(**kwargs)


@dataclass(frozen=True)
class CaseRecord:
    """One immutable ledger entry."""

    id: str
    user_id: str
    case_type: CaseType
    details: CaseDetails
    created_at: str  # ISO-8601 UTC

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.case_type.value,
            "details": details_to_dict(self.details),
            "timestamp": self.created_at,
        }
