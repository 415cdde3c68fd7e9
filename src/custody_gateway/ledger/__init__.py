# Ledger Module - Per-user Audit Trail
#
# Append-only case records for every credentialed action

from .case_ledger import CaseLedger
from .records import (
    CaseDetails,
    CaseRecord,
    CaseType,
    ChatDetails,
    ImageDetails,
    KeyUpdateDetails,
    Outcome,
    PaymentDetails,
)

__all__ = [
    "CaseDetails",
    "CaseLedger",
    "CaseRecord",
    "CaseType",
    "ChatDetails",
    "ImageDetails",
    "KeyUpdateDetails",
    "Outcome",
    "PaymentDetails",
]
