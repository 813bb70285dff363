"""
Typed rejections raised by the AMC engine.

Every error carries a stable ``code`` and the HTTP status the API layer
renders it with. None of them is fatal to the process: each is scoped to
the operation that raised it.
"""


class AMCError(Exception):
    """Base class for engine rejections"""

    code = "amc_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ContractNotFound(AMCError):
    code = "contract_not_found"
    status_code = 404


class DuplicateAsset(AMCError):
    """An AMC already references this asset serial number"""

    code = "duplicate_asset"
    status_code = 409


class AllocationExhausted(AMCError):
    """No free contract number was found; the whole creation may be retried"""

    code = "allocation_exhausted"
    status_code = 503


class InvalidContractTerms(AMCError):
    code = "invalid_contract_terms"


class HasCompletedVisits(AMCError):
    code = "has_completed_visits"


class QuotaExceeded(AMCError):
    code = "quota_exceeded"


class InvalidVisitIndex(AMCError):
    code = "invalid_visit_index"


class InvalidVisitPayload(AMCError):
    code = "invalid_visit_payload"


class AlreadyCompleted(AMCError):
    code = "already_completed"


class ActiveContract(AMCError):
    code = "active_contract"


class HasHistory(AMCError):
    code = "has_history"


class InvalidTransition(AMCError):
    code = "invalid_transition"
