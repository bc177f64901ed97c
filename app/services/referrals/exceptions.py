"""
Referral Service Domain Exceptions

All exceptions raised by the referral service layer.
"""


class ReferralServiceError(Exception):
    """Base exception for referral service errors"""
    pass


class InvalidReferralPayloadError(ReferralServiceError):
    """Raised when a /start payload is not a referrer id"""
    pass


class ReferralStateConflictError(ReferralServiceError):
    """Raised when a locked referral row does not change state (rolls the transaction back)"""
    pass
