"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Requested entity does not exist"""

    pass


class TransferNotFoundError(NotFoundError):
    """No transfer with the given id"""

    pass


class CorridorUnavailableError(NotFoundError):
    """Corridor is not configured or is disabled"""

    pass


class PartnerNotFoundError(NotFoundError):
    """No settlement partner with the given id"""

    pass


class InvalidStateError(DomainException):
    """Operation is not allowed from the transfer's current status"""

    pass


class StaleTransferError(InvalidStateError):
    """Compare-and-swap on transfer status lost to a concurrent writer"""

    pass


class DuplicateTransferError(DomainException):
    """Transfer id or tracking number is already taken"""

    pass


class AmountOutOfBoundsError(DomainException):
    """Amount is outside corridor or payment method limits"""

    pass


class ValidationError(DomainException):
    """Transfer request is malformed"""

    pass


class ExternalServiceError(DomainException):
    """A collaborator service is unreachable or returned an error"""

    retryable = False


class RateProviderError(ExternalServiceError):
    """Rate provider failed or returned an unusable rate"""

    pass


class ScreeningError(ExternalServiceError):
    """Compliance screening provider failed"""

    pass


class PaymentVerificationError(ExternalServiceError):
    """Payment verifier is unreachable or errored (not a rejected payment)"""

    retryable = True


class PartnerGatewayError(ExternalServiceError):
    """Partner API returned an error"""

    pass


class PartnerTimeoutError(PartnerGatewayError):
    """Partner call exceeded its deadline; outcome unknown"""

    retryable = True
