"""Payment gateway exceptions."""


class RemoteProcessorError(Exception):
    """Raised by the Bambora client when a call fails.

    Carries the processor's own message and code so callers can wrap it
    without losing diagnostics.
    """

    def __init__(
        self,
        message: str,
        code: int | None = None,
        category: int | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.status_code = status_code


class PaymentGatewayException(Exception):
    """Base gateway exception, also used for unexpected remote failures."""

    def __init__(
        self,
        message: str = "",
        code: int | str | None = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.user_message = user_message


class HardDecline(PaymentGatewayException):
    """The processor rejected the charge or the card token."""


class UnsupportedCardType(HardDecline):
    """The processor returned a card brand code we cannot map."""


class InvalidRequestException(PaymentGatewayException):
    """The request was rejected, remotely or by a local precondition."""


class InvalidAmount(InvalidRequestException):
    """The requested amount violates a local invariant."""


class InvalidPaymentState(InvalidRequestException):
    """The operation is not allowed from the payment's current state."""
