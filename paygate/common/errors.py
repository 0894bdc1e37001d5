"""Typed failure kinds surfaced by checkout and reconciliation.

Every error carries a stable `code` for metrics/redirects and a short message
that is safe to show to the payer. Internal detail goes to the logs only.
"""


class PaymentGatewayError(Exception):
    """Base class for all gateway flow failures."""

    code = "error"
    default_message = "The payment could not be processed."

    def __init__(self, message: str | None = None, *, detail: str | None = None) -> None:
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message if detail is None else f"{self.message} ({detail})")


class NotConfigured(PaymentGatewayError):
    """Gateway credentials are missing for the payable's account."""

    code = "not_configured"
    default_message = "Airwallex is not configured for this item."


class AuthError(PaymentGatewayError):
    """The processor did not return a bearer token."""

    code = "auth_error"
    default_message = "Could not authenticate with Airwallex."


class IntentCreationFailed(PaymentGatewayError):
    """No usable payment intent came back from the processor."""

    code = "intent_creation_failed"
    default_message = "Could not start the Airwallex payment."


class VerificationError(PaymentGatewayError):
    """Intent status could not be fetched or parsed."""

    code = "verification_error"
    default_message = "Could not verify the payment with Airwallex."


class PaymentNotCleared(PaymentGatewayError):
    """The processor reports the intent as not succeeded."""

    code = "payment_not_cleared"
    default_message = "The payment was not completed."


class InvalidCallback(PaymentGatewayError):
    """The callback is missing required data or does not match the payable."""

    code = "invalid_callback"
    default_message = "Invalid payment callback."


class SignatureRejected(InvalidCallback):
    """A webhook delivery whose signature header did not verify."""

    code = "signature_rejected"
    default_message = "Webhook signature could not be verified."


class InternalError(PaymentGatewayError):
    code = "internal_error"
    default_message = "An internal error occurred while recording the payment."
