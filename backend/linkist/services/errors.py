"""User-facing failures of the OTP workflow.

Each exception carries the HTTP status and the message returned verbatim in
the ``error`` field of the response body.
"""


class VerificationError(Exception):
    status_code = 400
    message = "Failed to verify code"

    def __init__(self, message: str | None = None):
        if message:
            self.message = message
        super().__init__(self.message)


class MissingInput(VerificationError):
    status_code = 400
    message = "Email/Phone and OTP are required"


class NoCodeFound(VerificationError):
    status_code = 400
    message = "No verification code found. Please request a new code."


class CodeExpired(VerificationError):
    status_code = 400
    message = "Verification code has expired. Please request a new code."


class CodeMismatch(VerificationError):
    status_code = 400
    message = "Invalid verification code. Please check and try again."


class UserNotFound(VerificationError):
    status_code = 404
    message = "User account not found. Please register first."


class UserCreationFailed(VerificationError):
    status_code = 500
    message = "Failed to create user account. Please try again."


class CodeDeliveryFailed(VerificationError):
    status_code = 502
    message = "Failed to send verification code. Please try again."
