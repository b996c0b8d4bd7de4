from typing import Optional

class SafeTravelerError(Exception):
    """Base class for errors raised by the service layer"""

class ConfigurationError(SafeTravelerError):
    """Required configuration is missing; the app cannot start"""

class BackendUnavailableError(SafeTravelerError):
    """The document store could not complete an operation"""

class RecordNotFoundError(SafeTravelerError):
    def __init__(self, collection: str, record_id: str):
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"{collection} record {record_id} not found")

# User-facing messages keyed by identity error code
IDENTITY_ERROR_MESSAGES: dict[str, str] = {
    "auth/email-already-in-use": "An account with this email already exists.",
    "auth/weak-password": "Password is too weak.",
    "auth/user-not-found": "No account found for this email.",
    "auth/wrong-password": "Incorrect password.",
    "auth/invalid-session": "Your session has expired. Please sign in again.",
    "auth/profile-not-found": "User profile not found.",
    "auth/network-request-failed": "Network error. Please check your connection and try again.",
}

class IdentityError(SafeTravelerError):
    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        super().__init__(message or describe_error(code))

def describe_error(code: str) -> str:
    return IDENTITY_ERROR_MESSAGES.get(code, "Something went wrong. Please try again.")
