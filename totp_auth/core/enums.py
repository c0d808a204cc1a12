import hashlib
from enum import Enum


class TOTPAlgorithm(str, Enum):
    """HMAC algorithms supported for code generation."""

    SHA1 = "SHA1"
    SHA256 = "SHA256"
    SHA512 = "SHA512"

    @property
    def digest(self):
        """The hashlib constructor backing this algorithm."""
        return {
            TOTPAlgorithm.SHA1: hashlib.sha1,
            TOTPAlgorithm.SHA256: hashlib.sha256,
            TOTPAlgorithm.SHA512: hashlib.sha512,
        }[self]


class AuthOutcome(str, Enum):
    """Result of a single authenticate() call."""

    SUCCESS = "success"  # user authenticated
    FAILURE = "failure"  # redirect to the failure URL with a flashed message
    CONTINUE = "continue"  # code issued, waiting for the user to redeem it


class TOTPDecision(str, Enum):
    """Verdict of the attempt/expiry policy for a submitted code."""

    VALID = "valid"
    INVALID_CODE = "invalid_code"
    INACTIVE = "inactive"
    NOT_FOUND = "not_found"
