from __future__ import annotations


class DomainError(Exception):
    """Base for every error the challenge core reports to its caller."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InvalidArgument(DomainError):
    """Malformed input, rejected before any state change."""
    status_code = 422


class NotFound(DomainError):
    status_code = 404


class InvalidTransition(DomainError):
    """The requested state change is not legal from the current state."""
    status_code = 409


class ChallengeExpired(InvalidTransition):
    """The challenge window is closed; in-flight submissions are read-only."""


class Unauthorized(DomainError):
    status_code = 403


class DanglingReference(DomainError):
    """
    An award could not complete because the scout account or the challenge
    vanished after acceptance. The submission stays COMPLETED and unawarded
    until an operator reconciles it.
    """
    status_code = 500

    def __init__(self, detail: str, *, submission_id=None):
        super().__init__(detail)
        self.submission_id = submission_id
