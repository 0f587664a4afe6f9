"""
Error taxonomy for the issuance / verification pipeline.

Each error carries the HTTP status the API layer maps it to and a stable,
client-safe message. Internal details go into ``extra`` and the logs only.
"""

from typing import Any, Dict, Optional


class CredentialPipelineError(Exception):
    """Base class for every pipeline failure"""

    status_code = 500

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}


class MissingParameters(CredentialPipelineError):
    """Caller omitted a required input"""
    status_code = 400


class InvalidDIDFormat(CredentialPipelineError):
    """DID does not match the did:hedera scheme"""
    status_code = 400


class ResolutionFailure(CredentialPipelineError):
    """Ledger lookup for a DID failed or the account does not exist"""
    status_code = 400


class RegistrationFailure(CredentialPipelineError):
    """Ledger rejected account creation"""
    status_code = 500


class StorageFailure(CredentialPipelineError):
    """Content store transport or service error"""
    status_code = 500


class NotFound(StorageFailure):
    """Content reference is unknown to the content store"""


class AnchorFailure(CredentialPipelineError):
    """Anchor log append did not confirm with a success receipt"""
    status_code = 500


class LedgerError(CredentialPipelineError):
    """Ledger network call failed before a receipt was obtained"""
    status_code = 500


class MissingProof(CredentialPipelineError):
    """Proof block absent, incomplete, or bound to another key"""
    status_code = 400


class InternalError(CredentialPipelineError):
    """Unexpected failure"""
    status_code = 500


class SigningFailure(InternalError):
    """Issuer key could not produce a signature"""
