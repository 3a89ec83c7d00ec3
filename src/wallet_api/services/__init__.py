"""
Wallet API service layer

Services wrap the document store and the object store: account identity,
user records, the document/profile-picture sagas and the reconciliation pass.
"""

from .identity import IdentityProvider, VerifiedCredential
from .user_service import UserService
from .document_service import DocumentService, get_document_service
from .reconciliation import Reconciler, UserDrift

__all__ = [
    'IdentityProvider', 'VerifiedCredential',
    'UserService',
    'DocumentService', 'get_document_service',
    'Reconciler', 'UserDrift',
]
