"""
JSON schemas for NoSQL document validation.
This module defines schemas for validating documents in the NoSQL collections.
"""

from typing import Dict, Any
import jsonschema


# A descriptor inside users.documents is either a bare document id (legacy)
# or a descriptor object carrying at least the docId.
DOCUMENT_DESCRIPTOR_JSON_SCHEMA = {
    "oneOf": [
        {"type": "string", "minLength": 1},
        {
            "type": "object",
            "properties": {
                "docId": {"type": "string", "minLength": 1},
                "docName": {"type": ["string", "null"]},
                "docType": {"type": ["string", "null"]},
                "docSize": {"type": ["integer", "null"], "minimum": 0},
                "uploadedTime": {"type": ["string", "null"]},
                "isDocShow": {"type": "boolean"}
            },
            "required": ["docId"],
            "additionalProperties": True
        }
    ]
}

USER_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "uid": {"type": "string", "minLength": 1},
        "email": {"type": ["string", "null"]},
        "displayName": {"type": ["string", "null"]},
        "emailVerified": {"type": "boolean"},
        "mobileNumber": {"type": ["string", "null"]},
        "masterPin": {"type": ["string", "null"]},
        "QR": {"type": ["string", "null"]},
        "documents": {"type": "array", "items": DOCUMENT_DESCRIPTOR_JSON_SCHEMA},
        "totalSize": {"type": "integer", "minimum": 0},
        "profilePicture": {"type": ["string", "null"]},
        "profilePicturePath": {"type": ["string", "null"]},
        "createdAt": {"type": ["string", "null"], "format": "date-time"},
        "updatedAt": {"type": ["string", "null"], "format": "date-time"},
        "lastLoginAt": {"type": ["string", "null"], "format": "date-time"},
        "lastLogoutAt": {"type": ["string", "null"], "format": "date-time"}
    },
    "required": ["uid", "documents", "totalSize"],
    # registration may carry arbitrary extra profile fields
    "additionalProperties": True
}

DOCUMENT_RECORD_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "userId": {"type": "string", "minLength": 1},
        "fileName": {"type": "string", "minLength": 1},
        "storagePath": {"type": "string", "minLength": 1, "maxLength": 1024},
        "downloadURL": {"type": ["string", "null"]},
        "fileSize": {"type": "integer", "minimum": 0},
        "mimeType": {"type": "string", "minLength": 1},
        "documentType": {"type": ["string", "null"]},
        "description": {"type": ["string", "null"]},
        "uploadedAt": {"type": "string", "format": "date-time"},
        "updatedAt": {"type": "string", "format": "date-time"}
    },
    "required": ["userId", "fileName", "storagePath", "fileSize", "mimeType", "uploadedAt"],
    "additionalProperties": False
}

ACCOUNT_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "uid": {"type": "string", "minLength": 1},
        "email": {"type": "string", "minLength": 3},
        "displayName": {"type": ["string", "null"]},
        "passwordHash": {"type": "string", "minLength": 1},
        "emailVerified": {"type": "boolean"},
        "tokensValidAfter": {"type": ["number", "null"], "minimum": 0},
        "createdAt": {"type": ["string", "null"], "format": "date-time"}
    },
    "required": ["uid", "email", "passwordHash"],
    "additionalProperties": False
}


def validate_user_document(document: Dict[str, Any]) -> None:
    """Validate a user document against the schema"""
    jsonschema.validate(document, USER_JSON_SCHEMA)


def validate_document_record(document: Dict[str, Any]) -> None:
    """Validate a document record against the schema"""
    jsonschema.validate(document, DOCUMENT_RECORD_JSON_SCHEMA)


def validate_account_document(document: Dict[str, Any]) -> None:
    """Validate an account document against the schema"""
    jsonschema.validate(document, ACCOUNT_JSON_SCHEMA)


# Schema mapping for easy access
DOCUMENT_SCHEMAS = {
    'users': USER_JSON_SCHEMA,
    'documents': DOCUMENT_RECORD_JSON_SCHEMA,
    'accounts': ACCOUNT_JSON_SCHEMA
}

DOCUMENT_VALIDATORS = {
    'users': validate_user_document,
    'documents': validate_document_record,
    'accounts': validate_account_document
}
