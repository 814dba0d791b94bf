# api/utils.py
"""
Utility functions for the API.
"""
import uuid
import hashlib
import logging
from typing import Optional, Union
from fastapi import HTTPException
from postgrest.exceptions import APIError
from pydantic import ValidationError

logger = logging.getLogger("wellness-api.utils")

# PostgREST / PostgreSQL error codes
POSTGREST_UUID_SYNTAX_ERROR = '22P02'  # invalid_text_representation
POSTGREST_NO_ROWS = 'PGRST116'         # .single() matched zero rows
POSTGRES_UNIQUE_VIOLATION = '23505'
POSTGRES_FOREIGN_KEY_VIOLATION = '23503'


def hash_user_id_for_logging(user_id: Optional[str]) -> str:
    """
    Hash a user ID for privacy-preserving logging.

    Args:
        user_id: The user ID to hash (None for anonymous sessions)

    Returns:
        First 8 characters of SHA-256 hash, or "anon"
    """
    if not user_id:
        return "anon"
    return hashlib.sha256(user_id.encode()).hexdigest()[:8]


def validate_uuid_or_400(value: str, param_name: str = "id") -> str:
    """
    Validates that a string is a valid UUID format.

    Args:
        value: The string value to validate
        param_name: Name of the parameter for error message (default: "id")

    Returns:
        The original value if valid

    Raises:
        HTTPException: 400 Bad Request if the value is not a valid UUID
    """
    try:
        uuid.UUID(value)
        return value
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid UUID format for {param_name}: {value}"
        )


def postgrest_error_message(e: Exception) -> str:
    """Raw, user-presentable message of a PostgREST error."""
    message = getattr(e, 'message', None)
    return str(message) if message else str(e)


def handle_postgrest_error(e: Union[APIError, Exception], user_id: Optional[str] = None) -> None:
    """
    Maps PostgREST API errors to HTTPExceptions.

    22P02 (bad UUID in a filter) -> 400, PGRST116 (no row) -> 404,
    23505 (duplicate) -> 409, 23503 (dangling reference) -> 400,
    401/403 pass through, anything else -> 500 with a safe detail.

    Raises:
        HTTPException: always
    """
    error_msg = str(e)
    error_code = getattr(e, 'code', None) if isinstance(e, APIError) else None
    user_hash = hash_user_id_for_logging(user_id)

    if error_code == POSTGREST_UUID_SYNTAX_ERROR:
        logger.warning(f"PostgREST UUID syntax error for user={user_hash}: {e}")
        raise HTTPException(status_code=400, detail="Invalid UUID format in database query")

    if error_code == POSTGREST_NO_ROWS:
        raise HTTPException(status_code=404, detail="Not found")

    if error_code == POSTGRES_UNIQUE_VIOLATION:
        logger.info(f"Duplicate row for user={user_hash}: {e}")
        raise HTTPException(status_code=409, detail=f"Already exists: {postgrest_error_message(e)}")

    if error_code == POSTGRES_FOREIGN_KEY_VIOLATION:
        raise HTTPException(status_code=400, detail=f"Invalid reference: {postgrest_error_message(e)}")

    # The library sometimes only carries the HTTP status inside the message
    if error_code == '401' or '401' in error_msg:
        logger.error(f"PostgREST Auth Error (401) for user={user_hash}: {e}")
        raise HTTPException(
            status_code=401,
            detail="Unauthorized: Database access denied. Check API configuration."
        )

    if error_code == '403' or '403' in error_msg:
        logger.error(f"PostgREST Permission Error (403) for user={user_hash}: {e}")
        raise HTTPException(
            status_code=403,
            detail="Forbidden: Insufficient permissions for this operation."
        )

    if isinstance(e, ValidationError) or "validation error" in error_msg.lower():
        logger.error(f"Validation Error processing DB response for user={user_hash}: {e}")
        raise HTTPException(
            status_code=500,
            detail="Internal Server Error: Failed to process database response."
        )

    logger.exception(f"PostgREST APIError for user={user_hash}: {e}")

    detail = "Database error"
    if getattr(e, 'details', None):
        detail = f"Database error: {e.details}"
    elif getattr(e, 'message', None):
        detail = f"Database error: {e.message}"

    raise HTTPException(status_code=500, detail=detail)
