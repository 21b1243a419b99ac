"""Redaction and error-exposure rules for the clipboard flow service.

Clipboard payloads are user content. They are treated like credentials:
never written to logs and never echoed back in error bodies.
"""

# Keys redacted by the structured logger (substring match, case-insensitive)
SENSITIVE_KEYS: set[str] = {
    # Credentials
    "password",
    "secret",
    "token",
    "authorization",
    "api_key",
    "apikey",
    "bearer",
    "cookie",
    "x-api-key",
    # Clipboard payloads
    "input_text",
    "output_text",
    "original_text",
    "transformed_text",
    "clipboard_text",
    "captured_text",
    "representations",
}

# Production error responses only carry these fields
PRODUCTION_ERROR_FIELDS: set[str] = {
    "correlation_id",
    "type",
}

# Development responses may add diagnostics
DEVELOPMENT_ERROR_FIELDS: set[str] = PRODUCTION_ERROR_FIELDS | {
    "details",
    "traceback",
    "exception_type",
    "validation_errors",
}


def get_allowed_error_fields(environment: str) -> set[str]:
    """Error body fields allowed in `environment`; production hides diagnostics."""
    if environment == "production":
        return set(PRODUCTION_ERROR_FIELDS)
    return set(DEVELOPMENT_ERROR_FIELDS)


def is_sensitive_key(key: str) -> bool:
    """Substring match, so `openai_api_key` and `x_clipboard_text` both count."""
    lowered = key.lower()
    return any(fragment in lowered for fragment in SENSITIVE_KEYS)
