from typing import Any, Dict, List

DEFAULT_VALIDATION_MESSAGE = "Ungültige Eingabe"


def first_error_message(errors: List[Dict[str, Any]]) -> str:
    """
    Human-readable message for the first validation error.

    Messages raised by our own validators are passed through unchanged.
    """
    if not errors:
        return DEFAULT_VALIDATION_MESSAGE

    error = errors[0]
    ctx = error.get("ctx") or {}
    if "error" in ctx:
        return str(ctx["error"])

    loc = [part for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    field = str(loc[-1]) if loc else None
    if not field:
        return DEFAULT_VALIDATION_MESSAGE
    if error.get("type") == "missing":
        return f"Feld '{field}' ist erforderlich"
    return f"Ungültiger Wert für '{field}'"
