"""Visibility presets and custom field lists to MongoDB projections."""

import logging
from typing import Dict, Iterable, List, Optional

from users.constants import CUSTOM_ALLOWED_FIELDS, HIDDEN_FIELDS, VERSION_FIELD, VISIBILITY_MODES
from users.errors import ValidationError

logger = logging.getLogger(__name__)


def split_fields(raw: Optional[str]) -> List[str]:
    """Split a comma-separated field list, dropping blanks."""
    if not raw:
        return []
    return [field.strip() for field in raw.split(",") if field.strip()]


def validate_fields(fields: Iterable[str]) -> List[str]:
    """Check every requested field against the basic and admin whitelists.

    Fails the whole request if any name is unknown; the error names both the
    rejected fields and the allowed set.
    """
    requested = list(fields)
    invalid = [field for field in requested if field not in CUSTOM_ALLOWED_FIELDS]
    if invalid:
        raise ValidationError(
            f"Invalid fields: {', '.join(invalid)}. Allowed fields: {', '.join(CUSTOM_ALLOWED_FIELDS)}",
            invalid=invalid,
            allowed=CUSTOM_ALLOWED_FIELDS,
        )
    return requested


def hidden_projection() -> Dict[str, int]:
    """Exclusion projection used by the basic view and the cursor/search endpoints."""
    return {field: 0 for field in HIDDEN_FIELDS}


def resolve_projection(mode: str = "basic", custom_fields: Optional[str] = None) -> Dict[str, int]:
    """Build the projection for a visibility mode.

    basic  -> exclude HIDDEN_FIELDS
    admin  -> exclude only the version marker
    custom -> include the validated fields that are not hidden; an empty custom
              list falls back to basic
    """
    if mode not in VISIBILITY_MODES:
        raise ValidationError(
            f"Invalid visibility mode '{mode}'. Allowed modes: {', '.join(VISIBILITY_MODES)}",
            invalid=[mode],
            allowed=VISIBILITY_MODES,
        )

    if mode == "admin":
        return {VERSION_FIELD: 0}

    if mode == "custom":
        requested = split_fields(custom_fields)
        if requested:
            validated = validate_fields(requested)
            visible = [field for field in dict.fromkeys(validated) if field not in HIDDEN_FIELDS]
            if len(visible) < len(set(validated)):
                logger.debug(f"Dropped hidden fields from custom projection: {sorted(set(validated) - set(visible))}")
            if not visible:
                # Only hidden fields were asked for: return identities alone
                return {"_id": 1}
            return {field: 1 for field in visible}

    return hidden_projection()
