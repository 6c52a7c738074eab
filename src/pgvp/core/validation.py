"""Input validation utilities.

Validation for:
- PostgreSQL identifiers (role and database names)
- Network settings (CIDR, ports)
- Generated passwords

All validators return the validated value or raise ValidationError.
"""

import ipaddress
import re
import secrets
import string

from pgvp.core.exceptions import ValidationError


# Reserved key words (PostgreSQL 16 docs, "reserved" and "reserved (can be
# function or type)" columns) plus a few names that break tooling.
PG_RESERVED_WORDS: frozenset[str] = frozenset({
    "all", "analyse", "analyze", "and", "any", "array", "as", "asc",
    "asymmetric", "authorization", "binary", "both", "case", "cast",
    "check", "collate", "collation", "column", "concurrently", "constraint",
    "create", "cross", "current_catalog", "current_date", "current_role",
    "current_schema", "current_time", "current_timestamp", "current_user",
    "default", "deferrable", "desc", "distinct", "do", "else", "end",
    "except", "false", "fetch", "for", "foreign", "freeze", "from", "full",
    "grant", "group", "having", "ilike", "in", "initially", "inner",
    "intersect", "into", "is", "isnull", "join", "lateral", "leading",
    "left", "like", "limit", "localtime", "localtimestamp", "natural",
    "not", "notnull", "null", "offset", "on", "only", "or", "order",
    "outer", "overlaps", "placing", "primary", "references", "returning",
    "right", "select", "session_user", "similar", "some", "symmetric",
    "system_user", "table", "tablesample", "then", "to", "trailing", "true",
    "union", "unique", "user", "using", "variadic", "verbose", "when",
    "where", "window", "with",
    # Not reserved, but confusing as role/database names
    "public", "template0", "template1",
})

# Roles and databases the provisioner must never create or take over
PROTECTED_NAMES: frozenset[str] = frozenset({"postgres", "root", "pg_monitor"})

IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

MAX_IDENTIFIER_LENGTH = 63


def validate_identifier(value: str, identifier_type: str = "identifier") -> str:
    """Validate a PostgreSQL identifier (role or database name).

    Rules:
    - Must start with letter or underscore
    - Can contain letters, digits, underscores
    - Cannot be a reserved word or a protected system name
    - Max 63 characters

    Args:
        value: The identifier to validate
        identifier_type: Type for error messages (e.g., "database", "user")

    Returns:
        The validated identifier

    Raises:
        ValidationError: If validation fails
    """
    if not value:
        raise ValidationError(
            f"{identifier_type.title()} name cannot be empty",
            hint="Provide a valid name",
        )

    if len(value) > MAX_IDENTIFIER_LENGTH:
        raise ValidationError(
            f"{identifier_type.title()} name exceeds maximum length "
            f"({len(value)} > {MAX_IDENTIFIER_LENGTH})",
            hint=f"Use a name with {MAX_IDENTIFIER_LENGTH} or fewer characters",
        )

    if not IDENTIFIER_PATTERN.match(value):
        raise ValidationError(
            f"Invalid {identifier_type} name: '{value}'",
            hint="Must start with a letter or underscore, contain only letters, digits, and underscores",
            details=[_suggest_valid_name(value)],
        )

    lower_value = value.lower()

    if lower_value in PG_RESERVED_WORDS:
        raise ValidationError(
            f"'{value}' is a PostgreSQL reserved word",
            hint=f"Try '{value}_db' or '{value}_user' instead",
        )

    if lower_value in PROTECTED_NAMES:
        raise ValidationError(
            f"'{value}' is a protected system name",
            hint=f"Choose a dedicated {identifier_type} name for the application",
        )

    return value


def _suggest_valid_name(identifier: str) -> str:
    """Generate a suggestion for a valid identifier from an invalid one."""
    cleaned = re.sub(r"[^a-zA-Z0-9_]", "_", identifier)

    if cleaned and cleaned[0].isdigit():
        cleaned = f"_{cleaned}"

    if not cleaned:
        cleaned = "unnamed"

    return f"Suggestion: {cleaned[:MAX_IDENTIFIER_LENGTH]}"


def validate_cidr(value: str) -> str:
    """Validate CIDR notation for a pg_hba address column.

    Args:
        value: CIDR string (e.g., "10.0.0.0/24" or "0.0.0.0/0")

    Returns:
        The validated CIDR string, stripped

    Raises:
        ValidationError: If the value is not a network
    """
    value = value.strip()

    if "/" not in value:
        raise ValidationError(
            f"Address must include a prefix length: {value}",
            hint=f"Use {value}/32 for a single IPv4 host",
        )

    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError as e:
        raise ValidationError(
            f"Invalid CIDR notation: {value}",
            hint="Use format like 10.0.0.0/24 or 192.168.1.0/24",
            details=[str(e)],
        ) from e

    return value


def is_open_cidr(value: str) -> bool:
    """Check whether a CIDR admits every address (or nearly so)."""
    network = ipaddress.ip_network(value.strip(), strict=False)
    return network.prefixlen <= 8


def validate_port(value: int) -> int:
    """Validate a port number.

    Raises:
        ValidationError: If port is out of valid range
    """
    if not 1 <= value <= 65535:
        raise ValidationError(
            f"Invalid port number: {value}",
            hint="Port must be between 1 and 65535",
        )
    return value


# Alphanumeric only: the password ends up in DSNs and .env files
APP_PASSWORD_LENGTH = 24
MIN_PASSWORD_LENGTH = 16
PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = APP_PASSWORD_LENGTH) -> str:
    """Generate a cryptographically secure alphanumeric password.

    Args:
        length: Password length (minimum 16, default 24)

    Returns:
        Generated password

    Raises:
        ValidationError: If length is too short
    """
    if length < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password length must be at least {MIN_PASSWORD_LENGTH} characters",
            hint="Use a longer password for security",
        )

    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))
