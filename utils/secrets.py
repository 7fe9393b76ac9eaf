"""
Utilities for handling secret values.

Provides functions to safely convert Pydantic SecretStr to plain strings.
"""

from pydantic import SecretStr


def secret_to_str(secret: SecretStr | str | None) -> str | None:
    """
    Convert Pydantic SecretStr to plain string.

    Empty values are treated as missing.

    Example:
        >>> secret_to_str(SecretStr("sk-1234567890"))
        'sk-1234567890'
        >>> secret_to_str(SecretStr("")) is None
        True
    """
    if secret is None:
        return None

    value = secret.get_secret_value() if isinstance(secret, SecretStr) else secret
    return value or None


def require_secret(*candidates: SecretStr | str | None, env_var: str) -> str:
    """
    Return the first non-empty secret among candidates.

    Args:
        *candidates: Secrets in order of precedence
        env_var: Environment variable named in the error message

    Raises:
        ConfigurationError: If every candidate is empty
    """
    for candidate in candidates:
        value = secret_to_str(candidate)
        if value:
            return value

    from models.errors import ConfigurationError

    raise ConfigurationError(f"{env_var} is not set. Configure it in your .env file.")
