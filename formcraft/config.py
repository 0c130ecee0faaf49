"""Editor and validation policy.

The option cap and default option count used by the builder, and the
switches for constraints that are declared in a schema but not enforced by
default (required fields, email allow-lists).

Policy is a pydantic-settings model, so every field can be overridden from
the environment with the FORMCRAFT_ prefix:

    FORMCRAFT_OPTION_CAP               (int, default 5)
    FORMCRAFT_DEFAULT_OPTION_COUNT     (int, default 3)
    FORMCRAFT_ENFORCE_REQUIRED         (bool, default false)
    FORMCRAFT_ENFORCE_ALLOWED_DOMAINS  (bool, default false)

Empty variables are ignored. Invalid values raise pydantic's
ValidationError, which is a ValueError.
"""

import logging
from typing import Mapping, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

ENV_PREFIX = "FORMCRAFT_"


class Policy(BaseSettings):
    """Configurable constants for the editor and validation engine.

    Attributes:
        option_cap: Maximum number of options on a choice field
        default_option_count: Options given to a freshly instantiated choice field
        enforce_required: Reject submissions missing a value for a required field
        enforce_allowed_domains: Reject emails outside a field's allowed domains

    Examples:
        >>> Policy(option_cap=8).option_cap
        8
        >>> Policy.from_env({"FORMCRAFT_ENFORCE_REQUIRED": "yes"}).enforce_required
        True
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    option_cap: int = Field(default=5, ge=0, description="Maximum options per choice field")
    default_option_count: int = Field(
        default=3, ge=0, description="Options given to new choice fields"
    )
    enforce_required: bool = Field(
        default=False, description="Reject submissions missing required values"
    )
    enforce_allowed_domains: bool = Field(
        default=False, description="Reject emails outside the allowed domains"
    )

    @model_validator(mode="after")
    def _check_default_count(self) -> "Policy":
        if self.default_option_count > self.option_cap:
            raise ValueError(
                f"default_option_count must not exceed option_cap "
                f"({self.option_cap}), got {self.default_option_count}"
            )
        return self

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Policy":
        """Build a Policy from FORMCRAFT_* variables.

        Args:
            environ: Variables to apply on top of the process environment
                (mainly for tests); os.environ alone when omitted

        Raises:
            ValueError: If a variable holds an unparseable value
        """
        overrides = {}
        for key, raw in (environ or {}).items():
            if not key.upper().startswith(ENV_PREFIX) or not str(raw).strip():
                continue
            overrides[key[len(ENV_PREFIX):].lower()] = str(raw).strip()
        policy = cls(**overrides)
        logger.debug("Loaded policy from environment: %s", policy)
        return policy


DEFAULT_POLICY = Policy()


__all__ = [
    "Policy",
    "DEFAULT_POLICY",
]
