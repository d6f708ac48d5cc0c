"""Schemas for the accounts configuration file.

Example ``accounts.yaml``::

    accounts:
      - name: KOOTENAI
        api_key_env: KOOTENAI_API_KEY
        alert_user_ids: [UQJLHM6LV]
"""

import os
import re
from collections.abc import Mapping
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


ACCOUNT_NAME_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_-]*$"
SLACK_USER_ID_PATTERN = re.compile(r"^[A-Z0-9]+$")


class AccountConfig(BaseModel):
    """One monitored account.

    The API key itself is never stored in the file; ``api_key_env`` names the
    environment variable holding it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Annotated[str, Field(min_length=1, max_length=64, pattern=ACCOUNT_NAME_PATTERN)]
    api_key_env: Annotated[str, Field(min_length=1)] | None = None
    alert_user_ids: tuple[str, ...] = ()
    enabled: bool = True

    @field_validator("alert_user_ids")
    @classmethod
    def validate_user_ids(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Ensure alert recipients look like Slack member ids."""
        for user_id in v:
            if not SLACK_USER_ID_PATTERN.match(user_id):
                msg = f"Invalid Slack user id: {user_id!r}"
                raise ValueError(msg)
        return v

    @property
    def api_key_variable(self) -> str:
        """Environment variable holding the API key (``<NAME>_API_KEY`` by default)."""
        return self.api_key_env or f"{self.name.upper()}_API_KEY"

    def resolve_api_key(self, environ: Mapping[str, str] | None = None) -> str | None:
        """Look up the account API key.

        Args:
            environ: Environment mapping (defaults to os.environ).

        Returns:
            The API key, or None if unset or empty.
        """
        env = os.environ if environ is None else environ
        return env.get(self.api_key_variable) or None


class AccountsConfig(BaseModel):
    """Root of the accounts configuration file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    accounts: Annotated[list[AccountConfig], Field(min_length=1)]

    @model_validator(mode="after")
    def validate_unique_names(self) -> "AccountsConfig":
        """Account names key the cache blobs and metric names; they must be unique.

        Metric names lowercase the account, so names differing only in case
        collide.
        """
        seen: set[str] = set()
        for account in self.accounts:
            key = account.name.lower()
            if key in seen:
                msg = f"Duplicate account name: {account.name}"
                raise ValueError(msg)
            seen.add(key)
        return self

    @property
    def enabled_accounts(self) -> list[AccountConfig]:
        """Accounts to poll this cycle."""
        return [a for a in self.accounts if a.enabled]
