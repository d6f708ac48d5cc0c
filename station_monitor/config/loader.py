"""Accounts configuration loader."""

from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from station_monitor.config.schemas import AccountsConfig


logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Raised when the accounts file cannot be loaded or validated."""

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        """Initialize the error.

        Args:
            errors: List of error details (``loc``, ``msg``, ``type``).
            file_path: Path to the file that failed validation.
        """
        self.errors = errors
        self.file_path = file_path
        super().__init__(f"Validation failed for {file_path}: {len(errors)} errors")


class AccountsLoader:
    """Loads and validates the accounts YAML file."""

    def __init__(self, run_id: str | None = None) -> None:
        """Initialize the loader.

        Args:
            run_id: Optional run identifier for logging.
        """
        self._log = logger.bind(component="config")
        if run_id:
            self._log = self._log.bind(run_id=run_id)

    def load(self, path: Path) -> AccountsConfig:
        """Load and validate the accounts file.

        Args:
            path: Path to accounts.yaml.

        Returns:
            Validated AccountsConfig.

        Raises:
            ConfigValidationError: If the file is missing, unparsable or invalid.
        """
        log = self._log.bind(file_path=str(path))

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except FileNotFoundError as e:
            errors = [{"loc": "", "msg": str(e), "type": "file_not_found"}]
            log.error("config_file_not_found")
            raise ConfigValidationError(errors, str(path)) from e
        except yaml.YAMLError as e:
            errors = [{"loc": "", "msg": str(e), "type": "yaml_parse_error"}]
            log.error("config_yaml_error", error=str(e))
            raise ConfigValidationError(errors, str(path)) from e

        try:
            config = AccountsConfig.model_validate(data)
        except ValidationError as e:
            errors = [
                {
                    "loc": ".".join(str(loc) for loc in err["loc"]),
                    "msg": err["msg"],
                    "type": err["type"],
                }
                for err in e.errors()
            ]
            log.error(
                "config_validation_failed",
                validation_error_count=len(errors),
                errors=errors,
            )
            raise ConfigValidationError(errors, str(path)) from e

        log.info(
            "config_loaded",
            account_count=len(config.accounts),
            enabled_count=len(config.enabled_accounts),
        )
        return config
