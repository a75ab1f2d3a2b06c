"""Runtime settings read from the environment."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from .allowance import DEFAULT_RATES, MileageRates, load_rates
from .errors import ConfigError
from .lifecycle import StartPolicy

DEFAULT_LOGBOOK_FILE = "logbook.yaml"


@dataclass(frozen=True)
class Settings:
    logbook_file: Path
    start_policy: StartPolicy = StartPolicy.REJECT
    rates_file: Optional[Path] = None
    log_level: int = logging.WARNING

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from TRIPLOG_* environment variables.

        TRIPLOG_FILE          logbook YAML file (default: logbook.yaml)
        TRIPLOG_START_POLICY  "reject" or "ghost" (default: reject)
        TRIPLOG_RATES_FILE    YAML file with per-tax-year mileage rates
        TRIPLOG_LOG_LEVEL     logging level name (default: WARNING)
        """
        env = os.environ if environ is None else environ

        policy_name = env.get("TRIPLOG_START_POLICY", StartPolicy.REJECT.value).lower()
        try:
            policy = StartPolicy(policy_name)
        except ValueError:
            raise ConfigError(f"Unknown start policy: {policy_name!r}") from None

        level_name = env.get("TRIPLOG_LOG_LEVEL", "WARNING").upper()
        level = logging.getLevelName(level_name)
        if not isinstance(level, int):
            raise ConfigError(f"Unknown log level: {level_name!r}")

        rates_file = env.get("TRIPLOG_RATES_FILE")
        return cls(
            logbook_file=Path(env.get("TRIPLOG_FILE", DEFAULT_LOGBOOK_FILE)),
            start_policy=policy,
            rates_file=Path(rates_file) if rates_file else None,
            log_level=level,
        )

    def rates_for(self, tax_year: int) -> MileageRates:
        """Rates for a tax year: from the rates file if configured, else built-in."""
        if self.rates_file is None:
            return DEFAULT_RATES
        return load_rates(self.rates_file, tax_year)
