"""
Provider Validation Module
Validates all provider configurations on startup
"""
import os
import logging
from enum import Enum
from typing import List, Optional, Tuple
from dataclasses import dataclass

from app.core.config import Settings, get_settings
from app.domain.models.auto_call import MIN_CALL_DELAY_SECONDS

logger = logging.getLogger(__name__)


class Severity(str, Enum):
    OK = "ok"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class ValidationResult:
    """Result of a configuration validation check."""
    provider: str
    setting: str
    is_valid: bool
    message: str
    severity: Severity = Severity.OK


class ProviderValidator:
    """
    Validates provider configurations at startup.
    
    Ensures all required API keys and settings are present
    before the application starts accepting requests.
    """
    
    # Required environment variables by provider
    REQUIRED_ENV_VARS = {
        "calling": [("BOLNA_API_KEY", "Bolna calling provider")],
        "database": [
            ("SUPABASE_URL", "Supabase database"),
            ("SUPABASE_SERVICE_KEY", "Supabase database"),
        ],
    }
    
    # Optional but recommended
    OPTIONAL_ENV_VARS = {
        "calling": [("BOLNA_BASE_URL", "Bolna API base URL override")],
    }

    _LOG_MARKS = {
        Severity.OK: (logging.INFO, "✓"),
        Severity.WARNING: (logging.WARNING, "⚠"),
        Severity.ERROR: (logging.ERROR, "✗"),
    }
    
    def __init__(self, strict: bool = False, settings: Optional[Settings] = None):
        """
        Initialize validator.
        
        Args:
            strict: If True, warnings are reported as failed checks
            settings: Settings to check (defaults to the cached instance)
        """
        self.strict = strict
        self.settings = settings or get_settings()
        self.results: List[ValidationResult] = []
    
    def validate_all(self) -> Tuple[bool, List[ValidationResult]]:
        """
        Validate all provider configurations.

        Only missing required settings and unusable scheduler values make
        the configuration invalid; optional settings produce warnings.
        
        Returns:
            Tuple of (all_valid, list of results)
        """
        self.results = []

        for env_var, provider, description, required in self._env_checks():
            if os.getenv(env_var):
                self._add(provider, env_var, f"{description} configured")
            elif required:
                self._add(provider, env_var, f"{description} requires {env_var} to be set", Severity.ERROR)
            else:
                self._add(provider, env_var, f"{description} not configured (optional)", Severity.WARNING)

        self._validate_auto_call()

        all_valid = not self._with(Severity.ERROR)
        return all_valid, self.results

    def _env_checks(self):
        for required, table in ((True, self.REQUIRED_ENV_VARS), (False, self.OPTIONAL_ENV_VARS)):
            for provider, vars_list in table.items():
                for env_var, description in vars_list:
                    yield env_var, provider, description, required
    
    def _validate_auto_call(self):
        """Check scheduler settings that would otherwise fail at runtime."""
        s = self.settings
        if s.auto_call_interval_seconds < MIN_CALL_DELAY_SECONDS:
            self._add("auto_call", "AUTO_CALL_INTERVAL_SECONDS",
                f"Auto-call interval must be at least {MIN_CALL_DELAY_SECONDS}s (got {s.auto_call_interval_seconds})",
                Severity.ERROR)
        if s.auto_call_batch_size < 1:
            self._add("auto_call", "AUTO_CALL_BATCH_SIZE",
                f"Auto-call batch size must be at least 1 (got {s.auto_call_batch_size})",
                Severity.ERROR)
        if not s.auto_call_enabled:
            self._add("auto_call", "AUTO_CALL_ENABLED",
                "Auto-call scheduler disabled; start it through the API (optional)",
                Severity.WARNING)

    def _add(self, provider: str, setting: str, message: str, severity: Severity = Severity.OK):
        if severity == Severity.ERROR:
            is_valid = False
        elif severity == Severity.WARNING:
            is_valid = not self.strict
        else:
            is_valid = True
        self.results.append(ValidationResult(provider, setting, is_valid, message, severity))

    def _with(self, severity: Severity) -> List[ValidationResult]:
        return [r for r in self.results if r.severity == severity]
    
    def log_results(self):
        """Log every check at a level matching its severity."""
        for severity in (Severity.OK, Severity.WARNING, Severity.ERROR):
            level, mark = self._LOG_MARKS[severity]
            for r in self._with(severity):
                # strict mode: warnings log as errors but do not block startup
                logger.log(level if r.is_valid or severity == Severity.ERROR else logging.ERROR,
                    f"  {mark} [{r.provider}] {r.setting}: {r.message}")
    
    def get_error_summary(self) -> Optional[str]:
        """Blocking errors joined into one message, or None."""
        errors = self._with(Severity.ERROR)
        if not errors:
            return None
        details = "; ".join(f"{r.setting}: {r.message}" for r in errors)
        return f"{len(errors)} provider configuration error(s): {details}"


def validate_providers_on_startup(strict: bool = False) -> None:
    """
    Check configuration from the application lifespan.

    Raises:
        RuntimeError: With the error summary when a required setting is missing
    """
    validator = ProviderValidator(strict=strict)
    all_valid, _ = validator.validate_all()
    validator.log_results()

    if not all_valid:
        raise RuntimeError(validator.get_error_summary())

    logger.info("Provider configuration OK")
