"""
Workflow Orchestration Configuration
Settings for the claims adjudication workflow orchestrator.
Source: https://docs.pydantic.dev/latest/concepts/pydantic_settings/
"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from claimflow.core.enums import EOBFormat, NotificationTrigger
from claimflow.utils.errors import ConfigurationError


class WorkflowSettings(BaseSettings):
    """
    Workflow orchestration configuration settings.

    Every field can be overridden from the environment with the WORKFLOW_
    prefix, e.g. WORKFLOW_ENABLE_AUTO_APPROVAL=false.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="WORKFLOW_",  # All workflow settings prefixed with WORKFLOW_
    )

    # =========================================================================
    # Feature Toggles
    # =========================================================================
    ENABLE_AUTO_APPROVAL: bool = Field(
        default=True,
        description="Approve clean claims without manual sign-off",
    )
    ENABLE_FRAUD_DETECTION: bool = Field(
        default=True,
        description="Run the fraud risk step (skipped when disabled)",
    )
    ENABLE_BATCH_PROCESSING: bool = Field(
        default=True,
        description="Allow batch submission of claims",
    )
    PARTIAL_APPROVAL_ON_COST_SHARING: bool = Field(
        default=False,
        description=(
            "Treat any member cost sharing as partial approval. "
            "When false only amounts beyond the plan's coverage count."
        ),
    )

    # =========================================================================
    # Routing Thresholds
    # =========================================================================
    INVESTIGATION_THRESHOLD: Decimal = Field(
        default=Decimal("25000"),
        gt=0,
        description="Claims above this amount use the investigation workflow",
    )
    MANUAL_REVIEW_THRESHOLD: Decimal = Field(
        default=Decimal("10000"),
        gt=0,
        description="Claims above this amount use the manual review workflow",
    )
    EXPEDITED_MAX_AMOUNT: Decimal = Field(
        default=Decimal("500"),
        gt=0,
        description="Claims below this amount may be expedited",
    )
    EXPEDITED_MAX_AGE_HOURS: int = Field(
        default=24,
        ge=0,
        description="Expedited claims must be submitted within this window",
    )

    # =========================================================================
    # Priority Bands
    # =========================================================================
    PRIORITY_URGENT_THRESHOLD: Decimal = Field(default=Decimal("50000"), gt=0)
    PRIORITY_HIGH_THRESHOLD: Decimal = Field(default=Decimal("25000"), gt=0)
    PRIORITY_MEDIUM_THRESHOLD: Decimal = Field(default=Decimal("10000"), gt=0)

    # =========================================================================
    # Alert, Audit and Quality Thresholds
    # =========================================================================
    HIGH_VALUE_ALERT_THRESHOLD: Decimal = Field(
        default=Decimal("10000"),
        gt=0,
        description="Approved amounts above this raise a high value review alert",
    )
    AUDIT_AMOUNT_THRESHOLD: Decimal = Field(
        default=Decimal("25000"),
        gt=0,
        description="Approved amounts above this require audit",
    )
    QUALITY_DURATION_THRESHOLD_SECONDS: float = Field(
        default=60.0,
        gt=0,
        description="Runs slower than this lose quality points",
    )

    # =========================================================================
    # Timeouts
    # =========================================================================
    PROCESSING_TIMEOUT_MINUTES: float = Field(
        default=30,
        gt=0,
        description="Per-run timeout before mode ceilings are applied",
    )
    AUTOMATIC_TIMEOUT_CEILING_MINUTES: float = Field(
        default=30,
        gt=0,
        description="Upper bound for automatic standard and expedited runs",
    )
    MANUAL_TIMEOUT_CEILING_HOURS: float = Field(
        default=72,
        gt=0,
        description="Upper bound for manual mode and review/investigation runs",
    )

    # =========================================================================
    # Batch and Queue
    # =========================================================================
    MAX_BATCH_SIZE: int = Field(default=50, ge=1, le=1000)
    BATCH_MAX_CONCURRENCY: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Claims processed concurrently within one batch",
    )
    QUEUE_DRAIN_INTERVAL_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Interval at which the queue worker drains pending runs",
    )

    # =========================================================================
    # Documents
    # =========================================================================
    EOB_FORMATS: list[EOBFormat] = Field(
        default_factory=lambda: [EOBFormat.JSON, EOBFormat.HTML, EOBFormat.TEXT],
        description="Formats rendered for every generated EOB",
    )
    APPEAL_DEADLINE_DAYS: int = Field(default=180, ge=1)

    # =========================================================================
    # Logging
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO")
    JSON_LOGS: bool = Field(default=False)

    # =========================================================================
    # Notification Triggers
    # =========================================================================
    NOTIFY_CLAIM_SUBMITTED: bool = Field(default=True)
    NOTIFY_ELIGIBILITY_VERIFIED: bool = Field(default=True)
    NOTIFY_MEDICAL_REVIEW_REQUIRED: bool = Field(default=True)
    NOTIFY_FRAUD_DETECTED: bool = Field(default=True)
    NOTIFY_CLAIM_APPROVED: bool = Field(default=True)
    NOTIFY_CLAIM_DENIED: bool = Field(default=True)
    NOTIFY_PAYMENT_PROCESSED: bool = Field(default=True)

    # =========================================================================
    # Validators
    # =========================================================================
    @field_validator("EOB_FORMATS")
    @classmethod
    def validate_eob_formats(cls, v: list[EOBFormat]) -> list[EOBFormat]:
        """Drop duplicate formats while keeping order."""
        if not v:
            raise ValueError("At least one EOB format is required")
        return list(dict.fromkeys(v))

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        level = v.upper()
        if level not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {sorted(allowed)}")
        return level

    @model_validator(mode="after")
    def validate_threshold_order(self) -> "WorkflowSettings":
        """Routing and priority thresholds must be ascending."""
        if self.MANUAL_REVIEW_THRESHOLD > self.INVESTIGATION_THRESHOLD:
            raise ValueError(
                "MANUAL_REVIEW_THRESHOLD must not exceed INVESTIGATION_THRESHOLD"
            )
        if not (
            self.PRIORITY_MEDIUM_THRESHOLD
            <= self.PRIORITY_HIGH_THRESHOLD
            <= self.PRIORITY_URGENT_THRESHOLD
        ):
            raise ValueError("Priority thresholds must be ascending")
        return self

    # =========================================================================
    # Helpers
    # =========================================================================
    def is_trigger_enabled(self, trigger: NotificationTrigger) -> bool:
        """Check whether notifications for a trigger are switched on."""
        return bool(getattr(self, f"NOTIFY_{trigger.name}"))

    def with_updates(self, **partial: Any) -> "WorkflowSettings":
        """
        Return a validated copy with the given fields replaced.

        Keys are matched case-insensitively against the field names.

        Raises:
            ConfigurationError: On unknown keys or values failing validation
        """
        fields = type(self).model_fields
        normalized: dict[str, Any] = {}
        unknown: list[str] = []
        for key, value in partial.items():
            name = key.upper()
            if name not in fields:
                unknown.append(key)
            else:
                normalized[name] = value
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(sorted(unknown))}"
            )

        merged = self.model_dump()
        merged.update(normalized)
        try:
            return type(self).model_validate(merged)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e


# Singleton instance
_workflow_settings: Optional[WorkflowSettings] = None


def get_workflow_settings() -> WorkflowSettings:
    """
    Get cached workflow settings instance.

    Returns:
        WorkflowSettings instance
    """
    global _workflow_settings
    if _workflow_settings is None:
        _workflow_settings = WorkflowSettings()
    return _workflow_settings
