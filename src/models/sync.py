"""Options and reports exchanged with the embedding synchronization engine."""

from __future__ import annotations

from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from src.config import settings
from src.errors import ValidationError
from src.models.product import Product

MAX_RECREATION_TARGETS = 1000

_OptionsT = TypeVar("_OptionsT", bound=BaseModel)


class ProcessingOptions(BaseModel):
    """Caller intent for one synchronization run."""

    batch_size: int = Field(default_factory=lambda: settings.SYNC_BATCH_SIZE, ge=1, le=50)
    delay_between_batches_ms: int = Field(
        default_factory=lambda: settings.SYNC_DELAY_BETWEEN_BATCHES_MS, ge=0
    )
    max_retries: int = Field(default_factory=lambda: settings.SYNC_MAX_RETRIES, ge=1, le=10)
    skip_existing: bool = True
    force_regenerate: bool = False
    allow_overwrite: bool = False
    target_product_ids: list[str] | None = None

    @field_validator("target_product_ids")
    @classmethod
    def _non_empty_targets(cls, values: list[str] | None) -> list[str] | None:
        if values is not None and not values:
            raise ValueError("If specifying product IDs, at least one ID must be provided")
        return values

    @property
    def overwrite_authorized(self) -> bool:
        """Whether stored embeddings may be replaced during this run."""
        return self.allow_overwrite or self.force_regenerate


class RecreationOptions(BaseModel):
    """Inputs of a recreate-with-validation run."""

    product_ids: list[str] | None = None
    reason: str = "Manual recreation requested"
    validate_before: bool = True
    validate_after: bool = True
    conservative_settings: bool = True
    batch_size: int | None = Field(None, ge=1, le=50)
    delay_between_batches_ms: int | None = Field(None, ge=0)
    max_retries: int | None = Field(None, ge=1, le=10)

    @field_validator("product_ids")
    @classmethod
    def _check_product_ids(cls, values: list[str] | None) -> list[str] | None:
        if values is None:
            return values
        if not values:
            raise ValueError("Product IDs list cannot be empty")
        if len(values) > MAX_RECREATION_TARGETS:
            raise ValueError(
                f"Cannot recreate more than {MAX_RECREATION_TARGETS} products at once"
            )
        if len(set(values)) != len(values):
            raise ValueError("Product IDs list contains duplicates")
        return values

    @field_validator("reason")
    @classmethod
    def _check_reason(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Reason cannot be empty")
        return value.strip()


def parse_options(model_cls: type[_OptionsT], value: Any) -> _OptionsT:
    """Coerce caller-supplied options, raising :class:`ValidationError` on bad input."""

    if value is None:
        return model_cls()
    if isinstance(value, model_cls):
        return value
    try:
        return model_cls.model_validate(value)
    except PydanticValidationError as exc:
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'options'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ValidationError(f"Invalid options: {details}") from exc


class BatchProgress(BaseModel):
    """Snapshot handed to progress callbacks after each batch settles."""

    total: int
    processed: int
    successful: int
    skipped: int
    failed: int
    percentage: int
    current_batch: int
    total_batches: int
    current_product: str | None = None
    estimated_time_remaining_ms: float = 0.0
    average_time_per_product_ms: float = 0.0


class ProductFailure(BaseModel):
    product_id: str
    product_name: str
    error: str


class ProcessedProduct(BaseModel):
    product_id: str
    product_name: str
    embedding_dimensions: int


class BatchReport(BaseModel):
    """Aggregated outcome of a synchronization run.

    ``errors`` and ``processed_products`` are bounded to the first
    ``SYNC_REPORT_MAX_ENTRIES`` entries; the counters are always exact.
    """

    total_products: int = 0
    successful: int = 0
    skipped: int = 0
    failed: int = 0
    not_processed: int = 0
    errors: list[ProductFailure] = Field(default_factory=list)
    processed_products: list[ProcessedProduct] = Field(default_factory=list)
    not_found_ids: list[str] = Field(default_factory=list)
    duration_ms: float = 0.0
    average_time_per_product_ms: float = 0.0
    embedding_dimensions: int = 0
    processing_rate_per_minute: float = 0.0
    cancelled: bool = False

    @property
    def success_rate(self) -> float:
        if self.total_products == 0:
            return 0.0
        return self.successful / self.total_products * 100

    def record_duration(self, duration_ms: float) -> None:
        """Set the wall-clock duration and the figures derived from it."""
        self.duration_ms = duration_ms
        self.average_time_per_product_ms = duration_ms / max(self.total_products, 1)
        self.processing_rate_per_minute = (
            self.total_products / (duration_ms / 1000) * 60 if duration_ms > 0 else 0.0
        )


class PlanSummary(BaseModel):
    total: int
    existing: int
    to_process: int


class SyncPlan(BaseModel):
    """Partition of the supplied products into work and pre-existing embeddings."""

    to_process: list[Product]
    already_have: list[Product]
    summary: PlanSummary


class EmbeddingIssue(BaseModel):
    product_id: str
    issue: str


class ValidationReport(BaseModel):
    """Health of the stored embeddings relative to the catalog."""

    valid_embeddings: int = 0
    invalid_embeddings: int = 0
    missing_embeddings: int = 0
    orphaned_embeddings: int = Field(
        default=0,
        description="Stored embeddings whose product is no longer in the catalog",
    )
    issues: list[EmbeddingIssue] = Field(default_factory=list)

    @property
    def existing_embeddings(self) -> int:
        return self.valid_embeddings + self.invalid_embeddings


class RecreationPhase(StrEnum):
    IDLE = "idle"
    CONNECTIVITY_CHECK = "connectivity_check"
    PLANNING = "planning"
    VALIDATING = "validating"
    PROCESSING = "processing"
    REPORTED = "reported"
    ABORTED = "aborted"


class RecreationInfo(BaseModel):
    reason: str
    products_targeted: int
    existing_embeddings_found: int
    recreated: int
    failed: int
    validation_before: ValidationReport | None = None
    validation_after: ValidationReport | None = None
    valid_embeddings_delta: int | None = None


class RecreationResult(BatchReport):
    recreation_info: RecreationInfo


class RecreationEstimate(BaseModel):
    total_products: int
    products_to_recreate: int
    existing_embeddings: int
    estimated_duration_minutes: int
    recommendation: str


class ProcessingEstimate(BaseModel):
    total_products: int
    products_to_process: int
    estimated_duration_minutes: int
    estimated_batches: int


class InitializationStatus(BaseModel):
    total_products: int
    with_embeddings: int
    without_embeddings: int


class ProviderHealth(BaseModel):
    responsive: bool
    embedding_dimensions: int | None = None
    response_time_ms: float | None = None
    error: str | None = None
