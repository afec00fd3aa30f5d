"""Validation job store and background lifecycle.

A job is created synchronously in the PROCESSING state and handed to a
worker pool. The worker runs OCR and the comparison engine, then writes a
complete replacement record in the COMPLETED or FAILED state. Callers poll
get() to observe the result.
"""

import itertools
import logging
import math
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait as wait_futures
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Union

from pydantic import ValidationError

from .comparison import ComparisonService, GENERAL
from ..models import LabelClaim, ValidationJob, ValidationStatus
from ..config import Settings, get_settings

logger = logging.getLogger(__name__)

PROCESSING_FAILED_MESSAGE = "Processing failed due to an internal error"


class JobNotFoundError(KeyError):
    """Raised when a job id was never issued by the store."""

    def __init__(self, job_id: str):
        super().__init__(job_id)
        self.job_id = job_id

    def __str__(self) -> str:
        return f"Label validation with ID {self.job_id} not found"


class InvalidClaimError(ValueError):
    """Raised when a submission is missing fields or carries malformed values."""


class CounterIdGenerator:
    """Sequential ids "1", "2", ... Unique within one process only."""

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def __call__(self) -> str:
        with self._lock:
            return str(next(self._counter))


class UuidIdGenerator:
    """Random UUID4 ids, safe across multiple service instances."""

    def __call__(self) -> str:
        return uuid.uuid4().hex


def make_id_generator(strategy: str) -> Callable[[], str]:
    """Build the id generator named by the job_id_strategy setting."""
    if strategy == "uuid":
        return UuidIdGenerator()
    if strategy == "counter":
        return CounterIdGenerator()
    raise ValueError(f"Unknown job id strategy: {strategy}")


class InMemoryJobStore:
    """
    Process-local job records keyed by id.

    Stand-in for a durable keyed store: records are only ever added or
    replaced whole, so any store with atomic single-key writes can take its
    place. Jobs are never deleted here.
    """

    def __init__(self):
        self._jobs: Dict[str, ValidationJob] = {}
        self._lock = threading.Lock()

    def add(self, job: ValidationJob) -> None:
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Duplicate job id: {job.id}")
            self._jobs[job.id] = job

    def get(self, job_id: str) -> ValidationJob:
        with self._lock:
            job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def replace(self, job: ValidationJob) -> None:
        with self._lock:
            if job.id not in self._jobs:
                raise JobNotFoundError(job.id)
            self._jobs[job.id] = job

    def list_all(self) -> List[ValidationJob]:
        # Insertion order
        with self._lock:
            return list(self._jobs.values())


def build_claim(
    brand_name: Optional[str],
    product_class: Optional[str],
    alcohol_content: Union[str, float, None],
    net_contents: Optional[str] = None,
) -> LabelClaim:
    """
    Build a LabelClaim from raw submitted values (form strings).

    Raises:
        InvalidClaimError: if a required field is missing, or alcohol
            content is not a number between 0 and 100
    """
    def _blank(value) -> bool:
        return value is None or (isinstance(value, str) and not value.strip())

    if _blank(brand_name) or _blank(product_class) or _blank(alcohol_content):
        raise InvalidClaimError("brandName, productClass, and alcoholContent are required")

    if isinstance(alcohol_content, str):
        try:
            abv = float(alcohol_content.strip().rstrip("%").strip())
        except ValueError:
            raise InvalidClaimError("alcoholContent must be a valid number")
    elif isinstance(alcohol_content, (int, float)) and not isinstance(alcohol_content, bool):
        abv = float(alcohol_content)
    else:
        raise InvalidClaimError("alcoholContent must be a valid number")

    if not math.isfinite(abv):
        raise InvalidClaimError("alcoholContent must be a valid number")

    try:
        return LabelClaim(
            brand_name=brand_name,
            product_class=product_class,
            alcohol_content=abv,
            net_contents=net_contents,
        )
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidClaimError(errors)


class ValidationJobService:
    """
    Owns the job lifecycle: create -> PROCESSING -> COMPLETED | FAILED.

    The OCR collaborator is anything with extract_text(image_bytes) -> OCRResult
    that returns an empty result instead of raising on unreadable images.
    """

    def __init__(
        self,
        ocr_service,
        comparison_service: Optional[ComparisonService] = None,
        store: Optional[InMemoryJobStore] = None,
        id_generator: Optional[Callable[[], str]] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.ocr_service = ocr_service
        self.comparison_service = comparison_service or ComparisonService(self.settings)
        self.store = store or InMemoryJobStore()
        self.id_generator = id_generator or make_id_generator(self.settings.job_id_strategy)
        self.executor = executor or ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix="label-validation",
        )
        self._futures: Dict[str, Future] = {}
        self._futures_lock = threading.Lock()

    def submit(
        self,
        brand_name: Optional[str],
        product_class: Optional[str],
        alcohol_content: Union[str, float, None],
        net_contents: Optional[str],
        image_bytes: Optional[bytes],
    ) -> ValidationJob:
        """
        Validate raw submitted values and start a job.

        Raises:
            InvalidClaimError: on bad input; no job is created
        """
        claim = build_claim(brand_name, product_class, alcohol_content, net_contents)
        if not image_bytes:
            raise InvalidClaimError("labelImage file is required")
        return self.create(claim, image_bytes)

    def create(self, claim: LabelClaim, image_bytes: bytes) -> ValidationJob:
        """
        Store a PROCESSING job and schedule its background validation.

        Returns immediately; poll get() for the outcome.
        """
        job = ValidationJob(
            id=self.id_generator(),
            status=ValidationStatus.PROCESSING,
            created_at=datetime.now(timezone.utc),
            success=False,
            claim=claim,
        )
        self.store.add(job)
        logger.info(f"Created label validation {job.id} for brand '{claim.brand_name}'")

        try:
            future = self.executor.submit(self._process, job.id, claim, image_bytes)
        except RuntimeError as e:
            # Executor already shut down
            logger.error(f"Could not schedule label validation {job.id}: {e}")
            self._finish(job.id, status=ValidationStatus.FAILED, success=False,
                         issues={GENERAL: PROCESSING_FAILED_MESSAGE})
            return job

        with self._futures_lock:
            self._futures[job.id] = future
        future.add_done_callback(lambda _f, job_id=job.id: self._forget(job_id))

        return job

    def get(self, job_id: str) -> ValidationJob:
        """Raises JobNotFoundError for unknown ids."""
        return self.store.get(job_id)

    def list_all(self) -> List[ValidationJob]:
        return self.store.list_all()

    def wait(self, job_id: str, timeout: Optional[float] = None) -> ValidationJob:
        """Block until the job's background task has finished, then return the job."""
        job = self.store.get(job_id)
        with self._futures_lock:
            future = self._futures.get(job_id)
        if future is not None:
            wait_futures([future], timeout=timeout)
            job = self.store.get(job_id)
        return job

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs; by default let in-flight validations finish."""
        self.executor.shutdown(wait=wait)

    def _forget(self, job_id: str) -> None:
        with self._futures_lock:
            self._futures.pop(job_id, None)

    def _process(self, job_id: str, claim: LabelClaim, image_bytes: bytes) -> None:
        """Background task: OCR, compare, record the verdict. Never raises."""
        try:
            ocr_result = self.ocr_service.extract_text(image_bytes)
            logger.info(f"Job {job_id}: OCR confidence {ocr_result.confidence:.0f}%")

            comparison = self.comparison_service.compare(ocr_result, claim)

            self._finish(
                job_id,
                status=ValidationStatus.COMPLETED,
                success=comparison.success,
                issues=None if comparison.success else dict(comparison.issues),
            )
        except Exception:
            logger.exception(f"Label validation {job_id} failed")
            self._finish(
                job_id,
                status=ValidationStatus.FAILED,
                success=False,
                issues={GENERAL: PROCESSING_FAILED_MESSAGE},
            )

    def _finish(self, job_id: str, **updates) -> None:
        """Write the terminal record. Terminal jobs are never rewritten."""
        current = self.store.get(job_id)
        if current.status.is_terminal:
            logger.warning(f"Job {job_id} already {current.status.value}, ignoring update")
            return

        self.store.replace(current.model_copy(update=updates))
        logger.info(f"Job {job_id} -> {updates['status'].value}")
