"""Tests for the validation job store and lifecycle."""

import threading

import pytest

from labelcheck.config import Settings
from labelcheck.models import LabelClaim, ValidationStatus
from labelcheck.services.ocr import OCRResult
from labelcheck.services.jobs import (
    CounterIdGenerator,
    InMemoryJobStore,
    InvalidClaimError,
    JobNotFoundError,
    PROCESSING_FAILED_MESSAGE,
    UuidIdGenerator,
    ValidationJobService,
    build_claim,
    make_id_generator,
)


LABEL_TEXT = "OLD TOM DISTILLERY KENTUCKY STRAIGHT BOURBON WHISKEY 45% 750ml"
IMAGE_BYTES = b"\x89PNG fake image bytes"


class FakeOCR:
    """OCR collaborator returning fixed text."""

    def __init__(self, text: str = LABEL_TEXT, confidence: float = 88.0):
        self.text = text
        self.confidence = confidence
        self.calls = []

    def extract_text(self, image_bytes):
        self.calls.append(image_bytes)
        return OCRResult(raw_text=self.text, confidence=self.confidence)


class BlockingOCR(FakeOCR):
    """OCR collaborator that waits until released."""

    def __init__(self, text: str = LABEL_TEXT):
        super().__init__(text)
        self.release = threading.Event()

    def extract_text(self, image_bytes):
        self.release.wait(timeout=5)
        return super().extract_text(image_bytes)


class FailingOCR:
    """OCR collaborator that blows up."""

    def extract_text(self, image_bytes):
        raise RuntimeError("tesseract exploded: /tmp/secret/path")


@pytest.fixture
def claim():
    return LabelClaim(
        brand_name="Old Tom Distillery",
        product_class="Kentucky Straight Bourbon Whiskey",
        alcohol_content=45,
        net_contents="750 ml",
    )


def make_service(ocr, **kwargs) -> ValidationJobService:
    settings = kwargs.pop("settings", Settings(job_id_strategy="counter", net_contents_mode="fuzzy"))
    return ValidationJobService(ocr_service=ocr, settings=settings, **kwargs)


@pytest.fixture
def service():
    svc = make_service(FakeOCR())
    yield svc
    svc.shutdown()


class TestLifecycle:
    """Test job state transitions."""

    def test_completed_success(self, service, claim):
        job = service.create(claim, IMAGE_BYTES)
        done = service.wait(job.id, timeout=5)

        assert done.status == ValidationStatus.COMPLETED
        assert done.success is True
        assert done.issues is None
        assert done.id == job.id
        assert done.created_at == job.created_at
        assert done.claim == claim

    def test_completed_with_issues(self, claim):
        svc = make_service(FakeOCR(text=""))
        try:
            job = svc.wait(svc.create(claim, IMAGE_BYTES).id, timeout=5)
        finally:
            svc.shutdown()

        assert job.status == ValidationStatus.COMPLETED
        assert job.success is False
        assert set(job.issues) == {"brandName", "productClass", "alcoholContent", "netContents"}

    def test_processing_until_background_task_finishes(self, claim):
        ocr = BlockingOCR()
        svc = make_service(ocr)
        try:
            job = svc.create(claim, IMAGE_BYTES)

            assert job.status == ValidationStatus.PROCESSING
            assert job.success is False
            assert job.issues is None
            polled = svc.get(job.id)
            assert polled.status == ValidationStatus.PROCESSING
            assert polled.success is False

            ocr.release.set()
            done = svc.wait(job.id, timeout=5)
        finally:
            ocr.release.set()
            svc.shutdown()

        assert done.status == ValidationStatus.COMPLETED
        assert svc.get(job.id).status == ValidationStatus.COMPLETED

    def test_ocr_failure_marks_job_failed(self, claim):
        svc = make_service(FailingOCR())
        try:
            job = svc.wait(svc.create(claim, IMAGE_BYTES).id, timeout=5)
        finally:
            svc.shutdown()

        assert job.status == ValidationStatus.FAILED
        assert job.success is False
        assert job.issues == {"general": PROCESSING_FAILED_MESSAGE}
        assert "tesseract" not in job.issues["general"]

    def test_comparison_failure_marks_job_failed(self, claim):
        class BrokenComparison:
            def compare(self, ocr_result, claim):
                raise ValueError("boom")

        svc = make_service(FakeOCR(), comparison_service=BrokenComparison())
        try:
            job = svc.wait(svc.create(claim, IMAGE_BYTES).id, timeout=5)
        finally:
            svc.shutdown()

        assert job.status == ValidationStatus.FAILED
        assert job.issues == {"general": PROCESSING_FAILED_MESSAGE}

    def test_terminal_state_never_reverts(self, service, claim):
        job = service.wait(service.create(claim, IMAGE_BYTES).id, timeout=5)
        assert job.status == ValidationStatus.COMPLETED

        service._finish(job.id, status=ValidationStatus.FAILED, success=False,
                        issues={"general": PROCESSING_FAILED_MESSAGE})

        assert service.get(job.id) == job

    def test_image_is_passed_to_ocr_but_not_stored(self, claim):
        ocr = FakeOCR()
        svc = make_service(ocr)
        try:
            job = svc.wait(svc.create(claim, IMAGE_BYTES).id, timeout=5)
        finally:
            svc.shutdown()

        assert ocr.calls == [IMAGE_BYTES]
        dumped = job.model_dump(by_alias=True)
        assert set(dumped["formData"]) == {"brandName", "productClass", "alcoholContent", "netContents"}
        assert IMAGE_BYTES not in repr(dumped).encode()

    def test_create_after_shutdown_fails_job(self, claim):
        svc = make_service(FakeOCR())
        svc.shutdown()

        job = svc.create(claim, IMAGE_BYTES)

        assert svc.get(job.id).status == ValidationStatus.FAILED


class TestReadAccess:
    """Test get / list_all."""

    def test_unknown_id_raises(self, service):
        with pytest.raises(JobNotFoundError) as exc_info:
            service.get("999")
        assert "999" in str(exc_info.value)

    def test_wait_unknown_id_raises(self, service):
        with pytest.raises(JobNotFoundError):
            service.wait("nope")

    def test_counter_ids_and_listing(self, service, claim):
        first = service.create(claim, IMAGE_BYTES)
        second = service.create(claim, IMAGE_BYTES)
        service.wait(first.id, timeout=5)
        service.wait(second.id, timeout=5)

        assert (first.id, second.id) == ("1", "2")
        jobs = service.list_all()
        assert [j.id for j in jobs] == ["1", "2"]
        assert jobs == service.list_all()

    def test_jobs_are_independent(self, service, claim):
        other = claim.model_copy(update={"brand_name": "Vvv Qqq"})
        ok = service.create(claim, IMAGE_BYTES)
        bad = service.create(other, IMAGE_BYTES)

        assert service.wait(ok.id, timeout=5).success is True
        bad_job = service.wait(bad.id, timeout=5)
        assert bad_job.success is False
        assert set(bad_job.issues) == {"brandName"}
        assert service.get(ok.id).claim.brand_name == "Old Tom Distillery"


class TestSubmit:
    """Test submission of raw form values."""

    def test_submit_creates_processing_job(self, service):
        job = service.submit("Old Tom Distillery", "Bourbon", "45", "750 ml", IMAGE_BYTES)

        assert job.status == ValidationStatus.PROCESSING
        assert job.claim.alcohol_content == 45.0
        service.wait(job.id, timeout=5)

    @pytest.mark.parametrize("brand,product_class,abv", [
        (None, "Bourbon", "45"),
        ("", "Bourbon", "45"),
        ("   ", "Bourbon", "45"),
        ("Old Tom", None, "45"),
        ("Old Tom", "Bourbon", None),
    ])
    def test_missing_required_field(self, service, brand, product_class, abv):
        with pytest.raises(InvalidClaimError, match="required"):
            service.submit(brand, product_class, abv, None, IMAGE_BYTES)
        assert service.list_all() == []

    @pytest.mark.parametrize("abv", ["abc", "nan", "inf", "4 5"])
    def test_non_numeric_alcohol_content(self, service, abv):
        with pytest.raises(InvalidClaimError, match="valid number"):
            service.submit("Old Tom", "Bourbon", abv, None, IMAGE_BYTES)
        assert service.list_all() == []

    @pytest.mark.parametrize("abv", ["-1", "100.5"])
    def test_out_of_range_alcohol_content(self, service, abv):
        with pytest.raises(InvalidClaimError):
            service.submit("Old Tom", "Bourbon", abv, None, IMAGE_BYTES)
        assert service.list_all() == []

    @pytest.mark.parametrize("image", [None, b""])
    def test_missing_image(self, service, image):
        with pytest.raises(InvalidClaimError, match="labelImage"):
            service.submit("Old Tom", "Bourbon", "45", None, image)
        assert service.list_all() == []


class TestBuildClaim:
    """Test build_claim."""

    def test_parses_and_strips(self):
        claim = build_claim("  Old Tom  ", " Bourbon ", " 45.5% ", "  ")
        assert claim.brand_name == "Old Tom"
        assert claim.product_class == "Bourbon"
        assert claim.alcohol_content == 45.5
        assert claim.net_contents is None

    def test_accepts_numbers(self):
        assert build_claim("Old Tom", "Bourbon", 40).alcohol_content == 40.0

    def test_rejects_bool(self):
        with pytest.raises(InvalidClaimError):
            build_claim("Old Tom", "Bourbon", True)


class TestStoreAndIds:
    """Test InMemoryJobStore and id generators."""

    def test_counter_starts_at_one(self):
        gen = CounterIdGenerator()
        assert [gen(), gen(), gen()] == ["1", "2", "3"]

    def test_counter_is_thread_safe(self):
        gen = CounterIdGenerator()
        ids = []
        lock = threading.Lock()

        def worker():
            for _ in range(200):
                new_id = gen()
                with lock:
                    ids.append(new_id)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(ids)) == 800

    def test_uuid_ids_unique(self):
        gen = UuidIdGenerator()
        assert len({gen() for _ in range(100)}) == 100

    def test_make_id_generator(self):
        assert isinstance(make_id_generator("counter"), CounterIdGenerator)
        assert isinstance(make_id_generator("uuid"), UuidIdGenerator)
        with pytest.raises(ValueError):
            make_id_generator("snowflake")

    def test_uuid_strategy_from_settings(self, claim):
        svc = make_service(FakeOCR(), settings=Settings(job_id_strategy="uuid"))
        try:
            job = svc.create(claim, IMAGE_BYTES)
            svc.wait(job.id, timeout=5)
        finally:
            svc.shutdown()
        assert len(job.id) == 32

    def test_store_rejects_duplicate_and_unknown(self, service, claim):
        store = InMemoryJobStore()
        job = service.create(claim, IMAGE_BYTES)
        service.wait(job.id, timeout=5)

        store.add(job)
        with pytest.raises(ValueError):
            store.add(job)
        with pytest.raises(JobNotFoundError):
            store.replace(job.model_copy(update={"id": "other"}))
