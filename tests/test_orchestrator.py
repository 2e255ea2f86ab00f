"""
Tests for the extraction orchestrator.
"""

import pytest

from cccd.schema import CardRecord, ErrorKind, ScanResult
from src.core.adapters import AdapterRegistry
from src.extraction import ExtractionOrchestrator, ScanMethod

PIPE_PAYLOAD = "001199012345|NGUYEN VAN A|01/01/1999|Nam|Ha Noi|Ha Noi|01/01/2030|01/01/2020"


class FakeAdapter:
    """Adapter returning a canned result and counting calls."""

    def __init__(self, result=None, exc=None):
        self.result = result
        self.exc = exc
        self.calls = []

    name = "fake"
    confidence = 0.5
    is_available = True

    def extract(self, source):
        self.calls.append(source)
        if self.exc is not None:
            raise self.exc
        return self.result


def ok_result(source):
    return ScanResult.ok(CardRecord(cardNumber="001199012345"), 0.9, source)


def fail_result(source):
    return ScanResult.fail("nothing", ErrorKind.NO_DATA, source)


@pytest.fixture
def registry():
    return AdapterRegistry()


def install(registry, name, adapter):
    registry.register_adapter(name, lambda **options: adapter)
    return adapter


class TestScanMethod:
    """Tests for method parsing."""

    @pytest.mark.parametrize("value", ["qr", "QR", ScanMethod.QR, " Qr "])
    def test_parse(self, value):
        assert ScanMethod.parse(value) is ScanMethod.QR

    def test_unknown(self):
        with pytest.raises(ValueError):
            ScanMethod.parse("barcode")


class TestExtract:
    """Tests for single-method extraction."""

    def test_nfc_payload_end_to_end(self, registry):
        result = ExtractionOrchestrator(registry).extract(ScanMethod.NFC, PIPE_PAYLOAD)

        assert result.success
        assert result.source == "nfc"
        assert result.data.fullName == "NGUYEN VAN A"

    def test_ocr_text_end_to_end(self, registry, card_text):
        result = ExtractionOrchestrator(registry).extract("ocr", card_text)

        assert result.success
        assert result.data.cardNumber == "079203001234"

    def test_runs_exactly_one_adapter(self, registry):
        qr = install(registry, "qr", FakeAdapter(fail_result("qr")))
        ocr = install(registry, "ocr", FakeAdapter(ok_result("ocr")))

        result = ExtractionOrchestrator(registry).extract("qr", b"img")

        assert not result.success
        assert qr.calls == [b"img"]
        assert ocr.calls == []

    def test_unexpected_exception_becomes_failure(self, registry):
        install(registry, "qr", FakeAdapter(exc=RuntimeError("kaboom")))

        result = ExtractionOrchestrator(registry).extract("qr", b"img")

        assert isinstance(result, ScanResult)
        assert not result.success
        assert result.error_code is ErrorKind.NO_DATA

    def test_unknown_method(self, registry):
        result = ExtractionOrchestrator(registry).extract("barcode", "x")

        assert not result.success
        assert result.error_code is ErrorKind.UNSUPPORTED

    def test_unknown_engine(self, registry):
        result = ExtractionOrchestrator(registry).extract("ocr", "text", engine="paddle")

        assert not result.success
        assert result.error_code is ErrorKind.UNSUPPORTED

    def test_engine_option_selects_adapter(self, registry, card_text):
        result = ExtractionOrchestrator(registry).extract("ocr", card_text, engine="vietocr")
        assert result.confidence == 0.90

    def test_stats(self, registry):
        orchestrator = ExtractionOrchestrator(registry)
        orchestrator.extract("nfc", PIPE_PAYLOAD)
        orchestrator.extract("nfc", "")

        assert orchestrator.get_stats() == {"attempts": 2, "successes": 1, "failures": 1}


class TestExtractFirst:
    """Tests for caller-ordered plans."""

    def test_first_success_wins(self, registry):
        qr = install(registry, "qr", FakeAdapter(fail_result("qr")))
        ocr = install(registry, "ocr", FakeAdapter(ok_result("ocr")))
        ai = install(registry, "ai", FakeAdapter(ok_result("ai")))

        result = ExtractionOrchestrator(registry).extract_first(
            [("qr", b"a"), ("ocr", b"b"), ("ai", b"c")]
        )

        assert result.source == "ocr"
        assert len(qr.calls) == len(ocr.calls) == 1
        assert ai.calls == []

    def test_last_failure_returned(self, registry):
        install(registry, "qr", FakeAdapter(fail_result("qr")))
        install(registry, "ai", FakeAdapter(fail_result("ai")))

        result = ExtractionOrchestrator(registry).extract_first([("qr", b"a"), ("ai", b"b")])

        assert not result.success
        assert result.source == "ai"

    def test_only_listed_steps_run(self, registry):
        ai = install(registry, "ai", FakeAdapter(ok_result("ai")))
        install(registry, "qr", FakeAdapter(fail_result("qr")))

        ExtractionOrchestrator(registry).extract_first([("qr", b"a")])

        assert ai.calls == []

    def test_step_options(self, registry, card_text):
        result = ExtractionOrchestrator(registry).extract_first(
            [(ScanMethod.OCR, card_text, {"engine": "google-vision"})]
        )
        assert result.confidence == 0.95

    def test_empty_plan(self, registry):
        result = ExtractionOrchestrator(registry).extract_first([])

        assert not result.success
        assert result.error_code is ErrorKind.UNSUPPORTED
