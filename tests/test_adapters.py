"""
Tests for the source adapters and the adapter registry.

Engines are replaced with fakes or patched ``dispatch`` calls, so the
tests need neither zxing, Tesseract nor network access.
"""

from unittest.mock import patch

import numpy as np
import pytest

from cccd.schema import ErrorKind, ScanResult
from engines.errors import EngineError, NO_DATA_MESSAGE
from src.core.adapters import (
    AdapterRegistry,
    CloudVisionAdapter,
    OpticalCodeAdapter,
    TextRecognitionAdapter,
    WirelessTagAdapter,
)
from src.core.adapters.optical_adapter import LOAD_FAILED_MESSAGE, NO_CODE_MESSAGE
from src.core.adapters.wireless_adapter import decode_record_text
from src.core.protocols import PixelBuffer, SourceAdapter, TagEvent, TagRecord
from src.config import Config

PIPE_PAYLOAD = "001199012345|NGUYEN VAN A|01/01/1999|Nam|Ha Noi|Ha Noi|01/01/2030|01/01/2020"


def rgba_buffer(width=6, height=4):
    pixels = np.full((height, width, 4), 255, dtype=np.uint8)
    return PixelBuffer(width, height, pixels.tobytes())


class TestProtocolConformance:
    """Every adapter implements SourceAdapter."""

    @pytest.mark.parametrize(
        "adapter",
        [
            WirelessTagAdapter(),
            OpticalCodeAdapter(primitive=lambda p, i: None),
            TextRecognitionAdapter(),
            CloudVisionAdapter(),
        ],
    )
    def test_implements_protocol(self, adapter):
        assert isinstance(adapter, SourceAdapter)
        assert isinstance(adapter.is_available, bool)
        assert 0.0 < adapter.confidence <= 1.0


class TestWirelessTagAdapter:
    """Tests for NFC tag readings."""

    def test_text_record(self):
        result = WirelessTagAdapter().extract(TagEvent([TagRecord("text", PIPE_PAYLOAD.encode())]))

        assert result.success
        assert result.confidence == 0.99
        assert result.source == "nfc"
        assert result.data.cardNumber == "001199012345"
        assert result.data.nationality == "Việt Nam"

    def test_ndef_language_prefix_stripped(self):
        raw = b"\x02en" + PIPE_PAYLOAD.encode()
        assert decode_record_text(TagRecord("text", raw)) == PIPE_PAYLOAD

    def test_mime_json_record(self):
        record = TagRecord(
            "mime", b'{"cccd": "079203001234", "name": "LE VAN C"}', "application/json"
        )
        result = WirelessTagAdapter().extract(TagEvent([record]))

        assert result.success
        assert result.data.fullName == "LE VAN C"

    def test_url_record(self):
        record = TagRecord("url", "https://id.example.vn/?cccd=079203001234&name=LE%20VAN%20C")
        result = WirelessTagAdapter().extract(TagEvent([record]))

        assert result.data.cardNumber == "079203001234"
        assert result.data.fullName == "LE VAN C"

    def test_first_record_with_data_wins(self):
        event = TagEvent(
            [
                TagRecord("unknown", b"\x00\x01"),
                TagRecord("text", b"   "),
                TagRecord("text", PIPE_PAYLOAD.encode()),
            ]
        )
        result = WirelessTagAdapter().extract(event)

        assert result.success
        assert result.diagnostics[-1] == "nfc:record2:text:hit"

    def test_raw_string_payload(self):
        assert WirelessTagAdapter().extract(PIPE_PAYLOAD).success

    def test_empty_tag(self):
        result = WirelessTagAdapter().extract(TagEvent([]))

        assert not result.success
        assert result.error == "Could not read CCCD data from NFC tag."
        assert result.error_code is ErrorKind.NO_DATA
        assert result.data is None


class TestOpticalCodeAdapter:
    """Tests for QR scanning."""

    def test_decoded_payload(self):
        adapter = OpticalCodeAdapter(primitive=lambda pixels, inversion: PIPE_PAYLOAD)
        result = adapter.extract(rgba_buffer())

        assert result.success
        assert result.source == "qr"
        assert result.confidence == 0.99
        assert result.data.dateOfIssue == "01/01/2020"
        assert result.diagnostics == ["qr:raw:hit"]

    def test_encoded_image(self, png_bytes):
        seen = []

        def primitive(pixels, inversion):
            seen.append(pixels.shape)
            return PIPE_PAYLOAD

        result = OpticalCodeAdapter(primitive=primitive).extract(png_bytes)

        assert result.success
        assert seen == [(30, 40, 4)]

    def test_no_code_after_all_strategies(self, image_file):
        calls = []
        adapter = OpticalCodeAdapter(primitive=lambda p, i: calls.append(i))
        result = adapter.extract(image_file)

        assert not result.success
        assert result.error == NO_CODE_MESSAGE
        assert result.error_code is ErrorKind.NO_DATA
        assert len(result.diagnostics) == 8
        assert len(calls) == 11

    def test_unreadable_image(self):
        adapter = OpticalCodeAdapter(primitive=lambda p, i: None)
        result = adapter.extract(b"definitely not an image")

        assert not result.success
        assert result.error == LOAD_FAILED_MESSAGE

    def test_degenerate_buffer(self):
        adapter = OpticalCodeAdapter(primitive=lambda p, i: pytest.fail("must not decode"))
        result = adapter.extract(PixelBuffer(0, 0, b""))

        assert not result.success
        assert "no area" in result.error

    def test_code_without_card_data(self):
        adapter = OpticalCodeAdapter(primitive=lambda p, i: "hello")
        result = adapter.extract(rgba_buffer())

        assert not result.success
        assert result.error_code is ErrorKind.NO_DATA


class TestTextRecognitionAdapter:
    """Tests for OCR plus rule parsing."""

    def test_parses_text_input(self, card_text):
        result = TextRecognitionAdapter().extract(card_text)

        assert result.success
        assert result.source == "ocr"
        assert result.confidence == 0.80
        assert result.data.cardNumber == "079203001234"
        assert result.data.fullName == "NGUYỄN THỊ MAI"

    @pytest.mark.parametrize(
        "engine,confidence", [("tesseract", 0.80), ("google-vision", 0.95), ("vietocr", 0.90)]
    )
    def test_engine_confidence(self, engine, confidence):
        assert TextRecognitionAdapter(engine=engine).confidence == confidence

    def test_unknown_engine(self):
        with pytest.raises(ValueError):
            TextRecognitionAdapter(engine="paddle")

    @patch("src.core.adapters.text_recognition_adapter.dispatch")
    def test_image_goes_through_engine(self, mock_dispatch, png_bytes, card_text):
        mock_dispatch.return_value = (card_text, [0.9])
        adapter = TextRecognitionAdapter(
            engine="vietocr", engine_options={"api_url": "http://ocr.local/ocr"}, preprocess=False
        )
        result = adapter.extract(png_bytes)

        assert result.success
        assert result.confidence == 0.90
        args, kwargs = mock_dispatch.call_args
        assert args[0] == "image_to_text"
        assert kwargs == {"engine": "vietocr", "api_url": "http://ocr.local/ocr"}

    @patch("src.core.adapters.text_recognition_adapter.dispatch")
    def test_engine_error_mapped(self, mock_dispatch, png_bytes):
        mock_dispatch.side_effect = EngineError("MISSING_DEPENDENCY", "pytesseract missing")
        result = TextRecognitionAdapter(preprocess=False).extract(png_bytes)

        assert not result.success
        assert result.error_code is ErrorKind.UNSUPPORTED
        assert "ocr:tesseract:error:MISSING_DEPENDENCY" in result.diagnostics

    @patch("src.core.adapters.text_recognition_adapter.dispatch")
    def test_unregistered_engine_mapped(self, mock_dispatch, png_bytes):
        mock_dispatch.side_effect = ValueError("Engine 'tesseract' unavailable")
        result = TextRecognitionAdapter(preprocess=False).extract(png_bytes)

        assert result.error_code is ErrorKind.UNSUPPORTED

    @pytest.mark.parametrize(
        "error",
        [ConnectionResetError("peer reset"), AttributeError("'list' object has no attribute 'get'")],
    )
    @patch("src.core.adapters.text_recognition_adapter.dispatch")
    def test_unexpected_engine_exception_mapped(self, mock_dispatch, error, png_bytes):
        mock_dispatch.side_effect = error
        result = TextRecognitionAdapter(engine="google-vision", preprocess=False).extract(png_bytes)

        assert not result.success
        assert result.error_code is ErrorKind.NO_DATA
        assert "ocr:google-vision:error:API_ERROR" in result.diagnostics

    @patch("src.core.adapters.text_recognition_adapter.dispatch")
    def test_noise_is_not_success(self, mock_dispatch, png_bytes):
        mock_dispatch.return_value = ("~~ .. ;;", [])
        result = TextRecognitionAdapter(preprocess=False).extract(png_bytes)

        assert not result.success
        assert result.error_code is ErrorKind.NO_DATA

    @pytest.mark.parametrize("text", ["", "   \n  "])
    def test_blank_text(self, text):
        result = TextRecognitionAdapter().extract(text)

        assert not result.success
        assert result.data is None

    def test_bad_image(self, tmp_path):
        result = TextRecognitionAdapter().extract(tmp_path / "missing.png")
        assert not result.success
        assert result.error_code is ErrorKind.NO_DATA


class TestCloudVisionAdapter:
    """Tests for the cloud AI providers."""

    @patch("src.core.adapters.cloud_vision_adapter.dispatch")
    def test_success(self, mock_dispatch, png_bytes):
        mock_dispatch.return_value = (
            {"cardNumber": "001199012345", "fullName": "NGUYEN VAN A", "dateOfBirth": "1999-01-01"},
            {},
        )
        adapter = CloudVisionAdapter(provider="openai", provider_options={"model": "gpt-4o"})
        result = adapter.extract(png_bytes)

        assert result.success
        assert result.confidence == 0.95
        assert result.source == "ai"
        assert result.data.dateOfBirth == "01/01/1999"
        _, kwargs = mock_dispatch.call_args
        assert kwargs["engine"] == "openai"
        assert kwargs["model"] == "gpt-4o"

    @patch("src.core.adapters.cloud_vision_adapter.dispatch")
    def test_unrecognised_sex_from_model_cleared(self, mock_dispatch, png_bytes):
        mock_dispatch.return_value = ({"cardNumber": "001199012345", "sex": "M"}, {})
        result = CloudVisionAdapter().extract(png_bytes)

        assert result.success
        assert result.data.sex == ""

    @patch("src.core.adapters.cloud_vision_adapter.dispatch")
    def test_empty_result(self, mock_dispatch, png_bytes):
        mock_dispatch.return_value = ({"nationality": "Việt Nam"}, {})
        result = CloudVisionAdapter().extract(png_bytes)

        assert not result.success
        assert result.error == NO_DATA_MESSAGE
        assert result.error_code is ErrorKind.NO_DATA

    @pytest.mark.parametrize(
        "code,kind,fragment",
        [
            ("QUOTA_EXCEEDED", ErrorKind.UNSUPPORTED, "hạn ngạch API Gemini"),
            ("INVALID_FORMAT", ErrorKind.MALFORMED_RESPONSE, "Định dạng ảnh"),
            ("SAFETY_BLOCK", ErrorKind.MALFORMED_RESPONSE, "bộ lọc an toàn"),
            ("MISSING_CREDENTIALS", ErrorKind.UNSUPPORTED, "Khóa API Gemini"),
            ("API_ERROR", ErrorKind.NO_DATA, "Gemini AI"),
        ],
    )
    def test_error_categories(self, code, kind, fragment, png_bytes):
        with patch(
            "src.core.adapters.cloud_vision_adapter.dispatch",
            side_effect=EngineError(code, "boom"),
        ):
            result = CloudVisionAdapter(provider="gemini").extract(png_bytes)

        assert not result.success
        assert result.error_code is kind
        assert fragment in result.error

    @patch("src.core.adapters.cloud_vision_adapter.dispatch")
    def test_unexpected_sdk_exception_classified(self, mock_dispatch, png_bytes):
        mock_dispatch.side_effect = RuntimeError("429 Resource has been exhausted (quota)")
        result = CloudVisionAdapter(provider="openai").extract(png_bytes)

        assert result.error_code is ErrorKind.UNSUPPORTED
        assert "OpenAI" in result.error

    def test_unreadable_image(self):
        result = CloudVisionAdapter().extract(b"not an image")
        assert not result.success
        assert result.error_code is ErrorKind.MALFORMED_RESPONSE

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            CloudVisionAdapter(provider="claude")


class TestAdapterRegistry:
    """Tests for adapter lookup."""

    def test_builtin_adapters(self):
        registry = AdapterRegistry()
        assert registry.list_adapters() == ["nfc", "qr", "ocr", "ai"]

    def test_lazy_instances_reused(self):
        registry = AdapterRegistry()
        assert registry.get_adapter("nfc") is registry.get_adapter("nfc")

    def test_options_key_instances(self):
        registry = AdapterRegistry()
        tesseract = registry.get_adapter("ocr", engine="tesseract")
        vietocr = registry.get_adapter("ocr", engine="vietocr")

        assert tesseract is not vietocr
        assert vietocr.engine == "vietocr"

    def test_unknown_adapter(self):
        assert AdapterRegistry().get_adapter("bluetooth") is None

    def test_config_defaults(self):
        config = Config(
            {"OCR_ENGINE": "google-vision", "AI_PROVIDER": "openai", "GOOGLE_VISION_API_KEY": "k"}
        )
        registry = AdapterRegistry(config)

        ocr = registry.get_adapter("ocr")
        assert ocr.engine == "google-vision"
        assert ocr.engine_options == {"api_key": "k"}
        assert registry.get_adapter("ai").provider == "openai"

    def test_register_custom_adapter(self):
        class StubAdapter:
            name = "stub"
            confidence = 0.5
            is_available = True

            def extract(self, source):
                return ScanResult.fail("stub", ErrorKind.NO_DATA, "stub")

        registry = AdapterRegistry()
        registry.register_adapter("stub", StubAdapter)

        assert "stub" in registry.get_available_adapters()
        assert isinstance(registry.get_adapter("stub"), SourceAdapter)
