"""Shared fixtures for the CCCD extraction tests."""

import io

import pytest
from PIL import Image

from cccd.schema import CardRecord

CARD_TEXT = """CỘNG HÒA XÃ HỘI CHỦ NGHĨA VIỆT NAM
Độc lập - Tự do - Hạnh phúc
CĂN CƯỚC CÔNG DÂN
Số / No.: 079203001234
Họ và tên / Full name:
NGUYỄN THỊ MAI
Ngày sinh / Date of birth: 15/08/1995
Giới tính / Sex: Nữ Quốc tịch / Nationality: Việt Nam
Quê quán / Place of origin: Xã Tân Phú, Đồng Nai
Nơi thường trú / Place of residence: 12 Lê Lợi, Quận 1, TP Hồ Chí Minh
Có giá trị đến: 15/08/2035
"""


@pytest.fixture
def card_text():
    """Recognised text from the front of a card, header included."""
    return CARD_TEXT


@pytest.fixture
def sample_record():
    """A fully populated card record."""
    return CardRecord(
        cardNumber="001199012345",
        fullName="NGUYEN VAN A",
        dateOfBirth="01/01/1999",
        sex="Nam",
        nationality="Việt Nam",
        placeOfOrigin="Ha Noi",
        placeOfResidence="Ha Noi",
        dateOfExpiry="01/01/2030",
        dateOfIssue="01/01/2020",
    )


@pytest.fixture
def png_bytes():
    """A small encoded PNG with no optical code on it."""
    buf = io.BytesIO()
    Image.new("RGB", (40, 30), (200, 220, 200)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def image_file(tmp_path, png_bytes):
    path = tmp_path / "card.png"
    path.write_bytes(png_bytes)
    return path
