"""
Tests for RSVP token issuance and admission codes
"""

import pytest

from app.services.token_service import TokenService

@pytest.fixture
def token_service():
    return TokenService(base_url="https://guests.example.com/", token_bytes=24)

def test_rsvp_tokens_are_url_safe_and_unique(token_service):
    tokens = {token_service.issue_rsvp_token() for _ in range(200)}

    assert len(tokens) == 200
    for token in tokens:
        # 24 bytes of entropy -> 32 base64url characters
        assert len(token) == 32
        assert all(c.isalnum() or c in "-_" for c in token)

def test_rsvp_link_layout(token_service):
    link = token_service.build_rsvp_link("e1", "dj@example.com", "tok_-123")

    assert link == "https://guests.example.com/rsvp/e1/dj%40example.com/tok_-123"

def test_admission_code_round_trip(token_service):
    code = token_service.derive_admission_code("4f2a9c", "77bd01")

    assert code == "4f2a9c-77bd01"
    assert token_service.validate_admission_code_format(code)
    assert token_service.parse_admission_code(code) == ("4f2a9c", "77bd01")

@pytest.mark.parametrize("code", [
    "",
    "no-separator-here",
    "-77bd01",
    "4f2a9c-",
    "nodash",
    None,
])
def test_malformed_admission_codes(token_service, code):
    assert token_service.validate_admission_code_format(code) is False
    assert token_service.parse_admission_code(code) is None

def test_admission_code_requires_both_parts(token_service):
    with pytest.raises(ValueError):
        token_service.derive_admission_code("", "77bd01")
    with pytest.raises(ValueError):
        token_service.derive_admission_code("e1", "")
    with pytest.raises(ValueError):
        token_service.derive_admission_code("e-1", "77bd01")

def test_admission_image_is_deterministic_png(token_service):
    first = token_service.encode_admission_image("4f2a9c-77bd01")
    second = token_service.encode_admission_image("4f2a9c-77bd01")

    assert first.startswith(b"\x89PNG")
    assert first == second

def test_data_url_round_trip(token_service):
    png = token_service.encode_admission_image("4f2a9c-77bd01")
    data_url = token_service.to_data_url(png)

    assert data_url.startswith("data:image/png;base64,")
    assert token_service.from_data_url(data_url) == png

def test_check_in_url_quotes_code(token_service):
    assert token_service.build_check_in_url("e1-r1") == "https://guests.example.com/checkin/qr?code=e1-r1"

@pytest.mark.parametrize("token_bytes", [8, 15])
def test_short_tokens_are_rejected(token_bytes):
    with pytest.raises(ValueError):
        TokenService(base_url="https://guests.example.com", token_bytes=token_bytes)

def test_minimum_token_size_is_accepted():
    token = TokenService(base_url="https://guests.example.com", token_bytes=16).issue_rsvp_token()
    assert len(token) == 22
