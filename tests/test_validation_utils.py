import pytest
from datetime import datetime, timedelta

from utils.validation_utils import (
    format_phone_number,
    normalize_code,
    is_valid_verification_code,
    mask_phone_number,
    mask_email,
)
from utils.time_utils import utcnow, is_expired, seconds_until
from utils.rate_limit import RateLimiter


@pytest.mark.parametrize("raw, expected", [
    ("06 12 34 56 78", "+33612345678"),
    ("07.12.34.56.78", "+33712345678"),
    ("33612345678", "+33612345678"),
    ("+33 6 12 34 56 78", "+33612345678"),
    ("+44 7911 123456", "+447911123456"),
])
def test_format_phone_number(raw, expected):
    assert format_phone_number(raw) == expected


@pytest.mark.parametrize("raw", ["", "12345", "abc", "0612"])
def test_format_phone_number_rejects(raw):
    assert format_phone_number(raw) is None


def test_verification_code_format():
    assert normalize_code(" 123 456 ") == "123456"
    assert is_valid_verification_code("123 456")
    assert not is_valid_verification_code("12345")
    assert not is_valid_verification_code("12345a")
    assert not is_valid_verification_code("")


def test_masking():
    assert mask_phone_number("+33612345678") == "+*******5678"
    assert mask_email("camille.martin@orange.fr") == "c************n@orange.fr"
    assert mask_email("jo@free.fr") == "j*@free.fr"


def test_expiry_helpers():
    assert is_expired(None)
    assert is_expired(utcnow() - timedelta(seconds=1))
    assert not is_expired(utcnow() + timedelta(minutes=1))
    assert seconds_until(utcnow() - timedelta(minutes=1)) == 0
    assert 59 <= seconds_until(utcnow() + timedelta(minutes=1)) <= 60


def test_rate_limiter_window():
    limiter = RateLimiter(max_requests=3, window_seconds=300)

    assert limiter.check("1.2.3.4:/start") == (True, 0)
    assert limiter.check("1.2.3.4:/start") == (True, 0)
    assert limiter.check("1.2.3.4:/start") == (True, 0)

    allowed, retry_after = limiter.check("1.2.3.4:/start")
    assert not allowed
    assert 1 <= retry_after <= 300

    # Other clients have their own budget
    assert limiter.check("5.6.7.8:/start") == (True, 0)

    limiter.reset()
    assert limiter.check("1.2.3.4:/start") == (True, 0)


def test_rate_limiter_prunes_idle_keys():
    limiter = RateLimiter(max_requests=3, window_seconds=300)
    start = datetime(2026, 10, 17, 9, 0)

    for i in range(50):
        limiter.check(f"10.0.0.{i}:/start", now=start)
    limiter.check("1.2.3.4:/start", now=start + timedelta(minutes=4))
    assert len(limiter) == 51

    removed = limiter.prune(now=start + timedelta(minutes=6))

    assert removed == 50
    assert len(limiter) == 1
    assert limiter.check("1.2.3.4:/start", now=start + timedelta(minutes=6)) == (True, 0)


def test_rate_limiter_window_slides():
    limiter = RateLimiter(max_requests=2, window_seconds=60)
    start = datetime(2026, 10, 17, 9, 0)

    limiter.check("k", now=start)
    limiter.check("k", now=start + timedelta(seconds=30))

    assert limiter.check("k", now=start + timedelta(seconds=45)) == (False, 15)
    assert limiter.check("k", now=start + timedelta(seconds=61)) == (True, 0)
