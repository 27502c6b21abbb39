"""Settings validation."""
import pytest
from pydantic import ValidationError

from app.config import Settings


def test_defaults():
    s = Settings(DATABASE_URL="sqlite://")
    assert s.DOMAIN_VERIFICATION_MAX_ATTEMPTS == 10
    assert s.DOMAIN_VERIFICATION_TIMEOUT_SECONDS == 5.0
    assert s.DOMAIN_VERIFICATION_MAX_REDIRECTS == 5
    assert s.DOMAIN_VERIFICATION_SWEEP_INTERVAL_HOURS == 4
    assert s.SQLALCHEMY_DATABASE_URI == "sqlite://"


@pytest.mark.parametrize("field, value", [
    ("DOMAIN_VERIFICATION_MAX_ATTEMPTS", 0),
    ("DOMAIN_VERIFICATION_SWEEP_INTERVAL_HOURS", 0),
    ("DOMAIN_VERIFICATION_TIMEOUT_SECONDS", 0),
])
def test_rejects_non_positive_limits(field, value):
    with pytest.raises(ValidationError):
        Settings(DATABASE_URL="sqlite://", **{field: value})


def test_production_requires_real_db_password():
    with pytest.raises(ValidationError):
        Settings(APP_ENV="production", POSTGRES_PASSWORD="postgres", DATABASE_URL=None)
