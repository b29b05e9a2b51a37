from datetime import timedelta

from quill.core.config import Settings
from quill.core.security import token_issuer


def test_cors_origins_from_comma_separated_string():
    settings = Settings(CORS_ORIGINS="http://localhost:5173, http://localhost:3000,,")

    assert settings.get_cors_origins() == ["http://localhost:5173", "http://localhost:3000"]


def test_cors_origins_from_list():
    settings = Settings(CORS_ORIGINS=["https://quill.example.com"])

    assert settings.get_cors_origins() == ["https://quill.example.com"]


def test_token_defaults():
    settings = Settings()

    assert settings.ALGORITHM == "HS256"
    assert settings.ACCESS_TOKEN_EXPIRE_MINUTES == 60 * 24
    assert token_issuer.lifetime == timedelta(days=1)
