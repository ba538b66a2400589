import pytest
from pydantic import ValidationError as SchemaValidationError

from app.core.config import EnvironmentMode, Settings, StoreBackend


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_development_defaults_to_memory_store() -> None:
    settings = make_settings(env_mode="development", store_backend=None)
    assert settings.is_development
    assert not settings.use_real_services
    assert settings.effective_store_backend == StoreBackend.MEMORY


def test_production_defaults_to_sql_store() -> None:
    settings = make_settings(env_mode="PRODUCTION", store_backend=None)
    assert settings.env_mode == EnvironmentMode.PRODUCTION
    assert settings.effective_store_backend == StoreBackend.SQL


def test_explicit_store_backend_wins() -> None:
    settings = make_settings(env_mode="production", store_backend="memory")
    assert settings.effective_store_backend == StoreBackend.MEMORY


def test_missing_gateway_credentials_are_reported() -> None:
    settings = make_settings(env_mode="staging", phonepe_merchant_id=None, phonepe_salt_key=None)
    assert settings.validate_production_config() == ["PHONEPE_MERCHANT_ID", "PHONEPE_SALT_KEY"]

    configured = make_settings(env_mode="staging", phonepe_merchant_id="M1", phonepe_salt_key="k")
    assert configured.validate_production_config() == []


def test_unknown_env_mode_is_rejected() -> None:
    with pytest.raises(SchemaValidationError):
        make_settings(env_mode="qa")
