"""Fixtures shared by the unit test packages."""

import os
from collections.abc import Callable, Generator
from datetime import UTC, datetime

import pytest
from pytest_mock import MockerFixture, MockType

from addressbook.core.config import LogConfig, Settings, get_settings
from addressbook.core.context import RequestContext
from addressbook.core.error_context import _get_sensitive_fields
from addressbook.domain.addresses.models import Address

APP_ENV_PREFIXES = (
    "APP_",
    "API_",
    "ENVIRONMENT",
    "DEBUG",
    "LOG_CONFIG__",
    "OBSERVABILITY_CONFIG__",
    "DATABASE_CONFIG__",
    "DISTANCE_MATRIX_CONFIG__",
)
CLOUD_ENV_VARS = ("K_SERVICE", "K_REVISION", "AWS_EXECUTION_ENV", "AWS_REGION")

FIXED_TIMESTAMP = datetime(2024, 6, 14, 12, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Hide application variables set in the developer's shell.

    Cloud platform variables are left to ``mock_cloud_env``.
    """
    for key in list(os.environ):
        if key.startswith(APP_ENV_PREFIXES):
            monkeypatch.delenv(key)


@pytest.fixture(autouse=True)
def fresh_caches() -> Generator[None]:
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()
    yield
    get_settings.cache_clear()
    _get_sensitive_fields.cache_clear()


@pytest.fixture(autouse=True)
def clean_context() -> Generator[None]:
    RequestContext.clear()
    yield
    RequestContext.clear()


@pytest.fixture
def mock_settings(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Settings loaded from a known set of environment variables."""
    for name, value in {
        "APP_NAME": "TestApp",
        "APP_VERSION": "1.0.0",
        "ENVIRONMENT": "development",
        "DEBUG": "false",
        "API_HOST": "127.0.0.1",
        "API_PORT": "3000",
    }.items():
        monkeypatch.setenv(name, value)
    return Settings()


@pytest.fixture
def mock_main_dependencies(
    mocker: MockerFixture, mock_settings: Settings
) -> dict[str, MockType]:
    """Patch what ``main.main`` calls out to."""
    return {
        "get_settings": mocker.patch("main.get_settings", return_value=mock_settings),
        "setup_logging": mocker.patch("main.setup_logging"),
        "logger": mocker.patch("main.logger"),
        "uvicorn_run": mocker.patch("uvicorn.run"),
    }


@pytest.fixture
def mock_cloud_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, Callable[[], None]]:
    """Start with no cloud variables; the returned setters fake a platform."""
    for name in CLOUD_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    def set_gcp() -> None:
        monkeypatch.setenv("K_SERVICE", "addressbook")
        monkeypatch.setenv("K_REVISION", "addressbook-00001")

    def set_aws() -> None:
        monkeypatch.setenv("AWS_EXECUTION_ENV", "AWS_ECS_FARGATE")
        monkeypatch.setenv("AWS_REGION", "eu-west-1")

    return {"set_gcp": set_gcp, "set_aws": set_aws}


@pytest.fixture
def mock_get_settings(mocker: MockerFixture) -> MockType:
    """Make error_context see a custom list of sensitive field names."""
    log_config = mocker.Mock(spec=LogConfig)
    log_config.sensitive_fields = ["custom_secret", "origins", "key"]
    settings = mocker.Mock(spec=Settings)
    settings.log_config = log_config

    _get_sensitive_fields.cache_clear()
    return mocker.patch(
        "addressbook.core.error_context.get_settings", return_value=settings
    )


@pytest.fixture
def make_address() -> Callable[..., Address]:
    """Build an Address that looks like it was loaded from the database."""

    def _make(
        address_id: int = 1,
        street: str = "Rue de Rivoli",
        house_number: int = 99,
        zip_code: str = "75001",
        city: str = "Paris",
        country: str = "France",
    ) -> Address:
        return Address(
            id=address_id,
            street=street,
            house_number=house_number,
            zip_code=zip_code,
            city=city,
            country=country,
            created_at=FIXED_TIMESTAMP,
            updated_at=FIXED_TIMESTAMP,
        )

    return _make
