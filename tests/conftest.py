from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from app.services.settings_service import AISettings, GatewaySettings, TenantConfig


@pytest.fixture
def db_session():
    """Mock database session."""
    return MagicMock()


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def gateway():
    return GatewaySettings(api_url="https://wa.example.com/api/v1/message/send", api_key="gw-key")


@pytest.fixture
def tenant_config(user_id, gateway):
    return TenantConfig(
        user_id=user_id,
        gateway=gateway,
        ai=AISettings(vendor="openai", api_key="ai-key"),
    )
