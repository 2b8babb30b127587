"""
Shared fixtures for inquiry responder tests
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from inquiry_responder.database import DatabaseManager
from inquiry_responder.notifier import Notifier
from inquiry_responder.portal_client import PortalClient
from inquiry_responder.reply_generator import ReplyGenerator


@pytest.fixture
def store():
    """In-memory inquiry store"""
    db = DatabaseManager("sqlite://")
    yield db
    db.close()


@pytest.fixture
def notifier():
    """Notifier with every channel mocked"""
    mock = MagicMock(spec=Notifier)
    mock.notify_error = AsyncMock()
    mock.notify_success = AsyncMock()
    mock.notify_for_approval = AsyncMock()
    return mock


@pytest.fixture
def portal():
    """Portal client with every call mocked"""
    mock = MagicMock(spec=PortalClient)
    mock.extract_latest = AsyncMock()
    mock.deliver = AsyncMock()
    mock.release_session = AsyncMock()
    mock.health_check = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def generator():
    """Reply generator with every call mocked"""
    mock = MagicMock(spec=ReplyGenerator)
    mock.generate = AsyncMock()
    mock.health_check = AsyncMock(return_value=True)
    return mock
