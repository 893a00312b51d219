import pytest

from tests.fake.fake_stream import RecordingSink
from tests.fake.fake_transport import FakeTransport

from respwire.core.models.config import CodecConfig
from respwire.core.protocol.parser import Parser


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def small_config():
    return CodecConfig(
        max_bulk_length=16,
        max_array_length=4,
        max_line_length=8,
        max_depth=3,
        max_buffer_size=64,
    )


@pytest.fixture
def parser():
    return Parser()


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "RESPWIRE_CONFIG",
        "RESPWIRE_LIMITS__MAX_DEPTH",
        "RESPWIRE_LIMITS__MAX_BULK_LENGTH",
        "RESPWIRE_BRIDGE__FLOAT_POLICY",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
