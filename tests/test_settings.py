import pytest
from pydantic import ValidationError

from models import NodeTypeEnum
from settings import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("HOUSE_SYSTEM", raising=False)
    settings = Settings(_env_file=None)
    assert settings.HOUSE_SYSTEM == "Placidus"
    assert settings.NODE_TYPE == "true"
    assert settings.GEOCODER_ENABLED is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("NODE_TYPE", "MEAN")
    monkeypatch.setenv("NEAREST_LOCATION_MAX_DISTANCE", "2.5")
    settings = Settings(_env_file=None)
    assert settings.NODE_TYPE is NodeTypeEnum.MEAN
    assert settings.NEAREST_LOCATION_MAX_DISTANCE == 2.5


@pytest.mark.parametrize("name,value", [("HOUSE_SYSTEM", "Astrolabe"), ("NODE_TYPE", "osculating")])
def test_invalid_values_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)
