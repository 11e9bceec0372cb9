import pytest

from flakegen.config.generator_settings import GeneratorSettings, load_generator_settings
from flakegen.utils.errors import ConfigurationError
from flakegen.utils.snowflake import Snowflake, default_epoch


def test_load_should_fall_back_to_defaults_when_env_empty():
    settings = load_generator_settings({"SNOWFLAKE_WORKER_ID": "", "SNOWFLAKE_DATACENTER_ID": "  "})

    assert settings == GeneratorSettings()
    assert settings.epoch is None
    assert settings.random_sequence is True


def test_load_should_read_all_fields_from_env():
    settings = load_generator_settings(
        {
            "SNOWFLAKE_EPOCH": "1650000000",
            "SNOWFLAKE_WORKER_ID": "7",
            "SNOWFLAKE_DATACENTER_ID": "30",
            "SNOWFLAKE_TIMEOUT_MS": "250",
            "SNOWFLAKE_RANDOM_SEQUENCE": "off",
        }
    )

    assert settings == GeneratorSettings(
        epoch=1650000000,
        worker_id=7,
        datacenter_id=30,
        timeout_ms=250,
        random_sequence=False,
    )


def test_load_should_read_os_environ_by_default(monkeypatch):
    monkeypatch.setenv("SNOWFLAKE_WORKER_ID", "12")
    monkeypatch.delenv("SNOWFLAKE_DATACENTER_ID", raising=False)

    settings = load_generator_settings()

    assert settings.worker_id == 12
    assert settings.datacenter_id == 1


def test_load_should_reject_non_integer_values():
    with pytest.raises(ConfigurationError) as exc_info:
        load_generator_settings({"SNOWFLAKE_WORKER_ID": "worker-3"})

    assert exc_info.value.field == "SNOWFLAKE_WORKER_ID"
    assert exc_info.value.value == "worker-3"


def test_from_settings_should_build_generator():
    gen = Snowflake.from_settings(GeneratorSettings(worker_id=5, datacenter_id=6, timeout_ms=300))

    assert gen.epoch == default_epoch() * 1000
    assert (gen.worker_id, gen.datacenter_id, gen.timeout_ms) == (5, 6, 300)


def test_from_settings_should_validate_ranges():
    with pytest.raises(ConfigurationError):
        Snowflake.from_settings(load_generator_settings({"SNOWFLAKE_DATACENTER_ID": "40"}))
