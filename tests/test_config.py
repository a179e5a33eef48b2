import pytest
from decouple import Config, RepositoryEnv

from influxline.config import load_target

KEYS = ["INFLUX_URL", "INFLUX_USERNAME", "INFLUX_PASSWORD", "INFLUX_PRECISION", "INFLUX_TIMEOUT"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in KEYS:
        monkeypatch.delenv(key, raising=False)


def make_config(tmp_path, text):
    path = tmp_path / ".env"
    path.write_text(text)
    return Config(RepositoryEnv(str(path)))


def test_defaults(tmp_path):
    target = load_target(make_config(tmp_path, ""))

    assert target.base_url == "http://localhost:8086"
    assert target.username == ""
    assert target.password == ""
    assert target.precision == "ms"
    assert target.timeout_s == 10.0


def test_values_from_env_file(tmp_path):
    config = make_config(
        tmp_path,
        "INFLUX_URL=http://db:8086\n"
        "INFLUX_USERNAME=admin\n"
        "INFLUX_PASSWORD=secret\n"
        "INFLUX_PRECISION=ns\n"
        "INFLUX_TIMEOUT=2.5\n",
    )

    target = load_target(config)

    assert target.base_url == "http://db:8086"
    assert target.username == "admin"
    assert target.password == "secret"
    assert target.precision == "ns"
    assert target.timeout_s == 2.5


def test_environment_overrides_file(tmp_path, monkeypatch):
    monkeypatch.setenv("INFLUX_PRECISION", "s")

    target = load_target(make_config(tmp_path, "INFLUX_PRECISION=us\n"))

    assert target.precision == "s"


def test_invalid_precision(tmp_path):
    with pytest.raises(ValueError):
        load_target(make_config(tmp_path, "INFLUX_PRECISION=minutes\n"))
