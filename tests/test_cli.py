from pathlib import Path

import yaml
from click.testing import CliRunner

from port_management.cli import main
from port_management.probe import bound_port, port_available

runner = CliRunner()


def test_main_help() -> None:
    r = runner.invoke(main, ["--help"])
    assert r.exit_code == 0
    for command in ("reserve", "reserve-all", "probe"):
        assert command in r.output


def test_reserve_no_hold_prints_and_releases() -> None:
    r = runner.invoke(main, ["reserve", "--address", "127.0.0.1", "--port", "0", "--no-hold"])
    assert r.exit_code == 0, r.output
    address, port = r.output.split()
    assert address == "127.0.0.1"
    assert int(port) > 0
    assert port_available(address, int(port))


def test_reserve_uses_config_defaults(tmp_path: Path) -> None:
    props = tmp_path / "pm.properties"
    props.write_text("PORT_MANAGEMENT_ADDRESS=127.0.0.1\n")
    r = runner.invoke(main, ["--config", str(props), "reserve", "--no-hold"])
    assert r.exit_code == 0, r.output
    assert r.output.startswith("127.0.0.1 ")


def test_reserve_env_overrides_properties(tmp_path: Path) -> None:
    props = tmp_path / "pm.properties"
    props.write_text("PORT_MANAGEMENT_ADDRESS=::1\n")
    r = runner.invoke(
        main,
        ["--config", str(props), "reserve", "--no-hold"],
        env={"PORT_MANAGEMENT_ADDRESS": "127.0.0.1", "PORT_MANAGEMENT_PORT": "0"},
    )
    assert r.exit_code == 0, r.output
    assert r.output.startswith("127.0.0.1 ")


def test_reserve_invalid_port_config() -> None:
    r = runner.invoke(
        main,
        ["reserve", "--address", "127.0.0.1", "--no-hold"],
        env={"PORT_MANAGEMENT_PORT": "http"},
    )
    assert r.exit_code == 1
    assert "PORT_MANAGEMENT_PORT" in r.output


def test_reserve_port_in_use_fails() -> None:
    with bound_port("127.0.0.1") as port:
        r = runner.invoke(main, ["reserve", "--address", "127.0.0.1", "--port", str(port), "--no-hold"])
    assert r.exit_code == 1
    assert f"[127.0.0.1]:{port}" in r.output


def test_config_file_must_exist(tmp_path: Path) -> None:
    r = runner.invoke(main, ["--config", str(tmp_path / "missing.properties"), "probe", "127.0.0.1", "1"])
    assert r.exit_code != 0
    assert "Properties file not found" in r.output


def test_invalid_log_level() -> None:
    r = runner.invoke(main, ["--log-level", "chatty", "probe", "127.0.0.1", "1"])
    assert r.exit_code == 2
    assert "unknown log level" in r.output


def test_probe_available() -> None:
    with bound_port("127.0.0.1") as port:
        pass
    r = runner.invoke(main, ["probe", "127.0.0.1", str(port)])
    assert r.exit_code == 0
    assert r.output.strip() == "available"


def test_probe_in_use() -> None:
    with bound_port("127.0.0.1") as port:
        r = runner.invoke(main, ["probe", "127.0.0.1", str(port)])
    assert r.exit_code == 1
    assert r.output.strip() == "in-use"


def test_probe_rejects_port_zero() -> None:
    r = runner.invoke(main, ["probe", "127.0.0.1", "0"])
    assert r.exit_code == 2


def test_reserve_all_yaml(tmp_path: Path) -> None:
    f = tmp_path / "reservations.yaml"
    f.write_text("defaults:\n  address: 127.0.0.1\nreservations:\n  http: {}\n  admin: {port: 0}\n")
    r = runner.invoke(main, ["reserve-all", str(f), "--no-hold", "--format", "yaml"])
    assert r.exit_code == 0, r.output
    bound = yaml.safe_load(r.output)
    assert list(bound) == ["http", "admin"]
    assert bound["http"]["address"] == "127.0.0.1"
    assert bound["http"]["port"] != bound["admin"]["port"]
    assert all(port_available(b["address"], b["port"]) for b in bound.values())


def test_reserve_all_text(tmp_path: Path) -> None:
    f = tmp_path / "reservations.yaml"
    f.write_text("reservations:\n  http: {address: 127.0.0.1, port: 0}\n")
    r = runner.invoke(main, ["reserve-all", str(f), "--no-hold"])
    assert r.exit_code == 0, r.output
    name, address, port = r.output.split()
    assert (name, address) == ("http", "127.0.0.1")
    assert int(port) > 0


def test_reserve_all_invalid_file(tmp_path: Path) -> None:
    f = tmp_path / "reservations.yaml"
    f.write_text("reservations:\n  http: {port: eighty}\n")
    r = runner.invoke(main, ["reserve-all", str(f), "--no-hold"])
    assert r.exit_code == 1
    assert "'http'" in r.output


def test_reserve_all_malformed_yaml(tmp_path: Path) -> None:
    f = tmp_path / "reservations.yaml"
    f.write_text("reservations:\n  http: {port: 0\n")
    r = runner.invoke(main, ["reserve-all", str(f), "--no-hold"])
    assert r.exit_code == 1
    assert "invalid YAML" in r.output
    assert r.exception is None or isinstance(r.exception, SystemExit)
