import json

import pytest
import yaml

from sls_generator import tool
from sls_generator.tests.system_builder import BASE_CONFIG, small_system


@pytest.fixture
def seed_dir(tmp_path):
    return small_system().write(tmp_path / "seed")


@pytest.fixture
def system_config(tmp_path):
    path = tmp_path / "system_config.yaml"
    path.write_text(yaml.safe_dump({k.replace("_", "-"): v for k, v in BASE_CONFIG.items()}))
    return path


def test_generate(tmp_path, seed_dir, system_config):
    out = tmp_path / "out"
    rv = tool._main(["generate", "--system-config", str(system_config),
                     "-i", str(seed_dir), "-o", str(out)])
    assert rv == 0

    state = json.loads((out / "sls_input_file.json").read_text())
    assert state["Hardware"]["x3000c0s13b0n0"]["ExtraProperties"]["Aliases"] == ["ncn-w001"]
    assert "CAN" in state["Networks"]

    records = yaml.safe_load((out / "ncn_records.yaml").read_text())
    assert [r["hostname"] for r in records] == ["ncn-w001", "ncn-s001", "ncn-m001"]

    skipped = json.loads((out / "skipped_rows.json").read_text())
    assert len(skipped) == 3

    assert (out / "sls_generator.log").stat().st_size > 0


def test_generate_flags_override_config(tmp_path, seed_dir, system_config):
    out = tmp_path / "out"
    rv = tool._main(["generate", "--system-config", str(system_config), "--no-supernet",
                     "-i", str(seed_dir), "-o", str(out)])
    assert rv == 0

    state = json.loads((out / "sls_input_file.json").read_text())
    subnets = {s["Name"]: s for s in state["Networks"]["NMN"]["ExtraProperties"]["Subnets"]}
    assert subnets["bootstrap_dhcp"]["DHCPEnd"] == "10.252.127.254"


def test_generate_without_config(tmp_path, seed_dir, caplog):
    out = tmp_path / "out"
    assert tool._main(["generate", "-i", str(seed_dir), "-o", str(out)]) == 0

    state = json.loads((out / "sls_input_file.json").read_text())
    assert "CAN" not in state["Networks"]
    assert "No CAN Network definition provided" in caplog.text


def test_generate_missing_seed_files(tmp_path, caplog):
    rv = tool._main(["generate", "-i", str(tmp_path / "nothing"), "-o", str(tmp_path / "out")])
    assert rv == 1
    assert "seed files are invalid" in caplog.text
    assert "ncn_metadata.csv" in caplog.text


def test_validate(seed_dir, system_config, caplog):
    assert tool._main(["validate", "--system-config", str(system_config), "-i", str(seed_dir)]) == 0
    assert "configuration and seed files are valid" in caplog.text


def test_validate_reports_everything(tmp_path, seed_dir, system_config, caplog):
    (seed_dir / "switch_metadata.csv").write_text("Switch Xname,Type,Brand\nx3000c0w14,Leaf,Cisco\n")
    rv = tool._main(["validate", "--system-config", str(system_config), "--bgp-asn", "70000",
                     "-i", str(seed_dir)])
    assert rv == 1
    assert "fix the value for: bgp_asn" in caplog.text
    assert "invalid Switch Brand for x3000c0w14: Cisco" in caplog.text


def test_check_state(tmp_path, seed_dir, system_config, capsys):
    out = tmp_path / "out"
    assert tool._main(["generate", "--system-config", str(system_config),
                       "-i", str(seed_dir), "-o", str(out)]) == 0
    capsys.readouterr()

    assert tool._main(["check-state", "-f", str(out / "sls_input_file.json")]) == 0
    printed = capsys.readouterr().out
    assert "MgmtSwitchConnector" in printed
    assert "Count" in printed


def test_check_state_rejects_garbage(tmp_path, caplog):
    path = tmp_path / "sls_input_file.json"
    path.write_text(json.dumps({"Hardware": {}, "Networks": {"NMN": {}}}))
    assert tool._main(["check-state", "-f", str(path)]) == 1
    assert "sls_state_schema.json validation failed" in caplog.text


def test_show_networks(seed_dir, system_config, capsys):
    assert tool._main(["show-networks", "--system-config", str(system_config), "-i", str(seed_dir)]) == 0
    printed = capsys.readouterr().out
    assert "bootstrap_dhcp" in printed
    assert "10.102.11.0/24" in printed
    assert "DHCP Start" in printed


def test_bad_config_is_reported(seed_dir, system_config, caplog):
    rv = tool._main(["show-networks", "--system-config", str(system_config),
                     "--can-cidr", "10.102.11.0", "-i", str(seed_dir)])
    assert rv == 1
    assert "can_cidr should be a CIDR" in caplog.text


def test_badly_typed_config_is_reported(tmp_path, seed_dir, caplog):
    path = tmp_path / "system_config.yaml"
    path.write_text("supernet: sometimes\n")
    rv = tool._main(["validate", "--system-config", str(path), "-i", str(seed_dir)])
    assert rv == 1
    assert "is invalid" in caplog.text
    assert "supernet:" in caplog.text
