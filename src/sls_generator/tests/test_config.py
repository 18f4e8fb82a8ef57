import pytest

from sls_generator import config as site_config
from sls_generator.errors import InputValidationError
from sls_generator.tests.system_builder import make_config


def test_defaults_are_valid():
    assert site_config.validate_flags(site_config.InitConfig()) == []


def test_base_config_is_valid():
    assert site_config.validate_flags(make_config()) == []
    site_config.check_flags(make_config())


def test_load_yaml_with_dashes(tmp_path):
    config_file = tmp_path / "system_config.yaml"
    config_file.write_text(
        "system-name: drax\n"
        "site-domain: example.com\n"
        "mountain-cabinets: 0\n"
        "nmn-bootstrap-vlan: 12\n"
        "can-cidr: 10.102.11.0/24\n"
        "can-gateway: 10.102.11.1\n"
    )
    loaded = site_config.load_config(str(config_file))
    assert loaded.system_name == "drax"
    assert loaded.mountain_cabinets == 0
    assert loaded.nmn_bootstrap_vlan == 12
    assert loaded.hmn_bootstrap_vlan == 4


def test_overrides_win_over_file(tmp_path):
    config_file = tmp_path / "system_config.yaml"
    config_file.write_text("system-name: drax\nriver-cabinets: 2\n")
    loaded = site_config.load_config(str(config_file), {"river_cabinets": 4, "system_name": None})
    assert loaded.river_cabinets == 4
    assert loaded.system_name == "drax", "None overrides leave the file value alone"


def test_unknown_keys(tmp_path):
    config_file = tmp_path / "system_config.yaml"
    config_file.write_text("not-a-setting: 1\n")
    with pytest.raises(InputValidationError) as exc:
        site_config.load_config(str(config_file))
    assert exc.value.errors[0].startswith("not_a_setting:")

    with pytest.raises(InputValidationError) as exc:
        site_config.load_config(overrides={"fancy": True})
    assert exc.value.errors == ["fancy"]


def test_badly_typed_file_value(tmp_path):
    config_file = tmp_path / "system_config.yaml"
    config_file.write_text("supernet: sometimes\n")
    with pytest.raises(InputValidationError) as exc:
        site_config.load_config(str(config_file))
    assert len(exc.value.errors) == 1
    assert exc.value.errors[0].startswith("supernet:")


def test_overrides_are_type_checked():
    with pytest.raises(InputValidationError) as exc:
        site_config.load_config(overrides={"mountain_cabinets": "many"})
    assert exc.value.errors[0].startswith("mountain_cabinets:")

    loaded = site_config.load_config(overrides={"mountain_cabinets": "2", "bican_user_network_name": "CHN"})
    assert loaded.mountain_cabinets == 2
    assert "bican_user_network_name" in loaded.model_fields_set


def test_config_must_be_a_mapping(tmp_path):
    config_file = tmp_path / "system_config.yaml"
    config_file.write_text("- one\n- two\n")
    with pytest.raises(InputValidationError):
        site_config.load_config(str(config_file))


@pytest.mark.parametrize("flag", ["bgp_asn", "bgp_cmn_asn", "bgp_nmn_asn", "bgp_chn_asn"])
def test_asn_range(flag):
    errors = site_config.validate_flags(make_config(**{flag: 70000}))
    assert len(errors) == 1
    assert flag in errors[0]
    assert site_config.validate_flags(make_config(**{flag: 64512})) == []


def test_user_network_gateway_required():
    errors = site_config.validate_flags(make_config(can_gateway=""))
    assert errors == ["can_gateway is required because bican_user_network_name is set to CAN "
                      "but can_gateway was not set or was blank."]

    errors = site_config.validate_flags(make_config(bican_user_network_name="CHN"))
    assert any(e.startswith("chn_gateway is required") for e in errors), errors


def test_user_network_name():
    errors = site_config.validate_flags(make_config(bican_user_network_name="FOO"))
    assert errors == ["bican_user_network_name must be set to CAN, CHN or HSN. (HSN requires NAT device)"]
    assert site_config.validate_flags(make_config(bican_user_network_name="HSN")) == []


def test_address_formats():
    errors = site_config.validate_flags(make_config(site_dns="dns.example.com", can_gateway="10.102.11"))
    assert "site_dns should be an ip address and is not set correctly" in errors
    assert "can_gateway should be an ip address and is not set correctly" in errors

    errors = site_config.validate_flags(make_config(nmn_cidr="10.252.0.0", hsn_cidr="10.253.0.0/99"))
    assert len(errors) == 2
    assert all("should be a CIDR" in e for e in errors)


def test_external_dns_needed_with_static_pool():
    errors = site_config.validate_flags(make_config(cmn_static_pool="10.103.6.64/27"))
    assert errors == ["cmn_external_dns is required when cmn_static_pool is set"]


def test_kubernetes_settings():
    errors = site_config.validate_flags(make_config(
        cilium_operator_replicas=0, cilium_kube_proxy_replacement="sometimes", k8s_primary_cni="flannel"))
    assert len(errors) == 3


def test_check_flags_reports_everything():
    with pytest.raises(InputValidationError) as exc:
        site_config.check_flags(make_config(bgp_asn=1, k8s_primary_cni="flannel"))
    assert len(exc.value.errors) == 2
    assert str(exc.value).startswith("configuration is invalid")
