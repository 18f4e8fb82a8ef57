import pytest

from sls_generator.errors import TopologyError
from sls_generator.hardware.cabinets import CabinetDetail, CabinetGroupDetail, CabinetKind, ChassisCount, \
    cabinet_counts, filter_air_cooled_count, filter_and, filter_kind, gen_cabinet_templates
from sls_generator.hardware.types import CabinetClass
from sls_generator.networking.builder import NetworkBuilder
from sls_generator.networking.layout import prepare_layouts
from sls_generator.tests.system_builder import make_config, small_system


def _networks(config, seeds):
    layouts = prepare_layouts(config, cabinet_counts(seeds.cabinets), len(seeds.ncns), len(seeds.switches))
    return NetworkBuilder(config, seeds.cabinets, seeds.switches).build(layouts)


def _ex2500(liquid, air):
    return CabinetGroupDetail(kind=CabinetKind.EX2500, cabinets=1, cabinet_details=[
        CabinetDetail(id=9000, chassis_count=ChassisCount(liquid_cooled=liquid, air_cooled=air))])


def test_populate_ids():
    group = CabinetGroupDetail(kind=CabinetKind.MOUNTAIN, cabinets=3, starting_cabinet=1000,
                               cabinet_details=[CabinetDetail(id=0), CabinetDetail(id=1500)])
    group.populate_ids()
    assert group.cabinet_ids() == [1000, 1500, 1002]

    listed = CabinetGroupDetail(kind=CabinetKind.RIVER, cabinets=1, starting_cabinet=3000,
                                cabinet_details=[CabinetDetail(id=3000), CabinetDetail(id=3001)])
    listed.populate_ids()
    assert listed.cabinets == 2


def test_kind_classes():
    assert CabinetKind.EX2000.cabinet_class == CabinetClass.HILL
    assert CabinetKind.EX4000.cabinet_class == CabinetClass.MOUNTAIN
    assert CabinetKind.EX2500.is_model
    assert not CabinetKind.RIVER.is_model


def test_cabinet_counts():
    groups = [
        CabinetGroupDetail(kind=CabinetKind.RIVER, cabinet_details=[CabinetDetail(id=3000)]),
        CabinetGroupDetail(kind=CabinetKind.EX2000, cabinet_details=[CabinetDetail(id=9000)]),
        CabinetGroupDetail(kind=CabinetKind.EX2500, cabinet_details=[CabinetDetail(id=9001)]),
    ]
    assert cabinet_counts(groups) == {"River": 1, "Hill": 2, "Mountain": 0}


def test_filters():
    group = _ex2500(1, 1)
    detail = group.cabinet_details[0]
    ex2500_mixed = filter_and(filter_kind(CabinetKind.EX2500), filter_air_cooled_count(1))
    assert ex2500_mixed(group, detail)
    assert not ex2500_mixed(group, CabinetDetail(id=1))


def test_templates_from_networks():
    config = make_config()
    seeds = small_system().seeds(config)
    templates = gen_cabinet_templates(seeds.cabinets, _networks(config, seeds))

    river = templates[CabinetClass.RIVER]["x3000"]
    assert river.air_cooled_chassis == [0]
    assert river.liquid_cooled_chassis == []
    assert river.networks["cn"]["NMN"].vlan == 1770
    assert river.networks["ncn"] == river.networks["cn"]

    mountain = templates[CabinetClass.MOUNTAIN]["x1001"]
    assert mountain.liquid_cooled_chassis == list(range(8))
    nmn = mountain.networks["cn"]["NMN"]
    assert (nmn.cidr, nmn.gateway, nmn.vlan) == ("10.100.4.0/22", "10.100.4.1", 2001)
    assert mountain.networks["cn"]["HMN"].vlan == 3001
    assert "ncn" not in mountain.networks

    hardware = mountain.to_hardware().todict()
    assert hardware["TypeString"] == "Cabinet"
    assert hardware["Parent"] == "s0"
    assert hardware["ExtraProperties"]["Networks"]["cn"]["NMN"]["VLan"] == 2001
    assert "Model" not in hardware["ExtraProperties"]


@pytest.mark.parametrize("liquid,air,expected_liquid,expected_air", [
    (3, 0, [0, 1, 2], []),
    (1, 0, [0], []),
    (1, 1, [0], [4]),
    (0, 1, [], [4]),
])
def test_ex2500_chassis(liquid, air, expected_liquid, expected_air):
    template = gen_cabinet_templates([_ex2500(liquid, air)], {})[CabinetClass.HILL]["x9000"]
    assert template.liquid_cooled_chassis == expected_liquid
    assert template.air_cooled_chassis == expected_air
    assert template.model == "EX2500"


@pytest.mark.parametrize("liquid,air", [(4, 0), (0, 0), (2, 1), (1, 2)])
def test_ex2500_bad_chassis_counts(liquid, air):
    with pytest.raises(TopologyError):
        gen_cabinet_templates([_ex2500(liquid, air)], {})


def test_ex2500_needs_counts():
    group = CabinetGroupDetail(kind=CabinetKind.EX2500, cabinets=1, cabinet_details=[CabinetDetail(id=9000)])
    with pytest.raises(TopologyError) as exc:
        gen_cabinet_templates([group], {})
    assert "require chassis counts" in str(exc.value)


def test_hill_defaults_and_overrides():
    hill = CabinetGroupDetail(kind=CabinetKind.HILL, cabinet_details=[CabinetDetail(id=9000)])
    template = gen_cabinet_templates([hill], {})[CabinetClass.HILL]["x9000"]
    assert template.liquid_cooled_chassis == [1, 3]

    hill.cabinet_details[0].chassis_count = ChassisCount(liquid_cooled=2)
    with pytest.raises(TopologyError):
        gen_cabinet_templates([hill], {})


@pytest.mark.parametrize("kind", [CabinetKind.RIVER, CabinetKind.MOUNTAIN])
def test_chassis_counts_not_allowed(kind):
    group = CabinetGroupDetail(kind=kind, cabinet_details=[
        CabinetDetail(id=3000, chassis_count=ChassisCount(air_cooled=1))])
    with pytest.raises(TopologyError) as exc:
        gen_cabinet_templates([group], {})
    assert "not permitted" in str(exc.value)
