"""Tests for graph module"""

import pytest

from graph import (
    MAX_CONTAINER_LINKS,
    CapacityExceededError,
    FactoryGraph,
    IndustryNode,
    StorageNode,
    connect,
    disconnect,
)
from recipes import recipe_book_from_json


RECIPES = recipe_book_from_json({
    "Steel": {"time": 1, "out": 75, "in": {"Iron Pure": 100, "Carbon Pure": 50}},
    "Iron Pure": {"time": 1, "out": 45, "in": {"Hematite": 65}, "byproducts": {"Oxygen Pure": 20}},
})


def test_create_nodes_in_order():
    """registry lookups should return nodes in creation order"""
    factory = FactoryGraph()
    first = factory.create_container("Iron Pure")
    factory.create_container("Carbon Pure")
    second = factory.create_container("Iron Pure")

    assert factory.get_containers("Iron Pure") == [first, second]
    assert factory.get_containers("Unknown") == []
    assert [node.node_id for node in factory.containers] == ["C0", "C1", "C2"]


def test_industry_links_update_flows():
    """industry links should update container ingress and egress"""
    factory = FactoryGraph()
    iron = factory.create_container("Iron Pure")
    refiner = factory.create_industry(RECIPES.find_recipe("Iron Pure"))
    smelter = factory.create_industry(RECIPES.find_recipe("Steel"))

    refiner.output_to(iron)
    smelter.take_from(iron)

    assert iron.ingress == 45.0
    assert iron.egress == 100.0
    assert iron.headroom == -55.0
    assert iron.incoming_link_count == 1
    assert iron.outgoing_link_count == 1
    assert refiner.output is iron
    assert smelter.inputs == [iron]


def test_split_container_flow_share():
    """industries should take only their share from a split container"""
    factory = FactoryGraph()
    half = factory.create_split_container("Iron Pure", 0.5)
    smelter = factory.create_industry(RECIPES.find_recipe("Steel"))

    smelter.take_from(half)

    assert half.is_split
    assert half.egress == 50.0


def test_container_link_limit():
    """containers should refuse links beyond MAX_CONTAINER_LINKS"""
    factory = FactoryGraph()
    iron = factory.create_container("Iron Pure")
    recipe = RECIPES.find_recipe("Iron Pure")
    for _ in range(MAX_CONTAINER_LINKS):
        factory.create_industry(recipe).output_to(iron)

    assert not iron.can_add_incoming_links(1)
    assert iron.can_add_incoming_links(0)
    with pytest.raises(CapacityExceededError):
        factory.create_industry(recipe).output_to(iron)
    assert iron.incoming_link_count == MAX_CONTAINER_LINKS


def test_split_container_single_link():
    """split containers should have one outgoing link only, whatever it carries"""
    factory = FactoryGraph()
    half = factory.create_split_container("Iron Pure", 0.5)
    steel = RECIPES.find_recipe("Steel")
    factory.create_industry(steel).take_from(half)

    assert not half.can_add_outgoing_links(1)
    with pytest.raises(CapacityExceededError):
        factory.create_industry(steel).take_from(half)
    with pytest.raises(CapacityExceededError):
        factory.create_transfer_unit("Oxygen Pure").take_from(half, 20.0)
    assert half.outgoing_link_count == 1


def test_industry_single_output():
    """industries should output to one node only"""
    factory = FactoryGraph()
    refiner = factory.create_industry(RECIPES.find_recipe("Iron Pure"))
    refiner.output_to(factory.create_container("Iron Pure"))

    with pytest.raises(CapacityExceededError):
        refiner.output_to(factory.create_container("Iron Pure"))


def test_ore_container_supplied_externally():
    """ore containers should always receive what they give"""
    factory = FactoryGraph()
    hematite = factory.create_container("Hematite", supplied_externally=True)
    factory.create_industry(RECIPES.find_recipe("Iron Pure")).take_from(hematite)

    assert hematite.egress == 65.0
    assert hematite.ingress == 65.0


def test_transfer_unit_passes_flow_on():
    """transfer units should pass what they take to their destination"""
    factory = FactoryGraph()
    source = factory.create_container("Iron Pure")
    factory.create_industry(RECIPES.find_recipe("Iron Pure")).output_to(source)
    oxygen = factory.create_container("Oxygen Pure")
    transfer_unit = factory.create_transfer_unit("Oxygen Pure")

    transfer_unit.output_to(oxygen)
    transfer_unit.take_from(source, 20.0)

    assert transfer_unit.rate == 20.0
    assert oxygen.ingress == 20.0
    assert oxygen.producers[transfer_unit] == {"Oxygen Pure": 20.0}
    # byproduct streams do not count as egress of the container's own item
    assert source.egress == 0.0
    assert source.outgoing_link_count == 1
    assert factory.get_transfer_units("Oxygen Pure") == [transfer_unit]


def test_transfer_container_flows():
    """transfer containers should track flows per item"""
    factory = FactoryGraph()
    transfer_container = factory.create_transfer_container(["Iron Pure", "Carbon Pure"])
    for item in transfer_container.items:
        unit = factory.create_transfer_unit(item)
        unit.output_to(transfer_container)
        unit.take_from(factory.create_container(item), 10.0)

    smelter = factory.create_industry(RECIPES.find_recipe("Steel"))
    smelter.take_from(transfer_container)

    assert transfer_container.ingress == {"Iron Pure": 10.0, "Carbon Pure": 10.0}
    assert transfer_container.egress == {"Iron Pure": 100.0, "Carbon Pure": 50.0}
    assert transfer_container.transfer_units == factory.transfer_units


def test_get_transfer_containers_subset():
    """transfer container lookup should match subsets of the given items"""
    factory = FactoryGraph()
    small = factory.create_transfer_container(["A", "B"])
    factory.create_transfer_container(["A", "Z"])
    large = factory.create_transfer_container(["A", "B", "C"])

    assert factory.get_transfer_containers({"A", "B", "C"}) == [small, large]
    assert factory.get_transfer_containers({"A"}) == []


def test_disconnect_restores_flows():
    """disconnect should remove the link in both directions"""
    factory = FactoryGraph()
    iron = factory.create_container("Iron Pure")
    smelter = factory.create_industry(RECIPES.find_recipe("Steel"))
    smelter.take_from(iron)

    flows = disconnect(iron, smelter)

    assert flows == {"Iron Pure": 100.0}
    assert iron.egress == 0.0
    assert smelter not in iron.consumers
    assert iron not in smelter.producers


def test_connect_shares_link():
    """both ends of a link should see the same flow mapping"""
    source = StorageNode("C0", "Iron Pure")
    sink = IndustryNode("I0", RECIPES.find_recipe("Steel"))

    link = connect(source, sink, {"Iron Pure": 1.0})

    assert source.consumers[sink] is link
    assert sink.producers[source] is link


def test_node_counts():
    """node_counts should count every node type"""
    factory = FactoryGraph()
    factory.create_output("Steel", 75.0, 100)
    factory.create_industry(RECIPES.find_recipe("Steel"))
    factory.create_container("Iron Pure")
    factory.create_transfer_unit("Oxygen Pure")

    assert factory.node_counts() == {
        "outputs": 1,
        "industries": 1,
        "containers": 1,
        "transfer_units": 1,
        "transfer_containers": 0,
    }
    assert len(factory.nodes) == 4
