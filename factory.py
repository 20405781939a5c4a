"""Factory design system for Dual Universe production chains.

A factory is synthesized greedily: every ingredient demand is served by an
existing container when possible, by adding industries to an existing
container otherwise, and by new containers as a last resort. Two repair
passes then route byproducts away and relieve industries with too many
incoming links, and a final sanity check enforces every link and flow limit.
"""

import logging
import math
from dataclasses import dataclass
from typing import NoReturn

from graph import (
    FLOW_EPSILON,
    MAX_CONTAINER_LINKS,
    MAX_INDUSTRY_LINKS,
    CapacityExceededError,
    FactoryGraph,
    InconsistentGraphError,
    IndustryNode,
    InvariantViolationError,
    StorageNode,
    TransferContainerNode,
    TransferNode,
    disconnect,
)
from recipes import Recipe, RecipeBook, get_default_recipe_book

_LOGGER = logging.getLogger("dufactory")


@dataclass(frozen=True)
class Requirement:
    """Number of industries to run for a product, and the stock to maintain."""

    count: int
    maintain: int = 0


def _industries_needed(rate: float, recipe: Recipe) -> int:
    """Compute how many industries are needed to produce rate units per minute.

    Precondition:
        recipe.rate > 0

    Postcondition:
        returns the smallest non-negative n with n * recipe.rate >= rate
        (within FLOW_EPSILON, so accumulated float error never adds an industry)

    Args:
        rate: units per minute to produce
        recipe: recipe run by the industries

    Returns:
        number of industries
    """
    return max(0, math.ceil(rate / recipe.rate - FLOW_EPSILON))


def _split_links(total: int) -> list[int]:
    """Spread total incoming links over as few containers as possible, evenly.

    Postcondition:
        returns ceil(total / MAX_CONTAINER_LINKS) link counts summing to total
        counts differ by at most one, larger counts first
        counts match a round-robin assignment of total links

    Args:
        total: number of industries to attach

    Returns:
        list of link counts, one per container
    """
    num_containers = math.ceil(total / MAX_CONTAINER_LINKS)
    base, extra = divmod(total, num_containers)
    return [base + 1 if i < extra else base for i in range(num_containers)]


def _build_ingredients(industry: IndustryNode, factory: FactoryGraph, recipes: RecipeBook) -> None:
    """Produce every ingredient of an industry and link the containers to it.

    Precondition:
        industry was just created and has no inputs

    Postcondition:
        industry takes from containers supplying every ingredient of its
        recipe, in recipe order, at the rate the industry consumes it
    """
    recipe = industry.recipe
    for ingredient in recipe.ingredients:
        for container in produce(ingredient, recipe.ingredient_rate(ingredient), factory, recipes):
            industry.take_from(container)


def _create_output_containers(item: str, industries: int, factory: FactoryGraph) -> list[StorageNode]:
    """Create the container(s) receiving the output of a number of new industries.

    Precondition:
        industries >= 0

    Postcondition:
        returns a single container if industries fit its incoming link limit
        otherwise returns split containers sharing the industries as evenly
        as possible, each with split fraction = its links / industries

    Args:
        item: item stored by the containers
        industries: number of industries that will output to the containers
        factory: the FactoryGraph

    Returns:
        list of new containers
    """
    if industries <= MAX_CONTAINER_LINKS:
        return [factory.create_container(item)]

    _LOGGER.debug("Splitting %s industries of %s over several containers", industries, item)
    return [factory.create_split_container(item, links / industries) for links in _split_links(industries)]


def produce(item: str, rate: float, factory: FactoryGraph, recipes: RecipeBook) -> list[StorageNode]:
    """Add to the factory every node required to supply rate more units per minute of an item.

    Recursively produces all ingredients of any industry it creates.

    Precondition:
        rate >= 0
        recipes contains no production cycles

    Postcondition:
        returns one or more containers that can each take one more outgoing link
        and together supply rate additional units per minute of item
        a list of several containers is a split production: a consumer
        must take from all of them
        ore containers are supplied externally and have no producers

    Args:
        item: item to produce
        rate: increase of production, units per minute
        factory: the FactoryGraph
        recipes: the RecipeBook

    Returns:
        list of containers supplying the item
    """
    containers = factory.get_containers(item)

    # Ores come from outside the factory
    if recipes.is_ore(item):
        for container in containers:
            if container.can_add_outgoing_links(1):
                return [container]
        return [factory.create_container(item, supplied_externally=True)]

    recipe = recipes.find_recipe(item)
    # Unlike a bare one-link check, also keep one outgoing link per byproduct
    # free, or handle_byproducts would hit CapacityExceededError on this container
    links_needed = 1 + len(recipe.byproducts)

    # Spare production in an existing container
    for container in containers:
        if container.headroom - rate > FLOW_EPSILON and container.can_add_outgoing_links(links_needed):
            _LOGGER.debug("Reusing %r for %s/min of %s", container, rate, item)
            return [container]

    # More industries feeding an existing container
    outputs: list[StorageNode] = []
    additional_industries = 0
    for container in containers:
        additional_industries = _industries_needed(rate - container.headroom, recipe)
        if container.can_add_incoming_links(additional_industries) and container.can_add_outgoing_links(links_needed):
            _LOGGER.debug("Adding %s industries to %r", additional_industries, container)
            outputs.append(container)
            break

    if not outputs:
        additional_industries = _industries_needed(rate, recipe)
        outputs = _create_output_containers(item, additional_industries, factory)

    for i in range(additional_industries):
        industry = factory.create_industry(recipe)
        industry.output_to(outputs[i % len(outputs)])
        _build_ingredients(industry, factory, recipes)

    return outputs


def _byproduct_transfer_unit(item: str, factory: FactoryGraph) -> TransferNode:
    """Get a transfer unit that can remove one more stream of a byproduct.

    Postcondition:
        returns the first transfer unit of item that delivers to a container
        and can take one more incoming link
        otherwise returns a new transfer unit delivering to the first
        container of item with a free incoming link, or to a new container

    Args:
        item: byproduct item
        factory: the FactoryGraph

    Returns:
        TransferNode for item, already linked to its destination container
    """
    for transfer_unit in factory.get_transfer_units(item):
        if isinstance(transfer_unit.output, StorageNode) and transfer_unit.can_add_incoming_links(1):
            return transfer_unit

    transfer_unit = factory.create_transfer_unit(item)
    destination = next(
        (container for container in factory.get_containers(item) if container.can_add_incoming_links(1)),
        None,
    )
    if destination is None:
        destination = factory.create_container(item)
    transfer_unit.output_to(destination)
    return transfer_unit


def handle_byproducts(factory: FactoryGraph, recipes: RecipeBook) -> None:
    """Add transfer units removing byproducts from every container that receives them.

    Precondition:
        factory was built by produce / build_factory

    Postcondition:
        for every non-ore, non-split container, every byproduct of its recipe
        is taken by one of its consumers
        running this again on the same factory changes nothing

    Args:
        factory: the FactoryGraph
        recipes: the RecipeBook

    Raises:
        InvariantViolationError: if a split container produces a byproduct,
            since its single outgoing link is taken by its consumer
        CapacityExceededError: if a container has no free link for a byproduct
    """
    # Containers created here are visited too, so their byproducts are handled as well
    for container in factory.containers:
        if recipes.is_ore(container.item):
            continue
        recipe = recipes.find_recipe(container.item)
        industries = sum(1 for node in container.producers if isinstance(node, IndustryNode))
        for byproduct in recipe.byproducts:
            if any(consumer.item == byproduct for consumer in container.consumers):
                continue
            if container.is_split:
                _fail(f"Split container cannot release byproduct {byproduct!r}", container)
            if not container.can_add_outgoing_links(1):
                _LOGGER.error("No free link to remove %s from %r", byproduct, container)
                raise CapacityExceededError(f"No free link to remove byproduct {byproduct!r}", container)

            transfer_unit = _byproduct_transfer_unit(byproduct, factory)
            transfer_unit.take_from(container, industries * recipe.byproduct_rate(byproduct))
            _LOGGER.debug("Routing %s out of %r through %r", byproduct, container, transfer_unit)


def _find_transfer_container(
    factory: FactoryGraph, ingredients: set[str], min_items: int
) -> TransferContainerNode | None:
    """Find an existing transfer container an industry can take from.

    Postcondition:
        returns the first transfer container holding only items of ingredients,
        at least min_items of them, with a free outgoing link and a free
        incoming link on every one of its transfer units
        returns None if there is none
    """
    for transfer_container in factory.get_transfer_containers(ingredients):
        if len(transfer_container.items) < min_items:
            continue
        if not transfer_container.can_add_outgoing_links(1):
            continue
        if any(not unit.can_add_incoming_links(1) for unit in transfer_container.transfer_units):
            continue
        return transfer_container
    return None


def _create_transfer_container(items: list[str], factory: FactoryGraph) -> TransferContainerNode:
    """Create a transfer container for items, with one transfer unit per item."""
    transfer_container = factory.create_transfer_container(items)
    for item in items:
        factory.create_transfer_unit(item).output_to(transfer_container)
    return transfer_container


def _redirect_inputs(industry: IndustryNode, transfer_container: TransferContainerNode) -> dict[str, float]:
    """Move container -> industry links of an industry onto transfer units.

    Precondition:
        industry takes directly from a container of every item of transfer_container

    Postcondition:
        for every transfer unit of transfer_container, the first container of
        its item feeding industry now feeds the transfer unit instead,
        at the same rate

    Args:
        industry: industry with too many incoming links
        transfer_container: transfer container that will feed industry

    Returns:
        mapping of item -> rate moved onto the transfer units

    Raises:
        InconsistentGraphError: if industry has no direct container for an item
    """
    flows = {}
    for transfer_unit in transfer_container.transfer_units:
        container = next(
            (node for node in industry.inputs if isinstance(node, StorageNode) and node.item == transfer_unit.item),
            None,
        )
        if container is None:
            _LOGGER.error("Unable to transfer %s: %r has no container for it", transfer_unit.item, industry)
            raise InconsistentGraphError(f"Unable to transfer item {transfer_unit.item!r} to {industry.node_id}", transfer_unit)

        rate = disconnect(container, industry)[container.item]
        transfer_unit.take_from(container, rate)
        flows[transfer_unit.item] = flows.get(transfer_unit.item, 0.0) + rate
    return flows


def handle_industry_links(factory: FactoryGraph) -> None:
    """Add transfer units and transfer containers to industries with too many incoming links.

    Precondition:
        handle_byproducts already ran

    Postcondition:
        every industry that had more than MAX_INDUSTRY_LINKS incoming links
        takes its lowest quantity ingredients from one transfer container
        instead of from their containers

    Args:
        factory: the FactoryGraph

    Raises:
        InconsistentGraphError: if a transfer container holds an item its
            industry does not take directly from a container
    """
    for industry in factory.industries:
        exceeding_links = industry.exceeding_links
        if exceeding_links <= 0:
            continue

        ingredients = [item for item, _ in sorted(industry.recipe.ingredients.items(), key=lambda x: x[1])]
        # One link more than exceeding, to make room for the transfer container link
        needed_items = exceeding_links + 1

        transfer_container = _find_transfer_container(factory, set(ingredients), needed_items)
        if transfer_container is None:
            transfer_container = _create_transfer_container(ingredients[:needed_items], factory)
        _LOGGER.debug("Relieving %r through %r", industry, transfer_container)

        flows = _redirect_inputs(industry, transfer_container)
        industry.take_from(transfer_container, flows)


def _fail(message: str, node) -> NoReturn:
    """Log and raise an invariant violation for node."""
    _LOGGER.error("%s: %r", message, node)
    raise InvariantViolationError(message, node)


def sanity_check(factory: FactoryGraph) -> None:
    """Check every link and flow limit of the factory.

    Precondition:
        factory is a FactoryGraph

    Postcondition:
        returns None if every container has at most MAX_CONTAINER_LINKS
        incoming and outgoing links, egress <= ingress, and a single outgoing
        link when split; every industry has at most
        MAX_INDUSTRY_LINKS incoming links; every transfer unit and transfer
        container is within its link limits

    Args:
        factory: the FactoryGraph

    Raises:
        InvariantViolationError: on the first broken limit
    """
    for container in factory.containers:
        if container.incoming_link_count > MAX_CONTAINER_LINKS:
            _fail("Container exceeds incoming link limit", container)
        if container.outgoing_link_count > MAX_CONTAINER_LINKS:
            _fail("Container exceeds outgoing link limit", container)
        if container.egress - container.ingress > FLOW_EPSILON:
            _fail("Container egress exceeds ingress", container)
        if container.is_split and container.outgoing_link_count > 1:
            _fail("Split container has more than one outgoing link", container)

    for industry in factory.industries:
        if industry.incoming_link_count > MAX_INDUSTRY_LINKS:
            _fail("Industry exceeds incoming link limit", industry)

    for transfer_unit in factory.transfer_units:
        if transfer_unit.incoming_link_count > MAX_CONTAINER_LINKS:
            _fail("Transfer unit exceeds incoming link limit", transfer_unit)
        if transfer_unit.outgoing_link_count > 1:
            _fail("Transfer unit has more than one outgoing link", transfer_unit)

    for transfer_container in factory.transfer_containers:
        if transfer_container.incoming_link_count > MAX_CONTAINER_LINKS:
            _fail("Transfer container exceeds incoming link limit", transfer_container)
        if transfer_container.outgoing_link_count > MAX_CONTAINER_LINKS:
            _fail("Transfer container exceeds outgoing link limit", transfer_container)


def build_factory(
    requirements: dict[str, Requirement],
    recipes: RecipeBook | None = None,
) -> FactoryGraph:
    """Generate a factory graph running a given number of industries per product.

    Precondition:
        requirements maps craftable items to Requirement objects, count >= 1
        recipes is None or a RecipeBook

    Postcondition:
        returns a FactoryGraph with one output node per requirement, fed by
        count industries each, and every container, industry and transfer
        unit needed to supply them
        the graph passed handle_byproducts, handle_industry_links and
        sanity_check, in that order
        identical requirements (in identical order) give identical graphs

    Args:
        requirements: products and their industry counts / maintained stock
        recipes: recipe book to use. If None, uses the bundled recipes.

    Returns:
        the completed FactoryGraph

    Raises:
        ValueError: if a required item has no recipe
        FatalFactoryError: if the synthesized graph is inconsistent
    """
    if recipes is None:
        recipes = get_default_recipe_book()

    _LOGGER.info("Building factory for %s", ", ".join(requirements))
    factory = FactoryGraph()
    for item, requirement in requirements.items():
        recipe = recipes.find_recipe(item)
        output = factory.create_output(item, recipe.rate * requirement.count, requirement.maintain)
        for _ in range(requirement.count):
            industry = factory.create_industry(recipe)
            industry.output_to(output)
            _build_ingredients(industry, factory, recipes)

    _LOGGER.info("Routing byproducts")
    handle_byproducts(factory, recipes)
    _LOGGER.info("Relieving industry link limits")
    handle_industry_links(factory)
    sanity_check(factory)

    _LOGGER.info("Factory built: %s", factory.node_counts())
    return factory
