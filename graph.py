"""Factory graph model: containers, industries, transfer units and their links.

Every link carries a flow mapping {item: units per minute}. Nodes keep their
producers and consumers in insertion-ordered dicts, and the FactoryGraph
registry lists nodes in creation order, so that every first-fit search over
the graph is deterministic.
"""

import logging
from collections import defaultdict
from itertools import chain, count

from recipes import Recipe

_LOGGER = logging.getLogger("dufactory")

# Maximum number of incoming (and outgoing) links of a container
MAX_CONTAINER_LINKS = 10
# Maximum number of incoming links of an industry
MAX_INDUSTRY_LINKS = 7
# Slack allowed when comparing or rounding flow rates
FLOW_EPSILON = 1e-9


class FactoryError(Exception):
    """Base class for factory graph errors."""


class FatalFactoryError(FactoryError):
    """A failure that aborts factory synthesis. Never recovered."""

    def __init__(self, message: str, node=None):
        super().__init__(message if node is None else f"{message}: {node!r}")
        self.node = node


class CapacityExceededError(FatalFactoryError):
    """A link was attached to a node without room for it."""


class InconsistentGraphError(FatalFactoryError):
    """The graph built so far contradicts itself."""


class InvariantViolationError(FatalFactoryError):
    """A finished graph breaks a link-count or flow invariant."""


class Node:
    """A node of the factory graph.

    Subclasses set max_incoming_links / max_outgoing_links; None means the
    link count is not limited when links are attached.
    """

    prefix = "N"
    max_incoming_links: int | None = None
    max_outgoing_links: int | None = None

    def __init__(self, node_id: str, item: str | None):
        self.node_id = node_id
        self.item = item
        self.producers: dict["Node", dict[str, float]] = {}
        self.consumers: dict["Node", dict[str, float]] = {}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.node_id}, {self.item!r}, "
            f"in={self.incoming_link_count}, out={self.outgoing_link_count})"
        )

    @property
    def incoming_link_count(self) -> int:
        return len(self.producers)

    @property
    def outgoing_link_count(self) -> int:
        return len(self.consumers)

    def can_add_incoming_links(self, count: int = 1) -> bool:
        """Check if count more incoming links fit within this node's limit."""
        return self.max_incoming_links is None or self.incoming_link_count + count <= self.max_incoming_links

    def can_add_outgoing_links(self, count: int = 1) -> bool:
        """Check if count more outgoing links fit within this node's limit."""
        return self.max_outgoing_links is None or self.outgoing_link_count + count <= self.max_outgoing_links

    def _add_ingress(self, flows: dict[str, float]) -> None:
        pass

    def _add_egress(self, flows: dict[str, float]) -> None:
        pass


def connect(source: Node, sink: Node, flows: dict[str, float]) -> dict[str, float]:
    """Attach a link from source to sink carrying the given flows.

    Precondition:
        callers checked can_add_outgoing_links / can_add_incoming_links first

    Postcondition:
        source.consumers[sink] and sink.producers[source] are the same flow dict
        if the nodes were already linked, flows are added to the existing link
        and no link is added
        ingress/egress bookkeeping of both nodes includes the new flows

    Args:
        source: node the items leave
        sink: node the items enter
        flows: mapping of item -> units per minute carried by the link

    Returns:
        the flow dict shared by both ends of the link

    Raises:
        CapacityExceededError: if either end has no room for another link
    """
    link = source.consumers.get(sink)
    if link is None:
        if not source.can_add_outgoing_links(1):
            raise CapacityExceededError(f"Cannot add outgoing link to {sink.node_id}", source)
        if not sink.can_add_incoming_links(1):
            raise CapacityExceededError(f"Cannot add incoming link from {source.node_id}", sink)
        link = {}
        source.consumers[sink] = link
        sink.producers[source] = link

    for item, rate in flows.items():
        link[item] = link.get(item, 0.0) + rate
    source._add_egress(flows)
    sink._add_ingress(flows)
    return link


def disconnect(source: Node, sink: Node) -> dict[str, float]:
    """Remove the link from source to sink in both directions.

    Returns:
        the flows the removed link carried

    Raises:
        KeyError: if the nodes are not linked
    """
    link = source.consumers.pop(sink)
    del sink.producers[source]
    source._add_egress({k: -v for k, v in link.items()})
    sink._add_ingress({k: -v for k, v in link.items()})
    return link


class StorageNode(Node):
    """A container buffering one item.

    A split container holds a fraction of a larger production and has a
    single outgoing link. Containers of ores are
    supplied externally: their ingress always covers their egress.
    """

    prefix = "C"
    max_incoming_links = MAX_CONTAINER_LINKS
    max_outgoing_links = MAX_CONTAINER_LINKS

    def __init__(self, node_id: str, item: str, split: float | None = None, supplied_externally: bool = False):
        super().__init__(node_id, item)
        self.split = split
        self.supplied_externally = supplied_externally
        self._ingress = 0.0
        self.egress = 0.0

    @property
    def is_split(self) -> bool:
        return self.split is not None

    @property
    def ingress(self) -> float:
        if self.supplied_externally:
            return max(self._ingress, self.egress)
        return self._ingress

    @property
    def headroom(self) -> float:
        """Units per minute entering the container that nothing consumes yet."""
        return self.ingress - self.egress

    def can_add_outgoing_links(self, count: int = 1) -> bool:
        if not super().can_add_outgoing_links(count):
            return False
        return not self.is_split or self.outgoing_link_count + count <= 1

    def _add_ingress(self, flows: dict[str, float]) -> None:
        self._ingress += flows.get(self.item, 0.0)

    def _add_egress(self, flows: dict[str, float]) -> None:
        self.egress += flows.get(self.item, 0.0)


class IndustryNode(Node):
    """One industry running the recipe of its item.

    Incoming links are not limited when attached; handle_industry_links
    brings them under MAX_INDUSTRY_LINKS afterwards.
    """

    prefix = "I"
    max_outgoing_links = 1

    def __init__(self, node_id: str, recipe: Recipe):
        super().__init__(node_id, recipe.item)
        self.recipe = recipe

    @property
    def inputs(self) -> list[Node]:
        return list(self.producers)

    @property
    def output(self) -> Node | None:
        return next(iter(self.consumers), None)

    @property
    def exceeding_links(self) -> int:
        return self.incoming_link_count - MAX_INDUSTRY_LINKS

    def output_to(self, node: Node) -> None:
        """Send this industry's product to a container or output node."""
        connect(self, node, {self.item: self.recipe.rate})

    def take_from(self, node: Node, flows: dict[str, float] | None = None) -> None:
        """Take ingredients from a container or transfer container.

        Precondition:
            node holds at least one of this industry's ingredients

        Postcondition:
            a link node -> self exists
            without explicit flows, the link carries the full ingredient rate
            of every ingredient node holds, scaled by the split fraction of
            a split container

        Args:
            node: container or transfer container to take from
            flows: explicit item -> rate mapping for the link
        """
        if flows is None:
            flows = self._ingredient_flows(node)
        connect(node, self, flows)

    def _ingredient_flows(self, node: Node) -> dict[str, float]:
        if isinstance(node, TransferContainerNode):
            return {item: self.recipe.ingredient_rate(item) for item in node.items if item in self.recipe.ingredients}
        share = node.split if isinstance(node, StorageNode) and node.is_split else 1.0
        return {node.item: self.recipe.ingredient_rate(node.item) * share}


class OutputNode(Node):
    """Final delivery of an item at a target rate, keeping a buffer of maintain units."""

    prefix = "O"
    max_outgoing_links = 0

    def __init__(self, node_id: str, item: str, rate: float, maintain: int):
        super().__init__(node_id, item)
        self.rate = rate
        self.maintain = maintain


class TransferNode(Node):
    """A transfer unit moving one item from containers to one destination."""

    prefix = "T"
    max_incoming_links = MAX_CONTAINER_LINKS
    max_outgoing_links = 1

    @property
    def rate(self) -> float:
        return sum(flows.get(self.item, 0.0) for flows in self.producers.values())

    @property
    def output(self) -> Node | None:
        return next(iter(self.consumers), None)

    def output_to(self, node: Node) -> None:
        """Deliver everything this unit moves to node."""
        connect(self, node, {self.item: self.rate})

    def take_from(self, container: StorageNode, rate: float) -> None:
        """Pull rate units per minute of this unit's item out of a container.

        Postcondition:
            a link container -> self carries rate more units per minute
            the flow is passed on to the node this unit outputs to
        """
        connect(container, self, {self.item: rate})
        for sink in list(self.consumers):
            connect(self, sink, {self.item: rate})


class TransferContainerNode(Node):
    """A container holding several items, each filled by its own transfer unit.

    It presents the items to an industry over a single link.
    """

    prefix = "TC"
    max_incoming_links = MAX_CONTAINER_LINKS
    max_outgoing_links = MAX_CONTAINER_LINKS

    def __init__(self, node_id: str, items: list[str]):
        super().__init__(node_id, None)
        self.items = tuple(items)
        self.ingress: dict[str, float] = defaultdict(float)
        self.egress: dict[str, float] = defaultdict(float)

    def __repr__(self) -> str:
        return (
            f"TransferContainerNode({self.node_id}, {list(self.items)!r}, "
            f"in={self.incoming_link_count}, out={self.outgoing_link_count})"
        )

    @property
    def transfer_units(self) -> list[TransferNode]:
        return list(self.producers)

    def _add_ingress(self, flows: dict[str, float]) -> None:
        for item, rate in flows.items():
            self.ingress[item] += rate

    def _add_egress(self, flows: dict[str, float]) -> None:
        for item, rate in flows.items():
            self.egress[item] += rate


class FactoryGraph:
    """Registry of every node of one factory, indexed by item.

    Nodes are only ever added. Every lookup returns nodes in creation order.
    """

    def __init__(self):
        self.containers: list[StorageNode] = []
        self.industries: list[IndustryNode] = []
        self.outputs: list[OutputNode] = []
        self.transfer_units: list[TransferNode] = []
        self.transfer_containers: list[TransferContainerNode] = []
        self._containers_by_item: dict[str, list[StorageNode]] = defaultdict(list)
        self._transfer_units_by_item: dict[str, list[TransferNode]] = defaultdict(list)
        self._counters = defaultdict(count)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._counters[prefix])}"

    @property
    def nodes(self) -> list[Node]:
        """Every node of the graph, grouped by type, each group in creation order."""
        return list(chain(
            self.outputs,
            self.industries,
            self.containers,
            self.transfer_units,
            self.transfer_containers,
        ))

    def node_counts(self) -> dict[str, int]:
        return {
            "outputs": len(self.outputs),
            "industries": len(self.industries),
            "containers": len(self.containers),
            "transfer_units": len(self.transfer_units),
            "transfer_containers": len(self.transfer_containers),
        }

    def get_containers(self, item: str) -> list[StorageNode]:
        return list(self._containers_by_item.get(item, ()))

    def get_transfer_units(self, item: str) -> list[TransferNode]:
        return list(self._transfer_units_by_item.get(item, ()))

    def get_transfer_containers(self, items: set[str]) -> list[TransferContainerNode]:
        """Get transfer containers whose items are all among the given items."""
        return [node for node in self.transfer_containers if set(node.items) <= items]

    def _add_container(self, container: StorageNode) -> StorageNode:
        self.containers.append(container)
        self._containers_by_item[container.item].append(container)
        _LOGGER.debug("Created %r", container)
        return container

    def create_container(self, item: str, supplied_externally: bool = False) -> StorageNode:
        return self._add_container(
            StorageNode(self._next_id(StorageNode.prefix), item, supplied_externally=supplied_externally)
        )

    def create_split_container(self, item: str, split: float) -> StorageNode:
        """Create a container holding the given fraction of a split production.

        Precondition:
            0 < split <= 1
        """
        return self._add_container(StorageNode(self._next_id(StorageNode.prefix), item, split=split))

    def create_industry(self, recipe: Recipe) -> IndustryNode:
        industry = IndustryNode(self._next_id(IndustryNode.prefix), recipe)
        self.industries.append(industry)
        return industry

    def create_output(self, item: str, rate: float, maintain: int) -> OutputNode:
        output = OutputNode(self._next_id(OutputNode.prefix), item, rate, maintain)
        self.outputs.append(output)
        _LOGGER.debug("Created %r delivering %s/min", output, rate)
        return output

    def create_transfer_unit(self, item: str) -> TransferNode:
        transfer_unit = TransferNode(self._next_id(TransferNode.prefix), item)
        self.transfer_units.append(transfer_unit)
        self._transfer_units_by_item[item].append(transfer_unit)
        _LOGGER.debug("Created %r", transfer_unit)
        return transfer_unit

    def create_transfer_container(self, items: list[str]) -> TransferContainerNode:
        transfer_container = TransferContainerNode(self._next_id(TransferContainerNode.prefix), items)
        self.transfer_containers.append(transfer_container)
        _LOGGER.debug("Created %r", transfer_container)
        return transfer_container
