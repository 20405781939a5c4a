"""Graphviz rendering of factory graphs."""

import graphviz

from graph import (
    FactoryGraph,
    IndustryNode,
    Node,
    OutputNode,
    StorageNode,
    TransferContainerNode,
    TransferNode,
)


def _format_rate(rate: float) -> str:
    """Format a rate with at most two decimals, dropping trailing zeros."""
    return f"{rate:.2f}".rstrip("0").rstrip(".")


def _node_label(node: Node) -> str:
    """Build the multi-line label of a graph node.

    Postcondition:
        first line is the node id, second the item(s) it handles,
        followed by node-specific flow information
    """
    if isinstance(node, TransferContainerNode):
        return f"{node.node_id}\n" + "\n".join(node.items)
    lines = [node.node_id, node.item]
    if isinstance(node, StorageNode):
        lines.append(f"{_format_rate(node.egress)}/{_format_rate(node.ingress)} per min")
        if node.is_split:
            lines.append(f"split {_format_rate(node.split * 100)}%")
        if node.supplied_externally:
            lines.append("(external)")
    elif isinstance(node, OutputNode):
        lines.append(f"{_format_rate(node.rate)}/min")
        lines.append(f"maintain {node.maintain}")
    return "\n".join(lines)


# shape, fillcolor per node type
_NODE_STYLES = {
    OutputNode: ("box", "lightgreen"),
    IndustryNode: ("box", "lightblue"),
    StorageNode: ("cylinder", "white"),
    TransferNode: ("diamond", "lightyellow"),
    TransferContainerNode: ("cylinder", "lightcoral"),
}


def _edge_label(flows: dict[str, float]) -> str:
    return "\n".join(f"{item}:{_format_rate(rate)}" for item, rate in flows.items())


def to_digraph(factory: FactoryGraph) -> graphviz.Digraph:
    """Render a factory graph as a graphviz digraph.

    Precondition:
        factory is a FactoryGraph

    Postcondition:
        returns Digraph with one node per graph node, identified by node_id,
        and one edge per link labelled with the items and rates it carries
        nodes are styled by type: outputs green, industries blue,
        containers white, transfer units yellow, transfer containers coral

    Args:
        factory: the FactoryGraph to render

    Returns:
        graphviz.Digraph of the factory
    """
    dot = graphviz.Digraph(comment="Factory Network")
    dot.attr(rankdir="LR")

    for node in factory.nodes:
        shape, fillcolor = _NODE_STYLES[type(node)]
        dot.node(node.node_id, _node_label(node), shape=shape, style="filled", fillcolor=fillcolor)

    for node in factory.nodes:
        for consumer, flows in node.consumers.items():
            dot.edge(node.node_id, consumer.node_id, label=_edge_label(flows))

    return dot
