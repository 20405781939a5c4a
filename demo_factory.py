"""Demonstration of the factory design system with link limits."""

from diagram import to_digraph
from factory import Requirement, build_factory

# Example 1: Steel for three assemblies
print("=" * 60)
print("Example 1: Steel Factory")
print("=" * 60)

factory1 = build_factory({"Steel": Requirement(count=3, maintain=500)})

print(f"Nodes: {factory1.node_counts()}")
print("Rendering factory_steel.png...")
to_digraph(factory1).render("factory_steel", format="png", cleanup=True)
print("Done!\n")

# Example 2: A frame needing more ingredients than an industry has links
print("=" * 60)
print("Example 2: Basic Reinforced Frame Factory")
print("=" * 60)

factory2 = build_factory({"Basic Reinforced Frame": Requirement(count=2)})

print(f"Nodes: {factory2.node_counts()}")
print("Rendering factory_frame.png...")
to_digraph(factory2).render("factory_frame", format="png", cleanup=True)
print("Done!\n")

print("=" * 60)
print("Factory designs complete!")
print("The graphs include:")
print("  - Output nodes (green)")
print("  - Industry nodes (blue)")
print("  - Containers (white), split containers show their share")
print("  - Transfer units (yellow diamonds) for byproducts and link relief")
print("  - Transfer containers (coral) feeding several items over one link")
print("  - Edges labeled with item names and flow rates")
print("=" * 60)
