#!/usr/bin/env python3
"""Command-line interface for factory design."""

import argparse
import sys
import logging

import graphviz

from diagram import to_digraph
from factory import Requirement, build_factory
from parsing_utils import parse_requirement
from recipes import get_default_recipe_book, load_recipe_book


def parse_requirement_list(text):
    """Parse comma-separated Item:Count[:Maintain] entries into a dictionary.

    Precondition:
        text is a string (may be empty or whitespace-only)

    Postcondition:
        returns dict mapping item names to Requirement objects
        empty/whitespace text returns empty dict
        order is preserved from input
        duplicate items will have last entry win

    Args:
        text: String like "Steel:3, Silumin:2:500"

    Returns:
        dict of {item_name: Requirement}

    Raises:
        ValueError: if any entry has invalid Item:Count[:Maintain] format
    """
    if not text or not text.strip():
        return {}

    result = {}
    for entry in [stripped for entry in text.split(",") if (stripped := entry.strip())]:
        item, count, maintain = parse_requirement(entry)
        result[item] = Requirement(count, maintain)

    return result


def _print_summary(factory) -> None:
    """Print the node counts of a factory to stderr.

    Args:
        factory: the built FactoryGraph
    """
    for kind, count in factory.node_counts().items():
        print(f"{kind.replace('_', ' ')}: {count}", file=sys.stderr)


def _write_dot(dot: graphviz.Digraph, output_file: str | None) -> None:
    """Write the DOT source of a factory to a file, or to stdout.

    Postcondition:
        with output_file, dot.source is saved there and the path is
        reported on stderr; otherwise dot.source is printed to stdout

    Args:
        dot: rendered factory graph
        output_file: file path to write to (None = stdout)
    """
    if output_file is None:
        print(dot.source)
        return
    dot.save(output_file)
    print(f"DOT written to {output_file}", file=sys.stderr)


def _create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser.

    Returns:
        ArgumentParser instance ready to parse command-line arguments
    """
    parser = argparse.ArgumentParser(
        description="Design Dual Universe factory link graphs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Three steel industries
  %(prog)s --requirements "Steel:3"

  # Several products, keeping 500 silumin in stock
  %(prog)s --requirements "Steel:3, Silumin:2:500"

  # Custom recipe database, graph written to a file
  %(prog)s --requirements "Steel:3" --recipes my_recipes.json -f steel.dot
        """,
    )

    parser.add_argument(
        "--requirements",
        "-r",
        required=True,
        help='Products as "Item:Count[:Maintain], Item:Count[:Maintain], ..."',
    )

    parser.add_argument(
        "--recipes",
        "-R",
        help="Recipe database JSON file (default: bundled recipes.json)",
    )

    parser.add_argument(
        "--output-file", "-f", help="Write graphviz output to file instead of stdout"
    )

    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log every synthesis decision"
    )

    return parser


def main():
    """Main CLI function.

    Precondition:
        command-line arguments are available via sys.argv

    Postcondition:
        factory graph is built and output as graphviz source
        returns 0 on success, 1 on input error

    Returns:
        exit code (0=success, 1=error)
    """
    parser = _create_argument_parser()
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format='%(message)s')

    try:
        requirements = parse_requirement_list(args.requirements)
        if not requirements:
            print("Error: No requirements specified", file=sys.stderr)
            return 1

        recipes = load_recipe_book(args.recipes) if args.recipes else get_default_recipe_book()
        factory = build_factory(requirements, recipes)

    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    _print_summary(factory)
    _write_dot(to_digraph(factory), args.output_file)
    return 0


if __name__ == "__main__":
    sys.exit(main())
