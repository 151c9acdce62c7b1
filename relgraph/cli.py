"""
RELGRAPH v1.0 · CLI Interface.

Command-line tool for building, filtering and editing a relationship graph
from a JSON dataset of collaborator records.
"""

from __future__ import annotations

import asyncio
import logging
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from relgraph import __version__, config
from relgraph.cache import LayoutCache, SQLiteSettingsStore
from relgraph.engine import RelationshipGraphEngine
from relgraph.exceptions import CollaboratorReadError
from relgraph.graph.filters import FOCUS_DEDUCED_RELATIONSHIPS
from relgraph.graph.types import EdgeType, GraphStatus
from relgraph.repositories import dump_dataset, load_dataset

console = Console()

EDGE_TYPE_CHOICES = [t.value for t in EdgeType]


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )


def get_engine(dataset: str, db: str, show_self: bool = False, iterations: int | None = None) -> RelationshipGraphEngine:
    """Create an engine over a dataset file and a settings database."""
    try:
        collaborators = load_dataset(dataset)
    except CollaboratorReadError as e:
        console.print(f"[red]✗ {e}[/]")
        sys.exit(1)
    engine = RelationshipGraphEngine(
        collaborators,
        LayoutCache(SQLiteSettingsStore(db)),
        show_self=show_self,
    )
    if iterations is not None:
        engine.layout_params.iterations = iterations
    return engine


def _render(engine: RelationshipGraphEngine, limit: int = 50) -> None:
    style = "green" if engine.status == GraphStatus.READY else "red"
    console.print(Panel(
        f"[bold]{engine.status.value}[/]  {engine.progress}",
        title="🕸 RELGRAPH",
        border_style=style,
    ))
    if engine.status != GraphStatus.READY:
        return

    nodes = engine.nodes
    names = {n.id: n.display_name for n in engine.all_nodes}

    table = Table(title=f"People ({len(nodes)})")
    table.add_column("Name", style="bold")
    table.add_column("Role")
    table.add_column("Health")
    table.add_column("Flags", style="dim")
    table.add_column("Position", justify="right")
    for node in nodes[:limit]:
        flags = " ".join(f for f, on in (("ghost", node.is_ghost), ("orphan", node.is_orphaned), ("pinned", node.is_pinned)) if on)
        pos = f"{node.position.x:.0f},{node.position.y:.0f}" if node.position else "-"
        table.add_row(node.display_name, node.primary_role or "-", node.relationship_health.value, flags, pos)
    console.print(table)

    edges = engine.edges
    etable = Table(title=f"Connections ({len(edges)})")
    etable.add_column("From")
    etable.add_column("To")
    etable.add_column("Type", style="cyan")
    etable.add_column("Weight", justify="right")
    etable.add_column("Label", style="dim")
    for edge in edges[:limit]:
        label = edge.label or ""
        if edge.deduced_relation_id:
            label = f"{label} ({'confirmed' if edge.is_confirmed else 'deduced'})"
        etable.add_row(
            names.get(edge.source_id, edge.source_id),
            names.get(edge.target_id, edge.target_id),
            edge.edge_type.value,
            f"{edge.weight:g}",
            label,
        )
    console.print(etable)


# ─── Main Group ──────────────────────────────────────────────────


@click.group()
@click.version_option(__version__, prog_name="relgraph")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def cli(verbose) -> None:
    """RELGRAPH · Relationship Graph Engine."""
    setup_logging(verbose)


def _common(fn):
    fn = click.option("--db", default=None, help="Settings database path")(fn)
    fn = click.option("--width", type=float, default=None, help="Viewport width")(fn)
    fn = click.option("--height", type=float, default=None, help="Viewport height")(fn)
    fn = click.option("--iterations", type=int, default=None, help="Layout iterations")(fn)
    fn = click.option("--show-self", is_flag=True, help="Include the 'me' person")(fn)
    return fn


def _viewport(width, height) -> tuple[float, float]:
    default_w, default_h = config.VIEWPORT
    return (width or default_w, height or default_h)


# ─── Build ───────────────────────────────────────────────────────


@cli.command()
@click.argument("dataset", type=click.Path(exists=True, dir_okay=False))
@_common
def build(dataset, db, width, height, iterations, show_self) -> None:
    """Build the graph and print it."""
    engine = get_engine(dataset, db or config.DB_PATH, show_self, iterations)
    asyncio.run(engine.build_graph(_viewport(width, height)))
    _render(engine)
    if engine.status == GraphStatus.FAILED:
        sys.exit(1)


# ─── Show (filtered) ─────────────────────────────────────────────


@cli.command()
@click.argument("dataset", type=click.Path(exists=True, dir_okay=False))
@_common
@click.option("--role", "roles", multiple=True, help="Only people with this role (repeatable)")
@click.option("--edge-type", "edge_types", multiple=True, type=click.Choice(EDGE_TYPE_CHOICES), help="Only this edge type (repeatable)")
@click.option("--min-weight", type=float, default=0.0, help="Minimum edge weight")
@click.option("--hide-ghosts", is_flag=True, help="Hide ghost nodes")
@click.option("--hide-orphans", is_flag=True, help="Hide people without connections")
@click.option("--focus", type=click.Choice([FOCUS_DEDUCED_RELATIONSHIPS]), default=None, help="Focus mode")
def show(dataset, db, width, height, iterations, show_self, roles, edge_types, min_weight, hide_ghosts, hide_orphans, focus) -> None:
    """Build the graph, apply filters and print the visible subset."""
    engine = get_engine(dataset, db or config.DB_PATH, show_self, iterations)
    asyncio.run(engine.build_graph(_viewport(width, height)))
    engine.filters.role_filters = set(roles)
    engine.filters.edge_type_filters = {EdgeType(t) for t in edge_types}
    engine.filters.min_edge_weight = min_weight
    engine.filters.show_ghosts = not hide_ghosts
    engine.filters.show_orphans = not hide_orphans
    if focus:
        engine.activate_focus_mode(focus)
    else:
        engine.apply_filters()
    _render(engine)


# ─── Merge Ghost ─────────────────────────────────────────────────


@cli.command("merge-ghost")
@click.argument("dataset", type=click.Path(exists=True, dir_okay=False))
@click.argument("name")
@click.argument("person_id")
@_common
@click.option("--out", default=None, type=click.Path(dir_okay=False), help="Write the updated dataset here")
def merge_ghost(dataset, name, person_id, db, width, height, iterations, show_self, out) -> None:
    """Merge ghost NAME into PERSON_ID and rebuild."""
    engine = get_engine(dataset, db or config.DB_PATH, show_self, iterations)
    affected = asyncio.run(engine.merge_ghost(name, person_id, _viewport(width, height)))
    console.print(f"[green]✓[/] Merged '{name}' into {person_id} ({affected} note(s) updated)")
    if out:
        dump_dataset(engine.collaborators, out)
    _render(engine)


# ─── Confirm ─────────────────────────────────────────────────────


@cli.command()
@click.argument("dataset", type=click.Path(exists=True, dir_okay=False))
@click.argument("relation_id")
@_common
@click.option("--out", default=None, type=click.Path(dir_okay=False), help="Write the updated dataset here")
def confirm(dataset, relation_id, db, width, height, iterations, show_self, out) -> None:
    """Confirm deduced relation RELATION_ID and rebuild."""
    engine = get_engine(dataset, db or config.DB_PATH, show_self, iterations)
    ok = asyncio.run(engine.confirm_deduced_relation(relation_id, _viewport(width, height)))
    if not ok:
        console.print(f"[red]✗ Unknown deduced relation {relation_id}[/]")
        sys.exit(1)
    console.print(f"[green]✓[/] Confirmed {relation_id}")
    if out:
        dump_dataset(engine.collaborators, out)
    _render(engine)


# ─── Cache ───────────────────────────────────────────────────────


@cli.command("invalidate-cache")
@click.option("--db", default=None, help="Settings database path")
def invalidate_cache(db) -> None:
    """Drop the cached layout so the next build runs a full simulation."""
    store = SQLiteSettingsStore(db or config.DB_PATH)
    try:
        cleared = LayoutCache(store).invalidate()
    finally:
        store.close()
    if not cleared:
        console.print(f"[red]✗ Settings database {db or config.DB_PATH} is unreadable[/]")
        sys.exit(1)
    console.print("[green]✓[/] Layout cache cleared")


if __name__ == "__main__":
    cli()
