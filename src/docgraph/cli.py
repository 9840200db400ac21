from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import Settings
from .graph.errors import EntityNotFound, InvalidArgument
from .graph.index import AdjacencyIndex
from .graph.models import KNOWN_RELATIONSHIPS
from .graph.presentation import neighborhood_records
from .graph.query import (
    clustered_view,
    entity_details,
    graph_stats,
    search_entities,
    similarity_report,
    visualize as visualize_graph,
)
from .graph.traversal import neighborhood as expand_neighborhood
from .graph.traversal import shortest_path
from .store import sqlite_store
from .store.snapshot import import_snapshot


app = typer.Typer(add_completion=False, help="Knowledge graph engine: traversal, paths, clusters, similarity.")
console = Console()

_RELATION_HELP = "Only follow these relationship labels (e.g. " + ", ".join(KNOWN_RELATIONSHIPS) + ")"


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (default from DOCGRAPH_LOG_LEVEL)"),
):
    settings = Settings()
    level = (log_level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load_index(db: Path, repo: str) -> AdjacencyIndex:
    conn = sqlite_store.connect(db)
    try:
        sqlite_store.init_db(conn)
        snapshot = sqlite_store.SqliteGraphStore(conn).load_snapshot(repo)
    finally:
        conn.close()
    return snapshot.index()


@contextmanager
def _graph_errors() -> Iterator[None]:
    try:
        yield
    except EntityNotFound as e:
        console.print(str(e), style="red", markup=False)
        raise typer.Exit(code=2)
    except InvalidArgument as e:
        raise typer.BadParameter(str(e))


def _emit_json(data: Any) -> None:
    console.print(json.dumps(data, indent=2, ensure_ascii=False), markup=False, highlight=False, soft_wrap=True)


@app.command("import")
def import_(
    db: Path = typer.Option(..., "--db", help="SQLite DB path to create/update"),
    repo: str = typer.Option(..., "--repo", help="Repository id the snapshot belongs to"),
    input: Path = typer.Option(..., "--input", exists=True, file_okay=True, dir_okay=False, help="Snapshot JSON file"),
    clear: bool = typer.Option(True, "--clear/--no-clear", help="Replace the repository's existing graph"),
):
    """Load an entities/relations snapshot file into the store."""
    conn = sqlite_store.connect(db)
    try:
        with _graph_errors():
            res = import_snapshot(conn=conn, repository_id=repo, path=input, clear=bool(clear))
    finally:
        conn.close()

    for k, v in res.items():
        console.print(f"{k}: {v}", markup=False)


@app.command()
def stats(
    db: Path = typer.Option(..., "--db", exists=True, file_okay=True, dir_okay=False),
    repo: str = typer.Option(..., "--repo"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Show entity and relation counts by type."""
    res = graph_stats(_load_index(db, repo))
    if as_json:
        _emit_json(res)
        return

    table = Table(title=f"Graph Stats: {repo}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Entities", str(res["entityCount"]))
    table.add_row("Relations", str(res["relationCount"]))
    table.add_row("Dropped relations", str(res["droppedRelations"]))
    console.print(table)

    for title, key in (("Entities by Type", "entityTypes"), ("Relations by Type", "relationTypes")):
        if not res[key]:
            continue
        t2 = Table(title=title)
        t2.add_column("type")
        t2.add_column("count", justify="right")
        for row in res[key]:
            t2.add_row(row["type"], str(row["count"]))
        console.print(t2)


def _print_neighborhood(data: dict[str, Any]) -> None:
    central = data["central"]
    console.print(f"{central['name']} ({central['type']})", markup=False, style="bold")
    table = Table(title=f"{data['stats']['totalNodes']} node(s), {data['stats']['totalEdges']} edge(s)")
    table.add_column("source")
    table.add_column("relationship")
    table.add_column("target")
    for e in data["edges"]:
        table.add_row(e["source"], e["label"], e["target"])
    console.print(table)
    if data["stats"]["truncated"]:
        console.print("Stopped at node limit.", style="yellow")


def _run_neighborhood(
    *,
    db: Path,
    repo: str,
    entity_id: str,
    depth: int,
    limit: int,
    direction: str,
    relation: list[str] | None,
    as_json: bool,
) -> None:
    settings = Settings()
    index = _load_index(db, repo)
    with _graph_errors():
        res = expand_neighborhood(
            index,
            entity_id,
            direction=direction,
            max_depth=int(depth),
            node_limit=int(limit),
            relation_types=relation or None,
            max_depth_cap=settings.max_depth_cap,
            node_limit_cap=settings.node_limit_cap,
        )
    data = neighborhood_records(index, res)
    if as_json:
        _emit_json(data)
    else:
        _print_neighborhood(data)


@app.command()
def neighborhood(
    entity_id: str = typer.Argument(...),
    db: Path = typer.Option(..., "--db", exists=True, file_okay=True, dir_okay=False),
    repo: str = typer.Option(..., "--repo"),
    depth: int | None = typer.Option(None, "--depth", help="BFS levels (default 1)"),
    limit: int | None = typer.Option(None, "--limit", help="Max nodes to return"),
    direction: str = typer.Option("both", "--direction", help="outgoing, incoming or both"),
    relation: list[str] | None = typer.Option(None, "--relation", help=_RELATION_HELP),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Focus view: the entity and everything within a few hops."""
    settings = Settings()
    _run_neighborhood(
        db=db,
        repo=repo,
        entity_id=entity_id,
        depth=settings.neighborhood_depth if depth is None else depth,
        limit=settings.node_limit if limit is None else limit,
        direction=direction,
        relation=relation,
        as_json=as_json,
    )


@app.command()
def traverse(
    entity_id: str = typer.Argument(...),
    db: Path = typer.Option(..., "--db", exists=True, file_okay=True, dir_okay=False),
    repo: str = typer.Option(..., "--repo"),
    depth: int | None = typer.Option(None, "--depth", help="BFS levels (default 2)"),
    limit: int | None = typer.Option(None, "--limit", help="Max nodes to return"),
    direction: str = typer.Option("both", "--direction", help="outgoing, incoming or both"),
    relation: list[str] | None = typer.Option(None, "--relation", help=_RELATION_HELP),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Walk the graph from an entity, following relations in the given direction."""
    settings = Settings()
    _run_neighborhood(
        db=db,
        repo=repo,
        entity_id=entity_id,
        depth=settings.traverse_depth if depth is None else depth,
        limit=settings.node_limit_cap if limit is None else limit,
        direction=direction,
        relation=relation,
        as_json=as_json,
    )


@app.command()
def path(
    from_id: str = typer.Argument(...),
    to_id: str = typer.Argument(...),
    db: Path = typer.Option(..., "--db", exists=True, file_okay=True, dir_okay=False),
    repo: str = typer.Option(..., "--repo"),
    max_depth: int | None = typer.Option(None, "--max-depth", help="Max hops (default 6)"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Find a shortest path between two entities (relations treated as undirected)."""
    settings = Settings()
    index = _load_index(db, repo)
    with _graph_errors():
        res = shortest_path(
            index,
            from_id,
            to_id,
            settings.path_max_depth if max_depth is None else int(max_depth),
            max_depth_cap=settings.max_depth_cap,
        )

    data = res.to_dict()
    if res.found:
        data["entities"] = [index.entity(eid).brief() for eid in res.path or []]
    if as_json:
        _emit_json(data)
        return

    if not res.found:
        console.print(res.reason or "No path found.", style="yellow")
        raise typer.Exit(code=1)

    hops = len(res.path or []) - 1
    console.print(f"{hops} hop(s):", markup=False, style="bold")
    for i, eid in enumerate(res.path or []):
        ent = index.entity(eid)
        console.print(f"{i}. {ent.name} ({ent.type.value}) [{ent.id}]", markup=False)
        if i < len(res.relations):
            r = res.relations[i]
            console.print(f"   --{r.relationship}-- ({r.from_entity_id} -> {r.to_entity_id})", markup=False)


@app.command()
def clusters(
    db: Path = typer.Option(..., "--db", exists=True, file_okay=True, dir_okay=False),
    repo: str = typer.Option(..., "--repo"),
    min_size: int | None = typer.Option(None, "--min-size", help="Minimum cluster size (default 3)"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Group same-type connected entities into clusters."""
    settings = Settings()
    index = _load_index(db, repo)
    with _graph_errors():
        res = clustered_view(index, min_cluster_size=settings.min_cluster_size if min_size is None else int(min_size))

    if as_json:
        _emit_json(res)
        return

    if not res["clusters"]:
        console.print("No clusters found.", style="yellow")
        return

    table = Table(title=f"{len(res['clusters'])} Cluster(s)")
    table.add_column("id")
    table.add_column("label")
    table.add_column("members")
    for c in res["clusters"]:
        names = [index.entity(nid).name for nid in c["nodeIds"]]
        preview = ", ".join(names[:8]) + (" ..." if len(names) > 8 else "")
        table.add_row(c["id"], c["label"], preview)
    console.print(table)


@app.command()
def similarity(
    entity_a: str = typer.Argument(...),
    entity_b: str = typer.Argument(...),
    db: Path = typer.Option(..., "--db", exists=True, file_okay=True, dir_okay=False),
    repo: str = typer.Option(..., "--repo"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Compare two entities by shared neighbors and embeddings."""
    index = _load_index(db, repo)
    with _graph_errors():
        res = similarity_report(index, entity_a, entity_b)

    if as_json:
        _emit_json(res)
        return

    semantic = res["semanticSimilarity"]
    console.print(f"{res['entityA']['name']} vs {res['entityB']['name']}", markup=False, style="bold")
    console.print(f"structural: {res['structuralSimilarity']:.3f}", markup=False)
    console.print(f"semantic: {'n/a' if semantic is None else f'{semantic:.3f}'}", markup=False)
    console.print(
        f"shared neighbors: {res['sharedNeighbors']} (A={res['totalNeighborsA']}, B={res['totalNeighborsB']})",
        markup=False,
    )


@app.command()
def search(
    query: str = typer.Argument(...),
    db: Path = typer.Option(..., "--db", exists=True, file_okay=True, dir_okay=False),
    repo: str = typer.Option(..., "--repo"),
    type: list[str] | None = typer.Option(None, "--type", help="Restrict to these entity types"),
    limit: int = typer.Option(20, "--limit", help="Max entities to return"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Find entities whose name or description contains the query."""
    index = _load_index(db, repo)
    with _graph_errors():
        res = search_entities(index, query, types=type or None, limit=int(limit))

    if as_json:
        _emit_json(res)
        return

    if not res["results"]:
        console.print("No matching entities.", style="yellow")
        return

    for item in res["results"]:
        ent = item["entity"]
        console.print("\n" + "=" * 80, markup=False)
        console.print(f"{ent['name']} ({ent['type']}) [{ent['id']}]", markup=False, style="bold")
        if ent.get("filePath"):
            console.print(f"{ent['filePath']}:{ent.get('lineStart') or ''}", markup=False)
        for rel in item["relatedEntities"]:
            arrow = "->" if rel["direction"] == "outgoing" else "<-"
            console.print(f"- {arrow} {rel['relationship']} {rel['entity']['name']}", markup=False)


@app.command()
def entity(
    entity_id: str = typer.Argument(...),
    db: Path = typer.Option(..., "--db", exists=True, file_okay=True, dir_okay=False),
    repo: str = typer.Option(..., "--repo"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
):
    """Show an entity with all of its connections."""
    index = _load_index(db, repo)
    with _graph_errors():
        res = entity_details(index, entity_id)

    if as_json:
        _emit_json(res)
        return

    ent = res["entity"]
    console.print(f"{ent['name']} ({ent['type']})", markup=False, style="bold")
    if ent.get("description"):
        console.print(ent["description"], markup=False)
    for label, key in (("outgoing", "outgoing"), ("incoming", "incoming")):
        conns = res["connections"][key]
        if not conns:
            continue
        console.print(f"{label}:", markup=False)
        for c in conns:
            console.print(f"- {c['relationship']} {c['entity']['name']} (w={c['weight']})", markup=False)


@app.command()
def visualize(
    db: Path = typer.Option(..., "--db", exists=True, file_okay=True, dir_okay=False),
    repo: str = typer.Option(..., "--repo"),
    type: list[str] | None = typer.Option(None, "--type", help="Restrict to these entity types"),
    max_nodes: int = typer.Option(100, "--max-nodes", help="Max nodes to include"),
    orphans: bool = typer.Option(True, "--orphans/--no-orphans", help="Keep nodes without edges"),
    out: Path | None = typer.Option(None, "--out", help="Write JSON here instead of stdout"),
):
    """Export node/edge records for a graph renderer."""
    index = _load_index(db, repo)
    with _graph_errors():
        res = visualize_graph(index, types=type or None, max_nodes=int(max_nodes), include_orphans=bool(orphans))

    if out is None:
        _emit_json(res)
        return

    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(res, indent=2, ensure_ascii=False), encoding="utf-8")
    console.print(f"Wrote {len(res['nodes'])} nodes and {len(res['edges'])} edges to {out}")


if __name__ == "__main__":
    app()
