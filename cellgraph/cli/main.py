"""Command-line interface for cellgraph.

Provides CLI commands for building SNN/KNN graphs and clustering cells.
"""

import logging
import sys
import time
from pathlib import Path
from typing import Any, Callable, Optional, Tuple

import click
import numpy as np
import pandas as pd

from cellgraph.core.graph import GraphBuildError, GraphConfig, GraphEngine
from cellgraph.io import (
    build_run_record,
    ensure_output_dir,
    get_logger,
    load_expression_csv,
    log_yaml,
    write_dataframe,
)


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("cellgraph")


def graph_options(func: Callable) -> Callable:
    """Options shared by every graph-building command."""
    options = [
        click.option("--input", "-i", "input_path", required=True,
                     type=click.Path(exists=True, dir_okay=False),
                     help="Input AnnData (.h5ad) or expression table (.csv)"),
        click.option("--out", "-o", "output_path", required=True, type=click.Path(),
                     help="Output directory"),
        click.option("--config", "-c", "config_path", type=click.Path(exists=True),
                     help="Graph configuration file (YAML)"),
        click.option("-k", "--k", "k", type=int, default=None,
                     help="Number of nearest neighbours"),
        click.option("-d", "--n-pcs", "d", type=int, default=None,
                     help="Number of principal components"),
        click.option("--no-pca", is_flag=True,
                     help="Search neighbours in the full feature space"),
        click.option("--approx-pca/--exact-pca", "pc_approx", default=None,
                     help="Use the approximate SVD solver"),
        click.option("--backend", type=click.Choice(["exact", "approximate"]), default=None,
                     help="Neighbour search backend"),
        click.option("--n-jobs", type=int, default=None,
                     help="Parallel workers for neighbour search"),
        click.option("--layer", default=None, help="AnnData layer to use (h5ad input)"),
        click.option("--use-rep", default=None,
                     help="adata.obsm key with a precomputed embedding (h5ad input)"),
        click.option("--genes", "genes_path", type=click.Path(exists=True),
                     help="File with one feature name per line to subset on"),
        click.option("--transposed", is_flag=True,
                     help="CSV rows are cells rather than genes"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _load_config(
    config_path: Optional[str],
    k: Optional[int],
    d: Optional[int],
    no_pca: bool,
    pc_approx: Optional[bool],
    backend: Optional[str],
    n_jobs: Optional[int],
) -> GraphConfig:
    config = GraphConfig.from_yaml(Path(config_path)) if config_path else GraphConfig()
    if k is not None:
        config.neighbors.k = k
    if d is not None:
        config.reduction.d = d
    if no_pca:
        config.reduction.d = None
    if pc_approx is not None:
        config.reduction.approximate = pc_approx
    if backend is not None:
        config.neighbors.backend = backend
    if n_jobs is not None:
        config.parallel.n_jobs = n_jobs
    return config


def _read_genes(genes_path: Optional[str]) -> Optional[np.ndarray]:
    if genes_path is None:
        return None
    lines = Path(genes_path).read_text().splitlines()
    return np.array([line.strip() for line in lines if line.strip()])


def _build(
    engine: GraphEngine,
    kind: str,
    input_path: str,
    layer: Optional[str],
    use_rep: Optional[str],
    genes: Optional[np.ndarray],
    transposed: bool,
    logger: logging.Logger,
) -> Tuple[Any, pd.Index]:
    """Build a graph from an h5ad or CSV input; return it with cell names."""
    path = Path(input_path)

    if path.suffix == ".h5ad":
        import scanpy as sc

        logger.info("Loading AnnData...")
        adata = sc.read_h5ad(path)
        logger.info(f"Loaded {adata.n_obs} cells, {adata.n_vars} features")
        graph = engine.build_from_adata(
            adata,
            kind=kind,
            use_rep=use_rep,
            layer=layer,
            subset_var=genes,
        )
        return graph, adata.obs_names

    table = load_expression_csv(path)
    cells = table.index if transposed else table.columns
    builder = engine.build_snn_graph if kind == "snn" else engine.build_knn_graph
    graph = builder(table, transposed=transposed, subset_row=genes)
    return graph, pd.Index(cells)


def _run_command(ctx: click.Context, command: str, body: Callable[[], None]) -> None:
    logger = ctx.obj["logger"]
    try:
        body()
    except (GraphBuildError, KeyError, ValueError) as e:
        logger.error(f"{command} failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(version="0.1.0", prog_name="cellgraph")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None,
              help="Also write the log to a timestamped file at this path")
@click.pass_context
def cli(
    ctx: click.Context, verbose: bool, debug: bool, log_file: Optional[str]
) -> None:
    """cellgraph: neighbour graphs for single-cell clustering.

    Builds shared-nearest-neighbour and k-nearest-neighbour graphs from
    expression data and clusters cells on them.

    Examples:

        # SNN graph from an AnnData file
        cellgraph snn --input cells.h5ad --out graph/ -k 10 -d 50

        # KNN graph from a genes x cells CSV
        cellgraph knn --input counts.csv --out graph/ --directed

        # Walktrap clusters on the SNN graph
        cellgraph cluster --input cells.h5ad --out clusters/

        # Keep a timestamped log of the run
        cellgraph --log-file logs/cellgraph.log snn --input cells.h5ad --out graph/
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    if log_file is None:
        ctx.obj["logger"] = setup_logging(verbose, debug)
        return

    logger, log_path = get_logger(
        "cellgraph",
        log_file,
        level=logging.DEBUG if debug else logging.INFO,
        console=verbose or debug,
    )
    logger.info(f"Logging to {log_path}")
    ctx.obj["logger"] = logger
    ctx.obj["log_path"] = log_path


@cli.command()
@graph_options
@click.option("--type", "snn_type", type=click.Choice(["rank", "number"]), default=None,
              help="SNN edge weighting")
@click.pass_context
def snn(
    ctx: click.Context,
    input_path: str,
    output_path: str,
    config_path: Optional[str],
    k: Optional[int],
    d: Optional[int],
    no_pca: bool,
    pc_approx: Optional[bool],
    backend: Optional[str],
    n_jobs: Optional[int],
    layer: Optional[str],
    use_rep: Optional[str],
    genes_path: Optional[str],
    transposed: bool,
    snn_type: Optional[str],
) -> None:
    """Build a shared-nearest-neighbour graph.

    Writes edges.csv (source, target, weight) and run.yaml.
    """
    logger = ctx.obj["logger"]

    def body() -> None:
        config = _load_config(config_path, k, d, no_pca, pc_approx, backend, n_jobs)
        if snn_type is not None:
            config.snn.type = snn_type
        engine = GraphEngine(config, logger)
        out_dir = ensure_output_dir(output_path)

        start = time.time()
        graph, _ = _build(
            engine, "snn", input_path, layer, use_rep,
            _read_genes(genes_path), transposed, logger,
        )
        edges_file = write_dataframe(graph.to_dataframe(), out_dir / "edges.csv")
        log_yaml(
            out_dir / "run.yaml",
            build_run_record(
                "snn", config.to_dict(), graph.summary(),
                input=input_path, elapsed_seconds=round(time.time() - start, 3),
            ),
        )
        click.echo(f"SNN graph: {graph.n_vertices} vertices, {graph.n_edges} edges")
        click.echo(f"Output saved to: {edges_file}")

    _run_command(ctx, "snn", body)


@cli.command()
@graph_options
@click.option("--directed", is_flag=True, help="Keep directed edges")
@click.pass_context
def knn(
    ctx: click.Context,
    input_path: str,
    output_path: str,
    config_path: Optional[str],
    k: Optional[int],
    d: Optional[int],
    no_pca: bool,
    pc_approx: Optional[bool],
    backend: Optional[str],
    n_jobs: Optional[int],
    layer: Optional[str],
    use_rep: Optional[str],
    genes_path: Optional[str],
    transposed: bool,
    directed: bool,
) -> None:
    """Build a k-nearest-neighbour graph.

    Writes edges.csv (source, target) and run.yaml.
    """
    logger = ctx.obj["logger"]

    def body() -> None:
        config = _load_config(config_path, k, d, no_pca, pc_approx, backend, n_jobs)
        if directed:
            config.knn.directed = True
        engine = GraphEngine(config, logger)
        out_dir = ensure_output_dir(output_path)

        start = time.time()
        graph, _ = _build(
            engine, "knn", input_path, layer, use_rep,
            _read_genes(genes_path), transposed, logger,
        )
        edges_file = write_dataframe(graph.to_dataframe(), out_dir / "edges.csv")
        log_yaml(
            out_dir / "run.yaml",
            build_run_record(
                "knn", config.to_dict(), graph.summary(),
                input=input_path, elapsed_seconds=round(time.time() - start, 3),
            ),
        )
        click.echo(f"KNN graph: {graph.n_vertices} vertices, {graph.n_edges} edges")
        click.echo(f"Output saved to: {edges_file}")

    _run_command(ctx, "knn", body)


@cli.command()
@graph_options
@click.option("--method", type=click.Choice(["walktrap", "leiden", "louvain"]), default=None,
              help="Community detection method")
@click.option("--resolution", type=float, default=None, help="Leiden/Louvain resolution")
@click.option("--seed", type=int, default=None, help="Random seed")
@click.pass_context
def cluster(
    ctx: click.Context,
    input_path: str,
    output_path: str,
    config_path: Optional[str],
    k: Optional[int],
    d: Optional[int],
    no_pca: bool,
    pc_approx: Optional[bool],
    backend: Optional[str],
    n_jobs: Optional[int],
    layer: Optional[str],
    use_rep: Optional[str],
    genes_path: Optional[str],
    transposed: bool,
    method: Optional[str],
    resolution: Optional[float],
    seed: Optional[int],
) -> None:
    """Cluster cells on an SNN graph.

    Writes clusters.csv (cell, cluster), edges.csv and run.yaml.
    """
    logger = ctx.obj["logger"]

    def body() -> None:
        config = _load_config(config_path, k, d, no_pca, pc_approx, backend, n_jobs)
        if method is not None:
            config.clustering.method = method
        if resolution is not None:
            config.clustering.resolution = resolution
        if seed is not None:
            config.clustering.random_seed = seed
        engine = GraphEngine(config, logger)
        out_dir = ensure_output_dir(output_path)

        start = time.time()
        graph, cells = _build(
            engine, "snn", input_path, layer, use_rep,
            _read_genes(genes_path), transposed, logger,
        )
        result = engine.cluster(graph)

        labels = pd.DataFrame({"cell": cells.astype(str), "cluster": result.labels})
        labels_file = write_dataframe(labels, out_dir / "clusters.csv")
        write_dataframe(graph.to_dataframe(), out_dir / "edges.csv")
        log_yaml(
            out_dir / "run.yaml",
            build_run_record(
                "cluster", config.to_dict(), graph.summary(),
                input=input_path,
                n_clusters=result.n_clusters,
                modularity=result.modularity,
                elapsed_seconds=round(time.time() - start, 3),
            ),
        )
        click.echo(f"Clustering complete: {result.n_clusters} clusters")
        click.echo(f"Output saved to: {labels_file}")

    _run_command(ctx, "cluster", body)


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
