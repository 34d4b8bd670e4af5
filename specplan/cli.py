"""
Command line entry point.

Loads an OpenAPI document and a test plan from the data directory and runs
the plan's test cases against the API.

Exit codes: 0 when every case passed, 1 when a case failed, 2 when the
document or the plan couldn't be loaded.
"""
import logging
from pathlib import Path
from typing import List, Optional

import typer

from specplan.core.config import settings
from specplan.core.errors import SpecPlanError
from specplan.core.logging import setup_logging
from specplan.core.monitoring import get_metrics
from specplan.services.object_store import ObjectStore
from specplan.services.openapi_parser import OpenAPIParser
from specplan.services.schema_graph import SchemaGraph
from specplan.services.test_executor import TestExecutor
from specplan.services.test_plan import TestPlan
from specplan.services.value_generator import ValueGenerator

logger = logging.getLogger(__name__)

EXIT_FAILED = 1
EXIT_LOAD_ERROR = 2

app = typer.Typer(help="Generate and run API tests from an OpenAPI document and a test plan.")


def _load_plan(plan_path: Path) -> TestPlan:
    if not plan_path.exists():
        logger.error(f"Can't load test plan file at the following location {plan_path}")
        raise typer.Exit(EXIT_LOAD_ERROR)
    plan = TestPlan()
    try:
        plan.init_from_file(str(plan_path))
    except SpecPlanError as e:
        logger.error(f"Error loading test plan: {str(e)}")
        raise typer.Exit(EXIT_LOAD_ERROR)
    return plan


@app.command()
def run(
    data_dir: Path = typer.Option(Path(settings.DATA_DIR), help="Directory holding the spec and plan files"),
    spec: str = typer.Option(settings.SPEC_FILE, help="OpenAPI file name inside the data directory"),
    plan_file: str = typer.Option(settings.PLAN_FILE, "--plan", help="Test plan file name inside the data directory"),
    case: Optional[List[str]] = typer.Option(None, help="Test case to run, repeatable. Runs every case by default"),
    base_url: str = typer.Option(settings.BASE_URL, help="Overrides the document's base path"),
    seed: Optional[int] = typer.Option(settings.RANDOM_SEED, help="Seed for generated values"),
    metrics: bool = typer.Option(False, help="Print Prometheus metrics when done"),
):
    """Run the test plan."""
    setup_logging()

    spec_path = data_dir / spec
    if not spec_path.exists():
        logger.error(f"Can't load spec file at the following location {spec_path}")
        raise typer.Exit(EXIT_LOAD_ERROR)
    plan = _load_plan(data_dir / plan_file)

    parser = OpenAPIParser(spec_path=str(spec_path))
    try:
        parser.parse()
    except Exception as e:
        logger.error(f"Error: {str(e)}")
        raise typer.Exit(EXIT_LOAD_ERROR)

    graph = SchemaGraph.from_parser(parser)
    executor = TestExecutor(
        parser,
        plan,
        ObjectStore(graph),
        ValueGenerator(graph, seed=seed),
        base_url=base_url or None,
        timeout=settings.REQUEST_TIMEOUT,
        resolve_all=settings.RESOLVE_ALL_PARAMETERS,
    )

    summary = executor.run_cases(case or plan.names)
    for result in summary['results']:
        line = f"{result['case']}: {result['status']}"
        if result['status'] == 'error':
            line += f" - {result['error']}"
        typer.echo(line)
    typer.echo(f"{summary['passed']}/{summary['total']} test cases passed")

    if metrics:
        typer.echo(get_metrics().decode())

    if summary['errors']:
        raise typer.Exit(EXIT_FAILED)


@app.command()
def cases(
    data_dir: Path = typer.Option(Path(settings.DATA_DIR), help="Directory holding the plan file"),
    plan_file: str = typer.Option(settings.PLAN_FILE, "--plan", help="Test plan file name inside the data directory"),
):
    """List the test cases of the plan."""
    setup_logging(to_file=False)
    plan = _load_plan(data_dir / plan_file)
    for name in plan.names:
        typer.echo(name)


if __name__ == "__main__":
    app()
