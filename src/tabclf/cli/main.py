"""Typer CLI entrypoint and command definitions for tabclf."""

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from tabclf.core.defaults import DEFAULT_DATA_DIR

app = typer.Typer()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at INFO level"),
) -> None:
    """Classify and group browser tabs from a JSON tab snapshot."""
    from tabclf.core.logging import configure_logging

    configure_logging(logging.INFO if verbose else logging.WARNING)


def _read_tabs(path: Path) -> list:
    """Tab snapshots from a JSON file holding a list (or ``{"tabs": [...]}``)."""
    from tabclf.core.types import TabSnapshot

    if not path.exists():
        typer.echo(f"File not found: {path}", err=True)
        raise typer.Exit(code=1)
    raw = json.loads(path.read_text("utf-8"))
    if isinstance(raw, dict):
        raw = raw.get("tabs", [])
    return [TabSnapshot.model_validate(item) for item in raw]


def _pipeline(data_dir: str, categories_file: Optional[str]):
    from tabclf.classify.categories import load_categories
    from tabclf.classify.pipeline import ClassificationPipeline
    from tabclf.core.store import JsonFileStore

    categories = None
    if categories_file is not None:
        categories = load_categories(Path(categories_file))
    return ClassificationPipeline(JsonFileStore(data_dir), categories=categories)


# -- plan / classify / duplicates ---------------------------------------------


@app.command("plan")
def plan_cmd(
    tabs_file: str = typer.Option(..., "--tabs", help="Path to a JSON tab snapshot"),
    categories_file: Optional[str] = typer.Option(None, "--categories", help="Category taxonomy YAML (default: stored categories)"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Directory of the JSON key-value store"),
) -> None:
    """Dry-run an organize pass and print the grouping plan as JSON."""
    from tabclf.core.config import load_organize_config
    from tabclf.core.store import JsonFileStore
    from tabclf.organize.coordinator import plan_organize

    tabs = _read_tabs(Path(tabs_file))
    config = load_organize_config(JsonFileStore(data_dir))
    plan = plan_organize(tabs, _pipeline(data_dir, categories_file), config)
    typer.echo(json.dumps(plan.model_dump(mode="json"), indent=2, ensure_ascii=False))


@app.command("classify")
def classify_cmd(
    tabs_file: str = typer.Option(..., "--tabs", help="Path to a JSON tab snapshot"),
    categories_file: Optional[str] = typer.Option(None, "--categories", help="Category taxonomy YAML (default: stored categories)"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Directory of the JSON key-value store"),
) -> None:
    """Print the classifier's decision for every tab."""
    import pandas as pd

    from tabclf.features.domain import domain_of

    tabs = _read_tabs(Path(tabs_file))
    results = _pipeline(data_dir, categories_file).load().classify_tabs(tabs)
    rows = [
        {
            "tab_id": tab.id,
            "domain": domain_of(tab.url) or "",
            "category": results[tab.id].category,
            "confidence": round(results[tab.id].confidence, 3),
            "source": results[tab.id].source,
        }
        for tab in tabs
    ]
    if not rows:
        typer.echo("No tabs.")
        return
    typer.echo(pd.DataFrame(rows).to_string(index=False))


@app.command("duplicates")
def duplicates_cmd(
    tabs_file: str = typer.Option(..., "--tabs", help="Path to a JSON tab snapshot"),
) -> None:
    """List duplicate tab groups and which tab each would keep."""
    from tabclf.organize.duplicates import find_duplicates

    groups = find_duplicates(_read_tabs(Path(tabs_file)))
    if not groups:
        typer.echo("No duplicates found.")
        return
    for group in groups:
        ids = ", ".join(str(t.id) for t in group.tabs)
        typer.echo(f"[{group.kind}] {group.canonical_url}: tabs {ids} (keep {group.keep_tab_id})")
        typer.echo(f"  {group.recommendation}")


# -- learn / patterns ---------------------------------------------------------


@app.command("learn")
def learn_cmd(
    domain: str = typer.Option(..., "--domain", help="Domain the user reassigned"),
    category: str = typer.Option(..., "--category", help="Category id it was moved to"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Directory of the JSON key-value store"),
) -> None:
    """Record an explicit user reassignment in the learned patterns."""
    from tabclf.core.validation import TabValidationError

    pipeline = _pipeline(data_dir, None).load()
    try:
        pipeline.learn(domain, category)
    except TabValidationError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Learned {domain} -> {category}")


patterns_app = typer.Typer()
app.add_typer(patterns_app, name="patterns")


@patterns_app.command("show")
def patterns_show_cmd(
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Directory of the JSON key-value store"),
) -> None:
    """Summarize what the classifier has learned."""
    from tabclf.report.insights import patterns_frame

    pipeline = _pipeline(data_dir, None).load()
    insights = pipeline.insights()
    typer.echo(f"Learned domains: {insights.total_domains}")
    for category, count in sorted(insights.category_counts.items()):
        typer.echo(f"  {category}: {count}")
    df = patterns_frame(pipeline.patterns)
    if not df.empty:
        typer.echo(df.to_string(index=False))


@patterns_app.command("export")
def patterns_export_cmd(
    out: str = typer.Option(..., "--out", help="Destination CSV path"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Directory of the JSON key-value store"),
) -> None:
    """Export learned (domain, category, count) rows to CSV."""
    from tabclf.report.insights import export_patterns_csv

    pipeline = _pipeline(data_dir, None).load()
    path = export_patterns_csv(pipeline.patterns, Path(out))
    typer.echo(f"Wrote patterns to {path}")


# -- categories ---------------------------------------------------------------
categories_app = typer.Typer()
app.add_typer(categories_app, name="categories")


@categories_app.command("init")
def categories_init_cmd(
    out: str = typer.Option("configs/categories.yaml", "--out", help="Output YAML path"),
) -> None:
    """Write the default category taxonomy to a YAML file."""
    from tabclf.classify.categories import CategorySet, save_categories

    path = Path(out)
    if path.exists():
        typer.echo(f"File already exists: {path}", err=True)
        raise typer.Exit(code=1)
    save_categories(CategorySet(), path)
    typer.echo(f"Wrote default categories to {path}")


@categories_app.command("validate")
def categories_validate_cmd(
    file: str = typer.Option(..., "--file", help="Category taxonomy YAML"),
) -> None:
    """Check a category YAML file and report problems."""
    from pydantic import ValidationError

    from tabclf.classify.categories import load_categories

    try:
        categories = load_categories(Path(file))
    except FileNotFoundError:
        typer.echo(f"File not found: {file}", err=True)
        raise typer.Exit(code=1)
    except (ValidationError, ValueError) as exc:
        typer.echo(f"Invalid categories: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Valid: {len(categories)} categories")


@categories_app.command("show")
def categories_show_cmd(
    file: Optional[str] = typer.Option(None, "--file", help="Category taxonomy YAML (default: stored categories)"),
    data_dir: str = typer.Option(DEFAULT_DATA_DIR, help="Directory of the JSON key-value store"),
) -> None:
    """Print categories in planning order."""
    from tabclf.classify.categories import load_categories, load_categories_from_store
    from tabclf.core.store import JsonFileStore

    if file is not None:
        categories = load_categories(Path(file))
    else:
        categories = load_categories_from_store(JsonFileStore(data_dir))
    for category in categories:
        marker = " (system)" if category.is_system else ""
        typer.echo(f"{category.id}: {category.name} [{category.color}]{marker}")
        if category.domains:
            typer.echo(f"  domains: {', '.join(category.domains)}")
        if category.keywords:
            typer.echo(f"  keywords: {', '.join(category.keywords)}")
