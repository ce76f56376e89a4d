# ABOUTME: Provides a CLI to preview reviews, replay placements, simulate assessments and print knowledge reports.
# ABOUTME: Wraps the pure scheduler, staircase and assessment engines with Rich tables for operators.

import json
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from src.assessment import engine
from src.assessment.irt import prob_know
from src.assessment.item_bank import load_item_bank
from src.assessment.report import calibration_summary, knowledge_report
from src.common.config import LexiTraceConfig, load_config
from src.common.schemas import STAGE_CAT, STAGE_SCREENING
from src.placement import staircase
from src.review.scheduler import preview_intervals, review as review_item

console = Console()
app = typer.Typer(help="Inspect the review scheduler, placement staircase and adaptive assessment.")

DEFAULT_CONFIG_PATH = Path("configs/lexitrace.yaml")


def _load(config_path: Path) -> LexiTraceConfig:
    if not config_path.exists():
        return LexiTraceConfig()
    try:
        return load_config(config_path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


def _synthetic_bank(size: int) -> pd.DataFrame:
    ranks = np.arange(1, size + 1)
    return pd.DataFrame({"lexeme_id": [f"w{r:05d}" for r in ranks], "lemma": [f"word{r}" for r in ranks], "freq_rank": ranks})


def _bank(bank_path: Optional[Path], synthetic_size: int) -> pd.DataFrame:
    if bank_path is None:
        return _synthetic_bank(synthetic_size)
    if not bank_path.exists():
        raise typer.BadParameter(f"Missing item bank at {bank_path}", param_hint="--bank")
    try:
        return load_item_bank(bank_path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--bank") from exc


@app.command()
def review(
    stability: float = typer.Option(0.5, "--stability", help="Current stability in days."),
    difficulty: float = typer.Option(5.0, "--difficulty", help="Current difficulty (1.3-9.0)."),
    rating: Optional[str] = typer.Option(None, "--rating", help="again/hard/good/easy or 1-4; omit to preview all."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="LexiTrace config YAML."),
) -> None:
    """
    Show the next memory state for one rating, or the interval each rating would give.
    """
    cfg = _load(config).scheduler
    try:
        if rating is None:
            intervals = preview_intervals(stability, difficulty, config=cfg)
        else:
            result = review_item(stability, difficulty, rating, config=cfg)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    table = Table(show_header=True, header_style="bold magenta")
    if rating is None:
        table.add_column("Rating")
        table.add_column("Interval (days)")
        for r, days in intervals.items():
            table.add_row(r.name.lower(), str(days))
    else:
        table.add_column("Stability")
        table.add_column("Difficulty")
        table.add_column("Interval (days)")
        table.add_column("Due")
        table.add_row(f"{result.stability:.2f}", f"{result.difficulty:.2f}", str(result.interval_days), result.due.isoformat())
    console.print(table)


@app.command()
def placement(
    outcomes: str = typer.Option(..., "--outcomes", help="Comma-separated easy/hard judgments, e.g. easy,hard,easy."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="LexiTrace config YAML."),
) -> None:
    """
    Replay a placement staircase and print the resulting level estimate.
    """
    cfg = _load(config).placement
    state = staircase.start(config=cfg)

    table = Table(show_header=True, header_style="bold magenta")
    for column in ("n", "Outcome", "Theta", "Step", "Stop?"):
        table.add_column(column)

    for raw in [o.strip().lower() for o in outcomes.split(",") if o.strip()]:
        try:
            state = staircase.update(state, raw)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--outcomes") from exc
        stop = staircase.should_stop(state, config=cfg)
        table.add_row(str(state.n), raw, f"{state.theta:+.3f}", f"{state.step:.4f}", "yes" if stop else "")
        if stop:
            break
    console.print(table)

    estimate = staircase.to_estimate(state, config=cfg)
    console.print(
        f"[bold]Band:[/] {estimate.band}  [bold]Vocab index:[/] {estimate.vocab_index:.2f}  "
        f"[bold]Confidence:[/] {estimate.confidence:.2f}"
    )


@app.command()
def simulate(
    true_theta: float = typer.Option(0.0, "--true-theta", help="Ability of the simulated learner."),
    false_alarm: float = typer.Option(0.1, "--false-alarm", help="Chance the learner claims to know a pseudoword."),
    bank_path: Optional[Path] = typer.Option(None, "--bank", help="Item bank CSV/parquet; synthetic when omitted."),
    synthetic_size: int = typer.Option(20000, "--synthetic-size", help="Size of the synthetic bank."),
    seed: int = typer.Option(42, "--seed", help="Random seed for sampling and simulated answers."),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the final session JSON here."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="LexiTrace config YAML."),
) -> None:
    """
    Run a full screening + CAT session against a simulated learner.
    """
    cfg = _load(config).assessment
    bank = _bank(bank_path, synthetic_size)
    rng = np.random.default_rng(seed)

    session = engine.start_session(bank, config=cfg, seed=seed)
    while session.stage == STAGE_SCREENING:
        item = engine.next_item(session, config=cfg)
        p = false_alarm if item.lexeme_id is None else float(prob_know(true_theta, item.b, item.g))
        session = engine.record_screening_response(session, item.item_id, int(rng.random() < p), bank, config=cfg)

    console.print(
        f"[bold]Screening:[/] theta0={session.theta:+.3f} false-alarm={session.false_alarm_rate or 0.0:.2f} "
        f"items={len(session.screening_items)}"
    )

    trajectory: List[tuple] = []
    while session.stage == STAGE_CAT:
        item = engine.next_item(session, config=cfg)
        if item is None:
            break
        y = int(rng.random() < float(prob_know(true_theta, item.b, item.g)))
        session = engine.record_cat_response(session, item.item_id, y, config=cfg)
        trajectory.append((item.lemma or item.item_id, item.b, y, session.theta, session.standard_error))

    table = Table(show_header=True, header_style="bold magenta")
    for column in ("#", "Item", "b", "y", "Theta", "SE"):
        table.add_column(column)
    for idx, (label, b, y, theta, se) in enumerate(trajectory, start=1):
        table.add_row(str(idx), str(label), f"{b:+.2f}", str(y), f"{theta:+.3f}", f"{se:.3f}")
    console.print(table)

    result = engine.summary(session)
    estimate = result["estimate"]
    console.print(
        f"[bold green]Done:[/] theta={result['theta']:+.3f} (true {true_theta:+.2f}) SE={result['standard_error']:.3f} "
        f"band={estimate.band} CAT items={result['cat_responses']}"
    )
    metrics = calibration_summary(session)
    console.print("[bold]Calibration:[/] " + ", ".join(f"{k}={v:.3f}" for k, v in metrics.items()))

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(json.dumps(session.to_dict(), indent=2), encoding="utf-8")
        console.print(f"Session written to {output}")


@app.command()
def report(
    theta: float = typer.Option(..., "--theta", help="Ability estimate."),
    variance: float = typer.Option(..., "--variance", help="Variance of the ability estimate."),
    bank_path: Optional[Path] = typer.Option(None, "--bank", help="Item bank CSV/parquet; synthetic when omitted."),
    synthetic_size: int = typer.Option(20000, "--synthetic-size", help="Size of the synthetic bank."),
    page: int = typer.Option(1, "--page", help="Page of per-word probabilities to show."),
    rows: int = typer.Option(10, "--rows", help="Per-word rows to print from the page."),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the per-word page to parquet."),
    config: Path = typer.Option(DEFAULT_CONFIG_PATH, "--config", help="LexiTrace config YAML."),
) -> None:
    """
    Print vocabulary size, Zipf-band coverage and per-word knowledge probabilities.
    """
    cfg = _load(config).assessment
    bank = _bank(bank_path, synthetic_size)
    try:
        result = knowledge_report(theta, variance, bank, guess=cfg.report_guess, page=page, page_size=cfg.report_page_size)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc

    console.rule("[bold blue]Knowledge Report[/bold blue]")
    console.print(f"[bold]Theta:[/] {theta:+.3f}  [bold]SE:[/] {result['standard_error']:.3f}")
    console.print(f"[bold]Estimated vocabulary size:[/] {result['vocab_size']:,.0f} of {result['per_word']['total']:,}")

    coverage = Table(show_header=True, header_style="bold magenta")
    coverage.add_column("Zipf")
    coverage.add_column("Words")
    coverage.add_column("Coverage")
    for band in result["coverage_by_zipf"]:
        coverage.add_row(str(band["zipf"]), str(band["count"]), f"{band['coverage']:.2%}")
    console.print(coverage)

    words = Table(show_header=True, header_style="bold magenta")
    for column in ("Word", "Rank", "P(know)", "68%", "95%"):
        words.add_column(column)
    for item in result["per_word"]["items"][:rows]:
        words.add_row(
            str(item["lemma"] or item["lexeme_id"]),
            str(item["freq_rank"]),
            f"{item['p']:.2f}",
            f"{item['ci68_low']:.2f}-{item['ci68_high']:.2f}",
            f"{item['ci95_low']:.2f}-{item['ci95_high']:.2f}",
        )
    console.print(words)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        pd.DataFrame(result["per_word"]["items"]).to_parquet(output, index=False)
        console.print(f"Per-word page written to {output}")


if __name__ == "__main__":
    app()
