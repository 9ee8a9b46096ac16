"""Entry point: corrigo [lint | format | check | ci <path>... | rules | serve]."""

import logging
import pathlib
import typing

import typer

from corrigo import patch, pipeline

app = typer.Typer(help="Lint, fix, and format-check Python sources.")

# Directories that are never interesting to analyse.
_SKIP_DIRS: frozenset[str] = frozenset(
    {".venv", "venv", "__pycache__", ".git", "node_modules", "build", "dist", ".tox"}
)

Paths = typing.Annotated[
    list[pathlib.Path] | None,
    typer.Argument(help="Files or directories to process."),
]
Apply = typing.Annotated[
    bool,
    typer.Option("--apply", help="Apply safe fixes and write the files."),
]
ApplyUnsafe = typing.Annotated[
    bool,
    typer.Option("--apply-unsafe", help="Apply safe and unsafe fixes and write the files."),
]
JsonOutput = typing.Annotated[
    bool,
    typer.Option("--json", help="Print structured results instead of text blocks."),
]
Jobs = typing.Annotated[
    int | None,
    typer.Option("--jobs", "-j", min=1, help="Number of files processed concurrently."),
]
Verbose = typing.Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Log debug output to stderr."),
]
ConfigDir = typing.Annotated[
    pathlib.Path | None,
    typer.Option("--config", help="Directory to start the pyproject.toml search from."),
]


def _collect_python_files(root: pathlib.Path) -> list[pathlib.Path]:
    """Recursively find .py files under root, skipping non-source directories."""
    return sorted(
        py_file
        for py_file in root.rglob("*.py")
        if not any(part in _SKIP_DIRS for part in py_file.relative_to(root).parts)
    )


def _resolve_files(paths: list[pathlib.Path] | None) -> list[pathlib.Path]:
    """Expand directories into a deduplicated .py file list, keeping argument order."""
    candidates: list[pathlib.Path] = []
    for raw_path in paths or []:
        if raw_path.is_dir():
            candidates.extend(_collect_python_files(raw_path))
        else:
            candidates.append(raw_path)
    seen: set[pathlib.Path] = set()
    unique: list[pathlib.Path] = []
    for file_path in candidates:
        resolved = file_path.resolve()
        if resolved not in seen:
            seen.add(resolved)
            unique.append(file_path)
    return unique


def _read_source(path: str) -> str:
    # newline="" keeps \r\n so ranges and the formatter see the real buffer.
    with open(path, encoding="utf-8", newline="") as fh:  # noqa: PTH123
        return fh.read()


def _configure_logging(verbose: bool) -> None:  # noqa: FBT001
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fix_mode(apply: bool, apply_unsafe: bool) -> patch.FixMode:  # noqa: FBT001
    if apply_unsafe:
        return patch.FixMode.UNSAFE
    if apply:
        return patch.FixMode.SAFE
    return patch.FixMode.NONE


def _write_results(summary: pipeline.RunSummary) -> None:
    for result in summary.results:
        if result.final is None:
            continue
        try:
            pathlib.Path(result.path).write_text(result.final, encoding="utf-8", newline="")
        except OSError as e:
            typer.echo(f"error: could not write {result.path}: {e}", err=True)


def _run(
    paths: list[pathlib.Path] | None,
    *,
    stages: frozenset[pipeline.Stage],
    fix_mode: patch.FixMode,
    format_write: bool = False,
    organize_imports: bool | None = None,
    json_output: bool = False,
    jobs: int | None = None,
    config_dir: pathlib.Path | None = None,
    verbose: bool = False,
) -> None:
    """Run the pipeline over *paths*, print the report, write files, and exit.

    Raises:
        typer.Exit: With the verdict's exit code: 0 clean, 1 dirty, 2 failed.
    """
    from corrigo import config as corrigo_config  # noqa: PLC0415
    from corrigo import formatter, reporter, rules  # noqa: PLC0415

    _configure_logging(verbose)
    cfg = corrigo_config.load_config(config_dir)
    organize = cfg.organize_imports.enabled if organize_imports is None else organize_imports
    rule_config = rules.registry.resolve(cfg.linter, organize_imports=organize)
    overrides: dict[str, typing.Any] = {
        "stages": stages,
        "fix_mode": fix_mode,
        "format_write": format_write,
    }
    if jobs is not None:
        overrides["jobs"] = jobs
    options = pipeline.PipelineOptions.from_config(cfg, **overrides)
    runner = pipeline.Pipeline(
        rule_config,
        options,
        formatter_adapter=formatter.FormatterAdapter.from_settings(cfg.formatter),
        config_issues=cfg.issues,
    )

    python_files = _resolve_files(paths)
    summary = runner.run([str(file_path) for file_path in python_files], read=_read_source)
    _write_results(summary)

    if json_output:
        typer.echo(reporter.render_json(summary))
    else:
        report = reporter.Reporter(tab_width=options.tab_width)
        for result in summary.results:
            for block in report.render(result):
                typer.echo(block.text)
                typer.echo()
        for line in report.render_summary(summary):
            typer.echo(line, err=True)
    raise typer.Exit(code=summary.verdict.exit_code)


@app.command(no_args_is_help=True)
def lint(
    paths: Paths = None,
    apply: Apply = False,  # noqa: FBT002
    apply_unsafe: ApplyUnsafe = False,  # noqa: FBT002
    json_output: JsonOutput = False,  # noqa: FBT002
    jobs: Jobs = None,
    verbose: Verbose = False,  # noqa: FBT002
    config_dir: ConfigDir = None,
) -> None:
    """Run the linter, optionally applying fixes."""
    _run(
        paths,
        stages=frozenset({pipeline.Stage.LINT}),
        fix_mode=_fix_mode(apply, apply_unsafe),
        json_output=json_output,
        jobs=jobs,
        config_dir=config_dir,
        verbose=verbose,
    )


@app.command(name="format", no_args_is_help=True)
def format_(
    paths: Paths = None,
    write: typing.Annotated[  # noqa: FBT002
        bool,
        typer.Option("--write", help="Write the canonical form back to the files."),
    ] = False,
    json_output: JsonOutput = False,  # noqa: FBT002
    jobs: Jobs = None,
    verbose: Verbose = False,  # noqa: FBT002
    config_dir: ConfigDir = None,
) -> None:
    """Check formatting, optionally writing the canonical form."""
    _run(
        paths,
        stages=frozenset({pipeline.Stage.FORMAT}),
        fix_mode=patch.FixMode.NONE,
        format_write=write,
        json_output=json_output,
        jobs=jobs,
        config_dir=config_dir,
        verbose=verbose,
    )


@app.command(no_args_is_help=True)
def check(
    paths: Paths = None,
    apply: Apply = False,  # noqa: FBT002
    apply_unsafe: ApplyUnsafe = False,  # noqa: FBT002
    json_output: JsonOutput = False,  # noqa: FBT002
    jobs: Jobs = None,
    verbose: Verbose = False,  # noqa: FBT002
    config_dir: ConfigDir = None,
) -> None:
    """Lint, organize imports, and check formatting; --apply also formats."""
    fix_mode = _fix_mode(apply, apply_unsafe)
    _run(
        paths,
        stages=frozenset({pipeline.Stage.LINT, pipeline.Stage.FORMAT}),
        fix_mode=fix_mode,
        format_write=apply or apply_unsafe,
        organize_imports=True,
        json_output=json_output,
        jobs=jobs,
        config_dir=config_dir,
        verbose=verbose,
    )


@app.command(no_args_is_help=True)
def ci(
    paths: Paths = None,
    json_output: JsonOutput = False,  # noqa: FBT002
    jobs: Jobs = None,
    verbose: Verbose = False,  # noqa: FBT002
    config_dir: ConfigDir = None,
) -> None:
    """Run every stage without writing anything."""
    _run(
        paths,
        stages=frozenset({pipeline.Stage.LINT, pipeline.Stage.FORMAT}),
        fix_mode=patch.FixMode.NONE,
        organize_imports=True,
        json_output=json_output,
        jobs=jobs,
        config_dir=config_dir,
        verbose=verbose,
    )


@app.command(name="rules")
def list_rules(config_dir: ConfigDir = None) -> None:
    """List every rule with its resolved severity."""
    from corrigo import config as corrigo_config  # noqa: PLC0415
    from corrigo import rules  # noqa: PLC0415

    cfg = corrigo_config.load_config(config_dir)
    rule_config = rules.registry.resolve(cfg.linter, organize_imports=cfg.organize_imports.enabled)
    for rule in rule_config.registry:
        marker = "recommended" if rule.recommended else ""
        typer.echo(
            f"{rule.id:<40} {rule_config.severity_of(rule.id).value:<6}"
            f" fix:{rule.fix.value:<7} {marker}".rstrip()
        )
    for issue in rule_config.issues:
        typer.echo(f"warning: {issue.key}: {issue.message}", err=True)


@app.command()
def serve() -> None:
    """Run the LSP server over stdio."""
    from corrigo import server  # noqa: PLC0415

    server.start()


def main() -> None:
    """Dispatch to the CLI commands or the LSP server."""
    app()


if __name__ == "__main__":
    main()
