import sys
from typing import Optional

import click

from . import __version__
from .exceptions import ConfigurationError, RunError
from .exporter import PDFExporter
from .normalization import Normalizer
from .progress_tracker import ProgressTracker
from .targets import load_targets, select_targets
from .utils import load_config, setup_logging

EXIT_OK = 0
EXIT_TARGET_FAILED = 1
EXIT_RUN_FAILED = 2


@click.command()
@click.option('--config', '-c',
              type=click.Path(),
              default='config.yaml',
              show_default=True,
              help='Configuration file path')
@click.option('--output-dir', '-o',
              type=click.Path(file_okay=False),
              help='Directory for generated PDFs')
@click.option('--root',
              type=click.Path(exists=True, file_okay=False),
              help='Directory served to the browser (site root)')
@click.option('--port',
              type=int,
              help='Port for the local static server')
@click.option('--parallel/--sequential',
              default=None,
              help='Export all targets at once or one after another')
@click.option('--only',
              multiple=True,
              help='Export only the named target (can be used multiple times)')
@click.option('--list-targets',
              is_flag=True,
              help='Show configured targets and exit')
@click.option('--show-rules',
              is_flag=True,
              help='Show the print normalization ruleset and exit')
@click.option('--no-strict',
              is_flag=True,
              help='Exit 0 even if some targets failed')
@click.option('--verbose', '-v',
              is_flag=True,
              help='Enable verbose logging')
@click.version_option(version=__version__, prog_name="resume2pdf")
def main(config: str,
         output_dir: Optional[str],
         root: Optional[str],
         port: Optional[int],
         parallel: Optional[bool],
         only: tuple,
         list_targets: bool,
         show_rules: bool,
         no_strict: bool,
         verbose: bool):
    """
    Export the résumé and portfolio pages to PDF.

    Serves the site root locally, renders every target page in headless
    Chromium and writes one PDF per target into the output directory.
    """
    app_config = load_config(config)

    # Override config with CLI options
    if output_dir:
        app_config['export']['output_dir'] = output_dir
    if root:
        app_config['server']['root'] = root
    if port is not None:
        app_config['server']['port'] = port
    if parallel is not None:
        app_config['export']['parallel'] = parallel
    if no_strict:
        app_config['export']['strict'] = False
    if verbose:
        app_config['logging']['level'] = 'DEBUG'

    setup_logging(app_config['logging'])

    try:
        targets = select_targets(load_targets(app_config), only)
    except ConfigurationError as e:
        click.echo(f"❌ Configuration error: {e}", err=True)
        sys.exit(EXIT_RUN_FAILED)

    if list_targets:
        for target in targets:
            size = (f"{target.width_mm:g}x{target.height_mm:g}mm"
                    if target.width_mm and target.height_mm else
                    app_config['pdf'].get('format', 'A4') + (" landscape" if target.landscape else ""))
            click.echo(f"{target.name:<22} {target.url_path:<28} -> {target.output}  "
                       f"[{target.page_mode.value}: {size}]")
        return

    if show_rules:
        try:
            click.echo(Normalizer(app_config).describe())
        except ConfigurationError as e:
            click.echo(f"❌ Configuration error: {e}", err=True)
            sys.exit(EXIT_RUN_FAILED)
        return

    progress = ProgressTracker(verbose=verbose)
    try:
        exporter = PDFExporter(app_config, targets, progress=progress)
        summary = exporter.run()
    except RunError as e:
        click.echo(f"❌ Export could not start: {e}", err=True)
        sys.exit(EXIT_RUN_FAILED)

    progress.show_summary(summary)
    exit_code = summary.exit_code(strict=app_config['export'].get('strict', True))
    if exit_code == EXIT_TARGET_FAILED:
        click.echo(f"⚠️  {len(summary.failed)} target(s) failed", err=True)
    sys.exit(exit_code)


if __name__ == '__main__':
    main()
