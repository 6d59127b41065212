import time
from typing import List, Optional
from enum import Enum
import click
from tqdm import tqdm


class Phase(Enum):
    SERVING = "🌐 Starting static server"
    BROWSER = "🧭 Launching browser"
    EXPORTING = "📖 Exporting PDFs"


class ProgressTracker:
    """Phase headers plus a progress bar across export targets."""

    def __init__(self, verbose: bool = False, enabled: bool = True):
        self.verbose = verbose
        self.enabled = enabled
        self.current_phase: Optional[Phase] = None
        self.target_progress: Optional[tqdm] = None
        self.start_time = time.time()

    def start_phase(self, phase: Phase, description: str = ""):
        """Announce a new phase of the export run."""
        self.current_phase = phase
        if not self.enabled:
            return
        message = phase.value
        if description:
            message += f" - {description}"
        click.echo(message)

    def start_targets(self, total: int):
        self.start_phase(Phase.EXPORTING, f"{total} target(s)")
        if not self.enabled:
            return
        self.target_progress = tqdm(
            total=total,
            desc=Phase.EXPORTING.value,
            unit="pdf",
            colour="blue",
            leave=True
        )

    def target_finished(self, result):
        if not self.target_progress:
            return
        status = "✅" if result.success else "❌"
        self.target_progress.set_postfix_str(f"{status} {result.target.name}")
        self.target_progress.update(1)

    def show_summary(self, summary):
        """Print a per-target summary table."""
        self.cleanup()
        if not self.enabled:
            return

        elapsed = time.time() - self.start_time
        click.echo(f"\n📊 Export summary ({elapsed:.1f}s)")
        click.echo("=" * 60)
        for result in summary.results:
            if result.success:
                line = f"✅ {result.target.name:<22} {result.pages:>3} page(s)  {result.elapsed:5.1f}s"
                if result.degraded:
                    line += f"  ⚠️  degraded: {', '.join(result.degraded)}"
            else:
                line = f"❌ {result.target.name:<22} {result.error}"
            click.echo(line)
            if self.verbose and result.success:
                click.echo(f"   📄 {result.target.output}")
        click.echo("=" * 60)
        click.echo(f"{len(summary.succeeded)} succeeded, {len(summary.failed)} failed")

    def cleanup(self):
        if self.target_progress:
            self.target_progress.close()
            self.target_progress = None
