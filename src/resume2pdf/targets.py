"""
Export targets: which page is rendered, where its PDF goes, and how it is paginated.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class PageMode(Enum):
    CSS_PAGE = "css"
    EXPLICIT = "explicit"


class JobState(Enum):
    """Lifecycle of one export job, in the order stages complete."""
    CREATED = "created"
    NAVIGATED = "navigated"
    FONTS_READY = "fonts-ready"
    DIAGRAMS_READY = "diagrams-ready"
    NORMALIZED = "normalized"
    PAGINATED = "paginated"
    FAILED = "failed"


@dataclass(frozen=True)
class Target:
    """One (source page, output PDF) unit of work."""
    name: str
    url_path: str
    output: Path
    page_mode: PageMode = PageMode.CSS_PAGE
    width_mm: Optional[float] = None
    height_mm: Optional[float] = None
    landscape: bool = False

    def url(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}/{self.url_path.lstrip('/')}"

    @property
    def identity(self) -> Path:
        return self.output.resolve()


DEFAULT_TARGET_SPECS: List[Dict[str, Any]] = [
    {'name': 'resume', 'url_path': '/resume.html', 'output': 'resume.pdf'},
    {'name': 'portfolio', 'url_path': '/portfolio.html', 'output': 'portfolio.pdf'},
    {'name': 'resume-horizontal', 'url_path': '/resume-horizontal.html',
     'output': 'resume-horizontal.pdf', 'landscape': True},
    {'name': 'portfolio-horizontal', 'url_path': '/portfolio-horizontal.html',
     'output': 'portfolio-horizontal.pdf', 'landscape': True},
    {'name': 'intro-cards', 'url_path': '/intro-cards.html', 'output': 'intro-cards.pdf',
     'page_mode': 'explicit', 'width_mm': 210, 'height_mm': 500},
]


def target_from_dict(spec: Dict[str, Any], output_dir: Path) -> Target:
    """Build a Target from a config mapping; relative outputs land in ``output_dir``."""
    try:
        name = str(spec['name'])
        url_path = str(spec['url_path'])
    except KeyError as e:
        raise ConfigurationError(f"Target definition missing required key {e}: {spec}")

    output = Path(spec.get('output') or f"{name}.pdf")
    if not output.is_absolute():
        output = output_dir / output

    try:
        page_mode = PageMode(spec.get('page_mode', PageMode.CSS_PAGE.value))
    except ValueError:
        raise ConfigurationError(
            f"Target '{name}' has unknown page_mode {spec.get('page_mode')!r} "
            f"(expected one of: {', '.join(m.value for m in PageMode)})"
        )

    width = spec.get('width_mm')
    height = spec.get('height_mm')
    return Target(
        name=name,
        url_path=url_path,
        output=output,
        page_mode=page_mode,
        width_mm=float(width) if width is not None else None,
        height_mm=float(height) if height is not None else None,
        landscape=bool(spec.get('landscape', False)),
    )


def validate_targets(targets: Iterable[Target]) -> List[Target]:
    """Reject duplicate names/outputs and incomplete explicit-size targets."""
    targets = list(targets)
    if not targets:
        raise ConfigurationError("No export targets configured")

    seen_names = set()
    seen_outputs = {}
    for target in targets:
        if target.name in seen_names:
            raise ConfigurationError(f"Duplicate target name: {target.name}")
        seen_names.add(target.name)

        if target.identity in seen_outputs:
            raise ConfigurationError(
                f"Targets '{seen_outputs[target.identity]}' and '{target.name}' "
                f"both write {target.output}"
            )
        seen_outputs[target.identity] = target.name

        if target.page_mode is PageMode.EXPLICIT:
            if not target.width_mm or not target.height_mm or target.width_mm <= 0 or target.height_mm <= 0:
                raise ConfigurationError(
                    f"Target '{target.name}' uses explicit page size but has no positive width_mm/height_mm"
                )
    return targets


def load_targets(config: Dict[str, Any]) -> List[Target]:
    """Resolve the configured target list, falling back to the built-in pages."""
    output_dir = Path(config['export']['output_dir'])
    specs = config.get('targets') or DEFAULT_TARGET_SPECS
    targets = [target_from_dict(spec, output_dir) for spec in specs]
    logger.debug(f"Loaded {len(targets)} targets: {', '.join(t.name for t in targets)}")
    return validate_targets(targets)


def select_targets(targets: List[Target], names: Iterable[str]) -> List[Target]:
    """Keep only the named targets, preserving configured order."""
    wanted = list(names)
    if not wanted:
        return targets
    known = {t.name for t in targets}
    unknown = [n for n in wanted if n not in known]
    if unknown:
        raise ConfigurationError(f"Unknown target(s): {', '.join(unknown)}")
    return [t for t in targets if t.name in wanted]
