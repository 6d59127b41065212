#!/usr/bin/env python3
"""
Print Normalization Stage

Headless export never fires resize, scroll or click events, so any UI that
only expands in a live window (clamped sidebars, collapsed cards, animated
skill bars, inherited SVG text) is pinned to its print-safe state here.

The work is a declarative ruleset rather than free-form script. The same
rules run inside the browser (``Normalizer.apply``) and against a static
BeautifulSoup document (``apply_rules_to_soup``), which keeps them testable
without a browser. Applying the rules twice is a no-op the second time.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from bs4 import BeautifulSoup, Tag
from playwright.async_api import Page

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

StyleList = Tuple[Tuple[str, str], ...]


@dataclass(frozen=True)
class StyleRule:
    """Pin inline ``!important`` styles on every element matching ``selector``."""
    selector: str
    styles: StyleList

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': 'style', 'selector': self.selector, 'styles': [list(s) for s in self.styles]}


@dataclass(frozen=True)
class ClassRule:
    """Add and remove classes, e.g. force ``collapsed`` cards open."""
    selector: str
    add: Tuple[str, ...] = ()
    remove: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': 'class', 'selector': self.selector, 'add': list(self.add), 'remove': list(self.remove)}


@dataclass(frozen=True)
class AttributeStyleRule:
    """Copy a data attribute into a style property (``data-level="80"`` -> ``width: 80%``)."""
    selector: str
    property: str
    attribute: str
    unit: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {'kind': 'attribute', 'selector': self.selector, 'property': self.property,
                'attribute': self.attribute, 'unit': self.unit}


Rule = Union[StyleRule, ClassRule, AttributeStyleRule]


def _styles(**kwargs) -> StyleList:
    return tuple((name.replace('_', '-'), value) for name, value in kwargs.items())


NATURAL_HEIGHT = _styles(height='auto', max_height='none', min_height='0',
                         overflow='visible', position='static')

DIAGRAM_TEXT = _styles(font_size='14px', font_weight='400',
                       font_family="'Noto Sans KR', 'Apple SD Gothic Neo', 'Malgun Gothic', sans-serif")

DEFAULT_RULES: Tuple[Rule, ...] = (
    # Sidebar and its panels
    StyleRule('.sidebar', NATURAL_HEIGHT),
    StyleRule('.sidebar-content', NATURAL_HEIGHT),
    StyleRule('.profile-section', NATURAL_HEIGHT),
    StyleRule('.skills-section', NATURAL_HEIGHT),

    # Collapsible cards
    ClassRule('.content-card.collapsible', add=('expanded',), remove=('collapsed',)),
    ClassRule('.collapsible', add=('expanded',), remove=('collapsed',)),
    StyleRule('.card-content', _styles(display='block', height='auto', max_height='none',
                                       overflow='visible', opacity='1')),
    StyleRule('.card-body', _styles(display='block', height='auto', max_height='none',
                                    overflow='visible', opacity='1')),
    StyleRule('.collapsible-content', _styles(display='block', height='auto', max_height='none',
                                              overflow='visible', opacity='1')),

    # Skill / progress bars
    StyleRule('.skill-bar', _styles(display='block', height='8px', background_color='#e9ecef',
                                    overflow='hidden', print_color_adjust='exact',
                                    _webkit_print_color_adjust='exact')),
    StyleRule('.progress-bar', _styles(display='block', height='8px', background_color='#e9ecef',
                                       overflow='hidden', print_color_adjust='exact',
                                       _webkit_print_color_adjust='exact')),
    StyleRule('.skill-level', _styles(display='block', height='100%', background_color='#4a90e2',
                                      opacity='1', visibility='visible', transform='none',
                                      transition='none', animation='none',
                                      print_color_adjust='exact', _webkit_print_color_adjust='exact')),
    StyleRule('.progress-fill', _styles(display='block', height='100%', background_color='#4a90e2',
                                        opacity='1', visibility='visible', transform='none',
                                        transition='none', animation='none',
                                        print_color_adjust='exact', _webkit_print_color_adjust='exact')),
    StyleRule('.level-bar', _styles(opacity='1', visibility='visible', transition='none', animation='none')),
    AttributeStyleRule('.skill-level[data-level]', 'width', 'data-level', '%'),
    AttributeStyleRule('.progress-fill[data-width]', 'width', 'data-width', '%'),

    # Diagram text
    StyleRule('.mermaid svg text', DIAGRAM_TEXT),
    StyleRule('.mermaid svg .nodeLabel', DIAGRAM_TEXT),
    StyleRule('.mermaid svg foreignObject div', DIAGRAM_TEXT),

    # Print-only switches
    StyleRule('.pdf-exclude', _styles(display='none')),
    StyleRule('.no-print', _styles(display='none')),
    StyleRule('.print-btn', _styles(display='none')),
    StyleRule('.page-break', _styles(page_break_before='always', break_before='page')),
    StyleRule('.pdf-page-break', _styles(page_break_before='always', break_before='page')),
)

APPLY_RULES_JS = """
(rules) => {
  let changes = 0;
  for (const rule of rules) {
    let nodes;
    try {
      nodes = document.querySelectorAll(rule.selector);
    } catch (e) {
      continue;
    }
    nodes.forEach((el) => {
      if (rule.kind === 'class') {
        for (const cls of rule.add) {
          if (!el.classList.contains(cls)) { el.classList.add(cls); changes += 1; }
        }
        for (const cls of rule.remove) {
          if (el.classList.contains(cls)) { el.classList.remove(cls); changes += 1; }
        }
        return;
      }
      const before = el.style.cssText;
      if (rule.kind === 'style') {
        for (const [prop, value] of rule.styles) {
          el.style.setProperty(prop, value, 'important');
        }
      } else if (rule.kind === 'attribute') {
        const raw = el.getAttribute(rule.attribute);
        if (raw !== null && raw.trim() !== '') {
          el.style.setProperty(rule.property, raw.trim() + rule.unit, 'important');
        }
      }
      if (el.style.cssText !== before) changes += 1;
    });
  }
  return changes;
}
"""


def parse_style(style: Optional[str]) -> Dict[str, Tuple[str, bool]]:
    """Parse an inline style attribute into ``{property: (value, important)}``."""
    declarations: Dict[str, Tuple[str, bool]] = {}
    if not style:
        return declarations
    for chunk in style.split(';'):
        if ':' not in chunk:
            continue
        name, value = chunk.split(':', 1)
        name = name.strip().lower()
        value = value.strip()
        important = value.lower().endswith('!important')
        if important:
            value = value[:-len('!important')].strip()
        if name:
            declarations[name] = (value, important)
    return declarations


def format_style(declarations: Dict[str, Tuple[str, bool]]) -> str:
    return '; '.join(
        f"{name}: {value}{' !important' if important else ''}"
        for name, (value, important) in declarations.items()
    )


def _select(soup: BeautifulSoup, selector: str) -> List[Tag]:
    try:
        return soup.select(selector)
    except Exception as e:
        logger.debug(f"Skipping unsupported selector {selector!r}: {e}")
        return []


def _set_styles(element: Tag, styles: Iterable[Tuple[str, str]]) -> bool:
    original = element.get('style')
    declarations = parse_style(original)
    for name, value in styles:
        declarations[name] = (value, True)
    updated = format_style(declarations)
    if updated == original:
        return False
    element['style'] = updated
    return True


def apply_rules_to_soup(soup: BeautifulSoup, rules: Iterable[Rule] = DEFAULT_RULES) -> int:
    """Apply the ruleset to a parsed document in place; returns the number of changes."""
    changes = 0
    for rule in rules:
        for element in _select(soup, rule.selector):
            if isinstance(rule, ClassRule):
                classes = list(element.get('class', []))
                for cls in rule.add:
                    if cls not in classes:
                        classes.append(cls)
                        changes += 1
                for cls in rule.remove:
                    if cls in classes:
                        classes.remove(cls)
                        changes += 1
                element['class'] = classes
            elif isinstance(rule, StyleRule):
                changes += _set_styles(element, rule.styles)
            elif isinstance(rule, AttributeStyleRule):
                raw = (element.get(rule.attribute) or '').strip()
                if raw:
                    changes += _set_styles(element, [(rule.property, raw + rule.unit)])
    return changes


def apply_rules_to_html(html: str, rules: Iterable[Rule] = DEFAULT_RULES) -> Tuple[str, int]:
    """Normalize an HTML string; returns the new markup and the change count."""
    soup = BeautifulSoup(html, 'html.parser')
    changes = apply_rules_to_soup(soup, rules)
    return str(soup), changes


def rule_from_dict(spec: Dict[str, Any]) -> Rule:
    """Build a rule from configuration (``normalization.extra_rules``)."""
    kind = spec.get('kind', 'style')
    selector = spec.get('selector')
    if not selector:
        raise ConfigurationError(f"Normalization rule without selector: {spec}")

    if kind == 'style':
        styles = spec.get('styles') or {}
        return StyleRule(selector, tuple((str(k), str(v)) for k, v in styles.items()))
    if kind == 'class':
        return ClassRule(selector, tuple(spec.get('add', ())), tuple(spec.get('remove', ())))
    if kind == 'attribute':
        missing = [key for key in ('property', 'attribute') if not spec.get(key)]
        if missing:
            raise ConfigurationError(
                f"Attribute rule for {selector!r} missing required key(s) {', '.join(missing)}: {spec}"
            )
        return AttributeStyleRule(selector, spec['property'], spec['attribute'], spec.get('unit', ''))
    raise ConfigurationError(f"Unknown normalization rule kind: {kind!r}")


class Normalizer:
    """Applies the print ruleset to a live tab."""

    def __init__(self, config: Dict[str, Any]):
        norm_config = config.get('normalization', {})
        self.enabled = norm_config.get('enabled', True)
        extra = [rule_from_dict(spec) for spec in norm_config.get('extra_rules') or []]
        self.rules: List[Rule] = list(DEFAULT_RULES) + extra

    def payload(self) -> List[Dict[str, Any]]:
        return [rule.to_dict() for rule in self.rules]

    async def apply(self, page: Page) -> int:
        if not self.enabled:
            logger.debug("Print normalization disabled")
            return 0
        changes = await page.evaluate(APPLY_RULES_JS, self.payload())
        logger.debug(f"Print normalization changed {changes} element(s)")
        return changes

    def describe(self) -> str:
        return json.dumps(self.payload(), indent=2, ensure_ascii=False)
