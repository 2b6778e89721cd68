"""
Compilation pipeline: parse -> desugar -> validate -> expand.
"""

import logging
from dataclasses import replace
from typing import List, Optional

from .errors import Diagnostic, SemanticError, SemanticErrors
from .expander import ComponentExpander
from .models import App
from .namespace import desugar
from .parser import parse_nilo
from .validator import collect_warnings, validate

logger = logging.getLogger(__name__)


def expand_app(app: App) -> App:
    """
    Inline every component call in every timeline.

    Raises:
        SemanticErrors: With every expansion failure across all timelines.
    """
    expander = ComponentExpander(app.component_map())
    errors: List[SemanticError] = []
    timelines = []
    for timeline in app.timelines:
        try:
            timelines.append(replace(timeline, body=expander.expand_nodes(timeline.body)))
        except SemanticError as exc:
            errors.append(
                exc if exc.location else SemanticError(exc.message, f"timeline {timeline.name}")
            )
    if errors:
        raise SemanticErrors(errors)
    return App(flows=list(app.flows), timelines=timelines, components=list(app.components))


def compile_source(source: str, diagnostics: Optional[List[Diagnostic]] = None) -> App:
    """
    Compile Nilo source text into an expanded App.

    Args:
        source: Nilo source text.
        diagnostics: Optional list receiving non-fatal warnings (for example
            timelines unreachable from the start timeline).

    Returns:
        App whose timeline bodies contain no component calls.

    Raises:
        ParseError: On the first syntax error.
        SemanticErrors: With every semantic error found.
    """
    app = desugar(parse_nilo(source))

    errors = validate(app)
    if errors:
        logger.debug("Compilation failed with %d semantic error(s)", len(errors))
        raise SemanticErrors(errors)

    for warning in collect_warnings(app):
        logger.warning("%s", warning)
        if diagnostics is not None:
            diagnostics.append(warning)

    compiled = expand_app(app)
    logger.debug(
        "Compiled %d timeline(s) and %d component(s)",
        len(compiled.timelines),
        len(compiled.components),
    )
    return compiled
