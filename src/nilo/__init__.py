"""
Nilo - a declarative UI language runtime

Nilo programs declare flows (which screens may follow which), timelines
(screens) and reusable components. This package parses them, navigates
between timelines, evaluates state-bound expressions and lays frames out
incrementally into draw primitives for an external renderer.

Example:
    >>> from nilo import NiloEngine
    >>> engine = NiloEngine('''
    ...     flow { start: Home }
    ...     timeline Home { Text("Count: {}", state.count) }
    ... ''', state={"count": 1})
    >>> frame = engine.frame()
    >>> frame.texts()
    ['Count: 1']

Debug Mode Example:
    >>> frame = engine.frame(debug=True)
    >>> print(engine.get_trace().summary())
"""

from .compiler import compile_source, expand_app
from .engine import NiloEngine
from .errors import (
    AssetError,
    Diagnostic,
    DiagnosticLevel,
    EvaluationError,
    NativeCallError,
    NavigationError,
    NiloError,
    ParseError,
    SemanticError,
    SemanticErrors,
    StyleError,
)
from .evaluator import Evaluator, interpolate
from .expander import bind_arguments, expand_component, expand_nodes
from .graph import FlowGraph
from .layout import Frame, LayoutDiffEngine, LayoutedNode, LayoutParams, NodeHash, NodeId
from .lexer import tokenize
from .measure import ImageSizer, PillowTextMeasurer, TextMeasurer
from .namespace import desugar
from .native import NativeRegistry
from .navigator import FlowNavigator
from .parser import ParseResult, Parser, parse_nilo
from .state import AppState, StateStore
from .stencil import (
    Circle,
    ImageStencil,
    Rect,
    RoundedRect,
    Stencil,
    TextStencil,
    Triangle,
    order_for_drawing,
)
from .tracer import CacheEvent, DiffStats, LayoutTrace, PipelineStage
from .validator import validate

__version__ = "0.1.0"

__all__ = [
    # Main API
    "NiloEngine",
    "compile_source",
    "expand_app",
    # Parsing
    "tokenize",
    "Parser",
    "ParseResult",
    "parse_nilo",
    "desugar",
    "validate",
    # Components
    "bind_arguments",
    "expand_component",
    "expand_nodes",
    # Flows
    "FlowGraph",
    "FlowNavigator",
    # State and evaluation
    "AppState",
    "StateStore",
    "Evaluator",
    "interpolate",
    "NativeRegistry",
    # Layout
    "LayoutDiffEngine",
    "LayoutParams",
    "LayoutedNode",
    "Frame",
    "NodeId",
    "NodeHash",
    "TextMeasurer",
    "PillowTextMeasurer",
    "ImageSizer",
    # Stencils
    "Stencil",
    "Rect",
    "RoundedRect",
    "Circle",
    "Triangle",
    "TextStencil",
    "ImageStencil",
    "order_for_drawing",
    # Errors
    "NiloError",
    "ParseError",
    "SemanticError",
    "SemanticErrors",
    "EvaluationError",
    "NavigationError",
    "NativeCallError",
    "AssetError",
    "StyleError",
    "Diagnostic",
    "DiagnosticLevel",
    # Debug/Tracing
    "LayoutTrace",
    "PipelineStage",
    "CacheEvent",
    "DiffStats",
]
