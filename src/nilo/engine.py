"""
Runtime engine: compiled app, state, navigation and layout in one place.

The host drives the engine with events (clicks, text input, resizes) and
asks it for frames. Runtime failures never abort a call; they are logged at
WARNING and appended to ``engine.diagnostics``.

Usage:
    >>> engine = NiloEngine(source, state={"count": 0})
    >>> frame = engine.frame()
    >>> engine.click("increment")
    >>> frame = engine.frame()
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from .compiler import compile_source
from .errors import (
    Diagnostic,
    EvaluationError,
    NativeCallError,
    NavigationError,
)
from .evaluator import Evaluator
from .layout import Frame, LayoutDiffEngine, LayoutParams
from .measure import ImageSizer, PillowTextMeasurer, TextMeasurer
from .models import (
    ButtonNode,
    Call,
    ListAppendAction,
    ListClearAction,
    ListInsertAction,
    ListRemoveAction,
    NativeCallNode,
    NavigateAction,
    Path,
    SetAction,
    TextInputNode,
    Timeline,
    ToggleAction,
    ViewNode,
    walk,
)
from .native import NativeRegistry
from .navigator import FlowNavigator
from .state import AppState, StateStore
from .tracer import LayoutTrace

logger = logging.getLogger(__name__)


class NiloEngine:
    """
    Runs a Nilo program.

    Args:
        source: Nilo source text.
        state: Initial state, as a dict or a StateStore.
        registry: Native functions callable from the program.
        measurer: Text measurement collaborator; Pillow by default.
        image_sizer: Image size collaborator; Pillow by default.
        **layout_options: LayoutParams fields (viewport_width,
            viewport_height, root_font_size, default_font_size,
            default_spacing, auto_spacing, default_font, asset_root).

    Raises:
        ParseError: If the source cannot be parsed.
        SemanticErrors: If the program has semantic errors.
        ValueError: On unknown or invalid layout options.
    """

    def __init__(
        self,
        source: str,
        state: Optional[Union[Dict[str, Any], StateStore]] = None,
        registry: Optional[NativeRegistry] = None,
        measurer: Optional[TextMeasurer] = None,
        image_sizer: Optional[ImageSizer] = None,
        **layout_options: Any,
    ):
        unknown = set(layout_options) - set(LayoutParams.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown layout option(s): {', '.join(sorted(unknown))}")
        self.params = LayoutParams(**layout_options)

        self.diagnostics: List[Diagnostic] = []
        self.app = compile_source(source, self.diagnostics)

        if state is None or isinstance(state, dict):
            state = AppState(state)
        self.state: StateStore = state
        self.registry = registry if registry is not None else NativeRegistry()
        self.evaluator = Evaluator(self.state, self.registry)
        self.navigator = FlowNavigator.from_app(self.app)

        self.layout = LayoutDiffEngine(
            self.params,
            measurer or PillowTextMeasurer(self.params.default_font),
            image_sizer or ImageSizer(self.params.asset_root),
        )
        self._last_frame: Optional[Frame] = None
        self._trace: Optional[LayoutTrace] = None

    # Reporting

    def _report(self, exc: Exception, location: Optional[str] = None) -> None:
        logger.warning("%s", exc)
        self.diagnostics.append(Diagnostic.error(str(exc), location))

    def drain_diagnostics(self) -> List[Diagnostic]:
        """Return and clear the reported diagnostics."""
        drained, self.diagnostics = self.diagnostics, []
        return drained

    # Frames

    @property
    def current_timeline(self) -> str:
        return self.navigator.current

    @property
    def timeline(self) -> Timeline:
        timeline = self.app.timeline(self.navigator.current)
        if timeline is None:
            current = self.navigator.current
            raise NavigationError(current, current, "timeline is not declared")
        return timeline

    def frame(self, debug: bool = False) -> Frame:
        """
        Compute a frame for the current timeline.

        Args:
            debug: Record a LayoutTrace, available from get_trace().

        Returns:
            The computed Frame.
        """
        timeline = self.timeline
        trace = LayoutTrace() if debug else None
        frame = self.layout.compute(
            timeline.body,
            self.evaluator,
            timeline=timeline.name,
            font=timeline.font,
            trace=trace,
        )
        self.diagnostics.extend(frame.diagnostics)
        self._last_frame = frame
        self._trace = trace
        return frame

    def get_trace(self) -> Optional[LayoutTrace]:
        """Trace of the last frame computed with debug=True."""
        return self._trace

    def resize(self, width: float, height: float) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Viewport must be positive, got {width}x{height}")
        self.params.viewport_width = width
        self.params.viewport_height = height

    # Navigation

    def navigate_to(self, target: str) -> bool:
        """
        Navigate to target if the flow allows it.

        Returns:
            True on success; False if the navigation was rejected and
            reported.
        """
        try:
            self.navigator.navigate_to(target)
        except NavigationError as exc:
            self._report(exc, self.navigator.current)
            return False
        # Cached layouts belong to the previous timeline.
        self.layout.invalidate()
        self._last_frame = None
        return True

    # Events

    def hit_test(self, x: float, y: float) -> Optional[str]:
        """Id of the top-most button or text input at (x, y)."""
        frame = self._last_frame or self.frame()
        region = frame.hit_test(x, y)
        return region.target if region is not None else None

    def click_at(self, x: float, y: float) -> Optional[str]:
        """Click whatever interactive element is at (x, y)."""
        frame = self._last_frame or self.frame()
        region = frame.hit_test(x, y)
        if region is None:
            return None
        self.click(region.target, region.node_id)
        return region.target

    def click(self, element_id: str, node_id: Optional[str] = None) -> bool:
        """
        Deliver a click to a button.

        The button's inline onclick call runs first, then every ``when``
        handler of the current timeline for this id, in source order.
        Each handler is atomic: if one of its actions fails, state is
        rolled back to where it was before the handler and its
        navigations are dropped.

        Args:
            element_id: Button id.
            node_id: Node id of the clicked button, to pick the right loop
                scope when several buttons share an id.

        Returns:
            True if an onclick call or a handler matched.
        """
        handled = self._run_onclick(element_id, node_id)
        for when in self.timeline.whens:
            if when.event.target != element_id:
                continue
            handled = True
            self._run_handler(when.actions, {}, f"when click {element_id}")
        return handled

    def _run_onclick(self, element_id: str, node_id: Optional[str]) -> bool:
        binding = self._find_onclick(element_id, node_id)
        if binding is None:
            return False
        call, scope = binding
        try:
            self.evaluator.call(call, scope)
        except (NativeCallError, EvaluationError) as exc:
            self._report(exc, element_id)
        return True

    def _find_onclick(self, element_id: str, node_id: Optional[str]):
        frame = self._last_frame
        if frame is not None:
            if node_id is not None and node_id in frame.onclicks:
                return frame.onclicks[node_id]
            for region in frame.hit_regions:
                if region.target == element_id and region.node_id in frame.onclicks:
                    return frame.onclicks[region.node_id]
        for node in walk(self.timeline.body):
            if isinstance(node, ButtonNode) and node.id == element_id and node.onclick is not None:
                return node.onclick, {}
        return None

    def _run_handler(self, actions: Sequence[ViewNode], scope: Dict[str, Any], location: str) -> None:
        snapshot = self.state.snapshot()
        navigations: List[str] = []
        try:
            for action in actions:
                self._apply(action, scope, navigations)
        except (EvaluationError, NativeCallError) as exc:
            self.state.restore(snapshot)
            self._report(exc, location)
            return
        for target in navigations:
            self.navigate_to(target)

    def _apply(self, action: ViewNode, scope: Dict[str, Any], navigations: List[str]) -> None:
        evaluate = self.evaluator.evaluate
        state = self.state
        if isinstance(action, SetAction):
            state.set(action.path.segments, evaluate(action.value, scope))
        elif isinstance(action, ToggleAction):
            state.toggle(action.path.segments)
        elif isinstance(action, ListAppendAction):
            state.append(action.path.segments, evaluate(action.value, scope))
        elif isinstance(action, ListInsertAction):
            index = evaluate(action.index, scope)
            state.insert(action.path.segments, index, evaluate(action.value, scope))
        elif isinstance(action, ListRemoveAction):
            state.remove(action.path.segments, evaluate(action.value, scope))
        elif isinstance(action, ListClearAction):
            state.clear(action.path.segments)
        elif isinstance(action, NavigateAction):
            navigations.append(action.target)
        elif isinstance(action, NativeCallNode):
            self._call_native(action.call, scope)

    def _call_native(self, call: Call, scope: Dict[str, Any]) -> Any:
        try:
            return self.evaluator.call(call, scope)
        except NativeCallError as exc:
            self._report(exc, call.name)
            return None

    def input_text(self, field_id: str, text: str) -> bool:
        """
        Deliver text typed into a TextInput.

        The text replaces the value at the input's ``state.`` value path,
        truncated to the input's max_length.

        Returns:
            True if the value was written.
        """
        field = None
        for node in walk(self.timeline.body):
            if isinstance(node, TextInputNode) and node.id == field_id:
                field = node
                break
        if field is None:
            self._report(ValueError(f"No text input '{field_id}' in {self.current_timeline}"))
            return False
        if not isinstance(field.value, Path) or not field.value.is_state:
            self._report(ValueError(f"Text input '{field_id}' is not bound to a state path"))
            return False

        if field.max_length is not None:
            text = text[: field.max_length]
        try:
            self.state.set(field.value.segments, text)
        except EvaluationError as exc:
            self._report(exc, field_id)
            return False
        return True
