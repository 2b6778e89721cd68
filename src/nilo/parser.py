"""
Parser module for Nilo source text.

Handles parsing of tokens into flows, timelines, components and namespace
blocks. The result is the grammar-level parse; namespaced names are
qualified afterwards by the desugaring pass in ``nilo.namespace``.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from .errors import ParseError
from .lexer import Token, TokenType, tokenize
from .models import (
    ActionNode,
    ArrayExpr,
    BinaryOp,
    ButtonNode,
    Call,
    ClickEvent,
    Component,
    ComponentCallNode,
    ComponentParam,
    DynamicSectionNode,
    Expr,
    Flow,
    ForEachNode,
    HStackNode,
    IfNode,
    ImageNode,
    Len,
    ListAppendAction,
    ListClearAction,
    ListInsertAction,
    ListRemoveAction,
    Literal,
    MatchArm,
    MatchCase,
    MatchExpr,
    MatchNode,
    NamespacedFlow,
    NativeCallNode,
    NavigateAction,
    ObjectExpr,
    Path,
    SetAction,
    SpacingAutoNode,
    SpacingNode,
    StencilNode,
    TextInputNode,
    TextNode,
    Timeline,
    ToggleAction,
    Transition,
    UnaryOp,
    ViewNode,
    VStackNode,
    When,
)
from .style import Dimension, StyleSpec, Unit

PARAM_TYPES = {
    "string": "String",
    "number": "Number",
    "bool": "Bool",
    "array": "Array",
    "object": "Object",
    "function": "Function",
    "any": "Any",
}

STENCIL_SHAPES = frozenset({"rect", "circle", "triangle", "rounded_rect", "text", "image"})

# Identifiers that start a built-in view node or action rather than a
# component call.
NODE_KEYWORDS = frozenset(
    {
        "Text", "Button", "Image", "TextInput", "VStack", "HStack", "Spacing",
        "SpacingAuto", "dynamic_section", "if", "foreach", "match", "set",
        "toggle", "append", "insert", "remove", "clear", "navigate_to", "when",
        "font",
    }
) | STENCIL_SHAPES

COMPARISON_OPS = ("==", "!=", "<=", ">=", "<", ">")


@dataclass
class Namespace:
    """A ``namespace Name { ... }`` block before its names are qualified."""

    name: str
    timelines: List[Timeline] = field(default_factory=list)
    components: List[Component] = field(default_factory=list)
    line: int = 0


@dataclass
class ParseResult:
    """Result of parsing source text."""

    flows: List[Flow] = field(default_factory=list)
    namespaced_flows: List[NamespacedFlow] = field(default_factory=list)
    timelines: List[Timeline] = field(default_factory=list)
    components: List[Component] = field(default_factory=list)
    namespaces: List[Namespace] = field(default_factory=list)


@dataclass
class CallArguments:
    positional: List[Expr] = field(default_factory=list)
    named: List[Tuple[str, Expr]] = field(default_factory=list)
    style: Optional[StyleSpec] = None

    def get(self, name: str) -> Optional[Expr]:
        for key, value in self.named:
            if key == name:
                return value
        return None


class Parser:
    """Parses Nilo source text into a ParseResult."""

    def __init__(self):
        self.tokens: List[Token] = []
        self.index = 0

    def parse(self, source: str) -> ParseResult:
        """
        Parse source text.

        Args:
            source: Nilo source text.

        Returns:
            ParseResult with flows, timelines, components and namespaces.

        Raises:
            ParseError: On the first syntax error, with its location.
        """
        self.tokens = tokenize(source)
        self.index = 0
        result = ParseResult()

        while not self._at_end():
            token = self._peek()
            if token.is_ident("flow"):
                flow = self._parse_flow()
                if isinstance(flow, NamespacedFlow):
                    result.namespaced_flows.append(flow)
                else:
                    result.flows.append(flow)
            elif token.is_ident("timeline"):
                result.timelines.append(self._parse_timeline())
            elif token.is_ident("component"):
                result.components.append(self._parse_component())
            elif token.is_ident("namespace"):
                result.namespaces.append(self._parse_namespace())
            else:
                raise self._error(
                    f"Expected 'flow', 'timeline', 'component' or 'namespace', "
                    f"found {self._describe(token)}",
                    token,
                )

        return result

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def _peek(self, offset: int = 0) -> Token:
        index = min(self.index + offset, len(self.tokens) - 1)
        return self.tokens[index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        if token.type != TokenType.EOF:
            self.index += 1
        return token

    def _at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _at_symbol(self, symbol: str, offset: int = 0) -> bool:
        return self._peek(offset).is_symbol(symbol)

    def _match_symbol(self, symbol: str) -> bool:
        if self._at_symbol(symbol):
            self._advance()
            return True
        return False

    def _expect_symbol(self, symbol: str) -> Token:
        token = self._peek()
        if not token.is_symbol(symbol):
            raise self._error(f"Expected '{symbol}', found {self._describe(token)}", token)
        return self._advance()

    def _expect_ident(self, name: Optional[str] = None) -> Token:
        token = self._peek()
        if token.type != TokenType.IDENT or (name is not None and token.value != name):
            expected = f"'{name}'" if name else "an identifier"
            raise self._error(f"Expected {expected}, found {self._describe(token)}", token)
        return self._advance()

    def _expect_string(self) -> str:
        token = self._peek()
        if token.type != TokenType.STRING:
            raise self._error(f"Expected a string, found {self._describe(token)}", token)
        return self._advance().value

    def _skip_separators(self) -> None:
        while self._at_symbol(";") or self._at_symbol(","):
            self._advance()

    @staticmethod
    def _describe(token: Token) -> str:
        if token.type == TokenType.EOF:
            return "end of input"
        if token.type == TokenType.STRING:
            return f"string {token.value!r}"
        return f"'{token.value}{token.unit}'"

    @staticmethod
    def _error(message: str, token: Token) -> ParseError:
        return ParseError(message, token.line, token.column)

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def _parse_qident(self) -> str:
        parts = [self._expect_ident().value]
        while self._at_symbol("::"):
            self._advance()
            parts.append(self._expect_ident().value)
        return "::".join(parts)

    def _parse_flow(self):
        keyword = self._expect_ident("flow")
        name = None
        if self._peek().type == TokenType.IDENT:
            name = self._expect_ident().value
        self._expect_symbol("{")

        start = None
        transitions: List[Transition] = []
        while not self._at_symbol("}"):
            self._skip_separators()
            if self._at_symbol("}"):
                break
            token = self._peek()
            if token.is_ident("start") and self._at_symbol(":", 1):
                self._advance()
                self._advance()
                if start is not None:
                    raise self._error("Flow declares more than one start", token)
                start = self._parse_qident()
            else:
                transitions.append(self._parse_transition())
        self._expect_symbol("}")

        if start is None:
            raise self._error("Flow definition requires 'start:'", keyword)
        if name is not None:
            return NamespacedFlow(name, start, tuple(transitions), line=keyword.line)
        return Flow(start, tuple(transitions), line=keyword.line)

    def _parse_transition(self) -> Transition:
        token = self._peek()
        sources = self._parse_endpoints()
        self._expect_symbol("->")
        targets = self._parse_endpoints()
        return Transition(sources, targets, line=token.line)

    def _parse_endpoints(self) -> Tuple[str, ...]:
        if self._match_symbol("["):
            names = [self._parse_qident()]
            while self._match_symbol(","):
                if self._at_symbol("]"):
                    break
                names.append(self._parse_qident())
            self._expect_symbol("]")
            return tuple(names)
        return (self._parse_qident(),)

    def _parse_namespace(self) -> Namespace:
        keyword = self._expect_ident("namespace")
        namespace = Namespace(self._expect_ident().value, line=keyword.line)
        self._expect_symbol("{")
        while not self._at_symbol("}"):
            token = self._peek()
            if token.is_ident("timeline"):
                namespace.timelines.append(self._parse_timeline())
            elif token.is_ident("component"):
                namespace.components.append(self._parse_component())
            else:
                raise self._error(
                    f"Expected 'timeline' or 'component' inside namespace, "
                    f"found {self._describe(token)}",
                    token,
                )
        self._expect_symbol("}")
        return namespace

    def _parse_timeline(self) -> Timeline:
        keyword = self._expect_ident("timeline")
        name = self._parse_qident()
        self._expect_symbol("{")
        font = self._parse_font()
        body, whens = self._parse_block_contents(allow_when=True)
        self._expect_symbol("}")
        return Timeline(name, tuple(body), tuple(whens), font, line=keyword.line)

    def _parse_component(self) -> Component:
        keyword = self._expect_ident("component")
        name = self._parse_qident()
        params: List[ComponentParam] = []
        default_style = None

        if self._match_symbol("("):
            while not self._at_symbol(")"):
                if self._peek().is_ident("style") and self._at_symbol(":", 1):
                    self._advance()
                    self._advance()
                    default_style = self._parse_style_value()
                else:
                    params.append(self._parse_param())
                if not self._match_symbol(","):
                    break
            self._expect_symbol(")")

        self._expect_symbol("{")
        font = self._parse_font()
        body, whens = self._parse_block_contents(allow_when=True)
        self._expect_symbol("}")
        return Component(
            name,
            tuple(params),
            tuple(body),
            default_style,
            tuple(whens),
            font,
            line=keyword.line,
        )

    def _parse_param(self) -> ComponentParam:
        name = self._expect_ident().value
        param_type = None
        optional = False
        enum_values = None
        default = None

        if self._match_symbol(":"):
            if self._match_symbol("("):
                values = [self._expect_string()]
                while self._match_symbol("|"):
                    values.append(self._expect_string())
                self._expect_symbol(")")
                enum_values = tuple(values)
                param_type = "String"
            else:
                type_token = self._expect_ident()
                param_type = PARAM_TYPES.get(type_token.value.lower())
                if param_type is None:
                    raise self._error(f"Unknown parameter type '{type_token.value}'", type_token)
                optional = self._match_symbol("?")

        if self._match_symbol("="):
            default = self._parse_expr()

        return ComponentParam(name, param_type, default, optional, enum_values)

    def _parse_font(self) -> Optional[str]:
        if self._peek().is_ident("font") and self._at_symbol(":", 1):
            self._advance()
            self._advance()
            return self._expect_string()
        return None

    def _parse_block_contents(self, allow_when: bool = False):
        nodes: List[ViewNode] = []
        whens: List[When] = []
        while not self._at_symbol("}"):
            if self._at_end():
                raise self._error("Unexpected end of input, expected '}'", self._peek())
            self._skip_separators()
            if self._at_symbol("}"):
                break
            if self._peek().is_ident("when"):
                if not allow_when:
                    raise self._error("'when' is only allowed at the top of a body", self._peek())
                whens.append(self._parse_when())
            else:
                nodes.append(self._parse_view_node())
        return nodes, whens

    def _parse_block(self) -> Tuple[ViewNode, ...]:
        self._expect_symbol("{")
        nodes, _ = self._parse_block_contents()
        self._expect_symbol("}")
        return tuple(nodes)

    def _parse_when(self) -> When:
        keyword = self._expect_ident("when")
        self._expect_ident("user")
        self._expect_symbol(".")
        event_token = self._expect_ident()
        if event_token.value != "click":
            raise self._error(f"Unknown event kind '{event_token.value}'", event_token)
        self._expect_symbol("(")
        target_token = self._peek()
        if target_token.type == TokenType.STRING:
            target = self._advance().value
        else:
            target = self._expect_ident().value
        self._expect_symbol(")")

        self._expect_symbol("{")
        actions: List[ViewNode] = []
        while not self._at_symbol("}"):
            self._skip_separators()
            if self._at_symbol("}"):
                break
            token = self._peek()
            node = self._parse_view_node()
            if not isinstance(node, (ActionNode, NativeCallNode)):
                raise self._error("Only actions are allowed inside 'when' blocks", token)
            actions.append(node)
        self._expect_symbol("}")
        return When(ClickEvent(target), tuple(actions), line=keyword.line)

    # ------------------------------------------------------------------
    # View nodes
    # ------------------------------------------------------------------

    def _parse_view_node(self) -> ViewNode:
        token = self._peek()
        if token.type != TokenType.IDENT:
            raise self._error(f"Expected a view node, found {self._describe(token)}", token)

        name = token.value
        pos = {"line": token.line, "column": token.column}

        if self._at_symbol("!", 1):
            return NativeCallNode(self._parse_call_expr(), **pos)

        handler = {
            "Text": self._parse_text,
            "Button": self._parse_button,
            "Image": self._parse_image,
            "TextInput": self._parse_text_input,
            "VStack": self._parse_stack,
            "HStack": self._parse_stack,
            "Spacing": self._parse_spacing,
            "dynamic_section": self._parse_dynamic_section,
            "if": self._parse_if,
            "foreach": self._parse_foreach,
            "match": self._parse_match_node,
            "set": self._parse_set,
            "toggle": self._parse_toggle,
            "append": self._parse_list_action,
            "insert": self._parse_list_action,
            "remove": self._parse_list_action,
            "clear": self._parse_list_action,
            "navigate_to": self._parse_navigate,
        }.get(name)

        if handler is not None:
            return handler(pos)
        if name == "SpacingAuto":
            self._advance()
            return SpacingAutoNode(**pos)
        if name in STENCIL_SHAPES and self._at_symbol("(", 1):
            return self._parse_stencil(pos)
        if self._at_symbol("(", 1) or self._at_symbol("::", 1):
            return self._parse_component_call(pos)

        raise self._error(f"Unknown view node '{name}'", token)

    def _parse_call_arguments(self) -> CallArguments:
        """Parse ``( expr, name: expr, style: {...} )``."""
        arguments = CallArguments()
        self._expect_symbol("(")
        while not self._at_symbol(")"):
            token = self._peek()
            if (
                token.type == TokenType.IDENT
                and self._at_symbol(":", 1)
            ):
                self._advance()
                self._advance()
                if token.value == "style":
                    arguments.style = self._parse_style_value()
                else:
                    arguments.named.append((token.value, self._parse_expr()))
            else:
                if arguments.named or arguments.style is not None:
                    raise self._error("Positional argument after named argument", token)
                arguments.positional.append(self._parse_expr())
            if not self._match_symbol(","):
                break
        self._expect_symbol(")")
        return arguments

    def _parse_style_value(self) -> StyleSpec:
        token = self._peek()
        value = self._parse_expr()
        if not isinstance(value, ObjectExpr):
            raise self._error("Style must be an object literal", token)
        return StyleSpec.from_pairs(value.entries)

    def _parse_text(self, pos) -> TextNode:
        self._advance()
        token = self._peek()
        arguments = self._parse_call_arguments()
        if not arguments.positional:
            raise self._error("Text requires a format string", token)
        first = arguments.positional[0]
        if isinstance(first, Literal) and isinstance(first.value, str):
            template, args = first.value, arguments.positional[1:]
        else:
            template, args = "{}", arguments.positional
        return TextNode(template, tuple(args), style=arguments.style, **pos)

    def _parse_button(self, pos) -> ButtonNode:
        self._advance()
        token = self._peek()
        arguments = self._parse_call_arguments()
        positional = list(arguments.positional)

        id_expr = arguments.get("id") or (positional.pop(0) if positional else None)
        label_expr = arguments.get("label") or (positional.pop(0) if positional else None)
        if id_expr is None or label_expr is None:
            raise self._error("Button requires 'id' and 'label'", token)

        onclick = arguments.get("onclick")
        if onclick is not None and not isinstance(onclick, Call):
            raise self._error("Button 'onclick' must be a function call", token)

        return ButtonNode(
            self._static_name(id_expr, token),
            label_expr,
            onclick,
            style=arguments.style,
            **pos,
        )

    def _parse_image(self, pos) -> ImageNode:
        self._advance()
        token = self._peek()
        arguments = self._parse_call_arguments()
        path_expr = arguments.get("path") or (
            arguments.positional[0] if arguments.positional else None
        )
        if path_expr is None:
            raise self._error("Image requires a path", token)
        return ImageNode(
            self._static_string(path_expr, token, "path"), style=arguments.style, **pos
        )

    def _parse_text_input(self, pos) -> TextInputNode:
        self._advance()
        token = self._peek()
        arguments = self._parse_call_arguments()
        id_expr = arguments.get("id") or (
            arguments.positional[0] if arguments.positional else None
        )
        if id_expr is None:
            raise self._error("TextInput requires an 'id'", token)

        placeholder = arguments.get("placeholder")
        multiline = arguments.get("multiline")
        max_length = arguments.get("max_length")
        return TextInputNode(
            self._static_name(id_expr, token),
            self._static_string(placeholder, token, "placeholder") if placeholder else None,
            arguments.get("value"),
            bool(self._literal_value(multiline, token)) if multiline else False,
            int(self._literal_value(max_length, token)) if max_length else None,
            style=arguments.style,
            **pos,
        )

    def _parse_stack(self, pos) -> ViewNode:
        keyword = self._advance()
        style = None
        if self._at_symbol("("):
            style = self._parse_call_arguments().style
        body = self._parse_block()
        node_class = VStackNode if keyword.value == "VStack" else HStackNode
        return node_class(body, style=style, **pos)

    def _parse_spacing(self, pos) -> SpacingNode:
        self._advance()
        token = self._peek()
        arguments = self._parse_call_arguments()
        if len(arguments.positional) != 1:
            raise self._error("Spacing requires exactly one size", token)
        value = self._literal_value(arguments.positional[0], token)
        if isinstance(value, bool) or not isinstance(value, (int, float, Dimension)):
            raise self._error("Spacing size must be a number or dimension", token)
        amount = value if isinstance(value, Dimension) else Dimension.px(value)
        return SpacingNode(amount, style=arguments.style, **pos)

    def _parse_dynamic_section(self, pos) -> DynamicSectionNode:
        self._advance()
        name = self._expect_ident().value
        style = None
        if self._at_symbol("("):
            style = self._parse_call_arguments().style
        return DynamicSectionNode(name, self._parse_block(), style=style, **pos)

    def _parse_if(self, pos) -> IfNode:
        self._expect_ident("if")
        condition = self._parse_expr()
        then_body = self._parse_block()
        else_body = None
        if self._peek().is_ident("else"):
            self._advance()
            if self._peek().is_ident("if"):
                token = self._peek()
                nested = self._parse_if({"line": token.line, "column": token.column})
                else_body = (nested,)
            else:
                else_body = self._parse_block()
        return IfNode(condition, then_body, else_body, **pos)

    def _parse_foreach(self, pos) -> ForEachNode:
        self._expect_ident("foreach")
        var = self._expect_ident().value
        self._expect_ident("in")
        iterable = self._parse_expr()
        return ForEachNode(var, iterable, self._parse_block(), **pos)

    def _parse_match_node(self, pos) -> MatchNode:
        self._expect_ident("match")
        subject = self._parse_expr()
        self._expect_symbol("{")
        cases: List[MatchCase] = []
        default = None
        while not self._at_symbol("}"):
            token = self._peek()
            if token.is_ident("case"):
                self._advance()
                pattern = self._parse_expr()
                cases.append(MatchCase(pattern, self._parse_block()))
            elif token.is_ident("default"):
                self._advance()
                default = self._parse_block()
            else:
                raise self._error(
                    f"Expected 'case' or 'default', found {self._describe(token)}", token
                )
        self._expect_symbol("}")
        return MatchNode(subject, tuple(cases), default, **pos)

    def _parse_component_call(self, pos) -> ComponentCallNode:
        name = self._parse_qident()
        arguments = self._parse_call_arguments()
        return ComponentCallNode(
            name,
            tuple(arguments.positional),
            tuple(arguments.named),
            style=arguments.style,
            **pos,
        )

    def _parse_stencil(self, pos) -> StencilNode:
        shape = self._advance().value
        token = self._peek()
        arguments = self._parse_call_arguments()
        if arguments.positional:
            raise self._error(f"Stencil '{shape}' takes named parameters only", token)
        params = tuple(
            (name, self._literal_value(expr, token)) for name, expr in arguments.named
        )
        return StencilNode(shape, params, **pos)

    # Actions

    def _parse_state_path(self) -> Path:
        token = self._peek()
        path = self._parse_path()
        if not path.is_state or len(path.segments) < 2:
            raise self._error(f"Expected a state path, found '{path.dotted}'", token)
        return path

    def _parse_set(self, pos) -> SetAction:
        self._expect_ident("set")
        path = self._parse_state_path()
        self._expect_symbol("=")
        return SetAction(path, self._parse_expr(), **pos)

    def _parse_toggle(self, pos) -> ToggleAction:
        self._expect_ident("toggle")
        parenthesized = self._match_symbol("(")
        path = self._parse_state_path()
        if parenthesized:
            self._expect_symbol(")")
        return ToggleAction(path, **pos)

    def _parse_list_action(self, pos) -> ActionNode:
        keyword = self._advance()
        self._expect_symbol("(")
        path = self._parse_state_path()
        values: List[Expr] = []
        while self._match_symbol(","):
            values.append(self._parse_expr())
        self._expect_symbol(")")

        expected = {"append": 1, "insert": 2, "remove": 1, "clear": 0}[keyword.value]
        if len(values) != expected:
            raise self._error(
                f"'{keyword.value}' expects {expected + 1} argument(s)", keyword
            )
        if keyword.value == "append":
            return ListAppendAction(path, values[0], **pos)
        if keyword.value == "insert":
            return ListInsertAction(path, values[0], values[1], **pos)
        if keyword.value == "remove":
            return ListRemoveAction(path, values[0], **pos)
        return ListClearAction(path, **pos)

    def _parse_navigate(self, pos) -> NavigateAction:
        self._expect_ident("navigate_to")
        self._expect_symbol("(")
        target = self._parse_qident()
        self._expect_symbol(")")
        return NavigateAction(target, **pos)

    # ------------------------------------------------------------------
    # Static argument helpers
    # ------------------------------------------------------------------

    def _literal_value(self, expr: Expr, token: Token) -> Any:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, UnaryOp) and expr.op == "-" and isinstance(expr.operand, Literal):
            return -expr.operand.value
        if isinstance(expr, ArrayExpr):
            return tuple(self._literal_value(item, token) for item in expr.items)
        raise self._error("Expected a literal value", token)

    def _static_string(self, expr: Expr, token: Token, what: str) -> str:
        if isinstance(expr, Literal) and isinstance(expr.value, str):
            return expr.value
        raise self._error(f"Expected a string for '{what}'", token)

    def _static_name(self, expr: Expr, token: Token) -> str:
        if isinstance(expr, Path) and len(expr.segments) == 1:
            return expr.root
        return self._static_string(expr, token, "id")

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def _parse_expr(self) -> Expr:
        left = self._parse_additive()
        while self._peek().type == TokenType.SYMBOL and self._peek().value in COMPARISON_OPS:
            op = self._advance().value
            left = BinaryOp(op, left, self._parse_additive())
        return left

    def _parse_additive(self) -> Expr:
        left = self._parse_term()
        while self._at_symbol("+") or self._at_symbol("-"):
            op = self._advance().value
            left = BinaryOp(op, left, self._parse_term())
        return left

    def _parse_term(self) -> Expr:
        left = self._parse_unary()
        while self._at_symbol("*") or self._at_symbol("/"):
            op = self._advance().value
            left = BinaryOp(op, left, self._parse_unary())
        return left

    def _parse_unary(self) -> Expr:
        if self._match_symbol("-"):
            operand = self._parse_unary()
            if isinstance(operand, Literal) and isinstance(operand.value, (int, float)):
                return Literal(-operand.value)
            if isinstance(operand, Literal) and isinstance(operand.value, Dimension):
                dim = operand.value
                return Literal(Dimension(-dim.value, dim.unit))
            return UnaryOp("-", operand)
        return self._parse_primary()

    def _parse_primary(self) -> Expr:
        token = self._peek()

        if token.type == TokenType.NUMBER:
            self._advance()
            return Literal(float(token.value) if "." in token.value else int(token.value))
        if token.type == TokenType.DIMENSION:
            self._advance()
            return Literal(Dimension(float(token.value), Unit.from_suffix(token.unit)))
        if token.type == TokenType.STRING:
            self._advance()
            return Literal(token.value)
        if token.is_symbol("("):
            self._advance()
            inner = self._parse_expr()
            self._expect_symbol(")")
            return inner
        if token.is_symbol("["):
            return self._parse_array()
        if token.is_symbol("{"):
            return self._parse_object()
        if token.type == TokenType.IDENT:
            if token.value in ("true", "false"):
                self._advance()
                return Literal(token.value == "true")
            if token.value == "match" and not self._at_symbol(".", 1):
                return self._parse_match_expr()
            if self._at_symbol("!", 1) or self._at_symbol("(", 1):
                return self._parse_call_expr()
            return self._parse_path_expr()

        raise self._error(f"Expected an expression, found {self._describe(token)}", token)

    def _parse_call_expr(self) -> Call:
        name = self._expect_ident().value
        self._match_symbol("!")
        self._expect_symbol("(")
        args: List[Expr] = []
        while not self._at_symbol(")"):
            args.append(self._parse_expr())
            if not self._match_symbol(","):
                break
        self._expect_symbol(")")
        return Call(name, tuple(args))

    def _parse_path(self) -> Path:
        segments = [self._expect_ident().value]
        while self._at_symbol("."):
            following = self._peek(1)
            if following.is_ident("len") and self._at_symbol("(", 2):
                break
            if following.type not in (TokenType.IDENT, TokenType.NUMBER):
                break
            self._advance()
            segments.append(self._advance().value)
        return Path(tuple(segments))

    def _parse_path_expr(self) -> Expr:
        expr: Expr = self._parse_path()
        if self._at_symbol(".") and self._peek(1).is_ident("len"):
            self._advance()
            self._advance()
            self._expect_symbol("(")
            self._expect_symbol(")")
            expr = Len(expr)
        return expr

    def _parse_array(self) -> ArrayExpr:
        self._expect_symbol("[")
        items: List[Expr] = []
        while not self._at_symbol("]"):
            items.append(self._parse_expr())
            if not self._match_symbol(","):
                break
        self._expect_symbol("]")
        return ArrayExpr(tuple(items))

    def _parse_object(self) -> ObjectExpr:
        self._expect_symbol("{")
        entries: List[Tuple[str, Expr]] = []
        while not self._at_symbol("}"):
            token = self._peek()
            if token.type == TokenType.STRING:
                key = self._advance().value
            else:
                key = self._expect_ident().value
            self._expect_symbol(":")
            entries.append((key, self._parse_expr()))
            self._match_symbol(",")
        self._expect_symbol("}")
        return ObjectExpr(tuple(entries))

    def _parse_match_expr(self) -> MatchExpr:
        self._expect_ident("match")
        subject = self._parse_expr()
        self._expect_symbol("{")
        arms: List[MatchArm] = []
        default = None
        while not self._at_symbol("}"):
            token = self._peek()
            if token.is_ident("case"):
                self._advance()
                pattern = self._parse_expr()
                self._expect_symbol("=>")
                arms.append(MatchArm(pattern, self._parse_expr()))
            elif token.is_ident("default"):
                self._advance()
                self._expect_symbol("=>")
                default = self._parse_expr()
            else:
                raise self._error(
                    f"Expected 'case' or 'default', found {self._describe(token)}", token
                )
            self._match_symbol(",")
        self._expect_symbol("}")
        return MatchExpr(subject, tuple(arms), default)


def parse_nilo(source: str) -> ParseResult:
    """
    Convenience function to parse Nilo source text.

    Args:
        source: Nilo source text.

    Returns:
        ParseResult (names not yet namespace-qualified).
    """
    parser = Parser()
    return parser.parse(source)
