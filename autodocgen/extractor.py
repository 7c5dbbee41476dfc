"""Framework-independent extraction of routes, classes and types.

Every file goes through the same ordered rule table. Each rule recognizes one
syntactic shape with regular expressions and bracket counting; there is no
parser behind it. Rules run independently, so two rules matching the same
text both produce a descriptor.
"""

import bisect
import functools
import logging
import re
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel

from .models import (
    ControllerDescriptor,
    FrameworkType,
    MethodDescriptor,
    ParameterDescriptor,
    PropertyDescriptor,
    RouteDescriptor,
    ServiceDescriptor,
    TypeDescriptor,
)

logger = logging.getLogger(__name__)

HTTP_VERBS = ["get", "post", "put", "patch", "delete", "head", "options", "all"]
ANONYMOUS_HANDLER = "anonymous"
MIDDLEWARE_DECORATORS = {"UseGuards", "UseInterceptors", "UsePipes", "UseFilters"}
NON_TYPE_CLASS_SUFFIXES = ("Controller", "Service", "Module")
NON_TYPE_CLASS_DECORATORS = {"Controller", "Injectable", "Module"}
SERVICE_SUFFIXES = ("Service",)
INJECTABLE_SERVICE_SUFFIXES = ("Service", "Repository", "Provider")
MAX_FRAGMENT_LENGTH = 120
TYPE_ARGUMENT_CHARS = "_$ \t\r\n,.|&[](){}:;='\"`"

RESERVED_WORDS = {
    "if", "for", "while", "switch", "catch", "return", "function", "super",
    "new", "await", "typeof", "do", "else", "try", "with", "yield", "throw",
}

CALL_ROUTE_RE = re.compile(
    r"\b(?P<object>app|router|server|api|fastify|[A-Za-z_$][\w$]*(?:Router|router|App))"
    r"\s*\.\s*(?P<method>" + "|".join(HTTP_VERBS) + r")\s*\("
)
ROUTE_OBJECT_RE = re.compile(r"\b(?P<object>[A-Za-z_$][\w$]*)\s*\.\s*route\s*\(\s*\{")
DECORATOR_ROUTE_RE = re.compile(r"@(?P<verb>Get|Post|Put|Patch|Delete|Head|Options|All)\s*\(")
CONTROLLER_DECORATOR_RE = re.compile(r"@Controller\s*\(")
DECORATOR_NAME_RE = re.compile(r"@(?P<name>[A-Za-z_$][\w$.]*)")
DECORATOR_TAIL_RE = re.compile(r"@(?P<name>[A-Za-z_$][\w$.]*)\s*$")
METHOD_HEAD_RE = re.compile(
    r"(?P<modifiers>(?:(?:public|private|protected|static|async|override)\s+)*)"
    r"(?P<name>[A-Za-z_$][\w$]*)\s*(?:<[^>\n]*>\s*)?\("
)
CLASS_MEMBER_RE = re.compile(
    r"^[ \t]*(?P<modifiers>(?:(?:public|private|protected|static|async|override)\s+)*)"
    r"(?P<name>[A-Za-z_$][\w$]*)\s*(?:<[^>\n]*>\s*)?\(",
    re.MULTILINE,
)
CLASS_RE = re.compile(
    r"^[ \t]*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+(?P<name>[A-Za-z_$][\w$]*)",
    re.MULTILINE,
)
TYPE_DECL_RE = re.compile(
    r"^[ \t]*(?:export\s+)?(?:default\s+)?(?:declare\s+)?(?:abstract\s+)?(?:const\s+)?"
    r"(?P<kind>interface|class|enum|type)\s+(?P<name>[A-Za-z_$][\w$]*)",
    re.MULTILINE,
)
FUNCTION_DECL_RE = re.compile(
    r"function\s*\*?\s*(?P<fn>[A-Za-z_$][\w$]*)\s*\("
    r"|(?P<var>[A-Za-z_$][\w$]*)\s*[:=]\s*(?:async\s+)?(?:function\b|\([^()]*\)\s*(?::\s*[^=;{}]+?)?=>|[A-Za-z_$][\w$]*\s*=>)"
    r"|^[ \t]*(?:(?:public|private|protected|static|async)\s+)*(?P<method>[A-Za-z_$][\w$]*)\s*\([^()]*\)\s*(?::\s*[^{;]+)?\{",
    re.MULTILINE,
)
IDENTIFIER_PATH_RE = re.compile(r"^[A-Za-z_$][\w$]*(?:\s*\.\s*[A-Za-z_$][\w$]*)*$")
BOUND_HANDLER_RE = re.compile(r"^(?P<target>[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*)\.bind\s*\(")
WRAPPED_HANDLER_RE = re.compile(
    r"^[A-Za-z_$][\w$.]*\s*\(\s*(?P<inner>[A-Za-z_$][\w$]*(?:\.[A-Za-z_$][\w$]*)*)\s*\)$"
)
NAMED_FUNCTION_RE = re.compile(r"^(?:async\s+)?function\s*\*?\s*(?P<name>[A-Za-z_$][\w$]*)")
PATH_PARAM_RE = re.compile(r":(?P<name>[A-Za-z_$][\w$]*)(?P<optional>\?)?")
PARAM_RE = re.compile(
    r"^(?:(?:public|private|protected|readonly|override)\s+)*(?P<rest>\.\.\.)?"
    r"(?P<name>[A-Za-z_$][\w$]*)(?P<optional>\?)?\s*(?::\s*(?P<type>.+?))?\s*(?:=(?!>)\s*(?P<default>.+))?$",
    re.DOTALL,
)
PROPERTY_RE = re.compile(
    r"^(?:(?:public|private|protected|readonly|static|declare|override)\s+)*"
    r"(?P<name>[A-Za-z_$][\w$]*|'[^']+'|\"[^\"]+\")(?P<optional>\?)?!?\s*:\s*(?P<type>.+?)"
    r"\s*(?:=(?!>)\s*(?P<default>.+?))?\s*[;,]?\s*$"
)
UNTYPED_PROPERTY_RE = re.compile(
    r"^(?:(?:public|private|protected|readonly|static|declare|override)\s+)*"
    r"(?P<name>[A-Za-z_$][\w$]*)(?P<optional>\?)?\s*=(?!>)\s*(?P<default>.+?)\s*;?\s*$"
)
ENUM_MEMBER_RE = re.compile(r"^(?P<name>[A-Za-z_$][\w$]*|'[^']+'|\"[^\"]+\")\s*(?:=\s*(?P<value>.+))?$")
OBJECT_FIELD_RE = r"\b{field}\s*:\s*(?P<value>[^,\n}}]+)"


class FileExtraction(BaseModel):
    """Descriptors recognized in one source file."""

    routes: List[RouteDescriptor] = []
    controllers: List[ControllerDescriptor] = []
    services: List[ServiceDescriptor] = []
    types: List[TypeDescriptor] = []


class PositionedRoute(NamedTuple):
    position: int
    route: RouteDescriptor


RouteRule = Callable[[str, str, str], List[PositionedRoute]]


# Bracket and argument helpers

def skip_string(text: str, start: int) -> int:
    """Index just past the string literal opening at start."""
    quote = text[start]
    i = start + 1
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n" and quote != "`":
            return i + 1
        i += 1
    return n


def find_closing(text: str, open_index: int) -> int:
    """Index of the bracket closing the one at open_index, or -1."""
    depth = 0
    i = open_index
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in "'\"`":
            i = skip_string(text, i)
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def generic_end(text: str, start: int) -> int:
    """Index just past the type arguments opening at start, or -1 for a comparison."""
    depth = 0
    brackets = 0
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "<":
            depth += 1
        elif ch == ">":
            if text[i - 1] == "=":
                continue
            depth -= 1
            if depth == 0:
                return i + 1 if brackets == 0 else -1
        elif ch in "([{":
            brackets += 1
        elif ch in ")]}":
            brackets -= 1
            if brackets < 0:
                return -1
        elif not (ch.isalnum() or ch in TYPE_ARGUMENT_CHARS):
            return -1
    return -1


def split_arguments(text: str) -> List[str]:
    """Split an argument list on top-level commas."""
    parts: List[str] = []
    depth = 0
    start = 0
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in "'\"`":
            i = skip_string(text, i)
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth = max(depth - 1, 0)
        elif ch == "<" and i > 0 and (text[i - 1].isalnum() or text[i - 1] in "_$"):
            end = generic_end(text, i)
            if end != -1:
                i = end
                continue
        elif ch == "," and depth == 0:
            parts.append(text[start:i].strip())
            start = i + 1
        i += 1
    parts.append(text[start:].strip())
    return [part for part in parts if part]


def literal_string(expr: str) -> Optional[str]:
    """Value of a plain string literal, or None when expr is anything else."""
    expr = expr.strip()
    if len(expr) >= 2 and expr[0] == expr[-1] and expr[0] in "'\"`":
        inner = expr[1:-1]
        if expr[0] == "`" and "${" in inner:
            return None
        return inner
    return None


def compact(fragment: str) -> str:
    """Collapse whitespace and bound the length of a source fragment."""
    text = " ".join(fragment.split())
    if len(text) > MAX_FRAGMENT_LENGTH:
        return text[:MAX_FRAGMENT_LENGTH - 3] + "..."
    return text


def join_route_path(prefix: str, path: str) -> str:
    """Join a controller prefix and a route path."""
    parts = [p.strip("/") for p in (prefix, path) if p and p.strip("/")]
    return "/" + "/".join(parts) if parts else "/"


def path_parameters(path: str) -> List[ParameterDescriptor]:
    """Parameters declared as :name segments in a route path."""
    return [
        ParameterDescriptor(name=m.group("name"), type="string", optional=bool(m.group("optional")))
        for m in PATH_PARAM_RE.finditer(path)
    ]


def skip_decorators(text: str, index: int) -> Tuple[int, List[str]]:
    """Skip whitespace and decorators starting at index."""
    decorators: List[str] = []
    n = len(text)
    while True:
        while index < n and text[index].isspace():
            index += 1
        if index >= n or text[index] != "@":
            break
        m = DECORATOR_NAME_RE.match(text, index)
        if not m:
            break
        end = m.end()
        j = end
        while j < n and text[j] in " \t":
            j += 1
        if j < n and text[j] == "(":
            close = find_closing(text, j)
            if close == -1:
                break
            end = close + 1
        decorators.append(text[index:end])
        index = end
    return index, decorators


def find_opening(text: str, close_index: int) -> int:
    """Index of the bracket opening the one at close_index, or -1."""
    depth = 0
    for i in range(close_index, -1, -1):
        ch = text[i]
        if ch in ")]}":
            depth += 1
        elif ch in "([{":
            depth -= 1
            if depth == 0:
                return i
    return -1


def preceding_decorators(text: str, pos: int) -> List[str]:
    """Decorators directly before pos, including ones spanning several lines."""
    found: List[str] = []
    end = pos
    while True:
        i = end - 1
        while i >= 0 and text[i].isspace():
            i -= 1
        if i < 0:
            break

        line_start = text.rfind("\n", 0, i + 1) + 1
        line = text[line_start:i + 1].strip()
        if line.startswith(("//", "/*", "*")):
            end = line_start
            continue

        if text[i] == ")":
            open_index = find_opening(text, i)
            if open_index == -1:
                break
            head_start = text.rfind("\n", 0, open_index) + 1
            head = DECORATOR_TAIL_RE.search(text, head_start, open_index)
            if not head:
                break
            found.append(text[head.start():i + 1])
            end = head.start()
            continue

        bare = DECORATOR_TAIL_RE.search(text, line_start, i + 1)
        if not bare:
            break
        found.append(text[bare.start():i + 1])
        end = bare.start()

    found.reverse()
    return found


def decorator_name(decorator: str) -> str:
    m = DECORATOR_NAME_RE.match(decorator.strip())
    return m.group("name") if m else ""


def decorator_arguments(decorator: str) -> List[str]:
    open_index = decorator.find("(")
    if open_index == -1:
        return []
    close = find_closing(decorator, open_index)
    if close == -1:
        return []
    return split_arguments(decorator[open_index + 1:close])


def middleware_from_decorators(decorators: List[str]) -> List[str]:
    """Guard, interceptor, pipe and filter names from Use* decorators."""
    middleware: List[str] = []
    for decorator in decorators:
        if decorator_name(decorator) in MIDDLEWARE_DECORATORS:
            middleware.extend(compact(arg) for arg in decorator_arguments(decorator))
    return middleware


def parse_parameter(text: str) -> ParameterDescriptor:
    """Parse one TypeScript parameter, including its leading decorator."""
    index, decorators = skip_decorators(text, 0)
    rest = text[index:].strip()
    decorator = decorator_name(decorators[0]) if decorators else None

    m = PARAM_RE.match(rest)
    if not m:
        # Destructured or otherwise unusual parameter: keep the raw text
        name, _, type_text = rest.partition(":")
        return ParameterDescriptor(
            name=compact(name) or "param",
            type=compact(type_text) or "any",
            decorator=decorator,
        )

    type_text = m.group("type")
    return ParameterDescriptor(
        name=m.group("name"),
        type=compact(type_text) if type_text else "any",
        optional=bool(m.group("optional") or m.group("default")),
        decorator=decorator,
    )


def parse_parameters(text: str) -> List[ParameterDescriptor]:
    return [parse_parameter(part) for part in split_arguments(text)]


def brace_pairs(text: str) -> Dict[int, int]:
    """Closing index of every brace in text; unclosed braces close at the end."""
    pairs: Dict[int, int] = {}
    stack: List[int] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch in "'\"`":
            i = skip_string(text, i)
            continue
        if ch == "{":
            stack.append(i)
        elif ch == "}" and stack:
            pairs[stack.pop()] = i
        i += 1
    for open_index in stack:
        pairs[open_index] = n
    return pairs


class FunctionIndex:
    """Named function bodies of one file, nested by brace matching."""

    def __init__(self, text: str):
        pairs = brace_pairs(text)
        brace_opens = sorted(pairs)

        named: Dict[int, str] = {}
        for m in FUNCTION_DECL_RE.finditer(text):
            name = m.group("fn") or m.group("var") or m.group("method")
            if not name or name in RESERVED_WORDS:
                continue
            k = bisect.bisect_left(brace_opens, m.start())
            if k == len(brace_opens):
                continue
            body_open = brace_opens[k]
            # Expression-bodied arrows end before any brace
            if text.find(";", m.end(), body_open) != -1:
                continue
            named[body_open] = name

        self.opens = sorted(named)
        self.closes = [pairs[o] for o in self.opens]
        self.names = [named[o] for o in self.opens]

        self.parents: List[int] = []
        stack: List[int] = []
        for index, open_index in enumerate(self.opens):
            while stack and self.closes[stack[-1]] < open_index:
                stack.pop()
            self.parents.append(stack[-1] if stack else -1)
            stack.append(index)

    def enclosing(self, pos: int) -> Optional[str]:
        """Name of the innermost function whose body contains pos."""
        index = bisect.bisect_left(self.opens, pos) - 1
        while index >= 0:
            if pos < self.closes[index]:
                return self.names[index]
            index = self.parents[index]
        return None


@functools.lru_cache(maxsize=4)
def function_index(text: str) -> FunctionIndex:
    return FunctionIndex(text)


def enclosing_function_name(text: str, pos: int) -> Optional[str]:
    """Name of the nearest function whose body contains pos."""
    return function_index(text).enclosing(pos)


def handler_name(expr: str, text: str, pos: int) -> str:
    """Resolve a route handler expression to a name."""
    expr = expr.strip()
    if IDENTIFIER_PATH_RE.match(expr):
        return re.sub(r"\s+", "", expr)

    for pattern in (BOUND_HANDLER_RE, WRAPPED_HANDLER_RE):
        m = pattern.match(expr)
        if m:
            return m.group(m.lastgroup)

    m = NAMED_FUNCTION_RE.match(expr)
    if m:
        return m.group("name")

    return enclosing_function_name(text, pos) or ANONYMOUS_HANDLER


# Route rules

def call_route_framework(object_name: str, framework: str) -> str:
    if object_name.lower().startswith("fastify"):
        return FrameworkType.FASTIFY.value
    if framework in (FrameworkType.EXPRESS.value, FrameworkType.KOA.value, FrameworkType.FASTIFY.value):
        return framework
    return FrameworkType.GENERIC.value


def extract_call_routes(content: str, file_path: str, framework: str) -> List[PositionedRoute]:
    """Routes registered as app.get('/path', ..., handler) calls."""
    routes: List[PositionedRoute] = []
    for m in CALL_ROUTE_RE.finditer(content):
        open_index = m.end() - 1
        close = find_closing(content, open_index)
        if close == -1:
            continue

        args = split_arguments(content[open_index + 1:close])
        # A single argument is a settings lookup such as app.get('env')
        if len(args) < 2:
            continue

        literal = literal_string(args[0])
        path = literal if literal is not None else compact(args[0])
        params = path_parameters(path) if literal is not None else []

        routes.append(PositionedRoute(m.start(), RouteDescriptor(
            method=m.group("method").upper(),
            path=path,
            handler=handler_name(args[-1], content, m.start()),
            framework=call_route_framework(m.group("object"), framework),
            parameters=params,
            middleware=[compact(arg) for arg in args[1:-1]],
            file_path=file_path,
        )))
    return routes


def _object_field(body: str, field: str) -> Optional[str]:
    m = re.search(OBJECT_FIELD_RE.format(field=field), body)
    return m.group("value").strip() if m else None


def extract_route_objects(content: str, file_path: str, framework: str) -> List[PositionedRoute]:
    """Routes declared as fastify.route({ method, url, handler }) objects."""
    routes: List[PositionedRoute] = []
    for m in ROUTE_OBJECT_RE.finditer(content):
        open_index = m.end() - 1
        close = find_closing(content, open_index)
        if close == -1:
            continue
        body = content[open_index + 1:close]

        method_value = _object_field(body, "method")
        url_value = _object_field(body, "url") or _object_field(body, "path")
        if not method_value or not url_value:
            continue

        if method_value.startswith("["):
            array_close = body.find("]", body.find(method_value))
            array_text = body[body.find(method_value) + 1:array_close] if array_close != -1 else method_value[1:]
            methods = [literal_string(part) or part for part in split_arguments(array_text)]
        else:
            methods = [literal_string(method_value) or method_value]

        literal = literal_string(url_value)
        path = literal if literal is not None else compact(url_value)

        handler_value = _object_field(body, "handler")
        if handler_value:
            handler = handler_name(handler_value, content, m.start())
        else:
            handler = enclosing_function_name(content, m.start()) or ANONYMOUS_HANDLER

        middleware: List[str] = []
        for hook in ("preHandler", "onRequest", "preValidation"):
            hook_value = _object_field(body, hook)
            if hook_value:
                middleware.extend(compact(v) for v in split_arguments(hook_value.strip("[] ")))

        for method in methods:
            routes.append(PositionedRoute(m.start(), RouteDescriptor(
                method=method.strip().upper(),
                path=path,
                handler=handler,
                framework=FrameworkType.FASTIFY.value,
                parameters=path_parameters(path) if literal is not None else [],
                middleware=middleware,
                file_path=file_path,
            )))
    return routes


def controller_prefix(content: str, pos: int) -> str:
    """Path prefix from the nearest @Controller(...) before pos."""
    last = None
    start = content.rfind("@Controller", 0, pos)
    while start != -1:
        last = CONTROLLER_DECORATOR_RE.match(content, start, pos)
        if last:
            break
        start = content.rfind("@Controller", 0, start)
    if last is None:
        return ""

    open_index = last.end() - 1
    close = find_closing(content, open_index)
    if close == -1:
        return ""
    args = split_arguments(content[open_index + 1:close])
    if not args:
        return ""

    literal = literal_string(args[0])
    if literal is not None:
        return literal
    if args[0].startswith("{"):
        path_value = _object_field(args[0], "path")
        if path_value:
            return literal_string(path_value) or ""
    return ""


def extract_decorator_routes(content: str, file_path: str, framework: str) -> List[PositionedRoute]:
    """Routes declared with @Get()/@Post()/... decorators on methods."""
    routes: List[PositionedRoute] = []
    for m in DECORATOR_ROUTE_RE.finditer(content):
        open_index = m.end() - 1
        close = find_closing(content, open_index)
        if close == -1:
            continue

        args = split_arguments(content[open_index + 1:close])
        if args:
            literal = literal_string(args[0])
            route_path = literal if literal is not None else None
        else:
            literal, route_path = "", ""

        index, following = skip_decorators(content, close + 1)
        head = METHOD_HEAD_RE.match(content, index)
        if not head or head.group("name") in RESERVED_WORDS:
            continue

        params_open = head.end() - 1
        params_close = find_closing(content, params_open)
        parameters = parse_parameters(content[params_open + 1:params_close]) if params_close != -1 else []

        if route_path is None:
            path = compact(args[0])
        else:
            path = join_route_path(controller_prefix(content, m.start()), route_path)
        if not parameters and route_path is not None:
            parameters = path_parameters(path)

        decorators = preceding_decorators(content, m.start()) + following
        routes.append(PositionedRoute(m.start(), RouteDescriptor(
            method=m.group("verb").upper(),
            path=path,
            handler=head.group("name"),
            framework=FrameworkType.NESTJS.value,
            parameters=parameters,
            middleware=middleware_from_decorators(decorators),
            file_path=file_path,
        )))
    return routes


ROUTE_RULES: List[Tuple[str, RouteRule]] = [
    ("call", extract_call_routes),
    ("route-object", extract_route_objects),
    ("decorator", extract_decorator_routes),
]


# Classes and types

def brace_depths(text: str) -> List[int]:
    """Brace depth before each character of text."""
    depths = []
    depth = 0
    for ch in text:
        depths.append(depth)
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth = max(depth - 1, 0)
    return depths


def class_body_span(content: str, header_end: int) -> Optional[Tuple[int, int]]:
    """Positions of the braces enclosing a class body."""
    angle = 0
    i = header_end
    n = len(content)
    while i < n:
        ch = content[i]
        if ch == "<":
            angle += 1
        elif ch == ">" and angle > 0 and content[i - 1] != "=":
            angle -= 1
        elif ch == ";" and angle == 0:
            return None
        elif ch == "{":
            close = find_closing(content, i)
            if close == -1:
                return None
            if angle == 0:
                return i, close
            # Object type inside type parameters or a generic base type
            i = close
        i += 1
    return None


def extract_methods(body: str) -> Tuple[List[MethodDescriptor], List[str]]:
    """Methods and constructor dependencies declared in a class body."""
    methods: List[MethodDescriptor] = []
    dependencies: List[str] = []
    depths = brace_depths(body)

    for m in CLASS_MEMBER_RE.finditer(body):
        name = m.group("name")
        if depths[m.start("name")] != 0 or name in RESERVED_WORDS:
            continue

        params_open = m.end() - 1
        params_close = find_closing(body, params_open)
        if params_close == -1:
            continue
        parameters = parse_parameters(body[params_open + 1:params_close])

        if name == "constructor":
            dependencies.extend(p.type for p in parameters if p.type != "any")
            continue

        tail = re.match(r"\s*(?::\s*(?P<ret>[^{;]+?))?\s*\{", body[params_close + 1:])
        if not tail:
            continue

        modifiers = m.group("modifiers").split()
        methods.append(MethodDescriptor(
            name=name,
            parameters=parameters,
            return_type=compact(tail.group("ret")) if tail.group("ret") else "any",
            is_public="private" not in modifiers and "protected" not in modifiers,
            is_async="async" in modifiers,
        ))
    return methods, dependencies


def extract_classes(
    content: str,
    file_path: str,
    framework: str,
    routes: List[PositionedRoute],
) -> Tuple[List[ControllerDescriptor], List[ServiceDescriptor]]:
    """Controllers and services declared as classes."""
    controllers: List[ControllerDescriptor] = []
    services: List[ServiceDescriptor] = []

    for m in CLASS_RE.finditer(content):
        name = m.group("name")
        decorators = [decorator_name(d) for d in preceding_decorators(content, m.start())]
        span = class_body_span(content, m.end())

        is_controller = name.endswith("Controller") or "Controller" in decorators
        is_service = name.endswith(SERVICE_SUFFIXES) or (
            "Injectable" in decorators and name.endswith(INJECTABLE_SERVICE_SUFFIXES)
        )

        if is_controller:
            owned: List[str] = []
            if span:
                owned = [r.route.route_key for r in routes if span[0] < r.position < span[1]]
            controllers.append(ControllerDescriptor(
                name=name,
                file_path=file_path,
                framework=FrameworkType.NESTJS.value if "Controller" in decorators else framework,
                routes=owned,
            ))
        elif is_service:
            methods, dependencies = extract_methods(content[span[0] + 1:span[1]]) if span else ([], [])
            services.append(ServiceDescriptor(
                name=name,
                file_path=file_path,
                framework=framework,
                methods=methods,
                dependencies=dependencies,
            ))
    return controllers, services


def _clean_key(name: str) -> str:
    return name.strip("'\"")


def extract_properties(body: str, kind: str) -> List[PropertyDescriptor]:
    """Properties on depth-1 lines of a declaration body."""
    properties: List[PropertyDescriptor] = []
    pending: List[str] = []
    depth = 0

    for line in body.splitlines():
        stripped = line.strip()
        if depth == 0 and stripped and not stripped.startswith(("//", "/*", "*")):
            if kind == "enum":
                for part in split_arguments(stripped):
                    member = ENUM_MEMBER_RE.match(part.rstrip(","))
                    if member:
                        value = member.group("value")
                        properties.append(PropertyDescriptor(
                            name=_clean_key(member.group("name")),
                            type=compact(value) if value else "number",
                        ))
            else:
                index, decorators = skip_decorators(stripped, 0)
                pending.extend(decorator_name(d) for d in decorators)
                rest = stripped[index:].strip()
                if rest:
                    prop = _parse_property(rest, pending)
                    if prop:
                        properties.append(prop)
                    pending = []

        depth = max(depth + line.count("{") - line.count("}"), 0)
    return properties


def _parse_property(text: str, decorators: List[str]) -> Optional[PropertyDescriptor]:
    m = PROPERTY_RE.match(text)
    if m:
        type_text = m.group("type")
        if type_text.endswith("{"):
            type_text = "object"
        return PropertyDescriptor(
            name=_clean_key(m.group("name")),
            type=compact(type_text),
            optional=bool(m.group("optional")),
            decorators=list(decorators),
        )

    m = UNTYPED_PROPERTY_RE.match(text)
    if m:
        return PropertyDescriptor(
            name=m.group("name"),
            type="any",
            optional=bool(m.group("optional")),
            decorators=list(decorators),
        )
    return None


def extract_types(content: str, file_path: str) -> List[TypeDescriptor]:
    """Interface, class, enum and type alias declarations."""
    types: List[TypeDescriptor] = []
    for m in TYPE_DECL_RE.finditer(content):
        kind = m.group("kind")
        name = m.group("name")
        if kind == "class":
            if name.endswith(NON_TYPE_CLASS_SUFFIXES):
                continue
            decorators = {decorator_name(d) for d in preceding_decorators(content, m.start())}
            if decorators & NON_TYPE_CLASS_DECORATORS:
                continue

        body: Optional[str] = None
        if kind == "type":
            alias = re.match(r"\s*(?:<[^=]*>)?\s*=\s*", content[m.end():])
            if not alias:
                continue
            value_start = m.end() + alias.end()
            if content.startswith("{", value_start):
                close = find_closing(content, value_start)
                if close != -1:
                    body = content[value_start + 1:close]
        else:
            span = class_body_span(content, m.end())
            if span is None:
                continue
            body = content[span[0] + 1:span[1]]

        types.append(TypeDescriptor(
            name=name,
            kind=kind,
            file_path=file_path,
            properties=extract_properties(body, kind) if body else [],
        ))
    return types


class GenericExtractor:
    """Applies the rule table to one file at a time."""

    def __init__(self, framework: str = FrameworkType.GENERIC.value, rules: Optional[List[Tuple[str, RouteRule]]] = None):
        self.framework = framework
        self.rules = rules if rules is not None else ROUTE_RULES

    def extract_routes(self, content: str, file_path: str) -> List[PositionedRoute]:
        """Routes from every rule, in source order."""
        found: List[PositionedRoute] = []
        for rule_name, rule in self.rules:
            matches = rule(content, file_path, self.framework)
            if matches:
                logger.debug(f"Rule '{rule_name}' matched {len(matches)} route(s) in {file_path}")
            found.extend(matches)
        return sorted(found, key=lambda r: r.position)

    def extract(self, content: str, file_path: str) -> FileExtraction:
        """Everything recognizable in one file."""
        routes = self.extract_routes(content, file_path)
        controllers, services = extract_classes(content, file_path, self.framework, routes)
        return FileExtraction(
            routes=[r.route for r in routes],
            controllers=controllers,
            services=services,
            types=extract_types(content, file_path),
        )
