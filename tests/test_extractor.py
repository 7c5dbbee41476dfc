"""
Tests for route, class and type extraction.
"""

import time

from autodocgen.extractor import (
    GenericExtractor,
    extract_types,
    join_route_path,
    split_arguments,
)

from .conftest import EXPRESS_USERS, NEST_CONTROLLER, NEST_SERVICE, NEST_TYPES


class TestHelpers:
    """Test low-level text helpers."""

    def test_split_arguments_respects_nesting(self):
        """Commas inside brackets, strings and generics do not split."""
        args = split_arguments("'/a,b', fn(x, y), { a: 1, b: 2 }, Map<string, number>")
        assert args == ["'/a,b'", "fn(x, y)", "{ a: 1, b: 2 }", "Map<string, number>"]

    def test_split_arguments_arrow_function(self):
        """Arrow functions stay one argument."""
        args = split_arguments("'/x', (req, res) => res.send('ok')")
        assert args == ["'/x'", "(req, res) => res.send('ok')"]

    def test_split_arguments_comparison_is_not_a_generic(self):
        """A less-than comparison does not swallow the following commas."""
        args = split_arguments("'/a', a<b ? x : y, handler")
        assert args == ["'/a'", "a<b ? x : y", "handler"]

    def test_join_route_path(self):
        """Prefixes and paths join with a single slash."""
        assert join_route_path("users", "") == "/users"
        assert join_route_path("/users/", ":id") == "/users/:id"
        assert join_route_path("", "") == "/"


class TestCallRoutes:
    """Test app.get(...) style route registration."""

    def test_simple_route(self):
        """A path and handler produce one route."""
        routes = GenericExtractor().extract("app.get('/users', handler);", "app.js").routes
        assert len(routes) == 1
        route = routes[0]
        assert route.method == "GET"
        assert route.path == "/users"
        assert route.handler == "handler"
        assert route.framework == "generic"
        assert route.file_path == "app.js"

    def test_settings_lookup_is_not_a_route(self):
        """A single argument call is not a route."""
        assert GenericExtractor().extract("const env = app.get('env');", "app.js").routes == []

    def test_middleware_and_parameters(self):
        """Arguments between path and handler are middleware."""
        routes = GenericExtractor("express").extract(EXPRESS_USERS, "routes/users.js").routes

        assert [r.route_key for r in routes] == ["GET /", "GET /:id", "POST /", "DELETE /:id"]
        assert [r.handler for r in routes] == ["listUsers", "getUser", "createUser", "deleteUser"]
        assert routes[2].middleware == ["authenticate"]
        assert routes[1].parameters[0].name == "id"
        assert routes[1].parameters[0].type == "string"
        assert all(r.framework == "express" for r in routes)

    def test_optional_path_parameter(self):
        """A trailing ? marks a path parameter optional."""
        route = GenericExtractor().extract("router.get('/users/:id/posts/:postId?', show);", "a.js").routes[0]
        assert [(p.name, p.optional) for p in route.parameters] == [("id", False), ("postId", True)]

    def test_bound_and_wrapped_handlers(self):
        """Bound methods and wrapper calls resolve to the inner name."""
        content = (
            "app.get('/a', controller.list.bind(controller));\n"
            "app.post('/b', asyncHandler(createThing));\n"
        )
        routes = GenericExtractor().extract(content, "a.js").routes
        assert [r.handler for r in routes] == ["controller.list", "createThing"]

    def test_inline_handler_takes_enclosing_function_name(self):
        """Inline arrow handlers are named after the enclosing function."""
        content = (
            "function registerRoutes(app) {\n"
            "  app.get('/ping', (req, res) => res.send('pong'));\n"
            "}\n"
        )
        route = GenericExtractor().extract(content, "routes.js").routes[0]
        assert route.handler == "registerRoutes"

    def test_inline_handler_at_top_level_is_anonymous(self):
        """Top-level inline handlers are anonymous."""
        route = GenericExtractor().extract("app.get('/health', (req, res) => res.json({}));", "a.js").routes[0]
        assert route.handler == "anonymous"

    def test_comparison_in_middleware(self):
        """The handler stays the last argument after a comparison."""
        route = GenericExtractor().extract("app.get('/a', a<b ? x : y, handler);", "a.js").routes[0]
        assert route.handler == "handler"
        assert route.middleware == ["a<b ? x : y"]

    def test_many_inline_handlers_stay_fast(self):
        """Naming inline handlers does not rescan the file per route."""
        parts = []
        for i in range(2000):
            parts.append(f"function helper{i}(x) {{\n  return x + {i};\n}}\n")
            parts.append(f"function register{i}(app) {{\n  app.get('/r{i}', (req, res) => res.send('ok'));\n}}\n")
        content = "".join(parts)

        started = time.perf_counter()
        routes = GenericExtractor().extract(content, "routes.js").routes
        elapsed = time.perf_counter() - started

        assert len(routes) == 2000
        assert routes[1234].handler == "register1234"
        assert elapsed < 5.0

    def test_inline_handler_after_expression_arrow(self):
        """An expression-bodied arrow does not claim a later function body."""
        content = (
            "const double = x => x * 2;\n"
            "function mount(app) {\n"
            "  app.get('/twice', (req, res) => res.json(double(2)));\n"
            "}\n"
        )
        route = GenericExtractor().extract(content, "a.js").routes[0]
        assert route.handler == "mount"

    def test_fastify_object_is_fastify(self):
        """Routes on a fastify instance are reported as fastify."""
        route = GenericExtractor().extract("fastify.post('/items', createItem);", "server.js").routes[0]
        assert route.framework == "fastify"

    def test_template_path_kept_as_text(self):
        """A non-literal path is kept as compacted source text."""
        route = GenericExtractor().extract("app.get(`${base}/users`, list);", "a.js").routes[0]
        assert route.path == "`${base}/users`"
        assert route.parameters == []


class TestRouteObjects:
    """Test fastify.route({...}) declarations."""

    def test_method_array_and_hooks(self):
        """Each method in the array yields a route."""
        content = (
            "fastify.route({\n"
            "  method: ['GET', 'HEAD'],\n"
            "  url: '/items/:id',\n"
            "  preHandler: [auth],\n"
            "  handler: getItem\n"
            "})\n"
        )
        routes = GenericExtractor().extract(content, "server.js").routes
        assert [r.route_key for r in routes] == ["GET /items/:id", "HEAD /items/:id"]
        assert all(r.handler == "getItem" for r in routes)
        assert all(r.middleware == ["auth"] for r in routes)
        assert all(r.framework == "fastify" for r in routes)
        assert routes[0].parameters[0].name == "id"


class TestDecoratorRoutes:
    """Test NestJS style decorator routes."""

    def test_controller_prefix_and_parameters(self):
        """Decorator routes join the controller prefix."""
        routes = GenericExtractor("nestjs").extract(NEST_CONTROLLER, "users.controller.ts").routes

        assert [r.route_key for r in routes] == ["GET /users", "GET /users/:id", "POST /users"]
        assert [r.handler for r in routes] == ["findAll", "findOne", "create"]
        assert all(r.framework == "nestjs" for r in routes)

        param = routes[1].parameters[0]
        assert param.name == "id"
        assert param.type == "string"
        assert param.decorator == "Param"

        body = routes[2].parameters[0]
        assert body.type == "CreateUserDto"
        assert body.decorator == "Body"
        assert routes[2].middleware == ["AuthGuard"]

    def test_controller_without_prefix(self):
        """Without a prefix the route path stands alone."""
        content = (
            "@Controller()\n"
            "export class AppController {\n"
            "  @Get('hello')\n"
            "  getHello(): string {\n"
            "    return 'hi';\n"
            "  }\n"
            "}\n"
        )
        extraction = GenericExtractor().extract(content, "app.controller.ts")
        assert [r.route_key for r in extraction.routes] == ["GET /hello"]
        assert extraction.controllers[0].routes == ["GET /hello"]


class TestClasses:
    """Test controller and service recognition."""

    def test_controller_owns_its_routes(self):
        """Route keys inside the class body belong to the controller."""
        extraction = GenericExtractor("nestjs").extract(NEST_CONTROLLER, "users.controller.ts")

        assert len(extraction.controllers) == 1
        controller = extraction.controllers[0]
        assert controller.name == "UsersController"
        assert controller.framework == "nestjs"
        assert controller.routes == ["GET /users", "GET /users/:id", "POST /users"]
        assert extraction.services == []

    def test_service_methods_and_dependencies(self):
        """Service methods and constructor dependencies are extracted."""
        extraction = GenericExtractor("nestjs").extract(NEST_SERVICE, "users.service.ts")

        assert len(extraction.services) == 1
        service = extraction.services[0]
        assert service.name == "UsersService"
        assert service.dependencies == ["UsersRepository"]
        assert [m.name for m in service.methods] == ["findAll", "findOne", "create"]

        find_one = service.methods[1]
        assert find_one.is_async
        assert find_one.return_type == "Promise<User | undefined>"
        assert find_one.parameters[0].name == "id"
        assert service.methods[0].return_type == "User[]"

    def test_injectable_repository_is_a_service(self):
        """Injectable repositories count as services."""
        content = "@Injectable()\nexport class OrdersRepository {\n  findAll() {\n    return [];\n  }\n}\n"
        services = GenericExtractor().extract(content, "orders.repository.ts").services
        assert [s.name for s in services] == ["OrdersRepository"]

    def test_multiline_controller_decorator(self):
        """A @Controller({...}) spanning several lines marks a controller."""
        content = (
            "@Controller({\n"
            "  path: 'cats',\n"
            "})\n"
            "export class Cats {\n"
            "  @Get(':id')\n"
            "  findOne(@Param('id') id: string) {\n"
            "    return id;\n"
            "  }\n"
            "}\n"
        )
        extraction = GenericExtractor().extract(content, "cats.ts")

        assert [(c.name, c.routes) for c in extraction.controllers] == [("Cats", ["GET /cats/:id"])]
        assert extraction.controllers[0].framework == "nestjs"
        assert extraction.types == []

    def test_multiline_injectable_decorator(self):
        """A multi-line @Injectable({...}) still marks a repository as a service."""
        content = (
            "@Injectable({\n"
            "  scope: Scope.REQUEST,\n"
            "})\n"
            "export class CatsRepository {\n"
            "  findAll(): Cat[] {\n"
            "    return [];\n"
            "  }\n"
            "}\n"
        )
        extraction = GenericExtractor().extract(content, "cats.repository.ts")

        assert [s.name for s in extraction.services] == ["CatsRepository"]
        assert [m.name for m in extraction.services[0].methods] == ["findAll"]
        assert extraction.types == []

    def test_multiline_guard_decorator(self):
        """Guards declared over several lines are route middleware."""
        content = (
            "@Controller('cats')\n"
            "export class CatsController {\n"
            "  @UseGuards(\n"
            "    AuthGuard,\n"
            "  )\n"
            "  @Get()\n"
            "  findAll() {\n"
            "    return [];\n"
            "  }\n"
            "}\n"
        )
        route = GenericExtractor().extract(content, "cats.controller.ts").routes[0]
        assert route.middleware == ["AuthGuard"]

    def test_plain_class_is_neither(self):
        """Classes without a role suffix or decorator are skipped."""
        extraction = GenericExtractor().extract("export class Helper {\n  run() {}\n}\n", "helper.ts")
        assert extraction.controllers == []
        assert extraction.services == []


class TestTypes:
    """Test interface, class, enum and alias extraction."""

    def test_declarations(self):
        """Every declaration kind is recognized."""
        types = {t.name: t for t in extract_types(NEST_TYPES, "dto.ts")}

        assert set(types) == {"CreateUserDto", "User", "UserRole", "UserSummary"}
        assert types["CreateUserDto"].kind == "class"
        assert types["User"].kind == "interface"
        assert types["UserRole"].kind == "enum"
        assert types["UserSummary"].kind == "type"

    def test_properties(self):
        """Properties keep type, optionality and decorators."""
        types = {t.name: t for t in extract_types(NEST_TYPES, "dto.ts")}

        dto = {p.name: p for p in types["CreateUserDto"].properties}
        assert set(dto) == {"name", "email", "age"}
        assert dto["name"].type == "string"
        assert dto["name"].decorators == ["IsString"]
        assert dto["age"].optional

        user = types["User"]
        assert [p.name for p in user.properties] == ["id", "name", "email", "age"]
        assert [p.name for p in types["UserRole"].properties] == ["Admin", "Member"]
        assert [p.name for p in types["UserSummary"].properties] == ["id", "name"]

    def test_role_classes_are_not_types(self):
        """Controllers, services and modules are not data types."""
        assert extract_types(NEST_CONTROLLER, "users.controller.ts") == []
        assert extract_types(NEST_SERVICE, "users.service.ts") == []

    def test_nested_object_property(self):
        """Nested object members do not leak into the outer type."""
        content = (
            "interface Order {\n"
            "  id: number;\n"
            "  customer: {\n"
            "    name: string;\n"
            "  };\n"
            "}\n"
        )
        order = extract_types(content, "order.ts")[0]
        assert [p.name for p in order.properties] == ["id", "customer"]
        assert order.properties[1].type == "object"

    def test_braced_generic_constraint(self):
        """Braces inside type parameters are not the declaration body."""
        content = (
            "export interface Page<T extends { id: string }> {\n"
            "  items: T[];\n"
            "  total: number;\n"
            "}\n"
            "export class Paged extends Base<{ id: string }> {\n"
            "  cursor?: string;\n"
            "}\n"
        )
        types = {t.name: t for t in extract_types(content, "page.ts")}

        assert [p.name for p in types["Page"].properties] == ["items", "total"]
        assert [p.name for p in types["Paged"].properties] == ["cursor"]
