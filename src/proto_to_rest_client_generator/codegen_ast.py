"""AST-based Python code generation for messages and client modules."""

from __future__ import annotations

import ast
import textwrap
from collections.abc import Iterable, Mapping
from typing import Optional

from .builder import RUNTIME_MODULE, parse_statements
from .descriptors import ServiceDescriptor
from .model_types import (
    EnumAliasDef,
    FieldDef,
    MessagesModule,
    MethodOutput,
    ModelDef,
    ServiceManifest,
)
from .naming import operation_client_attribute

_TYPING_IMPORT_ORDER: tuple[str, ...] = (
    "Literal",
    "Optional",
)

# Standard library modules first, then third party, then the runtime library.
_IMPORT_GROUP_ORDER: tuple[str, ...] = (
    "threading",
    "collections.abc",
    "typing",
    "httpx",
    RUNTIME_MODULE,
)


def render_messages_module(module: MessagesModule) -> str:
    """Render message models and enum aliases as Python source code using AST.

    Args:
        module (MessagesModule): Models and enum aliases to render.

    Returns:
        str: Generated Python source code for ``messages.py``.
    """
    body: list[ast.stmt] = [
        ast.Expr(value=ast.Constant(value="Generated request, response and resource messages.")),
        _future_import(),
    ]
    body.extend(_build_message_imports(module))

    for alias in module.enum_aliases:
        body.append(_enum_alias_to_ast(alias))
    for model in module.models:
        body.append(_model_to_ast(model))
    for model in module.models:
        body.extend(parse_statements(f"{model.name}.model_rebuild()"))

    return _unparse(body)


def render_client_module(
    *,
    service: ServiceDescriptor,
    manifest: ServiceManifest,
    methods: list[MethodOutput],
    client_names: Mapping[str, tuple[str, str]],
) -> str:
    """Render one service's REST client module.

    Args:
        service (ServiceDescriptor): Service the client is generated for.
        manifest (ServiceManifest): Documentation payload for the module.
        methods (list[MethodOutput]): Synthesized client methods, in order.
        client_names (Mapping[str, tuple[str, str]]): Module and class name of
            every generated client, by service FQN.

    Returns:
        str: Generated Python source code for the client module.
    """
    imports: dict[str, set[str]] = {
        "typing": {"Optional"},
        "httpx": set(),
        RUNTIME_MODULE: {"RestTransport"},
    }
    message_names: set[str] = set()
    operation_clients: dict[str, ServiceDescriptor] = {}
    for method in methods:
        for module_name, names in method.imports.items():
            imports.setdefault(module_name, set()).update(names)
        message_names.update(method.message_names)
        if method.operation_client is not None:
            operation_clients[method.operation_client.full_name] = method.operation_client

    body: list[ast.stmt] = [
        ast.Expr(value=ast.Constant(value=_client_module_docstring(manifest))),
        _future_import(),
    ]
    body.extend(_imports_to_ast(imports))
    if message_names:
        body.append(_import_from(".messages", sorted(message_names)))
    for full_name in sorted(operation_clients):
        module_name, class_name = client_names[full_name]
        body.append(_import_from(f".{module_name}", [class_name]))

    endpoint = _default_endpoint(service.default_host)
    body.extend(parse_statements(f"DEFAULT_ENDPOINT: Optional[str] = {endpoint!r}"))

    paired_clients = {
        operation_client_attribute(operation_clients[full_name].name): client_names[full_name][1]
        for full_name in sorted(operation_clients)
    }
    body.append(
        _client_class_to_ast(
            class_name=manifest.class_name,
            docstring=service.comment,
            methods=methods,
            paired_clients=paired_clients,
        )
    )
    return _unparse(body)


def render_package_init_module(
    *,
    package_name: str,
    manifests: list[ServiceManifest],
) -> str:
    """Render the generated package ``__init__.py`` with an index of clients.

    Args:
        package_name (str): Generated package name.
        manifests (list[ServiceManifest]): One entry per generated client module.

    Returns:
        str: Generated Python source for the package index.
    """
    body: list[ast.stmt] = [
        ast.Expr(value=ast.Constant(value=_package_index_docstring(package_name, manifests))),
    ]
    for manifest in manifests:
        body.append(_import_from(f".{manifest.module_name}", [manifest.class_name]))
    exported = sorted(manifest.class_name for manifest in manifests)
    body.extend(parse_statements(f"__all__ = {exported!r}"))
    return _unparse(body)


def _unparse(body: list[ast.stmt]) -> str:
    module = ast.Module(body=body, type_ignores=[])
    ast.fix_missing_locations(module)
    return ast.unparse(module) + "\n"


def _future_import() -> ast.ImportFrom:
    return ast.ImportFrom(module="__future__", names=[ast.alias(name="annotations")], level=0)


def _import_from(module: str, names: Iterable[str]) -> ast.ImportFrom:
    level = len(module) - len(module.lstrip("."))
    return ast.ImportFrom(
        module=module.lstrip(".") or None,
        names=[ast.alias(name=name) for name in names],
        level=level,
    )


def _imports_to_ast(imports: Mapping[str, set[str]]) -> list[ast.stmt]:
    def order(module: str) -> tuple[int, str]:
        if module in _IMPORT_GROUP_ORDER:
            return _IMPORT_GROUP_ORDER.index(module), module
        return len(_IMPORT_GROUP_ORDER), module

    statements: list[ast.stmt] = []
    for module in sorted(imports, key=order):
        names = imports[module]
        if names:
            statements.append(_import_from(module, sorted(names)))
        else:
            statements.append(ast.Import(names=[ast.alias(name=module)]))
    return statements


def _default_endpoint(default_host: Optional[str]) -> Optional[str]:
    if not default_host:
        return None
    if "://" in default_host:
        return default_host
    return f"https://{default_host}"


def _client_class_to_ast(
    *,
    class_name: str,
    docstring: Optional[str],
    methods: list[MethodOutput],
    paired_clients: Mapping[str, str],
) -> ast.ClassDef:
    class_body: list[ast.stmt] = [
        ast.Expr(value=ast.Constant(value=docstring.strip() if docstring else "REST client."))
    ]
    init_lines = [
        "def __init__(",
        "    self,",
        "    *,",
        "    endpoint: Optional[str] = DEFAULT_ENDPOINT,",
        "    http_client: Optional[httpx.Client] = None,",
        "    timeout: Optional[float] = None,",
        "    transport: Optional[RestTransport] = None,",
        ") -> None:",
        "    if transport is None:",
        "        if endpoint is None:",
        f"            raise ValueError({f'{class_name} needs an endpoint or a transport'!r})",
        "        transport = RestTransport(endpoint, http_client=http_client, timeout=timeout)",
        "    self._transport = transport",
    ]
    for attribute, paired_class in paired_clients.items():
        init_lines.append(f"    self.{attribute} = {paired_class}(transport=transport)")
    class_body.extend(parse_statements("\n".join(init_lines)))
    class_body.extend(
        parse_statements(
            f"""
            def close(self) -> None:
                self._transport.close()

            def __enter__(self) -> {class_name}:
                return self

            def __exit__(self, *exc_info: object) -> None:
                self.close()
            """
        )
    )
    class_body.extend(method.function for method in methods)
    return ast.ClassDef(
        name=class_name,
        bases=[],
        keywords=[],
        body=class_body,
        decorator_list=[],
        type_params=[],
    )


def _enum_alias_to_ast(alias: EnumAliasDef) -> ast.stmt:
    if not alias.values:
        return parse_statements(f"{alias.name} = str")[0]
    values = ", ".join(repr(value) for value in alias.values)
    return parse_statements(f"{alias.name} = Literal[{values}]")[0]


def _model_to_ast(model: ModelDef) -> ast.ClassDef:
    class_body: list[ast.stmt] = []
    if model.docstring:
        class_body.append(ast.Expr(value=ast.Constant(value=model.docstring.strip())))
    for field in model.fields:
        class_body.append(_field_to_ast(field))
    if not class_body:
        class_body.append(ast.Pass())

    return ast.ClassDef(
        name=model.name,
        bases=[ast.Name(id="MessageModel", ctx=ast.Load())],
        keywords=[],
        body=class_body,
        decorator_list=[],
        type_params=[],
    )


def _field_to_ast(field: FieldDef) -> ast.AnnAssign:
    args: list[ast.expr] = []
    keywords: list[ast.keyword] = []
    if field.default_factory is not None:
        factory = ast.Name(id=field.default_factory, ctx=ast.Load())
        keywords.append(ast.keyword(arg="default_factory", value=factory))
    else:
        args.append(_expr(field.default if field.default is not None else "None"))
    if field.alias != field.name:
        keywords.append(ast.keyword(arg="alias", value=ast.Constant(value=field.alias)))
    if field.description:
        keywords.append(
            ast.keyword(arg="description", value=ast.Constant(value=field.description.strip()))
        )

    call = ast.Call(
        func=ast.Name(id="Field", ctx=ast.Load()),
        args=args,
        keywords=keywords,
    )
    return ast.AnnAssign(
        target=ast.Name(id=field.name, ctx=ast.Store()),
        annotation=_expr(field.annotation),
        value=call,
        simple=1,
    )


def _expr(code: str) -> ast.expr:
    parsed = ast.parse(code, mode="eval")
    return parsed.body


def _build_message_imports(module: MessagesModule) -> list[ast.stmt]:
    used_annotation_names = _collect_used_annotation_names(module)
    if module.enum_aliases and any(alias.values for alias in module.enum_aliases):
        used_annotation_names.add("Literal")

    typing_imports = [name for name in _TYPING_IMPORT_ORDER if name in used_annotation_names]
    imports: list[ast.stmt] = []
    if typing_imports:
        imports.append(_import_from("typing", typing_imports))
    if any(model.fields for model in module.models):
        imports.append(_import_from("pydantic", ["Field"]))
    runtime_names = sorted({"MessageModel", *module.runtime_names})
    imports.append(_import_from(RUNTIME_MODULE, runtime_names))
    return imports


def _collect_used_annotation_names(module: MessagesModule) -> set[str]:
    names: set[str] = set()
    for model in module.models:
        for field in model.fields:
            names.update(_extract_loaded_names(field.annotation))
    return names


def _extract_loaded_names(expr_code: str) -> set[str]:
    parsed = ast.parse(expr_code, mode="eval")
    loaded_names: set[str] = set()
    for node in ast.walk(parsed):
        if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load):
            loaded_names.add(node.id)
    return loaded_names


def _client_module_docstring(manifest: ServiceManifest) -> str:
    lines: list[str] = [
        f"Generated REST client for ``{manifest.service_name}``.",
        "",
        f"Client class: {manifest.class_name}",
        "",
        "Method map:",
    ]
    for method in manifest.methods:
        lines.append(f"- {method.name} ({method.rpc_name}, {method.shape.value})")
        if method.verb and method.url:
            lines.append(f"  http: {method.verb} {method.url}")
        if method.summary:
            for summary_line in _wrap_summary(method.summary):
                lines.append(f"  summary: {summary_line}")
    return "\n".join(lines)


def _package_index_docstring(package_name: str, manifests: list[ServiceManifest]) -> str:
    lines: list[str] = [
        f"Generated REST client package ``{package_name}``.",
        "",
        "Request, response and resource models live in ``.messages``.",
        "Each service has one client module.",
        "",
        "Client index:",
    ]
    for manifest in manifests:
        lines.append(f"- module: .{manifest.module_name}")
        lines.append(f"  service: {manifest.service_name}")
        lines.append(f"  class: {manifest.class_name}")
        lines.append("  methods:")
        for method in manifest.methods:
            if method.verb and method.url:
                lines.append(f"  - {method.name}: {method.verb} {method.url}")
            else:
                lines.append(f"  - {method.name}")
    return "\n".join(lines)


def _wrap_summary(text: str) -> list[str]:
    first_line = text.strip().splitlines()[0] if text.strip() else text
    wrapped = textwrap.wrap(first_line, width=84)
    return wrapped if wrapped else [first_line]
