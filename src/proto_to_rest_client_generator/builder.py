"""Per-method accumulator of generated statements and imports."""

from __future__ import annotations

import ast
import textwrap
from collections import defaultdict
from typing import Optional

from .descriptors import ServiceDescriptor
from .model_types import CallShape, MethodOutput

RUNTIME_MODULE = "proto_to_rest_client_generator.runtime"


def parse_statements(code: str) -> list[ast.stmt]:
    """Parse a dedented code snippet into statements."""
    return ast.parse(textwrap.dedent(code)).body


def parse_expr(code: str) -> ast.expr:
    return ast.parse(code, mode="eval").body


class MethodBuilder:
    """Collects one client method's body, docstring and required imports.

    A fresh builder is used for every method so nothing leaks between
    methods.
    """

    def __init__(self, name: str, rpc_name: str) -> None:
        self.name = name
        self.rpc_name = rpc_name
        self._docstring: Optional[str] = None
        self._body: list[ast.stmt] = []
        self._imports: dict[str, set[str]] = defaultdict(set)
        self._messages: set[str] = set()

    def set_docstring(self, text: Optional[str]) -> None:
        self._docstring = text.strip() if text else None

    def emit(self, code: str) -> None:
        """Append the statements of a code snippet."""
        self._body.extend(parse_statements(code))

    def emit_nodes(self, nodes: list[ast.stmt]) -> None:
        self._body.extend(nodes)

    def require(self, module: str, *names: str) -> None:
        """Record ``from module import names``; no names means ``import module``."""
        self._imports[module].update(names)

    def runtime(self, *names: str) -> None:
        self.require(RUNTIME_MODULE, *names)

    def message(self, name: str) -> str:
        """Record a reference to a generated message class and return its name."""
        self._messages.add(name)
        return name

    def build(
        self,
        *,
        signature: str,
        shape: CallShape,
        operation_client: Optional[ServiceDescriptor] = None,
    ) -> MethodOutput:
        """Assemble the ``def`` from ``signature`` (without a body) and the collected body."""
        function = ast.parse(f"def {self.name}{signature}:\n    pass").body[0]
        if not isinstance(function, ast.FunctionDef):
            raise ValueError(f"Signature of {self.rpc_name} did not parse to a function")
        body: list[ast.stmt] = []
        if self._docstring:
            body.append(ast.Expr(value=ast.Constant(value=self._docstring)))
        body.extend(self._body or [ast.Pass()])
        function.body = body
        return MethodOutput(
            name=self.name,
            rpc_name=self.rpc_name,
            shape=shape,
            function=function,
            imports={module: set(names) for module, names in self._imports.items()},
            message_names=frozenset(self._messages),
            operation_client=operation_client,
        )
