"""Python front-end built on the standard ``ast`` module.

Every class is a structural unit. Members are class-level annotated
attributes and ``self.x`` assignments; methods are the functions defined in
the class body. Method bodies are walked once to collect load contributions:

    if / elif / ternary / match   -> branch (nested-branch inside branch/loop)
    for / while / async for       -> loop
    try                           -> try, one catch per except clause
    lambda                        -> lambda
    comprehension clauses,
    map/filter/sorted/... calls,
    .map()/.filter()/... chains   -> stream-stage, grouped per pipeline

An ``elif`` is a sibling of its ``if``, not nested inside it.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from ..exceptions import ErrorCode, ParseError
from ..model import ContributionCategory, LoadContribution, Member, Method, Role, StructuralUnit
from ..roles import RoleMarkerMap
from .base import FrontendAdapter

FunctionNode = Union[ast.FunctionDef, ast.AsyncFunctionDef]

# Builtins, typing constructs, and standard-library value types. A member
# typed with one of these is primitive/standard, never a collaborator.
STANDARD_TYPES = frozenset(
    {
        # builtins
        "int", "float", "complex", "str", "bytes", "bytearray", "bool", "object",
        "list", "dict", "set", "frozenset", "tuple", "type", "None", "NoneType",
        "range", "slice", "memoryview", "Exception",
        # typing
        "Any", "Optional", "Union", "List", "Dict", "Set", "FrozenSet", "Tuple",
        "Type", "Callable", "Iterable", "Iterator", "Sequence", "Mapping",
        "MutableMapping", "MutableSequence", "MutableSet", "Collection",
        "Generator", "AsyncIterator", "AsyncIterable", "AsyncGenerator",
        "Awaitable", "Coroutine", "Literal", "Final", "ClassVar", "Annotated",
        "Self", "TypeVar", "Protocol", "NamedTuple", "TypedDict", "Hashable",
        # standard library value types
        "datetime", "date", "time", "timedelta", "timezone", "Decimal",
        "Fraction", "Path", "PurePath", "UUID", "Enum", "IntEnum", "StrEnum",
        "Flag", "Logger", "Lock", "RLock", "Event", "Condition", "Semaphore",
        "Thread", "Queue", "deque", "defaultdict", "OrderedDict", "Counter",
        "ChainMap", "Pattern", "Match", "partial", "IO", "TextIO", "BinaryIO",
    }
)

# Wrappers whose arguments carry the interesting type
_WRAPPERS = frozenset(
    {"Optional", "Union", "List", "list", "Set", "set", "FrozenSet", "frozenset",
     "Sequence", "Iterable", "Iterator", "Collection", "Tuple", "tuple", "Dict",
     "dict", "Mapping", "MutableMapping", "Annotated", "ClassVar", "Final", "Type",
     "type", "Awaitable"}
)

STREAM_FUNCTIONS = frozenset(
    {"map", "filter", "reduce", "sorted", "starmap", "accumulate", "takewhile",
     "dropwhile", "filterfalse", "groupby"}
)
STREAM_METHODS = frozenset(
    {"map", "filter", "reduce", "flat_map", "flatmap", "sort_by", "group_by",
     "where", "select", "apply", "agg", "aggregate", "transform", "pipe",
     "order_by", "exclude", "annotate"}
)

PYTHON_MARKERS = {
    # web frameworks
    "APIView": Role.CONTROLLER,
    "GenericAPIView": Role.CONTROLLER,
    "ViewSet": Role.CONTROLLER,
    "ModelViewSet": Role.CONTROLLER,
    "MethodView": Role.CONTROLLER,
    "HTTPEndpoint": Role.CONTROLLER,
    "Resource": Role.CONTROLLER,
    "controller": Role.CONTROLLER,
    # persistence
    "Repository": Role.REPOSITORY,
    "AbstractRepository": Role.REPOSITORY,
    "repository": Role.REPOSITORY,
    "models.Model": Role.ENTITY,
    "Entity": Role.ENTITY,
    "AggregateRoot": Role.ENTITY,
    "entity": Role.ENTITY,
    # value objects
    "ValueObject": Role.VALUE_OBJECT,
    "dataclass(frozen)": Role.VALUE_OBJECT,
    "value_object": Role.VALUE_OBJECT,
    # services
    "DomainService": Role.DOMAIN_SERVICE,
    "domain_service": Role.DOMAIN_SERVICE,
    "ApplicationService": Role.APPLICATION_SERVICE,
    "UseCase": Role.APPLICATION_SERVICE,
    "application_service": Role.APPLICATION_SERVICE,
    "use_case": Role.APPLICATION_SERVICE,
}


def module_name(rel_path: str) -> str:
    """Dotted module path for a file path relative to the scan root."""
    parts = rel_path.replace("\\", "/").split("/")
    if parts and parts[0] == "src" and len(parts) > 1:
        parts = parts[1:]
    if parts[-1].endswith(".py"):
        parts[-1] = parts[-1][:-3]
    if parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(p for p in parts if p)


def dotted_name(node: ast.AST) -> Optional[str]:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        base = dotted_name(node.value)
        return f"{base}.{node.attr}" if base else None
    return None


def type_names(annotation: Optional[ast.AST]) -> Iterator[str]:
    """Candidate type names mentioned by an annotation, outermost first."""
    if annotation is None:
        return
    if isinstance(annotation, ast.Constant) and isinstance(annotation.value, str):
        try:
            parsed = ast.parse(annotation.value, mode="eval")
        except SyntaxError:
            return
        yield from type_names(parsed.body)
    elif isinstance(annotation, (ast.Name, ast.Attribute)):
        name = dotted_name(annotation)
        if name:
            yield name
    elif isinstance(annotation, ast.Subscript):
        yield from type_names(annotation.value)
        yield from type_names(annotation.slice)
    elif isinstance(annotation, ast.Tuple):
        for elt in annotation.elts:
            yield from type_names(elt)
    elif isinstance(annotation, ast.BinOp) and isinstance(annotation.op, ast.BitOr):
        yield from type_names(annotation.left)
        yield from type_names(annotation.right)


def is_custom_type(name: str) -> bool:
    """Class-like (capitalized) and neither builtin, typing nor standard library."""
    simple = name.rsplit(".", 1)[-1]
    if simple in STANDARD_TYPES or simple in _WRAPPERS:
        return False
    return simple[:1].isupper()


def custom_type(annotation: Optional[ast.AST]) -> Optional[str]:
    """The first custom type named by an annotation."""
    for name in type_names(annotation):
        if is_custom_type(name):
            return name
    return None


def _describe(node: Optional[ast.AST]) -> str:
    return ast.unparse(node) if node is not None else ""


def class_markers(node: ast.ClassDef) -> tuple[str, ...]:
    """Decorator and base-class names, dotted and by last segment."""
    markers: list[str] = []

    def add(name: Optional[str]) -> None:
        if not name:
            return
        for candidate in (name, name.rsplit(".", 1)[-1]):
            if candidate not in markers:
                markers.append(candidate)

    for decorator in node.decorator_list:
        target = decorator.func if isinstance(decorator, ast.Call) else decorator
        name = dotted_name(target)
        add(name)
        if isinstance(decorator, ast.Call) and name:
            for kw in decorator.keywords:
                if kw.arg and isinstance(kw.value, ast.Constant) and kw.value.value is True:
                    add(f"{name}({kw.arg})")
    for base in node.bases:
        target = base.value if isinstance(base, ast.Subscript) else base
        add(dotted_name(target))
    return tuple(markers)


def _self_name(func: FunctionNode) -> Optional[str]:
    decorators = {dotted_name(d) for d in func.decorator_list}
    if "staticmethod" in decorators:
        return None
    positional = func.args.posonlyargs + func.args.args
    return positional[0].arg if positional else None


def _method_functions(node: ast.ClassDef) -> list[FunctionNode]:
    return [n for n in node.body if isinstance(n, (ast.FunctionDef, ast.AsyncFunctionDef))]


@dataclass
class _MemberDraft:
    id: str
    annotation: Optional[ast.AST] = None
    constructed: Optional[str] = None  # class named in `self.x = Foo(...)`

    def to_member(self) -> Member:
        type_name = custom_type(self.annotation) if self.annotation is not None else None
        descriptor = _describe(self.annotation)
        if type_name is None and self.constructed and is_custom_type(self.constructed):
            type_name = self.constructed
            descriptor = descriptor or self.constructed
        return Member(
            id=self.id,
            type_descriptor=descriptor,
            is_collaborator=type_name is not None,
            type_name=type_name,
        )


class _MemberCollector:
    """Finds a class's members in declaration order."""

    def __init__(self) -> None:
        self.drafts: dict[str, _MemberDraft] = {}

    def _draft(self, name: str) -> _MemberDraft:
        if name not in self.drafts:
            self.drafts[name] = _MemberDraft(id=name)
        return self.drafts[name]

    def _infer(self, draft: _MemberDraft, value: Optional[ast.AST], params: dict) -> None:
        if draft.annotation is not None or draft.constructed is not None or value is None:
            return
        if isinstance(value, ast.Call):
            name = dotted_name(value.func)
            if name and name.rsplit(".", 1)[-1][:1].isupper():
                draft.constructed = name
        elif isinstance(value, ast.Name) and value.id in params:
            draft.annotation = params[value.id]
        elif isinstance(value, ast.BoolOp):
            # self.x = x or Default()
            for operand in value.values:
                self._infer(draft, operand, params)

    def collect_class_body(self, node: ast.ClassDef) -> None:
        for stmt in node.body:
            if isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
                draft = self._draft(stmt.target.id)
                if draft.annotation is None:
                    draft.annotation = stmt.annotation
            elif isinstance(stmt, ast.Assign):
                for target in stmt.targets:
                    if isinstance(target, ast.Name):
                        self._infer(self._draft(target.id), stmt.value, {})

    def collect_method(self, func: FunctionNode) -> None:
        self_name = _self_name(func)
        if self_name is None:
            return
        params = {
            a.arg: a.annotation
            for a in func.args.posonlyargs + func.args.args + func.args.kwonlyargs
            if a.annotation is not None
        }
        for node in _walk_own_body(func):
            if isinstance(node, ast.AnnAssign) and _is_self_attr(node.target, self_name):
                draft = self._draft(node.target.attr)
                if draft.annotation is None:
                    draft.annotation = node.annotation
            elif isinstance(node, ast.Assign):
                for target in node.targets:
                    for elt in _flatten_targets(target):
                        if _is_self_attr(elt, self_name):
                            self._infer(self._draft(elt.attr), node.value, params)


def _is_self_attr(node: ast.AST, self_name: str) -> bool:
    return (
        isinstance(node, ast.Attribute)
        and isinstance(node.value, ast.Name)
        and node.value.id == self_name
    )


def _flatten_targets(target: ast.AST) -> Iterator[ast.AST]:
    if isinstance(target, (ast.Tuple, ast.List)):
        for elt in target.elts:
            yield from _flatten_targets(elt)
    else:
        yield target


def _walk_own_body(func: FunctionNode) -> Iterator[ast.AST]:
    """ast.walk over a function body, not descending into nested classes."""
    stack: list[ast.AST] = list(reversed(func.body))
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, ast.ClassDef):
            continue
        stack.extend(reversed(list(ast.iter_child_nodes(node))))


@dataclass
class _BodyScan:
    contributions: list[LoadContribution] = field(default_factory=list)
    refs: dict[str, int] = field(default_factory=dict)  # attribute -> first line
    calls: set[str] = field(default_factory=set)  # raw class names
    member_calls: set[str] = field(default_factory=set)  # members whose methods are called


class _MethodVisitor(ast.NodeVisitor):
    """Collects load contributions and self references of one method body."""

    def __init__(self, self_name: Optional[str]) -> None:
        self.self_name = self_name
        self.scan = _BodyScan()
        self._depth = 0
        self._chains: list[int] = []
        self._next_chain = 0

    # -- helpers -----------------------------------------------------------

    def _add(self, category: ContributionCategory, node: ast.AST, **kwargs) -> None:
        self.scan.contributions.append(
            LoadContribution(category=category, line=getattr(node, "lineno", None), **kwargs)
        )

    def _branch(self, node: ast.AST) -> None:
        if self._depth > 0:
            self._add(ContributionCategory.NESTED_BRANCH, node)
        else:
            self._add(ContributionCategory.BRANCH, node)

    def _visit_nested(self, nodes) -> None:
        self._depth += 1
        try:
            for child in nodes:
                self.visit(child)
        finally:
            self._depth -= 1

    def _stage(self, node: ast.AST) -> None:
        self._add(ContributionCategory.STREAM_STAGE, node, chain_id=self._chains[-1])

    def _enter_chain(self) -> None:
        if self._chains:
            self._chains.append(self._chains[-1])
        else:
            self._chains.append(self._next_chain)
            self._next_chain += 1

    # -- branches ----------------------------------------------------------

    def visit_If(self, node: ast.If) -> None:
        self._branch(node)
        self.visit(node.test)
        self._visit_nested(node.body)
        if len(node.orelse) == 1 and isinstance(node.orelse[0], ast.If):
            self.visit_If(node.orelse[0])  # elif: sibling at the same depth
        else:
            self._visit_nested(node.orelse)

    def visit_IfExp(self, node: ast.IfExp) -> None:
        self._branch(node)
        self.visit(node.test)
        self._visit_nested([node.body, node.orelse])

    def visit_Match(self, node: ast.AST) -> None:
        self._branch(node)
        self.visit(node.subject)
        for case in node.cases:
            if case.guard is not None:
                self.visit(case.guard)
            self._visit_nested(case.body)

    # -- loops -------------------------------------------------------------

    def _loop(self, node: ast.AST, header: list[ast.AST], body: list[ast.AST]) -> None:
        self._add(ContributionCategory.LOOP, node, nested=self._depth > 0)
        for child in header:
            self.visit(child)
        self._visit_nested(body)

    def visit_For(self, node: ast.For) -> None:
        self._loop(node, [node.target, node.iter], node.body + node.orelse)

    def visit_AsyncFor(self, node: ast.AsyncFor) -> None:
        self._loop(node, [node.target, node.iter], node.body + node.orelse)

    def visit_While(self, node: ast.While) -> None:
        self._loop(node, [node.test], node.body + node.orelse)

    # -- exceptions --------------------------------------------------------

    def visit_Try(self, node: ast.AST) -> None:
        self._add(ContributionCategory.TRY, node, nested=self._depth > 0)
        for stmt in node.body:
            self.visit(stmt)
        for handler in node.handlers:
            self._add(ContributionCategory.CATCH, handler, nested=self._depth > 0)
            if handler.type is not None:
                self.visit(handler.type)
            for stmt in handler.body:
                self.visit(stmt)
        for stmt in node.orelse + node.finalbody:
            self.visit(stmt)

    visit_TryStar = visit_Try

    # -- functional constructs ----------------------------------------------

    def visit_Lambda(self, node: ast.Lambda) -> None:
        self._add(ContributionCategory.LAMBDA, node)
        self.visit(node.body)

    def _comprehension(self, node: ast.AST, results: list[ast.AST]) -> None:
        self._enter_chain()
        try:
            for generator in node.generators:
                self._stage(generator.iter)
                self.visit(generator.target)
                self.visit(generator.iter)
                for condition in generator.ifs:
                    self._stage(condition)
                    self.visit(condition)
            for result in results:
                self.visit(result)
        finally:
            self._chains.pop()

    def visit_ListComp(self, node: ast.ListComp) -> None:
        self._comprehension(node, [node.elt])

    def visit_SetComp(self, node: ast.SetComp) -> None:
        self._comprehension(node, [node.elt])

    def visit_GeneratorExp(self, node: ast.GeneratorExp) -> None:
        self._comprehension(node, [node.elt])

    def visit_DictComp(self, node: ast.DictComp) -> None:
        self._comprehension(node, [node.key, node.value])

    def visit_Call(self, node: ast.Call) -> None:
        func = node.func
        self._record_call(func)

        is_stream = (isinstance(func, ast.Name) and func.id in STREAM_FUNCTIONS) or (
            isinstance(func, ast.Attribute) and func.attr in STREAM_METHODS
        )
        if not is_stream:
            self.generic_visit(node)
            return

        self._enter_chain()
        try:
            self._stage(node)
            self.generic_visit(node)
        finally:
            self._chains.pop()

    def _record_call(self, func: ast.AST) -> None:
        if isinstance(func, ast.Name):
            if func.id[:1].isupper() and func.id not in STANDARD_TYPES:
                self.scan.calls.add(func.id)
        elif isinstance(func, ast.Attribute):
            owner = func.value
            if self.self_name and _is_self_attr(owner, self.self_name):
                self.scan.member_calls.add(owner.attr)
            else:
                name = dotted_name(owner)
                if name and name.rsplit(".", 1)[-1][:1].isupper():
                    self.scan.calls.add(name)

    # -- references ----------------------------------------------------------

    def visit_Attribute(self, node: ast.Attribute) -> None:
        if self.self_name and _is_self_attr(node, self.self_name):
            self.scan.refs.setdefault(node.attr, node.lineno)
        self.generic_visit(node)

    def visit_ClassDef(self, node: ast.ClassDef) -> None:
        # Local classes are not part of the enclosing method's load
        return


class PythonFrontend(FrontendAdapter):
    """Front-end for Python sources."""

    name = "python"
    suffixes = (".py", ".pyi")

    def parse(self, content: str, rel_path: str) -> List[StructuralUnit]:
        try:
            tree = ast.parse(content, filename=rel_path)
        except SyntaxError as e:
            raise ParseError(rel_path, e.msg or "invalid syntax", ErrorCode.CI101, line=e.lineno)
        except ValueError as e:
            # e.g. source containing null bytes
            raise ParseError(rel_path, str(e), ErrorCode.CI101)

        module = module_name(rel_path)
        units: list[StructuralUnit] = []
        for node in tree.body:
            if isinstance(node, ast.ClassDef):
                self._collect(node, module, node.name, rel_path, units)
        return units

    def default_markers(self) -> RoleMarkerMap:
        return RoleMarkerMap(PYTHON_MARKERS)

    def _collect(
        self,
        node: ast.ClassDef,
        module: str,
        qualname: str,
        rel_path: str,
        out: list[StructuralUnit],
    ) -> None:
        out.append(self._build_unit(node, module, qualname, rel_path))
        for child in node.body:
            if isinstance(child, ast.ClassDef):
                self._collect(child, module, f"{qualname}.{child.name}", rel_path, out)

    def _build_unit(
        self, node: ast.ClassDef, module: str, qualname: str, rel_path: str
    ) -> StructuralUnit:
        unit_id = f"{module}.{qualname}" if module else qualname
        functions = _method_functions(node)

        collector = _MemberCollector()
        collector.collect_class_body(node)
        for func in functions:
            collector.collect_method(func)
        members = tuple(draft.to_member() for draft in collector.drafts.values())
        by_id = {m.id: m for m in members}

        methods: list[Method] = []
        seen: dict[str, int] = {}
        for func in functions:
            methods.append(self._build_method(func, unit_id, by_id, self._method_id(func, seen)))

        return StructuralUnit(
            id=unit_id,
            source=rel_path,
            members=members,
            methods=tuple(methods),
            markers=class_markers(node),
            line=node.lineno,
        )

    @staticmethod
    def _method_id(func: FunctionNode, seen: dict[str, int]) -> str:
        """Unique method id; property setters and overloads share a name."""
        for decorator in func.decorator_list:
            name = dotted_name(decorator)
            if name and name.startswith(f"{func.name}."):
                candidate = name  # e.g. "total.setter"
                break
        else:
            candidate = func.name
        count = seen.get(candidate, 0) + 1
        seen[candidate] = count
        return candidate if count == 1 else f"{candidate}#{count}"

    @staticmethod
    def _build_method(
        func: FunctionNode, unit_id: str, members: dict[str, Member], method_id: str
    ) -> Method:
        visitor = _MethodVisitor(_self_name(func))
        for stmt in func.body:
            visitor.visit(stmt)
        scan = visitor.scan

        referenced = frozenset(name for name in scan.refs if name in members)
        collaborator_refs = [
            LoadContribution(
                category=ContributionCategory.COLLABORATOR_REFERENCE,
                member_id=name,
                line=line,
            )
            for name, line in scan.refs.items()
            if name in members and members[name].is_collaborator
        ]

        called = set(scan.calls)
        for name in scan.member_calls:
            member = members.get(name)
            if member is not None and member.type_name:
                called.add(member.type_name)

        return Method(
            id=method_id,
            unit_id=unit_id,
            referenced_members=referenced,
            contributions=tuple(collaborator_refs + scan.contributions),
            called_units=frozenset(called),
            line=func.lineno,
        )
