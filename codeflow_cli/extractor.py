"""Single-pass structural fact extraction from a unit's tree-sitter tree.

The walk is an explicit pre-order stack traversal. Every node is visited
once and each concern (imports, exports, declarations, recognized calls)
appends into a shared ``_FactAccumulator``. Syntax errors never abort the
walk: tree-sitter keeps the well-formed regions, and the parser's
diagnostics are returned as ``UnitFacts.errors``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .errors import UnsupportedLanguageError
from .models import (
    BINDING_DEFAULT,
    BINDING_NAMED,
    BINDING_NAMESPACE,
    BINDING_SIDE_EFFECT,
    CALL_DATA_ACCESS,
    CALL_HTTP,
    DECL_CLASS,
    DECL_FUNCTION,
    DECL_METHOD,
    EXPORT_DEFAULT,
    EXPORT_NAMED,
    EXPORT_REEXPORT_ALL,
    Declaration,
    ExportFact,
    ImportFact,
    Parameter,
    Position,
    RecognizedCall,
    SourceUnit,
    UnitFacts,
    UnitMetadata,
)
from .parser import ParsedTree, TreeSitterParser, default_parser, detect_file_kind, node_text

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Call classification vocabulary
# ---------------------------------------------------------------------------
HTTP_FETCH_IDENTIFIERS = {"fetch"}
# HTTP client root identifier -> factory member returning a client instance
HTTP_CLIENTS: Dict[str, str] = {"axios": "create"}
DATA_ACCESS_ROOTS = {"prisma"}

FUNCTION_DECLARATION_TYPES = {"function_declaration", "generator_function_declaration"}
FUNCTION_VALUE_TYPES = {"arrow_function", "function_expression", "function", "generator_function"}
CLASS_DECLARATION_TYPES = {"class_declaration", "abstract_class_declaration"}
NAMED_DECLARATION_TYPES = FUNCTION_DECLARATION_TYPES | CLASS_DECLARATION_TYPES | {
    "interface_declaration",
    "type_alias_declaration",
    "enum_declaration",
}
VARIABLE_STATEMENT_TYPES = {"lexical_declaration", "variable_declaration"}
JSX_TYPES = {"jsx_element", "jsx_self_closing_element", "jsx_fragment"}
ACCESSOR_TOKENS = ("get", "set")


@dataclass
class _FactAccumulator:
    imports: List[ImportFact] = field(default_factory=list)
    exports: List[ExportFact] = field(default_factory=list)
    declarations: List[Declaration] = field(default_factory=list)
    calls: List[RecognizedCall] = field(default_factory=list)
    # identifier -> client library it was created from
    client_aliases: Dict[str, str] = field(default_factory=dict)
    # member calls on identifiers that may turn out to be client aliases
    pending_calls: List[Tuple[str, RecognizedCall]] = field(default_factory=list)
    has_jsx: bool = False
    has_async: bool = False


# ===================================================================
# Public API
# ===================================================================

def extract_unit(unit: SourceUnit, parser: Optional[TreeSitterParser] = None) -> UnitFacts:
    """Parse and extract one unit. Never raises for unparseable input."""
    parser = parser or default_parser()
    try:
        parsed = parser.parse(unit.text, unit.unit_id)
    except UnsupportedLanguageError as exc:
        logger.warning("Skipping extraction for %s: %s", unit.unit_id, exc)
        return UnitFacts(
            unit_id=unit.unit_id,
            metadata=UnitMetadata(
                file_kind=detect_file_kind(unit.unit_id) or "unknown",
                has_parsing_errors=True,
                line_count=unit.text.count("\n") + 1,
                character_count=len(unit.text),
            ),
            errors=[str(exc)],
        )
    return extract_facts(parsed)


def extract_facts(parsed: ParsedTree) -> UnitFacts:
    """Walk *parsed* once and collect its structural facts."""
    acc = _FactAccumulator()
    text = parsed.source.decode("utf-8", errors="replace")
    stack: List[Tuple[Any, bool]] = [(parsed.root, False)]

    while stack:
        node, guarded = stack.pop()
        guarded = guarded or node.type == "try_statement" or _is_catch_call(node)
        _visit(node, guarded, acc)
        for child in reversed(node.children):
            stack.append((child, guarded))

    for alias, call in acc.pending_calls:
        library = acc.client_aliases.get(alias)
        if library is not None:
            call.library = library
            acc.calls.append(call)
    acc.calls.sort(key=lambda c: (c.position.line, c.position.column))

    if parsed.diagnostics:
        logger.debug("%s parsed with %d diagnostics", parsed.unit_id, len(parsed.diagnostics))

    return UnitFacts(
        unit_id=parsed.unit_id,
        metadata=UnitMetadata(
            file_kind=parsed.file_kind,
            has_jsx=acc.has_jsx,
            has_async_code=acc.has_async or any(d.is_async for d in acc.declarations),
            has_parsing_errors=bool(parsed.diagnostics),
            line_count=text.count("\n") + 1,
            character_count=len(text),
        ),
        imports=acc.imports,
        exports=acc.exports,
        declarations=acc.declarations,
        calls=acc.calls,
        errors=list(parsed.diagnostics),
    )


# ===================================================================
# Dispatch
# ===================================================================

def _visit(node: Any, guarded: bool, acc: _FactAccumulator) -> None:
    node_type = node.type
    if node_type == "import_statement":
        _import_statement(node, acc)
    elif node_type == "export_statement":
        _export_statement(node, acc)
    elif node_type == "call_expression":
        _call_expression(node, guarded, acc)
    elif node_type in FUNCTION_DECLARATION_TYPES:
        _function_declaration(node, acc)
    elif node_type == "variable_declarator":
        _variable_declarator(node, acc)
    elif node_type == "assignment_expression":
        _assignment_expression(node, acc)
    elif node_type == "method_definition":
        _method_definition(node, acc)
    elif node_type in CLASS_DECLARATION_TYPES:
        _class_declaration(node, acc)
    elif node_type in JSX_TYPES:
        acc.has_jsx = True
    elif node_type == "await_expression":
        acc.has_async = True
    elif node_type in FUNCTION_VALUE_TYPES and _has_token(node, "async"):
        acc.has_async = True


# ===================================================================
# Imports / exports
# ===================================================================

def _import_statement(node: Any, acc: _FactAccumulator) -> None:
    position = _position(node)
    source = node.child_by_field_name("source")
    require_clause = _child_of_type(node, "import_require_clause")

    # import x = require('m')
    if source is None and require_clause is not None:
        module_ref = _string_value(require_clause.child_by_field_name("source"))
        local = _child_of_type(require_clause, "identifier")
        if module_ref is not None:
            acc.imports.append(ImportFact(
                module_ref=module_ref,
                binding_form=BINDING_DEFAULT,
                binding_names=[node_text(local)] if local is not None else [],
                is_external=_is_external(module_ref),
                is_deferred=False,
                position=position,
            ))
        return

    module_ref = _string_value(source)
    if module_ref is None:
        return
    is_external = _is_external(module_ref)

    def add(form: str, names: List[str]) -> None:
        acc.imports.append(ImportFact(
            module_ref=module_ref,
            binding_form=form,
            binding_names=names,
            is_external=is_external,
            is_deferred=False,
            position=position,
        ))

    clause = _child_of_type(node, "import_clause")
    if clause is None:
        add(BINDING_SIDE_EFFECT, [])
        return

    default = _child_of_type(clause, "identifier")
    if default is not None:
        add(BINDING_DEFAULT, [node_text(default)])

    for child in clause.named_children:
        if child.type == "namespace_import":
            local = _child_of_type(child, "identifier")
            add(BINDING_NAMESPACE, [node_text(local)] if local is not None else [])
        elif child.type == "named_imports":
            names = []
            for spec in child.named_children:
                if spec.type != "import_specifier":
                    continue
                name = spec.child_by_field_name("name")
                if name is not None:
                    names.append(_name_text(name))
            add(BINDING_NAMED, names)


def _dynamic_import(node: Any, acc: _FactAccumulator) -> None:
    module_ref = _first_string_argument(node)
    if module_ref is None:
        return
    acc.imports.append(ImportFact(
        module_ref=module_ref,
        binding_form=BINDING_DEFAULT,
        binding_names=[],
        is_external=_is_external(module_ref),
        is_deferred=True,
        position=_position(node),
    ))


def _export_statement(node: Any, acc: _FactAccumulator) -> None:
    position = _position(node)
    source = node.child_by_field_name("source")
    source_ref = _string_value(source) if source is not None else None
    declaration = node.child_by_field_name("declaration")
    clause = _child_of_type(node, "export_clause")
    namespace_export = _child_of_type(node, "namespace_export")
    is_default = _has_token(node, "default")

    if namespace_export is not None:
        # export * as ns from 'm'
        if source_ref is not None and namespace_export.named_children:
            name = _name_text(namespace_export.named_children[-1])
            acc.exports.append(ExportFact(EXPORT_NAMED, [name], True, position, source_ref))
    elif clause is not None:
        names = []
        for spec in clause.named_children:
            if spec.type != "export_specifier":
                continue
            name = spec.child_by_field_name("name")
            if name is not None:
                names.append(_name_text(name))
        acc.exports.append(ExportFact(EXPORT_NAMED, names, source_ref is not None, position, source_ref))
    elif source_ref is not None and _has_token(node, "*"):
        acc.exports.append(ExportFact(EXPORT_REEXPORT_ALL, [], True, position, source_ref))
    elif declaration is not None:
        names = _declared_names(declaration)
        if names:
            form = EXPORT_DEFAULT if is_default else EXPORT_NAMED
            acc.exports.append(ExportFact(form, names, False, position))
    elif is_default or _has_token(node, "="):
        # export default <expr>  /  export = <expr>
        value = node.child_by_field_name("value") or _first_named(node, skip=("decorator", "comment"))
        acc.exports.append(ExportFact(EXPORT_DEFAULT, [_default_export_name(value)], False, position))


def _declared_names(declaration: Any) -> List[str]:
    if declaration.type in NAMED_DECLARATION_TYPES:
        name = declaration.child_by_field_name("name")
        return [node_text(name) if name is not None else "default"]
    if declaration.type in VARIABLE_STATEMENT_TYPES:
        names = []
        for declarator in declaration.named_children:
            if declarator.type != "variable_declarator":
                continue
            name = declarator.child_by_field_name("name")
            if name is not None and name.type == "identifier":
                names.append(node_text(name))
        return names
    return []


def _default_export_name(value: Optional[Any]) -> str:
    if value is None:
        return "default"
    if value.type == "identifier":
        return node_text(value)
    if value.type in FUNCTION_VALUE_TYPES or value.type == "class":
        name = value.child_by_field_name("name")
        if name is not None:
            return node_text(name)
    return "default"


# ===================================================================
# Declarations
# ===================================================================

def _function_declaration(node: Any, acc: _FactAccumulator) -> None:
    name = node.child_by_field_name("name")
    if name is None:
        return
    acc.declarations.append(_callable(
        node, node_text(name), DECL_FUNCTION,
        is_exported=_is_exported(node),
        position_node=node,
        doc_anchor=node,
    ))


def _variable_declarator(node: Any, acc: _FactAccumulator) -> None:
    name = node.child_by_field_name("name")
    value = node.child_by_field_name("value")
    if name is None or value is None or name.type != "identifier":
        return
    local = node_text(name)

    client = _client_factory(value)
    if client is not None:
        acc.client_aliases[local] = client

    if value.type in FUNCTION_VALUE_TYPES:
        statement = node.parent
        exported = statement is not None and _is_exported(statement)
        acc.declarations.append(_callable(
            value, local, DECL_FUNCTION,
            is_exported=exported,
            position_node=node,
            doc_anchor=statement if statement is not None else node,
        ))


def _assignment_expression(node: Any, acc: _FactAccumulator) -> None:
    left = node.child_by_field_name("left")
    right = node.child_by_field_name("right")
    if left is None or right is None or left.type != "identifier":
        return
    client = _client_factory(right)
    if client is not None:
        acc.client_aliases[node_text(left)] = client


def _method_definition(node: Any, acc: _FactAccumulator) -> None:
    name = node.child_by_field_name("name")
    if name is None or name.type != "property_identifier":
        return
    # constructors and get/set accessors are not methods
    if node_text(name) == "constructor" or any(_has_token(node, t) for t in ACCESSOR_TOKENS):
        return
    in_class = node.parent is not None and node.parent.type == "class_body"
    acc.declarations.append(_callable(
        node, node_text(name), DECL_METHOD if in_class else DECL_FUNCTION,
        is_exported=False,
        position_node=node,
        doc_anchor=node,
    ))


def _class_declaration(node: Any, acc: _FactAccumulator) -> None:
    name = node.child_by_field_name("name")
    if name is None:
        return
    super_class, interfaces = _heritage(node)
    acc.declarations.append(Declaration(
        name=node_text(name),
        kind=DECL_CLASS,
        position=_position(node),
        is_exported=_is_exported(node),
        is_generic=node.child_by_field_name("type_parameters") is not None,
        return_type_text="",
        doc_text=_leading_doc(node),
        super_class=super_class,
        interfaces=interfaces,
    ))


def _callable(
    fn_node: Any,
    name: str,
    kind: str,
    is_exported: bool,
    position_node: Any,
    doc_anchor: Any,
) -> Declaration:
    return Declaration(
        name=name,
        kind=kind,
        position=_position(position_node),
        is_async=_has_token(fn_node, "async"),
        is_exported=is_exported,
        is_generic=fn_node.child_by_field_name("type_parameters") is not None,
        parameters=_parameters(fn_node),
        return_type_text=_annotation_text(fn_node.child_by_field_name("return_type")) or "void",
        doc_text=_leading_doc(doc_anchor),
    )


def _heritage(class_node: Any) -> Tuple[Optional[str], List[str]]:
    heritage = _child_of_type(class_node, "class_heritage")
    if heritage is None:
        return None, []
    extends = _child_of_type(heritage, "extends_clause")
    implements = _child_of_type(heritage, "implements_clause")
    if extends is None and implements is None:
        # JavaScript grammar: class_heritage is `extends <expression>`
        first = _first_named(heritage, skip=("comment",))
        return (node_text(first) if first is not None else None), []

    super_class = None
    if extends is not None:
        value = extends.child_by_field_name("value") or _first_named(extends, skip=("comment",))
        super_class = node_text(value) if value is not None else None
    interfaces = [node_text(t) for t in implements.named_children] if implements is not None else []
    return super_class, interfaces


def _parameters(fn_node: Any) -> List[Parameter]:
    single = fn_node.child_by_field_name("parameter")
    if single is not None:
        # x => ...
        return [Parameter(name=_pattern_name(single))]
    params = fn_node.child_by_field_name("parameters")
    if params is None:
        return []
    return [_parameter(p) for p in params.named_children if p.type != "comment"]


def _parameter(node: Any) -> Parameter:
    if node.type in ("required_parameter", "optional_parameter"):
        value = node.child_by_field_name("value")
        return Parameter(
            name=_pattern_name(node.child_by_field_name("pattern")),
            type_text=_annotation_text(node.child_by_field_name("type")) or "any",
            is_optional=node.type == "optional_parameter" or value is not None,
            default_value_text=node_text(value) if value is not None else None,
        )
    if node.type == "assignment_pattern":
        right = node.child_by_field_name("right")
        return Parameter(
            name=_pattern_name(node.child_by_field_name("left")),
            is_optional=True,
            default_value_text=node_text(right) if right is not None else None,
        )
    return Parameter(name=_pattern_name(node))


def _pattern_name(pattern: Optional[Any]) -> str:
    if pattern is None:
        return "unknown"
    if pattern.type in ("identifier", "this"):
        return node_text(pattern)
    if pattern.type == "rest_pattern":
        inner = _child_of_type(pattern, "identifier")
        if inner is not None:
            return node_text(inner)
    return "unknown"


def _leading_doc(node: Any) -> Optional[str]:
    """Return the ``/** ... */`` comment right before *node* (or its export wrapper)."""
    target = node
    if target.parent is not None and target.parent.type == "export_statement":
        target = target.parent
    prev = target.prev_sibling
    if prev is not None and prev.type == "comment":
        text = node_text(prev)
        if text.startswith("/**"):
            return text
    return None


# ===================================================================
# Recognized calls
# ===================================================================

def _call_expression(node: Any, guarded: bool, acc: _FactAccumulator) -> None:
    func = node.child_by_field_name("function")
    if func is None:
        return
    if func.type == "import":
        _dynamic_import(node, acc)
        return

    if func.type == "identifier":
        name = node_text(func)
        if name in HTTP_FETCH_IDENTIFIERS:
            acc.calls.append(RecognizedCall(
                category=CALL_HTTP,
                library=name,
                position=_position(node),
                has_surrounding_failure_handling=guarded,
                verb=_fetch_method(node),
                target=_first_string_argument(node),
            ))
        return

    if func.type != "member_expression":
        return
    obj = func.child_by_field_name("object")
    prop = func.child_by_field_name("property")
    if obj is None or prop is None:
        return
    member = node_text(prop)

    if obj.type == "identifier":
        root = node_text(obj)
        if HTTP_CLIENTS.get(root) == member:
            # the factory call itself, e.g. axios.create()
            return
        call = RecognizedCall(
            category=CALL_HTTP,
            library=root,
            position=_position(node),
            has_surrounding_failure_handling=guarded,
            verb=member.upper(),
            target=_first_string_argument(node),
        )
        if root in HTTP_CLIENTS:
            acc.calls.append(call)
        else:
            acc.pending_calls.append((root, call))
        return

    # prisma.<model>.<operation>()
    if obj.type == "member_expression":
        root = obj.child_by_field_name("object")
        model = obj.child_by_field_name("property")
        if root is not None and root.type == "identifier" and node_text(root) in DATA_ACCESS_ROOTS:
            acc.calls.append(RecognizedCall(
                category=CALL_DATA_ACCESS,
                library=node_text(root),
                position=_position(node),
                has_surrounding_failure_handling=guarded,
                verb=member,
                target=node_text(model) if model is not None else None,
            ))


def _client_factory(value: Any) -> Optional[str]:
    """Return the client library when *value* is e.g. ``axios.create(...)``."""
    if value.type != "call_expression":
        return None
    func = value.child_by_field_name("function")
    if func is None or func.type != "member_expression":
        return None
    obj = func.child_by_field_name("object")
    prop = func.child_by_field_name("property")
    if obj is None or prop is None or obj.type != "identifier":
        return None
    root = node_text(obj)
    if HTTP_CLIENTS.get(root) == node_text(prop):
        return root
    return None


def _is_catch_call(node: Any) -> bool:
    if node.type != "call_expression":
        return False
    func = node.child_by_field_name("function")
    if func is None or func.type != "member_expression":
        return False
    prop = func.child_by_field_name("property")
    return prop is not None and node_text(prop) == "catch"


def _fetch_method(call: Any) -> str:
    args = _arguments(call)
    if len(args) >= 2 and args[1].type == "object":
        for prop in args[1].named_children:
            if prop.type != "pair":
                continue
            key = prop.child_by_field_name("key")
            value = prop.child_by_field_name("value")
            if key is None or value is None:
                continue
            if _name_text(key) == "method":
                method = _string_value(value)
                if method:
                    return method.upper()
    return "GET"


def _first_string_argument(call: Any) -> Optional[str]:
    args = _arguments(call)
    if not args:
        return None
    return _string_value(args[0])


def _arguments(call: Any) -> List[Any]:
    args = call.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return []
    return [a for a in args.named_children if a.type != "comment"]


# ===================================================================
# Node helpers
# ===================================================================

def _position(node: Any) -> Position:
    start_row, start_col = node.start_point
    end_row, end_col = node.end_point
    return Position(start_row + 1, start_col + 1, end_row + 1, end_col + 1)


def _child_of_type(node: Any, node_type: str) -> Optional[Any]:
    for child in node.children:
        if child.type == node_type:
            return child
    return None


def _first_named(node: Any, skip: Tuple[str, ...] = ()) -> Optional[Any]:
    for child in node.named_children:
        if child.type not in skip:
            return child
    return None


def _has_token(node: Any, token: str) -> bool:
    """True when *node* has an anonymous child token such as ``async``."""
    return any(not child.is_named and child.type == token for child in node.children)


def _is_exported(node: Any) -> bool:
    return node.parent is not None and node.parent.type == "export_statement"


def _is_external(module_ref: str) -> bool:
    return not module_ref.startswith((".", "/"))


def _string_value(node: Optional[Any]) -> Optional[str]:
    if node is None:
        return None
    if node.type == "string":
        return node_text(node)[1:-1]
    if node.type == "template_string" and not any(
        c.type == "template_substitution" for c in node.named_children
    ):
        return node_text(node)[1:-1]
    return None


def _name_text(node: Any) -> str:
    """Identifier text, or the unquoted value of a string module-export name."""
    value = _string_value(node)
    return value if value is not None else node_text(node)


def _annotation_text(node: Optional[Any]) -> Optional[str]:
    if node is None:
        return None
    text = node_text(node).strip()
    if text.startswith(":"):
        text = text[1:].strip()
    return text or None
