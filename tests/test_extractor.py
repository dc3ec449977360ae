"""Tests for single-pass fact extraction."""

from pathlib import Path

from codeflow_cli.models import (
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
    SourceUnit,
)


class TestImports:

    def test_binding_forms(self, extract, sample_ts_code: str):
        facts = extract(sample_ts_code)

        forms = [(i.module_ref, i.binding_form, i.binding_names) for i in facts.imports]
        assert forms == [
            ("axios", BINDING_DEFAULT, ["axios"]),
            ("./utils", BINDING_NAMED, ["format", "parse"]),
            ("path", BINDING_NAMESPACE, ["path"]),
            ("./polyfills", BINDING_SIDE_EFFECT, []),
        ]
        assert [i.is_external for i in facts.imports] == [True, False, True, False]
        assert facts.dependencies == ["axios", "./utils", "path", "./polyfills"]

    def test_default_and_named_in_one_statement(self, extract):
        facts = extract("import React, { useState } from 'react';\n")

        assert [(i.binding_form, i.binding_names) for i in facts.imports] == [
            (BINDING_DEFAULT, ["React"]),
            (BINDING_NAMED, ["useState"]),
        ]

    def test_dynamic_import_is_deferred(self, extract):
        facts = extract("async function load() {\n  return import('./lazy');\n}\n")

        assert len(facts.imports) == 1
        imp = facts.imports[0]
        assert imp.is_deferred
        assert imp.binding_form == BINDING_DEFAULT
        assert imp.binding_names == []
        assert imp.position.line == 2

    def test_import_position_is_one_based(self, extract):
        facts = extract("import x from './x';\n")

        assert facts.imports[0].position.line == 1
        assert facts.imports[0].position.column == 1


class TestExports:

    def test_export_forms(self, extract):
        source = "\n".join([
            "export * from './all';",
            "export { a, b } from './ab';",
            "const c = 1, d = 2;",
            "export { c, d };",
            "export * as ns from './ns';",
            "export function f() {}",
            "export const g = 1, h = 2;",
            "export default f;",
            "",
        ])
        facts = extract(source)

        summary = [(e.form, e.names, e.is_reexport, e.source_module_ref) for e in facts.exports]
        assert summary == [
            (EXPORT_REEXPORT_ALL, [], True, "./all"),
            (EXPORT_NAMED, ["a", "b"], True, "./ab"),
            (EXPORT_NAMED, ["c", "d"], False, None),
            (EXPORT_NAMED, ["ns"], True, "./ns"),
            (EXPORT_NAMED, ["f"], False, None),
            (EXPORT_NAMED, ["g", "h"], False, None),
            (EXPORT_DEFAULT, ["f"], False, None),
        ]

    def test_export_default_expression(self, extract):
        facts = extract("export default { value: 1 };\n")

        assert [(e.form, e.names) for e in facts.exports] == [(EXPORT_DEFAULT, ["default"])]

    def test_export_default_declaration(self, extract):
        facts = extract("export default class Widget {}\n")

        assert [(e.form, e.names) for e in facts.exports] == [(EXPORT_DEFAULT, ["Widget"])]

    def test_export_assignment(self, extract):
        facts = extract("const server = 1;\nexport = server;\n")

        assert [(e.form, e.names) for e in facts.exports] == [(EXPORT_DEFAULT, ["server"])]


class TestDeclarations:

    def test_kinds_and_order(self, extract, sample_ts_code: str):
        facts = extract(sample_ts_code)

        assert [(d.name, d.kind) for d in facts.declarations] == [
            ("getOrder", DECL_FUNCTION),
            ("saveOrder", DECL_FUNCTION),
            ("OrderRepository", DECL_CLASS),
            ("findAll", DECL_METHOD),
            ("dispose", DECL_METHOD),
        ]
        assert [d.name for d in facts.functions] == ["getOrder", "saveOrder", "findAll", "dispose"]
        assert [d.name for d in facts.classes] == ["OrderRepository"]

    def test_function_signature(self, extract, sample_ts_code: str):
        facts = extract(sample_ts_code)
        get_order = facts.declarations[0]

        assert get_order.is_async
        assert get_order.is_exported
        assert get_order.is_generic
        assert get_order.return_type_text == "Promise<T>"
        assert get_order.doc_text is not None
        assert "Fetch one order." in get_order.doc_text
        assert get_order.position.line == 11

        params = [(p.name, p.type_text, p.is_optional, p.default_value_text) for p in get_order.parameters]
        assert params == [
            ("id", "string", False, None),
            ("verbose", "boolean", True, None),
            ("retries", "number", True, "3"),
        ]

    def test_arrow_function_bound_to_variable(self, extract, sample_ts_code: str):
        facts = extract(sample_ts_code)
        save_order = facts.declarations[1]

        assert save_order.is_async
        assert save_order.is_exported
        assert not save_order.is_generic
        assert save_order.return_type_text == "void"
        assert [p.name for p in save_order.parameters] == ["order"]
        assert save_order.position.line == 20

    def test_class_heritage_and_methods(self, extract, sample_ts_code: str):
        facts = extract(sample_ts_code)
        repo = facts.classes[0]
        find_all = facts.declarations[3]
        dispose = facts.declarations[4]

        assert repo.super_class == "Repository"
        assert repo.interfaces == ["Store", "Disposable"]
        assert not repo.is_exported
        assert find_all.is_async
        assert [(p.name, p.type_text) for p in find_all.parameters] == [("filters", "string[]")]
        assert dispose.return_type_text == "void"
        assert not dispose.is_async

    def test_constructor_and_accessors_skipped(self, extract):
        facts = extract(
            "class A {\n"
            "  constructor(s: string) {}\n"
            "  get v() { return 1; }\n"
            "  set v(x: number) {}\n"
            "  run(): void {}\n"
            "}\n"
        )

        assert [(d.name, d.kind) for d in facts.declarations] == [("A", DECL_CLASS), ("run", DECL_METHOD)]

    def test_object_literal_method_is_function(self, extract):
        facts = extract("const handlers = {\n  onClick() { return 1; }\n};\n")

        assert [(d.name, d.kind) for d in facts.declarations] == [("onClick", DECL_FUNCTION)]

    def test_javascript_parameters(self, extract):
        facts = extract("function greet(name, greeting = 'hi', ...rest) {}\n", "greet.js")

        params = [(p.name, p.type_text, p.is_optional, p.default_value_text) for p in facts.declarations[0].parameters]
        assert params == [
            ("name", "any", False, None),
            ("greeting", "any", True, "'hi'"),
            ("rest", "any", False, None),
        ]

    def test_javascript_class_extends(self, extract):
        facts = extract("class Admin extends User {}\n", "admin.js")

        assert facts.classes[0].super_class == "User"
        assert facts.classes[0].interfaces == []


class TestRecognizedCalls:

    def test_calls_in_source_order(self, extract, sample_ts_code: str):
        facts = extract(sample_ts_code)

        summary = [(c.category, c.library, c.verb, c.target) for c in facts.calls]
        assert summary == [
            (CALL_HTTP, "axios", "GET", "/orders"),
            (CALL_HTTP, "fetch", "POST", "/orders"),
            (CALL_DATA_ACCESS, "prisma", "findMany", "order"),
        ]

    def test_failure_handling(self, extract, sample_ts_code: str):
        facts = extract(sample_ts_code)

        assert [c.has_surrounding_failure_handling for c in facts.calls] == [True, False, False]

    def test_catch_chain_counts_as_failure_handling(self, extract):
        facts = extract("axios.post('/x', {}).then(r => r.data).catch(() => null);\n")

        assert len(facts.calls) == 1
        assert facts.calls[0].verb == "POST"
        assert facts.calls[0].has_surrounding_failure_handling

    def test_fetch_defaults_to_get(self, extract):
        facts = extract("fetch('/health');\n")

        assert facts.calls[0].verb == "GET"
        assert facts.calls[0].target == "/health"

    def test_alias_assigned_after_use(self, extract):
        """An alias counts wherever it is assigned in the unit."""
        facts = extract("function go() { return http.delete('/a'); }\nconst http = axios.create();\n")

        assert [(c.library, c.verb) for c in facts.calls] == [("axios", "DELETE")]

    def test_unknown_members_ignored(self, extract):
        facts = extract("console.log('x');\nrouter.get('/users', handler);\nfoo.bar.baz();\n")

        assert facts.calls == []


class TestMetadataAndErrors:

    def test_metadata(self, extract, sample_ts_code: str):
        facts = extract(sample_ts_code)
        meta = facts.metadata

        assert meta.file_kind == "typescript"
        assert meta.has_async_code
        assert not meta.has_jsx
        assert not meta.has_parsing_errors
        assert meta.line_count == sample_ts_code.count("\n") + 1
        assert meta.character_count == len(sample_ts_code)

    def test_jsx_detected(self, extract):
        facts = extract("export const App = () => <div>Hello</div>;\n", "App.tsx")

        assert facts.metadata.file_kind == "tsx"
        assert facts.metadata.has_jsx
        assert [d.name for d in facts.functions] == ["App"]

    def test_partial_parse_keeps_facts(self, extract):
        source = "import { a } from './a';\nexport function ok() { return 1; }\nfunction broken( {\n"
        facts = extract(source)

        assert facts.errors
        assert facts.metadata.has_parsing_errors
        assert facts.imports[0].module_ref == "./a"
        assert "ok" in [d.name for d in facts.declarations]

    def test_empty_source(self, extract):
        facts = extract("")

        assert facts.imports == []
        assert facts.exports == []
        assert facts.declarations == []
        assert facts.calls == []
        assert facts.errors == []

    def test_unsupported_unit_becomes_error(self, ts_parser):
        from codeflow_cli.extractor import extract_unit

        facts = extract_unit(SourceUnit(unit_id="notes.txt", text="hello"), ts_parser)

        assert facts.errors
        assert facts.metadata.has_parsing_errors
        assert facts.declarations == []

    def test_fixture_service(self, extract, sample_project_path: Path):
        path = sample_project_path / "src" / "services" / "userService.ts"
        facts = extract(path.read_text(encoding="utf-8"), "src/services/userService.ts")

        assert [d.name for d in facts.functions] == ["listUsers", "createUser", "removeUser"]
        assert [(c.verb, c.target, c.has_surrounding_failure_handling) for c in facts.calls] == [
            ("findMany", "user", True),
            ("create", "user", False),
            ("delete", "user", False),
        ]
