# Copyright 2026 Zsolt Kulcsar and Contributors. Licensed under the EUPL-1.2 or later
from dataclasses import dataclass
from pathlib import Path

import pytest

from annot.compilation import Compilation
from annot.errors import AmbiguousAnnotationError, UnknownDeclarationError
from annot.frontends import PythonFrontend
from annot.frontend import Diagnostic
from annot.ignore import IgnoreMatcher
from annot.model import DeclarationKind, SourceLocation


@dataclass(frozen=True)
class Option:
    name: str
    default: int = 0


def _write_file(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _values(compilation: Compilation, module: str, name: str = "") -> list[object]:
    identity = compilation.resolve(module, name)
    return [record.value for record in compilation.all_annotations(identity)]


def _analyze(
    source: str, module: str = "pkg.mod", **constructors: object
) -> tuple[Compilation, list[Diagnostic]]:
    compilation = Compilation()
    frontend = PythonFrontend(compilation, constructors={"Option": Option, **constructors})
    _, diagnostics = frontend.analyze_source(
        source, module=module, file_path=module.replace(".", "/") + ".py"
    )
    return compilation, diagnostics


def test_ph6_py_001_decorator_groups_are_recorded_in_textual_order() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "from annot.markers import meta",
                "",
                "@meta(1, 2)",
                "@meta(3)",
                "def run() -> None: ...",
            ]
        )
    )

    assert diagnostics == []
    assert _values(compilation, "pkg.mod", "run") == [1, 2, 3]
    records = compilation.all_annotations(compilation.resolve("pkg.mod", "run"))
    assert records[0].location == SourceLocation("pkg/mod.py", 3, 6)


def test_ph6_py_002_overload_redeclarations_accumulate() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "from typing import overload",
                "from annot.markers import meta",
                "",
                "@overload",
                "@meta(42)",
                "def f(x: int) -> int: ...",
                "@overload",
                "@meta(24)",
                "def f(x: str) -> str: ...",
                "def f(x):",
                "    return x",
            ]
        )
    )

    identity = compilation.resolve("pkg.mod", "f")
    assert diagnostics == []
    assert _values(compilation, "pkg.mod", "f") == [42, 24]
    assert len(compilation.declaration(identity).sites) == 3


def test_ph6_py_003_repeated_annotation_tokens_are_preserved() -> None:
    compilation, _ = _analyze("@meta(42, 42)\ndef f(): ...\n")

    assert _values(compilation, "pkg.mod", "f") == [42, 42]


def test_ph6_py_004_annotated_variables_and_snapshots() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "from typing import Annotated",
                "LIMIT = 10",
                "first: Annotated[int, meta(3), 'doc', meta(LIMIT)] = 3",
                "LIMIT = 20",
                "second: Annotated[int, meta(LIMIT)] = 0",
            ]
        )
    )

    first = compilation.declaration(compilation.resolve("pkg.mod", "first"))
    assert diagnostics == []
    assert first.kind is DeclarationKind.VARIABLE
    assert _values(compilation, "pkg.mod", "first") == [3, 10]
    assert _values(compilation, "pkg.mod", "second") == [20]


def test_ph6_py_005_members_methods_and_enumerators() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "from enum import Enum",
                "from typing import Annotated",
                "",
                "@meta(Option(name='tool'))",
                "class Settings:",
                "    verbose: Annotated[bool, meta(Option(name='verbose', default=1))] = False",
                "",
                "    @meta('cmd')",
                "    def run(self) -> None: ...",
                "",
                "class Color(Enum):",
                "    RED: Annotated[int, meta('warm')] = 1",
                "    BLUE = 2",
            ]
        )
    )

    def kind(name: str) -> DeclarationKind:
        return compilation.declaration(compilation.resolve("pkg.mod", name)).kind

    assert diagnostics == []
    assert kind("Settings") is DeclarationKind.TYPE
    assert kind("Settings.verbose") is DeclarationKind.MEMBER_VARIABLE
    assert kind("Settings.run") is DeclarationKind.FUNCTION
    assert kind("Color.RED") is DeclarationKind.ENUMERATOR
    assert kind("Color.BLUE") is DeclarationKind.ENUMERATOR
    assert _values(compilation, "pkg.mod", "Settings") == [Option(name="tool")]
    assert _values(compilation, "pkg.mod", "Settings.verbose") == [
        Option(name="verbose", default=1)
    ]
    assert _values(compilation, "pkg.mod", "Settings.run") == ["cmd"]
    assert _values(compilation, "pkg.mod", "Color.RED") == ["warm"]


def test_ph6_py_006_namespace_annotations_accumulate_across_reopenings() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "__meta__ = meta('pkg-level')",
                "def f(): ...",
                "__meta__ = (meta(1), meta(2))",
            ]
        )
    )

    identity = compilation.resolve("pkg.mod")
    assert diagnostics == []
    assert compilation.declaration(identity).kind is DeclarationKind.NAMESPACE
    assert _values(compilation, "pkg.mod") == ["pkg-level", 1, 2]


def test_ph6_py_007_type_specifier_annotations_are_rejected_before_storage() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "from typing import Annotated",
                "items: list[Annotated[int, meta(1)]] = []",
                "@meta(5)",
                "def f(a: Annotated[int, meta(2)]) -> None: ...",
                "def g() -> Annotated[int, meta(3)]: ...",
                "type Port = Annotated[int, meta(4)]",
            ]
        )
    )

    assert [d.error for d in diagnostics] == ["IllegalAppertainanceError"] * 4
    assert [d.line for d in diagnostics] == [2, 4, 5, 6]
    assert _values(compilation, "pkg.mod", "items") == []
    assert _values(compilation, "pkg.mod", "f") == []
    assert _values(compilation, "pkg.mod", "g") == []
    port = compilation.declaration(compilation.resolve("pkg.mod", "Port"))
    assert port.kind is DeclarationKind.TYPE_ALIAS


def test_ph6_py_008_annotations_without_a_declaration_are_rejected() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "meta(1)",
                "orphan = meta(2)",
                "class Holder:",
                "    def __init__(self) -> None: ...",
                "    meta(3)",
            ]
        )
    )

    assert [d.error for d in diagnostics] == ["NoApplicableConstructError"] * 3
    assert [d.line for d in diagnostics] == [1, 2, 5]
    with pytest.raises(UnknownDeclarationError):
        compilation.resolve("pkg.mod", "orphan")


def test_ph6_py_009_vendor_prefixed_groups_cannot_carry_annotations() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "@meta(1, attr('noinline'), using='gnu')",
                "def mixed(): ...",
                "@meta(attr('noinline'), using='gnu')",
                "@meta(attr('cold'), 7)",
                "def plain(): ...",
            ]
        )
    )

    assert [d.error for d in diagnostics] == ["MixedAttributeGroupError"]
    assert _values(compilation, "pkg.mod", "mixed") == []
    assert _values(compilation, "pkg.mod", "plain") == [7]


def test_ph6_py_010_non_structural_values_reject_the_whole_declaration() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "LIMITS = [1, 2]",
                "@meta(1)",
                "@meta(LIMITS)",
                "def f(): ...",
                "@meta(missing)",
                "def g(): ...",
            ]
        )
    )

    assert [d.error for d in diagnostics] == [
        "NonStructuralAnnotationError",
        "ConstantEvaluationError",
    ]
    assert _values(compilation, "pkg.mod", "f") == []
    assert _values(compilation, "pkg.mod", "g") == []


def test_ph6_py_011_same_names_in_different_scopes_do_not_share_annotations() -> None:
    compilation, _ = _analyze(
        "\n".join(
            [
                "@meta('module')",
                "def run(): ...",
                "class Tool:",
                "    @meta('member')",
                "    def run(self): ...",
            ]
        )
    )

    assert _values(compilation, "pkg.mod", "run") == ["module"]
    assert _values(compilation, "pkg.mod", "Tool.run") == ["member"]


def test_ph6_py_012_typed_singleton_over_source_annotations() -> None:
    compilation, _ = _analyze(
        "\n".join(
            [
                "@meta(Option(name='a'), 'label')",
                "@meta(Option(name='a'))",
                "def same(): ...",
                "@meta(Option(name='a'))",
                "@meta(Option(name='b'))",
                "def conflicting(): ...",
            ]
        )
    )

    same = compilation.resolve("pkg.mod", "same")
    conflicting = compilation.resolve("pkg.mod", "conflicting")
    assert compilation.single_annotation_of_type(same, Option) == Option(name="a")
    assert compilation.single_annotation_of_type(same, str) == "label"
    with pytest.raises(AmbiguousAnnotationError) as exc_info:
        compilation.single_annotation_of_type(conflicting, Option)
    assert [location.line for location in exc_info.value.locations] == [4, 5]


def test_ph6_py_013_constructors_cannot_add_annotations_while_evaluated() -> None:
    compilation = Compilation()
    target = compilation.declare(
        DeclarationKind.FUNCTION, "tool", "hook", SourceLocation("tool", 0, 0)
    )

    def sneaky() -> int:
        compilation.annotate(target, 1, SourceLocation("tool", 1, 0))
        return 1

    frontend = PythonFrontend(compilation, constructors={"sneaky": sneaky})
    _, diagnostics = frontend.analyze_source(
        "@meta(sneaky())\ndef f(): ...\n", module="pkg.mod", file_path="pkg/mod.py"
    )

    assert [d.error for d in diagnostics] == ["ReentrantAnnotationError"]
    assert compilation.all_annotations(target) == ()
    assert _values(compilation, "pkg.mod", "f") == []


def test_ph6_py_014_aliases_and_imports_resolve_to_the_same_entity(tmp_path: Path) -> None:
    project_root = tmp_path / "project"
    _write_file(project_root / "pkg" / "__init__.py", "")
    _write_file(
        project_root / "pkg" / "mod.py",
        "@meta(42)\ndef f(): ...\ng = f\n",
    )
    _write_file(
        project_root / "app.py",
        "from pkg.mod import f as helper\nimport pkg.mod as pm\nfrom .pkg import mod\n",
    )
    compilation = Compilation()

    _, diagnostics = PythonFrontend(compilation).analyze(project_root)

    target = compilation.resolve("pkg.mod", "f")
    assert diagnostics == []
    assert compilation.resolve("pkg.mod", "g") == target
    assert compilation.resolve("app", "helper") == target
    assert compilation.resolve("app", "pm.f") == target
    assert compilation.resolve("pkg", "mod.f") == target
    assert _values(compilation, "app", "helper") == [42]


def test_ph6_py_015_reanalyzing_the_same_files_does_not_duplicate(tmp_path: Path) -> None:
    project_root = tmp_path / "project"
    _write_file(project_root / "mod.py", "@meta(42)\n@meta(24)\ndef f(): ...\n")
    compilation = Compilation()
    frontend = PythonFrontend(compilation)

    first, _ = frontend.analyze(project_root)
    second, _ = frontend.analyze(project_root)

    assert [d.qualname for d in first] == ["", "f"]
    assert second == []
    assert _values(compilation, "mod", "f") == [42, 24]


def test_ph6_py_016_analyzer_is_best_effort_when_one_file_fails(tmp_path: Path) -> None:
    project_root = tmp_path / "project"
    _write_file(project_root / "ok.py", "@meta(1)\ndef ok() -> int:\n    return 1\n")
    _write_file(project_root / "broken.py", "def broken(:\n    return 0\n")
    compilation = Compilation()

    declarations, diagnostics = PythonFrontend(compilation).analyze(project_root)

    assert any(d.qualname == "ok" and d.annotation_count == 1 for d in declarations)
    assert len(diagnostics) == 1
    assert diagnostics[0].file_path == "broken.py"
    assert diagnostics[0].error == "SyntaxError"


def test_ph6_py_017_gitignored_files_are_not_elaborated(tmp_path: Path) -> None:
    project_root = tmp_path / "project"
    _write_file(project_root / ".gitignore", "generated/\n")
    _write_file(project_root / "generated" / "stub.py", "@meta(1)\ndef f(): ...\n")
    _write_file(project_root / "kept.py", "@meta(2)\ndef f(): ...\n")
    compilation = Compilation()

    PythonFrontend(compilation).analyze(
        project_root, ignore=IgnoreMatcher.from_project_root(project_root)
    )

    assert _values(compilation, "kept", "f") == [2]
    with pytest.raises(UnknownDeclarationError):
        compilation.resolve("generated.stub", "f")


def test_ph6_py_018_evaluation_failures_stay_local_to_their_declaration() -> None:
    @dataclass(frozen=True)
    class Port:
        number: int

        def __post_init__(self) -> None:
            if self.number <= 0:
                raise RuntimeError("port must be positive")

    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "BAD = {[1]: 2}",
                "@meta({[1]})",
                "def unhashable(): ...",
                "@meta(int(*5))",
                "def unpacked(): ...",
                "@meta(Port(0))",
                "def rejected(): ...",
                "@meta(Port(8080))",
                "def accepted(): ...",
            ]
        ),
        Port=Port,
    )

    assert [(d.error, d.line) for d in diagnostics] == [
        ("ConstantEvaluationError", 2),
        ("ConstantEvaluationError", 4),
        ("ConstantEvaluationError", 6),
    ]
    assert _values(compilation, "pkg.mod", "unhashable") == []
    assert _values(compilation, "pkg.mod", "unpacked") == []
    assert _values(compilation, "pkg.mod", "rejected") == []
    assert _values(compilation, "pkg.mod", "accepted") == [Port(8080)]
    assert compilation.resolve("pkg.mod", "BAD") is not None


def test_ph6_py_019_fallback_definitions_in_except_handlers_are_elaborated() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "try:",
                "    from fast import f",
                "except ImportError:",
                "    @meta(1)",
                "    def f(): ...",
            ]
        )
    )

    identity = compilation.resolve("pkg.mod", "f")
    assert diagnostics == []
    assert compilation.declaration(identity).kind == DeclarationKind.FUNCTION
    assert _values(compilation, "pkg.mod", "f") == [1]


def test_ph6_py_020_with_match_loop_and_except_star_bodies_are_elaborated() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "import contextlib",
                "with contextlib.suppress(ImportError):",
                "    @meta(2)",
                "    def g(): ...",
                "match 1:",
                "    case 1:",
                "        @meta(3)",
                "        def h(): ...",
                "try:",
                "    pass",
                "except* ValueError:",
                "    @meta(4)",
                "    def k(): ...",
                "for _ in ():",
                "    pass",
                "else:",
                "    @meta(5)",
                "    def loop(): ...",
                "with meta(6):",
                "    pass",
            ]
        )
    )

    assert _values(compilation, "pkg.mod", "g") == [2]
    assert _values(compilation, "pkg.mod", "h") == [3]
    assert _values(compilation, "pkg.mod", "k") == [4]
    assert _values(compilation, "pkg.mod", "loop") == [5]
    assert [(d.error, d.line) for d in diagnostics] == [("NoApplicableConstructError", 19)]


def test_ph6_py_021_markers_in_defaults_and_plain_decorators_are_rejected() -> None:
    compilation, diagnostics = _analyze(
        "\n".join(
            [
                "@register(meta(7))",
                "def f(x=meta(8), *, y=meta(9)): ...",
                "@dataclass(meta(10))",
                "@meta(11)",
                "class C: ...",
            ]
        )
    )

    assert [(d.error, d.line) for d in diagnostics] == [
        ("NoApplicableConstructError", 1),
        ("NoApplicableConstructError", 2),
        ("NoApplicableConstructError", 3),
    ]
    assert _values(compilation, "pkg.mod", "f") == []
    assert _values(compilation, "pkg.mod", "C") == [11]


def test_ph6_py_022_non_marker_namespace_items_cannot_hide_markers() -> None:
    compilation, diagnostics = _analyze(
        "__meta__ = (meta('core'), register(meta('lost')))\n"
    )

    assert [d.error for d in diagnostics] == ["NoApplicableConstructError"]
    assert _values(compilation, "pkg.mod") == ["core"]
