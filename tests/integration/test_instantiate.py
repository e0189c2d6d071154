"""End-to-end instantiation of the fixture templates."""

from __future__ import annotations

import importlib
from pathlib import Path

import pytest

from pytemplate import (
    GENERATED_HEADER,
    ArityError,
    InstantiateOptions,
    NameCollisionError,
    UnsupportedDeclarationError,
    instantiate,
    instantiate_many,
    locate_template,
)


def _run(path: Path, name: str) -> dict[str, object]:
    namespace: dict[str, object] = {"__name__": name}
    exec(compile(path.read_text(encoding="utf-8"), str(path), "exec"), namespace)
    return namespace


def test_set_instantiation(templates_dir: Path, output_dir: Path) -> None:
    """Write a working, renamed module for an unexported target."""
    result = instantiate(
        templates_dir / "set_template.py",
        "mySet(str)",
        InstantiateOptions(output_dir=output_dir),
    )
    assert result.written
    assert result.tests is None
    assert result.primary.path == output_dir / "pytemplate_my_set.py"
    text = result.primary.path.read_text(encoding="utf-8")
    assert text.startswith(f"{GENERATED_HEADER}\n\n")
    assert "class mySet:" in text
    assert "def newMySet(*items: str) -> mySet:" in text

    namespace = _run(result.primary.path, "pytemplate_my_set")
    new_set = namespace["newMySet"]
    assert callable(new_set)
    values = new_set("a", "b", "a")
    assert len(values) == 2
    assert values.contains("b")
    assert len(values.union(new_set("c"))) == 3
    assert namespace["__all__"] == ["mySet", "newMySet"]


def test_exported_target(templates_dir: Path, output_dir: Path) -> None:
    """Exported targets keep capitalised names."""
    result = instantiate(
        templates_dir / "set_template.py",
        "IntSet(int)",
        InstantiateOptions(output_dir=output_dir),
    )
    text = result.primary.path.read_text(encoding="utf-8")
    assert result.primary.path.name == "pytemplate_int_set.py"
    assert "class IntSet:" in text
    assert "def newIntSet(*items: int) -> IntSet:" in text


def test_second_run_is_unchanged(templates_dir: Path, output_dir: Path) -> None:
    """Identical output is not rewritten."""
    options = InstantiateOptions(output_dir=output_dir)
    first = instantiate(templates_dir / "set_template.py", "mySet(str)", options)
    content = first.primary.path.read_bytes()
    second = instantiate(templates_dir / "set_template.py", "mySet(str)", options)
    assert first.written
    assert not second.written
    assert second.primary.path.read_bytes() == content


def test_several_requests(templates_dir: Path, output_dir: Path) -> None:
    """Each request produces its own module."""
    results = instantiate_many(
        templates_dir / "set_template.py",
        ["mySet(str)", "IntSet(int)"],
        InstantiateOptions(output_dir=output_dir, output_pattern="gen_{}"),
    )
    assert [result.primary.path.name for result in results] == ["gen_my_set.py", "gen_int_set.py"]


def test_arity_error_writes_nothing(templates_dir: Path, output_dir: Path) -> None:
    """A failing request leaves the output directory untouched."""
    with pytest.raises(ArityError):
        instantiate(
            templates_dir / "set_template.py",
            "mySet(str, int)",
            InstantiateOptions(output_dir=output_dir),
        )
    assert list(output_dir.iterdir()) == []


@pytest.mark.parametrize(
    ("template", "request_text", "error"),
    [
        ("collision_template.py", "mySet(int)", NameCollisionError),
        ("unsupported_template.py", "intBox(int)", UnsupportedDeclarationError),
    ],
)
def test_invalid_templates_write_nothing(
    templates_dir: Path,
    output_dir: Path,
    template: str,
    request_text: str,
    error: type[Exception],
) -> None:
    """Template errors surface before any file is written."""
    with pytest.raises(error):
        instantiate(
            templates_dir / template, request_text, InstantiateOptions(output_dir=output_dir)
        )
    assert list(output_dir.iterdir()) == []


def test_format_injection(templates_dir: Path, output_dir: Path) -> None:
    """Stubs for catalog types become working coercion functions."""
    result = instantiate(
        templates_dir / "format_template.py",
        "intBox(int)",
        InstantiateOptions(output_dir=output_dir),
    )
    text = result.primary.path.read_text(encoding="utf-8")
    assert "# template format\ndef toVIntBox(value: object) -> int:" in text
    assert "# template format\ndef parseVIntBox(value: object) -> int:" in text
    assert "Callable" not in text

    namespace = _run(result.primary.path, "pytemplate_int_box")
    new_box = namespace["newIntBox"]
    assert callable(new_box)
    assert new_box("42").value == 42
    parse = namespace["parseVIntBox"]
    assert callable(parse)
    with pytest.raises(TypeError):
        parse(None)


def test_format_injection_adds_imports(templates_dir: Path, output_dir: Path) -> None:
    """Single-precision floats bring their own import."""
    result = instantiate(
        templates_dir / "format_template.py",
        "f32Box(numpy.float32)",
        InstantiateOptions(output_dir=output_dir),
    )
    text = result.primary.path.read_text(encoding="utf-8")
    assert "import struct\n" in text
    assert "def toVF32Box(value: object) -> float:" in text
    assert "def __init__(self, value: numpy.float32) -> None:" in text


def test_format_stub_kept_for_unknown_type(templates_dir: Path, output_dir: Path) -> None:
    """Types outside the catalog keep their stubs and imports."""
    result = instantiate(
        templates_dir / "format_template.py",
        "bytesBox(bytes)",
        InstantiateOptions(output_dir=output_dir),
    )
    text = result.primary.path.read_text(encoding="utf-8")
    assert "from collections.abc import Callable\n" in text
    assert "toVBytesBox: Callable[[object], bytes] = ..." in text
    assert "def parseVBytesBox(raw: object) -> bytes:\n    raise NotImplementedError" in text


def test_tests_are_split(
    templates_dir: Path, output_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test declarations go to a companion module that imports the primary one."""
    result = instantiate(
        templates_dir / "list_template.py",
        "intList(int)",
        InstantiateOptions(output_dir=output_dir),
    )
    assert result.tests is not None
    assert result.tests.path == output_dir / "pytemplate_int_list_test.py"
    primary = result.primary.path.read_text(encoding="utf-8")
    tests = result.tests.path.read_text(encoding="utf-8")
    assert "import pytest" not in primary
    assert "test_push_pop" not in primary
    assert "from pytemplate_int_list import newIntList\n" in tests
    assert "class intList:" not in tests

    monkeypatch.syspath_prepend(str(output_dir))
    module = importlib.import_module("pytemplate_int_list_test")
    module.test_push_popIntList(None)
    module.intListCase("test_empty").test_empty()


def test_testing_import_used_by_primary_code_stays(
    tmp_path: Path, output_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A testing import that non-test code needs is kept in the primary module."""
    template = tmp_path / "meter_template.py"
    template.write_text(
        "import pytest\n"
        "\n"
        "# template type Meter(V)\n"
        "V = float\n"
        "\n"
        "\n"
        "class Meter:\n"
        "    def __init__(self, value: V) -> None:\n"
        "        self.value = value\n"
        "\n"
        "    def close_to(self, other: V) -> bool:\n"
        "        return self.value == pytest.approx(other)\n"
        "\n"
        "\n"
        "def test_close_to() -> None:\n"
        "    assert Meter(1.0).close_to(1.0)\n",
        encoding="utf-8",
    )
    result = instantiate(template, "floatMeter(float)", InstantiateOptions(output_dir=output_dir))
    assert result.tests is not None
    primary = result.primary.path.read_text(encoding="utf-8")
    tests = result.tests.path.read_text(encoding="utf-8")
    assert "import pytest\n" in primary
    assert "def test_close_to" not in primary
    assert "from pytemplate_float_meter import floatMeter\n" in tests

    namespace = _run(result.primary.path, "pytemplate_float_meter")
    meter = namespace["floatMeter"](1.0)  # type: ignore[operator]
    assert meter.close_to(1.0 + 1e-12)

    monkeypatch.syspath_prepend(str(output_dir))
    module = importlib.import_module("pytemplate_float_meter_test")
    for name in dir(module):
        if name.startswith("test_close_to"):
            getattr(module, name)()


def test_tests_import_from_package(templates_dir: Path, output_dir: Path) -> None:
    """The output package qualifies the test module's import."""
    result = instantiate(
        templates_dir / "list_template.py",
        "strList(str)",
        InstantiateOptions(output_dir=output_dir, package="generated.lists"),
    )
    assert result.tests is not None
    tests = result.tests.path.read_text(encoding="utf-8")
    assert "from generated.lists.pytemplate_str_list import newStrList\n" in tests
    assert "items.push(str())" in tests


def test_tests_kept_inline(templates_dir: Path, output_dir: Path) -> None:
    """Without splitting, one module holds everything."""
    result = instantiate(
        templates_dir / "list_template.py",
        "intList(int)",
        InstantiateOptions(output_dir=output_dir, split_tests=False),
    )
    assert result.tests is None
    assert sorted(path.name for path in output_dir.iterdir()) == ["pytemplate_int_list.py"]
    primary = result.primary.path.read_text(encoding="utf-8")
    assert "def test_push_popIntList(request: pytest.FixtureRequest) -> None:" in primary


def test_relative_imports_from_located_package(tmp_path: Path, output_dir: Path) -> None:
    """Templates inside a package may use relative imports."""
    package = tmp_path / "relpkg"
    templates = package / "templates"
    templates.mkdir(parents=True)
    (package / "__init__.py").touch()
    (templates / "__init__.py").touch()
    (package / "helpers.py").write_text("def freeze(value):\n    return value\n", encoding="utf-8")
    (templates / "box_template.py").write_text(
        "from ..helpers import freeze\n"
        "\n"
        "# template type Box(V)\n"
        "V = int\n"
        "\n"
        "\n"
        "class Box:\n"
        "    def __init__(self, value: V) -> None:\n"
        "        self.value = freeze(value)\n",
        encoding="utf-8",
    )
    location = locate_template(templates)
    assert location.package == "relpkg.templates"
    result = instantiate(
        location.path,
        "strBox(str)",
        InstantiateOptions(output_dir=output_dir, template_package=location.package),
    )
    text = result.primary.path.read_text(encoding="utf-8")
    assert "from relpkg.helpers import freeze\n" in text
    assert "def __init__(self, value: str) -> None:" in text
