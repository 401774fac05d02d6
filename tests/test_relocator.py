"""Tests for DynamicLibraryRelocator."""

import tempfile
from pathlib import Path, PureWindowsPath
from unittest.mock import patch

import pytest

from appbundler import (
    BASE_RPATH,
    BuildKind,
    CommandError,
    DynamicLibraryRelocator,
    InstallNameError,
    LibraryCopyError,
    LibraryEnumerationError,
    LibraryKind,
    LibraryReference,
    RelativeOutputPathError,
    RPathUpdateError,
    ValidationError,
    framework_library_path,
    library_name,
    read_rpaths,
    relative_path,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdirname:
        yield Path(tmpdirname)


@pytest.fixture
def app(temp_dir):
    """Create an app bundle skeleton with a fake executable."""
    macos = temp_dir / "App.app" / "Contents" / "MacOS"
    macos.mkdir(parents=True)
    libraries = temp_dir / "App.app" / "Contents" / "Libraries"
    libraries.mkdir()
    executable = macos / "App"
    executable.write_bytes(b"not really mach-o")
    executable.chmod(0o755)
    return executable, libraries


@pytest.fixture
def products(temp_dir):
    products_dir = temp_dir / ".build" / "arm64-apple-macosx" / "debug"
    products_dir.mkdir(parents=True)
    return products_dir


@pytest.fixture
def relocator():
    return DynamicLibraryRelocator()


def make_framework(products_dir, name):
    versions = products_dir / "PackageFrameworks" / f"{name}.framework" / "Versions" / "A"
    versions.mkdir(parents=True)
    (versions / name).write_bytes(f"framework {name}".encode())
    return versions / name


def commands(mock_run):
    return [call[0][0] for call in mock_run.call_args_list]


class TestLibraryNaming:
    """Tests for logical names and canonical output names."""

    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("libFoo.dylib", "Foo"),
            ("libfoo_bar.dylib", "foo_bar"),
            ("LibFoo.dylib", "Foo"),
            ("LIBFoo.dylib", "Foo"),
            ("Foo.dylib", "Foo"),
            ("liblib.dylib", "lib"),
        ],
    )
    def test_library_name(self, filename, expected):
        assert library_name(filename) == expected

    @pytest.mark.parametrize(
        "filename", ["libFoo.dylib", "LibFoo.dylib", "Foo.dylib"]
    )
    def test_output_name(self, filename):
        reference = LibraryReference(
            library_name(filename), Path(filename), LibraryKind.STANDALONE
        )
        assert reference.output_name == "libFoo.dylib"

    @pytest.mark.parametrize("name", ["Bar", "My.Kit", "x"])
    def test_framework_library_path(self, name):
        framework = Path("/products/PackageFrameworks") / f"{name}.framework"
        assert framework_library_path(framework) == framework / "Versions" / "A" / name


class TestEnumerate:
    """Tests for DynamicLibraryRelocator.enumerate()."""

    def test_standalone_libraries(self, relocator, products):
        (products / "libFoo.dylib").write_bytes(b"foo")
        (products / "libBar.dylib").write_bytes(b"bar")
        (products / "App").write_bytes(b"app")
        (products / "libStatic.a").write_bytes(b"static")
        (products / "Foo.swiftmodule").mkdir()

        libraries = relocator.enumerate(products, BuildKind.SWIFTPM)

        assert libraries == [
            LibraryReference("Bar", products / "libBar.dylib", LibraryKind.STANDALONE),
            LibraryReference("Foo", products / "libFoo.dylib", LibraryKind.STANDALONE),
        ]

    def test_frameworks(self, relocator, products):
        make_framework(products, "Bar")
        (products / "PackageFrameworks" / "libIgnored.dylib").write_bytes(b"x")

        search_dir = relocator.search_directory(products, BuildKind.XCODE)
        libraries = relocator.enumerate(search_dir, BuildKind.XCODE)

        assert libraries == [
            LibraryReference(
                "Bar",
                search_dir / "Bar.framework" / "Versions" / "A" / "Bar",
                LibraryKind.FRAMEWORK,
            )
        ]

    def test_swiftpm_ignores_frameworks(self, relocator, products):
        (products / "Bar.framework").mkdir()
        assert relocator.enumerate(products, BuildKind.SWIFTPM) == []

    def test_missing_directory(self, relocator, temp_dir):
        with pytest.raises(LibraryEnumerationError):
            relocator.enumerate(temp_dir / "missing", BuildKind.SWIFTPM)

    def test_missing_package_frameworks(self, relocator, products):
        search_dir = relocator.search_directory(products, BuildKind.XCODE)
        with pytest.raises(LibraryEnumerationError):
            relocator.enumerate(search_dir, BuildKind.XCODE)


class TestRelocate:
    """Tests for DynamicLibraryRelocator.relocate()."""

    @patch("appbundler.run_command", return_value="")
    def test_single_standalone_library(self, mock_run, relocator, products, app):
        executable, libraries = app
        (products / "libFoo.dylib").write_bytes(b"foo library")

        copied = relocator.relocate(
            products, libraries, executable, BuildKind.SWIFTPM, universal=False
        )

        assert copied == [libraries / "libFoo.dylib"]
        assert (libraries / "libFoo.dylib").read_bytes() == b"foo library"
        assert commands(mock_run) == [
            [
                "/usr/bin/install_name_tool",
                "-change",
                "@rpath/libFoo.dylib",
                "@rpath/../Libraries/libFoo.dylib",
                str(executable),
            ]
        ]

    @patch("appbundler.run_command", return_value="")
    def test_xcode_framework(self, mock_run, relocator, products, app):
        executable, libraries = app
        make_framework(products, "Bar")

        relocator.relocate(
            products, libraries, executable, BuildKind.XCODE, universal=False
        )

        assert (libraries / "libBar.dylib").read_bytes() == b"framework Bar"
        assert commands(mock_run) == [
            [
                "/usr/bin/install_name_tool",
                "-add_rpath",
                BASE_RPATH,
                str(executable),
            ],
            [
                "/usr/bin/install_name_tool",
                "-change",
                "@rpath/Bar.framework/Versions/A/Bar",
                "@rpath/../Libraries/libBar.dylib",
                str(executable),
            ],
        ]

    @patch("appbundler.run_command", return_value="")
    def test_universal_adds_rpath_without_libraries(
        self, mock_run, relocator, products, app
    ):
        executable, libraries = app
        relocator.relocate(
            products, libraries, executable, BuildKind.SWIFTPM, universal=True
        )
        assert commands(mock_run) == [
            [
                "/usr/bin/install_name_tool",
                "-add_rpath",
                BASE_RPATH,
                str(executable),
            ]
        ]

    @patch("appbundler.read_rpaths", return_value=["@loader_path", BASE_RPATH])
    @patch("appbundler.run_command", return_value="")
    def test_existing_rpath_not_added_twice(
        self, mock_run, mock_rpaths, relocator, products, app
    ):
        executable, libraries = app
        relocator.relocate(
            products, libraries, executable, BuildKind.SWIFTPM, universal=True
        )
        mock_run.assert_not_called()
        mock_rpaths.assert_called_once_with(executable)

    @patch("appbundler.run_command", return_value="")
    def test_swiftpm_single_arch_skips_rpath(
        self, mock_run, relocator, products, app
    ):
        executable, libraries = app
        relocator.relocate(
            products, libraries, executable, BuildKind.SWIFTPM, universal=False
        )
        mock_run.assert_not_called()

    @patch(
        "appbundler.run_command",
        side_effect=CommandError("install_name_tool", 1),
    )
    def test_rpath_failure(self, mock_run, relocator, products, app):
        executable, libraries = app
        (products / "libFoo.dylib").write_bytes(b"foo")
        with pytest.raises(RPathUpdateError):
            relocator.relocate(
                products, libraries, executable, BuildKind.SWIFTPM, universal=True
            )
        assert not (libraries / "libFoo.dylib").exists()

    @patch("appbundler.run_command", return_value="")
    def test_output_next_to_executable(self, mock_run, relocator, products, app):
        executable, _ = app
        (products / "libFoo.dylib").write_bytes(b"foo")
        relocator.relocate(
            products, executable.parent, executable, BuildKind.SWIFTPM, False
        )
        assert commands(mock_run)[0][3] == "@rpath/libFoo.dylib"

    @patch("appbundler.run_command", return_value="")
    def test_fail_fast_on_copy(self, mock_run, relocator, products, app):
        """A failed copy stops the loop, earlier libraries stay relocated."""
        executable, libraries = app
        (products / "libA.dylib").write_bytes(b"a")
        (products / "libB.dylib").symlink_to(products / "missing.dylib")
        (products / "libC.dylib").write_bytes(b"c")

        with pytest.raises(LibraryCopyError) as exc_info:
            relocator.relocate(
                products, libraries, executable, BuildKind.SWIFTPM, False
            )

        assert exc_info.value.library == "B"
        assert (libraries / "libA.dylib").exists()
        assert not (libraries / "libB.dylib").exists()
        assert not (libraries / "libC.dylib").exists()
        assert [c[2] for c in commands(mock_run)] == ["@rpath/libA.dylib"]

    def test_install_name_failure(self, relocator, products, app):
        executable, libraries = app
        (products / "libA.dylib").write_bytes(b"a")
        (products / "libB.dylib").write_bytes(b"b")

        with patch(
            "appbundler.run_command",
            side_effect=["", CommandError("install_name_tool", 1), ""],
        ) as mock_run:
            with pytest.raises(InstallNameError) as exc_info:
                relocator.relocate(
                    products, libraries, executable, BuildKind.SWIFTPM, False
                )

        assert exc_info.value.library == "B"
        assert mock_run.call_count == 2
        # the copy is not undone
        assert (libraries / "libB.dylib").exists()

    @patch("appbundler.run_command", return_value="")
    def test_output_on_other_volume(self, mock_run, relocator, products, app):
        """No relative path to the output directory fails before copying."""
        executable, libraries = app
        (products / "libFoo.dylib").write_bytes(b"foo")

        def across_drives(target, base):
            # the output directory lives on another drive than the app
            drive = "D:/" if Path(target) == libraries else "C:/"
            return relative_path(
                PureWindowsPath(drive) / Path(target).name,
                PureWindowsPath("C:/") / Path(base).name,
            )

        with patch("appbundler.relative_path", side_effect=across_drives):
            with pytest.raises(RelativeOutputPathError):
                relocator.relocate(
                    products, libraries, executable, BuildKind.SWIFTPM, False
                )

        assert not (libraries / "libFoo.dylib").exists()
        mock_run.assert_not_called()

    @patch("appbundler.run_command", return_value="")
    def test_relative_output_dir(
        self, mock_run, relocator, products, app, temp_dir, monkeypatch
    ):
        """A relative output directory is taken from the working directory."""
        executable, libraries = app
        (products / "libFoo.dylib").write_bytes(b"foo")
        monkeypatch.chdir(temp_dir)

        relocator.relocate(
            products,
            Path("App.app/Contents/Libraries"),
            executable.resolve(),
            BuildKind.SWIFTPM,
            False,
        )

        assert (libraries / "libFoo.dylib").read_bytes() == b"foo"
        assert commands(mock_run)[0][3] == "@rpath/../Libraries/libFoo.dylib"

    @patch("appbundler.run_command", return_value="")
    def test_corrupt_executable(self, mock_run, relocator, products, app):
        executable, libraries = app
        executable.write_bytes(b"\xcf\xfa\xed\xfe\x07")
        with pytest.raises(RPathUpdateError):
            relocator.relocate(
                products, libraries, executable, BuildKind.XCODE, False
            )
        mock_run.assert_not_called()

    @patch("appbundler.run_command", return_value="")
    def test_rerun_overwrites(self, mock_run, relocator, products, app):
        executable, libraries = app
        (products / "libFoo.dylib").write_bytes(b"v1")
        relocator.relocate(products, libraries, executable, BuildKind.SWIFTPM, False)
        (products / "libFoo.dylib").write_bytes(b"v2")
        relocator.relocate(products, libraries, executable, BuildKind.SWIFTPM, False)
        assert (libraries / "libFoo.dylib").read_bytes() == b"v2"


class TestReadRpaths:
    """Tests for read_rpaths()."""

    def test_not_macho(self, temp_dir):
        path = temp_dir / "script"
        path.write_text("#!/bin/sh\n")
        assert read_rpaths(path) == []

    def test_missing_file(self, temp_dir):
        assert read_rpaths(temp_dir / "missing") == []

    def test_truncated_macho(self, temp_dir):
        path = temp_dir / "truncated"
        path.write_bytes(b"\xcf\xfa\xed\xfe\x07")
        with pytest.raises(ValidationError):
            read_rpaths(path)
