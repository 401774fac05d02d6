#!/usr/bin/env python3
"""appbundler - package Swift build products into a macOS application bundle.

This module provides tools for:
1. Locating the products directory of a SwiftPM or xcodebuild build
2. Relocating the dynamic libraries of a build into an app bundle and
   rewriting the executable's load commands to match
3. Normalizing SwiftPM resource bundles into the canonical bundle layout,
   including Info.plist generation and Metal shader compilation

Usage (CLI):
    # Bundle an already built product
    appbundler bundle MyApp -p ./MyPackage -c release

    # Only relocate the dynamic libraries of a build
    appbundler relocate .build/arm64-apple-macosx/debug \\
        MyApp.app/Contents/Libraries MyApp.app/Contents/MacOS/MyApp

Usage (API):
    from appbundler import AppBundle, DynamicLibraryRelocator

    bundle = AppBundle("./MyPackage", "MyApp")
    bundle.create()
"""

import argparse
import contextlib
import datetime
import enum
import json
import logging
import ntpath
import os
import posixpath
import shutil
import signal
import stat
import struct
import subprocess
import sys
import threading
from dataclasses import dataclass
from pathlib import Path, PurePath, PureWindowsPath

from macholib.mach_o import LC_RPATH
from macholib.MachO import MachO

# ----------------------------------------------------------------------------
# Constants

__version__ = "0.1.0"

# Type aliases
Pathlike = Path | str

# Bundle package type identifiers (type + creator code)
PKG_INFO_CONTENT = "APPL????"

DEFAULT_BUNDLE_ID = "com.example"
DEFAULT_MIN_MACOS_VERSION = "11.0"
DEFAULT_VERSION = "0.1.0"

# Build layout
BUILD_DIRECTORY = ".build"
UNIVERSAL_VENDOR_DIRECTORY = "apple"
PACKAGE_FRAMEWORKS_DIRECTORY = "PackageFrameworks"

# Library naming
LIBRARY_PREFIX = "lib"
SHARED_LIBRARY_EXTENSION = ".dylib"
FRAMEWORK_EXTENSION = ".framework"
FRAMEWORK_LIBRARY_SUBPATH = "Versions/A"
BUNDLE_EXTENSION = ".bundle"

# rpath added to universal and xcodebuild executables
BASE_RPATH = "@executable_path/../lib"

# Resource bundle layout
MANIFEST_FILENAME = "Info.plist"
METAL_SOURCE_EXTENSION = ".metal"
METAL_AIR_EXTENSION = ".air"
METAL_LIBRARY_FILENAME = "default.metallib"

# Environment variable names (tool path overrides)
ENV_SWIFT = "APPBUNDLER_SWIFT"
ENV_INSTALL_NAME_TOOL = "APPBUNDLER_INSTALL_NAME_TOOL"
ENV_XCRUN = "APPBUNDLER_XCRUN"
ENV_CODESIGN = "APPBUNDLER_CODESIGN"

APP_INFO_PLIST_TMPL = """\
<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>CFBundleDevelopmentRegion</key>
    <string>en</string>
    <key>CFBundleExecutable</key>
    <string>{executable}</string>
    <key>CFBundleIconFile</key>
    <string>{icon_file}</string>
    <key>CFBundleIdentifier</key>
    <string>{bundle_identifier}</string>
    <key>CFBundleInfoDictionaryVersion</key>
    <string>6.0</string>
    <key>CFBundleName</key>
    <string>{bundle_name}</string>
    <key>CFBundlePackageType</key>
    <string>APPL</string>
    <key>CFBundleShortVersionString</key>
    <string>{bundle_version}</string>
    <key>CFBundleSignature</key>
    <string>????</string>
    <key>CFBundleVersion</key>
    <string>{bundle_version}</string>
    <key>LSMinimumSystemVersion</key>
    <string>{min_system_version}</string>
    <key>NSHighResolutionCapable</key>
    <true/>
</dict>
</plist>
"""

RESOURCE_BUNDLE_INFO_PLIST_TMPL = """\
<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>CFBundleDevelopmentRegion</key>
    <string>en</string>
    <key>CFBundleIdentifier</key>
    <string>{bundle_identifier}</string>
    <key>CFBundleInfoDictionaryVersion</key>
    <string>6.0</string>
    <key>CFBundleName</key>
    <string>{bundle_name}</string>
    <key>CFBundlePackageType</key>
    <string>BNDL</string>
    <key>LSMinimumSystemVersion</key>
    <string>{min_system_version}</string>
</dict>
</plist>
"""

# ----------------------------------------------------------------------------
# Optional dotenv support (zero production dependencies)


def _load_dotenv() -> None:
    """Attempt to load .env file if python-dotenv is available."""
    try:
        from dotenv import load_dotenv

        load_dotenv()
    except ImportError:
        pass


_load_dotenv()


def get_tool(env_var: str, default: str) -> str:
    """Return the path of an external tool, honouring its env override."""
    return os.environ.get(env_var) or default


# ----------------------------------------------------------------------------
# Configuration file support


def load_config(config_path: Path | None = None) -> dict[str, object]:
    """Load configuration from a TOML file.

    Searches for configuration in the following order:
    1. Explicit config_path if provided
    2. .appbundler.toml in current directory
    3. appbundler.toml in current directory

    Args:
        config_path: Optional explicit path to config file

    Returns:
        Configuration dictionary (empty if no config found)

    Example .appbundler.toml:
        [bundle]
        product = "MyApp"
        version = "1.2.0"
        identifier = "com.example.MyApp"
        min_macos_version = "12.0"
        configuration = "release"
    """
    try:
        import tomllib
    except ImportError:
        try:
            import tomli as tomllib  # type: ignore[import-not-found]
        except ImportError:
            return {}

    if config_path and config_path.exists():
        paths_to_try = [config_path]
    else:
        cwd = Path.cwd()
        paths_to_try = [
            cwd / ".appbundler.toml",
            cwd / "appbundler.toml",
        ]

    for path in paths_to_try:
        if path.exists():
            try:
                with open(path, "rb") as f:
                    data: dict[str, object] = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigurationError(
                    f"Failed to read configuration file {path}: {e}"
                ) from e
            return data

    return {}


def get_config_value(
    config: dict[str, object],
    section: str,
    key: str,
    default: str | None = None,
) -> str | None:
    """Get a string value from config with section.key lookup.

    Args:
        config: Configuration dictionary
        section: Section name (e.g., "bundle")
        key: Key name within section
        default: Default value if not found

    Returns:
        Configuration value or default
    """
    section_config = config.get(section, {})
    if not isinstance(section_config, dict):
        return default
    value = section_config.get(key, default)
    if value is None or isinstance(value, str):
        return value
    return default


# ----------------------------------------------------------------------------
# Error handling


class BundlerError(Exception):
    """Base exception class for appbundler errors."""


class ConfigurationError(BundlerError):
    """Exception raised when configuration is invalid."""


class FileError(BundlerError):
    """Exception raised when a file operation fails."""


class ValidationError(BundlerError):
    """Exception raised when an input fails validation."""


class ProcessError(BundlerError):
    """Base class for external tool failures."""


class CommandLaunchError(ProcessError):
    """Exception raised when a command cannot be started."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to run '{command}': {reason}")


class CommandError(ProcessError):
    """Exception raised when a command exits with a non-zero status."""

    def __init__(
        self, command: str, returncode: int, output: str | None = None
    ):
        self.command = command
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"Command '{command}' failed with return code {returncode}"
        )


class InvalidOutputError(ProcessError):
    """Exception raised when a command's output is not valid UTF-8."""

    def __init__(self, command: str, output: bytes):
        self.command = command
        self.output = output
        super().__init__(f"Command '{command}' produced non UTF-8 output")


class ToolchainError(BundlerError):
    """Base class for Swift toolchain query failures."""


class TargetTripleError(ToolchainError):
    """Exception raised when the target info query fails to run."""


class TargetInfoParseError(ToolchainError):
    """Exception raised when the target info is not valid JSON."""


class TargetInfoFormatError(ToolchainError):
    """Exception raised when the target info lacks target.unversionedTriple."""


class DynamicLibraryError(BundlerError):
    """Base class for dynamic library relocation failures."""


class LibraryEnumerationError(DynamicLibraryError):
    """Exception raised when the library search directory can't be listed."""


class LibraryCopyError(DynamicLibraryError):
    """Exception raised when a library can't be copied."""

    def __init__(self, library: str, reason: str):
        self.library = library
        super().__init__(
            f"Failed to copy dynamic library '{library}': {reason}"
        )


class InstallNameError(DynamicLibraryError):
    """Exception raised when a library's install name can't be updated."""

    def __init__(self, library: str, reason: str):
        self.library = library
        super().__init__(
            f"Failed to update install name of library '{library}': {reason}"
        )


class RPathUpdateError(DynamicLibraryError):
    """Exception raised when the executable's rpath can't be updated."""


class RelativeOutputPathError(DynamicLibraryError):
    """Exception raised when the output directory has no relative path from
    the executable's directory."""


class RelativeOriginalPathError(DynamicLibraryError):
    """Exception raised when a library has no relative path from the
    search directory."""

    def __init__(self, library: str, reason: str):
        self.library = library
        super().__init__(reason)


class ResourceBundleError(BundlerError):
    """Base class for resource bundle failures."""


class BundleEnumerationError(ResourceBundleError):
    """Exception raised when the source directory can't be listed."""


class BundleCopyError(ResourceBundleError):
    """Exception raised when a bundle can't be copied verbatim."""

    def __init__(self, bundle: str, reason: str):
        self.bundle = bundle
        super().__init__(f"Failed to copy bundle '{bundle}': {reason}")


class BundleStructureError(ResourceBundleError):
    """Exception raised when the bundle directory structure can't be made."""


class ManifestError(ResourceBundleError):
    """Exception raised when a bundle's Info.plist can't be created."""


class BundleContentsEnumerationError(ResourceBundleError):
    """Exception raised when a bundle's contents can't be listed."""


class ResourceCopyError(ResourceBundleError):
    """Exception raised when a resource can't be copied into a bundle."""

    def __init__(self, resource: str, bundle: str, reason: str):
        self.resource = resource
        self.bundle = bundle
        super().__init__(
            f"Failed to copy resource '{resource}' of bundle '{bundle}': "
            f"{reason}"
        )


class ShaderCompilationError(ResourceBundleError):
    """Exception raised when a bundle's Metal shaders fail to compile."""


class PlistError(BundlerError):
    """Exception raised when a property list can't be written."""


class MetalCompilerError(BundlerError):
    """Exception raised when the Metal toolchain fails."""


# ----------------------------------------------------------------------------
# Logging configuration


class CustomFormatter(logging.Formatter):
    """Custom logging formatting class with color support."""

    class color:
        """Text colors for terminal output."""

        white = "\x1b[97;20m"
        grey = "\x1b[38;20m"
        green = "\x1b[32;20m"
        yellow = "\x1b[33;20m"
        red = "\x1b[31;20m"
        bold_red = "\x1b[31;1m"
        reset = "\x1b[0m"

    cfmt = (
        f"{color.white}%(delta)s{color.reset} - "
        f"{{}}%(levelname)s{color.reset} - "
        f"{color.white}%(name)s.%(funcName)s{color.reset} - "
        f"{color.grey}%(message)s{color.reset}"
    )

    FORMATS = {
        logging.DEBUG: cfmt.format(color.grey),
        logging.INFO: cfmt.format(color.green),
        logging.WARNING: cfmt.format(color.yellow),
        logging.ERROR: cfmt.format(color.red),
        logging.CRITICAL: cfmt.format(color.bold_red),
    }

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color
        self.fmt = (
            "%(delta)s - %(levelname)s - %(name)s.%(funcName)s - %(message)s"
        )

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with color if enabled."""
        if not self.use_color:
            log_fmt = self.fmt
        else:
            log_fmt = self.FORMATS[record.levelno]
        duration = datetime.datetime.fromtimestamp(
            record.relativeCreated / 1000, datetime.timezone.utc
        )
        record.delta = duration.strftime("%H:%M:%S")
        formatter = logging.Formatter(log_fmt)
        return formatter.format(record)


def setup_logging(debug: bool = True, use_color: bool = True) -> None:
    """Configure logging for the application.

    Args:
        debug: Whether to enable debug logging
        use_color: Whether to use colored output
    """
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(CustomFormatter(use_color))
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        handlers=[stream_handler],
        force=True,
    )


# ----------------------------------------------------------------------------
# Path utilities


def _normalize_path(path: Pathlike | PurePath) -> PurePath:
    if not isinstance(path, PurePath) or isinstance(path, Path):
        return Path(os.path.abspath(path))
    pathmod = ntpath if isinstance(path, PureWindowsPath) else posixpath
    return type(path)(pathmod.normpath(str(path)))


def relative_path(target: Pathlike, base: Pathlike) -> str | None:
    """Compute the relative path leading from directory base to target.

    Both paths are made absolute against the working directory and ``..``
    components are collapsed. Symlinks are not resolved. Pure paths of a
    foreign flavour (e.g. PureWindowsPath on macOS) are only normalized.

    Args:
        target: The location to reach
        base: The directory to start from

    Returns:
        A '/' separated relative path ("." if both are equal), or None if
        the two paths share no anchor (e.g. different drives)
    """
    target = _normalize_path(target)
    base = _normalize_path(base)

    if target.anchor != base.anchor:
        return None

    target_parts = target.parts
    base_parts = base.parts
    common = 0
    for target_part, base_part in zip(target_parts, base_parts):
        if target_part != base_part:
            break
        common += 1

    parts = [".."] * (len(base_parts) - common)
    parts.extend(target_parts[common:])
    return "/".join(parts) or "."


# ----------------------------------------------------------------------------
# Command execution utilities


class ProcessRegistry:
    """Tracks running child processes so they can be killed on exit.

    Processes are registered for the duration of a ``track()`` block. The
    registry is never used for scheduling; its only job is making sure a
    cancelled run doesn't leave tools running in the background.

    Example:
        registry = ProcessRegistry()
        registry.install_signal_handlers()
        run_command(["swift", "build"], registry=registry)
    """

    def __init__(self):
        self._processes: list[subprocess.Popen] = []
        self._lock = threading.RLock()
        self.log = logging.getLogger(self.__class__.__name__)

    def __len__(self) -> int:
        with self._lock:
            return len(self._processes)

    def __contains__(self, process: object) -> bool:
        with self._lock:
            return process in self._processes

    def register(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._processes.append(process)

    def deregister(self, process: subprocess.Popen) -> None:
        with self._lock:
            if process in self._processes:
                self._processes.remove(process)

    @contextlib.contextmanager
    def track(self, process: subprocess.Popen):
        """Register process for the duration of the block."""
        self.register(process)
        try:
            yield process
        finally:
            self.deregister(process)

    def terminate_all(self, grace_period: float = 5.0) -> None:
        """Terminate every registered process that is still running.

        Args:
            grace_period: Seconds to wait after SIGTERM before SIGKILL
        """
        with self._lock:
            processes = list(self._processes)
        for process in processes:
            if process.poll() is not None:
                continue
            self.log.debug("terminating process %s", process.pid)
            process.terminate()
        for process in processes:
            try:
                process.wait(timeout=grace_period)
            except subprocess.TimeoutExpired:
                self.log.warning("killing unresponsive process %s", process.pid)
                process.kill()
                process.wait()

    def _handle_signal(self, signum: int, frame: object) -> None:
        self.terminate_all()
        sys.exit(128 + signum)

    def install_signal_handlers(self) -> None:
        """Terminate registered processes on SIGINT and SIGTERM."""
        signal.signal(signal.SIGINT, self._handle_signal)
        signal.signal(signal.SIGTERM, self._handle_signal)


# Process registry shared by the whole program
PROCESSES = ProcessRegistry()


def run_command(
    command: list[str],
    cwd: Pathlike | None = None,
    log: logging.Logger | None = None,
    registry: ProcessRegistry | None = None,
) -> str:
    """Run a command and return its output.

    This is the consolidated command execution utility used throughout
    the module. Uses shell=False. There is no timeout: a hung tool hangs
    the caller until it is cancelled.

    Args:
        command: The command as a list of arguments
        cwd: Optional working directory
        log: Optional logger for debug output
        registry: Registry tracking the child (default: PROCESSES)

    Returns:
        The command stdout output

    Raises:
        CommandLaunchError: If the command can't be started
        CommandError: If the command exits with a non-zero status
        InvalidOutputError: If stdout isn't valid UTF-8
    """
    registry = PROCESSES if registry is None else registry
    cmd_str = " ".join(command)
    if log:
        log.debug("%s", cmd_str)
    try:
        process = subprocess.Popen(
            command,
            shell=False,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        raise CommandLaunchError(cmd_str, str(e)) from e

    with registry.track(process):
        stdout, stderr = process.communicate()

    if process.returncode != 0:
        raise CommandError(
            cmd_str,
            process.returncode,
            stderr.decode("utf-8", errors="replace") or None,
        )
    try:
        return stdout.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidOutputError(cmd_str, stdout) from e


# ----------------------------------------------------------------------------
# Mach-O inspection

# Mach-O magic numbers for binary validation
MACHO_MAGIC_NUMBERS = {
    b"\xfe\xed\xfa\xce",  # MH_MAGIC (32-bit)
    b"\xce\xfa\xed\xfe",  # MH_CIGAM (32-bit, reverse byte order)
    b"\xfe\xed\xfa\xcf",  # MH_MAGIC_64 (64-bit)
    b"\xcf\xfa\xed\xfe",  # MH_CIGAM_64 (64-bit, reverse byte order)
    b"\xca\xfe\xba\xbe",  # FAT_MAGIC (universal binary)
    b"\xbe\xba\xfe\xca",  # FAT_CIGAM (universal binary, reverse byte order)
}


def is_valid_macho(path: Pathlike) -> bool:
    """Check if a file is a valid Mach-O binary.

    Args:
        path: Path to the file to check

    Returns:
        True if the file is a valid Mach-O binary, False otherwise
    """
    path = Path(path)
    if not path.is_file():
        return False

    try:
        with open(path, "rb") as f:
            magic = f.read(4)
        return magic in MACHO_MAGIC_NUMBERS
    except OSError:
        return False


def read_rpaths(binary: Pathlike) -> list[str]:
    """Return the LC_RPATH entries of a Mach-O binary, in load order.

    Entries of every architecture of a universal binary are merged.
    Anything that isn't a Mach-O binary has no rpaths.

    Raises:
        ValidationError: If the binary has a Mach-O magic number but can't
            be parsed
    """
    if not is_valid_macho(binary):
        return []

    try:
        headers = MachO(str(binary)).headers
    except (ValueError, struct.error, EOFError, OSError) as e:
        raise ValidationError(f"Malformed Mach-O binary {binary}: {e}") from e

    rpaths: list[str] = []
    for header in headers:
        for load_command, _command, data in header.commands:
            if load_command.cmd != LC_RPATH:
                continue
            rpath = data.rstrip(b"\x00").decode("utf-8")
            if rpath not in rpaths:
                rpaths.append(rpath)
    return rpaths


# ----------------------------------------------------------------------------
# Build products


class BuildConfiguration(enum.Enum):
    """A Swift build configuration."""

    DEBUG = "debug"
    RELEASE = "release"

    @property
    def capitalized(self) -> str:
        return self.value.capitalize()


def get_target_triple(log: logging.Logger | None = None) -> str:
    """Get the host's unversioned target triple from the Swift toolchain.

    Returns:
        The triple, e.g. "arm64-apple-macosx"

    Raises:
        TargetTripleError: If swift fails to run or its output isn't UTF-8
        TargetInfoParseError: If the output isn't JSON
        TargetInfoFormatError: If target.unversionedTriple is missing
    """
    command = [get_tool(ENV_SWIFT, "/usr/bin/swift"), "-print-target-info"]
    try:
        output = run_command(command, log=log)
    except ProcessError as e:
        raise TargetTripleError(f"Failed to get target triple: {e}") from e

    try:
        target_info = json.loads(output)
    except json.JSONDecodeError as e:
        raise TargetInfoParseError(
            f"Failed to deserialize target info: {e}"
        ) from e

    target = (
        target_info.get("target") if isinstance(target_info, dict) else None
    )
    triple = target.get("unversionedTriple") if isinstance(target, dict) else None
    if not isinstance(triple, str):
        raise TargetInfoFormatError(
            "Invalid target info: missing 'target.unversionedTriple'"
        )
    return triple


def get_products_directory(
    package_dir: Pathlike,
    configuration: BuildConfiguration,
    universal: bool,
    log: logging.Logger | None = None,
) -> Path:
    """Get the products directory of a package's build.

    Universal builds are merged into an architecture independent directory
    so no toolchain query is needed for them.

    Args:
        package_dir: The package's root directory
        configuration: The build configuration
        universal: Whether the build is a universal build

    Returns:
        The products directory

    Raises:
        ToolchainError: If the target triple can't be determined
    """
    build_dir = Path(package_dir) / BUILD_DIRECTORY
    if universal:
        return (
            build_dir
            / UNIVERSAL_VENDOR_DIRECTORY
            / "Products"
            / configuration.capitalized
        )
    return build_dir / get_target_triple(log) / configuration.value


# ----------------------------------------------------------------------------
# Dynamic library relocation


class BuildKind(enum.Enum):
    """The tool that produced a build."""

    SWIFTPM = "swiftpm"
    XCODE = "xcodebuild"


class LibraryKind(enum.Enum):
    """How a dynamic library is packaged in a products directory."""

    STANDALONE = "standalone"
    FRAMEWORK = "framework"


@dataclass(frozen=True)
class LibraryReference:
    """A dynamic library found in a products directory.

    :ivar name: Logical name, e.g. ``Foo`` for ``libFoo.dylib``
    :ivar path: The file backing the library
    :ivar kind: Whether the library is a bare dylib or inside a framework
    """

    name: str
    path: Path
    kind: LibraryKind

    @property
    def output_name(self) -> str:
        """The file name of the library once copied into a bundle."""
        return f"{LIBRARY_PREFIX}{self.name}{SHARED_LIBRARY_EXTENSION}"


def library_name(filename: str) -> str:
    """Derive a library's logical name from a dylib file name."""
    stem = Path(filename).stem
    if stem[: len(LIBRARY_PREFIX)].lower() == LIBRARY_PREFIX:
        return stem[len(LIBRARY_PREFIX) :]
    return stem


def framework_library_path(framework: Path) -> Path:
    """Locate the library inside a framework.

    Only ``Versions/A`` frameworks are supported.
    """
    return framework / FRAMEWORK_LIBRARY_SUBPATH / framework.stem


def rpath_token(directory: str, filename: str) -> str:
    if directory == ".":
        return f"@rpath/{filename}"
    return f"@rpath/{directory}/{filename}"


class DynamicLibraryRelocator:
    """Copies a build's dynamic libraries into an app bundle.

    The executable's load commands are rewritten with install_name_tool so
    each library is found at its new location relative to the executable.

    Args:
        log: Logger to report progress to
        registry: Process registry for spawned tools

    Example:
        relocator = DynamicLibraryRelocator()
        relocator.relocate(
            products_dir=Path(".build/arm64-apple-macosx/release"),
            output_dir=Path("MyApp.app/Contents/Libraries"),
            executable=Path("MyApp.app/Contents/MacOS/MyApp"),
            build_kind=BuildKind.SWIFTPM,
            universal=False,
        )
    """

    def __init__(
        self,
        log: logging.Logger | None = None,
        registry: ProcessRegistry | None = None,
    ):
        self.log = log or logging.getLogger(self.__class__.__name__)
        self.registry = registry

    def run_command(self, command: list[str]) -> str:
        return run_command(command, log=self.log, registry=self.registry)

    def search_directory(self, products_dir: Path, build_kind: BuildKind) -> Path:
        """Return the directory libraries are enumerated from."""
        if build_kind is BuildKind.XCODE:
            return products_dir / PACKAGE_FRAMEWORKS_DIRECTORY
        return products_dir

    def enumerate(
        self, search_dir: Pathlike, build_kind: BuildKind
    ) -> list[LibraryReference]:
        """Enumerate the dynamic libraries directly inside search_dir.

        xcodebuild builds are searched for frameworks, and the library
        inside each framework is returned. SwiftPM builds are searched for
        bare dylibs.

        Raises:
            LibraryEnumerationError: If search_dir can't be listed
        """
        search_dir = Path(search_dir)
        try:
            contents = sorted(search_dir.iterdir())
        except OSError as e:
            raise LibraryEnumerationError(
                f"Failed to enumerate dynamic libraries in {search_dir}: {e}"
            ) from e

        libraries = []
        for entry in contents:
            if build_kind is BuildKind.XCODE:
                if entry.suffix != FRAMEWORK_EXTENSION:
                    continue
                libraries.append(
                    LibraryReference(
                        entry.stem,
                        framework_library_path(entry),
                        LibraryKind.FRAMEWORK,
                    )
                )
            elif entry.suffix == SHARED_LIBRARY_EXTENSION:
                libraries.append(
                    LibraryReference(
                        library_name(entry.name), entry, LibraryKind.STANDALONE
                    )
                )
        return libraries

    def add_base_rpath(self, executable: Path) -> None:
        """Add BASE_RPATH to the executable unless it is already there.

        Raises:
            RPathUpdateError: If the executable can't be read or
                install_name_tool fails
        """
        try:
            rpaths = read_rpaths(executable)
        except ValidationError as e:
            raise RPathUpdateError(
                f"Failed to read rpaths of {executable}: {e}"
            ) from e
        if BASE_RPATH in rpaths:
            self.log.debug("%s already has rpath %s", executable, BASE_RPATH)
            return

        command = [
            get_tool(ENV_INSTALL_NAME_TOOL, "/usr/bin/install_name_tool"),
            "-add_rpath",
            BASE_RPATH,
            str(executable),
        ]
        try:
            self.run_command(command)
        except ProcessError as e:
            raise RPathUpdateError(
                f"Failed to update rpath of {executable}: {e}"
            ) from e

    def change_install_name(
        self, executable: Path, library: LibraryReference, old: str, new: str
    ) -> None:
        """Rewrite the executable's reference to library from old to new.

        Raises:
            InstallNameError: If install_name_tool fails
        """
        command = [
            get_tool(ENV_INSTALL_NAME_TOOL, "/usr/bin/install_name_tool"),
            "-change",
            old,
            new,
            str(executable),
        ]
        try:
            self.run_command(command)
        except ProcessError as e:
            raise InstallNameError(library.name, str(e)) from e

    def copy_library(self, library: LibraryReference, output_dir: Path) -> Path:
        """Copy library into output_dir under its canonical name.

        An existing file with the same name is overwritten.

        Raises:
            LibraryCopyError: If the copy fails
        """
        destination = output_dir / library.output_name
        self.log.debug("copying %s to %s", library.path, destination)
        try:
            shutil.copy2(library.path, destination)
        except OSError as e:
            raise LibraryCopyError(library.name, str(e)) from e
        return destination

    def relocate(
        self,
        products_dir: Pathlike,
        output_dir: Pathlike,
        executable: Pathlike,
        build_kind: BuildKind,
        universal: bool,
    ) -> list[Path]:
        """Copy the dynamic libraries of a build to output_dir.

        Stops at the first failure. Libraries copied and references
        rewritten before the failure are left in place.

        Args:
            products_dir: The build's products directory
            output_dir: Directory to copy the libraries to
            executable: The executable whose load commands are rewritten
            build_kind: The tool that produced the build
            universal: Whether the build is a universal SwiftPM build

        Returns:
            The copied libraries

        Raises:
            DynamicLibraryError: If any step fails
        """
        products_dir = Path(products_dir)
        output_dir = Path(output_dir)
        executable = Path(executable)
        self.log.info("Copying dynamic libraries")

        if universal or build_kind is BuildKind.XCODE:
            self.add_base_rpath(executable)

        search_dir = self.search_directory(products_dir, build_kind)
        libraries = self.enumerate(search_dir, build_kind)

        output_relative_path = relative_path(output_dir, executable.parent)
        if output_relative_path is None:
            raise RelativeOutputPathError(
                f"Failed to get relative path from {executable.parent} "
                f"to {output_dir}"
            )

        copied = []
        for library in libraries:
            self.log.info("Copying dynamic library '%s'", library.name)
            copied.append(self.copy_library(library, output_dir))

            original_relative_path = relative_path(library.path, search_dir)
            if original_relative_path is None:
                raise RelativeOriginalPathError(
                    library.name,
                    f"Failed to get relative path from {search_dir} "
                    f"to {library.path}",
                )

            self.change_install_name(
                executable,
                library,
                f"@rpath/{original_relative_path}",
                rpath_token(output_relative_path, library.output_name),
            )
        return copied


# ----------------------------------------------------------------------------
# Info.plist and Metal shaders


def create_resource_bundle_info_plist(
    path: Pathlike,
    bundle_name: str,
    min_macos_version: str,
    identifier_prefix: str = DEFAULT_BUNDLE_ID,
) -> None:
    """Write the Info.plist of a resource bundle.

    Args:
        path: Where to write the Info.plist
        bundle_name: Bundle name without extension
        min_macos_version: Minimum macOS version the bundle supports
        identifier_prefix: Prefix of the bundle identifier

    Raises:
        PlistError: If the file can't be written
    """
    content = RESOURCE_BUNDLE_INFO_PLIST_TMPL.format(
        bundle_identifier=f"{identifier_prefix}.{bundle_name}",
        bundle_name=bundle_name,
        min_system_version=min_macos_version,
    )
    try:
        with open(path, "w", encoding="utf-8") as fopen:
            fopen.write(content)
    except OSError as e:
        raise PlistError(f"Failed to write {path}: {e}") from e


def compile_metal_shaders(
    directory: Pathlike,
    keep_sources: bool,
    log: logging.Logger | None = None,
) -> Path | None:
    """Compile the Metal shaders in a directory into default.metallib.

    Args:
        directory: Directory containing .metal sources
        keep_sources: If False, the sources are deleted once compiled

    Returns:
        The compiled library, or None if there was nothing to compile

    Raises:
        MetalCompilerError: If compilation fails
    """
    directory = Path(directory)
    sources = sorted(directory.glob(f"*{METAL_SOURCE_EXTENSION}"))
    if not sources:
        return None

    if log:
        log.info("Compiling %d metal shader(s) in %s", len(sources), directory)

    xcrun = get_tool(ENV_XCRUN, "/usr/bin/xcrun")
    air_files = []
    try:
        for source in sources:
            air_file = source.with_suffix(METAL_AIR_EXTENSION)
            run_command(
                [xcrun, "-sdk", "macosx", "metal",
                 "-c", str(source), "-o", str(air_file)],
                log=log,
            )
            air_files.append(air_file)

        metallib = directory / METAL_LIBRARY_FILENAME
        run_command(
            [xcrun, "-sdk", "macosx", "metallib"]
            + [str(f) for f in air_files]
            + ["-o", str(metallib)],
            log=log,
        )
    except ProcessError as e:
        raise MetalCompilerError(f"Failed to compile metal shaders: {e}") from e

    try:
        for air_file in air_files:
            air_file.unlink()
        if not keep_sources:
            for source in sources:
                source.unlink()
    except OSError as e:
        raise MetalCompilerError(
            f"Failed to clean up metal shader sources: {e}"
        ) from e
    return metallib


# ----------------------------------------------------------------------------
# Resource bundles


class ResourceBundleNormalizer:
    """Copies resource bundles into an app, fixing up SwiftPM bundles.

    SwiftPM generates flat bundles; xcodebuild generates bundles with the
    ``Contents/Resources`` layout the bundle loader expects. Bundles are
    either copied as is, or restructured with an Info.plist and compiled
    Metal shaders.

    Args:
        identifier_prefix: Prefix of the generated bundle identifiers
        log: Logger to report progress to
    """

    def __init__(
        self,
        identifier_prefix: str = DEFAULT_BUNDLE_ID,
        log: logging.Logger | None = None,
    ):
        self.identifier_prefix = identifier_prefix
        self.log = log or logging.getLogger(self.__class__.__name__)

    def enumerate(self, source_dir: Pathlike) -> list[Path]:
        """List the bundle directories directly inside source_dir.

        Raises:
            BundleEnumerationError: If source_dir can't be listed
        """
        source_dir = Path(source_dir)
        try:
            contents = sorted(source_dir.iterdir())
        except OSError as e:
            raise BundleEnumerationError(
                f"Failed to enumerate bundles in {source_dir}: {e}"
            ) from e
        return [
            entry
            for entry in contents
            if entry.suffix == BUNDLE_EXTENSION and entry.is_dir()
        ]

    def normalize(
        self,
        source_dir: Pathlike,
        destination_dir: Pathlike,
        fix_bundles: bool,
        min_macos_version: str = DEFAULT_MIN_MACOS_VERSION,
    ) -> list[Path]:
        """Copy the bundles in source_dir into destination_dir.

        Stops at the first failure; bundles already processed stay on disk.

        Args:
            source_dir: Directory containing generated bundles
            destination_dir: Directory to copy the bundles to
            fix_bundles: If False, bundles are copied unmodified
            min_macos_version: Used for the Info.plist of fixed bundles

        Returns:
            The bundles created in destination_dir

        Raises:
            ResourceBundleError: If any bundle can't be processed
        """
        destination_dir = Path(destination_dir)
        created = []
        for bundle in self.enumerate(source_dir):
            if fix_bundles:
                created.append(
                    self.fix_and_copy_bundle(
                        bundle, destination_dir, min_macos_version
                    )
                )
            else:
                created.append(self.copy_bundle(bundle, destination_dir))
        return created

    def copy_bundle(self, bundle: Path, destination_dir: Path) -> Path:
        """Copy a bundle verbatim, overwriting existing files."""
        self.log.info("Copying resource bundle '%s'", bundle.name)
        destination = destination_dir / bundle.name
        try:
            shutil.copytree(bundle, destination, dirs_exist_ok=True)
        except (OSError, shutil.Error) as e:
            raise BundleCopyError(bundle.name, str(e)) from e
        return destination

    def fix_and_copy_bundle(
        self, bundle: Path, destination_dir: Path, min_macos_version: str
    ) -> Path:
        """Copy a flat SwiftPM bundle into the canonical layout.

        Creates ``Contents/Info.plist`` and ``Contents/Resources``, copies
        the bundle's contents into ``Resources`` and compiles any Metal
        shaders found there, deleting their sources.
        """
        self.log.info("Fixing and copying resource bundle '%s'", bundle.name)
        destination = destination_dir / bundle.name
        resources = destination / "Contents" / "Resources"

        self.create_structure(destination)
        self.create_info_plist(destination, min_macos_version)
        self.copy_resources(bundle, resources)
        try:
            compile_metal_shaders(resources, keep_sources=False, log=self.log)
        except MetalCompilerError as e:
            raise ShaderCompilationError(
                f"Failed to compile metal shaders of '{bundle.name}': {e}"
            ) from e
        return destination

    def create_structure(self, bundle: Path) -> None:
        try:
            (bundle / "Contents" / "Resources").mkdir(
                parents=True, exist_ok=True
            )
        except OSError as e:
            raise BundleStructureError(
                f"Failed to create bundle directory {bundle}: {e}"
            ) from e

    def create_info_plist(self, bundle: Path, min_macos_version: str) -> None:
        try:
            create_resource_bundle_info_plist(
                bundle / "Contents" / MANIFEST_FILENAME,
                bundle.stem,
                min_macos_version,
                self.identifier_prefix,
            )
        except PlistError as e:
            raise ManifestError(
                f"Failed to create Info.plist for '{bundle.name}': {e}"
            ) from e

    def copy_resources(self, source: Path, destination: Path) -> None:
        """Copy each entry of source into destination (one level)."""
        try:
            contents = sorted(source.iterdir())
        except OSError as e:
            raise BundleContentsEnumerationError(
                f"Failed to enumerate contents of {source}: {e}"
            ) from e

        for entry in contents:
            target = destination / entry.name
            try:
                if entry.is_dir():
                    shutil.copytree(entry, target, dirs_exist_ok=True)
                else:
                    shutil.copy2(entry, target)
            except (OSError, shutil.Error) as e:
                raise ResourceCopyError(entry.name, source.name, str(e)) from e


# ----------------------------------------------------------------------------
# App bundle


class AppBundle:
    """Creates a macOS application bundle from a built Swift product.

    Args:
        package_dir: Root directory of the Swift package
        product: Name of the executable product
        configuration: Build configuration (default: release)
        build_kind: The tool that produced the build (default: SwiftPM)
        universal: Whether the build is universal
        output_dir: Directory the .app is created in (default: package_dir)
        products_dir: Explicit products directory, skips the lookup
        version: Bundle version string
        identifier: Bundle identifier (default: DEFAULT_BUNDLE_ID.product)
        min_macos_version: Minimum macOS version
        icon: Path to an .icns file to include in the bundle
        codesign: Whether to apply ad-hoc code signing (default: True)
        log: Logger to report progress to

    Example:
        bundle = AppBundle("./MyPackage", "MyApp")
        bundle.create()
    """

    def __init__(
        self,
        package_dir: Pathlike,
        product: str,
        configuration: BuildConfiguration = BuildConfiguration.RELEASE,
        build_kind: BuildKind = BuildKind.SWIFTPM,
        universal: bool = False,
        output_dir: Pathlike | None = None,
        products_dir: Pathlike | None = None,
        version: str = DEFAULT_VERSION,
        identifier: str | None = None,
        min_macos_version: str = DEFAULT_MIN_MACOS_VERSION,
        icon: Pathlike | None = None,
        codesign: bool = True,
        log: logging.Logger | None = None,
    ):
        self.package_dir = Path(package_dir)
        self.product = product
        self.configuration = configuration
        self.build_kind = build_kind
        self.universal = universal
        self.products_dir = Path(products_dir) if products_dir else None
        self.version = version
        self.identifier = identifier or f"{DEFAULT_BUNDLE_ID}.{product}"
        self.min_macos_version = min_macos_version
        self.icon = Path(icon) if icon else None
        self.codesign = codesign
        self.log = log or logging.getLogger(self.__class__.__name__)

        output_dir = Path(output_dir) if output_dir else self.package_dir
        self.bundle = output_dir / f"{product}.app"
        self.contents = self.bundle / "Contents"
        self.macos = self.contents / "MacOS"
        self.libraries = self.contents / "Libraries"
        self.resources = self.contents / "Resources"
        self.info_plist = self.contents / "Info.plist"
        self.pkg_info = self.contents / "PkgInfo"
        self.executable = self.macos / product

    def locate_products(self) -> Path:
        if self.products_dir is None:
            self.products_dir = get_products_directory(
                self.package_dir, self.configuration, self.universal, self.log
            )
        self.log.debug("products directory: %s", self.products_dir)
        return self.products_dir

    def create_structure(self) -> None:
        """Create the bundle's directory structure."""
        for folder in (self.macos, self.libraries, self.resources):
            try:
                folder.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FileError(f"Failed to create {folder}: {e}") from e

    def create_executable(self, products_dir: Path) -> None:
        """Copy the product's executable into the bundle."""
        source = products_dir / self.product
        if not source.is_file():
            raise ValidationError(f"Product executable not found: {source}")
        try:
            shutil.copy2(source, self.executable)
            oldmode = os.stat(self.executable).st_mode
            os.chmod(
                self.executable,
                oldmode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH,
            )
        except OSError as e:
            raise FileError(f"Failed to copy executable {source}: {e}") from e

    def create_info_plist(self) -> None:
        content = APP_INFO_PLIST_TMPL.format(
            executable=self.product,
            icon_file=self.icon.name if self.icon else "AppIcon.icns",
            bundle_identifier=self.identifier,
            bundle_name=self.product,
            bundle_version=self.version,
            min_system_version=self.min_macos_version,
        )
        try:
            with open(self.info_plist, "w", encoding="utf-8") as fopen:
                fopen.write(content)
            with open(self.pkg_info, "w", encoding="utf-8") as fopen:
                fopen.write(PKG_INFO_CONTENT)
        except OSError as e:
            raise FileError(f"Failed to write {self.info_plist}: {e}") from e

    def copy_icon(self) -> None:
        if not self.icon:
            return
        if not self.icon.is_file():
            raise ValidationError(f"Icon file does not exist: {self.icon}")
        try:
            shutil.copy2(self.icon, self.resources / self.icon.name)
        except OSError as e:
            raise FileError(f"Failed to copy icon {self.icon}: {e}") from e
        self.log.info("Added icon: %s", self.icon.name)

    def adhoc_codesign(self) -> None:
        """Re-sign the bundle, install_name_tool invalidates signatures."""
        if not self.codesign:
            return
        self.log.info("codesign %s", self.bundle)
        run_command(
            [
                get_tool(ENV_CODESIGN, "/usr/bin/codesign"),
                "--force",
                "--deep",
                "--sign",
                "-",
                str(self.bundle),
            ],
            log=self.log,
        )

    def create(self) -> Path:
        """Create the complete bundle.

        Returns:
            Path to the created bundle
        """
        products_dir = self.locate_products()
        self.log.info("Creating bundle at %s", self.bundle)

        self.create_structure()
        self.create_executable(products_dir)
        self.create_info_plist()
        self.copy_icon()

        DynamicLibraryRelocator(log=self.log).relocate(
            products_dir,
            self.libraries,
            self.executable,
            self.build_kind,
            self.universal,
        )
        ResourceBundleNormalizer(self.identifier, log=self.log).normalize(
            products_dir,
            self.resources,
            fix_bundles=self.build_kind is BuildKind.SWIFTPM,
            min_macos_version=self.min_macos_version,
        )
        self.adhoc_codesign()

        self.log.info("Bundle created successfully: %s", self.bundle)
        return self.bundle


# ----------------------------------------------------------------------------
# Functional API


def make_bundle(package_dir: Pathlike, product: str, **kwargs: object) -> Path:
    """Create an app bundle for a built product.

    This is a convenience function that creates an AppBundle instance
    and calls create() on it. Keyword arguments are passed to AppBundle.

    Example:
        bundle_path = make_bundle("./MyPackage", "MyApp", version="2.0")
    """
    return AppBundle(package_dir, product, **kwargs).create()


# ----------------------------------------------------------------------------
# Command-line interface


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    """Add common options to a parser."""
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="enable verbose/debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="disable colored output",
    )


def _add_build_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--xcode",
        action="store_true",
        help="the build was produced by xcodebuild",
    )
    parser.add_argument(
        "-u",
        "--universal",
        action="store_true",
        help="the build is a universal (arm64 + x86_64) build",
    )


def _cmd_bundle(args: argparse.Namespace) -> None:
    """Handle 'bundle' subcommand."""
    config = load_config(Path(args.config) if args.config else None)

    product = args.product or get_config_value(config, "bundle", "product")
    if not product:
        raise ConfigurationError("No product specified")
    configuration = args.configuration or get_config_value(
        config, "bundle", "configuration", BuildConfiguration.RELEASE.value
    )
    try:
        build_configuration = BuildConfiguration(configuration)
    except ValueError as e:
        raise ConfigurationError(
            f"Invalid build configuration: '{configuration}'"
        ) from e

    bundle = AppBundle(
        package_dir=Path(args.package),
        product=product,
        configuration=build_configuration,
        build_kind=BuildKind.XCODE if args.xcode else BuildKind.SWIFTPM,
        universal=args.universal,
        output_dir=args.output,
        products_dir=args.products_dir,
        version=args.version
        or get_config_value(config, "bundle", "version", DEFAULT_VERSION)
        or DEFAULT_VERSION,
        identifier=args.identifier
        or get_config_value(config, "bundle", "identifier"),
        min_macos_version=args.min_macos_version
        or get_config_value(
            config, "bundle", "min_macos_version", DEFAULT_MIN_MACOS_VERSION
        )
        or DEFAULT_MIN_MACOS_VERSION,
        icon=args.icon or get_config_value(config, "bundle", "icon"),
        codesign=not args.no_sign,
    )
    bundle_path = bundle.create()
    logging.getLogger("appbundler").info("Created: %s", bundle_path)


def _cmd_relocate(args: argparse.Namespace) -> None:
    """Handle 'relocate' subcommand."""
    relocator = DynamicLibraryRelocator()
    relocator.relocate(
        products_dir=Path(args.products_dir),
        output_dir=Path(args.output_dir),
        executable=Path(args.executable),
        build_kind=BuildKind.XCODE if args.xcode else BuildKind.SWIFTPM,
        universal=args.universal,
    )


def _cmd_resources(args: argparse.Namespace) -> None:
    """Handle 'resources' subcommand."""
    normalizer = ResourceBundleNormalizer(identifier_prefix=args.id)
    normalizer.normalize(
        source_dir=Path(args.source),
        destination_dir=Path(args.destination),
        fix_bundles=args.fix,
        min_macos_version=args.min_macos_version,
    )


def _cmd_products(args: argparse.Namespace) -> None:
    """Handle 'products' subcommand."""
    products_dir = get_products_directory(
        Path(args.package),
        BuildConfiguration(args.configuration),
        args.universal,
    )
    print(products_dir)


def main() -> None:
    """Command line interface for appbundler."""
    try:
        parser = argparse.ArgumentParser(
            prog="appbundler",
            description="Package Swift build products into macOS app bundles.",
            epilog=(
                "Examples:\n"
                "  appbundler bundle MyApp -p ./MyPackage\n"
                "  appbundler products -p ./MyPackage -c debug\n"
                "  appbundler resources .build/debug MyApp.app/Contents/Resources --fix\n"
            ),
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        subparsers = parser.add_subparsers(
            title="commands",
            dest="command",
            required=True,
        )

        # --- bundle subcommand ---
        bundle_parser = subparsers.add_parser(
            "bundle",
            help="create an .app bundle from a built product",
            description="Create a macOS .app bundle from a built Swift product.",
        )
        bundle_parser.add_argument(
            "product",
            nargs="?",
            help="name of the executable product (default: from config)",
        )
        bundle_parser.add_argument(
            "-p",
            "--package",
            default=".",
            metavar="DIR",
            help="root directory of the package (default: .)",
        )
        bundle_parser.add_argument(
            "-o",
            "--output",
            metavar="DIR",
            help="directory to create the bundle in (default: package root)",
        )
        bundle_parser.add_argument(
            "-c",
            "--configuration",
            choices=[c.value for c in BuildConfiguration],
            help="build configuration (default: release)",
        )
        bundle_parser.add_argument(
            "--products-dir",
            metavar="DIR",
            help="products directory (default: derived from the build)",
        )
        bundle_parser.add_argument(
            "-v",
            "--version",
            help=f"bundle version (default: {DEFAULT_VERSION})",
        )
        bundle_parser.add_argument(
            "-i",
            "--identifier",
            help=f"bundle identifier (default: {DEFAULT_BUNDLE_ID}.PRODUCT)",
        )
        bundle_parser.add_argument(
            "--min-macos-version",
            metavar="VERSION",
            help=f"minimum macOS version (default: {DEFAULT_MIN_MACOS_VERSION})",
        )
        bundle_parser.add_argument(
            "--icon",
            metavar="FILE",
            help="path to icon file (.icns)",
        )
        bundle_parser.add_argument(
            "--config",
            metavar="FILE",
            help="configuration file (default: .appbundler.toml)",
        )
        bundle_parser.add_argument(
            "--no-sign",
            action="store_true",
            help="disable ad-hoc codesigning",
        )
        _add_build_options(bundle_parser)
        _add_common_options(bundle_parser)
        bundle_parser.set_defaults(func=_cmd_bundle)

        # --- relocate subcommand ---
        relocate_parser = subparsers.add_parser(
            "relocate",
            help="copy a build's dynamic libraries and fix the executable",
            description=(
                "Copy the dynamic libraries of a build to a directory and "
                "rewrite the executable's load commands."
            ),
        )
        relocate_parser.add_argument(
            "products_dir",
            help="the build's products directory",
        )
        relocate_parser.add_argument(
            "output_dir",
            help="directory to copy the libraries to",
        )
        relocate_parser.add_argument(
            "executable",
            help="executable whose load commands are rewritten",
        )
        _add_build_options(relocate_parser)
        _add_common_options(relocate_parser)
        relocate_parser.set_defaults(func=_cmd_relocate)

        # --- resources subcommand ---
        resources_parser = subparsers.add_parser(
            "resources",
            help="copy resource bundles, fixing SwiftPM bundles",
            description="Copy the resource bundles of a build to a directory.",
        )
        resources_parser.add_argument(
            "source",
            help="directory containing the generated bundles",
        )
        resources_parser.add_argument(
            "destination",
            help="directory to copy the bundles to",
        )
        resources_parser.add_argument(
            "--fix",
            action="store_true",
            help="restructure flat bundles, add Info.plist, compile shaders",
        )
        resources_parser.add_argument(
            "--min-macos-version",
            default=DEFAULT_MIN_MACOS_VERSION,
            metavar="VERSION",
            help=f"minimum macOS version (default: {DEFAULT_MIN_MACOS_VERSION})",
        )
        resources_parser.add_argument(
            "-i",
            "--id",
            default=DEFAULT_BUNDLE_ID,
            help=f"bundle identifier prefix (default: {DEFAULT_BUNDLE_ID})",
        )
        _add_common_options(resources_parser)
        resources_parser.set_defaults(func=_cmd_resources)

        # --- products subcommand ---
        products_parser = subparsers.add_parser(
            "products",
            help="print the products directory of a build",
            description="Print the products directory of a package's build.",
        )
        products_parser.add_argument(
            "-p",
            "--package",
            default=".",
            metavar="DIR",
            help="root directory of the package (default: .)",
        )
        products_parser.add_argument(
            "-c",
            "--configuration",
            default=BuildConfiguration.RELEASE.value,
            choices=[c.value for c in BuildConfiguration],
            help="build configuration (default: release)",
        )
        products_parser.add_argument(
            "-u",
            "--universal",
            action="store_true",
            help="the build is a universal build",
        )
        _add_common_options(products_parser)
        products_parser.set_defaults(func=_cmd_products)

        args = parser.parse_args()
        setup_logging(args.verbose, not args.no_color)
        PROCESSES.install_signal_handlers()
        args.func(args)

    except BundlerError as e:
        logging.error(str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
