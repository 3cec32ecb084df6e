"""
Configuration management for calibre-query.

Handles loading and saving user configuration from:
- XDG config directory: ~/.config/calibre-query/config.json
- Fallback: ~/.calibre-query/config.json

At startup the user configuration is resolved into an immutable
LibrarySettings value (library root, database path, opener commands) that is
passed explicitly to the query and dispatch layers.
"""

import json
import logging
import os
import platform
import shlex
from pathlib import Path
from typing import Dict, Any, Optional, List, Tuple
from dataclasses import dataclass, asdict, field

logger = logging.getLogger(__name__)

LIBRARY_ENV_VAR = "CALIBRE_QUERY_LIBRARY"
DATABASE_NAME = "metadata.db"
BACKENDS = ("sqlalchemy", "sqlite3")

# Home-relative locations Calibre offers for a new library
LIBRARY_CANDIDATES = (
    "Calibre Library",
    "Documents/Calibre Library",
    "calibre",
)


@dataclass
class LibraryConfig:
    """Library and query settings."""
    default_path: Optional[str] = None
    backend: str = "sqlalchemy"
    sqlite_executable: str = "sqlite3"
    limit: Optional[int] = None


@dataclass
class OpenerConfig:
    """External commands; empty values fall back to platform defaults."""
    default_opener: Optional[str] = None
    viewer: str = "ebook-viewer"
    editor: Optional[str] = None
    clipboard: Optional[str] = None


@dataclass
class CLIConfig:
    """CLI default options."""
    verbose: bool = False
    color: bool = True


@dataclass
class QueryToolConfig:
    """Main calibre-query configuration."""
    library: LibraryConfig = field(default_factory=LibraryConfig)
    opener: OpenerConfig = field(default_factory=OpenerConfig)
    cli: CLIConfig = field(default_factory=CLIConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "library": asdict(self.library),
            "opener": asdict(self.opener),
            "cli": asdict(self.cli),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QueryToolConfig':
        """Create from dictionary."""
        return cls(
            library=LibraryConfig(**data.get("library", {})),
            opener=OpenerConfig(**data.get("opener", {})),
            cli=CLIConfig(**data.get("cli", {})),
        )


@dataclass(frozen=True)
class LibrarySettings:
    """
    Resolved, read-only settings for one session.

    Built once by resolve_settings() and injected wherever the library root,
    the database or an external command is needed.
    """
    library_root: Path
    db_path: Path
    opener: Tuple[str, ...]
    viewer: Tuple[str, ...]
    editor: Tuple[str, ...]
    clipboard: Tuple[str, ...]
    backend: str = "sqlalchemy"
    sqlite_executable: str = "sqlite3"
    limit: Optional[int] = None


def get_config_path() -> Path:
    """
    Get configuration file path.

    1. ~/.config/calibre-query/config.json when ~/.config exists
    2. Fallback: ~/.calibre-query/config.json

    Returns:
        Path to config file
    """
    xdg_config_home = Path.home() / ".config"
    if xdg_config_home.exists():
        config_dir = xdg_config_home / "calibre-query"
    else:
        config_dir = Path.home() / ".calibre-query"

    return config_dir / "config.json"


def load_config() -> QueryToolConfig:
    """
    Load configuration from file.

    Returns:
        QueryToolConfig instance with loaded values or defaults
    """
    config_path = get_config_path()

    if not config_path.exists():
        return QueryToolConfig()

    try:
        with open(config_path, 'r') as f:
            data = json.load(f)
        return QueryToolConfig.from_dict(data)
    except (json.JSONDecodeError, OSError, TypeError) as e:
        logger.warning(f"Failed to load config from {config_path}: {e}")
        logger.warning("Using default configuration")
        return QueryToolConfig()


def save_config(config: QueryToolConfig) -> Path:
    """
    Save configuration to file.

    Args:
        config: Configuration to save

    Returns:
        Path the configuration was written to
    """
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)

    logger.info(f"Configuration saved to {config_path}")
    return config_path


def update_config(
    # Library settings
    library_default_path: Optional[str] = None,
    library_backend: Optional[str] = None,
    library_sqlite_executable: Optional[str] = None,
    library_limit: Optional[int] = None,
    # Opener settings
    opener_default: Optional[str] = None,
    opener_viewer: Optional[str] = None,
    opener_editor: Optional[str] = None,
    opener_clipboard: Optional[str] = None,
    # CLI settings
    cli_verbose: Optional[bool] = None,
    cli_color: Optional[bool] = None,
) -> QueryToolConfig:
    """
    Update configuration.

    Only updates provided values, leaving others unchanged.
    """
    config = load_config()

    if library_backend is not None and library_backend not in BACKENDS:
        raise ValueError(f"Unknown backend '{library_backend}' (choose from {', '.join(BACKENDS)})")

    # Update library config
    if library_default_path is not None:
        config.library.default_path = library_default_path
    if library_backend is not None:
        config.library.backend = library_backend
    if library_sqlite_executable is not None:
        config.library.sqlite_executable = library_sqlite_executable
    if library_limit is not None:
        config.library.limit = library_limit

    # Update opener config
    if opener_default is not None:
        config.opener.default_opener = opener_default
    if opener_viewer is not None:
        config.opener.viewer = opener_viewer
    if opener_editor is not None:
        config.opener.editor = opener_editor
    if opener_clipboard is not None:
        config.opener.clipboard = opener_clipboard

    # Update CLI config
    if cli_verbose is not None:
        config.cli.verbose = cli_verbose
    if cli_color is not None:
        config.cli.color = cli_color

    save_config(config)
    return config


def calibre_global_config_path() -> Path:
    """Location of Calibre's own global.py.json for this platform."""
    system = platform.system()
    if system == 'Darwin':
        return Path.home() / "Library" / "Preferences" / "calibre" / "global.py.json"
    elif system == 'Windows':
        appdata = os.environ.get("APPDATA", str(Path.home() / "AppData" / "Roaming"))
        return Path(appdata) / "calibre" / "global.py.json"
    config_home = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(config_home) / "calibre" / "global.py.json"


def calibre_configured_library() -> Optional[Path]:
    """Library path recorded by Calibre itself, if any."""
    path = calibre_global_config_path()
    if not path.exists():
        return None

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Could not read Calibre config {path}: {e}")
        return None

    library_path = data.get("library_path")
    return Path(library_path).expanduser() if library_path else None


def candidate_library_paths() -> List[Path]:
    """Home-directory library locations, most likely first."""
    return [Path.home() / candidate for candidate in LIBRARY_CANDIDATES]


def find_library_root(config: QueryToolConfig, library: Optional[Path] = None) -> Path:
    """
    Resolve the Calibre library root.

    Order: explicit argument, $CALIBRE_QUERY_LIBRARY, the config file's
    default_path, Calibre's global.py.json, then the first existing home
    candidate (or the first candidate when none exists).
    """
    if library is not None:
        return Path(library).expanduser()

    env_path = os.environ.get(LIBRARY_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()

    if config.library.default_path:
        return Path(config.library.default_path).expanduser()

    calibre_path = calibre_configured_library()
    if calibre_path is not None:
        return calibre_path

    candidates = candidate_library_paths()
    for candidate in candidates:
        if (candidate / DATABASE_NAME).exists():
            return candidate
    return candidates[0]


def default_opener() -> Tuple[str, ...]:
    """Command that opens a file with the desktop's default application."""
    system = platform.system()
    if system == 'Darwin':
        return ("open",)
    elif system == 'Windows':
        return ("cmd", "/c", "start", "")
    return ("xdg-open",)


def default_clipboard() -> Tuple[str, ...]:
    """Command that reads stdin into the clipboard."""
    system = platform.system()
    if system == 'Darwin':
        return ("pbcopy",)
    elif system == 'Windows':
        return ("clip",)
    return ("xclip", "-selection", "clipboard")


def default_editor() -> Tuple[str, ...]:
    editor = os.environ.get("VISUAL") or os.environ.get("EDITOR") or "vi"
    return tuple(shlex.split(editor))


def _command(value: Optional[str], fallback: Tuple[str, ...]) -> Tuple[str, ...]:
    return tuple(shlex.split(value)) if value else fallback


def resolve_settings(config: Optional[QueryToolConfig] = None,
                     library: Optional[Path] = None) -> LibrarySettings:
    """
    Build the session settings from the user configuration.

    Args:
        config: Loaded configuration, read from disk when omitted
        library: Explicit library root overriding every other source

    Returns:
        Frozen LibrarySettings
    """
    if config is None:
        config = load_config()

    if config.library.backend not in BACKENDS:
        raise ValueError(f"Unknown backend '{config.library.backend}' (choose from {', '.join(BACKENDS)})")

    root = find_library_root(config, library)
    logger.debug(f"Using Calibre library at {root}")

    return LibrarySettings(
        library_root=root,
        db_path=root / DATABASE_NAME,
        opener=_command(config.opener.default_opener, default_opener()),
        viewer=_command(config.opener.viewer, ("ebook-viewer",)),
        editor=_command(config.opener.editor, default_editor()),
        clipboard=_command(config.opener.clipboard, default_clipboard()),
        backend=config.library.backend,
        sqlite_executable=config.library.sqlite_executable,
        limit=config.library.limit,
    )
