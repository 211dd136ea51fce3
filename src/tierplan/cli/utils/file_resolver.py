"""File path resolution utilities for CLI."""

from pathlib import Path

DECLARATION_SUFFIXES = (".yaml", ".yml", ".json")


def resolve_file_path(file_path: str) -> Path:
    """
    Resolve a declaration file path relative to the current directory.

    A directory is accepted when it holds exactly one declaration file.

    Args:
        file_path: User-provided file path or name

    Returns:
        Resolved Path object

    Raises:
        FileNotFoundError: If the file cannot be found
    """
    path = Path(file_path)
    if not path.is_absolute():
        path = Path.cwd() / path
    resolved_path = path.resolve()

    if not resolved_path.exists():
        raise FileNotFoundError(
            f"File not found: {file_path}. Please check the file path and try again."
        )

    if resolved_path.is_dir():
        candidates = sorted(p for p in resolved_path.iterdir()
                            if p.is_file() and p.suffix in DECLARATION_SUFFIXES)
        if len(candidates) != 1:
            raise FileNotFoundError(
                f"Directory {file_path} must contain exactly one declaration file "
                f"({', '.join(DECLARATION_SUFFIXES)}), found {len(candidates)}."
            )
        return candidates[0]

    if not resolved_path.is_file():
        raise FileNotFoundError(
            f"Path is not a file: {file_path}. Please provide a valid file path."
        )

    return resolved_path
