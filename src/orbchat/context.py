"""File and git context for prompts."""

import logging
import subprocess
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .errors import ContextError

logger = logging.getLogger(__name__)

LANGUAGES = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".py": "python",
    ".java": "java",
    ".c": "c",
    ".cpp": "cpp",
    ".cs": "csharp",
    ".go": "go",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".scala": "scala",
    ".r": "r",
    ".m": "matlab",
    ".sql": "sql",
    ".sh": "bash",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".json": "json",
    ".xml": "xml",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".sass": "sass",
    ".less": "less",
    ".md": "markdown",
    ".rst": "restructuredtext",
    ".tex": "latex",
}


def detect_language(path: Path) -> str:
    return LANGUAGES.get(path.suffix.lower(), "text")


class FileContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: Path
    content: str
    language: str

    @property
    def name(self) -> str:
        return self.path.name


class GitDiff(BaseModel):
    model_config = ConfigDict(frozen=True)

    diff: str
    stats: str
    files: list[str] = Field(default_factory=list)


def read_file_context(path: Path) -> FileContext:
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ContextError(f"Failed to read file {path}: {exc}") from exc
    return FileContext(path=path, content=content, language=detect_language(path))


def format_file_prompt(file: FileContext, prompt: str) -> str:
    return (
        f"File: {file.name}\n"
        f"Language: {file.language}\n\n"
        f"```{file.language}\n{file.content}\n```\n\n"
        f"{prompt}"
    )


def format_files_prompt(files: list[FileContext], prompt: str) -> str:
    """Prompt covering several files; a single file uses the one-file layout."""
    if len(files) == 1:
        return format_file_prompt(files[0], prompt)
    summary = "\n".join(f"- {f.path} ({f.language})" for f in files)
    parts = [f"Analyzing {len(files)} files:\n{summary}\n"]
    for f in files:
        parts.append(f"File: {f.path}\n```{f.language}\n{f.content}\n```\n")
    parts.append(prompt)
    return "\n".join(parts)


def _git(*args: str, cwd: Path | None = None) -> str:
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=True,
        )
    except FileNotFoundError as exc:
        raise ContextError("git is not installed") from exc
    except subprocess.CalledProcessError as exc:
        raise ContextError(f"Git operation failed: {exc.stderr.strip() or exc}") from exc
    return completed.stdout


def git_diff(target: str = "HEAD", cwd: Path | None = None) -> GitDiff:
    """Diff, stat summary and changed file names against ``target``."""
    _git("rev-parse", "--git-dir", cwd=cwd)
    diff = _git("diff", target, cwd=cwd)
    stats = _git("diff", "--stat", target, cwd=cwd)
    names = _git("diff", "--name-only", target, cwd=cwd)
    files = [line for line in names.splitlines() if line.strip()]
    logger.debug("git diff %s: %d files changed", target, len(files))
    return GitDiff(diff=diff, stats=stats, files=files)


def format_git_diff_prompt(diff: GitDiff, prompt: str) -> str:
    files = "\n".join(f"- {f}" for f in diff.files)
    return (
        f"Git Diff Analysis ({len(diff.files)} files changed)\n\n"
        f"Files Changed:\n{files}\n\n"
        f"Statistics:\n{diff.stats}\n\n"
        f"Diff:\n```diff\n{diff.diff}\n```\n\n"
        f"{prompt}"
    )
