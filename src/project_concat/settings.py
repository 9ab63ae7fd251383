from __future__ import annotations

from pathlib import Path

from dotenv import find_dotenv
from pydantic import BaseModel, ConfigDict, Field

ENV_FILE = find_dotenv(usecwd=True)


class Settings(BaseModel):
    """Command line settings for one export run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    project: Path = Field(default_factory=Path.cwd, description="Project root.")
    output_folder: str = Field(default="", description="Output folder (absolute, or relative to the project).")
    max_file_size_mb: int | None = Field(default=None, gt=0, description="Max bundle size in MB.")
    max_source_file_mb: int | None = Field(
        default=None,
        gt=0,
        description="Skip source files larger than this many MB.",
    )
    exclude: list[str] = Field(default_factory=list, description="Exclude glob.")
    include_ext: list[str] = Field(default_factory=list, description="Include extension.")
    select: list[str] = Field(default_factory=list, description="Exact relative paths to export.")
    incremental: bool = Field(default=False, description="Only export files changed since the last run.")

    tags: bool = Field(default=False, description="Wrap entries in <file> tags.")
    tree: bool = Field(default=False, description="Prepend the project tree to the first bundle.")
    tokens: bool = Field(default=False, description="Report an approximate token count.")
    strip_comments: bool = Field(default=False, description="Remove // and /* */ comments.")
    compact: bool = Field(default=False, description="Collapse blank lines.")
    no_header: bool = Field(default=False, description="Do not label entries with their path.")
    minify: bool = Field(default=False, description="Strip comments and every blank line.")
    no_lock: bool = Field(default=False, description="Do not lock the output folder.")

    log_file: str = Field(default="", description="Log file path.")
