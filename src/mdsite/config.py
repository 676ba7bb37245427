"""Application configuration: settings schema and config.yaml loader"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field


CONFIG_FILE = "config.yaml"


class Settings(BaseModel):
    site_title:     str = "mdsite"
    base_url:       str = Field(default="/",         description="URL prefix for generated links")
    source_dir:     str = Field(default="content",   description="Directory of front-matter markdown posts")
    output_dir:     str = Field(default="dist",      description="Directory for rendered HTML")
    templates_dir:  str = Field(default="templates", description="Directory of named Jinja2 layouts")
    parser_config:  str = Field(default="gfm-like",  description="MarkdownIt parser preset name")
    workers:        int = Field(default=4, ge=1,     description="Render threads; 1 renders serially")
    include_drafts: bool = Field(default=False,      description="Render published: false / draft: true posts")
    max_related:    int = Field(default=5,  ge=0,    description="Related posts per page; 0 disables")
    recent_count:   int = Field(default=10, ge=0,    description="Posts exposed as site.recent")
    tag_layout:     str = Field(default="tag",       description="Layout for per-tag pages; skipped if absent")
    index_layout:   str = Field(default="index",     description="Layout for the home page; skipped if absent")
    cache_url:      Optional[str] = Field(default=None, description="SQLAlchemy URL of the build cache; None disables")


def load_config(overrides: dict[str, Any] = None) -> Settings:
    """Load Settings from config.yaml, then MDSITE_<FIELD> env vars, then non-None CLI overrides."""
    data: dict[str, Any] = {}
    if Path(CONFIG_FILE).exists():
        try:
            data = yaml.safe_load(Path(CONFIG_FILE).read_text()) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid {CONFIG_FILE}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid {CONFIG_FILE}: expected a mapping")

    for name in Settings.model_fields:
        if val := os.getenv(f"MDSITE_{name.upper()}"):
            data[name] = val

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})
    return Settings(**data)
