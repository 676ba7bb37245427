"""Root test configuration: isolated working directory, post writer, and sample layouts"""

import os
from pathlib import Path

import pytest
import yaml


BASE_LAYOUT = """\
<!DOCTYPE html>
<html>
<head><title>{{ page.title if page is defined else site.title }}</title></head>
<body>
{{ content }}
</body>
</html>
"""

POST_LAYOUT = """\
---
layout: base
---
<article>
<h1>{{ page.title }}</h1>
<time>{{ page.date }}</time>
{{ content }}
<ul class="related">{% for r in related %}<li><a href="{{ r.url }}">{{ r.title }}</a></li>{% endfor %}</ul>
</article>
"""

TAG_LAYOUT = """\
<h1>{{ tag }}</h1>
<ol>{% for d in documents %}<li>{{ d.id }}</li>{% endfor %}</ol>
"""

INDEX_LAYOUT = """\
---
layout: base
---
<ol>{% for d in documents %}<li><a href="{{ d.url }}">{{ d.title }}</a></li>{% endfor %}</ol>
"""


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Run each test from a clean tmp directory with no MDSITE_* variables set."""
    monkeypatch.chdir(tmp_path)
    for name in list(os.environ):
        if name.startswith("MDSITE_"):
            monkeypatch.delenv(name)


@pytest.fixture(name="content_dir")
def content_dir_fixture(tmp_path) -> Path:
    d = tmp_path / "content"
    d.mkdir()
    return d


@pytest.fixture(name="templates_dir")
def templates_dir_fixture(tmp_path) -> Path:
    """A templates directory with base, post (wrapped by base), tag and index layouts."""
    d = tmp_path / "templates"
    d.mkdir()
    (d / "base.html").write_text(BASE_LAYOUT)
    (d / "post.html").write_text(POST_LAYOUT)
    (d / "tag.html").write_text(TAG_LAYOUT)
    (d / "index.html").write_text(INDEX_LAYOUT)
    return d


@pytest.fixture(name="write_post")
def write_post_fixture(content_dir):
    """Factory: write a post with YAML front matter under content_dir and return its path."""
    def _write(name: str, body: str = "Body text.\n", **frontmatter) -> Path:
        fm = {"layout": "post", "title": Path(name).stem}
        fm.update(frontmatter)
        fm = {k: v for k, v in fm.items() if v is not None}
        path = content_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        header = yaml.safe_dump(fm, sort_keys=False, allow_unicode=True)
        path.write_text(f"---\n{header}---\n{body}", encoding="utf-8")
        return path
    return _write
