"""Shared fixtures for core unit tests"""

import datetime

import pytest

from mdsite.config import Settings
from mdsite.core.models import Document, FrontMatter


SAMPLE_POST = """\
---
layout: post
title: Hello, World
tags: [python, web]
series: basics
---

First paragraph with **bold** text.

## Heading 2

- item one
- item two

```python
if a < b and c > d:
    print("x & y")
```
"""


def make_doc(doc_id: str, when: str, tags: list[str] = (), layout: str = "post", body: str = "Body.\n", **extra) -> Document:
    """Build a Document directly, bypassing the parser."""
    return Document(
        id=doc_id,
        source_path=f"{when}-{doc_id}.md",
        metadata=FrontMatter(layout=layout, title=doc_id.title(), tags=list(tags), extra=extra),
        body=body,
        published_at=datetime.date.fromisoformat(when),
    )


@pytest.fixture(name="doc_factory")
def doc_factory_fixture():
    return make_doc


@pytest.fixture(name="settings")
def settings_fixture(templates_dir, tmp_path):
    return Settings(templates_dir=str(templates_dir), output_dir=str(tmp_path / "dist"), workers=1)


@pytest.fixture(name="sample_post")
def sample_post_fixture() -> bytes:
    return SAMPLE_POST.encode("utf-8")
