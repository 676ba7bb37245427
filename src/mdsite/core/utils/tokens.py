"""Shared markdown-it token utilities"""


INLINE_TEXT_TYPES = {'text', 'code_inline'}


def inline_text(token) -> str:
    """Flatten an inline token's children to plain text (markup dropped, breaks as spaces)."""
    parts = []
    for child in token.children or []:
        if child.type in INLINE_TEXT_TYPES:
            parts.append(child.content)
        elif child.type in ('softbreak', 'hardbreak'):
            parts.append(' ')
        elif child.type == 'image':
            parts.append(child.content)
    return ''.join(parts).strip()


def first_paragraph_text(tokens: list) -> str:
    """Return the plain text of the first top-level paragraph, or '' if there is none."""
    for i, tok in enumerate(tokens):
        if tok.type == 'paragraph_open' and tok.level == 0 and i + 1 < len(tokens):
            text = inline_text(tokens[i + 1])
            if text:
                return text
    return ''
