"""Build cache persistence: output hash lookup and created/updated/unchanged upsert"""

from datetime import datetime

from sqlmodel import Session

from mdsite.crud.models import BuildOutput


def get_by_path(session: Session, path: str) -> BuildOutput | None:
    """Return the cached output row for path, or None if never written."""
    return session.get(BuildOutput, path)


def is_unchanged(session: Session, path: str, content_hash: str) -> bool:
    row = get_by_path(session, path)
    return row is not None and row.hash == content_hash


def record_output(
    session: Session,
    path: str,
    content_hash: str,
    source_path: str | None = None,
    ) -> str:
    """Upsert the hash for an output path.

    Returns 'created', 'updated', or 'unchanged'. Flushes but does not commit;
    caller controls the transaction.
    """
    row = get_by_path(session, path)
    if row is None:
        session.add(BuildOutput(path=path, hash=content_hash, source_path=source_path))
        session.flush()
        return 'created'
    if row.hash == content_hash:
        return 'unchanged'
    row.hash = content_hash
    row.source_path = source_path
    row.updated_at = datetime.now()
    session.add(row)
    session.flush()
    return 'updated'
