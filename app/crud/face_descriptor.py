from typing import Iterator, List, Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from app.models.face_descriptor import FaceDescriptor


def get_face_descriptors_by_account(db: Session, account_id: int) -> List[FaceDescriptor]:
    return (
        db.query(FaceDescriptor)
        .filter(FaceDescriptor.account_id == account_id)
        .order_by(FaceDescriptor.version.desc())
        .all()
    )


def get_primary_face_descriptor(db: Session, account_id: int) -> Optional[FaceDescriptor]:
    return (
        db.query(FaceDescriptor)
        .filter(FaceDescriptor.account_id == account_id, FaceDescriptor.is_primary.is_(True))
        .first()
    )


def iter_face_descriptors(
    db: Session, batch_size: int = 500, exclude_account_id: Optional[int] = None
) -> Iterator[List[FaceDescriptor]]:
    """Yield every enrolled descriptor, primary or not, in id-ordered batches."""
    last_id = 0
    while True:
        query = db.query(FaceDescriptor).filter(FaceDescriptor.id > last_id)
        if exclude_account_id is not None:
            query = query.filter(FaceDescriptor.account_id != exclude_account_id)
        batch = query.order_by(FaceDescriptor.id).limit(batch_size).all()
        if not batch:
            return
        yield batch
        last_id = batch[-1].id


def _unset_primary(db: Session, account_id: int) -> None:
    db.execute(
        update(FaceDescriptor)
        .where(FaceDescriptor.account_id == account_id, FaceDescriptor.is_primary.is_(True))
        .values(is_primary=False)
        .execution_options(synchronize_session="fetch")
    )


def create_face_descriptor(
    db: Session,
    account_id: int,
    descriptor: List[float],
    is_primary: bool = True,
    commit: bool = True,
) -> FaceDescriptor:
    """Store a descriptor; a new primary demotes the old one in the same transaction."""
    current_version = (
        db.query(func.max(FaceDescriptor.version))
        .filter(FaceDescriptor.account_id == account_id)
        .scalar()
    )
    if is_primary:
        _unset_primary(db, account_id)

    record = FaceDescriptor(
        account_id=account_id,
        descriptor=list(descriptor),
        is_primary=is_primary,
        version=(current_version or 0) + 1,
    )
    db.add(record)
    db.flush()
    if commit:
        db.commit()
        db.refresh(record)
    return record


def set_primary_face_descriptor(
    db: Session, account_id: int, descriptor_id: int
) -> Optional[FaceDescriptor]:
    record = (
        db.query(FaceDescriptor)
        .filter(FaceDescriptor.id == descriptor_id, FaceDescriptor.account_id == account_id)
        .first()
    )
    if not record:
        return None
    try:
        _unset_primary(db, account_id)
        db.flush()
        record.is_primary = True
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    return record
