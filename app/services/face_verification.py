import time
from dataclasses import dataclass
from typing import Optional

import numpy as np
from sqlalchemy.orm import Session

from app.config.settings import settings
from app.crud.face_descriptor import (
    create_face_descriptor,
    get_primary_face_descriptor,
    iter_face_descriptors,
    set_primary_face_descriptor,
)
from app.models.face_descriptor import FaceDescriptor
from app.services.audit import FAILED, SUCCESS, AuditTrail, ClientContext
from app.services.descriptor_matcher import (
    DescriptorLike,
    FaceComparisonResult,
    compare,
    first_match_index,
    validate_descriptor,
)
from app.utils.logger import log

FACE_VERIFICATION_SUCCESS = "face_verification_success"
FACE_VERIFICATION_FAILED = "face_verification_failed"


class NoEnrolledDescriptorError(Exception):
    """The account has no primary descriptor to verify against."""


@dataclass(frozen=True)
class FaceExistsResult:
    exists: bool
    matched_account_id: Optional[int] = None
    distance: Optional[float] = None


class FaceVerificationGate:
    """Confirms identity against an account's primary descriptor."""

    def __init__(
        self,
        db: Session,
        audit: AuditTrail,
        threshold: Optional[float] = None,
        dimensions: Optional[int] = None,
        scan_batch_size: int = 500,
    ):
        self.db = db
        self.audit = audit
        self.threshold = (
            threshold if threshold is not None else settings.FACE_RECOGNITION_THRESHOLD
        )
        self.dimensions = dimensions or settings.FACE_DESCRIPTOR_DIMENSIONS
        self.scan_batch_size = scan_batch_size

    def verify(
        self,
        account_id: int,
        descriptor: DescriptorLike,
        client: Optional[ClientContext] = None,
    ) -> FaceComparisonResult:
        incoming = validate_descriptor(descriptor, self.dimensions)

        stored = get_primary_face_descriptor(self.db, account_id)
        if stored is None:
            log.err(f"No enrolled face descriptor for account {account_id}")
            raise NoEnrolledDescriptorError(
                f"No face descriptor enrolled for account {account_id}"
            )

        result = compare(stored.descriptor, incoming, self.threshold, self.dimensions)
        self.audit.record(
            FACE_VERIFICATION_SUCCESS if result.match else FACE_VERIFICATION_FAILED,
            SUCCESS if result.match else FAILED,
            account_id=account_id,
            detail={
                "distance": result.distance,
                "threshold": result.threshold,
                "enrolled_version": stored.version,
            },
            client=client,
        )
        return result

    def check_if_face_exists(
        self,
        descriptor: DescriptorLike,
        exclude_account_id: Optional[int] = None,
    ) -> FaceExistsResult:
        """Exhaustive scan of every enrolled descriptor; the first hit wins."""
        start_time = time.time()
        candidate = validate_descriptor(descriptor, self.dimensions)

        scanned = 0
        for batch in iter_face_descriptors(
            self.db, self.scan_batch_size, exclude_account_id=exclude_account_id
        ):
            enrolled = np.asarray([row.descriptor for row in batch], dtype=np.float64)
            scanned += len(batch)
            hit = first_match_index(candidate, enrolled, self.threshold)
            if hit is not None:
                index, distance = hit
                log.perf("face_duplicate_scan", time.time() - start_time, scanned=scanned)
                return FaceExistsResult(
                    exists=True,
                    matched_account_id=batch[index].account_id,
                    distance=distance,
                )

        log.perf("face_duplicate_scan", time.time() - start_time, scanned=scanned)
        return FaceExistsResult(exists=False)

    def enroll(
        self,
        account_id: int,
        descriptor: DescriptorLike,
        primary: bool = True,
        commit: bool = True,
    ) -> FaceDescriptor:
        values = validate_descriptor(descriptor, self.dimensions)
        record = create_face_descriptor(
            self.db, account_id, values.tolist(), is_primary=primary, commit=commit
        )
        log.info(
            f"Enrolled face descriptor v{record.version} for account {account_id} (primary={primary})"
        )
        return record

    def set_primary(self, account_id: int, descriptor_id: int) -> Optional[FaceDescriptor]:
        return set_primary_face_descriptor(self.db, account_id, descriptor_id)
