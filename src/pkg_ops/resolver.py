"""Match package resources to platform state and settle label associations."""

from __future__ import annotations

from pkg_ops.models import BUCKETS_RESOURCE_TYPE, Bucket, Label, Package
from pkg_ops.state import PlatformState


def associate_bucket(label: Label | None, bucket: Bucket, exists: bool) -> None:
    """Associate a label with a bucket on both sides.

    A missing label records nothing. Re-associating replaces the label's
    entry for the bucket and does not duplicate the bucket's back-reference.
    """
    if label is None:
        return
    if not any(l is label for l in bucket.labels):
        bucket.labels.append(label)
    label.set_bucket_mapping(bucket, exists)


def resolve(package: Package, state: PlatformState) -> Package:
    """Attach platform counterparts and mark associations that already exist.

    Must run before any diff or summary is built from the package.
    """
    for bucket in package.buckets():
        bucket.existing = state.bucket(bucket.name)
    for label in package.labels():
        label.existing = state.label(label.name)

    for bucket in package.buckets():
        for label in list(bucket.labels):
            exists = (
                bucket.existing is not None
                and label.existing is not None
                and state.has_mapping(label.id, BUCKETS_RESOURCE_TYPE, bucket.id)
            )
            associate_bucket(label, bucket, exists)
    return package
