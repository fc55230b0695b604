"""Juxtapose desired package resources against their platform counterparts."""

from __future__ import annotations

from datetime import timedelta

from pkg_ops.models import (
    Bucket,
    Diff,
    DiffBucket,
    DiffLabel,
    DiffLabelMapping,
    Label,
    Package,
    PlatformBucket,
    PlatformLabel,
    resolve_id,
)


def diff_bucket(bucket: Bucket, match: PlatformBucket | None = None) -> DiffBucket:
    """Diff a desired bucket against its platform match.

    Without an explicit match the bucket's resolved counterpart is used.
    Both sides are always reported, whether or not they differ.
    """
    if match is None:
        match = bucket.existing
    return DiffBucket(
        id=resolve_id(match, bucket.local_id),
        name=bucket.name,
        old_desc=match.description if match else "",
        new_desc=bucket.description,
        old_retention=match.retention_period if match else timedelta(0),
        new_retention=bucket.retention_period,
    )


def diff_label(label: Label, match: PlatformLabel | None = None) -> DiffLabel:
    """Diff a desired label against its platform match."""
    if match is None:
        match = label.existing
    props = match.properties if match else {}
    return DiffLabel(
        id=resolve_id(match, label.local_id),
        name=label.name,
        old_color=props.get("color", ""),
        new_color=label.color,
        old_desc=props.get("description", ""),
        new_desc=label.description,
    )


def diff_label_mappings(label: Label) -> list[DiffLabelMapping]:
    """Diff records for every association held by the label, sorted by resource."""
    if not label.mappings:
        return []
    mappings = [
        DiffLabelMapping(
            is_new=not value.exists,
            resource_type=key.resource_type,
            resource_id=label.mapped_resource_id(key.resource_type, key.name),
            resource_name=key.name,
            label_id=label.id,
            label_name=label.name,
        )
        for key, value in label.mappings.items()
    ]
    mappings.sort(key=lambda m: (m.resource_name, m.resource_type))
    return mappings


def build_diff(package: Package) -> Diff:
    """Diff a resolved package. Resources come out sorted by name."""
    result = Diff()
    for bucket in package.buckets():
        result.buckets.append(diff_bucket(bucket))
    for label in package.labels():
        result.labels.append(diff_label(label))
        result.label_mappings.extend(diff_label_mappings(label))
    return result
