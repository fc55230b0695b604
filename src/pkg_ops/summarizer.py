"""Materialize the resolved, display-ready view of package resources."""

from __future__ import annotations

from pkg_ops.models import (
    Bucket,
    Label,
    Package,
    Summary,
    SummaryBucket,
    SummaryLabel,
    SummaryLabelMapping,
)


def summarize_label(label: Label) -> SummaryLabel:
    return SummaryLabel(
        id=label.id,
        name=label.name,
        org_id=label.org_id,
        properties=label.properties(),
    )


def summarize_bucket(bucket: Bucket) -> SummaryBucket:
    """Resolved bucket plus one entry per label referencing it."""
    return SummaryBucket(
        id=bucket.id,
        name=bucket.name,
        org_id=bucket.org_id,
        description=bucket.description,
        retention_period=bucket.retention_period,
        associations=[summarize_label(label) for label in bucket.labels],
    )


def summarize_label_mappings(label: Label) -> list[SummaryLabelMapping]:
    """The label's associations, sorted by resource name for stable output."""
    mappings = label.mapping_summary()
    mappings.sort(key=lambda m: (m.resource_name, m.resource_type))
    return mappings


def build_summary(package: Package) -> Summary:
    result = Summary()
    for bucket in package.buckets():
        result.buckets.append(summarize_bucket(bucket))
    for label in package.labels():
        result.labels.append(summarize_label(label))
        result.label_mappings.extend(summarize_label_mappings(label))
    return result
