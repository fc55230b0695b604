"""Classify diff records into actions and render diffs and summaries."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

from pkg_ops.models import (
    Diff,
    DiffBucket,
    DiffLabel,
    DiffLabelMapping,
    Summary,
    SummaryLabel,
    format_id,
)

# Change actions
CREATE = "create"
UPDATE = "update"
NOOP = "noop"

# Symbols for diff output
SYMBOLS = {CREATE: "+", UPDATE: "~", NOOP: "."}
COLORS = {CREATE: "\033[32m", UPDATE: "\033[33m", NOOP: "\033[90m"}
RESET = "\033[0m"


def bucket_action(d: DiffBucket) -> str:
    if d.is_new():
        return CREATE
    if d.old_desc != d.new_desc or d.old_retention != d.new_retention:
        return UPDATE
    return NOOP


def label_action(d: DiffLabel) -> str:
    if d.is_new():
        return CREATE
    if d.old_color != d.new_color or d.old_desc != d.new_desc:
        return UPDATE
    return NOOP


def mapping_action(d: DiffLabelMapping) -> str:
    return CREATE if d.is_new else NOOP


def count_changes(diff: Diff) -> dict[str, int]:
    """Count records per action across the whole diff."""
    counts = {CREATE: 0, UPDATE: 0, NOOP: 0}
    for b in diff.buckets:
        counts[bucket_action(b)] += 1
    for l in diff.labels:
        counts[label_action(l)] += 1
    for m in diff.label_mappings:
        counts[mapping_action(m)] += 1
    return counts


def has_changes(diff: Diff) -> bool:
    counts = count_changes(diff)
    return bool(counts[CREATE] or counts[UPDATE])


def _format_duration(d: timedelta) -> str:
    if not d:
        return "infinite"
    seconds = int(d.total_seconds())
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    out = ""
    if hours:
        out += f"{hours}h"
    if minutes:
        out += f"{minutes}m"
    if secs or not out:
        out += f"{secs}s"
    return out


def _detail(pairs: list[tuple[str, Any, Any]]) -> str:
    """Short description of which attributes differ."""
    changed = [f"{name} {old!r}→{new!r}" for name, old, new in pairs if old != new]
    if not changed:
        return "unchanged"
    return ", ".join(changed)


def _print_line(action: str, type_name: str, name: str, detail: str) -> None:
    print(f"  {COLORS[action]}{SYMBOLS[action]} {type_name:<14} \"{name}\"  ({detail}){RESET}")


def print_diff(diff: Diff, verbose: bool = False) -> None:
    """Print the diff to console in Terraform-style format."""
    counts = count_changes(diff)
    print(f"\nDiff: {counts[CREATE]} to create, {counts[UPDATE]} to update, "
          f"{counts[NOOP]} unchanged.\n")

    if not counts[CREATE] and not counts[UPDATE] and not verbose:
        print("No changes. Platform is up-to-date.\n")
        return

    for b in diff.buckets:
        action = bucket_action(b)
        if action == NOOP and not verbose:
            continue
        detail = "new" if action == CREATE else _detail([
            ("description", b.old_desc, b.new_desc),
            ("retention", _format_duration(b.old_retention), _format_duration(b.new_retention)),
        ])
        _print_line(action, "bucket", b.name, detail)

    for l in diff.labels:
        action = label_action(l)
        if action == NOOP and not verbose:
            continue
        detail = "new" if action == CREATE else _detail([
            ("color", l.old_color, l.new_color),
            ("description", l.old_desc, l.new_desc),
        ])
        _print_line(action, "label", l.name, detail)

    for m in diff.label_mappings:
        action = mapping_action(m)
        if action == NOOP and not verbose:
            continue
        detail = "new" if action == CREATE else "unchanged"
        _print_line(action, "label mapping", f"{m.label_name} -> {m.resource_name}", detail)

    print()


def print_summary(summary: Summary) -> None:
    """Print the resolved state of every resource in the package."""
    print(f"\nSummary: {len(summary.buckets)} buckets, {len(summary.labels)} labels, "
          f"{len(summary.label_mappings)} label mappings.\n")

    for b in summary.buckets:
        print(f"  bucket \"{b.name}\"  id={format_id(b.id)}  "
              f"retention={_format_duration(b.retention_period)}")
        if b.description:
            print(f"      description: {b.description}")
        for l in b.associations:
            print(f"      label \"{l.name}\"  color={l.properties['color']!r}")

    for l in summary.labels:
        print(f"  label \"{l.name}\"  id={format_id(l.id)}  "
              f"color={l.properties['color']!r}  description={l.properties['description']!r}")

    for m in summary.label_mappings:
        status = "exists" if m.exists else "new"
        print(f"  label mapping \"{m.label_name}\" -> {m.resource_type} \"{m.resource_name}\"  ({status})")

    print()


def diff_to_dict(diff: Diff) -> dict[str, Any]:
    """JSON-ready form of a diff. Ids are hex strings, durations seconds."""
    return {
        "summary": count_changes(diff),
        "buckets": [
            {
                "id": format_id(b.id),
                "name": b.name,
                "isNew": b.is_new(),
                "action": bucket_action(b),
                "oldDescription": b.old_desc,
                "newDescription": b.new_desc,
                "oldRetentionSeconds": int(b.old_retention.total_seconds()),
                "newRetentionSeconds": int(b.new_retention.total_seconds()),
            }
            for b in diff.buckets
        ],
        "labels": [
            {
                "id": format_id(l.id),
                "name": l.name,
                "isNew": l.is_new(),
                "action": label_action(l),
                "oldColor": l.old_color,
                "newColor": l.new_color,
                "oldDescription": l.old_desc,
                "newDescription": l.new_desc,
            }
            for l in diff.labels
        ],
        "labelMappings": [
            {
                "isNew": m.is_new,
                "resourceType": m.resource_type,
                "resourceID": format_id(m.resource_id),
                "resourceName": m.resource_name,
                "labelID": format_id(m.label_id),
                "labelName": m.label_name,
            }
            for m in diff.label_mappings
        ],
    }


def summary_to_dict(summary: Summary) -> dict[str, Any]:
    def label_dict(l: SummaryLabel) -> dict[str, Any]:
        return {
            "id": format_id(l.id),
            "orgID": format_id(l.org_id),
            "name": l.name,
            "properties": dict(l.properties),
        }

    return {
        "buckets": [
            {
                "id": format_id(b.id),
                "orgID": format_id(b.org_id),
                "name": b.name,
                "description": b.description,
                "retentionSeconds": int(b.retention_period.total_seconds()),
                "associations": [label_dict(l) for l in b.associations],
            }
            for b in summary.buckets
        ],
        "labels": [label_dict(l) for l in summary.labels],
        "labelMappings": [
            {
                "exists": m.exists,
                "resourceName": m.resource_name,
                "labelName": m.label_name,
                "labelID": format_id(m.label_id),
                "resourceID": format_id(m.resource_id),
                "resourceType": m.resource_type,
            }
            for m in summary.label_mappings
        ],
    }
