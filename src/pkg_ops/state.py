"""Current platform state: live fetch and local JSON snapshots."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from pkg_ops.exceptions import PlatformError
from pkg_ops.models import (
    BUCKETS_RESOURCE_TYPE,
    ZERO_ID,
    PlatformBucket,
    PlatformLabel,
    PlatformLabelMapping,
    format_id,
    parse_id,
)

STATE_VERSION = 1


@dataclass
class PlatformState:
    """Platform resources for one organization, keyed by name."""

    org_id: int = ZERO_ID
    fetched_at: str | None = None
    buckets: dict[str, PlatformBucket] = field(default_factory=dict)
    labels: dict[str, PlatformLabel] = field(default_factory=dict)
    label_mappings: set[PlatformLabelMapping] = field(default_factory=set)

    def bucket(self, name: str) -> PlatformBucket | None:
        return self.buckets.get(name)

    def label(self, name: str) -> PlatformLabel | None:
        return self.labels.get(name)

    def has_mapping(self, label_id: int, resource_type: str, resource_id: int) -> bool:
        return PlatformLabelMapping(label_id, resource_type, resource_id) in self.label_mappings


def empty_state(org_id: int = ZERO_ID) -> PlatformState:
    return PlatformState(org_id=org_id)


def bucket_from_api(item: dict[str, Any]) -> PlatformBucket:
    """Decode a bucket as returned by the platform API.

    Only "expire" retention rules count; no rule means infinite retention.
    """
    retention = timedelta(0)
    for rule in item.get("retentionRules") or []:
        if rule.get("type", "expire") == "expire":
            retention = timedelta(seconds=rule.get("everySeconds", 0))
            break
    return PlatformBucket(
        id=parse_id(item.get("id")),
        name=item.get("name", ""),
        org_id=parse_id(item.get("orgID")),
        description=item.get("description", ""),
        retention_period=retention,
    )


def bucket_to_api(bucket: PlatformBucket) -> dict[str, Any]:
    rules = []
    if bucket.retention_period:
        rules.append({"type": "expire", "everySeconds": int(bucket.retention_period.total_seconds())})
    return {
        "id": format_id(bucket.id),
        "orgID": format_id(bucket.org_id),
        "name": bucket.name,
        "description": bucket.description,
        "retentionRules": rules,
    }


def label_from_api(item: dict[str, Any]) -> PlatformLabel:
    return PlatformLabel(
        id=parse_id(item.get("id")),
        name=item.get("name", ""),
        org_id=parse_id(item.get("orgID")),
        properties=dict(item.get("properties") or {}),
    )


def label_to_api(label: PlatformLabel) -> dict[str, Any]:
    return {
        "id": format_id(label.id),
        "orgID": format_id(label.org_id),
        "name": label.name,
        "properties": dict(label.properties),
    }


def fetch_state(client: Any, org_id: int) -> PlatformState:
    """Fetch buckets, labels and bucket label mappings for an organization.

    Errors propagate: a partial state would report existing resources as new.
    """
    state = empty_state(org_id)
    org = format_id(org_id)

    print("  Fetching buckets...", end="", flush=True)
    try:
        for item in client.list_buckets(org):
            bkt = bucket_from_api(item)
            state.buckets[bkt.name] = bkt
    except PlatformError as e:
        print(f" ERROR: {e.message}")
        raise
    print(f" {len(state.buckets)} found")

    print("  Fetching labels...", end="", flush=True)
    try:
        for item in client.list_labels(org):
            lbl = label_from_api(item)
            state.labels[lbl.name] = lbl
    except PlatformError as e:
        print(f" ERROR: {e.message}")
        raise
    print(f" {len(state.labels)} found")

    print("  Fetching label mappings...", end="", flush=True)
    try:
        for bkt in state.buckets.values():
            for item in client.list_resource_labels(BUCKETS_RESOURCE_TYPE, format_id(bkt.id)):
                state.label_mappings.add(PlatformLabelMapping(
                    label_id=parse_id(item.get("id")),
                    resource_type=BUCKETS_RESOURCE_TYPE,
                    resource_id=bkt.id,
                ))
    except PlatformError as e:
        print(f" ERROR: {e.message}")
        raise
    print(f" {len(state.label_mappings)} found")

    state.fetched_at = datetime.now(timezone.utc).isoformat()
    return state


def state_to_dict(state: PlatformState) -> dict[str, Any]:
    mappings = sorted(
        state.label_mappings,
        key=lambda m: (m.resource_type, m.resource_id, m.label_id),
    )
    return {
        "version": STATE_VERSION,
        "org_id": format_id(state.org_id),
        "fetched_at": state.fetched_at,
        "buckets": [bucket_to_api(b) for b in state.buckets.values()],
        "labels": [label_to_api(l) for l in state.labels.values()],
        "label_mappings": [
            {
                "labelID": format_id(m.label_id),
                "resourceType": m.resource_type,
                "resourceID": format_id(m.resource_id),
            }
            for m in mappings
        ],
    }


def state_from_dict(data: dict[str, Any]) -> PlatformState:
    state = PlatformState(
        org_id=parse_id(data.get("org_id")),
        fetched_at=data.get("fetched_at"),
    )
    for item in data.get("buckets", []):
        bkt = bucket_from_api(item)
        state.buckets[bkt.name] = bkt
    for item in data.get("labels", []):
        lbl = label_from_api(item)
        state.labels[lbl.name] = lbl
    for item in data.get("label_mappings", []):
        state.label_mappings.add(PlatformLabelMapping(
            label_id=parse_id(item.get("labelID")),
            resource_type=item.get("resourceType", ""),
            resource_id=parse_id(item.get("resourceID")),
        ))
    return state


def read_state(path: str) -> PlatformState | None:
    """Load a state snapshot, or None if the file does not exist."""
    if not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return state_from_dict(json.load(f))


def write_state(state: PlatformState, path: str) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "w") as f:
        json.dump(state_to_dict(state), f, indent=2)
        f.write("\n")
    os.replace(tmp, path)
