"""Reads package documents (YAML or JSON) into the desired resource graph."""

from __future__ import annotations

import re
from datetime import timedelta
from decimal import Decimal
from typing import Any

import yaml

from pkg_ops.exceptions import PackageError
from pkg_ops.models import (
    KIND_BUCKET,
    KIND_LABEL,
    ZERO_ID,
    Bucket,
    Label,
    Metadata,
    Package,
)
from pkg_ops.resolver import associate_bucket

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
# nanoseconds per unit
_DURATION_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}


def parse_duration(value: Any) -> timedelta:
    """Parse a retention period.

    "1h30m" → 1:30:00
    "500ms" → 0:00:00.500000
    3600    → 1:00:00 (bare integers are seconds)
    ""/None → 0:00:00

    Non-zero durations below one microsecond are rejected, since a zero
    retention period means infinite retention.
    """
    if value is None or value == "" or value == 0:
        return timedelta(0)
    if isinstance(value, bool):
        raise ValueError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)

    text = str(value).strip()
    if text == "0":
        return timedelta(0)
    pos = 0
    total_ns = Decimal(0)
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total_ns += Decimal(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    if pos == 0 or pos != len(text):
        raise ValueError(f"invalid duration {value!r}")
    result = timedelta(microseconds=float(total_ns / 1000))
    if total_ns and not result:
        raise ValueError(f"invalid duration {value!r}: below microsecond precision")
    return result


def read_package(path: str, org_id: int = ZERO_ID) -> Package:
    """Read and parse a package file."""
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise PackageError(f"cannot read package: {e.strerror}", path=path) from e
    except yaml.YAMLError as e:
        raise PackageError(f"cannot parse package: {e}", path=path) from e
    return parse_package(data or {}, org_id=org_id, path=path)


def parse_package(data: dict[str, Any], org_id: int = ZERO_ID, path: str | None = None) -> Package:
    """Build a package from a decoded document.

    Labels are read before buckets so bucket associations can refer to any
    label in the package. Names are unique per kind. Associations start out
    as not existing; the resolver settles them against platform state.
    """
    meta = data.get("meta") or {}
    package = Package(metadata=Metadata(
        description=str(meta.get("description", "")),
        name=str(meta.get("pkgName", "")),
        version=str(meta.get("pkgVersion", "")),
    ))

    resources = (data.get("spec") or {}).get("resources") or []
    for res in resources:
        if _kind(res) != KIND_LABEL:
            continue
        name = res.get("name", "")
        if name in package.label_index:
            raise PackageError(f"duplicate label {name!r}", path=path)
        package.label_index[name] = Label(
            name=name,
            color=res.get("color", ""),
            description=res.get("description", ""),
            org_id=org_id,
        )

    for res in resources:
        if _kind(res) != KIND_BUCKET:
            continue
        name = res.get("name", "")
        if name in package.bucket_index:
            raise PackageError(f"duplicate bucket {name!r}", path=path)
        try:
            retention = parse_duration(res.get("retention_period"))
        except ValueError as e:
            raise PackageError(f"bucket {name!r}: {e}", path=path) from e
        bucket = Bucket(
            name=name,
            description=res.get("description", ""),
            retention_period=retention,
            org_id=org_id,
        )
        package.bucket_index[name] = bucket

        for assoc in res.get("associations") or []:
            if _kind(assoc) != KIND_LABEL:
                continue
            label_name = assoc.get("name", "")
            label = package.label_index.get(label_name)
            if label is None:
                raise PackageError(
                    f"bucket {name!r} is associated with undefined label {label_name!r}",
                    path=path,
                )
            associate_bucket(label, bucket, exists=False)

    return package


def _kind(resource: dict[str, Any]) -> str:
    return str(resource.get("kind", "")).strip().lower()
