"""Package resource model: identity resolution, label associations, diff and summary records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Union

ZERO_ID = 0

# Package resource kinds
KIND_UNKNOWN = ""
KIND_BUCKET = "bucket"
KIND_DASHBOARD = "dashboard"
KIND_LABEL = "label"
KIND_PACKAGE = "package"

KINDS = (KIND_BUCKET, KIND_DASHBOARD, KIND_LABEL, KIND_PACKAGE)

# Platform resource types, used to key label mappings
BUCKETS_RESOURCE_TYPE = "buckets"
DASHBOARDS_RESOURCE_TYPE = "dashboards"
LABELS_RESOURCE_TYPE = "labels"


def kind_name(kind: str) -> str:
    """Return the printable name of a package kind ("unknown" for anything unrecognised)."""
    return kind if kind in KINDS else "unknown"


def format_id(id_: int) -> str:
    """Encode a platform identity as its 16-character hex form."""
    return f"{id_:016x}"


def parse_id(value: str | None) -> int:
    """Decode a 16-character hex platform identity.

    An empty value decodes to the zero sentinel.
    """
    if not value:
        return ZERO_ID
    if len(value) != 16:
        raise ValueError(f"invalid id {value!r}: must be 16 hex characters")
    try:
        return int(value, 16)
    except ValueError:
        raise ValueError(f"invalid id {value!r}: not hexadecimal") from None


def resolve_id(existing: Any, local_id: int) -> int:
    """Effective identity of a package resource.

    A platform counterpart is authoritative whenever present, even if the
    local placeholder is non-zero.
    """
    if existing is not None:
        return existing.id
    return local_id


@dataclass
class Metadata:
    description: str = ""
    name: str = ""
    version: str = ""


# Records as the platform reports them

@dataclass
class PlatformBucket:
    id: int
    name: str
    org_id: int = ZERO_ID
    description: str = ""
    retention_period: timedelta = timedelta(0)


@dataclass
class PlatformLabel:
    id: int
    name: str
    org_id: int = ZERO_ID
    properties: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PlatformLabelMapping:
    label_id: int
    resource_type: str
    resource_id: int


# Diff records

@dataclass
class DiffBucket:
    id: int
    name: str
    old_desc: str = ""
    new_desc: str = ""
    old_retention: timedelta = timedelta(0)
    new_retention: timedelta = timedelta(0)

    def is_new(self) -> bool:
        """Whether the bucket is going to be new to the platform."""
        return self.id == ZERO_ID


@dataclass
class DiffLabel:
    id: int
    name: str
    old_color: str = ""
    new_color: str = ""
    old_desc: str = ""
    new_desc: str = ""

    def is_new(self) -> bool:
        """Whether the label is going to be new to the platform."""
        return self.id == ZERO_ID


@dataclass
class DiffLabelMapping:
    """A single label to resource mapping.

    A resource may be mapped to many labels and a label to many resources.
    ``is_new`` comes from the association itself, not from either identity.
    """

    is_new: bool
    resource_type: str
    resource_id: int
    resource_name: str
    label_id: int
    label_name: str


@dataclass
class Diff:
    buckets: list[DiffBucket] = field(default_factory=list)
    labels: list[DiffLabel] = field(default_factory=list)
    label_mappings: list[DiffLabelMapping] = field(default_factory=list)


# Summary records

@dataclass
class SummaryLabel:
    id: int
    name: str
    org_id: int = ZERO_ID
    properties: dict[str, str] = field(default_factory=dict)


@dataclass
class SummaryBucket:
    id: int
    name: str
    org_id: int = ZERO_ID
    description: str = ""
    retention_period: timedelta = timedelta(0)
    associations: list[SummaryLabel] = field(default_factory=list)


@dataclass
class SummaryLabelMapping:
    exists: bool
    resource_name: str
    label_name: str
    label_id: int
    resource_id: int
    resource_type: str


@dataclass
class Summary:
    buckets: list[SummaryBucket] = field(default_factory=list)
    labels: list[SummaryLabel] = field(default_factory=list)
    label_mappings: list[SummaryLabelMapping] = field(default_factory=list)


# Desired resources

@dataclass(eq=False)
class Bucket:
    name: str
    description: str = ""
    retention_period: timedelta = timedelta(0)
    org_id: int = ZERO_ID
    local_id: int = ZERO_ID
    labels: list[Label] = field(default_factory=list, repr=False)
    # Platform counterpart, set when the bucket already exists.
    existing: PlatformBucket | None = None

    @property
    def id(self) -> int:
        return resolve_id(self.existing, self.local_id)

    def is_new(self) -> bool:
        return self.id == ZERO_ID


# Association variants: one entry per resource type a label can be mapped
# to. Adding a kind means adding its class here and to MappedResource.
MappedResource = Union[Bucket]

MAPPABLE_RESOURCES: dict[str, type] = {
    BUCKETS_RESOURCE_TYPE: Bucket,
}


@dataclass(frozen=True)
class LabelMapKey:
    resource_type: str
    name: str


@dataclass
class LabelMapValue:
    exists: bool
    resource: MappedResource = field(repr=False)


@dataclass(eq=False)
class Label:
    name: str
    color: str = ""
    description: str = ""
    org_id: int = ZERO_ID
    local_id: int = ZERO_ID
    # Created on first association. Single writer only.
    mappings: dict[LabelMapKey, LabelMapValue] | None = field(default=None, repr=False)
    # Platform counterpart, set when the label already exists.
    existing: PlatformLabel | None = None

    @property
    def id(self) -> int:
        return resolve_id(self.existing, self.local_id)

    def is_new(self) -> bool:
        return self.id == ZERO_ID

    def properties(self) -> dict[str, str]:
        return {
            "color": self.color,
            "description": self.description,
        }

    def set_association(self, resource_type: str, name: str,
                        resource: MappedResource, exists: bool) -> None:
        """Record (or replace) the association for (resource_type, name)."""
        if self.mappings is None:
            self.mappings = {}
        self.mappings[LabelMapKey(resource_type, name)] = LabelMapValue(exists, resource)

    def set_bucket_mapping(self, bucket: Bucket, exists: bool) -> None:
        self.set_association(BUCKETS_RESOURCE_TYPE, bucket.name, bucket, exists)

    def mapped_resource_id(self, resource_type: str, name: str) -> int:
        """Effective identity of the resource mapped under (resource_type, name).

        Returns the zero sentinel when there is no entry, and also when the
        resource type has no registered variant. Zero is therefore ambiguous
        between "unmapped", "unsupported kind" and "mapped but new".
        """
        if not self.mappings:
            return ZERO_ID
        value = self.mappings.get(LabelMapKey(resource_type, name))
        if value is None:
            return ZERO_ID
        cls = MAPPABLE_RESOURCES.get(resource_type)
        if cls is None or not isinstance(value.resource, cls):
            # unhandled variant
            return ZERO_ID
        return value.resource.id

    def mapping_summary(self) -> list[SummaryLabelMapping]:
        """One record per association. Order follows insertion, callers sort."""
        if not self.mappings:
            return []
        return [
            SummaryLabelMapping(
                exists=value.exists,
                resource_name=key.name,
                label_name=self.name,
                label_id=self.id,
                resource_id=self.mapped_resource_id(key.resource_type, key.name),
                resource_type=key.resource_type,
            )
            for key, value in self.mappings.items()
        ]


@dataclass
class Package:
    metadata: Metadata = field(default_factory=Metadata)
    bucket_index: dict[str, Bucket] = field(default_factory=dict)
    label_index: dict[str, Label] = field(default_factory=dict)

    def buckets(self) -> list[Bucket]:
        return sorted(self.bucket_index.values(), key=lambda b: b.name)

    def labels(self) -> list[Label]:
        return sorted(self.label_index.values(), key=lambda l: l.name)
