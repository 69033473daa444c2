"""Representation of the objects managed by the operator.

A Plant is the user facing declarative resource. Its spec drives the creation
of a Deployment, Service, Ingress and optionally a Certificate, and its status
is the single place the operator reports progress to the user.

Objects are dataclasses serialized with mashumaro using the Kubernetes field
names, so they may be read from and written to plain YAML manifests.
"""

from collections.abc import Callable, Hashable, Iterable, Iterator
from dataclasses import dataclass, field
import datetime
from enum import StrEnum
import logging
from pathlib import Path
from typing import Any, ClassVar, Generic, TypeVar

import aiofiles
import yaml
from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
from mashumaro.exceptions import MissingField, InvalidFieldValue

from .exceptions import InputException

__all__ = [
    "read_plants",
    "parse_raw_obj",
    "NamedResource",
    "ObjectMeta",
    "OwnerReference",
    "KubeObject",
    "Plant",
    "PlantSpec",
    "PlantStatus",
    "IssuerRef",
    "Condition",
    "ConditionStatus",
    "ResourceStatus",
    "State",
    "KeyedSet",
    "Deployment",
    "Service",
    "Ingress",
    "Certificate",
]

_LOGGER = logging.getLogger(__name__)


GROUP_NAME = "operator.fhivemind.io"
PLANT_API_VERSION = f"{GROUP_NAME}/v1"
PLANT_KIND = "Plant"
FINALIZER = GROUP_NAME
MANAGED_BY_LABEL = f"{GROUP_NAME}/managed-by"
OWNER_NAME_LABEL = f"{GROUP_NAME}/owner-name"
OPERATOR_NAME = "plant-operator"

DEFAULT_CONTAINER_PORT = 80
DEFAULT_REPLICA_COUNT = 1

DEPLOYMENT_KIND = "Deployment"
SERVICE_KIND = "Service"
INGRESS_KIND = "Ingress"
CERTIFICATE_KIND = "Certificate"


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc).replace(microsecond=0)


def _check_version(doc: dict[str, Any], version: str) -> None:
    """Assert that the resource has the specified version."""
    if not (api_version := doc.get("apiVersion")):
        raise InputException(f"Invalid object missing apiVersion: {doc}")
    if not api_version.startswith(version):
        raise InputException(f"Invalid object expected '{version}': {doc}")


@dataclass
class BaseManifest(DataClassDictMixin):
    """Base class for all manifest objects."""

    def yaml(self) -> str:
        """Return a YAML string representation of the object."""
        return yaml.dump(self.to_dict(), sort_keys=False, explicit_start=True)

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass(frozen=True, order=True)
class NamedResource:
    """Identifier for a kubernetes resource."""

    kind: str
    namespace: str | None
    name: str

    @property
    def namespaced_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    def __str__(self) -> str:
        """Return the kind and namespaced name concatenated as an id."""
        return f"{self.kind}/{self.namespaced_name}"


@dataclass
class OwnerReference(BaseManifest):
    """Reference from a managed object to the object that owns it."""

    api_version: str = field(metadata=field_options(alias="apiVersion"))
    kind: str
    name: str
    uid: str
    controller: bool = False
    block_owner_deletion: bool = field(
        metadata=field_options(alias="blockOwnerDeletion"), default=False
    )


@dataclass
class ObjectMeta(BaseManifest):
    """Metadata common to all objects stored in the cluster."""

    name: str
    """The name of the object."""

    namespace: str | None = None
    """The namespace of the object."""

    uid: str | None = None
    """Unique identifier assigned by the cluster on creation."""

    generation: int = 0
    """Sequence number of the desired state, bumped on every spec change."""

    resource_version: str | None = field(
        metadata=field_options(alias="resourceVersion"), default=None
    )
    """Opaque version used for optimistic concurrency."""

    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    finalizers: list[str] = field(default_factory=list)

    owner_references: list[OwnerReference] = field(
        metadata=field_options(alias="ownerReferences"), default_factory=list
    )

    creation_timestamp: datetime.datetime | None = field(
        metadata=field_options(alias="creationTimestamp"), default=None
    )

    deletion_timestamp: datetime.datetime | None = field(
        metadata=field_options(alias="deletionTimestamp"), default=None
    )
    """Set when deletion was requested but finalizers are still present."""

    def controller_ref(self) -> OwnerReference | None:
        """Return the owner reference marked as the controller, if any."""
        for ref in self.owner_references:
            if ref.controller:
                return ref
        return None


@dataclass
class KubeObject(BaseManifest):
    """Base class for all objects stored by the cluster client."""

    kind: ClassVar[str]
    api_version: ClassVar[str]

    metadata: ObjectMeta

    @property
    def resource_id(self) -> NamedResource:
        """Identity used to fetch the object from the cluster."""
        return NamedResource(self.kind, self.metadata.namespace, self.metadata.name)

    @classmethod
    def group_version_kind(cls) -> str:
        """Return the group, version and kind of the object type."""
        return f"{cls.api_version}, Kind={cls.kind}"

    @property
    def gvk(self) -> str:
        return self.group_version_kind()

    def to_doc(self) -> dict[str, Any]:
        """Return the object as a raw kubernetes document."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            **self.to_dict(),
        }

    def yaml(self) -> str:
        """Return a YAML string representation of the raw document."""
        return yaml.dump(self.to_doc(), sort_keys=False, explicit_start=True)


@dataclass
class ManagedObject(KubeObject):
    """A dependent object with an unstructured spec and status."""

    spec: dict[str, Any] = field(default_factory=dict)
    status: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "ManagedObject":
        """Parse a managed object from a kubernetes resource."""
        _check_version(doc, cls.api_version)
        if not (metadata := doc.get("metadata")):
            raise InputException(f"Invalid {cls.__name__} missing metadata: {doc}")
        try:
            return cls(
                metadata=ObjectMeta.from_dict(metadata),
                spec=doc.get("spec") or {},
                status=doc.get("status") or {},
            )
        except (MissingField, InvalidFieldValue) as err:
            raise InputException(f"Invalid {cls.__name__}: {err}") from err


@dataclass
class Deployment(ManagedObject):
    """A workload running the Plant image."""

    kind: ClassVar[str] = DEPLOYMENT_KIND
    api_version: ClassVar[str] = "apps/v1"


@dataclass
class Service(ManagedObject):
    """A network endpoint in front of the Deployment."""

    kind: ClassVar[str] = SERVICE_KIND
    api_version: ClassVar[str] = "v1"


@dataclass
class Ingress(ManagedObject):
    """An ingress route exposing the Service on the Plant host."""

    kind: ClassVar[str] = INGRESS_KIND
    api_version: ClassVar[str] = "networking.k8s.io/v1"


@dataclass
class Certificate(ManagedObject):
    """A certificate issued for the Plant host."""

    kind: ClassVar[str] = CERTIFICATE_KIND
    api_version: ClassVar[str] = "cert-manager.io/v1"


MANAGED_KINDS: dict[str, type[ManagedObject]] = {
    cls.kind: cls for cls in (Deployment, Service, Ingress, Certificate)
}


class State(StrEnum):
    """Lifecycle state of a Plant or one of its managed resources."""

    NONE = ""
    PROCESSING = "Processing"
    DELETING = "Deleting"
    READY = "Ready"
    ERROR = "Error"


class ConditionStatus(StrEnum):
    """Status of a condition."""

    TRUE = "True"
    FALSE = "False"


@dataclass
class Condition(BaseManifest):
    """Latest observation of one aspect of the Plant."""

    type: str
    status: ConditionStatus
    reason: str
    message: str = ""
    observed_generation: int = field(
        metadata=field_options(alias="observedGeneration"), default=0
    )
    last_transition_time: datetime.datetime | None = field(
        metadata=field_options(alias="lastTransitionTime"), default=None
    )


@dataclass
class ResourceStatus(BaseManifest):
    """Observed state of one managed resource."""

    name: str
    kind: str = field(metadata=field_options(alias="gvk"), default="")
    uid: str | None = None
    state: State = State.PROCESSING


K = TypeVar("K", bound=Hashable)
T = TypeVar("T")


class KeyedSet(Generic[K, T]):
    """View over a status list that holds at most one entry per key.

    The view mutates the list it wraps so the owning dataclass serializes
    the result directly.
    """

    def __init__(self, items: list[T], key: Callable[[T], K]) -> None:
        """Initialize KeyedSet."""
        self._items = items
        self._key = key

    def get(self, key: K) -> T | None:
        """Return the entry stored for the key, if any."""
        for item in self._items:
            if self._key(item) == key:
                return item
        return None

    def upsert(self, item: T) -> None:
        """Replace the entry with the same key or append a new one."""
        key = self._key(item)
        for index, existing in enumerate(self._items):
            if self._key(existing) == key:
                self._items[index] = item
                return
        self._items.append(item)

    def remove_stale(self, keep: Iterable[K]) -> list[T]:
        """Remove every entry whose key is not in keep, returning them."""
        keep_keys = set(keep)
        removed = [item for item in self._items if self._key(item) not in keep_keys]
        self._items[:] = [
            item for item in self._items if self._key(item) in keep_keys
        ]
        return removed

    def keys(self) -> list[K]:
        """Return the keys in insertion order."""
        return [self._key(item) for item in self._items]

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


@dataclass
class PlantStatus(BaseManifest):
    """Observed state of a Plant."""

    state: State = State.NONE
    """Overall lifecycle state, derived from conditions and resources."""

    conditions: list[Condition] = field(default_factory=list)
    """One condition per managed resource, keyed by type."""

    resources: list[ResourceStatus] = field(default_factory=list)
    """One status entry per managed resource, keyed by name."""

    last_update_time: datetime.datetime | None = field(
        metadata=field_options(alias="lastUpdateTime"), default=None
    )

    @property
    def condition_set(self) -> KeyedSet[str, Condition]:
        """Return the conditions keyed by type."""
        return KeyedSet(self.conditions, lambda cond: cond.type)

    @property
    def resource_set(self) -> KeyedSet[str, ResourceStatus]:
        """Return the resource statuses keyed by name."""
        return KeyedSet(self.resources, lambda res: res.name)

    def set_condition(self, condition: Condition) -> None:
        """Add or update a condition keeping the transition time stable.

        The transition time only moves when the status of the condition flips.
        """
        existing = self.condition_set.get(condition.type)
        if existing is not None and existing.status == condition.status:
            condition.last_transition_time = existing.last_transition_time
        elif condition.last_transition_time is None:
            condition.last_transition_time = _now()
        self.condition_set.upsert(condition)

    def determine_state(self) -> State:
        """Return the overall state computed from resources and conditions."""
        if any(res.state == State.ERROR for res in self.resources):
            return State.ERROR
        if any(cond.status != ConditionStatus.TRUE for cond in self.conditions):
            return State.PROCESSING
        return State.READY

    def waiting_conditions(self) -> list[str]:
        """Return the types of conditions that are not yet satisfied."""
        return [
            cond.type for cond in self.conditions if cond.status != ConditionStatus.TRUE
        ]


@dataclass
class IssuerRef(BaseManifest):
    """Reference to the issuer that signs the Plant certificate."""

    name: str
    kind: str | None = None
    group: str | None = None


@dataclass
class PlantSpec(BaseManifest):
    """Desired state of a Plant."""

    image: str = ""
    """The image used for the Deployment containers."""

    host: str = ""
    """The domain name where the deployed image will be accessible."""

    replicas: int = DEFAULT_REPLICA_COUNT
    """The number of desired pods."""

    container_port: int = field(
        metadata=field_options(alias="containerPort"), default=DEFAULT_CONTAINER_PORT
    )
    """The port exposed by the container and the Service."""

    ingress_class_name: str | None = field(
        metadata=field_options(alias="ingressClassName"), default=None
    )

    tls_secret_name: str | None = field(
        metadata=field_options(alias="tlsSecretName"), default=None
    )
    """An existing secret holding the TLS certificate for the host."""

    tls_cert_issuer_ref: IssuerRef | None = field(
        metadata=field_options(alias="tlsCertIssuerRef"), default=None
    )
    """An issuer used to request a certificate for the host."""

    def validate(self) -> None:
        """Raise an InputException if the spec is not usable."""
        if not self.image:
            raise InputException(".spec.image is required")
        if not self.host:
            raise InputException(".spec.host is required")
        if self.replicas < 1:
            raise InputException(".spec.replicas must be at least 1")
        if self.ingress_class_name is not None and not self.ingress_class_name:
            raise InputException(".spec.ingressClassName provided but empty")
        if self.tls_secret_name is not None and not self.tls_secret_name:
            raise InputException(".spec.tlsSecretName provided but empty")
        if self.tls_cert_issuer_ref is not None and not self.tls_cert_issuer_ref.name:
            raise InputException(".spec.tlsCertIssuerRef.name cannot be empty")
        if self.tls_secret_name is not None and self.tls_cert_issuer_ref is not None:
            raise InputException(
                "both .spec.tlsSecretName and .spec.tlsCertIssuerRef provided "
                "but only one required"
            )


@dataclass
class Plant(KubeObject):
    """A representation of a Plant, the owner of all managed objects."""

    kind: ClassVar[str] = PLANT_KIND
    api_version: ClassVar[str] = PLANT_API_VERSION

    spec: PlantSpec = field(default_factory=PlantSpec)
    status: PlantStatus = field(default_factory=PlantStatus)

    @classmethod
    def parse_doc(cls, doc: dict[str, Any]) -> "Plant":
        """Parse a Plant from a kubernetes resource object."""
        _check_version(doc, GROUP_NAME)
        if doc.get("kind") != PLANT_KIND:
            raise InputException(f"Invalid {cls.__name__} kind: {doc}")
        if not (metadata := doc.get("metadata")):
            raise InputException(f"Invalid {cls.__name__} missing metadata: {doc}")
        if not metadata.get("name"):
            raise InputException(f"Invalid {cls.__name__} missing metadata.name: {doc}")
        try:
            plant = cls(
                metadata=ObjectMeta.from_dict(metadata),
                spec=PlantSpec.from_dict(doc.get("spec") or {}),
                status=PlantStatus.from_dict(doc.get("status") or {}),
            )
        except (MissingField, InvalidFieldValue) as err:
            raise InputException(f"Invalid {cls.__name__}: {err}") from err
        if not plant.metadata.namespace:
            plant.metadata.namespace = "default"
        plant.spec.validate()
        return plant

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace or "default"

    @property
    def is_deleting(self) -> bool:
        """Return True once deletion of the Plant was requested."""
        return self.metadata.deletion_timestamp is not None

    def operator_labels(self) -> dict[str, str]:
        """Labels attached to every object managed for this Plant."""
        return {
            MANAGED_BY_LABEL: OPERATOR_NAME,
            OWNER_NAME_LABEL: self.name,
        }

    def has_finalizer(self, finalizer: str = FINALIZER) -> bool:
        return finalizer in self.metadata.finalizers

    def add_finalizer(self, finalizer: str = FINALIZER) -> bool:
        """Add the finalizer, returning True if it was missing."""
        if finalizer in self.metadata.finalizers:
            return False
        self.metadata.finalizers.append(finalizer)
        return True

    def remove_finalizer(self, finalizer: str = FINALIZER) -> bool:
        """Remove the finalizer, returning True if it was present."""
        if finalizer not in self.metadata.finalizers:
            return False
        self.metadata.finalizers.remove(finalizer)
        return True


def parse_raw_obj(obj: dict[str, Any]) -> KubeObject:
    """Parse a raw kubernetes object into a KubeObject."""
    if not (kind := obj.get("kind")):
        raise InputException(f"Invalid object missing kind: {obj}")
    if kind == PLANT_KIND:
        return Plant.parse_doc(obj)
    if (cls := MANAGED_KINDS.get(kind)) is not None:
        return cls.parse_doc(obj)
    raise InputException(f"Unsupported object kind '{kind}': {obj}")


def _yaml_files(path: Path) -> list[Path]:
    if path.is_file():
        return [path]
    if not path.is_dir():
        raise InputException(f"Path does not exist: {path}")
    return sorted(
        p for p in path.rglob("*") if p.is_file() and p.suffix in (".yaml", ".yml")
    )


async def read_plants(path: Path) -> list[Plant]:
    """Return all Plant objects found in a YAML file or directory.

    Documents of any other kind are ignored.
    """
    plants: list[Plant] = []
    for file_path in _yaml_files(path):
        async with aiofiles.open(str(file_path)) as manifest_file:
            content = await manifest_file.read()
        try:
            docs = list(yaml.safe_load_all(content))
        except yaml.YAMLError as err:
            raise InputException(f"Unable to parse {file_path}: {err}") from err
        for doc in docs:
            if not isinstance(doc, dict) or doc.get("kind") != PLANT_KIND:
                _LOGGER.debug("Skipping non-Plant document in %s", file_path)
                continue
            plants.append(Plant.parse_doc(doc))
    _LOGGER.debug("Read %d Plant objects from %s", len(plants), path)
    return plants

