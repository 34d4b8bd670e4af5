"""
In-memory object store.

The store is organized around schemas. Every named schema of the document
owns a collection holding the objects seen or generated for it, together
with the objects of other schemas they are associated with. There are no
indexes; lookups are linear scans so the matching stays flexible.
"""
import copy
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from specplan.core.errors import InvalidError, NotFoundError
from specplan.services.schema_graph import SchemaGraph

logger = logging.getLogger(__name__)

Associations = Dict[str, Dict[str, Any]]

# Checks whether the search criteria and an existing object match.
MatchFunc = Callable[[Any, Any], bool]


def match_always(criteria: Any, existing: Any) -> bool:
    return True


def without_class(associations: Optional[Associations], class_name: str) -> Associations:
    """Copy of the associations without the given class."""
    return {k: v for k, v in (associations or {}).items() if k != class_name}


def map_combine(dst: Dict[str, Any], src: Mapping[str, Any]) -> Dict[str, Any]:
    """Deep merge src into dst. Fields of src win and are copied."""
    for key, value in src.items():
        if isinstance(value, Mapping) and isinstance(dst.get(key), dict):
            map_combine(dst[key], value)
        else:
            dst[key] = copy.deepcopy(value)
    return dst


@dataclass
class DBEntry:
    data: Dict[str, Any]
    associations: Associations = field(default_factory=dict)

    def matches(self, criteria: Any, associations: Associations, match_fn: MatchFunc) -> bool:
        for class_name, associated in associations.items():
            if associated != self.associations.get(class_name):
                return False
        return match_fn(criteria, self.data)


@dataclass
class SchemaCollection:
    """Objects of one schema, in insertion order."""
    name: str
    schema: Dict[str, Any]
    retain_history: bool = True
    entries: List[DBEntry] = field(default_factory=list)

    def insert(self, obj: Dict[str, Any], associations: Associations):
        if self.retain_history:
            self.entries.append(DBEntry(copy.deepcopy(obj), copy.deepcopy(associations)))

    def find(self, criteria, associations, match_fn, desired_count) -> List[Dict[str, Any]]:
        result = []
        for entry in self.entries:
            if 0 <= desired_count <= len(result):
                break
            if entry.matches(criteria, associations, match_fn):
                result.append(copy.deepcopy(entry.data))
        return result

    def delete(self, criteria, associations, match_fn, desired_count) -> int:
        kept = []
        count = 0
        for entry in self.entries:
            if (desired_count < 0 or count < desired_count) and entry.matches(criteria, associations, match_fn):
                count += 1
            else:
                kept.append(entry)
        self.entries = kept
        return count

    def update(self, criteria, associations, match_fn, new_obj, desired_count, patch) -> int:
        count = 0
        for entry in self.entries:
            if 0 <= desired_count <= count:
                break
            if entry.matches(criteria, associations, match_fn):
                if patch:
                    map_combine(entry.data, new_obj)
                else:
                    entry.data = copy.deepcopy(new_obj)
                count += 1
        return count

    def clone_schema(self) -> "SchemaCollection":
        return SchemaCollection(self.name, self.schema, self.retain_history)


class ObjectStore:
    """
    Schema name to collection mapping.

    Every public operation holds one store wide lock for its whole duration.
    Contention is expected to be low. Objects are copied on the way in and
    out, so callers never share state with the stored entries.
    """

    def __init__(
        self,
        graph: SchemaGraph,
        schemas: Optional[Union[Mapping[str, Dict[str, Any]], Iterable[Tuple[str, Dict[str, Any]]]]] = None,
    ):
        self.graph = graph
        self._collections: Dict[str, SchemaCollection] = {}
        self._lock = threading.Lock()
        self.init(graph.definitions if schemas is None else schemas)

    def init(self, schemas):
        """Create one empty collection per named schema."""
        items = schemas.items() if isinstance(schemas, Mapping) else schemas
        collections: Dict[str, SchemaCollection] = {}
        for name, schema in items:
            if name in collections:
                logger.warning(f"Schema {name} already exists")
            collections[name] = SchemaCollection(name, schema)
        with self._lock:
            self._collections = collections

    @property
    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._collections)

    def get_schema(self, name: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            collection = self._collections.get(name)
            return collection.schema if collection else None

    def set_retain_history(self, name: str, retain: bool):
        """Turn object tracking on or off for one schema."""
        with self._lock:
            collection = self._collections.get(name)
            if collection is None:
                raise NotFoundError(f"Schema {name} not found in the object store")
            collection.retain_history = retain

    def insert(self, name: str, obj: Dict[str, Any], associations: Optional[Associations] = None):
        """
        Insert an object into the named schema's collection.

        Args:
            name: Schema name
            obj: Decoded JSON object
            associations: Class name to associated object. An entry for the
                object's own class is dropped.
        """
        with self._lock:
            collection = self._collections.get(name)
            if collection is None:
                raise NotFoundError(f"Inserting into non-existing schema: {name}")
            if not isinstance(obj, dict):
                raise InvalidError(f"Only objects can be stored, got {type(obj).__name__} for {name}")
            collection.insert(obj, without_class(associations, name))

    def find(
        self,
        name: str,
        criteria: Any = None,
        associations: Optional[Associations] = None,
        match_fn: MatchFunc = match_always,
        desired_count: int = -1,
    ) -> List[Dict[str, Any]]:
        """
        Find up to desired_count objects (-1 for all) matching the criteria.

        An entry matches when each given association equals the entry's own
        association for that class, and match_fn(criteria, data) is true.
        """
        with self._lock:
            collection = self._collections.get(name)
            if collection is None:
                return []
            return collection.find(criteria, without_class(associations, name), match_fn, desired_count)

    def delete(
        self,
        name: str,
        criteria: Any = None,
        associations: Optional[Associations] = None,
        match_fn: MatchFunc = match_always,
        desired_count: int = -1,
    ) -> int:
        """Delete matching objects, returns the number deleted."""
        with self._lock:
            collection = self._collections.get(name)
            if collection is None:
                return 0
            return collection.delete(criteria, without_class(associations, name), match_fn, desired_count)

    def update(
        self,
        name: str,
        criteria: Any,
        associations: Optional[Associations],
        match_fn: MatchFunc,
        new_obj: Dict[str, Any],
        desired_count: int = -1,
        patch: bool = False,
    ) -> int:
        """
        Update matching objects, returns the number updated.

        With patch set the new object is merged into the existing one,
        otherwise it replaces it.
        """
        with self._lock:
            collection = self._collections.get(name)
            if collection is None:
                return 0
            return collection.update(
                criteria, without_class(associations, name), match_fn, new_obj, desired_count, patch
            )

    def find_matching_schema(self, obj: Any) -> Tuple[Optional[str], Optional[Dict[str, Any]]]:
        """
        Find the first schema, by name, that the object matches.

        Several schemas can fit the same object; only the first one is
        returned.
        """
        with self._lock:
            candidates = [(name, self._collections[name].schema) for name in sorted(self._collections)]
        for name, schema in candidates:
            if self.graph.matches(schema, obj):
                logger.info(f"Found matching schema: {name}")
                return name, schema
        return None, None

    def clone_schema(self) -> "ObjectStore":
        """A store with the same schemas and no objects."""
        clone = ObjectStore(self.graph, {})
        with self._lock:
            clone._collections = {k: v.clone_schema() for k, v in self._collections.items()}
        return clone
