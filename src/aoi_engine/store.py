"""FeatureStore — the canonical, persisted list of AOI features.

The store is the only writer of persisted state. Every mutation writes the
full snapshot (features and view state) before subscribers are notified,
so anything reacting to a change always sees persisted data.
"""

from __future__ import annotations

import dataclasses
import json
from enum import Enum
from typing import Callable, Iterable

from loguru import logger

from aoi_engine.feature import AOIFeature, ViewState
from aoi_engine.storage import KeyValueStorage

FEATURES_KEY = "aoi-features"
VIEW_STATE_KEY = "view-state"


class StoreChange(str, Enum):
    """Which part of the store a notification is about."""
    FEATURES = "features"
    VIEW = "view"


class DuplicateFeatureError(ValueError):
    """Raised when adding a feature whose id is already stored."""


class FeatureNotFoundError(KeyError):
    """Raised when an operation needs a feature id that is not stored."""


Listener = Callable[[StoreChange], None]


class FeatureStore:
    """Owns the AOI feature list and the layer view state."""

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage
        self._features: list[AOIFeature] = []
        self._view_state = ViewState()
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Rehydrate from storage. Missing or corrupt keys fall back to defaults."""
        self._features = self._load_features()
        self._view_state = self._load_view_state()
        logger.info(f"Loaded {len(self._features)} AOI features")

    def _load_features(self) -> list[AOIFeature]:
        raw = self._storage.get(FEATURES_KEY)
        if raw is None:
            logger.debug(f"No persisted '{FEATURES_KEY}', starting empty")
            return []
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
            features = [AOIFeature.from_dict(item) for item in data]
        except Exception as e:
            logger.error(f"Failed to load features, starting empty: {e}")
            return []

        seen: set[str] = set()
        unique = []
        for feature in features:
            if feature.id in seen:
                logger.warning(f"Dropping duplicate persisted feature {feature.id}")
                continue
            seen.add(feature.id)
            unique.append(feature)
        return unique

    def _load_view_state(self) -> ViewState:
        raw = self._storage.get(VIEW_STATE_KEY)
        if raw is None:
            return ViewState()
        try:
            return ViewState.from_dict(json.loads(raw))
        except Exception as e:
            logger.error(f"Failed to load view state, using defaults: {e}")
            return ViewState()

    def _save(self, features: list[AOIFeature], view_state: ViewState) -> None:
        self._storage.set(FEATURES_KEY, json.dumps([f.to_dict() for f in features]))
        self._storage.set(VIEW_STATE_KEY, json.dumps(view_state.to_dict()))

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def _commit(
        self,
        change: StoreChange,
        features: list[AOIFeature] | None = None,
        view_state: ViewState | None = None,
    ) -> None:
        """Persist the new snapshot, then adopt it and notify listeners.

        If storage raises, the in-memory state is left as it was and
        nobody is notified.
        """
        features = self._features if features is None else features
        view_state = self._view_state if view_state is None else view_state
        try:
            self._save(features, view_state)
        except Exception as e:
            logger.error(f"Failed to persist {change.value} change: {e}")
            raise
        self._features = features
        self._view_state = view_state
        for listener in list(self._listeners):
            listener(change)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def features(self) -> tuple[AOIFeature, ...]:
        return tuple(self._features)

    @property
    def view_state(self) -> ViewState:
        return dataclasses.replace(self._view_state)

    def get(self, feature_id: str) -> AOIFeature | None:
        for feature in self._features:
            if feature.id == feature_id:
                return feature
        return None

    def __len__(self) -> int:
        return len(self._features)

    def __contains__(self, feature_id: object) -> bool:
        return any(f.id == feature_id for f in self._features)

    def next_default_name(self) -> str:
        """Name for the next drawn feature: ``AOI <count + 1>``."""
        return f"AOI {len(self._features) + 1}"

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_feature(self, feature: AOIFeature) -> AOIFeature:
        """Append a feature and persist.

        Raises:
            DuplicateFeatureError: If a feature with the same id exists.
        """
        if feature.id in self:
            raise DuplicateFeatureError(f"Feature already exists: {feature.id}")
        self._commit(StoreChange.FEATURES, features=[*self._features, feature])
        logger.info(f"Added {feature.kind.value} '{feature.name}' ({feature.id})")
        return feature

    def add_features(self, features: Iterable[AOIFeature]) -> list[AOIFeature]:
        """Append several features at once; nothing is added if any id collides."""
        batch = list(features)
        ids = [f.id for f in batch]
        clashes = {i for i in ids if i in self} | {i for i in ids if ids.count(i) > 1}
        if clashes:
            raise DuplicateFeatureError(f"Feature ids already exist: {sorted(clashes)}")
        if not batch:
            return []
        self._commit(StoreChange.FEATURES, features=[*self._features, *batch])
        logger.info(f"Added {len(batch)} features")
        return batch

    def remove_feature(self, feature_id: str) -> bool:
        """Remove a feature. Unknown ids are a no-op.

        Returns:
            True if a feature was removed.
        """
        remaining = [f for f in self._features if f.id != feature_id]
        removed = len(remaining) != len(self._features)
        self._commit(StoreChange.FEATURES, features=remaining)
        if removed:
            logger.info(f"Removed feature {feature_id}")
        return removed

    def rename_feature(self, feature_id: str, name: str) -> AOIFeature:
        """Replace a feature's name. Geometry and area are untouched.

        Raises:
            FeatureNotFoundError: If the id is not stored.
            ValueError: If the name is blank.
        """
        name = name.strip()
        if not name:
            raise ValueError("Feature name must not be blank")
        for idx, feature in enumerate(self._features):
            if feature.id == feature_id:
                renamed = dataclasses.replace(feature, name=name)
                features = list(self._features)
                features[idx] = renamed
                self._commit(StoreChange.FEATURES, features=features)
                logger.info(f"Renamed feature {feature_id} to '{name}'")
                return renamed
        raise FeatureNotFoundError(f"Feature not found: {feature_id}")

    def clear_all(self) -> None:
        count = len(self._features)
        self._commit(StoreChange.FEATURES, features=[])
        logger.info(f"Cleared {count} features")

    def set_view_state(self, **patch) -> ViewState:
        """Merge fields into the view state and persist.

        Unknown fields are ignored.

        Raises:
            ValueError: If a toggle is not a bool or the opacity is not an
                integer within 0..100.
        """
        current = self._view_state.to_dict()
        for key, value in patch.items():
            if key not in current:
                logger.warning(f"Ignoring unknown view state field '{key}'")
                continue
            current[key] = value
        self._commit(StoreChange.VIEW, view_state=ViewState(**current))
        return self.view_state
