"""
City storage abstraction.

Separates persistence from the simulation for testability. Anything that
satisfies CityStore can serve as the engine's save hook.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from .schema import City

logger = logging.getLogger(__name__)


@runtime_checkable
class CityStore(Protocol):
    """
    Abstract storage interface for cities.

    Implementations:
    - JsonCityStore: File-based persistence (production)
    - MemoryCityStore: In-memory storage (testing)
    """

    def save(self, city: City) -> None:
        """Persist a city."""
        ...

    def load(self, city_id: str) -> City | None:
        """Load a city by ID. Returns None if not found."""
        ...

    def delete(self, city_id: str) -> bool:
        """Delete a city. Returns True if deleted."""
        ...

    def list_all(self) -> list[dict]:
        """List all cities with metadata."""
        ...

    def exists(self, city_id: str) -> bool:
        """Check if a city exists."""
        ...


def _summary(city: City) -> dict:
    return {
        "id": city.id,
        "name": city.name,
        "mood": city.mood.value,
        "progress": city.progress,
        "threads": len(city.threads),
        "created_at": city.created_at,
    }


class JsonCityStore:
    """
    File-based city storage, one JSON document per city.

    Features:
    - Automatic backup on save
    - Partial ID matching on load
    """

    def __init__(self, cities_dir: Path | str = "cities"):
        self.cities_dir = Path(cities_dir)
        self.cities_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, city_id: str) -> Path:
        return self.cities_dir / f"{city_id}.json"

    def save(self, city: City) -> None:
        """Save city to JSON file, keeping the previous save as .json.bak."""
        city_file = self._path(city.id)

        if city_file.exists():
            backup = city_file.with_suffix(".json.bak")
            backup.write_text(city_file.read_text(encoding="utf-8"), encoding="utf-8")

        city_file.write_text(city.model_dump_json(indent=2), encoding="utf-8")

    def _resolve(self, city_id: str) -> Path | None:
        city_file = self._path(city_id)
        if city_file.exists():
            return city_file

        for f in sorted(self.cities_dir.glob("*.json")):
            if f.stem.startswith(city_id):
                return f
        return None

    def load(self, city_id: str) -> City | None:
        """
        Load city by ID or partial match.

        Supports:
        - Full id: "a1b2c3d4"
        - Partial prefix: "a1b2"
        """
        city_file = self._resolve(city_id)
        if city_file is None:
            return None

        try:
            data = json.loads(city_file.read_text(encoding="utf-8"))
            return City.model_validate(data)
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            logger.warning(f"Could not load city from {city_file.name}: {e}")
            return None

    def delete(self, city_id: str) -> bool:
        city_file = self._path(city_id)
        if city_file.exists():
            city_file.unlink()
            return True
        return False

    def list_all(self) -> list[dict]:
        """List all cities, most recently saved first."""
        cities = []

        for f in sorted(
            self.cities_dir.glob("*.json"),
            key=lambda x: x.stat().st_mtime,
            reverse=True,
        ):
            try:
                data = json.loads(f.read_text(encoding="utf-8"))
                cities.append({
                    "id": data.get("id", f.stem),
                    "name": data.get("name", "Unnamed"),
                    "mood": data.get("mood", "awakening"),
                    "progress": data.get("progress", 0.0),
                    "threads": len(data.get("threads", [])),
                    "created_at": datetime.fromisoformat(data.get("created_at", "2000-01-01")),
                })
            except (json.JSONDecodeError, ValueError, AttributeError):
                continue

        return cities

    def exists(self, city_id: str) -> bool:
        return self._path(city_id).exists()


class MemoryCityStore:
    """
    In-memory city storage for testing.

    Saves deep copies, so later mutation of the live city does not leak
    into what was persisted.
    """

    def __init__(self):
        self.cities: dict[str, City] = {}
        self.save_count = 0

    def save(self, city: City) -> None:
        self.cities[city.id] = city.model_copy(deep=True)
        self.save_count += 1

    def load(self, city_id: str) -> City | None:
        if city_id in self.cities:
            return self.cities[city_id].model_copy(deep=True)

        for cid, city in self.cities.items():
            if cid.startswith(city_id):
                return city.model_copy(deep=True)

        return None

    def delete(self, city_id: str) -> bool:
        if city_id in self.cities:
            del self.cities[city_id]
            return True
        return False

    def list_all(self) -> list[dict]:
        cities = [_summary(city) for city in self.cities.values()]
        cities.sort(key=lambda x: x["created_at"], reverse=True)
        return cities

    def exists(self, city_id: str) -> bool:
        return city_id in self.cities

    def clear(self) -> None:
        """Clear all cities (test utility)."""
        self.cities.clear()
        self.save_count = 0
