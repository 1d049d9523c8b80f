"""File caches for AI-generated enrichments."""
from datetime import date
from pathlib import Path
from typing import Callable, Generic, TypeVar

T = TypeVar('T')


class FileCache(Generic[T]):
    """One JSON file per key under a directory."""

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        safe_key = "".join(c if c.isalnum() or c in "-_." else "_" for c in key)
        return self.cache_dir / f"{safe_key}.json"

    def get(self, key: str, loader: Callable[[str], T]) -> T | None:
        cache_file = self._path(key)
        if cache_file.exists():
            return loader(cache_file.read_text())
        return None

    def save(self, key: str, value: T, serializer: Callable[[T], str]) -> None:
        self._path(key).write_text(serializer(value))

    def exists(self, key: str) -> bool:
        return self._path(key).exists()


class DateOrganizedCache(FileCache[T]):
    """Cache laid out as YYYY-MM/DD/key.json by feedback creation date."""

    def for_date(self, target_date: date | None) -> FileCache[T]:
        if target_date is None:
            return FileCache(self.cache_dir / "undated")
        return FileCache(
            self.cache_dir / target_date.strftime("%Y-%m") / target_date.strftime("%d")
        )

    def get_dated(self, key: str, target_date: date | None, loader: Callable[[str], T]) -> T | None:
        return self.for_date(target_date).get(key, loader)

    def save_dated(self, key: str, target_date: date | None, value: T, serializer: Callable[[T], str]) -> None:
        self.for_date(target_date).save(key, value, serializer)

    def exists_dated(self, key: str, target_date: date | None) -> bool:
        return self.for_date(target_date).exists(key)
