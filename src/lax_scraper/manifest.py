"""Per-source extraction manifest: load, pure update, durable save.

Callers follow one pattern: compute a new manifest with :meth:`mark_complete`,
then immediately :meth:`save` it before starting the next entity. A crash can
therefore lose at most the entity that was in flight.
"""

import json
from datetime import datetime, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from .lax_logging import get_logger
from .models import EntityStatus, ExtractionManifest, SeasonManifest
from .persist import read_json, write_json
from .staleness import is_entity_stale

logger = get_logger(__name__)

MANIFEST_FILENAME = "manifest.json"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ManifestStore:
    """Ledger of extraction status for one source and its fixed entity set."""

    def __init__(self, source: str, entities: Sequence[str], output_dir: Path) -> None:
        if not entities:
            raise ValueError("a source must declare at least one entity")
        self.source = source
        self.entities = tuple(entities)
        self.path = Path(output_dir) / source / MANIFEST_FILENAME

    def empty_manifest(self) -> ExtractionManifest:
        return ExtractionManifest(source=self.source)

    def empty_season_manifest(self) -> SeasonManifest:
        return {entity: EntityStatus() for entity in self.entities}

    def _validate(self, raw: Any) -> ExtractionManifest:
        manifest = ExtractionManifest.model_validate(raw)
        if manifest.source != self.source:
            raise ValueError(f"manifest belongs to source '{manifest.source}'")
        for season_key, season in manifest.seasons.items():
            unknown = set(season) - set(self.entities)
            if unknown:
                raise ValueError(f"season {season_key} has unknown entities: {sorted(unknown)}")
        return manifest

    def load(self) -> ExtractionManifest:
        """Read the persisted manifest; anything unusable yields a fresh one."""
        if not self.path.exists():
            logger.info("No manifest found, starting fresh", source=self.source, path=str(self.path))
            return self.empty_manifest()

        raw = read_json(self.path)
        if raw is None:
            logger.warning(
                "Manifest unreadable, creating new",
                source=self.source,
                path=str(self.path),
            )
            return self.empty_manifest()

        try:
            return self._validate(raw)
        except (ValidationError, ValueError) as e:
            logger.warning(
                "Manifest schema invalid, creating new",
                source=self.source,
                path=str(self.path),
                error=str(e),
            )
            return self.empty_manifest()

    def save(self, manifest: ExtractionManifest) -> None:
        """Durably write ``manifest``. Raises FileWriteError on failure."""
        write_json(self.path, manifest.to_json_dict())
        logger.debug("Saved manifest", source=self.source, path=str(self.path))

    def get_season_manifest(self, manifest: ExtractionManifest, season_key: str) -> SeasonManifest:
        """Season statuses with every declared entity present."""
        season = self.empty_season_manifest()
        season.update(manifest.seasons.get(str(season_key), {}))
        return season

    def get_entity_status(
        self, manifest: ExtractionManifest, season_key: str, entity: str
    ) -> EntityStatus:
        return self.get_season_manifest(manifest, season_key)[self._check_entity(entity)]

    def mark_complete(
        self,
        manifest: ExtractionManifest,
        season_key: str,
        entity: str,
        count: int,
        duration_ms: int,
    ) -> ExtractionManifest:
        """Return a new manifest with ``entity`` recorded as extracted now.

        ``manifest`` itself is left untouched.
        """
        self._check_entity(entity)
        key = str(season_key)
        timestamp = utc_now_iso()
        season = self.get_season_manifest(manifest, key)
        season[entity] = EntityStatus(
            extracted=True,
            count=count,
            timestamp=timestamp,
            duration_ms=duration_ms,
        )
        seasons = dict(manifest.seasons)
        seasons[key] = season
        return manifest.model_copy(update={"seasons": seasons, "last_run": timestamp})

    def is_extracted(self, manifest: ExtractionManifest, season_key: str, entity: str) -> bool:
        return self.get_entity_status(manifest, season_key, entity).extracted

    def is_stale(
        self,
        manifest: ExtractionManifest,
        season_key: str,
        entity: str,
        max_age_hours: Optional[float],
    ) -> bool:
        return is_entity_stale(self.get_entity_status(manifest, season_key, entity), max_age_hours)

    def status_rows(self, manifest: ExtractionManifest) -> List[Dict[str, Any]]:
        """Flatten the manifest into one row per (season, entity)."""
        rows = []
        for season_key in manifest.seasons:
            for entity, status in self.get_season_manifest(manifest, season_key).items():
                rows.append({
                    "season": season_key,
                    "entity": entity,
                    "extracted": status.extracted,
                    "count": status.count,
                    "timestamp": status.timestamp,
                })
        return rows

    def render_status(self, manifest: ExtractionManifest, as_json: bool = False) -> str:
        """Human-readable (or JSON) extraction status."""
        if as_json:
            return json.dumps(manifest.to_json_dict(), indent=2)

        lines = [f"{self.source.upper()} Extraction Status (last run: {manifest.last_run or 'never'})"]
        for season_key in manifest.seasons:
            lines.append("")
            lines.append(f"Season {season_key}:")
            for entity, status in self.get_season_manifest(manifest, season_key).items():
                state = f"✓ {status.count} items" if status.extracted else "✗ not extracted"
                lines.append(f"  {entity}: {state}")
        return "\n".join(lines)

    def _check_entity(self, entity: str) -> str:
        if entity not in self.entities:
            raise ValueError(f"unknown entity '{entity}' for source '{self.source}'")
        return entity
