"""Season extraction orchestrator shared by every source.

Per season, entities run in their declared order. Each one is checked against
the incremental policy, fetched through both retry layers, persisted to
``<output_dir>/<source>/<season>/<entity>.json``, and recorded in the manifest
before the next entity starts.
"""

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Type, Union

from pydantic import TypeAdapter, ValidationError

from .errors import CriticalExtractionError, FileWriteError, ParseError, PipelineError, is_critical
from .lax_logging import get_logger
from .manifest import ManifestStore
from .models import ExtractionManifest, FetchResult
from .persist import read_json, write_json
from .retry import RetryPolicy, Sleep, fetch_with_retries
from .staleness import ExtractOptions, IncrementalPolicy

logger = get_logger(__name__)

# Fan-outs where more than this share of items fail are reported loudly.
FAN_OUT_FAILURE_WARN_RATIO = 0.5

_JSONABLE = TypeAdapter(Any)


@dataclass(frozen=True)
class EntitySpec:
    """One upstream call per season."""

    name: str
    fetch: Callable[[str], Awaitable[Any]]
    output_name: Optional[str] = None

    @property
    def output(self) -> str:
        return self.output_name or self.name


@dataclass(frozen=True)
class FanOutSpec:
    """One upstream call per item of another entity's persisted output."""

    name: str
    source_entity: str
    fetch_item: Callable[[str, Any], Awaitable[Any]]
    item_model: Type[Any] = dict
    output_name: Optional[str] = None
    select: Optional[Callable[[Any], bool]] = None

    @property
    def output(self) -> str:
        return self.output_name or self.name


Spec = Union[EntitySpec, FanOutSpec]


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def check_entity_order(entities: Sequence[Spec]) -> None:
    """Fan-out producers must be declared before their consumers."""
    seen: set = set()
    for spec in entities:
        if spec.name in seen:
            raise ValueError(f"duplicate entity '{spec.name}'")
        if isinstance(spec, FanOutSpec) and spec.source_entity not in seen:
            raise ValueError(
                f"fan-out entity '{spec.name}' must come after '{spec.source_entity}'"
            )
        seen.add(spec.name)


class SourceExtractor:
    """Runs incremental extraction for one source across its seasons."""

    def __init__(
        self,
        source: str,
        entities: Sequence[Spec],
        seasons: Sequence[str],
        manifest_store: ManifestStore,
        policy: IncrementalPolicy,
        output_dir: Path,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        concurrency: int = 5,
        delay_between_requests_ms: int = 100,
        delay_between_batches_ms: int = 500,
        sleep: Sleep = asyncio.sleep,
        closers: Sequence[Callable[[], Awaitable[None]]] = (),
    ) -> None:
        check_entity_order(entities)
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.source = source
        self.entities = tuple(entities)
        self.seasons = tuple(str(s) for s in seasons)
        self.manifest_store = manifest_store
        self.policy = policy
        self.output_dir = Path(output_dir)
        self.retry_policy = retry_policy or RetryPolicy()
        self.concurrency = concurrency
        self.delay_between_requests_ms = delay_between_requests_ms
        self.delay_between_batches_ms = delay_between_batches_ms
        self._sleep = sleep
        self._closers = tuple(closers)

    def output_path(self, season_key: str, output_name: str) -> Path:
        return self.output_dir / self.source / str(season_key) / f"{output_name}.json"

    # ------------------------------------------------------------------
    # failure handling
    # ------------------------------------------------------------------

    def _handle_failure(self, season_key: str, entity: str, error: PipelineError) -> None:
        """Raise CriticalExtractionError for critical errors; log and return otherwise."""
        if is_critical(error):
            logger.error(
                "Critical extraction failure, aborting season",
                source=self.source,
                season=season_key,
                entity=entity,
                error_type=error.tag,
                error=error.message,
                url=error.url,
            )
            raise CriticalExtractionError(self.source, season_key, entity, error) from error
        logger.warning(
            "Entity extraction failed, continuing",
            source=self.source,
            season=season_key,
            entity=entity,
            error_type=error.tag,
            error=error.message,
            url=error.url,
        )

    def _persist(self, season_key: str, entity: str, output_name: str, data: Any) -> None:
        path = self.output_path(season_key, output_name)
        try:
            write_json(path, _JSONABLE.dump_python(data, mode="json", by_alias=True))
        except FileWriteError as e:
            self._handle_failure(season_key, entity, e)

    # ------------------------------------------------------------------
    # single entities
    # ------------------------------------------------------------------

    async def extract_entity(self, spec: EntitySpec, season_key: str) -> FetchResult:
        """Fetch and persist one entity; non-critical failures yield an empty result."""
        logger.info("Extracting entity", source=self.source, season=season_key, entity=spec.name)
        start = time.monotonic()
        try:
            data = await fetch_with_retries(
                lambda: spec.fetch(season_key), self.retry_policy, sleep=self._sleep
            )
        except PipelineError as e:
            self._handle_failure(season_key, spec.name, e)
            return FetchResult.empty([])
        except Exception as e:
            logger.error(
                "Entity fetch raised unexpectedly",
                source=self.source,
                season=season_key,
                entity=spec.name,
                error_type=type(e).__name__,
                exc_info=e,
            )
            self._handle_failure(
                season_key, spec.name, ParseError(f"Unexpected error: {e!r}", cause=e)
            )
            return FetchResult.empty([])

        result = FetchResult.of(data, _elapsed_ms(start))
        self._persist(season_key, spec.name, spec.output, result.data)
        logger.info(
            "Entity extracted",
            source=self.source,
            season=season_key,
            entity=spec.name,
            count=result.count,
            duration_ms=result.duration_ms,
        )
        return result

    # ------------------------------------------------------------------
    # fan-out entities
    # ------------------------------------------------------------------

    def load_fan_out_items(self, spec: FanOutSpec, season_key: str) -> List[Any]:
        """Read the producer's persisted output; missing or invalid means no items."""
        producer = next(s for s in self.entities if s.name == spec.source_entity)
        raw = read_json(self.output_path(season_key, producer.output))
        if not isinstance(raw, list):
            return []
        try:
            items = TypeAdapter(List[spec.item_model]).validate_python(raw)
        except ValidationError as e:
            logger.warning(
                "Persisted producer output failed validation",
                source=self.source,
                season=season_key,
                entity=spec.source_entity,
                error=str(e),
            )
            return []
        if spec.select is not None:
            items = [item for item in items if spec.select(item)]
        return items

    async def extract_fan_out(
        self, spec: FanOutSpec, season_key: str, items: Sequence[Any]
    ) -> FetchResult:
        """Fetch one sub-resource per item under bounded concurrency.

        Failed items are logged and dropped; the result counts successes only.
        """
        logger.info(
            "Extracting fan-out entity",
            source=self.source,
            season=season_key,
            entity=spec.name,
            items=len(items),
            concurrency=self.concurrency,
        )
        semaphore = asyncio.Semaphore(self.concurrency)

        async def fetch_one(item: Any) -> Optional[Any]:
            async with semaphore:
                try:
                    return await fetch_with_retries(
                        lambda: spec.fetch_item(season_key, item),
                        self.retry_policy,
                        sleep=self._sleep,
                    )
                except PipelineError as e:
                    logger.warning(
                        "Fan-out item failed, skipping",
                        source=self.source,
                        season=season_key,
                        entity=spec.name,
                        error_type=e.tag,
                        error=e.message,
                    )
                    return None
                finally:
                    if self.delay_between_requests_ms:
                        await self._sleep(self.delay_between_requests_ms / 1000)

        start = time.monotonic()
        results = await asyncio.gather(*(fetch_one(item) for item in items), return_exceptions=True)

        details = []
        for result in results:
            if isinstance(result, Exception):
                logger.error(
                    "Fan-out item raised unexpectedly, skipping",
                    source=self.source,
                    season=season_key,
                    entity=spec.name,
                    error_type=type(result).__name__,
                    error=str(result),
                    exc_info=result,
                )
            elif isinstance(result, BaseException):
                raise result
            elif result is not None:
                details.append(result)
        duration_ms = _elapsed_ms(start)

        failed = len(items) - len(details)
        if items and failed / len(items) > FAN_OUT_FAILURE_WARN_RATIO:
            logger.warning(
                "Most fan-out requests failed",
                source=self.source,
                season=season_key,
                entity=spec.name,
                failed=failed,
                total=len(items),
            )

        self._persist(season_key, spec.name, spec.output, details)
        logger.info(
            "Entity extracted",
            source=self.source,
            season=season_key,
            entity=spec.name,
            count=len(details),
            failed=failed,
            duration_ms=duration_ms,
        )
        return FetchResult(data=details, count=len(details), duration_ms=duration_ms)

    # ------------------------------------------------------------------
    # seasons
    # ------------------------------------------------------------------

    def _save(self, manifest: ExtractionManifest, season_key: str, entity: str) -> None:
        try:
            self.manifest_store.save(manifest)
        except FileWriteError as e:
            self._handle_failure(season_key, entity, e)

    async def extract_season(
        self, season_key: str, options: Optional[ExtractOptions] = None
    ) -> ExtractionManifest:
        """Extract every stale entity of one season, saving the manifest after each.

        Raises:
            CriticalExtractionError: a critical failure aborted the season
        """
        season_key = str(season_key)
        options = options or ExtractOptions()
        logger.info(
            "Extracting season",
            source=self.source,
            season=season_key,
            mode=options.mode.value if options.mode else None,
            current_season=self.policy.is_current_season(season_key),
            max_age_hours=self.policy.season_max_age(season_key),
        )

        manifest = self.manifest_store.load()

        for spec in self.entities:
            status = self.manifest_store.get_entity_status(manifest, season_key, spec.name)
            if not self.policy.should_extract(status, season_key, options):
                logger.info(
                    "Entity skipped (already extracted)",
                    source=self.source,
                    season=season_key,
                    entity=spec.name,
                )
                continue

            if isinstance(spec, FanOutSpec):
                items = self.load_fan_out_items(spec, season_key)
                if not items:
                    logger.info(
                        "Entity skipped (no persisted items to fan out over)",
                        source=self.source,
                        season=season_key,
                        entity=spec.name,
                        source_entity=spec.source_entity,
                    )
                    continue
                result = await self.extract_fan_out(spec, season_key, items)
            else:
                result = await self.extract_entity(spec, season_key)

            manifest = self.manifest_store.mark_complete(
                manifest, season_key, spec.name, result.count, result.duration_ms
            )
            self._save(manifest, season_key, spec.name)

            if self.delay_between_requests_ms:
                await self._sleep(self.delay_between_requests_ms / 1000)

        logger.info("Season extraction complete", source=self.source, season=season_key)
        return manifest

    async def extract_all(
        self,
        options: Optional[ExtractOptions] = None,
        seasons: Optional[Sequence[str]] = None,
    ) -> ExtractionManifest:
        """Extract seasons sequentially in declared order and return the final manifest."""
        season_keys = [str(s) for s in seasons] if seasons else list(self.seasons)
        logger.info(
            "Starting extraction",
            source=self.source,
            seasons=season_keys,
            current_seasons=self.policy.current_seasons(),
        )
        overall_start = time.monotonic()

        for index, season_key in enumerate(season_keys):
            if index and self.delay_between_batches_ms:
                await self._sleep(self.delay_between_batches_ms / 1000)
            logger.info(
                "Season progress",
                source=self.source,
                season=season_key,
                progress=f"{index + 1}/{len(season_keys)}",
            )
            await self.extract_season(season_key, options)

        manifest = self.manifest_store.load()
        logger.info(
            "Extraction complete",
            source=self.source,
            seasons=len(season_keys),
            duration_ms=_elapsed_ms(overall_start),
        )
        return manifest

    async def aclose(self) -> None:
        for close in self._closers:
            await close()

    async def __aenter__(self) -> "SourceExtractor":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
