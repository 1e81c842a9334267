# src/services/source_coordinator.py

"""Fan out to product sources under deadlines and collect provenance."""

import asyncio
import importlib
import logging
from collections.abc import Callable
from typing import Any, Protocol

from src.config.settings import PipelineConfig, Settings
from src.filters.merger import count_link_types
from src.models.product import RawProduct
from src.models.source_report import (
    KIND_DIRECT,
    KIND_FAILED,
    KIND_SERPAPI,
    SourceReport,
)
from src.services.errors import SourceUnavailable
from src.services.worker_thread import run_detached

logger = logging.getLogger("shopmate.coordinator")


class ProductSource(Protocol):
    """Anything that can search for products by query."""

    label: str

    def search(self, query: str) -> list[RawProduct]: ...


SourceFactory = Callable[[], ProductSource]


def _load_scraper_class(dotted_path: str) -> type[Any]:
    """Dynamically import a scraper class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def _registry_factory(
    dotted_path: str, **kwargs: Any,
) -> SourceFactory:
    def build() -> ProductSource:
        source: ProductSource = _load_scraper_class(dotted_path)(**kwargs)
        return source
    return build


def _instance_factory(source: ProductSource) -> SourceFactory:
    return lambda: source


class SourceCoordinator:
    """Turn unreliable sources into one always-succeeding gather step.

    Direct-store scrapers run concurrently, each in a worker thread under
    ``config.scraper_timeout``. Broad-market search runs afterwards with
    the same deadline. A late source is abandoned, not cancelled; its
    thread may finish later but the result is discarded.
    """

    def __init__(
        self,
        config: PipelineConfig,
        direct_scrapers: list[ProductSource] | None = None,
        market_scraper: ProductSource | None = None,
    ) -> None:
        self.config = config

        self._direct: list[tuple[str, SourceFactory]]
        if direct_scrapers is None:
            self._direct = [
                (src["label"], _registry_factory(src["scraper"]))
                for src in Settings.DIRECT_SOURCES
            ]
        else:
            self._direct = [
                (s.label, _instance_factory(s)) for s in direct_scrapers
            ]

        self._market: tuple[str, SourceFactory]
        if market_scraper is None:
            self._market = (
                Settings.MARKET_SOURCE["label"],
                _registry_factory(
                    Settings.MARKET_SOURCE["scraper"],
                    api_key=config.serpapi_key,
                    max_results=config.max_products_per_store,
                ),
            )
        else:
            self._market = (
                market_scraper.label, _instance_factory(market_scraper)
            )

    async def _call_source(
        self,
        label: str,
        factory: SourceFactory,
        query: str,
    ) -> list[RawProduct]:
        """Run one source in a thread under the deadline.

        Raises:
            SourceUnavailable: on timeout or any adapter error.
        """
        def fetch() -> list[RawProduct]:
            return list(factory().search(query))

        timeout = self.config.scraper_timeout
        try:
            return await asyncio.wait_for(
                run_detached(fetch), timeout=timeout
            )
        except asyncio.TimeoutError:
            raise SourceUnavailable(
                f"{label} timeout after {timeout * 1000:.0f}ms"
            ) from None
        except Exception as exc:
            raise SourceUnavailable(f"{label} error: {exc}") from exc

    async def _gather_direct(
        self, query: str,
    ) -> tuple[list[RawProduct], list[SourceReport]]:
        batches = await asyncio.gather(
            *(
                self._call_source(label, factory, query)
                for label, factory in self._direct
            ),
            return_exceptions=True,
        )

        items: list[RawProduct] = []
        reports: list[SourceReport] = []
        for (label, _factory), batch in zip(self._direct, batches):
            if isinstance(batch, BaseException):
                logger.error("Direct source failed: %s", batch)
                reports.append(SourceReport(
                    name=label, count=0, kind=KIND_FAILED, error=str(batch)
                ))
            elif batch:
                items.extend(batch)
                reports.append(SourceReport(
                    name=label, count=len(batch), kind=KIND_DIRECT
                ))
                logger.info(
                    "%s: %d products (direct links)", label, len(batch)
                )
            else:
                reports.append(SourceReport(
                    name=label, count=0, kind=KIND_FAILED
                ))
                logger.warning(
                    "%s: 0 products (scraper may be blocked)", label
                )

        if not items:
            logger.warning(
                "Direct scrapers returned no results, "
                "relying on broad-market search"
            )
        return items, reports

    async def _gather_market(
        self,
        query: str,
        direct_stores: list[str],
    ) -> tuple[list[RawProduct], SourceReport]:
        label, factory = self._market
        try:
            results = await self._call_source(label, factory, query)
        except SourceUnavailable as exc:
            logger.error("Broad-market search failed: %s", exc)
            return [], SourceReport(
                name=label, count=0, kind=KIND_FAILED, error=str(exc)
            )

        kept = [
            p for p in results
            if not any(store in p.store.lower() for store in direct_stores)
        ]
        dropped = len(results) - len(kept)
        if dropped:
            logger.info(
                "Filtered out %d broad-market items already scraped "
                "directly",
                dropped,
            )

        direct_links, redirect_links = count_link_types(kept)
        logger.info(
            "%s: %d products (%d direct, %d redirects)",
            label,
            len(kept),
            direct_links,
            redirect_links,
        )
        return kept, SourceReport(
            name=label,
            count=len(kept),
            kind=KIND_SERPAPI,
            direct_links=direct_links,
            redirect_links=redirect_links,
        )

    async def gather(
        self, query: str,
    ) -> tuple[list[RawProduct], list[SourceReport]]:
        """Collect products from every enabled source; never raises.

        Returns the concatenated items and one report per source, in
        declaration order with broad-market search last.
        """
        items: list[RawProduct] = []
        reports: list[SourceReport] = []
        direct_stores: list[str] = []

        if self.config.use_direct_scrapers:
            direct_items, direct_reports = await self._gather_direct(query)
            items.extend(direct_items)
            reports.extend(direct_reports)
            direct_stores = [
                r.name.lower() for r in direct_reports
                if r.kind == KIND_DIRECT
            ]

        if self.config.use_serpapi:
            market_items, market_report = await self._gather_market(
                query, direct_stores
            )
            items.extend(market_items)
            reports.append(market_report)

        return items, reports
