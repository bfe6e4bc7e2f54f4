"""
Check Orchestrator for the Wayback redirect checker.

This module assembles the redirect history report of a domain. It integrates:
- Domain validation and normalization
- Paged CDX snapshot retrieval across URL spellings
- Header-first redirect classification of 3xx captures
- Client-side redirect detection in 200 captures
- The optional page titles section
- Chunking of the report text and execution timing

Any unexpected failure collapses the report into a single ``Error: ...``
entry; callers must inspect the result, not just its presence.
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional

import httpx

from .archive_client import ArchiveClient
from .audit_logger import AuditLogger
from .client_redirects import ClientRedirectDetector
from .config import SystemConfig
from .context import CheckContext
from .domain_validator import DomainValidator
from .enums import LogLevel
from .exceptions import ValidationError
from .executor import BoundedExecutor
from .formatting import (
    Stopwatch,
    format_delay,
    format_wayback_timestamp,
    label_chunks,
    split_into_chunks,
)
from .models import ClientRedirectFinding, DomainHistoryResult, Snapshot
from .page_titles import PageTitleFetcher, PageTitleSection
from .redirect_filters import RedirectTargetFilter, find_most_frequent_domain
from .redirect_resolver import RedirectResolver
from .snapshots import SnapshotRetriever, sort_newest_first

COMPONENT = "CheckOrchestrator"

REDIRECTS_HEADER = "3XX HTTP REDIRECTS\n=========\n"
NO_REDIRECTS = "No 3XX HTTP redirects found\n"
CLIENT_SIDE_HEADER = "CLIENT-SIDE REDIRECTS\n=========\n"
NO_CLIENT_SIDE = "No client-side redirects found\n"


def format_redirect_entry(snapshot: Snapshot, target_url: Optional[str]) -> str:
    """``<date>\\n<status> - <url>[ -> <target>]\\n``"""
    line = f"{snapshot.status_code} - {snapshot.original_url}"
    if target_url:
        line += f" -> {target_url}"
    return f"{format_wayback_timestamp(snapshot.timestamp)}\n{line}\n"


def format_client_side_entry(finding: ClientRedirectFinding) -> str:
    detail = finding.detail
    kind = f"Type: {detail.kind.value}"
    if detail.delay_seconds:
        kind += f" ({format_delay(detail.delay_seconds)} second delay)"
    return f"{finding.formatted_date}\n{finding.original_url} -> {detail.target_url}\n{kind}\n\n"


class CheckOrchestrator:
    """
    Main orchestrator for domain redirect history checks.

    The cache and network monitor come from a ``CheckContext`` owned by the
    caller; a private context is created when none is given.
    """

    def __init__(
        self,
        config: Optional[SystemConfig] = None,
        context: Optional[CheckContext] = None,
        logger: Optional[AuditLogger] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the check orchestrator.

        Args:
            config: System configuration
            context: Shared cache and network monitor
            logger: Optional audit logger
            transport: Optional httpx transport for the archive client
            rng: Random source for User-Agent choice and jitter
            sleep: Async sleep function used for every artificial delay
        """
        self._config = config or SystemConfig()
        self._logger = logger
        self._context = context or CheckContext(self._config, logger=logger)
        self._sleep = sleep

        cache = self._context.cache
        monitor = self._context.monitor

        self._domain_validator = DomainValidator()
        self._client = ArchiveClient(
            archive_config=self._config.archive,
            retry_config=self._config.retry,
            cache=cache,
            monitor=monitor,
            logger=logger,
            transport=transport,
            rng=rng,
            sleep=sleep,
        )
        self._executor = BoundedExecutor(
            self._config.concurrency, monitor=monitor, logger=logger, sleep=sleep
        )
        self._retriever = SnapshotRetriever(
            self._client,
            self._executor,
            cache=cache,
            monitor=monitor,
            archive_config=self._config.archive,
            concurrency_config=self._config.concurrency,
            cache_config=self._config.cache,
            logger=logger,
            sleep=sleep,
        )
        self._detector = ClientRedirectDetector(
            cache=cache, cache_config=self._config.cache, logger=logger
        )
        self._resolver = RedirectResolver(
            self._client,
            self._detector,
            cache=cache,
            monitor=monitor,
            cache_config=self._config.cache,
            logger=logger,
        )
        self._titles = PageTitleSection(
            self._client,
            PageTitleFetcher(
                self._client,
                cache=cache,
                monitor=monitor,
                cache_config=self._config.cache,
                logger=logger,
            ),
            self._executor,
            logger=logger,
        )
        self._target_filter = RedirectTargetFilter(
            self._config.report.ignored_domains,
            self._config.report.common_service_domains,
            logger=logger,
        )

    async def __aenter__(self) -> "CheckOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.close()

    async def check_domain_history(self, raw_domain: str) -> DomainHistoryResult:
        """
        Build the redirect history report of a domain.

        Args:
            raw_domain: Domain or URL as entered by the user

        Returns:
            DomainHistoryResult whose ``logs`` and ``message_chunks`` hold the
            report chunks, or a single ``Error: <message>`` entry on failure
        """
        stopwatch = Stopwatch()
        stopwatch.start()
        self._context.reset()
        domain = raw_domain

        try:
            domain = self._canonical_domain(raw_domain)
            self._log_info(f"Starting domain history check for: {domain}", {"raw_domain": raw_domain})

            report = await self._build_report(domain)
            chunks = label_chunks(split_into_chunks(report, self._config.report.max_chunk_size))

            stopwatch.stop()
            execution_time = stopwatch.execution_time()
            self._debug(
                f"Total execution time: {execution_time.seconds} seconds ({execution_time.formatted})"
            )
            self._log_diagnostics()

            return DomainHistoryResult(
                domain=domain,
                logs=list(chunks),
                message_chunks=list(chunks),
                execution_time=execution_time,
            )
        except Exception as e:
            stopwatch.stop()
            message = e.message if isinstance(e, ValidationError) else str(e)
            if self._logger:
                self._logger.log_error(
                    COMPONENT, f"Error checking domain history: {message}", e,
                    additional_data={"domain": domain},
                )
            return DomainHistoryResult(
                domain=domain,
                logs=[f"Error: {message}"],
                message_chunks=[f"Error: {message}"],
                execution_time=stopwatch.execution_time(),
                error=message,
            )

    async def check_multiple_domains(self, domains: list[str]) -> dict[str, list[str]]:
        """
        Check several domains one after another.

        The network monitor is reset before each domain and a fixed delay
        separates consecutive checks.

        Returns:
            Mapping of domain to its report entries
        """
        results: dict[str, list[str]] = {}
        self._log_info(f"Starting batch check for {len(domains)} domains")

        for index, domain in enumerate(domains):
            if index > 0:
                await self._sleep(self._config.report.batch_delay_seconds)

            self._context.reset()
            try:
                result = await self.check_domain_history(domain)
            except Exception as e:
                if self._logger:
                    self._logger.log_error(COMPONENT, f"Error checking {domain}", e)
                results[domain] = [f"Error: {e}"]
                continue

            results[domain] = result.logs
            self._log_info(
                f"Completed check for {domain} in {result.execution_time.seconds} seconds"
            )

        return results

    def _canonical_domain(self, raw_domain: str) -> str:
        validation = self._domain_validator.validate(raw_domain)
        if not validation.valid:
            raise ValidationError(
                code=validation.error.code.value,
                message=f"Invalid domain: {validation.error.message}",
                details=validation.error.details,
            )
        return validation.canonical_domain

    async def _build_report(self, domain: str) -> str:
        cache = self._context.cache
        report_config = self._config.report
        ttl = self._config.cache.default_ttl_seconds

        keys = [f"final-redirects:{domain}", f"final-client-redirects:{domain}"]
        if report_config.include_titles:
            keys.append(f"final-titles:{domain}")

        if all(cache.has(key) for key in keys):
            self._debug(f"Found complete cached results for {domain}")
            return "\n".join(cache.get(key) for key in keys)

        max_snapshots = report_config.max_snapshots_to_check
        redirect_snapshots = await self._retriever.get_redirect_snapshots(domain, max_snapshots)
        ok_snapshots = await self._retriever.get_ok_snapshots(domain, max_snapshots)
        findings = await self._find_client_side_redirects(domain, ok_snapshots)

        sections = [
            await self._redirects_section(redirect_snapshots),
            self._client_side_section(findings),
        ]
        if report_config.include_titles:
            page_snapshots = await self._retriever.get_page_snapshots(domain, max_snapshots)
            sections.append(await self._titles.build(page_snapshots))

        for key, section in zip(keys, sections):
            cache.set(key, section, ttl)
        return "\n".join(sections)

    async def _redirects_section(self, snapshots: list[Snapshot]) -> str:
        if not snapshots:
            return REDIRECTS_HEADER + NO_REDIRECTS

        cache = self._context.cache
        ttl = self._config.cache.default_ttl_seconds
        filter_noise = self._config.report.filter_noise_targets

        async def format_one(snapshot: Snapshot) -> Optional[str]:
            key = f"formatted-redirect:{snapshot.timestamp}:{snapshot.original_url}"
            if not filter_noise and cache.has(key):
                return cache.get(key)

            info = await self._resolver.resolve(snapshot.timestamp, snapshot.original_url)
            target = info.target_url if info else None
            if filter_noise and target and not self._target_filter.is_valid_redirect_target(
                target, snapshot.original_url
            ):
                return None

            entry = format_redirect_entry(snapshot, target)
            cache.set(key, entry, ttl)
            return entry

        entries = await self._executor.run(sort_newest_first(snapshots), format_one)
        kept = [entry for entry in entries if entry]
        if not kept:
            return REDIRECTS_HEADER + NO_REDIRECTS
        return REDIRECTS_HEADER + "\n".join(kept)

    def _client_side_section(self, findings: list[ClientRedirectFinding]) -> str:
        if not findings:
            return CLIENT_SIDE_HEADER + NO_CLIENT_SIDE
        return CLIENT_SIDE_HEADER + "".join(format_client_side_entry(f) for f in findings)

    async def _find_client_side_redirects(
        self, domain: str, snapshots: list[Snapshot]
    ) -> list[ClientRedirectFinding]:
        """Fetch 200 captures, newest first, and look for client-side redirects."""
        cache = self._context.cache
        cache_config = self._config.cache

        ordered = sort_newest_first(snapshots)
        limit = self._config.report.max_client_side_snapshots
        if limit is not None:
            ordered = ordered[:limit]

        aggregate_key = f"client-side-redirects:{domain}:{len(ordered)}"
        if cache.has(aggregate_key):
            self._debug(f"Cache hit for client-side redirects for {domain}")
            return cache.get(aggregate_key)

        self._debug(f"Checking for client-side redirects in {len(ordered)} snapshots")

        async def check_one(snapshot: Snapshot) -> Optional[ClientRedirectFinding]:
            key = f"client-redirect-check:{snapshot.timestamp}:{snapshot.original_url}"
            if cache.has(key):
                return cache.get(key)

            url = self._client.snapshot_url(snapshot.timestamp, snapshot.original_url)
            response = await self._client.fetch_once(
                url,
                follow_redirects=True,
                timeout=self._config.archive.client_side_timeout_seconds,
            )

            finding = None
            if response.ok:
                html = response.text()
                detail = self._detector.detect(html, snapshot.original_url)
                if detail is not None:
                    finding = ClientRedirectFinding(
                        timestamp=snapshot.timestamp,
                        original_url=snapshot.original_url,
                        detail=detail,
                        formatted_date=format_wayback_timestamp(snapshot.timestamp),
                    )
                else:
                    self._log_dominant_domain(snapshot, html)

            ttl = cache_config.default_ttl_seconds if finding else cache_config.negative_ttl_seconds
            cache.set(key, finding, ttl)
            return finding

        results = await self._executor.run(ordered, check_one)
        findings = [finding for finding in results if finding is not None]

        self._debug(f"Found {len(findings)} client-side redirects in 200 OK responses")
        cache.set(aggregate_key, findings, cache_config.default_ttl_seconds)
        return findings

    def _log_dominant_domain(self, snapshot: Snapshot, html: str) -> None:
        """Debug hint for captures without a redirect: the most linked outside domain."""
        if not self._logger or not self._logger.is_enabled_for(LogLevel.DEBUG):
            return
        domains = self._target_filter.extract_domains_from_html(html, snapshot.original_url)
        most_frequent = find_most_frequent_domain(domains)
        if most_frequent is None:
            return
        domain, count = most_frequent
        self._debug(
            f"Most referenced domain in {snapshot.timestamp} capture: {domain} ({count} times)",
            {"timestamp": snapshot.timestamp, "domain": domain, "count": count},
        )

    def _log_diagnostics(self) -> None:
        if not self._logger:
            return
        self._debug("Cache statistics", self._context.cache.stats())
        failures = self._context.monitor.consecutive_failures
        if failures > 0:
            self._debug(f"Network health: {failures} consecutive errors recorded")
        else:
            self._debug("Network health: Good")

    def _log_info(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.info(COMPONENT, message, data)

    def _debug(self, message: str, data: Optional[dict] = None) -> None:
        if self._logger:
            self._logger.debug(COMPONENT, message, data)

    @property
    def domain_validator(self) -> DomainValidator:
        """Get the domain validator instance."""
        return self._domain_validator

    @property
    def context(self) -> CheckContext:
        return self._context

    @property
    def config(self) -> SystemConfig:
        """Get the system configuration."""
        return self._config
