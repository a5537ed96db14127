"""
Procurement engine: wires the store, workflow, ingestor and analysis provider.

ProcurementEngine is what the CLI talks to.  Its main job beyond wiring is
the replenishment analysis run:

  1. Select ACTIVE products at or below 2 x reorder point
  2. Short-circuit with an all-clear summary when nothing is at risk
  3. Call the analysis provider (outside the store lock, bounded by timeout)
  4. Validate and price the suggestions (SuggestionIngestor)
  5. Append the resulting requisitions in one commit

A provider failure at step 3 or an unusable response at step 4 yields the
"Failed to generate analysis." summary and no requisitions.  If a newer
analysis starts while one is waiting on the provider, the older result is
discarded (last writer wins).
"""
import logging
import threading
from pathlib import Path
from typing import Optional

from config import Config
from models.result import AnalysisResult, InventoryReport, SeedResult
from . import ledger
from .database import Database
from .errors import ProviderFailure
from .ingestor import SuggestionIngestor
from .llm_provider import AnalysisProvider, LLMAnalysisProvider
from .seeding import build_seed_data, load_seed_file
from .store import InventoryStore
from .workflow import ProcurementWorkflow

logger = logging.getLogger(__name__)

FAILED_SUMMARY = "Failed to generate analysis."
NO_PRODUCTS_SUMMARY = "No active products to analyze."


class ProcurementEngine:
    """Entry point for every procurement operation."""

    def __init__(
        self,
        config: Optional[Config] = None,
        provider: Optional[AnalysisProvider] = None,
        database: Optional[Database] = None,
    ):
        self.config = config or Config()
        self.config.ensure_data_dir()

        self.db = database or Database(self.config.db_path)
        self.store = InventoryStore(self.db)
        self.workflow = ProcurementWorkflow(self.store)
        self.ingestor = SuggestionIngestor(self.config.at_risk_multiplier)
        self.provider = provider or LLMAnalysisProvider(
            model=self.config.llm_model,
            base_url=self.config.llm_base_url,
            api_key=self.config.llm_api_key,
            timeout=self.config.provider_timeout_seconds,
            max_attempts=self.config.provider_max_attempts,
        )

        self._analysis_lock = threading.Lock()
        self._analysis_seq = 0

    # ------------------------------------------------------------------
    # Replenishment analysis
    # ------------------------------------------------------------------

    def analyze_replenishment(self) -> AnalysisResult:
        """
        Run one replenishment analysis and append its requisitions.

        Never raises for provider problems; the returned AnalysisResult
        carries the summary to show and any error text.
        """
        with self._analysis_lock:
            self._analysis_seq += 1
            seq = self._analysis_seq

        active = [p for p in self.store.products if p.is_active]
        if not active:
            logger.info("Analysis skipped: no active products")
            return AnalysisResult(summary=NO_PRODUCTS_SUMMARY)

        at_risk = self.ingestor.select_at_risk(active)
        healthy = len(active) - len(at_risk)
        if not at_risk:
            logger.info("Analysis skipped: all %d active products are healthy", len(active))
            return AnalysisResult(
                summary=self.ingestor.healthy_summary(len(active)),
                healthy_count=healthy,
            )

        logger.info("Analyzing %d at-risk product(s) (%d healthy)", len(at_risk), healthy)
        try:
            raw = self.provider.analyze(at_risk, self.store.suppliers, healthy)
        except ProviderFailure as e:
            logger.error("Analysis provider failed: %s", e)
            return self._failed(str(e), len(at_risk), healthy)
        except Exception as e:
            logger.error("Analysis provider raised unexpectedly: %s", e, exc_info=True)
            return self._failed(str(e), len(at_risk), healthy)

        with self._analysis_lock, self.store.lock:
            if seq != self._analysis_seq:
                logger.info("Discarding analysis #%d: superseded by #%d", seq, self._analysis_seq)
                return AnalysisResult(
                    summary="Analysis superseded by a newer request.",
                    provider_called=True,
                    at_risk_count=len(at_risk),
                    healthy_count=healthy,
                    superseded=True,
                )
            try:
                ingested = self.ingestor.ingest(
                    raw, self.store.products, self.store.requisition_numbers(),
                )
            except ProviderFailure as e:
                logger.error("Analysis response unusable: %s", e)
                return self._failed(str(e), len(at_risk), healthy)

            self.workflow.add_requisitions(ingested.requisitions)

        return AnalysisResult(
            summary=ingested.summary,
            requisitions=ingested.requisitions,
            provider_called=True,
            at_risk_count=len(at_risk),
            healthy_count=healthy,
            dropped_suggestions=ingested.dropped,
        )

    @staticmethod
    def _failed(error: str, at_risk: int, healthy: int) -> AnalysisResult:
        return AnalysisResult(
            summary=FAILED_SUMMARY,
            provider_called=True,
            at_risk_count=at_risk,
            healthy_count=healthy,
            error=error,
        )

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def seed_from_data(self, raw: dict) -> SeedResult:
        """Replace products and suppliers with a generated dataset."""
        products, suppliers, result = build_seed_data(raw)
        self.workflow.seed_data(products, suppliers)
        return result

    def seed_from_file(self, path: str | Path) -> SeedResult:
        return self.seed_from_data(load_seed_file(path))

    def seed_from_provider(self, **kwargs) -> SeedResult:
        """
        Ask the provider for a demo dataset and seed it.

        Raises ProviderFailure if the provider cannot generate inventory.
        """
        generate = getattr(self.provider, "generate_inventory", None)
        if generate is None:
            raise ProviderFailure(
                f"{type(self.provider).__name__} cannot generate inventory data"
            )
        return self.seed_from_data(generate(**kwargs))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def report(self) -> InventoryReport:
        return ledger.build_report(self.store.products, self.store.orders)

    def check_setup(self) -> dict:
        """Verify that the provider and database are ready."""
        status = {}
        check = getattr(self.provider, "check_connection", None)
        status["llm"] = check() if check else {"ok": True, "base_url": None}
        status["database"] = {
            "path": str(self.config.db_path),
            "exists": self.config.db_path.exists(),
            "collections": self.db.get_stats(),
        }
        return status
