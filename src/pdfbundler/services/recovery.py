"""
PdfBundler - Recovery Cascade

Salvages documents that fail to parse by trying progressively more
forgiving strategies:

  1. STANDARD     strict parse, encryption ignored
  2. LENIENT      relaxed parse that rebuilds damaged cross-reference data
  3. RECONSTRUCT  fresh document; pages copied one at a time from a lenient
                  parse, skipping any page that cannot be copied

A strategy succeeds only if its document also serializes; a parsed
document that cannot be written moves the run on to the next strategy.
A run stops at the first strategy that yields a document. A cascade is
bound to one input and allows a limited number of runs; once a run
succeeds the cascade is finished and refuses further runs.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum, auto

from pdfbundler.constants import MAX_REPAIR_ATTEMPTS
from pdfbundler.services.document_library import DocumentLibrary
from pdfbundler.utils.exceptions import (
    CopyError,
    ParseError,
    RepairAlreadySucceededError,
    RepairLimitReachedError,
    SaveError,
)
from pdfbundler.utils.format_utils import format_file_size
from pdfbundler.utils.i18n import _

logger = logging.getLogger(__name__)


class Strategy(Enum):
    """Repair strategies, in the order they are tried."""

    STANDARD = "standard"
    LENIENT = "recovery"
    RECONSTRUCT = "reconstruction"


class CascadeState(Enum):
    IDLE = auto()
    ATTEMPTING = auto()
    SUCCEEDED = auto()
    FAILED = auto()


@dataclass
class RecoveryAttempt:
    """One strategy tried during one run.

    Attributes:
        strategy: Strategy that was tried
        attempt_number: Run the attempt belongs to (1-based)
        success: Whether the strategy produced a document
        page_count: Pages in the produced document
        data: Serialized document (success only)
        message: Failure reason (failure only)
        skipped_pages: 0-based pages dropped during reconstruction
    """

    strategy: Strategy
    attempt_number: int
    success: bool
    page_count: int = 0
    data: bytes = b""
    message: str = ""
    skipped_pages: list[int] = field(default_factory=list)


@dataclass
class RepairResult:
    """Outcome of one full cascade run."""

    success: bool
    attempt_number: int
    original_size: int
    strategy: Strategy | None = None
    page_count: int = 0
    data: bytes = b""
    error: str = ""
    skipped_pages: list[int] = field(default_factory=list)
    attempts: list[RecoveryAttempt] = field(default_factory=list)

    @property
    def repaired_size(self) -> int:
        return len(self.data)

    def summary(self) -> str:
        """Human-readable report of the run."""
        if not self.success:
            return _("PDF repair failed: {error}").format(error=self.error)
        lines = [
            _("Method used: {method}").format(method=self.strategy.value),
            _("Pages recovered: {count}").format(count=self.page_count),
            _("Original size: {size}").format(size=format_file_size(self.original_size)),
            _("Repaired size: {size}").format(size=format_file_size(self.repaired_size)),
        ]
        if self.skipped_pages:
            pages = ", ".join(str(i + 1) for i in self.skipped_pages)
            lines.append(_("Pages skipped: {pages}").format(pages=pages))
        return "\n".join(lines)


@dataclass
class _Salvage:
    page_count: int
    data: bytes
    skipped_pages: list[int] = field(default_factory=list)


class RecoveryCascade:
    """Ordered repair strategies against one malformed document.

    Args:
        library: Document library used for parsing and rebuilding
        data: The raw bytes of the damaged document
        max_runs: Number of manual repair requests allowed
    """

    def __init__(
        self,
        library: DocumentLibrary,
        data: bytes,
        max_runs: int = MAX_REPAIR_ATTEMPTS,
    ) -> None:
        self.library = library
        self.data = data
        self.max_runs = max_runs
        self.runs = 0
        self.state = CascadeState.IDLE
        self.current_strategy: Strategy | None = None
        self.log: list[RecoveryAttempt] = []
        self.result: RepairResult | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is CascadeState.SUCCEEDED

    @property
    def exhausted(self) -> bool:
        return not self.succeeded and self.runs >= self.max_runs

    @property
    def can_run(self) -> bool:
        return not self.succeeded and not self.exhausted

    def status_message(self) -> str:
        """Hint shown after a run about what the user can still do."""
        if self.succeeded:
            return _("PDF repair successful.")
        if self.runs == 0:
            return ""
        if self.exhausted:
            return _(
                "All repair attempts have failed. "
                "The file may be too severely damaged to repair."
            )
        if self.runs == self.max_runs - 1:
            return _("PDF repair failed. You may try one final repair method.")
        return _("PDF repair failed. You may try again with a different repair method.")

    def run(self) -> RepairResult:
        """Run the full cascade once.

        Returns:
            RepairResult for this run, successful or not.

        Raises:
            RepairAlreadySucceededError: If a previous run already succeeded.
            RepairLimitReachedError: If every allowed run has failed.
        """
        if self.succeeded:
            raise RepairAlreadySucceededError()
        if self.exhausted:
            raise RepairLimitReachedError(self.runs)

        self.runs += 1
        run_number = self.runs
        error = ""

        for strategy in Strategy:
            self.state = CascadeState.ATTEMPTING
            self.current_strategy = strategy
            logger.info("Repair run %d: trying %s strategy", run_number, strategy.value)

            try:
                salvage = self._attempt(strategy)
            except ParseError as e:
                error = e.message
                self._record_failure(strategy, run_number, error)
                logger.info("Strategy %s failed to parse: %s", strategy.value, error)
                continue
            except SaveError as e:
                error = e.message
                self._record_failure(strategy, run_number, error)
                if strategy is Strategy.RECONSTRUCT:
                    logger.error("Reconstructed document could not be saved: %s", error)
                    break
                logger.info("Strategy %s could not save the document: %s", strategy.value, error)
                continue

            if strategy is Strategy.RECONSTRUCT and salvage.page_count == 0:
                error = _("No pages could be recovered")
                self._record_failure(strategy, run_number, error, salvage.skipped_pages)
                logger.warning("Reconstruction produced an empty document")
                break

            self.log.append(
                RecoveryAttempt(
                    strategy=strategy,
                    attempt_number=run_number,
                    success=True,
                    page_count=salvage.page_count,
                    data=salvage.data,
                    skipped_pages=salvage.skipped_pages,
                )
            )
            self.state = CascadeState.SUCCEEDED
            self.result = RepairResult(
                success=True,
                attempt_number=run_number,
                original_size=len(self.data),
                strategy=strategy,
                page_count=salvage.page_count,
                data=salvage.data,
                skipped_pages=salvage.skipped_pages,
                attempts=attempts_for(self.log, run_number),
            )
            logger.info(
                "Repair succeeded with %s strategy: %d pages",
                strategy.value,
                salvage.page_count,
            )
            return self.result

        self.state = CascadeState.FAILED
        self.current_strategy = None
        self.result = RepairResult(
            success=False,
            attempt_number=run_number,
            original_size=len(self.data),
            error=error,
            attempts=attempts_for(self.log, run_number),
        )
        logger.warning("Repair run %d/%d failed: %s", run_number, self.max_runs, error)
        return self.result

    def _record_failure(
        self,
        strategy: Strategy,
        run_number: int,
        message: str,
        skipped_pages: list[int] | None = None,
    ) -> None:
        self.log.append(
            RecoveryAttempt(
                strategy=strategy,
                attempt_number=run_number,
                success=False,
                message=message,
                skipped_pages=skipped_pages or [],
            )
        )

    def _attempt(self, strategy: Strategy) -> _Salvage:
        if strategy is Strategy.RECONSTRUCT:
            return self._reconstruct()

        document = self.library.load(self.data, lenient=strategy is Strategy.LENIENT)
        try:
            return _Salvage(page_count=document.page_count(), data=document.save())
        finally:
            document.close()

    def _reconstruct(self) -> _Salvage:
        """Copy every page that survives into a brand-new document."""
        source = self.library.load(self.data, lenient=True)
        target = self.library.new_document()
        skipped: list[int] = []
        try:
            for index in range(source.page_count()):
                try:
                    [page_ref] = target.copy_pages(source, [index])
                    target.add_page(page_ref)
                except CopyError as e:
                    skipped.append(index)
                    logger.warning("Failed to copy page %d, skipping: %s", index + 1, e)

            page_count = target.page_count()
            if page_count == 0:
                return _Salvage(page_count=0, data=b"", skipped_pages=skipped)
            return _Salvage(page_count=page_count, data=target.save(), skipped_pages=skipped)
        finally:
            target.close()
            source.close()


def attempts_for(log: list[RecoveryAttempt], run_number: int) -> list[RecoveryAttempt]:
    """The strategies tried during one run, in order."""
    return [attempt for attempt in log if attempt.attempt_number == run_number]

