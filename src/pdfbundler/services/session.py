"""
PdfBundler - Session

Mutable state shared by the operations a user runs in one sitting: the
"processing" flag that refuses re-entrant calls, and the repair cascade of
the document currently being repaired.
"""

import hashlib
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from pdfbundler.constants import MAX_REPAIR_ATTEMPTS
from pdfbundler.services.document_library import DocumentLibrary
from pdfbundler.services.recovery import RecoveryCascade
from pdfbundler.utils.exceptions import OperationInProgressError

logger = logging.getLogger(__name__)


def _fingerprint(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass
class Session:
    """Orchestration context passed into every driver operation.

    Attributes:
        is_processing: True while an operation is running
        current_operation: Name of the running operation, if any
        max_repair_attempts: Repair runs allowed per input document
    """

    is_processing: bool = False
    current_operation: str = ""
    max_repair_attempts: int = MAX_REPAIR_ATTEMPTS
    _cascade: RecoveryCascade | None = None
    _cascade_key: str = ""

    @contextmanager
    def processing(self, operation: str) -> Iterator[None]:
        """Hold the processing flag for the duration of one operation.

        Raises:
            OperationInProgressError: If another operation holds the flag.
        """
        if self.is_processing:
            logger.warning(
                "Refusing '%s' while '%s' is running", operation, self.current_operation
            )
            raise OperationInProgressError(operation)

        self.is_processing = True
        self.current_operation = operation
        try:
            yield
        finally:
            self.is_processing = False
            self.current_operation = ""

    def cascade_for(self, library: DocumentLibrary, data: bytes) -> RecoveryCascade:
        """Return the repair cascade for this input, starting one if the input changed."""
        key = _fingerprint(data)
        if self._cascade is None or key != self._cascade_key:
            logger.debug("Starting a new repair cascade for input %s", key[:12])
            self._cascade = RecoveryCascade(library, data, max_runs=self.max_repair_attempts)
            self._cascade_key = key
        return self._cascade

    @property
    def repair_attempts(self) -> int:
        """Repair runs performed on the current input."""
        return self._cascade.runs if self._cascade else 0

    @property
    def cascade(self) -> RecoveryCascade | None:
        return self._cascade

    def reset_repair(self) -> None:
        """Forget the current repair cascade (a new file was selected)."""
        self._cascade = None
        self._cascade_key = ""
