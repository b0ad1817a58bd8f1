from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class ImportCancelled(Exception):
    """Raised at a checkpoint once cancellation of the running import was observed."""


class CancellationController:
    """
    Cooperative cancellation flag for the single in-flight import.

    Nothing is aborted forcibly. The pipeline and the progress simulator poll
    the flag at their checkpoints and stop trusting new results once it is set.
    """

    def __init__(self) -> None:
        self._requested = False

    @property
    def is_cancelled(self) -> bool:
        return self._requested

    def request(self) -> None:
        self._requested = True

    def reset(self) -> None:
        self._requested = False

    def checkpoint(self, where: str) -> None:
        if self._requested:
            logger.info("Cancellation observed at checkpoint '%s'", where)
            raise ImportCancelled(where)
