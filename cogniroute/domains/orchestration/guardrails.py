"""
Security Guardrails - Request validation ahead of orchestration.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from cogniroute.config import ErrorCode, ValidationError

from .contracts import Guardrail
from .models import ConfidentialityLevel, ReasoningContext

logger = logging.getLogger(__name__)

__all__ = ["SecurityGuardrails", "CLASSIFICATION_KEY"]

CLASSIFICATION_KEY = "classification"

_PUBLIC_REFERENCE = re.compile(r"\bpublic\b", re.IGNORECASE)


class SecurityGuardrails:
    """
    Built-in request checks plus any extra guardrails.

    Rules:
    - the query must not be blank
    - ``secret`` requests must carry a ``classification`` tag in metadata
    - ``secret`` requests must not reference a public context
    """

    def __init__(self, extra: Iterable[Guardrail] = ()) -> None:
        self._extra = list(extra)

    def add(self, guardrail: Guardrail) -> None:
        self._extra.append(guardrail)

    def check(self, query: str, context: ReasoningContext) -> None:
        """
        Validate a request.

        Raises:
            ValidationError: On the first rule the request breaks
        """
        if not query or not query.strip():
            raise ValidationError("Query must not be empty", details={"task_id": context.task_id})

        if context.confidentiality_level == ConfidentialityLevel.SECRET:
            if not context.metadata.get(CLASSIFICATION_KEY):
                self._reject(
                    "Secret requests require a classification tag",
                    context,
                )
            if _PUBLIC_REFERENCE.search(query):
                self._reject(
                    "Cannot process secret data in public context",
                    context,
                )

        for guardrail in self._extra:
            guardrail.check(query, context)

    @staticmethod
    def _reject(message: str, context: ReasoningContext) -> None:
        logger.warning("Security violation on task %s: %s", context.task_id, message)
        raise ValidationError(
            f"Security violation: {message}",
            details={
                "task_id": context.task_id,
                "confidentiality_level": context.confidentiality_level.value,
            },
            code=ErrorCode.SECURITY_VIOLATION,
        )
