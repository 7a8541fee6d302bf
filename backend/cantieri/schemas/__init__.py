"""
Schemas Pydantic per il progetto Gestionale Cantieri

Questo modulo contiene tutti gli schemi Pydantic utilizzati per la validazione
e serializzazione delle risposte API.
"""

# Import degli schemi per renderli disponibili tramite import diretto
# es: from cantieri.schemas import ProgressStatementRead, LineUpdate, etc.

from cantieri.schemas.progress_statement import (
    VALID_TRANSITIONS,
    AmendmentCreate,
    AmendmentMutationRead,
    AmendmentRead,
    AmendmentUpdate,
    LineCreate,
    LineKind,
    LineMutationRead,
    LineRead,
    LineUpdate,
    ProgressStatementCreate,
    ProgressStatementList,
    ProgressStatementRead,
    StatementMetaUpdate,
    StatementStatus,
    StatementSummary,
    StatementSummaryRow,
    StatementTotalsRead,
    SubcontractorStatementCreate,
    SubcontractorStatementList,
    SubcontractorStatementMetaUpdate,
    SubcontractorStatementRead,
    SubtotalRead,
)

__all__ = [
    "VALID_TRANSITIONS",
    "AmendmentCreate",
    "AmendmentMutationRead",
    "AmendmentRead",
    "AmendmentUpdate",
    "LineCreate",
    "LineKind",
    "LineMutationRead",
    "LineRead",
    "LineUpdate",
    "ProgressStatementCreate",
    "ProgressStatementList",
    "ProgressStatementRead",
    "StatementMetaUpdate",
    "StatementStatus",
    "StatementSummary",
    "StatementSummaryRow",
    "StatementTotalsRead",
    "SubcontractorStatementCreate",
    "SubcontractorStatementList",
    "SubcontractorStatementMetaUpdate",
    "SubcontractorStatementRead",
    "SubtotalRead",
]
