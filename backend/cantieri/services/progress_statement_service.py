"""
Service Layer per gli Stati Avanzamento Lavori (SAL)
Progetto: Gestionale Cantieri (SAL - Stati Avanzamento Lavori)

Definisce la logica di business dei SAL cliente e subappaltatore:
- numerazione progressiva per ambito (cantiere, oppure subappaltatore + cantiere)
- macchina a stati bozza → finalizzato, con riapertura dell'ultimo SAL
- eliminazione consentita solo per l'ultimo SAL dell'ambito
- gestione di righe e varianti con ricalcolo degli importi

Ogni operazione lavora nella sessione della richiesta: il service esegue
solo flush, il commit è a carico del router.
"""


from __future__ import annotations
import datetime
import logging
import uuid
import zlib
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel
from sqlalchemy import and_, func, select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from cantieri.core.config import Settings, get_settings
from cantieri.core.exceptions import (
    BusinessValidationError,
    ConflictError,
    DuplicateError,
    NotFoundError,
)
from cantieri.models import (
    BaseOrder,
    ConstructionSite,
    ProgressStatement,
    ProgressStatementAmendment,
    ProgressStatementLine,
    SubcontractOrder,
    SubcontractorProgressStatement,
    SubcontractorStatementAmendment,
    SubcontractorStatementLine,
)
from cantieri.schemas.progress_statement import (
    VALID_TRANSITIONS,
    AmendmentCreate,
    AmendmentUpdate,
    LineCreate,
    LineUpdate,
    ProgressStatementCreate,
    StatementStatus,
    StatementSummaryRow,
    SubcontractorStatementCreate,
)
from cantieri.services.line_calculator import (
    MAX_QUANTITY,
    ZERO,
    LineKind,
    compute_line,
    ensure_within,
    round2,
    to_quantity,
)
from cantieri.services.site_service import SiteService
from cantieri.services.totals_aggregator import subtotal

# Logger per questo modulo
logger = logging.getLogger(__name__)

# Campi di riga che possono essere azzerati esplicitamente
_NULLABLE_ROW_FIELDS = {"article", "unit", "line_ref"}
# Campi numerici da cui dipende l'importo precedente calcolato
_PRECEDENT_INPUTS = {"precedent_qty", "unit_price"}


@dataclass(frozen=True)
class StatementScope:
    """
    Ambito di numerazione di un SAL.

    SAL cliente: solo il cantiere. SAL subappaltatore: cantiere + subappaltatore.
    """
    site_id: uuid.UUID
    subcontractor_id: Optional[uuid.UUID] = None

    @property
    def lock_key(self) -> int:
        """Chiave dell'advisory lock PostgreSQL (intero a 32 bit senza segno)."""
        raw = f"sal:{self.site_id}:{self.subcontractor_id or '-'}"
        return zlib.crc32(raw.encode("utf-8"))


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def compute_row_fields(values: dict[str, Any]) -> dict[str, Any]:
    """
    Normalizza i valori di una riga e ricalcola i campi derivati.

    Args:
        values: Campi della riga (kind, unit_price, contract_qty,
            precedent_qty, current_qty, precedent_amount opzionale)

    Returns:
        Dizionario con kind normalizzato, contract_qty e tutti i campi
        numerici pronti per il modello
    """
    kind = LineKind(values.get("kind") or LineKind.STANDARD)
    figures = compute_line(
        values.get("precedent_qty"),
        values.get("current_qty"),
        values.get("unit_price"),
        kind,
        values.get("precedent_amount"),
    )
    contract_qty = to_quantity(ZERO if kind.is_heading else values.get("contract_qty"))
    ensure_within(contract_qty, MAX_QUANTITY, "contract_qty")
    return {"kind": kind.value, "contract_qty": contract_qty, **figures.as_dict()}


def seed_row_from_order_line(order_line: Any) -> dict[str, Any]:
    """Clona una riga d'ordine in una riga SAL con quantità a zero."""
    fields = compute_row_fields(
        {
            "kind": order_line.kind,
            "unit_price": order_line.unit_price,
            "contract_qty": order_line.quantity,
            "precedent_qty": ZERO,
            "current_qty": ZERO,
        }
    )
    return {
        "position": order_line.position,
        "line_ref": order_line.id,
        "article": order_line.article,
        "description": order_line.description,
        "unit": order_line.unit,
        **fields,
    }


def carry_row_forward(row: Any) -> dict[str, Any]:
    """
    Riporta una riga del SAL precedente nel nuovo SAL.

    Le quantità e gli importi totali diventano i precedenti,
    la quantità del periodo riparte da zero.
    """
    fields = compute_row_fields(
        {
            "kind": row.kind,
            "unit_price": row.unit_price,
            "contract_qty": row.contract_qty,
            "precedent_qty": row.total_qty,
            "current_qty": ZERO,
            "precedent_amount": row.total_amount,
        }
    )
    carried = {
        "position": row.position,
        "article": row.article,
        "description": row.description,
        "unit": row.unit,
        **fields,
    }
    if hasattr(row, "line_ref"):
        carried["line_ref"] = row.line_ref
    if hasattr(row, "number"):
        carried["number"] = row.number
    return carried


class StatementLedgerService:
    """
    Service base per un registro di SAL.

    Le sottoclassi indicano i modelli (SAL, riga, variante) e il filtro
    di ambito; tutta la logica di stato, numerazione e ricalcolo è qui.
    """

    statement_model: Any = None
    line_model: Any = None
    amendment_model: Any = None
    label: str = "SAL"

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """
        Inizializza il service.

        Args:
            settings: Impostazioni applicazione (default: get_settings())
        """
        self.settings = settings or get_settings()

    # ------------------------------------------------------------
    # Ambito, lock e letture
    # ------------------------------------------------------------

    def _scope_conditions(self, scope: StatementScope) -> list:
        return [self.statement_model.site_id == scope.site_id]

    async def lock_scope(self, db: AsyncSession, scope: StatementScope) -> None:
        """
        Acquisisce l'advisory lock di transazione dell'ambito.

        Serializza numerazione e controlli sull'ultimo SAL tra richieste
        concorrenti. Disponibile solo su PostgreSQL: sugli altri dialetti
        è un no-op.
        """
        if db.get_bind().dialect.name != "postgresql":
            return
        await db.execute(text("SELECT pg_advisory_xact_lock(:lock_key)"), {"lock_key": scope.lock_key})

    async def _max_sequence(self, db: AsyncSession, scope: StatementScope) -> int:
        result = await db.execute(
            select(func.max(self.statement_model.sequence_number)).where(
                and_(*self._scope_conditions(scope))
            )
        )
        return result.scalar_one_or_none() or 0

    async def get_latest(self, db: AsyncSession, scope: StatementScope) -> Optional[Any]:
        """Recupera l'ultimo SAL dell'ambito (None se l'ambito è vuoto)."""
        result = await db.execute(
            select(self.statement_model)
            .where(and_(*self._scope_conditions(scope)))
            .order_by(self.statement_model.sequence_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get(
        self,
        db: AsyncSession,
        scope: StatementScope,
        number: int,
        for_update: bool = False,
    ) -> Any:
        """
        Recupera un SAL dal suo numero progressivo.

        Args:
            db: Sessione database
            scope: Ambito del SAL
            number: Numero progressivo
            for_update: Se True blocca la riga (SELECT ... FOR UPDATE)
                e ricarica lo stato dal database

        Returns:
            Il SAL con righe e varianti caricate

        Raises:
            NotFoundError: Se il SAL non esiste nell'ambito
        """
        query = select(self.statement_model).where(
            and_(*self._scope_conditions(scope)),
            self.statement_model.sequence_number == number,
        )
        if for_update:
            query = query.with_for_update(of=self.statement_model).execution_options(
                populate_existing=True
            )

        result = await db.execute(query)
        statement = result.scalar_one_or_none()

        if statement is None:
            logger.warning("%s n. %s non trovato (ambito %s)", self.label, number, scope)
            raise NotFoundError(f"{self.label} n. {number} non trovato")

        logger.debug("%s n. %s letto (ambito %s)", self.label, number, scope)
        return statement

    async def list(self, db: AsyncSession, scope: StatementScope) -> tuple[list[Any], int]:
        """
        Elenca i SAL dell'ambito, dal più recente.

        Returns:
            Tuple di (lista SAL, totale count)
        """
        result = await db.execute(
            select(self.statement_model)
            .where(and_(*self._scope_conditions(scope)))
            .order_by(self.statement_model.sequence_number.desc())
        )
        statements = list(result.scalars().all())
        logger.debug("Elencati %s %s (ambito %s)", len(statements), self.label, scope)
        return statements, len(statements)

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    async def _flush(self, db: AsyncSession) -> None:
        """Esegue il flush traducendo gli errori di concorrenza in errori applicativi."""
        try:
            await db.flush()
        except StaleDataError as e:
            logger.warning("Versione obsoleta durante il salvataggio di un %s: %s", self.label, e)
            raise ConflictError(
                f"Il {self.label} è stato modificato da un'altra richiesta: ricaricare e riprovare"
            ) from e
        except IntegrityError as e:
            logger.warning("Violazione di vincolo durante il salvataggio di un %s: %s", self.label, e)
            raise DuplicateError(
                f"Numero {self.label} già assegnato da una richiesta concorrente: riprovare"
            ) from e

    def _check_editable(self, statement: Any) -> None:
        """
        Verifica che righe e varianti del SAL siano modificabili.

        Raises:
            ConflictError: Se il SAL è finalizzato
        """
        if statement.finalized:
            logger.warning(
                "Tentativo di modifica del %s n. %s finalizzato", self.label, statement.sequence_number
            )
            raise ConflictError(
                f"Il {self.label} n. {statement.sequence_number} è finalizzato: "
                "righe e varianti non sono modificabili"
            )

    def _transition(self, statement: Any, target: StatementStatus) -> None:
        current = StatementStatus.of(statement.finalized)
        if target not in VALID_TRANSITIONS[current]:
            logger.warning(
                "Transizione non valida del %s n. %s: %s -> %s",
                self.label,
                statement.sequence_number,
                current.value,
                target.value,
            )
            raise ConflictError(
                f"Transizione di stato non valida: da '{current.value}' a '{target.value}'"
            )
        statement.finalized = target == StatementStatus.FINALIZED

    @staticmethod
    def _touch(statement: Any) -> None:
        # Rende il SAL dirty: al flush version_id_col ne incrementa la versione
        statement.updated_at = _utcnow()

    def _build_rows(self, model: Any, rows: Iterable[dict[str, Any]]) -> list[Any]:
        return [model(**row) for row in rows]

    async def _create(
        self,
        db: AsyncSession,
        scope: StatementScope,
        fields: dict[str, Any],
        seed_lines: Sequence[Any],
    ) -> Any:
        """
        Crea un nuovo SAL nell'ambito con numero = massimo + 1.

        Le righe sono clonate dalle righe d'ordine con quantità a zero; se il
        riporto automatico è attivo e l'ambito ha già un SAL, righe e varianti
        sono riportate dal SAL precedente.

        Raises:
            ConflictError: Se è richiesto un predecessore finalizzato e l'ultimo
                SAL è ancora in bozza
            DuplicateError: Se il numero è stato assegnato da una richiesta concorrente
        """
        await self.lock_scope(db, scope)
        tail = await self.get_latest(db, scope)

        if tail is not None and self.settings.require_finalized_predecessor and not tail.finalized:
            logger.warning(
                "Creazione %s rifiutata: il n. %s non è finalizzato", self.label, tail.sequence_number
            )
            raise ConflictError(
                f"Il {self.label} n. {tail.sequence_number} deve essere finalizzato "
                "prima di crearne uno nuovo"
            )

        next_number = tail.sequence_number + 1 if tail is not None else 1

        if tail is not None and self.settings.statement_carry_forward:
            lines = self._build_rows(self.line_model, (carry_row_forward(r) for r in tail.lines))
            amendments = self._build_rows(
                self.amendment_model, (carry_row_forward(a) for a in tail.amendments)
            )
        else:
            lines = self._build_rows(self.line_model, (seed_row_from_order_line(ol) for ol in seed_lines))
            amendments = []

        statement = self.statement_model(
            sequence_number=next_number,
            finalized=False,
            lines=lines,
            amendments=amendments,
            **fields,
        )
        db.add(statement)
        await self._flush(db)

        logger.info(
            "%s n. %s creato (ambito %s, %s righe)", self.label, next_number, scope, len(lines)
        )
        return statement

    async def _check_deletable(self, db: AsyncSession, statement: Any) -> None:
        """Controlli aggiuntivi prima dell'eliminazione (sovrascritto dalle sottoclassi)."""
        return None

    # ------------------------------------------------------------
    # Stato del SAL
    # ------------------------------------------------------------

    async def update_meta(
        self,
        db: AsyncSession,
        scope: StatementScope,
        number: int,
        patch: BaseModel,
    ) -> Any:
        """
        Aggiorna i dati descrittivi di un SAL (commenti, periodo, data).

        Sempre consentito, anche su SAL finalizzati. `finalized=True`
        finalizza il SAL (nessun effetto se già finalizzato); `finalized=False`
        su un SAL finalizzato non è consentito: usare la riapertura.

        Raises:
            BusinessValidationError: Se non ci sono campi da aggiornare
            ConflictError: Se si tenta di togliere la finalizzazione
        """
        update_data = patch.model_dump(exclude_unset=True)
        if not update_data:
            raise BusinessValidationError("Nessun campo da aggiornare")

        if "date" in update_data and update_data["date"] is None:
            raise BusinessValidationError("La data del SAL non può essere vuota")

        finalized = update_data.pop("finalized", None)
        statement = await self.get(db, scope, number, for_update=True)

        if finalized is False and statement.finalized:
            logger.warning(
                "Rimozione della finalizzazione non consentita per il %s n. %s", self.label, number
            )
            raise ConflictError(
                f"Il {self.label} n. {number} è finalizzato: usare la riapertura per tornare in bozza"
            )

        for field, value in update_data.items():
            setattr(statement, field, value)

        if finalized is True and not statement.finalized:
            self._transition(statement, StatementStatus.FINALIZED)
            logger.info("%s n. %s finalizzato (ambito %s)", self.label, number, scope)

        await self._flush(db)
        logger.info("%s n. %s aggiornato: %s", self.label, number, ", ".join(update_data) or "stato")
        return statement

    async def finalize(self, db: AsyncSession, scope: StatementScope, number: int) -> Any:
        """
        Finalizza un SAL (bozza → finalizzato).

        Raises:
            ConflictError: Se il SAL è già finalizzato
        """
        statement = await self.get(db, scope, number, for_update=True)
        self._transition(statement, StatementStatus.FINALIZED)
        await self._flush(db)

        logger.info("%s n. %s finalizzato (ambito %s)", self.label, number, scope)
        return statement

    async def reopen(self, db: AsyncSession, scope: StatementScope, number: int) -> Any:
        """
        Riapre un SAL finalizzato (finalizzato → bozza).

        Consentito solo per l'ultimo SAL dell'ambito.

        Raises:
            ConflictError: Se il SAL non è finalizzato o non è l'ultimo
        """
        await self.lock_scope(db, scope)
        statement = await self.get(db, scope, number, for_update=True)

        max_number = await self._max_sequence(db, scope)
        if number != max_number:
            logger.warning(
                "Riapertura rifiutata: %s n. %s non è l'ultimo (ultimo: %s)",
                self.label,
                number,
                max_number,
            )
            raise ConflictError(f"Solo l'ultimo {self.label} (n. {max_number}) può essere riaperto")

        self._transition(statement, StatementStatus.DRAFT)
        await self._flush(db)

        logger.info("%s n. %s riaperto (ambito %s)", self.label, number, scope)
        return statement

    async def delete(self, db: AsyncSession, scope: StatementScope, number: int) -> None:
        """
        Elimina un SAL con righe e varianti.

        Controllo ed eliminazione avvengono nella stessa transazione,
        sotto il lock dell'ambito.

        Raises:
            NotFoundError: Se il SAL non esiste
            ConflictError: Se il SAL non è l'ultimo del suo ambito
        """
        await self.lock_scope(db, scope)
        statement = await self.get(db, scope, number, for_update=True)

        max_number = await self._max_sequence(db, scope)
        if number != max_number:
            logger.warning(
                "Eliminazione rifiutata: %s n. %s non è l'ultimo (ultimo: %s)",
                self.label,
                number,
                max_number,
            )
            raise ConflictError(f"Solo l'ultimo {self.label} (n. {max_number}) può essere eliminato")

        await self._check_deletable(db, statement)

        await db.delete(statement)
        await self._flush(db)

        logger.info("%s n. %s eliminato (ambito %s)", self.label, number, scope)

    # ------------------------------------------------------------
    # Righe e varianti
    # ------------------------------------------------------------

    def _find_row(self, rows: list[Any], row_id: uuid.UUID, what: str, number: int) -> Any:
        for row in rows:
            if row.id == row_id:
                return row
        logger.warning("%s %s non trovata nel %s n. %s", what, row_id, self.label, number)
        raise NotFoundError(f"{what} con ID {row_id} non trovata nel {self.label} n. {number}")

    async def _add_row(
        self,
        db: AsyncSession,
        scope: StatementScope,
        number: int,
        collection: str,
        data: BaseModel,
    ) -> tuple[Any, Any]:
        statement = await self.get(db, scope, number, for_update=True)
        self._check_editable(statement)

        rows = getattr(statement, collection)
        values = data.model_dump()
        position = values.pop("position", None)
        if position is None:
            position = max((r.position for r in rows), default=0) + 1

        row_fields = {
            "position": position,
            "article": values.get("article"),
            "description": values.get("description") or "",
            "unit": values.get("unit"),
            **compute_row_fields(values),
        }

        if collection == "amendments":
            row_fields["number"] = max((a.number for a in rows), default=0) + 1
            row = self.amendment_model(**row_fields)
        else:
            row_fields["line_ref"] = values.get("line_ref")
            row = self.line_model(**row_fields)

        rows.append(row)
        self._touch(statement)
        await self._flush(db)

        return row, statement

    async def _update_row(
        self,
        db: AsyncSession,
        scope: StatementScope,
        number: int,
        collection: str,
        row_id: uuid.UUID,
        patch: BaseModel,
        what: str,
    ) -> tuple[Any, Any]:
        update_data = {
            field: value
            for field, value in patch.model_dump(exclude_unset=True).items()
            if value is not None or field in _NULLABLE_ROW_FIELDS
        }
        if not update_data:
            raise BusinessValidationError("Nessun campo da aggiornare")

        statement = await self.get(db, scope, number, for_update=True)
        self._check_editable(statement)
        row = self._find_row(getattr(statement, collection), row_id, what, number)

        merged = {
            "kind": row.kind,
            "unit_price": row.unit_price,
            "contract_qty": row.contract_qty,
            "precedent_qty": row.precedent_qty,
            "current_qty": row.current_qty,
            "precedent_amount": row.precedent_amount,
        }
        merged.update(update_data)

        # Importo precedente ricalcolato se cambiano i suoi fattori e non è fornito
        if "precedent_amount" not in update_data and _PRECEDENT_INPUTS & update_data.keys():
            merged["precedent_amount"] = None

        for field in ("position", "article", "description", "unit", "line_ref"):
            if field in update_data and hasattr(row, field):
                setattr(row, field, update_data[field])

        for field, value in compute_row_fields(merged).items():
            setattr(row, field, value)

        self._touch(statement)
        await self._flush(db)

        return row, statement

    async def _delete_row(
        self,
        db: AsyncSession,
        scope: StatementScope,
        number: int,
        collection: str,
        row_id: uuid.UUID,
        what: str,
    ) -> Any:
        statement = await self.get(db, scope, number, for_update=True)
        self._check_editable(statement)
        rows = getattr(statement, collection)
        row = self._find_row(rows, row_id, what, number)

        rows.remove(row)
        self._touch(statement)
        await self._flush(db)

        return statement

    async def add_line(
        self, db: AsyncSession, scope: StatementScope, number: int, data: LineCreate
    ) -> tuple[Any, Any]:
        """
        Aggiunge una riga al SAL.

        Returns:
            Tuple di (riga ricalcolata, SAL aggiornato)

        Raises:
            ConflictError: Se il SAL è finalizzato
        """
        row, statement = await self._add_row(db, scope, number, "lines", data)
        logger.info("Riga %s aggiunta al %s n. %s", row.id, self.label, number)
        return row, statement

    async def update_line(
        self,
        db: AsyncSession,
        scope: StatementScope,
        number: int,
        line_id: uuid.UUID,
        patch: LineUpdate,
    ) -> tuple[Any, Any]:
        """
        Aggiorna una riga del SAL e ne ricalcola gli importi.

        Raises:
            NotFoundError: Se la riga non appartiene al SAL
            ConflictError: Se il SAL è finalizzato
        """
        row, statement = await self._update_row(db, scope, number, "lines", line_id, patch, "Riga")
        logger.info("Riga %s del %s n. %s aggiornata", line_id, self.label, number)
        return row, statement

    async def delete_line(
        self, db: AsyncSession, scope: StatementScope, number: int, line_id: uuid.UUID
    ) -> Any:
        """Elimina una riga dal SAL e restituisce il SAL aggiornato."""
        statement = await self._delete_row(db, scope, number, "lines", line_id, "Riga")
        logger.info("Riga %s eliminata dal %s n. %s", line_id, self.label, number)
        return statement

    async def add_amendment(
        self, db: AsyncSession, scope: StatementScope, number: int, data: AmendmentCreate
    ) -> tuple[Any, Any]:
        """
        Aggiunge una variante al SAL con numero = massimo + 1 nel SAL.

        Returns:
            Tuple di (variante ricalcolata, SAL aggiornato)
        """
        row, statement = await self._add_row(db, scope, number, "amendments", data)
        logger.info(
            "Variante n. %s aggiunta al %s n. %s", row.number, self.label, number
        )
        return row, statement

    async def update_amendment(
        self,
        db: AsyncSession,
        scope: StatementScope,
        number: int,
        amendment_id: uuid.UUID,
        patch: AmendmentUpdate,
    ) -> tuple[Any, Any]:
        """Aggiorna una variante del SAL e ne ricalcola gli importi."""
        row, statement = await self._update_row(
            db, scope, number, "amendments", amendment_id, patch, "Variante"
        )
        logger.info("Variante %s del %s n. %s aggiornata", amendment_id, self.label, number)
        return row, statement

    async def delete_amendment(
        self, db: AsyncSession, scope: StatementScope, number: int, amendment_id: uuid.UUID
    ) -> Any:
        """Elimina una variante dal SAL e restituisce il SAL aggiornato."""
        statement = await self._delete_row(db, scope, number, "amendments", amendment_id, "Variante")
        logger.info("Variante %s eliminata dal %s n. %s", amendment_id, self.label, number)
        return statement


class ProgressStatementService(StatementLedgerService):
    """
    Service per i SAL lato cliente.

    Numerazione per cantiere; le righe sono clonate dall'ordine del cliente
    validato del cantiere.
    """

    statement_model = ProgressStatement
    line_model = ProgressStatementLine
    amendment_model = ProgressStatementAmendment
    label = "SAL"

    def __init__(self, settings: Optional[Settings] = None) -> None:
        super().__init__(settings)
        self.site_service = SiteService()

    async def create(
        self,
        db: AsyncSession,
        site: ConstructionSite,
        data: ProgressStatementCreate,
    ) -> ProgressStatement:
        """
        Crea un nuovo SAL cliente per il cantiere.

        Args:
            db: Sessione database
            site: Cantiere
            data: Dati del SAL

        Returns:
            ProgressStatement: Il SAL creato, con le righe clonate

        Raises:
            NotFoundError: Se l'ordine del cliente richiesto non esiste
        """
        order: Optional[BaseOrder] = await self.site_service.get_validated_base_order(
            db, site.id, data.base_order_id
        )
        if order is None:
            logger.info("Cantiere %s senza ordine del cliente validato: SAL senza righe", site.code)

        fields = {
            "site_id": site.id,
            "base_order_id": order.id if order is not None else None,
            "date": data.date or datetime.date.today(),
            "billing_month": data.billing_month,
            "comments": data.comments,
        }
        return await self._create(
            db, StatementScope(site.id), fields, order.lines if order is not None else []
        )

    async def _check_deletable(self, db: AsyncSession, statement: ProgressStatement) -> None:
        result = await db.execute(
            select(func.count())
            .select_from(SubcontractorProgressStatement)
            .where(SubcontractorProgressStatement.anchor_statement_id == statement.id)
        )
        references = result.scalar_one()
        if references:
            logger.warning(
                "Eliminazione rifiutata: SAL n. %s ancora di %s SAL subappaltatori",
                statement.sequence_number,
                references,
            )
            raise ConflictError(
                f"Il SAL n. {statement.sequence_number} è collegato a {references} "
                "SAL di subappaltatori e non può essere eliminato"
            )

    async def summary(
        self,
        db: AsyncSession,
        billing_month: Optional[str] = None,
        site_code: Optional[str] = None,
        finalized: Optional[bool] = None,
    ) -> list[StatementSummaryRow]:
        """
        Riepilogo fatturazione dei SAL cliente.

        Per ciascun SAL riporta l'importo del periodo di righe e varianti
        e la loro somma.

        Args:
            db: Sessione database
            billing_month: Filtro per periodo (es. "Marzo 2025")
            site_code: Filtro per codice cantiere
            finalized: Filtro per stato (True = solo finalizzati)
        """
        conditions = []
        if billing_month:
            conditions.append(ProgressStatement.billing_month == billing_month)
        if site_code:
            conditions.append(ConstructionSite.code == site_code)
        if finalized is not None:
            conditions.append(ProgressStatement.finalized == finalized)

        query = select(ProgressStatement, ConstructionSite).join(
            ConstructionSite, ProgressStatement.site_id == ConstructionSite.id
        )
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(ConstructionSite.code, ProgressStatement.sequence_number)

        result = await db.execute(query)

        rows = []
        for statement, site in result.all():
            lines_amount = subtotal(statement.lines).current
            amendments_amount = subtotal(statement.amendments).current
            rows.append(
                StatementSummaryRow(
                    statement_id=statement.id,
                    site_code=site.code,
                    site_name=site.name,
                    sequence_number=statement.sequence_number,
                    billing_month=statement.billing_month,
                    date=statement.date,
                    status=StatementStatus.of(statement.finalized),
                    lines_amount=lines_amount,
                    amendments_amount=amendments_amount,
                    total_amount=round2(lines_amount + amendments_amount),
                )
            )

        logger.debug("Riepilogo SAL: %s righe", len(rows))
        return rows


class SubcontractorStatementService(StatementLedgerService):
    """
    Service per i SAL lato subappaltatore.

    Numerazione per coppia (subappaltatore, cantiere); le righe sono clonate
    dall'ordine di subappalto. La creazione passa dal DualTrackCoordinator,
    che garantisce l'esistenza del SAL cliente di riferimento.
    """

    statement_model = SubcontractorProgressStatement
    line_model = SubcontractorStatementLine
    amendment_model = SubcontractorStatementAmendment
    label = "SAL subappaltatore"

    def _scope_conditions(self, scope: StatementScope) -> list:
        return [
            SubcontractorProgressStatement.site_id == scope.site_id,
            SubcontractorProgressStatement.subcontractor_id == scope.subcontractor_id,
        ]

    async def create(
        self,
        db: AsyncSession,
        scope: StatementScope,
        order: SubcontractOrder,
        anchor: ProgressStatement,
        data: SubcontractorStatementCreate,
    ) -> SubcontractorProgressStatement:
        """
        Crea un nuovo SAL subappaltatore agganciato al SAL cliente `anchor`.

        Raises:
            ConflictError: Se il SAL cliente appartiene a un altro cantiere
        """
        if anchor.site_id != scope.site_id:
            raise ConflictError("Il SAL cliente di riferimento appartiene a un altro cantiere")

        fields = {
            "site_id": scope.site_id,
            "subcontractor_id": scope.subcontractor_id,
            "subcontract_order_id": order.id,
            "anchor_statement_id": anchor.id,
            "date": data.date or datetime.date.today(),
            "comments": data.comments,
        }
        return await self._create(db, scope, fields, order.lines)
