"""Named, versioned JSON documents holding the canteen's state.

Each document is loaded and saved independently. ``CanteenState`` loads all of
them for one unit of work and ``commit()`` writes back the ones that changed in
a single transaction, so every change is visible as one whole-value replacement.

Writes are guarded by each document's ``version_id``: a commit only lands on
the versions it loaded, otherwise nothing is written and ``ConcurrentUpdate``
is raised. Request handlers that write take ``get_state_for_update``, which
also makes writers in this process take turns.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from fastapi import Depends, Request
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from smartcanteen.database import get_db
from smartcanteen.errors import ConcurrentUpdate, UnknownMenuItem, UnsupportedDocumentVersion
from smartcanteen.models import Document
from smartcanteen.orders import PendingOrders
from smartcanteen.plan import ProductionPlan, plan_from_document, plan_to_document
from smartcanteen.schemas import (
    ActiveOrder,
    DailyEntry,
    MenuItem,
    Notification,
    OptimizationMode,
    UserRole,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class DocumentSpec:
    name: str
    attr: str
    default: Callable[[], Any]
    encode: Callable[[Any], Any]
    decode: Callable[[Any], Any]


def _models(model):
    return lambda payload: [model.model_validate(row) for row in payload or []]


def _dump_models(values):
    return [v.to_document() for v in values]


DOCUMENTS = (
    DocumentSpec("catalog", "catalog", list, _dump_models, _models(MenuItem)),
    DocumentSpec("history", "history", list, _dump_models, _models(DailyEntry)),
    DocumentSpec(
        "pending_orders_today", "pending_today", PendingOrders,
        lambda p: p.to_document(), PendingOrders.from_document,
    ),
    DocumentSpec(
        "pending_orders_tomorrow", "pending_tomorrow", PendingOrders,
        lambda p: p.to_document(), PendingOrders.from_document,
    ),
    DocumentSpec("production_plan", "production_plan", dict, plan_to_document, plan_from_document),
    DocumentSpec("active_orders", "active_orders", list, _dump_models, _models(ActiveOrder)),
    DocumentSpec("notifications", "notifications", list, _dump_models, _models(Notification)),
    DocumentSpec(
        "optimization_mode", "optimization_mode", lambda: OptimizationMode.NORMAL,
        lambda m: m.value, OptimizationMode,
    ),
    DocumentSpec(
        "user_role", "user_role", lambda: UserRole.ADMIN,
        lambda r: r.value, UserRole,
    ),
)

DOCUMENTS_BY_NAME = {spec.name: spec for spec in DOCUMENTS}


def read_document(db: Session, name: str):
    """Decoded value and version_id of document ``name``; ``(default, 0)`` when never saved."""
    spec = DOCUMENTS_BY_NAME[name]
    row = db.get(Document, name)
    if row is None:
        return spec.default(), 0
    if row.schema_version > SCHEMA_VERSION:
        raise UnsupportedDocumentVersion(name, row.schema_version, SCHEMA_VERSION)
    return spec.decode(row.payload), row.version_id


def load_document(db: Session, name: str):
    return read_document(db, name)[0]


def save_document(db: Session, name: str, value, expected_version: Optional[int] = None) -> None:
    """Stage a whole-value replacement of document ``name``. Caller commits.

    With ``expected_version`` the write only applies if the stored version_id
    still matches (0 meaning the document must not exist yet); otherwise
    ``ConcurrentUpdate`` is raised. A conflicting insert surfaces as
    ``IntegrityError`` at commit.
    """
    spec = DOCUMENTS_BY_NAME[name]
    payload = spec.encode(value)

    if expected_version is None:
        row = db.get(Document, name)
        if row is None:
            db.add(Document(name=name, schema_version=SCHEMA_VERSION, version_id=1, payload=payload))
        else:
            row.schema_version = SCHEMA_VERSION
            row.version_id = (row.version_id or 0) + 1
            row.payload = payload
        return

    if expected_version == 0:
        db.add(Document(name=name, schema_version=SCHEMA_VERSION, version_id=1, payload=payload))
        return

    result = db.execute(
        update(Document)
        .where(Document.name == name, Document.version_id == expected_version)
        .values(
            payload=payload,
            schema_version=SCHEMA_VERSION,
            version_id=expected_version + 1,
            updated_at=func.now(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise ConcurrentUpdate(name)


def store_is_empty(db: Session) -> bool:
    return db.query(Document).first() is None


@dataclass
class CanteenState:
    """Everything one request works on, loaded from and flushed to the document store."""

    catalog: list[MenuItem] = field(default_factory=list)
    history: list[DailyEntry] = field(default_factory=list)
    pending_today: PendingOrders = field(default_factory=PendingOrders)
    pending_tomorrow: PendingOrders = field(default_factory=PendingOrders)
    production_plan: ProductionPlan = field(default_factory=dict)
    active_orders: list[ActiveOrder] = field(default_factory=list)
    notifications: list[Notification] = field(default_factory=list)
    optimization_mode: OptimizationMode = OptimizationMode.NORMAL
    user_role: UserRole = UserRole.ADMIN
    _snapshot: dict = field(default_factory=dict, repr=False, compare=False)
    _versions: dict = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def load(cls, db: Session) -> "CanteenState":
        values, versions = {}, {}
        for spec in DOCUMENTS:
            values[spec.attr], versions[spec.name] = read_document(db, spec.name)
        state = cls(**values)
        state._snapshot = state._encoded()
        state._versions = versions
        return state

    def _encoded(self) -> dict:
        return {spec.name: spec.encode(getattr(self, spec.attr)) for spec in DOCUMENTS}

    def dirty_documents(self) -> list[str]:
        current = self._encoded()
        return [name for name, payload in current.items() if self._snapshot.get(name) != payload]

    def commit(self, db: Session) -> list[str]:
        """Write every changed document in one transaction, or none of them."""
        changed = self.dirty_documents()
        if not changed:
            return []
        try:
            for name in changed:
                save_document(
                    db, name, getattr(self, DOCUMENTS_BY_NAME[name].attr),
                    expected_version=self._versions.get(name, 0),
                )
            db.commit()
        except (ConcurrentUpdate, IntegrityError) as e:
            db.rollback()
            logger.warning("Lost write race on %s, nothing committed", ", ".join(changed))
            if isinstance(e, ConcurrentUpdate):
                raise
            raise ConcurrentUpdate(*changed) from e

        for name in changed:
            self._versions[name] = self._versions.get(name, 0) + 1
        self._snapshot = self._encoded()
        logger.debug("Committed documents: %s", ", ".join(changed))
        return changed

    # ===== lookups =====

    def menu_item(self, item_id: str) -> MenuItem:
        for item in self.catalog:
            if item.id == item_id:
                return item
        raise UnknownMenuItem(item_id)

    def has_item(self, item_id: str) -> bool:
        return any(item.id == item_id for item in self.catalog)


def get_state(db: Session = Depends(get_db)) -> CanteenState:
    """State for a request that only reads."""
    return CanteenState.load(db)


async def get_state_for_update(request: Request, db: Session = Depends(get_db)):
    """State for a request that writes, held under the app's write lock until the request ends."""
    async with request.app.state.write_lock:
        yield await run_in_threadpool(CanteenState.load, db)
