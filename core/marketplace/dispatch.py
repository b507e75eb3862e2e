"""
Dispatch Layer - Named Operations over Positional String Arguments

Routes ``Init``/``Query``/``Invoke`` calls to the workflow engine. For each
call the dispatcher:

1. Looks up the operation by name and checks it belongs to the entry point
2. Checks arity (before touching the ledger)
3. Resolves the caller, except for CreateUser and Setup
4. Runs the operation in one ledger transaction, retried on conflict
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Final, Optional, Sequence

from core.errors import InvalidInputError
from core.ledger.keys import KeyNamespace, default_namespace
from core.ledger.store import DEFAULT_MAX_RETRIES, Ledger, Transaction, get_ledger
from core.marketplace.identity import (
    Caller,
    CallerContext,
    IdentityResolver,
    LedgerIdentityResolver,
)
from core.marketplace.workflow import MarketplaceWorkflow


logger = logging.getLogger(__name__)


class EntryPoint(Enum):
    INIT = "init"
    QUERY = "query"
    INVOKE = "invoke"


Handler = Callable[[MarketplaceWorkflow, Transaction, Optional[Caller], Sequence[str]], Optional[bytes]]


@dataclass(frozen=True)
class Operation:
    """A named operation and what it needs before it can run."""

    name: str
    entry_points: frozenset[EntryPoint]
    min_args: int
    handler: Handler
    authenticated: bool = True


def _operations() -> dict[str, Operation]:
    query = frozenset({EntryPoint.QUERY})
    invoke = frozenset({EntryPoint.INVOKE})

    ops = [
        # Queries
        Operation("GetMortgageApplication", query, 1,
                  lambda w, tx, c, a: w.get_mortgage_application(tx, c, a[0])[1]),
        Operation("GetAppraiserApplication", query, 1,
                  lambda w, tx, c, a: w.get_appraiser_application(tx, c, a[0])[1]),
        Operation("GetSalesContract", query, 1,
                  lambda w, tx, c, a: w.get_sales_contract(tx, c, a[0])[1]),
        Operation("GetPropertyAds", query, 0,
                  lambda w, tx, c, a: w.get_property_ads(tx)),
        Operation("GetPropertyAd", query, 1,
                  lambda w, tx, c, a: w.get_property_ad(tx, a[0])[1]),
        Operation("GetMortgageApplications", query, 0,
                  lambda w, tx, c, a: w.get_mortgage_applications(tx, c)),
        Operation("GetAppraiserApplications", query, 0,
                  lambda w, tx, c, a: w.get_appraiser_applications(tx, c)),
        Operation("GetSalesContracts", query, 0,
                  lambda w, tx, c, a: w.get_sales_contracts(tx, c)),
        Operation("GetAuditorMALogs", query, 1,
                  lambda w, tx, c, a: w.get_auditor_ma_logs(tx, c, a[0])),
        Operation("GetAuditorBCLogs", query, 0,
                  lambda w, tx, c, a: w.get_auditor_bc_logs(tx, c)),

        # Mutations
        Operation("CreateUser", invoke, 2,
                  lambda w, tx, c, a: w.create_user(tx, a[0], a[1]),
                  authenticated=False),
        Operation("CreateMortgageApplication", invoke, 2,
                  lambda w, tx, c, a: w.create_mortgage_application(tx, c, a[0], a[1])),
        Operation("UpdateMortgageApplication", invoke, 2,
                  lambda w, tx, c, a: w.update_mortgage_application(tx, c, a[0], a[1])),
        Operation("CreateAppraiserApplication", invoke, 2,
                  lambda w, tx, c, a: w.create_appraiser_application(tx, c, a[0], a[1])),
        Operation("UpdateAppraiserApplication", invoke, 2,
                  lambda w, tx, c, a: w.update_appraiser_application(tx, c, a[0], a[1])),
        Operation("CreateSalesContract", invoke, 2,
                  lambda w, tx, c, a: w.create_sales_contract(tx, c, a[0], a[1])),
        Operation("UpdateSalesContract", invoke, 2,
                  lambda w, tx, c, a: w.update_sales_contract(tx, c, a[0], a[1])),
        Operation("Setup", frozenset({EntryPoint.INIT, EntryPoint.INVOKE}), 0,
                  lambda w, tx, c, a: w.setup(tx),
                  authenticated=False),
    ]
    return {op.name: op for op in ops}


OPERATIONS: Final[dict[str, Operation]] = _operations()


# =============================================================================
# Dispatcher
# =============================================================================


class Dispatcher:
    """Entry points of the marketplace."""

    def __init__(
        self,
        ledger: Ledger,
        workflow: MarketplaceWorkflow,
        resolver: IdentityResolver,
    ):
        self._ledger = ledger
        self._workflow = workflow
        self._resolver = resolver

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def workflow(self) -> MarketplaceWorkflow:
        return self._workflow

    def init(self, function: str, args: Sequence[str] = ()) -> Optional[bytes]:
        """Initialisation entry point; only Setup is recognised."""
        return self._dispatch(EntryPoint.INIT, None, function, args)

    def query(self, context: CallerContext, function: str, args: Sequence[str] = ()) -> Optional[bytes]:
        """Side-effect-free reads."""
        return self._dispatch(EntryPoint.QUERY, context, function, args)

    def invoke(self, context: CallerContext, function: str, args: Sequence[str] = ()) -> Optional[bytes]:
        """Mutating operations."""
        return self._dispatch(EntryPoint.INVOKE, context, function, args)

    def _dispatch(
        self,
        entry_point: EntryPoint,
        context: Optional[CallerContext],
        function: str,
        args: Sequence[str],
    ) -> Optional[bytes]:
        operation = OPERATIONS.get(function)
        if operation is None or entry_point not in operation.entry_points:
            raise InvalidInputError(f"Unknown {entry_point.value} function: {function}")

        args = list(args)
        if len(args) < operation.min_args:
            raise InvalidInputError(
                f"{function} expects {operation.min_args} argument(s), got {len(args)}"
            )

        caller: Optional[Caller] = None
        if operation.authenticated:
            caller = self._resolver.resolve(context or CallerContext())

        logger.debug(
            "%s %s by %s", entry_point.value, function, caller.caller_id if caller else "-"
        )
        return self._ledger.run(
            lambda tx: operation.handler(self._workflow, tx, caller, args)
        )


def build_dispatcher(
    ledger: Ledger,
    namespace: Optional[KeyNamespace] = None,
    clock: Optional[Callable[[], datetime]] = None,
    resolver: Optional[IdentityResolver] = None,
) -> Dispatcher:
    """Wire a dispatcher over a ledger with the default namespace and resolver."""
    namespace = namespace or default_namespace()
    return Dispatcher(
        ledger=ledger,
        workflow=MarketplaceWorkflow(namespace, clock=clock),
        resolver=resolver or LedgerIdentityResolver(ledger, namespace),
    )


# =============================================================================
# Singleton Instance
# =============================================================================

_dispatcher_instance: Optional[Dispatcher] = None


def get_dispatcher(
    persist_path: Optional[str] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> Dispatcher:
    """
    Get the dispatcher singleton over the shared ledger.

    Args:
        persist_path: Ledger file (only used on first call)
        max_retries: Conflict retries (only used on first call)
    """
    global _dispatcher_instance
    if _dispatcher_instance is None:
        _dispatcher_instance = build_dispatcher(get_ledger(persist_path, max_retries))
    return _dispatcher_instance


def reset_dispatcher() -> None:
    """Reset the singleton instance (for testing)."""
    global _dispatcher_instance
    _dispatcher_instance = None
