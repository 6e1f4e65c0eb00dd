"""Service listings and contracts. Buying escrows credits; confirming delivery releases them."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from eisc.core.exceptions import BadRequestError, ConflictError, NotFoundError
from eisc.core.logging import get_logger
from eisc.models.identity import Identity
from eisc.models.ledger import utcnow
from eisc.models.marketplace import (
    CATEGORIES,
    Contract,
    ContractStatus,
    Dispute,
    Provider,
    ServiceListing,
)
from eisc.services.ledger import LedgerEngine
from eisc.storage.memory import DEMO_USER_ID

log = get_logger(__name__)

INITIAL_SERVICES = [
    ServiceListing(
        id="svc-001",
        title="Diseño de Logo Profesional",
        description="Logos únicos para tu marca. 3 propuestas, revisiones ilimitadas y archivos finales.",
        price=8,
        category="design",
        provider=Provider(id="user-002", name="Ana García", rating=4.9, completed_jobs=47),
        tags=["Branding", "Illustrator", "Identidad Visual"],
        delivery_days=5,
    ),
    ServiceListing(
        id="svc-002",
        title="Consultoría Legal para Startups",
        description="Constitución de empresas, contratos y propiedad intelectual para emprendedores.",
        price=12,
        category="legal",
        provider=Provider(id="user-003", name="Roberto Silva", rating=4.8, completed_jobs=32),
        tags=["Contratos", "P.I.", "Startups"],
        delivery_days=3,
    ),
    ServiceListing(
        id="svc-003",
        title="Revisión de Código React/Node",
        description="Code review profesional: bugs, rendimiento y buenas prácticas.",
        price=3,
        category="software",
        provider=Provider(id="user-004", name="María López", rating=5.0, completed_jobs=89),
        tags=["React", "Node.js", "Code Review"],
        delivery_days=2,
    ),
    ServiceListing(
        id="svc-004",
        title="Estrategia de Marketing Digital",
        description="Análisis de competencia, estrategia en redes y calendario de contenido para 30 días.",
        price=10,
        category="marketing",
        provider=Provider(id="user-005", name="Diego Morales", rating=4.7, completed_jobs=23),
        tags=["Redes Sociales", "SEO", "Content"],
        delivery_days=7,
    ),
    ServiceListing(
        id="svc-005",
        title="Desarrollo de Landing Page",
        description="Landing page responsive optimizada para conversión y SEO.",
        price=15,
        category="software",
        provider=Provider(id="user-006", name="Laura Fernández", rating=4.9, completed_jobs=61),
        tags=["HTML/CSS", "React", "Landing Page"],
        delivery_days=4,
    ),
    ServiceListing(
        id="svc-006",
        title="Redacción de Blog Posts SEO",
        description="Artículos de 1500+ palabras con investigación de keywords.",
        price=4,
        category="writing",
        provider=Provider(id="user-007", name="Patricia Ruiz", rating=4.6, completed_jobs=154),
        tags=["SEO", "Copywriting", "Blog"],
        delivery_days=3,
    ),
    ServiceListing(
        id="svc-007",
        title="Análisis Financiero para PYMES",
        description="Flujo de caja, punto de equilibrio, proyecciones y recomendaciones.",
        price=9,
        category="finance",
        provider=Provider(id="user-008", name="Andrés Castillo", rating=4.8, completed_jobs=18),
        tags=["Excel", "Finanzas", "PYMES"],
        delivery_days=5,
    ),
    ServiceListing(
        id="svc-008",
        title="Clases de Programación Python",
        description="4 sesiones de 1 hora, desde fundamentos hasta automatización y datos.",
        price=6,
        category="education",
        provider=Provider(id="user-009", name="Sofía Herrera", rating=5.0, completed_jobs=42),
        tags=["Python", "Tutoring", "Data Science"],
        delivery_days=14,
    ),
]


class Marketplace:
    def __init__(self, seed_demo: bool = False, now: Callable[[], datetime] | None = None) -> None:
        self._now = now or utcnow
        self._services: dict[str, ServiceListing] = {}
        self._contracts: dict[str, Contract] = {}
        self._disputes: dict[str, Dispute] = {}
        if seed_demo:
            for svc in INITIAL_SERVICES:
                self._services[svc.id] = svc
            # matches the demo ledger's escrowed tx-004
            self._contracts["contract-001"] = Contract(
                id="contract-001",
                service_id="svc-001",
                service_title="Diseño de Logo Profesional",
                buyer_id=DEMO_USER_ID,
                provider=INITIAL_SERVICES[0].provider,
                amount=8,
                transaction_id="tx-004",
                start_date=datetime(2026, 2, 10, 16, 0, tzinfo=timezone.utc),
                expected_delivery=datetime(2026, 2, 15, 16, 0, tzinfo=timezone.utc),
            )

    # -- listings --

    def list_services(self, category: str | None = None) -> list[ServiceListing]:
        return [
            s for s in self._services.values()
            if s.status == "active" and (category is None or s.category == category)
        ]

    def get_service(self, service_id: str) -> ServiceListing:
        svc = self._services.get(service_id)
        if not svc:
            raise NotFoundError("Service not found")
        return svc

    def publish_service(
        self,
        identity: Identity,
        title: str,
        price: int,
        category: str,
        description: str = "",
        delivery_days: int = 3,
        tags: list[str] | None = None,
    ) -> ServiceListing:
        if category not in CATEGORIES:
            raise BadRequestError(f"Unknown category: {category}")
        svc = ServiceListing(
            id=f"svc-{uuid.uuid4().hex[:12]}",
            title=title,
            description=description,
            price=price,
            category=category,
            provider=Provider(id=identity.user_id, name=identity.display_name),
            tags=tags or [],
            delivery_days=delivery_days,
        )
        self._services[svc.id] = svc
        log.info("service_published", service_id=svc.id, user_id=identity.user_id, price=price)
        return svc

    # -- contracts --

    async def buy_service(self, identity: Identity, ledger: LedgerEngine, service_id: str) -> Contract:
        """Escrow the listing price and open a contract. InsufficientFundsError leaves nothing behind."""
        svc = self.get_service(service_id)
        if svc.provider.id == identity.user_id:
            raise BadRequestError("Cannot buy your own service")
        tx_id = await ledger.purchase(svc.price, svc.title, svc.provider.name, service_id=svc.id)
        now = self._now()
        contract = Contract(
            id=f"contract-{uuid.uuid4().hex[:12]}",
            service_id=svc.id,
            service_title=svc.title,
            buyer_id=identity.user_id,
            provider=svc.provider,
            amount=svc.price,
            transaction_id=tx_id,
            start_date=now,
            expected_delivery=now + timedelta(days=svc.delivery_days),
        )
        self._contracts[contract.id] = contract
        log.info("contract_opened", contract_id=contract.id, service_id=svc.id, tx_id=tx_id)
        return contract

    def list_contracts(self, user_id: str) -> list[Contract]:
        contracts = [c for c in self._contracts.values() if c.buyer_id == user_id]
        return sorted(contracts, key=lambda c: c.start_date, reverse=True)

    def get_contract(self, user_id: str, contract_id: str) -> Contract:
        contract = self._contracts.get(contract_id)
        if not contract or contract.buyer_id != user_id:
            raise NotFoundError("Contract not found")
        return contract

    async def confirm_delivery(self, identity: Identity, ledger: LedgerEngine, contract_id: str) -> Contract:
        contract = self.get_contract(identity.user_id, contract_id)
        if contract.status == ContractStatus.DISPUTED:
            raise ConflictError("Contract is under dispute", details={"contract_id": contract_id})
        if contract.status == ContractStatus.COMPLETED:
            return contract
        await ledger.release_escrow(contract.transaction_id)
        contract = contract.model_copy(update={"status": ContractStatus.COMPLETED})
        self._contracts[contract.id] = contract
        log.info("contract_completed", contract_id=contract.id, tx_id=contract.transaction_id)
        return contract

    def open_dispute(self, identity: Identity, contract_id: str, reason: str, description: str = "") -> Dispute:
        contract = self.get_contract(identity.user_id, contract_id)
        if contract.status != ContractStatus.IN_PROGRESS:
            raise ConflictError(
                f"Cannot dispute a {contract.status.value} contract",
                details={"contract_id": contract_id},
            )
        dispute = Dispute(
            id=f"disp-{uuid.uuid4().hex[:12]}",
            contract_id=contract.id,
            service_title=contract.service_title,
            provider=contract.provider,
            amount=contract.amount,
            reason=reason,
            description=description,
            date=self._now(),
        )
        self._disputes[dispute.id] = dispute
        self._contracts[contract.id] = contract.model_copy(update={"status": ContractStatus.DISPUTED})
        log.info("dispute_opened", dispute_id=dispute.id, contract_id=contract.id)
        return dispute

    def list_disputes(self, user_id: str) -> list[Dispute]:
        contract_ids = {c.id for c in self._contracts.values() if c.buyer_id == user_id}
        disputes = [d for d in self._disputes.values() if d.contract_id in contract_ids]
        return sorted(disputes, key=lambda d: d.date, reverse=True)
