"""
Preparation Routing Adapter.

Turns order items into station tickets (kitchen, bar) and manages their
lifecycle. Like the stock ledger it flushes but never commits.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from sqlalchemy.orm import Session

from shared.config.constants import (
    TicketDestination,
    TicketStatus,
    validate_ticket_transition,
)
from shared.config.logging import kitchen_logger as logger
from shared.config.settings import settings
from shared.utils.exceptions import (
    DependencyFailureError,
    InvalidTransitionError,
    TicketNotFoundError,
)
from pos_api.models import OrderItem, Package, PreparationTicket, Product
from pos_api.repositories import TicketRepository
from pos_api.services.clock import utcnow

# Category-name fragments routed to the bar when the category has no
# explicit default_destination
DEFAULT_STATION_MAPPING: dict[str, str] = {
    "drink": TicketDestination.BARTENDER,
    "beverage": TicketDestination.BARTENDER,
    "bar": TicketDestination.BARTENDER,
    "cocktail": TicketDestination.BARTENDER,
    "beer": TicketDestination.BARTENDER,
    "wine": TicketDestination.BARTENDER,
    "liquor": TicketDestination.BARTENDER,
    "bebida": TicketDestination.BARTENDER,
}


class PreparationRouter:
    """Station collaborator: route, cancel, create and advance tickets."""

    def __init__(self, db: Session):
        self._db = db
        self._tickets = TicketRepository(db)

    def get_station_for_category(self, category_name: str | None) -> str:
        """Determine station based on category name patterns."""
        if category_name:
            name_lower = category_name.lower()
            for pattern, station in DEFAULT_STATION_MAPPING.items():
                if pattern in name_lower:
                    return station
        return settings.default_destination

    def resolve_destination(self, product: Product | None) -> str:
        if product is None or product.category is None:
            return settings.default_destination
        if product.category.default_destination in TicketDestination.ALL:
            return product.category.default_destination
        return self.get_station_for_category(product.category.name)

    # ------------------------------------------------------------------
    # Routing
    # ------------------------------------------------------------------

    def route_items(self, order_id: int, items: Iterable[OrderItem]) -> list[PreparationTicket]:
        """One PENDING ticket per item, or per component product for packages."""
        tickets: list[PreparationTicket] = []
        for item in items:
            if item.package_id is not None:
                tickets.extend(self._route_package(order_id, item))
            else:
                product = item.product or self._db.get(Product, item.product_id)
                tickets.append(
                    self.create_ticket(
                        order_id=order_id,
                        order_item_id=item.id,
                        product_id=item.product_id,
                        product_name=item.item_name,
                        quantity=item.quantity,
                        destination=self.resolve_destination(product),
                        instructions=item.notes,
                    )
                )
        self._db.flush()

        logger.info(
            "Items routed to stations",
            order_id=order_id,
            tickets=len(tickets),
            kitchen=sum(1 for t in tickets if t.destination != TicketDestination.BARTENDER),
            bar=sum(1 for t in tickets if t.destination != TicketDestination.KITCHEN),
        )
        return tickets

    def _route_package(self, order_id: int, item: OrderItem) -> list[PreparationTicket]:
        package = item.package or self._db.get(Package, item.package_id)
        if package is None:
            raise DependencyFailureError(
                "preparation_routing", "package expansion", package_id=item.package_id
            )
        annotation = f"Package: {package.name} (x{item.quantity})"
        if item.notes:
            annotation = f"{annotation} - {item.notes}"
        return [
            self.create_ticket(
                order_id=order_id,
                order_item_id=item.id,
                product_id=component.product_id,
                product_name=component.product.name,
                quantity=component.quantity * item.quantity,
                destination=self.resolve_destination(component.product),
                instructions=annotation,
            )
            for component in package.items
        ]

    def create_ticket(
        self,
        *,
        order_id: int,
        order_item_id: int | None,
        product_name: str,
        quantity: int,
        destination: str,
        product_id: int | None = None,
        instructions: str | None = None,
        is_urgent: bool = False,
    ) -> PreparationTicket:
        ticket = PreparationTicket(
            order_id=order_id,
            order_item_id=order_item_id,
            product_id=product_id,
            product_name=product_name,
            quantity=quantity,
            destination=destination,
            status=TicketStatus.PENDING,
            is_urgent=is_urgent,
            special_instructions=instructions,
            sent_at=utcnow(),
        )
        self._db.add(ticket)
        return ticket

    def component_units(self, item: OrderItem) -> dict[int | None, int]:
        """
        Units of each ticketed product per unit of the item: the component
        quantities for a package, 1 for a plain product.
        """
        if item.package_id is None:
            return {item.product_id: 1}
        package = item.package or self._db.get(Package, item.package_id)
        if package is None:
            raise DependencyFailureError(
                "preparation_routing", "package expansion", package_id=item.package_id
            )
        return {component.product_id: component.quantity for component in package.items}

    def create_modified_ticket(
        self,
        source: PreparationTicket,
        old_quantity: int,
        new_quantity: int,
    ) -> PreparationTicket:
        """
        Urgent follow-up telling the station an in-flight ticket changed.
        Quantities are in the ticket's own units (component units for a
        package component).
        """
        ticket = self.create_ticket(
            order_id=source.order_id,
            order_item_id=source.order_item_id,
            product_id=source.product_id,
            product_name=source.product_name,
            quantity=new_quantity,
            destination=source.destination,
            instructions=f"MODIFIED: changed from {old_quantity} to {new_quantity} units",
            is_urgent=True,
        )
        self._db.flush()
        logger.info(
            "Modified ticket sent",
            order_id=source.order_id,
            order_item_id=source.order_item_id,
            destination=source.destination,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
        )
        return ticket

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def tickets_for_item(self, order_item_id: int) -> Sequence[PreparationTicket]:
        return self._tickets.find_for_item(order_item_id)

    def tickets_for_order(self, order_id: int, statuses: list[str] | None = None) -> Sequence[PreparationTicket]:
        return self._tickets.find_for_order(order_id, statuses)

    def cancel_tickets(self, ticket_ids: Sequence[int], reason: str) -> list[PreparationTicket]:
        """Cancel the given tickets that are still active. Returns the cancelled ones."""
        cancelled = []
        for ticket in self._tickets.find_by_ids(list(ticket_ids)):
            if ticket.status not in TicketStatus.ACTIVE:
                continue
            ticket.status = TicketStatus.CANCELLED
            ticket.cancelled_at = utcnow()
            ticket.special_instructions = reason
            cancelled.append(ticket)
        self._db.flush()
        if cancelled:
            logger.info("Tickets cancelled", ticket_ids=[t.id for t in cancelled], reason=reason)
        return cancelled

    def update_ticket_status(self, ticket_id: int, new_status: str) -> PreparationTicket:
        """
        Advance a ticket: PENDING -> PREPARING -> READY -> COMPLETED.

        Raises:
            TicketNotFoundError: unknown ticket
            InvalidTransitionError: transition not allowed
        """
        ticket = self._tickets.find_by_id(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(ticket_id)
        if not validate_ticket_transition(ticket.status, new_status):
            raise InvalidTransitionError("preparation ticket", ticket.status, new_status, ticket_id=ticket_id)

        now = utcnow()
        ticket.status = new_status
        if new_status == TicketStatus.PREPARING:
            ticket.started_at = now
        elif new_status == TicketStatus.READY:
            ticket.ready_at = now
        elif new_status == TicketStatus.COMPLETED:
            ticket.completed_at = now
        elif new_status == TicketStatus.CANCELLED:
            ticket.cancelled_at = now
        self._db.flush()
        return ticket
