import datetime

from mirin.errors import InvalidState

RENTAL_TRANSITIONS = {
    'pending': {'active', 'cancelled'},
    'active': {'completed', 'cancelled'},
    'completed': set(),
    'cancelled': set(),
}


def transition_rental(rental, target):
    if target not in RENTAL_TRANSITIONS.get(rental.status, set()):
        raise InvalidState(f"Cannot move rental from {rental.status} to {target}")
    rental.status = target


def is_open(rental):
    return rental.status in ('pending', 'active')


def activate_rental(rental):
    transition_rental(rental, 'active')
    rental.product.status = 'rented'


def cancel_rental(rental):
    transition_rental(rental, 'cancelled')
    # A pending rental never marked the product rented
    if rental.product.status == 'rented':
        rental.product.status = 'available'


def complete_rental(rental, returned_at=None):
    transition_rental(rental, 'completed')
    rental.actual_return_date = returned_at or datetime.datetime.utcnow()
    rental.product.status = 'available'
