"""Registration domain services: admission, seat accounting, tickets and lifecycle."""
