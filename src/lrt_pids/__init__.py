"""Train arrival and departure notifications for passenger information displays."""
