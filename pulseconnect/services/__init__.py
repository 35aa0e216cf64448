"""Service layer - business logic for requests, appointments and inventory."""
