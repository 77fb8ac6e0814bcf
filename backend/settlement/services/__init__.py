"""Service layer: batch orchestration, payment processing and notifications."""
