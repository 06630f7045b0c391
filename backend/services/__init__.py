"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - fare_splitting: Pure cent-exact cost splitting
    - ride_management: Driver-side ride operations
    - booking_lifecycle: Booking state machine, trip codes and disputes
"""
