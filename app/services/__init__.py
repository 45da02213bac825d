"""
                        Services Module

Business logic for the ordering system. Transport-facing services use the
hybrid pattern: an in-process implementation for development and a real
one for staging/production, chosen by ENV_MODE.

Services:
    - auth: token authentication (mock / signed)
    - notifications: order event fan-out (in-memory / Redis)
    - repository: record store access
    - pricing: order validation and re-pricing
    - authorization: relationship-based access policy
    - lifecycle: order state machine
"""
