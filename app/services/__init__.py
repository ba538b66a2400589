"""
                        Services Module

Contains all business logic services with the hybrid architecture pattern.
External collaborators have Mock (development) and Real (production)
implementations behind a cached factory.

Services:
    - payment: PhonePe gateway client and mock, checksum signer, envelope encoder
    - store: Document store (in-memory and SQL backends)
    - checkout: Checkout flow from cart to gateway redirect
    - callback: Payment callback handling and order reconciliation
    - cart, menu, identity: Storefront domain services
"""
