"""
                Restaurant Storefront

Backend for a restaurant ordering storefront: menu browsing, cart pricing,
checkout through the PhonePe payment gateway and an admin API for menu and
order management, with hybrid Mock/Real service architecture.
"""

__version__ = "1.0.0"
