"""
Closet Swap

Decision core for a second-hand fashion marketplace:
- Catalog store of users, listings, bids and sales
- Second-price bid settlement with reserve prices
- Per-viewer content visibility and moderation
- Listing ranking for browse views
"""

__version__ = "0.1.0"
