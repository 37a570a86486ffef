"""listingdeck - property brochure slides from uploaded photos."""

__version__ = "0.1.0"
