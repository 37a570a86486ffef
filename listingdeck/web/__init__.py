"""FastAPI backend for listingdeck."""
