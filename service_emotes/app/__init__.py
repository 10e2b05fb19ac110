"""
Emote Catalog Service package.

Serves a curated, marketplace-validated catalog of emotes to game clients:
- Validation: candidate ids are checked against the marketplace product-info API
- Caching: validated assets live in an immutable snapshot refreshed every TTL
- Rate limiting: fixed window admission per client address

Structure:
- app.main: FastAPI app, routes, and lifecycle wiring.
- app.adapters: Marketplace HTTP client.
- app.caching: Asset cache and batch refresh engine.
- app.catalog: Candidate registry and data models.
- app.ratelimit: Fixed window limiter and client identity extraction.
"""
