"""
Secure Image Gateway package for Rabita.

The gateway serves images referenced by opaque tokens, enforcing:
- Rate limiting: fixed window counters per inferred client identity
- Token redemption: signed or sealed tokens resolved to the image URL
- Hardened delivery: a fixed set of security headers on every image

Structure:
- app.main: FastAPI app, routes, and lifecycle wiring.
- app.adapters: HTTP client for image origins.
- app.ratelimit: In-memory and Redis fixed window limiters.
- app.tokens: Token decryptors.
- app.domain: Client identity and the secure image pipeline.
"""
