"""
Promo recommendation eligibility & ranking engine for the vet practice platform.

Layout:
- recommender/: selection pipeline (consent, tags, candidates, eligibility,
  frequency caps, ranking, AI shortlist fast path)
- storage/: SQL / Redis / in-memory adapters for the collaborator stores
- schemas/: pydantic models validating rows at the storage boundary
"""
