"""
Selection pipeline.

- selection_service.py: public entry point (PromoSelectionService.select)
- consent_resolver.py, tag_snapshot_reader.py, candidate_retrieval_service.py,
  eligibility_filter.py, frequency_cap_guard.py, ranking_service.py: stages
- ai_shortlist_gate.py: fast path over the cached AI shortlist
- daily_rotation.py: tie-break hash shared with other consumers
"""
