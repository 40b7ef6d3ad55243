"""
Cheburcheck - Services

- evidence_store: reports and their evidence rows
- intake: authenticated, validated, atomic report submission
- registry: reporter tokens / trust and domain ranks
- consensus: whitelist computation and publication
- query_log: end-user lookups and feedback
- whitelist_export: CSV and histogram views of the whitelist
"""
