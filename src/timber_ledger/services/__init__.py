"""
Services package - inventory core for Timber Ledger.

Modules:
- valuation: volume points and purchase price from log dimensions
- allocation: per-log draw-down rules
- production_service: atomic production runs and production history
- audit_service: ledger reconciliation
- log_service / product_service / master_data_service: purchase entry,
  catalog and inventory queries
- record_store: transactional store the core runs against
- api: ServiceResult boundary around the mutating operations
"""
