"""GP Inventory production core: BOM graph, supply ledger and production tracking."""
